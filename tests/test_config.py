import pytest
from pydantic import ValidationError

from sisgeagro.config import DatabaseType, Environment, Settings


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.database_type == DatabaseType.SQLITE
        assert settings.notification_link == "/dashboard/tabla"
        assert settings.tax_payment_category == "Impuestos y Tasas"
        assert settings.tax_payment_fallback_subcategory == "Pago de Impuesto"
        assert settings.email_enabled is False

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("SGA_SMTP_HOST", "smtp.example.com")
        monkeypatch.setenv("SGA_TAX_PAYMENT_CATEGORY", "Tributos")

        settings = Settings(_env_file=None)

        assert settings.email_enabled is True
        assert settings.tax_payment_category == "Tributos"

    def test_log_format_follows_environment(self):
        assert Settings(_env_file=None).log_format == "console"
        assert Settings(_env_file=None, environment=Environment.PRODUCTION).log_format == "json"
        assert (
            Settings(
                _env_file=None, environment=Environment.PRODUCTION, log_format="console"
            ).log_format
            == "console"
        )

    def test_postgres_requires_url(self):
        with pytest.raises(ValidationError, match="database_url"):
            Settings(_env_file=None, database_type=DatabaseType.POSTGRES)

    def test_blank_tax_payment_label_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, tax_payment_category="  ")

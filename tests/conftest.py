from decimal import Decimal

import pytest

from sisgeagro.config import Settings
from sisgeagro.container import build_bulk_importer, build_movement_service
from sisgeagro.domain.entities import TaxDefinition
from sisgeagro.repositories.interfaces import Repositories
from sisgeagro.repositories.sqlite import SQLiteDatabase, create_sqlite_repositories
from sisgeagro.services.bulk_import import BulkImporter
from sisgeagro.services.entity_resolver import EntityResolver
from sisgeagro.services.movements import MovementDraft, MovementService
from sisgeagro.services.notifications import EmailSender
from sisgeagro.services.taxonomy import TaxonomyResolver


class RecordingEmailSender(EmailSender):
    """Keeps every message instead of sending it."""

    def __init__(self, deliver: bool = True) -> None:
        self.sent: list[dict[str, str | None]] = []
        self.deliver = deliver

    def send(self, to: str, subject: str, text: str, html: str | None = None) -> bool:
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})
        return self.deliver


@pytest.fixture
def settings() -> Settings:
    return Settings(sqlite_path=":memory:")


@pytest.fixture
def db() -> SQLiteDatabase:
    """In-memory database usable from the TestClient worker threads."""
    database = SQLiteDatabase(":memory:", check_same_thread=False)
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def repos(db: SQLiteDatabase) -> Repositories:
    return create_sqlite_repositories(db)


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def refusing_email_sender() -> RecordingEmailSender:
    return RecordingEmailSender(deliver=False)


@pytest.fixture
def entity_resolver(repos: Repositories) -> EntityResolver:
    return EntityResolver(repos.entities)


@pytest.fixture
def taxonomy(repos: Repositories) -> TaxonomyResolver:
    return TaxonomyResolver(repos.categories, repos.subcategories)


@pytest.fixture
def movement_service(
    repos: Repositories, email_sender: RecordingEmailSender, settings: Settings
) -> MovementService:
    return build_movement_service(repos, email_sender, settings)


@pytest.fixture
def bulk_importer(repos: Repositories, settings: Settings) -> BulkImporter:
    return build_bulk_importer(repos, settings)


@pytest.fixture
def iva(repos: Repositories) -> TaxDefinition:
    tax = TaxDefinition(name="IVA", percentage=Decimal("21"))
    repos.taxes.add(tax)
    return tax


@pytest.fixture
def make_draft():
    """Build a complete expense draft; keyword arguments override fields."""

    def _make(**overrides) -> MovementDraft:
        fields = {
            "description": "Compra de semillas",
            "amount": "1000",
            "payment_type": "Transferencia",
            "movement_type": "egreso",
            "created_by": "user-1",
            "bill_date": "2024-03-15",
            "bill_number": "A-0001",
            "category": "Insumos",
            "subcategory": "Semillas",
            "entity_name": "Agro SA",
            "entity_fiscal_id": "30-11111111-1",
        }
        fields.update(overrides)
        return MovementDraft(**fields)

    return _make


@pytest.fixture
def sample_rows() -> list[dict[str, str]]:
    """Two valid CSV rows keyed the way the upload form sends them."""
    return [
        {
            "detalle": "Venta de soja",
            "movimiento": "ingreso",
            "formaPago": "Transferencia",
            "importe": "5000",
            "rubro": "Ventas",
            "subrubro": "Granos",
            "fechaComprobante": "01/03/2024",
            "empresa": "Acopio SRL",
            "cuit_cuil": "30-22222222-2",
        },
        {
            "detalle": "Fertilizante",
            "movimiento": "egreso",
            "formaPago": "Efectivo",
            "importe": "1000",
            "rubro": "Insumos",
            "subrubro": "Fertilizantes",
            "factura": "B-0100",
            "fechaComprobante": "2024-03-02",
            "empresa": "Agro SA",
            "cuit_cuil": "30-11111111-1",
            "selectedTaxes": "IVA",
            "selectedTaxesPercentages": "21",
        },
    ]


@pytest.fixture
def count_rows(db: SQLiteDatabase):
    """Row count of a table, for orphan checks."""

    def _count(table: str) -> int:
        conn = db.get_connection()
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    return _count

"""Tests for structured logging in services."""

import logging
from decimal import Decimal

import pytest
import structlog

from sisgeagro.container import build_notification_service
from sisgeagro.domain.entities import Entity
from sisgeagro.domain.notifications import NotificationSettings, Profile
from sisgeagro.exceptions import ConflictingEntityError
from sisgeagro.logging_config import (
    LogContext,
    get_console_processors,
    get_json_processors,
    get_logger,
)


def _logged(capsys, caplog) -> str:
    # structlog writes to stdout or through stdlib logging depending on configuration
    return capsys.readouterr().out + caplog.text


class TestServiceLogging:
    def test_conflicting_entity_logs_warning(self, entity_resolver, repos, capsys, caplog):
        repos.entities.add(Entity(name="Agro SA", fiscal_id="30-1"))

        with caplog.at_level(logging.WARNING, logger="sisgeagro.services.entity_resolver"):
            with pytest.raises(ConflictingEntityError):
                entity_resolver.resolve_for_edit("Agro SA", "30-2", None)

        assert "conflicting_entity_rejected" in _logged(capsys, caplog)

    def test_failed_threshold_email_logs_warning(
        self, repos, settings, email_sender, capsys, caplog
    ):
        repos.profiles.upsert(Profile(id="u", email="u@example.com"))
        repos.notification_settings.upsert(
            NotificationSettings(user_id="u", expense_threshold=Decimal("50"))
        )

        def explode(*args, **kwargs):
            raise OSError("connection refused")

        email_sender.send = explode
        service = build_notification_service(repos, email_sender, settings)

        with caplog.at_level(logging.WARNING, logger="sisgeagro.services.notifications"):
            service.notify_movement_created(Decimal("100"))

        assert "notification_email_failed" in _logged(capsys, caplog)


class TestLoggingConfiguration:
    def test_get_logger_returns_bound_logger(self):
        logger = get_logger("sisgeagro.tests")

        assert hasattr(logger, "info")
        assert hasattr(logger, "warning")

    def test_json_processors_render_json(self):
        assert isinstance(get_json_processors()[-1], structlog.processors.JSONRenderer)

    def test_console_processors_render_for_terminal(self):
        assert isinstance(get_console_processors()[-1], structlog.dev.ConsoleRenderer)

    def test_log_context_binds_and_unbinds(self):
        with LogContext(actor_id="user-1"):
            assert structlog.contextvars.get_contextvars()["actor_id"] == "user-1"

        assert "actor_id" not in structlog.contextvars.get_contextvars()

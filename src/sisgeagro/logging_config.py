"""Structured logging for SisGeAgro, built on structlog.

Console rendering in development, JSON lines in production. Request-scoped
values (request id, actor) are carried in contextvars so every event emitted
while serving a request includes them.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import structlog
from structlog.types import Processor

from sisgeagro.config import Settings, get_settings

# Third-party loggers that are too chatty below INFO.
_NOISY_LOGGERS = (
    "httpcore",
    "httpx",
    "multipart",
    "uvicorn.access",
    "asyncio",
)


def _app_context(settings: Settings) -> Processor:
    app, environment = settings.app_name, settings.environment.value

    def add_app_context(
        logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict.setdefault("app", app)
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_app_context


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def get_console_processors() -> list[Processor]:
    """Processors for human-readable development output."""
    return [
        *_shared_processors(),
        structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        ),
    ]


def get_json_processors(settings: Settings | None = None) -> list[Processor]:
    """Processors for JSON output consumed by log shippers."""
    return [
        _app_context(settings or get_settings()),
        *_shared_processors(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Call once at startup, before the first event is logged.
    """
    if settings is None:
        settings = get_settings()

    log_level = getattr(logging, settings.log_level.value)

    if settings.log_format == "json":
        processors = get_json_processors(settings)
    else:
        processors = get_console_processors()

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    if settings.log_file:
        _setup_file_handler(settings.log_file, log_level)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(log_level, logging.INFO))


def _setup_file_handler(log_file: Path, level: int) -> None:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(level)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logging.getLogger().addHandler(file_handler)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger.

    Example:
        logger = get_logger(__name__)
        logger.info("movement_created", movement_id=str(movement.id))
    """
    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind values to every event logged from the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind log context for the duration of a with block.

    Example:
        with LogContext(actor_id=user_id):
            results = importer.import_rows(rows, user_id)
    """

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs

    def __enter__(self) -> "LogContext":
        bind_context(**self.kwargs)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self.kwargs.keys())

"""FastAPI application factory and exception handlers."""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from sisgeagro.api.routes import (
    dashboard_router,
    health_router,
    import_router,
    movement_router,
    notification_router,
    reference_router,
)
from sisgeagro.config import get_settings
from sisgeagro.container import get_container, reset_container
from sisgeagro.exceptions import SisGeAgroError
from sisgeagro.logging_config import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging and open the database on startup; close it on shutdown."""
    settings = get_settings()
    configure_logging(settings)

    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment.value,
    )

    container = get_container()
    _ = container.database

    logger.info("application_started")

    yield

    logger.info("application_stopping")
    reset_container()
    logger.info("application_stopped")


async def log_request_middleware(request: Request, call_next):
    """Middleware to add request context to logs."""
    request_id = str(uuid.uuid4())[:8]
    bind_context(request_id=request_id, path=request.url.path, method=request.method)

    try:
        response = await call_next(request)
        logger.debug(
            "request_completed",
            status_code=response.status_code,
        )
        return response
    finally:
        clear_context()


async def exception_handler(request: Request, exc: SisGeAgroError) -> JSONResponse:
    """Handle domain exceptions and return appropriate JSON responses."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "domain_exception",
        error_code=exc.error_code,
        message=exc.message,
        context=exc.context,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies and parameters are answered with 400."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    logger.warning("request_validation_failed", errors=len(errors), field=location)
    return JSONResponse(
        status_code=400,
        content={
            "error": f"{location}: {message}" if location else message,
            "code": "VALIDATION_ERROR",
            "context": {"fields": [".".join(str(p) for p in e.get("loc", ())) for e in errors]},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", error=str(exc))
    return JSONResponse(
        status_code=500,
        content={
            "error": str(exc) or "Internal server error",
            "code": "INTERNAL_ERROR",
            "context": {},
        },
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Movement ingestion for agricultural bookkeeping: "
        "income, expenses and investments with bills, entities and taxes",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.middleware("http")(log_request_middleware)

    app.add_exception_handler(SisGeAgroError, exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health_router)
    app.include_router(movement_router)
    app.include_router(import_router)
    app.include_router(reference_router)
    app.include_router(dashboard_router)
    app.include_router(notification_router)

    return app


# Create app instance for uvicorn
app = create_app()

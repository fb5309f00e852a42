"""Dependency injection container for SisGeAgro.

Provides centralized dependency management using a simple container pattern.
The database, its repositories and the email sender are created lazily from
settings; services are assembled from them with the build_* functions, which
the API dependencies reuse so that tests can swap the repositories or the
email sender through app.dependency_overrides.

Usage:
    from sisgeagro.container import get_container

    container = get_container()
    view = container.movement_service.get(movement_id)
"""

from functools import cached_property, lru_cache
from typing import TYPE_CHECKING, Union

from sisgeagro.config import DatabaseType, Settings, get_settings
from sisgeagro.logging_config import get_logger
from sisgeagro.repositories.interfaces import Repositories
from sisgeagro.services.bulk_import import BulkImporter
from sisgeagro.services.catalog import CatalogService
from sisgeagro.services.dashboard import DashboardService
from sisgeagro.services.entity_resolver import EntityResolver
from sisgeagro.services.movements import MovementService
from sisgeagro.services.notifications import (
    EmailSender,
    LoggingEmailSender,
    NotificationService,
    SmtpEmailSender,
)
from sisgeagro.services.taxonomy import TaxonomyResolver
from sisgeagro.services.writers import OperationLinker, PaymentBillWriter, TaxLineWriter

if TYPE_CHECKING:
    from sisgeagro.repositories.postgres import PostgresDatabase
    from sisgeagro.repositories.sqlite import SQLiteDatabase

    Database = Union[SQLiteDatabase, PostgresDatabase]

logger = get_logger(__name__)


def build_taxonomy(repositories: Repositories, settings: Settings) -> TaxonomyResolver:
    return TaxonomyResolver(
        repositories.categories,
        repositories.subcategories,
        tax_payment_category=settings.tax_payment_category,
        tax_payment_fallback_subcategory=settings.tax_payment_fallback_subcategory,
    )


def build_notification_service(
    repositories: Repositories, email_sender: EmailSender, settings: Settings
) -> NotificationService:
    return NotificationService(
        repositories.notification_settings,
        repositories.profiles,
        repositories.notifications,
        email_sender,
        link=settings.notification_link,
    )


def build_movement_service(
    repositories: Repositories, email_sender: EmailSender, settings: Settings
) -> MovementService:
    return MovementService(
        repositories,
        EntityResolver(repositories.entities),
        build_taxonomy(repositories, settings),
        PaymentBillWriter(repositories.payments, repositories.bills),
        OperationLinker(repositories.operations),
        TaxLineWriter(repositories.taxes, repositories.movement_taxes),
        notifications=build_notification_service(repositories, email_sender, settings),
    )


def build_bulk_importer(repositories: Repositories, settings: Settings) -> BulkImporter:
    return BulkImporter(
        repositories,
        EntityResolver(repositories.entities),
        build_taxonomy(repositories, settings),
        PaymentBillWriter(repositories.payments, repositories.bills),
        OperationLinker(repositories.operations),
        TaxLineWriter(repositories.taxes, repositories.movement_taxes),
    )


def build_catalog_service(repositories: Repositories) -> CatalogService:
    return CatalogService(repositories, EntityResolver(repositories.entities))


def build_dashboard_service(repositories: Repositories) -> DashboardService:
    return DashboardService(repositories.movements)


class Container:
    """Dependency injection container.

    The container can be configured with custom settings for testing:

        test_settings = Settings(sqlite_path=":memory:")
        container = Container(settings=test_settings)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        logger.debug(
            "container_created",
            database_type=self._settings.database_type.value,
            environment=self._settings.environment.value,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @cached_property
    def database(self) -> "Database":
        """The configured database, initialized on first access."""
        if self._settings.database_type == DatabaseType.POSTGRES:
            return self._create_postgres_database()
        return self._create_sqlite_database()

    def _create_sqlite_database(self) -> "SQLiteDatabase":
        from sisgeagro.repositories.sqlite import SQLiteDatabase

        db_path = str(self._settings.sqlite_path)
        logger.info("initializing_sqlite_database", path=db_path)

        # Requests are served from a thread pool.
        db = SQLiteDatabase(db_path, check_same_thread=False)
        db.initialize()
        return db

    def _create_postgres_database(self) -> "PostgresDatabase":
        from sisgeagro.repositories.postgres import PostgresDatabase

        url = self._settings.database_url
        assert url is not None

        logger.info(
            "initializing_postgres_database",
            # The URL may carry credentials.
            host=url.split("@")[-1].split("/")[0] if "@" in url else "localhost",
        )

        db = PostgresDatabase(url)
        db.initialize()
        return db

    @cached_property
    def repositories(self) -> Repositories:
        if self._settings.database_type == DatabaseType.POSTGRES:
            from sisgeagro.repositories.postgres import create_postgres_repositories

            return create_postgres_repositories(self.database)

        from sisgeagro.repositories.sqlite import create_sqlite_repositories

        return create_sqlite_repositories(self.database)

    @cached_property
    def email_sender(self) -> EmailSender:
        if self._settings.email_enabled:
            logger.info("smtp_email_enabled", host=self._settings.smtp_host)
            return SmtpEmailSender.from_settings(self._settings)
        return LoggingEmailSender()

    @cached_property
    def movement_service(self) -> MovementService:
        return build_movement_service(self.repositories, self.email_sender, self._settings)

    @cached_property
    def bulk_importer(self) -> BulkImporter:
        return build_bulk_importer(self.repositories, self._settings)

    @cached_property
    def catalog_service(self) -> CatalogService:
        return build_catalog_service(self.repositories)

    @cached_property
    def dashboard_service(self) -> DashboardService:
        return build_dashboard_service(self.repositories)

    @cached_property
    def notification_service(self) -> NotificationService:
        return build_notification_service(
            self.repositories, self.email_sender, self._settings
        )

    def close(self) -> None:
        """Close the database if it was opened."""
        if "database" in self.__dict__:
            logger.info("closing_database_connection")
            self.database.close()

    def __enter__(self) -> "Container":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


_container: Container | None = None


@lru_cache
def get_container() -> Container:
    """Get the global container singleton, created with default settings."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Close and forget the global container."""
    global _container
    if _container is not None:
        _container.close()
        _container = None
    get_container.cache_clear()


# FastAPI dependency functions
def get_database() -> "Database":
    return get_container().database


def get_repositories() -> Repositories:
    """FastAPI dependency for the repository set.

    Tests override it to run the API against an in-memory database:
        app.dependency_overrides[get_repositories] = lambda: repositories
    """
    return get_container().repositories


def get_email_sender() -> EmailSender:
    return get_container().email_sender

from sisgeagro.repositories.interfaces import (
    BillRepository,
    CategoryRepository,
    EntityRepository,
    MovementRepository,
    MovementTaxRepository,
    NotificationRepository,
    NotificationSettingsRepository,
    OperationRepository,
    PaymentRepository,
    ProfileRepository,
    Repositories,
    SubcategoryRepository,
    TaxRepository,
)
from sisgeagro.repositories.sqlite import SQLiteDatabase, create_sqlite_repositories

__all__ = [
    "BillRepository",
    "CategoryRepository",
    "EntityRepository",
    "MovementRepository",
    "MovementTaxRepository",
    "NotificationRepository",
    "NotificationSettingsRepository",
    "OperationRepository",
    "PaymentRepository",
    "ProfileRepository",
    "Repositories",
    "SQLiteDatabase",
    "SubcategoryRepository",
    "TaxRepository",
    "create_sqlite_repositories",
]

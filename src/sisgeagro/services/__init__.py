from sisgeagro.services.bulk_import import BulkImporter, RowResult
from sisgeagro.services.catalog import CatalogService
from sisgeagro.services.dashboard import DashboardService, DashboardStats, PeriodTotals
from sisgeagro.services.entity_resolver import EntityResolver
from sisgeagro.services.movements import EDITABLE_FIELDS, MovementDraft, MovementService
from sisgeagro.services.notifications import (
    EmailSender,
    LoggingEmailSender,
    NotificationService,
    SmtpEmailSender,
)
from sisgeagro.services.taxonomy import TaxonomyResolver
from sisgeagro.services.writers import (
    OperationLinker,
    PaymentBillWriter,
    TaxLineWriter,
    auto_bill_number,
    calculate_tax_amount,
)

__all__ = [
    "BulkImporter",
    "CatalogService",
    "DashboardService",
    "DashboardStats",
    "EDITABLE_FIELDS",
    "EmailSender",
    "EntityResolver",
    "LoggingEmailSender",
    "MovementDraft",
    "MovementService",
    "NotificationService",
    "OperationLinker",
    "PaymentBillWriter",
    "PeriodTotals",
    "RowResult",
    "SmtpEmailSender",
    "TaxLineWriter",
    "TaxonomyResolver",
    "auto_bill_number",
    "calculate_tax_amount",
]

"""API routes for SisGeAgro."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from sisgeagro.api.schemas import (
    CategoryListResponse,
    CategoryResponse,
    DashboardStatsResponse,
    EntityCreate,
    EntityEnvelope,
    EntityListResponse,
    EntityResponse,
    HealthResponse,
    ImportRequest,
    ImportResponse,
    MonthlyTotalsResponse,
    MovementCreate,
    MovementDelete,
    MovementDeleteResponse,
    MovementEdit,
    MovementEditResponse,
    MovementEnvelope,
    MovementFilterRequest,
    MovementListResponse,
    MovementResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationSettingsEnvelope,
    NotificationSettingsResponse,
    NotificationSettingsUpdate,
    PaymentTypesResponse,
    ProfileEnvelope,
    ProfileResponse,
    ProfileUpdate,
    RowResultResponse,
    SendNotificationRequest,
    SendNotificationResponse,
    SubcategoryCreate,
    SubcategoryEnvelope,
    SubcategoryListResponse,
    SubcategoryResponse,
    TaxCreate,
    TaxEnvelope,
    TaxLineResponse,
    TaxListResponse,
    TaxResponse,
    TotalsResponse,
)
from sisgeagro.config import get_settings
from sisgeagro.container import (
    build_bulk_importer,
    build_catalog_service,
    build_dashboard_service,
    build_movement_service,
    build_notification_service,
    get_email_sender,
    get_repositories,
)
from sisgeagro.domain.entities import Category, Subcategory
from sisgeagro.domain.movements import MovementFilter, MovementView, TaxSelection
from sisgeagro.domain.notifications import NotificationSettings, Profile
from sisgeagro.domain.value_objects import MovementType
from sisgeagro.exceptions import MissingFieldError
from sisgeagro.logging_config import LogContext
from sisgeagro.parsers.csv_parser import MovementCSVParser
from sisgeagro.repositories.interfaces import Repositories
from sisgeagro.services.bulk_import import BulkImporter
from sisgeagro.services.catalog import CatalogService
from sisgeagro.services.dashboard import DashboardService, PeriodTotals
from sisgeagro.services.movements import MovementDraft, MovementService
from sisgeagro.services.notifications import EmailSender, NotificationService

# Create routers
health_router = APIRouter(tags=["health"])
movement_router = APIRouter(tags=["movements"])
import_router = APIRouter(tags=["import"])
reference_router = APIRouter(tags=["reference data"])
dashboard_router = APIRouter(tags=["dashboard"])
notification_router = APIRouter(tags=["notifications"])


# Dependency injection functions
RepositoriesDep = Annotated[Repositories, Depends(get_repositories)]
EmailSenderDep = Annotated[EmailSender, Depends(get_email_sender)]


def get_movement_service(
    repositories: RepositoriesDep, email_sender: EmailSenderDep
) -> MovementService:
    return build_movement_service(repositories, email_sender, get_settings())


def get_bulk_importer(repositories: RepositoriesDep) -> BulkImporter:
    return build_bulk_importer(repositories, get_settings())


def get_catalog_service(repositories: RepositoriesDep) -> CatalogService:
    return build_catalog_service(repositories)


def get_dashboard_service(repositories: RepositoriesDep) -> DashboardService:
    return build_dashboard_service(repositories)


def get_notification_service(
    repositories: RepositoriesDep, email_sender: EmailSenderDep
) -> NotificationService:
    return build_notification_service(repositories, email_sender, get_settings())


# Helper functions
def _movement_to_response(view: MovementView) -> MovementResponse:
    return MovementResponse(
        id=view.id,
        description=view.description,
        movement_type=view.movement_type.value,
        created_by=view.created_by,
        verified=view.verified,
        is_tax_payment=view.is_tax_payment,
        related_tax_id=view.related_tax_id,
        created_at=view.created_at,
        operation_id=view.operation_id,
        payment_id=view.payment_id,
        payment_type=view.payment_type,
        bill_id=view.bill_id,
        bill_number=view.bill_number,
        bill_date=view.bill_date,
        amount=view.amount,
        entity_id=view.entity_id,
        entity_name=view.entity_name,
        entity_fiscal_id=view.entity_fiscal_id,
        category_id=view.category_id,
        category=view.category,
        subcategory_id=view.subcategory_id,
        subcategory=view.subcategory,
        taxes=[TaxLineResponse.model_validate(line) for line in view.taxes],
        taxes_total=view.taxes_total,
    )


def _totals_to_response(totals: PeriodTotals) -> TotalsResponse:
    return TotalsResponse(
        income=totals.income,
        expense=totals.expense,
        investment=totals.investment,
        taxes=totals.taxes,
        balance=totals.balance,
    )


def _subcategory_to_response(
    subcategory: Subcategory, category: Category | None = None
) -> SubcategoryResponse:
    return SubcategoryResponse(
        id=subcategory.id,
        description=subcategory.description,
        category_id=subcategory.category_id,
        category=CategoryResponse.model_validate(category) if category else None,
    )


def _tax_selections(payload: MovementCreate | MovementEdit) -> list[TaxSelection]:
    return [
        TaxSelection(tax_id=selection.id, percentage=selection.percentage)
        for selection in payload.selected_taxes or []
    ]


def _parse_movement_type(value: str | None) -> MovementType | None:
    if not value or value.strip().lower() == "all":
        return None
    return MovementType.parse(value)


# Health endpoint
@health_router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy")


# Movement endpoints
@movement_router.post(
    "/create-movement",
    response_model=MovementEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def create_movement(
    payload: MovementCreate,
    service: Annotated[MovementService, Depends(get_movement_service)],
) -> MovementEnvelope:
    """Create a movement with its entity, payment, bill, taxonomy and taxes."""
    draft = MovementDraft(
        description=payload.description,
        amount=None if payload.amount is None else str(payload.amount),
        payment_type=payload.payment_type,
        movement_type=payload.movement_type,
        created_by=payload.created_by,
        bill_date=payload.bill_date,
        bill_number=payload.bill_number,
        custom_payment_type=payload.custom_payment_type,
        category=payload.category,
        subcategory=payload.subcategory,
        category_id=payload.category_id,
        subcategory_id=payload.subcategory_id,
        entity_id=payload.entity_id,
        entity_name=payload.entity_name,
        entity_fiscal_id=payload.entity_fiscal_id,
        selected_taxes=_tax_selections(payload),
        is_tax_payment=bool(payload.is_tax_payment),
        related_tax_id=payload.related_tax_id,
        verified=bool(payload.verified),
    )
    view = service.create(draft)
    return MovementEnvelope(movement=_movement_to_response(view))


@movement_router.put("/edit-movement", response_model=MovementEditResponse)
def edit_movement(
    payload: MovementEdit,
    service: Annotated[MovementService, Depends(get_movement_service)],
) -> MovementEditResponse:
    """Apply the fields present in the body to an existing movement."""
    changes = payload.model_dump(exclude_unset=True, exclude={"movement_id"})
    if "selected_taxes" in changes:
        changes["selected_taxes"] = _tax_selections(payload)
    if changes.get("amount") is not None:
        changes["amount"] = str(changes["amount"])
    view = service.edit(payload.movement_id, changes)
    return MovementEditResponse(success=True, movement=_movement_to_response(view))


@movement_router.post("/delete-movement", response_model=MovementDeleteResponse)
def delete_movement(
    payload: MovementDelete,
    service: Annotated[MovementService, Depends(get_movement_service)],
) -> MovementDeleteResponse:
    """Delete a movement and every row created with it."""
    service.delete(payload.movement_id)
    return MovementDeleteResponse(success=True, message="Movement deleted successfully")


@movement_router.get("/movements", response_model=MovementListResponse)
def list_movements(
    service: Annotated[MovementService, Depends(get_movement_service)],
    movement_type: str = Query(default="all", alias="movementType"),
) -> MovementListResponse:
    """List movements, newest first, optionally of one type."""
    views = service.list_movements(
        MovementFilter(movement_type=_parse_movement_type(movement_type))
    )
    return MovementListResponse(movements=[_movement_to_response(v) for v in views])


@movement_router.post("/movements", response_model=MovementListResponse)
def filter_movements(
    payload: MovementFilterRequest,
    service: Annotated[MovementService, Depends(get_movement_service)],
) -> MovementListResponse:
    """List movements matching the filter body, with optional totals."""
    views = service.list_movements(
        MovementFilter(
            movement_type=_parse_movement_type(payload.movement_type),
            start_date=payload.start_date,
            end_date=payload.end_date,
            category_id=payload.category_id,
            subcategory_id=payload.subcategory_id,
            entity_id=payload.entity_id,
            payment_type=payload.payment_type,
        )
    )
    stats = None
    if payload.include_stats:
        totals = PeriodTotals()
        for view in views:
            totals.add(view)
        stats = _totals_to_response(totals)
    return MovementListResponse(
        movements=[_movement_to_response(v) for v in views], stats=stats
    )


# Import endpoints
@import_router.post("/import-csv", response_model=ImportResponse)
def import_csv(
    payload: ImportRequest,
    importer: Annotated[BulkImporter, Depends(get_bulk_importer)],
) -> ImportResponse:
    """Import movements from parsed rows or raw CSV text.

    Always answers 200 once the batch ran; failures are reported per row.
    """
    if payload.rows is not None:
        rows = payload.rows
    elif payload.csv is not None:
        rows = MovementCSVParser(delimiter=payload.delimiter).parse_text(payload.csv)
    else:
        raise MissingFieldError("rows")

    with LogContext(actor_id=payload.user_id or ""):
        results = importer.import_rows(rows, payload.user_id or "")
    return ImportResponse(
        results=[
            RowResultResponse(row=r.row, success=r.success, error=r.error) for r in results
        ]
    )


# Reference data endpoints
@reference_router.post(
    "/create-entity",
    response_model=EntityEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def create_entity(
    payload: EntityCreate,
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> EntityEnvelope:
    """Create an entity, or rename the one registered under the same CUIT/CUIL."""
    entity = catalog.create_entity(payload.name, payload.fiscal_id)
    return EntityEnvelope(entity=EntityResponse.model_validate(entity))


@reference_router.get("/entities", response_model=EntityListResponse)
def list_entities(
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> EntityListResponse:
    return EntityListResponse(
        entities=[EntityResponse.model_validate(e) for e in catalog.list_entities()]
    )


@reference_router.post(
    "/create-tax",
    response_model=TaxEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def create_tax(
    payload: TaxCreate,
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> TaxEnvelope:
    tax = catalog.create_tax(payload.name, payload.percentage)
    return TaxEnvelope(tax=TaxResponse.model_validate(tax))


@reference_router.get("/taxes", response_model=TaxListResponse)
def list_taxes(
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> TaxListResponse:
    return TaxListResponse(
        taxes=[TaxResponse.model_validate(t) for t in catalog.list_taxes()]
    )


@reference_router.post(
    "/create-subcategory",
    response_model=SubcategoryEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def create_subcategory(
    payload: SubcategoryCreate,
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> SubcategoryEnvelope:
    subcategory = catalog.create_subcategory(payload.description, payload.category_id)
    return SubcategoryEnvelope(subcategory=_subcategory_to_response(subcategory))


@reference_router.get("/subcategories", response_model=SubcategoryListResponse)
def list_subcategories(
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> SubcategoryListResponse:
    return SubcategoryListResponse(
        subcategories=[
            _subcategory_to_response(subcategory, category)
            for subcategory, category in catalog.list_subcategories()
        ]
    )


@reference_router.get("/categories", response_model=CategoryListResponse)
def list_categories(
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> CategoryListResponse:
    return CategoryListResponse(
        categories=[CategoryResponse.model_validate(c) for c in catalog.list_categories()]
    )


@reference_router.get("/payment-types", response_model=PaymentTypesResponse)
def list_payment_types(
    catalog: Annotated[CatalogService, Depends(get_catalog_service)],
) -> PaymentTypesResponse:
    """Distinct payment labels already used by movements."""
    return PaymentTypesResponse(payment_types=catalog.list_payment_types())


# Dashboard endpoints
@dashboard_router.get("/dashboard-stats", response_model=DashboardStatsResponse)
def dashboard_stats(
    service: Annotated[DashboardService, Depends(get_dashboard_service)],
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
) -> DashboardStatsResponse:
    """Totals for a bill-date range compared with the preceding period."""
    if start_date is None:
        raise MissingFieldError("startDate")
    if end_date is None:
        raise MissingFieldError("endDate")

    stats = service.get_stats(start_date, end_date)
    return DashboardStatsResponse(
        start_date=stats.start_date,
        end_date=stats.end_date,
        movement_count=stats.movement_count,
        totals=_totals_to_response(stats.totals),
        previous_period=_totals_to_response(stats.previous),
        income_change=stats.income_change,
        expense_change=stats.expense_change,
        balance_change=stats.balance_change,
        by_category=stats.by_category,
        monthly=[
            MonthlyTotalsResponse(
                month=m.month,
                income=m.totals.income,
                expense=m.totals.expense,
                investment=m.totals.investment,
            )
            for m in stats.monthly
        ],
    )


# Notification endpoints
@notification_router.put(
    "/notification-settings", response_model=NotificationSettingsEnvelope
)
def update_notification_settings(
    payload: NotificationSettingsUpdate,
    service: Annotated[NotificationService, Depends(get_notification_service)],
) -> NotificationSettingsEnvelope:
    settings = service.update_settings(
        NotificationSettings(
            user_id=payload.user_id,
            email_notifications=payload.email_notifications,
            app_notifications=payload.app_notifications,
            expense_threshold=payload.expense_threshold,
        )
    )
    return NotificationSettingsEnvelope(
        settings=NotificationSettingsResponse.model_validate(settings)
    )


@notification_router.get(
    "/notifications/{user_id}", response_model=NotificationListResponse
)
def list_notifications(
    user_id: str,
    service: Annotated[NotificationService, Depends(get_notification_service)],
) -> NotificationListResponse:
    return NotificationListResponse(
        notifications=[
            NotificationResponse.model_validate(n)
            for n in service.list_notifications(user_id)
        ]
    )


@notification_router.put("/profiles", response_model=ProfileEnvelope)
def save_profile(
    payload: ProfileUpdate,
    service: Annotated[NotificationService, Depends(get_notification_service)],
) -> ProfileEnvelope:
    profile = service.save_profile(
        Profile(id=payload.id, email=payload.email, username=payload.username)
    )
    return ProfileEnvelope(profile=ProfileResponse.model_validate(profile))


@notification_router.post("/send-notification", response_model=SendNotificationResponse)
def send_notification(
    payload: SendNotificationRequest,
    service: Annotated[NotificationService, Depends(get_notification_service)],
) -> SendNotificationResponse:
    """Send one email through the configured relay."""
    service.send_email(payload.to or "", payload.subject or "", payload.text or "", payload.html)
    return SendNotificationResponse(success=True)

"""Pydantic v2 schemas for API request/response models.

Request bodies use the camelCase names the web client sends; every field can
also be given by its Python name. Required-field checks happen in the
services so that a missing field is reported with the domain error message.
Responses use snake_case.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Raw amount as sent by the client, parsed by the services.
AmountInput = str | int | float | None


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# Movement Schemas
class TaxSelectionIn(CamelModel):
    """A tax chosen on the movement form."""

    id: UUID
    percentage: Decimal | None = None


class MovementFields(CamelModel):
    """Fields shared by the create and edit bodies."""

    description: str | None = None
    amount: AmountInput = None
    payment_type: str | None = None
    custom_payment_type: str | None = None
    movement_type: str | None = None
    category: str | None = None
    subcategory: str | None = Field(
        default=None, validation_alias=AliasChoices("subCategory", "subcategory")
    )
    category_id: UUID | None = None
    subcategory_id: UUID | None = None
    bill_number: str | None = None
    bill_date: str | None = None
    entity_id: UUID | None = None
    entity_name: str | None = None
    entity_fiscal_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("entityCuitCuil", "entity_fiscal_id"),
    )
    selected_taxes: list[TaxSelectionIn] | None = None
    is_tax_payment: bool | None = None
    related_tax_id: UUID | None = None
    verified: bool | None = Field(
        default=None, validation_alias=AliasChoices("check", "verified")
    )


class MovementCreate(MovementFields):
    created_by: str | None = Field(
        default=None,
        validation_alias=AliasChoices("userId", "user_id", "createdBy", "created_by"),
    )


class MovementEdit(MovementFields):
    """Merge patch: only the fields present in the body are changed."""

    movement_id: UUID


class MovementDelete(CamelModel):
    movement_id: UUID


class MovementFilterRequest(CamelModel):
    start_date: date | None = None
    end_date: date | None = None
    movement_type: str = "all"
    category_id: UUID | None = None
    subcategory_id: UUID | None = None
    entity_id: UUID | None = None
    payment_type: str | None = None
    include_stats: bool = False


class TaxLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tax_id: UUID
    tax_name: str
    percentage: Decimal | None
    calculated_amount: Decimal | None


class MovementResponse(BaseModel):
    """A movement joined with its payment, bill, entity, taxonomy and taxes."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    description: str
    movement_type: str
    created_by: str
    verified: bool
    is_tax_payment: bool
    related_tax_id: UUID | None
    created_at: datetime
    operation_id: UUID
    payment_id: UUID
    payment_type: str
    bill_id: UUID
    bill_number: str
    bill_date: date
    amount: Decimal
    entity_id: UUID | None
    entity_name: str | None
    entity_fiscal_id: str | None
    category_id: UUID
    category: str
    subcategory_id: UUID
    subcategory: str
    taxes: list[TaxLineResponse]
    taxes_total: Decimal


class MovementEnvelope(BaseModel):
    movement: MovementResponse


class MovementEditResponse(BaseModel):
    success: bool
    movement: MovementResponse


class MovementDeleteResponse(BaseModel):
    success: bool
    message: str


class TotalsResponse(BaseModel):
    income: Decimal
    expense: Decimal
    investment: Decimal
    taxes: Decimal
    balance: Decimal


class MovementListResponse(BaseModel):
    movements: list[MovementResponse]
    stats: TotalsResponse | None = None


# Import Schemas
class ImportRequest(CamelModel):
    """Rows already keyed by column name, or the raw CSV text."""

    rows: list[dict[str, Any]] | None = None
    csv: str | None = None
    delimiter: str = ";"
    user_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("userId", "user_id", "createdBy", "created_by"),
    )


class RowResultResponse(BaseModel):
    row: int
    success: bool
    error: str | None = None


class ImportResponse(BaseModel):
    results: list[RowResultResponse]


# Reference Data Schemas
class EntityCreate(CamelModel):
    name: str | None = Field(
        default=None, validation_alias=AliasChoices("name", "nombre", "entityName")
    )
    fiscal_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "fiscalId", "fiscal_id", "cuit_cuil", "cuitCuil", "entityCuitCuil"
        ),
    )


class EntityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    fiscal_id: str
    created_at: datetime


class EntityEnvelope(BaseModel):
    entity: EntityResponse


class EntityListResponse(BaseModel):
    entities: list[EntityResponse]


class TaxCreate(CamelModel):
    name: str | None = None
    percentage: AmountInput = None


class TaxResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    percentage: Decimal | None


class TaxEnvelope(BaseModel):
    tax: TaxResponse


class TaxListResponse(BaseModel):
    taxes: list[TaxResponse]


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    description: str


class CategoryListResponse(BaseModel):
    categories: list[CategoryResponse]


class SubcategoryCreate(CamelModel):
    description: str | None = None
    category_id: UUID | None = None


class SubcategoryResponse(BaseModel):
    id: UUID
    description: str
    category_id: UUID
    category: CategoryResponse | None = None


class SubcategoryEnvelope(BaseModel):
    subcategory: SubcategoryResponse


class SubcategoryListResponse(BaseModel):
    subcategories: list[SubcategoryResponse]


class PaymentTypesResponse(BaseModel):
    payment_types: list[str]


# Dashboard Schemas
class MonthlyTotalsResponse(BaseModel):
    month: str
    income: Decimal
    expense: Decimal
    investment: Decimal


class DashboardStatsResponse(BaseModel):
    start_date: date
    end_date: date
    movement_count: int
    totals: TotalsResponse
    previous_period: TotalsResponse
    income_change: Decimal
    expense_change: Decimal
    balance_change: Decimal
    by_category: dict[str, dict[str, Decimal]]
    monthly: list[MonthlyTotalsResponse]


# Notification Schemas
class NotificationSettingsUpdate(CamelModel):
    user_id: str
    email_notifications: bool = True
    app_notifications: bool = True
    expense_threshold: Decimal | None = Decimal("5000")


class NotificationSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    email_notifications: bool
    app_notifications: bool
    expense_threshold: Decimal | None
    updated_at: datetime


class NotificationSettingsEnvelope(BaseModel):
    settings: NotificationSettingsResponse


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    type: str
    title: str
    body: str
    link: str | None
    read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]


class ProfileUpdate(CamelModel):
    id: str
    email: str = ""
    username: str | None = None


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    username: str | None


class ProfileEnvelope(BaseModel):
    profile: ProfileResponse


class SendNotificationRequest(CamelModel):
    to: str | None = None
    subject: str | None = None
    text: str | None = None
    html: str | None = None


class SendNotificationResponse(BaseModel):
    success: bool


# Health Schemas
class HealthResponse(BaseModel):
    status: str

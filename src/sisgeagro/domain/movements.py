from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sisgeagro.domain.value_objects import MovementType


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class PaymentMethod:
    payment_type: str
    id: UUID = field(default_factory=uuid4)


@dataclass
class Bill:
    bill_number: str
    bill_date: date
    amount: Decimal
    entity_id: UUID | None
    id: UUID = field(default_factory=uuid4)


@dataclass
class Operation:
    """Join of exactly one payment and one bill."""

    payment_id: UUID
    bill_id: UUID
    id: UUID = field(default_factory=uuid4)


@dataclass
class Movement:
    description: str
    movement_type: MovementType
    operation_id: UUID
    subcategory_id: UUID
    created_by: str
    verified: bool = False
    is_tax_payment: bool = False
    related_tax_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        # A movement only points at a tax when it is the payment of that tax.
        if not self.is_tax_payment:
            self.related_tax_id = None


@dataclass
class MovementTaxLine:
    movement_id: UUID
    tax_id: UUID
    calculated_amount: Decimal | None
    id: UUID = field(default_factory=uuid4)


@dataclass
class TaxSelection:
    """A tax chosen for a movement; percentage overrides the tax definition's."""

    tax_id: UUID
    percentage: Decimal | None = None


@dataclass
class TaxLineView:
    id: UUID
    tax_id: UUID
    tax_name: str
    percentage: Decimal | None
    calculated_amount: Decimal | None


@dataclass
class MovementView:
    """A movement joined with its operation, payment, bill, entity and taxonomy."""

    id: UUID
    description: str
    movement_type: MovementType
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
    subcategory_id: UUID
    subcategory: str
    category_id: UUID
    category: str
    taxes: list[TaxLineView] = field(default_factory=list)

    @property
    def taxes_total(self) -> Decimal:
        return sum(
            (line.calculated_amount or Decimal("0") for line in self.taxes),
            Decimal("0"),
        )


@dataclass
class MovementFilter:
    movement_type: MovementType | None = None
    start_date: date | None = None
    end_date: date | None = None
    category_id: UUID | None = None
    subcategory_id: UUID | None = None
    entity_id: UUID | None = None
    payment_type: str | None = None

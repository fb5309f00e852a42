from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID, uuid4


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Entity:
    """A counterparty (customer or supplier) identified by its fiscal id (CUIT/CUIL)."""

    name: str
    fiscal_id: str
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)


@dataclass
class Category:
    description: str
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        self.description = self.description.strip().upper()


@dataclass
class Subcategory:
    description: str
    category_id: UUID
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        self.description = self.description.strip().upper()

    @property
    def key(self) -> tuple[str, UUID]:
        return (self.description, self.category_id)


@dataclass
class TaxDefinition:
    """A tax; without a percentage it is tracked but never auto-computed."""

    name: str
    percentage: Decimal | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def key(self) -> tuple[str, Decimal | None]:
        return (self.name, self.percentage)

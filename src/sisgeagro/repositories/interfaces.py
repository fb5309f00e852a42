from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from uuid import UUID

from sisgeagro.domain.entities import Category, Entity, Subcategory, TaxDefinition
from sisgeagro.domain.movements import (
    Bill,
    Movement,
    MovementFilter,
    MovementTaxLine,
    MovementView,
    Operation,
    PaymentMethod,
)
from sisgeagro.domain.notifications import Notification, NotificationSettings, Profile


class EntityRepository(ABC):
    @abstractmethod
    def add(self, entity: Entity) -> None:
        pass

    @abstractmethod
    def get(self, entity_id: UUID) -> Entity | None:
        pass

    @abstractmethod
    def get_by_fiscal_id(self, fiscal_id: str) -> Entity | None:
        pass

    @abstractmethod
    def get_by_name(self, name: str) -> Entity | None:
        pass

    @abstractmethod
    def upsert_by_fiscal_id(self, entity: Entity) -> Entity:
        """Insert, or update the name of the row holding the same fiscal id.

        Returns the stored row, whose id is the pre-existing one on conflict.
        """

    @abstractmethod
    def upsert_many_by_fiscal_id(self, entities: Sequence[Entity]) -> list[Entity]:
        pass

    @abstractmethod
    def list_all(self) -> Iterable[Entity]:
        pass


class CategoryRepository(ABC):
    @abstractmethod
    def add(self, category: Category) -> None:
        pass

    @abstractmethod
    def add_many(self, categories: Sequence[Category]) -> None:
        pass

    @abstractmethod
    def get(self, category_id: UUID) -> Category | None:
        pass

    @abstractmethod
    def find_by_description(self, description: str) -> Category | None:
        """Case-insensitive exact match."""

    @abstractmethod
    def list_by_descriptions(self, descriptions: Sequence[str]) -> list[Category]:
        pass

    @abstractmethod
    def list_all(self) -> Iterable[Category]:
        pass


class SubcategoryRepository(ABC):
    @abstractmethod
    def add(self, subcategory: Subcategory) -> None:
        pass

    @abstractmethod
    def add_many(self, subcategories: Sequence[Subcategory]) -> None:
        pass

    @abstractmethod
    def get(self, subcategory_id: UUID) -> Subcategory | None:
        pass

    @abstractmethod
    def find_by_description(
        self, description: str, category_id: UUID
    ) -> Subcategory | None:
        """Case-insensitive exact match scoped to one category."""

    @abstractmethod
    def list_by_descriptions(self, descriptions: Sequence[str]) -> list[Subcategory]:
        pass

    @abstractmethod
    def list_all(self) -> Iterable[Subcategory]:
        pass


class TaxRepository(ABC):
    @abstractmethod
    def add(self, tax: TaxDefinition) -> None:
        pass

    @abstractmethod
    def add_many(self, taxes: Sequence[TaxDefinition]) -> None:
        pass

    @abstractmethod
    def get(self, tax_id: UUID) -> TaxDefinition | None:
        pass

    @abstractmethod
    def list_by_ids(self, tax_ids: Sequence[UUID]) -> list[TaxDefinition]:
        pass

    @abstractmethod
    def list_by_names(self, names: Sequence[str]) -> list[TaxDefinition]:
        pass

    @abstractmethod
    def list_all(self) -> Iterable[TaxDefinition]:
        pass


class PaymentRepository(ABC):
    @abstractmethod
    def add(self, payment: PaymentMethod) -> None:
        pass

    @abstractmethod
    def add_many(self, payments: Sequence[PaymentMethod]) -> None:
        pass

    @abstractmethod
    def get(self, payment_id: UUID) -> PaymentMethod | None:
        pass

    @abstractmethod
    def update(self, payment: PaymentMethod) -> None:
        pass

    @abstractmethod
    def delete(self, payment_id: UUID) -> None:
        pass

    @abstractmethod
    def list_payment_types(self) -> list[str]:
        """Distinct payment labels in use, sorted."""


class BillRepository(ABC):
    @abstractmethod
    def add(self, bill: Bill) -> None:
        pass

    @abstractmethod
    def add_many(self, bills: Sequence[Bill]) -> None:
        pass

    @abstractmethod
    def get(self, bill_id: UUID) -> Bill | None:
        pass

    @abstractmethod
    def update(self, bill: Bill) -> None:
        pass

    @abstractmethod
    def delete(self, bill_id: UUID) -> None:
        pass


class OperationRepository(ABC):
    @abstractmethod
    def add(self, operation: Operation) -> None:
        pass

    @abstractmethod
    def add_many(self, operations: Sequence[Operation]) -> None:
        pass

    @abstractmethod
    def get(self, operation_id: UUID) -> Operation | None:
        pass

    @abstractmethod
    def delete(self, operation_id: UUID) -> None:
        pass


class MovementRepository(ABC):
    @abstractmethod
    def add(self, movement: Movement) -> None:
        pass

    @abstractmethod
    def add_many(self, movements: Sequence[Movement]) -> None:
        pass

    @abstractmethod
    def get(self, movement_id: UUID) -> Movement | None:
        pass

    @abstractmethod
    def update(self, movement: Movement) -> None:
        pass

    @abstractmethod
    def delete(self, movement_id: UUID) -> bool:
        """Delete a movement, returning False when no row was removed."""

    @abstractmethod
    def get_view(self, movement_id: UUID) -> MovementView | None:
        pass

    @abstractmethod
    def list_views(self, movement_filter: MovementFilter | None = None) -> list[MovementView]:
        """Joined movement views, newest first."""


class MovementTaxRepository(ABC):
    @abstractmethod
    def add_many(self, lines: Sequence[MovementTaxLine]) -> None:
        pass

    @abstractmethod
    def list_by_movement(self, movement_id: UUID) -> list[MovementTaxLine]:
        pass

    @abstractmethod
    def delete_by_movement(self, movement_id: UUID) -> None:
        pass


class ProfileRepository(ABC):
    @abstractmethod
    def upsert(self, profile: Profile) -> None:
        pass

    @abstractmethod
    def get(self, user_id: str) -> Profile | None:
        pass


class NotificationSettingsRepository(ABC):
    @abstractmethod
    def upsert(self, settings: NotificationSettings) -> None:
        pass

    @abstractmethod
    def get(self, user_id: str) -> NotificationSettings | None:
        pass

    @abstractmethod
    def list_email_enabled(self) -> list[NotificationSettings]:
        pass


class NotificationRepository(ABC):
    @abstractmethod
    def add(self, notification: Notification) -> None:
        pass

    @abstractmethod
    def list_by_user(self, user_id: str) -> list[Notification]:
        pass


@dataclass
class Repositories:
    """Every repository of one database, handed to services as a unit."""

    entities: EntityRepository
    categories: CategoryRepository
    subcategories: SubcategoryRepository
    taxes: TaxRepository
    payments: PaymentRepository
    bills: BillRepository
    operations: OperationRepository
    movements: MovementRepository
    movement_taxes: MovementTaxRepository
    profiles: ProfileRepository
    notification_settings: NotificationSettingsRepository
    notifications: NotificationRepository

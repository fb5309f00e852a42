"""Reference data maintained outside the movement flow: entities, taxes,
categories and subcategories."""

from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sisgeagro.domain.entities import Category, Entity, Subcategory, TaxDefinition
from sisgeagro.exceptions import CategoryNotFoundError, MissingFieldError, ValidationError
from sisgeagro.logging_config import get_logger
from sisgeagro.repositories.interfaces import Repositories
from sisgeagro.services.entity_resolver import EntityResolver

logger = get_logger(__name__)


class CatalogService:
    def __init__(self, repositories: Repositories, entity_resolver: EntityResolver) -> None:
        self._repos = repositories
        self._entity_resolver = entity_resolver

    def create_entity(self, name: str | None, fiscal_id: str | None) -> Entity:
        """Insert or rename the entity registered under fiscal_id."""
        return self._entity_resolver.resolve(name, fiscal_id)

    def create_tax(self, name: str | None, percentage: Any) -> TaxDefinition:
        name = (name or "").strip()
        if not name:
            raise MissingFieldError("name")
        if percentage is None or percentage == "":
            raise MissingFieldError("percentage")
        try:
            value = Decimal(str(percentage))
        except InvalidOperation:
            raise ValidationError(
                f"Invalid tax percentage: {percentage}",
                context={"field": "percentage", "value": str(percentage)},
            ) from None
        if not value.is_finite() or value < 0:
            raise ValidationError(
                f"Invalid tax percentage: {percentage}",
                context={"field": "percentage", "value": str(percentage)},
            )

        tax = TaxDefinition(name=name, percentage=value)
        self._repos.taxes.add(tax)
        logger.info("tax_created", tax_id=str(tax.id), name=name, percentage=str(value))
        return tax

    def create_subcategory(
        self, description: str | None, category_id: UUID | None
    ) -> Subcategory:
        if not (description or "").strip():
            raise MissingFieldError("description")
        if category_id is None:
            raise MissingFieldError("category_id")
        if self._repos.categories.get(category_id) is None:
            raise CategoryNotFoundError(category_id)

        subcategory = Subcategory(description=description or "", category_id=category_id)
        self._repos.subcategories.add(subcategory)
        logger.info(
            "subcategory_created",
            subcategory_id=str(subcategory.id),
            category_id=str(category_id),
            description=subcategory.description,
        )
        return subcategory

    def list_entities(self) -> list[Entity]:
        return list(self._repos.entities.list_all())

    def list_taxes(self) -> list[TaxDefinition]:
        return list(self._repos.taxes.list_all())

    def list_categories(self) -> list[Category]:
        return list(self._repos.categories.list_all())

    def list_subcategories(self) -> list[tuple[Subcategory, Category | None]]:
        """Subcategories ordered by description, each with its category."""
        categories = {category.id: category for category in self._repos.categories.list_all()}
        return [
            (subcategory, categories.get(subcategory.category_id))
            for subcategory in self._repos.subcategories.list_all()
        ]

    def list_payment_types(self) -> list[str]:
        return self._repos.payments.list_payment_types()

"""Category and subcategory resolution."""

from collections.abc import Iterable
from uuid import UUID

from sisgeagro.domain.entities import Category, Subcategory, TaxDefinition
from sisgeagro.exceptions import (
    CategoryNotFoundError,
    MissingFieldError,
    SubcategoryNotFoundError,
)
from sisgeagro.logging_config import get_logger
from sisgeagro.repositories.interfaces import CategoryRepository, SubcategoryRepository

logger = get_logger(__name__)

DEFAULT_TAX_PAYMENT_CATEGORY = "Impuestos y Tasas"
DEFAULT_TAX_PAYMENT_SUBCATEGORY = "Pago de Impuesto"


class TaxonomyResolver:
    """Resolve free-text category/subcategory pairs to stored rows.

    Descriptions are stored uppercase and matched case-insensitively. A
    subcategory is always scoped to its category: the same text under two
    categories is two rows.
    """

    def __init__(
        self,
        category_repo: CategoryRepository,
        subcategory_repo: SubcategoryRepository,
        tax_payment_category: str = DEFAULT_TAX_PAYMENT_CATEGORY,
        tax_payment_fallback_subcategory: str = DEFAULT_TAX_PAYMENT_SUBCATEGORY,
    ) -> None:
        self._category_repo = category_repo
        self._subcategory_repo = subcategory_repo
        self._tax_payment_category = tax_payment_category
        self._tax_payment_fallback_subcategory = tax_payment_fallback_subcategory

    def resolve(
        self, category_text: str | None, subcategory_text: str | None
    ) -> tuple[Category, Subcategory]:
        category_text = (category_text or "").strip().upper()
        subcategory_text = (subcategory_text or "").strip().upper()
        if not category_text:
            raise MissingFieldError("category")
        if not subcategory_text:
            raise MissingFieldError("subCategory")

        category = self._category_repo.find_by_description(category_text)
        if category is None:
            category = Category(description=category_text)
            self._category_repo.add(category)
            logger.info("category_created", category_id=str(category.id), description=category_text)

        subcategory = self._subcategory_repo.find_by_description(subcategory_text, category.id)
        if subcategory is None:
            subcategory = Subcategory(description=subcategory_text, category_id=category.id)
            self._subcategory_repo.add(subcategory)
            logger.info(
                "subcategory_created",
                subcategory_id=str(subcategory.id),
                category_id=str(category.id),
                description=subcategory_text,
            )
        return category, subcategory

    def resolve_by_ids(
        self, category_id: UUID | None, subcategory_id: UUID
    ) -> tuple[Category, Subcategory]:
        subcategory = self._subcategory_repo.get(subcategory_id)
        if subcategory is None:
            raise SubcategoryNotFoundError(subcategory_id)
        category = self._category_repo.get(category_id or subcategory.category_id)
        if category is None:
            raise CategoryNotFoundError(category_id or subcategory.category_id)
        return category, subcategory

    def tax_payment_labels(self, related_tax: TaxDefinition | None) -> tuple[str, str]:
        """Category and subcategory text a tax payment is filed under."""
        if related_tax is not None and related_tax.name.strip():
            return self._tax_payment_category, related_tax.name
        return self._tax_payment_category, self._tax_payment_fallback_subcategory

    def resolve_tax_payment(
        self, related_tax: TaxDefinition | None
    ) -> tuple[Category, Subcategory]:
        return self.resolve(*self.tax_payment_labels(related_tax))

    def category_of(self, subcategory: Subcategory) -> Category:
        category = self._category_repo.get(subcategory.category_id)
        if category is None:
            raise CategoryNotFoundError(subcategory.category_id)
        return category

    def resolve_many(
        self, pairs: Iterable[tuple[str, str]]
    ) -> dict[tuple[str, str], Subcategory]:
        """Resolve many pairs with one select and one insert per level.

        The result is keyed by the uppercased (category, subcategory) text.
        """
        keys = list(
            dict.fromkeys(
                (category.strip().upper(), subcategory.strip().upper())
                for category, subcategory in pairs
            )
        )
        if not keys:
            return {}

        category_texts = list(dict.fromkeys(category for category, _ in keys))
        categories: dict[str, Category] = {}
        for category in self._category_repo.list_by_descriptions(category_texts):
            categories.setdefault(category.description, category)
        missing_categories = [
            Category(description=text) for text in category_texts if text not in categories
        ]
        self._category_repo.add_many(missing_categories)
        categories.update({c.description: c for c in missing_categories})

        subcategory_texts = list(dict.fromkeys(subcategory for _, subcategory in keys))
        subcategories: dict[tuple[str, UUID], Subcategory] = {}
        for subcategory in self._subcategory_repo.list_by_descriptions(subcategory_texts):
            subcategories.setdefault(subcategory.key, subcategory)
        missing_subcategories: list[Subcategory] = []
        for category_text, subcategory_text in keys:
            key = (subcategory_text, categories[category_text].id)
            if key not in subcategories:
                subcategory = Subcategory(description=subcategory_text, category_id=key[1])
                subcategories[key] = subcategory
                missing_subcategories.append(subcategory)
        self._subcategory_repo.add_many(missing_subcategories)

        logger.debug(
            "taxonomy_batch_resolved",
            pairs=len(keys),
            categories_created=len(missing_categories),
            subcategories_created=len(missing_subcategories),
        )
        return {
            (category_text, subcategory_text): subcategories[
                (subcategory_text, categories[category_text].id)
            ]
            for category_text, subcategory_text in keys
        }

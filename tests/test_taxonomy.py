from decimal import Decimal
from uuid import uuid4

import pytest

from sisgeagro.domain.entities import TaxDefinition
from sisgeagro.exceptions import MissingFieldError, SubcategoryNotFoundError
from sisgeagro.services.taxonomy import (
    DEFAULT_TAX_PAYMENT_CATEGORY,
    DEFAULT_TAX_PAYMENT_SUBCATEGORY,
)


class TestResolve:
    def test_creates_category_and_subcategory_uppercased(self, taxonomy, repos):
        category, subcategory = taxonomy.resolve("Insumos", "semillas ")

        assert category.description == "INSUMOS"
        assert subcategory.description == "SEMILLAS"
        assert subcategory.category_id == category.id
        assert repos.categories.get(category.id) is not None

    def test_matches_case_insensitively(self, taxonomy, repos):
        first = taxonomy.resolve("Insumos", "Semillas")
        second = taxonomy.resolve("INSUMOS", "semillas")

        assert first == second
        assert len(list(repos.categories.list_all())) == 1
        assert len(list(repos.subcategories.list_all())) == 1

    def test_same_subcategory_text_under_two_categories_is_two_rows(self, taxonomy, repos):
        _, under_expenses = taxonomy.resolve("Gastos", "Varios")
        _, under_sales = taxonomy.resolve("Ventas", "Varios")

        assert under_expenses.id != under_sales.id
        assert under_expenses.category_id != under_sales.category_id
        assert len(list(repos.subcategories.list_all())) == 2

    @pytest.mark.parametrize(
        ("category", "subcategory", "field"),
        [("", "Semillas", "category"), ("Insumos", None, "subCategory")],
    )
    def test_both_texts_are_required(self, taxonomy, category, subcategory, field):
        with pytest.raises(MissingFieldError, match=field):
            taxonomy.resolve(category, subcategory)


class TestResolveByIds:
    def test_returns_stored_pair(self, taxonomy):
        category, subcategory = taxonomy.resolve("Insumos", "Semillas")

        assert taxonomy.resolve_by_ids(None, subcategory.id) == (category, subcategory)

    def test_unknown_subcategory_raises(self, taxonomy):
        with pytest.raises(SubcategoryNotFoundError):
            taxonomy.resolve_by_ids(None, uuid4())


class TestTaxPayment:
    def test_filed_under_tax_name(self, taxonomy):
        tax = TaxDefinition(name="Ingresos Brutos", percentage=Decimal("3.5"))

        category, subcategory = taxonomy.resolve_tax_payment(tax)

        assert category.description == DEFAULT_TAX_PAYMENT_CATEGORY.upper()
        assert subcategory.description == "INGRESOS BRUTOS"

    def test_without_related_tax_uses_fallback(self, taxonomy):
        _, subcategory = taxonomy.resolve_tax_payment(None)

        assert subcategory.description == DEFAULT_TAX_PAYMENT_SUBCATEGORY.upper()


class TestResolveMany:
    def test_resolves_each_distinct_pair_once(self, taxonomy, repos):
        resolved = taxonomy.resolve_many(
            [("Insumos", "Semillas"), ("insumos", "SEMILLAS"), ("Ventas", "Semillas")]
        )

        assert set(resolved) == {("INSUMOS", "SEMILLAS"), ("VENTAS", "SEMILLAS")}
        assert len(list(repos.categories.list_all())) == 2
        assert len(list(repos.subcategories.list_all())) == 2
        assert (
            resolved[("INSUMOS", "SEMILLAS")].category_id
            != resolved[("VENTAS", "SEMILLAS")].category_id
        )

    def test_reuses_existing_rows(self, taxonomy):
        _, existing = taxonomy.resolve("Insumos", "Semillas")

        resolved = taxonomy.resolve_many([("Insumos", "Semillas")])

        assert resolved[("INSUMOS", "SEMILLAS")].id == existing.id

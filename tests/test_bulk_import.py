from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest

from sisgeagro.container import build_bulk_importer
from sisgeagro.domain.value_objects import MovementType
from sisgeagro.exceptions import DatabaseError, MissingFieldError
from sisgeagro.repositories.interfaces import MovementTaxRepository


class FailingMovementTaxRepository(MovementTaxRepository):
    def add_many(self, lines):
        if lines:
            raise DatabaseError("insert failed")

    def list_by_movement(self, movement_id):
        return []

    def delete_by_movement(self, movement_id):
        pass


def _results(results):
    return [r.to_dict() for r in results]


class TestImportRows:
    def test_imports_every_valid_row(self, bulk_importer, sample_rows, repos, count_rows):
        results = bulk_importer.import_rows(sample_rows, "user-1")

        assert _results(results) == [
            {"row": 2, "success": True},
            {"row": 3, "success": True},
        ]
        assert count_rows("movements") == 2
        assert count_rows("operations") == 2
        views = {v.description: v for v in repos.movements.list_views()}
        sale = views["Venta de soja"]
        assert sale.movement_type is MovementType.INCOME
        assert sale.bill_date.isoformat() == "2024-03-01"
        assert sale.bill_number.startswith("AUTO-")
        assert sale.category == "VENTAS"
        assert sale.created_by == "user-1"

    def test_tax_lines_are_written(self, bulk_importer, sample_rows, repos, count_rows):
        bulk_importer.import_rows(sample_rows, "user-1")

        fertilizer = next(
            v for v in repos.movements.list_views() if v.description == "Fertilizante"
        )
        assert [(t.tax_name, t.calculated_amount) for t in fertilizer.taxes] == [
            ("IVA", Decimal("210"))
        ]
        assert count_rows("taxes") == 1

    def test_existing_tax_definition_is_reused(
        self, bulk_importer, sample_rows, iva, count_rows
    ):
        sample_rows[1]["selectedTaxes"] = '[{"name": "IVA", "percentage": 21}]'
        del sample_rows[1]["selectedTaxesPercentages"]

        bulk_importer.import_rows(sample_rows, "user-1")

        assert count_rows("taxes") == 1
        assert count_rows("movement_taxes") == 1

    def test_entities_are_deduplicated(self, bulk_importer, sample_rows, count_rows):
        third = dict(sample_rows[1], factura="B-0101", empresa="Agro S.A.")
        third.pop("selectedTaxes")

        results = bulk_importer.import_rows([*sample_rows, third], "user-1")

        assert all(r.success for r in results)
        assert count_rows("entities") == 2

    def test_income_rows_get_distinct_synthesized_bill_numbers(
        self, bulk_importer, sample_rows, repos
    ):
        second_sale = dict(sample_rows[0], detalle="Venta de maiz")

        bulk_importer.import_rows([sample_rows[0], second_sale], "user-1")

        numbers = {v.bill_number for v in repos.movements.list_views()}
        assert len(numbers) == 2

    def test_blank_user_is_rejected(self, bulk_importer, sample_rows):
        with pytest.raises(MissingFieldError, match="userId"):
            bulk_importer.import_rows(sample_rows, " ")

    def test_empty_input(self, bulk_importer):
        assert bulk_importer.import_rows([], "user-1") == []


class TestRowFailures:
    def test_invalid_row_fails_alone(self, bulk_importer, sample_rows, count_rows):
        sample_rows[0]["detalle"] = ""

        results = bulk_importer.import_rows(sample_rows, "user-1")

        assert _results(results) == [
            {"row": 2, "success": False, "error": "Missing required field: description"},
            {"row": 3, "success": True},
        ]
        assert count_rows("movements") == 1

    def test_expense_row_without_bill_number(self, bulk_importer, sample_rows):
        del sample_rows[1]["factura"]

        results = bulk_importer.import_rows(sample_rows, "user-1")

        assert results[1].success is False
        assert "billNumber" in results[1].error

    def test_malformed_tax_json_rejects_the_row(self, bulk_importer, sample_rows):
        sample_rows[1]["selectedTaxes"] = "[{not json"

        results = bulk_importer.import_rows(sample_rows, "user-1")

        assert results[0].success is True
        assert results[1].error == "selectedTaxes is not a valid JSON array"

    def test_unknown_related_tax_fails_its_row(self, bulk_importer, sample_rows):
        missing = uuid4()
        sample_rows[1].update(isTaxPayment="true", relatedTaxId=str(missing))

        results = bulk_importer.import_rows(sample_rows, "user-1")

        assert results[0].success is True
        assert results[1].success is False
        assert str(missing) in results[1].error


class TestBatchFailures:
    def test_duplicate_bill_number_fails_every_row(
        self, bulk_importer, sample_rows, count_rows
    ):
        sample_rows[0]["factura"] = "B-0100"

        results = bulk_importer.import_rows(sample_rows, "user-1")

        assert _results(results) == [
            {"row": 2, "success": False, "error": "Error creating bills: The bill number already exists"},
            {"row": 3, "success": False, "error": "Error creating bills: The bill number already exists"},
        ]
        assert count_rows("bills") == 0
        assert count_rows("movements") == 0

    def test_tax_line_failure_fails_only_taxed_rows(
        self, repos, settings, sample_rows, count_rows
    ):
        importer = build_bulk_importer(
            replace(repos, movement_taxes=FailingMovementTaxRepository()), settings
        )

        results = importer.import_rows(sample_rows, "user-1")

        assert _results(results) == [
            {"row": 2, "success": True},
            {"row": 3, "success": False, "error": "Error creating movement taxes: insert failed"},
        ]
        assert count_rows("movements") == 2


class TestTaxPaymentRows:
    def test_filed_under_related_tax(self, bulk_importer, sample_rows, iva, repos):
        sample_rows[1].update(
            movimiento="ingreso", isTaxPayment="si", relatedTaxId=str(iva.id)
        )

        results = bulk_importer.import_rows(sample_rows[1:], "user-1")

        assert results[0].success is True
        (view,) = repos.movements.list_views()
        assert view.movement_type is MovementType.EXPENSE
        assert view.related_tax_id == iva.id
        assert (view.category, view.subcategory) == ("IMPUESTOS Y TASAS", "IVA")
        assert view.taxes == []

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from sisgeagro.domain.entities import TaxDefinition
from sisgeagro.domain.movements import TaxSelection
from sisgeagro.exceptions import DuplicateBillNumberError, TaxNotFoundError
from sisgeagro.services.writers import (
    OperationLinker,
    PaymentBillWriter,
    TaxLineWriter,
    auto_bill_number,
    calculate_tax_amount,
)


class TestCalculateTaxAmount:
    def test_twenty_one_percent_of_one_thousand(self):
        assert calculate_tax_amount(Decimal("1000"), Decimal("21")) == Decimal("210.00")

    def test_no_float_drift(self):
        assert calculate_tax_amount(Decimal("0.10"), Decimal("3")) == Decimal("0.003")

    def test_without_percentage_there_is_no_amount(self):
        assert calculate_tax_amount(Decimal("1000"), None) is None


class TestAutoBillNumber:
    def test_uses_prefix_and_millis(self):
        assert auto_bill_number(1700000000000) == "AUTO-1700000000000"

    def test_index_keeps_batch_numbers_apart(self):
        assert auto_bill_number(1700000000000, 3) == "AUTO-1700000000000-3"


class TestPaymentBillWriter:
    def test_writes_payment_and_bill(self, repos):
        writer = PaymentBillWriter(repos.payments, repos.bills)

        payment, bill = writer.write(
            "Otro", "Cheque", "A-1", date(2024, 3, 1), Decimal("500"), None
        )

        assert repos.payments.get(payment.id).payment_type == "Cheque"
        stored = repos.bills.get(bill.id)
        assert stored.bill_number == "A-1"
        assert stored.amount == Decimal("500")

    def test_missing_bill_number_is_synthesized(self, repos):
        writer = PaymentBillWriter(repos.payments, repos.bills)

        _, bill = writer.write("Efectivo", None, "", date(2024, 3, 1), Decimal("1"), None)

        assert bill.bill_number.startswith("AUTO-")

    def test_duplicate_bill_number_is_a_conflict(self, repos):
        writer = PaymentBillWriter(repos.payments, repos.bills)
        writer.write("Efectivo", None, "A-1", date(2024, 3, 1), Decimal("1"), None)

        with pytest.raises(DuplicateBillNumberError) as exc_info:
            writer.write("Efectivo", None, "A-1", date(2024, 3, 2), Decimal("2"), None)

        assert exc_info.value.status_code == 409


class TestOperationLinker:
    def test_pairs_payments_and_bills_positionally(self, repos):
        writer = PaymentBillWriter(repos.payments, repos.bills)
        payments = [writer.build_payment("Efectivo") for _ in range(2)]
        bills = [
            writer.build_bill(None, date(2024, 3, 1), Decimal("1"), None, millis=1, index=i)
            for i in range(2)
        ]
        writer.write_payments(payments)
        writer.write_bills(bills)

        operations = OperationLinker(repos.operations).link_many(payments, bills)

        assert [(o.payment_id, o.bill_id) for o in operations] == [
            (payments[0].id, bills[0].id),
            (payments[1].id, bills[1].id),
        ]


class TestTaxLineWriter:
    def test_selection_percentage_overrides_definition(self, repos, iva):
        writer = TaxLineWriter(repos.taxes, repos.movement_taxes)

        lines = writer.build_lines(
            uuid4(), Decimal("1000"), [TaxSelection(tax_id=iva.id, percentage=Decimal("10.5"))]
        )

        assert lines[0].calculated_amount == Decimal("105")

    def test_definition_percentage_used_by_default(self, repos, iva):
        writer = TaxLineWriter(repos.taxes, repos.movement_taxes)

        lines = writer.build_lines(uuid4(), Decimal("1000"), [TaxSelection(tax_id=iva.id)])

        assert lines[0].calculated_amount == Decimal("210.00")

    def test_tax_without_percentage_has_no_amount(self, repos):
        tax = TaxDefinition(name="Sellos")
        repos.taxes.add(tax)
        writer = TaxLineWriter(repos.taxes, repos.movement_taxes)

        lines = writer.build_lines(uuid4(), Decimal("1000"), [TaxSelection(tax_id=tax.id)])

        assert lines[0].calculated_amount is None

    def test_unknown_tax_raises(self, repos):
        writer = TaxLineWriter(repos.taxes, repos.movement_taxes)

        with pytest.raises(TaxNotFoundError):
            writer.build_lines(uuid4(), Decimal("1"), [TaxSelection(tax_id=uuid4())])

    def test_resolve_definitions_creates_missing_pairs_once(self, repos, iva):
        writer = TaxLineWriter(repos.taxes, repos.movement_taxes)

        resolved = writer.resolve_definitions(
            [("IVA", Decimal("21")), ("IVA", Decimal("10.5")), ("IVA", Decimal("21"))]
        )

        assert resolved[("IVA", Decimal("21"))].id == iva.id
        assert resolved[("IVA", Decimal("10.5"))].id != iva.id
        assert len(list(repos.taxes.list_all())) == 2

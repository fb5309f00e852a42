"""Writers for the payment, bill, operation and tax-line rows of a movement."""

import time
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sisgeagro.domain.entities import TaxDefinition
from sisgeagro.domain.movements import (
    Bill,
    MovementTaxLine,
    Operation,
    PaymentMethod,
    TaxSelection,
)
from sisgeagro.domain.value_objects import AUTO_BILL_PREFIX, payment_label
from sisgeagro.exceptions import TaxNotFoundError
from sisgeagro.logging_config import get_logger
from sisgeagro.repositories.interfaces import (
    BillRepository,
    MovementTaxRepository,
    OperationRepository,
    PaymentRepository,
    TaxRepository,
)

logger = get_logger(__name__)


def epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def auto_bill_number(millis: int | None = None, index: int | None = None) -> str:
    """Synthesize a bill number from the clock.

    Two calls in the same millisecond collide; the bills table's unique
    constraint turns that into a DuplicateBillNumberError.
    """
    if millis is None:
        millis = epoch_millis()
    if index is None:
        return f"{AUTO_BILL_PREFIX}{millis}"
    return f"{AUTO_BILL_PREFIX}{millis}-{index}"


def calculate_tax_amount(amount: Decimal, percentage: Decimal | None) -> Decimal | None:
    if percentage is None:
        return None
    return amount * percentage / Decimal(100)


class PaymentBillWriter:
    def __init__(self, payment_repo: PaymentRepository, bill_repo: BillRepository) -> None:
        self._payment_repo = payment_repo
        self._bill_repo = bill_repo

    @staticmethod
    def build_payment(
        payment_type: str, custom_payment_type: str | None = None
    ) -> PaymentMethod:
        return PaymentMethod(payment_type=payment_label(payment_type, custom_payment_type))

    @staticmethod
    def build_bill(
        bill_number: str | None,
        bill_date: date,
        amount: Decimal,
        entity_id: UUID | None,
        *,
        millis: int | None = None,
        index: int | None = None,
    ) -> Bill:
        number = (bill_number or "").strip() or auto_bill_number(millis, index)
        return Bill(
            bill_number=number,
            bill_date=bill_date,
            amount=amount,
            entity_id=entity_id,
        )

    def write(
        self,
        payment_type: str,
        custom_payment_type: str | None,
        bill_number: str | None,
        bill_date: date,
        amount: Decimal,
        entity_id: UUID | None,
    ) -> tuple[PaymentMethod, Bill]:
        payment = self.build_payment(payment_type, custom_payment_type)
        self._payment_repo.add(payment)
        bill = self.build_bill(bill_number, bill_date, amount, entity_id)
        self._bill_repo.add(bill)
        logger.debug(
            "payment_and_bill_written",
            payment_id=str(payment.id),
            bill_id=str(bill.id),
            bill_number=bill.bill_number,
        )
        return payment, bill

    def write_payments(self, payments: Sequence[PaymentMethod]) -> None:
        self._payment_repo.add_many(payments)

    def write_bills(self, bills: Sequence[Bill]) -> None:
        self._bill_repo.add_many(bills)


class OperationLinker:
    def __init__(self, operation_repo: OperationRepository) -> None:
        self._operation_repo = operation_repo

    def link(self, payment_id: UUID, bill_id: UUID) -> Operation:
        operation = Operation(payment_id=payment_id, bill_id=bill_id)
        self._operation_repo.add(operation)
        return operation

    def link_many(
        self, payments: Sequence[PaymentMethod], bills: Sequence[Bill]
    ) -> list[Operation]:
        """One operation per positional (payment, bill) pair."""
        operations = [
            Operation(payment_id=payment.id, bill_id=bill.id)
            for payment, bill in zip(payments, bills, strict=True)
        ]
        self._operation_repo.add_many(operations)
        return operations


class TaxLineWriter:
    """Compute and persist the tax lines of a movement.

    calculated_amount = amount * percentage / 100, in Decimal. A selection
    without its own percentage uses the tax definition's; a tax without any
    percentage is recorded with no calculated amount.
    """

    def __init__(
        self, tax_repo: TaxRepository, movement_tax_repo: MovementTaxRepository
    ) -> None:
        self._tax_repo = tax_repo
        self._movement_tax_repo = movement_tax_repo

    def get_definition(self, tax_id: UUID) -> TaxDefinition:
        tax = self._tax_repo.get(tax_id)
        if tax is None:
            raise TaxNotFoundError(tax_id)
        return tax

    def definitions_by_id(self, tax_ids: Iterable[UUID]) -> dict[UUID, TaxDefinition]:
        ids = list(dict.fromkeys(tax_ids))
        return {tax.id: tax for tax in self._tax_repo.list_by_ids(ids)}

    def require_definitions(
        self, selections: Sequence[TaxSelection]
    ) -> dict[UUID, TaxDefinition]:
        """Definitions behind the selections; raises on the first unknown tax id."""
        definitions = self.definitions_by_id(s.tax_id for s in selections)
        for selection in selections:
            if selection.tax_id not in definitions:
                raise TaxNotFoundError(selection.tax_id)
        return definitions

    def build_lines(
        self,
        movement_id: UUID,
        amount: Decimal,
        selections: Sequence[TaxSelection],
    ) -> list[MovementTaxLine]:
        definitions = self.require_definitions(selections)
        lines = []
        for selection in selections:
            definition = definitions[selection.tax_id]
            percentage = (
                selection.percentage
                if selection.percentage is not None
                else definition.percentage
            )
            lines.append(
                MovementTaxLine(
                    movement_id=movement_id,
                    tax_id=definition.id,
                    calculated_amount=calculate_tax_amount(amount, percentage),
                )
            )
        return lines

    def write(
        self,
        movement_id: UUID,
        amount: Decimal,
        selections: Sequence[TaxSelection],
    ) -> list[MovementTaxLine]:
        if not selections:
            return []
        lines = self.build_lines(movement_id, amount, selections)
        self._movement_tax_repo.add_many(lines)
        logger.debug("tax_lines_written", movement_id=str(movement_id), count=len(lines))
        return lines

    def replace(
        self,
        movement_id: UUID,
        amount: Decimal,
        selections: Sequence[TaxSelection],
    ) -> list[MovementTaxLine]:
        """Delete every tax line of the movement, then write the new set."""
        lines = self.build_lines(movement_id, amount, selections) if selections else []
        self._movement_tax_repo.delete_by_movement(movement_id)
        self._movement_tax_repo.add_many(lines)
        return lines

    def write_many(self, lines: Sequence[MovementTaxLine]) -> None:
        self._movement_tax_repo.add_many(lines)

    def resolve_definitions(
        self, keys: Iterable[tuple[str, Decimal]]
    ) -> dict[tuple[str, Decimal], TaxDefinition]:
        """Find or create the taxes behind distinct (name, percentage) pairs."""
        wanted = list(dict.fromkeys(keys))
        if not wanted:
            return {}

        names = list(dict.fromkeys(name for name, _ in wanted))
        found: dict[tuple[str, Decimal | None], TaxDefinition] = {}
        for tax in self._tax_repo.list_by_names(names):
            found.setdefault(tax.key, tax)

        missing = [
            TaxDefinition(name=name, percentage=percentage)
            for name, percentage in wanted
            if (name, percentage) not in found
        ]
        self._tax_repo.add_many(missing)
        if missing:
            logger.info("taxes_created", count=len(missing))
        found.update({tax.key: tax for tax in missing})
        return {key: found[key] for key in wanted}

"""Bulk movement import.

Rows are validated up front, shared reference data (entities, categories,
subcategories, taxes) is resolved once per distinct key, and the per-row
records are then written stage by stage in single batches:

    payments -> bills -> operations -> movements -> tax lines

A failing payment, bill, operation or movement stage fails every row of the
batch with that stage's message. A failing tax-line stage fails only the rows
that carried tax lines; their movements stay committed.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sisgeagro.domain.entities import Entity, Subcategory, TaxDefinition
from sisgeagro.domain.movements import Movement, MovementTaxLine
from sisgeagro.exceptions import MissingFieldError, SisGeAgroError, TaxNotFoundError
from sisgeagro.logging_config import get_logger
from sisgeagro.parsers.csv_parser import ImportRow, validate_row
from sisgeagro.repositories.interfaces import Repositories
from sisgeagro.services.entity_resolver import EntityResolver
from sisgeagro.services.taxonomy import TaxonomyResolver
from sisgeagro.services.writers import (
    OperationLinker,
    PaymentBillWriter,
    TaxLineWriter,
    calculate_tax_amount,
    epoch_millis,
)

logger = get_logger(__name__)

# Data rows start on line 2, below the header.
FIRST_DATA_LINE = 2


@dataclass
class RowResult:
    row: int
    success: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"row": self.row, "success": self.success}
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class _PendingRow:
    line: int
    data: ImportRow
    related_tax: TaxDefinition | None = None


class BulkImporter:
    def __init__(
        self,
        repositories: Repositories,
        entity_resolver: EntityResolver,
        taxonomy: TaxonomyResolver,
        payment_bill_writer: PaymentBillWriter,
        operation_linker: OperationLinker,
        tax_line_writer: TaxLineWriter,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        self._repos = repositories
        self._entity_resolver = entity_resolver
        self._taxonomy = taxonomy
        self._payment_bill_writer = payment_bill_writer
        self._operation_linker = operation_linker
        self._tax_line_writer = tax_line_writer
        self._clock = clock

    def import_rows(
        self, rows: Sequence[Mapping[str, Any]], created_by: str
    ) -> list[RowResult]:
        """Import raw rows keyed by column alias.

        Returns one result per input row, numbered by CSV line.
        """
        if not (created_by or "").strip():
            raise MissingFieldError("userId")

        results: dict[int, RowResult] = {}
        batch: list[_PendingRow] = []
        for index, raw in enumerate(rows):
            line = index + FIRST_DATA_LINE
            try:
                batch.append(_PendingRow(line=line, data=validate_row(raw)))
            except SisGeAgroError as e:
                results[line] = RowResult(row=line, success=False, error=e.message)

        if batch:
            self._import_batch(batch, created_by, results)

        ordered = [results[line] for line in sorted(results)]
        failed = sum(1 for r in ordered if not r.success)
        logger.info(
            "bulk_import_completed",
            rows=len(ordered),
            succeeded=len(ordered) - failed,
            failed=failed,
            created_by=created_by,
        )
        return ordered

    def _import_batch(
        self,
        batch: list[_PendingRow],
        created_by: str,
        results: dict[int, RowResult],
    ) -> None:
        batch = self._attach_related_taxes(batch, results)
        if not batch:
            return

        try:
            entities = self._resolve_entities(batch)
            subcategories = self._resolve_taxonomy(batch)
            taxes = self._tax_line_writer.resolve_definitions(
                key for pending in batch for key in pending.data.taxes
            )
        except SisGeAgroError as e:
            self._fail_all(batch, results, f"Error resolving reference data: {e.message}")
            return

        millis = self._clock()
        payments = [
            self._payment_bill_writer.build_payment(pending.data.payment_type)
            for pending in batch
        ]
        bills = [
            self._payment_bill_writer.build_bill(
                pending.data.bill_number,
                pending.data.bill_date,
                pending.data.amount,
                self._entity_for(pending.data, entities),
                millis=millis,
                index=position,
            )
            for position, pending in enumerate(batch)
        ]

        try:
            self._payment_bill_writer.write_payments(payments)
        except SisGeAgroError as e:
            self._fail_all(batch, results, f"Error creating payments: {e.message}")
            return
        try:
            self._payment_bill_writer.write_bills(bills)
        except SisGeAgroError as e:
            self._fail_all(batch, results, f"Error creating bills: {e.message}")
            return
        try:
            operations = self._operation_linker.link_many(payments, bills)
        except SisGeAgroError as e:
            self._fail_all(batch, results, f"Error creating operations: {e.message}")
            return

        movements = [
            Movement(
                description=pending.data.description,
                movement_type=pending.data.movement_type,
                operation_id=operation.id,
                subcategory_id=subcategories[self._taxonomy_key(pending)].id,
                created_by=created_by,
                verified=pending.data.verified,
                is_tax_payment=pending.data.is_tax_payment,
                related_tax_id=pending.related_tax.id if pending.related_tax else None,
            )
            for pending, operation in zip(batch, operations, strict=True)
        ]
        try:
            self._repos.movements.add_many(movements)
        except SisGeAgroError as e:
            self._fail_all(batch, results, f"Error creating movements: {e.message}")
            return

        for pending in batch:
            results[pending.line] = RowResult(row=pending.line, success=True)

        lines: list[MovementTaxLine] = []
        taxed_rows: list[int] = []
        for pending, movement in zip(batch, movements, strict=True):
            if not pending.data.taxes:
                continue
            taxed_rows.append(pending.line)
            for name, percentage in pending.data.taxes:
                lines.append(
                    MovementTaxLine(
                        movement_id=movement.id,
                        tax_id=taxes[(name, percentage)].id,
                        calculated_amount=calculate_tax_amount(
                            pending.data.amount, percentage
                        ),
                    )
                )
        try:
            self._tax_line_writer.write_many(lines)
        except SisGeAgroError as e:
            logger.warning(
                "bulk_import_tax_lines_failed", rows=len(taxed_rows), error=e.message
            )
            for line in taxed_rows:
                results[line] = RowResult(
                    row=line,
                    success=False,
                    error=f"Error creating movement taxes: {e.message}",
                )

    def _attach_related_taxes(
        self, batch: list[_PendingRow], results: dict[int, RowResult]
    ) -> list[_PendingRow]:
        """Load the tax each tax-payment row settles; unknown taxes fail their row."""
        wanted = [p.data.related_tax_id for p in batch if p.data.related_tax_id]
        if not wanted:
            return batch
        try:
            known = self._tax_line_writer.definitions_by_id(wanted)
        except SisGeAgroError as e:
            self._fail_all(batch, results, f"Error resolving reference data: {e.message}")
            return []

        kept = []
        for pending in batch:
            tax_id = pending.data.related_tax_id
            if tax_id is None:
                kept.append(pending)
            elif tax_id in known:
                pending.related_tax = known[tax_id]
                kept.append(pending)
            else:
                results[pending.line] = RowResult(
                    row=pending.line, success=False, error=TaxNotFoundError(tax_id).message
                )
        return kept

    def _resolve_entities(self, batch: list[_PendingRow]) -> dict[str, Entity]:
        return self._entity_resolver.resolve_many(
            (p.data.entity_name, p.data.entity_fiscal_id)
            for p in batch
            if p.data.entity_id is None
        )

    def _resolve_taxonomy(
        self, batch: list[_PendingRow]
    ) -> dict[tuple[str, str], Subcategory]:
        return self._taxonomy.resolve_many(self._taxonomy_key(p) for p in batch)

    def _taxonomy_key(self, pending: _PendingRow) -> tuple[str, str]:
        if pending.data.is_tax_payment:
            category, subcategory = self._taxonomy.tax_payment_labels(pending.related_tax)
            return (category.strip().upper(), subcategory.strip().upper())
        return pending.data.category_key

    @staticmethod
    def _entity_for(data: ImportRow, entities: dict[str, Entity]) -> UUID | None:
        if data.entity_id is not None:
            return data.entity_id
        entity = entities.get(data.entity_fiscal_id.strip())
        return entity.id if entity else None

    @staticmethod
    def _fail_all(
        batch: list[_PendingRow], results: dict[int, RowResult], message: str
    ) -> None:
        logger.warning("bulk_import_batch_failed", rows=len(batch), error=message)
        for pending in batch:
            results[pending.line] = RowResult(row=pending.line, success=False, error=message)

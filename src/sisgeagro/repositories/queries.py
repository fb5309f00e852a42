"""SQL shared by the SQLite and PostgreSQL repositories.

Only statements without placeholders, or ones built with the backend's
placeholder passed in, live here.
"""

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sisgeagro.domain.movements import MovementFilter, MovementView, TaxLineView
from sisgeagro.domain.value_objects import MovementType

MOVEMENT_VIEW_SELECT = """
    SELECT m.id, m.description, m.movement_type, m.created_by, m.verified,
           m.is_tax_payment, m.related_tax_id, m.created_at, m.operation_id,
           m.subcategory_id, o.payment_id, o.bill_id, p.payment_type,
           b.bill_number, b.bill_date, b.amount, b.entity_id,
           e.name AS entity_name, e.fiscal_id AS entity_fiscal_id,
           s.description AS subcategory, s.category_id,
           c.description AS category
    FROM movements m
    JOIN operations o ON o.id = m.operation_id
    JOIN payments p ON p.id = o.payment_id
    JOIN bills b ON b.id = o.bill_id
    LEFT JOIN entities e ON e.id = b.entity_id
    JOIN subcategories s ON s.id = m.subcategory_id
    JOIN categories c ON c.id = s.category_id
"""

TAX_LINE_VIEW_SELECT = """
    SELECT mt.id, mt.movement_id, mt.tax_id, mt.calculated_amount,
           t.name AS tax_name, t.percentage
    FROM movement_taxes mt
    JOIN taxes t ON t.id = mt.tax_id
"""


def placeholders(count: int, placeholder: str = "?") -> str:
    return ", ".join([placeholder] * count)


def movement_filter_clause(
    movement_filter: MovementFilter | None, placeholder: str = "?"
) -> tuple[str, list[Any]]:
    """Build the WHERE clause for MOVEMENT_VIEW_SELECT.

    Date bounds apply to the bill date and are inclusive.
    """
    if movement_filter is None:
        return "", []

    clauses: list[str] = []
    params: list[Any] = []
    if movement_filter.movement_type is not None:
        clauses.append(f"m.movement_type = {placeholder}")
        params.append(movement_filter.movement_type.value)
    if movement_filter.start_date is not None:
        clauses.append(f"b.bill_date >= {placeholder}")
        params.append(movement_filter.start_date.isoformat())
    if movement_filter.end_date is not None:
        clauses.append(f"b.bill_date <= {placeholder}")
        params.append(movement_filter.end_date.isoformat())
    if movement_filter.category_id is not None:
        clauses.append(f"s.category_id = {placeholder}")
        params.append(str(movement_filter.category_id))
    if movement_filter.subcategory_id is not None:
        clauses.append(f"m.subcategory_id = {placeholder}")
        params.append(str(movement_filter.subcategory_id))
    if movement_filter.entity_id is not None:
        clauses.append(f"b.entity_id = {placeholder}")
        params.append(str(movement_filter.entity_id))
    if movement_filter.payment_type:
        clauses.append(f"p.payment_type = {placeholder}")
        params.append(movement_filter.payment_type)

    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


def optional_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


def optional_uuid(value: Any) -> UUID | None:
    if value is None:
        return None
    return UUID(str(value))


def row_to_tax_line_view(row: Mapping[str, Any]) -> TaxLineView:
    return TaxLineView(
        id=UUID(row["id"]),
        tax_id=UUID(row["tax_id"]),
        tax_name=row["tax_name"],
        percentage=optional_decimal(row["percentage"]),
        calculated_amount=optional_decimal(row["calculated_amount"]),
    )


def row_to_movement_view(
    row: Mapping[str, Any], taxes: list[TaxLineView] | None = None
) -> MovementView:
    return MovementView(
        id=UUID(row["id"]),
        description=row["description"],
        movement_type=MovementType(row["movement_type"]),
        created_by=row["created_by"],
        verified=bool(row["verified"]),
        is_tax_payment=bool(row["is_tax_payment"]),
        related_tax_id=optional_uuid(row["related_tax_id"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        operation_id=UUID(row["operation_id"]),
        payment_id=UUID(row["payment_id"]),
        payment_type=row["payment_type"],
        bill_id=UUID(row["bill_id"]),
        bill_number=row["bill_number"],
        bill_date=date.fromisoformat(row["bill_date"]),
        amount=Decimal(row["amount"]),
        entity_id=optional_uuid(row["entity_id"]),
        entity_name=row["entity_name"],
        entity_fiscal_id=row["entity_fiscal_id"],
        subcategory_id=UUID(row["subcategory_id"]),
        subcategory=row["subcategory"],
        category_id=UUID(row["category_id"]),
        category=row["category"],
        taxes=taxes or [],
    )

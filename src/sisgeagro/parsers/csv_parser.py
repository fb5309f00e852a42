"""Parser and row validator for movement CSV imports.

Files are semicolon-delimited with a header row. Each field accepts an
English or a Spanish column name; every row is validated into an ImportRow
before anything is written.
"""

import csv
import io
import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from uuid import UUID

from sisgeagro.domain.value_objects import (
    MovementType,
    PaymentType,
    parse_amount,
    parse_date,
    payment_label,
)
from sisgeagro.exceptions import MissingFieldError, ValidationError

# Canonical field -> accepted column names, English first.
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "description": ("description", "detalle"),
    "movement_type": ("movementType", "movimiento"),
    "payment_type": ("paymentType", "formaPago"),
    "custom_payment_type": ("customPaymentType",),
    "amount": ("amount", "importe"),
    "category": ("category", "rubro"),
    "subcategory": ("subCategory", "subrubro"),
    "bill_number": ("billNumber", "factura"),
    "bill_date": ("billDate", "fechaComprobante"),
    "entity_id": ("entityId",),
    "entity_name": ("entityName", "empresa"),
    "entity_fiscal_id": ("entityCuitCuil", "cuit_cuil"),
    "selected_taxes": ("selectedTaxes",),
    "selected_taxes_percentages": ("selectedTaxesPercentages",),
    "is_tax_payment": ("isTaxPayment",),
    "related_tax_id": ("relatedTaxId",),
    "verified": ("check",),
}

_DAY_FIRST_DATE = re.compile(r"^(\d{1,2})([-/])(\d{1,2})\2(\d{4})$")
_TRUE_VALUES = {"true", "1", "yes", "si", "sí"}


def normalize_date(value: str) -> str:
    """Rewrite DD-MM-YYYY and DD/MM/YYYY as YYYY-MM-DD.

    Anything else is returned unchanged.
    """
    match = _DAY_FIRST_DATE.match(value.strip())
    if match is None:
        return value
    day, _, month, year = match.groups()
    return f"{year}-{int(month):02d}-{int(day):02d}"


def canonicalize(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Map a row keyed by any accepted alias onto canonical field names.

    Column names match case-insensitively; the first alias holding a
    non-blank value wins.
    """
    by_lower = {str(key).strip().lower(): value for key, value in raw.items()}
    row: dict[str, Any] = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            value = by_lower.get(alias.lower())
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            row[canonical] = value.strip() if isinstance(value, str) else value
            break
    return row


def parse_tax_cells(taxes: Any, percentages: Any = None) -> list[tuple[str, Decimal]]:
    """Parse the tax selection of one row into (name, percentage) pairs.

    Accepted shapes:
    - a JSON array of {"name", "percentage"} objects, as text
    - comma-separated names with comma-separated percentages in a second cell
    - an already decoded list of such objects

    Entries without a name or with a zero percentage are dropped.

    Raises:
        ValidationError: If the JSON is malformed or a percentage is not a number.
    """
    items: list[Any]
    if taxes is None or taxes == "":
        return []
    if isinstance(taxes, list):
        items = taxes
    elif isinstance(taxes, str) and taxes.strip().startswith("["):
        try:
            items = json.loads(taxes)
        except json.JSONDecodeError:
            raise ValidationError(
                "selectedTaxes is not a valid JSON array",
                context={"field": "selectedTaxes"},
            ) from None
        if not isinstance(items, list):
            raise ValidationError(
                "selectedTaxes is not a valid JSON array",
                context={"field": "selectedTaxes"},
            )
    elif isinstance(taxes, str):
        names = [name.strip() for name in taxes.split(",") if name.strip()]
        values = [p.strip() for p in str(percentages or "").split(",")]
        items = [
            {"name": name, "percentage": values[i] if i < len(values) else ""}
            for i, name in enumerate(names)
        ]
    else:
        raise ValidationError(
            "selectedTaxes must be text or a list", context={"field": "selectedTaxes"}
        )

    parsed: list[tuple[str, Decimal]] = []
    for item in items:
        if not isinstance(item, Mapping):
            raise ValidationError(
                "Each selected tax needs a name and a percentage",
                context={"field": "selectedTaxes"},
            )
        name = str(item.get("name") or "").strip()
        percentage = _parse_percentage(item.get("percentage"))
        if name and percentage:
            parsed.append((name, percentage))
    return parsed


def _parse_percentage(value: Any) -> Decimal:
    if value is None or (isinstance(value, str) and not value.strip()):
        return Decimal("0")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(
            f"Invalid tax percentage: {value}",
            context={"field": "selectedTaxesPercentages", "value": str(value)},
        ) from None


def _parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE_VALUES


def _parse_uuid(value: Any, field_name: str) -> UUID | None:
    if value is None or value == "":
        return None
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(
            f"Invalid identifier for {field_name}: {value}",
            context={"field": field_name, "value": str(value)},
        ) from None


@dataclass
class ImportRow:
    """A CSV row that passed validation, ready for batch resolution."""

    description: str
    movement_type: MovementType
    payment_type: str
    amount: Decimal
    bill_date: date
    bill_number: str | None = None
    category: str = ""
    subcategory: str = ""
    entity_id: UUID | None = None
    entity_name: str = ""
    entity_fiscal_id: str = ""
    taxes: list[tuple[str, Decimal]] = field(default_factory=list)
    is_tax_payment: bool = False
    related_tax_id: UUID | None = None
    verified: bool = False

    @property
    def category_key(self) -> tuple[str, str]:
        return (self.category.strip().upper(), self.subcategory.strip().upper())


def validate_row(raw: Mapping[str, Any]) -> ImportRow:
    """Validate one aliased row into an ImportRow.

    Raises:
        ValidationError: On the first missing or malformed field.
    """
    row = canonicalize(raw)

    description = row.get("description")
    if not description:
        raise MissingFieldError("description")

    if "movement_type" not in row:
        raise MissingFieldError("movementType")
    is_tax_payment = _parse_flag(row.get("is_tax_payment"))
    movement_type = MovementType.parse(str(row["movement_type"]).lower())
    if is_tax_payment:
        movement_type = MovementType.EXPENSE

    payment_type = row.get("payment_type")
    if not payment_type:
        raise MissingFieldError("paymentType")
    custom_payment_type = row.get("custom_payment_type")
    if payment_type == PaymentType.OTHER.value and not custom_payment_type:
        raise MissingFieldError("customPaymentType")

    amount = parse_amount(row.get("amount"))

    bill_number = row.get("bill_number")
    if not bill_number and movement_type.requires_bill_number:
        raise MissingFieldError("billNumber")
    raw_date = row.get("bill_date")
    bill_date = parse_date(normalize_date(raw_date) if isinstance(raw_date, str) else raw_date)

    if not is_tax_payment:
        if not row.get("category"):
            raise MissingFieldError("category")
        if not row.get("subcategory"):
            raise MissingFieldError("subCategory")

    entity_id = _parse_uuid(row.get("entity_id"), "entityId")
    entity_name = str(row.get("entity_name") or "")
    entity_fiscal_id = str(row.get("entity_fiscal_id") or "")
    if entity_id is None and not (entity_name and entity_fiscal_id):
        raise MissingFieldError(
            "entity", "An entity id, or an entity name and CUIT/CUIL, is required"
        )

    taxes = (
        []
        if is_tax_payment
        else parse_tax_cells(
            row.get("selected_taxes"), row.get("selected_taxes_percentages")
        )
    )

    return ImportRow(
        description=str(description),
        movement_type=movement_type,
        payment_type=payment_label(str(payment_type), custom_payment_type),
        amount=amount,
        bill_date=bill_date,
        bill_number=str(bill_number) if bill_number else None,
        category=str(row.get("category") or ""),
        subcategory=str(row.get("subcategory") or ""),
        entity_id=entity_id,
        entity_name=entity_name,
        entity_fiscal_id=entity_fiscal_id,
        taxes=taxes,
        is_tax_payment=is_tax_payment,
        related_tax_id=(
            _parse_uuid(row.get("related_tax_id"), "relatedTaxId") if is_tax_payment else None
        ),
        verified=_parse_flag(row.get("verified")),
    )


class MovementCSVParser:
    """Reader for semicolon-delimited movement exports.

    Returns the rows as header -> cell dictionaries; alias resolution and
    validation happen in validate_row.
    """

    def __init__(self, delimiter: str = ";") -> None:
        self._delimiter = delimiter

    def parse_text(self, text: str) -> list[dict[str, str]]:
        """Parse CSV text with a header row.

        Args:
            text: The whole file content.

        Returns:
            One dictionary per non-empty data row, in file order.
        """
        reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")), delimiter=self._delimiter)
        if reader.fieldnames is None:
            return []
        rows: list[dict[str, str]] = []
        for row in reader:
            cleaned = {
                (key or "").strip(): (value or "").strip()
                for key, value in row.items()
                if key is not None and not isinstance(value, list)
            }
            if any(cleaned.values()):
                rows.append(cleaned)
        return rows

    def parse_file(self, file_path: str | Path) -> list[dict[str, str]]:
        """Parse a CSV file.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"CSV file not found: {file_path}")
        return self.parse_text(path.read_text(encoding="utf-8-sig"))

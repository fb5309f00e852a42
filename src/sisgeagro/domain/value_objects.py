from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from dateutil import parser as date_parser  # type: ignore[import-untyped]

from sisgeagro.exceptions import InvalidAmountError, InvalidMovementTypeError, ValidationError


class MovementType(str, Enum):
    INCOME = "ingreso"
    EXPENSE = "egreso"
    INVESTMENT = "inversión"

    @classmethod
    def parse(cls, value: "str | MovementType") -> "MovementType":
        """Accept the stored Spanish values, their English names and 'inversion'."""
        if isinstance(value, MovementType):
            return value
        key = (value or "").strip().lower()
        movement_type = _MOVEMENT_TYPE_ALIASES.get(key)
        if movement_type is None:
            raise InvalidMovementTypeError(value)
        return movement_type

    @property
    def requires_bill_number(self) -> bool:
        return self is not MovementType.INCOME


_MOVEMENT_TYPE_ALIASES: dict[str, MovementType] = {
    "ingreso": MovementType.INCOME,
    "income": MovementType.INCOME,
    "egreso": MovementType.EXPENSE,
    "expense": MovementType.EXPENSE,
    "inversión": MovementType.INVESTMENT,
    "inversion": MovementType.INVESTMENT,
    "investment": MovementType.INVESTMENT,
}


class PaymentType(str, Enum):
    CASH = "Efectivo"
    DEBIT = "Débito"
    CREDIT = "Crédito"
    TRANSFER = "Transferencia"
    OTHER = "Otro"


# Marker that prefixes synthesized bill numbers.
AUTO_BILL_PREFIX = "AUTO-"

MOVEMENT_THRESHOLD_NOTIFICATION = "movement_threshold"


def payment_label(payment_type: str, custom_payment_type: str | None = None) -> str:
    """Label stored for a payment, substituting the custom text for 'Otro'."""
    if payment_type == PaymentType.OTHER.value:
        return (custom_payment_type or "").strip() or payment_type
    return payment_type


def parse_amount(value: Any) -> Decimal:
    """Parse a strictly positive amount, keeping the digits exactly as supplied."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidAmountError(value, "is required")
    if isinstance(value, bool):
        raise InvalidAmountError(value, "is not a number")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidAmountError(value, "is not a number") from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmountError(value)
    return amount


def parse_date(value: Any, field: str = "billDate") -> date:
    """Parse an ISO 8601 date (a trailing time part is dropped)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"Missing required field: {field}", context={"field": field})
    try:
        return date_parser.isoparse(text).date()
    except ValueError:
        raise ValidationError(
            f"Invalid date for {field}: {text}", context={"field": field, "value": text}
        ) from None

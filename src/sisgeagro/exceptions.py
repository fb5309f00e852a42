"""Domain exception hierarchy for SisGeAgro.

All application errors inherit from SisGeAgroError. Each class carries the
HTTP status the API answers with, so route handlers never translate errors
themselves.
"""

from typing import Any
from uuid import UUID


class SisGeAgroError(Exception):
    """Base exception for all SisGeAgro errors.

    Includes an error_code for API responses and optional extra context.
    """

    error_code: str = "SGA_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.message,
            "code": self.error_code,
            "context": self.context,
        }


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(SisGeAgroError):
    """Raised when a request is missing required data or carries invalid values."""

    error_code = "VALIDATION_ERROR"
    status_code = 400


class MissingFieldError(ValidationError):
    """Raised when a required field is absent or blank."""

    error_code = "MISSING_FIELD"

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Missing required field: {field}",
            context={"field": field},
        )


class InvalidAmountError(ValidationError):
    """Raised when an amount is not a positive number."""

    error_code = "INVALID_AMOUNT"

    def __init__(self, amount: Any, reason: str = "must be greater than zero") -> None:
        super().__init__(
            f"Invalid amount '{amount}': {reason}",
            context={"amount": str(amount), "reason": reason},
        )


class InvalidMovementTypeError(ValidationError):
    """Raised when a movement type is not one of the enumerated values."""

    error_code = "INVALID_MOVEMENT_TYPE"

    def __init__(self, movement_type: Any) -> None:
        super().__init__(
            f"Invalid movement type: {movement_type}",
            context={"movement_type": str(movement_type)},
        )


# =============================================================================
# Not Found Errors
# =============================================================================


class NotFoundError(SisGeAgroError):
    """Base exception for missing referenced resources."""

    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: UUID | str) -> None:
        super().__init__(
            f"{resource} not found: {resource_id}",
            context={"resource": resource, "id": str(resource_id)},
        )


class EntityNotFoundError(NotFoundError):
    error_code = "ENTITY_NOT_FOUND"

    def __init__(self, entity_id: UUID | str) -> None:
        super().__init__("Entity", entity_id)


class CategoryNotFoundError(NotFoundError):
    error_code = "CATEGORY_NOT_FOUND"

    def __init__(self, category_id: UUID | str) -> None:
        super().__init__("Category", category_id)


class SubcategoryNotFoundError(NotFoundError):
    error_code = "SUBCATEGORY_NOT_FOUND"

    def __init__(self, subcategory_id: UUID | str) -> None:
        super().__init__("Subcategory", subcategory_id)


class TaxNotFoundError(NotFoundError):
    error_code = "TAX_NOT_FOUND"

    def __init__(self, tax_id: UUID | str) -> None:
        super().__init__("Tax", tax_id)


class MovementNotFoundError(NotFoundError):
    """Raised when a movement does not exist or was already deleted."""

    error_code = "MOVEMENT_NOT_FOUND"

    def __init__(self, movement_id: UUID | str) -> None:
        SisGeAgroError.__init__(
            self,
            f"Movement {movement_id} does not exist or was already deleted",
            context={"resource": "Movement", "id": str(movement_id)},
        )


class OperationNotFoundError(NotFoundError):
    error_code = "OPERATION_NOT_FOUND"

    def __init__(self, operation_id: UUID | str) -> None:
        super().__init__("Operation", operation_id)


class BillNotFoundError(NotFoundError):
    error_code = "BILL_NOT_FOUND"

    def __init__(self, bill_id: UUID | str) -> None:
        super().__init__("Bill", bill_id)


# =============================================================================
# Database Errors
# =============================================================================


class DatabaseError(SisGeAgroError):
    """Any unexpected failure reported by the relational store.

    The driver's message is passed through unchanged.
    """

    error_code = "DATABASE_ERROR"
    status_code = 500


class IntegrityError(DatabaseError):
    """Raised when a database integrity constraint is violated."""

    error_code = "DATABASE_INTEGRITY_ERROR"
    status_code = 409


# =============================================================================
# Conflict Errors
# =============================================================================


class ConflictingEntityError(IntegrityError):
    """Raised when a name already belongs to an entity with another fiscal id."""

    error_code = "CONFLICTING_ENTITY"

    def __init__(self, name: str, existing_fiscal_id: str, fiscal_id: str) -> None:
        super().__init__(
            f"An entity named '{name}' already exists with a different fiscal id "
            f"({existing_fiscal_id} != {fiscal_id})",
            context={
                "name": name,
                "existing_fiscal_id": existing_fiscal_id,
                "fiscal_id": fiscal_id,
            },
        )


class DuplicateBillNumberError(IntegrityError):
    """Raised when a bill number is already in use."""

    error_code = "DUPLICATE_BILL_NUMBER"

    def __init__(self, detail: str = "") -> None:
        super().__init__(
            "The bill number already exists",
            context={"detail": detail} if detail else None,
        )


def integrity_error_from_driver(message: str) -> IntegrityError:
    """Map a driver constraint violation onto the matching domain error."""
    if "bill_number" in message:
        return DuplicateBillNumberError(message)
    return IntegrityError(message)


# =============================================================================
# Delivery Errors
# =============================================================================


class EmailDeliveryError(SisGeAgroError):
    """Raised when the mail relay refuses an explicitly requested email."""

    error_code = "EMAIL_DELIVERY_FAILED"
    status_code = 500

    def __init__(self, to: str) -> None:
        super().__init__(f"Error sending email to {to}", context={"to": to})

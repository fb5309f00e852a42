"""Movement lifecycle: create, edit (merge patch), delete and read.

A movement is written as a chain of rows resolved top-down:
entity, payment, bill, category, subcategory, operation, movement, tax lines.
Each write commits on its own; a failure part way leaves the rows already
written in place.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sisgeagro.domain.entities import Subcategory, TaxDefinition
from sisgeagro.domain.movements import Movement, MovementFilter, MovementView, TaxSelection
from sisgeagro.domain.value_objects import (
    MovementType,
    PaymentType,
    parse_amount,
    parse_date,
    payment_label,
)
from sisgeagro.exceptions import (
    BillNotFoundError,
    MissingFieldError,
    MovementNotFoundError,
    NotFoundError,
    OperationNotFoundError,
    SubcategoryNotFoundError,
)
from sisgeagro.logging_config import get_logger
from sisgeagro.repositories.interfaces import Repositories
from sisgeagro.services.entity_resolver import EntityResolver
from sisgeagro.services.notifications import NotificationService
from sisgeagro.services.taxonomy import TaxonomyResolver
from sisgeagro.services.writers import (
    OperationLinker,
    PaymentBillWriter,
    TaxLineWriter,
    auto_bill_number,
)

logger = get_logger(__name__)

# Keys accepted by MovementService.edit.
EDITABLE_FIELDS = frozenset(
    {
        "description",
        "amount",
        "payment_type",
        "custom_payment_type",
        "movement_type",
        "category",
        "subcategory",
        "category_id",
        "subcategory_id",
        "bill_number",
        "bill_date",
        "entity_id",
        "entity_name",
        "entity_fiscal_id",
        "selected_taxes",
        "is_tax_payment",
        "related_tax_id",
        "verified",
    }
)


@dataclass
class MovementDraft:
    """Everything a client submits to create one movement."""

    description: str | None
    amount: Decimal | str | None
    payment_type: str | None
    movement_type: MovementType | str | None
    created_by: str | None
    bill_date: date | str | None
    bill_number: str | None = None
    custom_payment_type: str | None = None
    category: str | None = None
    subcategory: str | None = None
    category_id: UUID | None = None
    subcategory_id: UUID | None = None
    entity_id: UUID | None = None
    entity_name: str | None = None
    entity_fiscal_id: str | None = None
    selected_taxes: list[TaxSelection] = field(default_factory=list)
    is_tax_payment: bool = False
    related_tax_id: UUID | None = None
    verified: bool = False


def _required_text(value: Any, field_name: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise MissingFieldError(field_name)
    return text


class MovementService:
    def __init__(
        self,
        repositories: Repositories,
        entity_resolver: EntityResolver,
        taxonomy: TaxonomyResolver,
        payment_bill_writer: PaymentBillWriter,
        operation_linker: OperationLinker,
        tax_line_writer: TaxLineWriter,
        notifications: NotificationService | None = None,
    ) -> None:
        self._repos = repositories
        self._entity_resolver = entity_resolver
        self._taxonomy = taxonomy
        self._payment_bill_writer = payment_bill_writer
        self._operation_linker = operation_linker
        self._tax_line_writer = tax_line_writer
        self._notifications = notifications

    def create(self, draft: MovementDraft) -> MovementView:
        description = _required_text(draft.description, "description")
        amount = parse_amount(draft.amount)
        payment_type = _required_text(draft.payment_type, "paymentType")
        if payment_type == PaymentType.OTHER.value:
            _required_text(draft.custom_payment_type, "customPaymentType")
        if draft.movement_type is None or draft.movement_type == "":
            raise MissingFieldError("movementType")
        movement_type = MovementType.parse(draft.movement_type)
        if draft.is_tax_payment:
            movement_type = MovementType.EXPENSE

        bill_number = (draft.bill_number or "").strip()
        if not bill_number and movement_type.requires_bill_number:
            raise MissingFieldError(
                "billNumber",
                f"Missing required field: billNumber (required for {movement_type.value} movements)",
            )
        bill_date = parse_date(draft.bill_date)

        if draft.entity_id is None and not (
            (draft.entity_name or "").strip() and (draft.entity_fiscal_id or "").strip()
        ):
            raise MissingFieldError(
                "entity", "An entity id, or an entity name and CUIT/CUIL, is required"
            )
        if not draft.is_tax_payment and draft.subcategory_id is None:
            _required_text(draft.category, "category")
            _required_text(draft.subcategory, "subCategory")
        created_by = _required_text(draft.created_by, "userId")

        related_tax: TaxDefinition | None = None
        if draft.is_tax_payment and draft.related_tax_id is not None:
            related_tax = self._tax_line_writer.get_definition(draft.related_tax_id)
        if not draft.is_tax_payment and draft.selected_taxes:
            self._tax_line_writer.require_definitions(draft.selected_taxes)

        entity = self._entity_resolver.resolve(
            draft.entity_name, draft.entity_fiscal_id, draft.entity_id
        )
        payment, bill = self._payment_bill_writer.write(
            payment_type,
            draft.custom_payment_type,
            bill_number,
            bill_date,
            amount,
            entity.id,
        )
        subcategory = self._resolve_subcategory(draft, related_tax)
        operation = self._operation_linker.link(payment.id, bill.id)

        movement = Movement(
            description=description,
            movement_type=movement_type,
            operation_id=operation.id,
            subcategory_id=subcategory.id,
            created_by=created_by,
            verified=draft.verified,
            is_tax_payment=draft.is_tax_payment,
            related_tax_id=related_tax.id if related_tax else None,
        )
        self._repos.movements.add(movement)

        if not movement.is_tax_payment:
            self._tax_line_writer.write(movement.id, amount, draft.selected_taxes)

        logger.info(
            "movement_created",
            movement_id=str(movement.id),
            movement_type=movement_type.value,
            amount=str(amount),
            created_by=created_by,
        )

        if self._notifications is not None:
            self._notifications.notify_movement_created(amount, movement.id)

        return self.get(movement.id)

    def edit(self, movement_id: UUID, changes: Mapping[str, Any]) -> MovementView:
        """Apply a merge patch: only the keys present in changes are modified.

        Tax lines are replaced wholesale when selected_taxes is present.
        """
        changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
        movement = self._get_movement(movement_id)
        operation = self._repos.operations.get(movement.operation_id)
        if operation is None:
            raise OperationNotFoundError(movement.operation_id)
        payment = self._repos.payments.get(operation.payment_id)
        if payment is None:
            raise NotFoundError("Payment", operation.payment_id)
        bill = self._repos.bills.get(operation.bill_id)
        if bill is None:
            raise BillNotFoundError(operation.bill_id)

        if "description" in changes:
            movement.description = _required_text(changes["description"], "description")
        if "movement_type" in changes:
            movement.movement_type = MovementType.parse(changes["movement_type"])
        if "verified" in changes:
            movement.verified = bool(changes["verified"])
        if "is_tax_payment" in changes:
            movement.is_tax_payment = bool(changes["is_tax_payment"])
        if "related_tax_id" in changes:
            related_tax_id = changes["related_tax_id"]
            if related_tax_id is not None:
                related_tax_id = self._tax_line_writer.get_definition(related_tax_id).id
            movement.related_tax_id = related_tax_id
        if movement.is_tax_payment:
            movement.movement_type = MovementType.EXPENSE
        else:
            movement.related_tax_id = None

        selections: Sequence[TaxSelection] = list(changes.get("selected_taxes") or [])
        if not movement.is_tax_payment and selections:
            self._tax_line_writer.require_definitions(selections)

        payment_changed = "payment_type" in changes or "custom_payment_type" in changes
        if payment_changed:
            custom = changes.get("custom_payment_type")
            selected = changes.get("payment_type") or (
                PaymentType.OTHER.value if custom else payment.payment_type
            )
            if selected == PaymentType.OTHER.value:
                _required_text(custom, "customPaymentType")
            payment.payment_type = payment_label(selected, custom)

        if "amount" in changes:
            bill.amount = parse_amount(changes["amount"])
        if "bill_date" in changes:
            bill.bill_date = parse_date(changes["bill_date"])
        if "bill_number" in changes:
            number = (changes["bill_number"] or "").strip()
            if not number:
                if movement.movement_type.requires_bill_number:
                    raise MissingFieldError("billNumber")
                number = auto_bill_number()
            bill.bill_number = number

        if changes.get("entity_id"):
            entity = self._entity_resolver.resolve(None, None, changes["entity_id"])
            bill.entity_id = entity.id
        elif "entity_fiscal_id" in changes or "entity_name" in changes:
            current = self._repos.entities.get(bill.entity_id) if bill.entity_id else None
            entity = self._entity_resolver.resolve_for_edit(
                changes.get("entity_name"), changes.get("entity_fiscal_id"), current
            )
            if entity is not None:
                bill.entity_id = entity.id

        subcategory = self._resolve_edited_subcategory(movement, changes)
        if subcategory is not None:
            movement.subcategory_id = subcategory.id

        if payment_changed:
            self._repos.payments.update(payment)
        self._repos.bills.update(bill)
        self._repos.movements.update(movement)

        if movement.is_tax_payment:
            # A tax payment never carries tax lines of its own.
            self._tax_line_writer.replace(movement.id, bill.amount, [])
        elif "selected_taxes" in changes:
            self._tax_line_writer.replace(movement.id, bill.amount, selections)

        logger.info(
            "movement_edited", movement_id=str(movement.id), fields=sorted(changes)
        )
        return self.get(movement.id)

    def delete(self, movement_id: UUID) -> None:
        """Delete a movement with its tax lines, operation, payment and bill.

        The operation row holds the references to the payment and the bill, so
        it goes before them.
        """
        movement = self._get_movement(movement_id)

        self._repos.movement_taxes.delete_by_movement(movement.id)
        if not self._repos.movements.delete(movement.id):
            raise MovementNotFoundError(movement.id)

        operation = self._repos.operations.get(movement.operation_id)
        if operation is None:
            raise OperationNotFoundError(movement.operation_id)
        self._repos.operations.delete(operation.id)
        self._repos.payments.delete(operation.payment_id)
        self._repos.bills.delete(operation.bill_id)

        logger.info("movement_deleted", movement_id=str(movement.id))

    def get(self, movement_id: UUID) -> MovementView:
        view = self._repos.movements.get_view(movement_id)
        if view is None:
            raise MovementNotFoundError(movement_id)
        return view

    def list_movements(
        self, movement_filter: MovementFilter | None = None
    ) -> list[MovementView]:
        return self._repos.movements.list_views(movement_filter)

    def _get_movement(self, movement_id: UUID) -> Movement:
        movement = self._repos.movements.get(movement_id)
        if movement is None:
            raise MovementNotFoundError(movement_id)
        return movement

    def _resolve_subcategory(
        self, draft: MovementDraft, related_tax: TaxDefinition | None
    ) -> Subcategory:
        if draft.is_tax_payment:
            _, subcategory = self._taxonomy.resolve_tax_payment(related_tax)
        elif draft.subcategory_id is not None:
            _, subcategory = self._taxonomy.resolve_by_ids(
                draft.category_id, draft.subcategory_id
            )
        else:
            _, subcategory = self._taxonomy.resolve(draft.category, draft.subcategory)
        return subcategory

    def _resolve_edited_subcategory(
        self, movement: Movement, changes: Mapping[str, Any]
    ) -> Subcategory | None:
        if movement.is_tax_payment and (
            "is_tax_payment" in changes or "related_tax_id" in changes
        ):
            related_tax = (
                self._tax_line_writer.get_definition(movement.related_tax_id)
                if movement.related_tax_id
                else None
            )
            _, subcategory = self._taxonomy.resolve_tax_payment(related_tax)
            return subcategory

        if changes.get("subcategory_id"):
            _, subcategory = self._taxonomy.resolve_by_ids(
                changes.get("category_id"), changes["subcategory_id"]
            )
            return subcategory

        if "category" in changes or "subcategory" in changes:
            current = self._repos.subcategories.get(movement.subcategory_id)
            if current is None:
                raise SubcategoryNotFoundError(movement.subcategory_id)
            category_text = (
                changes.get("category") or self._taxonomy.category_of(current).description
            )
            subcategory_text = changes.get("subcategory") or current.description
            _, subcategory = self._taxonomy.resolve(category_text, subcategory_text)
            return subcategory

        return None

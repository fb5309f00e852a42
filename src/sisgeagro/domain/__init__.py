from sisgeagro.domain.entities import Category, Entity, Subcategory, TaxDefinition
from sisgeagro.domain.movements import (
    Bill,
    Movement,
    MovementFilter,
    MovementTaxLine,
    MovementView,
    Operation,
    PaymentMethod,
    TaxLineView,
    TaxSelection,
)
from sisgeagro.domain.notifications import Notification, NotificationSettings, Profile
from sisgeagro.domain.value_objects import MovementType, PaymentType

__all__ = [
    "Bill",
    "Category",
    "Entity",
    "Movement",
    "MovementFilter",
    "MovementTaxLine",
    "MovementType",
    "MovementView",
    "Notification",
    "NotificationSettings",
    "Operation",
    "PaymentMethod",
    "PaymentType",
    "Profile",
    "Subcategory",
    "TaxDefinition",
    "TaxLineView",
    "TaxSelection",
]

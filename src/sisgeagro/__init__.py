from sisgeagro.domain.entities import Category, Entity, Subcategory, TaxDefinition
from sisgeagro.domain.movements import Bill, Movement, MovementTaxLine, Operation, PaymentMethod
from sisgeagro.domain.value_objects import MovementType, PaymentType

__all__ = [
    "Bill",
    "Category",
    "Entity",
    "Movement",
    "MovementTaxLine",
    "MovementType",
    "Operation",
    "PaymentMethod",
    "PaymentType",
    "Subcategory",
    "TaxDefinition",
]

__version__ = "0.1.0"

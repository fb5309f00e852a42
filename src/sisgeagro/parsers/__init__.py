"""Parsers for movement imports."""

from sisgeagro.parsers.csv_parser import (
    COLUMN_ALIASES,
    ImportRow,
    MovementCSVParser,
    normalize_date,
    parse_tax_cells,
    validate_row,
)

__all__ = [
    "COLUMN_ALIASES",
    "ImportRow",
    "MovementCSVParser",
    "normalize_date",
    "parse_tax_cells",
    "validate_row",
]

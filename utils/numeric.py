"""
Numeric and text helpers shared by the conversion engine and the sheet records.

Quantities in the warehouse sheets are written the Vietnamese way: a comma
is the decimal separator and dots group thousands ("1.234,5").
"""

import unicodedata
from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")


def parse_vn_number(value: Any) -> Decimal:
    """
    Parse a sheet cell into a Decimal.

    Args:
        value: Cell value (str, int, float, Decimal or None)

    Returns:
        Decimal: Parsed value, or 0 when the cell is empty or not a number
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))

    str_value = str(value).strip()
    if not str_value or str_value.startswith("#"):
        # Empty or a Sheets formula error (#REF!, #N/A, ...)
        return ZERO

    clean_value = str_value.replace(".", "").replace(",", ".", 1)
    try:
        parsed = Decimal(clean_value)
    except InvalidOperation:
        return ZERO
    if not parsed.is_finite():
        return ZERO
    return parsed


def format_vn_number(value: Any) -> str:
    """Format a quantity for the sheet: '17,5', '4', '0,25'."""
    number = value if isinstance(value, Decimal) else parse_vn_number(value)
    if number == number.to_integral_value():
        return str(number.quantize(Decimal(1)))
    text = format(number.normalize(), "f")
    return text.replace(".", ",")


def normalize_unit(unit: Any) -> str:
    """Normalize a unit name for comparison: trim, lowercase and strip diacritics."""
    text = str(unit or "").strip().lower()
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_position(code: Any) -> str:
    """Positions compare case-insensitively."""
    return str(code or "").strip().upper()

"""
Unit conversion for partial exports.

Every unit of a product converts to a common base, its small unit. When a
worker exports in a finer unit than the line is stocked in, whole source
units are opened (rounded up so stock is never under-charged) and whatever
is left over comes back as a new line in the export unit.

Example: 5 thùng (12 cái each), export 7 cái
    -> consume ceil(7 / 12) = 1 thùng, re-shelve 12 - 7 = 5 cái
"""

import logging
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Optional

from constants.schemas import ConversionResult, Product
from utils.errors import UnsupportedUnitError
from utils.numeric import ZERO, normalize_unit, parse_vn_number

logger = logging.getLogger(__name__)

ONE = Decimal(1)

# Remainders are kept to six decimal places (1/3 of a tier never terminates)
QUANTITY_STEP = Decimal("0.000001")


def same_unit(unit_a: str, unit_b: str) -> bool:
    return normalize_unit(unit_a) == normalize_unit(unit_b)


def ratio_to_small(unit: str, product: Optional[Product]) -> Decimal:
    """
    How many small units one `unit` is worth for this product.

    Returns:
        Decimal: 1 for the small tier, the cumulative ratio for medium/large,
                 or 0 when the unit is not one of the product's tiers.
    """
    if product is None:
        return ZERO
    n_unit = normalize_unit(unit)
    if not n_unit:
        return ZERO

    if n_unit == normalize_unit(product.uom_small):
        return ONE
    if n_unit == normalize_unit(product.uom_medium):
        return max(product.ratio_small_to_medium, ZERO)
    if n_unit == normalize_unit(product.uom_large):
        return max(product.ratio_medium_to_large * product.ratio_small_to_medium, ZERO)
    return ZERO


def compute_conversion(
    current_qty: Decimal,
    current_unit: str,
    export_qty: Decimal,
    export_unit: str,
    product: Optional[Product],
) -> ConversionResult:
    """
    Work out how much of a line is consumed by an export.

    Args:
        current_qty: Quantity on the line, in current_unit
        current_unit: Unit the line is stocked in
        export_qty: Requested export quantity, in export_unit
        export_unit: Requested unit; empty means current_unit
        product: Product master data, needed only when the units differ

    Returns:
        ConversionResult: consumed (current_unit), remainder (export_unit) and
        whether the line holds enough stock

    Raises:
        UnsupportedUnitError: If the units differ and either one is not a tier of the product
    """
    current_qty = parse_vn_number(current_qty)
    export_qty = parse_vn_number(export_qty)
    export_unit = export_unit or current_unit

    if same_unit(export_unit, current_unit):
        consumed = export_qty
        remainder = ZERO
    else:
        current_ratio = ratio_to_small(current_unit, product)
        target_ratio = ratio_to_small(export_unit, product)
        product_code = product.code if product else ""
        if current_ratio <= 0:
            raise UnsupportedUnitError(current_unit, product_code)
        if target_ratio <= 0:
            raise UnsupportedUnitError(export_unit, product_code)

        split_in_small = export_qty * target_ratio
        consumed = (split_in_small / current_ratio).to_integral_value(rounding=ROUND_CEILING)
        remainder_in_small = consumed * current_ratio - split_in_small
        remainder = (remainder_in_small / target_ratio).quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)
        logger.debug(
            f"Converted {export_qty} {export_unit} -> consume {consumed} {current_unit}, "
            f"remainder {remainder} {export_unit}"
        )

    return ConversionResult(
        consumed=consumed,
        remainder=remainder,
        is_valid=consumed <= current_qty,
        available=current_qty,
        current_unit=current_unit,
        export_unit=export_unit,
    )

"""
Error types raised by the warehouse core.

Every error carries a machine-readable ``code`` that the API returns
verbatim, and the HTTP status it maps to.
"""

from typing import Any, Dict, Optional


class WarehouseError(Exception):
    """Base error for warehouse operations."""

    status_code = 500

    def __init__(self, code: str, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message or code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.code, "message": self.message}
        payload.update(self.details)
        return payload


class ValidationError(WarehouseError):
    """Rejected before touching the store."""

    status_code = 400


class NotFoundError(WarehouseError):
    status_code = 404


class InsufficientStockError(WarehouseError):
    """An export would consume more than the line holds."""

    status_code = 409

    def __init__(self, requested, available, unit: str):
        self.requested = requested
        self.available = available
        self.unit = unit
        super().__init__(
            "INSUFFICIENT_STOCK",
            f"Export quantity ({requested} {unit}) exceeds stock ({available} {unit})",
            {"requested": str(requested), "available": str(available), "unit": unit},
        )


class UnsupportedUnitError(WarehouseError):
    """A unit is not one of the product's three tiers."""

    status_code = 422

    def __init__(self, unit: str, product_code: str = ""):
        self.unit = unit
        self.product_code = product_code
        super().__init__(
            "UNSUPPORTED_UNIT",
            f"Unit '{unit}' cannot be converted for product '{product_code}'",
            {"unit": unit, "productCode": product_code},
        )


class PositionConflictError(WarehouseError):
    status_code = 409

    def __init__(self, position: str, occupant: str):
        self.position = position
        self.occupant = occupant
        super().__init__(
            "POSITION_CONFLICT",
            f"Position {position} is already occupied by lot {occupant}",
            {"position": position, "currentOccupant": occupant},
        )


class LedgerStoreError(WarehouseError):
    """The spreadsheet backend failed a read or write."""

    status_code = 502

from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from constants.data_models import (
    DELETED_LOT_COPIED_COLUMNS,
    LOT_COL,
    LOT_POS_COL,
    PRODUCT_COL,
)
from utils.errors import InsufficientStockError
from utils.numeric import format_vn_number, parse_vn_number


def _cell(row: List[Any], idx: int) -> str:
    if idx < len(row) and row[idx] is not None:
        return str(row[idx])
    return ""


# --- Sheet records ---


class Product(BaseModel):
    """Product master data with its three-tier unit hierarchy"""

    code: str
    name: str = ""
    group: str = ""
    uom_small: str = Field(alias="uomSmall", default="")
    uom_medium: str = Field(alias="uomMedium", default="")
    uom_large: str = Field(alias="uomLarge", default="")
    # How many small units make one medium unit
    ratio_small_to_medium: Decimal = Field(alias="ratioSmallToMedium", default=Decimal(0))
    # How many medium units make one large unit
    ratio_medium_to_large: Decimal = Field(alias="ratioMediumToLarge", default=Decimal(0))
    spec: str = ""
    description: str = ""
    image_url: str = Field(alias="imageUrl", default="")
    row_index: Optional[int] = Field(alias="rowIndex", default=None)

    class Config:
        populate_by_name = True

    @field_validator("ratio_small_to_medium", "ratio_medium_to_large", mode="before")
    @classmethod
    def _parse_ratio(cls, value):
        return parse_vn_number(value)

    @classmethod
    def from_row(cls, row: List[Any], row_index: Optional[int] = None) -> "Product":
        return cls(
            code=_cell(row, PRODUCT_COL["code"]).strip(),
            name=_cell(row, PRODUCT_COL["name"]).strip(),
            group=_cell(row, PRODUCT_COL["group"]).strip(),
            uom_small=_cell(row, PRODUCT_COL["uom_small"]).strip(),
            uom_medium=_cell(row, PRODUCT_COL["uom_medium"]).strip(),
            uom_large=_cell(row, PRODUCT_COL["uom_large"]).strip(),
            ratio_small_to_medium=_cell(row, PRODUCT_COL["ratio_small_to_medium"]),
            ratio_medium_to_large=_cell(row, PRODUCT_COL["ratio_medium_to_large"]),
            spec=_cell(row, PRODUCT_COL["spec"]),
            description=_cell(row, PRODUCT_COL["description"]),
            image_url=_cell(row, PRODUCT_COL["image_url"]),
            row_index=row_index,
        )


class LotLine(BaseModel):
    """One row of the `lot` table: a quantity of one product, in one unit, inside one lot"""

    lot_code: str = Field(alias="lotCode")
    product_code: str = Field(alias="productCode", default="")
    product_name: str = Field(alias="productName", default="")
    product_type: str = Field(alias="productType", default="")
    peel_date: str = Field(alias="peelDate", default="")
    pack_date: str = Field(alias="packDate", default="")
    qc: str = ""
    production_date: str = Field(alias="productionDate", default="")
    expiry_date: str = Field(alias="expiryDate", default="")
    notes: str = ""
    quantity: Decimal = Decimal(0)
    unit: str = ""
    shots: str = ""
    image_url: str = Field(alias="imageUrl", default="")
    position: str = ""
    reference: str = ""
    status: str = ""
    merged_to: str = Field(alias="mergedTo", default="")
    deleted_reason: str = Field(alias="deletedReason", default="")
    # 0-based index of the row in the table values, header included
    row_index: Optional[int] = Field(alias="rowIndex", default=None, exclude=True)
    # Cells as read from the sheet; unchanged fields are written back from here verbatim
    raw_row: List[Any] = Field(default_factory=list, exclude=True)

    class Config:
        populate_by_name = True

    @field_validator("quantity", mode="before")
    @classmethod
    def _parse_quantity(cls, value):
        return parse_vn_number(value)

    @classmethod
    def from_row(cls, row: List[Any], row_index: Optional[int] = None) -> "LotLine":
        values = {name: _cell(row, idx) for name, idx in LOT_COL.items()}
        values["lot_code"] = values["lot_code"].strip()
        values["position"] = values["position"].strip()
        return cls(row_index=row_index, raw_row=list(row), **values)

    def to_row(self) -> List[Any]:
        """
        Sheet row for this line. Cells whose field still matches what was read
        keep their original text ("1.234,50" stays "1.234,50"); only fields an
        export changed are re-serialized.
        """
        read_back = LotLine.from_row(self.raw_row) if self.raw_row else None
        row = []
        for name, idx in LOT_COL.items():
            value = getattr(self, name)
            if read_back is not None and getattr(read_back, name) == value:
                row.append(self.raw_row[idx] if idx < len(self.raw_row) else "")
            elif name == "quantity":
                row.append(format_vn_number(value))
            else:
                row.append(value)
        return row


class DeletionLedgerEntry(BaseModel):
    """Write-once copy of an exported lot line"""

    line: LotLine
    deleted_at: str = Field(alias="deletedAt")
    deleted_by: str = Field(alias="deletedBy", default="")
    reason: str

    class Config:
        populate_by_name = True

    def to_row(self) -> List[str]:
        copied = self.line.to_row()[:DELETED_LOT_COPIED_COLUMNS]
        while len(copied) < DELETED_LOT_COPIED_COLUMNS:
            copied.append("")
        return copied + [self.deleted_at, self.deleted_by, self.reason]


class PositionAssignment(BaseModel):
    """One `lot_pos` entry mapping a lot to its storage slot"""

    lot_code: str = Field(alias="lotCode")
    position: str = ""
    row_index: Optional[int] = Field(alias="rowIndex", default=None)

    class Config:
        populate_by_name = True

    @classmethod
    def from_row(cls, row: List[Any], row_index: Optional[int] = None) -> "PositionAssignment":
        return cls(
            lot_code=_cell(row, LOT_POS_COL["lot_code"]).strip(),
            position=_cell(row, LOT_POS_COL["position"]).strip(),
            row_index=row_index,
        )

    def to_row(self) -> List[str]:
        return [self.lot_code, self.position]


class ScannedItem(BaseModel):
    """A lot scanned on the device, waiting to be synced"""

    id: str
    timestamp: int
    position: str = ""
    synced: bool = False


# --- Export ---


class ExportSelection(BaseModel):
    """Quantity to take from one line of a lot in PARTIAL mode"""

    line_index: int = Field(alias="lineIndex")
    quantity: Decimal
    unit: str = ""

    class Config:
        populate_by_name = True

    @field_validator("quantity", mode="before")
    @classmethod
    def _parse_quantity(cls, value):
        return parse_vn_number(value)


class ExportRequest(BaseModel):
    lot_code: str = Field(alias="lotCode", default="")
    mode: str = "FULL"
    reason: str = ""
    deleted_by: str = Field(alias="deletedBy", default="")
    items: List[ExportSelection] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class ExportResult(BaseModel):
    ok: bool
    message: str
    deleted_rows: int = Field(alias="deletedRows")

    class Config:
        populate_by_name = True


# --- Position sync ---


class SyncItem(BaseModel):
    """One queued scan; malformed fields are coerced so the item fails on its own, not the batch"""

    id: str = ""
    position: str = ""
    timestamp: Optional[int] = None

    @field_validator("id", "position", mode="before")
    @classmethod
    def _coerce_text(cls, value):
        # Barcodes can arrive as numbers, missing fields as null
        return "" if value is None else str(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value):
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            return None


class SyncRequest(BaseModel):
    items: List[SyncItem] = Field(default_factory=list)
    username: str = ""


class SyncItemResult(BaseModel):
    lot_code: str = Field(alias="lotCode")
    success: bool
    code: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None
    conflict: bool = False
    current_occupant: Optional[str] = Field(alias="currentOccupant", default=None)
    old_position: Optional[str] = Field(alias="oldPosCode", default=None)

    class Config:
        populate_by_name = True


class SyncResult(BaseModel):
    success: bool = True
    total: int
    success_count: int = Field(alias="successCount")
    fail_count: int = Field(alias="failCount")
    results: List[SyncItemResult]

    class Config:
        populate_by_name = True


# --- Conversion preview ---


class ConversionRequest(BaseModel):
    product_code: str = Field(alias="productCode")
    current_qty: Decimal = Field(alias="currentQty")
    current_unit: str = Field(alias="currentUnit")
    export_qty: Decimal = Field(alias="exportQty")
    export_unit: str = Field(alias="exportUnit", default="")

    class Config:
        populate_by_name = True

    @field_validator("current_qty", "export_qty", mode="before")
    @classmethod
    def _parse_quantity(cls, value):
        return parse_vn_number(value)


class ConversionResult(BaseModel):
    """Outcome of taking `export_qty export_unit` out of a line holding `available current_unit`"""

    consumed: Decimal  # in current_unit, deducted from the source line
    remainder: Decimal  # in export_unit, re-shelved as a new line
    is_valid: bool = Field(alias="isValid")
    available: Decimal
    current_unit: str = Field(alias="currentUnit")
    export_unit: str = Field(alias="exportUnit")

    class Config:
        populate_by_name = True

    def require_valid(self) -> "ConversionResult":
        if not self.is_valid:
            raise InsufficientStockError(self.consumed, self.available, self.current_unit)
        return self

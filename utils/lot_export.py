"""
Exporting (consuming) stock out of a lot.

FULL mode moves every line of the lot to the `deletelot` ledger. PARTIAL mode
takes selected quantities from selected lines, converting between unit tiers
when the worker exports in a different unit than the line is stocked in.

The store has no transactions, so an export is written as three ordered steps:

    1. append the exported rows to the deletion ledger
    2. delete the lot's current rows (bottom-up)
    3. append the surviving and remainder rows back to the lot table

A crash between steps favours over-recording: the ledger may hold a row whose
remainder never made it back, but stock is never exported silently. A retry
re-reads the lot first and reports LOT_NOT_FOUND once it is gone.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from constants.schemas import (
    DeletionLedgerEntry,
    ExportResult,
    ExportSelection,
    LotLine,
    Product,
)
from constants.sheets import DELETED_LOTS_SHEET_RANGE, LOTS_SHEET_RANGE, get_tab
from utils.conversion import compute_conversion, same_unit
from utils.errors import LedgerStoreError, NotFoundError, ValidationError
from utils.lots import load_lot_lines
from utils.numeric import ZERO, format_vn_number
from utils.vn_datetime import get_vn_timestamp

logger = logging.getLogger(__name__)

FULL = "FULL"
PARTIAL = "PARTIAL"
EXPORT_MODES = (FULL, PARTIAL)

DELETED_LOTS_APPEND_RANGE = f"{get_tab(DELETED_LOTS_SHEET_RANGE)}!A:S"


def plan_full_export(lines: List[LotLine]) -> Tuple[List[LotLine], List[LotLine]]:
    """Every line is exported verbatim; nothing survives."""
    return [line.model_copy() for line in lines], []


def plan_partial_export(
    lines: List[LotLine],
    selections: Sequence[ExportSelection],
    get_product: Callable[[str], Optional[Product]],
) -> Tuple[List[LotLine], List[LotLine]]:
    """
    Apply selections to an in-memory copy of the lot.

    Selections are processed in order against the working copy, so two
    selections on the same line see each other's deductions. The first
    failing selection raises before anything is written.

    Returns:
        Tuple of (exported lines, surviving lines)
    """
    working = [line.model_copy() for line in lines]
    exported: List[LotLine] = []

    for selection in selections:
        idx = selection.line_index
        if idx < 0 or idx >= len(working):
            raise ValidationError("INVALID_LINE_INDEX", f"Line index {idx} is out of range", {"lineIndex": idx})
        if selection.quantity <= 0:
            raise ValidationError(
                "INVALID_QUANTITY",
                f"Export quantity must be positive (line {idx})",
                {"lineIndex": idx},
            )

        line = working[idx]
        export_unit = (selection.unit or "").strip() or line.unit
        product = None if same_unit(export_unit, line.unit) else get_product(line.product_code)

        result = compute_conversion(line.quantity, line.unit, selection.quantity, export_unit, product)
        result.require_valid()

        exported.append(line.model_copy(update={"quantity": selection.quantity, "unit": export_unit}))

        line.quantity = line.quantity - result.consumed
        if result.remainder > 0:
            working.append(
                line.model_copy(update={"quantity": result.remainder, "unit": export_unit, "row_index": None})
            )

    surviving = [line for line in working if line.quantity > ZERO]
    return exported, surviving


class LotExporter:
    """Applies FULL/PARTIAL exports of a lot to the ledger store."""

    def __init__(self, store, catalog=None, audit=None, clock: Callable[[], str] = get_vn_timestamp):
        self.store = store
        self.catalog = catalog
        self.audit = audit
        self.clock = clock

    def _product_lookup(self) -> Callable[[str], Optional[Product]]:
        """Loads the catalog at most once per export, and only if a conversion needs it."""
        cache: Dict[str, Product] = {}
        loaded = []

        def lookup(code: str) -> Optional[Product]:
            if self.catalog is None:
                return None
            if not loaded:
                cache.update(self.catalog.products_by_code())
                loaded.append(True)
            return cache.get(code)

        return lookup

    def export_lot(
        self,
        lot_code: str,
        mode: str = FULL,
        reason: str = "",
        selections: Optional[Sequence[ExportSelection]] = None,
        deleted_by: str = "",
    ) -> ExportResult:
        lot_code = (lot_code or "").strip()
        mode = (mode or FULL).strip().upper()
        reason = (reason or "").strip()
        selections = list(selections or [])

        if not lot_code:
            raise ValidationError("LOT_CODE_REQUIRED", "Lot code is required")
        if mode not in EXPORT_MODES:
            raise ValidationError("INVALID_MODE", f"Unknown export mode: {mode}")
        if not reason:
            raise ValidationError("REASON_REQUIRED", "A reason is required to export a lot")
        if mode == PARTIAL and not selections:
            raise ValidationError("NO_ITEMS_TO_EXPORT", "No items selected for partial export")

        lines = load_lot_lines(self.store, lot_code)
        if not lines:
            raise NotFoundError("LOT_NOT_FOUND", f"Lot {lot_code} not found")

        if mode == FULL:
            exported, surviving = plan_full_export(lines)
        else:
            exported, surviving = plan_partial_export(lines, selections, self._product_lookup())

        deleted_at = self.clock()
        ledger_rows = [
            DeletionLedgerEntry(line=line, deleted_at=deleted_at, deleted_by=deleted_by, reason=reason).to_row()
            for line in exported
        ]
        surviving_rows = [line.to_row() for line in surviving]

        self._apply(lot_code, lines, ledger_rows, surviving_rows)

        if self.audit is not None:
            products = [
                f"{line.product_code} ({line.product_name}): {format_vn_number(line.quantity)} {line.unit}"
                for line in exported
                if line.product_code
            ]
            self.audit.record(
                "/api/lots/export",
                {
                    "lotCode": lot_code,
                    "mode": mode,
                    "reason": reason,
                    "deletedRows": len(ledger_rows),
                    "products": "; ".join(products),
                },
                username=deleted_by,
                ts=deleted_at,
            )

        message = "Exported entire lot" if mode == FULL else "Exported part of lot"
        logger.info(f"{message} {lot_code}: {len(ledger_rows)} ledger rows, {len(surviving_rows)} lines remain")
        return ExportResult(ok=True, message=message, deleted_rows=len(ledger_rows))

    def _apply(
        self,
        lot_code: str,
        lines: List[LotLine],
        ledger_rows: List[List[str]],
        surviving_rows: List[List[str]],
    ) -> None:
        """Runs the three write steps in order, reporting how far it got on failure."""
        completed: List[str] = []

        def run(step: str, action: Callable[[], object]) -> None:
            try:
                action()
            except LedgerStoreError as e:
                logger.error(f"Export of {lot_code} stopped at step '{step}' after {completed}: {e.message}")
                e.details.update({"lotCode": lot_code, "failedStep": step, "completedSteps": list(completed)})
                raise
            completed.append(step)

        run("append_ledger", lambda: self.store.append_rows(DELETED_LOTS_APPEND_RANGE, ledger_rows))
        run("delete_lot_rows", lambda: self.store.delete_rows(LOTS_SHEET_RANGE, self._current_row_indices(lot_code, lines)))
        if surviving_rows:
            run("append_remaining", lambda: self.store.append_rows(LOTS_SHEET_RANGE, surviving_rows))

    def _current_row_indices(self, lot_code: str, lines: List[LotLine]) -> List[int]:
        """
        Re-locate the lot's rows right before deleting them.

        Other clients may have inserted or removed rows since the lot was read;
        deleting by stale indices would remove someone else's rows.
        """
        fresh = load_lot_lines(self.store, lot_code)
        if len(fresh) != len(lines):
            raise LedgerStoreError(
                "LOT_CHANGED",
                f"Lot {lot_code} changed while exporting ({len(lines)} lines read, {len(fresh)} now)",
            )
        return sorted((line.row_index for line in fresh), reverse=True)

"""
Position assignment sync for lots scanned offline.

Each queued (lot, position) pair is applied on its own, in order:

    read lot_pos fresh -> conflict check -> no-op check -> upsert lot_pos
    -> mirror the position into the lot's rows -> audit

The no-op check covers both lot_pos and the lot's own rows, so retrying an
item whose mirror write failed repairs the lot rows without touching lot_pos.

The read is repeated for every item so that an item sees the writes of the
items before it in the same batch. Two batches running at the same time can
still both pass the conflict check and double-book a slot; the sheet offers
no lock or compare-and-swap to close that window.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from constants.data_models import LOT_COL, LOT_POS_COL
from constants.schemas import SyncItem, SyncItemResult, SyncResult
from constants.sheets import LOT_POS_SHEET_RANGE, LOTS_SHEET_RANGE, get_tab
from utils.errors import NotFoundError, PositionConflictError, WarehouseError
from utils.lots import load_assignments, load_lot_lines
from utils.numeric import normalize_position

logger = logging.getLogger(__name__)

LOT_POS_APPEND_RANGE = f"{get_tab(LOT_POS_SHEET_RANGE)}!A:B"

ALREADY_ASSIGNED = "Already assigned"


class PositionReconciler:
    def __init__(self, store, audit=None):
        self.store = store
        self.audit = audit

    def assign(self, lot_code: str, position: str, username: str = "", name: str = "") -> SyncItemResult:
        """
        Assign one lot to one position.

        Raises:
            PositionConflictError: Another lot holds the position
            NotFoundError: The lot has no rows in the lot table
        """
        target = normalize_position(position)

        assignments = load_assignments(self.store)
        occupant = find_occupant(assignments, position, lot_code)
        if occupant:
            raise PositionConflictError(position, occupant)

        existing = next((a for a in assignments if a.lot_code == lot_code), None)
        lines = load_lot_lines(self.store, lot_code)

        if existing is not None and normalize_position(existing.position) == target:
            # lot_pos is current, but an earlier failed mirror write can leave stale lot rows
            stale = [line for line in lines if normalize_position(line.position) != target]
            if not stale:
                logger.info(f"Lot {lot_code} already at {position}, nothing to write")
                return SyncItemResult(
                    lot_code=lot_code, success=True, message=ALREADY_ASSIGNED, old_position=existing.position
                )
            old_position = stale[0].position
            lines = stale
            action = "mirror"
        elif not lines:
            raise NotFoundError("LOT_NOT_FOUND", f"Lot {lot_code} not found")
        elif existing is not None:
            old_position = existing.position
            self.store.update_cells(
                LOT_POS_SHEET_RANGE,
                [(existing.row_index, LOT_POS_COL["position"], position)],
            )
            action = "reassign"
        else:
            old_position = lines[0].position
            self.store.append_rows(LOT_POS_APPEND_RANGE, [[lot_code, position]])
            action = "assign"

        self.store.update_cells(
            LOTS_SHEET_RANGE,
            [(line.row_index, LOT_COL["position"], position) for line in lines],
        )

        if self.audit is not None:
            details: Dict[str, Any] = {"lotCode": lot_code, "posCode": position, "action": action}
            if old_position and old_position != position:
                details["oldPosCode"] = old_position
            self.audit.record("/api/scanner/sync", details, username=username, name=name, method="PUT")

        logger.info(f"Lot {lot_code}: {action} {old_position or '-'} -> {position}")
        return SyncItemResult(lot_code=lot_code, success=True, old_position=old_position or None)

    def sync_assignments(
        self,
        items: Iterable[Union[SyncItem, Dict[str, Any]]],
        username: str = "",
        name: str = "",
    ) -> SyncResult:
        """
        Apply a batch of queued assignments one at a time.

        A failing item never stops the batch and nothing is rolled back;
        each item gets its own result.
        """
        items = [item if isinstance(item, SyncItem) else SyncItem.model_validate(item) for item in items]
        logger.info(f"=== SCANNER SYNC START: {len(items)} items ===")

        results: List[SyncItemResult] = []
        for item in items:
            lot_code = (item.id or "").strip()
            position = (item.position or "").strip()

            if not lot_code or not position:
                results.append(
                    SyncItemResult(lot_code=lot_code, success=False, code="MISSING_DATA", error="Missing data")
                )
                continue

            results.append(self._sync_one(lot_code, position, username, name))

        success_count = sum(1 for r in results if r.success)
        fail_count = len(results) - success_count
        logger.info(f"=== SYNC DONE: {success_count} OK, {fail_count} FAIL ===")
        return SyncResult(
            total=len(items),
            success_count=success_count,
            fail_count=fail_count,
            results=results,
        )

    def _sync_one(self, lot_code: str, position: str, username: str, name: str) -> SyncItemResult:
        try:
            return self.assign(lot_code, position, username=username, name=name)
        except PositionConflictError as e:
            logger.warning(f"[SYNC] Conflict for {lot_code}: {e.message}")
            return SyncItemResult(
                lot_code=lot_code,
                success=False,
                code=e.code,
                error=e.message,
                conflict=True,
                current_occupant=e.occupant,
            )
        except WarehouseError as e:
            logger.warning(f"[SYNC] {lot_code} rejected: {e.code}")
            return SyncItemResult(lot_code=lot_code, success=False, code=e.code, error=e.message)
        except Exception as e:
            logger.error(f"[SYNC] ERROR for {lot_code}: {e}")
            return SyncItemResult(lot_code=lot_code, success=False, code="SYNC_FAILED", error=str(e))


def find_occupant(assignments, position: str, lot_code: Optional[str] = None) -> Optional[str]:
    """Lot holding a position, ignoring `lot_code` itself."""
    target = normalize_position(position)
    for assignment in assignments:
        if assignment.lot_code != lot_code and normalize_position(assignment.position) == target:
            return assignment.lot_code
    return None

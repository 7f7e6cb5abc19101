"""Reading lot lines and slot occupancy out of the ledger."""

import logging
from typing import Any, Dict, List

from constants.data_models import MERGED_STATUS
from constants.schemas import LotLine, PositionAssignment
from constants.sheets import LOT_POS_SHEET_RANGE, LOTS_SHEET_RANGE

logger = logging.getLogger(__name__)


def parse_lot_rows(rows: List[List[Any]]) -> List[LotLine]:
    """Turn raw `lot` table values (header first) into LotLines carrying their row index."""
    lines = []
    for idx, row in enumerate(rows[1:], start=1):
        if not row:
            continue
        line = LotLine.from_row(row, row_index=idx)
        if line.lot_code:
            lines.append(line)
    return lines


def load_lot_lines(store, lot_code: str) -> List[LotLine]:
    """All lines of one lot, in sheet order."""
    lot_code = (lot_code or "").strip()
    if not lot_code:
        return []
    rows = store.read_rows(LOTS_SHEET_RANGE)
    return [line for line in parse_lot_rows(rows) if line.lot_code == lot_code]


def load_assignments(store) -> List[PositionAssignment]:
    rows = store.read_rows(LOT_POS_SHEET_RANGE)
    assignments = []
    for idx, row in enumerate(rows[1:], start=1):
        if not row:
            continue
        assignment = PositionAssignment.from_row(row, row_index=idx)
        if assignment.lot_code:
            assignments.append(assignment)
    return assignments


def lot_lines_payload(lines: List[LotLine]) -> Dict[str, Any]:
    """
    API view of a lot: its lines plus the header fields every line shares.
    """
    items = []
    for line in lines:
        items.append(
            {
                "lotCode": line.lot_code,
                "productCode": line.product_code,
                "productName": line.product_name,
                "productType": line.product_type or None,
                "peelDate": line.peel_date or None,
                "packDate": line.pack_date or None,
                "qc": line.qc or None,
                "quantity": float(line.quantity),
                "unit": line.unit or None,
                "position": line.position or None,
                "imageUrl": line.image_url or None,
            }
        )

    header = None
    if lines:
        header = {
            "peelDate": lines[0].peel_date or None,
            "packDate": lines[0].pack_date or None,
            "qc": lines[0].qc or None,
        }
    return {"items": items, "header": header}


def get_occupied_positions(store) -> Dict[str, Dict[str, str]]:
    """
    Map of occupied positions and merged lots.

    Positions come from the lots' own position column (first line per lot);
    the `lot_pos` table is only consulted when no lot carries a position.
    """
    occupied: Dict[str, str] = {}
    merged_lots: Dict[str, str] = {}

    try:
        seen = set()
        for line in parse_lot_rows(store.read_rows(LOTS_SHEET_RANGE)):
            if line.position and line.lot_code not in seen:
                seen.add(line.lot_code)
                occupied[line.position] = line.lot_code
            if line.merged_to or line.status.strip() == MERGED_STATUS:
                merged_lots[line.lot_code] = line.merged_to or "UNKNOWN"
    except Exception as e:
        logger.error(f"Error fetching lot sheet: {e}")

    if not occupied:
        try:
            for assignment in load_assignments(store):
                if assignment.position:
                    occupied[assignment.position] = assignment.lot_code
        except Exception as e:
            logger.error(f"Error fetching lot_pos sheet: {e}")

    return {"occupied": occupied, "mergedLots": merged_lots}

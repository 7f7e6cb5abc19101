"""Warehouse occupancy summary: used vs. total slots per warehouse and zone."""

import logging
from typing import Dict, List

import pandas as pd

from utils.location_codes import generate_all_warehouses, parse_code

logger = logging.getLogger(__name__)

ZONE_NAMES = {"A": "Zone A", "B": "Zone B", "S": "Hall"}


def build_slot_frame(occupied: Dict[str, str]) -> pd.DataFrame:
    """One row per slot with the lot occupying it (or None)."""
    by_code = {}
    for position, lot_code in occupied.items():
        slot = parse_code(position)
        if slot is None:
            logger.debug(f"Ignoring position outside the slot grid: {position}")
            continue
        by_code[slot.code] = lot_code

    records = []
    for slot in generate_all_warehouses():
        records.append(
            {
                "code": slot.code,
                "warehouse": slot.warehouse,
                "zone": slot.zone,
                "row": slot.row,
                "level": slot.level,
                "pos": slot.pos,
                "lot_code": by_code.get(slot.code),
            }
        )
    df = pd.DataFrame(records)
    df["used"] = df["lot_code"].notna()
    return df


def summarize_occupancy(occupied: Dict[str, str]) -> List[Dict]:
    """
    Totals per warehouse and zone.

    Returns:
        List[Dict]: [{"warehouse": 1, "zone": "A", "name": "Zone A", "total": 280, "used": 3, "free": 277}, ...]
    """
    df = build_slot_frame(occupied)
    grouped = (
        df.groupby(["warehouse", "zone"], as_index=False)
        .agg(total=("code", "count"), used=("used", "sum"))
        .sort_values(["warehouse", "zone"])
    )
    grouped["free"] = grouped["total"] - grouped["used"]

    summary = []
    for record in grouped.to_dict(orient="records"):
        summary.append(
            {
                "warehouse": int(record["warehouse"]),
                "zone": record["zone"],
                "name": ZONE_NAMES.get(record["zone"], record["zone"]),
                "total": int(record["total"]),
                "used": int(record["used"]),
                "free": int(record["free"]),
            }
        )
    return summary


def unknown_positions(occupied: Dict[str, str]) -> Dict[str, str]:
    """Occupied positions that are not valid slot codes."""
    return {pos: lot for pos, lot in occupied.items() if parse_code(pos) is None}

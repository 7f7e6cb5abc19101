"""
Storage slot codes.

Rack slots:  A-K3D4T2.PL6  (zone A or B, warehouse K3, row D4, level T2, pallet PL6)
Hall slots:  S-K3.PL12     (hall of warehouse K3, pallet PL12)
"""

import re
from dataclasses import dataclass
from typing import List, Optional

WAREHOUSES = (1, 2, 3)
RACK_ZONES = ("A", "B")
HALL_ZONE = "S"

ZONE_A_ROWS = 7
ZONE_A_LEVELS = 5
ZONE_A_PALLETS = 8
ZONE_B_LEVELS = 4
HALL_PALLETS = 20

RE_RACK = re.compile(r"^(A|B)-K(\d+)D(\d+)T(\d+)\.PL(\d+)$", re.IGNORECASE)
RE_HALL = re.compile(r"^S-K(\d+)\.PL(\d+)$", re.IGNORECASE)


@dataclass(frozen=True)
class Slot:
    warehouse: int
    zone: str
    pos: int
    row: Optional[int] = None
    level: Optional[int] = None
    capacity: int = 1

    @property
    def code(self) -> str:
        return format_code(self)


def format_code(slot: Slot) -> str:
    if slot.zone == HALL_ZONE:
        return f"S-K{slot.warehouse}.PL{slot.pos}"
    return f"{slot.zone}-K{slot.warehouse}D{slot.row or 0}T{slot.level or 0}.PL{slot.pos}"


def _warehouse(value: str) -> int:
    number = int(value)
    return number if number in WAREHOUSES else 1


def parse_code(code: str) -> Optional[Slot]:
    """Parse a slot code (case-insensitive). Returns None when it is not a slot code."""
    text = (code or "").strip()
    m = RE_RACK.match(text)
    if m:
        return Slot(
            warehouse=_warehouse(m.group(2)),
            zone=m.group(1).upper(),
            row=int(m.group(3)),
            level=int(m.group(4)),
            pos=int(m.group(5)),
        )
    m = RE_HALL.match(text)
    if m:
        return Slot(warehouse=_warehouse(m.group(1)), zone=HALL_ZONE, pos=int(m.group(2)))
    return None


def zone_b_rows(warehouse: int) -> int:
    # Warehouse 1 only has six B rows
    return 6 if warehouse == 1 else 7


def generate_slots_for_warehouse(warehouse: int) -> List[Slot]:
    slots = []
    for d in range(1, ZONE_A_ROWS + 1):
        for t in range(1, ZONE_A_LEVELS + 1):
            for p in range(1, ZONE_A_PALLETS + 1):
                slots.append(Slot(warehouse=warehouse, zone="A", row=d, level=t, pos=p))
    for d in range(1, zone_b_rows(warehouse) + 1):
        for t in range(1, ZONE_B_LEVELS + 1):
            slots.append(Slot(warehouse=warehouse, zone="B", row=d, level=t, pos=1))
    for p in range(1, HALL_PALLETS + 1):
        slots.append(Slot(warehouse=warehouse, zone=HALL_ZONE, pos=p))
    return slots


def generate_all_warehouses() -> List[Slot]:
    return [slot for w in WAREHOUSES for slot in generate_slots_for_warehouse(w)]


def all_location_codes() -> List[str]:
    return [slot.code for slot in generate_all_warehouses()]

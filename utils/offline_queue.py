"""
Device-side queue of scanned lots.

Scans are recorded locally first so the scanner keeps working without a
connection; the pending part of the queue is replayed to the server on sync.
"""

import json
import logging
import os
import time
from typing import Any, Dict, Iterable, List, Optional

from constants.schemas import ScannedItem

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class OfflineQueue:
    """
    Scanned items, newest first.

    Args:
        path: JSON file the queue is persisted to (optional)
        clock: Returns the current time in milliseconds
    """

    def __init__(self, path: Optional[str] = None, clock=_now_ms):
        self.path = path
        self.clock = clock
        self.items: List[ScannedItem] = []
        if path:
            self.load()

    def _index(self, lot_code: str) -> int:
        for idx, item in enumerate(self.items):
            if item.id == lot_code:
                return idx
        return -1

    def get(self, lot_code: str) -> Optional[ScannedItem]:
        idx = self._index(lot_code)
        return self.items[idx] if idx != -1 else None

    def scan(self, lot_code: str) -> ScannedItem:
        """
        Record a scan. Re-scanning a lot refreshes its timestamp, moves it to
        the front and unlocks it for editing, keeping the position typed so far.
        """
        lot_code = (lot_code or "").strip()
        if not lot_code:
            raise ValueError("Empty lot code")

        idx = self._index(lot_code)
        position = self.items.pop(idx).position if idx != -1 else ""
        item = ScannedItem(id=lot_code, timestamp=self.clock(), position=position, synced=False)
        self.items.insert(0, item)
        self.save()
        return item

    def set_position(self, lot_code: str, position: str) -> ScannedItem:
        idx = self._index(lot_code)
        if idx == -1:
            raise KeyError(lot_code)
        item = self.items[idx]
        if item.synced:
            raise ValueError(f"Lot {lot_code} is already synced; scan it again to edit")
        item.position = (position or "").strip()
        self.save()
        return item

    def remove(self, lot_code: str) -> bool:
        idx = self._index(lot_code)
        if idx == -1:
            return False
        del self.items[idx]
        self.save()
        return True

    def pending(self) -> List[ScannedItem]:
        """Unsynced items with a position, oldest first."""
        ready = [item for item in self.items if not item.synced and item.position.strip()]
        return sorted(ready, key=lambda item: item.timestamp)

    def potential_conflicts(self, occupied: Dict[str, str]) -> List[ScannedItem]:
        """
        Pending items whose position a cached occupancy map shows as taken by
        another lot. A soft warning only: the server does the real check.
        """
        conflicts = []
        for item in self.pending():
            pos = item.position.strip()
            holder = occupied.get(pos) or occupied.get(pos.upper())
            if holder and holder != item.id:
                conflicts.append(item)
        return conflicts

    def apply_sync_results(self, results: Iterable[Dict[str, Any]]) -> int:
        """Flip `synced` for every lot the server accepted. Returns how many were marked."""
        synced_ids = {r.get("lotCode") for r in results if r.get("success")}
        marked = 0
        for item in self.items:
            if item.id in synced_ids and not item.synced:
                item.synced = True
                marked += 1
        self.save()
        return marked

    def clear_synced(self) -> int:
        before = len(self.items)
        self.items = [item for item in self.items if not item.synced]
        self.save()
        return before - len(self.items)

    def load(self) -> None:
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            self.items = [ScannedItem.model_validate(entry) for entry in raw]
        except (OSError, ValueError) as e:
            # A corrupt queue file is discarded rather than blocking the scanner
            logger.warning(f"Discarding unreadable offline queue {self.path}: {e}")
            self.items = []

    def save(self) -> None:
        if not self.path:
            return
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump([item.model_dump() for item in self.items], f, ensure_ascii=False)
        os.replace(tmp_path, self.path)

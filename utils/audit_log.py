"""
Audit trail kept in the `audit_log` sheet.

Recording is best effort: a failed write is logged and dropped so it never
blocks or fails the warehouse operation being audited.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from constants.data_models import AUDIT_LOG_COLUMNS
from constants.sheets import AUDIT_LOG_SHEET_RANGE, get_tab
from utils.vn_datetime import get_vn_timestamp

logger = logging.getLogger(__name__)

AUDIT_APPEND_RANGE = f"{get_tab(AUDIT_LOG_SHEET_RANGE)}!A:I"


class AuditLog:
    def __init__(self, store):
        self.store = store

    def record(
        self,
        path: str,
        details: Optional[Dict[str, Any]] = None,
        username: str = "",
        name: str = "",
        method: str = "POST",
        ts: Optional[str] = None,
        query: str = "",
        ip: str = "",
        ua: str = "",
    ) -> bool:
        """Append one audit row. Returns False instead of raising when the write fails."""
        row = [
            ts or get_vn_timestamp(),
            username or "",
            name or "",
            method or "",
            path or "",
            query or "",
            ip or "",
            ua or "",
            json.dumps(details or {}, ensure_ascii=False, default=str),
        ]
        try:
            self.store.append_rows(AUDIT_APPEND_RANGE, [row])
            return True
        except Exception as e:
            logger.error(f"Audit log write failed for {path}: {e}")
            return False

    def list_recent(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Newest entries first."""
        rows = self.store.read_rows(AUDIT_LOG_SHEET_RANGE)
        entries = []
        for r in reversed(rows[1:]):
            if len(entries) >= limit:
                break
            entry = dict(zip(AUDIT_LOG_COLUMNS, list(r) + [""] * (len(AUDIT_LOG_COLUMNS) - len(r))))
            try:
                entry["details"] = json.loads(entry["details"] or "{}")
            except json.JSONDecodeError:
                entry["details"] = {}
            entries.append(entry)
        return entries

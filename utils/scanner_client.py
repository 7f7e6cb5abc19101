"""HTTP client the scanner uses to push its offline queue to the warehouse API."""

import logging
import os
from typing import Any, Dict, List, Optional

import requests

from utils.offline_queue import OfflineQueue

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class ScannerClient:
    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None, timeout: int = DEFAULT_TIMEOUT):
        self.base_url = (base_url or os.getenv("SCANNER_API_URL", "http://localhost:8080")).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def fetch_locations(self) -> List[str]:
        response = self.session.get(self._url("/api/scanner/locations"), timeout=self.timeout)
        response.raise_for_status()
        return response.json().get("locations", [])

    def fetch_occupied(self) -> Dict[str, str]:
        response = self.session.get(self._url("/api/scanner/occupied"), timeout=self.timeout)
        response.raise_for_status()
        return response.json().get("occupied", {})

    def sync(self, queue: OfflineQueue, username: str = "") -> Dict[str, Any]:
        """
        Push every pending item, oldest first, and mark the accepted ones synced.

        On a network failure nothing is marked, so the whole batch can simply
        be sent again: items the server already applied come back as
        "Already assigned".
        """
        pending = queue.pending()
        if not pending:
            return {"success": True, "total": 0, "successCount": 0, "failCount": 0, "results": []}

        payload = {
            "items": [{"id": item.id, "position": item.position, "timestamp": item.timestamp} for item in pending],
            "username": username,
        }
        try:
            response = self.session.post(self._url("/api/scanner/sync"), json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.warning(f"Sync failed, {len(pending)} items stay queued: {e}")
            raise

        data = response.json()
        marked = queue.apply_sync_results(data.get("results", []))
        logger.info(f"Synced {marked}/{len(pending)} items")
        return data

    def export_lot(
        self,
        lot_code: str,
        reason: str,
        mode: str = "FULL",
        items: Optional[List[Dict[str, Any]]] = None,
        deleted_by: str = "",
    ) -> Dict[str, Any]:
        payload = {"lotCode": lot_code, "mode": mode, "reason": reason, "deletedBy": deleted_by, "items": items or []}
        response = self.session.post(self._url("/api/lots/export"), json=payload, timeout=self.timeout)
        data = response.json()
        if not response.ok:
            logger.warning(f"Export of {lot_code} rejected: {data.get('error')}")
        return data

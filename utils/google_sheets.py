"""
Google Sheets access for the warehouse ledger.

The spreadsheet is used as a row-oriented database: every table is a tab,
row 1 holds the header, and rows are addressed by their 0-based index in
the values returned for the table range (so the header is index 0).
There are no transactions and no row locks; each call below is a single
round trip that Sheets applies atomically on its own.
"""

import logging
import os
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from google.auth import default
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from constants.sheets import SCOPES, SHEET_ID, get_tab
from utils.errors import LedgerStoreError

logger = logging.getLogger(__name__)


def get_credentials():
    """Gets service account credentials using the first source that is configured."""
    email = os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL")
    key = os.getenv("GOOGLE_SERVICE_ACCOUNT_KEY")
    if email and key:
        logger.debug("Using service account from GOOGLE_SERVICE_ACCOUNT_EMAIL/KEY")
        info = {
            "type": "service_account",
            "client_email": email,
            # Keys pasted into env files usually carry literal \n sequences
            "private_key": key.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        }
        return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)

    json_file = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    if json_file and os.path.exists(json_file):
        logger.debug("Using service account JSON file")
        return service_account.Credentials.from_service_account_file(json_file, scopes=SCOPES)

    try:
        # Application Default Credentials (Cloud Run, gcloud auth, etc.)
        creds, project = default(scopes=SCOPES)
        logger.info(f"Using Application Default Credentials for project: {project}")
        return creds
    except Exception as e:
        logger.error(f"Error getting Application Default Credentials: {e}")
        raise LedgerStoreError(
            "CREDENTIALS_MISSING",
            "Could not authenticate. Set GOOGLE_SERVICE_ACCOUNT_EMAIL/KEY or "
            "run 'gcloud auth application-default login'",
        )


def get_sheets_service():
    """Gets the Google Sheets service."""
    creds = get_credentials()
    return build("sheets", "v4", credentials=creds, cache_discovery=False)


def column_letter(idx: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA"""
    letters = ""
    idx += 1
    while idx:
        idx, rem = divmod(idx - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


class SheetsLedgerStore:
    """
    Ledger store backed by one Google spreadsheet.

    Operations:
        read_rows(range) -> rows
        append_rows(range, rows)
        delete_rows(range, row_indices)
        update_cells(range, [(row_index, col_index, value), ...])
    """

    def __init__(self, spreadsheet_id: str = None, service=None):
        self.spreadsheet_id = spreadsheet_id or SHEET_ID
        self._service = service
        self._sheet_ids: Dict[str, int] = {}

        if not self.spreadsheet_id:
            raise ValueError("SHEET_ID not found in environment variables")

    @property
    def service(self):
        if self._service is None:
            self._service = get_sheets_service()
        return self._service

    def _wrap(self, action: str, sheet_range: str, e: HttpError) -> LedgerStoreError:
        logger.error(f"Error during {action} on {sheet_range}: {e}")
        return LedgerStoreError("LEDGER_STORE_ERROR", f"{action} failed for {sheet_range}: {e}")

    def read_rows(self, sheet_range: str) -> List[List[Any]]:
        """Reads every row of a range, header included."""
        try:
            result = (
                self.service.spreadsheets()
                .values()
                .get(spreadsheetId=self.spreadsheet_id, range=sheet_range)
                .execute()
            )
        except HttpError as e:
            raise self._wrap("read", sheet_range, e)

        values = result.get("values", [])
        if not values:
            logger.warning(f"No data found in range {sheet_range}")
        return values

    def append_rows(self, sheet_range: str, rows: Sequence[Sequence[Any]]) -> int:
        """Appends rows after the last row of the table. Returns the number of rows written."""
        if not rows:
            return 0
        try:
            self.service.spreadsheets().values().append(
                spreadsheetId=self.spreadsheet_id,
                range=sheet_range,
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": [list(row) for row in rows]},
            ).execute()
        except HttpError as e:
            raise self._wrap("append", sheet_range, e)

        logger.info(f"Appended {len(rows)} rows to {get_tab(sheet_range)}")
        return len(rows)

    def get_sheet_id(self, title: str) -> int:
        if title in self._sheet_ids:
            return self._sheet_ids[title]
        try:
            meta = self.service.spreadsheets().get(spreadsheetId=self.spreadsheet_id).execute()
        except HttpError as e:
            raise self._wrap("metadata read", title, e)

        for sheet in meta.get("sheets", []):
            props = sheet.get("properties", {})
            self._sheet_ids[props.get("title")] = props.get("sheetId")
        if self._sheet_ids.get(title) is None:
            raise LedgerStoreError("SHEET_NOT_FOUND", f"Sheet not found: {title}")
        return self._sheet_ids[title]

    def delete_rows(self, sheet_range: str, row_indices: Iterable[int]) -> int:
        """
        Deletes rows by their 0-based index in the table values.

        Rows are removed bottom-up inside a single batchUpdate so that earlier
        deletions never shift the rows still to be deleted.
        """
        indices = sorted(set(row_indices), reverse=True)
        if not indices:
            return 0
        if indices[-1] < 1:
            raise ValueError("Refusing to delete the header row")

        sheet_id = self.get_sheet_id(get_tab(sheet_range))
        requests = [
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": sheet_id,
                        "dimension": "ROWS",
                        "startIndex": idx,
                        "endIndex": idx + 1,
                    }
                }
            }
            for idx in indices
        ]
        try:
            self.service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"requests": requests},
            ).execute()
        except HttpError as e:
            raise self._wrap("delete", sheet_range, e)

        logger.info(f"Deleted {len(indices)} rows from {get_tab(sheet_range)}")
        return len(indices)

    def update_cells(self, sheet_range: str, updates: Sequence[Tuple[int, int, Any]]) -> int:
        """Writes single cells given as (row_index, col_index, value), 0-based."""
        if not updates:
            return 0
        tab = get_tab(sheet_range)
        data = []
        for row_idx, col_idx, value in updates:
            cell = f"{tab}!{column_letter(col_idx)}{row_idx + 1}"
            data.append({"range": cell, "values": [[value]]})
        try:
            self.service.spreadsheets().values().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"valueInputOption": "RAW", "data": data},
            ).execute()
        except HttpError as e:
            raise self._wrap("update", sheet_range, e)

        logger.debug(f"Updated {len(data)} cells in {tab}")
        return len(data)

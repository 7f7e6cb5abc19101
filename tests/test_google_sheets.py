#!/usr/bin/env python3
"""
Unit tests for SheetsLedgerStore with a mocked Sheets service
"""

import os
import sys
import unittest
from unittest.mock import MagicMock, patch

from googleapiclient.errors import HttpError

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from utils.errors import LedgerStoreError
from utils.google_sheets import SheetsLedgerStore, column_letter


def http_error(status=500):
    resp = MagicMock()
    resp.status = status
    resp.reason = "Backend Error"
    return HttpError(resp, b'{"error": {"message": "Backend Error"}}')


class TestColumnLetter(unittest.TestCase):

    def test_letters(self):
        self.assertEqual(column_letter(0), "A")
        self.assertEqual(column_letter(14), "O")
        self.assertEqual(column_letter(25), "Z")
        self.assertEqual(column_letter(26), "AA")


class TestSheetsLedgerStore(unittest.TestCase):

    def setUp(self):
        self.service = MagicMock()
        self.spreadsheets = self.service.spreadsheets.return_value
        self.values = self.spreadsheets.values.return_value
        self.spreadsheets.get.return_value.execute.return_value = {
            "sheets": [
                {"properties": {"title": "lot", "sheetId": 11}},
                {"properties": {"title": "lot_pos", "sheetId": 22}},
            ]
        }
        self.store = SheetsLedgerStore("sheet-123", service=self.service)

    def test_requires_sheet_id(self):
        with patch("utils.google_sheets.SHEET_ID", ""):
            with self.assertRaises(ValueError):
                SheetsLedgerStore()

    def test_read_rows(self):
        self.values.get.return_value.execute.return_value = {"values": [["Lot"], ["L1"]]}
        self.assertEqual(self.store.read_rows("lot!A1:S"), [["Lot"], ["L1"]])
        self.values.get.assert_called_with(spreadsheetId="sheet-123", range="lot!A1:S")

    def test_read_empty_range(self):
        self.values.get.return_value.execute.return_value = {}
        self.assertEqual(self.store.read_rows("lot!A1:S"), [])

    def test_append_rows(self):
        self.assertEqual(self.store.append_rows("deletelot!A:S", [["L1", "P"]]), 1)
        kwargs = self.values.append.call_args[1]
        self.assertEqual(kwargs["valueInputOption"], "RAW")
        self.assertEqual(kwargs["insertDataOption"], "INSERT_ROWS")
        self.assertEqual(kwargs["body"], {"values": [["L1", "P"]]})

    def test_append_nothing_skips_request(self):
        self.assertEqual(self.store.append_rows("lot!A1:S", []), 0)
        self.values.append.assert_not_called()

    def test_delete_rows_bottom_up_in_one_batch(self):
        self.store.delete_rows("lot!A1:S", [2, 7, 4])

        self.spreadsheets.batchUpdate.assert_called_once()
        requests = self.spreadsheets.batchUpdate.call_args[1]["body"]["requests"]
        ranges = [r["deleteDimension"]["range"] for r in requests]
        self.assertEqual([r["startIndex"] for r in ranges], [7, 4, 2])
        self.assertEqual({r["sheetId"] for r in ranges}, {11})
        self.assertTrue(all(r["endIndex"] == r["startIndex"] + 1 for r in ranges))

    def test_delete_refuses_header(self):
        with self.assertRaises(ValueError):
            self.store.delete_rows("lot!A1:S", [0, 3])
        self.spreadsheets.batchUpdate.assert_not_called()

    def test_sheet_ids_are_cached(self):
        self.store.delete_rows("lot!A1:S", [1])
        self.store.delete_rows("lot_pos!A1:B", [1])
        self.assertEqual(self.spreadsheets.get.call_count, 1)

    def test_unknown_tab(self):
        with self.assertRaises(LedgerStoreError) as ctx:
            self.store.delete_rows("nope!A1:B", [1])
        self.assertEqual(ctx.exception.code, "SHEET_NOT_FOUND")

    def test_update_cells_uses_a1_addresses(self):
        self.store.update_cells("lot!A1:S", [(3, 14, "A-K1D1T1.PL1")])
        body = self.values.batchUpdate.call_args[1]["body"]
        self.assertEqual(body["data"], [{"range": "lot!O4", "values": [["A-K1D1T1.PL1"]]}])

    def test_http_errors_become_store_errors(self):
        self.values.get.return_value.execute.side_effect = http_error()
        with self.assertRaises(LedgerStoreError) as ctx:
            self.store.read_rows("lot!A1:S")
        self.assertEqual(ctx.exception.code, "LEDGER_STORE_ERROR")
        self.assertEqual(ctx.exception.status_code, 502)


if __name__ == '__main__':
    unittest.main()

#!/usr/bin/env python3
"""
Unit tests for LotExporter against an in-memory ledger.

Product P: 1 thùng = 12 cái. Lot L holds 5 thùng of P and 3 cái of Q.
"""

import os
import sys
import unittest
from decimal import Decimal

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from constants.data_models import LOT_COL
from constants.schemas import ExportSelection, LotLine
from utils.audit_log import AuditLog
from utils.catalog import ProductCatalog
from utils.errors import (
    InsufficientStockError,
    LedgerStoreError,
    NotFoundError,
    UnsupportedUnitError,
    ValidationError,
)
from utils.lot_export import LotExporter

from fake_store import FakeLedgerStore, make_lot_row, make_product_row

DELETED_AT = "2025-11-19T14:30:00.000+07:00"


def select(line_index, quantity, unit=""):
    return ExportSelection(line_index=line_index, quantity=Decimal(str(quantity)), unit=unit)


class TestLotExporter(unittest.TestCase):

    def setUp(self):
        self.store = FakeLedgerStore()
        self.store.add_rows("lot", [
            make_lot_row("L", "P", "5", "thùng", "A-K1D1T1.PL1", peel_date="01/11/2025", qc="OK"),
            make_lot_row("M", "P", "2", "thùng", "A-K1D1T1.PL2"),
            make_lot_row("L", "Q", "3", "cái", "A-K1D1T1.PL1", peel_date="01/11/2025", qc="OK"),
        ])
        self.store.add_rows("Products", [
            make_product_row("P", "cái", "thùng", "", "12", ""),
            make_product_row("Q", "cái", "", "", "", ""),
        ])
        self.exporter = LotExporter(
            self.store,
            catalog=ProductCatalog(self.store),
            audit=AuditLog(self.store),
            clock=lambda: DELETED_AT,
        )

    def lot_lines(self, lot_code):
        return [LotLine.from_row(r) for r in self.store.rows("lot") if r and r[0] == lot_code]

    # --- FULL ---

    def test_full_export_moves_every_line_to_ledger(self):
        result = self.exporter.export_lot("L", mode="FULL", reason="Shipped", deleted_by="kho1")

        self.assertTrue(result.ok)
        self.assertEqual(result.deleted_rows, 2)
        self.assertEqual(self.lot_lines("L"), [])
        self.assertEqual(len(self.lot_lines("M")), 1)

        ledger = self.store.rows("deletelot")
        self.assertEqual(len(ledger), 2)
        self.assertEqual([(r[0], r[1], r[10], r[11]) for r in ledger], [("L", "P", "5", "thùng"), ("L", "Q", "3", "cái")])
        for row in ledger:
            self.assertEqual(len(row), 19)
            self.assertEqual(row[16:], [DELETED_AT, "kho1", "Shipped"])

    def test_full_export_ledger_keeps_header_fields(self):
        self.exporter.export_lot("L", mode="FULL", reason="Shipped")
        row = self.store.rows("deletelot")[0]
        self.assertEqual(row[LOT_COL["peel_date"]], "01/11/2025")
        self.assertEqual(row[LOT_COL["qc"]], "OK")
        self.assertEqual(row[LOT_COL["position"]], "A-K1D1T1.PL1")

    def test_write_order_is_ledger_then_delete(self):
        self.exporter.export_lot("L", mode="FULL", reason="Shipped")
        writes = [(op, tab) for op, tab, _ in self.store.writes() if tab != "audit_log"]
        self.assertEqual(writes, [("append", "deletelot"), ("delete", "lot")])

    def test_rows_deleted_bottom_up(self):
        self.exporter.export_lot("L", mode="FULL", reason="Shipped")
        deletes = [payload for op, tab, payload in self.store.writes("lot") if op == "delete"]
        self.assertEqual(deletes, [[3, 1]])

    def test_export_is_audited(self):
        self.exporter.export_lot("L", mode="FULL", reason="Shipped", deleted_by="kho1")
        audit = self.store.rows("audit_log")
        self.assertEqual(len(audit), 1)
        self.assertEqual(audit[0][1], "kho1")
        self.assertEqual(audit[0][4], "/api/lots/export")
        self.assertIn('"deletedRows": 2', audit[0][8])

    def test_full_export_copies_cells_verbatim(self):
        self.store.add_rows("lot", [
            make_lot_row("R", "P", "1.234,50", "cái", " A-K1D1T1.PL3 ", notes="giữ lạnh"),
            make_lot_row("R", "Q", "12 kg", "cái"),
        ])
        source = [list(r) for r in self.store.rows("lot") if r[0] == "R"]

        self.exporter.export_lot("R", mode="FULL", reason="Shipped")

        ledger = self.store.rows("deletelot")
        self.assertEqual([row[:16] for row in ledger], [row[:16] for row in source])
        self.assertEqual([row[10] for row in ledger], ["1.234,50", "12 kg"])

    def test_partial_export_keeps_untouched_cells(self):
        self.store.add_rows("lot", [
            make_lot_row("R", "P", "5,0", "thùng"),
            make_lot_row("R", "Q", "3,50", "cái"),
        ])
        self.exporter.export_lot("R", mode="PARTIAL", reason="Sample", selections=[select(0, 1)])

        rows = [r for r in self.store.rows("lot") if r[0] == "R"]
        self.assertEqual([(r[10], r[11]) for r in rows], [("4", "thùng"), ("3,50", "cái")])

    def test_second_export_reports_lot_not_found(self):
        self.exporter.export_lot("L", mode="FULL", reason="Shipped")
        with self.assertRaises(NotFoundError) as ctx:
            self.exporter.export_lot("L", mode="FULL", reason="Shipped")
        self.assertEqual(ctx.exception.code, "LOT_NOT_FOUND")
        self.assertEqual(len(self.store.rows("deletelot")), 2)

    # --- PARTIAL ---

    def test_partial_export_with_conversion_adds_remainder_line(self):
        result = self.exporter.export_lot("L", mode="PARTIAL", reason="Sample", selections=[select(0, 7, "cái")])

        self.assertTrue(result.ok)
        self.assertEqual(result.deleted_rows, 1)

        lines = self.lot_lines("L")
        self.assertEqual(
            [(line.product_code, line.quantity, line.unit) for line in lines],
            [("P", Decimal(4), "thùng"), ("Q", Decimal(3), "cái"), ("P", Decimal(5), "cái")],
        )
        # The remainder stays where the lot is
        self.assertTrue(all(line.position == "A-K1D1T1.PL1" for line in lines))

        ledger = self.store.rows("deletelot")
        self.assertEqual((ledger[0][10], ledger[0][11], ledger[0][18]), ("7", "cái", "Sample"))

    def test_partial_export_whole_medium_has_no_remainder(self):
        self.exporter.export_lot("L", mode="PARTIAL", reason="Sample", selections=[select(0, 12, "cái")])
        lines = self.lot_lines("L")
        self.assertEqual(
            [(line.product_code, line.quantity, line.unit) for line in lines],
            [("P", Decimal(4), "thùng"), ("Q", Decimal(3), "cái")],
        )

    def test_partial_write_order(self):
        self.exporter.export_lot("L", mode="PARTIAL", reason="Sample", selections=[select(0, 1)])
        writes = [(op, tab) for op, tab, _ in self.store.writes() if tab != "audit_log"]
        self.assertEqual(writes, [("append", "deletelot"), ("delete", "lot"), ("append", "lot")])

    def test_line_emptied_by_export_is_dropped(self):
        self.exporter.export_lot("L", mode="PARTIAL", reason="Sample", selections=[select(1, 3)])
        lines = self.lot_lines("L")
        self.assertEqual([(line.product_code, line.quantity) for line in lines], [("P", Decimal(5))])

    def test_exporting_everything_leaves_no_lines(self):
        result = self.exporter.export_lot(
            "L", mode="PARTIAL", reason="Sample", selections=[select(0, 5), select(1, 3)]
        )
        self.assertEqual(result.deleted_rows, 2)
        self.assertEqual(self.lot_lines("L"), [])
        self.assertEqual([op for op, tab, _ in self.store.writes("lot")], ["delete"])

    def test_selections_on_same_line_accumulate(self):
        self.exporter.export_lot(
            "L", mode="PARTIAL", reason="Sample", selections=[select(0, 2), select(0, 2)]
        )
        lines = self.lot_lines("L")
        self.assertEqual(lines[0].quantity, Decimal(1))

    def test_selections_exceeding_stock_together_are_rejected(self):
        with self.assertRaises(InsufficientStockError):
            self.exporter.export_lot(
                "L", mode="PARTIAL", reason="Sample", selections=[select(0, 3), select(0, 3)]
            )
        self.assertEqual(self.store.writes(), [])

    def test_insufficient_stock_writes_nothing(self):
        with self.assertRaises(InsufficientStockError) as ctx:
            self.exporter.export_lot("L", mode="PARTIAL", reason="Sample", selections=[select(0, 6, "thùng")])
        self.assertEqual(ctx.exception.requested, 6)
        self.assertEqual(ctx.exception.available, 5)
        self.assertEqual(self.store.writes(), [])
        self.assertEqual(len(self.lot_lines("L")), 2)

    def test_first_failing_selection_aborts_batch(self):
        with self.assertRaises(InsufficientStockError):
            self.exporter.export_lot(
                "L", mode="PARTIAL", reason="Sample", selections=[select(1, 1), select(0, 99)]
            )
        self.assertEqual(self.store.writes(), [])

    def test_unsupported_unit_writes_nothing(self):
        with self.assertRaises(UnsupportedUnitError):
            self.exporter.export_lot("L", mode="PARTIAL", reason="Sample", selections=[select(0, 1, "kg")])
        self.assertEqual(self.store.writes(), [])

    def test_catalog_only_read_when_converting(self):
        self.exporter.export_lot("L", mode="PARTIAL", reason="Sample", selections=[select(0, 1)])
        self.assertEqual(self.store.reads("Products"), [])

    # --- validation ---

    def test_validation_errors_do_not_touch_store(self):
        cases = [
            (dict(lot_code="", reason="x"), "LOT_CODE_REQUIRED"),
            (dict(lot_code="L", reason="   "), "REASON_REQUIRED"),
            (dict(lot_code="L", reason="x", mode="SOME"), "INVALID_MODE"),
            (dict(lot_code="L", reason="x", mode="PARTIAL"), "NO_ITEMS_TO_EXPORT"),
        ]
        for kwargs, code in cases:
            with self.assertRaises(ValidationError) as ctx:
                self.exporter.export_lot(**kwargs)
            self.assertEqual(ctx.exception.code, code)
        self.assertEqual(self.store.calls, [])

    def test_bad_selection_is_rejected(self):
        for selection, code in [(select(5, 1), "INVALID_LINE_INDEX"), (select(0, 0), "INVALID_QUANTITY")]:
            with self.assertRaises(ValidationError) as ctx:
                self.exporter.export_lot("L", mode="PARTIAL", reason="x", selections=[selection])
            self.assertEqual(ctx.exception.code, code)
        self.assertEqual(self.store.writes(), [])

    def test_unknown_lot(self):
        with self.assertRaises(NotFoundError):
            self.exporter.export_lot("NOPE", mode="FULL", reason="x")
        self.assertEqual(self.store.writes(), [])

    # --- partial failure of the write sequence ---

    def test_failure_after_ledger_append_reports_progress(self):
        self.store.fail_on.add(("delete", "lot"))
        with self.assertRaises(LedgerStoreError) as ctx:
            self.exporter.export_lot("L", mode="FULL", reason="Shipped")

        self.assertEqual(ctx.exception.details["failedStep"], "delete_lot_rows")
        self.assertEqual(ctx.exception.details["completedSteps"], ["append_ledger"])
        # Over-recorded: ledger rows exist while the lot is still on the shelf
        self.assertEqual(len(self.store.rows("deletelot")), 2)
        self.assertEqual(len(self.lot_lines("L")), 2)

    def test_lot_changed_between_read_and_delete(self):
        original = self.store.append_rows

        def append_and_add_line(sheet_range, rows):
            result = original(sheet_range, rows)
            if sheet_range.startswith("deletelot"):
                self.store.add_rows("lot", [make_lot_row("L", "P", "1", "thùng")])
            return result

        self.store.append_rows = append_and_add_line
        with self.assertRaises(LedgerStoreError) as ctx:
            self.exporter.export_lot("L", mode="FULL", reason="Shipped")
        self.assertEqual(ctx.exception.code, "LOT_CHANGED")
        self.assertEqual(len(self.lot_lines("L")), 3)


if __name__ == '__main__':
    unittest.main()

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from openpyxl import load_workbook

from order_recon.reconcile import AMOUNT_MISMATCH, OrderRecord, reconcile
from order_recon.workbook import STATUS_FILLS, write_reconciliation_workbook


class ReconciliationWorkbookTests(unittest.TestCase):
    def setUp(self):
        side_a = [OrderRecord("K1", 10.0), OrderRecord("K2", 5.0), OrderRecord("K3", 1.0)]
        side_b = [OrderRecord("K1", 10.0), OrderRecord("K2", 7.5), OrderRecord("K4", 2.0)]
        self.result = reconcile(side_a, side_b)

    def test_writes_summary_matches_and_discrepancies(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            output = write_reconciliation_workbook(self.result, Path(tmpdir) / "nested" / "recon.xlsx")
            self.assertTrue(output.exists())
            wb = load_workbook(output)
            self.assertEqual(wb.sheetnames, ["Summary", "Matches", "Discrepancies"])

            summary = {row[0]: row[1] for row in wb["Summary"].iter_rows(min_row=2, values_only=True)}
            self.assertEqual(summary["Side A"], "Order Log")
            self.assertEqual(summary["Matches"], 1)
            self.assertEqual(summary["Discrepancies"], 3)
            self.assertEqual(summary["Match %"], 33)

            matches = list(wb["Matches"].iter_rows(values_only=True))
            self.assertEqual(matches[0], ("OrderKey", "Status", "AmountA", "AmountB", "Difference", "Message"))
            self.assertEqual(matches[1][:2], ("K1", "Match"))

            discrepancies = list(wb["Discrepancies"].iter_rows(values_only=True))
            self.assertEqual([row[0] for row in discrepancies[1:]], ["K2", "K3", "K4"])
            self.assertEqual(discrepancies[1][4], 2.5)
            self.assertIsNone(discrepancies[2][3])

            ws = wb["Discrepancies"]
            self.assertEqual(ws.freeze_panes, "A2")
            self.assertTrue(ws["A1"].font.bold)
            self.assertEqual(ws["A2"].fill.fgColor.rgb, STATUS_FILLS[AMOUNT_MISMATCH].fgColor.rgb)
            wb.close()

    def test_custom_side_labels_and_warnings(self):
        self.result.warnings.append("Side A: 1 order keys repeat; last row kept for K1")
        with tempfile.TemporaryDirectory() as tmpdir:
            output = write_reconciliation_workbook(
                self.result,
                Path(tmpdir) / "recon.xlsx",
                label_a="Protokoll",
                label_b="Faktura",
            )
            wb = load_workbook(output)
            rows = list(wb["Summary"].iter_rows(values_only=True))
            self.assertIn(("Side B", "Faktura"), rows)
            self.assertIn(("Warning", "Side A: 1 order keys repeat; last row kept for K1"), rows)
            wb.close()


if __name__ == "__main__":
    unittest.main()

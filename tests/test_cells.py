from __future__ import annotations

import unittest
from datetime import date, datetime, time

import pandas as pd

from order_recon.cells import (
    KIND_DATE,
    KIND_EMPTY,
    KIND_NUMBER,
    KIND_TEXT,
    cell_at,
    cell_kind,
    data_rows,
    has_value,
    header_row,
    to_text,
)


class CellTests(unittest.TestCase):
    def test_kinds(self):
        self.assertEqual(cell_kind(None), KIND_EMPTY)
        self.assertEqual(cell_kind(""), KIND_EMPTY)
        self.assertEqual(cell_kind(float("nan")), KIND_EMPTY)
        self.assertEqual(cell_kind(pd.NaT), KIND_EMPTY)
        self.assertEqual(cell_kind(3), KIND_NUMBER)
        self.assertEqual(cell_kind(True), KIND_TEXT)
        self.assertEqual(cell_kind(date(2024, 1, 1)), KIND_DATE)
        self.assertEqual(cell_kind(" "), KIND_TEXT)

    def test_to_text(self):
        self.assertEqual(to_text(12.0), "12")
        self.assertEqual(to_text(12.5), "12.5")
        self.assertEqual(to_text(datetime(2024, 1, 2)), "2024-01-02")
        self.assertEqual(to_text(datetime(2024, 1, 2, 8, 5)), "2024-01-02 08:05:00")
        self.assertEqual(to_text(time(7, 30)), "07:30:00")
        self.assertEqual(to_text(None), "")

    def test_has_value_ignores_whitespace(self):
        self.assertFalse(has_value("   "))
        self.assertTrue(has_value(0))

    def test_bounds_checked_access(self):
        matrix = [["a", "b"], None, ["c"]]
        self.assertEqual(cell_at(matrix, 0, 1), "b")
        self.assertIsNone(cell_at(matrix, 1, 0))
        self.assertIsNone(cell_at(matrix, 2, 5))
        self.assertIsNone(cell_at(matrix, -1, 0))
        self.assertIsNone(cell_at(matrix, 9, 0))

    def test_header_and_data_rows(self):
        matrix = [["h1", "h2"], None, ["x"]]
        self.assertEqual(header_row(matrix), ["h1", "h2"])
        self.assertEqual(data_rows(matrix), [[], ["x"]])
        self.assertEqual(header_row([]), [])
        self.assertEqual(data_rows([]), [])


if __name__ == "__main__":
    unittest.main()

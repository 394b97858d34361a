from __future__ import annotations

import unittest
from datetime import datetime

from order_recon.header import HeaderRecord, extract_header, find_value_below, find_value_right
from order_recon.settings import DEFAULT_SETTINGS


ORDER_LOG_BLOCK = [
    ["Nr.:", "2023-10-27"],
    ["Auftrag Nr.:", "12345"],
    ["Kunde:", "ACME"],
    ["Ort:", ""],
    ["Ort:", ""],
    ["Berlin", ""],
]


class HeaderExtractionTests(unittest.TestCase):
    def test_reference_block_extracts_every_field(self):
        header = extract_header(ORDER_LOG_BLOCK)
        self.assertEqual(
            header,
            HeaderRecord(
                date="2023-10-27",
                order_number="12345",
                location="Berlin",
                customer="ACME",
                facility="",
            ),
        )

    def test_empty_matrix_yields_empty_record(self):
        self.assertEqual(extract_header([]).to_dict(), HeaderRecord().to_dict())

    def test_label_in_last_column_yields_empty_value(self):
        matrix = [["x", "Kunde:"], ["Kunde:", "Later"]]
        self.assertEqual(find_value_right(matrix, "Kunde:"), "")

    def test_label_match_is_exact_after_trimming(self):
        matrix = [["Kunde", "wrong"], ["  Kunde:  ", "  ACME GmbH "]]
        self.assertEqual(find_value_right(matrix, "Kunde:"), "ACME GmbH")
        self.assertEqual(find_value_right([["kunde:", "x"]], "Kunde:"), "")

    def test_location_ignores_first_occurrence(self):
        matrix = [["Ort:"], ["Hamburg"], ["Ort:"], ["München"]]
        self.assertEqual(find_value_below(matrix, "Ort:"), "München")

    def test_single_location_label_yields_empty(self):
        matrix = [["Ort:"], ["Hamburg"]]
        self.assertEqual(find_value_below(matrix, "Ort:"), "")

    def test_location_label_on_last_row_yields_empty(self):
        matrix = [["Ort:"], ["Ort:"]]
        self.assertEqual(find_value_below(matrix, "Ort:"), "")

    def test_ragged_rows_and_none_cells_are_tolerated(self):
        matrix = [None, [], ["Anlage:", None], ["Auftrag Nr.:", 4711.0]]
        header = extract_header(matrix)
        self.assertEqual(header.facility, "")
        self.assertEqual(header.order_number, "4711")

    def test_typed_date_cell_renders_as_iso_date(self):
        matrix = [["Nr.:", datetime(2023, 10, 27)]]
        self.assertEqual(extract_header(matrix).date, "2023-10-27")

    def test_custom_labels_from_settings(self):
        settings = DEFAULT_SETTINGS.with_overrides(
            header_labels={"customer": "Customer:"},
            location_label="Site:",
            location_occurrence=1,
        )
        matrix = [["Customer:", "Initech"], ["Site:"], ["Austin"]]
        header = extract_header(matrix, settings)
        self.assertEqual(header.customer, "Initech")
        self.assertEqual(header.location, "Austin")


if __name__ == "__main__":
    unittest.main()

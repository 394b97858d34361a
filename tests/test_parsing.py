from __future__ import annotations

import math
import unittest
from datetime import date, datetime, timedelta, timezone

import pandas as pd

from order_recon.parsing import format_amount, format_date, is_transaction, parse_amount, parse_date


class ParseAmountTests(unittest.TestCase):
    def test_german_grouping_and_currency(self):
        self.assertAlmostEqual(parse_amount("1.234,56 €"), 1234.56)
        self.assertAlmostEqual(parse_amount("$ 12,5"), 12.5)
        self.assertAlmostEqual(parse_amount("-7,25£"), -7.25)

    def test_unparsable_values_read_as_zero(self):
        self.assertEqual(parse_amount(""), 0.0)
        self.assertEqual(parse_amount("abc"), 0.0)
        self.assertEqual(parse_amount(None), 0.0)
        self.assertEqual(parse_amount(True), 0.0)
        self.assertEqual(parse_amount(float("nan")), 0.0)

    def test_numbers_pass_through(self):
        self.assertEqual(parse_amount(42), 42.0)
        self.assertEqual(parse_amount(19.99), 19.99)

    def test_leading_number_wins_over_trailing_text(self):
        self.assertAlmostEqual(parse_amount("150,00 EUR netto"), 150.0)

    def test_dots_are_always_grouping(self):
        # English decimals are not supported by the German convention
        self.assertEqual(parse_amount("12.50"), 1250.0)

    def test_transaction_rule_uses_raw_cell(self):
        self.assertTrue(is_transaction("0", 0.0))
        self.assertTrue(is_transaction("abc", 0.0))
        self.assertFalse(is_transaction("", 0.0))
        self.assertFalse(is_transaction(None, 0.0))
        self.assertTrue(is_transaction(None, 5.0))


class ParseDateTests(unittest.TestCase):
    def test_dotted_dates(self):
        self.assertEqual(parse_date("27.10.2023"), datetime(2023, 10, 27))
        self.assertEqual(parse_date("Lieferung am 1.2.2024"), datetime(2024, 2, 1))

    def test_impossible_dotted_date_is_none(self):
        self.assertIsNone(parse_date("31.02.2024"))

    def test_iso_strings(self):
        self.assertEqual(parse_date("2023-10-27"), datetime(2023, 10, 27))
        self.assertEqual(parse_date("2023-10-27T08:30:00"), datetime(2023, 10, 27, 8, 30))
        self.assertEqual(parse_date("2023-10-27T08:30:00Z"), datetime(2023, 10, 27, 8, 30))

    def test_generic_formats(self):
        self.assertEqual(parse_date("2024/03/05"), datetime(2024, 3, 5))
        self.assertEqual(parse_date("March 5, 2024"), datetime(2024, 3, 5))

    def test_serial_numbers(self):
        self.assertEqual(parse_date(45226), datetime(2023, 10, 27))
        self.assertEqual(parse_date(45226.5), datetime(2023, 10, 27, 12, 0))
        self.assertIsNone(parse_date(1e12))

    def test_typed_values(self):
        stamp = datetime(2024, 1, 2, 3, 4)
        self.assertIs(parse_date(stamp), stamp)
        self.assertEqual(parse_date(date(2024, 1, 2)), datetime(2024, 1, 2))

    def test_aware_datetimes_become_naive_utc(self):
        self.assertEqual(parse_date(datetime(2024, 1, 1, 12, tzinfo=timezone.utc)), datetime(2024, 1, 1, 12))
        berlin = timezone(timedelta(hours=2))
        self.assertEqual(parse_date(datetime(2024, 6, 1, 10, tzinfo=berlin)), datetime(2024, 6, 1, 8))
        self.assertEqual(parse_date("2024-06-01T10:00:00+02:00"), datetime(2024, 6, 1, 8))
        self.assertEqual(parse_date("2024-06-01T10:00:00Z"), datetime(2024, 6, 1, 10))

    def test_not_a_time_is_none(self):
        self.assertIsNone(parse_date(pd.NaT))

    def test_garbage_is_none(self):
        for value in ("", "   ", "not a date", None, True, float("nan")):
            with self.subTest(value=value):
                self.assertIsNone(parse_date(value))


class FormattingTests(unittest.TestCase):
    def test_format_amount_uses_german_separators(self):
        self.assertEqual(format_amount(1234.56), "1.234,56 €")
        self.assertEqual(format_amount(-0.5, "EUR"), "-0,50 EUR")
        self.assertEqual(format_amount(1000000, ""), "1.000.000,00")

    def test_format_date(self):
        self.assertEqual(format_date(datetime(2024, 1, 2)), "02.01.2024")
        self.assertEqual(format_date(None), "")
        self.assertTrue(math.isclose(parse_amount(format_amount(1234.56, "")), 1234.56))


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from order_recon.settings import DEFAULT_SETTINGS, Settings, load_settings, settings_to_dict


class SettingsTests(unittest.TestCase):
    def test_defaults(self):
        self.assertEqual(DEFAULT_SETTINGS.keywords_for("order"), ("auftrag", "order", "nr"))
        self.assertEqual(DEFAULT_SETTINGS.header_labels["order_number"], "Auftrag Nr.:")
        self.assertEqual(DEFAULT_SETTINGS.amount_tolerance, 0.01)
        self.assertEqual(DEFAULT_SETTINGS.keywords_for("unknown"), ())

    def test_overrides_return_new_instance(self):
        custom = DEFAULT_SETTINGS.with_overrides(amount_tolerance=1, trend_points=5)
        self.assertIsInstance(custom, Settings)
        self.assertEqual(custom.amount_tolerance, 1.0)
        self.assertEqual(custom.trend_points, 5)
        self.assertEqual(DEFAULT_SETTINGS.trend_points, 20)

    def test_keyword_overrides_are_lowercased_and_merged(self):
        custom = DEFAULT_SETTINGS.with_overrides(column_keywords={"amount": [" Preis ", ""]})
        self.assertEqual(custom.keywords_for("amount"), ("preis",))
        self.assertEqual(custom.keywords_for("date"), DEFAULT_SETTINGS.keywords_for("date"))

    def test_invalid_overrides_raise(self):
        cases = [
            {"colour": "blue"},
            {"trend_points": 0},
            {"trend_points": True},
            {"amount_tolerance": -1},
            {"column_keywords": {"customer": ["kunde"]}},
            {"column_keywords": {"amount": "betrag"}},
            {"column_keywords": {"amount": 5}},
            {"column_keywords": {"amount": None}},
            {"header_labels": {"phone": "Tel.:"}},
            {"date_format": 5},
        ]
        for overrides in cases:
            with self.subTest(overrides=overrides):
                with self.assertRaises(ValueError):
                    DEFAULT_SETTINGS.with_overrides(**overrides)

    def test_settings_are_hashable(self):
        self.assertEqual(hash(DEFAULT_SETTINGS), hash(Settings()))
        custom = DEFAULT_SETTINGS.with_overrides(column_keywords={"amount": ["preis"]})
        cache = {DEFAULT_SETTINGS: "default", custom: "custom"}
        self.assertEqual(cache[Settings()], "default")
        self.assertEqual(cache[DEFAULT_SETTINGS.with_overrides(column_keywords={"amount": ["Preis"]})], "custom")
        self.assertEqual(len({DEFAULT_SETTINGS, Settings(), custom}), 2)

    def test_load_settings_round_trip(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "order-recon.json"
            path.write_text(json.dumps({"amount_tolerance": 0.5, "currency_symbol": "EUR"}), encoding="utf-8")
            settings = load_settings(path)
            self.assertEqual(settings.amount_tolerance, 0.5)
            self.assertEqual(settings.currency_symbol, "EUR")

            path.write_text(json.dumps(settings_to_dict(DEFAULT_SETTINGS)), encoding="utf-8")
            self.assertEqual(load_settings(path), DEFAULT_SETTINGS)

    def test_load_settings_rejects_bad_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            broken = Path(tmpdir) / "broken.json"
            broken.write_text("{not json", encoding="utf-8")
            with self.assertRaisesRegex(ValueError, "Could not read settings"):
                load_settings(broken)

            listing = Path(tmpdir) / "list.json"
            listing.write_text("[]", encoding="utf-8")
            with self.assertRaisesRegex(ValueError, "JSON object"):
                load_settings(listing)

            yaml_path = Path(tmpdir) / "settings.yml"
            yaml_path.write_text("amount_tolerance: 1\n", encoding="utf-8")
            with self.assertRaisesRegex(ValueError, ".json"):
                load_settings(yaml_path)

            scalar_keywords = Path(tmpdir) / "scalar.json"
            scalar_keywords.write_text(json.dumps({"column_keywords": {"amount": 5}}), encoding="utf-8")
            with self.assertRaisesRegex(ValueError, "list of strings"):
                load_settings(scalar_keywords)

            with self.assertRaisesRegex(ValueError, "not found"):
                load_settings(Path(tmpdir) / "missing.json")


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

COLUMN_ROLES = ("amount", "date", "order")

COLUMN_KEYWORDS = {
    "amount": ("betrag", "amount", "summe", "wert"),
    "date": ("datum", "date", "zeit", "time"),
    "order": ("auftrag", "order", "nr"),
}

HEADER_LABELS = {
    "date": "Nr.:",
    "order_number": "Auftrag Nr.:",
    "customer": "Kunde:",
    "facility": "Anlage:",
}

LOCATION_LABEL = "Ort:"


def _default_keywords() -> dict[str, tuple[str, ...]]:
    return {role: tuple(words) for role, words in COLUMN_KEYWORDS.items()}


@dataclass(frozen=True)
class Settings:
    """Tunables shared by every core operation.

    column_keywords maps a semantic column role to the lower-case substrings
    that identify it in a header row. header_labels maps HeaderRecord fields
    to the exact label text that precedes their value.
    """

    column_keywords: dict[str, tuple[str, ...]] = field(default_factory=_default_keywords)
    header_labels: dict[str, str] = field(default_factory=lambda: dict(HEADER_LABELS))
    location_label: str = LOCATION_LABEL
    location_occurrence: int = 2
    trend_points: int = 20
    amount_tolerance: float = 0.01
    date_format: str = "%d.%m.%Y"
    currency_symbol: str = "€"

    def __hash__(self) -> int:
        return hash(
            (
                tuple(sorted(self.column_keywords.items())),
                tuple(sorted(self.header_labels.items())),
                self.location_label,
                self.location_occurrence,
                self.trend_points,
                self.amount_tolerance,
                self.date_format,
                self.currency_symbol,
            )
        )

    def keywords_for(self, role: str) -> tuple[str, ...]:
        return tuple(self.column_keywords.get(role, ()))

    def with_overrides(self, **overrides: Any) -> "Settings":
        return replace(self, **_validate_overrides(overrides))


DEFAULT_SETTINGS = Settings()


def _validate_overrides(overrides: dict[str, Any]) -> dict[str, Any]:
    known = {item.name for item in fields(Settings)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(unknown)}")

    cleaned: dict[str, Any] = {}
    for key, value in overrides.items():
        if key == "column_keywords":
            if not isinstance(value, dict):
                raise ValueError("column_keywords must be an object of role -> keyword list")
            merged = _default_keywords()
            for role, words in value.items():
                if role not in COLUMN_ROLES:
                    raise ValueError(f"Unknown column role '{role}'. Known roles: {', '.join(COLUMN_ROLES)}")
                if not isinstance(words, (list, tuple)) or not all(isinstance(word, str) for word in words):
                    raise ValueError(f"Keywords for '{role}' must be a list of strings")
                merged[role] = tuple(word.strip().lower() for word in words if word.strip())
            cleaned[key] = merged
        elif key == "header_labels":
            if not isinstance(value, dict):
                raise ValueError("header_labels must be an object of field -> label")
            labels = dict(HEADER_LABELS)
            for name, label in value.items():
                if name not in HEADER_LABELS:
                    raise ValueError(f"Unknown header field '{name}'")
                labels[name] = str(label)
            cleaned[key] = labels
        elif key in {"location_occurrence", "trend_points"}:
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{key} must be a positive integer")
            cleaned[key] = value
        elif key == "amount_tolerance":
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ValueError("amount_tolerance must be a non-negative number")
            cleaned[key] = float(value)
        else:
            if not isinstance(value, str):
                raise ValueError(f"{key} must be a string")
            cleaned[key] = value
    return cleaned


def load_settings(path: "str | Path") -> Settings:
    """Read a JSON settings file and layer it over the defaults."""
    path = Path(path)
    if not path.exists():
        raise ValueError(f"Settings file not found: {path}")
    if path.suffix.lower() != ".json":
        raise ValueError("Settings must be a .json file")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Could not read settings: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Settings root must be a JSON object.")
    return DEFAULT_SETTINGS.with_overrides(**payload)


def settings_to_dict(settings: Settings) -> dict[str, Any]:
    return {
        "column_keywords": {role: list(words) for role, words in settings.column_keywords.items()},
        "header_labels": dict(settings.header_labels),
        "location_label": settings.location_label,
        "location_occurrence": settings.location_occurrence,
        "trend_points": settings.trend_points,
        "amount_tolerance": settings.amount_tolerance,
        "date_format": settings.date_format,
        "currency_symbol": settings.currency_symbol,
    }

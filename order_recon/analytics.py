"""
Summary statistics and data-health scoring over a header-led matrix.

The first row is the header row. Semantic columns (amount, date, order) are
found by keyword substring match on the lower-cased header text; a column
that cannot be found is reported as index -1 and simply left out of the
calculations that need it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Sequence

from order_recon.cells import Cell, Matrix, data_rows, has_value, header_row, row_cell, to_text
from order_recon.parsing import format_date, is_transaction, parse_amount, parse_date
from order_recon.settings import DEFAULT_SETTINGS, Settings

SCORE_LABELS = [
    (90, "Excellent — complete key columns"),
    (70, "Good — a few gaps to fill"),
    (50, "Fair — significant gaps in key columns"),
    (30, "Poor — most key values missing"),
    (0, "Critical — key columns largely empty"),
]

MISSING_ISSUE_NAMES = {
    "amount": "amounts",
    "date": "dates",
    "order": "order numbers",
}


@dataclass(frozen=True)
class ColumnMap:
    amount: int = -1
    date: int = -1
    order: int = -1

    def detected(self) -> dict[str, int]:
        return {role: idx for role, idx in self.to_dict().items() if idx != -1}

    def to_dict(self) -> dict[str, int]:
        return {"amount": self.amount, "date": self.date, "order": self.order}


@dataclass
class Statistics:
    total_amount: float = 0.0
    average_amount: float = 0.0
    transaction_count: int = 0
    amounts: list[float] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_amount": self.total_amount,
            "average_amount": self.average_amount,
            "transaction_count": self.transaction_count,
            "amounts": list(self.amounts),
        }


@dataclass
class DateRange:
    min: datetime | None = None
    max: datetime | None = None
    label: str = "No dates"

    def to_dict(self) -> dict[str, Any]:
        return {
            "min": self.min.isoformat() if self.min else None,
            "max": self.max.isoformat() if self.max else None,
            "label": self.label,
        }


@dataclass
class HealthAssessment:
    score: int = 0
    completeness: float = 0.0
    issues: list[str] = field(default_factory=list)
    label: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "completeness": round(self.completeness, 2),
            "issues": list(self.issues),
            "label": self.label,
        }


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def health_label(score: int) -> str:
    return next(text for threshold, text in SCORE_LABELS if score >= threshold)


def detect_column(headers: Sequence[Cell], keywords: Iterable[str]) -> int:
    needles = [keyword.lower() for keyword in keywords if keyword]
    for idx, cell in enumerate(headers):
        text = to_text(cell).strip().lower()
        if any(needle in text for needle in needles):
            return idx
    return -1


def resolve_columns(matrix: Matrix, settings: Settings = DEFAULT_SETTINGS) -> ColumnMap:
    headers = header_row(matrix)
    return ColumnMap(
        amount=detect_column(headers, settings.keywords_for("amount")),
        date=detect_column(headers, settings.keywords_for("date")),
        order=detect_column(headers, settings.keywords_for("order")),
    )


def calculate_statistics(matrix: Matrix, settings: Settings = DEFAULT_SETTINGS) -> Statistics:
    if not matrix or len(matrix) <= 1:
        return Statistics()
    amount_idx = resolve_columns(matrix, settings).amount
    if amount_idx == -1:
        return Statistics()

    total = 0.0
    amounts: list[float] = []
    for row in data_rows(matrix):
        raw = row_cell(row, amount_idx)
        amount = parse_amount(raw)
        if is_transaction(raw, amount):
            total += amount
            amounts.append(amount)

    count = len(amounts)
    return Statistics(
        total_amount=total,
        average_amount=total / count if count else 0.0,
        transaction_count=count,
        amounts=amounts,
    )


def calculate_date_range(matrix: Matrix, settings: Settings = DEFAULT_SETTINGS) -> DateRange:
    if not matrix or len(matrix) <= 1:
        return DateRange(label="No dates")
    date_idx = resolve_columns(matrix, settings).date
    if date_idx == -1:
        return DateRange(label="No date column")

    earliest: datetime | None = None
    latest: datetime | None = None
    for row in data_rows(matrix):
        parsed = parse_date(row_cell(row, date_idx))
        if parsed is None:
            continue
        if earliest is None or parsed < earliest:
            earliest = parsed
        if latest is None or parsed > latest:
            latest = parsed

    if earliest is None or latest is None:
        return DateRange(label="No valid dates")
    label = f"{format_date(earliest, settings.date_format)} – {format_date(latest, settings.date_format)}"
    return DateRange(min=earliest, max=latest, label=label)


def generate_trend_data(amounts: Sequence[float], points: int = DEFAULT_SETTINGS.trend_points) -> list[float]:
    """
    Downsample a series for a sparkline by taking every n//points-th value.

    This is plain striding, not interpolation: the result is capped at
    `points` values and may skip peaks.
    """
    if not amounts or points <= 0:
        return []
    if len(amounts) <= points:
        return list(amounts)
    step = len(amounts) // points
    return list(amounts[::step])[:points]


def assess_data_health(matrix: Matrix, settings: Settings = DEFAULT_SETTINGS) -> HealthAssessment:
    if not matrix or len(matrix) <= 1:
        return HealthAssessment(score=0, completeness=0.0, issues=["No data loaded"], label=health_label(0))

    detected = resolve_columns(matrix, settings).detected()
    if not detected:
        return HealthAssessment(
            score=0,
            completeness=0.0,
            issues=["Could not identify key columns"],
            label=health_label(0),
        )

    rows = data_rows(matrix)
    expected = len(rows) * len(detected)
    missing = {role: 0 for role in detected}
    filled = 0
    for row in rows:
        for role, idx in detected.items():
            if has_value(row_cell(row, idx)):
                filled += 1
            else:
                missing[role] += 1

    completeness = (filled / expected) * 100 if expected else 0.0
    score = round_half_up(completeness)
    if filled < expected:
        score = min(score, 99)

    issues = [
        f"{missing[role]} missing {MISSING_ISSUE_NAMES[role]}"
        for role in ("amount", "date", "order")
        if missing.get(role, 0) > 0
    ]
    if not issues and rows:
        issues.append("Data looks healthy")

    return HealthAssessment(score=score, completeness=completeness, issues=issues, label=health_label(score))

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from order_recon.analytics import detect_column
from order_recon.cells import Matrix, data_rows, header_row, row_cell, to_text
from order_recon.settings import DEFAULT_SETTINGS, Settings

DEFAULT_TARGETS = [
    "Montage",
    "Demontage",
    "Reparatur",
    "Wartung",
    "Inbetriebnahme",
    "Prüfung",
    "Beratung",
    "Schulung",
]


@dataclass
class CountResult:
    counts: dict[str, int] = field(default_factory=dict)
    total_matches: int = 0
    row_count: int = 0
    unique_targets_found: int = 0

    def to_dict(self) -> dict:
        return {
            "counts": dict(self.counts),
            "total_matches": self.total_matches,
            "row_count": self.row_count,
            "unique_targets_found": self.unique_targets_found,
        }


def unique_targets(targets: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for target in targets:
        if target in seen:
            continue
        seen.add(target)
        ordered.append(target)
    return ordered


def count_targets(matrix: Matrix, targets: Iterable[str]) -> CountResult:
    """
    Count case-insensitive substring hits of each target across every cell.

    A cell contributes at most one hit per target. The counts map always
    carries every target, including the ones that were never found.
    """
    ordered = unique_targets(targets)
    if not ordered:
        return CountResult()

    counts = {target: 0 for target in ordered}
    needles = [(target, target.lower()) for target in ordered]
    total = 0

    for row in matrix:
        for cell in row or ():
            text = to_text(cell).strip().lower()
            for target, needle in needles:
                if needle in text:
                    counts[target] += 1
                    total += 1

    return CountResult(
        counts=counts,
        total_matches=total,
        row_count=len(matrix),
        unique_targets_found=sum(1 for count in counts.values() if count > 0),
    )


def parse_targets(text: str) -> tuple[list[str], list[str]]:
    """Split a one-per-line target list into (targets, duplicates)."""
    seen: set[str] = set()
    duplicates: list[str] = []
    targets: list[str] = []
    for line in text.splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue
        if trimmed in seen:
            if trimmed not in duplicates:
                duplicates.append(trimmed)
            continue
        seen.add(trimmed)
        targets.append(trimmed)
    return targets, duplicates


def derive_targets(matrix: Matrix, settings: Settings = DEFAULT_SETTINGS) -> list[str]:
    """Unique order identifiers listed in the Order Log's order column."""
    order_idx = detect_column(header_row(matrix), settings.keywords_for("order"))
    if order_idx == -1:
        return []
    values = []
    for row in data_rows(matrix):
        text = to_text(row_cell(row, order_idx)).strip()
        if text:
            values.append(text)
    return unique_targets(values)


def rank_counts(
    result: CountResult,
    by: str = "count",
    descending: bool = True,
    query: str = "",
) -> list[tuple[str, int]]:
    needle = query.strip().lower()
    rows = [
        (target, count)
        for target, count in result.counts.items()
        if not needle or needle in target.lower()
    ]
    if by == "target":
        rows.sort(key=lambda item: item[0].lower(), reverse=descending)
    elif by == "count":
        rows.sort(key=lambda item: item[0].lower())
        rows.sort(key=lambda item: item[1], reverse=descending)
    else:
        raise ValueError(f"Unknown sort column '{by}'. Use 'count' or 'target'.")
    return rows

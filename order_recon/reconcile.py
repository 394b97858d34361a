"""
Record-level reconciliation between two header-led matrices.

Side A is the Order Log, side B the Billing Export. Each data row is
projected into an OrderRecord keyed by its normalised order number; the two
keyed sets are then joined and every key is classified exactly once:

    match            key on both sides, amounts within tolerance
    amount_mismatch  key on both sides, amounts differ
    missing_in_b     key only in A
    missing_in_a     key only in B

A key that repeats within one side keeps its last row; the repeats are
reported as warnings so the caller can surface them.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Union

from order_recon.analytics import ColumnMap, resolve_columns, round_half_up
from order_recon.cells import Cell, Matrix, data_rows, row_cell, to_text
from order_recon.parsing import parse_amount, parse_date
from order_recon.settings import DEFAULT_SETTINGS, Settings

MATCH = "match"
AMOUNT_MISMATCH = "amount_mismatch"
MISSING_IN_B = "missing_in_b"
MISSING_IN_A = "missing_in_a"

STATUS_LABELS = {
    MATCH: "Match",
    AMOUNT_MISMATCH: "Amount Mismatch",
    MISSING_IN_B: "Missing in B",
    MISSING_IN_A: "Missing in A",
}

EXPORT_HEADERS = ["OrderKey", "Status", "AmountA", "AmountB", "Difference", "Message"]
NOT_AVAILABLE = "N/A"
NO_DIFFERENCE = "—"


@dataclass(frozen=True)
class OrderRecord:
    order_key: str
    amount: float = 0.0
    date: datetime | None = None
    row_index: int = 0


@dataclass
class RecordSet:
    records: dict[str, OrderRecord] = field(default_factory=dict)
    columns: ColumnMap = field(default_factory=ColumnMap)
    duplicates: list[str] = field(default_factory=list)
    skipped_rows: int = 0
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReconciliationItem:
    status: str
    order_key: str
    amount_a: float | None = None
    amount_b: float | None = None
    difference: float | None = None
    message: str = ""
    date_a: datetime | None = None
    date_b: datetime | None = None

    @property
    def status_label(self) -> str:
        return STATUS_LABELS[self.status]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "order_key": self.order_key,
            "amount_a": self.amount_a,
            "amount_b": self.amount_b,
            "difference": self.difference,
            "message": self.message,
            "date_a": self.date_a.isoformat() if self.date_a else None,
            "date_b": self.date_b.isoformat() if self.date_b else None,
        }


@dataclass
class ReconciliationResult:
    items: list[ReconciliationItem] = field(default_factory=list)
    total_a: int = 0
    total_b: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def matches(self) -> list[ReconciliationItem]:
        return [item for item in self.items if item.status == MATCH]

    @property
    def discrepancies(self) -> list[ReconciliationItem]:
        return [item for item in self.items if item.status != MATCH]

    def by_status(self, status: str | None = None) -> list[ReconciliationItem]:
        if status is None:
            return self.discrepancies
        return [item for item in self.items if item.status == status]


@dataclass(frozen=True)
class ReconciliationSummary:
    match_count: int = 0
    match_percentage: int = 0
    discrepancy_count: int = 0
    amount_mismatches: int = 0
    missing_in_a: int = 0
    missing_in_b: int = 0
    total_a: int = 0
    total_b: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "match_count": self.match_count,
            "match_percentage": self.match_percentage,
            "discrepancy_count": self.discrepancy_count,
            "amount_mismatches": self.amount_mismatches,
            "missing_in_a": self.missing_in_a,
            "missing_in_b": self.missing_in_b,
            "total_a": self.total_a,
            "total_b": self.total_b,
        }


RecordsInput = Union[RecordSet, Iterable[OrderRecord]]


def normalize_order_key(value: Cell) -> str:
    return to_text(value).strip().upper()


def extract_records(matrix: Matrix, settings: Settings = DEFAULT_SETTINGS, side: str = "A") -> RecordSet:
    columns = resolve_columns(matrix, settings) if matrix else ColumnMap()
    if columns.order == -1:
        return RecordSet(
            columns=columns,
            warnings=[f"Side {side}: no order column detected; no records extracted"],
        )

    warnings: list[str] = []
    if columns.amount == -1:
        warnings.append(f"Side {side}: no amount column detected; amounts read as 0")

    records: dict[str, OrderRecord] = {}
    duplicates: list[str] = []
    skipped = 0
    for offset, row in enumerate(data_rows(matrix), start=1):
        key = normalize_order_key(row_cell(row, columns.order))
        if not key:
            skipped += 1
            continue
        if key in records and key not in duplicates:
            duplicates.append(key)
        records[key] = OrderRecord(
            order_key=key,
            amount=parse_amount(row_cell(row, columns.amount)) if columns.amount != -1 else 0.0,
            date=parse_date(row_cell(row, columns.date)) if columns.date != -1 else None,
            row_index=offset,
        )

    if duplicates:
        sample = ", ".join(duplicates[:5])
        extra = f" (+{len(duplicates) - 5} more)" if len(duplicates) > 5 else ""
        warnings.append(
            f"Side {side}: {len(duplicates)} order keys repeat; last row kept for {sample}{extra}"
        )

    return RecordSet(records=records, columns=columns, duplicates=duplicates, skipped_rows=skipped, warnings=warnings)


def _as_record_map(records: RecordsInput) -> dict[str, OrderRecord]:
    if isinstance(records, RecordSet):
        return dict(records.records)
    mapped: dict[str, OrderRecord] = {}
    for record in records:
        key = record.order_key.strip().upper()
        if key:
            mapped[key] = record
    return mapped


def _amounts_match(amount_a: float, amount_b: float, tolerance: float) -> bool:
    if tolerance <= 0:
        return amount_a == amount_b
    return abs(amount_b - amount_a) < tolerance


def reconcile(
    records_a: RecordsInput,
    records_b: RecordsInput,
    tolerance: float = DEFAULT_SETTINGS.amount_tolerance,
) -> ReconciliationResult:
    side_a = _as_record_map(records_a)
    side_b = _as_record_map(records_b)
    items: list[ReconciliationItem] = []

    for key, entry_a in side_a.items():
        entry_b = side_b.get(key)
        if entry_b is None:
            items.append(
                ReconciliationItem(
                    status=MISSING_IN_B,
                    order_key=key,
                    amount_a=entry_a.amount,
                    message=f"Order {key} found in A but missing in B",
                    date_a=entry_a.date,
                )
            )
            continue

        if _amounts_match(entry_a.amount, entry_b.amount, tolerance):
            items.append(
                ReconciliationItem(
                    status=MATCH,
                    order_key=key,
                    amount_a=entry_a.amount,
                    amount_b=entry_b.amount,
                    message="Amounts match",
                    date_a=entry_a.date,
                    date_b=entry_b.date,
                )
            )
        else:
            items.append(
                ReconciliationItem(
                    status=AMOUNT_MISMATCH,
                    order_key=key,
                    amount_a=entry_a.amount,
                    amount_b=entry_b.amount,
                    difference=round(entry_b.amount - entry_a.amount, 2),
                    message=(
                        f"Amount mismatch for order {key}: "
                        f"A {entry_a.amount:.2f} vs B {entry_b.amount:.2f}"
                    ),
                    date_a=entry_a.date,
                    date_b=entry_b.date,
                )
            )

    for key, entry_b in side_b.items():
        if key in side_a:
            continue
        items.append(
            ReconciliationItem(
                status=MISSING_IN_A,
                order_key=key,
                amount_b=entry_b.amount,
                message=f"Order {key} found in B but missing in A",
                date_b=entry_b.date,
            )
        )

    warnings: list[str] = []
    for source in (records_a, records_b):
        if isinstance(source, RecordSet):
            warnings.extend(source.warnings)

    return ReconciliationResult(items=items, total_a=len(side_a), total_b=len(side_b), warnings=warnings)


def reconcile_matrices(
    matrix_a: Matrix,
    matrix_b: Matrix,
    settings: Settings = DEFAULT_SETTINGS,
) -> ReconciliationResult:
    records_a = extract_records(matrix_a, settings, side="A")
    records_b = extract_records(matrix_b, settings, side="B")
    return reconcile(records_a, records_b, tolerance=settings.amount_tolerance)


def get_reconciliation_summary(result: ReconciliationResult | None) -> ReconciliationSummary:
    if result is None:
        return ReconciliationSummary()

    counts = {status: 0 for status in STATUS_LABELS}
    for item in result.items:
        counts[item.status] += 1

    denominator = max(result.total_a, result.total_b)
    percentage = round_half_up(counts[MATCH] / denominator * 100) if denominator > 0 else 0
    return ReconciliationSummary(
        match_count=counts[MATCH],
        match_percentage=percentage,
        discrepancy_count=len(result.items) - counts[MATCH],
        amount_mismatches=counts[AMOUNT_MISMATCH],
        missing_in_a=counts[MISSING_IN_A],
        missing_in_b=counts[MISSING_IN_B],
        total_a=result.total_a,
        total_b=result.total_b,
    )


def _format_optional(value: float | None) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{value:.2f}"


def export_rows(result: ReconciliationResult) -> list[list[str]]:
    rows = [list(EXPORT_HEADERS)]
    for item in result.matches + result.discrepancies:
        rows.append(
            [
                item.order_key,
                item.status_label,
                _format_optional(item.amount_a),
                _format_optional(item.amount_b),
                f"{item.difference:.2f}" if item.status == AMOUNT_MISMATCH else NO_DIFFERENCE,
                item.message,
            ]
        )
    return rows


def export_csv(result: ReconciliationResult, delimiter: str = ",") -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\n")
    writer.writerows(export_rows(result))
    return buffer.getvalue()

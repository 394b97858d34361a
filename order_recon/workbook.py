from __future__ import annotations

from pathlib import Path

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from order_recon.reconcile import (
    AMOUNT_MISMATCH,
    EXPORT_HEADERS,
    MISSING_IN_A,
    MISSING_IN_B,
    ReconciliationItem,
    ReconciliationResult,
    get_reconciliation_summary,
)

SUMMARY_LABELS = [
    ("total_a", "Records in A"),
    ("total_b", "Records in B"),
    ("match_count", "Matches"),
    ("amount_mismatches", "Amount mismatches"),
    ("missing_in_b", "Missing in B"),
    ("missing_in_a", "Missing in A"),
    ("discrepancy_count", "Discrepancies"),
    ("match_percentage", "Match %"),
]

# Row fills on the Discrepancies sheet, keyed by status
STATUS_FILLS = {
    AMOUNT_MISMATCH: PatternFill("solid", fgColor="FFF2CC"),   # soft yellow
    MISSING_IN_B: PatternFill("solid", fgColor="FCE4D6"),      # soft orange
    MISSING_IN_A: PatternFill("solid", fgColor="DDEBF7"),      # soft blue
}


def _style_sheet(ws, col_widths: list[int], header_color: str):
    """Apply bold header, color, frozen row, and column widths."""
    fill = PatternFill("solid", fgColor=header_color)
    font = Font(bold=True, color="FFFFFF")
    for cell in ws[1]:
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=False)
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def _infer_col_widths(rows: list[list], min_width: int = 10, max_width: int = 60, sample: int = 300) -> list[int]:
    if not rows:
        return []
    widths = [max(min_width, min(max_width, len(str(v)) + 2)) for v in rows[0]]
    for row in rows[1 : sample + 1]:
        for i, val in enumerate(row):
            widths[i] = max(widths[i], min(max_width, len(str(val)) + 2))
    return widths


def _item_row(item: ReconciliationItem) -> list:
    return [
        item.order_key,
        item.status_label,
        item.amount_a,
        item.amount_b,
        item.difference,
        item.message,
    ]


def _write_items(ws, items: list[ReconciliationItem], header_color: str, highlight: bool) -> None:
    rows = [list(EXPORT_HEADERS)] + [_item_row(item) for item in items]
    for row in rows:
        ws.append(row)
    _style_sheet(ws, _infer_col_widths(rows), header_color)
    for row_idx, item in enumerate(items, start=2):
        for col_idx in (3, 4, 5):
            ws.cell(row=row_idx, column=col_idx).number_format = "#,##0.00"
        fill = STATUS_FILLS.get(item.status) if highlight else None
        if fill is not None:
            for cell in ws[row_idx]:
                cell.fill = fill


def write_reconciliation_workbook(
    result: ReconciliationResult,
    output_path: Path,
    *,
    label_a: str = "Order Log",
    label_b: str = "Billing Export",
) -> Path:
    """Write Summary, Matches and Discrepancies sheets for one reconciliation."""
    summary = get_reconciliation_summary(result).to_dict()
    wb = openpyxl.Workbook()

    ws_summary = wb.active
    ws_summary.title = "Summary"
    ws_summary.append(["Metric", "Value"])
    ws_summary.append(["Side A", label_a])
    ws_summary.append(["Side B", label_b])
    for key, label in SUMMARY_LABELS:
        ws_summary.append([label, summary[key]])
    for warning in result.warnings:
        ws_summary.append(["Warning", warning])
    _style_sheet(ws_summary, [24, 60], "2F5496")

    _write_items(wb.create_sheet("Matches"), result.matches, "4CAF50", highlight=False)
    _write_items(wb.create_sheet("Discrepancies"), result.discrepancies, "C0504D", highlight=True)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    return output_path

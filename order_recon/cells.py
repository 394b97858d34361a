from __future__ import annotations

import math
from datetime import date, datetime, time
from typing import Any, Sequence

Cell = Any
Row = Sequence[Cell]
Matrix = Sequence[Row]

KIND_EMPTY = "empty"
KIND_NUMBER = "number"
KIND_DATE = "date"
KIND_TEXT = "text"


def is_empty(value: Cell) -> bool:
    """True for cells that hold nothing at all (whitespace still counts as content)."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, datetime) and value != value:
        # pandas NaT
        return True
    return isinstance(value, str) and value == ""


def is_number(value: Cell) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return isinstance(value, (int, float))


def cell_kind(value: Cell) -> str:
    if is_empty(value):
        return KIND_EMPTY
    if is_number(value):
        return KIND_NUMBER
    if isinstance(value, (datetime, date, time)):
        return KIND_DATE
    return KIND_TEXT


def to_text(value: Cell) -> str:
    if is_empty(value):
        return ""
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.strftime("%Y-%m-%d")
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).replace("\x00", "")


def has_value(value: Cell) -> bool:
    return to_text(value).strip() != ""


def cell_at(matrix: Matrix, row_idx: int, col_idx: int) -> Cell:
    """Bounds-checked access; ragged or missing positions read as None."""
    if row_idx < 0 or col_idx < 0 or row_idx >= len(matrix):
        return None
    row = matrix[row_idx]
    if row is None or col_idx >= len(row):
        return None
    return row[col_idx]


def trimmed_text(matrix: Matrix, row_idx: int, col_idx: int) -> str:
    return to_text(cell_at(matrix, row_idx, col_idx)).strip()


def header_row(matrix: Matrix) -> list[Cell]:
    if not matrix or matrix[0] is None:
        return []
    return list(matrix[0])


def data_rows(matrix: Matrix) -> list[Row]:
    return [row if row is not None else [] for row in matrix[1:]]


def row_cell(row: Row, col_idx: int) -> Cell:
    if row is None or col_idx < 0 or col_idx >= len(row):
        return None
    return row[col_idx]

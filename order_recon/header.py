from __future__ import annotations

from dataclasses import asdict, dataclass

from order_recon.cells import Matrix, trimmed_text
from order_recon.settings import DEFAULT_SETTINGS, Settings


@dataclass(frozen=True)
class HeaderRecord:
    date: str = ""
    order_number: str = ""
    location: str = ""
    customer: str = ""
    facility: str = ""

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def find_value_right(matrix: Matrix, label: str) -> str:
    """
    Value of the first cell whose trimmed text equals label exactly.

    The value sits in the cell immediately to the right of the label in the
    same row. A label in the last column of its row yields "".
    """
    for row_idx, row in enumerate(matrix):
        for col_idx in range(len(row or ())):
            if trimmed_text(matrix, row_idx, col_idx) == label:
                return trimmed_text(matrix, row_idx, col_idx + 1)
    return ""


def find_value_below(matrix: Matrix, label: str, occurrence: int = 2) -> str:
    """
    Value below the n-th occurrence of label (earlier occurrences are ignored).

    The location block of the Order Log repeats its label; only the later
    copy has its value underneath instead of beside it.
    """
    seen = 0
    for row_idx, row in enumerate(matrix):
        for col_idx in range(len(row or ())):
            if trimmed_text(matrix, row_idx, col_idx) != label:
                continue
            seen += 1
            if seen == occurrence:
                return trimmed_text(matrix, row_idx + 1, col_idx)
    return ""


def extract_header(matrix: Matrix, settings: Settings = DEFAULT_SETTINGS) -> HeaderRecord:
    labels = settings.header_labels
    return HeaderRecord(
        date=find_value_right(matrix, labels["date"]),
        order_number=find_value_right(matrix, labels["order_number"]),
        location=find_value_below(matrix, settings.location_label, settings.location_occurrence),
        customer=find_value_right(matrix, labels["customer"]),
        facility=find_value_right(matrix, labels["facility"]),
    )

"""
Locale-aware scalar parsing for spreadsheet cells.

Amounts follow the German convention used by the exports: "." groups
thousands and "," separates decimals ("1.234,56 €" -> 1234.56). Dates are
either spreadsheet serial numbers (epoch 1899-12-30) or text, tried as
DD.MM.YYYY before a short list of generic formats.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta

from order_recon.cells import Cell, is_empty, is_number

CURRENCY_STRIP_RE = re.compile(r"[€$£\s]")
LEADING_FLOAT_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
DOTTED_DATE_RE = re.compile(r"(\d{1,2})\.(\d{1,2})\.(\d{4})")

SERIAL_EPOCH = datetime(1899, 12, 30)

GENERIC_DATE_FORMATS = [
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
]


def parse_amount(value: Cell) -> float:
    if is_number(value):
        return float(value)
    if not isinstance(value, str) or value == "":
        return 0.0

    cleaned = CURRENCY_STRIP_RE.sub("", value).replace(".", "").replace(",", ".", 1)
    match = LEADING_FLOAT_RE.match(cleaned)
    if not match:
        return 0.0
    parsed = float(match.group(0))
    if math.isinf(parsed) or math.isnan(parsed):
        return 0.0
    return parsed


def is_transaction(value: Cell, amount: float) -> bool:
    """A row counts when its amount is non-zero or its raw cell was filled at all."""
    return amount != 0 or not is_empty(value)


def parse_date(value: Cell) -> datetime | None:
    if isinstance(value, datetime):
        if is_empty(value):
            return None
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if is_number(value):
        return _from_serial(float(value))
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    dotted = DOTTED_DATE_RE.search(text)
    if dotted:
        day, month, year = (int(part) for part in dotted.groups())
        try:
            return datetime(year, month, day)
        except ValueError:
            return None

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
    if parsed is not None:
        return _naive_utc(parsed)

    for fmt in GENERIC_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _naive_utc(value: datetime) -> datetime:
    """Aware datetimes are shifted to UTC and stripped so they compare with naive cells."""
    if value.tzinfo is None:
        return value
    return value.replace(tzinfo=None) - (value.utcoffset() or timedelta(0))


def _from_serial(serial: float) -> datetime | None:
    if math.isnan(serial) or math.isinf(serial):
        return None
    try:
        return SERIAL_EPOCH + timedelta(days=serial)
    except OverflowError:
        return None


def format_amount(value: float, currency_symbol: str = "€") -> str:
    """Render 1234.5 as '1.234,50 €'."""
    grouped = f"{abs(value):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    sign = "-" if value < 0 and round(abs(value), 2) != 0 else ""
    if not currency_symbol:
        return f"{sign}{grouped}"
    return f"{sign}{grouped} {currency_symbol}"


def format_date(value: datetime | date | None, fmt: str = "%d.%m.%Y") -> str:
    if value is None:
        return ""
    return value.strftime(fmt)

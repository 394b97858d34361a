"""
loader.py — turns an exported file into a cell matrix for order-recon

Supports: .csv .tsv .txt .xlsx .xlsm .xls .ods

Public API:
    result = load_matrix("path/to/Protokoll.xlsx")
    matrix = result["matrix"]

Result dict keys:
    matrix            — list of rows, each a list of cells (ragged, header row first)
    detected_format   — "csv", "xlsx", "ods", etc.
    detected_encoding — encoding name for text files; None for workbooks
    encoding_info     — full dict: detected, confidence, is_utf8, suspicious_chars
    delimiter         — delimiter char for text files; None otherwise
    sheet_name        — sheet that was read for workbooks; None otherwise
    sheet_names       — all sheet names for workbooks; None otherwise
    row_count         — number of rows in matrix
    warnings          — list of warning strings

The core never sees a partially read file: any failure here raises before a
matrix is returned.
"""

from __future__ import annotations

import csv
import io
import math
import zipfile
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import chardet
import pandas as pd
from openpyxl import load_workbook

# ── Format groups ──────────────────────────────────────────────────────────────
TEXT_FORMATS     = {".csv", ".tsv", ".txt"}
OPENPYXL_FORMATS = {".xlsx", ".xlsm"}
PANDAS_FORMATS   = {".xls", ".ods"}
ALL_FORMATS      = TEXT_FORMATS | OPENPYXL_FORMATS | PANDAS_FORMATS


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING / DELIMITER DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding_info(raw: bytes) -> dict:
    """Detect encoding from raw bytes with chardet and list undecodable lines."""
    result     = chardet.detect(raw)
    detected   = result.get("encoding") or "unknown"
    confidence = round(result.get("confidence") or 0.0, 2)

    is_utf8 = detected.upper().replace("-", "") in ("UTF8", "ASCII", "UTF8SIG")

    suspicious: list[str] = []
    if not is_utf8:
        for row_idx, line in enumerate(raw.split(b"\n")[:100], start=1):
            try:
                line.decode("utf-8")
            except UnicodeDecodeError as e:
                bad_byte = line[e.start : e.end]
                suspicious.append(f"row {row_idx}: byte {bad_byte!r} at position {e.start}")

    return {
        "detected":         detected,
        "confidence":       confidence,
        "is_utf8":          is_utf8,
        "suspicious_chars": suspicious[:10],
    }


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Billing exports are often re-saved by hand, so a single file can mix
    UTF-8 and Windows-1252 lines. Each line tries UTF-8, the detected
    encoding, latin-1, then CP1252 with replacement.
    """
    if raw.startswith(b"\xef\xbb\xbf"):
        raw = raw[3:]
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc or enc == "unknown":
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", "").rstrip("\r"))
    return "\n".join(decoded_lines)


def _detect_delimiter(text: str) -> str:
    """
    Infer the delimiter from sample lines.

    German exports default to ";", so csv.Sniffer is tried first and the
    fallback scores each candidate by column-count consistency.
    """
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            pass

    best_delim = ","
    best_score = float("-inf")
    for delim in [";", ",", "\t", "|"]:
        rows = [row for row in csv.reader(io.StringIO(sample), delimiter=delim) if any(cell.strip() for cell in row)]
        if len(rows) < 1:
            continue
        widths = Counter(len(row) for row in rows)
        mode_width, mode_count = widths.most_common(1)[0]
        score = mode_width * 2.0 + (mode_count / len(rows)) * mode_width
        if mode_width == 1:
            score -= 10.0
        if score > best_score:
            best_score = score
            best_delim = delim
    return best_delim


# ══════════════════════════════════════════════════════════════════════════════
# CELL / ROW NORMALISATION
# ══════════════════════════════════════════════════════════════════════════════

def _normalize_cell(value: Any) -> Any:
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        return value.to_pydatetime().replace(tzinfo=None)
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str):
        return value.replace("\x00", "")
    if hasattr(value, "item") and not isinstance(value, (bool, int, float)):
        # numpy scalars from pandas
        return _normalize_cell(value.item())
    return value


def _trim_row(row: list[Any]) -> list[Any]:
    end = len(row)
    while end > 0 and (row[end - 1] is None or row[end - 1] == ""):
        end -= 1
    return row[:end]


def _trim_rows(rows: list[list[Any]]) -> list[list[Any]]:
    trimmed = [_trim_row([_normalize_cell(value) for value in row]) for row in rows]
    while trimmed and not trimmed[-1]:
        trimmed.pop()
    return trimmed


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT LOADERS
# ══════════════════════════════════════════════════════════════════════════════

def _load_text(path: Path, suffix: str) -> dict:
    """Load .csv, .tsv or .txt; every cell stays text so locale parsing happens in the core."""
    raw      = path.read_bytes()
    enc_info = _detect_encoding_info(raw)
    enc      = enc_info["detected"] if enc_info["detected"] != "unknown" else "utf-8"
    text     = _read_text_safely(raw, enc)

    delimiter = "\t" if suffix == ".tsv" else _detect_delimiter(text)

    if not text.strip():
        matrix: list[list[Any]] = []
    else:
        width = max(len(row) for row in csv.reader(io.StringIO(text), delimiter=delimiter)) or 1
        try:
            df = pd.read_csv(
                io.StringIO(text),
                sep=r"\|" if delimiter == "|" else delimiter,
                header=None,
                names=list(range(width)),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=False,
                engine="python",
            )
        except Exception as exc:
            raise ValueError(f"Could not parse {suffix} file: {exc}") from exc
        matrix = _trim_rows(df.values.tolist())

    warnings: list[str] = []
    if enc_info["suspicious_chars"]:
        warnings.append(
            f"Mixed or non-UTF-8 encoding ({enc_info['detected']}); "
            f"{len(enc_info['suspicious_chars'])} lines needed a fallback decoder"
        )

    return {
        "matrix":            matrix,
        "detected_format":   suffix.lstrip("."),
        "detected_encoding": enc,
        "encoding_info":     enc_info,
        "delimiter":         delimiter,
        "sheet_name":        None,
        "sheet_names":       None,
        "row_count":         len(matrix),
        "warnings":          warnings,
    }


def _is_encrypted_ooxml(path: Path) -> bool:
    try:
        with zipfile.ZipFile(path) as archive:
            names = set(archive.namelist())
    except zipfile.BadZipFile:
        return False
    return {"EncryptedPackage", "EncryptionInfo"}.issubset(names)


def _choose_sheet(all_sheets: list[str], sheet_name: Optional[str], warnings: list[str]) -> str:
    if not all_sheets:
        raise ValueError("Workbook contains no sheets.")
    if sheet_name is not None:
        if sheet_name not in all_sheets:
            raise ValueError(f"Sheet '{sheet_name}' not found. Available: {all_sheets}")
        return sheet_name
    chosen = all_sheets[0]
    if len(all_sheets) > 1:
        others = [name for name in all_sheets if name != chosen]
        warnings.append(f"Multiple sheets found ({len(all_sheets)} total); used '{chosen}'. Ignored: {others}")
    return chosen


def _load_openpyxl(path: Path, suffix: str, sheet_name: Optional[str]) -> dict:
    """Load .xlsx/.xlsm with cached values, keeping numbers and dates typed."""
    if _is_encrypted_ooxml(path):
        raise ValueError("Password-protected / encrypted OOXML workbooks are not supported")
    try:
        workbook = load_workbook(path, data_only=True, read_only=True)
    except Exception as exc:
        raise ValueError(f"Could not open workbook: {exc}") from exc

    warnings: list[str] = []
    try:
        chosen = _choose_sheet(list(workbook.sheetnames), sheet_name, warnings)
        sheet = workbook[chosen]
        rows = [list(row) for row in sheet.iter_rows(values_only=True)]
        all_sheets = list(workbook.sheetnames)
    finally:
        workbook.close()

    matrix = _trim_rows(rows)
    return {
        "matrix":            matrix,
        "detected_format":   suffix.lstrip("."),
        "detected_encoding": None,
        "encoding_info":     None,
        "delimiter":         None,
        "sheet_name":        chosen,
        "sheet_names":       all_sheets,
        "row_count":         len(matrix),
        "warnings":          warnings,
    }


def _load_pandas_workbook(path: Path, suffix: str, sheet_name: Optional[str]) -> dict:
    """Load legacy .xls (xlrd) or .ods (odfpy) through pandas."""
    engine = "xlrd" if suffix == ".xls" else "odf"
    try:
        __import__(engine)
    except ImportError:
        package = "xlrd" if suffix == ".xls" else "odfpy"
        raise ImportError(f"{suffix} files require {package} — run: pip install {package}")

    try:
        with pd.ExcelFile(path, engine=engine) as xf:
            all_sheets = [str(name) for name in xf.sheet_names]
    except Exception as exc:
        raise ValueError(f"Could not open workbook: {exc}") from exc

    warnings: list[str] = []
    chosen = _choose_sheet(all_sheets, sheet_name, warnings)
    try:
        df = pd.read_excel(path, sheet_name=chosen, header=None, engine=engine)
    except Exception as exc:
        raise ValueError(f"Could not load sheet '{chosen}': {exc}") from exc

    matrix = _trim_rows(df.astype(object).values.tolist())
    return {
        "matrix":            matrix,
        "detected_format":   suffix.lstrip("."),
        "detected_encoding": None,
        "encoding_info":     None,
        "delimiter":         None,
        "sheet_name":        chosen,
        "sheet_names":       all_sheets,
        "row_count":         len(matrix),
        "warnings":          warnings,
    }


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def load_matrix(path: "str | Path", sheet_name: Optional[str] = None) -> dict:
    """
    Load any supported file into a row-major cell matrix.

    Args:
        path:       Path to the file (str or Path).
        sheet_name: For workbooks: which sheet to read. None = first sheet.

    Returns:
        dict with keys: matrix, detected_format, detected_encoding,
        encoding_info, delimiter, sheet_name, sheet_names, row_count, warnings.

    Raises:
        FileNotFoundError  if the file does not exist.
        ValueError         if the format is unsupported or unreadable.
        ImportError        if a required optional engine is missing.
    """
    path   = Path(path)
    suffix = path.suffix.lower()

    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise ValueError(f"Unsupported format '{suffix}'. Supported: {supported}")

    if suffix in TEXT_FORMATS:
        return _load_text(path, suffix)

    if suffix in OPENPYXL_FORMATS:
        return _load_openpyxl(path, suffix, sheet_name)

    return _load_pandas_workbook(path, suffix, sheet_name)

"""File format detection and CSV / workbook row parsing.

Dispatch by MIME type first, then extension:
  text/csv, .csv                                  → csv
  spreadsheetml / ms-excel, .xlsx .xlsm .xls      → workbook
  anything else                                   → text
"""

from __future__ import annotations

import csv
import io
import zipfile
from pathlib import PurePath

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from dashrag.errors import UnsupportedFormatError
from dashrag.ingest.tabular import MISSING, Row

_CSV_MIMES = {"text/csv", "application/csv"}
_WORKBOOK_MIMES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
    "application/vnd.ms-excel.sheet.macroenabled.12",
}
_CSV_EXTS = {".csv"}
_WORKBOOK_EXTS = {".xlsx", ".xlsm", ".xls"}


def detect_format(filename: str, mime_type: str | None = None) -> str:
    """Return 'csv', 'workbook' or 'text' for an uploaded file."""
    mime = (mime_type or "").split(";")[0].strip().lower()
    ext = PurePath(filename).suffix.lower()
    if mime in _CSV_MIMES or ext in _CSV_EXTS:
        return "csv"
    if mime in _WORKBOOK_MIMES or ext in _WORKBOOK_EXTS:
        return "workbook"
    return "text"


def decode_text(data: bytes) -> str:
    """Decode bytes as UTF-8 (BOM stripped), replacing undecodable sequences."""
    return data.decode("utf-8-sig", errors="replace")


def parse_csv(data: bytes) -> list[Row]:
    """Parse CSV bytes with a header row into row dicts.

    Blank lines are skipped. Short rows get MISSING for absent trailing
    fields; surplus fields without a header are dropped.

    Raises:
        UnsupportedFormatError: If the csv module rejects the content.
    """
    text = decode_text(data)
    try:
        reader = csv.DictReader(io.StringIO(text), restval=MISSING)
        rows: list[Row] = []
        for record in reader:
            record.pop(None, None)
            if all(v is MISSING or v == "" for v in record.values()):
                continue
            rows.append(record)
    except csv.Error as exc:
        raise UnsupportedFormatError(f"Malformed CSV: {exc}") from exc
    return rows


def parse_workbook(data: bytes) -> list[tuple[str, list[Row]]]:
    """Parse an XLSX workbook into [(sheet_name, rows), ...] in sheet order.

    The first non-empty row of each sheet is the header. Empty cells become
    MISSING; fully empty rows are skipped. Blank headers are named
    ``column_<n>`` (1-based).

    Raises:
        UnsupportedFormatError: If the bytes are not a readable workbook
            (legacy .xls, corrupt zip, ...).
    """
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise UnsupportedFormatError(f"Unreadable workbook: {exc}") from exc

    try:
        sheets: list[tuple[str, list[Row]]] = []
        for sheet in workbook.worksheets:
            sheets.append((sheet.title, _sheet_rows(sheet.iter_rows(values_only=True))))
        return sheets
    finally:
        workbook.close()


def _sheet_rows(values: object) -> list[Row]:
    headers: list[str] | None = None
    rows: list[Row] = []
    for raw in values:  # type: ignore[attr-defined]
        cells = list(raw)
        if all(_is_blank(c) for c in cells):
            continue
        if headers is None:
            headers = [
                str(c).strip() if not _is_blank(c) else f"column_{i + 1}"
                for i, c in enumerate(cells)
            ]
            continue
        row: dict[str, object] = {}
        for i, header in enumerate(headers):
            cell = cells[i] if i < len(cells) else None
            row[header] = MISSING if _is_blank(cell) else cell
        rows.append(row)
    return rows


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())

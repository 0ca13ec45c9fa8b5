from __future__ import annotations

import csv
from datetime import date, datetime, time
from io import BytesIO, StringIO
from numbers import Integral, Real
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.parsed_table import Cell, FileKind, ParsedTable

"""Tabular reader: uploaded Excel / CSV bytes -> ParsedTable.

- Excel: 先頭シートのみ。1行目をヘッダ、2行目以降をデータ行として扱う。
- CSV: 引用符付きフィールド対応。ヘッダ・セルとも前後空白を除去し、空行はスキップ。
- 短い行は "" で右詰めパディング (警告として記録、例外にはしない)。

Each failure mode raises its own TableReadError subclass so the pipeline can
report it distinctly.
"""

__all__ = [
    "TableReadError",
    "UnsupportedFileTypeError",
    "NoSheetError",
    "EmptyTableError",
    "BlankHeaderError",
    "CorruptFileError",
    "CSV_ENCODINGS",
    "detect_file_kind",
    "parse_bytes",
    "read_table",
    "validate_table",
]

# cp874 = Windows Thai (marketplace exports opened and re-saved in Excel)
CSV_ENCODINGS: tuple[str, ...] = ("utf-8-sig", "utf-8", "cp874", "latin-1")

_EXTENSIONS: dict[str, FileKind] = {
    ".xlsx": FileKind.EXCEL,
    ".xls": FileKind.EXCEL,
    ".csv": FileKind.CSV,
}


class TableReadError(Exception):
    """Base class for input errors raised while reading an uploaded file."""


class UnsupportedFileTypeError(TableReadError):
    """Raised when the file extension is not .xlsx, .xls or .csv."""


class NoSheetError(TableReadError):
    """Raised when a workbook contains no readable worksheet."""


class EmptyTableError(TableReadError):
    """Raised when the file has no rows, or no data rows below the header."""


class BlankHeaderError(TableReadError):
    """Raised when every header cell is blank."""


class CorruptFileError(TableReadError):
    """Raised on I/O or decode failure (corrupt workbook, malformed CSV)."""


def detect_file_kind(file_name: str) -> FileKind:
    suffix = Path(file_name).suffix.lower()
    try:
        return _EXTENSIONS[suffix]
    except KeyError:
        raise UnsupportedFileTypeError(
            f"unsupported file format '{suffix or file_name}': upload Excel (.xlsx, .xls) or CSV (.csv) files only"
        ) from None


def read_table(path: Path) -> ParsedTable:
    """Read ``path`` from disk and parse it according to its extension."""
    kind = detect_file_kind(path.name)  # 拡張子チェックを先に (I/O 前)
    try:
        content = path.read_bytes()
    except OSError as e:
        raise CorruptFileError(f"failed to read {path.name}: {e}") from e
    return _parse(content, path.name, kind)


def parse_bytes(content: bytes, file_name: str) -> ParsedTable:
    """Parse uploaded file content.

    Parameters
    ----------
    content: ファイルのバイト列
    file_name: 元のファイル名 (拡張子で Excel / CSV を判定)
    """
    return _parse(content, file_name, detect_file_kind(file_name))


def _parse(content: bytes, file_name: str, kind: FileKind) -> ParsedTable:
    if kind is FileKind.EXCEL:
        matrix = _read_excel_matrix(content, file_name)
    else:
        matrix = _read_csv_matrix(content, file_name)
    return _build_table(matrix, file_name, kind)


def _read_excel_matrix(content: bytes, file_name: str) -> list[list[Any]]:
    engine = "xlrd" if file_name.lower().endswith(".xls") else "openpyxl"
    try:
        xls = pd.ExcelFile(BytesIO(content), engine=engine)
        if not xls.sheet_names:
            raise NoSheetError(f"no valid worksheet found in {file_name}")
        # 先頭シートのみ
        df = xls.parse(xls.sheet_names[0], header=None, dtype=object)
    except TableReadError:
        raise
    except Exception as e:
        raise CorruptFileError(
            f"failed to parse Excel file {file_name}; ensure the file is not corrupted ({e})"
        ) from e

    matrix: list[list[Any]] = []
    for raw in df.itertuples(index=False, name=None):
        cells = [_excel_cell(v) for v in raw]
        # 先頭行は空でもヘッダとして残す (空ヘッダ検出のため)
        if matrix and all(c == "" for c in cells):
            continue
        matrix.append(cells)
    return matrix


def _excel_cell(value: Any) -> Cell:
    """Convert one workbook cell to a display value, keeping typed numbers."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (datetime, pd.Timestamp)):
        if pd.isna(value):
            return ""
        if (value.hour, value.minute, value.second) == (0, 0, 0):
            return value.strftime("%Y-%m-%d")
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, Integral):
        return int(value)
    if isinstance(value, Real):
        if pd.isna(value):
            return ""
        f = float(value)
        return int(f) if f.is_integer() else f
    return str(value).strip()


def _read_csv_matrix(content: bytes, file_name: str) -> list[list[Any]]:
    if not content.strip():
        raise EmptyTableError(f"the CSV file {file_name} appears to be empty")

    text: str | None = None
    for enc in CSV_ENCODINGS:
        try:
            text = content.decode(enc)
            break
        except UnicodeDecodeError:
            continue
    if text is None:
        raise CorruptFileError(f"could not decode {file_name} with any supported encoding")

    # read_csv は先頭行のフィールド数で幅を決めるので、最長行の幅を先に数える
    try:
        width = max((len(r) for r in csv.reader(StringIO(text))), default=0)
    except csv.Error as e:
        raise CorruptFileError(f"CSV parsing error in {file_name}: {e}") from e
    if width == 0:
        raise EmptyTableError(f"the CSV file {file_name} appears to be empty")

    try:
        df = pd.read_csv(
            StringIO(text),
            header=None,
            names=list(range(width)),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError as e:
        raise EmptyTableError(f"the CSV file {file_name} appears to be empty") from e
    except (pd.errors.ParserError, ValueError) as e:
        raise CorruptFileError(f"CSV parsing error in {file_name}: {e}") from e

    matrix: list[list[Any]] = []
    for raw in df.itertuples(index=False, name=None):
        # 欠落フィールドは NaN (keep_default_na=False でも) -> 末尾の None は落とす
        cells = [None if not isinstance(v, str) else v.strip() for v in raw]
        while cells and cells[-1] is None:
            cells.pop()
        if matrix and all(c is None or c == "" for c in cells):
            continue
        matrix.append(cells)
    return matrix


def _build_table(matrix: list[list[Any]], file_name: str, kind: FileKind) -> ParsedTable:
    if not matrix:
        raise EmptyTableError(f"{file_name} appears to be empty")

    header_cells = matrix[0]
    while header_cells and header_cells[-1] is None:
        header_cells = header_cells[:-1]
    headers = ["" if h is None else str(h).strip() for h in header_cells]
    if not headers or all(h == "" for h in headers):
        raise BlankHeaderError(f"no valid column headers found in {file_name}")

    data = matrix[1:]
    if not data:
        raise EmptyTableError(f"{file_name} has a header row but no data rows")

    width = len(headers)
    rows: list[list[Cell]] = []
    padded = 0
    for raw in data:
        # CSV の欠落フィールド (None) は末尾にしか現れない
        present = [c for c in raw if c is not None]
        if len(present) < width:
            padded += 1
        cells: list[Cell] = ["" if c is None else c for c in raw]
        if len(cells) < width:
            cells.extend([""] * (width - len(cells)))
        rows.append(cells)

    table = ParsedTable(headers=headers, rows=rows, file_kind=kind, file_name=file_name)
    warnings = validate_table(table)
    if padded:
        warnings.insert(0, f"{padded} rows had fewer columns than the header and were padded")
    return ParsedTable(headers=headers, rows=rows, file_kind=kind, file_name=file_name, warnings=warnings)


def validate_table(table: ParsedTable) -> list[str]:
    """Collect structural warnings for ``table``.

    Duplicate headers, inconsistent row widths and a missing data section are
    reported here as messages; none of them stop processing.
    """
    warnings: list[str] = []
    if not table.headers:
        warnings.append("No column headers found")

    seen: set[str] = set()
    duplicates: list[str] = []
    for h in table.headers:
        if h in seen and h not in duplicates:
            duplicates.append(h)
        seen.add(h)
    if duplicates:
        warnings.append(f"Duplicate column headers found: {', '.join(duplicates)}")

    if not table.rows:
        warnings.append("No data rows found")
    else:
        width = len(table.headers)
        inconsistent = sum(1 for r in table.rows if len(r) != width)
        if inconsistent:
            warnings.append(f"{inconsistent} rows have inconsistent column count")
    return warnings

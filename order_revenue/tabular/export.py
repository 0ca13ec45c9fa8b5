from __future__ import annotations

import json
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import PatternFill
from openpyxl.utils import get_column_letter

from ..models.parsed_table import Cell, ParsedTable
from ..models.revenue import DEFAULT_STATUS_LABELS, StatusLabels

"""Exporters for a (revenue-augmented) ParsedTable: CSV text, JSON text, xlsx bytes."""

__all__ = [
    "EXCEL_SHEET_NAME",
    "EXCEL_COLUMN_WIDTH",
    "export_csv",
    "export_json",
    "export_excel",
]

EXCEL_SHEET_NAME = "Orders"
EXCEL_COLUMN_WIDTH = 15

# ステータス別の塗り (完了=緑 / キャンセル=赤 / 発送待ち=黄)
_STATUS_FILLS = {
    "completed": PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid"),
    "cancelled": PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid"),
    "to_ship": PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid"),
}


def _padded(row: list[Cell], width: int) -> list[Cell]:
    if len(row) >= width:
        return list(row)
    return list(row) + [""] * (width - len(row))


def _quote(value: Cell) -> str:
    return '"' + str(value).replace('"', '""') + '"'


def export_csv(table: ParsedTable) -> str:
    """Every field double-quoted, rows padded to the header width, ``\\n`` line ends."""
    width = len(table.headers)
    lines = [",".join(_quote(h) for h in table.headers)]
    lines.extend(",".join(_quote(c) for c in _padded(row, width)) for row in table.rows)
    return "\n".join(lines)


def export_json(table: ParsedTable) -> str:
    """JSON array with one object per row, keyed by header.

    Missing cells are written as "". With duplicate headers the right-most
    column wins, as in any JSON object.
    """
    records = []
    for row in table.rows:
        records.append({h: (row[i] if i < len(row) else "") for i, h in enumerate(table.headers)})
    return json.dumps(records, ensure_ascii=False, indent=2)


def export_excel(
    table: ParsedTable,
    protect: bool = True,
    *,
    status_column: int | None = None,
    labels: StatusLabels = DEFAULT_STATUS_LABELS,
) -> bytes:
    """Serialize ``table`` as an xlsx workbook.

    Args:
        table: table to write (header row first)
        protect: lock the sheet against accidental edits (no password)
        status_column: when given, status cells are coloured by label
        labels: status labels used for the colouring

    Returns:
        The workbook as bytes.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = EXCEL_SHEET_NAME

    width = len(table.headers)
    ws.append(list(table.headers))
    for row in table.rows:
        ws.append(_padded(row, width))

    for col in range(1, width + 1):
        ws.column_dimensions[get_column_letter(col)].width = EXCEL_COLUMN_WIDTH

    if status_column is not None and status_column < width:
        fills = {
            labels.completed: _STATUS_FILLS["completed"],
            labels.cancelled: _STATUS_FILLS["cancelled"],
            labels.to_ship: _STATUS_FILLS["to_ship"],
        }
        for r in range(2, len(table.rows) + 2):
            cell = ws.cell(row=r, column=status_column + 1)
            fill = fills.get(str(cell.value or "").strip())
            if fill is not None:
                cell.fill = fill

    if protect:
        ws.protection.sheet = True

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()

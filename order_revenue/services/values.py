from __future__ import annotations

import math
import re
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd

from ..models.column_map import ColumnMap
from ..models.parsed_table import ParsedTable

"""Cell value helpers shared by the calculator and the aggregator.

Numbers: commas and whitespace are stripped and the leading decimal literal is
parsed; anything unparseable counts as 0 so one bad cell never invalidates a
dataset.

Dates: the formats seen in marketplace exports are tried first
(``YYYY-MM-DD HH:MM``, ``YYYY-MM-DD``, ``DD/MM/YYYY``), then pandas.
"""

__all__ = [
    "parse_number",
    "cell_text",
    "parse_date",
    "day_key",
    "month_key",
    "week_start",
    "date_range_of",
    "filter_rows_by_date_range",
    "quick_date_range",
    "QUICK_RANGES",
]

_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_STRIP = re.compile(r"[,\s]")

_ISO_DATETIME = re.compile(r"^(\d{4})-(\d{2})-(\d{2})[ T](\d{2}):(\d{2})(?::(\d{2}))?$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

QUICK_RANGES = ("today", "yesterday", "last7days", "last30days", "thisMonth", "lastMonth", "thisYear")


def parse_number(value: Any) -> float:
    """Lenient numeric parse: ``"1,234.50"`` -> 1234.5, ``"N/A"`` / ``""`` -> 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        f = float(value)
        return f if math.isfinite(f) else 0.0
    cleaned = _STRIP.sub("", str(value))
    if not cleaned:
        return 0.0
    m = _LEADING_NUMBER.match(cleaned)
    if m is None:
        return 0.0
    try:
        f = float(m.group(0))
    except ValueError:  # pragma: no cover (regex guarantees a float literal)
        return 0.0
    return f if math.isfinite(f) else 0.0


def cell_text(row: Sequence[Any], index: int | None) -> str:
    """Cell as text ("" when the column is missing or the row is short)."""
    if index is None or index >= len(row):
        return ""
    value = row[index]
    if value is None:
        return ""
    return str(value)


def parse_date(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        # シリアル値などの数値は日付として扱わない
        return None

    text = str(value).strip()
    if not text:
        return None
    try:
        m = _ISO_DATETIME.match(text)
        if m:
            y, mo, d, h, mi, s = m.groups()
            return datetime(int(y), int(mo), int(d), int(h), int(mi), int(s or 0))
        m = _ISO_DATE.match(text)
        if m:
            y, mo, d = m.groups()
            return datetime(int(y), int(mo), int(d))
        m = _SLASH_DATE.match(text)
        if m:
            # タイのデータは DD/MM/YYYY 前提
            d, mo, y = m.groups()
            return datetime(int(y), int(mo), int(d))
    except ValueError:
        return None

    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert(None)
    return parsed.to_pydatetime()


def day_key(d: datetime) -> str:
    return d.strftime("%Y-%m-%d")


def month_key(d: datetime) -> str:
    return d.strftime("%Y-%m")


def week_start(d: datetime) -> str:
    """ISO date of the Sunday starting the week containing ``d``."""
    # weekday(): Mon=0 .. Sun=6 -> days since Sunday
    offset = (d.weekday() + 1) % 7
    return day_key(d - timedelta(days=offset))


def date_range_of(rows: Iterable[Sequence[Any]], date_column: int | None) -> tuple[datetime, datetime] | None:
    if date_column is None:
        return None
    dates = [d for d in (parse_date(cell_text(r, date_column)) for r in rows) if d is not None]
    if not dates:
        return None
    return min(dates), max(dates)


def filter_rows_by_date_range(
    table: ParsedTable, columns: ColumnMap, start: datetime, end: datetime
) -> ParsedTable:
    """Rows whose date falls within ``[start, end]``.

    Without a date column the table is returned unchanged; rows with an
    unparseable date are dropped.
    """
    if columns.date is None:
        return table
    kept = []
    for row in table.rows:
        d = parse_date(cell_text(row, columns.date))
        if d is not None and start <= d <= end:
            kept.append(row)
    return ParsedTable(
        headers=table.headers,
        rows=kept,
        file_kind=table.file_kind,
        file_name=table.file_name,
        warnings=table.warnings,
    )


def quick_date_range(kind: str, today: datetime | None = None) -> tuple[datetime, datetime]:
    """Preset ranges: today, yesterday, last7days, last30days, thisMonth, lastMonth, thisYear."""
    now = today or datetime.now()
    start_of_day = datetime(now.year, now.month, now.day)
    end_of_day = start_of_day + timedelta(days=1) - timedelta(microseconds=1)
    if kind == "today":
        return start_of_day, end_of_day
    if kind == "yesterday":
        return start_of_day - timedelta(days=1), start_of_day - timedelta(microseconds=1)
    if kind == "last7days":
        return start_of_day - timedelta(days=7), end_of_day
    if kind == "last30days":
        return start_of_day - timedelta(days=30), end_of_day
    if kind == "thisMonth":
        first = datetime(now.year, now.month, 1)
        nxt = datetime(now.year + (now.month == 12), now.month % 12 + 1, 1)
        return first, nxt - timedelta(microseconds=1)
    if kind == "lastMonth":
        first_this = datetime(now.year, now.month, 1)
        last_prev = first_this - timedelta(microseconds=1)
        return datetime(last_prev.year, last_prev.month, 1), last_prev
    if kind == "thisYear":
        return datetime(now.year, 1, 1), datetime(now.year + 1, 1, 1) - timedelta(microseconds=1)
    raise ValueError(f"unknown date range '{kind}' (expected one of {', '.join(QUICK_RANGES)})")

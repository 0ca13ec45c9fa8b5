from __future__ import annotations

from datetime import datetime

import pytest

from order_revenue.models.column_map import ColumnMap
from order_revenue.models.parsed_table import FileKind, ParsedTable
from order_revenue.services.values import (
    cell_text,
    date_range_of,
    filter_rows_by_date_range,
    month_key,
    parse_date,
    parse_number,
    quick_date_range,
    week_start,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1,234.50", 1234.5),
        (" 42 ", 42.0),
        ("12abc", 12.0),
        ("-7.5", -7.5),
        ("", 0.0),
        ("N/A", 0.0),
        (None, 0.0),
        (3, 3.0),
        (2.25, 2.25),
        (float("nan"), 0.0),
        (True, 0.0),
    ],
)
def test_parse_number_lenient(raw, expected):
    assert parse_number(raw) == expected


def test_cell_text_out_of_range():
    assert cell_text(["a"], 3) == ""
    assert cell_text(["a"], None) == ""
    assert cell_text([5], 0) == "5"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2025-06-19 15:41", datetime(2025, 6, 19, 15, 41)),
        ("2025-06-19 15:41:09", datetime(2025, 6, 19, 15, 41, 9)),
        ("2025-06-19", datetime(2025, 6, 19)),
        ("19/06/2025", datetime(2025, 6, 19)),
        ("2025-02-30", None),
        ("not a date", None),
        ("", None),
        (45000, None),
    ],
)
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected


def test_week_start_is_sunday():
    # 2025-06-19 は木曜 -> 2025-06-15 (日)
    assert week_start(datetime(2025, 6, 19)) == "2025-06-15"
    assert week_start(datetime(2025, 6, 15, 23, 0)) == "2025-06-15"
    assert month_key(datetime(2025, 6, 19)) == "2025-06"


def test_date_range_of(order_table):
    first, last = date_range_of(order_table.rows, 2)
    assert first == datetime(2025, 6, 1, 10, 15)
    assert last == datetime(2025, 7, 3, 11, 30)
    assert date_range_of(order_table.rows, None) is None


def test_filter_rows_by_date_range(order_table):
    cols = ColumnMap(date=2)
    june = filter_rows_by_date_range(order_table, cols, datetime(2025, 6, 1), datetime(2025, 6, 30, 23, 59))
    assert [r[0] for r in june.rows] == ["ORD1", "ORD2", "ORD3"]
    # 日付列がなければそのまま
    assert filter_rows_by_date_range(order_table, ColumnMap(), datetime(2025, 1, 1), datetime(2025, 1, 2)) is order_table


def test_filter_drops_unparseable_dates():
    table = ParsedTable(headers=["d"], rows=[["2025-01-02"], ["???"]], file_kind=FileKind.CSV)
    kept = filter_rows_by_date_range(table, ColumnMap(date=0), datetime(2025, 1, 1), datetime(2025, 1, 31))
    assert kept.rows == [["2025-01-02"]]


def test_quick_date_ranges():
    today = datetime(2025, 3, 15, 13, 0)
    start, end = quick_date_range("today", today)
    assert start == datetime(2025, 3, 15) and end.date() == today.date()
    start, end = quick_date_range("lastMonth", today)
    assert start == datetime(2025, 2, 1)
    assert end.date() == datetime(2025, 2, 28).date()
    start, end = quick_date_range("thisYear", today)
    assert start == datetime(2025, 1, 1) and end.year == 2025 and end.month == 12 and end.day == 31
    start, _ = quick_date_range("last7days", today)
    assert start == datetime(2025, 3, 8)


def test_quick_date_range_december_this_month():
    start, end = quick_date_range("thisMonth", datetime(2025, 12, 10))
    assert start == datetime(2025, 12, 1)
    assert end.date() == datetime(2025, 12, 31).date()


def test_quick_date_range_unknown():
    with pytest.raises(ValueError):
        quick_date_range("fortnight")

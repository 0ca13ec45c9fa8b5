from __future__ import annotations

import pytest

from order_revenue.models.column_map import ColumnMap, Field
from order_revenue.models.parsed_table import FileKind, ParsedTable
from order_revenue.models.revenue import REVENUE_HEADER, StatusLabels
from order_revenue.services.columns import resolve_columns
from order_revenue.services.revenue import (
    MAX_ROWS,
    MissingRevenueColumnsError,
    RowLimitExceededError,
    calculate_revenue,
    order_revenue,
)

FEE_HEADERS = ["ราคาขายสุทธิ", "ค่าคอมมิชชั่น", "Transaction Fee", "ค่าบริการ"]


def _table(headers, rows):
    return ParsedTable(headers=headers, rows=rows, file_kind=FileKind.CSV, file_name="t.csv")


def test_order_revenue_formula():
    cols = ColumnMap(net_sale_price=0, commission=1, transaction_fee=2, service_fee=3)
    assert order_revenue(["1,000", "50", "20", "30"], cols) == pytest.approx(900.0)
    # 解析不能なセルは 0 扱い
    assert order_revenue(["100", "n/a", "", "x"], cols) == pytest.approx(100.0)


def test_calculate_revenue_orders(order_table):
    cols = resolve_columns(order_table.headers)
    result = calculate_revenue(order_table, cols)

    assert result.table.headers[-1] == REVENUE_HEADER
    assert result.revenue_column == len(order_table.headers)
    assert [r[-1] for r in result.table.rows] == ["540.00", "135.00", "270.00", "900.00"]
    # キャンセル行は合計に含めない
    assert result.summary.total_revenue == pytest.approx(1575.0)
    assert result.summary.processed_rows == 4
    assert result.summary.orders_by_status == {"สำเร็จแล้ว": 2, "ที่ต้องจัดส่ง": 1, "ยกเลิกแล้ว": 1}
    assert result.status_column == 1


def test_input_table_is_not_mutated(order_table):
    before = [list(r) for r in order_table.rows]
    calculate_revenue(order_table, resolve_columns(order_table.headers))
    assert order_table.rows == before
    assert REVENUE_HEADER not in order_table.headers


def test_every_row_gets_a_revenue_cell_including_cancelled():
    headers = ["สถานะการสั่งซื้อ", *FEE_HEADERS]
    rows = [["ยกเลิกแล้ว", "100", "10", "5", "5"], ["Unknown", "50", "0", "0", "0"]]
    result = calculate_revenue(_table(headers, rows), resolve_columns(headers))
    assert [r[-1] for r in result.table.rows] == ["80.00", "50.00"]
    assert result.summary.total_revenue == 0.0
    assert result.summary.orders_by_status == {"ยกเลิกแล้ว": 1, "Unknown": 1}


def test_without_status_column_every_row_counts():
    rows = [["100", "10", "5", "5"], ["50", "0", "0", "0"]]
    result = calculate_revenue(_table(FEE_HEADERS, rows), resolve_columns(FEE_HEADERS))
    assert result.summary.total_revenue == pytest.approx(130.0)
    assert result.summary.orders_by_status == {}
    assert result.status_column is None


def test_blank_status_counts_toward_total():
    headers = ["สถานะการสั่งซื้อ", *FEE_HEADERS]
    rows = [["  ", "100", "0", "0", "0"], ["สำเร็จแล้ว", "10", "0", "0", "0"]]
    result = calculate_revenue(_table(headers, rows), resolve_columns(headers))
    assert result.summary.total_revenue == pytest.approx(110.0)
    assert result.summary.orders_by_status == {"สำเร็จแล้ว": 1}


def test_status_is_trimmed_before_matching():
    headers = ["สถานะการสั่งซื้อ", *FEE_HEADERS]
    rows = [[" สำเร็จแล้ว ", "100", "0", "0", "0"]]
    result = calculate_revenue(_table(headers, rows), resolve_columns(headers))
    assert result.summary.total_revenue == pytest.approx(100.0)
    assert result.summary.orders_by_status == {"สำเร็จแล้ว": 1}


def test_custom_status_labels():
    headers = ["Order Status", *FEE_HEADERS]
    rows = [["done", "100", "0", "0", "0"], ["pending", "40", "0", "0", "0"], ["void", "9", "0", "0", "0"]]
    labels = StatusLabels(to_ship="pending", completed="done", cancelled="void")
    result = calculate_revenue(_table(headers, rows), resolve_columns(headers), labels=labels)
    assert result.summary.total_revenue == pytest.approx(140.0)


def test_short_rows_are_padded_before_appending():
    headers = [*FEE_HEADERS, "note"]
    result = calculate_revenue(_table(headers, [["100", "1", "1", "1"]]), resolve_columns(headers))
    row = result.table.rows[0]
    assert len(row) == len(headers) + 1
    assert row[4] == ""
    assert row[5] == "97.00"


def test_negative_revenue_is_kept():
    result = calculate_revenue(_table(FEE_HEADERS, [["10", "20", "0", "0"]]), resolve_columns(FEE_HEADERS))
    assert result.table.rows[0][-1] == "-10.00"
    assert result.summary.total_revenue == pytest.approx(-10.0)


def test_missing_fee_columns():
    headers = ["ราคาขายสุทธิ", "ค่าบริการ"]
    with pytest.raises(MissingRevenueColumnsError) as e:
        calculate_revenue(_table(headers, [["1", "2"]]), resolve_columns(headers))
    assert e.value.missing == [Field.COMMISSION, Field.TRANSACTION_FEE]
    assert "Transaction Fee" in str(e.value)


def test_row_limit_checked_before_columns():
    rows = [["1"] for _ in range(11)]
    with pytest.raises(RowLimitExceededError) as e:
        calculate_revenue(_table(["x"], rows), resolve_columns(["x"]), max_rows=10)
    assert e.value.row_count == 11
    assert e.value.max_rows == 10


def test_row_limit_boundary_is_inclusive():
    rows = [["1", "0", "0", "0"] for _ in range(10)]
    result = calculate_revenue(_table(FEE_HEADERS, rows), resolve_columns(FEE_HEADERS), max_rows=10)
    assert result.summary.processed_rows == 10


def test_default_row_ceiling():
    rows = [["1", "0", "0", "0"] for _ in range(MAX_ROWS + 1)]
    with pytest.raises(RowLimitExceededError) as e:
        calculate_revenue(_table(FEE_HEADERS, rows), resolve_columns(FEE_HEADERS))
    assert e.value.row_count == 10_001
    assert e.value.max_rows == MAX_ROWS == 10_000
    assert "maximum 10,000 rows" in str(e.value)


def test_default_row_ceiling_accepts_exact_limit():
    rows = [["1", "0", "0", "0"] for _ in range(MAX_ROWS)]
    result = calculate_revenue(_table(FEE_HEADERS, rows), resolve_columns(FEE_HEADERS))
    assert result.summary.processed_rows == MAX_ROWS


def test_revenue_lands_under_its_header_for_long_rows():
    rows = [["100", "10", "5", "5", "extra"], ["50", "0", "0", "0"]]
    result = calculate_revenue(_table(FEE_HEADERS, rows), resolve_columns(FEE_HEADERS))
    col = result.revenue_column
    assert result.table.headers[col] == REVENUE_HEADER
    assert result.table.rows[0][col] == "80.00"
    assert result.table.rows[0][col + 1] == "extra"
    assert result.table.rows[1][col] == "50.00"

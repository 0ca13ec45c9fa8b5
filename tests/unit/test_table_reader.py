from __future__ import annotations

from pathlib import Path

import pytest

from order_revenue.models.parsed_table import FileKind, ParsedTable
from order_revenue.tabular.reader import (
    BlankHeaderError,
    CorruptFileError,
    EmptyTableError,
    UnsupportedFileTypeError,
    detect_file_kind,
    parse_bytes,
    read_table,
    validate_table,
)


def test_read_csv_orders(orders_csv: Path, order_headers):
    table = read_table(orders_csv)
    assert table.file_kind is FileKind.CSV
    assert table.file_name == "orders.csv"
    assert table.headers == order_headers
    assert table.row_count == 4
    assert table.rows[3][7] == "1,000"
    assert table.warnings == []


def test_read_xlsx_orders(orders_xlsx: Path, order_headers):
    table = read_table(orders_xlsx)
    assert table.file_kind is FileKind.EXCEL
    assert table.headers == order_headers
    assert table.row_count == 4
    assert table.rows[0][1] == "สำเร็จแล้ว"
    assert all(len(r) == len(order_headers) for r in table.rows)


def test_xlsx_numeric_cells_keep_numbers(temp_workdir: Path, make_xlsx):
    path = make_xlsx(temp_workdir / "nums.xlsx", ["qty", "price"], [[2, 10.5], [3, 4.0]])
    table = read_table(path)
    assert table.rows == [[2, 10.5], [3, 4]]


def test_csv_cells_and_headers_are_trimmed():
    content = " a , b \n 1 , x \n".encode("utf-8")
    table = parse_bytes(content, "t.csv")
    assert table.headers == ["a", "b"]
    assert table.rows == [["1", "x"]]


def test_csv_short_rows_are_padded_with_warning():
    content = "a,b,c\n1,2,3\n4\n".encode("utf-8")
    table = parse_bytes(content, "short.csv")
    assert table.rows[1] == ["4", "", ""]
    assert table.warnings[0] == "1 rows had fewer columns than the header and were padded"


def test_csv_long_rows_are_kept_with_warning():
    table = parse_bytes(b"a,b,c\n1,2,3\n4,5,6,7\n", "long.csv")
    assert table.headers == ["a", "b", "c"]
    assert table.rows == [["1", "2", "3"], ["4", "5", "6", "7"]]
    assert table.warnings == ["1 rows have inconsistent column count"]


def test_csv_long_first_data_row():
    # 先頭データ行が最長でも後続行は幅を引き継がない
    table = parse_bytes(b"a,b\n1,2,x,y\n3,4\n", "wide.csv")
    assert table.rows == [["1", "2", "x", "y"], ["3", "4"]]
    assert table.warnings == ["1 rows have inconsistent column count"]


def test_csv_blank_lines_skipped():
    table = parse_bytes(b"a,b\n\n1,2\n\n3,4\n", "blank.csv")
    assert table.rows == [["1", "2"], ["3", "4"]]


def test_csv_quoted_fields():
    table = parse_bytes(b'name,note\n"Shirt, red","say ""hi"""\n', "q.csv")
    assert table.rows == [["Shirt, red", 'say "hi"']]


def test_csv_thai_windows_encoding():
    content = "สถานะการสั่งซื้อ,x\nสำเร็จแล้ว,1\n".encode("cp874")
    table = parse_bytes(content, "thai.csv")
    assert table.headers[0] == "สถานะการสั่งซื้อ"
    assert table.rows[0][0] == "สำเร็จแล้ว"


def test_duplicate_headers_reported_not_rejected():
    table = parse_bytes(b"a,a,b\n1,2,3\n", "dup.csv")
    assert table.headers == ["a", "a", "b"]
    assert "Duplicate column headers found: a" in table.warnings


@pytest.mark.parametrize("name", ["orders.txt", "orders.pdf", "orders"])
def test_unsupported_extension(name: str):
    with pytest.raises(UnsupportedFileTypeError):
        parse_bytes(b"a,b\n1,2\n", name)


def test_unsupported_extension_checked_before_reading(temp_workdir: Path):
    # 存在しないファイルでも拡張子エラーが先
    with pytest.raises(UnsupportedFileTypeError):
        read_table(temp_workdir / "missing.json")


def test_missing_file_is_corrupt_error(temp_workdir: Path):
    with pytest.raises(CorruptFileError):
        read_table(temp_workdir / "missing.csv")


def test_empty_csv():
    with pytest.raises(EmptyTableError):
        parse_bytes(b"", "empty.csv")


def test_header_only_csv():
    with pytest.raises(EmptyTableError):
        parse_bytes(b"a,b,c\n", "header_only.csv")


def test_blank_header_row():
    with pytest.raises(BlankHeaderError):
        parse_bytes(b",,\n1,2,3\n", "blank_header.csv")


def test_corrupt_workbook():
    with pytest.raises(CorruptFileError):
        parse_bytes(b"this is not a zip archive", "broken.xlsx")


def test_detect_file_kind_case_insensitive():
    assert detect_file_kind("REPORT.XLSX") is FileKind.EXCEL
    assert detect_file_kind("old.xls") is FileKind.EXCEL
    assert detect_file_kind("a.Csv") is FileKind.CSV


def test_validate_table_inconsistent_widths(order_table):
    ragged = ParsedTable(headers=["a", "b"], rows=[["1", "2"], ["3"]], file_kind=FileKind.CSV)
    assert "1 rows have inconsistent column count" in validate_table(ragged)
    assert validate_table(order_table) == []

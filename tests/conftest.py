# Shared pytest fixtures
from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from order_revenue.logging.init import reset_logging
from order_revenue.models.parsed_table import FileKind, ParsedTable

# マーケットプレイスの注文レポート (タイ語ヘッダ) を模したテストデータ
ORDER_HEADERS = [
    "หมายเลขคำสั่งซื้อ",
    "สถานะการสั่งซื้อ",
    "วันที่ทำการสั่งซื้อ",
    "เลขอ้างอิง SKU (SKU Reference No.)",
    "ชื่อสินค้า",
    "ราคาขาย",
    "จำนวน",
    "ราคาขายสุทธิ",
    "ค่าคอมมิชชั่น",
    "Transaction Fee",
    "ค่าบริการ",
    "ช่องทางการชำระเงิน",
    "ชื่อผู้ใช้ (ผู้ซื้อ)",
    "จังหวัด",
    "เขต/อำเภอ",
]

# revenue: 540 / 135 / 270 (cancelled) / 900
ORDER_ROWS = [
    ["ORD1", "สำเร็จแล้ว", "2025-06-01 10:15", "SKU-A", "Shirt", "300", "2", "600", "30", "12", "18",
     "COD", "alice", "กรุงเทพมหานคร", "บางรัก"],
    ["ORD2", "ที่ต้องจัดส่ง", "2025-06-01 14:00", "SKU-B", "Mug", "150", "1", "150", "7.5", "3", "4.5",
     "ShopeePay", "bob", "เชียงใหม่", "เมืองเชียงใหม่"],
    ["ORD3", "ยกเลิกแล้ว", "2025-06-02 09:00", "SKU-A", "Shirt", "300", "1", "300", "15", "6", "9",
     "COD", "alice", "กรุงเทพมหานคร", "บางรัก"],
    ["ORD4", "สำเร็จแล้ว", "2025-07-03 11:30", "SKU-C", "Cap", "1,000", "1", "1,000", "50", "20", "30",
     "Credit Card", "carol", "เชียงใหม่", "เมืองเชียงใหม่"],
]


@pytest.fixture(autouse=True)
def _fresh_logging(monkeypatch):
    # グローバルロガーと環境変数の状態をテスト間で持ち越さない
    monkeypatch.delenv("ORDER_REVENUE_STORE", raising=False)
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch, tmp_path: Path) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "data").mkdir()
    (tmp_path / "logs").mkdir()
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture()
def order_table() -> ParsedTable:
    return ParsedTable(
        headers=list(ORDER_HEADERS),
        rows=[list(r) for r in ORDER_ROWS],
        file_kind=FileKind.CSV,
        file_name="orders.csv",
    )


def write_csv(path: Path, headers: list[str], rows: list[list[object]], encoding: str = "utf-8") -> Path:
    pd.DataFrame(rows, columns=headers).to_csv(path, index=False, encoding=encoding)
    return path


def write_xlsx(path: Path, headers: list[str], rows: list[list[object]]) -> Path:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame([headers, *rows]).to_excel(writer, sheet_name="orders", header=False, index=False)
    return path


@pytest.fixture()
def orders_csv(temp_workdir: Path) -> Path:
    return write_csv(temp_workdir / "data" / "orders.csv", ORDER_HEADERS, ORDER_ROWS)


@pytest.fixture()
def orders_xlsx(temp_workdir: Path) -> Path:
    return write_xlsx(temp_workdir / "data" / "orders.xlsx", ORDER_HEADERS, ORDER_ROWS)


@pytest.fixture()
def sample_config_yaml() -> str:
    return """storage_path: data/store.json
logs_directory: logs
max_rows: 500
status_labels:
  completed: สำเร็จแล้ว
column_synonyms:
  customer_id: [buyer]
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "dashboard.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def order_headers() -> list[str]:
    return list(ORDER_HEADERS)


@pytest.fixture()
def order_rows() -> list[list[object]]:
    return [list(r) for r in ORDER_ROWS]


@pytest.fixture()
def make_csv():
    return write_csv


@pytest.fixture()
def make_xlsx():
    return write_xlsx

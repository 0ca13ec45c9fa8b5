from __future__ import annotations

import json
import re
from pathlib import Path

from order_revenue.logging.error_log import ErrorLogBuffer, ErrorRecord

KEYS = {"timestamp", "file", "stage", "row", "error_type", "message"}


def test_error_record_json_line():
    rec = ErrorRecord.create(
        file="orders.xlsx",
        stage="calculate",
        row=-1,
        error_type="MISSING_REVENUE_COLUMNS",
        message="required columns for revenue calculation not found: Transaction Fee",
    )
    data = json.loads(rec.to_json_line())
    assert set(data) == KEYS
    assert data["row"] == -1
    assert data["timestamp"].endswith("Z")


def test_error_record_keeps_thai_text():
    rec = ErrorRecord.create("ยอดขาย.csv", "parse", -1, "EMPTY_TABLE", "ว่าง")
    assert "ยอดขาย.csv" in rec.to_json_line()


def test_flush_writes_json_lines(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.append(ErrorRecord.create("a.csv", "parse", -1, "EMPTY_TABLE", "empty"))
    buf.append(ErrorRecord.create("b.csv", "store", -1, "STORAGE", "full"))
    path = buf.flush()
    assert path is not None and path.exists()
    assert re.match(r"^errors-\d{8}-\d{6}\.log$", path.name)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["file"] for line in lines] == ["a.csv", "b.csv"]
    assert all(set(json.loads(line)) == KEYS for line in lines)
    assert len(buf) == 0


def test_flush_without_records_creates_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_multiple_flushes_append_to_same_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(ErrorRecord.create("a.csv", "parse", -1, "EMPTY_TABLE", "1"))
    first = buf.flush()
    buf.append(ErrorRecord.create("a.csv", "parse", -1, "EMPTY_TABLE", "2"))
    second = buf.flush()
    assert first == second
    assert len(second.read_text(encoding="utf-8").splitlines()) == 2

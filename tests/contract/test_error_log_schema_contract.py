from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from order_revenue.logging.error_log import ErrorLogBuffer, ErrorRecord

"""Error log JSON schema contract test."""

ERROR_LOG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "additionalProperties": False,
    "required": ["timestamp", "file", "stage", "row", "error_type", "message"],
    "properties": {
        "timestamp": {"type": "string", "pattern": "Z$"},
        "file": {"type": "string"},
        "stage": {"enum": ["parse", "calculate", "store"]},
        "row": {"type": "integer", "minimum": -1},
        "error_type": {"type": "string", "pattern": "^[A-Z][A-Z0-9_]*$"},
        "message": {"type": "string"},
    },
}


def test_error_log_schema_valid_example():
    record = {
        "timestamp": "2025-09-26T10:12:33Z",
        "file": "orders.xlsx",
        "stage": "calculate",
        "row": -1,
        "error_type": "MISSING_REVENUE_COLUMNS",
        "message": "required columns for revenue calculation not found: Transaction Fee",
    }
    jsonschema.validate(record, ERROR_LOG_SCHEMA)


def test_error_log_schema_rejects_extra_key():
    record = {
        "timestamp": "2025-09-26T10:12:33Z",
        "file": "orders.xlsx",
        "stage": "parse",
        "row": -1,
        "error_type": "EMPTY_TABLE",
        "message": "empty",
        "sheet": "not allowed",
    }
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(record, ERROR_LOG_SCHEMA)


def test_written_lines_follow_schema(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(ErrorRecord.create("a.csv", "parse", -1, "CORRUPT_FILE", "bad bytes"))
    buf.append(ErrorRecord.create("b.xlsx", "store", -1, "STORAGE", "Storage is nearly full."))
    path = buf.flush()
    for line in path.read_text(encoding="utf-8").splitlines():
        jsonschema.validate(json.loads(line), ERROR_LOG_SCHEMA)

from __future__ import annotations

import re
from datetime import UTC, datetime

from order_revenue.models.processing_result import RunResult
from order_revenue.services.summary import render_summary_line

"""SUMMARY 行フォーマット契約テスト"""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+files=([0-9]+)/(\1)\s+success=([0-9]+)\s+failed=([0-9]+)\s+"
    r"rows=([0-9]+)\s+revenue=(-?[0-9]+\.[0-9]{2})\s+elapsed_sec=([0-9]+\.?[0-9]*)$"
)


def test_summary_pattern_example_line():
    line = "SUMMARY files=2/2 success=1 failed=1 rows=4 revenue=1575.00 elapsed_sec=0.84"
    assert SUMMARY_PATTERN.match(line), "SUMMARY line should match contract regex"


def test_rendered_line_matches_contract():
    ts = datetime(2025, 6, 1, tzinfo=UTC)
    for elapsed in (0, 0.000042, 0.5, 3.0, 125.25):
        result = RunResult(
            success_files=3,
            failed_files=0,
            total_rows=10_000,
            total_revenue=123456.789,
            start_time=ts,
            end_time=ts,
            elapsed_seconds=elapsed,
        )
        line = render_summary_line(result)
        m = SUMMARY_PATTERN.match(line)
        assert m, line
        assert m.group(6) == "123456.79"

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from order_revenue.models.processing_result import RunResult, UploadOutcome, UploadStatus

"""Unit tests for upload outcome / run result models."""


class TestUploadOutcome:

    def test_defaults(self):
        outcome = UploadOutcome(path=Path("data/a.csv"), name="a.csv")
        assert outcome.status is UploadStatus.PENDING
        assert outcome.dataset_id is None
        assert outcome.warnings == []
        assert outcome.elapsed_seconds == 0.0

    def test_immutable(self):
        outcome = UploadOutcome(path=Path("a.csv"), name="a.csv")
        with pytest.raises(AttributeError):
            outcome.name = "b.csv"  # type: ignore[misc]

    def test_elapsed_seconds(self):
        start = datetime(2025, 6, 1, 10, 0, tzinfo=UTC)
        outcome = replace(
            UploadOutcome(path=Path("a.csv"), name="a.csv", start_time=start),
            status=UploadStatus.SUCCESS,
            end_time=start + timedelta(seconds=1.25),
        )
        assert outcome.elapsed_seconds == pytest.approx(1.25)


class TestRunResult:

    def test_total_files(self):
        now = datetime.now(UTC)
        result = RunResult(
            success_files=3,
            failed_files=2,
            total_rows=30,
            total_revenue=10.0,
            start_time=now,
            end_time=now,
            elapsed_seconds=0.0,
        )
        assert result.total_files == 5
        assert result.outcomes is None

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

"""Upload processing result models.

UploadOutcome tracks one file through the pipeline
(pending -> processing -> success | failed); RunResult aggregates the outcomes
of one ``upload`` invocation for the SUMMARY line.
"""


class UploadStatus(Enum):
    """Status of one uploaded file.

    State transitions: pending → processing → (success | failed)
    """
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadOutcome:
    """Pipeline result for a single file.

    A failed outcome carries the stage that stopped it and the message; nothing
    is persisted for it.
    """
    path: Path
    name: str
    status: UploadStatus = UploadStatus.PENDING
    dataset_id: str | None = None
    total_rows: int = 0
    total_revenue: float = 0.0
    warnings: list[str] = field(default_factory=list)
    failed_stage: str | None = None  # parse / calculate / store
    error: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()


@dataclass(frozen=True)
class RunResult:
    """Aggregated results of processing several files."""
    success_files: int
    failed_files: int
    total_rows: int  # 成功ファイルの行数合計
    total_revenue: float
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    outcomes: list[UploadOutcome] | None = None

    @property
    def total_files(self) -> int:
        return self.success_files + self.failed_files

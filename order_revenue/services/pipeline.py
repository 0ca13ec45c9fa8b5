from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path

from ..config.loader import DashboardConfig
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.processing_result import RunResult, UploadOutcome, UploadStatus
from ..storage.store import DatasetStore, StorageError
from ..tabular.reader import TableReadError, read_table
from .analytics import build_analytics
from .columns import column_collisions, resolve_columns
from .progress import ProgressTracker
from .revenue import RevenuePreconditionError, calculate_revenue

logger = logging.getLogger(__name__)

"""Upload pipeline: file -> Parser -> Resolver -> Calculator -> Aggregator -> Store.

Each file is independent: a failure at any stage turns into a failed
UploadOutcome (nothing is persisted for that file) and an ErrorRecord in the
error log, and the run continues with the next file.
"""

__all__ = [
    "ProcessingError",
    "STAGE_PARSE",
    "STAGE_CALCULATE",
    "STAGE_STORE",
    "process_file",
    "process_all",
]

STAGE_PARSE = "parse"
STAGE_CALCULATE = "calculate"
STAGE_STORE = "store"


class ProcessingError(Exception):
    """Fatal error that stops the whole run (not a per-file failure)."""


def _error_type(exc: BaseException) -> str:
    """``RowLimitExceededError`` -> ``ROW_LIMIT_EXCEEDED``"""
    name = type(exc).__name__
    if name.endswith("Error") and name != "Error":
        name = name[: -len("Error")]
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).upper()


def _failed(
    outcome: UploadOutcome,
    stage: str,
    exc: Exception,
    error_log: ErrorLogBuffer | None,
) -> UploadOutcome:
    logger.error("%s: %s failed: %s", outcome.name, stage, exc)
    if error_log is not None:
        error_log.append(
            ErrorRecord.create(
                file=outcome.name,
                stage=stage,
                row=-1,
                error_type=_error_type(exc),
                message=str(exc),
            )
        )
    return replace(
        outcome,
        status=UploadStatus.FAILED,
        failed_stage=stage,
        error=str(exc),
        end_time=datetime.now(UTC),
    )


def process_file(
    path: Path,
    store: DatasetStore,
    config: DashboardConfig,
    *,
    error_log: ErrorLogBuffer | None = None,
) -> UploadOutcome:
    """Run one uploaded file through every stage and persist it.

    Args:
        path: uploaded .xlsx / .xls / .csv file
        store: destination dataset store
        config: row ceiling, status labels and extra column synonyms
        error_log: optional buffer that receives an ErrorRecord on failure

    Returns:
        UploadOutcome with status SUCCESS (and the new dataset id) or FAILED
        (with the failing stage and message).
    """
    outcome = UploadOutcome(
        path=path,
        name=path.name,
        status=UploadStatus.PROCESSING,
        start_time=datetime.now(UTC),
    )

    try:
        table = read_table(path)
    except TableReadError as e:
        return _failed(outcome, STAGE_PARSE, e, error_log)
    for warning in table.warnings:
        logger.warning("%s: %s", path.name, warning)

    columns = resolve_columns(table.headers, config.column_synonyms)
    logger.debug("%s: resolved columns %s", path.name, columns.as_dict())
    for index, fields in column_collisions(columns).items():
        names = ", ".join(f.value for f in fields)
        logger.warning("%s: column '%s' matched several fields (%s)", path.name, table.headers[index], names)

    try:
        result = calculate_revenue(
            table, columns, labels=config.status_labels, max_rows=config.max_rows
        )
    except RevenuePreconditionError as e:
        return _failed(outcome, STAGE_CALCULATE, e, error_log)

    analytics = build_analytics(result, columns, labels=config.status_labels)

    try:
        dataset = store.save(result.table, result.summary, analytics, path.name)
    except StorageError as e:
        return _failed(outcome, STAGE_STORE, e, error_log)

    logger.info(
        "%s: %d rows, revenue %.2f -> %s",
        path.name,
        result.summary.processed_rows,
        result.summary.total_revenue,
        dataset.id,
    )
    return replace(
        outcome,
        status=UploadStatus.SUCCESS,
        dataset_id=dataset.id,
        total_rows=result.summary.processed_rows,
        total_revenue=result.summary.total_revenue,
        warnings=list(table.warnings),
        end_time=datetime.now(UTC),
    )


def process_all(
    paths: Sequence[Path],
    store: DatasetStore,
    config: DashboardConfig,
) -> RunResult:
    """Upload every file in ``paths`` and aggregate the outcomes.

    Failed files are written to the error log under ``config.logs_directory``
    once all files are done.

    Raises:
        ProcessingError: the error log could not be written
    """
    start_time = datetime.now(UTC)
    error_log = ErrorLogBuffer(config.logs_directory)

    outcomes: list[UploadOutcome] = []
    success_count = failed_count = total_rows = 0
    total_revenue = 0.0

    with ProgressTracker(len(paths)) as progress:
        for path in paths:
            progress.start_file(path)
            outcome = process_file(path, store, config, error_log=error_log)
            outcomes.append(outcome)

            if outcome.status is UploadStatus.SUCCESS:
                success_count += 1
                total_rows += outcome.total_rows
                total_revenue += outcome.total_revenue
            else:
                failed_count += 1

            progress.set_postfix(success=success_count, failed=failed_count, rows=total_rows)
            progress.finish_file(success=outcome.status is UploadStatus.SUCCESS)

    try:
        log_path = error_log.flush()
    except OSError as e:
        raise ProcessingError(f"failed to write error log: {e}") from e
    if log_path is not None:
        logger.info("error details written to %s", log_path)

    end_time = datetime.now(UTC)
    return RunResult(
        success_files=success_count,
        failed_files=failed_count,
        total_rows=total_rows,
        total_revenue=total_revenue,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        outcomes=outcomes,
    )

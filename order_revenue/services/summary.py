from __future__ import annotations

from ..models.processing_result import RunResult

"""SUMMARY line rendering for the ``upload`` command.

Format::

    SUMMARY files={total}/{total} success={S} failed={F} rows={R} revenue={X} elapsed_sec={E}

``revenue`` always has two decimals; ``elapsed_sec`` drops a trailing ``.0`` and
never uses scientific notation.
"""

__all__ = [
    "format_elapsed",
    "render_summary_line",
]


def format_elapsed(seconds: float) -> str:
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        # 指数表記を避ける
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return str(round(seconds, 3))


def render_summary_line(result: RunResult) -> str:
    """Render the SUMMARY line for one upload run.

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2025, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2025, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = RunResult(
        ...     success_files=1, failed_files=1, total_rows=120, total_revenue=1500.5,
        ...     start_time=start, end_time=end, elapsed_seconds=2.0,
        ... )
        >>> render_summary_line(result)
        'SUMMARY files=2/2 success=1 failed=1 rows=120 revenue=1500.50 elapsed_sec=2'
    """
    total = result.total_files
    return (
        f"SUMMARY files={total}/{total} "
        f"success={result.success_files} "
        f"failed={result.failed_files} "
        f"rows={result.total_rows} "
        f"revenue={result.total_revenue:.2f} "
        f"elapsed_sec={format_elapsed(result.elapsed_seconds)}"
    )

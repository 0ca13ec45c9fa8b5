from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from ..models.column_map import ColumnMap, Field
from ..models.parsed_table import Cell, ParsedTable
from ..models.revenue import (
    DEFAULT_STATUS_LABELS,
    REVENUE_HEADER,
    RevenueResult,
    RevenueSummary,
    StatusLabels,
)
from .values import cell_text, parse_number

logger = logging.getLogger(__name__)

"""Revenue calculator.

รายรับจากคำสั่งซื้อ = ราคาขายสุทธิ - ค่าคอมมิชชั่น - Transaction Fee - ค่าบริการ
(order income = net sale price - commission - transaction fee - service fee)

Status inclusion policy: with a status column, only the revenue-bearing
statuses (to-ship, completed) add to the total, but every row still gets its
own revenue cell. Without a status column every row counts.

Precondition (not guarded): call once per table. Calling again on an augmented
table appends a second revenue column.
"""

__all__ = [
    "MAX_ROWS",
    "RevenuePreconditionError",
    "RowLimitExceededError",
    "MissingRevenueColumnsError",
    "order_revenue",
    "calculate_revenue",
]

MAX_ROWS = 10_000

_FIELD_LABELS = {
    Field.NET_SALE_PRICE: "ราคาขายสุทธิ (net sale price)",
    Field.COMMISSION: "ค่าคอมมิชชั่น (commission)",
    Field.TRANSACTION_FEE: "Transaction Fee",
    Field.SERVICE_FEE: "ค่าบริการ (service fee)",
}


class RevenuePreconditionError(Exception):
    """Base class: the table cannot be used for revenue calculation."""


class RowLimitExceededError(RevenuePreconditionError):
    def __init__(self, row_count: int, max_rows: int) -> None:
        super().__init__(
            f"file too large for revenue calculation: {row_count} rows (maximum {max_rows:,} rows allowed)"
        )
        self.row_count = row_count
        self.max_rows = max_rows


class MissingRevenueColumnsError(RevenuePreconditionError):
    def __init__(self, missing: list[Field]) -> None:
        names = ", ".join(_FIELD_LABELS[f] for f in missing)
        super().__init__(f"required columns for revenue calculation not found: {names}")
        self.missing = missing


def order_revenue(row: Sequence[Cell], columns: ColumnMap) -> float:
    """Net revenue of one row; unparseable operands count as 0."""
    revenue = (
        parse_number(_cell(row, columns.net_sale_price))
        - parse_number(_cell(row, columns.commission))
        - parse_number(_cell(row, columns.transaction_fee))
        - parse_number(_cell(row, columns.service_fee))
    )
    return 0.0 if math.isnan(revenue) else revenue


def _cell(row: Sequence[Cell], index: int | None) -> Cell:
    if index is None or index >= len(row):
        return ""
    return row[index]


def calculate_revenue(
    table: ParsedTable,
    columns: ColumnMap,
    *,
    labels: StatusLabels = DEFAULT_STATUS_LABELS,
    max_rows: int = MAX_ROWS,
) -> RevenueResult:
    """Append the revenue column to ``table`` and summarize it.

    Raises:
        RowLimitExceededError: more than ``max_rows`` data rows
        MissingRevenueColumnsError: any of the four fee columns is unresolved
    """
    if table.row_count > max_rows:
        raise RowLimitExceededError(table.row_count, max_rows)
    missing = columns.missing()
    if missing:
        raise MissingRevenueColumnsError(missing)

    bearing = labels.revenue_bearing
    status_index = columns.status
    width = len(table.headers)

    total_revenue = 0.0
    orders_by_status: dict[str, int] = {}
    new_rows: list[list[Cell]] = []

    for row in table.rows:
        normalized = list(row)
        if len(normalized) < width:
            normalized.extend([""] * (width - len(normalized)))

        revenue = order_revenue(normalized, columns)
        status = cell_text(normalized, status_index).strip()
        if status_index is not None and status:
            if status in bearing:
                total_revenue += revenue
            # キャンセル含め全ステータスを集計
            orders_by_status[status] = orders_by_status.get(status, 0) + 1
        else:
            total_revenue += revenue

        # 売上はヘッダ位置に置く (余分なセルはその後ろに残す)
        normalized.insert(width, f"{revenue:.2f}")
        new_rows.append(normalized)

    augmented = ParsedTable(
        headers=[*table.headers, REVENUE_HEADER],
        rows=new_rows,
        file_kind=table.file_kind,
        file_name=table.file_name,
        warnings=list(table.warnings),
    )
    summary = RevenueSummary(
        total_revenue=total_revenue,
        orders_by_status=orders_by_status,
        processed_rows=len(new_rows),
    )
    logger.debug(
        "revenue calculated file=%s rows=%d total=%.2f", table.file_name, summary.processed_rows, total_revenue
    )
    return RevenueResult(table=augmented, summary=summary, status_column=status_index)

from __future__ import annotations

from dataclasses import dataclass, field

from .parsed_table import ParsedTable

"""Revenue calculation models.

StatusLabels carries the exact order-status strings the calculator and the
aggregator compare against. RevenueResult is the revenue-augmented table plus
its RevenueSummary.
"""

__all__ = [
    "REVENUE_HEADER",
    "StatusLabels",
    "DEFAULT_STATUS_LABELS",
    "RevenueSummary",
    "RevenueResult",
]

# 追加される売上列のヘッダ名 (Order income)
REVENUE_HEADER = "รายรับจากคำสั่งซื้อ"


@dataclass(frozen=True)
class StatusLabels:
    """Exact status labels used by the inclusion policy and order rates."""
    to_ship: str = "ที่ต้องจัดส่ง"
    completed: str = "สำเร็จแล้ว"
    cancelled: str = "ยกเลิกแล้ว"

    @property
    def revenue_bearing(self) -> frozenset[str]:
        return frozenset({self.to_ship, self.completed})


DEFAULT_STATUS_LABELS = StatusLabels()


@dataclass(frozen=True)
class RevenueSummary:
    total_revenue: float
    orders_by_status: dict[str, int] = field(default_factory=dict)
    processed_rows: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "total_revenue": self.total_revenue,
            "orders_by_status": dict(self.orders_by_status),
            "processed_rows": self.processed_rows,
        }

    @staticmethod
    def from_dict(data: dict[str, object]) -> RevenueSummary:
        return RevenueSummary(
            total_revenue=float(data.get("total_revenue", 0.0)),  # type: ignore[arg-type]
            orders_by_status={str(k): int(v) for k, v in dict(data.get("orders_by_status", {})).items()},  # type: ignore[arg-type]
            processed_rows=int(data.get("processed_rows", 0)),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class RevenueResult:
    """Revenue-augmented table (one trailing revenue column) and its summary."""
    table: ParsedTable
    summary: RevenueSummary
    status_column: int | None = None

    @property
    def revenue_column(self) -> int:
        return len(self.table.headers) - 1

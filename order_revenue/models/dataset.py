from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .analytics import AnalyticsBundle
from .parsed_table import ParsedTable
from .revenue import RevenueSummary

"""StoredDataset model.

One uploaded file after successful calculation: the revenue-augmented table,
its summary and analytics. ``id`` is permanent; ``selected`` and ``active`` are
mirrors of the store's active / selected ids, rewritten on every store write.
"""

__all__ = [
    "StoredDataset",
]


@dataclass(frozen=True)
class StoredDataset:
    id: str
    file_name: str
    upload_timestamp: str  # ISO8601 UTC 'Z'
    parsed_data: ParsedTable  # 売上列追加済み
    summary: RevenueSummary
    analytics: AnalyticsBundle
    selected: bool = False
    active: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "upload_timestamp": self.upload_timestamp,
            "parsed_data": self.parsed_data.to_dict(),
            "summary": self.summary.to_dict(),
            "analytics": self.analytics.to_dict(),
            "selected": self.selected,
            "active": self.active,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> StoredDataset:
        return StoredDataset(
            id=str(data["id"]),
            file_name=str(data["file_name"]),
            upload_timestamp=str(data["upload_timestamp"]),
            parsed_data=ParsedTable.from_dict(data["parsed_data"]),
            summary=RevenueSummary.from_dict(data.get("summary", {})),
            analytics=AnalyticsBundle.from_dict(data["analytics"]),
            selected=bool(data.get("selected", False)),
            active=bool(data.get("active", False)),
        )

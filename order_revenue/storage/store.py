from __future__ import annotations

import json
import logging
import random
import string
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..models.analytics import AnalyticsBundle
from ..models.dataset import StoredDataset
from ..models.parsed_table import ParsedTable
from ..models.revenue import RevenueSummary

logger = logging.getLogger(__name__)

"""Dataset store backed by a single JSON document.

Document shape::

    {"datasets": [StoredDataset...], "active_id": str | null, "selected_ids": [str...]}

``active_id`` and ``selected_ids`` are the source of truth for the flags; the
``active`` / ``selected`` fields on each stored record are rewritten from them
on every save so an exported document reads the same way.

Capacity is accounted like browser local storage: the serialized dataset list
is measured against ``capacity_bytes`` (5 MiB by default) and new uploads are
refused once usage is above 90 %.
"""

__all__ = [
    "STORAGE_CAPACITY_BYTES",
    "NEARLY_FULL_PERCENT",
    "StorageError",
    "StorageInfo",
    "DatasetStore",
    "generate_dataset_id",
]

STORAGE_CAPACITY_BYTES = 5 * 1024 * 1024
NEARLY_FULL_PERCENT = 90.0

_ID_ALPHABET = string.digits + string.ascii_lowercase


class StorageError(Exception):
    pass


@dataclass(frozen=True)
class StorageInfo:
    used: int
    available: int
    percentage: float


def generate_dataset_id(now_ms: int | None = None) -> str:
    """``dashboard_<epoch-ms>_<9 base36 chars>``"""
    ms = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"dashboard_{ms}_{suffix}"


def _empty_document() -> dict[str, Any]:
    return {"datasets": [], "active_id": None, "selected_ids": []}


class DatasetStore:
    """Durable list of StoredDataset records plus the active / selected ids.

    Every operation reads the document from disk and writes it back, so two
    stores on the same path always see each other's changes.
    """

    def __init__(self, path: Path, capacity_bytes: int = STORAGE_CAPACITY_BYTES) -> None:
        self.path = Path(path)
        self.capacity_bytes = capacity_bytes

    # --- document I/O --------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return _empty_document()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"cannot read dataset store {self.path}: {e}") from e
        if not isinstance(raw, dict):
            raise StorageError(f"dataset store {self.path} is not a JSON object")
        doc = _empty_document()
        doc["datasets"] = list(raw.get("datasets") or [])
        doc["active_id"] = raw.get("active_id")
        doc["selected_ids"] = list(raw.get("selected_ids") or [])
        return doc

    def _write(self, doc: dict[str, Any]) -> None:
        active_id = doc.get("active_id")
        selected = set(doc.get("selected_ids") or [])
        for item in doc["datasets"]:
            item["active"] = item.get("id") == active_id
            item["selected"] = item.get("id") in selected
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(doc, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"cannot write dataset store {self.path}: {e}") from e

    def _records(self, doc: dict[str, Any]) -> list[StoredDataset]:
        try:
            return [StoredDataset.from_dict(item) for item in doc["datasets"]]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise StorageError(f"corrupt dataset record in {self.path}: {e}") from e

    # --- datasets ------------------------------------------------------------

    def save(
        self,
        table: ParsedTable,
        summary: RevenueSummary,
        analytics: AnalyticsBundle,
        file_name: str,
        *,
        now: datetime | None = None,
    ) -> StoredDataset:
        """Persist a calculated upload; the new dataset becomes active.

        Raises:
            StorageError: the store is nearly full or cannot be written
        """
        info = self.storage_info()
        if info.percentage > NEARLY_FULL_PERCENT:
            raise StorageError("Storage is nearly full. Please delete some old data first.")

        ts = now or datetime.now(UTC)
        dataset = StoredDataset(
            id=generate_dataset_id(int(ts.timestamp() * 1000)),
            file_name=file_name,
            upload_timestamp=ts.astimezone(UTC).isoformat().replace("+00:00", "Z"),
            parsed_data=table,
            summary=summary,
            analytics=analytics,
            selected=False,
            active=True,
        )
        doc = self._load()
        doc["datasets"].append(dataset.to_dict())
        doc["active_id"] = dataset.id
        self._write(doc)
        logger.info("dataset saved id=%s file=%s rows=%d", dataset.id, file_name, table.row_count)
        return dataset

    def all(self) -> list[StoredDataset]:
        return self._records(self._load())

    def get(self, dataset_id: str) -> StoredDataset | None:
        for dataset in self.all():
            if dataset.id == dataset_id:
                return dataset
        return None

    def active(self) -> StoredDataset | None:
        doc = self._load()
        active_id = doc["active_id"]
        if not active_id:
            return None
        for dataset in self._records(doc):
            if dataset.id == active_id:
                return dataset
        return None

    def set_active(self, dataset_id: str) -> StoredDataset:
        doc = self._load()
        if not any(item.get("id") == dataset_id for item in doc["datasets"]):
            raise StorageError(f"dataset not found: {dataset_id}")
        doc["active_id"] = dataset_id
        self._write(doc)
        return self.get(dataset_id)  # type: ignore[return-value]

    def delete(self, dataset_id: str) -> bool:
        """Remove one dataset; returns False when the id is unknown."""
        doc = self._load()
        before = len(doc["datasets"])
        doc["datasets"] = [item for item in doc["datasets"] if item.get("id") != dataset_id]
        if len(doc["datasets"]) == before:
            return False
        if doc["active_id"] == dataset_id:
            doc["active_id"] = None
        doc["selected_ids"] = [i for i in doc["selected_ids"] if i != dataset_id]
        self._write(doc)
        logger.info("dataset deleted id=%s", dataset_id)
        return True

    def clear(self) -> None:
        self._write(_empty_document())

    # --- selection -----------------------------------------------------------

    def set_selected(self, dataset_id: str, selected: bool = True) -> None:
        doc = self._load()
        if not any(item.get("id") == dataset_id for item in doc["datasets"]):
            raise StorageError(f"dataset not found: {dataset_id}")
        ids = [i for i in doc["selected_ids"] if i != dataset_id]
        if selected:
            ids.append(dataset_id)
        doc["selected_ids"] = ids
        self._write(doc)

    def selected_ids(self) -> list[str]:
        return list(self._load()["selected_ids"])

    def selected(self) -> list[StoredDataset]:
        """Selected datasets in selection order (input for the merger)."""
        doc = self._load()
        by_id = {d.id: d for d in self._records(doc)}
        return [by_id[i] for i in doc["selected_ids"] if i in by_id]

    # --- capacity / backup ---------------------------------------------------

    def storage_info(self) -> StorageInfo:
        doc = self._load()
        used = len(json.dumps(doc["datasets"], ensure_ascii=False).encode("utf-8"))
        return StorageInfo(
            used=used,
            available=self.capacity_bytes - used,
            percentage=(used / self.capacity_bytes) * 100 if self.capacity_bytes > 0 else 100.0,
        )

    def export_json(self) -> str:
        """Backup of every dataset as an indented JSON array."""
        doc = self._load()
        self._records(doc)  # 壊れたレコードはここで検出
        return json.dumps(doc["datasets"], ensure_ascii=False, indent=2)

    def import_json(self, text: str) -> int:
        """Replace all datasets with a backup produced by ``export_json``.

        Active / selected ids are restored from the records' flags.

        Returns:
            number of imported datasets

        Raises:
            StorageError: the text is not a valid backup (store left unchanged)
        """
        try:
            items = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"invalid backup: {e}") from e
        if not isinstance(items, list):
            raise StorageError("invalid backup: expected a JSON array of datasets")
        records = self._records({"datasets": items})

        doc = _empty_document()
        doc["datasets"] = [r.to_dict() for r in records]
        doc["active_id"] = next((r.id for r in records if r.active), None)
        doc["selected_ids"] = [r.id for r in records if r.selected]
        self._write(doc)
        logger.info("imported %d datasets into %s", len(records), self.path)
        return len(records)

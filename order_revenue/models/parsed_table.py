from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

"""ParsedTable domain model and FileKind enum.

A ParsedTable is the header row plus the cell matrix produced by the tabular
reader. It is created once per upload and never mutated afterwards; the revenue
calculator returns a new, augmented table instead of editing this one.
"""

__all__ = [
    "Cell",
    "FileKind",
    "ParsedTable",
]

Cell = Union[str, int, float]


class FileKind(Enum):
    """Source format of an uploaded file.

    - EXCEL: .xlsx / .xls workbook (first sheet only)
    - CSV: delimited text
    """
    EXCEL = "excel"
    CSV = "csv"


@dataclass(frozen=True)
class ParsedTable:
    """Header row + data rows of one uploaded file.

    Rows are right-padded with "" to ``len(headers)`` by the reader. Duplicate
    headers are allowed; they are reported in ``warnings`` rather than rejected.
    """
    headers: list[str]
    rows: list[list[Cell]]
    file_kind: FileKind
    file_name: str = ""
    warnings: list[str] = field(default_factory=list)  # 構造的な警告 (例外にはしない)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_dict(self) -> dict[str, object]:
        return {
            "headers": list(self.headers),
            "rows": [list(r) for r in self.rows],
            "file_kind": self.file_kind.value,
            "file_name": self.file_name,
            "warnings": list(self.warnings),
            "row_count": self.row_count,
        }

    @staticmethod
    def from_dict(data: dict[str, object]) -> ParsedTable:
        return ParsedTable(
            headers=[str(h) for h in data["headers"]],  # type: ignore[union-attr]
            rows=[list(r) for r in data["rows"]],  # type: ignore[union-attr]
            file_kind=FileKind(data["file_kind"]),
            file_name=str(data.get("file_name", "")),
            warnings=[str(w) for w in data.get("warnings", [])],  # type: ignore[union-attr]
        )

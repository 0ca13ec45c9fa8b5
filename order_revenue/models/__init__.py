"""Domain models for the order revenue dashboard core.

Every data shape that flows through the pipeline lives here as a frozen
dataclass or enum: the parsed table, the resolved column map, the revenue
result, the analytics bundle and the stored dataset record.
"""

from .analytics import AnalyticsBundle, AnalyticsMetadata, DateRange
from .column_map import REVENUE_FIELDS, ColumnMap, Field
from .dataset import StoredDataset
from .error_record import ErrorRecord
from .parsed_table import Cell, FileKind, ParsedTable
from .processing_result import RunResult, UploadOutcome, UploadStatus
from .revenue import (
    DEFAULT_STATUS_LABELS,
    REVENUE_HEADER,
    RevenueResult,
    RevenueSummary,
    StatusLabels,
)

__all__ = [
    # Table / columns
    "Cell",
    "FileKind",
    "ParsedTable",
    "Field",
    "ColumnMap",
    "REVENUE_FIELDS",
    # Revenue
    "REVENUE_HEADER",
    "StatusLabels",
    "DEFAULT_STATUS_LABELS",
    "RevenueSummary",
    "RevenueResult",
    # Analytics / storage
    "AnalyticsBundle",
    "AnalyticsMetadata",
    "DateRange",
    "StoredDataset",
    # Processing
    "ErrorRecord",
    "UploadStatus",
    "UploadOutcome",
    "RunResult",
]

from .store import DatasetStore, StorageError, StorageInfo

__all__ = [
    "DatasetStore",
    "StorageError",
    "StorageInfo",
]

# borrow_indexer/database/__init__.py

from .connection import DatabaseManager
from .interfaces import BatchStoreInterface
from .store import SqlBatchStore
from .tables import BatchRun, BatchStatus, CheckpointRow, DecodedEventRow, DerivedEventRow

__all__ = [
    "DatabaseManager",
    "BatchStoreInterface",
    "SqlBatchStore",
    "BatchRun",
    "BatchStatus",
    "CheckpointRow",
    "DecodedEventRow",
    "DerivedEventRow",
]

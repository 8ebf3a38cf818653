"""Thread, message and run storage with write-through persistence."""

from .models import MessageRecord, Page, RunRecord, ThreadRecord
from .persistence import JSONFilePersistence, PersistenceAdapter, SQLitePersistence, create_persistence
from .store import ThreadStore

__all__ = [
    "JSONFilePersistence",
    "MessageRecord",
    "Page",
    "PersistenceAdapter",
    "RunRecord",
    "SQLitePersistence",
    "ThreadRecord",
    "ThreadStore",
    "create_persistence",
]

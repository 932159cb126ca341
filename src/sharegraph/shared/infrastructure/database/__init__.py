"""
Record persistence infrastructure.
"""

from .record_store import RecordStore, InMemoryRecordStore
from .base_repository import BaseRepository

__all__ = [
    "RecordStore",
    "InMemoryRecordStore",
    "BaseRepository",
]

"""
Shared infrastructure components for ShareGraph.

Each external collaborator is an abstract port with an in-process
implementation:
- Record store and repository base class
- Object storage with public and private buckets
- Background job queue
- Full-text and vector indexes
- Monitoring and metrics collection
"""

from .database.record_store import RecordStore, InMemoryRecordStore
from .database.base_repository import BaseRepository
from .storage.object_storage import (
    PUBLIC, PRIVATE, ObjectStorage, InMemoryObjectStorage,
    FileSystemObjectStorage, create_object_storage,
)
from .queue.job_queue import JobQueue, InMemoryJobQueue, RedisJobQueue, create_job_queue
from .search.fulltext import FulltextSearch, InMemoryFulltextSearch
from .vector.vector_store import VectorStore, InMemoryVectorStore
from .monitoring.logger import get_logger, setup_logging
from .monitoring.metrics import MetricsCollector, get_metrics, timed_operation

__all__ = [
    # Records
    "RecordStore",
    "InMemoryRecordStore",
    "BaseRepository",

    # Object storage
    "PUBLIC",
    "PRIVATE",
    "ObjectStorage",
    "InMemoryObjectStorage",
    "FileSystemObjectStorage",
    "create_object_storage",

    # Jobs
    "JobQueue",
    "InMemoryJobQueue",
    "RedisJobQueue",
    "create_job_queue",

    # Indexes
    "FulltextSearch",
    "InMemoryFulltextSearch",
    "VectorStore",
    "InMemoryVectorStore",

    # Monitoring
    "get_logger",
    "setup_logging",
    "MetricsCollector",
    "get_metrics",
    "timed_operation",
]

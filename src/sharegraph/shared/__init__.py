"""
Shared components for ShareGraph.

Contains common models, utilities, and infrastructure used across services:

- Common data models and validation
- Centralized configuration management
- Shared exception hierarchy
- Infrastructure ports (records, objects, jobs, search, vectors, monitoring)
"""

from .models import *
from .config import *
from .exceptions import *
from .infrastructure import *

__all__ = [
    # From models
    "BaseModel", "TimestampMixin", "SoftDeleteMixin", "utcnow",
    "EntityType", "EntityRef", "User", "LIBRARY_TYPES", "MEDIA_NODE_TYPES",
    "CanvasNode", "CanvasEdge", "NodeData", "DriveFile", "GraphSnapshot",

    # From config
    "Settings", "get_settings",

    # From exceptions
    "ShareGraphError", "NotFoundError", "ParamsError", "QuotaExceededError",
    "DuplicationNotAllowedError", "RateLimitError", "ConfigurationError",
    "StorageError", "RepositoryError",

    # From infrastructure
    "RecordStore", "InMemoryRecordStore", "BaseRepository",
    "PUBLIC", "PRIVATE", "ObjectStorage", "InMemoryObjectStorage",
    "FileSystemObjectStorage", "create_object_storage",
    "JobQueue", "InMemoryJobQueue", "RedisJobQueue", "create_job_queue",
    "FulltextSearch", "InMemoryFulltextSearch", "VectorStore", "InMemoryVectorStore",
    "get_logger", "setup_logging", "MetricsCollector", "get_metrics", "timed_operation",
]

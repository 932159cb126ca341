"""
Collaborator wiring for the share service.
"""

from dataclasses import dataclass, field
from typing import Optional

from ...shared import get_metrics, get_settings, MetricsCollector, Settings
from ...shared.infrastructure.database import InMemoryRecordStore, RecordStore
from ...shared.infrastructure.queue import JobQueue, create_job_queue
from ...shared.infrastructure.search import FulltextSearch, InMemoryFulltextSearch
from ...shared.infrastructure.storage import (
    InMemoryObjectStorage, ObjectStorage, create_object_storage,
)
from ...shared.infrastructure.vector import InMemoryVectorStore, VectorStore
from ..workspace import (
    CreditService, InMemoryToolsetImporter, StorageQuotaService,
    ToolsetImporter, WorkspaceService,
)
from .common import ShareCommon
from .ids import IdentifierAllocator
from .rate_limit import ShareRateLimiter
from .repository import DuplicateRepository, ShareRepository


@dataclass
class ShareContext:
    """
    Everything publishing and duplication talk to.

    Only the ports are required; the services built on top of them are
    derived in ``__post_init__`` unless supplied.
    """

    store: RecordStore
    storage: ObjectStorage
    fulltext: FulltextSearch
    vectors: VectorStore
    toolsets: ToolsetImporter
    job_queue: Optional[JobQueue] = None
    settings: Settings = field(default_factory=get_settings)
    allocator: IdentifierAllocator = field(default_factory=IdentifierAllocator)
    metrics: MetricsCollector = field(default_factory=get_metrics)
    rate_limiter: Optional[ShareRateLimiter] = None
    workspace: Optional[WorkspaceService] = None
    quota: Optional[StorageQuotaService] = None
    credits: Optional[CreditService] = None

    def __post_init__(self):
        self.rate_limiter = self.rate_limiter or ShareRateLimiter()
        self.workspace = self.workspace or WorkspaceService(
            self.store, self.storage, self.fulltext, self.allocator
        )
        self.quota = self.quota or StorageQuotaService(self.store)
        self.credits = self.credits or CreditService(self.store)
        self.shares = ShareRepository(self.store)
        self.duplicates = DuplicateRepository(self.store)
        self.common = ShareCommon(self.storage, self.vectors)

    @classmethod
    def in_memory(cls, job_queue: Optional[JobQueue] = None, **overrides) -> 'ShareContext':
        """A fully in-process context for development and tests."""
        return cls(
            store=overrides.pop('store', None) or InMemoryRecordStore(),
            storage=overrides.pop('storage', None) or InMemoryObjectStorage(),
            fulltext=overrides.pop('fulltext', None) or InMemoryFulltextSearch(),
            vectors=overrides.pop('vectors', None) or InMemoryVectorStore(),
            toolsets=overrides.pop('toolsets', None) or InMemoryToolsetImporter(),
            job_queue=job_queue,
            **overrides,
        )

    @classmethod
    def from_settings(cls) -> 'ShareContext':
        """Context for the configured object storage and job queue."""
        return cls.in_memory(
            job_queue=create_job_queue(),
            storage=create_object_storage(),
        )

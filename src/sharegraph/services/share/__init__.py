"""
Share Service for ShareGraph.

Publishes private content as immutable public snapshots and duplicates
published snapshots back into another user's workspace:
- Per-entity-type publish and duplicate handlers
- Canvas-wide publishing with bounded fan-out
- Canvas duplication with a preallocated identifier remap
- Reference rewriting and allowlist sanitization
"""

from .service import ShareService
from .context import ShareContext
from .creation import PublishOrchestrator, CREATE_SHARE_JOB
from .duplication import DuplicateOrchestrator
from .jobs import ShareJobWorker
from .ids import IdentifierAllocator, gen_share_id, entity_type_from_share_id
from .rewriter import RemapTable, rewrite_json, rewrite_text, rewrite_toolsets
from .sanitizer import project, sanitize_node_metadata, sanitize_snapshot
from .models import (
    ShareRecord, DuplicateRecord, ShareExtraData, CreateShareRequest,
    DuplicateTarget, ShareFilter, OutcomeStatus, NodeOutcome, OperationReport,
    PublishResult, DuplicateResult,
)

__all__ = [
    "ShareService",
    "ShareContext",
    "PublishOrchestrator",
    "CREATE_SHARE_JOB",
    "DuplicateOrchestrator",
    "ShareJobWorker",
    "IdentifierAllocator",
    "gen_share_id",
    "entity_type_from_share_id",
    "RemapTable",
    "rewrite_json",
    "rewrite_text",
    "rewrite_toolsets",
    "project",
    "sanitize_node_metadata",
    "sanitize_snapshot",
    "ShareRecord",
    "DuplicateRecord",
    "ShareExtraData",
    "CreateShareRequest",
    "DuplicateTarget",
    "ShareFilter",
    "OutcomeStatus",
    "NodeOutcome",
    "OperationReport",
    "PublishResult",
    "DuplicateResult",
]

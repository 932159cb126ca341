"""
Data models for the share service.

Provides share and provenance records, request payloads, and the typed
per-node outcomes collected while publishing or duplicating a canvas.
"""

from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import Field

from ...shared.models import EntityRef, EntityType, User
from ...shared.models.base import BaseModel
from ...shared.models.workspace import Record


class ShareExtraData(BaseModel):
    """Type-specific extras stored with a share record."""

    vector_storage_key: Optional[str] = Field(default=None, description="Blob holding exported vectors")
    description: Optional[str] = Field(default=None, description="Page description")


class ShareRecord(Record):
    """
    A published entity.

    Unique per ``(uid, entity_id, entity_type)`` among live rows.
    """

    primary_key: ClassVar[str] = "share_id"

    share_id: str = Field(..., description="Opaque, type-prefixed public identifier")
    uid: str
    entity_id: str
    entity_type: EntityType
    title: str = ""
    storage_key: str = Field(..., description="Public blob key")
    parent_share_id: Optional[str] = Field(default=None, description="Share that published this one")
    template_id: Optional[str] = Field(default=None, description="Set for canvas templates")
    allow_duplication: bool = False
    extra_data: Optional[ShareExtraData] = None


class DuplicateRecord(Record):
    """Provenance entry written once per duplicated entity."""

    primary_key: ClassVar[str] = "record_id"

    record_id: str
    source_id: str
    target_id: str
    entity_type: EntityType
    uid: str
    share_id: str
    status: str = "finish"


class CreateShareRequest(BaseModel):
    entity_id: str
    entity_type: EntityType
    title: Optional[str] = None
    parent_share_id: Optional[str] = None
    allow_duplication: bool = False
    cover_storage_key: Optional[str] = Field(default=None, description="Public cover for skill responses")
    credit_usage: Optional[float] = Field(default=None, description="Precomputed workflow app cost")


class DuplicateTarget(BaseModel):
    """Where a duplicated entity lands."""

    project_id: Optional[str] = None
    canvas_id: Optional[str] = None


class CreateShareJob(BaseModel):
    """Payload of a ``createShare`` background job."""

    user: User
    req: CreateShareRequest


class ShareFilter(BaseModel):
    share_id: Optional[str] = None
    entity_id: Optional[str] = None
    entity_type: Optional[EntityType] = None
    parent_share_id: Optional[str] = None


class OutcomeStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"


class NodeOutcome(BaseModel):
    """Result of publishing or duplicating one node."""

    node_id: str
    node_type: str
    entity_id: str = ""
    status: OutcomeStatus = OutcomeStatus.OK
    reason: Optional[str] = None
    target_id: Optional[str] = None


class OperationReport(BaseModel):
    """Per-node outcomes of one canvas-wide operation."""

    outcomes: List[NodeOutcome] = Field(default_factory=list)

    def record(self, outcome: NodeOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def skipped(self) -> List[NodeOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.SKIPPED.value]

    @property
    def ok(self) -> List[NodeOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.OK.value]

    @property
    def has_failures(self) -> bool:
        return bool(self.skipped)


class PublishResult(BaseModel):
    """What a publish handler produced."""

    record: ShareRecord
    payload: Dict[str, Any] = Field(default_factory=dict, description="The public blob as written")
    report: OperationReport = Field(default_factory=OperationReport)


class DuplicateResult(BaseModel):
    entity: EntityRef
    report: OperationReport = Field(default_factory=OperationReport)

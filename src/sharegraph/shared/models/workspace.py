"""
Private workspace entities.

These are the rows owned by a user before anything is published. Content
bodies (document text, canvas state, page state) live in object storage and
are referenced by ``storage_key`` fields.
"""

from typing import Any, ClassVar, Dict, List, Optional

from pydantic import Field

from .base import BaseModel, SoftDeleteMixin, TimestampMixin


class Record(TimestampMixin, SoftDeleteMixin):
    """Base class for rows kept in the record store."""

    primary_key: ClassVar[str] = "id"

    @property
    def pk(self) -> str:
        return getattr(self, self.primary_key)


class Canvas(Record):
    primary_key: ClassVar[str] = "canvas_id"

    canvas_id: str
    uid: str
    title: str = ""
    project_id: Optional[str] = None
    state_storage_key: Optional[str] = None
    minimap_storage_key: Optional[str] = None


class Document(Record):
    primary_key: ClassVar[str] = "doc_id"

    doc_id: str
    uid: str
    title: str = "Untitled Document"
    content_preview: str = ""
    read_only: bool = False
    storage_key: str
    project_id: Optional[str] = None
    canvas_id: Optional[str] = None


class Resource(Record):
    primary_key: ClassVar[str] = "resource_id"

    resource_id: str
    uid: str
    title: str = ""
    resource_type: str = "text"
    content_preview: str = ""
    index_status: Optional[str] = None
    index_error: Optional[Dict[str, Any]] = None
    raw_file_key: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    storage_key: str
    project_id: Optional[str] = None
    canvas_id: Optional[str] = None


class CodeArtifact(Record):
    primary_key: ClassVar[str] = "artifact_id"

    artifact_id: str
    uid: str
    title: str = "Code Artifact"
    type: Optional[str] = None
    language: Optional[str] = None
    storage_key: str
    canvas_id: Optional[str] = None


class ActionResult(Record):
    """The persisted output of an agent/skill invocation."""

    primary_key: ClassVar[str] = "result_id"

    result_id: str
    uid: str
    version: int = 0
    title: str = ""
    type: str = "skill"
    tier: Optional[str] = None
    status: str = "finish"
    input: Dict[str, Any] = Field(default_factory=dict)
    target_id: Optional[str] = None
    target_type: Optional[str] = None
    action_meta: Optional[Dict[str, Any]] = None
    context: Optional[Any] = None
    history: Optional[Any] = None
    tpl_config: Optional[Dict[str, Any]] = None
    runtime_config: Optional[Dict[str, Any]] = None
    errors: List[str] = Field(default_factory=list)
    model_name: Optional[str] = None
    duplicate_from: Optional[str] = None
    project_id: Optional[str] = None
    toolsets: List[Dict[str, Any]] = Field(default_factory=list)


class ActionStep(Record):
    primary_key: ClassVar[str] = "step_id"

    step_id: str
    result_id: str
    version: int = 0
    order: int = 0
    name: str = ""
    content: str = ""
    reasoning_content: Optional[str] = None
    artifacts: Optional[Any] = None
    structured_data: Optional[Any] = None
    logs: Optional[Any] = None
    token_usage: Optional[Any] = None


class Page(Record):
    primary_key: ClassVar[str] = "page_id"

    page_id: str
    uid: str
    canvas_id: str = ""
    title: str = ""
    description: Optional[str] = None
    state_storage_key: Optional[str] = None
    status: str = "draft"


class PageNodeRelation(Record):
    primary_key: ClassVar[str] = "relation_id"

    relation_id: str
    page_id: str
    node_id: str
    node_type: str
    entity_id: str
    order_index: int = 0
    node_data: Dict[str, Any] = Field(default_factory=dict)


class WorkflowApp(Record):
    primary_key: ClassVar[str] = "app_id"

    app_id: str
    uid: str
    canvas_id: str
    title: str = ""
    description: Optional[str] = None
    remix_enabled: bool = False
    cover_storage_key: Optional[str] = None
    template_content: Optional[str] = None
    result_node_ids: List[str] = Field(default_factory=list)
    query: Optional[str] = None
    variables: List[Dict[str, Any]] = Field(default_factory=list)


class StoredDriveFile(Record):
    """Drive file row; the graph-facing shape is ``DriveFile``."""

    primary_key: ClassVar[str] = "file_id"

    file_id: str
    canvas_id: str
    uid: str
    name: str = ""
    type: str = ""
    size: int = 0
    category: Optional[str] = None
    result_id: Optional[str] = None
    storage_key: Optional[str] = None
    source: Optional[str] = None
    scope: Optional[str] = None

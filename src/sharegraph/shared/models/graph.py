"""
Canvas graph models.

A canvas is stored and published as a ``GraphSnapshot``: nodes, edges and the
drive files attached to it. Node metadata is free-form; which parts of it
survive publishing is decided by the sanitizer, not by these models.
"""

from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from .base import BaseModel


class NodeData(BaseModel):
    """Domain payload of a canvas node."""

    model_config = ConfigDict(extra="allow")

    entity_id: str = Field(default="", description="Domain identifier, stable across canvas saves")
    title: str = Field(default="", description="Node title")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form node metadata")
    content_preview: Optional[str] = Field(default=None, description="Short content preview")


class CanvasNode(BaseModel):
    """A node on a canvas. ``type`` selects the handler."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Graph-local node identifier")
    type: str = Field(..., description="Node type")
    data: NodeData = Field(default_factory=NodeData)

    @property
    def entity_id(self) -> str:
        return self.data.entity_id

    @property
    def share_id(self) -> Optional[str]:
        return self.data.metadata.get("shareId")


class CanvasEdge(BaseModel):
    """An edge between two canvas nodes."""

    model_config = ConfigDict(extra="allow")

    id: str
    source: str
    target: str


class DriveFile(BaseModel):
    """A file attached to a canvas, possibly produced by a skill response."""

    model_config = ConfigDict(extra="allow")

    file_id: str
    canvas_id: Optional[str] = None
    uid: Optional[str] = None
    name: str = ""
    type: str = ""
    size: int = 0
    category: Optional[str] = None
    result_id: Optional[str] = None
    storage_key: Optional[str] = None
    source: Optional[str] = None
    scope: Optional[str] = None


class GraphSnapshot(BaseModel):
    """Serialized canvas: the unit stored at a canvas's public storage key."""

    model_config = ConfigDict(extra="allow")

    title: str = ""
    nodes: List[CanvasNode] = Field(default_factory=list)
    edges: List[CanvasEdge] = Field(default_factory=list)
    files: List[DriveFile] = Field(default_factory=list)
    resources: Optional[List[Dict[str, Any]]] = None
    minimap_url: Optional[str] = None

    def nodes_of_type(self, *node_types: str) -> List[CanvasNode]:
        return [node for node in self.nodes if node.type in node_types]

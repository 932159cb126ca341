"""
Shared data models for ShareGraph.
"""

from .base import BaseModel, TimestampMixin, SoftDeleteMixin, utcnow
from .common import EntityType, EntityRef, User, LIBRARY_TYPES, MEDIA_NODE_TYPES
from .graph import CanvasNode, CanvasEdge, NodeData, DriveFile, GraphSnapshot
from .workspace import (
    Record, Canvas, Document, Resource, CodeArtifact, ActionResult, ActionStep,
    Page, PageNodeRelation, WorkflowApp, StoredDriveFile,
)

__all__ = [
    # Base models
    "BaseModel",
    "TimestampMixin",
    "SoftDeleteMixin",
    "utcnow",
    # Entity typing
    "EntityType",
    "EntityRef",
    "User",
    "LIBRARY_TYPES",
    "MEDIA_NODE_TYPES",
    # Graph models
    "CanvasNode",
    "CanvasEdge",
    "NodeData",
    "DriveFile",
    "GraphSnapshot",
    # Workspace records
    "Record",
    "Canvas",
    "Document",
    "Resource",
    "CodeArtifact",
    "ActionResult",
    "ActionStep",
    "Page",
    "PageNodeRelation",
    "WorkflowApp",
    "StoredDriveFile",
]

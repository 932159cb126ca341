"""
Entity typing shared across ShareGraph services.
"""

from enum import Enum
from typing import FrozenSet

from pydantic import Field

from .base import BaseModel


class EntityType(str, Enum):
    """Entity types that can be published or duplicated."""
    CANVAS = "canvas"
    DOCUMENT = "document"
    RESOURCE = "resource"
    CODE_ARTIFACT = "codeArtifact"
    SKILL_RESPONSE = "skillResponse"
    PAGE = "page"
    WORKFLOW_APP = "workflowApp"


# Node types that count against storage quota
LIBRARY_TYPES: FrozenSet[str] = frozenset({
    EntityType.DOCUMENT.value,
    EntityType.RESOURCE.value,
    EntityType.CODE_ARTIFACT.value,
})

MEDIA_NODE_TYPES: FrozenSet[str] = frozenset({"image", "video", "audio"})


class User(BaseModel):
    """The acting user. Only the uid matters to this layer."""
    uid: str = Field(..., description="User identifier")


class EntityRef(BaseModel):
    """Reference to a private entity."""
    entity_id: str = Field(..., description="Domain identifier of the entity")
    entity_type: EntityType = Field(..., description="Entity type")

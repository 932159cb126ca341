"""
Workspace Service - the private side of the content graph.

Provides entity storage and lookup for canvases, library entities, skill
responses, pages and workflow apps, together with the collaborators that
publishing and duplication depend on: storage quota, credit usage, toolset
import and the page draft codec.
"""

from .service import WorkspaceService, canvas_state_key, page_relation_id, page_state_key
from .models import CreditUsage, StorageUsage, PageConfig, PageState
from .quota import StorageQuotaService
from .credit import CreditService
from .toolsets import (
    ToolsetImporter, InMemoryToolsetImporter, extract_toolsets_with_nodes,
)
from .pages import PageStateCodec, JsonPageStateCodec

__all__ = [
    "WorkspaceService",
    "canvas_state_key",
    "page_state_key",
    "page_relation_id",
    "CreditUsage",
    "StorageUsage",
    "PageConfig",
    "PageState",
    "StorageQuotaService",
    "CreditService",
    "ToolsetImporter",
    "InMemoryToolsetImporter",
    "extract_toolsets_with_nodes",
    "PageStateCodec",
    "JsonPageStateCodec",
]

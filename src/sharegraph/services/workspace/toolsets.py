"""
Toolset extraction and import.

Skill response nodes carry the toolsets they were run with in
``metadata.selectedToolsets``. Duplicating a canvas re-imports those toolsets
for the new owner; the importer returns a map from the source toolset id to
the toolset object the copy should reference instead.
"""

import copy
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ...shared import get_logger
from ...shared.models import CanvasNode, User

Toolset = Dict[str, Any]
ToolsetRemap = Dict[str, Toolset]


def extract_toolsets_with_nodes(nodes: List[CanvasNode]) -> List[Dict[str, Any]]:
    """
    Collect the distinct toolsets selected by skill response nodes.

    Returns:
        ``[{'toolset': toolset, 'nodes': [node, ...]}]`` in first-seen order
    """
    found: Dict[str, Dict[str, Any]] = {}
    for node in nodes:
        if node.type != 'skillResponse':
            continue
        selected = node.data.metadata.get('selectedToolsets')
        if not isinstance(selected, list):
            continue
        for toolset in selected:
            if not isinstance(toolset, dict) or not toolset.get('id'):
                continue
            entry = found.setdefault(toolset['id'], {'toolset': toolset, 'nodes': []})
            entry['nodes'].append(node)
    return list(found.values())


class ToolsetImporter(ABC):
    """Imports toolsets into another user's account."""

    @abstractmethod
    async def import_toolsets(self, user: User, toolsets: List[Toolset]) -> ToolsetRemap:
        """
        Import toolsets for ``user``.

        Toolsets that cannot be imported are simply absent from the result.
        """
        pass


class InMemoryToolsetImporter(ToolsetImporter):
    """
    Keeps per-user toolset installations in memory.

    Builtin toolsets need no import. A toolset whose key the user already has
    installed maps to that installation. Anything else is installed fresh
    without credentials; MCP toolsets need their server definition to be
    installable.
    """

    def __init__(self):
        self.logger = get_logger(__name__)
        self._lock = threading.RLock()
        self._installed: Dict[str, Dict[str, Toolset]] = {}

    @staticmethod
    def _key(toolset: Toolset) -> str:
        inner = toolset.get('toolset') or {}
        return inner.get('key') or toolset.get('key') or toolset.get('name') or toolset['id']

    def install(self, user: User, toolset: Toolset) -> Toolset:
        with self._lock:
            self._installed.setdefault(user.uid, {})[self._key(toolset)] = toolset
        return toolset

    def installed(self, user: User) -> List[Toolset]:
        with self._lock:
            return list(self._installed.get(user.uid, {}).values())

    def _import_one(self, user: User, toolset: Toolset) -> Optional[Toolset]:
        if toolset.get('type') == 'builtin':
            return None

        with self._lock:
            existing = self._installed.get(user.uid, {}).get(self._key(toolset))
        if existing is not None:
            return existing

        if toolset.get('type') == 'mcp' and not toolset.get('mcpServer'):
            self.logger.warning(f"Cannot import MCP toolset {toolset['id']} without a server definition")
            return None

        imported = copy.deepcopy(toolset)
        imported['id'] = f"ts-{uuid.uuid4().hex[:24]}"
        if isinstance(imported.get('toolset'), dict):
            imported['toolset'].pop('authData', None)
        if isinstance(imported.get('mcpServer'), dict):
            imported['mcpServer'].pop('headers', None)
            imported['mcpServer'].pop('env', None)
        return self.install(user, imported)

    async def import_toolsets(self, user: User, toolsets: List[Toolset]) -> ToolsetRemap:
        remap: ToolsetRemap = {}
        for toolset in toolsets:
            if toolset['id'] in remap:
                continue
            try:
                imported = self._import_one(user, toolset)
            except Exception as e:
                self.logger.warning(f"Failed to import toolset {toolset.get('id')}: {e}")
                continue
            if imported is not None:
                remap[toolset['id']] = imported
        self.logger.info(f"Imported {len(remap)} of {len(toolsets)} toolsets for user {user.uid}")
        return remap

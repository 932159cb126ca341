"""
Allowlist sanitization of data that is about to become public.

Every metadata field is private unless an allowlist names it. Sanitizing only
drops keys; surviving values are never renamed or transformed, except that
toolset objects are stripped of credentials before they are kept.
"""

import copy
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping

from ...shared.models import GraphSnapshot

# Strict allowlist for views that must expose nothing but presentation data
PUBLIC_METADATA_FIELDS: FrozenSet[str] = frozenset({'shareId', 'imageUrl', 'videoUrl', 'audioUrl'})

FILE_FIELDS: FrozenSet[str] = frozenset({'fileId', 'name', 'type', 'size', 'category', 'resultId'})

# Canvas shares keep what duplication needs to rebuild references
CANVAS_METADATA_FIELDS: Mapping[str, FrozenSet[str]] = {
    'document': frozenset({'shareId', 'contextItems'}),
    'resource': frozenset({'shareId', 'resourceType', 'contextItems'}),
    'codeArtifact': frozenset({'shareId', 'language', 'type'}),
    'skillResponse': frozenset({
        'shareId', 'creditCost', 'query', 'contextItems', 'structuredData',
        'selectedToolsets', 'status',
    }),
    'image': frozenset({'shareId', 'imageUrl'}),
    'video': frozenset({'shareId', 'videoUrl'}),
    'audio': frozenset({'shareId', 'audioUrl'}),
}
DEFAULT_CANVAS_METADATA_FIELDS: FrozenSet[str] = frozenset({'shareId'})


def project(data: Any, allowlist: Iterable[str]) -> Dict[str, Any]:
    """Keep only the allowlisted keys of ``data``; anything not a dict yields ``{}``."""
    if not isinstance(data, dict):
        return {}
    allowed = frozenset(allowlist)
    return {key: copy.deepcopy(value) for key, value in data.items() if key in allowed}


def purge_toolsets(toolsets: Any) -> List[Dict[str, Any]]:
    """Remove credentials and definitions from toolset objects."""
    if not isinstance(toolsets, list):
        return []
    purged = []
    for toolset in toolsets:
        toolset = copy.deepcopy(toolset)
        if isinstance(toolset, dict):
            if isinstance(toolset.get('toolset'), dict):
                toolset['toolset'].pop('definition', None)
                toolset['toolset'].pop('authData', None)
            if isinstance(toolset.get('mcpServer'), dict):
                toolset['mcpServer'].pop('headers', None)
                toolset['mcpServer'].pop('env', None)
        purged.append(toolset)
    return purged


def sanitize_node_metadata(node_type: str, metadata: Any) -> Dict[str, Any]:
    """Project canvas node metadata through its node type's allowlist."""
    allowlist = CANVAS_METADATA_FIELDS.get(node_type, DEFAULT_CANVAS_METADATA_FIELDS)
    sanitized = project(metadata, allowlist)
    if 'selectedToolsets' in sanitized:
        sanitized['selectedToolsets'] = purge_toolsets(sanitized['selectedToolsets'])
    return sanitized


def sanitize_public_metadata(metadata: Any) -> Dict[str, Any]:
    return project(metadata, PUBLIC_METADATA_FIELDS)


def sanitize_file(file: Any) -> Dict[str, Any]:
    return project(file, FILE_FIELDS)


def sanitize_snapshot(snapshot: GraphSnapshot) -> Dict[str, Any]:
    """
    Serialize a canvas snapshot for a canvas share.

    Node metadata and files go through their allowlists; everything else
    about a node (id, type, position, title, entity id) is kept.
    """
    data = snapshot.to_json_dict()
    for node in data.get('nodes', []):
        node_data = node.setdefault('data', {})
        node_data['metadata'] = sanitize_node_metadata(node.get('type'), node_data.get('metadata'))
    data['files'] = [sanitize_file(file) for file in data.get('files', [])]
    return data


def sanitize_canvas_for_public(canvas_data: Any, result_node_ids: Iterable[str]) -> Dict[str, Any]:
    """
    Reduce canvas data to its result nodes and their files.

    Used for workflow app shares, where only the produced results are public.
    """
    if not isinstance(canvas_data, dict):
        return {'nodes': [], 'files': []}

    wanted = set(result_node_ids or [])
    nodes = []
    for node in canvas_data.get('nodes') or []:
        if node.get('id') not in wanted:
            continue
        node_data = node.get('data') or {}
        nodes.append({
            'id': node['id'],
            'type': node.get('type'),
            'data': {
                'entityId': node_data.get('entityId') or '',
                'title': node_data.get('title') or '',
                'metadata': sanitize_public_metadata(node_data.get('metadata')),
            },
        })

    result_entity_ids = {node['data']['entityId'] for node in nodes if node['data']['entityId']}
    files = [
        sanitize_file(file)
        for file in canvas_data.get('files') or []
        if file.get('resultId') and file['resultId'] in result_entity_ids
    ]
    return {'nodes': nodes, 'files': files}

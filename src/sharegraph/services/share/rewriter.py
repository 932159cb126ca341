"""
Reference rewriting for duplicated content.

References to other entities are not normalized: they appear as plain
identifier substrings inside any string of a JSON value, as ``id=`` attributes of
mention tokens in free text, and as embedded toolset objects. Every function
here is pure; the remap table is only read.
"""

import copy
import re
from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Pattern

# @{type=resource,id=r-123,name=Report}
MENTION_PATTERN = re.compile(r'@\{([^{}]*)\}')


@dataclass(frozen=True)
class RemapTable:
    """
    Old-to-new identifier mapping for one duplication call.

    Built completely before any copy starts, then shared read-only by every
    concurrent copy task.
    """

    entities: Mapping[str, str] = field(default_factory=dict)
    toolsets: Mapping[str, Dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'entities', MappingProxyType(dict(self.entities)))
        object.__setattr__(self, 'toolsets', MappingProxyType(dict(self.toolsets)))

    def resolve(self, entity_id: str) -> Optional[str]:
        return self.entities.get(entity_id)

    def with_toolsets(self, toolsets: Mapping[str, Dict[str, Any]]) -> 'RemapTable':
        return RemapTable(entities=self.entities, toolsets=toolsets)

    @cached_property
    def pattern(self) -> Optional[Pattern]:
        """
        One alternation of every key, longest first.

        Matches are bounded by characters outside the identifier alphabet
        (ASCII letters, digits, ``_`` and ``-``), so CJK text or a newline
        right before an identifier still counts as a boundary.
        """
        if not self.entities:
            return None
        keys = sorted(self.entities, key=len, reverse=True)
        alternation = '|'.join(re.escape(key) for key in keys)
        return re.compile(rf"(?<![\w-])(?:{alternation})(?![\w-])", re.ASCII)


def _replace_all(text: str, remap: RemapTable) -> str:
    return remap.pattern.sub(lambda m: remap.entities[m.group(0)], text)


def rewrite_json(value: Any, remap: RemapTable) -> Any:
    """
    Rewrite every remapped identifier anywhere inside a JSON-compatible value.

    Every string leaf and dict key is rewritten; identifiers that merely
    contain a remapped key are left alone. Returns a new value.
    """
    if value is None or not remap.entities:
        return copy.deepcopy(value)
    if isinstance(value, str):
        return _replace_all(value, remap)
    if isinstance(value, dict):
        return {
            rewrite_json(key, remap) if isinstance(key, str) else key: rewrite_json(item, remap)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [rewrite_json(item, remap) for item in value]
    return copy.deepcopy(value)


def rewrite_text(text: Optional[str], remap: RemapTable) -> Optional[str]:
    """Rewrite the ``id=`` attribute of mention tokens; other text is untouched."""
    if not text or not remap.entities:
        return text

    def replace_mention(match):
        attributes = []
        for attribute in match.group(1).split(','):
            key, sep, val = attribute.partition('=')
            if sep and key.strip() == 'id' and val.strip() in remap.entities:
                attribute = f"{key}={remap.entities[val.strip()]}"
            attributes.append(attribute)
        return '@{' + ','.join(attributes) + '}'

    return MENTION_PATTERN.sub(replace_mention, text)


def rewrite_toolsets(toolsets: Any, remap: RemapTable) -> List[Dict[str, Any]]:
    """Replace each toolset by its imported counterpart, keeping unresolved ones."""
    if not isinstance(toolsets, list):
        return copy.deepcopy(toolsets)
    rewritten = []
    for toolset in toolsets:
        if isinstance(toolset, dict) and toolset.get('id') in remap.toolsets:
            rewritten.append(copy.deepcopy(remap.toolsets[toolset['id']]))
        else:
            rewritten.append(copy.deepcopy(toolset))
    return rewritten

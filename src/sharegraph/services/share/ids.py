"""
Identifier allocation.

Entity identifiers and share identifiers are prefixed by type so that the
type can be recovered from the identifier alone. The random part is long
enough that no identifier is a substring of another, which the reference
rewriter relies on.
"""

import uuid
from typing import Optional

from ...shared.exceptions import ParamsError
from ...shared.models import EntityType

ENTITY_ID_PREFIX = {
    EntityType.CANVAS.value: 'c-',
    EntityType.DOCUMENT.value: 'd-',
    EntityType.RESOURCE.value: 'r-',
    EntityType.CODE_ARTIFACT.value: 'ca-',
    EntityType.SKILL_RESPONSE.value: 'ar-',
    EntityType.PAGE.value: 'page-',
    EntityType.WORKFLOW_APP.value: 'wa-',
}

SHARE_CODE_PREFIX = {
    EntityType.CANVAS.value: 'can-',
    EntityType.DOCUMENT.value: 'doc-',
    EntityType.RESOURCE.value: 'res-',
    EntityType.SKILL_RESPONSE.value: 'skr-',
    EntityType.CODE_ARTIFACT.value: 'cod-',
    EntityType.PAGE.value: 'pag-',
    EntityType.WORKFLOW_APP.value: 'wfa-',
}


def _random_part() -> str:
    return uuid.uuid4().hex[:24]


def _type_value(entity_type) -> str:
    value = entity_type.value if isinstance(entity_type, EntityType) else entity_type
    if value not in ENTITY_ID_PREFIX:
        raise ParamsError(f"Unsupported entity type: {entity_type}")
    return value


def gen_share_id(entity_type) -> str:
    return SHARE_CODE_PREFIX[_type_value(entity_type)] + _random_part()


def entity_type_from_share_id(share_id: str) -> Optional[str]:
    """Recover the entity type encoded in a share id, or None if unknown."""
    for entity_type, prefix in SHARE_CODE_PREFIX.items():
        if share_id.startswith(prefix):
            return entity_type
    return None


class IdentifierAllocator:
    """Generates collision-resistant identifiers for new rows."""

    def allocate(self, entity_type) -> str:
        return ENTITY_ID_PREFIX[_type_value(entity_type)] + _random_part()

    def allocate_share_id(self, entity_type) -> str:
        return gen_share_id(entity_type)

    def allocate_file_id(self) -> str:
        return f"df-{_random_part()}"

"""
Base models and mixins for ShareGraph.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class BaseModel(PydanticBaseModel):
    """
    Base model for all ShareGraph data structures.

    Fields are snake_case in Python and camelCase on the wire, so that
    published blobs keep the ``entityId``/``shareId`` format consumers expect.
    """

    model_config = ConfigDict(
        # Accept both field names and camelCase aliases
        alias_generator=to_camel,
        validate_by_name=True,
        validate_by_alias=True,
        # Validate assignments after object creation
        validate_assignment=True,
        # Use enum values instead of enum names
        use_enum_values=True,
        extra="forbid",
    )

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict using wire aliases."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TimestampMixin(BaseModel):
    """
    Mixin to add timestamp fields to models.
    """
    created_at: datetime = Field(default_factory=utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utcnow, description="Last update timestamp")

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = utcnow()


class SoftDeleteMixin(BaseModel):
    """
    Mixin for records that are soft-deleted rather than removed.
    """
    deleted_at: Optional[datetime] = Field(default=None, description="Soft-delete timestamp")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

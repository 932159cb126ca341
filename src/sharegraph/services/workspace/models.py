"""
Data models for the private workspace service.
"""

from typing import ClassVar, List

from pydantic import Field

from ...shared.models.base import BaseModel
from ...shared.models.workspace import Record


class CreditUsage(Record):
    """Credits consumed by one skill response run."""

    primary_key: ClassVar[str] = "usage_id"

    usage_id: str
    uid: str
    result_id: str
    amount: int = 0


class StorageUsage(BaseModel):
    """Library entity count against a user's quota."""

    uid: str
    used: int = 0
    total: int = 0

    @property
    def available(self) -> int:
        return max(self.total - self.used, 0)


class PageConfig(BaseModel):
    layout: str = "slides"
    theme: str = "light"


class PageState(BaseModel):
    """Decoded collaborative page draft."""

    title: str = ""
    node_ids: List[str] = Field(default_factory=list)
    config: PageConfig = Field(default_factory=PageConfig)

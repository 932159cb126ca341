"""
Repositories for share and duplicate records.
"""

import uuid
from typing import List, Optional

from ...shared.infrastructure.database import BaseRepository
from ...shared.models import User
from .models import DuplicateRecord, ShareFilter, ShareRecord


class ShareRepository(BaseRepository[ShareRecord]):
    model = ShareRecord

    async def find_live(self, share_id: str) -> Optional[ShareRecord]:
        return await self.find_first(share_id=share_id)

    async def find_existing(self,
                            uid: str,
                            entity_id: str,
                            entity_type: str,
                            ignore_templates: bool = False) -> Optional[ShareRecord]:
        """The live share of an entity, which publishing reuses."""
        filters = dict(uid=uid, entity_id=entity_id, entity_type=entity_type)
        if ignore_templates:
            filters['template_id'] = None
        return await self.find_first(**filters)

    async def list_for_user(self, user: User, share_filter: ShareFilter) -> List[ShareRecord]:
        filters = {
            key: value
            for key, value in share_filter.model_dump().items()
            if value is not None
        }
        return await self.find_many(uid=user.uid, **filters)


class DuplicateRepository(BaseRepository[DuplicateRecord]):
    model = DuplicateRecord

    async def record(self, user: User, source_id: str, target_id: str,
                     entity_type: str, share_id: str) -> DuplicateRecord:
        return await self.create(DuplicateRecord(
            record_id=f"dup-{uuid.uuid4().hex[:24]}",
            source_id=source_id,
            target_id=target_id,
            entity_type=entity_type,
            uid=user.uid,
            share_id=share_id,
            status='finish',
        ))

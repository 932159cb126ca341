"""
Share Service implementation.

The entity-type-agnostic surface over publishing and duplication: list,
create, delete and duplicate shares.
"""

from collections import deque
from typing import List, Optional

from ...shared import get_logger, DuplicationNotAllowedError, NotFoundError, ParamsError
from ...shared.models import EntityType, User, utcnow
from .common import share_cover_key
from .context import ShareContext
from .creation import PublishOrchestrator
from .duplication import DuplicateOrchestrator
from .ids import entity_type_from_share_id
from .jobs import ShareJobWorker
from .models import (
    CreateShareRequest, DuplicateResult, DuplicateTarget, ShareFilter, ShareRecord,
)


class ShareService:
    """
    Main service for publishing and duplicating content.

    Mutating operations are rate limited per entity. Duplication is gated by
    the share's ``allow_duplication`` flag.
    """

    def __init__(self, ctx: Optional[ShareContext] = None):
        """
        Initialize Share Service.

        Args:
            ctx: Collaborators; an all in-memory context when omitted
        """
        self.logger = get_logger(__name__)
        self.ctx = ctx or ShareContext.in_memory()
        self.publisher = PublishOrchestrator(self.ctx)
        self.duplicator = DuplicateOrchestrator(self.ctx)

        self.logger.info(
            f"Share Service initialized "
            f"(publish: {', '.join(self.publisher.registry.entity_types)}; "
            f"job queue: {'on' if self.ctx.job_queue is not None else 'off'})"
        )

    async def list_shares(self, user: User, share_filter: Optional[ShareFilter] = None) -> List[ShareRecord]:
        return await self.ctx.shares.list_for_user(user, share_filter or ShareFilter())

    async def create_share(self, user: User, req: CreateShareRequest) -> ShareRecord:
        """
        Publish an entity, reusing its share if it has one.

        Raises:
            RateLimitError: If the entity was shared too often recently
            NotFoundError: If the entity does not exist (synchronous mode)
        """
        return await self.publisher.create_share(user, req)

    async def delete_share(self, user: User, share_id: str) -> List[ShareRecord]:
        """
        Soft-delete a share and every share published beneath it.

        Child shares are found through ``parent_share_id``, recursively. Each
        deleted share's public blob, cover and vector export are removed.

        Returns:
            The deleted records, the requested share first
        """
        record = await self.ctx.shares.find_first(share_id=share_id, uid=user.uid)
        if record is None:
            raise NotFoundError(f"Share not found: {share_id}")
        self.ctx.rate_limiter.enforce(user.uid, record.entity_type, record.entity_id)

        deleted: List[ShareRecord] = []
        seen = {record.share_id}
        pending = deque([record])
        while pending:
            current = pending.popleft()
            children = await self.ctx.shares.find_many(uid=user.uid, parent_share_id=current.share_id)
            for child in children:
                if child.share_id not in seen:
                    seen.add(child.share_id)
                    pending.append(child)

            deleted.append(await self.ctx.shares.update(current.share_id, deleted_at=utcnow()))
            await self._remove_public_files(current)
            self.ctx.metrics.record_share_operation('deleted', current.entity_type)

        self.logger.info(f"Deleted share {share_id} with {len(deleted) - 1} child shares")
        return deleted

    async def _remove_public_files(self, record: ShareRecord) -> None:
        await self.ctx.common.remove_public(record.storage_key)
        if record.extra_data and record.extra_data.vector_storage_key:
            await self.ctx.common.remove_public(record.extra_data.vector_storage_key)
        if record.entity_type == EntityType.SKILL_RESPONSE.value:
            await self.ctx.common.remove_public(share_cover_key(record.share_id))

    async def duplicate_share(self,
                              user: User,
                              share_id: str,
                              target: Optional[DuplicateTarget] = None) -> DuplicateResult:
        """
        Duplicate a share into ``user``'s workspace.

        Args:
            user: The new owner
            share_id: Share to duplicate
            target: Project and canvas for the copy

        Returns:
            The new entity and, for canvases, the per-node report

        Raises:
            ParamsError: If the share id is empty or of a publish-only type
            NotFoundError: If the share does not exist
            DuplicationNotAllowedError: If the owner disallowed duplication
            QuotaExceededError: If the copy does not fit the storage quota
        """
        if not share_id:
            raise ParamsError("Share ID is required")

        record = await self.ctx.shares.find_live(share_id)
        if record is None:
            raise NotFoundError(f"Share not found: {share_id}")
        if not record.allow_duplication:
            raise DuplicationNotAllowedError()

        entity_type = entity_type_from_share_id(share_id) or record.entity_type
        if entity_type == EntityType.CANVAS.value:
            result = await self.duplicator.duplicate_canvas(user, share_id, target)
        else:
            entity = await self.duplicator.registry.get(entity_type).duplicate(user, share_id, target)
            result = DuplicateResult(entity=entity)

        self.ctx.metrics.counter('duplications_completed', entity_type=entity_type)
        return result

    def create_worker(self) -> ShareJobWorker:
        """Worker for the configured job queue."""
        if self.ctx.job_queue is None:
            raise ParamsError("No job queue configured")
        return ShareJobWorker(self.ctx.job_queue, self.publisher)

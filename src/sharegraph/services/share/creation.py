"""
Share creation: canvas-wide publishing and the idempotent ``create_share``
entry point.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional, Tuple, Union

from ...shared import get_logger, timed_operation
from ...shared.models import (
    CanvasNode, EntityType, GraphSnapshot, MEDIA_NODE_TYPES, User,
)
from .models import (
    CreateShareJob, CreateShareRequest, NodeOutcome, OperationReport,
    OutcomeStatus, PublishResult, ShareRecord,
)
from .common import share_blob_key
from .publish_handlers import DEFAULT_PUBLISH_HANDLERS, PublishHandlerRegistry

CREATE_SHARE_JOB = "createShare"

# Node groups published per canvas, each behind its own limiter
CANVAS_NODE_GROUPS = (
    EntityType.DOCUMENT.value,
    EntityType.RESOURCE.value,
    EntityType.SKILL_RESPONSE.value,
    EntityType.CODE_ARTIFACT.value,
)


class PublishOrchestrator:
    """
    Publishes entities and whole canvases.

    ``process_create_share_job`` is the single processing function; the
    background worker and the synchronous fallback in ``create_share`` both
    call it.
    """

    def __init__(self, ctx, handler_classes=DEFAULT_PUBLISH_HANDLERS):
        self.ctx = ctx
        self.logger = get_logger(__name__)
        self.registry = PublishHandlerRegistry(cls(ctx, self) for cls in handler_classes)

    async def _publish_resources(self,
                                 user: User,
                                 canvas_id: str,
                                 share_id: str,
                                 allow_duplication: bool,
                                 report: OperationReport) -> List[Dict[str, Any]]:
        resources = await self.ctx.workspace.list_canvas_resources(user, canvas_id)

        async def publish(resource) -> Optional[Dict[str, Any]]:
            try:
                result = await self.registry.publish(user, CreateShareRequest(
                    entity_id=resource.resource_id,
                    entity_type=EntityType.RESOURCE,
                    parent_share_id=share_id,
                    allow_duplication=allow_duplication,
                ))
            except Exception as e:
                self.logger.error(f"Failed to publish canvas resource {resource.resource_id}: {e}", exc_info=True)
                self._skip(report, resource.resource_id, EntityType.RESOURCE.value, resource.resource_id, e)
                return None
            return {k: v for k, v in result.payload.items() if k != 'content'}

        published = await asyncio.gather(*(publish(r) for r in resources))
        return [payload for payload in published if payload is not None]

    async def _rehost_media(self, nodes: List[CanvasNode], report: OperationReport) -> None:
        semaphore = asyncio.Semaphore(self.ctx.settings.media_concurrency)

        async def rehost(node: CanvasNode) -> None:
            storage_key = node.data.metadata.get('storageKey')
            if not storage_key:
                return
            async with semaphore:
                try:
                    url = await self.ctx.common.publish_media(storage_key)
                except Exception as e:
                    self.logger.error(f"Failed to publish {node.type} for storageKey: {storage_key}: {e}", exc_info=True)
                    self._skip(report, node.id, node.type, node.entity_id, e)
                    return
            node.data.metadata = {**node.data.metadata, f"{node.type}Url": url}
            report.record(NodeOutcome(node_id=node.id, node_type=node.type, entity_id=node.entity_id))

        await asyncio.gather(*(rehost(node) for node in nodes))

    async def _publish_node(self,
                            user: User,
                            node: CanvasNode,
                            share_id: str,
                            allow_duplication: bool,
                            report: OperationReport) -> None:
        if not node.entity_id:
            self._skip(report, node.id, node.type, '', 'node has no entity id')
            return

        try:
            result = await self.registry.publish(user, CreateShareRequest(
                entity_id=node.entity_id,
                entity_type=node.type,
                parent_share_id=share_id,
                allow_duplication=allow_duplication,
            ))
            metadata = {**node.data.metadata, 'shareId': result.record.share_id}
            if node.type == EntityType.SKILL_RESPONSE.value:
                metadata['creditCost'] = await self.ctx.credits.count_result_credit_usage(user, node.entity_id)
            if node.type in (EntityType.DOCUMENT.value, EntityType.RESOURCE.value):
                node.data.content_preview = result.payload.get('contentPreview')
        except Exception as e:
            self.logger.error(f"Failed to process {node.type} node {node.entity_id}: {e}", exc_info=True)
            self._skip(report, node.id, node.type, node.entity_id, e)
            return

        node.data.metadata = metadata
        report.record(NodeOutcome(
            node_id=node.id, node_type=node.type,
            entity_id=node.entity_id, target_id=result.record.share_id,
        ))

    def _skip(self, report: OperationReport, node_id: str, node_type: str,
              entity_id: str, reason: Union[Exception, str]) -> None:
        self.ctx.metrics.counter('share_nodes_skipped', entity_type=node_type)
        report.record(NodeOutcome(
            node_id=node_id, node_type=node_type, entity_id=entity_id or '',
            status=OutcomeStatus.SKIPPED, reason=str(reason),
        ))

    @timed_operation("canvas_publish_duration")
    async def process_canvas_for_share(self,
                                       user: User,
                                       canvas_id: str,
                                       share_id: str,
                                       allow_duplication: bool,
                                       title: Optional[str] = None) -> Tuple[GraphSnapshot, OperationReport]:
        """
        Publish everything a canvas shows and return its resolved snapshot.

        Resources, media and per-type node groups are processed concurrently.
        Each published node gets its new ``shareId`` (plus content preview or
        credit cost) written back before the snapshot is returned. A node
        that fails keeps its private data and is reported as skipped.

        Args:
            user: Canvas owner
            canvas_id: Canvas to publish
            share_id: Share id of the publishing entity, used as parent
            allow_duplication: Flag propagated to every child share
            title: Optional title override

        Returns:
            Tuple of resolved snapshot and per-node report
        """
        snapshot = await self.ctx.workspace.get_canvas_raw_data(user, canvas_id)
        if title:
            snapshot.title = title

        report = OperationReport()
        snapshot.resources = await self._publish_resources(
            user, canvas_id, share_id, allow_duplication, report
        )

        await self._rehost_media(snapshot.nodes_of_type(*MEDIA_NODE_TYPES), report)

        async def publish_group(node_type: str) -> None:
            semaphore = asyncio.Semaphore(self.ctx.settings.node_concurrency)

            async def bounded(node: CanvasNode) -> None:
                async with semaphore:
                    await self._publish_node(user, node, share_id, allow_duplication, report)

            await asyncio.gather(*(bounded(node) for node in snapshot.nodes_of_type(node_type)))

        await asyncio.gather(*(publish_group(node_type) for node_type in CANVAS_NODE_GROUPS))

        if report.has_failures:
            self.logger.warning(
                f"Canvas {canvas_id} published with {len(report.skipped)} skipped nodes"
            )
        return snapshot, report

    async def process_create_share_job(self, job: Union[CreateShareJob, Dict[str, Any]]) -> PublishResult:
        """Publish the entity named by a ``createShare`` job."""
        if not isinstance(job, CreateShareJob):
            job = CreateShareJob.model_validate(job)

        started = time.perf_counter()
        result = await self.registry.publish(job.user, job.req)
        elapsed = time.perf_counter() - started
        self.ctx.metrics.timer('share_publish_duration', elapsed)
        self.ctx.metrics.timer(f'share_publish_duration.{job.req.entity_type}', elapsed)
        return result

    async def create_share(self, user: User, req: CreateShareRequest) -> ShareRecord:
        """
        Idempotently publish an entity.

        An existing live share is returned as is; with a job queue configured
        a refresh job is still enqueued. A new share gets a placeholder record
        when a queue will do the work, otherwise it is processed in the
        request path and the finished record is returned.
        """
        self.ctx.rate_limiter.enforce(user.uid, req.entity_type, req.entity_id)
        job = CreateShareJob(user=User(uid=user.uid), req=req)

        # Same lock as registry.publish, so the synchronous path runs after release
        async with self.registry.entity_lock(user.uid, req.entity_type, req.entity_id):
            existing = await self.ctx.shares.find_existing(
                user.uid, req.entity_id, req.entity_type,
                ignore_templates=req.entity_type == EntityType.CANVAS.value,
            )
            if existing:
                if self.ctx.job_queue is not None:
                    await self.ctx.job_queue.enqueue(CREATE_SHARE_JOB, job.to_json_dict())
                return existing

            if self.ctx.job_queue is not None:
                return await self._queue_new_share(user, req, job)

        result = await self.process_create_share_job(job)
        return result.record

    async def _queue_new_share(self, user: User, req: CreateShareRequest, job: CreateShareJob) -> ShareRecord:
        share_id = self.ctx.allocator.allocate_share_id(req.entity_type)
        minimal = await self.ctx.shares.create(ShareRecord(
            share_id=share_id,
            uid=user.uid,
            entity_id=req.entity_id,
            entity_type=req.entity_type,
            title=req.title or '',
            storage_key=share_blob_key(share_id),
            parent_share_id=req.parent_share_id,
            allow_duplication=req.allow_duplication,
        ))
        await self.ctx.job_queue.enqueue(CREATE_SHARE_JOB, job.to_json_dict())
        self.logger.info(f"Queued share {share_id} for {req.entity_type}: {req.entity_id}")
        return minimal

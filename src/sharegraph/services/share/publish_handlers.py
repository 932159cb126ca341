"""
Per-entity-type publish handlers.

Every handler follows the same four steps: reuse or allocate the share id,
load and transform the private entity, write the public blob at
``share/<shareId>.json``, then create or update the share record. Subclasses
only provide the second step.
"""

import asyncio
import math
import weakref
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Tuple

from ...shared import get_logger, ConfigurationError, ParamsError
from ...shared.infrastructure.storage import PUBLIC
from ...shared.models import EntityRef, EntityType, User
from ...shared.models.base import utcnow
from .common import share_blob_key, share_cover_key, share_vector_key
from .models import (
    CreateShareRequest, NodeOutcome, OperationReport, OutcomeStatus,
    PublishResult, ShareExtraData, ShareRecord,
)
from .sanitizer import (
    purge_toolsets, sanitize_canvas_for_public, sanitize_node_metadata,
    sanitize_snapshot,
)

PAGE_CHILD_TYPES = (
    EntityType.DOCUMENT.value,
    EntityType.RESOURCE.value,
    EntityType.CODE_ARTIFACT.value,
    EntityType.SKILL_RESPONSE.value,
)


class Snapshot:
    """The public form of an entity, before it is written."""

    def __init__(self,
                 payload: Dict[str, Any],
                 title: str,
                 extra_data: Optional[ShareExtraData] = None,
                 report: Optional[OperationReport] = None):
        self.payload = payload
        self.title = title
        self.extra_data = extra_data
        self.report = report or OperationReport()


class PublishHandler(ABC):
    """Base class holding the shared publish algorithm."""

    entity_type: ClassVar[str]
    default_title: ClassVar[str] = ""
    # Canvas templates are separate share records and never reused
    ignore_templates: ClassVar[bool] = False

    def __init__(self, ctx, orchestrator):
        self.ctx = ctx
        self.orchestrator = orchestrator
        self.logger = get_logger(__name__)

    @abstractmethod
    async def build_snapshot(self, user: User, req: CreateShareRequest, share_id: str) -> Snapshot:
        """Load the private entity and produce its public payload."""
        pass

    async def publish(self, user: User, req: CreateShareRequest) -> PublishResult:
        existing = await self.ctx.shares.find_existing(
            user.uid, req.entity_id, self.entity_type, ignore_templates=self.ignore_templates
        )
        share_id = existing.share_id if existing else self.ctx.allocator.allocate_share_id(self.entity_type)

        snapshot = await self.build_snapshot(user, req, share_id)
        storage_key = await self.ctx.common.upload_public_json(share_blob_key(share_id), snapshot.payload)

        record = await self.upsert_record(user, req, existing, share_id, storage_key, snapshot)
        return PublishResult(record=record, payload=snapshot.payload, report=snapshot.report)

    async def upsert_record(self,
                            user: User,
                            req: CreateShareRequest,
                            existing: Optional[ShareRecord],
                            share_id: str,
                            storage_key: str,
                            snapshot: Snapshot) -> ShareRecord:
        title = snapshot.title or self.default_title
        if existing:
            changes = dict(
                title=title,
                storage_key=storage_key,
                parent_share_id=req.parent_share_id,
                allow_duplication=req.allow_duplication,
            )
            if snapshot.extra_data is not None:
                changes['extra_data'] = snapshot.extra_data
            record = await self.ctx.shares.update(existing.share_id, **changes)
            self.ctx.metrics.record_share_operation('updated', self.entity_type)
            self.logger.info(f"Updated existing share record: {share_id} for {self.entity_type}: {req.entity_id}")
        else:
            record = await self.ctx.shares.create(ShareRecord(
                share_id=share_id,
                uid=user.uid,
                entity_id=req.entity_id,
                entity_type=self.entity_type,
                title=title,
                storage_key=storage_key,
                parent_share_id=req.parent_share_id,
                allow_duplication=req.allow_duplication,
                extra_data=snapshot.extra_data,
            ))
            self.ctx.metrics.record_share_operation('created', self.entity_type)
            self.logger.info(f"Created new share record: {share_id} for {self.entity_type}: {req.entity_id}")
        return record


class DocumentPublishHandler(PublishHandler):
    entity_type = EntityType.DOCUMENT.value
    default_title = "Untitled Document"

    async def load(self, user: User, entity_id: str) -> Dict[str, Any]:
        return await self.ctx.workspace.get_document_detail(user, entity_id)

    async def build_snapshot(self, user: User, req: CreateShareRequest, share_id: str) -> Snapshot:
        detail = await self.load(user, req.entity_id)
        detail['shareId'] = share_id
        detail['content'] = await self.ctx.common.process_content_images(detail.get('content') or '')
        detail['contentPreview'] = self.ctx.workspace.preview(detail['content'])

        vector_key = share_vector_key(share_id)
        ref = EntityRef(entity_id=req.entity_id, entity_type=self.entity_type)
        stored = await self.ctx.common.store_vector(user, ref, vector_key)
        extra_data = ShareExtraData(vector_storage_key=vector_key) if stored else ShareExtraData()

        return Snapshot(detail, detail.get('title', ''), extra_data)


class ResourcePublishHandler(DocumentPublishHandler):
    entity_type = EntityType.RESOURCE.value
    default_title = ""

    async def load(self, user: User, entity_id: str) -> Dict[str, Any]:
        return await self.ctx.workspace.get_resource_detail(user, entity_id)


class CodeArtifactPublishHandler(PublishHandler):
    entity_type = EntityType.CODE_ARTIFACT.value
    default_title = "Code Artifact"

    async def build_snapshot(self, user: User, req: CreateShareRequest, share_id: str) -> Snapshot:
        detail = await self.ctx.workspace.get_code_artifact_detail(user, req.entity_id)
        return Snapshot(detail, req.title or detail.get('title', ''))


class SkillResponsePublishHandler(PublishHandler):
    entity_type = EntityType.SKILL_RESPONSE.value
    default_title = "Skill Response"

    async def build_snapshot(self, user: User, req: CreateShareRequest, share_id: str) -> Snapshot:
        detail = await self.ctx.workspace.get_action_result(user, req.entity_id)
        detail['toolsets'] = purge_toolsets(detail.get('toolsets'))

        if req.cover_storage_key:
            await self.ctx.storage.duplicate(
                req.cover_storage_key, share_cover_key(share_id), PUBLIC, PUBLIC
            )

        return Snapshot(detail, detail.get('title', ''))


class PagePublishHandler(PublishHandler):
    entity_type = EntityType.PAGE.value

    async def _publish_relation(self,
                                user: User,
                                req: CreateShareRequest,
                                share_id: str,
                                relation) -> Tuple[Optional[str], Dict[str, Any]]:
        node_data = dict(relation.node_data or {})
        metadata = dict(node_data.get('metadata') or {})
        child_share_id = None

        if relation.node_type in PAGE_CHILD_TYPES:
            result = await self.orchestrator.registry.publish(user, CreateShareRequest(
                entity_id=relation.entity_id,
                entity_type=relation.node_type,
                parent_share_id=share_id,
                allow_duplication=req.allow_duplication,
            ))
            child_share_id = result.record.share_id
        elif relation.node_type == 'image' and metadata.get('storageKey'):
            metadata['imageUrl'] = await self.ctx.common.publish_media(metadata['storageKey'])

        metadata['shareId'] = child_share_id
        node_data['metadata'] = sanitize_node_metadata(relation.node_type, metadata)
        return child_share_id, node_data

    async def build_snapshot(self, user: User, req: CreateShareRequest, share_id: str) -> Snapshot:
        page = await self.ctx.workspace.get_page(user, req.entity_id)
        relations = await self.ctx.workspace.page_relations.for_page(page.page_id)

        title, node_ids = '', []
        layout, theme = 'slides', 'light'
        try:
            state = await self.ctx.workspace.read_page_state(page)
            if state is not None:
                title, node_ids = state.title, list(state.node_ids)
                layout = state.config.layout or layout
                theme = state.config.theme or theme
        except ParamsError as e:
            self.logger.error(f"Error reading page state for {page.page_id}: {e}", exc_info=True)

        report = OperationReport()
        semaphore = asyncio.Semaphore(self.ctx.settings.page_concurrency)

        async def process(relation):
            async with semaphore:
                try:
                    child_share_id, node_data = await self._publish_relation(user, req, share_id, relation)
                except Exception as e:
                    self.logger.error(
                        f"Failed to publish page relation {relation.relation_id} "
                        f"({relation.node_type} {relation.entity_id}): {e}",
                        exc_info=True,
                    )
                    self.ctx.metrics.counter('share_nodes_skipped', entity_type=relation.node_type)
                    report.record(NodeOutcome(
                        node_id=relation.node_id, node_type=relation.node_type,
                        entity_id=relation.entity_id, status=OutcomeStatus.SKIPPED, reason=str(e),
                    ))
                    node_data = dict(relation.node_data or {})
                    node_data['metadata'] = sanitize_node_metadata(relation.node_type, node_data.get('metadata'))
                    return None, node_data
                report.record(NodeOutcome(
                    node_id=relation.node_id, node_type=relation.node_type,
                    entity_id=relation.entity_id, target_id=child_share_id,
                ))
                return child_share_id, node_data

        processed = await asyncio.gather(*(process(r) for r in relations))

        page_title = req.title or page.title
        payload = {
            'canvasId': page.canvas_id,
            'page': {
                'pageId': page.page_id,
                'title': page_title,
                'description': page.description,
                'status': page.status,
                'createdAt': page.created_at.isoformat(),
                'updatedAt': page.updated_at.isoformat(),
            },
            'content': {'title': title, 'nodeIds': node_ids},
            'nodeRelations': [
                {
                    'relationId': relation.relation_id,
                    'pageId': relation.page_id,
                    'nodeId': relation.node_id,
                    'nodeType': relation.node_type,
                    'entityId': relation.entity_id,
                    'orderIndex': relation.order_index,
                    'shareId': child_share_id,
                    'nodeData': node_data,
                }
                for relation, (child_share_id, node_data) in zip(relations, processed)
            ],
            'pageConfig': {'layout': layout, 'theme': theme},
            'snapshotTime': utcnow().isoformat(),
        }
        return Snapshot(payload, page_title, ShareExtraData(description=page.description), report)


class CanvasPublishHandler(PublishHandler):
    entity_type = EntityType.CANVAS.value
    ignore_templates = True

    async def build_snapshot(self, user: User, req: CreateShareRequest, share_id: str) -> Snapshot:
        canvas = await self.ctx.workspace.get_canvas(user, req.entity_id)
        snapshot, report = await self.orchestrator.process_canvas_for_share(
            user, canvas.canvas_id, share_id, req.allow_duplication, req.title
        )

        if canvas.minimap_storage_key:
            snapshot.minimap_url = await self.ctx.common.publish_media(canvas.minimap_storage_key)

        return Snapshot(sanitize_snapshot(snapshot), snapshot.title, report=report)


class WorkflowAppPublishHandler(PublishHandler):
    entity_type = EntityType.WORKFLOW_APP.value

    async def build_snapshot(self, user: User, req: CreateShareRequest, share_id: str) -> Snapshot:
        app = await self.ctx.workspace.get_workflow_app(user, req.entity_id)
        canvas = await self.ctx.workspace.get_canvas(user, app.canvas_id)
        snapshot, report = await self.orchestrator.process_canvas_for_share(
            user, app.canvas_id, share_id, req.allow_duplication, req.title
        )

        canvas_data = sanitize_canvas_for_public(snapshot.to_json_dict(), app.result_node_ids)
        result_ids = {node['id'] for node in canvas_data['nodes']}
        canvas_data['edges'] = [
            edge.to_json_dict() for edge in snapshot.edges
            if edge.source in result_ids and edge.target in result_ids
        ]
        canvas_data['title'] = snapshot.title
        canvas_data['canvasId'] = app.canvas_id
        if canvas.minimap_storage_key:
            canvas_data['minimapUrl'] = await self.ctx.common.publish_media(canvas.minimap_storage_key)

        credit_usage = None
        if req.credit_usage is not None:
            credit_usage = math.ceil(req.credit_usage * self.ctx.settings.credit_execution_markup)

        payload = {
            'appId': app.app_id,
            'title': req.title or snapshot.title,
            'description': app.description,
            'remixEnabled': app.remix_enabled,
            'coverUrl': self.ctx.storage.public_url(app.cover_storage_key) if app.cover_storage_key else None,
            'templateContent': app.template_content,
            'resultNodeIds': list(app.result_node_ids),
            'query': app.query,
            'variables': app.variables,
            'canvasData': canvas_data,
            'creditUsage': credit_usage,
            'createdAt': app.created_at.isoformat(),
            'updatedAt': app.updated_at.isoformat(),
        }
        return Snapshot(payload, payload['title'], report=report)


DEFAULT_PUBLISH_HANDLERS = (
    CanvasPublishHandler,
    DocumentPublishHandler,
    ResourcePublishHandler,
    CodeArtifactPublishHandler,
    SkillResponsePublishHandler,
    PagePublishHandler,
    WorkflowAppPublishHandler,
)


class PublishHandlerRegistry:
    """
    Maps every entity type to exactly one publish handler.

    Publishes of the same entity are serialized so that concurrent callers
    (two canvas nodes pointing at one document, say) share one record.
    """

    def __init__(self, handlers: Iterable[PublishHandler]):
        self.handlers: Dict[str, PublishHandler] = {}
        for handler in handlers:
            if handler.entity_type in self.handlers:
                raise ConfigurationError(f"Duplicate publish handler for {handler.entity_type}")
            self.handlers[handler.entity_type] = handler

        missing = {t.value for t in EntityType} - set(self.handlers)
        if missing:
            raise ConfigurationError(f"No publish handler for: {', '.join(sorted(missing))}")

        self._locks: 'weakref.WeakValueDictionary[Tuple[str, str, str], asyncio.Lock]' = (
            weakref.WeakValueDictionary()
        )

    def get(self, entity_type: str) -> PublishHandler:
        handler = self.handlers.get(entity_type)
        if handler is None:
            raise ParamsError(f"Unsupported entity type {entity_type} for sharing")
        return handler

    def entity_lock(self, uid: str, entity_type: str, entity_id: str) -> asyncio.Lock:
        """The lock serializing share writes for one owner's entity. Not reentrant."""
        key = (uid, entity_type, entity_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def publish(self, user: User, req: CreateShareRequest) -> PublishResult:
        handler = self.get(req.entity_type)
        async with self.entity_lock(user.uid, req.entity_type, req.entity_id):
            return await handler.publish(user, req)

    @property
    def entity_types(self) -> List[str]:
        return sorted(self.handlers)

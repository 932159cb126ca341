"""
Per-entity-type duplicate handlers.

A handler turns one published blob back into a private entity owned by the
caller. The algorithm is shared: resolve the share record, download its blob,
rewrite references with the caller's remap table, create the new row under the
preallocated (or a fresh) id, then append a duplicate record. Subclasses only
implement ``materialize``.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, FrozenSet, Iterable, List, Optional

from ...shared import get_logger, ConfigurationError, NotFoundError, ParamsError, QuotaExceededError
from ...shared.models import EntityRef, EntityType, LIBRARY_TYPES, User
from ..workspace import PageConfig
from .models import DuplicateTarget, ShareRecord
from .rewriter import RemapTable, rewrite_json, rewrite_text, rewrite_toolsets

# Canvas duplication is the orchestrator's job
DELEGATED_TYPES: FrozenSet[str] = frozenset({EntityType.CANVAS.value})

PUBLISH_ONLY_TYPES: FrozenSet[str] = frozenset({EntityType.WORKFLOW_APP.value})


class DuplicateHandler(ABC):
    """Base class holding the shared duplicate algorithm."""

    entity_type: ClassVar[str]

    def __init__(self, ctx):
        self.ctx = ctx
        self.logger = get_logger(__name__)

    @property
    def counts_against_quota(self) -> bool:
        return self.entity_type in LIBRARY_TYPES

    @abstractmethod
    async def materialize(self,
                          user: User,
                          record: ShareRecord,
                          payload: Dict[str, Any],
                          new_id: str,
                          target: DuplicateTarget,
                          remap: RemapTable,
                          parent: Optional[EntityRef]) -> None:
        """Create the private entity ``new_id`` from a published payload."""
        pass

    async def validate(self, user: User, target: DuplicateTarget) -> None:
        if target.canvas_id:
            await self.ctx.workspace.check_canvas_exists(user, target.canvas_id)
        if self.counts_against_quota:
            usage = await self.ctx.quota.check_storage_usage(user)
            if usage.available < 1:
                raise QuotaExceededError()

    async def resolve(self, share_id: str) -> ShareRecord:
        record = await self.ctx.shares.find_live(share_id)
        if record is None:
            raise NotFoundError(f"Share not found: {share_id}")
        return record

    def target_canvas_id(self, payload: Dict[str, Any], target: DuplicateTarget, remap: RemapTable) -> Optional[str]:
        """The duplicate's canvas: the target's, or the copy of the source canvas."""
        if target.canvas_id:
            return target.canvas_id
        source_canvas_id = payload.get('canvasId')
        return remap.resolve(source_canvas_id) if source_canvas_id else None

    async def duplicate(self,
                        user: User,
                        share_id: str,
                        target: Optional[DuplicateTarget] = None,
                        remap: Optional[RemapTable] = None,
                        preallocated_id: Optional[str] = None,
                        nested: bool = False,
                        parent: Optional[EntityRef] = None) -> EntityRef:
        """
        Duplicate one shared entity for ``user``.

        Args:
            user: The new owner
            share_id: Share to duplicate
            target: Project and canvas the copy belongs to
            remap: Identifier table shared by a whole canvas duplication
            preallocated_id: Identifier reserved for the copy
            nested: True when called by a canvas duplication, which has
                already validated the target and checked quota
            parent: Entity the copy is attached to, if any

        Returns:
            Reference to the new private entity

        Raises:
            NotFoundError: If the share or its blob is missing
            QuotaExceededError: If a standalone library copy has no quota left
        """
        target = target or DuplicateTarget()
        remap = remap or RemapTable()

        if not nested:
            await self.validate(user, target)

        record = await self.resolve(share_id)
        payload = await self.ctx.common.download_public_json(record.storage_key)
        new_id = preallocated_id or self.ctx.allocator.allocate(self.entity_type)

        await self.materialize(user, record, payload, new_id, target, remap, parent)
        await self.ctx.duplicates.record(user, record.entity_id, new_id, self.entity_type, share_id)

        if not nested and self.counts_against_quota:
            await self.ctx.quota.sync_storage_usage(user)

        self.logger.info(f"Duplicated {self.entity_type} {record.entity_id} -> {new_id} for user {user.uid}")
        return EntityRef(entity_id=new_id, entity_type=self.entity_type)

    async def restore_vector(self, user: User, record: ShareRecord, new_id: str) -> None:
        if record.extra_data and record.extra_data.vector_storage_key:
            await self.ctx.common.restore_vector(
                user,
                record.extra_data.vector_storage_key,
                EntityRef(entity_id=new_id, entity_type=self.entity_type),
            )


class DocumentDuplicateHandler(DuplicateHandler):
    entity_type = EntityType.DOCUMENT.value

    async def materialize(self, user, record, payload, new_id, target, remap, parent):
        await self.ctx.workspace.create_document(
            user,
            title=payload.get('title') or 'Untitled Document',
            content=rewrite_text(payload.get('content') or '', remap),
            doc_id=new_id,
            canvas_id=self.target_canvas_id(payload, target, remap),
            project_id=target.project_id,
            read_only=payload.get('readOnly', False),
        )
        await self.restore_vector(user, record, new_id)


class ResourceDuplicateHandler(DuplicateHandler):
    entity_type = EntityType.RESOURCE.value

    async def materialize(self, user, record, payload, new_id, target, remap, parent):
        await self.ctx.workspace.create_resource(
            user,
            title=payload.get('title') or '',
            content=rewrite_text(payload.get('content') or '', remap),
            resource_id=new_id,
            resource_type=payload.get('resourceType') or 'text',
            canvas_id=self.target_canvas_id(payload, target, remap),
            project_id=target.project_id,
            index_status=payload.get('indexStatus'),
            index_error=payload.get('indexError'),
            raw_file_key=payload.get('rawFileKey'),
            meta=rewrite_json(payload.get('meta') or {}, remap),
        )
        await self.restore_vector(user, record, new_id)


class CodeArtifactDuplicateHandler(DuplicateHandler):
    entity_type = EntityType.CODE_ARTIFACT.value

    async def materialize(self, user, record, payload, new_id, target, remap, parent):
        await self.ctx.workspace.create_code_artifact(
            user,
            title=payload.get('title') or 'Code Artifact',
            content=payload.get('content') or '',
            artifact_id=new_id,
            language=payload.get('language'),
            type=payload.get('type'),
            canvas_id=self.target_canvas_id(payload, target, remap),
        )


class SkillResponseDuplicateHandler(DuplicateHandler):
    """
    Copies a skill response with a fresh version history.

    The copy starts at version 0 and points back at its source through
    ``duplicate_from``. Context, history, input and every step's artifacts are
    rewritten, as are mentions in step content.
    """

    entity_type = EntityType.SKILL_RESPONSE.value

    @staticmethod
    def _steps(steps: Any, remap: RemapTable) -> List[Dict[str, Any]]:
        if not isinstance(steps, list):
            return []
        return [
            {
                'name': step.get('name') or '',
                'content': rewrite_text(step.get('content') or '', remap),
                'reasoning_content': step.get('reasoningContent'),
                'artifacts': rewrite_json(step.get('artifacts'), remap),
                'structured_data': rewrite_json(step.get('structuredData'), remap),
                'logs': step.get('logs'),
                'token_usage': step.get('tokenUsage'),
            }
            for step in steps
            if isinstance(step, dict)
        ]

    async def materialize(self, user, record, payload, new_id, target, remap, parent):
        if parent is None and target.canvas_id:
            parent = EntityRef(entity_id=target.canvas_id, entity_type=EntityType.CANVAS)

        await self.ctx.workspace.create_action_result(
            user,
            title=payload.get('title') or '',
            steps=self._steps(payload.get('steps'), remap),
            result_id=new_id,
            version=0,
            type=payload.get('type') or 'skill',
            tier=payload.get('tier'),
            status=payload.get('status') or 'finish',
            input=rewrite_json(payload.get('input') or {}, remap),
            target_id=parent.entity_id if parent else None,
            target_type=parent.entity_type if parent else None,
            action_meta=payload.get('actionMeta'),
            context=rewrite_json(payload.get('context'), remap),
            history=rewrite_json(payload.get('history'), remap),
            tpl_config=payload.get('tplConfig'),
            runtime_config=payload.get('runtimeConfig'),
            errors=payload.get('errors') or [],
            model_name=payload.get('modelName'),
            duplicate_from=record.entity_id,
            project_id=target.project_id,
            toolsets=rewrite_toolsets(payload.get('toolsets') or [], remap),
        )


class PageDuplicateHandler(DuplicateHandler):
    entity_type = EntityType.PAGE.value

    async def materialize(self, user, record, payload, new_id, target, remap, parent):
        page = payload.get('page') or {}
        content = payload.get('content') or {}
        page_config = payload.get('pageConfig') or {}
        node_ids = content.get('nodeIds')

        relations = [
            {
                'node_id': relation.get('nodeId'),
                'node_type': relation.get('nodeType'),
                'entity_id': remap.resolve(relation.get('entityId')) or relation.get('entityId'),
                'order_index': relation.get('orderIndex') or 0,
                'node_data': rewrite_json(relation.get('nodeData') or {}, remap),
            }
            for relation in payload.get('nodeRelations') or []
            if isinstance(relation, dict)
        ]

        await self.ctx.workspace.create_page(
            user,
            title=page.get('title') or '',
            canvas_id=self.target_canvas_id(payload, target, remap) or '',
            description=page.get('description'),
            node_ids=node_ids if isinstance(node_ids, list) else [],
            config=PageConfig(
                layout=page_config.get('layout') or 'slides',
                theme=page_config.get('theme') or 'light',
            ),
            relations=relations,
            page_id=new_id,
        )


DEFAULT_DUPLICATE_HANDLERS = (
    DocumentDuplicateHandler,
    ResourceDuplicateHandler,
    CodeArtifactDuplicateHandler,
    SkillResponseDuplicateHandler,
    PageDuplicateHandler,
)


class DuplicateHandlerRegistry:
    """
    Maps every duplicable entity type to exactly one handler.

    Each entity type is either handled here, delegated to the canvas
    orchestrator, or publish-only; anything else is a wiring error.
    """

    def __init__(self, handlers: Iterable[DuplicateHandler]):
        self.handlers: Dict[str, DuplicateHandler] = {}
        for handler in handlers:
            if handler.entity_type in self.handlers:
                raise ConfigurationError(f"Duplicate duplicate handler for {handler.entity_type}")
            self.handlers[handler.entity_type] = handler

        covered = set(self.handlers) | DELEGATED_TYPES | PUBLISH_ONLY_TYPES
        missing = {t.value for t in EntityType} - covered
        if missing:
            raise ConfigurationError(f"No duplicate handler for: {', '.join(sorted(missing))}")

    def get(self, entity_type: str) -> DuplicateHandler:
        if entity_type in PUBLISH_ONLY_TYPES:
            raise ParamsError(f"Shares of type {entity_type} cannot be duplicated")
        handler = self.handlers.get(entity_type)
        if handler is None:
            raise ParamsError(f"Unsupported share type {entity_type}")
        return handler

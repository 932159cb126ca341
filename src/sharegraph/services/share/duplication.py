"""
Canvas duplication.

Duplicating a canvas runs in ordered phases: validate the share and quota,
preallocate every target identifier and import toolsets, copy nodes in
parallel, reassemble the graph, then commit state and provenance. Copies only
read the remap table; it is complete before the first copy starts.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

from ...shared import get_logger, timed_operation, NotFoundError, QuotaExceededError
from ...shared.models import (
    CanvasNode, EntityRef, EntityType, GraphSnapshot, LIBRARY_TYPES, User,
)
from ..workspace import extract_toolsets_with_nodes
from .duplicate_handlers import DEFAULT_DUPLICATE_HANDLERS, DuplicateHandlerRegistry
from .models import (
    DuplicateResult, DuplicateTarget, NodeOutcome, OperationReport,
    OutcomeStatus, ShareRecord,
)
from .rewriter import RemapTable, rewrite_json, rewrite_text, rewrite_toolsets

# Node types copied as entities of their own
COPIED_NODE_TYPES = LIBRARY_TYPES | {EntityType.SKILL_RESPONSE.value}


class DuplicateOrchestrator:
    """Duplicates a published canvas and everything it references."""

    def __init__(self, ctx, handler_classes=DEFAULT_DUPLICATE_HANDLERS):
        self.ctx = ctx
        self.logger = get_logger(__name__)
        self.registry = DuplicateHandlerRegistry(cls(ctx) for cls in handler_classes)

    async def _validate(self, user: User, share_id: str) -> Tuple[ShareRecord, GraphSnapshot]:
        record = await self.ctx.shares.find_live(share_id)
        if record is None:
            raise NotFoundError(f"Share not found: {share_id}")

        data = await self.ctx.common.download_public_json(record.storage_key)
        try:
            snapshot = GraphSnapshot.model_validate(data)
        except ValueError as e:
            self.logger.error(f"Failed to parse canvas data for share {share_id}: {e}")
            raise NotFoundError() from e

        library_nodes = snapshot.nodes_of_type(*LIBRARY_TYPES)
        usage = await self.ctx.quota.check_storage_usage(user)
        if usage.available < len(library_nodes):
            self.logger.warning(
                f"Quota exceeded duplicating {share_id} for {user.uid}: "
                f"{len(library_nodes)} library nodes, {usage.available} available"
            )
            raise QuotaExceededError()

        return record, snapshot

    def _copyable(self, node: CanvasNode) -> bool:
        return node.type in COPIED_NODE_TYPES and bool(node.share_id) and bool(node.entity_id)

    async def _preallocate(self,
                           user: User,
                           record: ShareRecord,
                           snapshot: GraphSnapshot) -> Tuple[str, RemapTable]:
        new_canvas_id = self.ctx.allocator.allocate(EntityType.CANVAS)
        entities: Dict[str, str] = {record.entity_id: new_canvas_id}
        for node in snapshot.nodes:
            if self._copyable(node) and node.entity_id not in entities:
                entities[node.entity_id] = self.ctx.allocator.allocate(node.type)

        toolsets = [entry['toolset'] for entry in extract_toolsets_with_nodes(snapshot.nodes)]
        toolset_remap = await self.ctx.toolsets.import_toolsets(user, toolsets) if toolsets else {}
        unresolved = [toolset['id'] for toolset in toolsets if toolset['id'] not in toolset_remap]
        if unresolved:
            self.logger.warning(f"Toolsets left unresolved while duplicating canvas: {unresolved}")

        return new_canvas_id, RemapTable(entities=entities, toolsets=toolset_remap)

    async def _copy_nodes(self,
                          user: User,
                          share_id: str,
                          snapshot: GraphSnapshot,
                          target: DuplicateTarget,
                          remap: RemapTable) -> Tuple[Dict[str, str], OperationReport]:
        semaphore = asyncio.Semaphore(self.ctx.settings.duplicate_concurrency)
        canvas = EntityRef(entity_id=target.canvas_id, entity_type=EntityType.CANVAS)
        report = OperationReport()
        copied: Dict[str, str] = {}

        async def copy(node: CanvasNode) -> None:
            async with semaphore:
                try:
                    ref = await self.registry.get(node.type).duplicate(
                        user,
                        node.share_id,
                        target=target,
                        remap=remap,
                        preallocated_id=remap.resolve(node.entity_id),
                        nested=True,
                        parent=canvas,
                    )
                except Exception as e:
                    self.logger.error(
                        f"Failed to duplicate {node.type} node {node.id} "
                        f"(entity {node.entity_id}) of share {share_id}: {e}",
                        exc_info=True,
                    )
                    self.ctx.metrics.counter('share_nodes_skipped', entity_type=node.type)
                    report.record(NodeOutcome(
                        node_id=node.id, node_type=node.type, entity_id=node.entity_id,
                        status=OutcomeStatus.SKIPPED, reason=str(e),
                    ))
                    return
            copied[node.id] = ref.entity_id
            report.record(NodeOutcome(
                node_id=node.id, node_type=node.type,
                entity_id=node.entity_id, target_id=ref.entity_id,
            ))

        await asyncio.gather(*(copy(node) for node in snapshot.nodes if self._copyable(node)))
        return copied, report

    @staticmethod
    def _reassemble(snapshot: GraphSnapshot,
                    copied: Dict[str, str],
                    remap: RemapTable,
                    project_id: Optional[str]) -> GraphSnapshot:
        """Point nodes at their copies; failed copies keep their old entity id."""
        nodes: List[CanvasNode] = []
        for node in snapshot.nodes:
            metadata = rewrite_json(node.data.metadata, remap)
            if 'selectedToolsets' in metadata:
                metadata['selectedToolsets'] = rewrite_toolsets(node.data.metadata['selectedToolsets'], remap)
            metadata.pop('shareId', None)
            if project_id:
                metadata['projectId'] = project_id

            data = node.data.model_copy(update={
                'entity_id': copied.get(node.id, node.entity_id),
                'metadata': metadata,
                'content_preview': rewrite_text(node.data.content_preview, remap),
            })
            nodes.append(node.model_copy(update={'data': data}))

        return GraphSnapshot(title=snapshot.title, nodes=nodes, edges=list(snapshot.edges))

    @timed_operation("canvas_duplicate_duration")
    async def duplicate_canvas(self,
                               user: User,
                               share_id: str,
                               target: Optional[DuplicateTarget] = None) -> DuplicateResult:
        """
        Duplicate a shared canvas into a new canvas owned by ``user``.

        Args:
            user: The new owner
            share_id: Canvas share to duplicate
            target: Optional project for the new canvas

        Returns:
            The new canvas and the per-node report

        Raises:
            NotFoundError: If the share or its snapshot is missing
            QuotaExceededError: If the library nodes do not fit the remaining quota
        """
        target = target or DuplicateTarget()

        record, snapshot = await self._validate(user, share_id)

        new_canvas_id, remap = await self._preallocate(user, record, snapshot)
        node_target = DuplicateTarget(project_id=target.project_id, canvas_id=new_canvas_id)
        self.logger.info(
            f"Duplicating canvas share {share_id} into {new_canvas_id} "
            f"with {len(remap.entities) - 1} preallocated entities"
        )

        copied, report = await self._copy_nodes(user, share_id, snapshot, node_target, remap)

        duplicated = self._reassemble(snapshot, copied, remap, target.project_id)

        await self.ctx.workspace.create_canvas_with_state(
            user, duplicated, canvas_id=new_canvas_id, project_id=target.project_id,
        )
        await asyncio.gather(
            self.ctx.duplicates.record(user, record.entity_id, new_canvas_id, EntityType.CANVAS.value, share_id),
            self.ctx.quota.sync_storage_usage(user),
        )

        if report.has_failures:
            self.logger.warning(f"Canvas {new_canvas_id} duplicated with {len(report.skipped)} skipped nodes")

        return DuplicateResult(
            entity=EntityRef(entity_id=new_canvas_id, entity_type=EntityType.CANVAS),
            report=report,
        )

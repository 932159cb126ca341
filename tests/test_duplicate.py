"""
Tests for duplicating shared entities and canvases.
"""

import json

import pytest

from conftest import node
from sharegraph.services.share import CreateShareRequest, DuplicateTarget, OutcomeStatus
from sharegraph.services.share.duplicate_handlers import (
    DEFAULT_DUPLICATE_HANDLERS, DocumentDuplicateHandler, DuplicateHandlerRegistry,
)
from sharegraph.shared import (
    PRIVATE, PUBLIC, ConfigurationError, DuplicationNotAllowedError, EntityRef,
    NotFoundError, ParamsError, QuotaExceededError, get_metrics,
)
from sharegraph.shared.models import Document


async def share(service, user, entity_id, entity_type, allow_duplication=True):
    return await service.create_share(user, CreateShareRequest(
        entity_id=entity_id, entity_type=entity_type, allow_duplication=allow_duplication,
    ))


async def load_copy(ctx, user, canvas_id):
    """The duplicated canvas state plus the details of every copied entity."""
    snapshot = await ctx.workspace.get_canvas_raw_data(user, canvas_id)
    nodes = {n.id: n for n in snapshot.nodes}
    return snapshot, nodes


class TestRegistry:
    """Test duplicate handler registration."""

    def test_missing_handler_rejected(self, ctx):
        handlers = [cls(ctx) for cls in DEFAULT_DUPLICATE_HANDLERS if cls is not DocumentDuplicateHandler]
        with pytest.raises(ConfigurationError):
            DuplicateHandlerRegistry(handlers)

    def test_publish_only_types(self, service):
        with pytest.raises(ParamsError):
            service.duplicator.registry.get('workflowApp')


class TestCanvasDuplicate:
    """Test canvas duplication end to end."""

    async def test_references_follow_the_copy(self, ctx, service, owner, visitor, doc_a_canvas):
        canvas, result = await doc_a_canvas()
        record = await share(service, owner, canvas.canvas_id, 'canvas')

        duplicated = await service.duplicate_share(visitor, record.share_id)

        assert duplicated.entity.entity_type == 'canvas'
        assert duplicated.entity.entity_id != canvas.canvas_id
        assert not duplicated.report.has_failures

        snapshot, nodes = await load_copy(ctx, visitor, duplicated.entity.entity_id)
        new_doc_id = nodes['n-doc'].entity_id
        new_result_id = nodes['n-skill'].entity_id
        assert new_doc_id.startswith('d-') and new_doc_id != 'doc-A'
        assert new_result_id.startswith('ar-') and new_result_id != result.result_id

        assert nodes['n-doc'].data.metadata['contextItems'][0]['entityId'] == new_doc_id
        assert nodes['n-skill'].data.metadata['contextItems'][0]['entityId'] == new_doc_id
        assert 'shareId' not in nodes['n-doc'].data.metadata
        assert 'modelInfo' not in nodes['n-skill'].data.metadata
        assert [(e.source, e.target) for e in snapshot.edges] == [('n-doc', 'n-skill')]

        copied_result = await ctx.workspace.get_action_result(visitor, new_result_id)
        assert copied_result['context'] == {'documents': [{'docId': new_doc_id, 'title': 'Doc A'}]}
        assert copied_result['input'] == {'query': f'Summarize {new_doc_id}'}
        assert copied_result['history'] == [
            {'role': 'user', 'content': f'Sources:\n{new_doc_id}'},
            {'role': 'assistant', 'content': f'参考文档{new_doc_id}'},
        ]
        assert copied_result['steps'][0]['artifacts'] == [{'entityId': new_doc_id, 'type': 'document'}]
        assert f'id={new_doc_id}' in copied_result['steps'][0]['content']
        assert copied_result['duplicateFrom'] == result.result_id
        assert copied_result['version'] == 0
        assert copied_result['targetId'] == duplicated.entity.entity_id
        assert copied_result['targetType'] == 'canvas'

        copied_doc = await ctx.workspace.get_document_detail(visitor, new_doc_id)
        assert copied_doc['content'] == f'Notes about @{{type=document,id={new_doc_id},name=Doc A}}'
        assert copied_doc['canvasId'] == duplicated.entity.entity_id

    async def test_no_source_identifier_survives(self, ctx, service, owner, visitor, doc_a_canvas):
        canvas, result = await doc_a_canvas()
        record = await share(service, owner, canvas.canvas_id, 'canvas')

        duplicated = await service.duplicate_share(visitor, record.share_id)

        _, nodes = await load_copy(ctx, visitor, duplicated.entity.entity_id)
        state = await ctx.storage.get_text(f"state/{duplicated.entity.entity_id}.json", PRIVATE)
        copied_doc = await ctx.workspace.get_document_detail(visitor, nodes['n-doc'].entity_id)
        copied_result = await ctx.workspace.get_action_result(visitor, nodes['n-skill'].entity_id)
        copied_result.pop('duplicateFrom')
        serialized = json.dumps([state, copied_doc, copied_result])

        for source_id in ('doc-A', result.result_id, canvas.canvas_id):
            assert source_id not in serialized

    async def test_provenance_and_quota_sync(self, ctx, service, owner, visitor, doc_a_canvas):
        canvas, result = await doc_a_canvas()
        record = await share(service, owner, canvas.canvas_id, 'canvas')

        duplicated = await service.duplicate_share(visitor, record.share_id)

        provenance = await ctx.duplicates.find_many(uid=visitor.uid)
        assert sorted(p.entity_type for p in provenance) == ['canvas', 'document', 'skillResponse']
        by_type = {p.entity_type: p for p in provenance}
        assert by_type['canvas'].source_id == canvas.canvas_id
        assert by_type['canvas'].target_id == duplicated.entity.entity_id
        assert by_type['document'].source_id == 'doc-A'
        assert ctx.quota.last_synced(visitor).used == 1
        assert get_metrics().get_counter('duplications_completed') == 1

    async def test_quota_gate_writes_nothing(self, ctx, service, owner, visitor, doc_a_canvas):
        canvas, _ = await doc_a_canvas()
        record = await share(service, owner, canvas.canvas_id, 'canvas')
        ctx.quota.set_quota(visitor, 0)
        stats_before = ctx.store.get_stats()
        private_before = ctx.storage.keys(PRIVATE)

        with pytest.raises(QuotaExceededError):
            await service.duplicate_share(visitor, record.share_id)

        assert ctx.store.get_stats() == stats_before
        assert ctx.storage.keys(PRIVATE) == private_before
        assert await ctx.workspace.canvases.find_many(uid=visitor.uid) == []

    async def test_quota_counts_only_library_nodes(self, ctx, service, owner, visitor, doc_a_canvas):
        canvas, _ = await doc_a_canvas()
        record = await share(service, owner, canvas.canvas_id, 'canvas')
        ctx.quota.set_quota(visitor, 1)

        duplicated = await service.duplicate_share(visitor, record.share_id)

        assert not duplicated.report.has_failures

    async def test_failed_copy_keeps_old_id(self, ctx, service, owner, visitor, doc_a_canvas):
        canvas, result = await doc_a_canvas()
        record = await share(service, owner, canvas.canvas_id, 'canvas')
        doc_share = (await ctx.shares.find_many(entity_id='doc-A'))[0]
        await ctx.storage.remove(doc_share.storage_key, PUBLIC)

        duplicated = await service.duplicate_share(visitor, record.share_id)

        assert [(o.node_id, o.status) for o in duplicated.report.skipped] == [('n-doc', OutcomeStatus.SKIPPED.value)]
        assert [o.node_id for o in duplicated.report.ok] == ['n-skill']
        _, nodes = await load_copy(ctx, visitor, duplicated.entity.entity_id)
        assert nodes['n-doc'].entity_id == 'doc-A'
        assert nodes['n-skill'].entity_id != result.result_id
        assert get_metrics().get_counter('share_nodes_skipped') == 1

    async def test_nodes_without_share_are_not_copied(self, ctx, service, owner, visitor, make_canvas):
        canvas = await make_canvas(owner, [
            node('n1', 'document', 'd-gone'),
            node('n2', 'memo', title='note', text='hello'),
        ])
        record = await share(service, owner, canvas.canvas_id, 'canvas')

        duplicated = await service.duplicate_share(visitor, record.share_id)

        _, nodes = await load_copy(ctx, visitor, duplicated.entity.entity_id)
        assert nodes['n1'].entity_id == 'd-gone'
        assert duplicated.report.outcomes == []
        assert await ctx.workspace.documents.find_many(uid=visitor.uid) == []

    async def test_project_is_injected(self, ctx, service, owner, visitor, doc_a_canvas):
        canvas, _ = await doc_a_canvas()
        record = await share(service, owner, canvas.canvas_id, 'canvas')

        duplicated = await service.duplicate_share(visitor, record.share_id, DuplicateTarget(project_id='p-1'))

        copy = await ctx.workspace.get_canvas(visitor, duplicated.entity.entity_id)
        _, nodes = await load_copy(ctx, visitor, copy.canvas_id)
        assert copy.project_id == 'p-1'
        assert all(n.data.metadata['projectId'] == 'p-1' for n in nodes.values())
        doc = await ctx.workspace.documents.find_first(doc_id=nodes['n-doc'].entity_id)
        assert doc.project_id == 'p-1'

    async def test_toolsets_are_imported(self, ctx, service, owner, visitor, make_canvas):
        mail = {'id': 'ts-src-mail', 'type': 'regular', 'toolset': {'key': 'mail', 'authData': {'token': 'x'}}}
        search = {'id': 'ts-src-search', 'type': 'regular', 'toolset': {'key': 'search'}}
        builtin = {'id': 'ts-builtin', 'type': 'builtin', 'toolset': {'key': 'web'}}
        result = await ctx.workspace.create_action_result(owner, "Run", toolsets=[mail, search, builtin])
        canvas = await make_canvas(owner, [
            node('n1', 'skillResponse', result.result_id, selectedToolsets=[mail, search, builtin]),
        ])
        installed = ctx.toolsets.install(visitor, {'id': 'ts-mine', 'type': 'regular', 'toolset': {'key': 'search'}})
        record = await share(service, owner, canvas.canvas_id, 'canvas')

        duplicated = await service.duplicate_share(visitor, record.share_id)

        _, nodes = await load_copy(ctx, visitor, duplicated.entity.entity_id)
        selected = nodes['n1'].data.metadata['selectedToolsets']
        assert selected[0]['id'].startswith('ts-') and selected[0]['id'] != 'ts-src-mail'
        assert 'authData' not in selected[0]['toolset']
        assert selected[1] == installed
        assert selected[2]['id'] == 'ts-builtin'

        copied_result = await ctx.workspace.get_action_result(visitor, nodes['n1'].entity_id)
        assert [t['id'] for t in copied_result['toolsets']] == [t['id'] for t in selected]

    async def test_missing_share(self, service, visitor):
        with pytest.raises(NotFoundError):
            await service.duplicate_share(visitor, 'can-missing')

    async def test_empty_share_id(self, service, visitor):
        with pytest.raises(ParamsError):
            await service.duplicate_share(visitor, '')


class TestEntityDuplicate:
    """Test standalone entity duplication."""

    async def test_document_copy(self, ctx, service, owner, visitor):
        doc = await ctx.workspace.create_document(owner, "Plan", "body")
        await ctx.vectors.add_points(
            owner, EntityRef(entity_id=doc.doc_id, entity_type='document'),
            [{'content': 'body', 'vector': [1.0, 0.0]}, {'content': 'more', 'vector': [0.0, 1.0]}],
        )
        record = await share(service, owner, doc.doc_id, 'document')

        duplicated = await service.duplicate_share(visitor, record.share_id)

        new_id = duplicated.entity.entity_id
        assert new_id.startswith('d-') and new_id != doc.doc_id
        copied = await ctx.workspace.get_document_detail(visitor, new_id)
        assert copied['content'] == 'body'
        assert ctx.vectors.count(visitor, EntityRef(entity_id=new_id, entity_type='document')) == 2
        assert ctx.quota.last_synced(visitor).used == 1
        provenance = await ctx.duplicates.find_many(uid=visitor.uid)
        assert [(p.source_id, p.target_id, p.share_id) for p in provenance] == [(doc.doc_id, new_id, record.share_id)]

    async def test_document_quota(self, ctx, service, owner, visitor):
        doc = await ctx.workspace.create_document(owner, "Plan", "body")
        record = await share(service, owner, doc.doc_id, 'document')
        ctx.quota.set_quota(visitor, 0)

        with pytest.raises(QuotaExceededError):
            await service.duplicate_share(visitor, record.share_id)

        assert await ctx.store.find_many(Document, uid=visitor.uid) == []

    async def test_target_canvas_must_exist(self, ctx, service, owner, visitor):
        doc = await ctx.workspace.create_document(owner, "Plan", "body")
        record = await share(service, owner, doc.doc_id, 'document')

        with pytest.raises(NotFoundError):
            await service.duplicate_share(visitor, record.share_id, DuplicateTarget(canvas_id='c-nowhere'))

    async def test_skill_response_attached_to_target_canvas(self, ctx, service, owner, visitor, make_canvas):
        result = await ctx.workspace.create_action_result(
            owner, "Answer", steps=[{'name': 'a', 'content': 'one'}, {'name': 'b', 'content': 'two'}],
        )
        record = await share(service, owner, result.result_id, 'skillResponse')
        target = await make_canvas(visitor, [])

        duplicated = await service.duplicate_share(visitor, record.share_id, DuplicateTarget(canvas_id=target.canvas_id))

        copied = await ctx.workspace.get_action_result(visitor, duplicated.entity.entity_id)
        assert [s['content'] for s in copied['steps']] == ['one', 'two']
        assert copied['targetId'] == target.canvas_id
        assert copied['targetType'] == 'canvas'
        assert ctx.quota.last_synced(visitor) is None

    async def test_page_copy(self, ctx, service, owner, visitor):
        doc = await ctx.workspace.create_document(owner, "Slide", "content")
        page = await ctx.workspace.create_page(
            owner, "Deck", description='Quarterly', node_ids=['n1'],
            relations=[{'node_id': 'n1', 'node_type': 'document', 'entity_id': doc.doc_id,
                        'node_data': {'title': 'Slide'}}],
        )
        record = await share(service, owner, page.page_id, 'page')

        duplicated = await service.duplicate_share(visitor, record.share_id)

        copy = await ctx.workspace.get_page(visitor, duplicated.entity.entity_id)
        assert copy.title == 'Deck'
        assert copy.description == 'Quarterly'
        state = await ctx.workspace.read_page_state(copy)
        assert state.title == 'Deck'
        assert state.node_ids == ['n1']
        assert state.config.layout == 'slides'
        relations = await ctx.workspace.page_relations.for_page(copy.page_id)
        assert [(r.node_id, r.entity_id) for r in relations] == [('n1', doc.doc_id)]
        assert relations[0].node_data['title'] == 'Slide'

    async def test_workflow_app_is_publish_only(self, ctx, service, owner, visitor, make_canvas):
        canvas = await make_canvas(owner, [])
        app = await ctx.workspace.create_workflow_app(owner, canvas.canvas_id, "App")
        record = await share(service, owner, app.app_id, 'workflowApp')

        with pytest.raises(ParamsError):
            await service.duplicate_share(visitor, record.share_id)

    async def test_duplication_must_be_allowed(self, ctx, service, owner, visitor):
        doc = await ctx.workspace.create_document(owner, "Plan", "body")
        record = await share(service, owner, doc.doc_id, 'document', allow_duplication=False)

        with pytest.raises(DuplicationNotAllowedError):
            await service.duplicate_share(visitor, record.share_id)

    async def test_deleted_share_cannot_be_duplicated(self, ctx, service, owner, visitor):
        doc = await ctx.workspace.create_document(owner, "Plan", "body")
        record = await share(service, owner, doc.doc_id, 'document')
        await service.delete_share(owner, record.share_id)

        with pytest.raises(NotFoundError):
            await service.duplicate_share(visitor, record.share_id)

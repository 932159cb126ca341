"""
Tests for the private workspace collaborators.
"""

import pytest

from conftest import node
from sharegraph.services.workspace import (
    InMemoryToolsetImporter, JsonPageStateCodec, PageConfig, PageState,
    StorageQuotaService, extract_toolsets_with_nodes, page_relation_id,
)
from sharegraph.shared import (
    InMemoryRecordStore, NotFoundError, ParamsError, User,
)
from sharegraph.shared.models import Page


class TestToolsets:
    """Test toolset extraction and import."""

    def test_extract_dedupes_by_id(self):
        shared = {'id': 'ts-1', 'toolset': {'key': 'mail'}}
        nodes = [
            node('n1', 'skillResponse', 'ar-1', selectedToolsets=[shared, {'id': 'ts-2'}]),
            node('n2', 'skillResponse', 'ar-2', selectedToolsets=[shared, {'name': 'no id'}]),
            node('n3', 'document', 'd-1', selectedToolsets=[{'id': 'ts-3'}]),
            node('n4', 'skillResponse', 'ar-3', selectedToolsets='invalid'),
        ]

        found = extract_toolsets_with_nodes(nodes)

        assert [entry['toolset']['id'] for entry in found] == ['ts-1', 'ts-2']
        assert [n.id for n in found[0]['nodes']] == ['n1', 'n2']

    async def test_import(self):
        importer = InMemoryToolsetImporter()
        user = User(uid="u-1")
        existing = importer.install(user, {'id': 'ts-mine', 'toolset': {'key': 'search'}})
        toolsets = [
            {'id': 'ts-a', 'type': 'regular', 'toolset': {'key': 'mail', 'authData': {'t': 'x'}}},
            {'id': 'ts-b', 'type': 'regular', 'toolset': {'key': 'search'}},
            {'id': 'ts-c', 'type': 'builtin', 'toolset': {'key': 'web'}},
            {'id': 'ts-d', 'type': 'mcp', 'name': 'remote'},
            {'id': 'ts-e', 'type': 'mcp', 'name': 'local',
             'mcpServer': {'url': 'http://mcp', 'headers': {'Authorization': 'x'}}},
        ]

        remap = await importer.import_toolsets(user, toolsets)

        assert set(remap) == {'ts-a', 'ts-b', 'ts-e'}
        assert remap['ts-a']['id'] != 'ts-a'
        assert 'authData' not in remap['ts-a']['toolset']
        assert remap['ts-b'] == existing
        assert remap['ts-e']['mcpServer'] == {'url': 'http://mcp'}
        assert len(importer.installed(user)) == 3


class TestQuota:
    """Test storage quota accounting."""

    async def test_counts_live_library_entities(self, ctx, owner):
        await ctx.workspace.create_document(owner, "A")
        doc = await ctx.workspace.create_document(owner, "B")
        await ctx.workspace.create_resource(owner, "C")
        await ctx.workspace.create_code_artifact(owner, "D")
        await ctx.workspace.create_action_result(owner, "not counted")
        await ctx.workspace.documents.soft_delete_many(doc_id=doc.doc_id)
        ctx.quota.set_quota(owner, 4)

        usage = await ctx.quota.check_storage_usage(owner)

        assert (usage.used, usage.total, usage.available) == (3, 4, 1)
        assert ctx.quota.last_synced(owner) is None
        assert (await ctx.quota.sync_storage_usage(owner)).used == 3
        assert ctx.quota.last_synced(owner).used == 3

    async def test_available_never_negative(self, owner):
        quota = StorageQuotaService(InMemoryRecordStore(), default_quota=0)
        usage = await quota.check_storage_usage(owner)
        assert usage.available == 0


class TestPages:
    """Test page draft state."""

    def test_codec(self):
        codec = JsonPageStateCodec()
        state = PageState(title="Deck", node_ids=['n1', 'n2'], config=PageConfig(theme='dark'))

        data = codec.encode(state)

        assert b'"nodeIds"' in data
        assert codec.decode(data) == state

    def test_invalid_state(self):
        with pytest.raises(ParamsError):
            JsonPageStateCodec().decode(b'{"nodeIds": "not a list"}')

    async def test_unreadable_state_is_none(self, ctx, owner):
        page = await ctx.workspace.create_page(owner, "Deck")
        await ctx.storage.remove(page.state_storage_key)
        assert await ctx.workspace.read_page_state(page) is None

    async def test_state_needs_storage_key(self, ctx):
        page = Page(page_id='page-1', uid='u-1')
        assert await ctx.workspace.read_page_state(page) is None
        with pytest.raises(ParamsError):
            await ctx.workspace.write_page_state(page, PageState())


class TestWorkspaceService:
    """Test private entity storage."""

    async def test_entities_are_scoped_to_owner(self, ctx, owner, visitor):
        doc = await ctx.workspace.create_document(owner, "Plan", "body")

        with pytest.raises(NotFoundError):
            await ctx.workspace.get_document_detail(visitor, doc.doc_id)
        with pytest.raises(NotFoundError):
            await ctx.workspace.get_canvas(visitor, 'c-missing')

    async def test_details_hide_storage_keys(self, ctx, owner):
        doc = await ctx.workspace.create_document(owner, "Plan", "body")

        detail = await ctx.workspace.get_document_detail(owner, doc.doc_id)

        assert detail['content'] == "body"
        assert detail['docId'] == doc.doc_id
        assert 'storageKey' not in detail

    async def test_documents_are_indexed(self, ctx, owner):
        doc = await ctx.workspace.create_document(owner, "Plan", "searchable body")
        results = await ctx.fulltext.search(owner.uid, "searchable")
        assert [r['id'] for r in results] == [doc.doc_id]

    async def test_canvas_raw_data(self, ctx, owner, make_canvas):
        canvas = await make_canvas(owner, [node('n1', 'document', 'd-1')], title="Board")
        await ctx.workspace.add_drive_file(owner, canvas.canvas_id, "out.csv", b"a,b", result_id='ar-1')

        snapshot = await ctx.workspace.get_canvas_raw_data(owner, canvas.canvas_id)

        assert snapshot.title == "Board"
        assert [n.id for n in snapshot.nodes] == ['n1']
        assert [(f.name, f.size, f.result_id) for f in snapshot.files] == [("out.csv", 3, 'ar-1')]

    async def test_canvas_without_state(self, ctx, owner, make_canvas):
        canvas = await make_canvas(owner, [node('n1', 'document', 'd-1')])
        await ctx.storage.remove(canvas.state_storage_key)

        snapshot = await ctx.workspace.get_canvas_raw_data(owner, canvas.canvas_id)

        assert snapshot.nodes == []
        assert snapshot.title == canvas.title

    async def test_credit_usage(self, ctx, owner, visitor):
        await ctx.credits.record_usage(owner, 'ar-1', 2)
        await ctx.credits.record_usage(owner, 'ar-1', 3)
        await ctx.credits.record_usage(owner, 'ar-2', 4)
        await ctx.credits.record_usage(visitor, 'ar-1', 10)

        assert await ctx.credits.count_result_credit_usage(owner, 'ar-1') == 5
        assert await ctx.credits.count_result_credit_usage(owner, 'ar-3') == 0

    async def test_action_steps_ordered(self, ctx, owner):
        result = await ctx.workspace.create_action_result(
            owner, "Run", steps=[{'name': 'first'}, {'name': 'second'}, {'name': 'third'}],
        )

        detail = await ctx.workspace.get_action_result(owner, result.result_id)

        assert [s['name'] for s in detail['steps']] == ['first', 'second', 'third']

    async def test_rerun_with_same_page_id_replaces_relations(self, ctx, owner):
        relations = [
            {'node_id': 'n1', 'node_type': 'document', 'entity_id': 'd-1'},
            {'node_id': 'n2', 'node_type': 'image', 'entity_id': ''},
        ]

        first = await ctx.workspace.create_page(owner, "Deck", relations=relations, page_id='page-x')
        await ctx.workspace.create_page(owner, "Deck", relations=relations, page_id='page-x')

        stored = await ctx.workspace.page_relations.for_page(first.page_id)
        assert [r.relation_id for r in stored] == [page_relation_id('page-x', 0), page_relation_id('page-x', 1)]
        assert [r.node_id for r in stored] == ['n1', 'n2']

    async def test_rerun_with_same_result_id_replaces_steps(self, ctx, owner):
        steps = [{'name': 'first'}, {'name': 'second'}]

        await ctx.workspace.create_action_result(owner, "Run", steps=steps, result_id='ar-x')
        await ctx.workspace.create_action_result(owner, "Run", steps=steps, result_id='ar-x')

        detail = await ctx.workspace.get_action_result(owner, 'ar-x')
        assert [s['name'] for s in detail['steps']] == ['first', 'second']

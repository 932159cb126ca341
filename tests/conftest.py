"""
Shared fixtures for ShareGraph tests.

Every test gets a fresh, fully in-memory share context.
"""

import pytest

from sharegraph.services.share import ShareContext, ShareService
from sharegraph.shared import (
    CanvasEdge, CanvasNode, GraphSnapshot, NodeData, User, get_metrics,
)


@pytest.fixture(autouse=True)
def reset_metrics():
    get_metrics().reset()
    yield
    get_metrics().reset()


@pytest.fixture
def ctx():
    return ShareContext.in_memory()


@pytest.fixture
def service(ctx):
    return ShareService(ctx)


@pytest.fixture
def owner():
    return User(uid="u-owner")


@pytest.fixture
def visitor():
    return User(uid="u-visitor")


def node(node_id, node_type, entity_id="", title="", **metadata):
    return CanvasNode(
        id=node_id,
        type=node_type,
        data=NodeData(entity_id=entity_id, title=title, metadata=metadata),
    )


@pytest.fixture
def make_canvas(ctx):
    """Create a canvas for ``user`` from nodes and ``(source, target)`` edge pairs."""

    async def _make(user, nodes, edges=(), title="Research", **kwargs):
        snapshot = GraphSnapshot(
            title=title,
            nodes=nodes,
            edges=[CanvasEdge(id=f"e-{s}-{t}", source=s, target=t) for s, t in edges],
        )
        return await ctx.workspace.create_canvas_with_state(user, snapshot, **kwargs)

    return _make


@pytest.fixture
def doc_a_canvas(ctx, owner, make_canvas):
    """
    Two-node canvas: a document referencing itself and a skill response
    whose context mentions the document.
    """

    async def _build():
        canvas_id = ctx.allocator.allocate("canvas")
        await ctx.workspace.create_document(
            owner, "Doc A", "Notes about @{type=document,id=doc-A,name=Doc A}",
            doc_id="doc-A", canvas_id=canvas_id,
        )
        result = await ctx.workspace.create_action_result(
            owner,
            "Summary",
            steps=[{
                'name': 'answer',
                'content': 'Based on @{type=document,id=doc-A,name=Doc A}',
                'artifacts': [{'entityId': 'doc-A', 'type': 'document'}],
            }],
            context={'documents': [{'docId': 'doc-A', 'title': 'Doc A'}]},
            history=[
                {'role': 'user', 'content': 'Sources:\ndoc-A'},
                {'role': 'assistant', 'content': '参考文档doc-A'},
            ],
            input={'query': 'Summarize doc-A'},
        )
        canvas = await make_canvas(
            owner,
            [
                node("n-doc", "document", "doc-A", "Doc A",
                     contextItems=[{'entityId': 'doc-A'}]),
                node("n-skill", "skillResponse", result.result_id, "Summary",
                     contextItems=[{'entityId': 'doc-A', 'type': 'document'}],
                     query="Summarize", modelInfo={'name': 'private-model'}),
            ],
            edges=[("n-doc", "n-skill")],
            canvas_id=canvas_id,
        )
        return canvas, result

    return _build

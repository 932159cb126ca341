"""
Workspace Service implementation.

Owns the private side of the content graph: canvases and their state, library
entities (documents, resources, code artifacts), skill responses, pages,
workflow apps and drive files. Content bodies live in private object storage;
rows live in the record store.
"""

import json
from typing import Any, Dict, List, Optional

from ...shared import (
    get_logger, get_settings, NotFoundError, ParamsError, StorageError,
)
from ...shared.infrastructure.database import RecordStore
from ...shared.infrastructure.search import FulltextSearch
from ...shared.infrastructure.storage import PRIVATE, ObjectStorage
from ...shared.models import (
    ActionResult, ActionStep, Canvas, CodeArtifact, Document, DriveFile,
    EntityType, GraphSnapshot, Page, PageNodeRelation, Resource,
    StoredDriveFile, User, WorkflowApp,
)
from .models import PageConfig, PageState
from .pages import JsonPageStateCodec, PageStateCodec
from .repository import (
    ActionResultRepository, ActionStepRepository, CanvasRepository,
    CodeArtifactRepository, DocumentRepository, DriveFileRepository,
    PageNodeRelationRepository, PageRepository, ResourceRepository,
    WorkflowAppRepository,
)

# Fields that only make sense inside the private bucket
PRIVATE_FIELDS = {'storageKey', 'stateStorageKey', 'deletedAt'}


def canvas_state_key(canvas_id: str) -> str:
    return f"state/{canvas_id}.json"


def page_state_key(uid: str, page_id: str) -> str:
    return f"pages/{uid}/{page_id}/state.update"


def page_relation_id(page_id: str, index: int) -> str:
    return f"pnr-{page_id}-{index}"


def _public_dict(record) -> Dict[str, Any]:
    data = record.to_json_dict()
    for field in PRIVATE_FIELDS:
        data.pop(field, None)
    return data


class WorkspaceService:
    """
    Private workspace operations used by publishing and duplication.

    ``allocator`` supplies entity identifiers for rows created without an
    explicit id.
    """

    def __init__(self,
                 store: RecordStore,
                 storage: ObjectStorage,
                 fulltext: FulltextSearch,
                 allocator,
                 page_codec: PageStateCodec = None):
        self.logger = get_logger(__name__)
        self.settings = get_settings()
        self.storage = storage
        self.fulltext = fulltext
        self.allocator = allocator
        self.page_codec = page_codec or JsonPageStateCodec()

        self.canvases = CanvasRepository(store)
        self.documents = DocumentRepository(store)
        self.resources = ResourceRepository(store)
        self.code_artifacts = CodeArtifactRepository(store)
        self.action_results = ActionResultRepository(store)
        self.action_steps = ActionStepRepository(store)
        self.pages = PageRepository(store)
        self.page_relations = PageNodeRelationRepository(store)
        self.workflow_apps = WorkflowAppRepository(store)
        self.drive_files = DriveFileRepository(store)

    # Canvas

    async def get_canvas(self, user: User, canvas_id: str) -> Canvas:
        canvas = await self.canvases.find_first(canvas_id=canvas_id, uid=user.uid)
        if canvas is None:
            raise NotFoundError(f"Canvas not found: {canvas_id}")
        return canvas

    async def check_canvas_exists(self, user: User, canvas_id: str) -> None:
        await self.get_canvas(user, canvas_id)

    async def save_canvas_state(self, canvas_id: str, snapshot: GraphSnapshot) -> None:
        state = {
            'title': snapshot.title,
            'nodes': [node.to_json_dict() for node in snapshot.nodes],
            'edges': [edge.to_json_dict() for edge in snapshot.edges],
        }
        await self.storage.put(canvas_state_key(canvas_id), json.dumps(state), PRIVATE)

    async def create_canvas_with_state(self,
                                       user: User,
                                       snapshot: GraphSnapshot = None,
                                       canvas_id: Optional[str] = None,
                                       title: Optional[str] = None,
                                       project_id: Optional[str] = None,
                                       minimap_storage_key: Optional[str] = None) -> Canvas:
        """
        Create a canvas row and persist its node/edge state.

        Args:
            user: Owner of the new canvas
            snapshot: Initial state; an empty canvas when omitted
            canvas_id: Preallocated identifier
            title: Canvas title, defaults to the snapshot title
            project_id: Optional project the canvas belongs to
            minimap_storage_key: Private key of a rendered minimap

        Returns:
            The created canvas
        """
        snapshot = snapshot or GraphSnapshot()
        canvas_id = canvas_id or self.allocator.allocate(EntityType.CANVAS)
        canvas = Canvas(
            canvas_id=canvas_id,
            uid=user.uid,
            title=title if title is not None else snapshot.title,
            project_id=project_id,
            state_storage_key=canvas_state_key(canvas_id),
            minimap_storage_key=minimap_storage_key,
        )
        snapshot = snapshot.model_copy(update={'title': canvas.title})
        await self.save_canvas_state(canvas_id, snapshot)
        canvas = await self.canvases.upsert(canvas)
        self.logger.info(f"Created canvas {canvas_id} for user {user.uid}")
        return canvas

    async def get_canvas_raw_data(self, user: User, canvas_id: str) -> GraphSnapshot:
        """Load a canvas's title, nodes, edges and drive files."""
        canvas = await self.get_canvas(user, canvas_id)
        try:
            state = json.loads(await self.storage.get(canvas.state_storage_key, PRIVATE))
        except StorageError:
            self.logger.warning(f"Canvas {canvas_id} has no stored state")
            state = {}

        files = await self.drive_files.find_many(canvas_id=canvas_id, uid=user.uid)
        return GraphSnapshot.model_validate({
            'title': canvas.title,
            'nodes': state.get('nodes', []),
            'edges': state.get('edges', []),
            'files': [DriveFile.model_validate(f.model_dump(exclude={'created_at', 'updated_at', 'deleted_at'}))
                      for f in files],
        })

    # Library entities

    async def index_content(self, index_type: str, record, content: str) -> None:
        await self.fulltext.upsert_document(index_type, {
            'id': record.pk,
            'title': record.title,
            'uid': record.uid,
            'content': content,
            'createdAt': record.created_at.isoformat(),
            'updatedAt': record.updated_at.isoformat(),
        })

    def preview(self, content: str) -> str:
        return (content or '')[:self.settings.content_preview_length]

    async def create_document(self,
                              user: User,
                              title: str,
                              content: str = '',
                              doc_id: Optional[str] = None,
                              canvas_id: Optional[str] = None,
                              project_id: Optional[str] = None,
                              read_only: bool = False) -> Document:
        doc_id = doc_id or self.allocator.allocate(EntityType.DOCUMENT)
        document = Document(
            doc_id=doc_id,
            uid=user.uid,
            title=title,
            content_preview=self.preview(content),
            read_only=read_only,
            storage_key=f"doc/{doc_id}.txt",
            project_id=project_id,
            canvas_id=canvas_id,
        )
        await self.storage.put(document.storage_key, content, PRIVATE)
        document = await self.documents.upsert(document)
        await self.index_content('document', document, content)
        self.logger.info(f"Created document {doc_id} for user {user.uid}")
        return document

    async def get_document_detail(self, user: User, doc_id: str) -> Dict[str, Any]:
        document = await self.documents.find_first(doc_id=doc_id, uid=user.uid)
        if document is None:
            raise NotFoundError(f"Document not found: {doc_id}")
        detail = _public_dict(document)
        detail['content'] = await self.storage.get_text(document.storage_key, PRIVATE)
        return detail

    async def create_resource(self,
                              user: User,
                              title: str,
                              content: str = '',
                              resource_id: Optional[str] = None,
                              resource_type: str = 'text',
                              canvas_id: Optional[str] = None,
                              project_id: Optional[str] = None,
                              **fields) -> Resource:
        resource_id = resource_id or self.allocator.allocate(EntityType.RESOURCE)
        resource = Resource(
            resource_id=resource_id,
            uid=user.uid,
            title=title,
            resource_type=resource_type,
            content_preview=self.preview(content),
            storage_key=f"resource/{resource_id}.txt",
            canvas_id=canvas_id,
            project_id=project_id,
            **fields,
        )
        await self.storage.put(resource.storage_key, content, PRIVATE)
        resource = await self.resources.upsert(resource)
        await self.index_content('resource', resource, content)
        self.logger.info(f"Created resource {resource_id} for user {user.uid}")
        return resource

    async def get_resource_detail(self, user: User, resource_id: str) -> Dict[str, Any]:
        resource = await self.resources.find_first(resource_id=resource_id, uid=user.uid)
        if resource is None:
            raise NotFoundError(f"Resource not found: {resource_id}")
        detail = _public_dict(resource)
        detail['content'] = await self.storage.get_text(resource.storage_key, PRIVATE)
        return detail

    async def list_canvas_resources(self, user: User, canvas_id: str) -> List[Resource]:
        return await self.resources.find_many(uid=user.uid, canvas_id=canvas_id)

    async def create_code_artifact(self,
                                   user: User,
                                   title: str,
                                   content: str = '',
                                   artifact_id: Optional[str] = None,
                                   language: Optional[str] = None,
                                   type: Optional[str] = None,
                                   canvas_id: Optional[str] = None) -> CodeArtifact:
        artifact_id = artifact_id or self.allocator.allocate(EntityType.CODE_ARTIFACT)
        artifact = CodeArtifact(
            artifact_id=artifact_id,
            uid=user.uid,
            title=title,
            language=language,
            type=type,
            storage_key=f"code-artifact/{artifact_id}",
            canvas_id=canvas_id,
        )
        await self.storage.put(artifact.storage_key, content, PRIVATE)
        return await self.code_artifacts.upsert(artifact)

    async def get_code_artifact_detail(self, user: User, artifact_id: str) -> Dict[str, Any]:
        artifact = await self.code_artifacts.find_first(artifact_id=artifact_id, uid=user.uid)
        if artifact is None:
            raise NotFoundError(f"Code artifact not found: {artifact_id}")
        detail = _public_dict(artifact)
        detail['content'] = await self.storage.get_text(artifact.storage_key, PRIVATE)
        return detail

    # Skill responses

    async def create_action_result(self,
                                   user: User,
                                   title: str,
                                   steps: List[Dict[str, Any]] = None,
                                   result_id: Optional[str] = None,
                                   **fields) -> ActionResult:
        """
        Store a skill response and its steps.

        Args:
            user: Owner of the result
            title: Result title
            steps: Step payloads in order (``name``, ``content``, ``artifacts``, ...)
            result_id: Preallocated identifier
            **fields: Remaining ``ActionResult`` fields (context, history, toolsets, ...)
        """
        result_id = result_id or self.allocator.allocate(EntityType.SKILL_RESPONSE)
        result = await self.action_results.upsert(
            ActionResult(result_id=result_id, uid=user.uid, title=title, **fields)
        )
        await self.action_steps.upsert_many([
            ActionStep(
                step_id=f"{result_id}:{result.version}:{order}",
                result_id=result_id,
                version=result.version,
                order=order,
                **step,
            )
            for order, step in enumerate(steps or [])
        ])
        return result

    async def get_action_result(self, user: User, result_id: str) -> Dict[str, Any]:
        result = await self.action_results.find_first(result_id=result_id, uid=user.uid)
        if result is None:
            raise NotFoundError(f"Action result not found: {result_id}")
        detail = _public_dict(result)
        steps = await self.action_steps.for_result(result_id, result.version)
        detail['steps'] = [_public_dict(step) for step in steps]
        return detail

    # Pages

    async def create_page(self,
                          user: User,
                          title: str,
                          canvas_id: str = '',
                          description: Optional[str] = None,
                          node_ids: List[str] = None,
                          config: PageConfig = None,
                          relations: List[Dict[str, Any]] = None,
                          page_id: Optional[str] = None) -> Page:
        page_id = page_id or self.allocator.allocate(EntityType.PAGE)
        page = Page(
            page_id=page_id,
            uid=user.uid,
            canvas_id=canvas_id,
            title=title,
            description=description,
            state_storage_key=page_state_key(user.uid, page_id),
        )
        await self.write_page_state(page, PageState(
            title=title, node_ids=node_ids or [], config=config or PageConfig(),
        ))
        page = await self.pages.upsert(page)
        await self.page_relations.upsert_many([
            PageNodeRelation(
                relation_id=relation.get('relation_id') or page_relation_id(page_id, index),
                page_id=page_id,
                **{k: v for k, v in relation.items() if k != 'relation_id'},
            )
            for index, relation in enumerate(relations or [])
        ])
        return page

    async def get_page(self, user: User, page_id: str) -> Page:
        page = await self.pages.find_first(page_id=page_id, uid=user.uid)
        if page is None:
            raise NotFoundError(f"Page not found: {page_id}")
        return page

    async def read_page_state(self, page: Page) -> Optional[PageState]:
        if not page.state_storage_key:
            return None
        try:
            data = await self.storage.get(page.state_storage_key, PRIVATE)
        except StorageError:
            return None
        return self.page_codec.decode(data)

    async def write_page_state(self, page: Page, state: PageState) -> None:
        if not page.state_storage_key:
            raise ParamsError(f"Page {page.page_id} has no state storage key")
        await self.storage.put(page.state_storage_key, self.page_codec.encode(state), PRIVATE)

    # Workflow apps and files

    async def create_workflow_app(self, user: User, canvas_id: str, title: str = '',
                                  app_id: Optional[str] = None, **fields) -> WorkflowApp:
        app_id = app_id or self.allocator.allocate(EntityType.WORKFLOW_APP)
        return await self.workflow_apps.upsert(
            WorkflowApp(app_id=app_id, uid=user.uid, canvas_id=canvas_id, title=title, **fields)
        )

    async def get_workflow_app(self, user: User, app_id: str) -> WorkflowApp:
        app = await self.workflow_apps.find_first(app_id=app_id, uid=user.uid)
        if app is None:
            raise NotFoundError(f"Workflow app not found: {app_id}")
        return app

    async def add_drive_file(self, user: User, canvas_id: str, name: str,
                             content: bytes = b'', **fields) -> StoredDriveFile:
        file_id = fields.pop('file_id', None) or self.allocator.allocate_file_id()
        storage_key = f"drive/{user.uid}/{canvas_id}/{name}"
        await self.storage.put(storage_key, content, PRIVATE)
        return await self.drive_files.create(StoredDriveFile(
            file_id=file_id,
            canvas_id=canvas_id,
            uid=user.uid,
            name=name,
            size=len(content),
            storage_key=storage_key,
            **fields,
        ))

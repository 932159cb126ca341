"""
Repositories for private workspace entities.
"""

from typing import List

from ...shared.infrastructure.database import BaseRepository
from ...shared.models import (
    ActionResult, ActionStep, Canvas, CodeArtifact, Document, Page,
    PageNodeRelation, Resource, StoredDriveFile, WorkflowApp,
)
from .models import CreditUsage


class CanvasRepository(BaseRepository[Canvas]):
    model = Canvas


class DocumentRepository(BaseRepository[Document]):
    model = Document


class ResourceRepository(BaseRepository[Resource]):
    model = Resource


class CodeArtifactRepository(BaseRepository[CodeArtifact]):
    model = CodeArtifact


class ActionResultRepository(BaseRepository[ActionResult]):
    model = ActionResult


class ActionStepRepository(BaseRepository[ActionStep]):
    model = ActionStep

    async def for_result(self, result_id: str, version: int) -> List[ActionStep]:
        steps = await self.find_many(result_id=result_id, version=version)
        return sorted(steps, key=lambda step: step.order)

    async def upsert_many(self, steps: List[ActionStep]) -> int:
        for step in steps:
            await self.upsert(step)
        return len(steps)


class PageRepository(BaseRepository[Page]):
    model = Page


class PageNodeRelationRepository(BaseRepository[PageNodeRelation]):
    model = PageNodeRelation

    async def for_page(self, page_id: str) -> List[PageNodeRelation]:
        relations = await self.find_many(page_id=page_id)
        return sorted(relations, key=lambda relation: relation.order_index)

    async def upsert_many(self, relations: List[PageNodeRelation]) -> int:
        for relation in relations:
            await self.upsert(relation)
        return len(relations)


class WorkflowAppRepository(BaseRepository[WorkflowApp]):
    model = WorkflowApp


class DriveFileRepository(BaseRepository[StoredDriveFile]):
    model = StoredDriveFile


class CreditUsageRepository(BaseRepository[CreditUsage]):
    model = CreditUsage


class LibraryRepository:
    """Counts the library entities a user owns."""

    def __init__(self, store):
        self.documents = DocumentRepository(store)
        self.resources = ResourceRepository(store)
        self.code_artifacts = CodeArtifactRepository(store)

    async def count_for_user(self, uid: str) -> int:
        return (
            await self.documents.count(uid=uid)
            + await self.resources.count(uid=uid)
            + await self.code_artifacts.count(uid=uid)
        )

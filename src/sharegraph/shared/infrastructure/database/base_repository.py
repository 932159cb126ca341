"""
Base repository pattern for record store operations.

Provides a consistent interface for all repositories in ShareGraph.
"""

from abc import ABC
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from ...models.base import utcnow
from ...models.workspace import Record
from .record_store import RecordStore

T = TypeVar('T', bound=Record)


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base repository for one record type.

    Subclasses set ``model``; reads exclude soft-deleted rows unless asked.
    """

    model: Type[T]

    def __init__(self, store: RecordStore):
        """
        Initialize repository with a record store.

        Args:
            store: Record store to read and write through
        """
        self.store = store

    @staticmethod
    def _live(filters: Dict[str, Any], include_deleted: bool) -> Dict[str, Any]:
        if include_deleted:
            return filters
        return {**filters, 'deleted_at': None}

    async def create(self, entity: T) -> T:
        """Create a new entity."""
        return await self.store.create(entity)

    async def upsert(self, entity: T) -> T:
        """Create or replace an entity."""
        return await self.store.upsert(entity)

    async def get_by_id(self, entity_id: str, include_deleted: bool = False) -> Optional[T]:
        """Get entity by primary key."""
        filters = self._live({self.model.primary_key: entity_id}, include_deleted)
        return await self.store.find_first(self.model, **filters)

    async def find_first(self, include_deleted: bool = False, **filters) -> Optional[T]:
        return await self.store.find_first(self.model, **self._live(filters, include_deleted))

    async def find_many(self, include_deleted: bool = False, **filters) -> List[T]:
        return await self.store.find_many(self.model, **self._live(filters, include_deleted))

    async def count(self, **filters) -> int:
        return await self.store.count(self.model, **self._live(filters, False))

    async def update(self, entity_id: str, **changes) -> T:
        """Update fields of an existing entity."""
        return await self.store.update(self.model, entity_id, changes)

    async def soft_delete_many(self, **filters) -> int:
        """Mark every matching live entity as deleted."""
        return await self.store.update_many(
            self.model, {'deleted_at': utcnow()}, **self._live(filters, False)
        )

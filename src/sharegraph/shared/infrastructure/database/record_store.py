"""
Record store port and in-memory implementation.

The store persists pydantic ``Record`` rows grouped by model class. Filters
are plain field equalities; a ``<field>__in`` key matches membership in a
collection. Soft-deleted rows are ordinary rows with ``deleted_at`` set, so
callers that want live rows filter on ``deleted_at=None``.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Type, TypeVar

from ...exceptions import RepositoryError
from ...models.workspace import Record
from ..monitoring import get_logger

R = TypeVar('R', bound=Record)


def _matches(record: Record, filters: Dict[str, Any]) -> bool:
    for key, expected in filters.items():
        if key.endswith('__in'):
            if getattr(record, key[:-4]) not in expected:
                return False
        elif getattr(record, key) != expected:
            return False
    return True


class RecordStore(ABC):
    """Abstract relational-style store with find/update semantics."""

    @abstractmethod
    async def create(self, record: R) -> R:
        """Insert a new row; fails if the primary key is taken."""
        pass

    @abstractmethod
    async def upsert(self, record: R) -> R:
        """Insert or fully replace the row with the same primary key."""
        pass

    @abstractmethod
    async def find_first(self, model: Type[R], **filters) -> Optional[R]:
        """Return the first matching row, if any."""
        pass

    @abstractmethod
    async def find_many(self, model: Type[R], **filters) -> List[R]:
        """Return every matching row in insertion order."""
        pass

    @abstractmethod
    async def update(self, model: Type[R], pk: str, changes: Dict[str, Any]) -> R:
        """Apply field changes to one row and return the updated copy."""
        pass

    @abstractmethod
    async def update_many(self, model: Type[R], changes: Dict[str, Any], **filters) -> int:
        """Apply field changes to every matching row; returns the row count."""
        pass

    async def count(self, model: Type[R], **filters) -> int:
        return len(await self.find_many(model, **filters))


class InMemoryRecordStore(RecordStore):
    """
    In-memory record store for development and testing.

    Rows are copied on the way in and out so that callers never share
    mutable state with the store.
    """

    def __init__(self):
        self.logger = get_logger(__name__)
        self._lock = asyncio.Lock()
        self._tables: Dict[str, 'OrderedDict[str, Record]'] = {}

    def _table(self, model: Type[Record]) -> 'OrderedDict[str, Record]':
        return self._tables.setdefault(model.__name__, OrderedDict())

    async def create(self, record: R) -> R:
        async with self._lock:
            table = self._table(type(record))
            if record.pk in table:
                raise RepositoryError(f"{type(record).__name__} {record.pk} already exists")
            table[record.pk] = record.model_copy(deep=True)
            self.logger.debug(f"Created {type(record).__name__}: {record.pk}")
        return record.model_copy(deep=True)

    async def upsert(self, record: R) -> R:
        async with self._lock:
            self._table(type(record))[record.pk] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    async def find_first(self, model: Type[R], **filters) -> Optional[R]:
        for record in self._table(model).values():
            if _matches(record, filters):
                return record.model_copy(deep=True)
        return None

    async def find_many(self, model: Type[R], **filters) -> List[R]:
        return [
            record.model_copy(deep=True)
            for record in self._table(model).values()
            if _matches(record, filters)
        ]

    async def update(self, model: Type[R], pk: str, changes: Dict[str, Any]) -> R:
        async with self._lock:
            table = self._table(model)
            if pk not in table:
                raise RepositoryError(f"{model.__name__} {pk} does not exist")
            updated = table[pk].model_copy(update=changes, deep=True)
            updated.touch()
            table[pk] = updated
        return updated.model_copy(deep=True)

    async def update_many(self, model: Type[R], changes: Dict[str, Any], **filters) -> int:
        async with self._lock:
            table = self._table(model)
            matched = [pk for pk, record in table.items() if _matches(record, filters)]
            for pk in matched:
                updated = table[pk].model_copy(update=changes, deep=True)
                updated.touch()
                table[pk] = updated
        return len(matched)

    def get_stats(self) -> Dict[str, int]:
        """Row counts per non-empty table."""
        return {name: len(rows) for name, rows in self._tables.items() if rows}

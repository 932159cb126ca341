"""
Full-text search index port.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Tuple

from ..monitoring import get_logger


class FulltextSearch(ABC):
    """Abstract full-text index keyed by ``(index_type, id)``."""

    @abstractmethod
    async def upsert_document(self, index_type: str, document: Dict[str, Any]) -> None:
        """
        Index a document.

        Args:
            index_type: ``document`` or ``resource``
            document: ``{id, title, uid, content, createdAt, updatedAt}``
        """
        pass

    @abstractmethod
    async def delete_document(self, index_type: str, doc_id: str) -> None:
        pass

    @abstractmethod
    async def search(self, uid: str, query: str, index_type: str = None) -> List[Dict[str, Any]]:
        pass


class InMemoryFulltextSearch(FulltextSearch):
    """Substring-matching index for development and testing."""

    def __init__(self):
        self.logger = get_logger(__name__)
        self._lock = threading.RLock()
        self._documents: Dict[Tuple[str, str], Dict[str, Any]] = {}

    async def upsert_document(self, index_type: str, document: Dict[str, Any]) -> None:
        with self._lock:
            self._documents[(index_type, document['id'])] = dict(document)
        self.logger.debug(f"Indexed {index_type} {document['id']}")

    async def delete_document(self, index_type: str, doc_id: str) -> None:
        with self._lock:
            self._documents.pop((index_type, doc_id), None)

    async def search(self, uid: str, query: str, index_type: str = None) -> List[Dict[str, Any]]:
        needle = query.lower()
        with self._lock:
            return [
                dict(doc)
                for (doc_type, _), doc in self._documents.items()
                if doc.get('uid') == uid
                and (index_type is None or doc_type == index_type)
                and (needle in (doc.get('title') or '').lower()
                     or needle in (doc.get('content') or '').lower())
            ]

    def get(self, index_type: str, doc_id: str) -> Dict[str, Any]:
        with self._lock:
            return self._documents.get((index_type, doc_id))

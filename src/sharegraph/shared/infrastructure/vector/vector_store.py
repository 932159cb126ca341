"""
Vector store adapter used to carry embeddings through publish and duplicate.

Publishing a document or resource snapshots its vectors into a blob; duplicating
it restores that blob against the new owner and entity id, so the copy is
searchable without re-embedding.
"""

import json
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from ...models.common import EntityRef, User
from ..monitoring import get_logger

VectorKey = Tuple[str, str, str]


class VectorStore(ABC):
    """Abstract per-entity vector storage."""

    @abstractmethod
    async def add_points(self, user: User, ref: EntityRef, points: List[Dict[str, Any]]) -> int:
        """Index ``{'content': str, 'vector': sequence}`` points for an entity."""
        pass

    @abstractmethod
    async def serialize(self, user: User, ref: EntityRef) -> Optional[bytes]:
        """Export an entity's points, or None when it has none."""
        pass

    @abstractmethod
    async def deserialize(self, user: User, data: bytes, target: EntityRef) -> int:
        """Import exported points against a new owner and entity."""
        pass

    @abstractmethod
    async def delete(self, user: User, ref: EntityRef) -> int:
        pass


class InMemoryVectorStore(VectorStore):
    """
    In-memory vector storage implementation.

    Uses numpy arrays for vectors and cosine similarity for search.
    """

    def __init__(self):
        self.logger = get_logger(__name__)
        self._lock = threading.RLock()
        self._points: Dict[VectorKey, List[Tuple[str, np.ndarray]]] = {}

    @staticmethod
    def _key(user: User, ref: EntityRef) -> VectorKey:
        return (user.uid, ref.entity_type, ref.entity_id)

    async def add_points(self, user: User, ref: EntityRef, points: List[Dict[str, Any]]) -> int:
        with self._lock:
            bucket = self._points.setdefault(self._key(user, ref), [])
            for point in points:
                bucket.append((point.get('content', ''), np.asarray(point['vector'], dtype=np.float32)))
        self.logger.debug(f"Indexed {len(points)} vectors for {ref.entity_type} {ref.entity_id}")
        return len(points)

    async def serialize(self, user: User, ref: EntityRef) -> Optional[bytes]:
        with self._lock:
            points = self._points.get(self._key(user, ref))
            if not points:
                return None
            payload = [
                {'content': content, 'vector': vector.tolist()}
                for content, vector in points
            ]
        return json.dumps({'points': payload}).encode('utf-8')

    async def deserialize(self, user: User, data: bytes, target: EntityRef) -> int:
        points = json.loads(data).get('points', [])
        with self._lock:
            self._points[self._key(user, target)] = []
        return await self.add_points(user, target, points)

    async def delete(self, user: User, ref: EntityRef) -> int:
        with self._lock:
            return len(self._points.pop(self._key(user, ref), []))

    def count(self, user: User, ref: EntityRef) -> int:
        with self._lock:
            return len(self._points.get(self._key(user, ref), []))

    @staticmethod
    def calculate_similarity(a: np.ndarray, b: np.ndarray) -> float:
        """Cosine similarity between two vectors."""
        norm = np.linalg.norm(a) * np.linalg.norm(b)
        if norm == 0:
            return 0.0
        return float(np.dot(a, b) / norm)

    def similarity_search(
        self,
        user: User,
        query_vector: List[float],
        top_k: int = 5,
    ) -> List[Tuple[str, str, float]]:
        """
        Search a user's vectors.

        Returns:
            ``(entity_id, content, score)`` tuples, best first
        """
        query = np.asarray(query_vector, dtype=np.float32)
        results = []
        with self._lock:
            for (uid, _, entity_id), points in self._points.items():
                if uid != user.uid:
                    continue
                for content, vector in points:
                    results.append((entity_id, content, self.calculate_similarity(query, vector)))
        results.sort(key=lambda r: r[2], reverse=True)
        return results[:top_k]

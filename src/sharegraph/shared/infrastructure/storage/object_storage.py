"""
Object storage port and implementations.

Every object lives in one of two buckets, ``public`` or ``private``. Public
objects are addressable by URL; private ones are only read by the engine.
"""

import asyncio
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from ...config.settings import get_settings
from ...exceptions import StorageError
from ..monitoring import get_logger

PUBLIC = "public"
PRIVATE = "private"
VISIBILITIES = (PUBLIC, PRIVATE)

Payload = Union[bytes, str]


def _to_bytes(data: Payload) -> bytes:
    return data.encode('utf-8') if isinstance(data, str) else data


def _check_visibility(visibility: str) -> None:
    if visibility not in VISIBILITIES:
        raise StorageError(f"Unknown visibility: {visibility}")


class ObjectStorage(ABC):
    """Abstract object store with public and private buckets."""

    def __init__(self, public_endpoint: Optional[str] = None):
        settings = get_settings()
        self.public_endpoint = (public_endpoint or settings.public_endpoint).rstrip('/')
        self.logger = get_logger(__name__)

    @abstractmethod
    async def get(self, key: str, visibility: str = PRIVATE) -> bytes:
        """Read an object; raises StorageError if it does not exist."""
        pass

    @abstractmethod
    async def put(self, key: str, data: Payload, visibility: str = PRIVATE) -> None:
        """Write an object, replacing any existing value."""
        pass

    @abstractmethod
    async def remove(self, key: str, visibility: str = PRIVATE) -> bool:
        """Delete an object; returns whether it existed."""
        pass

    @abstractmethod
    async def exists(self, key: str, visibility: str = PRIVATE) -> bool:
        pass

    async def get_text(self, key: str, visibility: str = PRIVATE) -> str:
        return (await self.get(key, visibility)).decode('utf-8')

    async def duplicate(
        self,
        source_key: str,
        target_key: str,
        source_visibility: str = PRIVATE,
        target_visibility: str = PRIVATE,
    ) -> None:
        """Copy an object, possibly across buckets."""
        data = await self.get(source_key, source_visibility)
        await self.put(target_key, data, target_visibility)

    def public_url(self, key: str) -> str:
        return f"{self.public_endpoint}/{key}"

    async def publish_file(self, key: str) -> str:
        """
        Copy a private object into the public bucket under the same key.

        Returns:
            The object's public URL
        """
        if not await self.exists(key, PUBLIC):
            await self.duplicate(key, key, PRIVATE, PUBLIC)
        return self.public_url(key)


class InMemoryObjectStorage(ObjectStorage):
    """
    In-memory object storage for development and testing.
    """

    def __init__(self, public_endpoint: Optional[str] = None):
        super().__init__(public_endpoint)
        self._lock = threading.RLock()
        self._objects: Dict[Tuple[str, str], bytes] = {}

    async def get(self, key: str, visibility: str = PRIVATE) -> bytes:
        _check_visibility(visibility)
        with self._lock:
            if (visibility, key) not in self._objects:
                raise StorageError(f"Object not found: {visibility}/{key}")
            return self._objects[(visibility, key)]

    async def put(self, key: str, data: Payload, visibility: str = PRIVATE) -> None:
        _check_visibility(visibility)
        with self._lock:
            self._objects[(visibility, key)] = _to_bytes(data)
        self.logger.debug(f"Stored object: {visibility}/{key}")

    async def remove(self, key: str, visibility: str = PRIVATE) -> bool:
        _check_visibility(visibility)
        with self._lock:
            return self._objects.pop((visibility, key), None) is not None

    async def exists(self, key: str, visibility: str = PRIVATE) -> bool:
        _check_visibility(visibility)
        with self._lock:
            return (visibility, key) in self._objects

    def keys(self, visibility: str = PRIVATE):
        """Keys currently stored in one bucket."""
        with self._lock:
            return sorted(key for vis, key in self._objects if vis == visibility)


class FileSystemObjectStorage(ObjectStorage):
    """
    Object storage backed by a local directory.

    Buckets are subdirectories of ``root``; blocking file I/O runs in a
    worker thread so the event loop is never blocked.
    """

    def __init__(self, root: Optional[Path] = None, public_endpoint: Optional[str] = None):
        super().__init__(public_endpoint)
        self.root = Path(root or get_settings().data_dir)

    def _path(self, key: str, visibility: str) -> Path:
        _check_visibility(visibility)
        path = (self.root / visibility / key).resolve()
        bucket = (self.root / visibility).resolve()
        if bucket not in path.parents:
            raise StorageError(f"Key escapes bucket: {key}")
        return path

    async def get(self, key: str, visibility: str = PRIVATE) -> bytes:
        path = self._path(key, visibility)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise StorageError(f"Object not found: {visibility}/{key}") from e

    async def put(self, key: str, data: Payload, visibility: str = PRIVATE) -> None:
        path = self._path(key, visibility)

        def write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(_to_bytes(data))

        await asyncio.to_thread(write)
        self.logger.debug(f"Stored object: {path}")

    async def remove(self, key: str, visibility: str = PRIVATE) -> bool:
        path = self._path(key, visibility)

        def unlink() -> bool:
            try:
                path.unlink()
                return True
            except FileNotFoundError:
                return False

        return await asyncio.to_thread(unlink)

    async def exists(self, key: str, visibility: str = PRIVATE) -> bool:
        path = self._path(key, visibility)
        return await asyncio.to_thread(path.is_file)


def create_object_storage(backend: Optional[str] = None) -> ObjectStorage:
    """Build the object storage configured by ``object_storage_backend``."""
    backend = backend or get_settings().object_storage_backend
    if backend == 'filesystem':
        return FileSystemObjectStorage()
    return InMemoryObjectStorage()

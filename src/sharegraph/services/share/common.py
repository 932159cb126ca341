"""
Blob, vector and media helpers shared by publish and duplicate handlers.
"""

import json
import re
from typing import Any, Dict

from ...shared import get_logger, get_settings, NotFoundError, StorageError
from ...shared.infrastructure.storage import PUBLIC, ObjectStorage
from ...shared.infrastructure.vector import VectorStore
from ...shared.models import EntityRef, User

MARKDOWN_IMAGE_PATTERN = re.compile(r'(!\[[^\]]*\]\()([^)\s]+)(\))')


def share_blob_key(share_id: str) -> str:
    return f"share/{share_id}.json"


def share_cover_key(share_id: str) -> str:
    return f"share-cover/{share_id}.png"


def share_vector_key(share_id: str) -> str:
    return f"share/{share_id}-vector"


class ShareCommon:
    """Reads and writes public share blobs and moves vectors and media."""

    def __init__(self, storage: ObjectStorage, vectors: VectorStore):
        self.logger = get_logger(__name__)
        self.settings = get_settings()
        self.storage = storage
        self.vectors = vectors

    async def upload_public_json(self, key: str, payload: Dict[str, Any]) -> str:
        await self.storage.put(key, json.dumps(payload), PUBLIC)
        return key

    async def download_public_json(self, key: str) -> Dict[str, Any]:
        """
        Read a public blob.

        Raises:
            NotFoundError: If the blob is missing or is not a JSON object
        """
        try:
            data = json.loads(await self.storage.get(key, PUBLIC))
        except (StorageError, ValueError) as e:
            self.logger.error(f"Failed to load share blob {key}: {e}")
            raise NotFoundError() from e
        if not isinstance(data, dict):
            raise NotFoundError()
        return data

    async def remove_public(self, key: str) -> bool:
        return await self.storage.remove(key, PUBLIC)

    async def store_vector(self, user: User, ref: EntityRef, vector_storage_key: str) -> bool:
        """Export an entity's vectors to a public blob; False when it has none."""
        data = await self.vectors.serialize(user, ref)
        if data is None:
            return False
        await self.storage.put(vector_storage_key, data, PUBLIC)
        return True

    async def restore_vector(self, user: User, vector_storage_key: str, target: EntityRef) -> int:
        """Import a vector blob against ``target``; missing blobs restore nothing."""
        if not await self.storage.exists(vector_storage_key, PUBLIC):
            return 0
        data = await self.storage.get(vector_storage_key, PUBLIC)
        return await self.vectors.deserialize(user, data, target)

    async def publish_media(self, storage_key: str) -> str:
        return await self.storage.publish_file(storage_key)

    async def process_content_images(self, content: str) -> str:
        """Re-host private markdown images so the content renders publicly."""
        if not content:
            return content or ''

        private_prefix = self.settings.private_endpoint.rstrip('/') + '/'
        replacements: Dict[str, str] = {}
        for match in MARKDOWN_IMAGE_PATTERN.finditer(content):
            url = match.group(2)
            if url.startswith(private_prefix) and url not in replacements:
                replacements[url] = await self.publish_media(url[len(private_prefix):])

        if not replacements:
            return content
        return MARKDOWN_IMAGE_PATTERN.sub(
            lambda m: m.group(1) + replacements.get(m.group(2), m.group(2)) + m.group(3),
            content,
        )

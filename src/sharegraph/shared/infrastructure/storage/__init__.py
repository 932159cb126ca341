"""
Object storage infrastructure.
"""

from .object_storage import (
    PUBLIC,
    PRIVATE,
    ObjectStorage,
    InMemoryObjectStorage,
    FileSystemObjectStorage,
    create_object_storage,
)

__all__ = [
    "PUBLIC",
    "PRIVATE",
    "ObjectStorage",
    "InMemoryObjectStorage",
    "FileSystemObjectStorage",
    "create_object_storage",
]

"""
Vector storage infrastructure.
"""

from .vector_store import VectorStore, InMemoryVectorStore

__all__ = ["VectorStore", "InMemoryVectorStore"]

"""
Full-text search infrastructure.
"""

from .fulltext import FulltextSearch, InMemoryFulltextSearch

__all__ = ["FulltextSearch", "InMemoryFulltextSearch"]

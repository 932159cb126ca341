"""
Tests for identifier allocation.
"""

import pytest

from sharegraph.services.share.ids import (
    ENTITY_ID_PREFIX, SHARE_CODE_PREFIX, IdentifierAllocator,
    entity_type_from_share_id, gen_share_id,
)
from sharegraph.shared import EntityType, ParamsError


class TestIdentifierAllocator:
    """Test entity and share id generation."""

    def setup_method(self):
        self.allocator = IdentifierAllocator()

    @pytest.mark.parametrize("entity_type", list(EntityType))
    def test_entity_ids_are_prefixed_by_type(self, entity_type):
        entity_id = self.allocator.allocate(entity_type)
        assert entity_id.startswith(ENTITY_ID_PREFIX[entity_type.value])
        assert len(entity_id) == len(ENTITY_ID_PREFIX[entity_type.value]) + 24

    def test_accepts_plain_type_strings(self):
        assert self.allocator.allocate("document").startswith("d-")

    def test_ids_are_unique(self):
        ids = {self.allocator.allocate(EntityType.DOCUMENT) for _ in range(500)}
        assert len(ids) == 500

    def test_unsupported_type_raises(self):
        with pytest.raises(ParamsError):
            self.allocator.allocate("spreadsheet")

    def test_file_ids(self):
        assert self.allocator.allocate_file_id().startswith("df-")


class TestShareIds:
    """Test share id prefixes and type recovery."""

    @pytest.mark.parametrize("entity_type", list(EntityType))
    def test_type_recovered_from_share_id(self, entity_type):
        share_id = gen_share_id(entity_type)
        assert share_id.startswith(SHARE_CODE_PREFIX[entity_type.value])
        assert entity_type_from_share_id(share_id) == entity_type.value

    def test_unknown_prefix(self):
        assert entity_type_from_share_id("xyz-123") is None

    def test_share_prefixes_are_distinct(self):
        prefixes = list(SHARE_CODE_PREFIX.values())
        for prefix in prefixes:
            others = [p for p in prefixes if p != prefix]
            assert not any(prefix.startswith(other) for other in others)

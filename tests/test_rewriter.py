"""
Tests for reference rewriting.
"""

import json

import pytest

from sharegraph.services.share.rewriter import (
    RemapTable, rewrite_json, rewrite_text, rewrite_toolsets,
)


class TestRemapTable:
    """Test the remap table value."""

    def test_is_read_only(self):
        remap = RemapTable(entities={'d-1': 'd-2'})
        with pytest.raises(TypeError):
            remap.entities['d-3'] = 'd-4'

    def test_copies_input(self):
        source = {'d-1': 'd-2'}
        remap = RemapTable(entities=source)
        source['d-3'] = 'd-4'
        assert remap.resolve('d-3') is None
        assert remap.resolve('d-1') == 'd-2'

    def test_with_toolsets_keeps_entities(self):
        remap = RemapTable(entities={'d-1': 'd-2'}).with_toolsets({'ts-1': {'id': 'ts-9'}})
        assert remap.resolve('d-1') == 'd-2'
        assert remap.toolsets['ts-1'] == {'id': 'ts-9'}


class TestRewriteJson:
    """Test rewriting inside structured values."""

    @pytest.mark.parametrize("value", [
        None,
        {},
        [],
        "d-abc",
        {'a': [1, 2.5, True, None, {'b': 'd-abc'}]},
        [{'entityId': 'r-1', 'nested': {'list': ['x', 'y']}}],
    ])
    def test_empty_remap_is_noop(self, value):
        result = rewrite_json(value, RemapTable())
        assert result == value

    def test_empty_remap_returns_copy(self):
        value = {'items': [{'entityId': 'd-1'}]}
        result = rewrite_json(value, RemapTable())
        result['items'].append('x')
        assert value == {'items': [{'entityId': 'd-1'}]}

    def test_rewrites_every_occurrence(self):
        remap = RemapTable(entities={'d-aaa': 'd-new1', 'ar-bbb': 'ar-new2'})
        value = {
            'contextItems': [{'entityId': 'd-aaa'}, {'entityId': 'ar-bbb'}],
            'text': 'see d-aaa and ar-bbb, then d-aaa again',
            'deep': [[{'ref': 'ar-bbb'}]],
        }

        result = rewrite_json(value, remap)

        serialized = json.dumps(result)
        assert 'd-aaa' not in serialized
        assert 'ar-bbb' not in serialized
        assert serialized.count('d-new1') == 3
        assert serialized.count('ar-new2') == 3

    def test_does_not_touch_identifiers_containing_a_key(self):
        remap = RemapTable(entities={'d-abc': 'd-xyz'})
        value = {'ids': ['d-abc', 'd-abcdef', 'xd-abc', 'd-abc-2', 'doc_d-abc']}

        result = rewrite_json(value, remap)

        assert result == {'ids': ['d-xyz', 'd-abcdef', 'xd-abc', 'd-abc-2', 'doc_d-abc']}

    @pytest.mark.parametrize("text,expected", [
        ("Sources:\nd-abc123", "Sources:\nd-new999"),
        ("\td-abc123\r\n", "\td-new999\r\n"),
        ("参考文档d-abc123，见上", "参考文档d-new999，见上"),
        ("(d-abc123).", "(d-new999)."),
        ("[d-abc123,d-abc123]", "[d-new999,d-new999]"),
        ('quoted "d-abc123"', 'quoted "d-new999"'),
        ("path/d-abc123?x=1", "path/d-new999?x=1"),
        ("d-abc123é", "d-new999é"),
    ])
    def test_identifier_next_to_any_non_id_character(self, text, expected):
        remap = RemapTable(entities={'d-abc123': 'd-new999'})
        assert rewrite_json({'context': text}, remap) == {'context': expected}

    def test_rewrites_dict_keys(self):
        remap = RemapTable(entities={'d-abc': 'd-xyz'})
        assert rewrite_json({'d-abc': {'title': 'x'}}, remap) == {'d-xyz': {'title': 'x'}}

    def test_longest_key_wins(self):
        remap = RemapTable(entities={'d-ab': 'd-short', 'd-abcd': 'd-long'})
        assert rewrite_json(['d-abcd', 'd-ab'], remap) == ['d-long', 'd-short']

    def test_replacement_is_single_pass(self):
        remap = RemapTable(entities={'d-1': 'd-2', 'd-2': 'd-3'})
        assert rewrite_json(['d-1', 'd-2'], remap) == ['d-2', 'd-3']

    def test_keys_with_regex_characters(self):
        remap = RemapTable(entities={'d.1+': 'd-2'})
        assert rewrite_json({'x': 'd.1+', 'y': 'dx1+'}, remap) == {'x': 'd-2', 'y': 'dx1+'}

    def test_input_is_not_mutated(self):
        remap = RemapTable(entities={'d-1': 'd-2'})
        value = {'entityId': 'd-1'}
        rewrite_json(value, remap)
        assert value == {'entityId': 'd-1'}


class TestRewriteText:
    """Test rewriting mention tokens in free text."""

    def test_rewrites_only_mention_ids(self):
        remap = RemapTable(entities={'d-aaa': 'd-bbb'})
        text = 'Plain d-aaa stays, @{type=document,id=d-aaa,name=Report} moves'

        result = rewrite_text(text, remap)

        assert result == 'Plain d-aaa stays, @{type=document,id=d-bbb,name=Report} moves'

    def test_unknown_ids_untouched(self):
        remap = RemapTable(entities={'d-aaa': 'd-bbb'})
        text = '@{type=resource,id=r-zzz,name=Other}'
        assert rewrite_text(text, remap) == text

    def test_name_attribute_is_never_rewritten(self):
        remap = RemapTable(entities={'d-aaa': 'd-bbb'})
        text = '@{type=document,id=d-aaa,name=d-aaa}'
        assert rewrite_text(text, remap) == '@{type=document,id=d-bbb,name=d-aaa}'

    @pytest.mark.parametrize("text", [None, "", "no mentions here", "@{type=document,id=d-aaa}"])
    def test_empty_remap_is_noop(self, text):
        assert rewrite_text(text, RemapTable()) == text


class TestRewriteToolsets:
    """Test toolset replacement."""

    def test_replaces_resolved_and_keeps_unresolved(self):
        imported = {'id': 'ts-new', 'name': 'search'}
        remap = RemapTable(toolsets={'ts-old': imported})
        toolsets = [{'id': 'ts-old', 'name': 'search'}, {'id': 'ts-other', 'name': 'mail'}]

        result = rewrite_toolsets(toolsets, remap)

        assert result == [imported, {'id': 'ts-other', 'name': 'mail'}]
        assert result[0] is not imported

    def test_non_list_passes_through(self):
        assert rewrite_toolsets(None, RemapTable()) is None
        assert rewrite_toolsets({'id': 'x'}, RemapTable()) == {'id': 'x'}

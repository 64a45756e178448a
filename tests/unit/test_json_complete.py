import pytest

from perm_extract.json_complete import complete
from perm_extract.json_parse import parse

DOCUMENT = (
    '{"name": "Ann \\"A\\" Lee", "age": 42, "tags": ["x", "y"], "ok": false, '
    '"n": null, "pos": {"lat": -1.5e3, "lng": 2}, "u": "caf\\u00e9"}'
)


class TestCompleteStrings:
    def test_closes_open_string_value(self):
        assert complete('{"name": "Da') == '{"name": "Da"}'

    def test_escaped_quote_does_not_close_string(self):
        assert complete('{"q": "say \\"hi') == '{"q": "say \\"hi"}'

    def test_drops_dangling_backslash(self):
        assert complete('{"q": "a\\') == '{"q": "a"}'

    def test_drops_partial_unicode_escape(self):
        assert complete('{"q": "caf\\u00e') == '{"q": "caf"}'

    def test_root_string(self):
        assert complete('"abc') == '"abc"'


class TestCompleteStructure:
    def test_drops_dangling_key(self):
        assert complete('{"a": 1, "b') == '{"a": 1}'

    def test_drops_key_and_colon(self):
        assert complete('{"a": 1, "b":') == '{"a": 1}'

    def test_drops_closed_key_without_colon(self):
        assert complete('{"a": "x", "b"') == '{"a": "x"}'

    def test_strips_trailing_comma(self):
        assert complete('{"a": 1,') == '{"a": 1}'
        assert complete('["a", ') == '["a"]'

    def test_closes_in_reverse_order(self):
        assert complete('{"people": [{"name": "Ann"}, {"na') == (
            '{"people": [{"name": "Ann"}, {}]}'
        )

    def test_empty_containers(self):
        assert complete("{") == "{}"
        assert complete('{"tags": [') == '{"tags": []}'

    def test_ignores_text_after_root(self):
        assert complete('{"a": 1}\n```') == '{"a": 1}'

    def test_complete_document_unchanged(self):
        assert complete(DOCUMENT) == DOCUMENT


class TestCompleteNumbersAndLiterals:
    def test_drops_number_at_end(self):
        assert complete('{"a": 12') == "{}"
        assert complete("[1, 2") == "[1]"

    def test_keeps_number_followed_by_delimiter(self):
        assert complete('{"a": 12, ') == '{"a": 12}'

    def test_drops_partial_literal(self):
        assert complete('{"ok": tru') == "{}"
        assert complete("[true, nul") == "[true]"

    def test_keeps_full_literal(self):
        assert complete('{"ok": true') == '{"ok": true}'
        assert complete("false") == "false"

    @pytest.mark.parametrize("fragment", ["", "   ", "12", "-", "tr"])
    def test_nothing_completable_is_null(self, fragment):
        assert complete(fragment) == "null"


class TestCompleteProperties:
    @pytest.mark.parametrize("end", range(len(DOCUMENT) + 1))
    def test_every_prefix_parses(self, end):
        parse(complete(DOCUMENT[:end]))

    @pytest.mark.parametrize("end", range(len(DOCUMENT) + 1))
    def test_idempotent(self, end):
        once = complete(DOCUMENT[:end])
        assert complete(once) == once

"""Unit tests for model-output JSON repair."""

import json

import pytest

from src.generation.json_repair import extract_json_object, parse_json_object, sanitize_json, strip_code_fences
from src.utils.exceptions import GenerationError


class TestStripCodeFences:
    def test_removes_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_removes_bare_fence(self):
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_leaves_unfenced_text(self):
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'


class TestExtractJsonObject:
    def test_cuts_surrounding_prose(self):
        assert extract_json_object('Here you go: {"a": {"b": 2}} Enjoy!') == '{"a": {"b": 2}}'

    def test_returns_text_without_braces(self):
        assert extract_json_object("no json here") == "no json here"


class TestSanitizeJson:
    def test_fenced_bare_key_and_trailing_comma(self):
        assert sanitize_json('```json\n{title: "Stew",}\n```') == '{"title": "Stew"}'

    def test_valid_json_is_unchanged(self):
        text = '{"title": "Herb Chicken", "servings": 4, "tags": ["quick", "easy"]}'
        assert sanitize_json(text) == text

    def test_idempotent(self):
        once = sanitize_json('{title: "Stew", servings: 2,}')
        assert sanitize_json(once) == once
        assert json.loads(once) == {"title": "Stew", "servings": 2}

    def test_trailing_comma_in_array(self):
        assert json.loads(sanitize_json('{"items": ["a", "b",]}')) == {"items": ["a", "b"]}

    def test_string_contents_are_never_modified(self):
        repaired = sanitize_json('{"note": "keep, } this", notes: "x: y,",}')
        assert json.loads(repaired) == {"note": "keep, } this", "notes": "x: y,"}

    def test_escaped_quotes_inside_strings(self):
        repaired = sanitize_json('{"quote": "say \\"hi\\", }", count: 1,}')
        assert json.loads(repaired) == {"quote": 'say "hi", }', "count": 1}


class TestParseJsonObject:
    def test_parses_repaired_object(self):
        assert parse_json_object('Sure!\n```json\n{title: "Stew",}\n```') == {"title": "Stew"}

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_raises(self, text):
        with pytest.raises(GenerationError, match="empty"):
            parse_json_object(text)

    def test_unrepairable_raises(self):
        with pytest.raises(GenerationError, match="not valid JSON"):
            parse_json_object("the model rambled instead")

    def test_non_object_raises(self):
        with pytest.raises(GenerationError, match="Expected a JSON object"):
            parse_json_object("[1, 2, 3]")

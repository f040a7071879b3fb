"""
Unit tests for JSON extraction from model text.
"""

import pytest

from ai_content_core.core.errors import ParseFailureError
from ai_content_core.parsing.extraction import (
    extract_json,
    find_balanced_json,
    iter_balanced_json,
    strip_code_fence,
    unwrap_items,
)


class TestStripCodeFence:
    """Test markdown fence removal."""

    def test_json_fence(self):
        """Verify the fenced body is returned."""
        assert strip_code_fence('Sure!\n```json\n{"a": 1}\n```\nDone') == '{"a": 1}'

    def test_bare_fence(self):
        """Verify fences without a language tag are handled."""
        assert strip_code_fence("```\n[1]\n```") == "[1]"

    def test_no_fence(self):
        """Verify unfenced text is only stripped."""
        assert strip_code_fence("  plain  ") == "plain"
        assert strip_code_fence("") == ""


class TestBalancedJson:
    """Test balanced bracket scanning."""

    def test_apostrophes_in_prose(self):
        """Verify quotes outside a candidate do not start a string."""
        assert find_balanced_json('Here\'s what I found: ["a", "b"] hope it\'s useful') == '["a", "b"]'

    def test_brackets_inside_strings(self):
        """Verify brackets inside string literals are ignored."""
        text = 'x {"title": "Use [brackets] and {braces}", "n": 1} y'
        assert find_balanced_json(text) == '{"title": "Use [brackets] and {braces}", "n": 1}'

    def test_escaped_quotes(self):
        """Verify escaped quotes do not end a string."""
        text = '{"quote": "She said \\"hi]\\""}'
        assert find_balanced_json(text) == text

    def test_multiple_candidates(self):
        """Verify candidates are yielded in order."""
        assert list(iter_balanced_json("[1] and {\"a\": 2}")) == ["[1]", '{"a": 2}']

    def test_mismatched_closer_abandons_candidate(self):
        """Verify a mismatched bracket drops the open candidate."""
        assert find_balanced_json("{ ] then [2]") == "[2]"

    def test_unbalanced(self):
        """Verify unterminated text yields nothing."""
        assert find_balanced_json('{"a": [1, 2') is None


class TestExtractJson:
    """Test decoding of the first structured candidate."""

    def test_skips_invalid_candidates(self):
        """Verify undecodable candidates are skipped."""
        assert extract_json('{not json} then {"a": 1}') == {"a": 1}

    def test_fenced_array(self):
        """Verify fenced arrays decode."""
        assert extract_json('```json\n[{"title": "x"}]\n```') == [{"title": "x"}]

    def test_number_arrays_are_not_structured(self):
        """Verify arrays without objects or strings are rejected."""
        with pytest.raises(ParseFailureError):
            extract_json("Scores: [1, 2, 3]")

    def test_no_json(self):
        """Verify plain prose raises."""
        with pytest.raises(ParseFailureError, match="no JSON"):
            extract_json("Just some words")


class TestUnwrapItems:
    """Test list extraction from decoded values."""

    def test_list_passes_through(self):
        assert unwrap_items([{"a": 1}], ("items",)) == [{"a": 1}]

    def test_object_with_list_key(self):
        """Verify known list keys are unwrapped in order of preference."""
        value = {"meta": {}, "ideas": [{"title": "x"}]}
        assert unwrap_items(value, ("ideas", "items")) == [{"title": "x"}]

    def test_single_object(self):
        """Verify other objects become a single item."""
        assert unwrap_items({"summary": "s"}, ("items",)) == [{"summary": "s"}]

    def test_scalar_rejected(self):
        with pytest.raises(ParseFailureError):
            unwrap_items("text", ("items",))

"""
Tests for path instruction resolution.
"""
import logging
from unittest.mock import patch

from hedgehog_review.instructions import PathInstruction, resolve_instructions
from hedgehog_review.patterns import matches_glob_pattern


def test_most_specific_instruction_first():
    instructions = [
        PathInstruction("**/*.ts", "A"),
        PathInstruction("src/*.ts", "B"),
        PathInstruction("src/test.ts", "C"),
    ]
    assert resolve_instructions("src/test.ts", instructions) == "C\n\nB\n\nA"


def test_equal_specificity_keeps_declaration_order():
    instructions = [
        PathInstruction("src/*.ts", "first"),
        PathInstruction("src/*.ts", "second"),
    ]
    assert resolve_instructions("src/app.ts", instructions) == "first\n\nsecond"


def test_accepts_plain_mappings():
    """Entries straight from a YAML file work without conversion."""
    instructions = [{"path": "docs/**", "instructions": "Check links."}]
    assert resolve_instructions("docs/guide/intro.md", instructions) == "Check links."


def test_no_match_or_no_instructions_yields_empty_string():
    assert resolve_instructions("src/app.ts", None) == ""
    assert resolve_instructions("src/app.ts", []) == ""
    assert resolve_instructions("src/app.ts", [PathInstruction("docs/**", "Docs")]) == ""


def test_invalid_pattern_value_is_skipped(caplog):
    instructions = [
        {"path": 42, "instructions": "broken"},
        {"instructions": "missing path"},
        PathInstruction("src/**", "valid"),
    ]
    with caplog.at_level(logging.WARNING, logger="hedgehog_review.instructions"):
        assert resolve_instructions("src/app.ts", instructions) == "valid"
    assert "invalid pattern" in caplog.text


def test_matcher_failure_excludes_only_that_entry(caplog):
    """An exception while matching one entry does not abort resolution."""

    def flaky(path, pattern):
        if pattern == "src/*.ts":
            raise RuntimeError("boom")
        return matches_glob_pattern(path, pattern)

    instructions = [PathInstruction("src/*.ts", "B"), PathInstruction("**/*.ts", "A")]
    with patch("hedgehog_review.instructions.matches_glob_pattern", side_effect=flaky):
        with caplog.at_level(logging.WARNING, logger="hedgehog_review.instructions"):
            assert resolve_instructions("src/app.ts", instructions) == "A"
    assert "boom" in caplog.text


def test_entry_without_text_contributes_nothing():
    instructions = [{"path": "src/**"}, PathInstruction("**", "catch-all")]
    assert resolve_instructions("src/app.ts", instructions) == "catch-all"

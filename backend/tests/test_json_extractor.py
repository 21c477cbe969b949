"""Tests for recovering JSON objects from provider text."""

from __future__ import annotations

import json

import pytest

from dsa_bank.services.errors import ExtractionError
from dsa_bank.services.json_extractor import (
    MalformedCompletion,
    ValidCompletion,
    extract,
    find_balanced_object,
    parse_completion,
    remove_trailing_commas,
)


@pytest.mark.parametrize(
    "payload",
    [
        {"a": 1},
        {"title": "Nested", "metadata": {"tags": ["x", "y"], "inner": {"deep": [1, {"k": None}]}}},
        {"text": "quotes \" and braces { } inside", "n": -2.5, "ok": True},
        {},
    ],
)
def test_extract_returns_valid_json_object_unchanged(payload: dict) -> None:
    text = json.dumps(payload)

    assert json.loads(extract(text)) == payload


def test_extract_keeps_braces_inside_strings() -> None:
    raw = '{"a":"}}}"}'

    assert extract(raw) == raw


def test_extract_keeps_braces_inside_strings_when_surrounded_by_prose() -> None:
    raw = 'Here you go: {"a":"}}}", "b": "{"} hope it helps }'

    assert json.loads(extract(raw)) == {"a": "}}}", "b": "{"}


def test_extract_strips_code_fence() -> None:
    assert extract('```json\n{"a":1}\n```') == '{"a":1}'


def test_extract_strips_untagged_code_fence() -> None:
    assert json.loads(extract('```\n{"a": [1, 2]}\n```')) == {"a": [1, 2]}


def test_extract_repairs_trailing_comma() -> None:
    assert json.loads(extract('{"a":1,}')) == {"a": 1}


def test_extract_repairs_trailing_comma_in_nested_array() -> None:
    raw = 'Result:\n{"tags": ["a", "b",], "meta": {"x": 1,},}\nThanks!'

    assert json.loads(extract(raw)) == {"tags": ["a", "b"], "meta": {"x": 1}}


def test_extract_escaped_quote_does_not_end_string() -> None:
    raw = 'prefix {"q": "say \\"}\\" now", "n": 2} suffix'

    assert json.loads(extract(raw)) == {"q": 'say "}" now', "n": 2}


def test_extract_returns_first_balanced_object() -> None:
    raw = 'first {"a": 1} then {"b": 2}'

    assert json.loads(extract(raw)) == {"a": 1}


def test_extract_fails_without_object() -> None:
    with pytest.raises(ExtractionError, match="no valid JSON object found"):
        extract("I could not generate a question today.")


def test_extract_fails_on_unbalanced_braces() -> None:
    with pytest.raises(ExtractionError):
        extract('{"a": {"b": 1}')


def test_extract_fails_on_unterminated_string() -> None:
    with pytest.raises(ExtractionError):
        extract('{"a": "never closed}')


def test_remove_trailing_commas_ignores_commas_inside_strings() -> None:
    assert remove_trailing_commas('{"a": ",}", "b": [1,],}') == '{"a": ",}", "b": [1]}'


def test_find_balanced_object_reports_inclusive_span() -> None:
    assert find_balanced_object('xx{"a":{"b":"}"}}yy') == (2, 16)
    assert find_balanced_object('{"a": 1') is None


def test_parse_completion_classifies_results() -> None:
    valid = parse_completion('```json\n{"title": "T"}\n```')
    malformed = parse_completion("sorry")

    assert isinstance(valid, ValidCompletion)
    assert valid.variant == {"title": "T"}
    assert isinstance(malformed, MalformedCompletion)
    assert malformed.raw_text == "sorry"
    assert "no valid JSON object" in malformed.reason


def test_parse_completion_rejects_top_level_array() -> None:
    assert isinstance(parse_completion("[1, 2, 3]"), MalformedCompletion)

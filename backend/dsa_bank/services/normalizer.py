"""
Field normalization for generated question variants.

Every rule here is total: a field that cannot be coerced into its expected
shape is dropped instead of raising.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Dict, List, Optional

ABSENT = None

TEXT_FIELDS = ("description", "question", "hint", "input_format", "output_format")
TOP_LEVEL_ARRAY_FIELDS = ("tags", "hidden_inputs", "hidden_outputs")
METADATA_ARRAY_FIELDS = (
    "tags",
    "companies",
    "subtopics",
    "prerequisites",
    "common_approaches",
    "common_mistakes",
)
METADATA_TEXT_FIELDS = ("topic_category", "time_complexity", "space_complexity", "interview_frequency")

DIFFICULTIES = ("Easy", "Medium", "Hard")

_CODE_FENCE_SPAN = re.compile(r"```[\s\S]*?```")
_LABEL_PREFIX = re.compile(r"^\s*(?:explanation|note|hint|output)\s*:\s*", re.IGNORECASE)
_CONSTRAINT_LABEL = re.compile(r"^\s*(?:constraints|note)\s*:\s*", re.IGNORECASE)
_ESCAPED_NEWLINE_RUN = re.compile(r"\\{2,}n")
# digits, comparison operators, whitespace, parentheses and common math punctuation
_CONSTRAINT_SHAPE = re.compile(r"^[\d\s<>=≤≥!()\[\],.^*+\-/]+$")
_CONSTRAINT_LINE = re.compile(r"[\d<>=≤≥]")


def collapse_escaped_newlines(value: str) -> str:
    """Turn doubly-escaped newline sequences (``\\\\n``) into a single ``\\n``."""
    return _ESCAPED_NEWLINE_RUN.sub(r"\\n", value)


def normalize_difficulty(value: Any) -> Optional[str]:
    """Case-normalize a difficulty label; unknown labels become None."""
    if not isinstance(value, str):
        return None
    cleaned = value.strip().lower()
    for difficulty in DIFFICULTIES:
        if cleaned == difficulty.lower():
            return difficulty
    return None


def clean_text(value: Any) -> Optional[str]:
    """Trim, drop code fences and a leading label. Empty or non-text -> None."""
    if not isinstance(value, str):
        return ABSENT
    text = _CODE_FENCE_SPAN.sub("", value).strip()
    text = _LABEL_PREFIX.sub("", text, count=1).strip()
    return text or ABSENT


def _element_text(element: Any) -> str:
    if isinstance(element, str):
        text = element.strip()
    else:
        text = json.dumps(element)
    return collapse_escaped_newlines(text)


def coerce_string_list(value: Any) -> List[str]:
    """
    Coerce a loosely typed array field into a list of strings.

    Accepts a real list, or a string holding a JSON-encoded array. Anything
    else normalizes to an empty list.
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except (json.JSONDecodeError, ValueError):
            return []
    if isinstance(value, (list, tuple)):
        return [_element_text(element) for element in value]
    return []


def clean_sample_input(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return ABSENT
    return collapse_escaped_newlines(value.strip())


def clean_constraints(value: Any) -> Optional[str]:
    if isinstance(value, (list, tuple)):
        value = "\n".join(str(item) for item in value if item is not None)
    if not isinstance(value, str):
        return ABSENT

    text = _CODE_FENCE_SPAN.sub("", value).strip()
    text = _CONSTRAINT_LABEL.sub("", text, count=1).strip()
    if not text:
        return ABSENT

    if not _CONSTRAINT_SHAPE.match(text):
        lines = [line.strip() for line in text.splitlines()]
        text = "\n".join(line for line in lines if line and _CONSTRAINT_LINE.search(line))
    return text or ABSENT


def _plain_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return ABSENT
    return value.strip() or ABSENT


def _coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return ABSENT
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return ABSENT
    if isinstance(value, float):
        # json.loads accepts NaN and Infinity
        if not math.isfinite(value):
            return ABSENT
        return int(value)
    return ABSENT


def _normalize_mastery(value: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(value, dict):
        return ABSENT
    mastery = dict(value)
    mastery["solve_time_threshold"] = _coerce_int(mastery.get("solve_time_threshold"))
    if "code_quality_patterns" in mastery:
        mastery["code_quality_patterns"] = coerce_string_list(mastery["code_quality_patterns"])
    awareness = mastery.get("optimization_awareness")
    if isinstance(awareness, bool):
        # the prompt template shows a boolean here, the schema stores text
        awareness = "Expected" if awareness else ABSENT
    mastery["optimization_awareness"] = _plain_text(awareness)
    return mastery


def _normalize_metadata(value: Any) -> Dict[str, Any]:
    metadata = dict(value) if isinstance(value, dict) else {}
    for field in METADATA_ARRAY_FIELDS:
        if field in metadata:
            metadata[field] = coerce_string_list(metadata[field])
    for field in METADATA_TEXT_FIELDS:
        if field in metadata:
            metadata[field] = _plain_text(metadata[field])
    if "expected_solve_time_minutes" in metadata:
        metadata["expected_solve_time_minutes"] = _coerce_int(metadata["expected_solve_time_minutes"])
    if "mastery_indicators" in metadata:
        metadata["mastery_indicators"] = _normalize_mastery(metadata["mastery_indicators"])
    return metadata


def _normalize_test_cases(value: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(value, dict):
        return ABSENT
    test_cases = dict(value)
    if "sample_input" in test_cases:
        test_cases["sample_input"] = clean_sample_input(test_cases["sample_input"])
    for field in ("hidden_inputs", "hidden_outputs"):
        if field in test_cases:
            test_cases[field] = coerce_string_list(test_cases[field])
    return test_cases


def prune_absent(value: Any) -> Any:
    """Recursively drop keys whose value is None."""
    if isinstance(value, dict):
        return {key: prune_absent(item) for key, item in value.items() if item is not None}
    return value


def normalize(variant: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize a candidate variant in place and return it."""
    if "title" in variant:
        variant["title"] = _plain_text(variant["title"])

    if "difficulty" in variant:
        variant["difficulty"] = normalize_difficulty(variant["difficulty"])

    for field in TEXT_FIELDS:
        if field in variant:
            variant[field] = clean_text(variant[field])

    for field in TOP_LEVEL_ARRAY_FIELDS:
        if field in variant:
            variant[field] = coerce_string_list(variant[field])

    if "sample_input" in variant:
        variant["sample_input"] = clean_sample_input(variant["sample_input"])

    if "constraints" in variant:
        variant["constraints"] = clean_constraints(variant["constraints"])

    if "test_cases" in variant:
        variant["test_cases"] = _normalize_test_cases(variant["test_cases"])

    if "metadata" in variant:
        variant["metadata"] = _normalize_metadata(variant["metadata"])

    pruned = prune_absent(variant)
    variant.clear()
    variant.update(pruned)
    return variant

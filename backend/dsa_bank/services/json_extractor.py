"""
JSON extraction for LLM completions.

Providers are asked for a bare JSON object but regularly wrap it in Markdown
fences, prepend a sentence of prose or leave a trailing comma behind. The
helpers here recover the first balanced JSON object from such text.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from .errors import ExtractionError

logger = logging.getLogger("backend")

_LEADING_FENCE = re.compile(r"^```(?:json)?[ \t]*\n?", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\n?[ \t]*```$")


@dataclass(frozen=True)
class ValidCompletion:
    """Completion that parsed into a JSON object."""
    variant: Dict[str, Any]
    text: str


@dataclass(frozen=True)
class MalformedCompletion:
    """Completion that could not be turned into a JSON object."""
    raw_text: str
    reason: str


ParsedCompletion = Union[ValidCompletion, MalformedCompletion]


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def strip_code_fence(text: str) -> str:
    """Remove a single leading and trailing Markdown fence (``` or ```json)."""
    stripped = _LEADING_FENCE.sub("", text, count=1)
    stripped = _TRAILING_FENCE.sub("", stripped, count=1)
    return stripped.strip()


def remove_trailing_commas(text: str) -> str:
    """Drop commas that directly precede a closing ``}`` or ``]`` outside strings."""
    out = []
    in_string = False
    escape = False
    length = len(text)
    for i, char in enumerate(text):
        if in_string:
            out.append(char)
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
            out.append(char)
            continue
        if char == ",":
            j = i + 1
            while j < length and text[j].isspace():
                j += 1
            if j < length and text[j] in "}]":
                continue
        out.append(char)
    return "".join(out)


def find_balanced_object(text: str) -> Optional[Tuple[int, int]]:
    """
    Locate the first balanced ``{...}`` span.

    Braces inside quoted strings are ignored and a backslash inside a string
    escapes exactly the next character. Returns inclusive ``(start, end)``
    indices, or None when the text never closes the first object.
    """
    depth = 0
    start = -1
    in_string = False
    escape = False

    for i, char in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            if start == -1:
                start = i
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                return start, i

    return None


def extract(raw: str) -> str:
    """
    Recover a JSON object from raw provider text.

    Returns text that parses as a single JSON object, or raises
    ExtractionError when nothing usable is found.
    """
    if not isinstance(raw, str):
        raise ExtractionError("completion is not text")

    text = raw.strip()
    if _loads_object(text) is not None:
        return text

    text = strip_code_fence(text)

    span = find_balanced_object(text)
    if span is not None:
        start, end = span
        candidate = remove_trailing_commas(text[start:end + 1])
        if _loads_object(candidate) is not None:
            return candidate
        logger.debug("Balanced span did not parse, trying loose extraction")

    first = text.find("{")
    last = text.rfind("}")
    if first != -1 and last > first:
        candidate = remove_trailing_commas(text[first:last + 1])
        if _loads_object(candidate) is not None:
            return candidate

    logger.warning(f"Could not extract JSON from response (length={len(raw)}): {raw[:200]!r}")
    raise ExtractionError("no valid JSON object found")


def parse_completion(raw: str) -> ParsedCompletion:
    """Classify a completion as a parsed JSON object or a malformed response."""
    try:
        text = extract(raw)
    except ExtractionError as exc:
        return MalformedCompletion(raw_text=raw if isinstance(raw, str) else "", reason=str(exc))
    return ValidCompletion(variant=json.loads(text), text=text)

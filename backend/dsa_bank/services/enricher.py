"""
Metadata enrichment for normalized question variants.

Fills classification metadata the provider left out using keyword heuristics
and difficulty-based defaults. No provider call is made here.
"""

from __future__ import annotations

import random
from typing import Any, Dict, Iterable, List, Optional, Tuple

GENERAL_TOPIC = "General"
PLACEHOLDER_COMPLEXITY = "O(...)"
DEFAULT_TIME_COMPLEXITY = "O(N)"
DEFAULT_SPACE_COMPLEXITY = "O(1)"

# Order matters: the first rule with a matching keyword wins.
TOPIC_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("array", "subarray", "sort", "rotate"), "Arrays"),
    (("string", "palindrome", "substring", "anagram"), "Strings"),
    (("tree", "bst", "trie"), "Trees"),
    (("graph", "dfs", "bfs", "path"), "Graphs"),
    (("dp", "dynamic programming", "memoization"), "Dynamic Programming"),
    (("search", "binary search"), "Searching"),
    (("two pointers", "sliding window"), "Two Pointers"),
    (("linked list", "node"), "Linked Lists"),
    (("stack", "queue"), "Stacks & Queues"),
    (("hash map", "hash table", "set"), "Hash Tables"),
    (("heap", "priority queue"), "Heaps"),
    (("matrix", "grid"), "Matrix"),
    (("bit manipulation", "bits"), "Bit Manipulation"),
)

SOLVE_TIME_MINUTES = {"Easy": 7, "Medium": 15, "Hard": 30}
DEFAULT_SOLVE_TIME_MINUTES = 15

MASTERY_INDICATOR_POOL: Tuple[str, ...] = (
    "Handles edge cases consistently",
    "Understands time-space trade-offs",
    "Chooses appropriate data structures",
    "Writes clean, readable code",
    "Explains the approach before coding",
    "Optimizes from brute force to an efficient solution",
    "Tests the solution with custom inputs",
    "Analyzes complexity accurately",
)


def infer_topic_category(text: str) -> str:
    """Classify a lowercase text blob by the first matching keyword rule."""
    for keywords, category in TOPIC_RULES:
        if any(keyword in text for keyword in keywords):
            return category
    return GENERAL_TOPIC


def default_solve_time(difficulty: Optional[str]) -> int:
    return SOLVE_TIME_MINUTES.get(difficulty or "", DEFAULT_SOLVE_TIME_MINUTES)


def sample_mastery_indicators(rng: random.Random) -> List[str]:
    """Pick between three and six distinct indicator phrases."""
    size = rng.randint(3, 6)
    return rng.sample(MASTERY_INDICATOR_POOL, size)


def _classification_text(variant: Dict[str, Any], tags: Iterable[str]) -> str:
    parts = [
        variant.get("title") or "",
        variant.get("question") or variant.get("description") or "",
        " ".join(tags),
    ]
    return " ".join(parts).lower()


def enrich(variant: Dict[str, Any], rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Fill missing metadata on a normalized variant in place and return it."""
    rng = rng or random.Random()
    metadata = variant.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
        variant["metadata"] = metadata

    top_level_tags = variant.get("tags") or []
    if not metadata.get("tags") and top_level_tags:
        metadata["tags"] = list(top_level_tags)

    if metadata.get("topic_category") in (None, "", GENERAL_TOPIC):
        tags = metadata.get("tags") or top_level_tags
        metadata["topic_category"] = infer_topic_category(_classification_text(variant, tags))

    if metadata.get("time_complexity") in (None, "", PLACEHOLDER_COMPLEXITY):
        metadata["time_complexity"] = DEFAULT_TIME_COMPLEXITY
    if metadata.get("space_complexity") in (None, "", PLACEHOLDER_COMPLEXITY):
        metadata["space_complexity"] = DEFAULT_SPACE_COMPLEXITY

    if metadata.get("expected_solve_time_minutes") is None:
        metadata["expected_solve_time_minutes"] = default_solve_time(variant.get("difficulty"))

    if not metadata.get("mastery_indicators"):
        minutes = metadata["expected_solve_time_minutes"]
        metadata["mastery_indicators"] = {
            "solve_time_threshold": minutes * 60,
            "code_quality_patterns": sample_mastery_indicators(rng),
            "optimization_awareness": (
                f"Reaches {metadata['time_complexity']} time and "
                f"{metadata['space_complexity']} space"
            ),
        }

    return variant

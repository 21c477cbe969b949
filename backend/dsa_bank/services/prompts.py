"""
Prompt templates for DSA question generation.
"""

import json
import random
from typing import List, Optional, Sequence

JSON_SYSTEM_PROMPT = (
    "You are a JSON generator for DSA interview questions.\n"
    "CRITICAL RULES:\n"
    "1. Output ONLY valid JSON object\n"
    "2. No markdown, no code blocks, no explanations\n"
    "3. Include all required fields exactly as specified\n"
    "4. Keep responses concise but complete\n"
    "5. Start with { and end with }"
)

# Gemini gets a looser, creativity-biased brief and keeps its temperature on retry.
CREATIVE_SYSTEM_PROMPT = (
    "You are an inventive interviewer who designs fresh, original DSA interview problems.\n"
    "Prefer unusual real-world framings over textbook classics, but keep every problem "
    "precise and solvable.\n"
    "Answer with a single valid JSON object only: no markdown, no code fences, no commentary. "
    "Start with { and end with }."
)

CREATIVE_PROVIDERS = frozenset({"gemini"})

FOCUS_VARIATIONS = (
    "Focus on ARRAY MANIPULATION and ITERATION approaches",
    "Focus on RECURSIVE and DIVIDE-AND-CONQUER approaches",
    "Focus on DYNAMIC PROGRAMMING and MEMOIZATION approaches",
    "Focus on GREEDY and OPTIMIZATION approaches",
    "Focus on GRAPH ALGORITHMS and TRAVERSAL approaches",
    "Focus on TWO-POINTER and SLIDING-WINDOW approaches",
    "Focus on HASH-MAP and SET-BASED approaches",
    "Focus on STACK and QUEUE-BASED approaches",
    "Focus on BIT-MANIPULATION approaches",
    "Focus on BINARY-SEARCH and SORTING approaches",
)

DIFFICULTY_LEVELS = ("Easy", "Medium", "Hard")
MAX_AVOID_TITLES = 50


def is_creative_provider(provider: str) -> bool:
    return provider in CREATIVE_PROVIDERS


def system_prompt_for(provider: str) -> str:
    return CREATIVE_SYSTEM_PROMPT if is_creative_provider(provider) else JSON_SYSTEM_PROMPT


def focus_for(index: int) -> str:
    return FOCUS_VARIATIONS[index % len(FOCUS_VARIATIONS)]


def pick_difficulty(difficulty: Optional[str], total_count: int, rng: random.Random) -> str:
    """
    Target difficulty for one attempt.

    With no requested difficulty and more than two questions, every attempt
    draws its own difficulty so a batch mixes levels.
    """
    if difficulty:
        return difficulty
    if total_count > 2:
        return rng.choice(DIFFICULTY_LEVELS)
    return "Medium"


def build_prompt(
    topic: str,
    difficulty: str,
    index: int,
    avoid_titles: Sequence[str] = (),
) -> str:
    variation = focus_for(index)
    topic_tag = json.dumps(topic.lower())
    topic_name = json.dumps(topic)

    avoid_block = ""
    titles: List[str] = list(avoid_titles)[:MAX_AVOID_TITLES]
    if titles:
        listed = "\n".join(f"- {title}" for title in titles)
        avoid_block = f"\n\nThese questions already exist. Do NOT reuse or paraphrase their titles:\n{listed}"

    return f"""Generate a unique DSA interview question about {topic} ({difficulty} level). Variation {index + 1}.

Return ONLY this JSON structure with NO other text:
{{
  "title": "Problem title",
  "difficulty": "{difficulty}",
  "question": "Clear problem statement",
  "input_format": "Input description",
  "output_format": "Output description",
  "constraints": "Specific constraints",
  "sample_input": "Example input",
  "sample_output": "Example output",
  "hint": "Solution hint",
  "hidden_inputs": ["test case 1", "test case 2"],
  "hidden_outputs": ["[\\"expected 1\\"]", "[\\"expected 2\\"]"],
  "metadata": {{
    "tags": [{topic_tag}],
    "topic_category": {topic_name},
    "subtopics": ["relevant subtopic"],
    "time_complexity": "O(...)",
    "space_complexity": "O(...)",
    "expected_solve_time_minutes": 15,
    "common_approaches": ["Approach 1", "Approach 2"],
    "common_mistakes": ["Mistake 1"],
    "interview_frequency": "high",
    "mastery_indicators": {{
      "solve_time_threshold": 900,
      "code_quality_patterns": ["pattern1"],
      "optimization_awareness": "What an optimal answer shows"
    }}
  }}
}}

CRITICAL: {variation}. Topic MUST be {topic_name}. Use double quotes only. No markdown. Valid JSON. Use square brackets `[]` for all JSON arrays. If an array contains other arrays, ensure they are stringified within double quotes, e.g., `"[1,2,3]"`.{avoid_block}"""

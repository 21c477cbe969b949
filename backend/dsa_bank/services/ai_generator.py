"""
AI Question Generator

Generates batches of DSA interview questions with an external LLM:
1. Prompt the selected provider (with one fallback provider)
2. Recover the JSON object from the completion
3. Normalize and enrich the fields
4. Persist every question that survives validation

Attempts run one after another. A failed attempt is recorded and the batch
moves on; earlier inserts stay committed.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from pydantic import ValidationError

from ..core.config import Settings, get_settings
from ..db.questions_repo import QuestionRepository
from ..models.question import AttemptError, GenerationResult, NormalizedQuestion
from .enricher import enrich
from .errors import (
    ExtractionError,
    ProviderError,
    QuestionPipelineError,
    QuestionValidationError,
)
from .json_extractor import MalformedCompletion, parse_completion
from .normalizer import normalize
from .prompts import build_prompt, pick_difficulty
from .providers import (
    ProviderConfig,
    ProviderFactory,
    build_provider,
    complete_with_fallback,
    resolve_provider_config,
    retry_temperature,
)

logger = logging.getLogger("backend")

OVERLOAD_BACKOFF_SECONDS = 2.0
TEST_CASE_FIELDS = ("sample_input", "sample_output", "hidden_inputs", "hidden_outputs")


def validate_required_fields(variant: Dict[str, Any], seen_titles: Set[str]) -> None:
    """Check the fields a parsed completion must carry before it is normalized."""
    title = variant.get("title")
    if not isinstance(title, str) or not title.strip():
        raise QuestionValidationError("Generated JSON missing required field: title")
    if not variant.get("difficulty"):
        raise QuestionValidationError("Generated JSON missing required field: difficulty")
    statement = variant.get("question") or variant.get("description")
    if not isinstance(statement, str) or not statement.strip():
        raise QuestionValidationError("Generated JSON missing required field: question")
    if "metadata" in variant and not isinstance(variant["metadata"], dict):
        raise QuestionValidationError("Generated JSON field 'metadata' must be an object")
    if title.strip().lower() in seen_titles:
        raise QuestionValidationError(f"Duplicate question title: {title.strip()}")


def check_structure(question: Dict[str, Any]) -> None:
    """Invariants a question must meet after normalization."""
    sample_input = question.get("sample_input")
    if sample_input is not None:
        if not isinstance(sample_input, str):
            raise QuestionValidationError("sample_input must be a string")
        if "\\\\n" in sample_input:
            raise QuestionValidationError("sample_input contains doubly-escaped newlines")
    for field in ("hidden_inputs", "hidden_outputs"):
        values = question.get(field)
        if values is None:
            continue
        if not isinstance(values, list) or not all(isinstance(value, str) for value in values):
            raise QuestionValidationError(f"{field} must be a list of strings")


class QuestionGenerator:
    """Drives a generation batch through provider, parsing, enrichment and storage."""

    def __init__(
        self,
        repository: QuestionRepository,
        *,
        settings: Optional[Settings] = None,
        provider_factory: ProviderFactory = build_provider,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._repository = repository
        self._settings = settings or get_settings()
        self._provider_factory = provider_factory
        self._rng = rng or random.Random()
        self._sleep = sleep

    async def generate(
        self,
        topic: str,
        difficulty: Optional[str],
        count: int,
        selected_model: str,
        api_key: str,
        temperature: float,
    ) -> GenerationResult:
        config = resolve_provider_config(selected_model, api_key)
        result = GenerationResult(requested=count)

        await self._repository.sync_id_sequence()
        existing_titles = await self._repository.get_existing_titles(topic=topic, difficulty=difficulty)
        seen_titles = {title.lower() for title in existing_titles}

        logger.info(f"Generating {count} '{topic}' question(s) with {config.provider}/{config.model}")

        for index in range(count):
            attempt = index + 1
            target_difficulty = pick_difficulty(difficulty, count, self._rng)
            prompt = build_prompt(topic, target_difficulty, index, existing_titles)
            try:
                variant = await self._generate_variant(config, prompt, temperature, seen_titles)
                question = self._finalize(variant, target_difficulty)
                ref = await self._repository.insert_question(question)
            except QuestionPipelineError as exc:
                logger.error(f"Error generating question {attempt}/{count}: {exc}")
                result.errors.append(AttemptError(attempt=attempt, error=exc.user_message, detail=str(exc)))
                continue
            except Exception as exc:
                logger.error(f"Unexpected error generating question {attempt}/{count}: {exc}", exc_info=True)
                result.errors.append(
                    AttemptError(attempt=attempt, error=QuestionPipelineError.user_message, detail=str(exc))
                )
                continue

            seen_titles.add(ref.title.lower())
            result.inserted.append(ref)
            logger.info(f"Question {attempt}/{count} saved with ID {ref.id}")

        logger.info(f"Generation complete: {result.message}")
        return result

    async def _generate_variant(
        self, config: ProviderConfig, prompt: str, temperature: float, seen_titles: Set[str]
    ) -> Dict[str, Any]:
        try:
            return await self._one_try(config, prompt, temperature, seen_titles)
        except (ExtractionError, QuestionValidationError, ProviderError) as exc:
            logger.warning(f"First try failed ({type(exc).__name__}): {exc}")
            if isinstance(exc, ProviderError) and exc.overloaded:
                await self._sleep(OVERLOAD_BACKOFF_SECONDS)
            return await self._one_try(config, prompt, retry_temperature(config.provider, temperature), seen_titles)

    async def _one_try(
        self, config: ProviderConfig, prompt: str, temperature: float, seen_titles: Set[str]
    ) -> Dict[str, Any]:
        text = await complete_with_fallback(
            config,
            prompt,
            temperature,
            settings=self._settings,
            factory=self._provider_factory,
        )
        parsed = parse_completion(text)
        if isinstance(parsed, MalformedCompletion):
            raise ExtractionError(parsed.reason)
        validate_required_fields(parsed.variant, seen_titles)
        return parsed.variant

    def _finalize(self, variant: Dict[str, Any], target_difficulty: str) -> NormalizedQuestion:
        normalize(variant)
        # unknown labels were dropped by normalize
        variant.setdefault("difficulty", target_difficulty)
        enrich(variant, self._rng)

        test_cases = variant.get("test_cases") or {}
        for field in TEST_CASE_FIELDS:
            if field not in variant and field in test_cases:
                variant[field] = test_cases[field]

        question = {
            "title": variant.get("title"),
            "difficulty": variant["difficulty"],
            "question": variant.get("question") or variant.get("description"),
            "metadata": variant["metadata"],
        }
        for field in ("input_format", "output_format", "constraints", "hint") + TEST_CASE_FIELDS:
            if field in variant:
                question[field] = variant[field]

        check_structure(question)
        try:
            return NormalizedQuestion.model_validate(question)
        except ValidationError as exc:
            raise QuestionValidationError(f"Generated question failed validation: {exc}") from exc

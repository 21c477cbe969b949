"""
LLM provider adapters.

A caller picks a model by a free-form selection string ("mistral-large",
"gemini", "gpt-4o" ...). It is resolved to a concrete provider/model pair and
sent to one provider implementation per request. Every implementation exposes
the same ``complete(prompt, system_prompt, temperature)`` coroutine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from openai import APIError, APIStatusError, AsyncOpenAI, RateLimitError

from ..core.config import Settings, get_settings
from .errors import ProviderError
from .prompts import is_creative_provider, system_prompt_for

logger = logging.getLogger("backend")

OPENAI = "openai"
MISTRAL = "mistral"
GEMINI = "gemini"

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_MISTRAL_MODEL = "mistral-small-latest"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
MAX_OUTPUT_TOKENS = 4096

# primary provider -> (fallback provider, fallback model)
FALLBACK_ROUTES = {
    MISTRAL: (GEMINI, DEFAULT_GEMINI_MODEL),
    GEMINI: (MISTRAL, DEFAULT_MISTRAL_MODEL),
    OPENAI: (OPENAI, DEFAULT_OPENAI_MODEL),
}

_OVERLOAD_MARKERS = ("overloaded", "rate limit", "quota", "resource_exhausted", "unavailable")


@dataclass(frozen=True)
class ProviderConfig:
    """Per-request provider selection. Never stored process-wide."""
    provider: str
    model: str
    api_key: str


class CompletionProvider(Protocol):
    async def complete(self, prompt: str, system_prompt: str, temperature: float) -> str:
        ...


ProviderFactory = Callable[[ProviderConfig], CompletionProvider]


def get_provider_from_model(model_selection: str) -> Optional[str]:
    lower = model_selection.lower()
    if "mistral" in lower:
        return MISTRAL
    if "gemini" in lower or "google" in lower:
        return GEMINI
    if "gpt" in lower or "openai" in lower:
        return OPENAI
    return None


def get_model_from_selection(model_selection: str) -> str:
    """Map a selection string to a concrete model name; unknown strings pass through."""
    lower = model_selection.lower()

    if "mistral-small" in lower:
        return "mistral-small-latest"
    if "mistral-medium" in lower:
        return "mistral-medium-latest"
    if "mistral-large" in lower:
        return "mistral-large-latest"
    if "mistral" in lower:
        return DEFAULT_MISTRAL_MODEL

    if "gemini" in lower or "google" in lower:
        return DEFAULT_GEMINI_MODEL

    if lower.startswith("gpt"):
        return model_selection
    if "openai" in lower:
        return DEFAULT_OPENAI_MODEL

    return model_selection


def resolve_provider_config(model_selection: str, api_key: str) -> ProviderConfig:
    provider = get_provider_from_model(model_selection)
    if provider is None:
        raise ProviderError(f"Unsupported AI model: {model_selection}")
    return ProviderConfig(
        provider=provider,
        model=get_model_from_selection(model_selection),
        api_key=api_key.strip(),
    )


def _looks_overloaded(message: str) -> bool:
    lower = message.lower()
    return any(marker in lower for marker in _OVERLOAD_MARKERS)


class OpenAIProvider:
    """Chat-completions provider backed by the OpenAI SDK."""

    name = OPENAI

    def __init__(self, config: ProviderConfig, *, base_url: Optional[str] = None, timeout: float = 60.0) -> None:
        self._model = config.model
        # one request per call; retries are decided by the orchestrator
        self._client = AsyncOpenAI(api_key=config.api_key, base_url=base_url, timeout=timeout, max_retries=0)

    async def complete(self, prompt: str, system_prompt: str, temperature: float) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
            )
        except RateLimitError as exc:
            raise ProviderError(f"{self.name} rate limit: {exc}", provider=self.name, overloaded=True) from exc
        except APIStatusError as exc:
            overloaded = exc.status_code in (503, 529) or _looks_overloaded(str(exc))
            raise ProviderError(
                f"{self.name} API error ({exc.status_code}): {exc}", provider=self.name, overloaded=overloaded
            ) from exc
        except APIError as exc:
            raise ProviderError(f"{self.name} API error: {exc}", provider=self.name) from exc

        if not response.choices:
            raise ProviderError(f"No choices in {self.name} response", provider=self.name)
        content = response.choices[0].message.content
        if isinstance(content, list):
            content = "".join(part if isinstance(part, str) else getattr(part, "text", "") or "" for part in content)
        return content or ""


class MistralProvider(OpenAIProvider):
    """Mistral through its OpenAI-compatible chat-completions endpoint."""

    name = MISTRAL


class GeminiProvider:
    """Gemini through the google-genai SDK."""

    name = GEMINI

    def __init__(self, config: ProviderConfig, *, timeout: float = 60.0) -> None:
        self._model = config.model
        self._client = genai.Client(
            api_key=config.api_key,
            http_options=genai_types.HttpOptions(timeout=int(timeout * 1000)),
        )

    async def complete(self, prompt: str, system_prompt: str, temperature: float) -> str:
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=prompt,
                config=genai_types.GenerateContentConfig(
                    system_instruction=system_prompt or None,
                    temperature=temperature,
                    max_output_tokens=MAX_OUTPUT_TOKENS,
                ),
            )
        except genai_errors.APIError as exc:
            overloaded = exc.code in (429, 503) or _looks_overloaded(str(exc))
            raise ProviderError(
                f"Gemini API error ({exc.code}): {exc}", provider=self.name, overloaded=overloaded
            ) from exc
        except Exception as exc:
            # transport errors surface from the underlying HTTP client
            raise ProviderError(f"Gemini request failed: {exc}", provider=self.name) from exc

        return response.text or ""


def build_provider(config: ProviderConfig, settings: Optional[Settings] = None) -> CompletionProvider:
    settings = settings or get_settings()
    timeout = settings.provider_timeout_seconds
    if config.provider == MISTRAL:
        return MistralProvider(config, base_url=settings.mistral_base_url, timeout=timeout)
    if config.provider == GEMINI:
        return GeminiProvider(config, timeout=timeout)
    if config.provider == OPENAI:
        return OpenAIProvider(config, timeout=timeout)
    raise ProviderError(f"Unsupported provider: {config.provider}")


async def complete(
    config: ProviderConfig,
    prompt: str,
    system_prompt: str,
    temperature: float,
    factory: ProviderFactory = build_provider,
) -> str:
    """Issue exactly one completion request and return its text."""
    provider = factory(config)
    text = await provider.complete(prompt, system_prompt, temperature)
    if not text or not text.strip():
        raise ProviderError("empty response", provider=config.provider)
    return text


def fallback_config(config: ProviderConfig, settings: Settings) -> Optional[ProviderConfig]:
    """Alternate provider/model pair for one retry, or None when no key is usable."""
    route = FALLBACK_ROUTES.get(config.provider)
    if route is None:
        return None
    provider, model = route
    if provider == config.provider and model == config.model:
        return None

    api_key = settings.provider_api_key(provider)
    if not api_key and provider == config.provider:
        api_key = config.api_key
    if not api_key:
        return None
    return ProviderConfig(provider=provider, model=model, api_key=api_key)


def retry_temperature(provider: str, temperature: float) -> float:
    """Creative providers keep their temperature on retry; others cool down by 0.1."""
    if is_creative_provider(provider):
        return temperature
    return max(0.0, round(temperature - 0.1, 2))


async def complete_with_fallback(
    config: ProviderConfig,
    prompt: str,
    temperature: float,
    *,
    settings: Optional[Settings] = None,
    factory: ProviderFactory = build_provider,
) -> str:
    """Call the selected provider, retrying once on the fallback pair when it fails."""
    settings = settings or get_settings()
    try:
        return await complete(config, prompt, system_prompt_for(config.provider), temperature, factory)
    except ProviderError as exc:
        fallback = fallback_config(config, settings)
        if fallback is None:
            raise
        logger.warning(
            f"{config.provider}/{config.model} failed ({exc}); falling back to {fallback.provider}/{fallback.model}"
        )
        return await complete(
            fallback,
            prompt,
            system_prompt_for(fallback.provider),
            retry_temperature(fallback.provider, temperature),
            factory,
        )

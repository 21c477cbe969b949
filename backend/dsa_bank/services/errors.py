"""Exceptions raised by the question generation pipeline."""

from __future__ import annotations


class QuestionPipelineError(Exception):
    """Base error for one generation attempt.

    ``user_message`` is the readable text shown to callers; ``str(exc)`` carries
    the internal detail.
    """

    user_message = "Question generation failed."


class ExtractionError(QuestionPipelineError):
    """Raised when no JSON object can be recovered from provider text."""

    user_message = "Could not read a JSON question from the AI response."


class QuestionValidationError(QuestionPipelineError):
    """Raised when a parsed question misses required fields or breaks invariants."""

    user_message = "The generated question was incomplete or invalid."


class ProviderError(QuestionPipelineError):
    """Raised on transport, auth, empty-response or overload failures."""

    user_message = "The AI provider request failed."

    def __init__(self, message: str, *, provider: str | None = None, overloaded: bool = False) -> None:
        super().__init__(message)
        self.provider = provider
        self.overloaded = overloaded


class PersistenceError(QuestionPipelineError):
    """Raised when the question store rejects a write or is unreachable."""

    user_message = "The generated question could not be saved."


class DuplicateQuestionError(PersistenceError):
    """Raised when a question with the same identifier already exists."""

    user_message = "A question with this identifier already exists."

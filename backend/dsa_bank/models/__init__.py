from .question import (
    AttemptError,
    Difficulty,
    GenerateQuestionsRequest,
    GenerationResult,
    InsertedRef,
    MasteryIndicators,
    NormalizedQuestion,
    QuestionCreate,
    QuestionMetadata,
)

__all__ = [
    "AttemptError", "Difficulty", "GenerateQuestionsRequest", "GenerationResult", "InsertedRef",
    "MasteryIndicators", "NormalizedQuestion", "QuestionCreate", "QuestionMetadata",
]

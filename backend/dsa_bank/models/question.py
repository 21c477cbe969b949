from typing import Annotated, Any, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, Field

from ..services.normalizer import normalize_difficulty


def _canonical_difficulty(value: Any) -> Any:
    # "easy" / "EASY" -> "Easy"; anything unknown is left for the Literal check to reject
    return normalize_difficulty(value) or value


Difficulty = Annotated[Literal["Easy", "Medium", "Hard"], BeforeValidator(_canonical_difficulty)]


class MasteryIndicators(BaseModel):
    solve_time_threshold: Optional[int] = None  # seconds
    code_quality_patterns: List[str] = []
    optimization_awareness: Optional[str] = None


class QuestionMetadata(BaseModel):
    """Classification metadata stored with every question"""
    tags: List[str] = []
    companies: List[str] = []
    topic_category: Optional[str] = None
    subtopics: List[str] = []
    prerequisites: List[str] = []
    time_complexity: Optional[str] = None
    space_complexity: Optional[str] = None
    expected_solve_time_minutes: Optional[int] = None
    common_approaches: List[str] = []
    common_mistakes: List[str] = []
    interview_frequency: Optional[str] = None
    mastery_indicators: Optional[MasteryIndicators] = None

    model_config = {"extra": "allow"}


class NormalizedQuestion(BaseModel):
    """A validated question ready to be persisted"""
    title: str = Field(..., min_length=1)
    difficulty: Difficulty
    question: str = Field(..., min_length=1)  # problem statement
    input_format: Optional[str] = None
    output_format: Optional[str] = None
    constraints: Optional[str] = None
    sample_input: Optional[str] = None
    sample_output: Optional[Any] = None     # any JSON value
    hint: Optional[str] = None
    hidden_inputs: List[str] = []
    hidden_outputs: List[Any] = []
    metadata: QuestionMetadata


class QuestionCreate(NormalizedQuestion):
    """Body of the shared-secret write endpoint; the caller chooses the id"""
    id: int


class GenerateQuestionsRequest(BaseModel):
    topic: str = Field(..., min_length=1)
    count: int = Field(1, ge=1, le=10)
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    difficulty: Optional[Difficulty] = None
    selectedAIModel: str = Field(..., min_length=1)
    apiKey: str = Field(..., min_length=1)

    model_config = {"str_strip_whitespace": True}


class InsertedRef(BaseModel):
    id: int
    title: str


class AttemptError(BaseModel):
    attempt: int            # 1-based attempt number
    error: str              # readable message
    detail: Optional[str] = None


class GenerationResult(BaseModel):
    requested: int
    inserted: List[InsertedRef] = []
    errors: List[AttemptError] = []

    @property
    def message(self) -> str:
        text = f"Inserted {len(self.inserted)} of {self.requested}"
        if self.errors:
            text += f", {len(self.errors)} failed"
        return text + "."

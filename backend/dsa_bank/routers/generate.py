import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..core.config import Settings, get_settings
from ..core.dependencies import get_question_repository
from ..db.questions_repo import QuestionRepository
from ..models.question import GenerateQuestionsRequest
from ..services.ai_generator import QuestionGenerator
from ..services.errors import PersistenceError, ProviderError
from ..services.providers import ProviderFactory, build_provider

logger = logging.getLogger("backend")
router = APIRouter()


def get_provider_factory(settings: Settings = Depends(get_settings)) -> ProviderFactory:
    def factory(config):
        return build_provider(config, settings)
    return factory


def get_question_generator(
    repository: QuestionRepository = Depends(get_question_repository),
    settings: Settings = Depends(get_settings),
    provider_factory: ProviderFactory = Depends(get_provider_factory),
) -> QuestionGenerator:
    return QuestionGenerator(repository, settings=settings, provider_factory=provider_factory)


@router.post("/generate-question")
async def generate_questions_endpoint(
    request: GenerateQuestionsRequest,
    generator: QuestionGenerator = Depends(get_question_generator),
    settings: Settings = Depends(get_settings),
):
    """
    Generate 1-10 DSA questions with the selected AI model and store them

    Returns 201 when at least one question was inserted, 500 when none were.
    Both cases list the inserted questions and the per-attempt errors.
    """
    temperature = request.temperature if request.temperature is not None else settings.default_temperature
    logger.info(f"Generating {request.count} {request.topic} questions with {request.selectedAIModel}...")

    try:
        result = await generator.generate(
            topic=request.topic,
            difficulty=request.difficulty,
            count=request.count,
            selected_model=request.selectedAIModel,
            api_key=request.apiKey,
            temperature=temperature,
        )
    except ProviderError as exc:
        # only raised before the first attempt, for a model no provider serves
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": str(exc)})
    except PersistenceError as exc:
        logger.error(f"generate-question fatal: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Internal Server Error", "error": str(exc)},
        )

    body = {
        "message": result.message,
        "inserted": [ref.model_dump() for ref in result.inserted],
        "errors": [error.model_dump() for error in result.errors],
    }
    status_code = status.HTTP_201_CREATED if result.inserted else status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=status_code, content=body)

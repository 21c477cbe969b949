import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from ..core.dependencies import get_question_repository, require_api_key
from ..db.questions_repo import MongoQuestionRepository
from ..models.question import QuestionCreate
from ..services.errors import DuplicateQuestionError, PersistenceError

logger = logging.getLogger("backend")
router = APIRouter(dependencies=[Depends(require_api_key)])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_question(
    question: QuestionCreate,
    repository: MongoQuestionRepository = Depends(get_question_repository),
):
    """
    Add a question under a caller-chosen id (requires x-api-key)
    An id that already exists is rejected with 409 and the stored question is left untouched.
    """
    try:
        row = await repository.create_question(question)
    except DuplicateQuestionError as exc:
        logger.warning(f"[create_question] {exc}")
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"message": f"Question with ID {question.id} already exists.", "error": str(exc)},
        )
    except PersistenceError as exc:
        logger.error(f"[create_question] Error adding question: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Internal Server Error", "error": str(exc)},
        )

    logger.info(f"[create_question] Question {row['id']} added: {row['title']}")
    return {"message": "Question added successfully", "data": row}


@router.get("", response_model=List[Dict[str, Any]])
async def get_questions(
    id: Optional[int] = Query(None, description="Return only the question with this id"),
    tags: Optional[str] = Query(None, description="Comma-separated tags, matches any"),
    difficulty: Optional[str] = Query(None, description="Easy, Medium or Hard (case-insensitive)"),
    repository: MongoQuestionRepository = Depends(get_question_repository),
):
    """
    List stored questions, newest first (requires x-api-key)
    """
    tag_list = [tag.strip() for tag in tags.split(",") if tag.strip()] if tags else None
    try:
        questions = await repository.find_questions(question_id=id, tags=tag_list, difficulty=difficulty)
    except PersistenceError as exc:
        logger.error(f"[get_questions] Error fetching questions: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Internal Server Error", "error": str(exc)},
        )

    if id is not None and not questions:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"message": "Question not found"})

    logger.info(f"[get_questions] Returning {len(questions)} questions")
    return questions

"""
Question persistence on MongoDB.

Questions carry an integer ``id`` drawn from the ``counters`` collection so
that stored records keep the short numeric identifiers the read API exposes.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..models.question import InsertedRef, NormalizedQuestion, QuestionCreate
from ..services.errors import DuplicateQuestionError, PersistenceError

logger = logging.getLogger("backend")

QUESTIONS_SEQUENCE = "questions"
DEFAULT_TITLE_LIMIT = 200


class QuestionRepository(Protocol):
    async def get_existing_titles(
        self, topic: Optional[str] = None, difficulty: Optional[str] = None, limit: int = DEFAULT_TITLE_LIMIT
    ) -> List[str]:
        ...

    async def sync_id_sequence(self) -> int:
        ...

    async def insert_question(self, question: NormalizedQuestion) -> InsertedRef:
        ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


def question_document(question: NormalizedQuestion, question_id: int, now: datetime) -> Dict[str, Any]:
    """Flatten a validated question into its stored shape."""
    metadata = question.metadata.model_dump(exclude_none=True)
    document = question.model_dump(exclude={"metadata", "id"}, exclude_none=True)
    document.update(
        {
            "id": question_id,
            "metadata": metadata,
            # denormalized for filtering
            "tags": metadata.get("tags", []),
            "companies": metadata.get("companies", []),
            "topic_category": metadata.get("topic_category"),
            "subtopics": metadata.get("subtopics", []),
            "created_at": now,
            "updated_at": now,
        }
    )
    return document


def serialize_question(document: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a stored document into a JSON-serializable dict."""
    result = {key: value for key, value in document.items() if key != "_id"}
    for field in ("created_at", "updated_at"):
        if isinstance(result.get(field), datetime):
            result[field] = result[field].isoformat()
    return result


class MongoQuestionRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    async def get_existing_titles(
        self, topic: Optional[str] = None, difficulty: Optional[str] = None, limit: int = DEFAULT_TITLE_LIMIT
    ) -> List[str]:
        """Most recent titles, preferring the same topic and difficulty."""
        conditions: List[Dict[str, Any]] = []
        if difficulty:
            conditions.append({"difficulty": difficulty})
        if topic:
            conditions.append({"$or": [{"topic_category": topic}, {"metadata.topic_category": topic}]})
        query = {"$and": conditions} if conditions else {}

        try:
            cursor = self._db.questions.find(query, {"title": 1}).sort("created_at", DESCENDING).limit(limit)
            documents = await cursor.to_list(length=limit)
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to load existing titles: {exc}") from exc
        return [str(doc["title"]).strip() for doc in documents if doc.get("title")]

    async def sync_id_sequence(self) -> int:
        """Move the id counter up to the highest stored id and return it."""
        try:
            latest = await self._db.questions.find_one({}, {"id": 1}, sort=[("id", DESCENDING)])
            max_id = int(latest["id"]) if latest and latest.get("id") is not None else 0
            await self._db.counters.update_one(
                {"_id": QUESTIONS_SEQUENCE}, {"$max": {"seq": max_id}}, upsert=True
            )
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to synchronize question id sequence: {exc}") from exc
        logger.info(f"Question id sequence synchronized at {max_id}")
        return max_id

    async def _next_id(self) -> int:
        counter = await self._db.counters.find_one_and_update(
            {"_id": QUESTIONS_SEQUENCE},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(counter["seq"])

    async def insert_question(self, question: NormalizedQuestion) -> InsertedRef:
        try:
            question_id = await self._next_id()
            await self._db.questions.insert_one(question_document(question, question_id, _now()))
        except DuplicateKeyError as exc:
            raise DuplicateQuestionError(f"Duplicate key: {exc}") from exc
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to insert question: {exc}") from exc
        return InsertedRef(id=question_id, title=question.title)

    async def create_question(self, question: QuestionCreate) -> Dict[str, Any]:
        """Insert a question under a caller-chosen id; existing ids are never overwritten."""
        try:
            existing = await self._db.questions.find_one({"id": question.id}, {"_id": 1})
            if existing is not None:
                raise DuplicateQuestionError(f"Question with ID {question.id} already exists.")
            document = question_document(question, question.id, _now())
            await self._db.questions.insert_one(document)
        except DuplicateKeyError as exc:
            raise DuplicateQuestionError(f"Question with ID {question.id} already exists.") from exc
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to insert question: {exc}") from exc
        return serialize_question(document)

    async def find_questions(
        self,
        question_id: Optional[int] = None,
        tags: Optional[Sequence[str]] = None,
        difficulty: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if question_id is not None:
            query["id"] = question_id
        if difficulty:
            query["difficulty"] = {"$regex": f"^{re.escape(difficulty.strip())}$", "$options": "i"}
        if tags:
            query["tags"] = {"$in": list(tags)}

        try:
            documents = await self._db.questions.find(query).sort("created_at", DESCENDING).to_list(length=None)
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to fetch questions: {exc}") from exc
        return [serialize_question(doc) for doc in documents]

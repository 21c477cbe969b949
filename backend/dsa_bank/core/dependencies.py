from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..db.mongo import get_db
from ..db.questions_repo import MongoQuestionRepository
from .config import Settings, get_settings

logger = logging.getLogger("backend")


async def require_api_key(
    x_api_key: Optional[str] = Header(default=None, alias="x-api-key"),
    settings: Settings = Depends(get_settings),
) -> None:
    """Compare the x-api-key header with the configured shared secret."""
    if not settings.api_key:
        logger.error("API_KEY environment variable is not set.")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server configuration error")

    if not x_api_key or not secrets.compare_digest(x_api_key, settings.api_key):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


async def get_question_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> MongoQuestionRepository:
    return MongoQuestionRepository(db)

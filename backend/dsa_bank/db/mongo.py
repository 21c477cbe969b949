from __future__ import annotations

from typing import AsyncGenerator

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from ..core.config import get_settings


_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None


async def connect_to_mongo() -> None:
    global _client, _db
    settings = get_settings()
    if _client is None:
        # Add connection timeout and server selection timeout to prevent hanging
        _client = AsyncIOMotorClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,  # 5 seconds to find a server
            connectTimeoutMS=10000,  # 10 seconds to connect
            socketTimeoutMS=30000,  # 30 seconds for socket operations
        )
        _db = _client[settings.mongo_db]
        # Test the connection
        await _client.admin.command("ping")


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await db.questions.create_index("id", unique=True)
    await db.questions.create_index("difficulty")
    await db.questions.create_index("tags")
    await db.questions.create_index("topic_category")
    await db.questions.create_index([("created_at", -1)])


async def close_mongo_connection() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
        _client = None
        _db = None


def get_database() -> AsyncIOMotorDatabase:
    if _db is None:
        raise RuntimeError("MongoDB has not been initialized. Call connect_to_mongo() on startup.")
    return _db


async def get_db() -> AsyncGenerator[AsyncIOMotorDatabase, None]:
    yield get_database()

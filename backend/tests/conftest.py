"""Shared fixtures: an in-memory stand-in for the Motor database and scripted providers."""

from __future__ import annotations

import copy
import json
import random
import re
from typing import Any, Callable, Dict, List, Optional, Union

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from dsa_bank.core.config import Settings
from dsa_bank.db.questions_repo import MongoQuestionRepository
from dsa_bank.services.providers import ProviderConfig


def _lookup(document: Dict[str, Any], path: str) -> Any:
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, condition in query.items():
        if key == "$and":
            if not all(_matches(document, sub) for sub in condition):
                return False
            continue
        if key == "$or":
            if not any(_matches(document, sub) for sub in condition):
                return False
            continue

        value = _lookup(document, key)
        if isinstance(condition, dict) and any(op.startswith("$") for op in condition):
            for op, argument in condition.items():
                if op == "$in":
                    values = value if isinstance(value, list) else [value]
                    if not any(item in argument for item in values):
                        return False
                elif op == "$regex":
                    flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
                    if not isinstance(value, str) or not re.search(argument, value, flags):
                        return False
        elif isinstance(value, list):
            if condition not in value:
                return False
        elif value != condition:
            return False
    return True


def _project(document: Dict[str, Any], projection: Optional[Dict[str, int]]) -> Dict[str, Any]:
    if not projection:
        return copy.deepcopy(document)
    fields = {"_id"} | {key for key, flag in projection.items() if flag}
    return {key: copy.deepcopy(value) for key, value in document.items() if key in fields}


class FakeCursor:
    def __init__(self, documents: List[Dict[str, Any]], projection: Optional[Dict[str, int]] = None) -> None:
        self._documents = documents
        self._projection = projection

    def sort(self, key: str, direction: int = 1) -> "FakeCursor":
        self._documents.sort(key=lambda doc: (doc.get(key) is not None, doc.get(key)), reverse=direction < 0)
        return self

    def limit(self, count: int) -> "FakeCursor":
        self._documents = self._documents[:count]
        return self

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        documents = self._documents if length is None else self._documents[:length]
        return [_project(doc, self._projection) for doc in documents]


class FakeCollection:
    def __init__(self, unique_field: Optional[str] = None) -> None:
        self.documents: List[Dict[str, Any]] = []
        self._unique_field = unique_field

    def find(self, query: Optional[Dict[str, Any]] = None, projection: Optional[Dict[str, int]] = None) -> FakeCursor:
        matched = [doc for doc in self.documents if _matches(doc, query or {})]
        return FakeCursor(matched, projection)

    async def find_one(self, query=None, projection=None, sort=None):
        documents = [doc for doc in self.documents if _matches(doc, query or {})]
        for key, direction in reversed(sort or []):
            documents.sort(key=lambda doc: (doc.get(key) is not None, doc.get(key)), reverse=direction < 0)
        return _project(documents[0], projection) if documents else None

    async def insert_one(self, document: Dict[str, Any]):
        field = self._unique_field
        if field and any(doc.get(field) == document.get(field) for doc in self.documents):
            raise DuplicateKeyError(f"E11000 duplicate key error dup key: {{ {field}: {document.get(field)} }}")
        document.setdefault("_id", ObjectId())
        self.documents.append(copy.deepcopy(document))

    def _upsert(self, query: Dict[str, Any], upsert: bool) -> Optional[Dict[str, Any]]:
        for doc in self.documents:
            if _matches(doc, query):
                return doc
        if not upsert:
            return None
        doc = {key: value for key, value in query.items() if not key.startswith("$")}
        self.documents.append(doc)
        return doc

    @staticmethod
    def _apply(doc: Dict[str, Any], update: Dict[str, Any]) -> None:
        for field, amount in update.get("$inc", {}).items():
            doc[field] = doc.get(field, 0) + amount
        for field, value in update.get("$max", {}).items():
            doc[field] = max(doc.get(field, value), value)
        for field, value in update.get("$set", {}).items():
            doc[field] = value

    async def update_one(self, query, update, upsert=False):
        doc = self._upsert(query, upsert)
        if doc is not None:
            self._apply(doc, update)

    async def find_one_and_update(self, query, update, upsert=False, return_document=False):
        doc = self._upsert(query, upsert)
        if doc is None:
            return None
        self._apply(doc, update)
        return copy.deepcopy(doc)


class FakeDatabase:
    def __init__(self) -> None:
        self.questions = FakeCollection(unique_field="id")
        self.counters = FakeCollection()


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def repository(fake_db: FakeDatabase) -> MongoQuestionRepository:
    return MongoQuestionRepository(fake_db)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        api_key="test-secret",
        mongo_uri="mongodb://unused",
        openai_api_key="",
        mistral_api_key="",
        gemini_api_key="",
    )


Reply = Union[str, Exception, Callable[[], str]]


class ScriptedProvider:
    """Provider double that replays canned replies and records every call."""

    def __init__(self, replies: List[Reply]) -> None:
        self.replies = list(replies)
        self.calls: List[Dict[str, Any]] = []

    def factory(self, config: ProviderConfig) -> "ScriptedProvider._Bound":
        return ScriptedProvider._Bound(self, config)

    class _Bound:
        def __init__(self, owner: "ScriptedProvider", config: ProviderConfig) -> None:
            self._owner = owner
            self._config = config

        async def complete(self, prompt: str, system_prompt: str, temperature: float) -> str:
            self._owner.calls.append(
                {
                    "provider": self._config.provider,
                    "model": self._config.model,
                    "api_key": self._config.api_key,
                    "prompt": prompt,
                    "system_prompt": system_prompt,
                    "temperature": temperature,
                }
            )
            if not self._owner.replies:
                raise AssertionError("provider called more often than scripted")
            reply = self._owner.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            if callable(reply):
                return reply()
            return reply


def question_json(title: str = "Two Sum Variant", difficulty: str = "Medium", **overrides: Any) -> str:
    payload: Dict[str, Any] = {
        "title": title,
        "difficulty": difficulty,
        "question": "Given an array of integers, return indices of two numbers adding up to target.",
        "input_format": "First line n, then n integers, then target",
        "output_format": "Two indices",
        "constraints": "2 <= n <= 10^4",
        "sample_input": "4\\\\n2 7 11 15\\\\n9",
        "sample_output": "0 1",
        "hint": "Hint: use a hash map",
        "hidden_inputs": ["2\\n3 3\\n6"],
        "hidden_outputs": ["[\"0 1\"]"],
        "metadata": {
            "tags": ["arrays"],
            "topic_category": "Arrays",
            "time_complexity": "O(...)",
            "space_complexity": "O(...)",
        },
    }
    payload.update(overrides)
    return json.dumps(payload)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)

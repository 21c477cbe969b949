"""HTTP tests for the FastAPI application with the database and providers replaced."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from dsa_bank.core.config import get_settings
from dsa_bank.core.dependencies import get_question_repository
from dsa_bank.main import app
from dsa_bank.routers.generate import get_provider_factory

from conftest import ScriptedProvider, question_json

HEADERS = {"x-api-key": "test-secret"}


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider([])


@pytest.fixture
def client(settings, repository, provider):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_question_repository] = lambda: repository
    app.dependency_overrides[get_provider_factory] = lambda: provider.factory
    # no context manager: startup would connect to MongoDB
    yield TestClient(app)
    app.dependency_overrides.clear()


def question_body(**overrides) -> dict:
    body = {
        "id": 10,
        "title": "Valid Parentheses",
        "difficulty": "Easy",
        "question": "Check whether the brackets are balanced.",
        "metadata": {"tags": ["stack", "strings"], "topic_category": "Stacks & Queues"},
    }
    body.update(overrides)
    return body


def test_health_endpoints(client) -> None:
    for path in ("/", "/health"):
        response = client.get(path)
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


def test_unknown_route_returns_message(client) -> None:
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Route /api/nope not found"}


def test_questions_require_configured_secret(client, settings) -> None:
    settings.api_key = ""

    response = client.get("/api/questions", headers=HEADERS)

    assert response.status_code == 500
    assert response.json()["message"] == "Server configuration error"


@pytest.mark.parametrize("headers", [{}, {"x-api-key": "wrong"}])
def test_questions_reject_bad_secret(client, headers) -> None:
    response = client.get("/api/questions", headers=headers)

    assert response.status_code == 401
    assert response.json()["message"] == "Unauthorized"


def test_create_question(client, fake_db) -> None:
    response = client.post("/api/questions", json=question_body(), headers=HEADERS)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Question added successfully"
    assert body["data"]["id"] == 10
    assert body["data"]["tags"] == ["stack", "strings"]
    assert fake_db.questions.documents[0]["title"] == "Valid Parentheses"


def test_create_question_conflict_keeps_original(client, fake_db) -> None:
    client.post("/api/questions", json=question_body(), headers=HEADERS)

    response = client.post("/api/questions", json=question_body(title="Overwrite"), headers=HEADERS)

    assert response.status_code == 409
    assert response.json()["message"] == "Question with ID 10 already exists."
    assert [doc["title"] for doc in fake_db.questions.documents] == ["Valid Parentheses"]


def test_create_question_validation_error(client) -> None:
    body = question_body()
    del body["title"]

    response = client.post("/api/questions", json=body, headers=HEADERS)

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "title is required" in response.json()["message"]


def test_create_question_rejects_unknown_difficulty(client) -> None:
    response = client.post("/api/questions", json=question_body(difficulty="Insane"), headers=HEADERS)

    assert response.status_code == 400


def test_read_questions_with_filters(client) -> None:
    client.post("/api/questions", json=question_body(), headers=HEADERS)
    client.post(
        "/api/questions",
        json=question_body(id=11, title="Course Schedule", difficulty="Medium", metadata={"tags": ["graphs"]}),
        headers=HEADERS,
    )

    all_rows = client.get("/api/questions", headers=HEADERS).json()
    by_tag = client.get("/api/questions", params={"tags": "graphs, heaps"}, headers=HEADERS).json()
    by_difficulty = client.get("/api/questions", params={"difficulty": "EASY"}, headers=HEADERS).json()
    by_id = client.get("/api/questions", params={"id": 11}, headers=HEADERS).json()

    assert {row["id"] for row in all_rows} == {10, 11}
    assert [row["id"] for row in by_tag] == [11]
    assert [row["id"] for row in by_difficulty] == [10]
    assert [row["title"] for row in by_id] == ["Course Schedule"]


def test_read_unknown_id_returns_404(client) -> None:
    response = client.get("/api/questions", params={"id": 404}, headers=HEADERS)

    assert response.status_code == 404
    assert response.json() == {"message": "Question not found"}


def test_read_empty_filter_result_is_empty_list(client) -> None:
    response = client.get("/api/questions", params={"tags": "nothing"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == []


def generate_body(**overrides) -> dict:
    body = {"topic": "Arrays", "count": 1, "difficulty": "medium", "selectedAIModel": "mistral-large", "apiKey": "k"}
    body.update(overrides)
    return body


def test_generate_inserts_questions(client, provider) -> None:
    provider.replies.extend([question_json("First"), question_json("Second")])

    response = client.post("/api/generate-question", json=generate_body(count=2, temperature=0.3))

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Inserted 2 of 2."
    assert body["inserted"] == [{"id": 1, "title": "First"}, {"id": 2, "title": "Second"}]
    assert body["errors"] == []
    assert [call["temperature"] for call in provider.calls] == [0.3, 0.3]


def test_generate_partial_failure_reports_both_lists(client, provider) -> None:
    provider.replies.extend(
        [
            question_json("Alpha"),
            "no json here",
            "still no json",
            question_json("Gamma"),
            "nothing",
            "nothing again",
            question_json("Epsilon"),
        ]
    )

    response = client.post("/api/generate-question", json=generate_body(count=5))

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Inserted 3 of 5, 2 failed."
    assert [row["title"] for row in body["inserted"]] == ["Alpha", "Gamma", "Epsilon"]
    assert [error["attempt"] for error in body["errors"]] == [2, 4]
    assert all(error["error"] and error["detail"] for error in body["errors"])


def test_generate_uses_default_temperature(client, provider, settings) -> None:
    provider.replies.append(question_json())

    client.post("/api/generate-question", json=generate_body())

    assert provider.calls[0]["temperature"] == settings.default_temperature


def test_generate_all_attempts_failed(client, provider) -> None:
    provider.replies.extend(["not json", "still not json"])

    response = client.post("/api/generate-question", json=generate_body())

    assert response.status_code == 500
    body = response.json()
    assert body["message"] == "Inserted 0 of 1, 1 failed."
    assert body["inserted"] == []
    assert body["errors"][0]["attempt"] == 1


def test_generate_unsupported_model(client, provider) -> None:
    response = client.post("/api/generate-question", json=generate_body(selectedAIModel="llama-3"))

    assert response.status_code == 400
    assert "Unsupported AI model" in response.json()["message"]
    assert provider.calls == []


@pytest.mark.parametrize(
    "overrides",
    [{"count": 0}, {"count": 11}, {"topic": ""}, {"temperature": 3}, {"difficulty": "extreme"}],
)
def test_generate_rejects_invalid_request(client, overrides) -> None:
    response = client.post("/api/generate-question", json=generate_body(**overrides))

    assert response.status_code == 400
    assert response.json()["success"] is False

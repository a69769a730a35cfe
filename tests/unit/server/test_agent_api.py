import asyncio

import pytest
from fastapi.testclient import TestClient
from langchain_core.language_models import FakeListChatModel

from agent_api.agents.context import build_agent_context
from agent_api.config.configuration import Settings
from agent_api.server.app import create_app, install_agent_context
from agent_api.server.history.store import SQLiteHistoryStore


def _client(tmp_path, responses=None, provider="fake"):
    settings = Settings(history_db_path=str(tmp_path / "api.db"), llm_provider=provider)
    store = SQLiteHistoryStore(settings.history_db_path)
    asyncio.run(store.init())
    model = FakeListChatModel(responses=responses) if responses else None
    app = create_app(settings)
    install_agent_context(app, build_agent_context(settings, store, chat_model=model))
    return TestClient(app)


@pytest.fixture
def client(tmp_path):
    with _client(tmp_path, ["Paris.", "About 2.1 million."]) as test_client:
        yield test_client


def test_orchestrator_thread_flow(client: TestClient):
    response = client.post("/api/agent/orchestrator", json={"question": "Capital of France?"})
    assert response.status_code == 200
    body = response.json()
    assert body["response"] == "Paris."
    thread_id = body["thread_id"]
    assert thread_id

    response = client.post(
        "/api/agent/orchestrator",
        json={"question": "Population?", "thread_id": thread_id},
    )
    assert response.status_code == 200
    assert response.json()["thread_id"] == thread_id

    response = client.get(f"/api/threads/{thread_id}")
    assert response.status_code == 200
    thread = response.json()
    assert thread["title"] == "Capital of France?"
    assert [message["role"] for message in thread["messages"]] == ["user", "assistant", "user", "assistant"]
    assert {message["content_type"] for message in thread["messages"]} == {"text"}

    response = client.patch(f"/api/threads/{thread_id}", json={"title": "Paris facts"})
    assert response.status_code == 200
    assert response.json()["title"] == "Paris facts"


def test_unknown_thread_returns_404(client: TestClient):
    assert client.get("/api/threads/does-not-exist").status_code == 404
    assert client.patch("/api/threads/does-not-exist", json={"title": "x"}).status_code == 404


def test_blank_question_is_rejected(client: TestClient):
    response = client.post("/api/agent/math", json={"question": "   "})
    assert response.status_code == 422


def test_math_endpoint(client: TestClient):
    response = client.post("/api/agent/math", json={"question": "What is 6 x 7?"})
    assert response.status_code == 200
    assert response.json() == {"response": "Paris.", "thread_id": None}


def test_geography_bad_response_is_400(tmp_path):
    with _client(tmp_path, ["no idea"]) as client:
        response = client.post("/api/agent/geography", json={"question": "Where is Paris?"})

    assert response.status_code == 400
    assert response.json()["error"] == "agent_response_invalid"


def test_geography_response(tmp_path):
    payload = '{"country": "France", "countryCode": "FR", "city": "Paris", "latitude": 48.85, "longitude": 2.35}'
    with _client(tmp_path, [payload]) as client:
        response = client.post("/api/agent/geography", json={"question": "Where is Paris?"})

    assert response.status_code == 200
    body = response.json()
    assert body["country"] == "France"
    assert body["countryCode"] == "FR"


def test_unconfigured_provider_returns_503(tmp_path):
    with _client(tmp_path, provider="azure") as client:
        response = client.post("/api/agent/math", json={"question": "1 + 1?"})

    assert response.status_code == 503
    assert response.json()["error"] == "agent_unavailable"


def test_strict_token_error_is_400(tmp_path):
    settings = Settings(history_db_path=str(tmp_path / "strict.db"), llm_provider="fake", strict_thread_tokens=True)
    store = SQLiteHistoryStore(settings.history_db_path)
    app = create_app(settings)
    install_agent_context(app, build_agent_context(settings, store, chat_model=FakeListChatModel(responses=["ok"])))

    with TestClient(app) as client:
        response = client.post(
            "/api/agent/orchestrator",
            json={"question": "hello", "thread_id": {"unexpected": 1}},
        )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_thread_token"

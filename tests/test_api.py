from fastapi.testclient import TestClient

from config import LIVE_DATA_UNAVAILABLE, SENTINEL_SOURCE
from globalrate.main import create_app
from globalrate.services.chat_service import ChatService
from globalrate.services.context_providers import ContextResult
from globalrate.services.storage import ChatStore

from conftest import FakeContextProvider, FakeLLM


def make_client(store, llm, provider):
    return TestClient(create_app(ChatService(store, llm, provider)))


def test_root_and_health(client):
    assert client.get("/").json()["message"] == "Globalrate AI API"
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["context_provider"] == "fake"


def test_chat_returns_answer_sources_and_session(client):
    response = client.post("/api/chat", json={"message": "Hello", "sessionId": "s1"})

    assert response.status_code == 200
    assert response.json() == {"answer": "ok", "sources": ["example.com"], "session_id": "s1"}


def test_chat_generates_session_id_when_missing(client):
    response = client.post("/api/chat", json={"message": "Hello"})

    assert response.status_code == 200
    session_id = response.json()["session_id"]
    assert session_id
    assert len(client.get("/api/chat/history", params={"sessionId": session_id}).json()) == 2


def test_round_trip_history_order(client):
    client.post("/api/chat", json={"message": "M1", "sessionId": "s1"})
    client.post("/api/chat", json={"message": "M2", "sessionId": "s1"})

    history = client.get("/api/chat/history", params={"sessionId": "s1"}).json()

    assert [(t["role"], t["content"]) for t in history] == [
        ("user", "M1"), ("assistant", "ok"), ("user", "M2"), ("assistant", "ok"),
    ]
    assert history[0]["sources"] is None
    assert history[1]["sources"] == ["example.com"]
    assert all(t["sessionId"] == "s1" for t in history)
    assert history[0]["createdAt"]


def test_history_never_mixes_sessions(client):
    client.post("/api/chat", json={"message": "A", "sessionId": "s1"})
    client.post("/api/chat", json={"message": "B", "sessionId": "s2"})

    s2 = client.get("/api/chat/history", params={"sessionId": "s2"}).json()
    everything = client.get("/api/chat/history").json()

    assert [t["content"] for t in s2] == ["B", "ok"]
    assert len(everything) == 4


def test_encyclopedia_citation_wins_over_model_sources(store):
    llm = FakeLLM(['{"answer": "Paris is the capital of France.", "sources": ["britannica.com"]}'])
    provider = FakeContextProvider(ContextResult(text="Paris is the capital...", source="wikipedia.org"))

    with make_client(store, llm, provider) as client:
        response = client.post(
            "/api/chat", json={"message": "What is the capital of France?", "sessionId": "s1"}
        )

    assert response.status_code == 200
    assert response.json()["sources"] == ["wikipedia.org"]


def test_no_lookup_data_gives_fallback_answer(store):
    llm = FakeLLM(['{"answer": "Paris.", "sources": ["britannica.com"]}'])
    provider = FakeContextProvider(ContextResult())

    with make_client(store, llm, provider) as client:
        body = client.post(
            "/api/chat", json={"message": "What is the capital of France?", "sessionId": "s1"}
        ).json()

    assert body["answer"].startswith(LIVE_DATA_UNAVAILABLE)
    assert body["sources"] == [SENTINEL_SOURCE]


def test_empty_message_is_client_error(client):
    response = client.post("/api/chat", json={"message": "", "sessionId": "s1"})

    assert response.status_code == 400
    assert "message" in response.json()


def test_missing_body_is_client_error(client):
    response = client.post("/api/chat")

    assert response.status_code == 400
    assert "message" in response.json()


def test_invalid_json_is_client_error(client):
    response = client.post(
        "/api/chat", content=b"{not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json() == {"message": "Request body is not valid JSON"}


def test_bad_request_stores_nothing(client, store):
    client.post("/api/chat", json={"sessionId": "s1"})

    assert store.list() == []


def test_model_failure_is_generic_500(store):
    llm = FakeLLM([RuntimeError("groq unavailable")])

    with make_client(store, llm, FakeContextProvider()) as client:
        response = client.post("/api/chat", json={"message": "Hi", "sessionId": "s1"})
        history = client.get("/api/chat/history", params={"sessionId": "s1"}).json()

    assert response.status_code == 500
    assert response.json() == {"message": "Failed to process chat request"}
    assert [t["role"] for t in history] == ["user"]


def test_service_not_started_is_503(chat_service):
    client = TestClient(create_app(chat_service))

    response = client.post("/api/chat", json={"message": "Hi"})

    assert response.status_code == 503
    assert response.json() == {"message": "Chat service not initialized"}


class AssistantWriteFailsStore(ChatStore):
    """Stores user turns normally; the assistant write raises like a dropped connection."""

    def append(self, session_id, role, content, sources=None):
        if role == "assistant":
            raise RuntimeError("database connection lost")
        return super().append(session_id, role, content, sources)


def test_storage_failure_is_generic_500_and_keeps_user_turn(engine, store):
    failing_store = AssistantWriteFailsStore(engine)

    with make_client(failing_store, FakeLLM(), FakeContextProvider()) as client:
        response = client.post("/api/chat", json={"message": "Hi", "sessionId": "s1"})

    assert response.status_code == 500
    assert response.json() == {"message": "Failed to process chat request"}
    assert [(t.role, t.content) for t in store.list("s1")] == [("user", "Hi")]


def test_empty_session_id_gets_generated(client):
    response = client.post("/api/chat", json={"message": "Hi", "sessionId": ""})

    assert response.status_code == 200
    assert response.json()["session_id"]


def test_whitespace_session_id_gets_generated(client):
    response = client.post("/api/chat", json={"message": "Hi", "sessionId": "   "})

    assert response.status_code == 200
    assert response.json()["session_id"].strip()
    assert response.json()["session_id"] != "   "


def test_session_id_is_not_stripped(client):
    response = client.post("/api/chat", json={"message": "Hi", "sessionId": " s1 "})

    assert response.json()["session_id"] == " s1 "
    history = client.get("/api/chat/history", params={"sessionId": " s1 "}).json()
    assert [t["sessionId"] for t in history] == [" s1 ", " s1 "]


def test_wrong_type_message_names_the_field(client):
    response = client.post("/api/chat", json={"message": ["a", "b"]})

    assert response.status_code == 400
    assert response.json()["message"].startswith("message:")

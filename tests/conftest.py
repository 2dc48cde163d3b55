from typing import List, Optional, Sequence, Tuple, Union

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from globalrate.main import create_app
from globalrate.services.chat_service import ChatService
from globalrate.services.context_providers import ContextProvider, ContextResult
from globalrate.services.storage import ChatStore


class FakeLLM:
    """Stands in for GroqService: returns queued replies (or raises queued exceptions)."""

    def __init__(self, replies: Optional[List[Union[str, Exception]]] = None):
        self.replies = list(replies or [])
        self.calls = []

    def complete(
        self,
        system_message: str,
        question: str,
        history: Optional[Sequence[Tuple[str, str]]] = None,
    ) -> str:
        self.calls.append({
            "system_message": system_message,
            "question": question,
            "history": list(history or []),
        })
        reply = self.replies.pop(0) if self.replies else '{"answer": "ok", "sources": ["example.com"]}'
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeContextProvider(ContextProvider):
    name = "fake"

    def __init__(self, result: Optional[ContextResult] = None, error: Optional[Exception] = None):
        self.result = result if result is not None else ContextResult()
        self.error = error
        self.queries = []

    def fetch(self, query: str) -> ContextResult:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def store(engine):
    chat_store = ChatStore(engine)
    chat_store.create_tables()
    return chat_store


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def context_provider():
    return FakeContextProvider(ContextResult(text="Some reference text.", source=None))


@pytest.fixture
def chat_service(store, llm, context_provider):
    return ChatService(store, llm, context_provider, max_history_turns=10)


@pytest.fixture
def client(chat_service):
    with TestClient(create_app(chat_service)) as test_client:
        yield test_client

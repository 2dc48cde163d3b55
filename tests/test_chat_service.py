import pytest

from config import LIVE_DATA_UNAVAILABLE, PARSE_FAULT_SOURCE, SENTINEL_SOURCE
from globalrate.services.chat_service import ChatService
from globalrate.services.context_providers import ContextResult, StaticContextProvider

from conftest import FakeContextProvider, FakeLLM


def test_process_message_stores_user_then_assistant(chat_service, store):
    response = chat_service.process_message("Hello?", "s1")

    turns = store.list("s1")
    assert [(t.role, t.content) for t in turns] == [("user", "Hello?"), ("assistant", "ok")]
    assert turns[0].sources is None
    assert turns[1].sources == ["example.com"]
    assert response.answer == "ok"
    assert response.sources == ["example.com"]
    assert response.session_id == "s1"


def test_missing_session_id_generates_one(chat_service, store):
    first = chat_service.process_message("Hi", None)
    second = chat_service.process_message("Hi", "")

    assert first.session_id
    assert second.session_id
    assert first.session_id != second.session_id
    assert len(store.list(first.session_id)) == 2


def test_prior_turns_are_sent_to_model(chat_service, llm):
    chat_service.process_message("First question", "s1")
    chat_service.process_message("Second question", "s1")

    assert llm.calls[0]["history"] == []
    assert llm.calls[1]["history"] == [("user", "First question"), ("assistant", "ok")]
    assert llm.calls[1]["question"] == "Second question"


def test_history_is_per_session(chat_service, llm):
    chat_service.process_message("In s1", "s1")
    chat_service.process_message("In s2", "s2")

    assert llm.calls[1]["history"] == []


def test_history_window_is_limited(store, context_provider):
    llm = FakeLLM()
    service = ChatService(store, llm, context_provider, max_history_turns=2)
    for i in range(3):
        service.process_message(f"q{i}", "s1")

    assert llm.calls[2]["history"] == [("user", "q1"), ("assistant", "ok")]


def test_zero_history_turns_sends_flat_prompt(store, context_provider):
    llm = FakeLLM()
    service = ChatService(store, llm, context_provider, max_history_turns=0)
    service.process_message("q0", "s1")
    service.process_message("q1", "s1")

    assert llm.calls[1]["history"] == []


def test_context_text_goes_into_system_message(store):
    llm = FakeLLM()
    provider = FakeContextProvider(ContextResult(text="Paris is the capital of France.", source="wikipedia.org"))
    service = ChatService(store, llm, provider)

    service.process_message("What is the capital of France?", "s1")

    assert provider.queries == ["What is the capital of France?"]
    assert "Paris is the capital of France." in llm.calls[0]["system_message"]


def test_citation_overrides_model_sources(store):
    llm = FakeLLM(['{"answer": "Paris.", "sources": ["britannica.com"]}'])
    provider = FakeContextProvider(ContextResult(text="Paris...", source="wikipedia.org"))

    response = ChatService(store, llm, provider).process_message("Capital of France?", "s1")

    assert response.sources == ["wikipedia.org"]
    assert store.list("s1")[1].sources == ["wikipedia.org"]


def test_failed_lookup_still_answers(store):
    llm = FakeLLM(['{"answer": "", "sources": []}'])
    provider = FakeContextProvider(error=ConnectionError("down"))

    response = ChatService(store, llm, provider).process_message("Capital of France?", "s1")

    assert response.answer.startswith(LIVE_DATA_UNAVAILABLE)
    assert response.sources == [SENTINEL_SOURCE]


def test_unparseable_reply_uses_fallback(chat_service, llm, store):
    llm.replies = ["Sorry, here is plain text."]

    response = chat_service.process_message("Hi", "s1")

    assert response.answer == "Sorry, here is plain text."
    assert response.sources == [PARSE_FAULT_SOURCE]
    assert store.list("s1")[1].content == "Sorry, here is plain text."


def test_llm_failure_propagates_and_keeps_user_turn(chat_service, llm, store):
    llm.replies = [RuntimeError("groq down")]

    with pytest.raises(RuntimeError):
        chat_service.process_message("Hi", "s1")

    assert [(t.role, t.content) for t in store.list("s1")] == [("user", "Hi")]


def test_get_history_filters_and_orders(chat_service):
    chat_service.process_message("M1", "s1")
    chat_service.process_message("other", "s2")
    chat_service.process_message("M2", "s1")

    assert [t.content for t in chat_service.get_history("s1")] == ["M1", "ok", "M2", "ok"]
    assert len(chat_service.get_history()) == 6


def test_blank_session_id_generates_one(chat_service, store):
    response = chat_service.process_message("Hi", "   ")

    assert response.session_id.strip()
    assert response.session_id != "   "
    assert store.list("   ") == []


def test_supplied_session_id_is_used_verbatim(chat_service, store):
    response = chat_service.process_message("Hi", " s1 ")

    assert response.session_id == " s1 "
    assert len(store.list(" s1 ")) == 2
    assert store.list("s1") == []


def test_static_provider_never_keeps_model_sources(store):
    llm = FakeLLM(['{"answer": "Paris.", "sources": ["made-up.com"]}'])

    response = ChatService(store, llm, StaticContextProvider()).process_message("Capital?", "s1")

    assert response.sources == [SENTINEL_SOURCE]
    assert response.answer.startswith(LIVE_DATA_UNAVAILABLE)

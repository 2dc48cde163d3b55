"""
CHAT SERVICE MODULE
===================

Processes one chat turn end to end and serves stored history. The API layer
calls this; it knows nothing about HTTP.

FLOW (process_message):
  1. Resolve the session id (the client's, or a new uuid4 hex).
  2. Load prior turns of that session (up to MAX_CHAT_HISTORY_TURNS; 0 = none).
  3. Store the user turn (sources = None).
  4. Look up context for the raw message with the configured provider.
  5. Build the system message (persona + JSON contract + context).
  6. Ask the LLM; parse the reply, falling back on a parse fault.
  7. Normalize sources and answer.
  8. Store the assistant turn and return answer, sources and session_id.

Nothing is rolled back: if the LLM call fails after step 3, the user turn
stays stored and the error propagates to the caller.
"""

import logging
import uuid
from typing import List, Optional, Tuple

from config import MAX_CHAT_HISTORY_TURNS
from globalrate.models import ChatResponse
from globalrate.services.context_providers import ContextProvider
from globalrate.services.groq_service import GroqService
from globalrate.services.prompts import build_system_prompt
from globalrate.services.reply_parser import finalize_reply, parse_model_reply, reply_or_fallback
from globalrate.services.storage import ChatStore, ChatTurn


logger = logging.getLogger("Globalrate")


def new_session_id() -> str:
    return uuid.uuid4().hex


class ChatService:
    """
    Holds the store, the LLM client and the context provider for the lifetime
    of the app. Built once at startup and handed to the routes; tests build
    one with fakes.
    """

    def __init__(
        self,
        store: ChatStore,
        llm: GroqService,
        context_provider: ContextProvider,
        max_history_turns: int = MAX_CHAT_HISTORY_TURNS,
    ):
        self.store = store
        self.llm = llm
        self.context_provider = context_provider
        self.max_history_turns = max_history_turns

    def resolve_session_id(self, session_id: Optional[str]) -> str:
        """A non-blank client id is used as is; absent or blank gets a new uuid4 hex."""
        if session_id is not None and session_id.strip():
            return session_id
        session_id = new_session_id()
        logger.info("Created new session %s", session_id)
        return session_id

    def _prior_turns(self, session_id: str) -> List[Tuple[str, str]]:
        """Last max_history_turns turns of the session as (role, content), oldest first."""
        if self.max_history_turns <= 0:
            return []
        turns = self.store.list(session_id)[-self.max_history_turns:]
        return [(turn.role, turn.content) for turn in turns]

    def process_message(self, message: str, session_id: Optional[str] = None) -> ChatResponse:
        session_id = self.resolve_session_id(session_id)
        history = self._prior_turns(session_id)

        self.store.append(session_id, "user", message, None)

        context = self.context_provider.lookup(message)
        system_message = build_system_prompt(context.text)

        raw_reply = self.llm.complete(system_message, message, history)
        reply = finalize_reply(reply_or_fallback(parse_model_reply(raw_reply)), context)

        self.store.append(session_id, "assistant", reply.answer, reply.sources)
        logger.info(
            "Session %s: answered with %s source(s) (context: %s)",
            session_id, len(reply.sources), "found" if context.found else "none",
        )
        return ChatResponse(answer=reply.answer, sources=reply.sources, session_id=session_id)

    def get_history(self, session_id: Optional[str] = None) -> List[ChatTurn]:
        """All turns oldest first; only the given session's when session_id is set."""
        return self.store.list(session_id)

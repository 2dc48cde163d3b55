"""
GROQ SERVICE MODULE
===================

Sends the chat prompt to Groq (through LangChain) and returns the raw
completion text. The model is asked for a JSON object; turning that text into
an answer is the job of reply_parser, not this module.

ROUND-ROBIN API KEYS:
  - Keys come from GROQ_API_KEY, GROQ_API_KEY_2, ... (see config).
  - Request 1 starts with key 1, request 2 with key 2, and so on, wrapping around.
  - If a key keeps failing (after with_retry), the next key is tried. Only when
    every key has failed does the last error propagate to the caller.
  - Keys are logged masked.

PROMPT:
  system message (persona + context + JSON contract)
  prior turns of the session (HumanMessage / AIMessage)
  the current user message
"""

import logging
import threading
from typing import Callable, List, Optional, Sequence, Tuple

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from langchain_groq import ChatGroq

from config import GROQ_API_KEYS, GROQ_MODEL, LLM_MAX_RETRIES, MODEL_TEMPERATURE
from globalrate.utils.retry import with_retry


logger = logging.getLogger("Globalrate")

JSON_RESPONSE_FORMAT = {"type": "json_object"}


def escape_curly_braces(text: str) -> str:
    """Double { and } so LangChain does not treat them as template variables."""
    return text.replace("{", "{{").replace("}", "}}")


def mask_api_key(key: str) -> str:
    if len(key) <= 8:
        return "****"
    return f"{key[:4]}...{key[-4:]}"


def to_history_messages(turns: Sequence[Tuple[str, str]]) -> List[BaseMessage]:
    """(role, content) pairs oldest first -> LangChain messages. Unknown roles are skipped."""
    messages: List[BaseMessage] = []
    for role, content in turns:
        if role == "user":
            messages.append(HumanMessage(content=content))
        elif role == "assistant":
            messages.append(AIMessage(content=content))
    return messages


class GroqService:
    """Chat-completion client over one or more Groq API keys."""

    def __init__(
        self,
        api_keys: Optional[List[str]] = None,
        model: str = GROQ_MODEL,
        temperature: float = MODEL_TEMPERATURE,
        max_retries: int = LLM_MAX_RETRIES,
        llm_factory: Optional[Callable[[str], BaseChatModel]] = None,
        retry_delay: float = 1.0,
    ):
        self.api_keys = list(api_keys if api_keys is not None else GROQ_API_KEYS)
        if not self.api_keys:
            raise ValueError("GROQ_API_KEY is not set. Add it to your .env file.")
        self.model = model
        self.temperature = temperature
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._llm_factory = llm_factory or self._create_groq_llm
        self._llms = [self._llm_factory(key) for key in self.api_keys]
        self._key_index = 0
        self._key_lock = threading.Lock()
        logger.info("Groq service ready: model=%s, %s API key(s)", self.model, len(self.api_keys))

    def _create_groq_llm(self, api_key: str) -> BaseChatModel:
        return ChatGroq(
            api_key=api_key,
            model=self.model,
            temperature=self.temperature,
        )

    def _next_start_index(self) -> int:
        with self._key_lock:
            start = self._key_index
            self._key_index = (self._key_index + 1) % len(self._llms)
        return start

    def _invoke_llm(
        self,
        prompt: ChatPromptTemplate,
        history: List[BaseMessage],
        question: str,
    ) -> str:
        """Run prompt | llm starting at the next key in rotation; fall through on failure."""
        start = self._next_start_index()
        last_error: Optional[Exception] = None

        for offset in range(len(self._llms)):
            index = (start + offset) % len(self._llms)
            key_label = f"groq key {index + 1} ({mask_api_key(self.api_keys[index])})"
            chain = prompt | self._llms[index].bind(response_format=JSON_RESPONSE_FORMAT)
            try:
                response = with_retry(
                    lambda: chain.invoke({"history": history, "question": question}),
                    max_retries=self.max_retries,
                    initial_delay=self.retry_delay,
                    label=key_label,
                )
                logger.info("Groq reply received using %s", key_label)
                return response.content if isinstance(response.content, str) else str(response.content)
            except Exception as e:
                last_error = e
                logger.warning("Groq call failed with %s: %s", key_label, e)

        logger.error("All %s Groq API key(s) failed", len(self._llms))
        raise last_error

    def complete(
        self,
        system_message: str,
        question: str,
        history: Optional[Sequence[Tuple[str, str]]] = None,
    ) -> str:
        """Return the raw completion text for question, given the system message and prior turns."""
        prompt = ChatPromptTemplate.from_messages([
            ("system", escape_curly_braces(system_message)),
            MessagesPlaceholder(variable_name="history"),
            ("human", "{question}"),
        ])
        return self._invoke_llm(prompt, to_history_messages(history or []), question)

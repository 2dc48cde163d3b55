"""
MODEL REPLY PARSING
===================

The system prompt asks the model for {"answer": ..., "sources": [...]}. This
module turns the raw completion text into that shape and applies the source
rules before anything is stored.

  parse_model_reply(raw)  -> ModelReply | ReplyParseFault
  reply_or_fallback(res)  -> ModelReply   (the only place a fault becomes a reply)
  finalize_reply(r, ctx)  -> ModelReply   (sources never empty, answer never blank)

A parse fault is recovered locally and never reaches the client as an error.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Union

from pydantic import ValidationError

from config import (
    FALLBACK_ERROR_ANSWER,
    LIVE_DATA_UNAVAILABLE,
    PARSE_FAULT_SOURCE,
    SENTINEL_SOURCE,
)
from globalrate.models import ModelReply
from globalrate.services.context_providers import ContextResult


logger = logging.getLogger("Globalrate")

_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?```$", re.DOTALL)


@dataclass(frozen=True)
class ReplyParseFault:
    reason: str
    raw: str


ParseResult = Union[ModelReply, ReplyParseFault]


def _strip_code_fence(text: str) -> str:
    match = _CODE_FENCE.match(text.strip())
    return match.group(1).strip() if match else text.strip()


def parse_model_reply(raw: Optional[str]) -> ParseResult:
    """Validate the completion text as a ModelReply. Never raises."""
    if raw is None or not raw.strip():
        return ReplyParseFault(reason="empty completion", raw=raw or "")
    try:
        return ModelReply.model_validate_json(_strip_code_fence(raw))
    except ValidationError as e:
        return ReplyParseFault(reason=f"{e.error_count()} validation error(s): {e.errors()[0]['msg']}", raw=raw)


def reply_or_fallback(result: ParseResult) -> ModelReply:
    """
    Pass a parsed reply through; turn a fault into the fallback reply: the raw
    text itself (if any) as the answer, and the internal-error source.
    """
    if isinstance(result, ModelReply):
        return result
    logger.warning("Model reply was not valid JSON (%s); using fallback reply", result.reason)
    answer = result.raw.strip() or FALLBACK_ERROR_ANSWER
    return ModelReply(answer=answer, sources=[PARSE_FAULT_SOURCE])


def _clean_sources(sources: List[str]) -> List[str]:
    return [s.strip() for s in sources if s and s.strip()]


def finalize_reply(reply: ModelReply, context: ContextResult) -> ModelReply:
    """
    Apply the source rules:
      - context with a citation: sources are exactly [citation], whatever the model said.
      - no context data (including the static "not available" sentence):
        sources are [SENTINEL_SOURCE] and the answer starts with that sentence.
      - otherwise: the model's sources, or [SENTINEL_SOURCE] when it gave none.
    The returned answer is never blank.
    """
    answer = reply.answer.strip()

    if context.found and context.source:
        sources = [context.source]
    elif not context.found:
        sources = [SENTINEL_SOURCE]
        if not answer.startswith(LIVE_DATA_UNAVAILABLE):
            answer = f"{LIVE_DATA_UNAVAILABLE} {answer}".strip()
    else:
        sources = _clean_sources(reply.sources) or [SENTINEL_SOURCE]

    if not answer:
        answer = LIVE_DATA_UNAVAILABLE
    return ModelReply(answer=answer, sources=sources)

"""
DATA MODELS MODULE
==================

Pydantic models used for API requests and responses, plus the shape a model
reply must have. FastAPI uses these to validate incoming JSON and to serialize
responses; the chat service uses ModelReply to validate what the LLM returned.

MODELS:
  ChatRequest   - Body of POST /api/chat (message + optional sessionId).
  ChatResponse  - Body returned by POST /api/chat (answer, sources, session_id).
  HistoryTurn   - One stored turn as returned by GET /api/chat/history.
  ErrorResponse - Body of every non-200 response ({"message": ...}).
  ModelReply    - The JSON object the LLM is told to produce (answer + sources).
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import MAX_MESSAGE_LENGTH, MAX_SESSION_ID_LENGTH


Role = Literal["user", "assistant"]


# ==============================================================================
# REQUEST / RESPONSE MODELS
# ==============================================================================

class ChatRequest(BaseModel):
    """
    Request body for POST /api/chat.

    - message: Required, 1-32,000 characters.
    - sessionId: Optional. If omitted or blank the server generates one and returns
      it as session_id; send it back on the next request to continue the conversation.
      A non-blank value is used exactly as sent.
    """
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    session_id: Optional[str] = Field(
        None, alias="sessionId", max_length=MAX_SESSION_ID_LENGTH
    )


class ChatResponse(BaseModel):
    answer: str
    sources: List[str]
    session_id: str


class HistoryTurn(BaseModel):
    """A stored turn. sources is null for user turns."""
    id: int
    sessionId: str
    role: Role
    content: str
    sources: Optional[List[str]] = None
    createdAt: Optional[datetime] = None


class ErrorResponse(BaseModel):
    message: str


# ==============================================================================
# LLM REPLY
# ==============================================================================

class ModelReply(BaseModel):
    """
    What the system prompt asks the model to return. A missing or null
    sources key becomes [] and a bare string becomes a one-item list; empty
    sources are fixed up later. A missing answer is a parse fault.
    """
    answer: str
    sources: List[str] = Field(default_factory=list)

    @field_validator("sources", mode="before")
    @classmethod
    def coerce_sources(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

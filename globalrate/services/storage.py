"""
CHAT STORAGE MODULE
===================

Relational store for chat turns (SQLModel on top of SQLAlchemy). This is the
only durable state in the backend: one row per user message and one per
assistant reply. Rows are never updated or deleted.

ORDERING:
  A conversation is all rows with the same session_id, ordered by created_at.
  Two rows written in the same request can share a timestamp on coarse clocks,
  so id (insert order) breaks ties.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Column
from sqlalchemy.engine import Engine
from sqlmodel import Field, Session, SQLModel, create_engine, select


logger = logging.getLogger("Globalrate")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatTurn(SQLModel, table=True):
    """
    One message in a conversation.
    sources is None for user turns and a non-empty list for assistant turns.
    """
    __tablename__ = "chat_turns"

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(index=True)
    role: str                        # "user" or "assistant"
    content: str
    sources: Optional[List[str]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=_utcnow)


def create_db_engine(database_url: str) -> Engine:
    """Build the engine; SQLite connections are shared across FastAPI's worker threads."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, echo=False, connect_args=connect_args)


class ChatStore:
    """Insert and ordered read of ChatTurn rows. Storage errors propagate to the caller."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def create_tables(self):
        """Create the chat_turns table if it does not exist."""
        SQLModel.metadata.create_all(self.engine)

    def append(
        self,
        session_id: str,
        role: str,
        content: str,
        sources: Optional[List[str]] = None,
    ) -> ChatTurn:
        """Persist one turn; the store assigns id and created_at. Returns the stored row."""
        turn = ChatTurn(
            session_id=session_id,
            role=role,
            content=content,
            sources=list(sources) if sources is not None else None,
        )
        with Session(self.engine) as session:
            session.add(turn)
            session.commit()
            session.refresh(turn)
        logger.debug("Stored %s turn %s for session %s", role, turn.id, session_id)
        return turn

    def list(self, session_id: Optional[str] = None) -> List[ChatTurn]:
        """
        Return turns oldest first. With session_id, only that session's turns;
        without it, the whole history across sessions.
        """
        statement = select(ChatTurn)
        if session_id is not None:
            statement = statement.where(ChatTurn.session_id == session_id)
        statement = statement.order_by(ChatTurn.created_at, ChatTurn.id)
        with Session(self.engine) as session:
            return list(session.exec(statement).all())

"""
GLOBALRATE AI MAIN API
======================

FastAPI application and HTTP endpoints.

ENDPOINTS:
  GET  /                  - Returns API name and list of endpoints.
  GET  /health            - Returns whether the chat service is initialized.
  POST /api/chat          - Send a message; returns {answer, sources, session_id}.
  GET  /api/chat/history  - Stored turns oldest first; ?sessionId= filters to one session.

SESSION:
  If sessionId is omitted on POST /api/chat, the server generates one and
  returns it as session_id; send it back to continue the conversation.

ERRORS:
  Every non-200 body is {"message": ...}. A malformed request body is a 400;
  any failure while processing a chat turn is a generic 500.

STARTUP:
  create_app() builds the app. Its lifespan creates the ChatService from
  config (database, Groq, context provider) unless one was passed in, and
  keeps it on app.state; routes receive it through get_chat_service.
"""


from contextlib import asynccontextmanager
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import CONTEXT_PROVIDER, DATABASE_URL, LOG_LEVEL
from globalrate.models import ChatRequest, ChatResponse, ErrorResponse, HistoryTurn
from globalrate.services.chat_service import ChatService
from globalrate.services.context_providers import build_context_provider
from globalrate.services.groq_service import GroqService
from globalrate.services.storage import ChatStore, ChatTurn, create_db_engine


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger("Globalrate")

CHAT_FAILED_MESSAGE = "Failed to process chat request"
HISTORY_FAILED_MESSAGE = "Failed to fetch history"


def build_chat_service() -> ChatService:
    """Create store, LLM client and context provider from config, in that order."""
    logger.info("Initializing chat store...")
    store = ChatStore(create_db_engine(DATABASE_URL))
    store.create_tables()
    logger.info("Chat store ready")

    logger.info("Initializing Groq service...")
    llm = GroqService()

    logger.info("Initializing context provider '%s'...", CONTEXT_PROVIDER)
    context_provider = build_context_provider(CONTEXT_PROVIDER)

    return ChatService(store, llm, context_provider)


def to_history_turn(turn: ChatTurn) -> HistoryTurn:
    return HistoryTurn(
        id=turn.id,
        sessionId=turn.session_id,
        role=turn.role,
        content=turn.content,
        sources=turn.sources,
        createdAt=turn.created_at,
    )


def get_chat_service(request: Request) -> ChatService:
    service = getattr(request.app.state, "chat_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Chat service not initialized")
    return service


# =========================================================================
# API ENDPOINTS
# =========================================================================

router = APIRouter()


@router.get("/")
def root():
    """Return the API name and a short description of each endpoint."""
    return {
        "message": "Globalrate AI API",
        "endpoints": {
            "/api/chat": "Send a message (POST {message, sessionId?})",
            "/api/chat/history": "Get stored turns (optional ?sessionId=)",
            "/health": "System health check",
        },
    }


@router.get("/health")
def health(request: Request):
    service = getattr(request.app.state, "chat_service", None)
    return {
        "status": "healthy" if service is not None else "starting",
        "chat_service": service is not None,
        "context_provider": service.context_provider.name if service is not None else None,
    }


@router.post(
    "/api/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def chat(request: ChatRequest, chat_service: ChatService = Depends(get_chat_service)):
    """
    Send a message to Globalrate AI.

    REQUEST BODY:
    {
        "message": "What is the capital of France?",
        "sessionId": "optional-session-id"
    }

    RESPONSE:
    {
        "answer": "Paris is the capital of France.",
        "sources": ["wikipedia.org"],
        "session_id": "session-id-here"
    }

    The user turn is stored before the model is called, so on a 500 it may
    already be in the history.
    """
    try:
        return chat_service.process_message(request.message, request.session_id)
    except Exception as e:
        logger.error(f"Error processing chat: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"message": CHAT_FAILED_MESSAGE})


@router.get("/api/chat/history", response_model=List[HistoryTurn])
def get_chat_history(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    chat_service: ChatService = Depends(get_chat_service),
):
    """All stored turns oldest first; only one session's when sessionId is given."""
    try:
        return [to_history_turn(turn) for turn in chat_service.get_history(session_id)]
    except Exception as e:
        logger.error(f"Error retrieving history: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"message": HISTORY_FAILED_MESSAGE})


# -------------------------------------------------------------------------
# ERROR HANDLERS
# -------------------------------------------------------------------------

async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors and errors[0].get("type") == "json_invalid":
        message = "Request body is not valid JSON"
    elif errors:
        first = errors[0]
        # Integer parts are list indexes or JSON offsets, not field names.
        field = ".".join(
            str(part) for part in first.get("loc", ()) if part != "body" and not isinstance(part, int)
        )
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    logger.warning("Rejected request to %s: %s", request.url.path, message)
    return JSONResponse(status_code=400, content={"message": message})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


# -------------------------------------------------------------------------
# APP FACTORY
# -------------------------------------------------------------------------

def create_app(chat_service: Optional[ChatService] = None) -> FastAPI:
    """
    Build the FastAPI app. Pass chat_service to use an already built service
    (tests do this with fakes); otherwise it is built from config at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("=" * 60)
        logger.info("Globalrate AI - Starting Up...")
        logger.info("=" * 60)
        try:
            app.state.chat_service = chat_service or build_chat_service()
        except Exception as e:
            logger.error(f"Fatal error during startup: {e}", exc_info=True)
            raise
        logger.info(
            "Globalrate AI is online (context provider: %s)",
            app.state.chat_service.context_provider.name,
        )
        yield
        app.state.chat_service = None
        logger.info("Globalrate AI shut down. Goodbye!")

    app = FastAPI(
        title="Globalrate AI API",
        description="Real-time AI search and chat assistant",
        lifespan=lifespan,
    )

    # Allow any origin so a frontend on another port can call this API.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.include_router(router)
    return app


app = create_app()

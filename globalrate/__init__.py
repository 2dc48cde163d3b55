"""
GLOBALRATE AI APPLICATION PACKAGE
=================================

Backend for the Globalrate AI chat assistant: a user sends a message, the
server optionally looks up supporting context, asks the language model for a
JSON answer with sources, stores both turns and returns the answer.

FILE STRUCTURE:
  globalrate/
    __init__.py   - This file; marks 'globalrate' as a package.
    main.py       - FastAPI app factory and HTTP endpoints (/api/chat, /api/chat/history, /health).
    models.py     - Pydantic models for API requests, responses and parsed model replies.
    services/     - Business logic: chat turns, Groq LLM, context providers, prompt, storage.
    utils/        - Helpers: retry with backoff.
"""

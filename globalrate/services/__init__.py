"""
SERVICES PACKAGE
================

Business logic lives here. The API layer (globalrate.main) calls these
services; they don't handle HTTP, only chat flow, LLM calls, lookups and data.

MODULES:
    chat_service      - One chat turn end to end; history.
    groq_service      - Groq chat completion with round-robin API keys.
    context_providers - static / duckduckgo / tavily / wikipedia lookups.
    prompts           - System message builder.
    reply_parser      - Model JSON reply -> answer + sources, with fallback.
    storage           - SQLModel chat_turns table and ChatStore.
"""

"""
CONFIGURATION MODULE
====================

PURPOSE:
  Central place for all Globalrate AI settings: database URL, API keys, model
  name, which context provider to use, and the assistant system prompt.

WHAT THIS FILE DOES:
  - Loads environment variables from .env (so API keys stay out of code).
  - Resolves DATABASE_URL (defaults to a SQLite file in database/).
  - Exposes GROQ_API_KEYS, GROQ_MODEL and TAVILY_API_KEY for the LLM and lookups.
  - Picks the context provider (static, duckduckgo, tavily, wikipedia).
  - Holds the fixed fallback strings and the system prompt template.

USAGE:
  Import what you need: `from config import DATABASE_URL, GROQ_MODEL, SENTINEL_SOURCE`
  All services import from here so behaviour is consistent.
"""

import os
from pathlib import Path
from dotenv import load_dotenv


# -----------------------------------------------------------------------------
# ENVIRONMENT
# -----------------------------------------------------------------------------
load_dotenv()

BASE_DIR = Path(__file__).parent


# ============================================================================
# DATABASE
# ============================================================================
# Any SQLAlchemy URL works. Hosted Postgres often hands out postgres://, which
# SQLAlchemy no longer accepts, so it is rewritten to postgresql://.

DATABASE_DIR = BASE_DIR / "database"


def _resolve_database_url() -> str:
    url = os.getenv("DATABASE_URL", "").strip()
    if not url:
        DATABASE_DIR.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{DATABASE_DIR / 'chat.db'}"
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


DATABASE_URL = _resolve_database_url()


# ============================================================================
# GROQ API CONFIGURATION
# ============================================================================
# One key (GROQ_API_KEY) or several: GROQ_API_KEY_2, GROQ_API_KEY_3, ...
# Requests rotate through the keys; a failing key falls through to the next.

def _load_groq_api_keys() -> list:
    """
    Read GROQ_API_KEY, then GROQ_API_KEY_2, GROQ_API_KEY_3, ... until a number
    has no value. Returns the non-empty keys (may be empty).
    """
    keys = []
    first = os.getenv("GROQ_API_KEY", "").strip()
    if first:
        keys.append(first)
    i = 2
    while True:
        k = os.getenv(f"GROQ_API_KEY_{i}", "").strip()
        if not k:
            break
        keys.append(k)
        i += 1
    return keys


GROQ_API_KEYS = _load_groq_api_keys()
GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
MODEL_TEMPERATURE = float(os.getenv("MODEL_TEMPERATURE", "0.2"))
# Attempts per key before moving on to the next key.
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "2"))


# ============================================================================
# CONTEXT PROVIDER
# ============================================================================
# static     - no network call; always "live data not available".
# duckduckgo - DuckDuckGo Instant Answer API (no key).
# tavily     - Tavily search API (needs TAVILY_API_KEY).
# wikipedia  - Wikipedia article extract (no key).

CONTEXT_PROVIDER = os.getenv("CONTEXT_PROVIDER", "static").strip().lower()
TAVILY_API_KEY = os.getenv("TAVILY_API_KEY", "")
CONTEXT_LOOKUP_TIMEOUT = float(os.getenv("CONTEXT_LOOKUP_TIMEOUT", "10"))

DUCKDUCKGO_API_URL = "https://api.duckduckgo.com/"
WIKIPEDIA_API_URL = "https://en.wikipedia.org/w/api.php"
WIKIPEDIA_SOURCE = "wikipedia.org"


# ============================================================================
# CHAT LIMITS
# ============================================================================
# Prior turns of the same session sent to the model. 0 = flat single-turn prompt.
MAX_CHAT_HISTORY_TURNS = int(os.getenv("MAX_CHAT_HISTORY_TURNS", "10"))
MAX_MESSAGE_LENGTH = 32_000
MAX_SESSION_ID_LENGTH = 128

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


# ============================================================================
# FALLBACK STRINGS
# ============================================================================
LIVE_DATA_UNAVAILABLE = "Live confirmed data is not available right now."
SENTINEL_SOURCE = "Live confirmed data is not available right now"
FALLBACK_ERROR_ANSWER = "Error generating response."
PARSE_FAULT_SOURCE = "Internal Error"


# ============================================================================
# ASSISTANT PERSONALITY
# ============================================================================
ASSISTANT_NAME = (os.getenv("ASSISTANT_NAME", "").strip() or "Globalrate AI")
ASSISTANT_CREATOR = (os.getenv("ASSISTANT_CREATOR", "").strip() or "Shreesh Shukla")

# Placeholders filled by globalrate.services.prompts.build_system_prompt.
# Literal braces in the JSON example are doubled for str.format.
SYSTEM_PROMPT_TEMPLATE = """You are {assistant_name}, a professional real-time AI search and chat assistant.
Your job is to deliver concise, accurate, and research-grade answers with verified sources.

==============================
1. CORE IDENTITY
==============================
- Name: {assistant_name}
- Description: Real-time AI Search & Chat Assistant
- Languages supported: English, Hindi, Hinglish
- Tone: Neutral, factual, trustworthy

When asked about yourself, reply:
"I am {assistant_name}, your real-time AI search and chat assistant."

==============================
2. CREATOR IDENTITY (STRICT)
==============================
If asked who created you or who your owner is (in any language), respond EXACTLY:
"I was created by {assistant_creator}."

No extra text. No variation.

==============================
3. RESPONSE RULES
==============================
- Be concise and factual
- No hallucinations or assumptions
- No HTML output
- Clean plain text or markdown only
- Maintain context for follow-up questions

If verified or live data is NOT available, respond:
"{live_data_unavailable}"

==============================
4. INFORMATION MODES (Auto-detect)
==============================
- Quick Answer: short and direct
- Deep Research: structured, detailed, examples
- News Mode: latest updates with sources
- Study Mode: simple explanations
- Tech Mode: technical depth
- Market / Startup Mode: stocks, crypto, startups

==============================
5. REAL-TIME DATA
==============================
{time_info}
- Use the provided Context Data below when required.
- Summarize only relevant information.
- Never fabricate sources.

Context Data:
{context}

==============================
6. SOURCES (MANDATORY)
==============================
Every response MUST include reliable sources from the Context Data.
If no verified source is available in Context Data:
"{sentinel_source}"

==============================
7. OUTPUT FORMAT (STRICT JSON)
==============================
Always respond in the following JSON format ONLY:

{{
  "answer": "Concise, factual answer here",
  "sources": ["domain1.com", "domain2.com"]
}}

Rules:
- No extra keys
- No explanations outside JSON
- Sources array must NEVER be empty
"""

"""
PROMPT BUILDER
==============

Builds the single system message sent with every chat request: persona,
creator answer, response rules, the current date and time, the context text
returned by the context provider, and the strict JSON output contract.
"""

import datetime
from typing import Optional

from config import (
    ASSISTANT_CREATOR,
    ASSISTANT_NAME,
    LIVE_DATA_UNAVAILABLE,
    SENTINEL_SOURCE,
    SYSTEM_PROMPT_TEMPLATE,
)


def format_time_information(now: datetime.datetime) -> str:
    """Current date/time lines so the model can answer "what day is it?"."""
    return (
        f"- Current date: {now.strftime('%A, %d %B %Y')}\n"
        f"- Current time: {now.strftime('%H:%M:%S')}"
    )


def build_system_prompt(
    context_text: Optional[str],
    now: Optional[datetime.datetime] = None,
) -> str:
    """
    Return the system message. context_text is embedded verbatim; when the
    lookup produced nothing the "live data not available" sentence is used.
    """
    now = now or datetime.datetime.now()
    context = context_text.strip() if context_text and context_text.strip() else LIVE_DATA_UNAVAILABLE
    return SYSTEM_PROMPT_TEMPLATE.format(
        assistant_name=ASSISTANT_NAME,
        assistant_creator=ASSISTANT_CREATOR,
        live_data_unavailable=LIVE_DATA_UNAVAILABLE,
        sentinel_source=SENTINEL_SOURCE,
        time_info=format_time_information(now),
        context=context,
    )

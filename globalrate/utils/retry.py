"""
RETRY UTILITY
=============

Calls a function and, if it raises, retries with exponential backoff. Used
around each Groq call so a transient rate limit or network blip on one key
does not immediately fail the request.

Example:
  content = with_retry(lambda: chain.invoke(inputs), max_retries=2, label="groq key 1")
"""

import logging
import time
from typing import Callable, Optional, TypeVar


logger = logging.getLogger("Globalrate")

T = TypeVar("T")


def with_retry(
    fn: Callable[[], T],
    max_retries: int = 2,
    initial_delay: float = 1.0,
    label: Optional[str] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Execute fn(). If it raises, wait and try again; the delay doubles each time.
    max_retries counts every attempt including the first. After the last
    attempt the exception is re-raised unchanged.
    """
    attempts = max(1, max_retries)
    delay = initial_delay
    name = label or getattr(fn, "__name__", "call")

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as e:
            if attempt == attempts:
                raise
            logger.warning(
                "Attempt %s/%s of %s failed. Retrying in %.1fs: %s",
                attempt, attempts, name, delay, e,
            )
            sleep(delay)
            delay *= 2

"""
CONTEXT PROVIDERS MODULE
========================

Before the LLM is called, the user's message is looked up in one external
source and the result is embedded in the system prompt. Which source is used
is configuration (CONTEXT_PROVIDER), not code:

  static     - no network call; always "live data not available", no citation.
  duckduckgo - DuckDuckGo Instant Answer API; first abstract, else first related topic.
  tavily     - Tavily search; content of the first result.
  wikipedia  - Wikipedia intro extract for the page titled like the query.

Every provider makes at most one outbound request per message and never
raises: lookup() turns any transport or parse fault into an empty result so
the user still gets an answer (just without context).

Third-party JSON is validated with pydantic models; anything that does not
match is treated as "no data".
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Type
from urllib.parse import urlparse

import requests
from pydantic import BaseModel, ConfigDict, Field
from tavily import TavilyClient

from config import (
    CONTEXT_LOOKUP_TIMEOUT,
    DUCKDUCKGO_API_URL,
    LIVE_DATA_UNAVAILABLE,
    TAVILY_API_KEY,
    WIKIPEDIA_API_URL,
    WIKIPEDIA_SOURCE,
)


logger = logging.getLogger("Globalrate")

USER_AGENT = "GlobalrateAI/1.0 (chat assistant context lookup)"


@dataclass(frozen=True)
class ContextResult:
    """
    text:   reference text for the prompt, or None when the lookup found nothing.
    source: the single citation for that text, or None.

    The static "live data not available" sentence is prompt text, not data,
    so it does not count as found.
    """
    text: Optional[str] = None
    source: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.text is not None and self.text != LIVE_DATA_UNAVAILABLE


EMPTY_RESULT = ContextResult()


def _host(url: Optional[str]) -> Optional[str]:
    """'https://www.example.com/a' -> 'example.com'."""
    if not url:
        return None
    host = urlparse(url).netloc.lower()
    if host.startswith("www."):
        host = host[4:]
    return host or None


# ==============================================================================
# BASE CLASS
# ==============================================================================

class ContextProvider:
    """Given a query string, return best-effort reference text and zero or one citation."""

    name = "base"

    def fetch(self, query: str) -> ContextResult:
        raise NotImplementedError

    def lookup(self, query: str) -> ContextResult:
        """fetch() with every fault mapped to an empty result."""
        try:
            result = self.fetch(query)
        except Exception as e:
            logger.warning("Context lookup (%s) failed for %r: %s", self.name, query, e)
            return EMPTY_RESULT
        if result.found:
            logger.info("Context lookup (%s) found data for %r", self.name, query)
        else:
            logger.info("Context lookup (%s) found nothing for %r", self.name, query)
        return result


class StaticContextProvider(ContextProvider):
    """No lookup at all; the prompt tells the model live data is unavailable."""

    name = "static"

    def fetch(self, query: str) -> ContextResult:
        return ContextResult(text=LIVE_DATA_UNAVAILABLE, source=None)


# ==============================================================================
# DUCKDUCKGO
# ==============================================================================

class _DuckDuckGoTopic(BaseModel):
    model_config = ConfigDict(extra="ignore")

    Text: str = ""
    FirstURL: str = ""


class _DuckDuckGoResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    AbstractText: str = ""
    AbstractURL: str = ""
    # Grouped topics ({"Name": ..., "Topics": [...]}) validate to an empty Text and are skipped.
    RelatedTopics: List[_DuckDuckGoTopic] = Field(default_factory=list)


class DuckDuckGoContextProvider(ContextProvider):
    name = "duckduckgo"

    def __init__(self, api_url: str = DUCKDUCKGO_API_URL, timeout: float = CONTEXT_LOOKUP_TIMEOUT):
        self.api_url = api_url
        self.timeout = timeout

    def fetch(self, query: str) -> ContextResult:
        response = requests.get(
            self.api_url,
            params={"q": query, "format": "json", "no_html": 1, "skip_disambig": 1},
            headers={"User-Agent": USER_AGENT},
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = _DuckDuckGoResponse.model_validate(response.json())

        if data.AbstractText.strip():
            return ContextResult(
                text=data.AbstractText.strip(),
                source=_host(data.AbstractURL) or "duckduckgo.com",
            )
        for topic in data.RelatedTopics:
            if topic.Text.strip():
                return ContextResult(
                    text=topic.Text.strip(),
                    source=_host(topic.FirstURL) or "duckduckgo.com",
                )
        return EMPTY_RESULT


# ==============================================================================
# TAVILY
# ==============================================================================

class _TavilyResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    content: str = ""
    url: str = ""


class _TavilyResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    results: List[_TavilyResult] = Field(default_factory=list)


class TavilyContextProvider(ContextProvider):
    """
    One Tavily search per message. If TAVILY_API_KEY is not set the client is
    None and every lookup is empty; the user still gets an answer.
    """

    name = "tavily"

    def __init__(self, api_key: str = TAVILY_API_KEY, client=None):
        if client is not None:
            self.client = client
        elif api_key:
            self.client = TavilyClient(api_key=api_key)
            logger.info("Tavily search client initialized successfully")
        else:
            self.client = None
            logger.warning("TAVILY_API_KEY not set. Tavily lookups will return no data.")

    def fetch(self, query: str) -> ContextResult:
        if not self.client:
            return EMPTY_RESULT

        raw = self.client.search(
            query=query,
            search_depth="basic",
            max_results=3,
            include_answer=False,
            include_raw_content=False,
        )
        data = _TavilyResponse.model_validate(raw)
        for result in data.results:
            if result.content.strip():
                return ContextResult(text=result.content.strip(), source=_host(result.url))
        logger.warning("No Tavily search results found for query: %s", query)
        return EMPTY_RESULT


# ==============================================================================
# WIKIPEDIA
# ==============================================================================

class _WikipediaPage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    pageid: Optional[int] = None
    title: str = ""
    extract: Optional[str] = None
    missing: Optional[str] = None


class _WikipediaQuery(BaseModel):
    model_config = ConfigDict(extra="ignore")

    pages: Dict[str, _WikipediaPage] = Field(default_factory=dict)


class _WikipediaResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    query: _WikipediaQuery = Field(default_factory=_WikipediaQuery)


class WikipediaContextProvider(ContextProvider):
    """
    Plain-text intro of the Wikipedia page matching the query (redirects
    followed). A "-1" page key or a "missing" marker means there is no such
    page. The citation is always wikipedia.org.
    """

    name = "wikipedia"

    def __init__(self, api_url: str = WIKIPEDIA_API_URL, timeout: float = CONTEXT_LOOKUP_TIMEOUT):
        self.api_url = api_url
        self.timeout = timeout

    def fetch(self, query: str) -> ContextResult:
        response = requests.get(
            self.api_url,
            params={
                "action": "query",
                "format": "json",
                "prop": "extracts",
                "exintro": 1,
                "explaintext": 1,
                "redirects": 1,
                "titles": query,
            },
            headers={"User-Agent": USER_AGENT},
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = _WikipediaResponse.model_validate(response.json())

        for key, page in data.query.pages.items():
            if key == "-1" or page.missing is not None:
                continue
            if page.extract and page.extract.strip():
                return ContextResult(text=page.extract.strip(), source=WIKIPEDIA_SOURCE)
        return EMPTY_RESULT


# ==============================================================================
# REGISTRY
# ==============================================================================

CONTEXT_PROVIDERS: Dict[str, Type[ContextProvider]] = {
    StaticContextProvider.name: StaticContextProvider,
    DuckDuckGoContextProvider.name: DuckDuckGoContextProvider,
    TavilyContextProvider.name: TavilyContextProvider,
    WikipediaContextProvider.name: WikipediaContextProvider,
}


def build_context_provider(name: str) -> ContextProvider:
    """Instantiate the provider configured by name. Unknown names raise ValueError."""
    key = (name or "").strip().lower()
    if key not in CONTEXT_PROVIDERS:
        raise ValueError(
            f"Unknown context provider {name!r}; expected one of {sorted(CONTEXT_PROVIDERS)}"
        )
    return CONTEXT_PROVIDERS[key]()

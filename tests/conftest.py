"""
Shared fixtures for the EOL Research test suite.

HTTP is stubbed with httpx.MockTransport: FakeWeb answers Google Custom Search
requests from a query -> results table and page fetches from a URL -> HTML table.
"""
from datetime import date
from typing import Dict, List, Optional

import httpx
import pytest

from eol_research.adapters.page_fetcher import PageCache, PageFetcher
from eol_research.adapters.search_client import PacingGate, RateLimitedSearchClient
from eol_research.layers.research import ResearchOrchestrator

SEARCH_HOST = "www.googleapis.com"
TODAY = date(2026, 1, 15)


class FakeWeb:
    """In-memory search engine and web server."""

    def __init__(self):
        self.results: Dict[str, List[dict]] = {}
        self.pages: Dict[str, httpx.Response] = {}
        self.search_status: Optional[int] = None
        self.search_calls: List[str] = []
        self.page_calls: List[str] = []

    def add_search(self, query: str, *hits: dict) -> None:
        self.results[query] = list(hits)

    def add_page(self, url: str, html: str, status: int = 200, content_type: str = "text/html") -> None:
        self.pages[url] = httpx.Response(
            status,
            text=html,
            headers={"content-type": f"{content_type}; charset=utf-8"},
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == SEARCH_HOST:
            query = request.url.params.get("q")
            self.search_calls.append(query)
            if self.search_status is not None:
                return httpx.Response(self.search_status, json={"error": "unavailable"})
            return httpx.Response(200, json={"items": self.results.get(query, [])})

        url = str(request.url)
        self.page_calls.append(url)
        response = self.pages.get(url)
        if response is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(
            response.status_code,
            content=response.content,
            headers=response.headers,
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def hit(url: str, title: str = "", snippet: str = "") -> dict:
    """One Custom Search result item."""
    return {"link": url, "title": title, "snippet": snippet}


def build_orchestrator(web: FakeWeb, **overrides) -> ResearchOrchestrator:
    transport = web.transport
    search_client = RateLimitedSearchClient(
        api_key="test-key",
        engine_id="test-cx",
        gate=PacingGate(min_interval=0),
        max_attempts=2,
        backoff_base=0,
        retry_delay=0,
        transport=transport,
    )
    fetcher = PageFetcher(cache=PageCache(), transport=transport)
    options = {"search_client": search_client, "fetcher": fetcher, "today": TODAY}
    options.update(overrides)
    return ResearchOrchestrator(**options)


@pytest.fixture
def web():
    return FakeWeb()


@pytest.fixture
def orchestrator(web):
    return build_orchestrator(web)

"""Adapters package initialization."""
from eol_research.adapters.search_client import PacingGate, RateLimitedSearchClient
from eol_research.adapters.page_fetcher import PageCache, PageFetcher

__all__ = ["PacingGate", "RateLimitedSearchClient", "PageCache", "PageFetcher"]

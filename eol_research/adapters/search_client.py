"""
Rate-Limited Search Client for the EOL Research engine.
Queries the Google Custom Search JSON API with process-wide pacing and 429 backoff.
"""
import asyncio
import time
from typing import Callable, List, Optional

import httpx

from eol_research.config import config
from eol_research.errors import ConfigurationError, SearchError
from eol_research.models import SearchHit
from eol_research.utils.logger import LayerLogger


class PacingGate:
    """
    Enforces a minimum spacing between outbound calls.

    One gate is shared by every search made in the process (or in a test);
    callers block in wait() until the spacing since the previous call has elapsed.
    Dispatch is serialized through an asyncio lock.
    """

    def __init__(
        self,
        min_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_interval = config.SEARCH_MIN_INTERVAL if min_interval is None else min_interval
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_dispatch: Optional[float] = None

    async def wait(self) -> None:
        async with self._lock:
            if self._last_dispatch is not None:
                delay = self._last_dispatch + self.min_interval - self._clock()
                if delay > 0:
                    await asyncio.sleep(delay)
            self._last_dispatch = self._clock()


class RateLimitedSearchClient:
    """
    Search adapter - turns a query string into SearchHits.

    Retry policy:
    - HTTP 429: exponential backoff (backoff_base, doubling, capped at backoff_cap)
    - HTTP 5xx and transport errors (including timeouts): fixed retry_delay
    - Any other HTTP error: no retry
    After max_attempts the query fails with SearchError.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        engine_id: Optional[str] = None,
        gate: Optional[PacingGate] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_cap: Optional[float] = None,
        retry_delay: float = 1.0,
        endpoint: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else config.GOOGLE_API_KEY
        self.engine_id = engine_id if engine_id is not None else config.GOOGLE_SEARCH_ENGINE_ID
        self.gate = gate or PacingGate()
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self.max_attempts = max_attempts or config.SEARCH_MAX_ATTEMPTS
        self.backoff_base = config.SEARCH_BACKOFF_BASE if backoff_base is None else backoff_base
        self.backoff_cap = config.SEARCH_BACKOFF_CAP if backoff_cap is None else backoff_cap
        self.retry_delay = retry_delay
        self.endpoint = endpoint or config.SEARCH_API_URL
        self._transport = transport
        self.logger = LayerLogger("search_client")

    def is_configured(self) -> bool:
        return bool(self.api_key and self.engine_id)

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when credentials are missing."""
        if self.is_configured():
            return
        missing = []
        if not self.api_key:
            missing.append("GOOGLE_API_KEY")
        if not self.engine_id:
            missing.append("GOOGLE_SEARCH_ENGINE_ID")
        self.logger.log_error(
            "Search API credentials missing",
            error_type="configuration_error",
            missing=missing,
        )
        raise ConfigurationError(missing)

    async def search(self, query: str, num_results: int = 5) -> List[SearchHit]:
        """
        Run one search query.

        Args:
            query: Search string, may include site: operators
            num_results: Number of results to request (1-10)

        Returns:
            List of SearchHit, possibly empty

        Raises:
            ConfigurationError: credentials are missing
            SearchError: the query failed after retries
        """
        self.ensure_configured()
        params = {
            "key": self.api_key,
            "cx": self.engine_id,
            "q": query,
            "num": max(1, min(num_results, 10)),
        }

        self.logger.log_action("search", "started", query=query)

        last_status: Optional[int] = None
        last_reason = ""

        for attempt in range(1, self.max_attempts + 1):
            await self.gate.wait()

            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout,
                    transport=self._transport,
                ) as client:
                    response = await client.get(self.endpoint, params=params)
            except httpx.TransportError as e:
                last_status, last_reason = None, f"{type(e).__name__}: {e}"
                self.logger.log_http_call(
                    self.endpoint, None, "transport_error", attempt=attempt,
                    query=query, error=last_reason,
                )
                await self._sleep_before_retry(attempt, self.retry_delay)
                continue

            last_status = response.status_code

            if response.status_code == 429:
                last_reason = "rate limited"
                delay = self._backoff_delay(attempt)
                self.logger.log_http_call(
                    self.endpoint, 429, "rate_limited", attempt=attempt,
                    query=query, backoff_seconds=delay,
                )
                await self._sleep_before_retry(attempt, delay)
                continue

            if response.status_code >= 500:
                last_reason = "server error"
                self.logger.log_http_call(
                    self.endpoint, response.status_code, "server_error", attempt=attempt, query=query,
                )
                await self._sleep_before_retry(attempt, self.retry_delay)
                continue

            if response.status_code >= 400:
                self.logger.log_http_call(
                    self.endpoint, response.status_code, "rejected", attempt=attempt, query=query,
                )
                raise SearchError(query, attempt, response.status_code, response.text[:200])

            try:
                payload = response.json()
            except ValueError as e:
                raise SearchError(query, attempt, response.status_code, f"invalid JSON: {e}") from e

            hits = self._parse_hits(payload)
            self.logger.log_http_call(
                self.endpoint, response.status_code, "ok", attempt=attempt,
                query=query, hits=len(hits),
            )
            return hits

        self.logger.log_error(
            f"Search retries exhausted for {query}",
            error_type="search_error",
            status_code=last_status,
            attempts=self.max_attempts,
        )
        raise SearchError(query, self.max_attempts, last_status, last_reason)

    def _backoff_delay(self, attempt: int) -> float:
        return min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_cap)

    async def _sleep_before_retry(self, attempt: int, delay: float) -> None:
        # No point waiting after the final attempt
        if attempt < self.max_attempts and delay > 0:
            await asyncio.sleep(delay)

    @staticmethod
    def _parse_hits(payload: dict) -> List[SearchHit]:
        hits = []
        for item in payload.get("items") or []:
            link = item.get("link")
            if not link:
                continue
            hits.append(SearchHit(
                url=link,
                title=item.get("title") or "",
                snippet=item.get("snippet") or "",
            ))
        return hits

"""
Page Fetch & Cache Adapter for the EOL Research engine.
Retrieves candidate pages, reduces them to plain text plus a labelled table section,
and keeps them in a TTL cache shared across products.
"""
import re
import time
from collections import OrderedDict
from typing import Callable, List, Optional

import httpx
from bs4 import BeautifulSoup, Tag

from eol_research.config import config
from eol_research.errors import FetchError
from eol_research.models import CachedPage, PageText
from eol_research.models.lifecycle import (
    TABLE_CELL_SEPARATOR,
    TABLE_MARKER_PREFIX,
    TABLE_SECTION_HEADER,
)
from eol_research.utils.logger import LayerLogger


BLOCK_TAGS = [
    "p", "div", "li", "ul", "ol", "dl", "dt", "dd", "h1", "h2", "h3", "h4", "h5", "h6",
    "section", "article", "header", "footer", "nav", "aside", "main", "pre", "blockquote",
]

TEXT_CONTENT_TYPES = ("text/html", "application/xhtml+xml", "text/plain", "application/xml", "text/xml")


class PageCache:
    """
    URL-keyed page cache with a fixed time-to-live.

    Entries are replaced wholesale (last write wins), so two concurrent misses for
    the same URL simply both fetch and both store. The oldest entry is evicted
    once max_entries is reached.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = config.PAGE_CACHE_TTL if ttl_seconds is None else ttl_seconds
        self.max_entries = max_entries or config.PAGE_CACHE_MAX_ENTRIES
        self._clock = clock
        self._entries: "OrderedDict[str, CachedPage]" = OrderedDict()

    def get(self, url: str) -> Optional[PageText]:
        entry = self._entries.get(url)
        if entry is None:
            return None
        if self._clock() - entry.fetched_at >= self.ttl_seconds:
            self._entries.pop(url, None)
            return None
        return entry.content

    def put(self, url: str, page: PageText) -> None:
        self._entries[url] = CachedPage(url=url, content=page, fetched_at=self._clock())
        self._entries.move_to_end(url)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: str) -> bool:
        return self.get(url) is not None


class PageFetcher:
    """
    Fetch adapter - converts a URL into PageText.

    Script and style markup is dropped; tables are rendered into a separate
    labelled section at the end of the text, one row per line.
    """

    def __init__(
        self,
        cache: Optional[PageCache] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cache = cache if cache is not None else PageCache()
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self._transport = transport
        self.logger = LayerLogger("page_fetcher")

    async def fetch(self, url: str) -> PageText:
        """
        Fetch a page, serving it from the cache while fresh.

        Raises:
            FetchError: on timeout, HTTP failure or unsupported content
        """
        cached = self.cache.get(url)
        if cached is not None:
            self.logger.log_action("fetch_page", "cache_hit", url=url)
            return cached

        self.logger.log_action("fetch_page", "started", url=url)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url, headers=self._get_headers())
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self.logger.log_http_call(url, e.response.status_code, "http_error")
            raise FetchError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            self.logger.log_error(
                f"Failed to fetch URL: {str(e)}",
                error_type="http_error",
                url=url,
            )
            raise FetchError(url, f"{type(e).__name__}: {e}") from e

        content_type = response.headers.get("content-type", "text/html").split(";")[0].strip().lower()
        if content_type and content_type not in TEXT_CONTENT_TYPES:
            self.logger.log_http_call(url, response.status_code, "unsupported_content", content_type=content_type)
            raise FetchError(url, f"unsupported content type {content_type}")

        if content_type == "text/plain":
            page = PageText(url=url, text=response.text)
        else:
            page = self.parse_html(url, response.text)

        self.logger.log_action(
            "fetch_page",
            "completed",
            url=url,
            status_code=response.status_code,
            content_length=len(page.text),
        )

        self.cache.put(url, page)
        return page

    def _get_headers(self) -> dict:
        """Get request headers mimicking a browser."""
        return {
            "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }

    def parse_html(self, url: str, html: str) -> PageText:
        """Reduce markup to line-oriented text followed by the table section."""
        soup = BeautifulSoup(html, "lxml")

        for tag in soup.find_all(["script", "style", "noscript", "template"]):
            tag.decompose()

        tables = self._extract_tables(soup)
        for table in soup.find_all("table"):
            table.decompose()

        # Block elements become line breaks; inline markup stays on its line
        for br in soup.find_all("br"):
            br.replace_with("\n")
        for block in soup.find_all(BLOCK_TAGS):
            block.insert_before("\n")
            block.insert_after("\n")

        root = soup.find("body") or soup
        body = self._clean_lines(root.get_text())

        text = body
        if tables:
            text = f"{body}\n\n{TABLE_SECTION_HEADER}\n" + "\n".join(tables)

        return PageText(url=url, text=text)

    def _extract_tables(self, soup: BeautifulSoup) -> List[str]:
        """Render each table as a "[TABLE n]" block with cells joined by " | "."""
        rendered = []
        for index, table in enumerate(soup.find_all("table"), start=1):
            rows = []
            for tr in table.find_all("tr"):
                # Rows of nested tables are rendered with their own table
                if tr.find_parent("table") is not table:
                    continue
                cells = [
                    self._cell_text(cell)
                    for cell in tr.find_all(["th", "td"])
                    if cell.find_parent("tr") is tr
                ]
                if any(cells):
                    rows.append(TABLE_CELL_SEPARATOR.join(cells))
            if rows:
                rendered.append(f"{TABLE_MARKER_PREFIX}{index}]")
                rendered.extend(rows)
        return rendered

    @staticmethod
    def _cell_text(cell: Tag) -> str:
        text = cell.get_text(separator=" ", strip=True)
        return re.sub(r"\s+", " ", text).replace("|", "/")

    @staticmethod
    def _clean_lines(text: str) -> str:
        lines = (re.sub(r"[ \t\xa0]+", " ", line).strip() for line in text.splitlines())
        return "\n".join(line for line in lines if line)

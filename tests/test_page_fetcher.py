"""
Unit tests for page fetching and caching.

Tests verify:
1. Script and style content never reaches the page text
2. Tables are rendered into a labelled section, one row per line
3. Fresh cache entries are served without a request; stale ones are not
4. HTTP failures, timeouts and binary content raise FetchError
"""
import httpx
import pytest

from eol_research.adapters.page_fetcher import PageCache, PageFetcher
from eol_research.errors import FetchError
from eol_research.models import PageText


BULLETIN_URL = "https://www.cisco.com/c/en/us/products/collateral/switches/eos-eol-notice.html"

BULLETIN_HTML = """
<html>
<head><title>EOL notice</title><style>.date { color: red; }</style></head>
<body>
<h1>Cisco Catalyst WS-C2960X-48FPD-L</h1>
<script>var launch = "January 1, 2039";</script>
<p>End-of-Sale Date: <b>October 30, 2019</b></p>
<table>
  <tr><th>Milestone</th><th>Date</th></tr>
  <tr><td>Last Date of Support</td><td>October 31, 2024</td></tr>
</table>
</body>
</html>
"""


def make_fetcher(handler, cache=None):
    return PageFetcher(cache=cache if cache is not None else PageCache(), transport=httpx.MockTransport(handler))


def html_response(request):
    return httpx.Response(200, text=BULLETIN_HTML, headers={"content-type": "text/html; charset=utf-8"})


# =============================================================================
# HTML reduction
# =============================================================================

class TestParseHtml:
    """Tests for PageFetcher.parse_html."""

    def test_scripts_and_styles_removed(self):
        """Script and style bodies are not part of the text."""
        page = make_fetcher(html_response).parse_html(BULLETIN_URL, BULLETIN_HTML)
        assert "January 1, 2039" not in page.text
        assert "color: red" not in page.text

    def test_inline_markup_stays_on_line(self):
        """Bold dates stay on the same line as their label."""
        page = make_fetcher(html_response).parse_html(BULLETIN_URL, BULLETIN_HTML)
        assert "End-of-Sale Date: October 30, 2019" in page.body.splitlines()

    def test_table_section(self):
        """Table rows appear only in the labelled table section."""
        page = make_fetcher(html_response).parse_html(BULLETIN_URL, BULLETIN_HTML)
        rows = page.table_section.strip().splitlines()

        assert rows == ["[TABLE 1]", "Milestone | Date", "Last Date of Support | October 31, 2024"]
        assert "October 31, 2024" not in page.body

    def test_no_tables(self):
        """Pages without tables have no table section."""
        page = make_fetcher(html_response).parse_html(BULLETIN_URL, "<p>No dates here</p>")
        assert page.text == "No dates here"
        assert page.table_section == ""

    def test_pipe_in_cell(self):
        """A pipe inside a cell cannot split the row."""
        html = "<table><tr><td>EOS | EOL</td><td>2020-01-01</td></tr></table>"
        page = make_fetcher(html_response).parse_html(BULLETIN_URL, html)
        assert "EOS / EOL | 2020-01-01" in page.table_section


# =============================================================================
# Fetching
# =============================================================================

class TestFetch:
    """Tests for PageFetcher.fetch."""

    @pytest.mark.asyncio
    async def test_fetch_and_cache(self):
        """A second fetch of the same URL is served from the cache."""
        requests = []

        def handler(request):
            requests.append(request)
            return html_response(request)

        fetcher = make_fetcher(handler)
        first = await fetcher.fetch(BULLETIN_URL)
        second = await fetcher.fetch(BULLETIN_URL)

        assert first == second
        assert len(requests) == 1
        assert "User-Agent" in requests[0].headers

    @pytest.mark.asyncio
    async def test_plain_text(self):
        """Plain text is used as is."""
        handler = lambda request: httpx.Response(
            200, text="EOS: 2020-01-01", headers={"content-type": "text/plain"}
        )
        page = await make_fetcher(handler).fetch("https://example.com/eol.txt")
        assert page.text == "EOS: 2020-01-01"

    @pytest.mark.asyncio
    async def test_http_error(self):
        """Error statuses raise FetchError and are not cached."""
        fetcher = make_fetcher(lambda request: httpx.Response(503, text="busy"))

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(BULLETIN_URL)

        assert exc_info.value.reason == "HTTP 503"
        assert BULLETIN_URL not in fetcher.cache

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Timeouts raise FetchError."""
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        with pytest.raises(FetchError):
            await make_fetcher(handler).fetch(BULLETIN_URL)

    @pytest.mark.asyncio
    async def test_pdf_unsupported(self):
        """Binary documents are reported as unsupported content."""
        handler = lambda request: httpx.Response(
            200, content=b"%PDF-1.4", headers={"content-type": "application/pdf"}
        )

        with pytest.raises(FetchError) as exc_info:
            await make_fetcher(handler).fetch("https://www.cisco.com/eol.pdf")

        assert "application/pdf" in exc_info.value.reason


# =============================================================================
# Cache
# =============================================================================

class TestPageCache:
    """Tests for PageCache."""

    def test_ttl(self):
        """Entries expire once their age reaches the TTL."""
        now = [1000.0]
        cache = PageCache(ttl_seconds=10, clock=lambda: now[0])
        page = PageText(url=BULLETIN_URL, text="x")

        cache.put(BULLETIN_URL, page)
        now[0] = 1009.0
        assert cache.get(BULLETIN_URL) == page

        now[0] = 1010.0
        assert cache.get(BULLETIN_URL) is None
        assert len(cache) == 0

    def test_last_write_wins(self):
        """Writing a URL again replaces its entry."""
        cache = PageCache(ttl_seconds=60)
        cache.put("https://a.example.com", PageText(url="https://a.example.com", text="old"))
        cache.put("https://a.example.com", PageText(url="https://a.example.com", text="new"))

        assert cache.get("https://a.example.com").text == "new"
        assert len(cache) == 1

    def test_eviction(self):
        """The oldest entry is evicted past max_entries."""
        cache = PageCache(ttl_seconds=60, max_entries=2)
        for name in ("a", "b", "c"):
            url = f"https://{name}.example.com"
            cache.put(url, PageText(url=url, text=name))

        assert "https://a.example.com" not in cache
        assert "https://c.example.com" in cache

    def test_empty_injected_cache_kept(self):
        """An injected cache is used even while it holds nothing."""
        cache = PageCache(ttl_seconds=60)
        assert len(cache) == 0
        assert make_fetcher(html_response, cache=cache).cache is cache

    @pytest.mark.asyncio
    async def test_stale_entry_refetched(self):
        """An expired page is fetched again."""
        now = [0.0]
        requests = []

        def handler(request):
            requests.append(request)
            return html_response(request)

        fetcher = make_fetcher(handler, cache=PageCache(ttl_seconds=60, clock=lambda: now[0]))
        await fetcher.fetch(BULLETIN_URL)
        now[0] = 61.0
        await fetcher.fetch(BULLETIN_URL)

        assert len(requests) == 2

"""
Tests for the FastAPI endpoints.

Tests verify:
1. Health reports search configuration
2. Single-product research returns the flattened result
3. Missing credentials map to 503
4. Batch research streams start, progress and complete events
"""
import pytest
from fastapi.testclient import TestClient

from eol_research import main
from eol_research.adapters.search_client import RateLimitedSearchClient

from tests.conftest import FakeWeb, build_orchestrator, hit


RESELLER_URL = "https://www.router-switch.com/xyz-200.html"


@pytest.fixture
def configured(monkeypatch):
    web = FakeWeb()
    web.add_search(
        '"XYZ-200" "End-of-Sale" "End-of-Life"',
        hit(RESELLER_URL, "XYZ-200 EOL", "XYZ-200 end of life details"),
    )
    web.add_page(
        RESELLER_URL,
        "<p>XYZ-200</p><p>End-of-Sale Date: January 31, 2015</p><p>Last Date of Support: January 31, 2020</p>",
    )
    monkeypatch.setattr(main, "orchestrator", build_orchestrator(web))
    return web


@pytest.fixture
def unconfigured(monkeypatch):
    web = FakeWeb()
    client = RateLimitedSearchClient(api_key="", engine_id="", transport=web.transport)
    monkeypatch.setattr(main, "orchestrator", build_orchestrator(web, search_client=client))
    return web


@pytest.fixture
def client():
    return TestClient(main.app)


# =============================================================================
# Health
# =============================================================================

class TestHealth:
    """Tests for GET /api/health."""

    def test_configured(self, configured, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["search_configured"] is True

    def test_unconfigured(self, unconfigured, client):
        assert client.get("/api/health").json()["search_configured"] is False


# =============================================================================
# Single product
# =============================================================================

class TestResearch:
    """Tests for POST /api/research."""

    def test_found(self, configured, client):
        response = client.post("/api/research", json={"product_id": "XYZ-200"})

        assert response.status_code == 200
        body = response.json()
        assert body["trace_id"]
        assert body["result"]["status"] == "found"
        assert body["result"]["milestones"]["end_of_sale_date"]["date"] == "2015-01-31"
        assert body["result"]["data_sources"] == {"vendor_site": 0, "third_party": 1}

    def test_unconfigured(self, unconfigured, client):
        response = client.post("/api/research", json={"product_id": "XYZ-200"})
        assert response.status_code == 503
        assert "GOOGLE_API_KEY" in response.json()["detail"]

    def test_blank_product_id(self, configured, client):
        response = client.post("/api/research", json={"product_id": "   "})
        assert response.status_code == 422


# =============================================================================
# Batch
# =============================================================================

class TestBatch:
    """Tests for the streamed batch endpoints."""

    def test_stream(self, configured, client):
        response = client.post(
            "/api/research/batch",
            json={"products": [{"product_id": "XYZ-200"}, {"product_id": "ABC-1"}], "concurrency": 1},
        )

        assert response.status_code == 200
        assert response.headers["x-batch-id"]
        text = response.text
        assert text.index("event: start") < text.index("event: progress") < text.index("event: complete")
        assert text.count("event: progress") == 2
        assert '"product_id": "XYZ-200"' in text

    def test_unconfigured(self, unconfigured, client):
        response = client.post("/api/research/batch", json={"products": [{"product_id": "XYZ-200"}]})
        assert response.status_code == 503

    def test_empty_batch(self, configured, client):
        response = client.post("/api/research/batch", json={"products": []})
        assert response.status_code == 422

    def test_cancel_unknown(self, client):
        response = client.post("/api/research/batch/nope/cancel")
        assert response.status_code == 404

"""
Test suite for the ThreadLens API endpoints.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import THREAD_URL, make_analysis_payload
from threadlens.api.routes import get_forum_archiver, get_insight_generator, get_reddit_fetcher
from threadlens.core.config import Settings
from threadlens.core.exceptions import AIAnalysisException, ForumArchiveException, RedditFetchException
import threadlens.main as main_module
from threadlens.main import app
from threadlens.models.schemas import AnalysisResult, ArchiveResult, ForumThreadRef, RedditComment, RedditThread
from threadlens.services.forum_archiver import ForumArchiver
from threadlens.services.reddit_fetcher import RedditFetcher

# Create test client
client = TestClient(app)


class FakeFetcher:
    def __init__(self, error=None):
        self.error = error
        self.urls = []

    async def fetch_thread(self, url):
        self.urls.append(url)
        if self.error:
            raise self.error
        return RedditThread(
            title="What is your favorite library?",
            author="op_user",
            score=120,
            num_comments=20,
            comments=[RedditComment(author=f"u{i}", body="b", score=1) for i in range(10)],
        )


class FakeGenerator:
    def __init__(self, error=None):
        self.error = error

    async def generate(self, thread):
        if self.error:
            raise self.error
        return AnalysisResult.model_validate(make_analysis_payload())


class FakeArchiver:
    def __init__(self, is_live=False, result=None, error=None):
        self.is_live = is_live
        self.result = result
        self.error = error
        self.archived = []

    async def archive(self, analysis, original_url):
        self.archived.append((analysis, original_url))
        if self.error:
            raise self.error
        return self.result

    async def try_archive(self, analysis, original_url):
        try:
            return await self.archive(analysis, original_url)
        except ForumArchiveException:
            return None


@pytest.fixture
def overrides():
    """Install fake services; returns the dict of fakes so tests can swap them."""
    fakes = {"fetcher": FakeFetcher(), "generator": FakeGenerator(), "archiver": FakeArchiver()}
    app.dependency_overrides[get_reddit_fetcher] = lambda: fakes["fetcher"]
    app.dependency_overrides[get_insight_generator] = lambda: fakes["generator"]
    app.dependency_overrides[get_forum_archiver] = lambda: fakes["archiver"]
    yield fakes
    app.dependency_overrides.clear()


def test_health_endpoint():
    """Test the health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "threadlens-api"
    assert data["forums_mode"] in ("live", "demo")
    assert "timestamp" in data


# POST /api/analyze

def test_analyze_returns_analysis_with_health_score(overrides):
    response = client.post("/api/analyze", json={"url": THREAD_URL})
    assert response.status_code == 200

    data = response.json()
    assert data["tldr"] == "People like httpx and pydantic."
    assert data["sentiment"]["overall"] == "mixed"
    assert data["consensus"]["agreementLevel"] == 60
    assert data["topComments"][0]["author"] == "user0"
    assert data["keyOpinions"][0]["opinion"] == "httpx beats requests"
    assert data["metadata"]["threadTitle"] == "What is your favorite library?"
    assert data["metadata"]["analyzedComments"] == 10
    assert data["healthScore"] == 71
    assert data["healthLabel"] == "Good"
    assert "forumsThread" not in data
    assert overrides["fetcher"].urls == [THREAD_URL]


def test_analyze_skips_archival_without_credentials(overrides):
    client.post("/api/analyze", json={"url": THREAD_URL})
    assert overrides["archiver"].archived == []


def test_analyze_archives_when_live(overrides):
    thread = ForumThreadRef(id="t-1", url="https://foru.ms/thread/t-1")
    overrides["archiver"] = FakeArchiver(is_live=True, result=ArchiveResult(thread=thread))

    response = client.post("/api/analyze", json={"url": THREAD_URL})

    assert response.status_code == 200
    assert response.json()["forumsThread"] == {"id": "t-1", "url": "https://foru.ms/thread/t-1"}
    assert overrides["archiver"].archived[0][1] == THREAD_URL


def test_analyze_survives_archival_failure(overrides):
    overrides["archiver"] = FakeArchiver(is_live=True, error=ForumArchiveException("Foru.ms API Error (500): down"))

    response = client.post("/api/analyze", json={"url": THREAD_URL})

    assert response.status_code == 200
    assert "forumsThread" not in response.json()


@pytest.mark.parametrize("body", [{}, {"url": ""}, {"url": "   "}, {"url": None}])
def test_analyze_requires_url(overrides, body):
    response = client.post("/api/analyze", json=body)

    assert response.status_code == 400
    assert response.json()["error"] == "URL is required"
    assert overrides["fetcher"].urls == []


@pytest.mark.parametrize("url", ["https://[bad/r/x/", "https://www.reddit.com:abc/r/x/"])
def test_analyze_rejects_unparsable_url(overrides, url):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request to {request.url}")

    fetcher = RedditFetcher(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    app.dependency_overrides[get_reddit_fetcher] = lambda: fetcher

    response = client.post("/api/analyze", json={"url": url})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid Reddit URL"


def test_analyze_rejects_malformed_body(overrides):
    response = client.post("/api/analyze", content="not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request body"


def test_analyze_reddit_failure_returns_500_with_message(overrides):
    message = "Failed to fetch Reddit data after trying all methods: HTTP 403"
    overrides["fetcher"] = FakeFetcher(error=RedditFetchException(message))

    response = client.post("/api/analyze", json={"url": THREAD_URL})

    assert response.status_code == 500
    data = response.json()
    assert data["error"] == message
    assert data["error_code"] == "REDDIT_001"
    assert data["request_id"].startswith("req_")


def test_analyze_ai_failure_returns_500(overrides):
    overrides["generator"] = FakeGenerator(error=AIAnalysisException("Could not parse AI response as JSON"))

    response = client.post("/api/analyze", json={"url": THREAD_URL})

    assert response.status_code == 500
    assert response.json()["error"] == "AI analysis failed: Could not parse AI response as JSON"


# POST /api/forums/save

def test_save_requires_analysis(overrides):
    response = client.post("/api/forums/save", json={"originalUrl": THREAD_URL})

    assert response.status_code == 400
    assert response.json()["error"] == "Analysis data is required"
    assert overrides["archiver"].archived == []


def test_save_in_demo_mode():
    demo = ForumArchiver(settings=Settings(forums_api_key="", forums_org_id=""))
    app.dependency_overrides[get_forum_archiver] = lambda: demo
    try:
        response = client.post(
            "/api/forums/save",
            json={"analysis": make_analysis_payload(), "originalUrl": THREAD_URL},
        )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["thread"]["id"].startswith("demo-")
    assert data["message"] == "Saved to Foru.ms (Demo Mode)"


def test_save_passes_validated_analysis_to_archiver(overrides):
    thread = ForumThreadRef(id="t-9", url="https://foru.ms/thread/t-9")
    overrides["archiver"] = FakeArchiver(is_live=True, result=ArchiveResult(thread=thread))

    payload = make_analysis_payload()
    payload["healthScore"] = 71
    response = client.post("/api/forums/save", json={"analysis": payload, "originalUrl": THREAD_URL})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "thread": {"id": "t-9", "url": "https://foru.ms/thread/t-9"},
        "failedComments": 0,
    }
    analysis, original_url = overrides["archiver"].archived[0]
    assert analysis.metadata.thread_title == "What is your favorite library?"
    assert original_url == THREAD_URL


def test_save_upstream_rejection_returns_details(overrides):
    overrides["archiver"] = FakeArchiver(
        is_live=True,
        error=ForumArchiveException(
            "Foru.ms API Error (401): bad key", upstream_status=401, upstream_body="bad key"
        ),
    )

    response = client.post("/api/forums/save", json={"analysis": {"tldr": "x"}, "originalUrl": THREAD_URL})

    assert response.status_code == 500
    data = response.json()
    assert data["error"] == "Foru.ms API Error (401): bad key"
    assert data["details"] == {"status": 401, "response": "bad key"}


# CORS

@pytest.mark.parametrize("path", ["/api/analyze", "/api/forums/save"])
def test_bare_options_returns_cors_headers(path):
    response = client.options(path)

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert "POST" in response.headers["access-control-allow-methods"]


def test_cors_preflight_from_extension_origin():
    response = client.options(
        "/api/analyze",
        headers={
            "Origin": "chrome-extension://abcdefghijklmnop",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


def test_unexpected_error_keeps_cors_headers(overrides):
    overrides["fetcher"] = FakeFetcher(error=RuntimeError("boom"))
    error_client = TestClient(app, raise_server_exceptions=False)

    response = error_client.post(
        "/api/analyze",
        json={"url": THREAD_URL},
        headers={"Origin": "chrome-extension://abcdefghijklmnop"},
    )

    assert response.status_code == 500
    assert response.json()["error"] == "An unexpected error occurred. Please try again later."
    assert response.json()["error_code"] == "INTERNAL_001"
    assert response.headers["access-control-allow-origin"] == "*"


def test_api_error_keeps_cors_headers(overrides):
    overrides["fetcher"] = FakeFetcher(error=RedditFetchException("HTTP 403"))

    response = client.post(
        "/api/analyze",
        json={"url": THREAD_URL},
        headers={"Origin": "chrome-extension://abcdefghijklmnop"},
    )

    assert response.status_code == 500
    assert response.headers["access-control-allow-origin"] == "*"


def test_oversized_body_is_rejected_with_cors_headers(overrides, monkeypatch):
    monkeypatch.setattr(main_module.settings, "max_request_size", 16)

    response = client.post(
        "/api/analyze",
        json={"url": THREAD_URL},
        headers={"Origin": "chrome-extension://abcdefghijklmnop"},
    )

    assert response.status_code == 413
    assert response.json()["error_code"] == "REQUEST_TOO_LARGE"
    assert response.headers["access-control-allow-origin"] == "*"
    assert overrides["fetcher"].urls == []


def test_invalid_endpoint():
    """Test accessing a non-existent endpoint."""
    response = client.get("/nonexistent")
    assert response.status_code == 404


if __name__ == "__main__":
    pytest.main([__file__])

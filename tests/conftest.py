"""
Pytest configuration and shared fixtures.
"""

from typing import List, Optional

import httpx
import pytest

from llmo_checker.core.errors import FetchError, FetchErrorKind
from llmo_checker.models.schemas import ContentSource, HtmlDocument


SAMPLE_HTML = (
    "<html><head><title>Example</title>"
    '<meta name="description" content="An example page">'
    "</head><body><h1>Hello</h1><p>World</p>"
    "<p>Some longer paragraph text so the page passes the minimum length check.</p>"
    "</body></html>"
)


@pytest.fixture(autouse=True)
def mock_env_vars(monkeypatch):
    """Set required environment variables for testing."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-api-key")
    monkeypatch.delenv("SCRAPFLY_KEY", raising=False)
    monkeypatch.setenv("ENVIRONMENT", "test")


# ============================================
# Collaborator fakes
# ============================================

class FakeLLM:
    """Completion service returning a fixed report, or raising ``error``."""

    def __init__(self, report: str = "## Summary\nGood site", error: Optional[Exception] = None):
        self.report = report
        self.error = error
        self.prompts: List[str] = []

    async def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.report


class FakeFetcher:
    """Direct fetcher returning ``html`` or raising ``error``."""

    def __init__(self, html: str = SAMPLE_HTML, error: Optional[Exception] = None):
        self.html = html
        self.error = error
        self.calls: List[str] = []

    async def fetch(self, target):
        self.calls.append(target.url)
        if self.error is not None:
            raise self.error
        return HtmlDocument(url=target.url, html=self.html, final_url=target.url)


class FakeFallback:
    def __init__(self, html: str = SAMPLE_HTML, error: Optional[Exception] = None):
        self.html = html
        self.error = error
        self.calls: List[str] = []

    async def fetch_rendered(self, target):
        self.calls.append(target.url)
        if self.error is not None:
            raise self.error
        return HtmlDocument(url=target.url, html=self.html, final_url=target.url, source=ContentSource.FALLBACK)


class FailingStore:
    """Diagnosis store whose every operation raises."""

    async def fetch_records(self, url):
        raise ConnectionError("store unavailable")

    async def insert(self, record):
        raise ConnectionError("store unavailable")

    async def delete_older_than(self, cutoff):
        raise ConnectionError("store unavailable")


class FailingHistory:
    async def append(self, user_id, url, result):
        raise ConnectionError("history unavailable")

    async def list_for_user(self, user_id, url_search=None, page=1, limit=20):
        raise ConnectionError("history unavailable")


@pytest.fixture
def timeout_error():
    return FetchError(FetchErrorKind.TIMEOUT, detail="timed out")


def html_response(body: str = SAMPLE_HTML, status: int = 200, content_type: str = "text/html; charset=utf-8"):
    return httpx.Response(status, headers={"content-type": content_type}, text=body)

"""
Tests for bearer-token verification and diagnosis history.
"""

import time
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from llmo_checker.services.auth import (
    FileHistoryStore,
    InMemoryHistoryStore,
    TokenVerifier,
    authorization_from_header,
    paginate,
)
from llmo_checker.models.schemas import HistoryEntry

SECRET = "test-jwt-secret-with-enough-length-for-hs256"


def make_token(sub="user-123", audience="authenticated", secret=SECRET, expires_in=3600):
    payload = {"sub": sub, "aud": audience, "exp": int(time.time()) + expires_in}
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def verifier():
    return TokenVerifier(secret=SECRET, audience="authenticated")


# ============================================
# Token verification
# ============================================

class TestTokenVerifier:
    def test_valid_token(self, verifier):
        assert verifier.verify(make_token()) == "user-123"

    def test_expired_token(self, verifier):
        assert verifier.verify(make_token(expires_in=-60)) is None

    def test_wrong_secret(self, verifier):
        assert verifier.verify(make_token(secret="another-secret-of-sufficient-length!!")) is None

    def test_wrong_audience(self, verifier):
        assert verifier.verify(make_token(audience="anon")) is None

    def test_garbage(self, verifier):
        assert verifier.verify("not-a-jwt") is None

    def test_missing_subject(self, verifier):
        token = jwt.encode(
            {"aud": "authenticated", "exp": int(time.time()) + 60},
            SECRET,
            algorithm="HS256",
        )
        assert verifier.verify(token) is None

    def test_no_secret_configured(self):
        assert TokenVerifier(secret=None).verify(make_token()) is None


class TestAuthorizationFromHeader:
    def test_bearer_token(self, verifier):
        auth = authorization_from_header(f"Bearer {make_token()}", verifier)

        assert auth.is_authenticated
        assert auth.has_full_access
        assert auth.user_id == "user-123"

    def test_scheme_case_insensitive(self, verifier):
        assert authorization_from_header(f"bearer {make_token()}", verifier).is_authenticated

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer ", "Basic dXNlcjpwYXNz", "Bearer invalid"])
    def test_anonymous(self, verifier, header):
        auth = authorization_from_header(header, verifier)

        assert not auth.is_authenticated
        assert not auth.has_full_access
        assert auth.user_id is None

    def test_no_verifier(self):
        assert not authorization_from_header(f"Bearer {make_token()}", None).is_authenticated


# ============================================
# History
# ============================================

@pytest.fixture(params=["memory", "file"])
def history(request, tmp_path):
    if request.param == "memory":
        return InMemoryHistoryStore()
    return FileHistoryStore(history_dir=str(tmp_path))


class TestHistoryStore:
    """Both implementations share pagination and filtering behavior."""

    @pytest.mark.asyncio
    async def test_append_and_list(self, history):
        await history.append("user-1", "https://example.com", "REPORT")

        page = await history.list_for_user("user-1")

        assert page.total == 1
        assert page.data[0].url == "https://example.com"
        assert page.data[0].result == "REPORT"
        assert page.data[0].user_id == "user-1"
        assert not page.has_next

    @pytest.mark.asyncio
    async def test_users_isolated(self, history):
        await history.append("user-1", "https://example.com", "REPORT")
        page = await history.list_for_user("user-2")
        assert page.total == 0
        assert page.data == []

    @pytest.mark.asyncio
    async def test_pagination(self, history):
        for i in range(5):
            await history.append("user-1", f"https://site{i}.example", "R")

        page = await history.list_for_user("user-1", page=2, limit=2)

        assert page.total == 5
        assert page.page == 2
        assert page.limit == 2
        assert len(page.data) == 2
        assert page.has_next

        last = await history.list_for_user("user-1", page=3, limit=2)
        assert len(last.data) == 1
        assert not last.has_next

    @pytest.mark.asyncio
    async def test_url_search(self, history):
        await history.append("user-1", "https://shop.example.com", "R")
        await history.append("user-1", "https://blog.example.org", "R")

        page = await history.list_for_user("user-1", url_search="SHOP")

        assert page.total == 1
        assert page.data[0].url == "https://shop.example.com"


class TestFileHistoryStore:
    @pytest.mark.asyncio
    async def test_corrupt_line_skipped(self, tmp_path):
        store = FileHistoryStore(history_dir=str(tmp_path))
        await store.append("user-1", "https://example.com", "R")
        with open(store._get_history_path("user-1"), "a", encoding="utf-8") as f:
            f.write("{broken\n")

        page = await store.list_for_user("user-1")
        assert page.total == 1

    def test_user_id_not_in_file_name(self, tmp_path):
        store = FileHistoryStore(history_dir=str(tmp_path))
        path = store._get_history_path("user@example.com")
        assert "user@example.com" not in path.name
        assert path.suffix == ".jsonl"


class TestPaginate:
    def test_newest_first(self):
        base = datetime(2025, 1, 1, tzinfo=timezone.utc)
        entries = [
            HistoryEntry(user_id="u", url=f"https://site{i}.example", result="R", created_at=base + timedelta(hours=i))
            for i in (1, 3, 2)
        ]

        page = paginate(entries, None, 1, 20)

        assert [e.url for e in page.data] == [
            "https://site3.example",
            "https://site2.example",
            "https://site1.example",
        ]

    def test_page_past_end(self):
        entries = [HistoryEntry(user_id="u", url="https://a.example", result="R")]
        page = paginate(entries, None, 5, 20)
        assert page.data == []
        assert page.total == 1
        assert not page.has_next

"""
Identity and history collaborators.

The core only needs to know whether a caller is authenticated and, if so,
who they are. Bearer tokens are verified with PyJWT; any failure degrades to
an anonymous caller. Authenticated diagnoses are appended to a per-user
history, best effort.
"""

import asyncio
import hashlib
import json
from pathlib import Path
from typing import Dict, List, Optional, Protocol

import jwt
import structlog

from ..core.config import settings
from ..models.schemas import AuthorizationContext, HistoryEntry, HistoryPage

logger = structlog.get_logger()

JWT_ALGORITHM = "HS256"


class TokenVerifier:
    """Verifies HS256 bearer tokens and returns the ``sub`` claim."""

    def __init__(
        self,
        secret: Optional[str] = settings.AUTH_JWT_SECRET,
        audience: Optional[str] = settings.AUTH_JWT_AUDIENCE,
    ):
        self.secret = secret
        self.audience = audience

    def verify(self, token: str) -> Optional[str]:
        """Return the user id for a valid token, None otherwise."""
        if not self.secret or not token:
            return None

        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[JWT_ALGORITHM],
                audience=self.audience,
            )
        except jwt.ExpiredSignatureError:
            logger.info("auth_token_expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning("auth_token_invalid", error=str(e))
            return None

        user_id = payload.get("sub")
        if not isinstance(user_id, str) or not user_id:
            logger.warning("auth_token_missing_subject")
            return None
        return user_id


def authorization_from_header(
    header: Optional[str],
    verifier: Optional[TokenVerifier],
) -> AuthorizationContext:
    """
    Build the request's authorization context from an ``Authorization``
    header. Anything other than a valid ``Bearer`` token is anonymous.
    """
    if not header or verifier is None:
        return AuthorizationContext.anonymous()

    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return AuthorizationContext.anonymous()

    user_id = verifier.verify(token.strip())
    if user_id is None:
        return AuthorizationContext.anonymous()
    return AuthorizationContext.for_user(user_id)


# === History ===

class HistoryStore(Protocol):
    async def append(self, user_id: str, url: str, result: str) -> HistoryEntry:
        ...

    async def list_for_user(
        self,
        user_id: str,
        url_search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> HistoryPage:
        ...


def paginate(
    entries: List[HistoryEntry],
    url_search: Optional[str],
    page: int,
    limit: int,
) -> HistoryPage:
    """Filter by URL substring, sort newest first and cut one page."""
    if url_search:
        needle = url_search.lower()
        entries = [e for e in entries if needle in e.url.lower()]

    entries = sorted(entries, key=lambda e: e.created_at, reverse=True)
    total = len(entries)
    start = (page - 1) * limit
    return HistoryPage(
        data=entries[start:start + limit],
        total=total,
        page=page,
        limit=limit,
        has_next=start + limit < total,
    )


class InMemoryHistoryStore:
    def __init__(self):
        self._entries: Dict[str, List[HistoryEntry]] = {}

    async def append(self, user_id: str, url: str, result: str) -> HistoryEntry:
        entry = HistoryEntry(user_id=user_id, url=url, result=result)
        self._entries.setdefault(user_id, []).append(entry)
        return entry

    async def list_for_user(
        self,
        user_id: str,
        url_search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> HistoryPage:
        return paginate(list(self._entries.get(user_id, [])), url_search, page, limit)


class FileHistoryStore:
    """
    One JSON-lines file per user (hashed id) under ``history_dir``.
    Appends are single writes, so concurrent requests interleave whole lines.
    """

    def __init__(self, history_dir: Optional[str] = None):
        self.history_dir = Path(history_dir or settings.HISTORY_DIR)
        self.history_dir.mkdir(parents=True, exist_ok=True)

    def _get_history_path(self, user_id: str) -> Path:
        digest = hashlib.sha256(user_id.encode()).hexdigest()
        return self.history_dir / f"{digest}.jsonl"

    def _append(self, entry: HistoryEntry) -> None:
        line = json.dumps(entry.model_dump(mode="json")) + "\n"
        with open(self._get_history_path(entry.user_id), "a", encoding="utf-8") as f:
            f.write(line)

    def _load(self, user_id: str) -> List[HistoryEntry]:
        path = self._get_history_path(user_id)
        if not path.exists():
            return []

        entries = []
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    entries.append(HistoryEntry.model_validate_json(line))
                except ValueError as e:
                    logger.warning("history_line_skipped", error=str(e))
        return entries

    async def append(self, user_id: str, url: str, result: str) -> HistoryEntry:
        entry = HistoryEntry(user_id=user_id, url=url, result=result)
        await asyncio.to_thread(self._append, entry)
        logger.info("history_saved", url=url)
        return entry

    async def list_for_user(
        self,
        user_id: str,
        url_search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> HistoryPage:
        entries = await asyncio.to_thread(self._load, user_id)
        return paginate(entries, url_search, page, limit)

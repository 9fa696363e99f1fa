"""
Pydantic models for LLMO Checker.
Defines request/response schemas and the records passed between services.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator


TRUNCATION_NOTICE = "\n\n[Content was too long; only the first part was extracted]"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# === Enums ===

class ContentSource(str, Enum):
    """Where the page HTML came from."""
    DIRECT = "direct"
    FALLBACK = "fallback"


# === Request / Response Models ===

class DiagnoseResponse(BaseModel):
    """Successful diagnosis response."""
    model_config = ConfigDict(populate_by_name=True)

    result: str
    cached: bool
    is_authenticated: bool = Field(..., alias="isAuthenticated")
    has_full_access: bool = Field(..., alias="hasFullAccess")


class ErrorResponse(BaseModel):
    """Error payload returned for every failed request."""
    error: str
    code: Optional[str] = None


class HealthResponse(BaseModel):
    """Liveness probe payload."""
    status: str = "ok"
    service: str
    version: str
    timestamp: datetime = Field(default_factory=utcnow)


# === Records ===

class DiagnosisRecord(BaseModel):
    """A cached diagnosis. Never mutated after creation."""
    url: str
    result: str
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are treated as UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class HistoryEntry(BaseModel):
    """One diagnosis recorded for an authenticated user."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    url: str
    result: str
    created_at: datetime = Field(default_factory=utcnow)


class HistoryPage(BaseModel):
    """Paginated slice of a user's diagnosis history."""
    data: List[HistoryEntry]
    total: int
    page: int
    limit: int
    has_next: bool


# === In-flight values ===

@dataclass(frozen=True)
class ValidatedUrl:
    """A URL that passed validation.

    ``url`` is the input (with ``https://`` prefixed when no scheme was
    given); ``cache_key`` is the canonical form used for cache lookups.
    """
    url: str
    scheme: str
    hostname: str
    cache_key: str

    def __str__(self) -> str:
        return self.url


@dataclass
class HtmlDocument:
    """Raw HTML retrieved for a URL."""
    url: str
    html: str
    final_url: str = ""
    source: ContentSource = ContentSource.DIRECT


@dataclass
class ExtractedContent:
    """Semantic digest of a page, built once per cache miss."""
    title: str = ""
    description: str = ""
    headings: List[str] = field(default_factory=list)
    body_text: str = ""

    def summary(self) -> str:
        """Labeled sections joined by blank lines; empty sections are omitted."""
        parts = [
            f"Title: {self.title}" if self.title else "",
            f"Description: {self.description}" if self.description else "",
            f"Headings: {', '.join(self.headings)}" if self.headings else "",
            f"Body: {self.body_text}" if self.body_text else "",
        ]
        return "\n\n".join(p for p in parts if p)

    def render(self, max_length: int) -> str:
        """Summary truncated to ``max_length`` plus a notice."""
        return truncate(self.summary(), max_length)


def truncate(text: str, max_length: int, notice: str = TRUNCATION_NOTICE) -> str:
    """Cut ``text`` to ``max_length`` characters and append ``notice`` if it was longer."""
    if len(text) > max_length:
        return text[:max_length] + notice
    return text


@dataclass(frozen=True)
class AuthorizationContext:
    """Per-request authorization state."""
    is_authenticated: bool = False
    user_id: Optional[str] = None

    @property
    def has_full_access(self) -> bool:
        # No intermediate tiers: signed-in users see everything.
        return self.is_authenticated

    @classmethod
    def anonymous(cls) -> "AuthorizationContext":
        return cls()

    @classmethod
    def for_user(cls, user_id: str) -> "AuthorizationContext":
        return cls(is_authenticated=True, user_id=user_id)


@dataclass
class DiagnosisOutcome:
    """What the workflow hands back to the endpoint."""
    result: str
    cached: bool
    auth: AuthorizationContext

    def to_response(self) -> DiagnoseResponse:
        return DiagnoseResponse(
            result=self.result,
            cached=self.cached,
            is_authenticated=self.auth.is_authenticated,
            has_full_access=self.auth.has_full_access,
        )

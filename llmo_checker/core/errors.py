"""
Error taxonomy for the diagnosis pipeline.

Every error that may reach a caller carries an HTTP status, a stable code and
a fixed user-facing message. Collaborator error text is kept in ``detail``
for logging and never returned to the client.
"""

from enum import Enum
from typing import Optional


class RejectionKind(str, Enum):
    """Why a URL was rejected before any network I/O."""
    MALFORMED_URL = "malformed_url"
    UNSUPPORTED_SCHEME = "unsupported_scheme"
    PRIVATE_NETWORK_ACCESS = "private_network_access"


class FetchErrorKind(str, Enum):
    """Failure classes of page retrieval."""
    HTTP_ERROR = "http_error"
    UNSUPPORTED_CONTENT_TYPE = "unsupported_content_type"
    CONTENT_TOO_SHORT = "content_too_short"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    TOO_MANY_REDIRECTS = "too_many_redirects"
    FALLBACK_FAILED = "fallback_failed"
    NO_EXTRACTABLE_CONTENT = "no_extractable_content"


class AnalysisErrorKind(str, Enum):
    """Failure classes of the language-model call."""
    RATE_LIMITED = "rate_limited"
    INVALID_CREDENTIALS = "invalid_credentials"
    QUOTA_EXCEEDED = "quota_exceeded"
    EMPTY_RESPONSE = "empty_response"
    UNKNOWN = "unknown"


REJECTION_MESSAGES = {
    RejectionKind.MALFORMED_URL: "Invalid URL. Please enter a full web address with a valid domain name.",
    RejectionKind.UNSUPPORTED_SCHEME: "Only HTTP and HTTPS URLs are supported.",
    RejectionKind.PRIVATE_NETWORK_ACCESS: "Access to private or local network addresses is not allowed.",
}

FETCH_MESSAGES = {
    FetchErrorKind.HTTP_ERROR: "The site responded with an HTTP error and could not be accessed.",
    FetchErrorKind.UNSUPPORTED_CONTENT_TYPE: "The URL does not point to an HTML page. Please enter the URL of a web page.",
    FetchErrorKind.CONTENT_TOO_SHORT: "The retrieved content is too short to be a valid HTML page.",
    FetchErrorKind.TIMEOUT: "The page took too long to load. The site may be slow or unreachable.",
    FetchErrorKind.NETWORK_ERROR: "A network error occurred. Check that the URL is correct and the site is reachable.",
    FetchErrorKind.TOO_MANY_REDIRECTS: "The page redirected too many times and could not be retrieved.",
    FetchErrorKind.FALLBACK_FAILED: "The page could not be retrieved. Please check the URL and try again.",
    FetchErrorKind.NO_EXTRACTABLE_CONTENT: (
        "No content could be extracted from the page. "
        "It may be generated entirely by JavaScript."
    ),
}

ANALYSIS_MESSAGES = {
    AnalysisErrorKind.RATE_LIMITED: "The AI service is busy right now. Please wait a moment and try again.",
    AnalysisErrorKind.INVALID_CREDENTIALS: "The AI service is not configured correctly. Please contact the administrator.",
    AnalysisErrorKind.QUOTA_EXCEEDED: "The AI service quota has been exhausted. Please contact the administrator or retry later.",
    AnalysisErrorKind.EMPTY_RESPONSE: "The AI service did not return a usable analysis. Please try again.",
    AnalysisErrorKind.UNKNOWN: "An error occurred during AI analysis. Please try again.",
}

RETRYABLE_ANALYSIS_KINDS = {AnalysisErrorKind.RATE_LIMITED, AnalysisErrorKind.QUOTA_EXCEEDED}


class DiagnosisError(Exception):
    """Base class for errors that are turned into an error response."""

    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = (
        "An unexpected error occurred while running the diagnosis. "
        "Please wait a while and try again."
    )

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


class ClientInputError(DiagnosisError):
    """The request body is unusable. Not retryable."""

    status_code = 400
    code = "INVALID_REQUEST"
    default_message = "Invalid request. Send a JSON body with a url field."


class UrlValidationError(ClientInputError):
    """The URL failed validation (malformed, bad scheme or private target)."""

    code = "INVALID_URL"

    def __init__(self, kind: RejectionKind, detail: Optional[str] = None):
        self.kind = kind
        super().__init__(REJECTION_MESSAGES[kind], detail)


class SecurityRejection(UrlValidationError):
    """URL targets a private, loopback or link-local address."""

    code = "PRIVATE_NETWORK"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(RejectionKind.PRIVATE_NETWORK_ACCESS, detail)


class FetchError(Exception):
    """Internal failure of a single retrieval attempt."""

    def __init__(self, kind: FetchErrorKind, status: Optional[int] = None, detail: Optional[str] = None):
        self.kind = kind
        self.status = status
        self.detail = detail
        super().__init__(f"{kind.value}" + (f" ({status})" if status else "") + (f": {detail}" if detail else ""))


class RetrievalError(DiagnosisError):
    """The page could not be retrieved or yielded no content."""

    status_code = 422
    code = "SCRAPE_ERROR"

    def __init__(self, kind: FetchErrorKind, status: Optional[int] = None, detail: Optional[str] = None):
        self.kind = kind
        self.status = status
        message = FETCH_MESSAGES[kind]
        if kind is FetchErrorKind.HTTP_ERROR and status:
            message = f"The site responded with HTTP {status} and could not be accessed."
        super().__init__(message, detail)


class AnalysisError(DiagnosisError):
    """The language-model service failed."""

    status_code = 503
    code = "AI_ERROR"

    def __init__(self, kind: AnalysisErrorKind, detail: Optional[str] = None):
        self.kind = kind
        super().__init__(ANALYSIS_MESSAGES[kind], detail)

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_ANALYSIS_KINDS


class DiagnosisTimeout(DiagnosisError):
    """The end-to-end deadline expired."""

    status_code = 503
    code = "TIMEOUT"
    default_message = "The diagnosis took too long to complete. Please try again later."


class AuthenticationRequired(DiagnosisError):
    """The endpoint needs a valid bearer token."""

    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Sign in to view your diagnosis history."

"""
Direct page fetcher.
Retrieves HTML over httpx with timeout, content-type and size checks.
"""

from urllib.parse import urljoin

import httpx
import structlog

from ...core.config import settings
from ...core.errors import FetchError, FetchErrorKind, SecurityRejection, UrlValidationError
from ...models.schemas import ContentSource, HtmlDocument, ValidatedUrl
from ..url_validator import validate_url

logger = structlog.get_logger()


def default_headers(user_agent: str) -> dict:
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en,ja;q=0.8",
        "Cache-Control": "no-cache",
    }


def create_http_client(timeout: float = settings.FETCH_TIMEOUT) -> httpx.AsyncClient:
    """Shared client, one per process. Redirects are handled by PageFetcher."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=50),
        follow_redirects=False,
    )


class PageFetcher:
    """Fetches a validated URL directly from the target site."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: float = settings.FETCH_TIMEOUT,
        max_redirects: int = settings.MAX_REDIRECTS,
        min_content_length: int = settings.MIN_CONTENT_LENGTH,
        user_agent: str = settings.USER_AGENT,
    ):
        self.client = client
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.min_content_length = min_content_length
        self.headers = default_headers(user_agent)

    async def fetch(self, target: ValidatedUrl) -> HtmlDocument:
        """
        GET the page, following redirects only to URLs that pass validation.

        Args:
            target: URL accepted by the validator

        Returns:
            HtmlDocument with the response body

        Raises:
            FetchError: on timeout, network failure, bad status, non-HTML
                content or a body shorter than ``min_content_length``
            SecurityRejection: a redirect pointed at a private address
        """
        url = target.url
        logger.info("fetching_url", url=url)

        for _ in range(self.max_redirects + 1):
            response = await self._get(url)

            if response.is_redirect:
                location = response.headers.get("location", "")
                next_url = urljoin(url, location)
                # Redirect targets get the same SSRF checks as the original URL.
                try:
                    url = validate_url(next_url).url
                except SecurityRejection:
                    logger.warning("redirect_rejected", url=url, location=next_url)
                    raise
                except UrlValidationError as e:
                    raise FetchError(FetchErrorKind.NETWORK_ERROR, detail=f"invalid redirect target {next_url}") from e
                logger.info("following_redirect", status=response.status_code, location=url)
                continue

            return self._check_response(target, url, response)

        logger.warning("too_many_redirects", url=target.url, limit=self.max_redirects)
        raise FetchError(FetchErrorKind.TOO_MANY_REDIRECTS)

    async def _get(self, url: str) -> httpx.Response:
        try:
            return await self.client.get(
                url,
                headers=self.headers,
                timeout=self.timeout,
                follow_redirects=False,
            )
        except httpx.TimeoutException as e:
            logger.warning("fetch_timeout", url=url, timeout=self.timeout)
            raise FetchError(FetchErrorKind.TIMEOUT, detail=str(e)) from e
        except httpx.HTTPError as e:
            logger.warning("fetch_network_error", url=url, error=str(e))
            raise FetchError(FetchErrorKind.NETWORK_ERROR, detail=str(e)) from e

    def _check_response(self, target: ValidatedUrl, final_url: str, response: httpx.Response) -> HtmlDocument:
        if not response.is_success:
            raise FetchError(FetchErrorKind.HTTP_ERROR, status=response.status_code)

        content_type = response.headers.get("content-type", "")
        if "text/html" not in content_type.lower():
            raise FetchError(FetchErrorKind.UNSUPPORTED_CONTENT_TYPE, detail=content_type or "missing")

        html = response.text
        if len(html) < self.min_content_length:
            raise FetchError(FetchErrorKind.CONTENT_TOO_SHORT, detail=f"{len(html)} chars")

        logger.info("fetch_complete", url=target.url, final_url=final_url, content_length=len(html))
        return HtmlDocument(url=target.url, html=html, final_url=final_url, source=ContentSource.DIRECT)


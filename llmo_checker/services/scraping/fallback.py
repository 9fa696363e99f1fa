"""
Rendering fallback fetch using the Scrapfly SDK.
Used only when the direct fetch fails; Scrapfly renders JavaScript and
applies Anti-Scraping Protection on its own infrastructure.
"""

from typing import Optional

from scrapfly import ScrapeConfig, ScrapflyClient
import structlog

from ...core.config import Settings, settings
from ...core.errors import FetchError, FetchErrorKind
from ...models.schemas import ContentSource, HtmlDocument, ValidatedUrl

logger = structlog.get_logger()


class ScrapflyFallback:
    """Fallback fetch service: ``fetch_rendered(url) -> HtmlDocument``."""

    def __init__(
        self,
        client: ScrapflyClient,
        asp: bool = settings.SCRAPFLY_ASP,
        render_js: bool = settings.SCRAPFLY_RENDER_JS,
        country: str = settings.SCRAPFLY_COUNTRY,
        min_content_length: int = settings.MIN_CONTENT_LENGTH,
    ):
        self.client = client
        self.asp = asp
        self.render_js = render_js
        self.country = country
        self.min_content_length = min_content_length

    @classmethod
    def from_settings(cls, config: Settings = settings) -> Optional["ScrapflyFallback"]:
        """Build the fallback, or None when no Scrapfly key is configured."""
        if not config.SCRAPFLY_KEY:
            logger.info("fallback_fetch_disabled", reason="SCRAPFLY_KEY not set")
            return None
        return cls(
            ScrapflyClient(key=config.SCRAPFLY_KEY),
            asp=config.SCRAPFLY_ASP,
            render_js=config.SCRAPFLY_RENDER_JS,
            country=config.SCRAPFLY_COUNTRY,
            min_content_length=config.MIN_CONTENT_LENGTH,
        )

    async def fetch_rendered(self, target: ValidatedUrl) -> HtmlDocument:
        """
        Scrape a URL through Scrapfly.

        Args:
            target: URL accepted by the validator

        Returns:
            HtmlDocument with the rendered HTML

        Raises:
            FetchError: FALLBACK_FAILED on any SDK error or unusable content
        """
        config = ScrapeConfig(
            url=target.url,
            country=self.country.upper(),
            asp=self.asp,
            render_js=self.render_js,
            # Note: Don't set timeout when using Scrapfly's built-in retry mechanism
        )

        logger.info("fallback_scraping_url", url=target.url, render_js=self.render_js)

        try:
            result = await self.client.async_scrape(config)
        except Exception as e:
            logger.error("fallback_scrape_failed", url=target.url, error=str(e))
            raise FetchError(FetchErrorKind.FALLBACK_FAILED, detail=str(e)) from e

        html = result.content or ""
        if len(html) < self.min_content_length:
            logger.warning("fallback_content_too_short", url=target.url, content_length=len(html))
            raise FetchError(FetchErrorKind.FALLBACK_FAILED, detail=f"{len(html)} chars")

        logger.info("fallback_scrape_complete", url=target.url, content_length=len(html))
        return HtmlDocument(url=target.url, html=html, final_url=target.url, source=ContentSource.FALLBACK)

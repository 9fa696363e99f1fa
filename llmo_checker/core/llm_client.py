"""
LLM client for the diagnosis service.
Wraps the OpenAI chat completions API and classifies its failures.
"""

from __future__ import annotations

from typing import Optional

import openai
from openai import AsyncOpenAI
import structlog

from .config import Settings, settings
from .errors import AnalysisError, AnalysisErrorKind

logger = structlog.get_logger()


def classify_openai_error(error: Exception) -> AnalysisErrorKind:
    """Map an OpenAI SDK exception onto the analysis failure taxonomy."""
    if isinstance(error, openai.RateLimitError):
        # Exhausted billing quota is reported as a 429 with its own code.
        if getattr(error, "code", None) == "insufficient_quota":
            return AnalysisErrorKind.QUOTA_EXCEEDED
        return AnalysisErrorKind.RATE_LIMITED
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AnalysisErrorKind.INVALID_CREDENTIALS
    return AnalysisErrorKind.UNKNOWN


def _extract_text(response) -> Optional[str]:
    """Text of the first choice, or None."""
    choices = getattr(response, "choices", None) or []
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None)


class LLMClient:
    """
    Language-model service: ``complete(prompt, max_tokens, temperature) -> text``.
    Constructed once per process and shared across requests.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = settings.LLM_MODEL,
        timeout: float = settings.LLM_TIMEOUT,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        if client is not None:
            self.client = client
        elif api_key:
            self.client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        else:
            self.client = None

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "LLMClient":
        if not config.OPENAI_API_KEY:
            logger.warning("llm_client_unconfigured", reason="OPENAI_API_KEY not set")
        return cls(
            api_key=config.OPENAI_API_KEY,
            model=config.LLM_MODEL,
            timeout=config.LLM_TIMEOUT,
        )

    async def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        """
        Generate text for a single user prompt.

        Raises:
            AnalysisError: classified failure; the SDK message is kept in ``detail``
        """
        if self.client is None:
            raise AnalysisError(AnalysisErrorKind.INVALID_CREDENTIALS, detail="OPENAI_API_KEY is not configured")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.OpenAIError as e:
            kind = classify_openai_error(e)
            logger.error("llm_call_failed", model=self.model, kind=kind.value, error=str(e))
            raise AnalysisError(kind, detail=str(e)) from e

        text = _extract_text(response)
        if not text or not text.strip():
            logger.error("llm_empty_response", model=self.model)
            raise AnalysisError(AnalysisErrorKind.EMPTY_RESPONSE)

        try:
            logger.info("llm_call_complete", model=self.model, token_usage=response.usage.total_tokens)
        except AttributeError:
            logger.info("llm_call_complete", model=self.model)

        return text

"""
Analysis client: turns a page digest into a diagnostic report.
"""

from typing import Protocol

import structlog

from ..core.config import settings
from ..core.errors import AnalysisError, AnalysisErrorKind
from ..core.prompts import PromptTemplates
from ..models.schemas import truncate

logger = structlog.get_logger()

ANALYSIS_TRUNCATION_NOTICE = "\n\n[Content was too long; only the first part is analyzed]"


class CompletionService(Protocol):
    async def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        ...


class DiagnosisAnalyzer:
    """Truncates, prompts and calls the language model. No local state."""

    def __init__(
        self,
        llm: CompletionService,
        max_chars: int = settings.ANALYSIS_MAX_CHARS,
        max_tokens: int = settings.LLM_MAX_TOKENS,
        temperature: float = settings.LLM_TEMPERATURE,
    ):
        self.llm = llm
        self.max_chars = max_chars
        self.max_tokens = max_tokens
        self.temperature = temperature

    def build_prompt(self, content: str) -> str:
        return PromptTemplates.llmo_diagnosis(
            truncate(content, self.max_chars, ANALYSIS_TRUNCATION_NOTICE)
        )

    async def analyze(self, content: str) -> str:
        """
        Generate the LLMO report for a page digest.

        Args:
            content: Extracted page digest

        Returns:
            Report text (markdown)

        Raises:
            AnalysisError: classified model failure; retryable kinds are not
                retried here
        """
        prompt = self.build_prompt(content)
        logger.info("analysis_started", content_length=len(content), prompt_length=len(prompt))

        report = await self.llm.complete(
            prompt,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

        if not report or not report.strip():
            raise AnalysisError(AnalysisErrorKind.EMPTY_RESPONSE)

        logger.info("analysis_complete", report_length=len(report))
        return report

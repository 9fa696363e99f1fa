"""
Tests for the language-model client and the analysis service.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from llmo_checker.core.errors import AnalysisError, AnalysisErrorKind
from llmo_checker.core.llm_client import LLMClient, classify_openai_error
from llmo_checker.core.prompts import PromptTemplates
from llmo_checker.services.analysis import ANALYSIS_TRUNCATION_NOTICE, DiagnosisAnalyzer

from conftest import FakeLLM


def api_error(cls, status: int, body=None):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return cls("error from provider", response=response, body=body)


def completion(text):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=text))]
    response.usage.total_tokens = 1234
    return response


def mock_openai(create: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = create
    return client


# ============================================
# Error classification
# ============================================

class TestClassifyOpenAIError:
    def test_rate_limited(self):
        error = api_error(openai.RateLimitError, 429, body={"code": "rate_limit_exceeded"})
        assert classify_openai_error(error) == AnalysisErrorKind.RATE_LIMITED

    def test_quota_exceeded(self):
        error = api_error(openai.RateLimitError, 429, body={"code": "insufficient_quota"})
        assert classify_openai_error(error) == AnalysisErrorKind.QUOTA_EXCEEDED

    def test_invalid_credentials(self):
        assert classify_openai_error(api_error(openai.AuthenticationError, 401)) == AnalysisErrorKind.INVALID_CREDENTIALS
        assert classify_openai_error(api_error(openai.PermissionDeniedError, 403)) == AnalysisErrorKind.INVALID_CREDENTIALS

    def test_unknown(self):
        assert classify_openai_error(api_error(openai.InternalServerError, 500)) == AnalysisErrorKind.UNKNOWN
        assert classify_openai_error(ValueError("boom")) == AnalysisErrorKind.UNKNOWN


# ============================================
# LLM client
# ============================================

class TestLLMClient:
    @pytest.mark.asyncio
    async def test_complete(self):
        create = AsyncMock(return_value=completion("## Report"))
        client = LLMClient(model="gpt-test", client=mock_openai(create))

        text = await client.complete("prompt", max_tokens=100, temperature=0.2)

        assert text == "## Report"
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]
        assert kwargs["max_tokens"] == 100
        assert kwargs["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_sdk_error_classified(self):
        create = AsyncMock(side_effect=api_error(openai.RateLimitError, 429))
        client = LLMClient(client=mock_openai(create))

        with pytest.raises(AnalysisError) as exc_info:
            await client.complete("prompt", max_tokens=100, temperature=0.2)

        assert exc_info.value.kind == AnalysisErrorKind.RATE_LIMITED
        assert exc_info.value.retryable
        assert exc_info.value.status_code == 503
        assert "error from provider" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_empty_response(self):
        client = LLMClient(client=mock_openai(AsyncMock(return_value=completion("   "))))

        with pytest.raises(AnalysisError) as exc_info:
            await client.complete("prompt", max_tokens=100, temperature=0.2)

        assert exc_info.value.kind == AnalysisErrorKind.EMPTY_RESPONSE

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        client = LLMClient(api_key=None)

        with pytest.raises(AnalysisError) as exc_info:
            await client.complete("prompt", max_tokens=100, temperature=0.2)

        assert exc_info.value.kind == AnalysisErrorKind.INVALID_CREDENTIALS
        assert not exc_info.value.retryable


# ============================================
# Analysis service
# ============================================

class TestDiagnosisAnalyzer:
    def test_prompt_embeds_content(self):
        analyzer = DiagnosisAnalyzer(FakeLLM())
        prompt = analyzer.build_prompt("Title: Example")

        assert "Title: Example" in prompt
        assert "## 🎯 Executive Summary" in prompt
        assert "{content}" not in prompt

    def test_content_capped(self):
        analyzer = DiagnosisAnalyzer(FakeLLM(), max_chars=100)
        prompt = analyzer.build_prompt("x" * 500)

        assert "x" * 100 + ANALYSIS_TRUNCATION_NOTICE in prompt
        assert "x" * 101 not in prompt

    def test_braces_in_content_preserved(self):
        prompt = PromptTemplates.llmo_diagnosis("function() { return {a: 1}; }")
        assert "{ return {a: 1}; }" in prompt

    @pytest.mark.asyncio
    async def test_analyze(self):
        llm = FakeLLM(report="## Summary\nGood site")
        analyzer = DiagnosisAnalyzer(llm, max_tokens=8000, temperature=0.2)

        report = await analyzer.analyze("Title: Example")

        assert report == "## Summary\nGood site"
        assert len(llm.prompts) == 1

    @pytest.mark.asyncio
    async def test_blank_report(self):
        analyzer = DiagnosisAnalyzer(FakeLLM(report="\n  \n"))

        with pytest.raises(AnalysisError) as exc_info:
            await analyzer.analyze("Title: Example")

        assert exc_info.value.kind == AnalysisErrorKind.EMPTY_RESPONSE

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        analyzer = DiagnosisAnalyzer(FakeLLM(error=AnalysisError(AnalysisErrorKind.QUOTA_EXCEEDED)))

        with pytest.raises(AnalysisError) as exc_info:
            await analyzer.analyze("Title: Example")

        assert exc_info.value.kind == AnalysisErrorKind.QUOTA_EXCEEDED

"""
Diagnosis LangGraph workflow.
Cache check, then fetch, extract, analyze and store on a miss; the report is
redacted for the caller and recorded in their history.
"""

import asyncio
from typing import Any, Dict, Optional, TypedDict

import structlog
from langgraph.graph import StateGraph, END

from ..core.config import settings
from ..core.errors import (
    AnalysisError,
    DiagnosisTimeout,
    FetchError,
    FetchErrorKind,
    RetrievalError,
)
from ..models.schemas import AuthorizationContext, DiagnosisOutcome, HtmlDocument, ValidatedUrl
from ..services.analysis import DiagnosisAnalyzer
from ..services.auth import HistoryStore
from ..services.cache import DiagnosisCache
from ..services.extractor import ContentExtractor
from ..services.redaction import redact
from ..services.scraping.base import PageFetcher
from ..services.scraping.fallback import ScrapflyFallback
from ..services.url_validator import validate_url

logger = structlog.get_logger()


class DiagnosisState(TypedDict, total=False):
    target: ValidatedUrl
    auth: AuthorizationContext
    cache_hit: bool
    document: HtmlDocument
    content: str
    report: str
    result: str


def should_skip_to_redact(state: Dict[str, Any]) -> str:
    """Conditional edge: on a cache hit, skip straight to redaction."""
    if state.get("cache_hit"):
        logger.info("cache_hit_routing_to_redact")
        return "redact"
    return "fetch"


class DiagnosisWorkflow:
    """
    Request orchestration for one diagnosis.

    Stages run strictly in sequence. Cache and history failures are absorbed;
    retrieval and analysis failures end the run with a classified error.
    """

    def __init__(
        self,
        cache: DiagnosisCache,
        fetcher: PageFetcher,
        extractor: ContentExtractor,
        analyzer: DiagnosisAnalyzer,
        fallback: Optional[ScrapflyFallback] = None,
        history: Optional[HistoryStore] = None,
        extraction_mode: str = settings.EXTRACTION_MODE,
        timeout: float = settings.DIAGNOSIS_TIMEOUT,
    ):
        self.cache = cache
        self.fetcher = fetcher
        self.extractor = extractor
        self.analyzer = analyzer
        self.fallback = fallback
        self.history = history
        self.extraction_mode = extraction_mode
        self.timeout = timeout
        self.graph = self._build()

    def _build(self):
        """
        Create and compile the diagnosis graph.

        Workflow steps:
        1. Cache check
        2. Fetch (direct, then rendering fallback)
        3. Extract page digest
        4. Analyze with the language model
        5. Store report in cache
        6. Redact for the caller
        7. Record history

        Returns:
            Compiled workflow
        """
        workflow = StateGraph(DiagnosisState)

        workflow.add_node("cache_check", self.node_cache_check)
        workflow.add_node("fetch", self.node_fetch)
        workflow.add_node("extract", self.node_extract)
        workflow.add_node("analyze", self.node_analyze)
        workflow.add_node("store", self.node_store)
        workflow.add_node("redact", self.node_redact)
        workflow.add_node("record_history", self.node_record_history)

        workflow.set_entry_point("cache_check")
        workflow.add_conditional_edges(
            "cache_check",
            should_skip_to_redact,
            {
                "redact": "redact",
                "fetch": "fetch"
            }
        )
        workflow.add_edge("fetch", "extract")
        workflow.add_edge("extract", "analyze")
        workflow.add_edge("analyze", "store")
        workflow.add_edge("store", "redact")
        workflow.add_edge("redact", "record_history")
        workflow.add_edge("record_history", END)

        app = workflow.compile()
        logger.info("diagnosis_workflow_compiled")
        return app

    # === Nodes ===

    async def node_cache_check(self, state: DiagnosisState) -> Dict[str, Any]:
        target = state["target"]
        record = await self.cache.get(target.cache_key)
        if record is None:
            return {"cache_hit": False}
        return {"cache_hit": True, "report": record.result}

    async def node_fetch(self, state: DiagnosisState) -> Dict[str, Any]:
        target = state["target"]
        try:
            document = await self.fetcher.fetch(target)
        except FetchError as direct_error:
            logger.warning(
                "fetch_failed",
                url=target.url,
                kind=direct_error.kind.value,
                status=direct_error.status,
                error=direct_error.detail,
            )
            document = await self._fetch_fallback(target, direct_error)

        logger.info("page_retrieved", url=target.url, source=document.source.value, length=len(document.html))
        return {"document": document}

    async def _fetch_fallback(self, target: ValidatedUrl, direct_error: FetchError) -> HtmlDocument:
        if self.fallback is None:
            raise RetrievalError(direct_error.kind, direct_error.status, direct_error.detail)

        try:
            return await self.fallback.fetch_rendered(target)
        except FetchError as fallback_error:
            logger.error("fallback_fetch_failed", url=target.url, error=str(fallback_error))
            raise RetrievalError(direct_error.kind, direct_error.status, direct_error.detail) from fallback_error

    async def node_extract(self, state: DiagnosisState) -> Dict[str, Any]:
        document = state["document"]
        content = self.extractor.digest(document.html, self.extraction_mode)
        if not content.strip():
            raise RetrievalError(FetchErrorKind.NO_EXTRACTABLE_CONTENT)

        logger.info("extraction_complete", url=document.url, mode=self.extraction_mode, length=len(content))
        return {"content": content}

    async def node_analyze(self, state: DiagnosisState) -> Dict[str, Any]:
        target = state["target"]
        try:
            report = await self.analyzer.analyze(state["content"])
        except AnalysisError as e:
            logger.error(
                "analysis_failed",
                url=target.url,
                kind=e.kind.value,
                retryable=e.retryable,
                error=e.detail,
            )
            raise
        return {"report": report}

    async def node_store(self, state: DiagnosisState) -> Dict[str, Any]:
        # Failure is logged by the cache and never ends the run.
        await self.cache.put(state["target"].cache_key, state["report"])
        return {}

    async def node_redact(self, state: DiagnosisState) -> Dict[str, Any]:
        auth = state["auth"]
        return {"result": redact(state["report"], auth.has_full_access)}

    async def node_record_history(self, state: DiagnosisState) -> Dict[str, Any]:
        auth = state["auth"]
        if not auth.is_authenticated or self.history is None:
            return {}

        target = state["target"]
        try:
            await self.history.append(auth.user_id, target.url, state["report"])
        except Exception as e:
            logger.warning("history_save_failed", url=target.url, error=str(e))
        return {}

    # === Entry point ===

    async def run(self, url: str, auth: Optional[AuthorizationContext] = None) -> DiagnosisOutcome:
        """
        Diagnose ``url`` for the given caller.

        Args:
            url: Raw URL from the request
            auth: Caller's authorization context (anonymous if omitted)

        Returns:
            DiagnosisOutcome with the (possibly redacted) report

        Raises:
            UrlValidationError: before any network I/O
            RetrievalError: page could not be retrieved or had no content
            AnalysisError: language model failure
            DiagnosisTimeout: the run exceeded the deadline
        """
        auth = auth or AuthorizationContext.anonymous()
        target = validate_url(url)

        logger.info("diagnosis_started", url=target.url, authenticated=auth.is_authenticated)

        try:
            final_state = await asyncio.wait_for(
                self.graph.ainvoke({"target": target, "auth": auth}),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("diagnosis_timeout", url=target.url, timeout=self.timeout)
            raise DiagnosisTimeout(detail=f"exceeded {self.timeout}s") from e

        cached = bool(final_state.get("cache_hit"))
        logger.info("diagnosis_complete", url=target.url, cached=cached)
        return DiagnosisOutcome(result=final_state["result"], cached=cached, auth=auth)

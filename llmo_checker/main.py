"""
LLMO Checker - FastAPI Main Application
Diagnoses how well a web page can be understood and cited by AI systems.
"""

import logging

import structlog
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.endpoints import router
from .core.config import settings
from .core.errors import DiagnosisError
from .core.llm_client import LLMClient
from .graph.diagnosis_workflow import DiagnosisWorkflow
from .models.schemas import ErrorResponse
from .services.analysis import DiagnosisAnalyzer
from .services.auth import FileHistoryStore, TokenVerifier
from .services.cache import DiagnosisCache, FileDiagnosisStore
from .services.extractor import ContentExtractor
from .services.scraping.base import PageFetcher, create_http_client
from .services.scraping.fallback import ScrapflyFallback

# Setup structured logging
logging.basicConfig(format="%(message)s", level=settings.LOG_LEVEL.upper())
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.ConsoleRenderer() if settings.ENVIRONMENT == "development" else structlog.processors.JSONRenderer()
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Builds the shared services on startup and closes the HTTP client on shutdown.
    """
    logger.info(
        "starting_llmo_checker_api",
        environment=settings.ENVIRONMENT,
        log_level=settings.LOG_LEVEL
    )

    http_client = create_http_client()
    try:
        cache = DiagnosisCache(FileDiagnosisStore(settings.CACHE_DIR))
        await cache.cleanup(settings.CACHE_RETENTION_DAYS)

        history = FileHistoryStore(settings.HISTORY_DIR)
        app.state.token_verifier = TokenVerifier(settings.AUTH_JWT_SECRET, settings.AUTH_JWT_AUDIENCE)
        app.state.history = history
        app.state.workflow = DiagnosisWorkflow(
            cache=cache,
            fetcher=PageFetcher(http_client),
            extractor=ContentExtractor(),
            analyzer=DiagnosisAnalyzer(LLMClient.from_settings()),
            fallback=ScrapflyFallback.from_settings(),
            history=history,
        )
        logger.info("services_initialized")
    except Exception as e:
        logger.error("service_initialization_failed", error=str(e), exc_info=True)
        await http_client.aclose()
        raise  # Re-raise to prevent server from starting with broken services

    yield

    # Shutdown
    logger.info("shutting_down_llmo_checker_api")
    await http_client.aclose()


async def diagnosis_error_handler(request: Request, exc: DiagnosisError) -> JSONResponse:
    logger.warning(
        "request_failed",
        path=request.url.path,
        status=exc.status_code,
        code=exc.code,
        detail=exc.detail,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message, code=exc.code).model_dump(),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_error", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=DiagnosisError.status_code,
        content=ErrorResponse(error=DiagnosisError.default_message, code=DiagnosisError.code).model_dump(),
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.SERVICE_NAME,
        description="LLMO diagnosis: how easily AI systems can understand and cite a web page",
        version=settings.VERSION,
        lifespan=lifespan
    )

    app.add_exception_handler(DiagnosisError, diagnosis_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API router
    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint for deployment monitoring."""
        return {
            "status": "healthy",
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "llmo_checker.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )

"""
Core configuration for LLMO Checker.
Uses Pydantic Settings for environment variable management.
"""

from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # === API Keys ===
    OPENAI_API_KEY: Optional[str] = None
    SCRAPFLY_KEY: Optional[str] = None  # Fallback fetch disabled when unset

    # === App Configuration ===
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False
    SERVICE_NAME: str = "LLMO Checker API"
    VERSION: str = "1.0.0"
    CORS_ORIGINS: List[str] = ["*"]

    # === Cache Configuration ===
    CACHE_TTL_HOURS: int = 24
    CACHE_RETENTION_DAYS: int = 7
    CACHE_DIR: str = "/tmp/llmo_cache"
    HISTORY_DIR: str = "/tmp/llmo_history"

    # === Fetch Configuration ===
    FETCH_TIMEOUT: float = 20.0
    MAX_REDIRECTS: int = 5
    MIN_CONTENT_LENGTH: int = 100
    USER_AGENT: str = "LLMO-Checker/1.0 (Website Analysis Bot)"

    # === Scrapfly Configuration ===
    SCRAPFLY_ASP: bool = True  # Anti-Scraping Protection
    SCRAPFLY_RENDER_JS: bool = True
    SCRAPFLY_COUNTRY: str = "US"

    # === Extraction Limits ===
    EXTRACTION_MODE: Literal["summary", "structured"] = "summary"
    SUMMARY_MAX_LENGTH: int = 10000
    STRUCTURED_MAX_LENGTH: int = 30000

    # === LLM Configuration ===
    LLM_MODEL: str = "gpt-4o"
    LLM_MAX_TOKENS: int = 8000
    LLM_TEMPERATURE: float = 0.2
    LLM_TIMEOUT: float = 80.0
    ANALYSIS_MAX_CHARS: int = 15000

    # === Timeouts ===
    DIAGNOSIS_TIMEOUT: float = 90.0  # End-to-end deadline per request

    # === Auth ===
    AUTH_JWT_SECRET: Optional[str] = None
    AUTH_JWT_AUDIENCE: str = "authenticated"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


# Global settings instance
settings = Settings()

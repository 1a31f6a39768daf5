"""
Configuration Utility - Environment Variables Management

Centralized configuration loading from .env files using pydantic-settings.
Type-safe access to all environment variables with validation.

Usage:
    from utils.config import settings

    page_size = settings.EXTRACT_PAGE_SIZE
    redis_url = settings.REDIS_URL
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Remote API defaults (per-tenant values override these)
    API_TIMEOUT: int = Field(default=30, gt=0)
    EXTRACT_MAX_RETRIES: int = Field(default=3, ge=1)

    # Scheduler Configuration
    EXTRACT_INTERVAL_MINUTES: int = Field(default=5, ge=1)
    EXTRACT_BACKUP_INTERVAL_MINUTES: int = Field(default=60, ge=1)

    # Pagination
    EXTRACT_PAGE_SIZE: int = Field(default=100, ge=1)
    EXTRACT_MAX_PAGES: int = Field(default=100, ge=1)
    EXTRACT_PAGE_DELAY_SECONDS: float = Field(default=0.1, ge=0)

    # Worker pool
    EXTRACT_MAX_WORKERS: int = Field(default=10, ge=1)

    # Retry backoff
    RETRY_BASE_DELAY: float = Field(default=1.0, ge=0)
    RETRY_MULTIPLIER: float = Field(default=2.0, ge=1)
    RETRY_MAX_DELAY: float = Field(default=30.0, ge=0)

    # Database Configuration
    SQLITE_PATH: str = Field(default="/app/data/db/extractor.db")

    # Optional tenant seed file (JSON list of tenant objects)
    TENANTS_FILE: str | None = Field(default=None)

    # Redis Configuration
    REDIS_URL: str = Field(default="redis://redis:6379/0")
    REDIS_MAX_CONNECTIONS: int = Field(default=10)
    REDIS_CHANNEL_EXTRACTION: str = Field(default="extraction.completed")
    PUBLISH_EVENTS: bool = Field(default=False)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")

    # Application Metadata
    ENVIRONMENT: str = Field(default="production")
    APP_NAME: str = Field(default="px-extractor")
    APP_VERSION: str = Field(default="0.1.0")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Singleton Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()

"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.services.points_engine.config import (
    DETAIL_CACHE_MAX_ENTRIES,
    POINTS_CACHE_MAX_ENTRIES,
    POINTS_CACHE_TTL_SECONDS,
)

LOG_LEVELS = (
    "TRACE",
    "DEBUG",
    "INFO",
    "SUCCESS",
    "WARNING",
    "ERROR",
    "CRITICAL",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str | None = Field(
        default=None,
        description="Rotating log file path; stderr only when unset",
    )

    # Points cache
    points_cache_ttl_seconds: int = Field(
        default=POINTS_CACHE_TTL_SECONDS,
        gt=0,
        description="TTL of cached point aggregates in seconds",
    )
    points_cache_max_entries: int = Field(
        default=POINTS_CACHE_MAX_ENTRIES,
        gt=0,
        description="Max partners with cached totals",
    )
    points_detail_cache_max_entries: int = Field(
        default=DETAIL_CACHE_MAX_ENTRIES,
        gt=0,
        description="Max partners with cached point details",
    )

    # Hierarchy
    downline_page_size_max: int = Field(
        default=100,
        gt=0,
        le=1000,
        description="Upper bound for downline page size",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate loguru level name."""
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(
                f"Invalid LOG_LEVEL {v!r}. Expected one of: {', '.join(LOG_LEVELS)}"
            )
        return level

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Validate production-specific requirements."""
        if self.environment == "production" and self.debug:
            raise ValueError(
                "DEBUG must be False in production environment. "
                "Set DEBUG=false in your .env file."
            )
        return self


# Global settings instance
settings = Settings()

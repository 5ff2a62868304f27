"""
Configuration settings for the adaptive assessment service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///./adaptive_assessment.db",
        description="SQLAlchemy connection string (sqlite or postgresql)",
    )

    # ========================================
    # Question Generation (external LLM service)
    # ========================================
    generation_enabled: bool = Field(
        default=False,
        description="Ask the generation service to fill catalog shortfalls",
    )
    generation_base_url: str = Field(
        default="http://localhost:11434",
        description="Base URL of the Ollama-compatible generation service",
    )
    generation_model: str = Field(
        default="llama2",
        description="Model name passed to the generation service",
    )
    generation_timeout_seconds: float = Field(
        default=60.0,
        description="Per-request timeout for the generation service",
    )
    generation_retry_attempts: int = Field(
        default=2,
        ge=1,
        description="Attempts per generation request before falling back",
    )

    # ========================================
    # Assessment Behavior
    # ========================================
    default_schedule_days: int = Field(
        default=7,
        ge=1,
        description="Length of the availability window for generated assessments",
    )
    default_duration_minutes: int = Field(
        default=60,
        ge=1,
        description="Default assessment duration when none is requested",
    )
    context_update_max_retries: int = Field(
        default=5,
        ge=1,
        description="Optimistic-lock retries for proficiency context updates",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    def has_generation_configured(self) -> bool:
        """Check if the external question generator should be used."""
        return self.generation_enabled and bool(self.generation_base_url)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""
Configuration settings for the cascade feed engine.

Uses Pydantic Settings for environment variable management with .env file support.
All variables are read with the CASCADE_ prefix (e.g. CASCADE_API_BASE_URL).
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CASCADE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Backend API
    # ========================================
    api_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the feed backend (generation, engagement, votes)",
    )
    api_key: str | None = Field(
        default=None,
        description="Optional API key sent as X-API-Key",
    )
    api_timeout_seconds: float = Field(
        default=30.0,
        description="Transport timeout for backend requests",
    )
    poll_interval_seconds: float = Field(
        default=5.0,
        description="Refresh interval when the pool is polled instead of pushed",
    )

    # ========================================
    # Feed Interleaving
    # ========================================
    quiz_gap_min: int = Field(
        default=7,
        description="Minimum number of general items between two quizzes",
    )
    quiz_gap_max: int = Field(
        default=10,
        description="Maximum target gap between two quizzes",
    )

    # ========================================
    # Generation Trigger
    # ========================================
    trigger_depth: float = Field(
        default=0.75,
        description="Fraction of the delivered sequence that triggers a refill",
    )
    trigger_min_items: int = Field(
        default=5,
        description="Depth trigger is only evaluated above this many items",
    )
    generic_subject: str = Field(
        default="general knowledge",
        description="Subject used when the learner has no enrolled subjects",
    )
    default_difficulty: Literal["beginner", "intermediate", "advanced"] = Field(
        default="beginner",
        description="Difficulty used when nothing more specific is known",
    )

    # ========================================
    # Viewport Tracking
    # ========================================
    avoided_dwell_ms: int = Field(
        default=2500,
        description="Dwell below this is reported as an avoided topic",
    )
    visibility_threshold: float = Field(
        default=0.9,
        description="Viewport occupancy needed for an item to count as in view",
    )

    # ========================================
    # Focus Interrupter
    # ========================================
    focus_poll_seconds: float = Field(
        default=60.0,
        description="How often the timetable is checked for an ongoing class",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path (rotated at 10 MB)",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

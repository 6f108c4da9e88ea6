"""
Configuration management for Torneo.

Uses Pydantic Settings to load configuration from environment variables
with sensible defaults for development. The database URL and any other
deployment-specific values should be set via environment variables or a
.env file.

Usage:
    from torneo.config import settings
    print(settings.database_url)
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can be set directly or via a .env file
    in the project root directory. All names are prefixed with TORNEO_.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TORNEO_",
        case_sensitive=False,
    )

    # ==========================================================================
    # Database Configuration
    # ==========================================================================

    database_url: str = Field(
        default="sqlite:///torneo.db",
        description="SQLAlchemy connection URL for the tournament database",
    )

    # Pool settings (ignored for SQLite)
    db_pool_size: int = Field(
        default=5,
        description="Number of connections to keep in the pool",
    )
    db_max_overflow: int = Field(
        default=10,
        description="Max additional connections beyond pool_size",
    )

    # ==========================================================================
    # Generation Defaults
    # ==========================================================================

    random_seed: Optional[int] = Field(
        default=None,
        description=(
            "Seed for group shuffling, bracket seeding and series coin flips. "
            "Leave unset in production to draw from OS entropy."
        ),
    )
    matchday_strategy: str = Field(
        default="greedy",
        description="Matchday assignment: 'greedy' first-fit or 'circle' (Berger tables)",
    )
    default_teams_per_group: int = Field(
        default=4,
        description="Teams per group when a tournament does not set its own value",
    )
    default_best_of: int = Field(
        default=1,
        description="Games per elimination series when a tournament does not set its own value",
    )

    # ==========================================================================
    # Locking Configuration
    # ==========================================================================

    lock_timeout_seconds: float = Field(
        default=10.0,
        description="How long a generation/result write waits for the tournament lock",
    )
    lock_poll_interval_seconds: float = Field(
        default=0.25,
        description="Polling interval while waiting for a PostgreSQL advisory lock",
    )

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        description="Format string passed to logging.basicConfig by scripts",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper_v

    @field_validator("matchday_strategy")
    @classmethod
    def validate_matchday_strategy(cls, v: str) -> str:
        """Only the two scheduling strategies the engine knows are accepted."""
        lower_v = v.lower()
        if lower_v not in {"greedy", "circle"}:
            raise ValueError("matchday_strategy must be 'greedy' or 'circle'")
        return lower_v

    @field_validator("default_teams_per_group", "default_best_of")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once,
    which is important because loading from .env can be slow.
    """
    return Settings()


# Convenience alias for importing
settings = get_settings()

"""Placement engine configuration with pydantic-settings.

All fields are optional with sensible defaults. A database URL is only needed
when the SQL store adapter is used.

Usage:
    from vps_placement.config import get_settings

    settings = get_settings()
    store = SqlPlacementStore.from_url(settings.database_url)
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Placement engine settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging configuration
    service_name: str = Field(
        default="vps-placement",
        description="Service name for structured logging",
    )
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )

    # Storage
    database_url: str | None = Field(
        default=None,
        description="Async SQLAlchemy URL for the store adapter",
        examples=[
            "postgresql+asyncpg://user:pass@db:5432/vps",
            "sqlite+aiosqlite:///./vps.db",
        ],
    )

    # Address allocation
    random_pick_max_attempts: int = Field(
        default=32,
        ge=1,
        description="Random-mode draws per range before falling back to a sequential scan",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

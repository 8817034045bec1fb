"""Application settings.

Pydantic-based configuration loaded from environment variables and an
optional ``.env`` file. Field names match environment variables directly
(case-insensitive), e.g. ``DATABASE_URL`` or ``LOG_LEVEL``.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """OpenLedger runtime configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    database_url: str = Field(
        default="sqlite:///./openledger.db",
        description="SQLAlchemy database URL",
    )
    sql_echo: bool = Field(default=False, description="Log every SQL statement")

    # Logging
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING or ERROR")
    log_format: Literal["console", "json", "keyvalue"] = Field(
        default="console",
        description="Log renderer: colored console, JSON lines or key=value",
    )

    # Pagination
    default_page_size: int = Field(default=20, ge=1, le=500)
    max_page_size: int = Field(default=100, ge=1, le=1000)

    # Repair jobs
    notify_every: int = Field(
        default=10,
        ge=1,
        description="Send a progress notification every N processed records",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Drop the cached settings and read the environment again."""
    get_settings.cache_clear()
    return get_settings()

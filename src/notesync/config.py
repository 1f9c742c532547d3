"""Configuration management for notesync."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from notesync.models.search import SortKey


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NOTESYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote notes server
    server_url: str = Field(
        default="",
        description="Base URL of the notes server, e.g. https://cloud.example.com",
    )
    username: str = Field(default="", description="Account user name")
    password: str = Field(default="", description="Account password or app token")
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="HTTP request timeout in seconds",
    )

    # Local account
    account_id: int = Field(
        default=1,
        ge=1,
        description="Local account partition the CLI operates on",
    )

    # Database
    database_path: Path = Field(
        default=Path("data/notesync.db"),
        description="Path to SQLite database file",
    )

    # Sync retry policy
    sync_max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Attempts per sync pass before giving up",
    )
    sync_backoff_min: float = Field(
        default=1.0,
        gt=0,
        description="First backoff delay in seconds",
    )
    sync_backoff_max: float = Field(
        default=60.0,
        gt=0,
        description="Upper bound of the backoff delay in seconds",
    )

    # Queries
    recent_notes_limit: int = Field(
        default=4,
        ge=1,
        le=100,
        description="Number of notes returned by the recent notes query",
    )
    default_sort: str = Field(
        default="modified desc",
        description="Default sort clause for searches",
    )

    log_level: str = Field(default="WARNING", description="Logging level")

    @field_validator("default_sort")
    @classmethod
    def _validate_sort(cls, value: str) -> str:
        return str(SortKey.parse(value))

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def database_url(self) -> str:
        """SQLAlchemy database URL."""
        return f"sqlite:///{self.database_path}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

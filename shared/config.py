"""
Application settings for Chirper.

Values are read from the environment (prefixed with CHIRPER_) or from a local
.env file. Every setting has a development default so the demo, the tests and
a fresh checkout all run without any configuration.

Design decisions:
- A missing redis_url means "use the in-memory queue" (single process only)
- A missing sendgrid_api_key means "use the logging mock email channel"
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CHIRPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = Field(
        default="sqlite:///./chirper.db",
        description="SQLAlchemy URL of the record store",
    )
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for the durable job queue; in-memory queue when unset",
    )
    queue_name: str = Field(
        default="queue:notifications",
        description="Name of the Redis list the workers consume",
    )
    app_url: str = Field(
        default="http://localhost:8000",
        description="Public base URL used for links in emails",
    )
    mail_from: str = Field(
        default="notifications@chirper.test",
        description="Sender address of notification emails",
    )
    sendgrid_api_key: Optional[str] = Field(
        default=None,
        description="SendGrid API key; the mock email channel is used when unset",
    )
    recipient_page_size: int = Field(
        default=500,
        gt=0,
        description="Rows fetched per query when enumerating recipients",
    )
    max_job_attempts: int = Field(
        default=3,
        gt=0,
        description="Attempts before a retriable job is dropped",
    )

    @property
    def chirps_url(self) -> str:
        """Fixed URL of the chirps listing page."""
        return f"{self.app_url.rstrip('/')}/chirps"


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache so the environment is read again."""
    get_settings.cache_clear()

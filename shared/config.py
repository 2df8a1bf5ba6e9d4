"""
Shared configuration management for the social graph sync layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SyncConfig(BaseSettings):
    """Client configuration, read from ``SYNC_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    service_name: str = Field(default="service_sync")

    # Remote actor bridge
    backend_url: str = Field(default="http://localhost:4943")

    # Free-tier daily allowances, mirrored from the backend for display only
    free_daily_post_limit: int = Field(default=3, ge=0)
    free_daily_message_limit: int = Field(default=10, ge=0)

    # Client-side validation
    max_photo_bytes: int = Field(default=5 * 1024 * 1024, gt=0)

    # Cache
    cache_max_age_seconds: Optional[float] = Field(default=None, gt=0)

    # Observability
    enable_metrics: bool = Field(default=True)


def get_config(**overrides) -> SyncConfig:
    """Get configuration, with explicit overrides taking precedence over env."""
    return SyncConfig(**overrides)

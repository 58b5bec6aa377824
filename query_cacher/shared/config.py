"""
Shared configuration management for the query cacher.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacherConfig(BaseSettings):
    """Process-level settings, read from CACHER_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CACHER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Logging
    log_level: str = Field(default="info")

    # Cache store
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_socket_timeout: float = Field(default=5.0)
    default_ttl: Optional[int] = Field(default=None)
    key_prefix: str = Field(default="cacher")

    # Data source
    postgres_dsn: str = Field(default="postgresql://localhost:5432/cacher")
    postgres_min_pool: int = Field(default=2)
    postgres_max_pool: int = Field(default=10)
    postgres_command_timeout: float = Field(default=30.0)


def get_config(**overrides) -> CacherConfig:
    """Get configuration, with optional explicit overrides."""
    return CacherConfig(**overrides)

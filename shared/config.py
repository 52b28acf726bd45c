"""
Shared configuration management for the Edge Flags services.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="FLAGS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Flag store
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_token: Optional[str] = Field(default=None)
    key_prefix: str = Field(default="edge-flags")
    store_timeout_seconds: float = Field(default=2.0, gt=0)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"


class FlagsConfig(ServiceConfig):
    """Configuration for the flags service."""

    # Deployment scope flags are read from
    environment: str = Field(default="production")

    # s-maxage for evaluation responses
    cache_max_age: int = Field(default=60, ge=0)

    # Cookie carrying the caller identifier; anonymous when unset
    identifier_cookie: Optional[str] = Field(default=None)


def get_config(service_name: str, port: int, **overrides) -> FlagsConfig:
    """Get configuration for a specific service."""
    return FlagsConfig(service_name=service_name, port=port, **overrides)

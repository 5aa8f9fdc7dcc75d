"""Configuration schema and validation using Pydantic.

This module defines the settings schema that validates and coerces configuration
values from the environment and from programmatic overrides into the correct
types with proper defaults.
"""

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wavespeed.constants import (
    CONNECTION_TIMEOUT,
    DEFAULT_BASE_URL,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TIMEOUT,
    MAX_CONNECTION_RETRIES,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
)

FIELD_NAMES = (
    "api_key",
    "base_url",
    "connection_timeout",
    "timeout",
    "poll_interval",
    "max_retries",
    "max_connection_retries",
    "retry_interval",
)


class WaveSpeedSettings(BaseSettings):
    """Pydantic settings schema for WaveSpeed client configuration.

    Reads ``WAVESPEED_*`` environment variables when instantiated without
    arguments; explicit keyword arguments always win.
    """

    model_config = SettingsConfigDict(
        env_prefix="WAVESPEED_",
        env_file=None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_key: str | None = Field(
        default=None,
        description="Bearer credential for the WaveSpeed API",
    )

    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="API host without the /api/v3 prefix",
        min_length=1,
    )

    connection_timeout: float = Field(
        default=CONNECTION_TIMEOUT,
        description="Per-exchange connect timeout in seconds",
        gt=0,
    )

    timeout: float = Field(
        default=DEFAULT_TIMEOUT,
        description="Overall budget for one run in seconds",
        gt=0,
    )

    poll_interval: float = Field(
        default=DEFAULT_POLL_INTERVAL,
        description="Delay between status polls in seconds",
        ge=0,
    )

    max_retries: int = Field(
        default=MAX_RETRIES,
        description="Task-level retries (full resubmission)",
        ge=0,
    )

    max_connection_retries: int = Field(
        default=MAX_CONNECTION_RETRIES,
        description="Connection-level retries per HTTP exchange",
        ge=0,
    )

    retry_interval: float = Field(
        default=RETRY_BASE_DELAY,
        description="Base delay between retries in seconds (delay = base * attempt)",
        ge=0,
    )

    @field_validator("api_key", mode="before")
    @classmethod
    def blank_key_is_missing(cls, v: Any) -> Any:
        """Treat an empty or whitespace-only key as absent."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("base_url")
    @classmethod
    def normalize_base_url(cls, v: str) -> str:
        """Require an http(s) URL and strip trailing slashes."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid base_url: {v!r}. Must start with http:// or https://")
        return v.rstrip("/")

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary keyed by field name."""
        return {name: getattr(self, name) for name in FIELD_NAMES}

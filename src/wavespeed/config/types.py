"""Core configuration data types for the WaveSpeed client.

This module defines the configuration structures used by the client, following
the resolve-once, freeze-then-flow pattern: ``ResolvedConfig`` carries audit
metadata, ``ClientConfig`` is the immutable value the client holds, and
``RunOptions`` is the per-call overlay.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal, NamedTuple

from wavespeed.constants import API_PREFIX

from .schema import FIELD_NAMES

# --- Source Tracking Types ---

ConfigOrigin = Literal["programmatic", "env", "default"]
SourceMap = Mapping[str, ConfigOrigin]

# --- Core Configuration Data ---


@dataclass(frozen=True)
class ClientConfig:
    """Immutable client configuration.

    Safe to share between threads; nothing in the client mutates it.
    """

    api_key: str | None
    base_url: str
    connection_timeout: float
    timeout: float
    poll_interval: float
    max_retries: int
    max_connection_retries: int
    retry_interval: float

    @property
    def api_root(self) -> str:
        """Base URL including the versioned API prefix."""
        return f"{self.base_url}{API_PREFIX}"

    def __str__(self) -> str:
        """String representation with redacted API key for safe logging."""
        api_key_display = "[REDACTED]" if self.api_key else None
        return (
            f"ClientConfig(api_key={api_key_display!r}, base_url={self.base_url!r}, "
            f"connection_timeout={self.connection_timeout!r}, timeout={self.timeout!r}, "
            f"poll_interval={self.poll_interval!r}, max_retries={self.max_retries!r}, "
            f"max_connection_retries={self.max_connection_retries!r}, "
            f"retry_interval={self.retry_interval!r})"
        )

    def __repr__(self) -> str:
        """Representation with redacted API key for safe debugging."""
        return self.__str__()


class ResolvedConfig(NamedTuple):
    """Configuration after resolution from all sources, before freezing."""

    api_key: str | None
    base_url: str
    connection_timeout: float
    timeout: float
    poll_interval: float
    max_retries: int
    max_connection_retries: int
    retry_interval: float

    # Audit metadata - tracks where each field value came from
    origin: SourceMap

    def __str__(self) -> str:
        """String representation with redacted API key for safe logging."""
        api_key_display = "[REDACTED]" if self.api_key else None
        fields = ", ".join(
            f"{name}={getattr(self, name)!r}" for name in FIELD_NAMES[1:]
        )
        return (
            f"ResolvedConfig(api_key={api_key_display!r}, {fields}, "
            f"origin={dict(self.origin)!r})"
        )

    def __repr__(self) -> str:
        """Repr with redacted API key for safe debugging."""
        return self.__str__()

    def to_frozen(self) -> ClientConfig:
        """Drop audit metadata and return the immutable client configuration."""
        return ClientConfig(**{name: getattr(self, name) for name in FIELD_NAMES})

    def audit(self) -> str:
        """Generate a redacted report showing the origin of each field.

        Returns:
            One ``field: origin:value`` line per field; the API key is never shown.
        """
        lines = []
        for field in FIELD_NAMES:
            if field not in self.origin:
                continue
            origin = self.origin[field]
            actual_value = getattr(self, field)
            if field == "api_key":
                shown = "None" if actual_value is None else "<redacted>"
                value_display = f"{origin}:{shown}"
            elif origin == "env":
                value_display = f"env:WAVESPEED_{field.upper()}={actual_value}"
            else:
                value_display = f"{origin}:{actual_value}"
            lines.append(f"{field}: {value_display}")
        return "\n".join(lines)


class EffectiveRunSettings(NamedTuple):
    """Per-call values after the RunOptions overlay was applied."""

    timeout: float
    poll_interval: float
    enable_sync_mode: bool
    max_retries: int


@dataclass(frozen=True)
class RunOptions:
    """Optional per-call overrides. ``None`` inherits the client default."""

    timeout: float | None = None
    poll_interval: float | None = None
    enable_sync_mode: bool | None = None
    max_retries: int | None = None

    def __post_init__(self) -> None:
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.poll_interval is not None and self.poll_interval < 0:
            raise ValueError(f"poll_interval must be >= 0, got {self.poll_interval}")
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    def resolve(self, config: ClientConfig) -> EffectiveRunSettings:
        """Apply this overlay on top of the client defaults."""
        return EffectiveRunSettings(
            timeout=config.timeout if self.timeout is None else self.timeout,
            poll_interval=(
                config.poll_interval if self.poll_interval is None else self.poll_interval
            ),
            enable_sync_mode=bool(self.enable_sync_mode),
            max_retries=(
                config.max_retries if self.max_retries is None else self.max_retries
            ),
        )

"""Configuration resolution with precedence handling.

Layers are applied lowest first, each one overwriting the fields it sets:

    defaults  <  WAVESPEED_* environment (+ optional .env)  <  programmatic

The merged result is validated once by ``WaveSpeedSettings``; the origin of
every field is recorded for ``ResolvedConfig.audit()``.
"""

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from .audit import SourceTracker
from .env_loader import EnvironmentConfigLoader
from .schema import FIELD_NAMES, WaveSpeedSettings
from .types import ConfigOrigin, ResolvedConfig

type ConfigLayer = tuple[ConfigOrigin, Mapping[str, Any]]


def _schema_defaults() -> dict[str, Any]:
    # Read from the field definitions; instantiating the settings would also
    # pick up the environment.
    return {name: WaveSpeedSettings.model_fields[name].default for name in FIELD_NAMES}


def _explicit_overrides(programmatic: Mapping[str, Any] | None) -> dict[str, Any]:
    if not programmatic:
        return {}
    unknown = sorted(set(programmatic) - set(FIELD_NAMES))
    if unknown:
        raise ValueError(f"Unknown configuration fields: {', '.join(unknown)}")
    # None means "not given" so callers can forward optional kwargs verbatim
    return {name: value for name, value in programmatic.items() if value is not None}


class ConfigResolver:
    """Resolves configuration from defaults, environment and explicit values."""

    def __init__(self, env_loader: EnvironmentConfigLoader | None = None) -> None:
        self.env_loader = env_loader or EnvironmentConfigLoader()

    def resolve(
        self,
        programmatic: Mapping[str, Any] | None = None,
        *,
        use_env_file: str | Path | None = None,
    ) -> ResolvedConfig:
        """Resolve configuration from all sources with proper precedence.

        Args:
            programmatic: Explicit values (highest precedence). ``None``
                values are treated as "not given".
            use_env_file: Optional .env file consulted for variables that are
                not already set in the process environment.

        Returns:
            ResolvedConfig with merged values and per-field origins.

        Raises:
            ValueError: If validation fails or an unknown field is passed.
        """
        overrides = _explicit_overrides(programmatic)
        try:
            from_env = self.env_loader.load_env_config(env_file=use_env_file)
        except (ValueError, FileNotFoundError) as e:
            raise ValueError(f"Environment configuration error: {e}") from e

        merged, origins = self._merge(
            [
                ("default", _schema_defaults()),
                ("env", from_env),
                ("programmatic", overrides),
            ]
        )

        try:
            validated = WaveSpeedSettings(**merged)
        except Exception as e:
            raise ValueError(f"Configuration validation failed: {e}") from e

        return ResolvedConfig(**validated.to_dict(), origin=origins)

    @staticmethod
    def _merge(
        layers: Iterable[ConfigLayer],
    ) -> tuple[dict[str, Any], Mapping[str, ConfigOrigin]]:
        tracker = SourceTracker()
        merged: dict[str, Any] = {}
        for origin, values in layers:
            for name, value in values.items():
                merged[name] = value
                tracker.set_origin(name, origin)
        return merged, tracker.get_source_map()


def resolve_config(
    programmatic: Mapping[str, Any] | None = None,
    *,
    use_env_file: str | Path | None = None,
) -> ResolvedConfig:
    """Resolve configuration once; see ``ConfigResolver.resolve``."""
    return ConfigResolver().resolve(programmatic, use_env_file=use_env_file)

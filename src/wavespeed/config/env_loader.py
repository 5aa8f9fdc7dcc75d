"""Environment variable configuration loading.

Reads ``WAVESPEED_*`` variables, optionally layered over a ``.env`` file, and
coerces them through the settings schema so type errors surface here rather
than on the first request.
"""

from collections.abc import Mapping
import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

from .schema import FIELD_NAMES, WaveSpeedSettings

ENV_PREFIX = "WAVESPEED_"
ENV_VARS = {f"{ENV_PREFIX}{name.upper()}": name for name in FIELD_NAMES}


def _display(env_var: str, value: str) -> str:
    return "<redacted>" if ENV_VARS.get(env_var) == "api_key" else value


class EnvironmentConfigLoader:
    """Loads configuration from WAVESPEED_* environment variables."""

    def load_env_config(self, env_file: str | Path | None = None) -> dict[str, Any]:
        """Load configuration from the environment.

        Args:
            env_file: Optional ``.env`` file. Its entries only fill gaps: a
                variable already present in ``os.environ`` always wins. The
                process environment is not modified.

        Returns:
            Only the fields that are actually set, coerced to their schema types.

        Raises:
            FileNotFoundError: If ``env_file`` does not exist.
            ValueError: If a variable holds a value the schema rejects.
        """
        source = self._environment(env_file)
        raw = {
            field_name: source[env_var]
            for env_var, field_name in ENV_VARS.items()
            if env_var in source
        }
        if not raw:
            return {}

        try:
            settings = WaveSpeedSettings(**raw)
        except Exception as e:
            offending = ", ".join(
                f"{env_var}={_display(env_var, source[env_var])}"
                for env_var, field_name in ENV_VARS.items()
                if field_name in raw
            )
            raise ValueError(
                f"Invalid environment variable values: {offending}. Error: {e}"
            ) from e

        return {field_name: getattr(settings, field_name) for field_name in raw}

    def _environment(self, env_file: str | Path | None) -> Mapping[str, str]:
        if not env_file:
            return os.environ

        env_path = Path(env_file)
        if not env_path.is_file():
            raise FileNotFoundError(f"Environment file not found: {env_path}")

        # Keys written without a value parse as None; treat them as unset
        from_file = {
            key: value
            for key, value in dotenv_values(env_path, encoding="utf-8").items()
            if value is not None
        }
        return {**from_file, **os.environ}

    def get_env_summary(self) -> dict[str, str]:
        """Summarize the WAVESPEED_* variables currently set, key redacted."""
        return {
            env_var: _display(env_var, os.environ[env_var])
            for env_var in ENV_VARS
            if env_var in os.environ
        }

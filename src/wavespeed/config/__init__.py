"""Configuration for the WaveSpeed client.

Resolve once, freeze, then flow:

- ``resolve_config()`` merges defaults, ``WAVESPEED_*`` environment variables
  and programmatic overrides into a ``ResolvedConfig`` with origin metadata.
- ``ResolvedConfig.to_frozen()`` yields the immutable ``ClientConfig``.
- ``RunOptions`` overrides individual values for a single run.
"""

from .env_loader import EnvironmentConfigLoader
from .resolver import ConfigResolver, resolve_config
from .schema import WaveSpeedSettings
from .types import (
    ClientConfig,
    ConfigOrigin,
    EffectiveRunSettings,
    ResolvedConfig,
    RunOptions,
    SourceMap,
)

__all__ = [  # noqa: RUF022
    "resolve_config",
    "ClientConfig",
    "ResolvedConfig",
    "RunOptions",
    "EffectiveRunSettings",
    "ConfigOrigin",
    "SourceMap",
    "WaveSpeedSettings",
    "ConfigResolver",
    "EnvironmentConfigLoader",
]

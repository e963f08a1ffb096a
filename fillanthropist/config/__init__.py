"""Configuration utilities for the relay."""

from .loader import (
    DEFAULT_CONFIG,
    AppConfig,
    ChainConfig,
    ConfigError,
    RelayTimings,
    StoreSettings,
    load_config,
    parse_config,
)

__all__ = [
    "AppConfig",
    "ChainConfig",
    "ConfigError",
    "DEFAULT_CONFIG",
    "RelayTimings",
    "StoreSettings",
    "load_config",
    "parse_config",
]

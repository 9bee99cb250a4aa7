"""Configuration models and loaders for dashkit."""

from .loader import ConfigError, DEFAULT_CONFIG_PATH, dump_example_config, load_config, read_config
from .models import (
    BackoffSettings,
    HttpSettings,
    LoggingSettings,
    PollerSettings,
    ToolkitConfig,
)

__all__ = [
    "BackoffSettings",
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "HttpSettings",
    "LoggingSettings",
    "PollerSettings",
    "ToolkitConfig",
    "dump_example_config",
    "load_config",
    "read_config",
]

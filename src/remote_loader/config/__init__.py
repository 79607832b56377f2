"""Configuration models and the YAML/env loader."""

from remote_loader.config.loader import YamlConfigLoader
from remote_loader.config.models import (
    AppConfig,
    ConfigLoadRequest,
    LoaderSettings,
    LoggingSettings,
    StateSettings,
)

__all__ = [
    "AppConfig",
    "ConfigLoadRequest",
    "LoaderSettings",
    "LoggingSettings",
    "StateSettings",
    "YamlConfigLoader",
]

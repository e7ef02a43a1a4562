"""Configuration for firemock."""

from firemock.kernel.config.loader import (
    ConfigLoader,
    clear_config_cache,
    get_default_config,
    load_config,
)
from firemock.kernel.config.models import FiremockConfig, FlushDelay, LoggingConfig

__all__ = [
    "ConfigLoader",
    "FiremockConfig",
    "FlushDelay",
    "LoggingConfig",
    "clear_config_cache",
    "get_default_config",
    "load_config",
]

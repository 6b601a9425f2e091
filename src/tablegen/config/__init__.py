"""Configuration management for tablegen."""
from .settings import (
    CodegenConfig,
    LoggingConfig,
    WatchConfig,
    load_config,
)

__all__ = [
    "CodegenConfig",
    "LoggingConfig",
    "WatchConfig",
    "load_config",
]

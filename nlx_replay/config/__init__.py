"""Configuration management for nlx-replay."""

from .schema import (
    NlxReplayConfig,
    NetworkConfig,
    ReplaySettings,
    ReaderConfig,
    LoggingConfig,
    load_config,
    generate_default_config,
)

__all__ = [
    'NlxReplayConfig',
    'NetworkConfig',
    'ReplaySettings',
    'ReaderConfig',
    'LoggingConfig',
    'load_config',
    'generate_default_config',
]

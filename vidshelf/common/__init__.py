"""Common utilities and shared components for Vidshelf."""

from .config import (
    Config,
    FFProbeConfig,
    FileLoggingConfig,
    LibraryConfig,
    LoggingConfig,
    PlaybackConfig,
    ThumbnailConfig,
    default_config_path,
)
from .logging_config import setup_logging
from .concurrency_limiter import ConcurrencyLimiter
from .string_utils import fold_for_search, matches_search

__all__ = [
    "Config",
    "FFProbeConfig",
    "FileLoggingConfig",
    "LibraryConfig",
    "LoggingConfig",
    "PlaybackConfig",
    "ThumbnailConfig",
    "default_config_path",
    "setup_logging",
    "ConcurrencyLimiter",
    "fold_for_search",
    "matches_search",
]

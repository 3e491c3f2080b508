"""Vidshelf package initialization."""

from .common.config import (
    Config,
    FFProbeConfig,
    LibraryConfig,
    LoggingConfig,
    PlaybackConfig,
    ThumbnailConfig,
)
from .common.logging_config import setup_logging
from .common.concurrency_limiter import ConcurrencyLimiter
from .common.string_utils import fold_for_search, matches_search
from .clients.ffprobe_client import FFProbeClient
from .clients.ffmpeg_client import FFmpegClient
from .parsers import (
    FFProbeFormat,
    FFProbeMediaInfo,
    FFProbeParser,
    FFProbeVideoStream,
)
from .core import (
    AppSettings,
    ContextKind,
    EventBus,
    JsonDocumentStore,
    LibraryIndex,
    MetadataProbe,
    PlaybackContext,
    PlaybackEngine,
    PlaybackQueue,
    PlaybackState,
    Playlist,
    PlaylistStore,
    ProbeResult,
    SettingsStore,
    SortOption,
    ThumbnailCache,
    ThumbnailRenderer,
    Video,
    filter_videos,
    sort_videos,
)
from .core.exceptions import (
    VidshelfError,
    ProbeFailure,
    FilesystemError,
    GenerationFailure,
    PlaybackOpenFailure,
    FFProbeError,
    FFProbeNotFoundError,
    FFProbeExecutionError,
    FFProbeParseError,
    FFmpegError,
    FFmpegNotFoundError,
    FFmpegExecutionError,
)
from .app import MediaCore

__version__ = "0.1.0"
__all__ = [
    "Config",
    "FFProbeConfig",
    "LibraryConfig",
    "LoggingConfig",
    "PlaybackConfig",
    "ThumbnailConfig",
    "setup_logging",
    "ConcurrencyLimiter",
    "fold_for_search",
    "matches_search",
    "FFProbeClient",
    "FFmpegClient",
    "FFProbeFormat",
    "FFProbeMediaInfo",
    "FFProbeParser",
    "FFProbeVideoStream",
    "AppSettings",
    "ContextKind",
    "EventBus",
    "JsonDocumentStore",
    "LibraryIndex",
    "MetadataProbe",
    "PlaybackContext",
    "PlaybackEngine",
    "PlaybackQueue",
    "PlaybackState",
    "Playlist",
    "PlaylistStore",
    "ProbeResult",
    "SettingsStore",
    "SortOption",
    "ThumbnailCache",
    "ThumbnailRenderer",
    "Video",
    "filter_videos",
    "sort_videos",
    "VidshelfError",
    "ProbeFailure",
    "FilesystemError",
    "GenerationFailure",
    "PlaybackOpenFailure",
    "FFProbeError",
    "FFProbeNotFoundError",
    "FFProbeExecutionError",
    "FFProbeParseError",
    "FFmpegError",
    "FFmpegNotFoundError",
    "FFmpegExecutionError",
    "MediaCore",
]

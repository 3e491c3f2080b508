"""Core library logic for Vidshelf.

This package contains the domain models, the library index and its
cascading delete, the playlist and settings stores, the thumbnail cache,
the playback queue and the event bus that ties their notifications together.
"""

from .event_bus import EventBus
from .exceptions import (
    FilesystemError,
    GenerationFailure,
    PlaybackOpenFailure,
    ProbeFailure,
    VidshelfError,
)
from .json_store import JsonDocumentStore
from .library import LibraryIndex, filter_videos, sort_videos
from .models import AppSettings, ContextKind, PlaybackContext, Playlist, SortOption, Video
from .playback import PlaybackEngine, PlaybackQueue, PlaybackState
from .playlists import PlaylistStore
from .probe import MetadataProbe, ProbeResult
from .settings import SettingsStore
from .thumbnails import ThumbnailCache, ThumbnailRenderer

__all__ = [
    "AppSettings",
    "ContextKind",
    "EventBus",
    "FilesystemError",
    "filter_videos",
    "GenerationFailure",
    "JsonDocumentStore",
    "LibraryIndex",
    "MetadataProbe",
    "PlaybackContext",
    "PlaybackEngine",
    "PlaybackOpenFailure",
    "PlaybackQueue",
    "PlaybackState",
    "Playlist",
    "PlaylistStore",
    "ProbeFailure",
    "ProbeResult",
    "SettingsStore",
    "sort_videos",
    "SortOption",
    "ThumbnailCache",
    "ThumbnailRenderer",
    "Video",
    "VidshelfError",
]

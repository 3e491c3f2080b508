"""Domain models for the video library, playlists and persisted settings."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Video(BaseModel):
    """A video file indexed in the library.

    The identity is the canonical (resolved, absolute) file location, so it is
    unique per file and stable for as long as the file does not move.
    """

    name: str = Field(description="Display name (file name without extension)")
    location: str = Field(description="Canonical absolute path of the file")
    duration: float = Field(default=0.0, ge=0.0, description="Duration in seconds")
    date_added: datetime = Field(default_factory=_utcnow)
    size: int = Field(default=0, ge=0, description="File size in bytes")
    is_watched: bool = False
    watch_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def watched_when_counted(self) -> "Video":
        """A positive watch count always implies the watched flag."""
        if self.watch_count > 0 and not self.is_watched:
            self.is_watched = True
        return self

    @property
    def id(self) -> str:
        return self.location

    @property
    def duration_formatted(self) -> str:
        """Duration as ``M:SS`` (or ``H:MM:SS`` for long videos)."""
        total = int(self.duration)
        hours, remainder = divmod(total, 3600)
        minutes, seconds = divmod(remainder, 60)
        if hours:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes}:{seconds:02d}"


class Playlist(BaseModel):
    """A named, ordered list of video identities.

    Names are not unique; the generated ``id`` is the identity.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    video_ids: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)


class SortOption(str, Enum):
    """Presentation sort keys for the library view."""

    NAME = "name"
    DURATION = "duration"
    RECENT = "recent"
    SIZE = "size"
    MOST_WATCHED = "most_watched"

    @property
    def default_ascending(self) -> bool:
        return self is SortOption.NAME


class ContextKind(str, Enum):
    """Where a playback queue was started from."""

    LIBRARY = "library"
    PLAYLIST = "playlist"
    LIKED = "liked"


class PlaybackContext(BaseModel):
    """Origin of the active playback queue, recorded for the "now playing" screen."""

    kind: ContextKind
    playlist_id: Optional[str] = None

    @model_validator(mode="after")
    def playlist_id_for_playlists_only(self) -> "PlaybackContext":
        if self.kind is ContextKind.PLAYLIST and not self.playlist_id:
            raise ValueError("playlist context requires a playlist_id")
        if self.kind is not ContextKind.PLAYLIST:
            self.playlist_id = None
        return self

    @classmethod
    def library(cls) -> "PlaybackContext":
        return cls(kind=ContextKind.LIBRARY)

    @classmethod
    def liked(cls) -> "PlaybackContext":
        return cls(kind=ContextKind.LIKED)

    @classmethod
    def playlist(cls, playlist_id: str) -> "PlaybackContext":
        return cls(kind=ContextKind.PLAYLIST, playlist_id=playlist_id)


class AppSettings(BaseModel):
    """Key/value settings persisted between runs."""

    liked_ids: List[str] = Field(default_factory=list)
    last_context: Optional[PlaybackContext] = None
    last_video_id: Optional[str] = None
    shuffle_mode: bool = False
    autoplay_on_open: bool = False

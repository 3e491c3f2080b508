"""Persisted user settings: the liked set and the last-played record."""

import asyncio
from typing import FrozenSet, Iterable, List, Optional, Set

import structlog

from .event_bus import LIKED_CHANGED, EventBus
from .json_store import JsonDocumentStore
from .models import AppSettings, PlaybackContext

logger = structlog.get_logger(__name__)


class SettingsStore:
    """
    Key/value settings read by the playback queue and the UI.

    The liked set is membership only. Like the playlists, it is pruned by
    the library's delete cascade through :meth:`prune_video`.

    Example:
        >>> settings = SettingsStore(JsonDocumentStore(path), event_bus=bus)
        >>> await settings.load()
        >>> await settings.toggle_like("/videos/a.mp4")
        True
    """

    def __init__(self, store: JsonDocumentStore, event_bus: Optional[EventBus] = None):
        self._store = store
        self._event_bus = event_bus
        self._settings = AppSettings()
        self._liked: Set[str] = set()
        self._lock = asyncio.Lock()

    @property
    def settings(self) -> AppSettings:
        """Snapshot of the current settings."""
        return self._settings.model_copy(update={"liked_ids": sorted(self._liked)})

    @property
    def liked_ids(self) -> FrozenSet[str]:
        return frozenset(self._liked)

    @property
    def last_context(self) -> Optional[PlaybackContext]:
        return self._settings.last_context

    @property
    def last_video_id(self) -> Optional[str]:
        return self._settings.last_video_id

    @property
    def shuffle_mode(self) -> bool:
        return self._settings.shuffle_mode

    @property
    def autoplay_on_open(self) -> bool:
        return self._settings.autoplay_on_open

    def is_liked(self, video_id: str) -> bool:
        return video_id in self._liked

    async def load(self) -> AppSettings:
        """Load settings from disk, falling back to defaults when missing or corrupt."""
        loaded = await self._store.load(AppSettings.model_validate)
        self._settings = loaded or AppSettings()
        self._liked = set(self._settings.liked_ids)
        logger.info(
            "settings_loaded",
            liked=len(self._liked),
            last_context=self._settings.last_context.kind.value if self._settings.last_context else None,
        )
        return self.settings

    async def persist(self) -> None:
        """
        Raises:
            FilesystemError: If the document could not be written
        """
        async with self._lock:
            await self._store.save(self.settings.model_dump(mode="json"))

    async def _commit_liked(self, video_id: Optional[str], liked: Optional[bool]) -> None:
        try:
            await self.persist()
        finally:
            if self._event_bus:
                await self._event_bus.emit(
                    LIKED_CHANGED,
                    {"video_id": video_id, "liked": liked, "count": len(self._liked)},
                )

    async def like(self, video_id: str) -> bool:
        """Add a video to the liked set. Returns False if it was already liked."""
        if video_id in self._liked:
            return False
        self._liked.add(video_id)
        await self._commit_liked(video_id, True)
        return True

    async def unlike(self, video_id: str) -> bool:
        """Remove a video from the liked set; unknown ids are a no-op."""
        if video_id not in self._liked:
            return False
        self._liked.discard(video_id)
        await self._commit_liked(video_id, False)
        return True

    async def toggle_like(self, video_id: str) -> bool:
        """Flip membership and return the new state."""
        if video_id in self._liked:
            await self.unlike(video_id)
            return False
        await self.like(video_id)
        return True

    def prune_video(self, video_id: str) -> bool:
        """Drop ``video_id`` from the liked set, in memory only."""
        if video_id in self._liked:
            self._liked.discard(video_id)
            return True
        return False

    def liked_in_order(self, ordered_ids: Iterable[str]) -> List[str]:
        """Liked ids in the order they appear in ``ordered_ids``."""
        return [video_id for video_id in ordered_ids if video_id in self._liked]

    async def record_last_played(self, context: PlaybackContext, video_id: Optional[str]) -> None:
        """Remember where playback was started from and what is playing."""
        self._settings = self._settings.model_copy(
            update={"last_context": context, "last_video_id": video_id}
        )
        await self.persist()

    async def set_shuffle_mode(self, enabled: bool) -> None:
        self._settings = self._settings.model_copy(update={"shuffle_mode": enabled})
        await self.persist()

    async def set_autoplay_on_open(self, enabled: bool) -> None:
        self._settings = self._settings.model_copy(update={"autoplay_on_open": enabled})
        await self.persist()

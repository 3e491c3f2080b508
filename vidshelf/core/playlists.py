"""Playlist store: named, ordered collections of video identities."""

import asyncio
from typing import Dict, Iterable, List, Optional

import structlog
from pydantic import TypeAdapter

from .event_bus import PLAYLISTS_CHANGED, EventBus
from .json_store import JsonDocumentStore
from .models import Playlist

logger = structlog.get_logger(__name__)

_playlist_list = TypeAdapter(List[Playlist])


class PlaylistStore:
    """
    CRUD over playlists, persisted as a single JSON document.

    Unknown playlist ids are silent no-ops for every mutation. Video ids are
    never validated against the library here; the library's delete cascade
    prunes stale references through :meth:`prune_video`.

    Every mutation persists the full document. A failed write raises
    :class:`FilesystemError` after the in-memory change has been applied
    and ``playlists_changed`` has been emitted.

    Example:
        >>> store = PlaylistStore(JsonDocumentStore(path), event_bus=bus)
        >>> await store.load()
        >>> playlist = await store.create("Road trip")
        >>> await store.add_videos(["/videos/a.mp4", "/videos/b.mp4"], playlist.id)
    """

    def __init__(self, store: JsonDocumentStore, event_bus: Optional[EventBus] = None):
        self._store = store
        self._event_bus = event_bus
        self._playlists: Dict[str, Playlist] = {}
        self._lock = asyncio.Lock()

    @property
    def playlists(self) -> List[Playlist]:
        """All playlists in creation order."""
        return list(self._playlists.values())

    def get(self, playlist_id: str) -> Optional[Playlist]:
        return self._playlists.get(playlist_id)

    def containing(self, video_id: str) -> List[Playlist]:
        """Playlists whose sequence includes ``video_id``."""
        return [p for p in self._playlists.values() if video_id in p.video_ids]

    async def load(self) -> List[Playlist]:
        """Load playlists from disk, starting empty when missing or corrupt."""
        loaded = await self._store.load(_playlist_list.validate_python)
        self._playlists = {}
        for playlist in loaded or []:
            # Drop duplicate ids a hand-edited file might contain
            self._playlists.setdefault(playlist.id, playlist)
            playlist.video_ids = list(dict.fromkeys(playlist.video_ids))

        logger.info("playlists_loaded", count=len(self._playlists))
        return self.playlists

    async def persist(self) -> None:
        """Write all playlists to disk.

        Raises:
            FilesystemError: If the document could not be written
        """
        async with self._lock:
            data = [p.model_dump(mode="json") for p in self._playlists.values()]
            await self._store.save(data)

    async def _commit(self, action: str, playlist_id: str) -> None:
        try:
            await self.persist()
        finally:
            if self._event_bus:
                await self._event_bus.emit(
                    PLAYLISTS_CHANGED,
                    {"action": action, "playlist_id": playlist_id},
                )

    async def create(self, name: str, video_ids: Optional[Iterable[str]] = None) -> Playlist:
        """
        Create a playlist, optionally pre-seeded with videos.

        Names are not required to be unique.
        """
        playlist = Playlist(name=name, video_ids=list(dict.fromkeys(video_ids or [])))
        self._playlists[playlist.id] = playlist
        logger.info("playlist_created", playlist_id=playlist.id, name=name)
        await self._commit("created", playlist.id)
        return playlist

    async def rename(self, playlist_id: str, new_name: str) -> Optional[Playlist]:
        playlist = self._playlists.get(playlist_id)
        if playlist is None:
            logger.debug("playlist_rename_unknown", playlist_id=playlist_id)
            return None

        playlist.name = new_name
        logger.info("playlist_renamed", playlist_id=playlist_id, name=new_name)
        await self._commit("renamed", playlist_id)
        return playlist

    async def delete(self, playlist_id: str) -> bool:
        """Delete a playlist. Returns False (and does nothing) for unknown ids."""
        if self._playlists.pop(playlist_id, None) is None:
            logger.debug("playlist_delete_unknown", playlist_id=playlist_id)
            return False

        logger.info("playlist_deleted", playlist_id=playlist_id)
        await self._commit("deleted", playlist_id)
        return True

    async def add_videos(self, video_ids: Iterable[str], playlist_id: str) -> Optional[Playlist]:
        """
        Append videos not already in the playlist, keeping the given order.

        Returns:
            The updated playlist, or None when ``playlist_id`` is unknown
        """
        playlist = self._playlists.get(playlist_id)
        if playlist is None:
            logger.debug("playlist_add_unknown", playlist_id=playlist_id)
            return None

        present = set(playlist.video_ids)
        added = []
        for video_id in video_ids:
            if video_id not in present:
                present.add(video_id)
                added.append(video_id)

        if not added:
            return playlist

        playlist.video_ids.extend(added)
        logger.info("playlist_videos_added", playlist_id=playlist_id, added=len(added))
        await self._commit("videos_added", playlist_id)
        return playlist

    async def remove_video(self, video_id: str, playlist_id: str) -> Optional[Playlist]:
        """Remove every occurrence of ``video_id`` from one playlist."""
        playlist = self._playlists.get(playlist_id)
        if playlist is None:
            return None

        if video_id not in playlist.video_ids:
            return playlist

        playlist.video_ids = [v for v in playlist.video_ids if v != video_id]
        logger.info("playlist_video_removed", playlist_id=playlist_id, video_id=video_id)
        await self._commit("video_removed", playlist_id)
        return playlist

    def prune_video(self, video_id: str) -> List[str]:
        """
        Drop ``video_id`` from every playlist, in memory only.

        Used by the library's delete cascade, which persists afterwards.

        Returns:
            Ids of the playlists that changed
        """
        changed = []
        for playlist in self._playlists.values():
            if video_id in playlist.video_ids:
                playlist.video_ids = [v for v in playlist.video_ids if v != video_id]
                changed.append(playlist.id)
        return changed

    async def notify_pruned(self, playlist_ids: List[str]) -> None:
        """Emit change events for playlists pruned by a cascade."""
        if not self._event_bus:
            return
        for playlist_id in playlist_ids:
            await self._event_bus.emit(
                PLAYLISTS_CHANGED,
                {"action": "pruned", "playlist_id": playlist_id},
            )

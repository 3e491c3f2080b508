"""Library index: the catalog of video files under the library root.

The index is the source of truth for video identities. Playlists and the
liked set only reference those identities, and deleting a video removes it
from both in the same step that removes it from the catalog.
"""

import asyncio
import os
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Tuple

import aiofiles
import aiofiles.os
import structlog
from pydantic import TypeAdapter

from ..common.concurrency_limiter import ConcurrencyLimiter
from ..common.config import LibraryConfig
from ..common.string_utils import fold_for_search, matches_search
from .event_bus import LIBRARY_CHANGED, LIKED_CHANGED, VIDEO_REMOVED, VIDEO_WATCHED, EventBus
from .exceptions import FilesystemError, ProbeFailure
from .json_store import JsonDocumentStore
from .models import SortOption, Video
from .probe import MetadataProbe, ProbeResult

if TYPE_CHECKING:
    from .playlists import PlaylistStore
    from .settings import SettingsStore

logger = structlog.get_logger(__name__)

_video_list = TypeAdapter(List[Video])

COPY_CHUNK_SIZE = 1024 * 1024


def canonical_location(path: Path) -> str:
    """Identity of a file: its resolved absolute path."""
    return str(Path(path).expanduser().resolve())


def is_video_file(path: Path, extensions: Iterable[str]) -> bool:
    return path.suffix.lower().lstrip(".") in set(extensions)


def discover_video_files(
    root: Path,
    extensions: Sequence[str],
    recursive: bool = True,
    skip_hidden: bool = True,
) -> List[Path]:
    """
    List files under ``root`` with a recognised video extension.

    Blocking; run it in a worker thread from async code.

    Returns:
        Resolved paths, sorted for a stable scan order
    """
    found: List[Path] = []

    if recursive:
        for dirpath, dirnames, filenames in os.walk(root):
            if skip_hidden:
                # Prune in place so os.walk does not descend
                dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            for filename in filenames:
                if skip_hidden and filename.startswith("."):
                    continue
                path = Path(dirpath) / filename
                if is_video_file(path, extensions):
                    found.append(path.resolve())
    else:
        for path in root.iterdir():
            if skip_hidden and path.name.startswith("."):
                continue
            if path.is_file() and is_video_file(path, extensions):
                found.append(path.resolve())

    return sorted(found)


def filter_videos(videos: Iterable[Video], query: str) -> List[Video]:
    """Case- and accent-insensitive substring search on display names."""
    return [video for video in videos if matches_search(video.name, query)]


def sort_videos(
    videos: Iterable[Video],
    option: SortOption = SortOption.NAME,
    ascending: Optional[bool] = None,
) -> List[Video]:
    """
    Sort videos for presentation.

    Args:
        videos: Videos to sort
        option: Sort key
        ascending: Direction; defaults to ``option.default_ascending``
            (ascending for name, descending for everything else)

    ``recent`` always lists unwatched videos before watched ones and then
    orders each group by date added.
    """
    if ascending is None:
        ascending = option.default_ascending
    reverse = not ascending
    videos = list(videos)

    if option is SortOption.NAME:
        return sorted(videos, key=lambda v: (fold_for_search(v.name), v.name), reverse=reverse)
    if option is SortOption.DURATION:
        return sorted(videos, key=lambda v: v.duration, reverse=reverse)
    if option is SortOption.SIZE:
        return sorted(videos, key=lambda v: v.size, reverse=reverse)
    if option is SortOption.MOST_WATCHED:
        return sorted(videos, key=lambda v: v.watch_count, reverse=reverse)

    # Stable two-pass sort: date first, then watched flag
    by_date = sorted(videos, key=lambda v: v.date_added, reverse=reverse)
    return sorted(by_date, key=lambda v: v.is_watched)


class LibraryIndex:
    """
    In-memory catalog of videos backed by a JSON document.

    Mutations (scan results, deletes, watch updates) are applied to the
    catalog, the playlists and the liked set without yielding to the event
    loop in between, so no reader ever sees a video gone from the catalog
    but still referenced elsewhere. Persistence happens afterwards; a failed
    write raises :class:`FilesystemError` but keeps the in-memory state.

    Example:
        >>> library = LibraryIndex(root, LibraryConfig(), probe, store, playlists, settings, bus)
        >>> await library.load()
        >>> videos = await library.scan()
        >>> await library.mark_watched(videos[0].id)
    """

    def __init__(
        self,
        root: Path,
        config: LibraryConfig,
        probe: MetadataProbe,
        store: JsonDocumentStore,
        playlists: "PlaylistStore",
        settings: "SettingsStore",
        event_bus: Optional[EventBus] = None,
    ):
        self.root = Path(root)
        self.config = config
        self._probe = probe
        self._store = store
        self._playlists = playlists
        self._settings = settings
        self._event_bus = event_bus
        self._videos: Dict[str, Video] = {}
        self._lock = asyncio.Lock()
        self._save_lock = asyncio.Lock()
        self._limiter = ConcurrencyLimiter(config.max_concurrent_probes, name="probe")

    # ========== Queries ==========

    @property
    def videos(self) -> List[Video]:
        """Indexed videos in scan order (sort with :func:`sort_videos`)."""
        return list(self._videos.values())

    def __len__(self) -> int:
        return len(self._videos)

    def __contains__(self, video_id: str) -> bool:
        return video_id in self._videos

    def get(self, video_id: str) -> Optional[Video]:
        return self._videos.get(video_id)

    def resolve(self, video_ids: Iterable[str]) -> List[Video]:
        """Videos for the given ids, in order, skipping unknown ids."""
        return [self._videos[v] for v in video_ids if v in self._videos]

    def search(self, query: str, option: SortOption = SortOption.NAME, ascending: Optional[bool] = None) -> List[Video]:
        return sort_videos(filter_videos(self._videos.values(), query), option, ascending)

    # ========== Persistence ==========

    async def load(self) -> List[Video]:
        """
        Load the catalog, starting empty when it is missing or corrupt.

        Returns:
            Loaded videos
        """
        loaded = await self._store.load(_video_list.validate_python)
        self._videos = {}
        for video in loaded or []:
            self._videos.setdefault(video.id, video)

        logger.info("library_loaded", count=len(self._videos), path=str(self._store.path))
        return self.videos

    async def persist(self) -> None:
        """
        Write the catalog to disk.

        Raises:
            FilesystemError: If the catalog could not be written
        """
        async with self._save_lock:
            await self._store.save([v.model_dump(mode="json") for v in self._videos.values()])

    async def _persist_all(self, playlists_changed: bool, liked_changed: bool) -> None:
        """Persist the catalog and any cascaded stores, raising the first failure."""
        errors: List[FilesystemError] = []
        writers = [self.persist]
        if playlists_changed:
            writers.append(self._playlists.persist)
        if liked_changed:
            writers.append(self._settings.persist)

        for writer in writers:
            try:
                await writer()
            except FilesystemError as e:
                errors.append(e)

        if errors:
            raise errors[0]

    # ========== Cascade ==========

    def _remove_entries(self, video_ids: Iterable[str]) -> Tuple[List[Video], List[str], bool]:
        """
        Drop videos from the catalog, every playlist and the liked set.

        Synchronous on purpose: the whole cascade happens between two event
        loop iterations.

        Returns:
            (removed videos, ids of changed playlists, whether likes changed)
        """
        removed: List[Video] = []
        changed_playlists: List[str] = []
        liked_changed = False

        for video_id in video_ids:
            video = self._videos.pop(video_id, None)
            if video is not None:
                removed.append(video)
            for playlist_id in self._playlists.prune_video(video_id):
                if playlist_id not in changed_playlists:
                    changed_playlists.append(playlist_id)
            liked_changed = self._settings.prune_video(video_id) or liked_changed

        return removed, changed_playlists, liked_changed

    async def _announce_removed(self, removed: List[Video], changed_playlists: List[str], liked_changed: bool) -> None:
        if not self._event_bus:
            return
        for video in removed:
            await self._event_bus.emit(VIDEO_REMOVED, {"video_id": video.id, "location": video.location})
        await self._playlists.notify_pruned(changed_playlists)
        if liked_changed:
            await self._event_bus.emit(
                LIKED_CHANGED,
                {"video_id": None, "liked": False, "count": len(self._settings.liked_ids)},
            )

    # ========== Scan ==========

    async def _probe_file(self, path: Path) -> Optional[Tuple[Path, ProbeResult]]:
        async with self._limiter:
            try:
                return path, await self._probe.probe(path)
            except ProbeFailure as e:
                logger.warning("library_probe_failed", location=str(path), error=str(e))
                return None

    async def scan(self, root: Optional[Path] = None) -> List[Video]:
        """
        Reconcile the catalog with the files under the library root.

        New files are probed and added as unwatched. Indexed files that are
        no longer on disk are removed through the delete cascade. Files that
        fail probing are skipped with a warning.

        Args:
            root: Directory to scan (default: the configured library root)

        Returns:
            The refreshed list of videos

        Raises:
            FilesystemError: If persisting the result failed
        """
        root = Path(root) if root is not None else self.root

        async with self._lock:
            if not await aiofiles.os.path.isdir(root):
                logger.warning("library_root_missing", root=str(root))
                return self.videos

            try:
                paths = await asyncio.to_thread(
                    discover_video_files,
                    root,
                    self.config.extensions,
                    self.config.recursive,
                    self.config.skip_hidden,
                )
            except OSError as e:
                raise FilesystemError(f"Cannot scan {root}: {e}", path=root, operation="scan") from e

            found = {str(p): p for p in paths}
            new_paths = [p for key, p in found.items() if key not in self._videos]
            missing_ids = [video_id for video_id in self._videos if video_id not in found]

            results = await asyncio.gather(*(self._probe_file(p) for p in new_paths))

            added: List[Video] = []
            for result in results:
                if result is None:
                    continue
                path, info = result
                video = Video(
                    name=path.stem,
                    location=str(path),
                    duration=info.duration,
                    date_added=info.created_at,
                    size=info.size,
                )
                self._videos[video.id] = video
                added.append(video)

            removed, changed_playlists, liked_changed = self._remove_entries(missing_ids)

            logger.info(
                "library_scan_complete",
                root=str(root),
                found=len(found),
                added=len(added),
                removed=len(removed),
                skipped=len(new_paths) - len(added),
            )

            try:
                await self._persist_all(bool(changed_playlists), liked_changed)
            finally:
                await self._announce_removed(removed, changed_playlists, liked_changed)
                if self._event_bus:
                    await self._event_bus.emit(
                        LIBRARY_CHANGED,
                        {
                            "count": len(self._videos),
                            "added": [v.id for v in added],
                            "removed": [v.id for v in removed],
                        },
                    )

            return self.videos

    # ========== Mutations ==========

    async def mark_watched(self, video_id: str) -> Optional[Video]:
        """
        Record one completed (or near-complete) play.

        Every call increments the watch count. Unknown ids are a no-op.

        Returns:
            The updated video, or None when ``video_id`` is not indexed
        """
        video = self._videos.get(video_id)
        if video is None:
            logger.debug("mark_watched_unknown", video_id=video_id)
            return None

        video.watch_count += 1
        video.is_watched = True
        logger.info("video_marked_watched", video_id=video_id, watch_count=video.watch_count)

        try:
            await self.persist()
        finally:
            if self._event_bus:
                await self._event_bus.emit(
                    VIDEO_WATCHED,
                    {"video_id": video_id, "watch_count": video.watch_count},
                )
        return video

    async def delete(self, video_id: str) -> bool:
        """
        Delete a video's file and remove it from the library.

        The record is removed (and cascaded out of every playlist and the
        liked set) even when the file delete fails. A file that is already
        gone is not an error.

        Returns:
            True if the video was indexed, False for unknown ids (no-op)

        Raises:
            FilesystemError: If the file could not be deleted for a reason
                other than being absent, or if persisting failed
        """
        async with self._lock:
            video = self._videos.get(video_id)
            if video is None:
                logger.debug("delete_unknown", video_id=video_id)
                return False

            delete_error: Optional[OSError] = None
            try:
                await aiofiles.os.remove(video.location)
                logger.debug("file_deleted", path=video.location)
            except FileNotFoundError:
                logger.debug("file_already_absent", path=video.location)
            except OSError as e:
                delete_error = e
                logger.error("file_delete_failed", path=video.location, error=str(e))

            removed, changed_playlists, liked_changed = self._remove_entries([video_id])
            logger.info(
                "video_deleted",
                video_id=video_id,
                playlists_pruned=len(changed_playlists),
                unliked=liked_changed,
            )

            try:
                await self._persist_all(bool(changed_playlists), liked_changed)
            finally:
                await self._announce_removed(removed, changed_playlists, liked_changed)
                if self._event_bus:
                    await self._event_bus.emit(
                        LIBRARY_CHANGED,
                        {"count": len(self._videos), "added": [], "removed": [video_id]},
                    )

            if delete_error is not None:
                raise FilesystemError(
                    f"Could not delete {video.location}: {delete_error}",
                    path=Path(video.location),
                    operation="delete",
                ) from delete_error

            return True

    # ========== Import ==========

    async def _copy_file(self, source: Path, target: Path) -> None:
        """Copy file asynchronously."""
        async with aiofiles.open(source, "rb") as src:
            async with aiofiles.open(target, "wb") as dst:
                while True:
                    chunk = await src.read(COPY_CHUNK_SIZE)
                    if not chunk:
                        break
                    await dst.write(chunk)

    async def import_files(self, sources: Iterable[Path]) -> List[Video]:
        """
        Copy external video files into the library root and rescan.

        Files without a supported extension are ignored. A file with the same
        name already in the root is replaced; its record keeps its identity,
        watch history and playlist memberships but is re-probed.

        Returns:
            The refreshed list of videos
        """
        await aiofiles.os.makedirs(self.root, exist_ok=True)
        replaced: List[Path] = []

        for source in sources:
            source = Path(source)
            if not is_video_file(source, self.config.extensions):
                logger.debug("import_skipped_extension", source=str(source))
                continue

            target = self.root / source.name
            if canonical_location(source) == canonical_location(target):
                continue

            try:
                existed = await aiofiles.os.path.exists(target)
                await self._copy_file(source, target)
            except OSError as e:
                logger.warning("import_failed", source=str(source), error=str(e))
                continue

            logger.info("video_imported", source=str(source), target=str(target))
            if existed:
                replaced.append(target.resolve())

        for path in replaced:
            video = self._videos.get(str(path))
            if video is None:
                continue
            try:
                info = await self._probe.probe(path)
            except ProbeFailure as e:
                logger.warning("library_probe_failed", location=str(path), error=str(e))
                continue
            video.duration = info.duration
            video.size = info.size

        return await self.scan()

"""Composition root: builds and wires the library, stores, cache and queue.

There are no module-level singletons. An application constructs one
:class:`MediaCore` at startup and hands its components to whatever needs
them.
"""

import random
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from .clients.ffmpeg_client import FFmpegClient
from .clients.ffprobe_client import FFProbeClient
from .common.config import Config, default_config_path
from .common.logging_config import setup_logging
from .core.event_bus import VIDEO_REMOVED, EventBus
from .core.json_store import JsonDocumentStore
from .core.library import LibraryIndex, filter_videos, sort_videos
from .core.models import ContextKind, PlaybackContext, SortOption, Video
from .core.playback import PlaybackEngine, PlaybackQueue
from .core.playlists import PlaylistStore
from .core.probe import DurationProber, MetadataProbe
from .core.settings import SettingsStore
from .core.thumbnails import ThumbnailCache, ThumbnailRenderer

logger = structlog.get_logger(__name__)


class MediaCore:
    """
    Owns one instance of every core component for the process lifetime.

    Args:
        config: Resolved configuration
        engine: Playback engine; without one, playback methods raise RuntimeError
        duration_prober: Async duration decoder (default: ffprobe)
        renderer: Thumbnail renderer (default: ffmpeg)
        rng: Random source for shuffle and resume

    Example:
        >>> core = await MediaCore.open(engine=my_engine)
        >>> await core.library.scan()
        >>> await core.play_playlist(core.playlists.playlists[0].id)
    """

    def __init__(
        self,
        config: Config,
        engine: Optional[PlaybackEngine] = None,
        duration_prober: Optional[DurationProber] = None,
        renderer: Optional[ThumbnailRenderer] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.rng = rng or random.Random()
        self.event_bus = EventBus()

        if duration_prober is None:
            duration_prober = FFProbeClient.from_config(config.ffprobe).probe_duration
        if renderer is None:
            renderer = FFmpegClient.from_config(config.thumbnail)

        self.settings = SettingsStore(
            JsonDocumentStore(config.get_settings_path(), name="settings"),
            event_bus=self.event_bus,
        )
        self.playlists = PlaylistStore(
            JsonDocumentStore(config.get_playlists_path(), name="playlists"),
            event_bus=self.event_bus,
        )
        self.library = LibraryIndex(
            root=config.get_library_dir(),
            config=config.library,
            probe=MetadataProbe(duration_prober),
            store=JsonDocumentStore(config.get_catalog_path(), name="catalog"),
            playlists=self.playlists,
            settings=self.settings,
            event_bus=self.event_bus,
        )
        self.thumbnails = ThumbnailCache(renderer, config.thumbnail)

        self.queue: Optional[PlaybackQueue] = None
        if engine is not None:
            self.queue = PlaybackQueue(
                engine,
                config.playback,
                on_watched=self.library.mark_watched,
                settings=self.settings,
                event_bus=self.event_bus,
                rng=self.rng,
            )

        self.event_bus.subscribe(VIDEO_REMOVED, self._on_video_removed)

    @classmethod
    async def open(
        cls,
        config_path: Optional[Path] = None,
        config: Optional[Config] = None,
        configure_logging: bool = True,
        **kwargs: Any,
    ) -> "MediaCore":
        """
        Load configuration, set up logging and load all persisted state.

        Path Resolution:
        - If config is provided, use it as-is
        - Else if config_path is provided, load from that file
        - Otherwise look for config.yaml in the default config_dir

        Args:
            config_path: Path to YAML configuration file
            config: Pre-loaded Config object (takes precedence over config_path)
            configure_logging: Call setup_logging() with the loaded config
            **kwargs: Passed to the constructor (engine, duration_prober, ...)
        """
        if config is None:
            if config_path is None:
                default_path = default_config_path()
                if default_path.exists():
                    config_path = default_path
            config = Config.from_yaml(config_path) if config_path else Config()

        config.resolve_paths(create_dirs=True)

        if configure_logging:
            setup_logging(config.logging, config_dir=config.config_dir)

        core = cls(config, **kwargs)
        await core.load()

        logger.info(
            "vidshelf_configured",
            config_path=str(config_path) if config_path else None,
            config_dir=str(config.config_dir),
            library_dir=str(config.library_dir),
            videos=len(core.library),
            playlists=len(core.playlists.playlists),
        )
        return core

    async def load(self) -> None:
        """
        Load settings, playlists and the catalog.

        Dangling references are left in place; only the delete cascade
        prunes them.
        """
        await self.settings.load()
        await self.playlists.load()
        await self.library.load()

    async def _on_video_removed(self, event: Dict[str, Any]) -> None:
        location = event["payload"]["location"]
        if self.thumbnails.invalidate(location):
            logger.debug("thumbnail_invalidated", location=location)

    # ========== Context resolution ==========

    def resolve_context(self, context: PlaybackContext) -> List[Video]:
        """
        Videos a playback context refers to, in their presentation order.

        Library and liked contexts are sorted by name; a playlist keeps its
        own order. Unknown playlists and unindexed ids resolve to nothing.
        """
        if context.kind is ContextKind.LIBRARY:
            return sort_videos(self.library.videos, SortOption.NAME)
        if context.kind is ContextKind.LIKED:
            liked = [v for v in self.library.videos if self.settings.is_liked(v.id)]
            return sort_videos(liked, SortOption.NAME)

        playlist = self.playlists.get(context.playlist_id)
        if playlist is None:
            return []
        return self.library.resolve(playlist.video_ids)

    # ========== Playback entry points ==========

    def _require_queue(self) -> PlaybackQueue:
        if self.queue is None:
            raise RuntimeError("No playback engine attached")
        return self.queue

    async def play(
        self,
        video_id: str,
        context: Optional[PlaybackContext] = None,
        shuffle: Optional[bool] = None,
        loop: bool = False,
    ) -> Optional[Video]:
        """
        Play one video within a context (default: the whole library).

        Returns:
            The video now playing, or None when it is not part of the context
        """
        queue = self._require_queue()
        context = context or PlaybackContext.library()
        source = self.resolve_context(context)
        video = next((v for v in source if v.id == video_id), None)
        if video is None:
            logger.info("play_unknown_video", video_id=video_id, context=context.kind.value)
            return None
        return await queue.play(video, source, shuffle=shuffle, loop=loop, context=context)

    async def play_playlist(
        self,
        playlist_id: str,
        shuffle: Optional[bool] = None,
        loop: bool = False,
    ) -> Optional[Video]:
        """Play a playlist from its first indexed video. Empty or unknown playlists do nothing."""
        queue = self._require_queue()
        context = PlaybackContext.playlist(playlist_id)
        source = self.resolve_context(context)
        if not source:
            logger.info("play_playlist_empty", playlist_id=playlist_id)
            return None
        return await queue.play(source[0], source, shuffle=shuffle, loop=loop, context=context)

    async def search_and_play(self, query: str) -> Optional[Video]:
        """Play the first library match for ``query``, queued within the whole library."""
        queue = self._require_queue()
        source = self.resolve_context(PlaybackContext.library())
        matches = filter_videos(source, query)
        if not matches:
            logger.info("search_and_play_no_match", query=query)
            return None
        return await queue.play(matches[0], source, context=PlaybackContext.library())

    async def resume_last_context(self) -> Optional[Video]:
        """
        Autoplay on open: start a random video from the last recorded context.

        Does nothing unless ``autoplay_on_open`` is set and a context was
        recorded, or when that context no longer resolves to any video.
        """
        context = self.settings.last_context
        if not self.settings.autoplay_on_open or context is None:
            return None

        queue = self._require_queue()
        source = self.resolve_context(context)
        if not source:
            logger.info("resume_context_empty", context=context.kind.value)
            return None

        video = self.rng.choice(source)
        logger.info("resume_last_context", context=context.kind.value, video_id=video.id)
        return await queue.play(video, source, context=context)

"""In-memory thumbnail cache with request coalescing and LRU eviction."""

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, runtime_checkable

import structlog
from PIL import Image

from ..common.concurrency_limiter import ConcurrencyLimiter
from ..common.config import ThumbnailConfig
from .exceptions import FFmpegError, GenerationFailure

logger = structlog.get_logger(__name__)


@runtime_checkable
class ThumbnailRenderer(Protocol):
    """
    External frame decoder used to produce thumbnails.

    Both methods raise on failure (``FFmpegError``, ``OSError`` or
    ``ValueError``). ``FFmpegClient`` implements this protocol.
    """

    async def render_best(self, video_path: Path) -> Image.Image:
        """Render a representative frame at the target resolution."""
        ...

    async def render_frame(self, video_path: Path, at: float) -> Image.Image:
        """Render the frame ``at`` seconds into the clip."""
        ...


RENDER_ERRORS = (FFmpegError, OSError, ValueError)


@dataclass
class CacheEntry:
    """A decoded thumbnail and when it was last read or written."""

    image: Image.Image
    last_accessed: float


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    generations: int = 0
    failures: int = 0
    evictions: int = 0


class ThumbnailCache:
    """
    Capacity-bounded cache of decoded thumbnails keyed by video location.

    - ``get`` returns a cached image immediately, otherwise renders one.
      Concurrent ``get`` calls for the same location share a single
      render.
    - Rendering first asks for a representative frame, then falls back
      to each configured timestamp in order. If every attempt fails the
      caller gets ``None`` (the placeholder) and nothing is cached.
    - A caller that is cancelled while waiting does not cancel the
      render; the result still lands in the cache.
    - ``get`` and ``set`` both refresh recency. Going over capacity
      evicts the least recently accessed entry.

    Example:
        >>> cache = ThumbnailCache(FFmpegClient.from_config(config), config)
        >>> image = await cache.get("/videos/clip.mp4")
        >>> if image is None:
        ...     show_placeholder()
    """

    def __init__(
        self,
        renderer: ThumbnailRenderer,
        config: Optional[ThumbnailConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or ThumbnailConfig()
        self.capacity = self.config.capacity
        self._renderer = renderer
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._in_flight: Dict[str, "asyncio.Task[Optional[Image.Image]]"] = {}
        self._limiter = ConcurrencyLimiter(self.config.max_concurrent, name="thumbnail")
        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, location: str) -> bool:
        return location in self._entries

    def keys(self) -> List[str]:
        """Cached locations from least to most recently accessed."""
        return list(self._entries.keys())

    def is_generating(self, location: str) -> bool:
        return location in self._in_flight

    def _touch(self, location: str) -> CacheEntry:
        entry = self._entries[location]
        entry.last_accessed = self._clock()
        self._entries.move_to_end(location)
        return entry

    def get_cached(self, location: str) -> Optional[Image.Image]:
        """Return a cached image without rendering; counts as an access."""
        if location not in self._entries:
            return None
        return self._touch(location).image

    def set(self, location: str, image: Image.Image) -> None:
        """Insert or replace an entry, evicting the least recently accessed over capacity."""
        self._entries[location] = CacheEntry(image=image, last_accessed=self._clock())
        self._entries.move_to_end(location)

        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            self.stats.evictions += 1
            logger.debug("thumbnail_evicted", location=evicted, size=len(self._entries))

    def invalidate(self, location: str) -> bool:
        """Drop a cached entry. Returns False if there was none."""
        return self._entries.pop(location, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    async def get(self, location: str) -> Optional[Image.Image]:
        """
        Get the thumbnail for a video, rendering it if needed.

        Args:
            location: Video file location (the cache key)

        Returns:
            Decoded image, or None when no frame could be rendered
        """
        if location in self._entries:
            self.stats.hits += 1
            return self._touch(location).image

        task = self._in_flight.get(location)
        if task is not None:
            self.stats.coalesced += 1
            logger.debug("thumbnail_request_coalesced", location=location)
        else:
            self.stats.misses += 1
            task = asyncio.ensure_future(self._generate(location))
            self._in_flight[location] = task

        # Shield so a cancelled caller leaves the shared render running
        return await asyncio.shield(task)

    async def _generate(self, location: str) -> Optional[Image.Image]:
        try:
            async with self._limiter:
                self.stats.generations += 1
                image = await self._render_with_fallback(location)
        except GenerationFailure as e:
            self.stats.failures += 1
            logger.warning(
                "thumbnail_generation_failed",
                location=location,
                attempts=e.attempts,
                error=str(e),
            )
            return None
        finally:
            self._in_flight.pop(location, None)

        self.set(location, image)
        logger.debug("thumbnail_generated", location=location, size=image.size)
        return image

    async def _render_with_fallback(self, location: str) -> Image.Image:
        """
        Try the representative-frame render, then each fallback timestamp.

        Raises:
            GenerationFailure: If no attempt produced an image
        """
        path = Path(location)
        attempts = 0
        last_error: Optional[Exception] = None

        try:
            attempts += 1
            return await self._renderer.render_best(path)
        except RENDER_ERRORS as e:
            last_error = e
            logger.debug("thumbnail_primary_render_failed", location=location, error=str(e))

        for timestamp in self.config.fallback_timestamps:
            try:
                attempts += 1
                image = await self._renderer.render_frame(path, timestamp)
            except RENDER_ERRORS as e:
                last_error = e
                logger.debug(
                    "thumbnail_fallback_render_failed",
                    location=location,
                    timestamp=timestamp,
                    error=str(e),
                )
                continue

            logger.debug("thumbnail_fallback_used", location=location, timestamp=timestamp)
            return image

        raise GenerationFailure(
            f"No frame could be rendered for {location}: {last_error}",
            location=location,
            attempts=attempts,
        )

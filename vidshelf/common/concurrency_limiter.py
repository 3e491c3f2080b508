"""Caps how many ffprobe/ffmpeg processes run at once."""

import asyncio
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class ConcurrencyLimiter:
    """
    Semaphore-backed ``async with`` guard, labelled for log output.

    The library scan and the thumbnail cache each own one, so a scan over a
    large folder never spawns more than ``max_concurrent`` decoder processes.

    Example:
        >>> limiter = ConcurrencyLimiter(4, name="probe")
        >>> async with limiter:
        ...     duration = await prober(path)
    """

    def __init__(self, max_concurrent: int, name: str = "decoder"):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self.name = name
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def __aenter__(self) -> "ConcurrencyLimiter":
        if self._semaphore.locked():
            logger.debug("decoder_slots_full", limiter=self.name, max_concurrent=self.max_concurrent)
        await self._semaphore.acquire()
        return self

    async def __aexit__(self, *args: Any) -> None:
        self._semaphore.release()

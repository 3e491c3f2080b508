"""Metadata probe: duration plus filesystem metadata for a single file."""

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Optional

import aiofiles.os
import structlog

from .exceptions import FFProbeError, ProbeFailure

logger = structlog.get_logger(__name__)

DurationProber = Callable[[Path], Awaitable[float]]


@dataclass(frozen=True)
class ProbeResult:
    """What a single probe call learns about a file."""

    duration: float
    size: int
    created_at: datetime
    modified_at: datetime


def _stat_time(stat_result, attr: str) -> Optional[datetime]:
    value = getattr(stat_result, attr, None)
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class MetadataProbe:
    """
    Stateless probe combining an external duration decoder with ``stat``.

    Args:
        duration_prober: Async callable returning a file's duration in seconds,
            typically ``FFProbeClient.probe_duration``

    Example:
        >>> probe = MetadataProbe(FFProbeClient().probe_duration)
        >>> result = await probe.probe(Path("clip.mp4"))
        >>> result.duration, result.size
    """

    def __init__(self, duration_prober: DurationProber):
        self._probe_duration = duration_prober

    async def probe(self, location: Path) -> ProbeResult:
        """
        Probe one file.

        Raises:
            ProbeFailure: If the duration or filesystem metadata cannot be read
        """
        try:
            stat_result = await aiofiles.os.stat(location)
        except OSError as e:
            raise ProbeFailure(f"Cannot stat {location}: {e}", location=location) from e

        try:
            duration = await self._probe_duration(location)
        except (FFProbeError, OSError) as e:
            raise ProbeFailure(f"Cannot read duration of {location}: {e}", location=location) from e

        if duration is None or duration != duration or duration < 0:
            raise ProbeFailure(f"Invalid duration {duration!r} for {location}", location=location)

        modified_at = _stat_time(stat_result, "st_mtime")
        # st_birthtime only exists on macOS/BSD
        created_at = _stat_time(stat_result, "st_birthtime") or modified_at

        logger.debug(
            "file_probed",
            location=str(location),
            duration=duration,
            size=stat_result.st_size,
        )
        return ProbeResult(
            duration=float(duration),
            size=stat_result.st_size,
            created_at=created_at,
            modified_at=modified_at,
        )

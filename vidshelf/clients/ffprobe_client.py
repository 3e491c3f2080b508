"""ffprobe CLI client: reads container and stream metadata for library scans."""

import asyncio
import json
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from ..common.config import FFProbeConfig
from ..core.exceptions import (
    FFProbeExecutionError,
    FFProbeNotFoundError,
    FFProbeParseError,
)
from ..parsers.ffprobe_models import FFProbeMediaInfo
from ..parsers.ffprobe_parser import FFProbeParser

INSTALL_HINT = "Install ffmpeg (which ships ffprobe), e.g. `brew install ffmpeg`"


class FFProbeClient:
    """
    Async wrapper around the ffprobe binary.

    The library scan only needs :meth:`probe_duration`; it is what
    ``MediaCore`` hands to :class:`~vidshelf.core.probe.MetadataProbe`.
    :meth:`get_media_info` exposes the full parsed output.

    Example:
        >>> async with FFProbeClient.from_config(FFProbeConfig()) as client:
        ...     seconds = await client.probe_duration(Path("videos/clip.mp4"))
    """

    def __init__(
        self,
        config: Optional[FFProbeConfig] = None,
        ffprobe_path: str = "ffprobe",
    ):
        self.config = config or FFProbeConfig()
        self.ffprobe_path = ffprobe_path
        self.logger = structlog.get_logger(__name__)
        self._verified = False

    async def __aenter__(self) -> "FFProbeClient":
        await self._verify_binary()
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass

    @classmethod
    def from_config(cls, config: FFProbeConfig) -> "FFProbeClient":
        return cls(config=config, ffprobe_path=config.ffprobe_path)

    def _not_found(self) -> FFProbeNotFoundError:
        return FFProbeNotFoundError(
            f"ffprobe binary not found at '{self.ffprobe_path}'. {INSTALL_HINT}",
            path=self.ffprobe_path,
        )

    async def _verify_binary(self) -> None:
        """
        Check once per client that the binary resolves on PATH.

        Raises:
            FFProbeNotFoundError: If ffprobe cannot be found
        """
        if self._verified:
            return
        if not shutil.which(self.ffprobe_path):
            raise self._not_found()
        self.logger.debug("ffprobe_binary_verified", path=self.ffprobe_path)
        self._verified = True

    @staticmethod
    def _probe_args(file_path: Path) -> List[str]:
        return [
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(file_path),
        ]

    async def _run(self, args: List[str]) -> bytes:
        """
        Run ffprobe and return its stdout.

        Raises:
            FFProbeNotFoundError: If the binary vanished since verification
            FFProbeExecutionError: On a non-zero exit or timeout
        """
        await self._verify_binary()
        cmd = [self.ffprobe_path, *args]
        self.logger.debug("ffprobe_execute", command=" ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise self._not_found()

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.config.timeout)
        except asyncio.TimeoutError:
            process.kill()
            self.logger.error("ffprobe_timeout", target=args[-1], timeout=self.config.timeout)
            raise FFProbeExecutionError(f"ffprobe timed out after {self.config.timeout}s on {args[-1]}")

        if process.returncode != 0:
            error_msg = stderr.decode("utf-8", errors="replace")
            self.logger.warning(
                "ffprobe_failed",
                target=args[-1],
                returncode=process.returncode,
                stderr=error_msg[:500],
            )
            raise FFProbeExecutionError(
                f"ffprobe exited with code {process.returncode}",
                returncode=process.returncode,
                stderr=error_msg,
            )
        return stdout

    async def get_media_info(self, file_path: Path) -> FFProbeMediaInfo:
        """
        Probe a file's container format and streams.

        Args:
            file_path: Video file to inspect

        Returns:
            Parsed ffprobe output

        Raises:
            FileNotFoundError: If ``file_path`` does not exist
            FFProbeNotFoundError: If ffprobe is not installed
            FFProbeExecutionError: If ffprobe fails or times out
            FFProbeParseError: If the output is not the expected JSON
        """
        if not file_path.exists():
            raise FileNotFoundError(f"Video file not found: {file_path}")

        raw = await self._run(self._probe_args(file_path))

        try:
            data: Dict[str, Any] = json.loads(raw)
            media_info = FFProbeParser.parse_media_info(data)
        except ValueError as e:
            # JSONDecodeError and pydantic's ValidationError are both ValueErrors
            self.logger.warning("ffprobe_output_invalid", file_path=str(file_path), error=str(e)[:500])
            raise FFProbeParseError(f"Unreadable ffprobe output for {file_path}: {e}") from e

        self.logger.debug(
            "ffprobe_parse_complete",
            file_path=str(file_path),
            duration=media_info.format.duration,
            video_streams=len(media_info.video_streams),
        )
        return media_info

    async def probe_duration(self, file_path: Path) -> float:
        """Duration in seconds, from the container or else the first video stream."""
        media_info = await self.get_media_info(file_path)
        duration = media_info.get_duration()
        if duration is None:
            raise FFProbeParseError(f"No duration reported for {file_path}")
        return duration

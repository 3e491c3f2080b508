"""ffmpeg CLI client for in-memory thumbnail rendering."""

import asyncio
import io
import shutil
from pathlib import Path
from typing import Any, List, Optional

import structlog
from PIL import Image, UnidentifiedImageError

from ..common.config import ThumbnailConfig
from ..core.exceptions import FFmpegExecutionError, FFmpegNotFoundError

INSTALL_HINT = "Install ffmpeg, e.g. `brew install ffmpeg`"


def _decode_image(data: bytes) -> Image.Image:
    """Decode JPEG bytes into a fully loaded RGB raster (runs in a worker thread)."""
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        return img.convert("RGB")


class FFmpegClient:
    """
    Renders single video frames to in-memory images with the ffmpeg binary.

    ffmpeg writes one MJPEG frame to stdout, which is decoded with Pillow,
    so thumbnails never touch the disk. This is the default
    :class:`~vidshelf.core.thumbnails.ThumbnailRenderer`.

    - ``render_best``: ffmpeg's ``thumbnail`` filter picks a representative
      frame near the start of the clip.
    - ``render_frame``: seek to a timestamp and grab that frame.

    Example:
        >>> client = FFmpegClient.from_config(ThumbnailConfig(width=160, height=90))
        >>> image = await client.render_frame(Path("videos/clip.mp4"), at=1.0)
        >>> image.size
        (160, 90)
    """

    def __init__(self, config: Optional[ThumbnailConfig] = None, ffmpeg_path: str = "ffmpeg"):
        self.config = config or ThumbnailConfig()
        self.ffmpeg_path = ffmpeg_path
        self.logger = structlog.get_logger(__name__)
        self._verified = False

    async def __aenter__(self) -> "FFmpegClient":
        await self._verify_binary()
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass

    @classmethod
    def from_config(cls, config: ThumbnailConfig) -> "FFmpegClient":
        return cls(config=config, ffmpeg_path=config.ffmpeg_path)

    def _not_found(self) -> FFmpegNotFoundError:
        return FFmpegNotFoundError(
            f"ffmpeg binary not found at '{self.ffmpeg_path}'. {INSTALL_HINT}",
            path=self.ffmpeg_path,
        )

    async def _verify_binary(self) -> None:
        """Check once per client that the binary resolves on PATH."""
        if self._verified:
            return
        if not shutil.which(self.ffmpeg_path):
            raise self._not_found()
        self.logger.debug("ffmpeg_binary_verified", path=self.ffmpeg_path)
        self._verified = True

    def _scale_filter(self, width: Optional[int], height: Optional[int]) -> str:
        width = width or self.config.width
        height = height or self.config.height
        return f"scale={width}:{height}:force_original_aspect_ratio=decrease"

    def _build_command(self, video_path: Path, video_filter: str, seek: Optional[float]) -> List[str]:
        cmd = [self.ffmpeg_path, "-v", "error"]
        if seek is not None:
            # -ss before -i for fast seeking
            cmd += ["-ss", str(seek)]
        cmd += [
            "-i", str(video_path),
            "-frames:v", "1",
            "-vf", video_filter,
            "-q:v", str(self.config.quality),
            "-f", "image2pipe",
            "-vcodec", "mjpeg",
            "pipe:1",
        ]
        return cmd

    async def _run(self, cmd: List[str], video_path: Path) -> Image.Image:
        """
        Run an ffmpeg render command and decode the piped frame.

        Raises:
            FFmpegNotFoundError: If ffmpeg binary not found
            FFmpegExecutionError: If ffmpeg fails, times out, or yields no decodable frame
        """
        await self._verify_binary()

        if not video_path.exists():
            raise FileNotFoundError(f"Video file not found: {video_path}")

        self.logger.debug("ffmpeg_execute", command=" ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise self._not_found()

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            self.logger.error("ffmpeg_timeout", target=str(video_path), timeout=self.config.timeout)
            raise FFmpegExecutionError(f"ffmpeg timed out after {self.config.timeout}s on {video_path}")

        if process.returncode != 0:
            error_msg = stderr.decode("utf-8", errors="replace")
            self.logger.debug(
                "ffmpeg_render_failed",
                video_path=str(video_path),
                returncode=process.returncode,
                stderr=error_msg[:500],
            )
            raise FFmpegExecutionError(
                f"ffmpeg exited with code {process.returncode}",
                returncode=process.returncode,
                stderr=error_msg,
            )

        # Seeking past the end exits 0 with no frame
        if not stdout:
            raise FFmpegExecutionError(f"ffmpeg produced no frame for {video_path}")

        try:
            return await asyncio.to_thread(_decode_image, stdout)
        except (UnidentifiedImageError, OSError) as e:
            raise FFmpegExecutionError(f"Could not decode frame for {video_path}: {e}") from e

    async def render_best(
        self,
        video_path: Path,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> Image.Image:
        """
        Render a representative frame at the target resolution.

        Args:
            video_path: Path to source video file
            width: Bounding width in pixels (default: config.width)
            height: Bounding height in pixels (default: config.height)

        Returns:
            Decoded RGB image no larger than width x height
        """
        video_filter = f"thumbnail,{self._scale_filter(width, height)}"
        cmd = self._build_command(video_path, video_filter, seek=None)
        image = await self._run(cmd, video_path)
        self.logger.debug(
            "ffmpeg_render_best_complete",
            video_path=str(video_path),
            size=image.size,
        )
        return image

    async def render_frame(
        self,
        video_path: Path,
        at: float,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> Image.Image:
        """
        Render the frame at a given timestamp.

        Args:
            video_path: Path to source video file
            at: Time in seconds to grab the frame from
            width: Bounding width in pixels (default: config.width)
            height: Bounding height in pixels (default: config.height)

        Returns:
            Decoded RGB image no larger than width x height
        """
        cmd = self._build_command(video_path, self._scale_filter(width, height), seek=at)
        image = await self._run(cmd, video_path)
        self.logger.debug(
            "ffmpeg_render_frame_complete",
            video_path=str(video_path),
            timestamp=at,
            size=image.size,
        )
        return image

"""Async clients for the external ffprobe / ffmpeg decoders."""

from .ffmpeg_client import FFmpegClient
from .ffprobe_client import FFProbeClient

__all__ = [
    "FFmpegClient",
    "FFProbeClient",
]

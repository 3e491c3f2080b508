"""Parsers for external decoder output."""

from .ffprobe_models import FFProbeFormat, FFProbeMediaInfo, FFProbeVideoStream
from .ffprobe_parser import FFProbeParser

__all__ = [
    "FFProbeFormat",
    "FFProbeMediaInfo",
    "FFProbeVideoStream",
    "FFProbeParser",
]

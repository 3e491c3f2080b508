"""Pydantic models for ffprobe JSON output."""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _to_optional_float(v: Any) -> Optional[float]:
    if v is None:
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


class FFProbeFormat(BaseModel):
    """Container format information from ffprobe."""

    filename: str
    format_name: str
    format_long_name: Optional[str] = None
    duration: Optional[float] = None
    size: Optional[int] = None
    nb_streams: Optional[int] = None
    tags: Optional[dict] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("size", mode="before")
    @classmethod
    def parse_string_int(cls, v: Any) -> Optional[int]:
        """Convert string integers to int."""
        if isinstance(v, str):
            try:
                return int(v)
            except ValueError:
                return None
        return v

    @field_validator("duration", mode="before")
    @classmethod
    def parse_string_float(cls, v: Any) -> Optional[float]:
        """Convert string floats ("241.963000") to float."""
        return _to_optional_float(v)


class FFProbeVideoStream(BaseModel):
    """Video stream information from ffprobe."""

    index: int
    codec_name: str
    codec_type: str = "video"
    width: int
    height: int
    r_frame_rate: Optional[str] = None
    duration: Optional[float] = None
    tags: Optional[dict] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("duration", mode="before")
    @classmethod
    def parse_string_float(cls, v: Any) -> Optional[float]:
        """Convert string floats to float."""
        return _to_optional_float(v)


class FFProbeMediaInfo(BaseModel):
    """Complete media information from ffprobe."""

    format: FFProbeFormat
    streams: List[dict] = Field(default_factory=list)

    @property
    def video_streams(self) -> List[FFProbeVideoStream]:
        """Extract and parse video streams."""
        video_streams = []
        for stream in self.streams:
            if stream.get("codec_type") == "video":
                try:
                    video_streams.append(FFProbeVideoStream.model_validate(stream))
                except ValueError:
                    # Skip invalid video streams (cover art, data tracks)
                    continue
        return video_streams

    def get_primary_video_stream(self) -> Optional[FFProbeVideoStream]:
        """Get the first video stream (primary video track)."""
        video_streams = self.video_streams
        return video_streams[0] if video_streams else None

    def get_duration(self) -> Optional[float]:
        """
        Best available duration in seconds.

        Prefers the container duration and falls back to the primary video
        stream's duration. Returns None when neither is usable.
        """
        if self.format.duration is not None and self.format.duration >= 0:
            return self.format.duration
        stream = self.get_primary_video_stream()
        if stream is not None and stream.duration is not None and stream.duration >= 0:
            return stream.duration
        return None

"""Parser for ffprobe JSON output."""

from typing import Any, Dict

import structlog

from .ffprobe_models import FFProbeMediaInfo

logger = structlog.get_logger(__name__)


class FFProbeParser:
    """Parser for ffprobe JSON output."""

    @staticmethod
    def parse_media_info(data: Dict[str, Any]) -> FFProbeMediaInfo:
        """
        Parse ffprobe JSON output into structured model.

        Args:
            data: Raw JSON dictionary from ffprobe output

        Returns:
            FFProbeMediaInfo object with parsed format and streams

        Raises:
            ValueError: If data is invalid or missing required fields

        Example:
            >>> data = {
            ...     "format": {"filename": "video.mp4", "format_name": "mov,mp4,m4a,3gp,3g2,mj2"},
            ...     "streams": [{"codec_type": "video", "codec_name": "h264", ...}]
            ... }
            >>> media_info = FFProbeParser.parse_media_info(data)
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object from ffprobe, got {type(data).__name__}")
        try:
            return FFProbeMediaInfo.model_validate(data)
        except ValueError as e:
            logger.error(
                "ffprobe_parse_failed",
                error=str(e),
                has_format="format" in data,
                has_streams="streams" in data,
            )
            raise ValueError(f"Failed to parse ffprobe output: {e}") from e

"""Fixtures specific to unit tests."""

import json
from pathlib import Path
from typing import Any, Dict

import pytest


@pytest.fixture
def ffprobe_output() -> Dict[str, Any]:
    """Trimmed ffprobe -show_format -show_streams output for an H.264 clip."""
    return {
        "streams": [
            {
                "index": 0,
                "codec_name": "h264",
                "codec_type": "video",
                "width": 1920,
                "height": 1080,
                "r_frame_rate": "30000/1001",
                "duration": "241.908333",
            },
            {
                "index": 1,
                "codec_name": "aac",
                "codec_type": "audio",
                "duration": "241.963000",
            },
        ],
        "format": {
            "filename": "clip.mp4",
            "format_name": "mov,mp4,m4a,3gp,3g2,mj2",
            "duration": "241.963000",
            "size": "52428800",
            "bit_rate": "1733415",
        },
    }


@pytest.fixture
def ffprobe_output_bytes(ffprobe_output: Dict[str, Any]) -> bytes:
    return json.dumps(ffprobe_output).encode("utf-8")


@pytest.fixture
def sample_video_file(tmp_path: Path) -> Path:
    """Create a temporary sample video file for testing."""
    video_file = tmp_path / "sample_video.mp4"
    video_file.write_bytes(b"fake video data")
    return video_file

"""Tests for the FFProbeClient class."""

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vidshelf.clients.ffprobe_client import FFProbeClient
from vidshelf.common.config import FFProbeConfig
from vidshelf.core.exceptions import (
    FFProbeExecutionError,
    FFProbeNotFoundError,
    FFProbeParseError,
)
from vidshelf.parsers.ffprobe_models import FFProbeMediaInfo
from vidshelf.parsers.ffprobe_parser import FFProbeParser


@pytest.fixture
def ffprobe_config():
    """Create FFProbe configuration for testing."""
    return FFProbeConfig(
        ffprobe_path="ffprobe",
        timeout=30,
    )


def _mock_process(returncode: int, stdout: bytes = b"", stderr: bytes = b"") -> AsyncMock:
    process = AsyncMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    return process


class TestFFProbeClient:
    """Test suite for FFProbeClient."""

    @pytest.mark.asyncio
    async def test_from_config(self, ffprobe_config):
        """Test creating client from configuration."""
        client = FFProbeClient.from_config(config=ffprobe_config)
        assert client.ffprobe_path == "ffprobe"
        assert client.config.timeout == 30

    @pytest.mark.asyncio
    async def test_binary_verification_not_found(self):
        """Test that missing ffprobe binary raises error."""
        config = FFProbeConfig(ffprobe_path="nonexistent_ffprobe_binary")
        client = FFProbeClient.from_config(config)

        with patch("shutil.which", return_value=None):
            with pytest.raises(FFProbeNotFoundError) as exc_info:
                await client._verify_binary()

        assert "not found" in str(exc_info.value).lower()
        assert exc_info.value.path == "nonexistent_ffprobe_binary"

    @pytest.mark.asyncio
    async def test_binary_verification_success(self, ffprobe_config):
        """Test successful binary verification is cached."""
        with patch("shutil.which", return_value="/usr/local/bin/ffprobe"):
            client = FFProbeClient.from_config(ffprobe_config)
            await client._verify_binary()
            assert client._verified is True

            # Verify it doesn't check again
            with patch("shutil.which", side_effect=Exception("Should not be called")):
                await client._verify_binary()

    @pytest.mark.asyncio
    async def test_get_media_info_success(self, ffprobe_config, sample_video_file, ffprobe_output_bytes):
        """Test successful media info extraction."""
        client = FFProbeClient.from_config(ffprobe_config)
        mock_process = _mock_process(0, ffprobe_output_bytes)

        with patch("shutil.which", return_value="/usr/local/bin/ffprobe"):
            with patch("asyncio.create_subprocess_exec", return_value=mock_process) as mock_exec:
                media_info = await client.get_media_info(sample_video_file)

        assert isinstance(media_info, FFProbeMediaInfo)
        assert media_info.format.format_name == "mov,mp4,m4a,3gp,3g2,mj2"
        assert media_info.format.duration == 241.963
        assert media_info.format.size == 52428800

        video_stream = media_info.get_primary_video_stream()
        assert video_stream is not None
        assert video_stream.codec_name == "h264"
        assert video_stream.width == 1920

        args = mock_exec.call_args[0]
        assert args[0] == "ffprobe"
        assert "-show_format" in args
        assert args[-1] == str(sample_video_file)

    @pytest.mark.asyncio
    async def test_get_media_info_file_not_found(self, ffprobe_config, tmp_path):
        """Test error when video file doesn't exist."""
        client = FFProbeClient.from_config(ffprobe_config)

        with pytest.raises(FileNotFoundError):
            await client.get_media_info(tmp_path / "nonexistent_video.mp4")

    @pytest.mark.asyncio
    async def test_execute_ffprobe_command_failure(self, ffprobe_config, sample_video_file):
        """Test handling of ffprobe command failure."""
        client = FFProbeClient.from_config(ffprobe_config)
        mock_process = _mock_process(1, b"", b"Invalid data found when processing input")

        with patch("shutil.which", return_value="/usr/local/bin/ffprobe"):
            with patch("asyncio.create_subprocess_exec", return_value=mock_process):
                with pytest.raises(FFProbeExecutionError) as exc_info:
                    await client.get_media_info(sample_video_file)

        assert exc_info.value.returncode == 1
        assert "Invalid data" in exc_info.value.stderr

    @pytest.mark.asyncio
    async def test_execute_ffprobe_timeout_kills_process(self, sample_video_file):
        """Test handling of ffprobe command timeout."""
        client = FFProbeClient.from_config(FFProbeConfig(timeout=5))

        mock_process = AsyncMock()
        mock_process.communicate = AsyncMock(side_effect=asyncio.TimeoutError())
        mock_process.kill = MagicMock()

        with patch("shutil.which", return_value="/usr/local/bin/ffprobe"):
            with patch("asyncio.create_subprocess_exec", return_value=mock_process):
                with pytest.raises(FFProbeExecutionError) as exc_info:
                    await client.get_media_info(sample_video_file)

        assert "timed out" in str(exc_info.value).lower()
        mock_process.kill.assert_called_once()

    @pytest.mark.asyncio
    async def test_parse_json_error(self, ffprobe_config, sample_video_file):
        """Test handling of JSON parsing errors."""
        client = FFProbeClient.from_config(ffprobe_config)
        mock_process = _mock_process(0, b"not json at all")

        with patch("shutil.which", return_value="/usr/local/bin/ffprobe"):
            with patch("asyncio.create_subprocess_exec", return_value=mock_process):
                with pytest.raises(FFProbeParseError):
                    await client.get_media_info(sample_video_file)

    @pytest.mark.asyncio
    async def test_probe_duration(self, ffprobe_config, sample_video_file, ffprobe_output_bytes):
        """Test duration comes from the container format."""
        client = FFProbeClient.from_config(ffprobe_config)
        mock_process = _mock_process(0, ffprobe_output_bytes)

        with patch("shutil.which", return_value="/usr/local/bin/ffprobe"):
            with patch("asyncio.create_subprocess_exec", return_value=mock_process):
                duration = await client.probe_duration(sample_video_file)

        assert duration == pytest.approx(241.963)

    @pytest.mark.asyncio
    async def test_probe_duration_missing(self, ffprobe_config, sample_video_file):
        """Test a file with no duration anywhere is a parse error."""
        client = FFProbeClient.from_config(ffprobe_config)
        output = {"format": {"filename": "x.mp4", "format_name": "mp4"}, "streams": []}
        mock_process = _mock_process(0, json.dumps(output).encode())

        with patch("shutil.which", return_value="/usr/local/bin/ffprobe"):
            with patch("asyncio.create_subprocess_exec", return_value=mock_process):
                with pytest.raises(FFProbeParseError):
                    await client.probe_duration(sample_video_file)


class TestFFProbeParser:
    """Tests for FFProbeParser and the media info model."""

    def test_parse_media_info(self, ffprobe_output):
        media_info = FFProbeParser.parse_media_info(ffprobe_output)
        assert len(media_info.video_streams) == 1
        assert media_info.get_duration() == pytest.approx(241.963)

    def test_duration_falls_back_to_video_stream(self, ffprobe_output):
        del ffprobe_output["format"]["duration"]
        media_info = FFProbeParser.parse_media_info(ffprobe_output)
        assert media_info.get_duration() == pytest.approx(241.908333)

    def test_unparseable_duration_is_none(self):
        media_info = FFProbeParser.parse_media_info(
            {"format": {"filename": "x.mp4", "format_name": "mp4", "duration": "N/A"}}
        )
        assert media_info.format.duration is None
        assert media_info.get_duration() is None

    def test_missing_format_raises(self):
        with pytest.raises(ValueError):
            FFProbeParser.parse_media_info({"streams": []})

    def test_invalid_video_stream_is_skipped(self, ffprobe_output):
        ffprobe_output["streams"].append({"codec_type": "video", "index": 2})
        media_info = FFProbeParser.parse_media_info(ffprobe_output)
        assert len(media_info.video_streams) == 1

    def test_non_object_output_raises(self):
        with pytest.raises(ValueError):
            FFProbeParser.parse_media_info([1, 2, 3])

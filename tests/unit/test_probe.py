"""Tests for the metadata probe."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from vidshelf.core.exceptions import FFProbeExecutionError, ProbeFailure
from vidshelf.core.probe import MetadataProbe


class TestMetadataProbe:
    """Tests for MetadataProbe.probe()."""

    @pytest.mark.asyncio
    async def test_probe_success(self, make_video_file):
        path = make_video_file("clip.mp4", data=b"x" * 2048)
        prober = AsyncMock(return_value=12.5)

        result = await MetadataProbe(prober).probe(path)

        prober.assert_awaited_once_with(path)
        assert result.duration == 12.5
        assert result.size == 2048
        assert result.created_at.tzinfo is not None
        assert result.modified_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path: Path):
        prober = AsyncMock(return_value=1.0)

        with pytest.raises(ProbeFailure) as exc_info:
            await MetadataProbe(prober).probe(tmp_path / "gone.mp4")

        assert exc_info.value.location == tmp_path / "gone.mp4"
        prober.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_decoder_error_becomes_probe_failure(self, make_video_file):
        path = make_video_file("broken.mp4")
        prober = AsyncMock(side_effect=FFProbeExecutionError("bad file", returncode=1))

        with pytest.raises(ProbeFailure, match="duration"):
            await MetadataProbe(prober).probe(path)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", [float("nan"), -1.0])
    async def test_invalid_duration(self, make_video_file, duration):
        path = make_video_file("odd.mp4")

        with pytest.raises(ProbeFailure, match="Invalid duration"):
            await MetadataProbe(AsyncMock(return_value=duration)).probe(path)

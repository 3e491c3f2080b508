"""Tests for MediaCore wiring and playback entry points."""

import random
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from vidshelf.app import MediaCore
from vidshelf.common.config import Config
from vidshelf.core.library import canonical_location
from vidshelf.core.models import PlaybackContext


@pytest_asyncio.fixture
async def core(test_config: Config, engine: MagicMock, duration_prober: AsyncMock, renderer: MagicMock):
    core = await MediaCore.open(
        config=test_config,
        configure_logging=False,
        engine=engine,
        duration_prober=duration_prober,
        renderer=renderer,
        rng=random.Random(42),
    )
    return core


@pytest.fixture
def video_ids(make_video_file):
    return {
        name: canonical_location(make_video_file(f"{name}.mp4"))
        for name in ("alpha", "bravo", "charlie")
    }


class TestMediaCoreOpen:
    """Tests for construction and loading."""

    @pytest.mark.asyncio
    async def test_open_from_yaml(self, tmp_path, duration_prober, renderer):
        config_path = tmp_path / "config.yaml"
        Config(
            config_dir=tmp_path / "cfg",
            library_dir=tmp_path / "lib",
        ).to_yaml(config_path)

        core = await MediaCore.open(
            config_path=config_path,
            configure_logging=False,
            duration_prober=duration_prober,
            renderer=renderer,
        )

        assert core.library.root == tmp_path / "lib"
        assert core.queue is None
        assert len(core.library) == 0

    @pytest.mark.asyncio
    async def test_playback_requires_engine(self, test_config, duration_prober, renderer):
        core = MediaCore(test_config, duration_prober=duration_prober, renderer=renderer)

        with pytest.raises(RuntimeError):
            await core.play("/v/a.mp4")

    @pytest.mark.asyncio
    async def test_corrupt_catalog_keeps_playlists_and_likes(
        self, core: MediaCore, video_ids, test_config, engine, duration_prober, renderer
    ):
        await core.library.scan()
        playlist = await core.playlists.create("Mix", [video_ids["alpha"]])
        await core.settings.like(video_ids["alpha"])
        test_config.get_catalog_path().write_text("{not json")

        reopened = await MediaCore.open(
            config=test_config,
            configure_logging=False,
            engine=engine,
            duration_prober=duration_prober,
            renderer=renderer,
        )

        assert len(reopened.library) == 0
        assert reopened.playlists.get(playlist.id).video_ids == [video_ids["alpha"]]
        assert reopened.settings.is_liked(video_ids["alpha"])

        await reopened.library.scan()

        assert reopened.playlists.get(playlist.id).video_ids == [video_ids["alpha"]]
        assert reopened.settings.is_liked(video_ids["alpha"])
        assert [v.id for v in reopened.resolve_context(PlaybackContext.playlist(playlist.id))] == [
            video_ids["alpha"]
        ]


class TestContexts:
    """Tests for context resolution and playback entry points."""

    @pytest.mark.asyncio
    async def test_resolve_contexts(self, core: MediaCore, video_ids):
        await core.library.scan()
        await core.settings.like(video_ids["charlie"])
        await core.settings.like(video_ids["alpha"])
        playlist = await core.playlists.create("Mix", [video_ids["charlie"], video_ids["bravo"]])

        library = core.resolve_context(PlaybackContext.library())
        liked = core.resolve_context(PlaybackContext.liked())
        mix = core.resolve_context(PlaybackContext.playlist(playlist.id))

        assert [v.name for v in library] == ["alpha", "bravo", "charlie"]
        assert [v.name for v in liked] == ["alpha", "charlie"]
        assert [v.name for v in mix] == ["charlie", "bravo"]
        assert core.resolve_context(PlaybackContext.playlist("missing")) == []

    @pytest.mark.asyncio
    async def test_play_playlist_starts_at_first_item(self, core: MediaCore, engine, video_ids):
        await core.library.scan()
        playlist = await core.playlists.create("Mix", [video_ids["charlie"], video_ids["alpha"]])

        video = await core.play_playlist(playlist.id, shuffle=False)

        assert video.name == "charlie"
        assert [v.name for v in core.queue.play_order] == ["charlie", "alpha"]
        engine.open.assert_called_once_with(video_ids["charlie"])
        assert core.settings.last_context == PlaybackContext.playlist(playlist.id)

    @pytest.mark.asyncio
    async def test_play_empty_playlist(self, core: MediaCore):
        playlist = await core.playlists.create("Empty")
        assert await core.play_playlist(playlist.id) is None

    @pytest.mark.asyncio
    async def test_search_and_play(self, core: MediaCore, video_ids):
        await core.library.scan()

        video = await core.search_and_play("BRAV")

        assert video.id == video_ids["bravo"]
        assert len(core.queue.source) == 3
        assert await core.search_and_play("zulu") is None

    @pytest.mark.asyncio
    async def test_play_outside_context(self, core: MediaCore, video_ids):
        await core.library.scan()

        assert await core.play(video_ids["alpha"], PlaybackContext.liked()) is None


class TestResumeLastContext:
    """Tests for autoplay on open."""

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, core: MediaCore, video_ids):
        await core.library.scan()
        await core.settings.record_last_played(PlaybackContext.library(), video_ids["alpha"])

        assert await core.resume_last_context() is None

    @pytest.mark.asyncio
    async def test_resumes_random_video_from_context(self, core: MediaCore, video_ids):
        await core.library.scan()
        await core.settings.like(video_ids["bravo"])
        await core.settings.record_last_played(PlaybackContext.liked(), video_ids["bravo"])
        await core.settings.set_autoplay_on_open(True)

        video = await core.resume_last_context()

        assert video.id == video_ids["bravo"]
        assert core.queue.context == PlaybackContext.liked()

    @pytest.mark.asyncio
    async def test_empty_context(self, core: MediaCore):
        await core.settings.record_last_played(PlaybackContext.liked(), None)
        await core.settings.set_autoplay_on_open(True)

        assert await core.resume_last_context() is None


class TestCrossComponentEffects:
    """Tests for effects wired through the event bus."""

    @pytest.mark.asyncio
    async def test_delete_invalidates_thumbnail(self, core: MediaCore, video_ids, renderer):
        await core.library.scan()
        await core.thumbnails.get(video_ids["alpha"])
        assert video_ids["alpha"] in core.thumbnails

        await core.library.delete(video_ids["alpha"])

        assert video_ids["alpha"] not in core.thumbnails

    @pytest.mark.asyncio
    async def test_watched_play_updates_catalog(self, core: MediaCore, video_ids):
        await core.library.scan()
        await core.play(video_ids["alpha"], shuffle=False)

        await core.queue.on_reached_end()

        assert core.library.get(video_ids["alpha"]).watch_count == 1
        assert core.queue.current.id == video_ids["bravo"]

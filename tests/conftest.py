"""Shared pytest fixtures for all tests."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

from vidshelf.common.config import Config, LibraryConfig, LoggingConfig, PlaybackConfig, ThumbnailConfig
from vidshelf.core.event_bus import EventBus
from vidshelf.core.json_store import JsonDocumentStore
from vidshelf.core.library import LibraryIndex
from vidshelf.core.models import Video
from vidshelf.core.playlists import PlaylistStore
from vidshelf.core.probe import MetadataProbe
from vidshelf.core.settings import SettingsStore


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Provide a configuration rooted in a temporary directory."""
    config = Config(
        config_dir=tmp_path / "config",
        library_dir=tmp_path / "videos",
        logging=LoggingConfig(level="DEBUG", format="text"),
        library=LibraryConfig(max_concurrent_probes=2),
        thumbnail=ThumbnailConfig(capacity=3),
        playback=PlaybackConfig(watch_threshold=0.9, restart_threshold=5.0),
    )
    return config.resolve_paths(create_dirs=True)


@pytest.fixture
def library_dir(test_config: Config) -> Path:
    return test_config.library_dir


@pytest.fixture
def make_video_file(library_dir: Path) -> Callable[..., Path]:
    """Factory writing a fake video file into the library directory."""

    def _make(name: str, data: bytes = b"fake video data", directory: Path = None) -> Path:
        target_dir = directory or library_dir
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / name
        path.write_bytes(data)
        return path

    return _make


@pytest.fixture
def make_video() -> Callable[..., Video]:
    """Factory for in-memory Video records."""
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _make(name: str, **kwargs) -> Video:
        defaults = {
            "location": f"/videos/{name}.mp4",
            "duration": 100.0,
            "date_added": base + timedelta(days=kwargs.pop("day", 0)),
            "size": 1000,
        }
        defaults.update(kwargs)
        return Video(name=name, **defaults)

    return _make


@pytest.fixture
def sample_videos(make_video) -> List[Video]:
    """Four videos V1..V4 in source order."""
    return [make_video(f"V{i}") for i in range(1, 5)]


@pytest.fixture
def duration_prober() -> AsyncMock:
    """Duration prober returning 60 seconds for every file."""
    return AsyncMock(return_value=60.0)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorded_events(event_bus: EventBus) -> List[dict]:
    """Collect every event emitted on the shared bus."""
    events: List[dict] = []

    async def record(event: dict) -> None:
        events.append(event)

    for event_type in (
        "library_changed",
        "video_removed",
        "video_watched",
        "playlists_changed",
        "liked_changed",
        "playback_state_changed",
        "playback_item_changed",
        "playback_failed",
    ):
        event_bus.subscribe(event_type, record)
    return events


@pytest.fixture
def settings_store(test_config: Config, event_bus: EventBus) -> SettingsStore:
    return SettingsStore(
        JsonDocumentStore(test_config.get_settings_path(), name="settings"),
        event_bus=event_bus,
    )


@pytest.fixture
def playlist_store(test_config: Config, event_bus: EventBus) -> PlaylistStore:
    return PlaylistStore(
        JsonDocumentStore(test_config.get_playlists_path(), name="playlists"),
        event_bus=event_bus,
    )


@pytest.fixture
def library(
    test_config: Config,
    duration_prober: AsyncMock,
    playlist_store: PlaylistStore,
    settings_store: SettingsStore,
    event_bus: EventBus,
) -> LibraryIndex:
    return LibraryIndex(
        root=test_config.library_dir,
        config=test_config.library,
        probe=MetadataProbe(duration_prober),
        store=JsonDocumentStore(test_config.get_catalog_path(), name="catalog"),
        playlists=playlist_store,
        settings=settings_store,
        event_bus=event_bus,
    )


@pytest.fixture
def thumbnail_image() -> Image.Image:
    return Image.new("RGB", (120, 68), color=(40, 80, 120))


@pytest.fixture
def renderer(thumbnail_image: Image.Image) -> MagicMock:
    """Thumbnail renderer whose primary render always succeeds."""
    mock = MagicMock()
    mock.render_best = AsyncMock(return_value=thumbnail_image)
    mock.render_frame = AsyncMock(return_value=thumbnail_image)
    return mock


@pytest.fixture
def engine() -> MagicMock:
    """Playback engine double recording open/play/pause/seek/stop calls."""
    return MagicMock()

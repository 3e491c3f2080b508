"""Unit tests for configuration loading and validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from vidshelf.common.config import (
    Config,
    LibraryConfig,
    LoggingConfig,
    PlaybackConfig,
    ThumbnailConfig,
    default_config_path,
)


class TestLoggingConfig:
    """Tests for LoggingConfig model."""

    def test_default_values(self):
        """Test default logging configuration values."""
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.format == "json"
        assert config.file.enabled is False

    def test_level_validation(self):
        """Test log level validation."""
        config = LoggingConfig(level="debug")  # Should be normalized to uppercase
        assert config.level == "DEBUG"

        with pytest.raises(ValidationError):
            LoggingConfig(level="INVALID")

    def test_format_validation(self):
        """Test log format validation."""
        config = LoggingConfig(format="TEXT")
        assert config.format == "text"

        with pytest.raises(ValidationError):
            LoggingConfig(format="xml")


class TestLibraryConfig:
    """Tests for LibraryConfig model."""

    def test_default_extensions(self):
        assert LibraryConfig().extensions == ["mp4", "mov", "m4v"]

    def test_extensions_normalized(self):
        """Test extensions are lowercased, undotted and de-duplicated."""
        config = LibraryConfig(extensions=[".MP4", "mov", "mp4", " .MKV "])
        assert config.extensions == ["mp4", "mov", "mkv"]

    def test_empty_extensions_rejected(self):
        with pytest.raises(ValidationError):
            LibraryConfig(extensions=[])

    def test_probe_limit_bounds(self):
        with pytest.raises(ValidationError):
            LibraryConfig(max_concurrent_probes=0)


class TestThumbnailConfig:
    """Tests for ThumbnailConfig model."""

    def test_default_values(self):
        config = ThumbnailConfig()
        assert config.capacity == 100
        assert config.fallback_timestamps == [1.0, 2.0, 0.5, 3.0]
        assert (config.width, config.height) == (120, 90)

    def test_negative_timestamp_rejected(self):
        with pytest.raises(ValidationError):
            ThumbnailConfig(fallback_timestamps=[1.0, -2.0])

    def test_empty_timestamps_rejected(self):
        with pytest.raises(ValidationError):
            ThumbnailConfig(fallback_timestamps=[])

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValidationError):
            ThumbnailConfig(capacity=0)


class TestPlaybackConfig:
    """Tests for PlaybackConfig model."""

    def test_watch_threshold_bounds(self):
        assert PlaybackConfig(watch_threshold=1.0).watch_threshold == 1.0

        with pytest.raises(ValidationError):
            PlaybackConfig(watch_threshold=0.0)

        with pytest.raises(ValidationError):
            PlaybackConfig(watch_threshold=1.5)


class TestConfig:
    """Tests for main Config model."""

    def test_from_yaml_string(self):
        """Test nested sections load from YAML."""
        config = Config.from_yaml_string(
            """
library:
  extensions: [mp4, mkv]
  recursive: false
thumbnail:
  capacity: 25
playback:
  watch_threshold: 0.75
"""
        )
        assert config.library.extensions == ["mp4", "mkv"]
        assert config.library.recursive is False
        assert config.thumbnail.capacity == 25
        assert config.playback.watch_threshold == 0.75
        assert config.ffprobe.ffprobe_path == "ffprobe"

    def test_empty_yaml_uses_defaults(self):
        config = Config.from_yaml_string("")
        assert config.thumbnail.capacity == 100

    def test_yaml_round_trip(self, tmp_path: Path):
        """Test to_yaml writes a file from_yaml reads back."""
        path = tmp_path / "config.yaml"
        config = Config(
            config_dir=tmp_path / "cfg",
            thumbnail=ThumbnailConfig(capacity=7),
        )

        config.to_yaml(path)
        loaded = Config.from_yaml(path)

        assert loaded.thumbnail.capacity == 7
        assert loaded.config_dir == tmp_path / "cfg"
        assert not path.with_suffix(".tmp").exists()

    def test_from_yaml_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            Config.from_yaml(tmp_path / "missing.yaml")

    def test_resolve_paths_from_environment(self, tmp_path: Path, monkeypatch):
        """Test env vars take effect when paths are unset."""
        monkeypatch.setenv("VIDSHELF_CONFIG_DIR", str(tmp_path / "envcfg"))
        monkeypatch.setenv("VIDSHELF_LIBRARY_DIR", str(tmp_path / "envlib"))

        config = Config().resolve_paths(create_dirs=True)

        assert config.config_dir == tmp_path / "envcfg"
        assert config.library_dir == tmp_path / "envlib"
        assert config.config_dir.is_dir()
        assert config.library_dir.is_dir()

    def test_default_config_path_follows_environment(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("VIDSHELF_CONFIG_DIR", str(tmp_path / "envcfg"))

        assert default_config_path() == tmp_path / "envcfg" / "config.yaml"

    def test_state_paths(self, test_config: Config):
        assert test_config.get_catalog_path() == test_config.config_dir / "catalog.json"
        assert test_config.get_playlists_path() == test_config.config_dir / "playlists.json"
        assert test_config.get_settings_path() == test_config.config_dir / "settings.json"
        assert test_config.get_log_file_path().name == "vidshelf.log"

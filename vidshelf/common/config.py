"""Configuration models using Pydantic for validation."""

import os
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional

import structlog
import yaml
from pydantic import BaseModel, Field, field_validator
from ruamel.yaml import YAML

logger = structlog.get_logger(__name__)

LOG_FILENAME = "vidshelf.log"


class FileLoggingConfig(BaseModel):
    """Configuration for file-based logging.

    File logging uses daily rotation with 7-day retention.
    Log files are stored as vidshelf.log in config_dir, rotated daily
    with format vidshelf.log.YYYY-MM-DD.
    """

    enabled: bool = Field(
        default=False,
        description="Enable file logging (logs to vidshelf.log in config_dir)",
    )


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    format: str = Field(
        default="json",
        description="Log format: json or text",
    )
    file: FileLoggingConfig = Field(
        default_factory=FileLoggingConfig,
        description="File logging configuration",
    )
    third_party: Dict[str, str] = Field(
        default_factory=dict,
        description="Log levels for third-party libraries (advanced)",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "text"]
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Invalid format: {v}. Must be one of {valid_formats}")
        return v_lower


class LibraryConfig(BaseModel):
    """Configuration for library scanning."""

    extensions: List[str] = Field(
        default_factory=lambda: ["mp4", "mov", "m4v"],
        description="File extensions recognised as videos (case-insensitive)",
    )
    recursive: bool = Field(
        default=True,
        description="Descend into sub-directories of the library root",
    )
    skip_hidden: bool = Field(
        default=True,
        description="Ignore dot-files and dot-directories while scanning",
    )
    max_concurrent_probes: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Maximum number of files probed at the same time",
    )

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        """Lowercase extensions and strip leading dots."""
        normalized = []
        for ext in v:
            ext = ext.strip().lstrip(".").lower()
            if ext and ext not in normalized:
                normalized.append(ext)
        if not normalized:
            raise ValueError("At least one video extension is required")
        return normalized


class FFProbeConfig(BaseModel):
    """Configuration for ffprobe client."""

    ffprobe_path: str = Field(
        default="ffprobe",
        description="Path to ffprobe binary",
    )
    timeout: int = Field(
        default=30,
        ge=5,
        le=300,
        description="Command execution timeout in seconds",
    )


class ThumbnailConfig(BaseModel):
    """Configuration for thumbnail generation via ffmpeg.

    Thumbnails are held in memory only; the cache is rebuilt on demand
    after a restart.
    """

    ffmpeg_path: str = Field(
        default="ffmpeg",
        description="Path to ffmpeg binary",
    )
    width: int = Field(default=120, ge=16, le=1920, description="Target width in pixels")
    height: int = Field(default=90, ge=16, le=1080, description="Target height in pixels")
    capacity: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Maximum number of thumbnails kept in memory",
    )
    fallback_timestamps: List[float] = Field(
        default_factory=lambda: [1.0, 2.0, 0.5, 3.0],
        description="Timestamps (seconds) tried in order when the primary render fails",
    )
    quality: int = Field(
        default=5,
        ge=2,
        le=31,
        description="JPEG quality passed to ffmpeg (2 = best, 31 = worst)",
    )
    timeout: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Render timeout in seconds",
    )
    max_concurrent: int = Field(
        default=2,
        ge=1,
        le=32,
        description="Maximum number of ffmpeg renders running at once",
    )

    @field_validator("fallback_timestamps")
    @classmethod
    def validate_timestamps(cls, v: List[float]) -> List[float]:
        """Require at least one non-negative fallback timestamp."""
        if not v:
            raise ValueError("At least one fallback timestamp is required")
        for ts in v:
            if ts < 0:
                raise ValueError(f"Invalid fallback timestamp: {ts}")
        return v


class PlaybackConfig(BaseModel):
    """Configuration for the playback queue."""

    watch_threshold: float = Field(
        default=0.9,
        gt=0.0,
        le=1.0,
        description="Fraction of the duration after which a play counts as watched "
        "(1.0 counts only plays that reach the end)",
    )
    restart_threshold: float = Field(
        default=5.0,
        ge=0.0,
        description="Seconds into an item after which previous() restarts it",
    )


def _get_default_config_dir() -> Path:
    """
    Get default config directory based on environment.

    Priority:
    1. VIDSHELF_CONFIG_DIR environment variable
    2. $HOME/Vidshelf/config otherwise

    Returns:
        Path to config directory
    """
    env_config_dir = os.environ.get("VIDSHELF_CONFIG_DIR")
    if env_config_dir:
        return Path(env_config_dir)

    return Path.home() / "Vidshelf" / "config"


def default_config_path() -> Path:
    """Where `config.yaml` is looked for when no path is given."""
    return _get_default_config_dir() / "config.yaml"


def _get_default_library_dir() -> Path:
    """
    Get default library directory based on environment.

    Priority:
    1. VIDSHELF_LIBRARY_DIR environment variable
    2. $HOME/Vidshelf/videos otherwise

    Returns:
        Path to library directory
    """
    env_library_dir = os.environ.get("VIDSHELF_LIBRARY_DIR")
    if env_library_dir:
        return Path(env_library_dir)

    return Path.home() / "Vidshelf" / "videos"


class Config(BaseModel):
    """Main configuration class for Vidshelf.

    Path Resolution:
    - config_dir: Where configuration, the catalog, playlists and settings are stored
    - library_dir: The directory scanned for video files

    Environment Variables:
    - VIDSHELF_CONFIG_DIR: Override config_dir
    - VIDSHELF_LIBRARY_DIR: Override library_dir
    """

    config_dir: Optional[Path] = Field(
        default=None,
        description="Configuration directory (catalog, playlists, settings). Resolved from VIDSHELF_CONFIG_DIR or defaults.",
    )
    library_dir: Optional[Path] = Field(
        default=None,
        description="Video library directory. Resolved from VIDSHELF_LIBRARY_DIR or defaults.",
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )
    library: LibraryConfig = Field(
        default_factory=LibraryConfig,
        description="Library scan configuration",
    )
    ffprobe: FFProbeConfig = Field(
        default_factory=FFProbeConfig,
        description="ffprobe client configuration",
    )
    thumbnail: ThumbnailConfig = Field(
        default_factory=ThumbnailConfig,
        description="Thumbnail generation configuration",
    )
    playback: PlaybackConfig = Field(
        default_factory=PlaybackConfig,
        description="Playback queue configuration",
    )

    # Persisted state (not user-configurable)
    CATALOG_FILE: ClassVar[str] = "catalog.json"
    PLAYLISTS_FILE: ClassVar[str] = "playlists.json"
    SETTINGS_FILE: ClassVar[str] = "settings.json"

    def resolve_paths(self, create_dirs: bool = True) -> "Config":
        """
        Resolve config_dir and library_dir from environment or defaults.

        Args:
            create_dirs: If True, create directories if they don't exist

        Returns:
            Self with resolved paths (for chaining)

        Example:
            >>> config = Config.from_yaml(Path("config.yaml")).resolve_paths()
        """
        if self.config_dir is None:
            object.__setattr__(self, "config_dir", _get_default_config_dir())

        if self.library_dir is None:
            object.__setattr__(self, "library_dir", _get_default_library_dir())

        if create_dirs:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            self.library_dir.mkdir(parents=True, exist_ok=True)

        logger.debug(
            "paths_resolved",
            config_dir=str(self.config_dir),
            library_dir=str(self.library_dir),
        )

        return self

    def _state_path(self, name: str) -> Path:
        config_dir = self.config_dir or _get_default_config_dir()
        return config_dir / name

    def get_catalog_path(self) -> Path:
        """Absolute path of the persisted video catalog."""
        return self._state_path(self.CATALOG_FILE)

    def get_playlists_path(self) -> Path:
        """Absolute path of the persisted playlists."""
        return self._state_path(self.PLAYLISTS_FILE)

    def get_settings_path(self) -> Path:
        """Absolute path of the persisted key/value settings."""
        return self._state_path(self.SETTINGS_FILE)

    def get_library_dir(self) -> Path:
        """Library root, falling back to the default when unresolved."""
        return self.library_dir or _get_default_library_dir()

    def get_log_file_path(self) -> Path:
        """
        Get absolute log file path, resolved against config_dir.

        Returns:
            Absolute path to log file (vidshelf.log in config_dir)
        """
        return self._state_path(LOG_FILENAME)

    @staticmethod
    def _convert_paths_to_strings(data: Any) -> Any:
        """
        Recursively convert Path objects to strings for YAML serialization.

        ruamel.yaml cannot serialize Path objects directly, so we need to
        convert them to strings before dumping.
        """
        if isinstance(data, Path):
            return str(data)
        elif isinstance(data, dict):
            return {key: Config._convert_paths_to_strings(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [Config._convert_paths_to_strings(item) for item in data]
        else:
            return data

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """
        Load configuration from YAML file using ruamel.yaml.

        Args:
            path: Path to YAML configuration file

        Returns:
            Config object with validated configuration

        Raises:
            FileNotFoundError: If config file doesn't exist
            pydantic.ValidationError: If configuration is invalid

        Example:
            >>> config = Config.from_yaml(Path("config.yaml"))
        """
        yaml_loader = YAML()
        yaml_loader.preserve_quotes = True

        with open(path, "r", encoding="utf-8") as f:
            data = yaml_loader.load(f)
        return cls.model_validate(data or {})

    @classmethod
    def from_yaml_string(cls, yaml_string: str) -> "Config":
        """
        Load configuration from YAML string.

        Example:
            >>> config = Config.from_yaml_string("thumbnail:\\n  capacity: 50")
        """
        data = yaml.safe_load(yaml_string)
        return cls.model_validate(data or {})

    def to_yaml(self, path: Path, exclude_defaults: bool = False) -> None:
        """
        Save configuration to YAML file with an atomic write.

        Args:
            path: Path to YAML configuration file
            exclude_defaults: Exclude fields with default values

        Raises:
            OSError: If file cannot be written (disk full, permission denied, etc.)
        """
        data = self.model_dump(
            mode="python",
            exclude_none=True,
            exclude_defaults=exclude_defaults,
        )
        data = self._convert_paths_to_strings(data)

        yaml_dumper = YAML()
        yaml_dumper.default_flow_style = False
        yaml_dumper.width = 4096  # Prevent line wrapping

        # Atomic write pattern: temp file + fsync + rename
        temp_path = path.with_suffix(".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)

            with open(temp_path, "w", encoding="utf-8") as f:
                yaml_dumper.dump(data, f)
                f.flush()
                os.fsync(f.fileno())

            temp_path.replace(path)

            logger.info("config_saved", path=str(path))

        except OSError as e:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

            logger.error("config_save_failed", path=str(path), error=str(e))
            raise

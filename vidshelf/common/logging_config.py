"""structlog setup for the library core and the CLI."""

import logging
import logging.handlers
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from .config import LOG_FILENAME, LoggingConfig

# Pillow's plugin loader is chatty at DEBUG
QUIET_LIBRARIES: Dict[str, str] = {
    "PIL": "INFO",
    "asyncio": "WARNING",
}


def _renderer(fmt: str) -> Any:
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def _handlers(config: LoggingConfig, config_dir: Optional[Path], level: int) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if config.file and config.file.enabled and config_dir is not None:
        config_dir.mkdir(parents=True, exist_ok=True)
        # Daily rotation, a week of history
        rotating = logging.handlers.TimedRotatingFileHandler(
            filename=str(config_dir / LOG_FILENAME),
            when="midnight",
            backupCount=7,
            encoding="utf-8",
        )
        rotating.suffix = "%Y-%m-%d"
        handlers.append(rotating)

    for handler in handlers:
        handler.setLevel(level)
    return handlers


def setup_logging(config: LoggingConfig, config_dir: Optional[Path] = None) -> None:
    """
    Route structlog through stdlib logging.

    Output goes to stderr and, when ``config.file.enabled`` is set, to
    ``<config_dir>/vidshelf.log`` as well.

    Args:
        config: Logging section of the loaded config
        config_dir: Where the log file lives
    """
    level = getattr(logging, config.level.upper())

    root = logging.getLogger()
    root.handlers.clear()
    for handler in _handlers(config, config_dir, level):
        root.addHandler(handler)
    root.setLevel(level)

    for library, library_level in {**QUIET_LIBRARIES, **config.third_party}.items():
        logging.getLogger(library).setLevel(getattr(logging, library_level.upper()))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(config.format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_context(**kwargs: Any) -> None:
    """Attach key/values to every later log line, e.g. ``bind_context(command="scan")``."""
    structlog.contextvars.bind_contextvars(**kwargs)

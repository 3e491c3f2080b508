"""Atomic JSON document persistence for the catalog, playlists and settings.

All file I/O uses aiofiles for non-blocking operations. Writes go to a
temporary file that is fsynced and then renamed over the target, so a
crash never leaves a half-written document behind.
"""

import json
import os
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import aiofiles
import aiofiles.os
import structlog

from .exceptions import FilesystemError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class JsonDocumentStore:
    """A single JSON document on disk.

    Loading never fails the caller: a missing document yields ``None`` and a
    corrupt one is moved aside to ``<name>.corrupt`` before yielding ``None``.
    Saving raises :class:`FilesystemError` so callers can report the failure
    while carrying on with their in-memory state.

    Example:
        >>> store = JsonDocumentStore(Path("catalog.json"), name="catalog")
        >>> videos = await store.load(parse_catalog)
        >>> await store.save([v.model_dump(mode="json") for v in videos])
    """

    def __init__(self, path: Path, name: Optional[str] = None):
        self.path = Path(path)
        self.name = name or self.path.stem

    @property
    def corrupt_path(self) -> Path:
        return self.path.with_name(self.path.name + ".corrupt")

    async def load(self, parse: Callable[[Any], T]) -> Optional[T]:
        """
        Read and parse the document.

        Args:
            parse: Converts the decoded JSON value into the caller's type.
                Any ValueError it raises (including pydantic validation
                errors) marks the document as corrupt.

        Returns:
            Parsed document, or None when missing, unreadable, or corrupt
        """
        if not await aiofiles.os.path.exists(self.path):
            logger.debug("store_missing", store=self.name, path=str(self.path))
            return None

        try:
            async with aiofiles.open(self.path, "rb") as f:
                raw = await f.read()
        except OSError as e:
            logger.warning(
                "store_read_failed",
                store=self.name,
                path=str(self.path),
                error=str(e),
            )
            return None

        try:
            return parse(json.loads(raw.decode("utf-8")))
        except ValueError as e:
            # UnicodeDecodeError and pydantic validation errors included
            logger.warning(
                "store_corrupt",
                store=self.name,
                path=str(self.path),
                error=str(e)[:500],
            )
            await self._quarantine()
            return None

    async def _quarantine(self) -> None:
        """Move a corrupt document aside so the next save starts clean."""
        try:
            await aiofiles.os.replace(self.path, self.corrupt_path)
            logger.info(
                "store_quarantined",
                store=self.name,
                corrupt_path=str(self.corrupt_path),
            )
        except OSError as e:
            logger.warning("store_quarantine_failed", store=self.name, error=str(e))

    async def save(self, data: Any) -> None:
        """
        Serialize ``data`` to JSON and write it atomically.

        Raises:
            FilesystemError: If the document could not be written
        """
        payload = json.dumps(data, indent=2, ensure_ascii=False)

        # Atomic write pattern: temp file + fsync + rename
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            await aiofiles.os.makedirs(self.path.parent, exist_ok=True)

            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
                await f.flush()
                os.fsync(f.fileno())

            await aiofiles.os.replace(temp_path, self.path)

        except OSError as e:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

            logger.error("store_save_failed", store=self.name, path=str(self.path), error=str(e))
            raise FilesystemError(
                f"Could not write {self.name} to {self.path}: {e}",
                path=self.path,
                operation="write",
            ) from e

        logger.debug("store_saved", store=self.name, path=str(self.path), bytes=len(payload))

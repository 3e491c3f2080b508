"""Exceptions for core library logic."""

from pathlib import Path
from typing import List, Optional, Tuple


class VidshelfError(Exception):
    """Base exception for all Vidshelf errors."""

    pass


class ProbeFailure(VidshelfError):
    """Raised when a single file's metadata could not be read.

    A scan skips the file and continues with the rest of the batch.
    """

    def __init__(self, message: str, location: Optional[Path] = None):
        super().__init__(message)
        self.location = location


class FilesystemError(VidshelfError):
    """Raised when deleting a file or writing a store fails.

    "Already absent" is never reported through this error. Any in-memory
    state that was already applied is not rolled back.
    """

    def __init__(
        self,
        message: str,
        path: Optional[Path] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.path = path
        self.operation = operation


class GenerationFailure(VidshelfError):
    """Raised when a thumbnail could not be produced by any render attempt.

    The thumbnail cache logs and swallows this; callers receive a placeholder.
    """

    def __init__(self, message: str, location: Optional[str] = None, attempts: int = 0):
        super().__init__(message)
        self.location = location
        self.attempts = attempts


class PlaybackOpenFailure(VidshelfError):
    """Aggregated report of queue items the playback engine could not open."""

    def __init__(self, message: str, failures: Optional[List[Tuple[str, str]]] = None):
        super().__init__(message)
        self.failures = failures or []

    @property
    def video_ids(self) -> List[str]:
        """Identities of the items that failed to open, in play order."""
        return [video_id for video_id, _ in self.failures]


# ffprobe exceptions
class FFProbeError(VidshelfError):
    """Base exception for ffprobe errors."""

    pass


class FFProbeNotFoundError(FFProbeError):
    """Raised when ffprobe binary is not found."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class FFProbeExecutionError(FFProbeError):
    """Raised when ffprobe command execution fails."""

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class FFProbeParseError(FFProbeError):
    """Raised when parsing ffprobe output fails."""

    pass


# ffmpeg exceptions
class FFmpegError(VidshelfError):
    """Base exception for ffmpeg errors."""

    pass


class FFmpegNotFoundError(FFmpegError):
    """Raised when ffmpeg binary is not found."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class FFmpegExecutionError(FFmpegError):
    """Raised when ffmpeg command execution fails or yields no decodable frame."""

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
    ):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr

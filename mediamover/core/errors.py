"""Exception hierarchy for mediamover."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import MigrationSession


class MediaMoverError(Exception):
    """Base exception for mediamover errors."""


class ConfigurationError(MediaMoverError):
    """Raised when source/destination or other settings are invalid.

    Fatal: raised before any file is touched.
    """


class HashComputationError(MediaMoverError):
    """Raised when a file's content hash cannot be computed."""


class MoveError(MediaMoverError):
    """Raised when a rename or move fails. The file stays where it was."""


class IndexCorruptionError(MediaMoverError):
    """Raised when the hash index store cannot be opened or fails its integrity check."""


class MigrationInterrupted(MediaMoverError):
    """Raised when a run stops on a cancellation request.

    The checkpoint has already been flushed when this is raised.
    """

    def __init__(self, session: "MigrationSession"):
        super().__init__("Migration interrupted")
        self.session = session

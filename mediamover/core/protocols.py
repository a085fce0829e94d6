"""Protocol definitions (interfaces) for dependency injection."""
from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Iterable, Mapping, Optional, Protocol

from .models import FileResult, HashIndexEntry, MigrationSession


class DateSource(Protocol):
    """Black-box "date from metadata" used when the filename has no date."""

    @abstractmethod
    def extract_date(self, path: Path) -> Optional[datetime]:
        """Return the capture date embedded in the file, if any."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release external resources."""
        ...


class HashRepository(Protocol):
    """Interface for the persisted hash index."""

    @abstractmethod
    def get_by_path(self, file_path: str) -> Optional[HashIndexEntry]:
        """Get the entry recorded for a path."""
        ...

    @abstractmethod
    def get_all_by_hash(self, file_hash: str, scope: Optional[str] = None) -> list[HashIndexEntry]:
        """Get every entry with a hash, optionally restricted to a path prefix."""
        ...

    @abstractmethod
    def upsert(self, entry: HashIndexEntry) -> None:
        """Insert or update the entry for ``entry.file_path``."""
        ...

    @abstractmethod
    def update_path(self, old_path: str, new_path: str) -> bool:
        """Re-key an entry after a rename."""
        ...

    @abstractmethod
    def delete_by_path(self, file_path: str) -> bool:
        """Remove the entry for a path."""
        ...

    @abstractmethod
    def iter_paths(self) -> Iterable[str]:
        """Iterate all indexed paths."""
        ...

    @abstractmethod
    def scope_indexed_at(self, scope: str) -> Optional[datetime]:
        """When a directory tree was last fully scanned into the index."""
        ...

    @abstractmethod
    def mark_scope_indexed(self, scope: str) -> None:
        """Record that a directory tree has been fully scanned."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Close the underlying connection."""
        ...


class CheckpointStore(Protocol):
    """Interface for durable per-run progress."""

    @abstractmethod
    def load(self) -> Optional[tuple[MigrationSession, dict[str, str]]]:
        """Load the saved session and hash-cache snapshot, if any."""
        ...

    @abstractmethod
    def save(
        self,
        session: MigrationSession,
        hash_cache: Mapping[str, str],
        source: Optional[Path] = None,
        destination: Optional[Path] = None,
    ) -> None:
        """Persist counters, duplicate names and new hash-cache entries."""
        ...

    @abstractmethod
    def mark_processed(self, path: Path) -> None:
        """Record a source path as finalized."""
        ...

    @abstractmethod
    def is_processed(self, path: Path) -> bool:
        """Check whether a source path was finalized."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Delete this run's checkpoint."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Close the underlying connection."""
        ...


class ProgressReporter(Protocol):
    """Interface for progress reporting."""

    @abstractmethod
    def start_phase(self, name: str, total: int) -> None:
        """Start a new processing phase."""
        ...

    @abstractmethod
    def advance_phase(self, amount: int = 1) -> None:
        """Advance the current phase by an amount."""
        ...

    @abstractmethod
    def end_phase(self) -> None:
        """Complete current phase."""
        ...

    @abstractmethod
    def file_result(self, result: FileResult, relative: str) -> None:
        """Report the outcome of one file as it happens."""
        ...

    @abstractmethod
    def info(self, message: str) -> None:
        """Log an info message."""
        ...

    @abstractmethod
    def warning(self, message: str) -> None:
        """Log a warning message."""
        ...

    @abstractmethod
    def error(self, message: str) -> None:
        """Log an error message."""
        ...

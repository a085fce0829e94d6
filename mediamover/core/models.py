"""Domain models."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Union


class MigrationState(Enum):
    """Lifecycle of one orchestrator run."""
    IDLE = "idle"
    ENUMERATING = "enumerating"
    PROCESSING = "processing"
    INTERRUPTED = "interrupted"
    COMPLETED = "completed"


class FileOutcome(Enum):
    """What happened to a single source file."""
    MOVED = "moved"
    SKIPPED = "skipped"
    DUPLICATED = "duplicated"
    ERRORED = "errored"


class ResolutionKind(Enum):
    """Duplicate resolver verdicts."""
    IDENTICAL = "identical"
    NAME_CONFLICT = "name_conflict"
    NOVEL = "novel"


@dataclass(frozen=True, slots=True)
class FileRecord:
    """A filesystem entry at a point in time."""
    path: Path
    size: int
    mtime: int  # st_mtime_ns
    hash: Optional[str] = None

    @classmethod
    def from_path(cls, path: Path) -> "FileRecord":
        stat = path.stat()
        return cls(path=path, size=stat.st_size, mtime=stat.st_mtime_ns)

    @property
    def cache_key(self) -> str:
        return f"{self.path}:{self.size}:{self.mtime}"

    def matches(self, other: "FileRecord") -> bool:
        """Same path, size and mtime, so a recorded hash is still valid."""
        return (
            self.path == other.path
            and self.size == other.size
            and self.mtime == other.mtime
        )


@dataclass(slots=True)
class HashIndexEntry:
    """A row in the persisted hash index."""
    file_path: str
    file_hash: str
    file_size: int
    last_modified: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    id: Optional[int] = None

    def to_record(self) -> FileRecord:
        return FileRecord(
            path=Path(self.file_path),
            size=self.file_size,
            mtime=self.last_modified,
            hash=self.file_hash,
        )


@dataclass(frozen=True, slots=True)
class YearMonth:
    """A classified (year, month) pair."""
    year: int
    month: int

    @property
    def relative_dir(self) -> Path:
        return Path(f"{self.year:04d}") / f"{self.month:02d}"

    def __str__(self) -> str:
        return f"{self.year:04d}/{self.month:02d}"


class _Unclassified:
    """Sentinel for filenames with no recognizable date."""

    _instance: Optional["_Unclassified"] = None

    def __new__(cls) -> "_Unclassified":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNCLASSIFIED"


UNCLASSIFIED = _Unclassified()

ClassificationResult = Union[YearMonth, _Unclassified]


@dataclass(frozen=True, slots=True)
class Resolution:
    """Verdict of the duplicate resolver for one source file."""
    kind: ResolutionKind
    at: Optional[Path] = None

    @classmethod
    def identical(cls, at: Path) -> "Resolution":
        return cls(ResolutionKind.IDENTICAL, at)

    @property
    def is_duplicate(self) -> bool:
        return self.kind == ResolutionKind.IDENTICAL


NAME_CONFLICT = Resolution(ResolutionKind.NAME_CONFLICT)
NOVEL = Resolution(ResolutionKind.NOVEL)


@dataclass(frozen=True, slots=True)
class FileResult:
    """Result of processing a single source file."""
    source: Path
    outcome: FileOutcome
    target: Optional[Path] = None
    date_source: Optional[str] = None
    message: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.outcome != FileOutcome.ERRORED


@dataclass(slots=True)
class MigrationSession:
    """Mutable per-run state.

    Threaded explicitly through the orchestrator and persisted by the
    checkpoint store after every file.
    """
    moved: int = 0
    skipped: int = 0
    errors: int = 0
    duplicates: int = 0
    duplicate_names: list[str] = field(default_factory=list)
    processed: set[str] = field(default_factory=set)
    state: MigrationState = MigrationState.IDLE
    resumed: bool = False

    @property
    def total(self) -> int:
        return self.moved + self.skipped + self.errors + self.duplicates

    def is_processed(self, path: Path) -> bool:
        return str(path) in self.processed

    def record(self, result: FileResult) -> None:
        """Apply a finalized file result to the counters."""
        self.processed.add(str(result.source))
        match result.outcome:
            case FileOutcome.MOVED:
                self.moved += 1
            case FileOutcome.SKIPPED:
                self.skipped += 1
            case FileOutcome.DUPLICATED:
                self.duplicates += 1
                if result.target is not None:
                    self.duplicate_names.append(result.target.name)
            case FileOutcome.ERRORED:
                self.errors += 1

    def summary(self) -> dict[str, int]:
        return {
            "moved": self.moved,
            "skipped": self.skipped,
            "duplicates": self.duplicates,
            "errors": self.errors,
            "total": self.total,
        }

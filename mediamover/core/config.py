"""Configuration dataclasses with validation."""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError


MEDIA_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff",
    ".mp4", ".avi", ".mov", ".mkv", ".wmv",
    ".mp3", ".wav", ".flac",
})

# Stem ends with _DUP, _DUP1, _DUP2, ...
DUP_STEM_PATTERN = re.compile(r"_DUP\d*$")

INDEX_DB_NAME = ".file_hashes.db"
CHECKPOINT_DB_NAME = ".migration_checkpoint.db"

MIN_YEAR = 1990


class DatePreference(Enum):
    """Which reading wins for ambiguous NN-NN-YYYY filenames."""
    DAY_FIRST = "day-first"      # 03-04-2024 -> April
    MONTH_FIRST = "month-first"  # 03-04-2024 -> March


class IndexMode(Enum):
    """How the index command treats an existing database."""
    BUILD = "build"      # Hash everything, keep existing rows
    UPDATE = "update"    # Only new or modified files
    REBUILD = "rebuild"  # Drop the database and start over


def is_duplicate_name(path: Path) -> bool:
    """True for files already renamed by a previous duplicate resolution."""
    return bool(DUP_STEM_PATTERN.search(path.stem))


def is_media_file(path: Path) -> bool:
    return path.suffix.lower() in MEDIA_EXTENSIONS


def is_candidate(path: Path) -> bool:
    """Whether a path qualifies for migration or destination indexing."""
    return is_media_file(path) and not is_duplicate_name(path)


@dataclass(slots=True)
class MigrationConfig:
    """Configuration for one migration run.

    All fields are validated on construction. Paths are normalized to
    absolute form so checkpoint tokens and index keys are stable.
    """
    # Required
    source: Path
    destination: Path

    # Execution mode
    dry_run: bool = False

    # Classification
    date_preference: DatePreference = DatePreference.DAY_FIRST
    min_year: int = MIN_YEAR
    use_metadata: bool = True

    # Persistence
    db_path: Optional[Path] = None
    checkpoint_path: Optional[Path] = None

    # Performance
    workers: int = 1
    batch_size: int = 32

    def __post_init__(self) -> None:
        """Validate configuration."""
        self.source = Path(self.source).expanduser().resolve()
        self.destination = Path(self.destination).expanduser().resolve()

        if not self.source.exists():
            raise ConfigurationError(f"Source directory not found: {self.source}")
        if not self.source.is_dir():
            raise ConfigurationError(f"Source is not a directory: {self.source}")
        if self.destination.exists() and not self.destination.is_dir():
            raise ConfigurationError(f"Destination is not a directory: {self.destination}")

        if self.workers < 1:
            raise ConfigurationError("Workers must be at least 1")
        if self.batch_size < 1:
            raise ConfigurationError("Batch size must be at least 1")
        if self.min_year < 1:
            raise ConfigurationError("Minimum year must be positive")

        if self.db_path is None:
            self.db_path = self.destination / INDEX_DB_NAME
        else:
            self.db_path = Path(self.db_path).expanduser().resolve()

        if self.checkpoint_path is None:
            self.checkpoint_path = self.destination / CHECKPOINT_DB_NAME
        else:
            self.checkpoint_path = Path(self.checkpoint_path).expanduser().resolve()

        # Ensure destination exists
        if not self.dry_run:
            self.destination.mkdir(parents=True, exist_ok=True)

    @property
    def resolved_db_path(self) -> Path:
        return self.db_path or (self.destination / INDEX_DB_NAME)

    @property
    def resolved_checkpoint_path(self) -> Path:
        return self.checkpoint_path or (self.destination / CHECKPOINT_DB_NAME)

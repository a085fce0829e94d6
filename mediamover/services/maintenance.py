"""Hash index administration: info, cleanup, vacuum, stats and verify."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..core.errors import ConfigurationError
from ..core.models import HashIndexEntry
from ..persistence.database import REQUIRED_INDEXES, SQLiteHashRepository
from .hash_index import reconcile_repository

logger = logging.getLogger(__name__)


@dataclass
class DatabaseInfo:
    db_path: Path
    size_bytes: int
    entries: int
    schema: Optional[str]
    indexes: list[str]
    recent: list[HashIndexEntry] = field(default_factory=list)
    distribution: list[tuple[str, int]] = field(default_factory=list)
    indexed_at: Optional[datetime] = None


@dataclass
class DatabaseStats:
    entries: int
    unique_hashes: int
    hash_types: dict[str, int]
    size_buckets: list[tuple[str, int]]
    top_duplicates: list[tuple[str, int, str]]
    oldest: Optional[datetime]
    newest: Optional[datetime]

    @property
    def duplicate_files(self) -> int:
        """Entries beyond the first for each hash."""
        return self.entries - self.unique_hashes


@dataclass
class CompactionResult:
    removed: int
    size_before: int
    size_after: int

    @property
    def reclaimed(self) -> int:
        return max(0, self.size_before - self.size_after)


@dataclass
class VerifyReport:
    integrity: list[str]
    table_present: bool
    missing_indexes: list[str]
    sampled: int
    missing_files: list[str]

    @property
    def integrity_ok(self) -> bool:
        return self.integrity == ["ok"]

    @property
    def ok(self) -> bool:
        return self.integrity_ok and self.table_present and not self.missing_indexes


class IndexMaintenance:
    """Operations on an existing hash index.

    Unlike migrations, these never create a database: a missing file is a
    configuration error.
    """

    def __init__(self, db_path: Path, destination: Path):
        """Open the index.

        Raises:
            ConfigurationError: If ``db_path`` does not exist.
            IndexCorruptionError: If it cannot be opened.
        """
        if not db_path.is_file():
            raise ConfigurationError(f"Hash index not found: {db_path}")
        self._db_path = db_path
        self._destination = destination
        self._repo = SQLiteHashRepository(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _size(self) -> int:
        return sum(
            p.stat().st_size
            for p in (self._db_path, Path(f"{self._db_path}-wal"))
            if p.exists()
        )

    def info(self, recent: int = 5) -> DatabaseInfo:
        return DatabaseInfo(
            db_path=self._db_path,
            size_bytes=self._size(),
            entries=self._repo.count_all(),
            schema=self._repo.table_schema(),
            indexes=self._repo.index_names(),
            recent=self._repo.recent_entries(recent),
            distribution=self._repo.directory_distribution(str(self._destination)),
            indexed_at=self._repo.scope_indexed_at(str(self._destination)),
        )

    def cleanup(self) -> CompactionResult:
        """Drop entries for vanished files, then vacuum."""
        before = self._size()
        removed = reconcile_repository(self._repo)
        self._repo.vacuum()
        return CompactionResult(removed=removed, size_before=before, size_after=self._size())

    def vacuum(self) -> CompactionResult:
        """VACUUM, ANALYZE and REINDEX."""
        before = self._size()
        self._repo.vacuum()
        self._repo.optimize()
        return CompactionResult(removed=0, size_before=before, size_after=self._size())

    def stats(self, top: int = 5) -> DatabaseStats:
        oldest, newest = self._repo.created_range()
        return DatabaseStats(
            entries=self._repo.count_all(),
            unique_hashes=self._repo.count_unique_hashes(),
            hash_types=self._repo.hash_type_counts(),
            size_buckets=self._repo.size_distribution(),
            top_duplicates=self._repo.get_duplicate_hashes(limit=top),
            oldest=oldest,
            newest=newest,
        )

    def verify(self, sample: int = 10) -> VerifyReport:
        """Integrity check, schema presence and a random file sample."""
        indexes = set(self._repo.index_names())
        paths = self._repo.sample_paths(sample)
        return VerifyReport(
            integrity=self._repo.integrity_check(),
            table_present=self._repo.table_schema() is not None,
            missing_indexes=[name for name in REQUIRED_INDEXES if name not in indexes],
            sampled=len(paths),
            missing_files=[p for p in paths if not Path(p).is_file()],
        )

    def close(self) -> None:
        self._repo.close()

    def __enter__(self) -> "IndexMaintenance":
        return self

    def __exit__(self, *args) -> None:
        self.close()

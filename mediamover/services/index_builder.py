"""Index builder service - builds the hash index from a destination tree."""
from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..core.config import IndexMode
from ..core.models import FileRecord, HashIndexEntry
from ..core.protocols import ProgressReporter
from ..engines.hash_engine import ContentHashEngine
from ..persistence.database import SQLiteHashRepository
from .hash_index import reconcile_repository
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)


@dataclass
class IndexStats:
    """Statistics from an index build."""
    total_files: int = 0
    hashed: int = 0
    up_to_date: int = 0
    errors: int = 0
    removed: int = 0
    entries: int = 0
    backup_path: Optional[Path] = None

    @property
    def success_rate(self) -> float:
        """Calculate success rate as percentage."""
        if self.total_files == 0:
            return 100.0
        return (self.hashed + self.up_to_date) / self.total_files * 100


class IndexBuilder:
    """Scans a destination tree and records every media file's hash.

    Modes:
    - BUILD: hash every file, keeping unrelated rows.
    - UPDATE: hash only files that are new or whose size/mtime changed.
    - REBUILD: back up and delete the database, then BUILD.

    Every mode ends by removing rows for vanished files and vacuuming.
    """

    def __init__(
        self,
        hash_engine: ContentHashEngine,
        progress: ProgressReporter,
        workers: int = 4,
        batch_size: int = 64,
        scanner: Optional[DirectoryScanner] = None,
    ):
        """Initialize the builder.

        Args:
            hash_engine: Engine for computing file hashes.
            progress: Reporter for progress updates.
            workers: Number of threads for hashing.
            batch_size: Files hashed and written per transaction.
        """
        self._hash_engine = hash_engine
        self._progress = progress
        self._workers = workers
        self._batch_size = max(1, batch_size)
        self._scanner = scanner or DirectoryScanner()

    def run(
        self,
        destination: Path,
        db_path: Path,
        mode: IndexMode = IndexMode.BUILD,
        backup: bool = True,
    ) -> IndexStats:
        """Build or refresh the index for ``destination``.

        Raises:
            IndexCorruptionError: If an existing database cannot be opened
                (BUILD and UPDATE only; REBUILD replaces it).
        """
        stats = IndexStats()

        if mode == IndexMode.REBUILD and db_path.exists():
            if backup:
                stats.backup_path = self._backup_database(db_path)
            self._progress.info("Removing existing database...")
            for suffix in ("", "-wal", "-shm"):
                Path(f"{db_path}{suffix}").unlink(missing_ok=True)

        repo = SQLiteHashRepository(db_path)
        try:
            self._progress.info("Scanning for media files...")
            files = self._scanner.scan_sorted(destination)
            stats.total_files = len(files)
            self._progress.info(f"Found {len(files)} media files")

            self._progress.start_phase("Indexing", len(files))
            try:
                for start in range(0, len(files), self._batch_size):
                    batch = files[start:start + self._batch_size]
                    self._index_batch(repo, batch, mode, stats)
                    self._progress.advance_phase(len(batch))
            finally:
                self._progress.end_phase()

            stats.removed = reconcile_repository(repo)
            repo.mark_scope_indexed(str(destination))
            repo.vacuum()
            stats.entries = repo.count_all()
        finally:
            repo.close()

        return stats

    def _index_batch(
        self,
        repo: SQLiteHashRepository,
        batch: list[Path],
        mode: IndexMode,
        stats: IndexStats,
    ) -> None:
        """Hash one batch on worker threads and write it in one transaction."""
        records: list[FileRecord] = []
        for path in batch:
            try:
                record = FileRecord.from_path(path)
            except OSError as e:
                logger.warning("Cannot stat %s: %s", path, e)
                stats.errors += 1
                continue

            if mode == IndexMode.UPDATE:
                entry = repo.get_by_path(str(path))
                if entry is not None and entry.to_record().matches(record):
                    stats.up_to_date += 1
                    continue
            records.append(record)

        hashes = self._hash_engine.compute_batch(
            [r.path for r in records], workers=self._workers
        )
        entries = []
        for record, file_hash in zip(records, hashes):
            if file_hash is None:
                self._progress.warning(f"Failed to hash {record.path}")
                stats.errors += 1
                continue
            entries.append(HashIndexEntry(
                file_path=str(record.path),
                file_hash=file_hash,
                file_size=record.size,
                last_modified=record.mtime,
            ))
        stats.hashed += repo.upsert_many(entries)

    def _backup_database(self, db_path: Path) -> Path:
        """Create a backup of the existing database.

        Args:
            db_path: Path to the database file.

        Returns:
            Path to the backup file.
        """
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        backup_path = db_path.parent / f"{db_path.stem}_backup_{timestamp}.db"
        self._progress.info(f"Backing up database to: {backup_path}")
        shutil.copy2(db_path, backup_path)
        return backup_path

"""Persistent content-hash index with an in-memory companion cache."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional

from ..core.errors import HashComputationError
from ..core.models import FileRecord, HashIndexEntry
from ..core.protocols import HashRepository
from ..engines.hash_engine import ContentHashEngine
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)


def reconcile_repository(repository: HashRepository) -> int:
    """Delete entries whose file no longer exists.

    Returns:
        Number of entries removed.
    """
    removed = 0
    for file_path in repository.iter_paths():
        if not Path(file_path).is_file():
            repository.delete_by_path(file_path)
            logger.debug("Removed stale entry %s", file_path)
            removed += 1
    if removed:
        logger.info("Removed %d stale index entries", removed)
    return removed


class HashIndex:
    """Answers "what is this file's hash" and "where else is this hash".

    A hash is trusted only while the file's ``(path, size, mtime)`` match
    what was recorded. The in-memory cache is keyed by
    ``"path:size:mtime"`` and travels with checkpoints.

    In dry-run mode moves are only planned, so ``record_move`` remembers
    the planned path and lookups treat it as present.

    Files registered with ``hold`` are waiting to be migrated and never
    count as an existing copy until ``release``d.
    """

    def __init__(
        self,
        repository: HashRepository,
        engine: ContentHashEngine,
        scanner: Optional[DirectoryScanner] = None,
        workers: int = 1,
        dry_run: bool = False,
    ):
        self._repo = repository
        self._engine = engine
        self._scanner = scanner or DirectoryScanner()
        self._workers = workers
        self._dry_run = dry_run
        self._cache: dict[str, str] = {}
        self._scanned: set[str] = set()
        self._planned: dict[str, str] = {}
        self._held: set[str] = set()

    @property
    def engine(self) -> ContentHashEngine:
        return self._engine

    # Hash lookups

    def _stat(self, path: Path) -> FileRecord:
        try:
            return FileRecord.from_path(path)
        except OSError as e:
            raise HashComputationError(f"Cannot stat {path}: {e}") from e

    def _known_hash(self, record: FileRecord) -> Optional[str]:
        """Hash from the cache or a still-valid index entry."""
        cached = self._cache.get(record.cache_key)
        if cached is not None:
            return cached

        entry = self._repo.get_by_path(str(record.path))
        if entry is not None and entry.to_record().matches(record):
            self._cache[record.cache_key] = entry.file_hash
            return entry.file_hash
        return None

    def _store(self, record: FileRecord, file_hash: str) -> None:
        self._repo.upsert(HashIndexEntry(
            file_path=str(record.path),
            file_hash=file_hash,
            file_size=record.size,
            last_modified=record.mtime,
        ))
        self._cache[record.cache_key] = file_hash

    def get_hash(self, path: Path) -> str:
        """Return the content hash of ``path``, computing it only if stale.

        Raises:
            HashComputationError: If the file cannot be stat'ed or read.
        """
        record = self._stat(path)
        known = self._known_hash(record)
        if known is not None:
            return known

        file_hash = self._engine.compute_hash(path)
        self._store(record, file_hash)
        logger.debug("Hashed %s", path)
        return file_hash

    def prefetch(self, paths: Iterable[Path], workers: Optional[int] = None) -> int:
        """Compute missing hashes in parallel.

        Only the digest runs on worker threads; index writes stay on the
        calling thread.

        Returns:
            Number of hashes computed.
        """
        missing: list[FileRecord] = []
        for path in paths:
            try:
                record = FileRecord.from_path(path)
            except OSError:
                continue
            if self._known_hash(record) is None:
                missing.append(record)
        if not missing:
            return 0

        hashes = self._engine.compute_batch(
            [r.path for r in missing], workers=workers or self._workers
        )
        computed = 0
        for record, file_hash in zip(missing, hashes):
            if file_hash is not None:
                self._store(record, file_hash)
                computed += 1
        logger.debug("Prefetched %d of %d hashes", computed, len(missing))
        return computed

    def planned_hash(self, path: Path) -> Optional[str]:
        """Hash of a file a dry run has planned to place at ``path``."""
        return self._planned.get(str(path))

    # Duplicate search

    def find_by_hash(
        self,
        file_hash: str,
        scope: Path,
        exclude: Iterable[Path] = (),
    ) -> Optional[Path]:
        """Find one indexed file under ``scope`` with ``file_hash``.

        On the first miss in a scope this run, the scope is backfilled and
        the query repeated. Files already indexed with an unchanged size
        and mtime are only re-stat'ed by the backfill.
        """
        excluded = {str(p) for p in exclude}
        hit = self._query(file_hash, scope, excluded)
        if hit is not None or str(scope) in self._scanned:
            return hit

        self.backfill(scope)
        return self._query(file_hash, scope, excluded)

    def _query(self, file_hash: str, scope: Path, excluded: set[str]) -> Optional[Path]:
        for entry in self._repo.get_all_by_hash(file_hash, scope=str(scope)):
            if entry.file_path in excluded or entry.file_path in self._held:
                continue
            if entry.file_path in self._planned:
                return Path(entry.file_path)

            candidate = Path(entry.file_path)
            if self._still_holds(candidate, entry):
                return candidate
        return None

    def _still_holds(self, candidate: Path, entry: HashIndexEntry) -> bool:
        """Whether ``candidate`` still has the content ``entry`` recorded.

        Vanished or resized files lose their entry. A file touched since it
        was indexed is re-hashed, which replaces the entry.
        """
        try:
            record = FileRecord.from_path(candidate)
        except OSError:
            logger.debug("Dropping vanished index entry %s", candidate)
            self._repo.delete_by_path(entry.file_path)
            return False
        if record.size != entry.file_size:
            logger.debug("Dropping stale index entry %s", candidate)
            self._repo.delete_by_path(entry.file_path)
            return False
        if entry.to_record().matches(record):
            return True

        try:
            return self.get_hash(candidate) == entry.file_hash
        except HashComputationError as e:
            logger.debug("Dropping unreadable index entry %s: %s", candidate, e)
            self._repo.delete_by_path(entry.file_path)
            return False

    def hold(self, paths: Iterable[Path]) -> None:
        """Exclude files still waiting to be migrated from duplicate hits."""
        self._held.update(str(p) for p in paths)

    def release(self, path: Path) -> None:
        self._held.discard(str(path))

    def backfill(self, scope: Path) -> int:
        """Hash every candidate below ``scope`` and mark it indexed.

        Returns:
            Number of files visited.
        """
        key = str(scope)
        self._scanned.add(key)
        paths = self._scanner.scan_sorted(scope) if scope.is_dir() else []
        logger.info("Indexing %d files under %s", len(paths), scope)

        if self._workers > 1:
            self.prefetch(paths)
        for path in paths:
            try:
                self.get_hash(path)
            except HashComputationError as e:
                logger.warning("Skipping unreadable file during index scan: %s", e)

        self._repo.mark_scope_indexed(key)
        return len(paths)

    # Maintenance

    def record_move(self, old: Path, new: Path) -> None:
        """Re-key the index entry after ``old`` was renamed to ``new``."""
        entry = self._repo.get_by_path(str(old))
        if entry is None:
            return
        self._repo.update_path(str(old), str(new))

        if self._dry_run:
            self._planned[str(new)] = entry.file_hash
            return
        try:
            record = FileRecord.from_path(new)
        except OSError:
            return
        self._cache[record.cache_key] = entry.file_hash

    def reconcile(self) -> int:
        """Delete entries whose file no longer exists."""
        return reconcile_repository(self._repo)

    # Checkpoint companion cache

    def cache_snapshot(self) -> dict[str, str]:
        return dict(self._cache)

    @property
    def cache(self) -> Mapping[str, str]:
        return self._cache

    def restore_cache(self, snapshot: Mapping[str, str]) -> None:
        self._cache.update(snapshot)

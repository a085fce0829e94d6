"""Migration orchestrator - drives every service for one run."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from ..core.cancellation import CancellationToken
from ..core.config import MigrationConfig
from ..core.errors import HashComputationError, MigrationInterrupted, MoveError
from ..core.models import (
    ClassificationResult, FileOutcome, FileResult, MigrationSession, MigrationState,
)
from ..core.protocols import CheckpointStore, DateSource, HashRepository, ProgressReporter
from ..engines.hash_engine import create_hash_engine
from ..engines.metadata import MetadataDateExtractor
from ..persistence.checkpoint import SQLiteCheckpointStore, run_id_for
from ..persistence.database import SQLiteHashRepository
from .classifier import DateClassifier
from .deduplicator import DuplicateResolver
from .file_ops import FileMover
from .hash_index import HashIndex
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)


@dataclass
class ProcessorDependencies:
    """All dependencies needed by the orchestrator.

    This is explicitly passed in - no globals or singletons.
    """
    repository: HashRepository
    hash_index: HashIndex
    resolver: DuplicateResolver
    mover: FileMover
    classifier: DateClassifier
    checkpoint: CheckpointStore
    scanner: DirectoryScanner
    progress: ProgressReporter
    date_source: Optional[DateSource] = None

    def close(self) -> None:
        self.checkpoint.close()
        self.repository.close()
        if self.date_source is not None:
            self.date_source.close()


def create_dependencies(
    config: MigrationConfig,
    progress: ProgressReporter,
    current_year: Optional[int] = None,
) -> ProcessorDependencies:
    """Wire the default stack for a config.

    Dry runs get an in-memory snapshot of the index and an in-memory
    checkpoint, so nothing on disk changes.

    Raises:
        IndexCorruptionError: If the hash index cannot be opened.
    """
    run_id = run_id_for(config.source, config.destination)
    if config.dry_run:
        repository = SQLiteHashRepository.in_memory_snapshot(config.resolved_db_path)
        checkpoint = SQLiteCheckpointStore.in_memory(run_id)
    else:
        repository = SQLiteHashRepository(config.resolved_db_path)
        checkpoint = SQLiteCheckpointStore(config.resolved_checkpoint_path, run_id)

    scanner = DirectoryScanner()
    hash_index = HashIndex(
        repository,
        create_hash_engine(),
        scanner=scanner,
        workers=config.workers,
        dry_run=config.dry_run,
    )
    return ProcessorDependencies(
        repository=repository,
        hash_index=hash_index,
        resolver=DuplicateResolver(hash_index, config.destination),
        mover=FileMover(dry_run=config.dry_run),
        classifier=DateClassifier(
            config.date_preference, min_year=config.min_year, current_year=current_year
        ),
        checkpoint=checkpoint,
        scanner=scanner,
        progress=progress,
        date_source=MetadataDateExtractor() if config.use_metadata else None,
    )


def _batches(items: list[Path], size: int) -> Iterator[list[Path]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class MigrationOrchestrator:
    """Moves every candidate under ``source`` into ``destination/YYYY/MM``.

    One file at a time: classify, hash, resolve, act, then durably record
    the outcome before touching the next file. The cancellation token is
    checked between files.
    """

    def __init__(self, config: MigrationConfig, deps: ProcessorDependencies):
        """Initialize orchestrator with config and dependencies.

        Args:
            config: Migration configuration.
            deps: All required dependencies.
        """
        self._config = config
        self._deps = deps
        self._session = MigrationSession()

    @property
    def session(self) -> MigrationSession:
        return self._session

    def run(self, token: Optional[CancellationToken] = None) -> MigrationSession:
        """Run the migration to completion or cancellation.

        Returns:
            The finished session.

        Raises:
            MigrationInterrupted: If ``token`` was cancelled. The
                checkpoint is flushed first.
        """
        token = token or CancellationToken()
        progress = self._deps.progress

        self._load_checkpoint()
        self._session.state = MigrationState.ENUMERATING
        pending = self._enumerate()
        # A source inside the destination must not match its own unmigrated twins
        self._deps.hash_index.hold(pending)

        self._session.state = MigrationState.PROCESSING
        if not pending:
            progress.info("No files to process")

        progress.start_phase("Migrating", len(pending))
        try:
            for batch in _batches(pending, self._config.batch_size):
                if token.is_cancelled:
                    self._interrupt(token)
                if self._config.workers > 1:
                    self._deps.hash_index.prefetch(batch, self._config.workers)

                for source in batch:
                    if token.is_cancelled:
                        self._interrupt(token)
                    self._commit(self._process_file(source))
                    progress.advance_phase()
        finally:
            progress.end_phase()

        self._session.state = MigrationState.COMPLETED
        self._deps.checkpoint.clear()
        return self._session

    def _load_checkpoint(self) -> None:
        loaded = self._deps.checkpoint.load()
        if loaded is None:
            return
        session, cache = loaded
        self._session = session
        self._deps.hash_index.restore_cache(cache)
        self._deps.progress.info(
            f"Resuming previous run: {len(session.processed)} files already processed"
        )

    def _enumerate(self) -> list[Path]:
        """Sorted candidates not yet finalized by this run."""
        source = self._config.source
        destination = self._config.destination
        nested = destination != source and destination.is_relative_to(source)

        pending = []
        for path in self._deps.scanner.scan_sorted(source):
            if nested and path.is_relative_to(destination):
                continue
            if self._session.is_processed(path):
                continue
            pending.append(path)

        skipped = len(self._session.processed)
        self._deps.progress.info(
            f"Found {len(pending)} files to process"
            + (f" ({skipped} already done)" if skipped else "")
        )
        return pending

    def _classify(self, source: Path) -> tuple[ClassificationResult, str]:
        """Filename first, then embedded metadata, then mtime."""
        classifier = self._deps.classifier
        found = classifier.match(source.name)
        if found is not None:
            return found[0], f"filename:{found[1]}"

        if self._deps.date_source is not None:
            taken = self._deps.date_source.extract_date(source)
            if taken is not None:
                return classifier.classify_datetime(taken), "metadata"

        modified = datetime.fromtimestamp(source.stat().st_mtime)
        return classifier.classify_datetime(modified), "mtime"

    def _process_file(self, source: Path) -> FileResult:
        """Decide and perform the action for one file."""
        try:
            target_month, date_source = self._classify(source)
        except OSError as e:
            return FileResult(source, FileOutcome.ERRORED, message=str(e))

        if not target_month:
            return FileResult(
                source, FileOutcome.SKIPPED,
                date_source=date_source, message="No valid date",
            )

        dest_dir = self._config.destination / target_month.relative_dir
        intended = dest_dir / source.name
        mover = self._deps.mover
        if mover.is_already_in_place(source, intended):
            return FileResult(
                source, FileOutcome.SKIPPED, target=intended,
                date_source=date_source, message="Already in place",
            )

        hash_index = self._deps.hash_index
        try:
            source_hash = hash_index.get_hash(source)
            resolution = self._deps.resolver.resolve(source, source_hash, intended)

            if resolution.is_duplicate:
                renamed = mover.place_as_duplicate(source)
                hash_index.record_move(source, renamed)
                return FileResult(
                    source, FileOutcome.DUPLICATED, target=renamed,
                    date_source=date_source, message=f"Duplicate of {resolution.at}",
                )

            final = mover.place_at_destination(source, dest_dir, source.name)
            hash_index.record_move(source, final)
            return FileResult(
                source, FileOutcome.MOVED, target=final, date_source=date_source,
            )
        except (HashComputationError, MoveError, OSError) as e:
            logger.debug("Failed to process %s: %s", source, e)
            return FileResult(
                source, FileOutcome.ERRORED, date_source=date_source, message=str(e),
            )

    def _save(self) -> None:
        self._deps.checkpoint.save(
            self._session,
            self._deps.hash_index.cache,
            source=self._config.source,
            destination=self._config.destination,
        )

    def _commit(self, result: FileResult) -> None:
        """Record a finalized outcome durably before the next file starts."""
        self._session.record(result)
        if result.is_success:
            self._deps.hash_index.release(result.source)
        self._deps.checkpoint.mark_processed(result.source)
        self._save()

        try:
            relative = str(result.source.relative_to(self._config.source))
        except ValueError:
            relative = str(result.source)
        self._deps.progress.file_result(result, relative)

    def _interrupt(self, token: CancellationToken) -> None:
        self._session.state = MigrationState.INTERRUPTED
        self._save()
        self._deps.progress.warning(
            f"Interrupted ({token.reason}). Processed {self._session.total} files; "
            "run the same command again to resume."
        )
        raise MigrationInterrupted(self._session)

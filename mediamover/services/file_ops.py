"""File operations service.

Every placement is a check-then-rename under a per-directory lock, so two
files never claim the same name and nothing is overwritten. Across
filesystems the file is staged under a hidden name, fsynced and published
with ``os.replace``; the source is removed only after that.
"""
from __future__ import annotations

import errno
import logging
import os
import shutil
import threading
from itertools import count
from pathlib import Path
from typing import Iterator

from ..core.errors import MoveError

logger = logging.getLogger(__name__)

DUP_MARKER = "_DUP"
STAGING_SUFFIX = ".partial"


def duplicate_names(source: Path) -> Iterator[Path]:
    """``stem_DUP.ext``, then ``stem_DUP1.ext``, ``stem_DUP2.ext``, ..."""
    yield source.with_name(f"{source.stem}{DUP_MARKER}{source.suffix}")
    for n in count(1):
        yield source.with_name(f"{source.stem}{DUP_MARKER}{n}{source.suffix}")


def destination_names(dest_dir: Path, dest_name: str) -> Iterator[Path]:
    """``name.ext``, then ``name_1.ext``, ``name_2.ext``, ..."""
    base = Path(dest_name)
    yield dest_dir / dest_name
    for n in count(1):
        yield dest_dir / f"{base.stem}_{n}{base.suffix}"


class FileMover:
    """Moves and renames files without ever overwriting.

    In dry-run mode nothing is touched; chosen names are reserved in
    memory so later files see the suffixes a real run would produce.
    """

    def __init__(self, dry_run: bool = False):
        """Initialize the mover.

        Args:
            dry_run: If True, only plan placements.
        """
        self._dry_run = dry_run
        self._reserved: set[Path] = set()
        self._released: set[Path] = set()
        self._locks: dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def _lock_for(self, directory: Path) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(directory)
            if lock is None:
                lock = self._locks[directory] = threading.Lock()
            return lock

    def _is_taken(self, path: Path) -> bool:
        if path in self._reserved:
            return True
        if path in self._released:
            return False
        return os.path.lexists(path)

    def is_already_in_place(self, source: Path, dest: Path) -> bool:
        """True if ``source`` and ``dest`` name the same file."""
        return source.resolve() == dest.resolve()

    def place_as_duplicate(self, source: Path) -> Path:
        """Rename ``source`` in its own directory with a ``_DUP`` marker.

        Returns:
            The new path.

        Raises:
            MoveError: If the rename fails.
        """
        with self._lock_for(source.parent):
            target = next(p for p in duplicate_names(source) if not self._is_taken(p))
            self._move(source, target)
        return target

    def place_at_destination(self, source: Path, dest_dir: Path, dest_name: str) -> Path:
        """Move ``source`` into ``dest_dir``, suffixing the name if taken.

        Returns:
            The final path.

        Raises:
            MoveError: If the directory cannot be created or the move fails.
        """
        if not self._dry_run:
            try:
                dest_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise MoveError(f"Cannot create {dest_dir}: {e}") from e

        with self._lock_for(dest_dir):
            target = next(
                p for p in destination_names(dest_dir, dest_name) if not self._is_taken(p)
            )
            self._move(source, target)
        return target

    def _move(self, source: Path, target: Path) -> None:
        """Rename under the caller's directory lock."""
        if self._dry_run:
            self._reserved.add(target)
            self._released.add(source)
            self._reserved.discard(source)
            logger.debug("[dry-run] %s -> %s", source, target)
            return

        if os.path.lexists(target):
            raise MoveError(f"Refusing to overwrite {target}")
        try:
            os.rename(source, target)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise MoveError(f"Cannot move {source} to {target}: {e}") from e
            self._move_across_devices(source, target)
        logger.debug("Moved %s -> %s", source, target)

    def _move_across_devices(self, source: Path, target: Path) -> None:
        """Copy, fsync, publish, then unlink the source."""
        staging = target.with_name(f".{target.name}.{os.getpid()}{STAGING_SUFFIX}")
        try:
            shutil.copy2(source, staging)
            with open(staging, "rb") as f:
                os.fsync(f.fileno())
            if os.path.lexists(target):
                raise MoveError(f"Refusing to overwrite {target}")
            os.replace(staging, target)
        except OSError as e:
            raise MoveError(f"Cannot copy {source} to {target}: {e}") from e
        finally:
            staging.unlink(missing_ok=True)

        try:
            source.unlink()
        except OSError as e:
            target.unlink(missing_ok=True)
            raise MoveError(f"Copied {source} but could not remove it: {e}") from e

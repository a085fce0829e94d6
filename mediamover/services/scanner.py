"""Directory scanning service."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

from ..core.config import is_candidate

logger = logging.getLogger(__name__)


class DirectoryScanner:
    """Walks directory trees for migration candidates.

    A candidate is a regular media file whose stem does not carry a
    ``_DUP`` marker. Symlinks are never followed.
    """

    def __init__(self, follow_symlinks: bool = False):
        """Initialize the scanner.

        Args:
            follow_symlinks: Whether to follow symbolic links.
        """
        self._follow_symlinks = follow_symlinks

    def scan_sorted(self, root: Path) -> list[Path]:
        """All candidates below ``root``, sorted by path.

        Sorting makes a resumed run visit files in the same order as the
        run it continues.
        """
        return sorted(self._scan_directory(root))

    def _scan_directory(self, directory: Path) -> Iterator[Path]:
        """Scan a single directory."""
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except PermissionError:
            logger.warning("Permission denied: %s", directory)
            return
        except FileNotFoundError:
            return

        for entry in entries:
            if entry.is_symlink() and not self._follow_symlinks:
                continue

            path = Path(entry.path)
            if entry.is_file(follow_symlinks=self._follow_symlinks):
                if is_candidate(path):
                    yield path
            elif entry.is_dir(follow_symlinks=self._follow_symlinks):
                yield from self._scan_directory(path)

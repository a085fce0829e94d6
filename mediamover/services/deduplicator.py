"""Duplicate resolution service."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ..core.errors import HashComputationError
from ..core.models import NAME_CONFLICT, NOVEL, Resolution
from .hash_index import HashIndex

logger = logging.getLogger(__name__)


class DuplicateResolver:
    """Decides whether a source file already exists in the destination.

    Checks the intended path first (size, then hash), then the hash index
    across the whole destination tree.
    """

    def __init__(self, hash_index: HashIndex, destination: Path):
        """Initialize the resolver.

        Args:
            hash_index: Index used for content lookups.
            destination: Root of the destination tree.
        """
        self._index = hash_index
        self._destination = destination

    def _hash_at(self, intended: Path, source_size: int) -> Optional[str]:
        """Hash of whatever occupies ``intended``, if its size matches."""
        planned = self._index.planned_hash(intended)
        if planned is not None:
            return planned
        try:
            if intended.stat().st_size != source_size:
                return None
            return self._index.get_hash(intended)
        except (OSError, HashComputationError) as e:
            logger.debug("Cannot compare with %s: %s", intended, e)
            return None

    def _occupied(self, intended: Path) -> bool:
        return intended.exists() or self._index.planned_hash(intended) is not None

    def resolve(self, source: Path, source_hash: str, intended: Path) -> Resolution:
        """Classify ``source`` against the destination.

        Args:
            source: File being migrated.
            source_hash: Its content hash.
            intended: Where it would be placed.

        Returns:
            IDENTICAL(at) when the content already exists, NAME_CONFLICT
            when a different file holds the intended name, NOVEL otherwise.
        """
        occupied = self._occupied(intended)
        if occupied:
            source_size = source.stat().st_size
            if self._hash_at(intended, source_size) == source_hash:
                return Resolution.identical(intended)

        hit = self._index.find_by_hash(source_hash, self._destination, exclude={source})
        if hit is not None:
            return Resolution.identical(hit)

        return NAME_CONFLICT if occupied else NOVEL

"""Content hash engine.

SHA-256 over the full file content. MD5 is used only when the runtime
refuses SHA-256 (restricted OpenSSL builds); it is a degraded fallback
for duplicate detection, not a security measure.
"""
from __future__ import annotations

import hashlib
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Optional

from ..core.errors import HashComputationError

logger = logging.getLogger(__name__)

PREFERRED_ALGORITHMS = ("sha256", "md5")
CHUNK_SIZE = 1024 * 1024


def _new_digest(algorithm: str):
    if algorithm == "md5":
        return hashlib.new("md5", usedforsecurity=False)
    return hashlib.new(algorithm)


def available_algorithm(preferred: tuple[str, ...] = PREFERRED_ALGORITHMS) -> str:
    """Pick the first digest the interpreter can construct.

    Raises:
        HashComputationError: If no digest algorithm is usable.
    """
    for algorithm in preferred:
        try:
            _new_digest(algorithm)
            return algorithm
        except ValueError:
            logger.warning("Digest %s unavailable, trying next", algorithm)
    raise HashComputationError(f"No digest algorithm available from {preferred}")


class ContentHashEngine:
    """Computes content digests for files.

    Hashing is I/O bound, so ``compute_batch`` uses threads.
    """

    def __init__(self, algorithm: Optional[str] = None, chunk_size: int = CHUNK_SIZE):
        """Initialize the hash engine.

        Args:
            algorithm: Digest name. Defaults to the best available.
            chunk_size: Read size in bytes.
        """
        self._algorithm = algorithm or available_algorithm()
        self._chunk_size = chunk_size

    @property
    def name(self) -> str:
        return self._algorithm

    @property
    def is_degraded(self) -> bool:
        return self._algorithm != PREFERRED_ALGORITHMS[0]

    def compute_hash(self, path: Path) -> str:
        """Compute the digest of a file's full content.

        Raises:
            HashComputationError: If the file cannot be read.
        """
        digest = _new_digest(self._algorithm)
        try:
            with path.open("rb") as f:
                for chunk in iter(lambda: f.read(self._chunk_size), b""):
                    digest.update(chunk)
        except OSError as e:
            raise HashComputationError(f"Cannot hash {path}: {e}") from e
        return digest.hexdigest()

    def compute_batch(self, paths: list[Path], workers: int = 4) -> list[Optional[str]]:
        """Compute hashes for multiple files using a thread pool.

        Failed files yield None; callers re-hash them individually to get
        the error.
        """
        results: list[Optional[str]] = [None] * len(paths)
        if not paths:
            return results

        with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
            future_to_idx = {
                executor.submit(self.compute_hash, path): i
                for i, path in enumerate(paths)
            }
            for future in as_completed(future_to_idx):
                idx = future_to_idx[future]
                try:
                    results[idx] = future.result()
                except HashComputationError as e:
                    logger.debug("Prefetch failed: %s", e)
                    results[idx] = None

        return results


def create_hash_engine(algorithm: Optional[str] = None) -> ContentHashEngine:
    """Factory function to create the hash engine.

    Args:
        algorithm: Force a digest; None picks SHA-256, or MD5 if unavailable.
    """
    engine = ContentHashEngine(algorithm)
    if engine.is_degraded:
        logger.warning("Using degraded digest %s for duplicate detection", engine.name)
    return engine

"""SQLite-backed checkpoint store for resumable migrations."""
from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
from pathlib import Path
from typing import Mapping, Optional

from ..core.models import MigrationSession, MigrationState

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


def run_id_for(source: Path, destination: Path) -> str:
    """Stable run token for a (source, destination) pair.

    A new invocation with the same arguments finds the same checkpoint.
    """
    key = f"{Path(source).resolve()}\0{Path(destination).resolve()}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]


class SQLiteCheckpointStore:
    """Durable per-run progress.

    ``mark_processed`` stages a row; ``save`` commits it together with the
    counters and any new hash-cache entries, so each save is one
    transaction. The database file is only created on first write.
    """

    def __init__(self, db_path: Optional[Path], run_id: str):
        """Initialize the store.

        Args:
            db_path: Checkpoint database file, or None for an in-memory store.
            run_id: Token from :func:`run_id_for`.
        """
        self._db_path = Path(db_path) if db_path is not None else None
        self._run_id = run_id
        self._conn: Optional[sqlite3.Connection] = None
        self._saved_keys: set[str] = set()

    @classmethod
    def in_memory(cls, run_id: str) -> "SQLiteCheckpointStore":
        return cls(None, run_id)

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def db_path(self) -> Optional[Path]:
        return self._db_path

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            if self._db_path is None:
                self._conn = sqlite3.connect(MEMORY)
            else:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(str(self._db_path))
            self._conn.row_factory = sqlite3.Row
            self._init_database()
        return self._conn

    def _init_database(self) -> None:
        """Create tables if they don't exist."""
        assert self._conn is not None
        cursor = self._conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS checkpoints (
                run_id TEXT PRIMARY KEY,
                source TEXT,
                destination TEXT,
                state TEXT NOT NULL,
                moved INTEGER NOT NULL DEFAULT 0,
                skipped INTEGER NOT NULL DEFAULT 0,
                errors INTEGER NOT NULL DEFAULT 0,
                duplicates INTEGER NOT NULL DEFAULT 0,
                duplicate_names TEXT NOT NULL DEFAULT '[]',
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS checkpoint_processed (
                run_id TEXT NOT NULL,
                path TEXT NOT NULL,
                PRIMARY KEY (run_id, path)
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS checkpoint_hash_cache (
                run_id TEXT NOT NULL,
                cache_key TEXT NOT NULL,
                file_hash TEXT NOT NULL,
                PRIMARY KEY (run_id, cache_key)
            )
        """)
        self._conn.commit()

    def _exists_on_disk(self) -> bool:
        return self._db_path is None or self._db_path.exists()

    def load(self) -> Optional[tuple[MigrationSession, dict[str, str]]]:
        """Load the saved session and hash-cache snapshot.

        Returns:
            ``(session, cache)`` with ``session.resumed`` set, or None when
            this run has no checkpoint.
        """
        if self._conn is None and not self._exists_on_disk():
            return None
        conn = self._connection()
        row = conn.execute(
            "SELECT * FROM checkpoints WHERE run_id = ?", (self._run_id,)
        ).fetchone()
        if row is None:
            return None

        processed = {
            r[0] for r in conn.execute(
                "SELECT path FROM checkpoint_processed WHERE run_id = ?", (self._run_id,)
            )
        }
        cache = {
            r[0]: r[1] for r in conn.execute(
                "SELECT cache_key, file_hash FROM checkpoint_hash_cache WHERE run_id = ?",
                (self._run_id,),
            )
        }
        self._saved_keys = set(cache)

        session = MigrationSession(
            moved=row["moved"],
            skipped=row["skipped"],
            errors=row["errors"],
            duplicates=row["duplicates"],
            duplicate_names=json.loads(row["duplicate_names"] or "[]"),
            processed=processed,
            state=MigrationState.IDLE,
            resumed=True,
        )
        logger.debug(
            "Loaded checkpoint %s: %d processed, %d cached hashes",
            self._run_id, len(processed), len(cache),
        )
        return session, cache

    def save(
        self,
        session: MigrationSession,
        hash_cache: Mapping[str, str],
        source: Optional[Path] = None,
        destination: Optional[Path] = None,
    ) -> None:
        """Persist counters, duplicate names, staged paths and new cache entries."""
        conn = self._connection()
        conn.execute("""
            INSERT INTO checkpoints (
                run_id, source, destination, state,
                moved, skipped, errors, duplicates, duplicate_names
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(run_id) DO UPDATE SET
                source = COALESCE(excluded.source, checkpoints.source),
                destination = COALESCE(excluded.destination, checkpoints.destination),
                state = excluded.state,
                moved = excluded.moved,
                skipped = excluded.skipped,
                errors = excluded.errors,
                duplicates = excluded.duplicates,
                duplicate_names = excluded.duplicate_names,
                updated_at = CURRENT_TIMESTAMP
        """, (
            self._run_id,
            str(source) if source else None,
            str(destination) if destination else None,
            session.state.value,
            session.moved,
            session.skipped,
            session.errors,
            session.duplicates,
            json.dumps(session.duplicate_names),
        ))

        new_items = [
            (self._run_id, key, value)
            for key, value in hash_cache.items()
            if key not in self._saved_keys
        ]
        if new_items:
            conn.executemany(
                """INSERT OR REPLACE INTO checkpoint_hash_cache (run_id, cache_key, file_hash)
                   VALUES (?, ?, ?)""",
                new_items,
            )
        conn.commit()
        self._saved_keys.update(key for _, key, _ in new_items)

    def mark_processed(self, path: Path) -> None:
        """Stage a source path as finalized; committed by the next ``save``."""
        self._connection().execute(
            "INSERT OR IGNORE INTO checkpoint_processed (run_id, path) VALUES (?, ?)",
            (self._run_id, str(path)),
        )

    def is_processed(self, path: Path) -> bool:
        if self._conn is None and not self._exists_on_disk():
            return False
        row = self._connection().execute(
            "SELECT 1 FROM checkpoint_processed WHERE run_id = ? AND path = ?",
            (self._run_id, str(path)),
        ).fetchone()
        return row is not None

    def clear(self) -> None:
        """Delete this run's checkpoint.

        The database file is removed once no run has a checkpoint left.
        """
        if self._conn is None and not self._exists_on_disk():
            return
        conn = self._connection()
        for table in ("checkpoints", "checkpoint_processed", "checkpoint_hash_cache"):
            conn.execute(f"DELETE FROM {table} WHERE run_id = ?", (self._run_id,))
        conn.commit()
        self._saved_keys.clear()

        remaining = conn.execute("SELECT COUNT(*) FROM checkpoints").fetchone()[0]
        if remaining == 0 and self._db_path is not None:
            self.close()
            self._db_path.unlink(missing_ok=True)
            logger.debug("Removed empty checkpoint database %s", self._db_path)

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "SQLiteCheckpointStore":
        return self

    def __exit__(self, *args) -> None:
        self.close()

"""SQLite-based hash index repository."""
from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional

from ..core.errors import IndexCorruptionError
from ..core.models import HashIndexEntry

logger = logging.getLogger(__name__)

REQUIRED_INDEXES = ("idx_file_hash", "idx_file_path", "idx_last_modified")

SIZE_BUCKETS_SQL = """
    SELECT CASE
        WHEN file_size < 1024*1024 THEN 'Under 1MB'
        WHEN file_size < 10*1024*1024 THEN '1-10MB'
        WHEN file_size < 100*1024*1024 THEN '10-100MB'
        WHEN file_size < 1024*1024*1024 THEN '100MB-1GB'
        ELSE 'Over 1GB'
    END AS size_range, COUNT(*) AS count
    FROM file_hashes
    GROUP BY size_range
    ORDER BY MIN(file_size)
"""


def _scope_prefix(scope: str) -> str:
    return scope.rstrip(os.sep) + os.sep


class SQLiteHashRepository:
    """SQLite implementation of the hash index.

    One row per path. The same hash may appear under many paths; that is
    how duplicates are found. ``created_at``/``updated_at`` are unix
    seconds, ``last_modified`` is ``st_mtime_ns``.
    """

    def __init__(self, db_path: Path, snapshot: bool = False):
        """Open (or create) the index.

        Args:
            db_path: Path to SQLite database file.
            snapshot: Load a read-only copy of ``db_path`` into memory.
                Writes then never reach disk, which is what dry runs need.

        Raises:
            IndexCorruptionError: If the file is not a usable database.
        """
        self._db_path = Path(db_path)
        self._snapshot = snapshot
        self._conn: Optional[sqlite3.Connection] = None
        try:
            self._init_database()
        except IndexCorruptionError:
            self.close()
            raise
        except sqlite3.DatabaseError as e:
            self.close()
            raise IndexCorruptionError(f"Cannot open hash index {self._db_path}: {e}") from e

    @classmethod
    def in_memory_snapshot(cls, db_path: Path) -> "SQLiteHashRepository":
        return cls(db_path, snapshot=True)

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def is_snapshot(self) -> bool:
        return self._snapshot

    def _connect(self) -> sqlite3.Connection:
        if not self._snapshot:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path))
            conn.execute("PRAGMA journal_mode=WAL")
            return conn

        conn = sqlite3.connect(":memory:")
        if self._db_path.exists():
            source = sqlite3.connect(f"{self._db_path.as_uri()}?mode=ro", uri=True)
            try:
                source.backup(conn)
            finally:
                source.close()
        return conn

    def _init_database(self) -> None:
        """Create tables if they don't exist, then run a quick check."""
        self._conn = self._connect()
        self._conn.row_factory = sqlite3.Row

        row = self._conn.execute("PRAGMA quick_check").fetchone()
        if row is None or row[0] != "ok":
            raise IndexCorruptionError(
                f"Hash index {self._db_path} failed integrity check: {row[0] if row else 'no result'}"
            )

        cursor = self._conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS file_hashes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                file_path TEXT UNIQUE NOT NULL,
                file_size INTEGER NOT NULL,
                file_hash TEXT NOT NULL,
                last_modified INTEGER NOT NULL,
                created_at INTEGER DEFAULT (strftime('%s', 'now')),
                updated_at INTEGER DEFAULT (strftime('%s', 'now'))
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_file_hash ON file_hashes(file_hash)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_file_path ON file_hashes(file_path)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_last_modified ON file_hashes(last_modified)")
        cursor.execute("""
            CREATE TRIGGER IF NOT EXISTS update_timestamp
                AFTER UPDATE ON file_hashes
                FOR EACH ROW
                BEGIN
                    UPDATE file_hashes SET updated_at = strftime('%s', 'now') WHERE id = NEW.id;
                END
        """)

        # Directory trees whose media have all been hashed at least once
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS indexed_scopes (
                scope TEXT PRIMARY KEY,
                indexed_at INTEGER DEFAULT (strftime('%s', 'now'))
            )
        """)
        self._conn.commit()

    # Lookups

    def get_by_path(self, file_path: str) -> Optional[HashIndexEntry]:
        """Get the entry recorded for a path."""
        assert self._conn is not None
        row = self._conn.execute(
            "SELECT * FROM file_hashes WHERE file_path = ?", (file_path,)
        ).fetchone()
        return self._row_to_entry(row) if row else None

    def get_all_by_hash(self, file_hash: str, scope: Optional[str] = None) -> list[HashIndexEntry]:
        """Get all entries with a given hash.

        Args:
            file_hash: The hash to search for.
            scope: Restrict to paths at or below this directory.

        Returns:
            Matching entries, oldest first.
        """
        assert self._conn is not None
        if scope is None:
            rows = self._conn.execute(
                "SELECT * FROM file_hashes WHERE file_hash = ? ORDER BY id", (file_hash,)
            ).fetchall()
        else:
            prefix = _scope_prefix(scope)
            rows = self._conn.execute(
                """SELECT * FROM file_hashes
                   WHERE file_hash = ? AND substr(file_path, 1, ?) = ?
                   ORDER BY id""",
                (file_hash, len(prefix), prefix),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def iter_paths(self) -> Iterator[str]:
        """Iterate all indexed paths."""
        assert self._conn is not None
        # Materialized so callers may delete while iterating
        rows = self._conn.execute("SELECT file_path FROM file_hashes ORDER BY id").fetchall()
        for row in rows:
            yield row[0]

    # Writes

    def upsert(self, entry: HashIndexEntry) -> None:
        """Insert or update the entry for ``entry.file_path``."""
        self.upsert_many([entry])

    def upsert_many(self, entries: Iterable[HashIndexEntry]) -> int:
        """Insert or update several entries in one transaction."""
        assert self._conn is not None
        params = [
            (e.file_path, e.file_size, e.file_hash, e.last_modified)
            for e in entries
        ]
        if not params:
            return 0
        self._conn.executemany("""
            INSERT INTO file_hashes (file_path, file_size, file_hash, last_modified)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(file_path) DO UPDATE SET
                file_size = excluded.file_size,
                file_hash = excluded.file_hash,
                last_modified = excluded.last_modified
        """, params)
        self._conn.commit()
        return len(params)

    def update_path(self, old_path: str, new_path: str) -> bool:
        """Re-key an entry after a rename.

        Any stale row already recorded at ``new_path`` is replaced.

        Returns:
            True if a record was updated.
        """
        assert self._conn is not None
        if old_path == new_path:
            return self.get_by_path(old_path) is not None
        cursor = self._conn.cursor()
        cursor.execute("SELECT 1 FROM file_hashes WHERE file_path = ?", (old_path,))
        if cursor.fetchone() is None:
            return False
        cursor.execute("DELETE FROM file_hashes WHERE file_path = ?", (new_path,))
        cursor.execute(
            "UPDATE file_hashes SET file_path = ? WHERE file_path = ?",
            (new_path, old_path),
        )
        self._conn.commit()
        return True

    def delete_by_path(self, file_path: str) -> bool:
        """Delete the entry for a path.

        Returns:
            True if a record was deleted.
        """
        assert self._conn is not None
        cursor = self._conn.execute("DELETE FROM file_hashes WHERE file_path = ?", (file_path,))
        self._conn.commit()
        return cursor.rowcount > 0

    # Scope bookkeeping

    def scope_indexed_at(self, scope: str) -> Optional[datetime]:
        """Time of the latest full scan of ``scope`` or an ancestor, if any."""
        assert self._conn is not None
        latest = None
        for row in self._conn.execute("SELECT scope, indexed_at FROM indexed_scopes"):
            indexed = row["scope"]
            if scope == indexed or scope.startswith(_scope_prefix(indexed)):
                if latest is None or row["indexed_at"] > latest:
                    latest = row["indexed_at"]
        return _from_epoch(latest)

    def mark_scope_indexed(self, scope: str) -> None:
        assert self._conn is not None
        self._conn.execute(
            """INSERT INTO indexed_scopes (scope) VALUES (?)
               ON CONFLICT(scope) DO UPDATE SET indexed_at = strftime('%s', 'now')""",
            (scope,),
        )
        self._conn.commit()

    # Statistics and maintenance

    def count_all(self) -> int:
        """Count total records in database."""
        assert self._conn is not None
        return self._conn.execute("SELECT COUNT(*) FROM file_hashes").fetchone()[0]

    def count_unique_hashes(self) -> int:
        assert self._conn is not None
        return self._conn.execute(
            "SELECT COUNT(DISTINCT file_hash) FROM file_hashes"
        ).fetchone()[0]

    def get_duplicate_hashes(self, limit: Optional[int] = None) -> list[tuple[str, int, str]]:
        """Get hashes recorded under more than one path.

        Returns:
            List of (hash, count, example_path), most repeated first.
        """
        assert self._conn is not None
        sql = """
            SELECT file_hash, COUNT(*) AS cnt, MIN(file_path) AS example
            FROM file_hashes
            GROUP BY file_hash
            HAVING cnt > 1
            ORDER BY cnt DESC, file_hash
        """
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        return [(row[0], row[1], row[2]) for row in self._conn.execute(sql, params)]

    def recent_entries(self, limit: int = 5) -> list[HashIndexEntry]:
        assert self._conn is not None
        rows = self._conn.execute(
            "SELECT * FROM file_hashes ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
        ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def directory_distribution(self, root: str, limit: int = 10) -> list[tuple[str, int]]:
        """Count entries per ``YYYY/MM`` directory below ``root``."""
        assert self._conn is not None
        prefix = _scope_prefix(root)
        rows = self._conn.execute(
            """SELECT substr(file_path, 1, ?) AS dir_prefix, COUNT(*) AS count
               FROM file_hashes
               WHERE substr(file_path, 1, ?) = ?
               GROUP BY dir_prefix
               ORDER BY count DESC
               LIMIT ?""",
            (len(prefix) + 7, len(prefix), prefix, limit),
        ).fetchall()
        return [(row[0], row[1]) for row in rows]

    def hash_type_counts(self) -> dict[str, int]:
        """Count entries by digest type, inferred from hex length."""
        assert self._conn is not None
        rows = self._conn.execute("""
            SELECT CASE
                WHEN LENGTH(file_hash) = 64 THEN 'SHA256'
                WHEN LENGTH(file_hash) = 32 THEN 'MD5'
                ELSE 'Other'
            END AS hash_type, COUNT(*) AS count
            FROM file_hashes
            GROUP BY hash_type
        """).fetchall()
        return {row[0]: row[1] for row in rows}

    def size_distribution(self) -> list[tuple[str, int]]:
        assert self._conn is not None
        return [(row[0], row[1]) for row in self._conn.execute(SIZE_BUCKETS_SQL)]

    def created_range(self) -> tuple[Optional[datetime], Optional[datetime]]:
        """Oldest and newest ``created_at`` in the index."""
        assert self._conn is not None
        row = self._conn.execute(
            "SELECT MIN(created_at), MAX(created_at) FROM file_hashes"
        ).fetchone()
        return _from_epoch(row[0]), _from_epoch(row[1])

    def sample_paths(self, count: int) -> list[str]:
        assert self._conn is not None
        rows = self._conn.execute(
            "SELECT file_path FROM file_hashes ORDER BY RANDOM() LIMIT ?", (count,)
        ).fetchall()
        return [row[0] for row in rows]

    def table_schema(self, table: str = "file_hashes") -> Optional[str]:
        assert self._conn is not None
        row = self._conn.execute(
            "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
        ).fetchone()
        return row[0] if row else None

    def index_names(self, table: str = "file_hashes") -> list[str]:
        """Names of explicit indexes on ``table``."""
        assert self._conn is not None
        rows = self._conn.execute(
            """SELECT name FROM sqlite_master
               WHERE type = 'index' AND tbl_name = ? AND sql IS NOT NULL
               ORDER BY name""",
            (table,),
        ).fetchall()
        return [row[0] for row in rows]

    def integrity_check(self) -> list[str]:
        """Run ``PRAGMA integrity_check``; ``["ok"]`` means healthy."""
        assert self._conn is not None
        return [row[0] for row in self._conn.execute("PRAGMA integrity_check")]

    def vacuum(self) -> None:
        assert self._conn is not None
        self._conn.commit()
        self._conn.execute("VACUUM")

    def optimize(self) -> None:
        """Refresh planner statistics and rebuild indexes."""
        assert self._conn is not None
        self._conn.execute("ANALYZE")
        self._conn.execute("REINDEX")
        self._conn.commit()

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _row_to_entry(self, row: sqlite3.Row) -> HashIndexEntry:
        """Convert database row to HashIndexEntry."""
        return HashIndexEntry(
            id=row["id"],
            file_path=row["file_path"],
            file_hash=row["file_hash"],
            file_size=row["file_size"],
            last_modified=row["last_modified"],
            created_at=_from_epoch(row["created_at"]),
            updated_at=_from_epoch(row["updated_at"]),
        )

    def __enter__(self) -> "SQLiteHashRepository":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def _from_epoch(value) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value))
    except (TypeError, ValueError, OverflowError, OSError):
        return None

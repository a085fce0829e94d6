"""Tests for the SQLite hash index repository."""
from pathlib import Path

import pytest

from mediamover.core.errors import IndexCorruptionError
from mediamover.core.models import HashIndexEntry
from mediamover.persistence.database import REQUIRED_INDEXES, SQLiteHashRepository

SHA_A = "a" * 64
SHA_B = "b" * 64
MD5_C = "c" * 32


def entry(path: str, file_hash: str = SHA_A, size: int = 10, mtime: int = 1) -> HashIndexEntry:
    return HashIndexEntry(file_path=path, file_hash=file_hash, file_size=size, last_modified=mtime)


class TestSQLiteHashRepository:
    """Tests for SQLiteHashRepository."""

    @pytest.fixture
    def db_path(self, tmp_path: Path) -> Path:
        """Get a test database path."""
        return tmp_path / ".file_hashes.db"

    @pytest.fixture
    def repo(self, db_path: Path):
        """Create a repository instance."""
        repo = SQLiteHashRepository(db_path)
        yield repo
        repo.close()

    def test_create_database(self, db_path):
        """Test database and schema are created."""
        with SQLiteHashRepository(db_path) as repo:
            assert db_path.exists()
            assert repo.table_schema() is not None
            assert set(REQUIRED_INDEXES) <= set(repo.index_names())

    def test_upsert_and_get(self, repo):
        """Test inserting and retrieving an entry."""
        repo.upsert(entry("/dest/2024/01/a.jpg", size=123, mtime=456))

        found = repo.get_by_path("/dest/2024/01/a.jpg")

        assert found is not None
        assert found.file_hash == SHA_A
        assert found.file_size == 123
        assert found.last_modified == 456
        assert found.created_at is not None

    def test_upsert_replaces_by_path(self, repo):
        """Test a second upsert for a path updates rather than duplicates."""
        repo.upsert(entry("/dest/a.jpg", SHA_A))
        repo.upsert(entry("/dest/a.jpg", SHA_B, size=20))

        assert repo.count_all() == 1
        assert repo.get_by_path("/dest/a.jpg").file_hash == SHA_B

    def test_get_nonexistent(self, repo):
        """Test getting an unknown path returns None."""
        assert repo.get_by_path("/nope") is None

    def test_same_hash_many_paths(self, repo):
        """Test one hash can be recorded under several paths."""
        repo.upsert(entry("/dest/2024/01/a.jpg"))
        repo.upsert(entry("/dest/2024/02/b.jpg"))

        found = repo.get_all_by_hash(SHA_A)
        assert [e.file_path for e in found] == ["/dest/2024/01/a.jpg", "/dest/2024/02/b.jpg"]

    def test_scope_filter(self, repo):
        """Test scope restricts to paths below a directory, not a name prefix."""
        repo.upsert(entry("/dest/2024/01/a.jpg"))
        repo.upsert(entry("/destination2/a.jpg"))
        repo.upsert(entry("/source/a.jpg"))

        found = repo.get_all_by_hash(SHA_A, scope="/dest")
        assert [e.file_path for e in found] == ["/dest/2024/01/a.jpg"]

    def test_update_path(self, repo):
        """Test re-keying an entry after a rename."""
        repo.upsert(entry("/src/a.jpg"))

        assert repo.update_path("/src/a.jpg", "/dest/2024/01/a.jpg") is True
        assert repo.get_by_path("/src/a.jpg") is None
        assert repo.get_by_path("/dest/2024/01/a.jpg").file_hash == SHA_A

    def test_update_path_replaces_stale_target(self, repo):
        """Test a stale row at the new path does not block the rename."""
        repo.upsert(entry("/src/a.jpg", SHA_A))
        repo.upsert(entry("/dest/a.jpg", SHA_B))

        assert repo.update_path("/src/a.jpg", "/dest/a.jpg") is True
        assert repo.count_all() == 1
        assert repo.get_by_path("/dest/a.jpg").file_hash == SHA_A

    def test_update_unknown_path(self, repo):
        assert repo.update_path("/missing", "/other") is False

    def test_delete_by_path(self, repo):
        """Test deleting an entry."""
        repo.upsert(entry("/dest/a.jpg"))
        assert repo.delete_by_path("/dest/a.jpg") is True
        assert repo.delete_by_path("/dest/a.jpg") is False
        assert repo.count_all() == 0

    def test_iter_paths_allows_deletes(self, repo):
        """Test entries can be deleted while iterating."""
        for name in ("a", "b", "c"):
            repo.upsert(entry(f"/dest/{name}.jpg"))
        for path in repo.iter_paths():
            repo.delete_by_path(path)
        assert repo.count_all() == 0

    def test_scopes(self, repo):
        """Test scope bookkeeping covers descendants only."""
        assert repo.scope_indexed_at("/dest") is None
        repo.mark_scope_indexed("/dest")
        repo.mark_scope_indexed("/dest")

        assert repo.scope_indexed_at("/dest") is not None
        assert repo.scope_indexed_at("/dest/2024") == repo.scope_indexed_at("/dest")
        assert repo.scope_indexed_at("/destination") is None

    def test_persists_across_connections(self, db_path):
        """Test data survives closing and reopening."""
        with SQLiteHashRepository(db_path) as repo:
            repo.upsert(entry("/dest/a.jpg"))
            repo.mark_scope_indexed("/dest")
        with SQLiteHashRepository(db_path) as repo:
            assert repo.count_all() == 1
            assert repo.scope_indexed_at("/dest") is not None


class TestCorruption:
    """Tests for corruption detection."""

    def test_garbage_file(self, tmp_path):
        """Test a non-database file is reported as corruption."""
        db_path = tmp_path / ".file_hashes.db"
        db_path.write_bytes(b"this is definitely not sqlite" * 200)
        with pytest.raises(IndexCorruptionError):
            SQLiteHashRepository(db_path)

    def test_garbage_snapshot(self, tmp_path):
        """Test snapshots of a corrupt index fail the same way."""
        db_path = tmp_path / ".file_hashes.db"
        db_path.write_bytes(b"garbage" * 1000)
        with pytest.raises(IndexCorruptionError):
            SQLiteHashRepository.in_memory_snapshot(db_path)


class TestSnapshot:
    """Tests for in-memory snapshots used by dry runs."""

    def test_snapshot_reads_existing(self, tmp_path):
        """Test the snapshot sees rows from disk."""
        db_path = tmp_path / "index.db"
        with SQLiteHashRepository(db_path) as repo:
            repo.upsert(entry("/dest/a.jpg"))

        with SQLiteHashRepository.in_memory_snapshot(db_path) as snap:
            assert snap.is_snapshot
            assert snap.get_by_path("/dest/a.jpg") is not None

    def test_snapshot_writes_stay_in_memory(self, tmp_path):
        """Test writes to a snapshot never reach the file."""
        db_path = tmp_path / "index.db"
        with SQLiteHashRepository(db_path) as repo:
            repo.upsert(entry("/dest/a.jpg"))

        with SQLiteHashRepository.in_memory_snapshot(db_path) as snap:
            snap.upsert(entry("/dest/b.jpg"))
            snap.delete_by_path("/dest/a.jpg")

        with SQLiteHashRepository(db_path) as repo:
            assert repo.get_by_path("/dest/a.jpg") is not None
            assert repo.get_by_path("/dest/b.jpg") is None

    def test_snapshot_of_missing_file(self, tmp_path):
        """Test a snapshot of a nonexistent index is empty and creates nothing."""
        db_path = tmp_path / "missing.db"
        with SQLiteHashRepository.in_memory_snapshot(db_path) as snap:
            assert snap.count_all() == 0
        assert not db_path.exists()


class TestStatistics:
    """Tests for the statistics queries."""

    @pytest.fixture
    def repo(self, tmp_path):
        repo = SQLiteHashRepository(tmp_path / "stats.db")
        repo.upsert(entry("/dest/2024/01/a.jpg", SHA_A, size=100))
        repo.upsert(entry("/dest/2024/01/b.jpg", SHA_A, size=100))
        repo.upsert(entry("/dest/2024/02/c.jpg", SHA_A, size=100))
        repo.upsert(entry("/dest/2023/05/d.mp4", SHA_B, size=5 * 1024 * 1024))
        repo.upsert(entry("/dest/2023/05/e.mp3", MD5_C, size=2 * 1024 * 1024 * 1024))
        yield repo
        repo.close()

    def test_counts(self, repo):
        assert repo.count_all() == 5
        assert repo.count_unique_hashes() == 3

    def test_duplicate_hashes(self, repo):
        """Test duplicates are reported with an example path."""
        assert repo.get_duplicate_hashes() == [(SHA_A, 3, "/dest/2024/01/a.jpg")]
        assert repo.get_duplicate_hashes(limit=0) == []

    def test_hash_types(self, repo):
        assert repo.hash_type_counts() == {"SHA256": 4, "MD5": 1}

    def test_size_distribution(self, repo):
        """Test buckets come out smallest first."""
        assert repo.size_distribution() == [
            ("Under 1MB", 3),
            ("1-10MB", 1),
            ("Over 1GB", 1),
        ]

    def test_directory_distribution(self, repo):
        """Test counts per YYYY/MM directory."""
        assert sorted(repo.directory_distribution("/dest")) == [
            ("/dest/2023/05", 2),
            ("/dest/2024/01", 2),
            ("/dest/2024/02", 1),
        ]

    def test_created_range(self, repo):
        oldest, newest = repo.created_range()
        assert oldest is not None and newest is not None
        assert oldest <= newest

    def test_recent_entries(self, repo):
        assert len(repo.recent_entries(2)) == 2

    def test_sample_paths(self, repo):
        sample = repo.sample_paths(3)
        assert len(sample) == 3
        assert len(set(sample)) == 3

    def test_integrity_and_maintenance(self, repo):
        """Test integrity check, vacuum and optimize run cleanly."""
        assert repo.integrity_check() == ["ok"]
        repo.vacuum()
        repo.optimize()
        assert repo.count_all() == 5

"""Tests for core domain models."""
from pathlib import Path

from mediamover.core.models import (
    NAME_CONFLICT,
    NOVEL,
    FileOutcome,
    FileRecord,
    FileResult,
    HashIndexEntry,
    MigrationSession,
    Resolution,
    ResolutionKind,
)


class TestFileRecord:
    """Tests for FileRecord."""

    def test_from_path(self, tmp_path: Path):
        path = tmp_path / "a.jpg"
        path.write_bytes(b"12345")

        record = FileRecord.from_path(path)

        assert record.size == 5
        assert record.mtime == path.stat().st_mtime_ns
        assert record.cache_key == f"{path}:5:{record.mtime}"

    def test_matches(self):
        """Test matching needs path, size and mtime to agree."""
        a = FileRecord(Path("/x.jpg"), 10, 100)
        assert a.matches(FileRecord(Path("/x.jpg"), 10, 100, hash="abc"))
        assert not a.matches(FileRecord(Path("/x.jpg"), 11, 100))
        assert not a.matches(FileRecord(Path("/x.jpg"), 10, 101))
        assert not a.matches(FileRecord(Path("/y.jpg"), 10, 100))

    def test_entry_to_record(self):
        entry = HashIndexEntry("/x.jpg", "h", 10, 100)
        assert entry.to_record() == FileRecord(Path("/x.jpg"), 10, 100, hash="h")


class TestResolution:
    def test_identical(self):
        resolution = Resolution.identical(Path("/dest/a.jpg"))
        assert resolution.kind == ResolutionKind.IDENTICAL
        assert resolution.is_duplicate
        assert resolution.at == Path("/dest/a.jpg")

    def test_other_verdicts(self):
        assert not NAME_CONFLICT.is_duplicate
        assert not NOVEL.is_duplicate
        assert NAME_CONFLICT != NOVEL


class TestMigrationSession:
    """Tests for MigrationSession counters."""

    def test_record_each_outcome(self):
        """Test every outcome increments exactly one counter."""
        session = MigrationSession()
        session.record(FileResult(Path("/s/a.jpg"), FileOutcome.MOVED, target=Path("/d/a.jpg")))
        session.record(FileResult(Path("/s/b.jpg"), FileOutcome.SKIPPED))
        session.record(FileResult(Path("/s/c.jpg"), FileOutcome.DUPLICATED, target=Path("/s/c_DUP.jpg")))
        session.record(FileResult(Path("/s/d.jpg"), FileOutcome.ERRORED, message="boom"))

        assert session.summary() == {
            "moved": 1, "skipped": 1, "duplicates": 1, "errors": 1, "total": 4,
        }
        assert session.duplicate_names == ["c_DUP.jpg"]
        assert session.is_processed(Path("/s/d.jpg"))
        assert not session.is_processed(Path("/s/e.jpg"))

    def test_total_matches_processed(self):
        session = MigrationSession()
        for i in range(3):
            session.record(FileResult(Path(f"/s/{i}.jpg"), FileOutcome.MOVED))
        assert session.total == len(session.processed) == 3

    def test_result_success(self):
        assert FileResult(Path("/a"), FileOutcome.SKIPPED).is_success
        assert not FileResult(Path("/a"), FileOutcome.ERRORED).is_success

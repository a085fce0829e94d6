"""Tests for CLI commands."""
from pathlib import Path
from unittest.mock import patch

import pytest

from mediamover.cli import create_parser, main
from mediamover.core.config import CHECKPOINT_DB_NAME, INDEX_DB_NAME
from mediamover.core.errors import MigrationInterrupted
from mediamover.core.models import MigrationSession

from .fixtures import write_file


class TestCLIParsing:
    """Test CLI argument parsing."""

    def test_migrate_command_basic(self):
        """Test migrate command basic parsing."""
        args = create_parser().parse_args(["migrate", "/photos/inbox", "/photos/library"])

        assert args.command == "migrate"
        assert args.source == Path("/photos/inbox")
        assert args.destination == Path("/photos/library")
        assert args.dry_run is False
        assert args.month_first is False
        assert args.workers == 1

    def test_migrate_options(self):
        args = create_parser().parse_args([
            "-v", "migrate", "/in", "/out",
            "--dry-run", "--month-first", "--no-metadata", "-j", "4",
            "--db", "/tmp/index.db",
        ])

        assert args.verbose is True
        assert args.dry_run is True
        assert args.month_first is True
        assert args.no_metadata is True
        assert args.workers == 4
        assert args.db == Path("/tmp/index.db")

    def test_index_modes_exclusive(self):
        """Test --update and --rebuild cannot be combined."""
        with pytest.raises(SystemExit) as excinfo:
            create_parser().parse_args(["index", "/lib", "--update", "--rebuild"])
        assert excinfo.value.code == 2

    def test_db_action_choices(self):
        args = create_parser().parse_args(["db", "/lib", "stats"])
        assert args.action == "stats"
        with pytest.raises(SystemExit):
            create_parser().parse_args(["db", "/lib", "explode"])


class TestMain:
    """Exit codes and end-to-end command runs."""

    def test_no_command(self):
        assert main([]) == 0

    def test_missing_source(self, tmp_path):
        """Test a missing source is a configuration error."""
        assert main(["-q", "migrate", str(tmp_path / "nope"), str(tmp_path / "dest")]) == 1
        assert not (tmp_path / "dest").exists()

    def test_migrate(self, tmp_path):
        """Test a full migrate run through the CLI."""
        src, dest = tmp_path / "src", tmp_path / "dest"
        write_file(src / "clip_2023_07_04.mp4", b"clip")

        assert main(["-q", "migrate", str(src), str(dest), "--no-metadata"]) == 0

        assert (dest / "2023" / "07" / "clip_2023_07_04.mp4").exists()
        assert (dest / INDEX_DB_NAME).exists()
        assert not (dest / CHECKPOINT_DB_NAME).exists()

    def test_migrate_dry_run(self, tmp_path):
        src, dest = tmp_path / "src", tmp_path / "dest"
        source_file = write_file(src / "clip_2023_07_04.mp4", b"clip")

        assert main(["migrate", str(src), str(dest), "--dry-run", "--no-metadata"]) == 0

        assert source_file.exists()
        assert not dest.exists()

    def test_interrupted_exit_code(self, tmp_path):
        """Test an interrupted run exits with 130."""
        src, dest = tmp_path / "src", tmp_path / "dest"
        write_file(src / "clip_2023_07_04.mp4", b"clip")

        with patch(
            "mediamover.services.processor.MigrationOrchestrator.run",
            side_effect=MigrationInterrupted(MigrationSession()),
        ):
            assert main(["-q", "migrate", str(src), str(dest)]) == 130

    def test_corrupt_index(self, tmp_path):
        """Test an unreadable index aborts before any move."""
        src, dest = tmp_path / "src", tmp_path / "dest"
        source_file = write_file(src / "clip_2023_07_04.mp4", b"clip")
        write_file(dest / INDEX_DB_NAME, b"not a database" * 100)

        assert main(["-q", "migrate", str(src), str(dest)]) == 1
        assert source_file.exists()

    def test_index_then_db(self, tmp_path):
        """Test building an index and inspecting it."""
        dest = tmp_path / "dest"
        write_file(dest / "2024" / "01" / "a.jpg", b"a")

        assert main(["-q", "index", str(dest)]) == 0
        assert (dest / INDEX_DB_NAME).exists()
        for action in ("info", "stats", "cleanup", "vacuum", "verify"):
            assert main(["-q", "db", str(dest), action]) == 0

    def test_index_missing_destination(self, tmp_path):
        assert main(["-q", "index", str(tmp_path / "missing")]) == 1

    def test_db_without_index(self, tmp_path):
        """Test db actions never create an index."""
        assert main(["-q", "db", str(tmp_path), "info"]) == 1
        assert not (tmp_path / INDEX_DB_NAME).exists()

    def test_db_corrupt(self, tmp_path):
        write_file(tmp_path / INDEX_DB_NAME, b"garbage" * 100)
        assert main(["-q", "db", str(tmp_path), "verify"]) == 1

"""Rich-based progress reporter implementation."""
from __future__ import annotations

import sys
import time
from collections import deque
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table
from rich.text import Text

from ..core.models import FileOutcome, FileResult, MigrationSession
from ..services.index_builder import IndexStats
from ..services.maintenance import (
    CompactionResult, DatabaseInfo, DatabaseStats, VerifyReport,
)

OUTCOME_STYLES = {
    FileOutcome.MOVED: ("green", "→"),
    FileOutcome.DUPLICATED: ("yellow", "≡"),
    FileOutcome.SKIPPED: ("dim", "·"),
    FileOutcome.ERRORED: ("red", "✗"),
}


def format_size(num_bytes: int) -> str:
    """Human-readable byte count."""
    size = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


class FilesPerSecondColumn(ProgressColumn):
    """Renders files per second as a rolling average."""

    def __init__(self, window_size: int = 10):
        """Initialize with rolling window size.

        Args:
            window_size: Number of samples for rolling average.
        """
        super().__init__()
        self._samples: deque[tuple[float, int]] = deque(maxlen=window_size)
        self._last_completed = 0
        self._start_time: Optional[float] = None

    def render(self, task: Task) -> Text:
        """Render the speed column."""
        completed = int(task.completed)
        now = time.time()

        if self._start_time is None:
            self._start_time = now
            self._last_completed = completed
            return Text("-- f/s", style="magenta")

        if completed > self._last_completed:
            self._samples.append((now, completed))
            self._last_completed = completed

        if len(self._samples) >= 2:
            oldest_time, oldest_completed = self._samples[0]
            newest_time, newest_completed = self._samples[-1]
            if newest_time > oldest_time:
                speed = (newest_completed - oldest_completed) / (newest_time - oldest_time)
                return Text(f"{speed:.1f} f/s", style="magenta")

        elapsed = now - self._start_time
        if elapsed > 0 and completed > 0:
            return Text(f"{completed / elapsed:.1f} f/s", style="magenta")
        return Text("-- f/s", style="magenta")


class RichProgressReporter:
    """Progress reporter using Rich for terminal output.

    Implements the ProgressReporter protocol. Per-file lines are printed
    above the live progress bar; skipped files only appear with
    ``verbose``.
    """

    def __init__(
        self,
        verbose: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
    ):
        """Initialize the reporter.

        Args:
            verbose: Enable verbose output.
            quiet: Suppress all non-essential output.
            console: Console to write to (stderr by default).
        """
        self._console = console or Console(stderr=True)
        self._verbose = verbose
        self._quiet = quiet
        self._progress: Optional[Progress] = None
        self._current_task_id: Optional[TaskID] = None

    @property
    def console(self) -> Console:
        return self._console

    # --- Phase Management ---

    def start_phase(self, name: str, total: int) -> None:
        """Start a new processing phase with progress bar."""
        if self._quiet:
            return

        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TextColumn("[cyan]•"),
            FilesPerSecondColumn(),
            TextColumn("[cyan]•"),
            TimeElapsedColumn(),
            TextColumn("[cyan]•"),
            TimeRemainingColumn(),
            console=self._console,
            transient=False,
        )
        self._progress.start()
        self._current_task_id = self._progress.add_task(name, total=total)

    def advance_phase(self, amount: int = 1) -> None:
        """Advance the current phase by amount."""
        if self._progress and self._current_task_id is not None:
            self._progress.advance(self._current_task_id, amount)

    def end_phase(self) -> None:
        """End the current phase."""
        if self._progress:
            self._progress.stop()
            self._progress = None
            self._current_task_id = None

    # --- Logging Methods ---

    def file_result(self, result: FileResult, relative: str) -> None:
        """Print one line per finished file."""
        if self._quiet and result.outcome != FileOutcome.ERRORED:
            return
        if result.outcome == FileOutcome.SKIPPED and not self._verbose:
            return

        style, marker = OUTCOME_STYLES[result.outcome]
        line = Text.assemble((f"{marker} ", style), relative)
        if result.target is not None and result.outcome != FileOutcome.SKIPPED:
            line.append(f" → {result.target}", style="dim")
        if result.message:
            line.append(f" ({result.message})", style=style)
        if self._verbose and result.date_source:
            line.append(f" [{result.date_source}]", style="dim")
        self._console.print(line)

    def info(self, message: str) -> None:
        """Log an info message."""
        if not self._quiet:
            self._console.print(f"[blue]ℹ[/blue] {message}")

    def success(self, message: str) -> None:
        """Log a success message."""
        if not self._quiet:
            self._console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self._console.print(f"[yellow]⚠[/yellow] {message}")

    def error(self, message: str) -> None:
        """Log an error message."""
        self._console.print(f"[red]✗[/red] {message}", style="red")

    # --- Specialized Output ---

    def print_header(self, title: str) -> None:
        """Print a styled header."""
        if self._quiet:
            return
        self._console.print(Panel(Text(title, style="bold cyan"), border_style="cyan"))

    def print_config(self, config_items: dict) -> None:
        """Print configuration as a table."""
        if self._quiet:
            return

        table = Table(title="Configuration", show_header=True, header_style="bold")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="white")
        for key, value in config_items.items():
            table.add_row(key, str(value))
        self._console.print(table)

    def print_summary(self, session: MigrationSession, dry_run: bool = False) -> None:
        """Print the final counters of a run."""
        title = "Dry Run Complete" if dry_run else "Migration Complete"
        table = Table(title=title, show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Count", style="green", justify="right")
        table.add_row("Files Moved", str(session.moved))
        table.add_row("Duplicates Renamed", str(session.duplicates))
        table.add_row("Skipped", str(session.skipped))
        table.add_row("Errors", str(session.errors), style="red" if session.errors else None)
        table.add_row("Total", str(session.total))
        self._console.print(table)

    def print_duplicates(self, session: MigrationSession) -> None:
        """List files renamed with a _DUP marker."""
        if self._quiet or not session.duplicate_names:
            return
        self._console.print(
            f"\n[yellow]Duplicates left in source with _DUP suffix[/yellow] "
            f"({len(session.duplicate_names)}):"
        )
        for name in session.duplicate_names:
            self._console.print(f"  [dim]•[/dim] {name}")

    def print_index_stats(self, stats: IndexStats, db_path) -> None:
        if self._quiet:
            return
        table = Table(title="Index Build Complete", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Count", style="green", justify="right")
        table.add_row("Files Found", str(stats.total_files))
        table.add_row("Hashed", str(stats.hashed))
        table.add_row("Up To Date", str(stats.up_to_date))
        table.add_row("Errors", str(stats.errors))
        table.add_row("Stale Entries Removed", str(stats.removed))
        table.add_row("Total Entries", str(stats.entries))
        self._console.print(table)
        self._console.print(f"Database: {db_path}")

    def print_db_info(self, info: DatabaseInfo) -> None:
        table = Table(title="Hash Index", show_header=False)
        table.add_column("Property", style="cyan")
        table.add_column("Value")
        table.add_row("Location", str(info.db_path))
        table.add_row("Size", format_size(info.size_bytes))
        table.add_row("Entries", str(info.entries))
        table.add_row("Indexes", ", ".join(info.indexes) or "none")
        scanned = info.indexed_at.strftime("%Y-%m-%d %H:%M:%S") if info.indexed_at else "never"
        table.add_row("Last full scan", scanned)
        self._console.print(table)

        if self._verbose and info.schema:
            self._console.print(Panel(info.schema, title="Schema", border_style="dim"))

        if info.recent:
            recent = Table(title="Recent Entries", show_header=True, header_style="bold")
            recent.add_column("File")
            recent.add_column("Added", style="dim")
            for entry in info.recent:
                added = entry.created_at.strftime("%Y-%m-%d %H:%M:%S") if entry.created_at else "-"
                recent.add_row(entry.file_path, added)
            self._console.print(recent)

        if info.distribution:
            dist = Table(title="Files per Directory", show_header=True, header_style="bold")
            dist.add_column("Directory")
            dist.add_column("Files", justify="right", style="green")
            for directory, count in info.distribution:
                dist.add_row(directory, str(count))
            self._console.print(dist)

    def print_db_stats(self, stats: DatabaseStats) -> None:
        table = Table(title="Hash Index Statistics", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")
        table.add_row("Entries", str(stats.entries))
        for hash_type, count in sorted(stats.hash_types.items()):
            table.add_row(f"{hash_type} hashes", str(count))
        table.add_row("Unique hashes", str(stats.unique_hashes))
        table.add_row("Duplicate files", str(stats.duplicate_files))
        if stats.oldest:
            table.add_row("Oldest entry", stats.oldest.strftime("%Y-%m-%d %H:%M:%S"))
        if stats.newest:
            table.add_row("Newest entry", stats.newest.strftime("%Y-%m-%d %H:%M:%S"))
        self._console.print(table)

        if stats.size_buckets:
            sizes = Table(title="File Size Distribution", show_header=True, header_style="bold")
            sizes.add_column("Range")
            sizes.add_column("Files", justify="right", style="green")
            for label, count in stats.size_buckets:
                sizes.add_row(label, str(count))
            self._console.print(sizes)

        if stats.top_duplicates:
            dups = Table(title="Most Duplicated", show_header=True, header_style="bold")
            dups.add_column("Hash", style="dim")
            dups.add_column("Copies", justify="right", style="yellow")
            dups.add_column("Example")
            for file_hash, count, example in stats.top_duplicates:
                dups.add_row(f"{file_hash[:16]}...", str(count), example)
            self._console.print(dups)

    def print_compaction(self, result: CompactionResult) -> None:
        if result.removed:
            self.success(f"Removed {result.removed} entries for missing files")
        self.success(
            f"Database size: {format_size(result.size_before)} → {format_size(result.size_after)}"
        )

    def print_verify(self, report: VerifyReport) -> None:
        if report.integrity_ok:
            self.success("Integrity check passed")
        else:
            self.error("Integrity check failed:")
            for line in report.integrity[:10]:
                self._console.print(f"  {line}")

        if report.table_present:
            self.success("Table 'file_hashes' exists")
        else:
            self.error("Table 'file_hashes' is missing")
        for name in report.missing_indexes:
            self.warning(f"Index '{name}' missing (lookups will be slow)")

        for path in report.missing_files:
            self.warning(f"Missing file: {path}")
        self.info(
            f"Sample verification: {report.sampled - len(report.missing_files)} of "
            f"{report.sampled} sampled files present"
        )
        if report.missing_files:
            self.info("Run 'db cleanup' to remove entries for missing files")

    # --- Context Managers ---

    def __enter__(self) -> "RichProgressReporter":
        return self

    def __exit__(self, *args) -> None:
        self.end_phase()


class QuietProgressReporter:
    """Minimal progress reporter that only shows problems."""

    def start_phase(self, name: str, total: int) -> None:
        pass

    def advance_phase(self, amount: int = 1) -> None:
        pass

    def end_phase(self) -> None:
        pass

    def file_result(self, result: FileResult, relative: str) -> None:
        if result.outcome == FileOutcome.ERRORED:
            print(f"ERROR: {relative}: {result.message}", file=sys.stderr)

    def info(self, message: str) -> None:
        pass

    def success(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        print(f"WARNING: {message}", file=sys.stderr)

    def error(self, message: str) -> None:
        print(f"ERROR: {message}", file=sys.stderr)

    def print_header(self, title: str) -> None:
        pass

    def print_config(self, config_items: dict) -> None:
        pass

    def print_summary(self, session: MigrationSession, dry_run: bool = False) -> None:
        if session.errors:
            self.error(f"{session.errors} files could not be processed")

    def print_duplicates(self, session: MigrationSession) -> None:
        pass

    def print_index_stats(self, stats: IndexStats, db_path) -> None:
        if stats.errors:
            self.error(f"{stats.errors} files could not be hashed")

    def print_db_info(self, info: DatabaseInfo) -> None:
        pass

    def print_db_stats(self, stats: DatabaseStats) -> None:
        pass

    def print_compaction(self, result: CompactionResult) -> None:
        pass

    def print_verify(self, report: VerifyReport) -> None:
        if not report.integrity_ok:
            self.error("Integrity check failed")
        if not report.table_present:
            self.error("Table 'file_hashes' is missing")
        for name in report.missing_indexes:
            self.warning(f"Index '{name}' missing")
        for path in report.missing_files:
            self.warning(f"Missing file: {path}")

    def __enter__(self) -> "QuietProgressReporter":
        return self

    def __exit__(self, *args) -> None:
        pass

"""CLI with subcommands: migrate, index, db."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .core.config import INDEX_DB_NAME, DatePreference, IndexMode, MigrationConfig
from .core.errors import ConfigurationError, IndexCorruptionError, MigrationInterrupted
from .logging.rich_logger import QuietProgressReporter, RichProgressReporter

DB_ACTIONS = ("info", "cleanup", "vacuum", "stats", "verify")


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="mediamover",
        description="Move media files into a YEAR/MONTH tree without losing or duplicating anything.",
    )

    # Global options
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # ============ MIGRATE command ============
    migrate_parser = subparsers.add_parser(
        "migrate",
        help="Move media from SOURCE into DESTINATION/YYYY/MM",
    )
    migrate_parser.add_argument("source", type=Path, help="Directory to migrate from")
    migrate_parser.add_argument("destination", type=Path, help="Root of the organized library")
    migrate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without touching any file",
    )
    migrate_parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help=f"Hash index path (default: DESTINATION/{INDEX_DB_NAME})",
    )
    migrate_parser.add_argument(
        "--checkpoint",
        type=Path,
        default=None,
        help="Checkpoint path (default: DESTINATION/.migration_checkpoint.db)",
    )
    migrate_parser.add_argument(
        "--month-first",
        action="store_true",
        help="Read ambiguous NN-NN-YYYY names as month-day-year",
    )
    migrate_parser.add_argument(
        "--no-metadata",
        action="store_true",
        help="Do not read EXIF/exiftool dates; fall back straight to mtime",
    )
    migrate_parser.add_argument(
        "-j", "--workers",
        type=int,
        default=1,
        help="Threads used to prefetch hashes (default: 1)",
    )
    migrate_parser.add_argument(
        "--batch-size",
        type=int,
        default=32,
        help="Files per prefetch batch (default: 32)",
    )

    # ============ INDEX command ============
    index_parser = subparsers.add_parser(
        "index",
        help="Build or refresh the hash index of a destination tree",
    )
    index_parser.add_argument("destination", type=Path, help="Directory to scan and index")
    mode = index_parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--update",
        action="store_true",
        help="Only hash new or modified files",
    )
    mode.add_argument(
        "--rebuild",
        action="store_true",
        help="Back up and delete the database, then rebuild from scratch",
    )
    index_parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help=f"Hash index path (default: DESTINATION/{INDEX_DB_NAME})",
    )
    index_parser.add_argument(
        "-j", "--workers",
        type=int,
        default=4,
        help="Number of hashing threads (default: 4)",
    )

    # ============ DB command ============
    db_parser = subparsers.add_parser(
        "db",
        help="Inspect and maintain the hash index",
    )
    db_parser.add_argument("destination", type=Path, help="Destination the index belongs to")
    db_parser.add_argument("action", choices=DB_ACTIONS, help="Maintenance action")
    db_parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help=f"Hash index path (default: DESTINATION/{INDEX_DB_NAME})",
    )

    return parser


def _db_path(args: argparse.Namespace, destination: Path) -> Path:
    return args.db.expanduser().resolve() if args.db else destination / INDEX_DB_NAME


def cmd_migrate(args: argparse.Namespace, reporter) -> int:
    """Handle the migrate command."""
    from .core.cancellation import CancellationToken, handle_signals
    from .services.processor import MigrationOrchestrator, create_dependencies

    config = MigrationConfig(
        source=args.source,
        destination=args.destination,
        dry_run=args.dry_run,
        date_preference=DatePreference.MONTH_FIRST if args.month_first else DatePreference.DAY_FIRST,
        use_metadata=not args.no_metadata,
        db_path=args.db,
        checkpoint_path=args.checkpoint,
        workers=args.workers,
        batch_size=args.batch_size,
    )

    reporter.print_header("mediamover migrate" + (" (dry run)" if config.dry_run else ""))
    reporter.print_config({
        "Source": str(config.source),
        "Destination": str(config.destination),
        "Hash Index": str(config.resolved_db_path),
        "Date Order": config.date_preference.value,
        "Metadata Dates": config.use_metadata,
        "Workers": config.workers,
        "Dry Run": config.dry_run,
    })

    deps = create_dependencies(config, reporter)
    try:
        orchestrator = MigrationOrchestrator(config, deps)
        token = CancellationToken()
        with handle_signals(token):
            try:
                session = orchestrator.run(token)
            except MigrationInterrupted as e:
                reporter.print_summary(e.session, dry_run=config.dry_run)
                return 130
        reporter.print_summary(session, dry_run=config.dry_run)
        reporter.print_duplicates(session)
        return 0
    finally:
        deps.close()


def cmd_index(args: argparse.Namespace, reporter) -> int:
    """Handle the index command."""
    from .engines.hash_engine import create_hash_engine
    from .services.index_builder import IndexBuilder

    destination = args.destination.expanduser().resolve()
    if not destination.is_dir():
        raise ConfigurationError(f"Destination directory not found: {destination}")
    db_path = _db_path(args, destination)

    if args.rebuild:
        mode = IndexMode.REBUILD
    elif args.update:
        mode = IndexMode.UPDATE
    else:
        mode = IndexMode.BUILD

    reporter.print_header("mediamover index")
    reporter.print_config({
        "Destination": str(destination),
        "Database": str(db_path),
        "Mode": mode.value,
        "Workers": args.workers,
    })

    builder = IndexBuilder(
        hash_engine=create_hash_engine(),
        progress=reporter,
        workers=args.workers,
    )
    stats = builder.run(destination, db_path, mode=mode)
    reporter.print_index_stats(stats, db_path)
    return 0


def cmd_db(args: argparse.Namespace, reporter) -> int:
    """Handle the db command."""
    from .services.maintenance import IndexMaintenance

    destination = args.destination.expanduser().resolve()
    db_path = _db_path(args, destination)

    with IndexMaintenance(db_path, destination) as maintenance:
        if args.action == "info":
            reporter.print_db_info(maintenance.info())
        elif args.action == "cleanup":
            reporter.info("Removing entries for missing files...")
            reporter.print_compaction(maintenance.cleanup())
        elif args.action == "vacuum":
            reporter.info("Optimizing database...")
            reporter.print_compaction(maintenance.vacuum())
        elif args.action == "stats":
            reporter.print_db_stats(maintenance.stats())
        elif args.action == "verify":
            report = maintenance.verify()
            reporter.print_verify(report)
            return 0 if report.integrity_ok and report.table_present else 1
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    verbose = getattr(args, "verbose", False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Create reporter
    if getattr(args, "quiet", False):
        reporter = QuietProgressReporter()
    else:
        reporter = RichProgressReporter(verbose=verbose)

    # No command specified - show help
    if not args.command:
        parser.print_help()
        return 0

    # Dispatch to command handler
    try:
        if args.command == "migrate":
            return cmd_migrate(args, reporter)
        elif args.command == "index":
            return cmd_index(args, reporter)
        elif args.command == "db":
            return cmd_db(args, reporter)
        else:
            reporter.error(f"Unknown command: {args.command}")
            return 1

    except KeyboardInterrupt:
        # Clean exit on Ctrl+C - no stack trace
        return 130
    except (ConfigurationError, IndexCorruptionError) as e:
        reporter.error(str(e))
        return 1
    except Exception as e:
        reporter.error(f"Error: {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())

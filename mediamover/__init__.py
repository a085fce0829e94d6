"""Resumable, duplicate-aware media migration into a YEAR/MONTH tree."""

__version__ = "1.0.0"

# Core exports
from .core.config import MigrationConfig, DatePreference, IndexMode
from .core.models import FileOutcome, FileResult, MigrationSession, YearMonth, UNCLASSIFIED
from .core.cancellation import CancellationToken, handle_signals
from .core.errors import MediaMoverError, MigrationInterrupted

# Engine exports
from .engines.hash_engine import ContentHashEngine, create_hash_engine
from .engines.metadata import MetadataDateExtractor

# Service exports
from .services.classifier import DateClassifier
from .services.hash_index import HashIndex
from .services.deduplicator import DuplicateResolver
from .services.file_ops import FileMover
from .services.processor import MigrationOrchestrator, ProcessorDependencies, create_dependencies

# Persistence exports
from .persistence.database import SQLiteHashRepository
from .persistence.checkpoint import SQLiteCheckpointStore

# Logging exports
from .logging.rich_logger import RichProgressReporter

__all__ = [
    # Core
    "MigrationConfig",
    "DatePreference",
    "IndexMode",
    "FileOutcome",
    "FileResult",
    "MigrationSession",
    "YearMonth",
    "UNCLASSIFIED",
    "CancellationToken",
    "handle_signals",
    "MediaMoverError",
    "MigrationInterrupted",
    # Engines
    "ContentHashEngine",
    "create_hash_engine",
    "MetadataDateExtractor",
    # Services
    "DateClassifier",
    "HashIndex",
    "DuplicateResolver",
    "FileMover",
    "MigrationOrchestrator",
    "ProcessorDependencies",
    "create_dependencies",
    # Persistence
    "SQLiteHashRepository",
    "SQLiteCheckpointStore",
    # Logging
    "RichProgressReporter",
]

"""Core domain models and protocols."""
from .protocols import (
    DateSource,
    HashRepository,
    CheckpointStore,
    ProgressReporter,
)
from .models import (
    FileRecord,
    HashIndexEntry,
    YearMonth,
    UNCLASSIFIED,
    Resolution,
    ResolutionKind,
    FileOutcome,
    FileResult,
    MigrationSession,
    MigrationState,
)
from .config import MigrationConfig, DatePreference, IndexMode
from .errors import (
    MediaMoverError,
    ConfigurationError,
    HashComputationError,
    MoveError,
    IndexCorruptionError,
    MigrationInterrupted,
)

__all__ = [
    # Protocols
    "DateSource",
    "HashRepository",
    "CheckpointStore",
    "ProgressReporter",
    # Models
    "FileRecord",
    "HashIndexEntry",
    "YearMonth",
    "UNCLASSIFIED",
    "Resolution",
    "ResolutionKind",
    "FileOutcome",
    "FileResult",
    "MigrationSession",
    "MigrationState",
    # Config
    "MigrationConfig",
    "DatePreference",
    "IndexMode",
    # Errors
    "MediaMoverError",
    "ConfigurationError",
    "HashComputationError",
    "MoveError",
    "IndexCorruptionError",
    "MigrationInterrupted",
]

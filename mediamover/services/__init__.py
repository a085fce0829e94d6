"""Service layer - business logic."""
from .classifier import DateClassifier, DateRule, build_rules
from .scanner import DirectoryScanner
from .hash_index import HashIndex, reconcile_repository
from .deduplicator import DuplicateResolver
from .file_ops import FileMover
from .processor import MigrationOrchestrator, ProcessorDependencies, create_dependencies
from .index_builder import IndexBuilder, IndexStats
from .maintenance import IndexMaintenance

__all__ = [
    "DateClassifier",
    "DateRule",
    "build_rules",
    "DirectoryScanner",
    "HashIndex",
    "reconcile_repository",
    "DuplicateResolver",
    "FileMover",
    "MigrationOrchestrator",
    "ProcessorDependencies",
    "create_dependencies",
    "IndexBuilder",
    "IndexStats",
    "IndexMaintenance",
]

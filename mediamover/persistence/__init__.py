"""Persistence layer."""
from .checkpoint import SQLiteCheckpointStore, run_id_for
from .database import SQLiteHashRepository

__all__ = ["SQLiteHashRepository", "SQLiteCheckpointStore", "run_id_for"]

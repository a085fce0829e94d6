"""Hash and metadata engines."""
from .hash_engine import ContentHashEngine, create_hash_engine
from .metadata import MetadataDateExtractor

__all__ = [
    "ContentHashEngine",
    "create_hash_engine",
    "MetadataDateExtractor",
]

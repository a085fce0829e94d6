"""Terminal progress reporting."""
from .rich_logger import QuietProgressReporter, RichProgressReporter

__all__ = ["RichProgressReporter", "QuietProgressReporter"]

"""Scanner module for discovering and cataloging TV episode files."""

from .filesystem import discover_files, walk_media_files
from .parser import parse_filename
from .progress import ProgressRegistry, ProgressReporter, ScanPhase, ScanProgress, ScanProgressTracker
from .scanner import (
    ScanAlreadyRunningError,
    ScanCancelledError,
    Scanner,
    ScanOptions,
    ScanResult,
)

__all__ = [
    "Scanner",
    "ScanOptions",
    "ScanResult",
    "ScanCancelledError",
    "ScanAlreadyRunningError",
    "ScanPhase",
    "ScanProgress",
    "ScanProgressTracker",
    "ProgressRegistry",
    "ProgressReporter",
    "discover_files",
    "walk_media_files",
    "parse_filename",
]

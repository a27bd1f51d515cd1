"""Database module for showtrack."""

from .connection import Database
from .models import (
    DiscoveredFile,
    EpisodeFileRecord,
    FileAction,
    FileQuality,
    FileStatus,
    MediaMetadata,
    ParsedFilename,
    ScanHistory,
    ScanStatus,
    ScanType,
    ShowRecord,
)
from .schema import create_schema

__all__ = [
    "Database",
    "create_schema",
    "DiscoveredFile",
    "EpisodeFileRecord",
    "FileAction",
    "FileQuality",
    "FileStatus",
    "MediaMetadata",
    "ParsedFilename",
    "ScanHistory",
    "ScanStatus",
    "ScanType",
    "ShowRecord",
]

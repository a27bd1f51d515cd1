"""Data models for the database."""

from dataclasses import dataclass, field
from enum import Enum


class ScanStatus(Enum):
    """Status of a scan history record."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ScanType(Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


class FileStatus(Enum):
    """Review status of an episode file."""

    TO_CHECK = "TO_CHECK"
    DELETED = "DELETED"


class FileQuality(Enum):
    UNVERIFIED = "UNVERIFIED"
    OK = "OK"
    BROKEN = "BROKEN"


class FileAction(Enum):
    NOTHING = "NOTHING"
    REDOWNLOAD = "REDOWNLOAD"
    CONVERT = "CONVERT"
    ORGANIZE = "ORGANIZE"
    REPAIR = "REPAIR"


@dataclass
class ShowRecord:
    """Represents a TV show row."""

    id: int
    title: str
    folder_name: str | None
    year: int | None


@dataclass
class EpisodeFileRecord:
    """Represents the change-detection fields of an episode file row."""

    id: int
    file_size: int
    date_modified: float
    file_exists: bool


@dataclass
class ScanHistory:
    """Represents a scan history record."""

    id: int
    scan_type: str
    status: ScanStatus
    started_at_unix: float
    started_at: int
    completed_at_unix: float | None
    completed_at: int | None
    files_scanned: int
    files_added: int
    files_updated: int
    files_deleted: int
    errors: list[dict] = field(default_factory=list)


@dataclass
class ParsedFilename:
    """Show, season and episode identifiers parsed from a file path."""

    show_name: str
    season_number: int
    episode_number: int
    folder_name: str | None = None
    episode_title: str | None = None
    year: int | None = None


@dataclass
class DiscoveredFile:
    """A media file found on disk during a walk."""

    filepath: str
    filename: str
    file_size: int
    date_modified: float


@dataclass
class MediaMetadata:
    """Stream details extracted from a media file by ffprobe."""

    codec: str | None = None
    resolution: str | None = None
    bitrate: int | None = None
    container: str | None = None
    audio_format: str | None = None
    hdr_type: str | None = None
    duration: int | None = None
    audio_languages: list[str] = field(default_factory=list)
    subtitle_languages: list[str] = field(default_factory=list)

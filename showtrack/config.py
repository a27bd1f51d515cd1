"""Configuration module for showtrack."""

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path


VIDEO_EXTENSIONS = frozenset(
    {
        "mkv",
        "mp4",
        "avi",
        "m4v",
        "mov",
        "wmv",
        "ts",
        "webm",
        "mpg",
        "mpeg",
        "flv",
        "m2ts",
    }
)


class ScanValidationError(Exception):
    """Raised when the scan configuration cannot be used."""


def _get_project_root() -> Path:
    return Path(__file__).parent.parent


@dataclass
class ScannerConfig:
    batch_size: int = 100
    yield_interval: int = 10
    concurrency: int = 4
    progress_interval: int = 100
    video_extensions: frozenset[str] = VIDEO_EXTENSIONS


@dataclass
class MatchPolicy:
    """Tunable rules for matching parsed shows against stored shows."""

    # Match on the raw on-disk folder name before falling back to titles
    use_folder_name: bool = True
    # Among several shows sharing a match key, pick the one with the parsed year
    prefer_year_match: bool = True
    # Refuse a title match when both years are known and differ
    strict_year: bool = False


@dataclass
class Config:
    database_path: Path = field(default_factory=lambda: _get_project_root() / "data" / "library.db")
    media_paths: list[Path] = field(default_factory=list)
    ffprobe_path: str = "ffprobe"
    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    match_policy: MatchPolicy = field(default_factory=MatchPolicy)

    @classmethod
    def from_env(cls) -> "Config":
        config = cls()

        database = os.environ.get("SHOWTRACK_DATABASE")
        if database:
            config.database_path = Path(database)

        media_paths = os.environ.get("SHOWTRACK_MEDIA_PATHS", "")
        config.media_paths = [Path(p) for p in media_paths.split(os.pathsep) if p.strip()]

        config.ffprobe_path = os.environ.get("FFPROBE_PATH", config.ffprobe_path)
        return config


def validate_config(config: Config, skip_ffprobe: bool = False) -> None:
    """Check that media roots are readable and ffprobe is installed."""
    if not config.media_paths:
        raise ScanValidationError("No media paths configured")

    for media_path in config.media_paths:
        if not media_path.exists():
            raise ScanValidationError(f"Media path does not exist: {media_path}")
        if not media_path.is_dir():
            raise ScanValidationError(f"Media path is not a directory: {media_path}")
        if not os.access(media_path, os.R_OK | os.X_OK):
            raise ScanValidationError(f"Media path is not readable: {media_path}")

    if not skip_ffprobe and shutil.which(config.ffprobe_path) is None:
        raise ScanValidationError(
            f"ffprobe is required for metadata extraction but was not found ({config.ffprobe_path}).\n"
            "Install ffmpeg or rerun with metadata extraction skipped."
        )

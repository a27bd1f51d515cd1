"""Stream metadata extraction from video files."""

from showtrack.metadata.ffprobe import (
    FfprobeError,
    FfprobeNotFoundError,
    FfprobeRunner,
    ProbeResult,
)
from showtrack.metadata.parser import parse_ffprobe_output

__all__ = [
    "FfprobeError",
    "FfprobeNotFoundError",
    "FfprobeRunner",
    "ProbeResult",
    "parse_ffprobe_output",
]

"""ffprobe wrapper for stream metadata extraction."""

import asyncio
import json
import logging
import shutil
from dataclasses import dataclass

from showtrack.database.models import MediaMetadata
from showtrack.metadata.parser import parse_ffprobe_output

logger = logging.getLogger(__name__)


class FfprobeNotFoundError(Exception):
    """Raised when ffprobe is not installed."""


class FfprobeError(Exception):
    """Raised when ffprobe cannot read a file."""


@dataclass
class ProbeResult:
    """Result from probing one file."""

    filepath: str
    metadata: MediaMetadata | None
    error: str | None = None


class FfprobeRunner:
    """Wrapper for ffprobe command execution."""

    FFPROBE_ARGS = ["-v", "quiet", "-print_format", "json", "-show_format", "-show_streams"]

    def __init__(self, ffprobe_path: str = "ffprobe", timeout: float = 60.0) -> None:
        self.timeout = timeout
        self.ffprobe_path = self._find_ffprobe(ffprobe_path)

    @staticmethod
    def _find_ffprobe(ffprobe_path: str) -> str:
        path = shutil.which(ffprobe_path)
        if not path:
            raise FfprobeNotFoundError(
                "ffprobe is required but not found.\n"
                "Please install ffmpeg: https://ffmpeg.org/download.html"
            )
        return path

    async def get_version(self) -> str:
        """Return the ffprobe version, e.g. ``6.1.1``."""
        process = await asyncio.create_subprocess_exec(
            self.ffprobe_path,
            "-version",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise FfprobeError(f"ffprobe -version timed out after {self.timeout:.0f}s") from None

        if process.returncode != 0:
            raise FfprobeError(f"ffprobe -version exited with status {process.returncode}")

        output = stdout.decode(errors="replace")
        first_line = output.splitlines()[0] if output else ""
        # "ffprobe version 6.1.1 Copyright ..."
        parts = first_line.split()
        return parts[2] if len(parts) > 2 else first_line

    async def probe(self, filepath: str) -> MediaMetadata:
        """Run ffprobe on one file and parse its stream details."""
        process = await asyncio.create_subprocess_exec(
            self.ffprobe_path,
            *self.FFPROBE_ARGS,
            filepath,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise FfprobeError(f"ffprobe timed out after {self.timeout:.0f}s") from None

        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()
            raise FfprobeError(message or f"ffprobe exited with status {process.returncode}")

        try:
            data = json.loads(stdout) if stdout.strip() else {}
        except json.JSONDecodeError as e:
            raise FfprobeError(f"JSON parse error: {e}") from e

        if not data.get("streams"):
            raise FfprobeError("No streams found")

        return parse_ffprobe_output(data)

    async def probe_many(self, filepaths: list[str], concurrency: int = 4) -> list[ProbeResult]:
        """Probe files with at most `concurrency` ffprobe processes at once."""
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def probe_one(filepath: str) -> ProbeResult:
            async with semaphore:
                try:
                    return ProbeResult(filepath, await self.probe(filepath))
                except (FfprobeError, OSError) as e:
                    logger.debug("ffprobe failed for %s: %s", filepath, e)
                    return ProbeResult(filepath, None, str(e))

        return list(await asyncio.gather(*(probe_one(fp) for fp in filepaths)))

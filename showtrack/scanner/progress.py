"""Live progress tracking for running scans."""

import asyncio
import logging
import sys
import threading
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field, replace
from enum import Enum

logger = logging.getLogger(__name__)

FATAL_PHASE = "fatal"


class ScanPhase(Enum):
    """Phases a scan moves through, in order."""

    DISCOVERING = "discovering"
    PARSING = "parsing"
    ANALYZING = "analyzing"
    SAVING = "saving"
    CLEANUP = "cleanup"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ScanError:
    """A problem with a single file, or a fatal scan error with an empty filepath."""

    filepath: str
    error: str
    phase: str

    def to_dict(self) -> dict:
        return {"filepath": self.filepath, "error": self.error, "phase": self.phase}


@dataclass
class ScanProgress:
    scan_id: int
    phase: ScanPhase = ScanPhase.DISCOVERING
    total_files: int = 0
    processed_files: int = 0
    current_file: str | None = None
    errors: list[ScanError] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "scan_id": self.scan_id,
            "phase": self.phase.value,
            "total_files": self.total_files,
            "processed_files": self.processed_files,
            "current_file": self.current_file,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass
class ScanStats:
    """Counters for a scan run."""

    files_scanned: int = 0
    files_added: int = 0
    files_updated: int = 0
    files_deleted: int = 0
    start_time: float = field(default_factory=time.time)

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time


ProgressCallback = Callable[[ScanProgress], None]


class ScanProgressTracker:
    """Mutable progress of one scan, pushed to subscribers on every change."""

    def __init__(self, scan_id: int) -> None:
        self._progress = ScanProgress(scan_id=scan_id)
        self._subscribers: list[ProgressCallback] = []
        self._streams: set[asyncio.Queue] = set()
        self._closed = False

    @property
    def scan_id(self) -> int:
        return self._progress.scan_id

    @property
    def progress(self) -> ScanProgress:
        """Snapshot of the current state."""
        return replace(self._progress, errors=list(self._progress.errors))

    @property
    def closed(self) -> bool:
        return self._closed

    def set_phase(self, phase: ScanPhase) -> None:
        self._progress.phase = phase
        self._notify()

    def set_total_files(self, total: int) -> None:
        self._progress.total_files = total
        self._notify()

    def increment_processed(self, filepath: str | None = None) -> None:
        self._progress.processed_files += 1
        self._progress.current_file = filepath
        self._notify()

    def set_processed_files(self, count: int, filepath: str | None = None) -> None:
        self._progress.processed_files = count
        self._progress.current_file = filepath
        self._notify()

    def add_error(self, error: ScanError) -> None:
        self._progress.errors.append(error)
        self._notify()

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register a callback, send it the current state, and return an unsubscriber."""
        self._subscribers.append(callback)
        callback(self.progress)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def updates(self) -> AsyncIterator[ScanProgress]:
        """Yield the current state, then every change until the tracker closes."""
        if self._closed:
            yield self.progress
            return

        queue: asyncio.Queue[ScanProgress | None] = asyncio.Queue()

        def push_latest(snapshot: ScanProgress) -> None:
            # A slow consumer only needs the newest state
            while not queue.empty():
                queue.get_nowait()
            queue.put_nowait(snapshot)

        self._streams.add(queue)
        unsubscribe = self.subscribe(push_latest)
        try:
            while True:
                snapshot = await queue.get()
                if snapshot is None:
                    break
                yield snapshot
        finally:
            unsubscribe()
            self._streams.discard(queue)

    def close(self) -> None:
        """Stop publishing; open update streams finish after draining."""
        self._closed = True
        self._subscribers.clear()
        for queue in self._streams:
            queue.put_nowait(None)

    def to_dict(self) -> dict:
        return self._progress.to_dict()

    def _notify(self) -> None:
        if not self._subscribers:
            return

        snapshot = self.progress
        for subscriber in list(self._subscribers):
            try:
                subscriber(snapshot)
            except Exception:
                logger.exception("Progress subscriber failed for scan %d", self.scan_id)


class ProgressRegistry:
    """Process-wide map of live scan ids to their progress trackers."""

    def __init__(self) -> None:
        self._trackers: dict[int, ScanProgressTracker] = {}
        self._lock = threading.Lock()

    def create(self, scan_id: int) -> ScanProgressTracker:
        with self._lock:
            if scan_id in self._trackers:
                raise ValueError(f"Scan {scan_id} already has a progress tracker")
            tracker = ScanProgressTracker(scan_id)
            self._trackers[scan_id] = tracker
            return tracker

    def get(self, scan_id: int) -> ScanProgressTracker | None:
        with self._lock:
            return self._trackers.get(scan_id)

    def remove(self, scan_id: int) -> None:
        with self._lock:
            tracker = self._trackers.pop(scan_id, None)
        if tracker is not None:
            tracker.close()

    def active_scan_ids(self) -> list[int]:
        with self._lock:
            return sorted(self._trackers)

    def __contains__(self, scan_id: object) -> bool:
        with self._lock:
            return scan_id in self._trackers

    def __len__(self) -> int:
        with self._lock:
            return len(self._trackers)


class ProgressReporter:
    """Prints scan progress for a terminal user."""

    def __init__(self, interval: int = 100):
        self.interval = interval
        self._last_report_count = 0
        self._last_phase: ScanPhase | None = None

    def __call__(self, progress: ScanProgress) -> None:
        if progress.phase != self._last_phase:
            self._last_phase = progress.phase
            self._last_report_count = progress.processed_files
            print(f"Phase: {progress.phase.value}", file=sys.stderr)
            return

        if progress.processed_files - self._last_report_count >= self.interval:
            self._print_progress(progress)
            self._last_report_count = progress.processed_files

    def report_completion(self, stats: ScanStats, error_count: int) -> None:
        duration = _format_duration(stats.elapsed_seconds)
        print(f"\nScan complete: {stats.files_scanned:,} files ({duration})")
        print(f"  Added: {stats.files_added:,}")
        print(f"  Updated: {stats.files_updated:,}")
        print(f"  Marked missing: {stats.files_deleted:,}")
        print(f"  Errors: {error_count:,}")

    def report_failure(self, stats: ScanStats, message: str) -> None:
        print(
            f"\nScan failed: {message}\n"
            f"Processed before failure: {stats.files_scanned:,} files"
        )

    def _print_progress(self, progress: ScanProgress) -> None:
        total = f"/{progress.total_files:,}" if progress.total_files else ""
        current = progress.current_file or ""
        print(
            f"[{progress.processed_files:,}{total} files] {progress.phase.value}: {current}",
            file=sys.stderr,
        )


def _format_duration(seconds: float) -> str:
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"

"""Main scanner implementation."""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path

from showtrack.config import Config, ScanValidationError, validate_config
from showtrack.database import Database
from showtrack.database.models import DiscoveredFile, ScanHistory, ScanStatus, ScanType
from showtrack.metadata import FfprobeError, FfprobeRunner
from showtrack.scanner.batch import BatchItem, BatchProcessor
from showtrack.scanner.filesystem import discover_files, yield_point
from showtrack.scanner.hierarchy import mark_missing_files_as_deleted
from showtrack.scanner.history import (
    create_scan_history,
    fail_interrupted_scans,
    finish_scan_history,
    get_recent_scans,
    get_scan_history,
    update_scan_stats,
)
from showtrack.scanner.parser import parse_filename
from showtrack.scanner.progress import (
    FATAL_PHASE,
    ProgressRegistry,
    ScanError,
    ScanPhase,
    ScanProgress,
    ScanProgressTracker,
    ScanStats,
)

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Scan cancelled by user"
UNPARSEABLE_MESSAGE = "Unable to parse filename - could not extract show/season/episode"


class ScanCancelledError(Exception):
    """Raised inside a scan run once cancellation has been requested."""

    def __init__(self) -> None:
        super().__init__(CANCELLED_MESSAGE)


class ScanAlreadyRunningError(Exception):
    """Raised when a scan is started while another is still running."""


@dataclass
class ScanOptions:
    scan_type: ScanType = ScanType.FULL
    skip_metadata: bool = False
    # Overrides ScannerConfig.concurrency for ffprobe processes
    concurrency: int | None = None
    # Overrides Config.media_paths
    media_paths: list[Path] | None = None


@dataclass
class ScanResult:
    success: bool
    scan_id: int
    stats: ScanStats
    errors: list[ScanError] = field(default_factory=list)


class Scanner:
    """Runs library scans as background tasks on the running event loop.

    One scan runs at a time per Scanner. Progress for a live scan is
    available from the registry until the run finishes, after which
    the scan_history row is the only record.
    """

    def __init__(
        self,
        db: Database,
        config: Config | None = None,
        registry: ProgressRegistry | None = None,
    ):
        self.db = db
        self.config = config or Config()
        self.registry = registry or ProgressRegistry()
        self._running: set[int] = set()
        self._cancelled: set[int] = set()
        self._tasks: dict[int, asyncio.Task[ScanResult]] = {}

    async def start_scan(self, options: ScanOptions | None = None) -> int:
        """Record a new scan, launch it in the background and return its id."""
        options = options or ScanOptions()
        if self._running:
            active = ", ".join(str(scan_id) for scan_id in sorted(self._running))
            raise ScanAlreadyRunningError(f"Scan already in progress: {active}")

        scan_id = create_scan_history(self.db.conn, options.scan_type.value)
        self._running.add(scan_id)
        self.registry.create(scan_id)
        logger.info("Started %s scan %d", options.scan_type.value, scan_id)

        self._tasks[scan_id] = asyncio.create_task(
            self.run(scan_id, self.config, options),
            name=f"scan-{scan_id}",
        )
        return scan_id

    async def wait_for_scan(self, scan_id: int) -> ScanResult | None:
        """Wait for a scan started by this Scanner; None if it is unknown."""
        task = self._tasks.get(scan_id)
        if task is None:
            return None
        try:
            return await task
        finally:
            self._tasks.pop(scan_id, None)

    def cancel_scan(self, scan_id: int) -> bool:
        """Request cancellation; False when the scan is not running."""
        if self.registry.get(scan_id) is None:
            return False
        self._cancelled.add(scan_id)
        logger.info("Cancellation requested for scan %d", scan_id)
        return True

    def get_scan_progress(self, scan_id: int) -> ScanProgress | None:
        tracker = self.registry.get(scan_id)
        return tracker.progress if tracker else None

    def get_scan_history(self, scan_id: int) -> ScanHistory | None:
        return get_scan_history(self.db.conn, scan_id)

    def get_recent_scans(self, limit: int = 20) -> list[ScanHistory]:
        return get_recent_scans(self.db.conn, limit)

    def recover_interrupted_scans(self) -> int:
        """Fail scan records left running by an earlier process."""
        if self._running:
            return 0
        return fail_interrupted_scans(self.db.conn)

    async def run(
        self,
        scan_id: int,
        config: Config | None = None,
        options: ScanOptions | None = None,
    ) -> ScanResult:
        """Execute a scan whose history record already exists.

        Never raises for scan failures: the outcome is written to the
        history record and returned. Task cancellation is recorded and
        then propagated.
        """
        config = config or self.config
        options = options or ScanOptions()
        self._running.add(scan_id)
        tracker = self.registry.get(scan_id) or self.registry.create(scan_id)
        stats = ScanStats()
        status = ScanStatus.FAILED

        try:
            if options.media_paths:
                config = replace(config, media_paths=list(options.media_paths))
            validate_config(config, skip_ffprobe=options.skip_metadata)
            await self._scan(scan_id, config, options, tracker, stats)
            status = ScanStatus.COMPLETED
        except ScanCancelledError as e:
            logger.info("Scan %d cancelled", scan_id)
            tracker.add_error(ScanError(filepath="", error=str(e), phase=FATAL_PHASE))
        except ScanValidationError as e:
            logger.error("Scan %d failed validation: %s", scan_id, e)
            tracker.add_error(ScanError(filepath="", error=str(e), phase=FATAL_PHASE))
        except asyncio.CancelledError:
            tracker.add_error(ScanError(filepath="", error=CANCELLED_MESSAGE, phase=FATAL_PHASE))
            raise
        except Exception as e:
            logger.exception("Scan %d failed", scan_id)
            tracker.add_error(ScanError(filepath="", error=str(e) or type(e).__name__, phase=FATAL_PHASE))
        finally:
            errors = tracker.progress.errors
            try:
                finish_scan_history(self.db.conn, scan_id, status, stats, errors)
            finally:
                self.registry.remove(scan_id)
                self._cancelled.discard(scan_id)
                self._running.discard(scan_id)

        logger.info(
            "Scan %d %s: %d scanned, %d added, %d updated, %d deleted, %d errors",
            scan_id,
            status.value,
            stats.files_scanned,
            stats.files_added,
            stats.files_updated,
            stats.files_deleted,
            len(errors),
        )
        return ScanResult(
            success=status is ScanStatus.COMPLETED,
            scan_id=scan_id,
            stats=stats,
            errors=errors,
        )

    def _checkpoint(self, scan_id: int) -> None:
        if scan_id in self._cancelled:
            raise ScanCancelledError()

    async def _scan(
        self,
        scan_id: int,
        config: Config,
        options: ScanOptions,
        tracker: ScanProgressTracker,
        stats: ScanStats,
    ) -> None:
        settings = config.scanner
        roots = [path.absolute() for path in config.media_paths]
        self._checkpoint(scan_id)

        tracker.set_phase(ScanPhase.DISCOVERING)
        files = await self._discover(scan_id, roots, config)
        tracker.set_total_files(len(files))
        logger.info("Scan %d discovered %d media files", scan_id, len(files))

        processor = BatchProcessor(self.db, config.match_policy)
        processor.initialize()

        tracker.set_phase(ScanPhase.PARSING)
        items: list[BatchItem] = []
        skipped = 0
        for index, file in enumerate(files, 1):
            self._checkpoint(scan_id)

            if options.scan_type is ScanType.INCREMENTAL and processor.is_unchanged(file):
                skipped += 1
            else:
                parsed = parse_filename(file.filepath)
                if parsed is None:
                    tracker.add_error(
                        ScanError(filepath=file.filepath, error=UNPARSEABLE_MESSAGE, phase=ScanPhase.PARSING.value)
                    )
                else:
                    items.append(BatchItem(parsed=parsed, file=file))

            if index % settings.yield_interval == 0:
                await yield_point()

        if skipped:
            logger.info("Scan %d skipped %d unchanged files", scan_id, skipped)
            stats.files_scanned += skipped
        await yield_point()

        if not options.skip_metadata:
            tracker.set_phase(ScanPhase.ANALYZING)
            await self._analyze(scan_id, items, config, options, tracker)

        tracker.set_phase(ScanPhase.SAVING)
        await self._save(scan_id, items, processor, settings.batch_size, tracker, stats, skipped)

        tracker.set_phase(ScanPhase.CLEANUP)
        self._checkpoint(scan_id)
        seen_paths = {file.filepath for file in files}
        stats.files_deleted = mark_missing_files_as_deleted(self.db.conn, seen_paths, roots)

        tracker.set_phase(ScanPhase.COMPLETE)

    async def _discover(self, scan_id: int, roots: list[Path], config: Config) -> list[DiscoveredFile]:
        settings = config.scanner
        files: list[DiscoveredFile] = []
        seen: set[str] = set()

        for root in roots:
            async for file in discover_files(root, settings.video_extensions, settings.yield_interval):
                self._checkpoint(scan_id)
                # Overlapping roots report the same file twice
                if file.filepath in seen:
                    continue
                seen.add(file.filepath)
                files.append(file)

        return files

    async def _analyze(
        self,
        scan_id: int,
        items: list[BatchItem],
        config: Config,
        options: ScanOptions,
        tracker: ScanProgressTracker,
    ) -> None:
        runner = FfprobeRunner(config.ffprobe_path)
        concurrency = options.concurrency or config.scanner.concurrency
        chunk_size = config.scanner.batch_size
        try:
            version = await runner.get_version()
        except (FfprobeError, OSError) as e:
            logger.warning("Could not read ffprobe version: %s", e)
            version = "unknown"
        logger.debug("Probing %d files with ffprobe %s", len(items), version)

        processed = 0
        tracker.set_processed_files(0)
        for i in range(0, len(items), chunk_size):
            self._checkpoint(scan_id)
            chunk = items[i : i + chunk_size]

            results = await runner.probe_many([item.file.filepath for item in chunk], concurrency)
            for item, result in zip(chunk, results):
                if result.metadata is not None:
                    item.metadata = result.metadata
                else:
                    tracker.add_error(
                        ScanError(
                            filepath=item.file.filepath,
                            error=result.error or "ffprobe failed",
                            phase=ScanPhase.ANALYZING.value,
                        )
                    )

            processed += len(chunk)
            tracker.set_processed_files(processed, chunk[-1].file.filepath)

    async def _save(
        self,
        scan_id: int,
        items: list[BatchItem],
        processor: BatchProcessor,
        batch_size: int,
        tracker: ScanProgressTracker,
        stats: ScanStats,
        already_processed: int,
    ) -> None:
        processed = already_processed
        tracker.set_processed_files(processed)

        for i in range(0, len(items), batch_size):
            self._checkpoint(scan_id)
            batch = items[i : i + batch_size]
            last_file = batch[-1].file.filepath

            try:
                result = processor.process_batch(batch)
            except Exception as e:
                logger.error("Failed to save batch of %d files ending at %s: %s", len(batch), last_file, e)
                for item in batch:
                    tracker.add_error(
                        ScanError(filepath=item.file.filepath, error=str(e), phase=ScanPhase.SAVING.value)
                    )
            else:
                stats.files_added += result.files_added
                stats.files_updated += result.files_updated
                stats.files_scanned += len(batch)
                update_scan_stats(self.db.conn, scan_id, stats)

            processed += len(batch)
            tracker.set_processed_files(processed, last_file)
            await yield_point()

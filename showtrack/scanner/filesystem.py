"""Filesystem traversal for discovering media files."""

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Collection, Iterator
from pathlib import Path

from showtrack.database.models import DiscoveredFile

logger = logging.getLogger(__name__)


async def yield_point() -> None:
    """Hand control back to the event loop."""
    await asyncio.sleep(0)


def get_extension(filename: str) -> str | None:
    dot_index = filename.rfind(".")

    if dot_index <= 0 or dot_index == len(filename) - 1:
        return None

    return filename[dot_index + 1 :].lower()


def is_media_file(filename: str, extensions: Collection[str]) -> bool:
    extension = get_extension(filename)
    return extension is not None and extension in extensions


async def discover_files(
    root: Path,
    extensions: Collection[str],
    yield_interval: int = 10,
) -> AsyncIterator[DiscoveredFile]:
    """Yield media files under root in the same order as walk_media_files.

    Each directory listing runs in the default executor. Directories and
    media files both count toward the yield_interval cadence, so trees
    without media still hand control back to the loop.
    """
    loop = asyncio.get_running_loop()
    count = 0
    pending = [root.absolute()]

    while pending:
        directory = pending.pop()
        files, subdirs = await loop.run_in_executor(None, _scan_directory, directory, extensions)
        count += 1
        if count % yield_interval == 0:
            await yield_point()

        for discovered in files:
            yield discovered
            count += 1
            if count % yield_interval == 0:
                await yield_point()

        # Reversed so the alphabetically first subdirectory is walked next
        pending.extend(reversed(subdirs))


def walk_media_files(root: Path, extensions: Collection[str]) -> Iterator[DiscoveredFile]:
    yield from _walk_recursive(root.absolute(), extensions)


def _walk_recursive(current_dir: Path, extensions: Collection[str]) -> Iterator[DiscoveredFile]:
    files, subdirs = _scan_directory(current_dir, extensions)

    yield from files

    for subdir in subdirs:
        yield from _walk_recursive(subdir, extensions)


def _scan_directory(
    directory: Path,
    extensions: Collection[str],
) -> tuple[list[DiscoveredFile], list[Path]]:
    files: list[DiscoveredFile] = []
    subdirs: list[Path] = []

    try:
        with os.scandir(directory) as entries:
            for entry in sorted(entries, key=lambda e: e.name):
                if _is_subdirectory(entry):
                    subdirs.append(Path(entry.path))
                    continue
                discovered = _process_entry(entry, extensions)
                if discovered:
                    files.append(discovered)
    except PermissionError:
        logger.warning("Permission denied scanning directory: %s", directory)
    except OSError as e:
        logger.error("Error scanning directory %s: %s", directory, e)

    return files, subdirs


def _is_subdirectory(entry: os.DirEntry) -> bool:
    try:
        return entry.is_dir(follow_symlinks=False)
    except OSError:
        return False


def _process_entry(entry: os.DirEntry, extensions: Collection[str]) -> DiscoveredFile | None:
    try:
        if entry.is_symlink():
            return None

        if not entry.is_file(follow_symlinks=False):
            return None

        if not is_media_file(entry.name, extensions):
            return None

        stat_result = entry.stat(follow_symlinks=False)

        return DiscoveredFile(
            filepath=entry.path,
            filename=entry.name,
            file_size=stat_result.st_size,
            date_modified=stat_result.st_mtime,
        )

    except PermissionError:
        logger.warning("Permission denied: %s", entry.path)
        return None
    except FileNotFoundError:
        logger.warning("File disappeared during scan: %s", entry.path)
        return None
    except OSError as e:
        logger.error("Error processing %s: %s", entry.path, e)
        return None

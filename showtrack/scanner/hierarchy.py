"""Show, season, episode and file persistence for the scanner."""

import json
import logging
import os
import sqlite3
import time
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from showtrack.config import MatchPolicy
from showtrack.database.models import (
    DiscoveredFile,
    EpisodeFileRecord,
    FileAction,
    FileQuality,
    FileStatus,
    MediaMetadata,
    ParsedFilename,
    ShowRecord,
)
from showtrack.scanner.parser import parse_filename, show_name_match_key

logger = logging.getLogger(__name__)

UpsertOutcome = Literal["created", "updated", "unchanged"]

# SQLite caps the number of bound parameters per statement
_MAX_PARAMS = 500

_METADATA_COLUMNS = (
    "codec",
    "resolution",
    "bitrate",
    "container",
    "audio_format",
    "hdr_type",
    "duration",
    "audio_languages",
    "subtitle_languages",
    "metadata_source",
)


@dataclass(frozen=True)
class HierarchyIds:
    show_id: int
    season_id: int
    episode_id: int


def select_show(
    parsed: ParsedFilename,
    by_folder_name: Mapping[str, ShowRecord],
    by_match_key: Mapping[str, Sequence[ShowRecord]],
    policy: MatchPolicy,
) -> ShowRecord | None:
    """Pick the stored show a parsed file belongs to, if any.

    A show whose recorded folder name equals the parsed folder wins outright.
    Otherwise shows are compared by match key; when several share the key and
    the parse carries a year, the show with that exact year is preferred.
    """
    if policy.use_folder_name and parsed.folder_name:
        show = by_folder_name.get(parsed.folder_name)
        if show is not None:
            return show

    candidates = list(by_match_key.get(show_name_match_key(parsed.show_name), ()))

    if policy.strict_year and parsed.year is not None:
        candidates = [s for s in candidates if s.year is None or s.year == parsed.year]

    if not candidates:
        return None

    if len(candidates) > 1 and parsed.year is not None and policy.prefer_year_match:
        for show in candidates:
            if show.year == parsed.year:
                return show

    return candidates[0]


def show_from_row(row: sqlite3.Row) -> ShowRecord:
    return ShowRecord(
        id=row["id"],
        title=row["title"],
        folder_name=row["folder_name"],
        year=row["year"],
    )


def load_shows(conn: sqlite3.Connection) -> list[ShowRecord]:
    rows = conn.execute("SELECT id, title, folder_name, year FROM tv_shows ORDER BY id").fetchall()
    return [show_from_row(row) for row in rows]


def insert_show(conn: sqlite3.Connection, parsed: ParsedFilename) -> ShowRecord:
    now = time.time()
    cursor = conn.execute(
        """
        INSERT INTO tv_shows
        (title, folder_name, year, created_at_unix, created_at, updated_at_unix, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (parsed.show_name, parsed.folder_name, parsed.year, now, int(now), now, int(now)),
    )
    assert cursor.lastrowid is not None
    logger.info("Created show %r (year=%s, folder=%r)", parsed.show_name, parsed.year, parsed.folder_name)
    return ShowRecord(
        id=cursor.lastrowid,
        title=parsed.show_name,
        folder_name=parsed.folder_name,
        year=parsed.year,
    )


def backfill_show(conn: sqlite3.Connection, show: ShowRecord, parsed: ParsedFilename) -> ShowRecord:
    """Fill a show's missing year and folder name from a parse; never overwrite."""
    year = show.year if show.year is not None else parsed.year
    folder_name = show.folder_name if show.folder_name is not None else parsed.folder_name

    if year == show.year and folder_name == show.folder_name:
        return show

    now = time.time()
    conn.execute(
        """
        UPDATE tv_shows
        SET year = ?, folder_name = ?, updated_at_unix = ?, updated_at = ?
        WHERE id = ?
        """,
        (year, folder_name, now, int(now), show.id),
    )
    return ShowRecord(id=show.id, title=show.title, folder_name=folder_name, year=year)


def upsert_season(conn: sqlite3.Connection, show_id: int, season_number: int) -> int:
    now = time.time()
    conn.execute(
        """
        INSERT INTO seasons (tv_show_id, season_number, created_at_unix, created_at)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(tv_show_id, season_number) DO NOTHING
        """,
        (show_id, season_number, now, int(now)),
    )
    row = conn.execute(
        "SELECT id FROM seasons WHERE tv_show_id = ? AND season_number = ?",
        (show_id, season_number),
    ).fetchone()
    return row["id"]


def upsert_episode(
    conn: sqlite3.Connection,
    season_id: int,
    episode_number: int,
    title: str | None,
) -> int:
    now = time.time()
    conn.execute(
        """
        INSERT INTO episodes (season_id, episode_number, title, created_at_unix, created_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(season_id, episode_number) DO UPDATE
        SET title = COALESCE(NULLIF(excluded.title, ''), episodes.title)
        """,
        (season_id, episode_number, title, now, int(now)),
    )
    row = conn.execute(
        "SELECT id FROM episodes WHERE season_id = ? AND episode_number = ?",
        (season_id, episode_number),
    ).fetchone()
    return row["id"]


def update_episode_title(conn: sqlite3.Connection, episode_id: int, title: str) -> None:
    conn.execute(
        "UPDATE episodes SET title = ? WHERE id = ? AND title IS NOT ?",
        (title, episode_id, title),
    )


def find_or_create_hierarchy(
    conn: sqlite3.Connection,
    parsed: ParsedFilename,
    policy: MatchPolicy | None = None,
) -> HierarchyIds:
    """Resolve the show, season and episode of a parse, creating missing rows.

    Queries the store directly; batch scans use BatchProcessor instead.
    """
    policy = policy or MatchPolicy()
    shows = load_shows(conn)

    by_folder_name = {s.folder_name: s for s in shows if s.folder_name}
    by_match_key: dict[str, list[ShowRecord]] = {}
    for show in shows:
        by_match_key.setdefault(show_name_match_key(show.title), []).append(show)

    show = select_show(parsed, by_folder_name, by_match_key, policy)
    if show is None:
        show = insert_show(conn, parsed)
    else:
        show = backfill_show(conn, show, parsed)

    season_id = upsert_season(conn, show.id, parsed.season_number)
    episode_id = upsert_episode(conn, season_id, parsed.episode_number, parsed.episode_title)

    return HierarchyIds(show_id=show.id, season_id=season_id, episode_id=episode_id)


def file_has_changed(existing: EpisodeFileRecord, file: DiscoveredFile) -> bool:
    return (
        existing.file_size != file.file_size
        or existing.date_modified != file.date_modified
        or not existing.file_exists
    )


def _file_values(episode_id: int, file: DiscoveredFile, now: float) -> dict:
    return {
        "episode_id": episode_id,
        "filepath": file.filepath,
        "filename": file.filename,
        "file_size": file.file_size,
        "date_modified_unix": file.date_modified,
        "date_modified": int(file.date_modified),
        "status": FileStatus.TO_CHECK.value,
        "quality": FileQuality.UNVERIFIED.value,
        "action": FileAction.NOTHING.value,
        "now_unix": now,
        "now": int(now),
    }


def _metadata_values(metadata: MediaMetadata) -> dict:
    return {
        "codec": metadata.codec,
        "resolution": metadata.resolution,
        "bitrate": metadata.bitrate,
        "container": metadata.container,
        "audio_format": metadata.audio_format,
        "hdr_type": metadata.hdr_type,
        "duration": metadata.duration,
        "audio_languages": json.dumps(metadata.audio_languages),
        "subtitle_languages": json.dumps(metadata.subtitle_languages),
        "metadata_source": "ffprobe",
    }


def insert_episode_file(
    conn: sqlite3.Connection,
    episode_id: int,
    file: DiscoveredFile,
    metadata: MediaMetadata | None = None,
) -> int:
    values = _file_values(episode_id, file, time.time())
    if metadata is not None:
        values.update(_metadata_values(metadata))
    else:
        values.update(dict.fromkeys(_METADATA_COLUMNS))

    cursor = conn.execute(
        """
        INSERT INTO episode_files (
            episode_id, filepath, filename, file_size,
            date_modified_unix, date_modified, file_exists,
            status, quality, action,
            codec, resolution, bitrate, container, audio_format, hdr_type, duration,
            audio_languages, subtitle_languages, metadata_source,
            created_at_unix, created_at, updated_at_unix, updated_at
        ) VALUES (
            :episode_id, :filepath, :filename, :file_size,
            :date_modified_unix, :date_modified, TRUE,
            :status, :quality, :action,
            :codec, :resolution, :bitrate, :container, :audio_format, :hdr_type, :duration,
            :audio_languages, :subtitle_languages, :metadata_source,
            :now_unix, :now, :now_unix, :now
        )
        """,
        values,
    )
    assert cursor.lastrowid is not None
    return cursor.lastrowid


def update_episode_file(
    conn: sqlite3.Connection,
    file_id: int,
    episode_id: int,
    file: DiscoveredFile,
    metadata: MediaMetadata | None = None,
) -> None:
    values = _file_values(episode_id, file, time.time())
    values["id"] = file_id
    conn.execute(
        """
        UPDATE episode_files
        SET episode_id = :episode_id, filename = :filename, file_size = :file_size,
            date_modified_unix = :date_modified_unix, date_modified = :date_modified,
            file_exists = TRUE, status = :status, action = :action,
            updated_at_unix = :now_unix, updated_at = :now
        WHERE id = :id
        """,
        values,
    )

    if metadata is not None:
        metadata_values = _metadata_values(metadata)
        metadata_values["id"] = file_id
        conn.execute(
            """
            UPDATE episode_files
            SET codec = :codec, resolution = :resolution, bitrate = :bitrate,
                container = :container, audio_format = :audio_format, hdr_type = :hdr_type,
                duration = :duration, audio_languages = :audio_languages,
                subtitle_languages = :subtitle_languages, metadata_source = :metadata_source
            WHERE id = :id
            """,
            metadata_values,
        )


def file_record_from_row(row: sqlite3.Row) -> EpisodeFileRecord:
    return EpisodeFileRecord(
        id=row["id"],
        file_size=row["file_size"],
        date_modified=row["date_modified_unix"],
        file_exists=bool(row["file_exists"]),
    )


def upsert_episode_file(
    conn: sqlite3.Connection,
    episode_id: int,
    file: DiscoveredFile,
    metadata: MediaMetadata | None = None,
) -> UpsertOutcome:
    """Create or refresh the row for a file; no write when nothing changed."""
    row = conn.execute(
        """
        SELECT id, file_size, date_modified_unix, file_exists
        FROM episode_files WHERE filepath = ?
        """,
        (file.filepath,),
    ).fetchone()

    if row is None:
        insert_episode_file(conn, episode_id, file, metadata)
        return "created"

    existing = file_record_from_row(row)
    if file_has_changed(existing, file):
        update_episode_file(conn, existing.id, episode_id, file, metadata)
        return "updated"

    return "unchanged"


def mark_missing_files_as_deleted(
    conn: sqlite3.Connection,
    seen_paths: Collection[str],
    roots: Collection[Path] | None = None,
) -> int:
    """Flag every existing file not seen in this scan as gone from disk.

    With roots given, only files under one of those directories are
    considered. Returns the number of files flagged.
    """
    rows = conn.execute("SELECT id, filepath FROM episode_files WHERE file_exists = TRUE").fetchall()

    prefixes = tuple(os.path.join(str(root), "") for root in roots) if roots else None
    missing_ids = [
        row["id"]
        for row in rows
        if row["filepath"] not in seen_paths
        and (prefixes is None or row["filepath"].startswith(prefixes))
    ]

    if not missing_ids:
        return 0

    now = time.time()
    with conn:
        for i in range(0, len(missing_ids), _MAX_PARAMS):
            chunk = missing_ids[i : i + _MAX_PARAMS]
            placeholders = ",".join("?" for _ in chunk)
            conn.execute(
                f"""
                UPDATE episode_files
                SET file_exists = FALSE, status = ?, updated_at_unix = ?, updated_at = ?
                WHERE id IN ({placeholders})
                """,  # noqa: S608
                [FileStatus.DELETED.value, now, int(now), *chunk],
            )

    logger.info("Marked %d missing files as deleted", len(missing_ids))
    return len(missing_ids)


def add_file(conn: sqlite3.Connection, filepath: Path, policy: MatchPolicy | None = None) -> UpsertOutcome | None:
    """Parse and record a single file outside of a scan.

    Returns None when the filename matches no naming convention.
    """
    parsed = parse_filename(filepath)
    if parsed is None:
        logger.warning("Unable to parse filename: %s", filepath)
        return None

    stat_result = filepath.stat()
    file = DiscoveredFile(
        filepath=str(filepath.absolute()),
        filename=filepath.name,
        file_size=stat_result.st_size,
        date_modified=stat_result.st_mtime,
    )

    with conn:
        ids = find_or_create_hierarchy(conn, parsed, policy)
        return upsert_episode_file(conn, ids.episode_id, file)

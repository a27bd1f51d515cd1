"""Scan history persistence."""

import json
import logging
import sqlite3
import time

from showtrack.database.models import ScanHistory, ScanStatus
from showtrack.scanner.progress import FATAL_PHASE, ScanError, ScanStats

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Scan interrupted before completion"


def create_scan_history(conn: sqlite3.Connection, scan_type: str) -> int:
    now = time.time()
    cursor = conn.execute(
        """
        INSERT INTO scan_history (scan_type, status, started_at_unix, started_at)
        VALUES (?, ?, ?, ?)
        """,
        (scan_type, ScanStatus.RUNNING.value, now, int(now)),
    )
    conn.commit()
    assert cursor.lastrowid is not None
    return cursor.lastrowid


def update_scan_stats(conn: sqlite3.Connection, scan_id: int, stats: ScanStats) -> None:
    conn.execute(
        """
        UPDATE scan_history
        SET files_scanned = ?, files_added = ?, files_updated = ?, files_deleted = ?
        WHERE id = ? AND status = ?
        """,
        (
            stats.files_scanned,
            stats.files_added,
            stats.files_updated,
            stats.files_deleted,
            scan_id,
            ScanStatus.RUNNING.value,
        ),
    )
    conn.commit()


def finish_scan_history(
    conn: sqlite3.Connection,
    scan_id: int,
    status: ScanStatus,
    stats: ScanStats,
    errors: list[ScanError],
) -> None:
    """Write final counts and errors and move the record to a terminal status."""
    now = time.time()
    conn.execute(
        """
        UPDATE scan_history
        SET status = ?, completed_at_unix = ?, completed_at = ?,
            files_scanned = ?, files_added = ?, files_updated = ?, files_deleted = ?,
            errors = ?
        WHERE id = ?
        """,
        (
            status.value,
            now,
            int(now),
            stats.files_scanned,
            stats.files_added,
            stats.files_updated,
            stats.files_deleted,
            serialize_errors(errors),
            scan_id,
        ),
    )
    conn.commit()


def fail_interrupted_scans(conn: sqlite3.Connection) -> int:
    """Mark scans left running by a process that exited mid-scan as failed."""
    error = ScanError(filepath="", error=INTERRUPTED_MESSAGE, phase=FATAL_PHASE)
    now = time.time()
    cursor = conn.execute(
        """
        UPDATE scan_history
        SET status = ?, completed_at_unix = ?, completed_at = ?, errors = ?
        WHERE status = ?
        """,
        (
            ScanStatus.FAILED.value,
            now,
            int(now),
            serialize_errors([error]),
            ScanStatus.RUNNING.value,
        ),
    )
    conn.commit()
    if cursor.rowcount:
        logger.warning("Marked %d interrupted scans as failed", cursor.rowcount)
    return cursor.rowcount


def get_scan_history(conn: sqlite3.Connection, scan_id: int) -> ScanHistory | None:
    row = conn.execute("SELECT * FROM scan_history WHERE id = ?", (scan_id,)).fetchone()
    return _history_from_row(row) if row else None


def get_recent_scans(conn: sqlite3.Connection, limit: int = 20) -> list[ScanHistory]:
    rows = conn.execute(
        "SELECT * FROM scan_history ORDER BY started_at_unix DESC, id DESC LIMIT ?",
        (limit,),
    ).fetchall()
    return [_history_from_row(row) for row in rows]


def serialize_errors(errors: list[ScanError]) -> str | None:
    if not errors:
        return None
    return json.dumps([e.to_dict() for e in errors], ensure_ascii=False)


def _history_from_row(row: sqlite3.Row) -> ScanHistory:
    return ScanHistory(
        id=row["id"],
        scan_type=row["scan_type"],
        status=ScanStatus(row["status"]),
        started_at_unix=row["started_at_unix"],
        started_at=row["started_at"],
        completed_at_unix=row["completed_at_unix"],
        completed_at=row["completed_at"],
        files_scanned=row["files_scanned"],
        files_added=row["files_added"],
        files_updated=row["files_updated"],
        files_deleted=row["files_deleted"],
        errors=json.loads(row["errors"]) if row["errors"] else [],
    )

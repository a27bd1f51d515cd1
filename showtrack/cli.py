"""CLI interface for showtrack."""

import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

import click

from showtrack.config import Config
from showtrack.database import Database, ScanType
from showtrack.scanner import ProgressReporter, Scanner, ScanOptions, ScanResult, parse_filename


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = Config.from_env()


@cli.command()
@click.argument("media_paths", nargs=-1, type=click.Path(path_type=Path))
@click.option("--incremental", is_flag=True, help="Skip files whose size and mtime are unchanged")
@click.option("--skip-metadata", is_flag=True, help="Do not run ffprobe on discovered files")
@click.option("--concurrency", type=int, default=None, help="Maximum parallel ffprobe processes")
@click.option("--batch-size", type=int, default=None, help="Files saved per database transaction")
@click.option("--database", type=click.Path(path_type=Path), help="Path to database file")
@click.pass_context
def scan(
    ctx: click.Context,
    media_paths: tuple[Path, ...],
    incremental: bool,
    skip_metadata: bool,
    concurrency: int | None,
    batch_size: int | None,
    database: Path | None,
) -> None:
    """Scan MEDIA_PATHS (or SHOWTRACK_MEDIA_PATHS) for TV episode files."""
    config: Config = ctx.obj["config"]
    db_path = database or config.database_path
    if batch_size is not None:
        config.scanner.batch_size = batch_size

    options = ScanOptions(
        scan_type=ScanType.INCREMENTAL if incremental else ScanType.FULL,
        skip_metadata=skip_metadata,
        concurrency=concurrency,
        media_paths=list(media_paths) or None,
    )
    reporter = ProgressReporter(interval=config.scanner.progress_interval)

    try:
        with Database(db_path) as db:
            result = asyncio.run(_run_scan(Scanner(db, config), options, reporter))
    except KeyboardInterrupt:
        click.echo("\nScan interrupted.", err=True)
        sys.exit(130)

    if not result.success:
        fatal = [e.error for e in result.errors if e.phase == "fatal"]
        reporter.report_failure(result.stats, fatal[-1] if fatal else "unknown error")
        sys.exit(1)

    reporter.report_completion(result.stats, len(result.errors))
    for error in result.errors[:10]:
        click.echo(f"  [{error.phase}] {error.filepath}: {error.error}", err=True)
    if len(result.errors) > 10:
        click.echo(f"  ... and {len(result.errors) - 10:,} more", err=True)


async def _run_scan(scanner: Scanner, options: ScanOptions, reporter: ProgressReporter) -> ScanResult:
    scanner.recover_interrupted_scans()
    scan_id = await scanner.start_scan(options)

    tracker = scanner.registry.get(scan_id)
    if tracker is not None:
        tracker.subscribe(reporter)

    result = await scanner.wait_for_scan(scan_id)
    assert result is not None
    return result


@cli.command()
@click.option("--limit", type=int, default=20, help="Number of scans to show")
@click.option("--database", type=click.Path(path_type=Path), help="Path to database file")
@click.pass_context
def status(ctx: click.Context, limit: int, database: Path | None) -> None:
    """Show recent scan history."""
    config: Config = ctx.obj["config"]
    db_path = database or config.database_path

    if not db_path.exists():
        click.echo("No database found. Run 'showtrack scan' first.")
        return

    with Database(db_path) as db:
        scans = Scanner(db, config).get_recent_scans(limit)

        if not scans:
            click.echo("No scans found.")
            return

        click.echo("\nScan History:")
        click.echo("-" * 88)
        header = "ID".rjust(5) + "  " + "Type".ljust(12) + "Status".ljust(11)
        header += "Scanned".rjust(9) + "Added".rjust(8) + "Updated".rjust(9)
        header += "Missing".rjust(9) + "Errors".rjust(8) + "  " + "Started"
        click.echo(header)
        click.echo("-" * 88)

        for history in scans:
            started = _format_relative_time(history.started_at)
            click.echo(
                f"{history.id:>5}  "
                f"{history.scan_type:<12}"
                f"{history.status.value:<11}"
                f"{history.files_scanned:>9,}"
                f"{history.files_added:>8,}"
                f"{history.files_updated:>9,}"
                f"{history.files_deleted:>9,}"
                f"{len(history.errors):>8,}  "
                f"{started}"
            )

        with_errors = next((h for h in scans if h.errors), None)
        if with_errors is not None:
            click.echo(f"\nErrors from scan {with_errors.id}:")
            for error in with_errors.errors[:5]:
                filepath = _truncate(error.get("filepath") or "-", 50)
                click.echo(f"  [{error.get('phase')}] {filepath}: {error.get('error')}")


@cli.command()
@click.argument("paths", nargs=-1, required=True)
def parse(paths: tuple[str, ...]) -> None:
    """Show how each media path would be cataloged."""
    for path in paths:
        parsed = parse_filename(path)
        if parsed is None:
            click.echo(f"{path}\n  unparseable")
            continue

        show = parsed.show_name
        if parsed.year:
            show += f" ({parsed.year})"
        click.echo(f"{path}\n  {show} S{parsed.season_number:02d}E{parsed.episode_number:02d}")
        if parsed.episode_title:
            click.echo(f"  title: {parsed.episode_title}")
        if parsed.folder_name:
            click.echo(f"  folder: {parsed.folder_name}")


def _format_relative_time(unix_timestamp: int | None) -> str:
    if not unix_timestamp:
        return "unknown"

    now = datetime.now()
    then = datetime.fromtimestamp(unix_timestamp)
    delta = now - then

    if delta.days > 1:
        return f"{delta.days} days ago"
    if delta.days == 1:
        return "yesterday"
    if delta.seconds > 3600:
        hours = delta.seconds // 3600
        return f"{hours}h ago"
    if delta.seconds > 60:
        minutes = delta.seconds // 60
        return f"{minutes}m ago"
    return "just now"


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return "..." + text[-(max_len - 3) :]


def main() -> None:
    """Entry point for the CLI."""
    cli(standalone_mode=True)  # pylint: disable=no-value-for-parameter


if __name__ == "__main__":
    main()

"""Tests for batched persistence."""

from pathlib import Path

import pytest

from showtrack.database import Database
from showtrack.database.models import DiscoveredFile, ParsedFilename
from showtrack.scanner import batch as batch_module
from showtrack.scanner.batch import BatchItem, BatchProcessor, LookupCache


@pytest.fixture
def db(tmp_path: Path):
    with Database(tmp_path / "test.db") as database:
        yield database


def _item(show: str, season: int, episode: int, size: int = 100, title: str | None = None) -> BatchItem:
    filepath = f"/tv/{show}/Season {season:02d}/{show} - S{season:02d}E{episode:02d}.mkv"
    return BatchItem(
        parsed=ParsedFilename(
            show_name=show, season_number=season, episode_number=episode, episode_title=title
        ),
        file=DiscoveredFile(
            filepath=filepath,
            filename=filepath.rsplit("/", 1)[-1],
            file_size=size,
            date_modified=1_700_000_000.0,
        ),
    )


def _count(db: Database, table: str) -> int:
    return db.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


class TestLookupCache:
    """Tests for LookupCache journaling."""

    def test_rollback_restores_previous_values(self):
        cache = LookupCache()
        cache.seasons[(1, 1)] = 10
        cache.commit()

        cache.put(cache.seasons, (1, 1), 11)
        cache.put(cache.seasons, (1, 2), 12)
        cache.rollback()

        assert cache.seasons == {(1, 1): 10}

    def test_commit_keeps_values(self):
        cache = LookupCache()
        cache.put(cache.seasons, (1, 1), 10)
        cache.commit()
        cache.rollback()

        assert cache.seasons == {(1, 1): 10}

    def test_loads_existing_catalog(self, db: Database):
        processor = BatchProcessor(db)
        processor.initialize()
        processor.process_batch([_item("Firefly", 1, 1), _item("Firefly", 1, 2)])

        cache = LookupCache.load(db.conn)

        assert list(cache.shows_by_match_key) == ["firefly"]
        assert len(cache.seasons) == 1
        assert len(cache.episodes) == 2
        assert len(cache.files) == 2


class TestBatchProcessor:
    """Tests for BatchProcessor class."""

    def test_requires_initialize(self, db: Database):
        with pytest.raises(RuntimeError):
            BatchProcessor(db).process_batch([_item("Firefly", 1, 1)])

    def test_creates_hierarchy_once(self, db: Database):
        processor = BatchProcessor(db)
        processor.initialize()

        result = processor.process_batch([_item("Firefly", 1, 1), _item("Firefly", 1, 2), _item("Firefly", 2, 1)])

        assert (result.files_added, result.files_updated, result.files_unchanged) == (3, 0, 0)
        assert _count(db, "tv_shows") == 1
        assert _count(db, "seasons") == 2
        assert _count(db, "episodes") == 3

    def test_reprocessing_is_idempotent(self, db: Database):
        items = [_item("Firefly", 1, 1), _item("Firefly", 1, 2)]
        processor = BatchProcessor(db)
        processor.initialize()
        processor.process_batch(items)

        fresh = BatchProcessor(db)
        fresh.initialize()
        result = fresh.process_batch(items)

        assert (result.files_added, result.files_updated, result.files_unchanged) == (0, 0, 2)
        assert _count(db, "episode_files") == 2

    def test_detects_changed_files(self, db: Database):
        processor = BatchProcessor(db)
        processor.initialize()
        processor.process_batch([_item("Firefly", 1, 1)])

        result = processor.process_batch([_item("Firefly", 1, 1, size=200)])

        assert result.files_updated == 1
        assert processor.is_unchanged(_item("Firefly", 1, 1, size=200).file)
        assert not processor.is_unchanged(_item("Firefly", 1, 1, size=300).file)

    def test_updates_episode_title(self, db: Database):
        processor = BatchProcessor(db)
        processor.initialize()
        processor.process_batch([_item("Firefly", 1, 1)])
        processor.process_batch([_item("Firefly", 1, 1, title="Serenity")])

        assert db.conn.execute("SELECT title FROM episodes").fetchone()["title"] == "Serenity"

    def test_failed_batch_leaves_no_trace(self, db: Database, monkeypatch):
        processor = BatchProcessor(db)
        processor.initialize()
        processor.process_batch([_item("Firefly", 1, 1)])

        original_insert = batch_module.insert_episode_file

        def failing_insert(conn, episode_id, file, metadata=None):
            if "S01E02" in file.filepath:
                raise RuntimeError("disk full")
            return original_insert(conn, episode_id, file, metadata)

        monkeypatch.setattr(batch_module, "insert_episode_file", failing_insert)

        with pytest.raises(RuntimeError, match="disk full"):
            processor.process_batch([_item("Castle", 1, 1), _item("Castle", 1, 2)])

        assert _count(db, "tv_shows") == 1
        assert _count(db, "episode_files") == 1
        assert "castle" not in processor.cache.shows_by_match_key

        result = processor.process_batch([_item("Castle", 1, 1)])

        assert result.files_added == 1
        assert _count(db, "tv_shows") == 2

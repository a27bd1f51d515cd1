"""Batched persistence of parsed files using per-scan lookup caches."""

import logging
import sqlite3
from collections.abc import Hashable, MutableMapping
from dataclasses import dataclass, field
from typing import Any

from showtrack.config import MatchPolicy
from showtrack.database import Database
from showtrack.database.models import (
    DiscoveredFile,
    EpisodeFileRecord,
    MediaMetadata,
    ParsedFilename,
    ShowRecord,
)
from showtrack.scanner.hierarchy import (
    backfill_show,
    file_has_changed,
    file_record_from_row,
    insert_episode_file,
    insert_show,
    load_shows,
    select_show,
    update_episode_file,
    update_episode_title,
    upsert_episode,
    upsert_season,
)
from showtrack.scanner.parser import show_name_match_key

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class BatchItem:
    parsed: ParsedFilename
    file: DiscoveredFile
    metadata: MediaMetadata | None = None


@dataclass
class BatchResult:
    files_added: int = 0
    files_updated: int = 0
    files_unchanged: int = 0


@dataclass
class EpisodeEntry:
    id: int
    title: str | None


@dataclass
class LookupCache:
    """In-memory index of the catalog, owned by a single scan run.

    Writes made through put() are journaled so that a batch whose
    transaction rolls back can drop its cache changes too.
    """

    shows_by_match_key: dict[str, list[ShowRecord]] = field(default_factory=dict)
    shows_by_folder_name: dict[str, ShowRecord] = field(default_factory=dict)
    seasons: dict[tuple[int, int], int] = field(default_factory=dict)
    episodes: dict[tuple[int, int], EpisodeEntry] = field(default_factory=dict)
    files: dict[str, EpisodeFileRecord] = field(default_factory=dict)
    _journal: list[tuple[MutableMapping, Hashable, Any]] = field(default_factory=list)

    @classmethod
    def load(cls, conn: sqlite3.Connection) -> "LookupCache":
        cache = cls()

        for show in load_shows(conn):
            cache.shows_by_match_key.setdefault(show_name_match_key(show.title), []).append(show)
            if show.folder_name:
                cache.shows_by_folder_name.setdefault(show.folder_name, show)

        for row in conn.execute("SELECT id, tv_show_id, season_number FROM seasons"):
            cache.seasons[(row["tv_show_id"], row["season_number"])] = row["id"]

        for row in conn.execute("SELECT id, season_id, episode_number, title FROM episodes"):
            cache.episodes[(row["season_id"], row["episode_number"])] = EpisodeEntry(
                id=row["id"], title=row["title"]
            )

        for row in conn.execute(
            "SELECT id, filepath, file_size, date_modified_unix, file_exists FROM episode_files"
        ):
            cache.files[row["filepath"]] = file_record_from_row(row)

        logger.debug(
            "Loaded lookup cache: %d shows, %d seasons, %d episodes, %d files",
            sum(len(shows) for shows in cache.shows_by_match_key.values()),
            len(cache.seasons),
            len(cache.episodes),
            len(cache.files),
        )
        return cache

    def put(self, mapping: MutableMapping, key: Hashable, value: Any) -> None:
        self._journal.append((mapping, key, mapping.get(key, _MISSING)))
        mapping[key] = value

    def store_show(self, show: ShowRecord) -> None:
        key = show_name_match_key(show.title)
        shows = list(self.shows_by_match_key.get(key, []))
        for i, existing in enumerate(shows):
            if existing.id == show.id:
                shows[i] = show
                break
        else:
            shows.append(show)
        self.put(self.shows_by_match_key, key, shows)
        if show.folder_name:
            self.put(self.shows_by_folder_name, show.folder_name, show)

    def commit(self) -> None:
        self._journal.clear()

    def rollback(self) -> None:
        for mapping, key, previous in reversed(self._journal):
            if previous is _MISSING:
                mapping.pop(key, None)
            else:
                mapping[key] = previous
        self._journal.clear()


class BatchProcessor:
    """Applies batches of parsed files to the catalog, one transaction per batch."""

    def __init__(self, db: Database, policy: MatchPolicy | None = None) -> None:
        self.db = db
        self.policy = policy or MatchPolicy()
        self._cache: LookupCache | None = None

    @property
    def cache(self) -> LookupCache:
        if self._cache is None:
            raise RuntimeError("BatchProcessor.initialize() must be called first")
        return self._cache

    def initialize(self) -> None:
        """Load existing shows, seasons, episodes and files into memory once."""
        if self._cache is None:
            self._cache = LookupCache.load(self.db.conn)

    def is_unchanged(self, file: DiscoveredFile) -> bool:
        existing = self.cache.files.get(file.filepath)
        return existing is not None and not file_has_changed(existing, file)

    def process_batch(self, items: list[BatchItem]) -> BatchResult:
        """Apply a batch atomically; on error nothing from the batch is kept."""
        result = BatchResult()
        cache = self.cache

        try:
            with self.db.transaction() as conn:
                for item in items:
                    outcome = self._process_item(conn, cache, item)
                    if outcome == "created":
                        result.files_added += 1
                    elif outcome == "updated":
                        result.files_updated += 1
                    else:
                        result.files_unchanged += 1
        except Exception:
            cache.rollback()
            raise

        cache.commit()
        return result

    def _process_item(self, conn: sqlite3.Connection, cache: LookupCache, item: BatchItem) -> str:
        parsed, file = item.parsed, item.file

        show = select_show(parsed, cache.shows_by_folder_name, cache.shows_by_match_key, self.policy)
        if show is None:
            show = insert_show(conn, parsed)
            cache.store_show(show)
        else:
            updated = backfill_show(conn, show, parsed)
            if updated is not show:
                cache.store_show(updated)
                show = updated

        season_key = (show.id, parsed.season_number)
        season_id = cache.seasons.get(season_key)
        if season_id is None:
            season_id = upsert_season(conn, show.id, parsed.season_number)
            cache.put(cache.seasons, season_key, season_id)

        episode_key = (season_id, parsed.episode_number)
        episode = cache.episodes.get(episode_key)
        if episode is None:
            episode_id = upsert_episode(conn, season_id, parsed.episode_number, parsed.episode_title)
            cache.put(cache.episodes, episode_key, EpisodeEntry(episode_id, parsed.episode_title))
        else:
            episode_id = episode.id
            if parsed.episode_title and parsed.episode_title != episode.title:
                update_episode_title(conn, episode_id, parsed.episode_title)
                cache.put(cache.episodes, episode_key, EpisodeEntry(episode_id, parsed.episode_title))

        existing = cache.files.get(file.filepath)
        if existing is None:
            file_id = insert_episode_file(conn, episode_id, file, item.metadata)
            cache.put(cache.files, file.filepath, _record_for(file_id, file))
            return "created"

        if file_has_changed(existing, file):
            update_episode_file(conn, existing.id, episode_id, file, item.metadata)
            cache.put(cache.files, file.filepath, _record_for(existing.id, file))
            return "updated"

        return "unchanged"


def _record_for(file_id: int, file: DiscoveredFile) -> EpisodeFileRecord:
    return EpisodeFileRecord(
        id=file_id,
        file_size=file.file_size,
        date_modified=file.date_modified,
        file_exists=True,
    )

"""Database schema definition."""

import sqlite3

SCHEMA_SQL = """
-- Show hierarchy
CREATE TABLE IF NOT EXISTS tv_shows (
    id INTEGER PRIMARY KEY,
    title TEXT NOT NULL,
    folder_name TEXT,
    year INTEGER,
    created_at_unix REAL NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at_unix REAL NOT NULL,
    updated_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS seasons (
    id INTEGER PRIMARY KEY,
    tv_show_id INTEGER NOT NULL REFERENCES tv_shows(id) ON DELETE CASCADE,
    season_number INTEGER NOT NULL CHECK (season_number >= 0),
    created_at_unix REAL NOT NULL,
    created_at INTEGER NOT NULL,
    UNIQUE(tv_show_id, season_number)
);

CREATE TABLE IF NOT EXISTS episodes (
    id INTEGER PRIMARY KEY,
    season_id INTEGER NOT NULL REFERENCES seasons(id) ON DELETE CASCADE,
    episode_number INTEGER NOT NULL CHECK (episode_number >= 1),
    title TEXT,
    created_at_unix REAL NOT NULL,
    created_at INTEGER NOT NULL,
    UNIQUE(season_id, episode_number)
);

-- Files on disk
CREATE TABLE IF NOT EXISTS episode_files (
    id INTEGER PRIMARY KEY,
    episode_id INTEGER NOT NULL REFERENCES episodes(id) ON DELETE CASCADE,
    filepath TEXT NOT NULL UNIQUE,
    filename TEXT NOT NULL,
    file_size INTEGER NOT NULL,
    date_modified_unix REAL NOT NULL,
    date_modified INTEGER NOT NULL,
    file_exists BOOLEAN NOT NULL DEFAULT TRUE,
    status TEXT NOT NULL DEFAULT 'TO_CHECK',
    quality TEXT NOT NULL DEFAULT 'UNVERIFIED',
    action TEXT NOT NULL DEFAULT 'NOTHING',

    -- Probed media details
    codec TEXT,
    resolution TEXT,
    bitrate INTEGER,
    container TEXT,
    audio_format TEXT,
    hdr_type TEXT,
    duration INTEGER,
    audio_languages TEXT,
    subtitle_languages TEXT,
    metadata_source TEXT,

    created_at_unix REAL NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at_unix REAL NOT NULL,
    updated_at INTEGER NOT NULL
);

-- One row per scan invocation
CREATE TABLE IF NOT EXISTS scan_history (
    id INTEGER PRIMARY KEY,
    scan_type TEXT NOT NULL,
    status TEXT NOT NULL,
    started_at_unix REAL NOT NULL,
    started_at INTEGER NOT NULL,
    completed_at_unix REAL,
    completed_at INTEGER,
    files_scanned INTEGER DEFAULT 0,
    files_added INTEGER DEFAULT 0,
    files_updated INTEGER DEFAULT 0,
    files_deleted INTEGER DEFAULT 0,
    errors TEXT
);

CREATE INDEX IF NOT EXISTS idx_tv_shows_title ON tv_shows(title);
CREATE INDEX IF NOT EXISTS idx_tv_shows_folder_name
    ON tv_shows(folder_name) WHERE folder_name IS NOT NULL;
CREATE INDEX IF NOT EXISTS idx_seasons_show ON seasons(tv_show_id);
CREATE INDEX IF NOT EXISTS idx_episodes_season ON episodes(season_id);
CREATE INDEX IF NOT EXISTS idx_episode_files_episode ON episode_files(episode_id);
CREATE INDEX IF NOT EXISTS idx_episode_files_existing
    ON episode_files(filepath) WHERE file_exists = TRUE;
CREATE INDEX IF NOT EXISTS idx_scan_history_started ON scan_history(started_at_unix);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA_SQL)
    conn.commit()

"""Tests for filesystem utilities."""

import asyncio
import threading
from pathlib import Path

from showtrack.config import VIDEO_EXTENSIONS
from showtrack.scanner import filesystem
from showtrack.scanner.filesystem import (
    discover_files,
    get_extension,
    is_media_file,
    walk_media_files,
)


def _collect(root: Path, yield_interval: int = 10) -> list:
    async def gather():
        return [f async for f in discover_files(root, VIDEO_EXTENSIONS, yield_interval)]

    return asyncio.run(gather())


class TestGetExtension:
    """Tests for get_extension function."""

    def test_simple_extension(self):
        assert get_extension("episode.MKV") == "mkv"

    def test_multiple_dots(self):
        assert get_extension("Show.Name.S01E01.720p.mp4") == "mp4"

    def test_no_extension(self):
        assert get_extension("README") is None

    def test_dotfile_no_extension(self):
        assert get_extension(".hidden") is None

    def test_trailing_dot(self):
        assert get_extension("file.") is None


class TestIsMediaFile:
    """Tests for is_media_file function."""

    def test_accepts_configured_extensions(self):
        assert is_media_file("a.mkv", VIDEO_EXTENSIONS)
        assert is_media_file("a.M2TS", VIDEO_EXTENSIONS)

    def test_rejects_other_files(self):
        assert not is_media_file("a.srt", VIDEO_EXTENSIONS)
        assert not is_media_file("a.nfo", VIDEO_EXTENSIONS)
        assert not is_media_file("mkv", VIDEO_EXTENSIONS)


class TestWalkMediaFiles:
    """Tests for walk_media_files function."""

    def test_walks_empty_directory(self, tmp_path: Path):
        assert list(walk_media_files(tmp_path, VIDEO_EXTENSIONS)) == []

    def test_filters_by_extension(self, tmp_path: Path):
        (tmp_path / "episode.mkv").write_bytes(b"video")
        (tmp_path / "episode.srt").write_text("subs")
        (tmp_path / "poster.jpg").write_bytes(b"img")

        files = list(walk_media_files(tmp_path, VIDEO_EXTENSIONS))

        assert [f.filename for f in files] == ["episode.mkv"]

    def test_reports_size_and_mtime(self, tmp_path: Path):
        video = tmp_path / "episode.mp4"
        video.write_bytes(b"x" * 42)

        [found] = list(walk_media_files(tmp_path, VIDEO_EXTENSIONS))

        assert found.filepath == str(video)
        assert found.file_size == 42
        assert found.date_modified == video.stat().st_mtime

    def test_walks_nested_directories(self, tmp_path: Path):
        season = tmp_path / "Firefly" / "Season 01"
        season.mkdir(parents=True)
        (season / "Firefly - S01E01.mkv").write_bytes(b"v")

        files = list(walk_media_files(tmp_path, VIDEO_EXTENSIONS))

        assert [f.filepath for f in files] == [str(season / "Firefly - S01E01.mkv")]

    def test_files_before_subdirectories_alphabetical(self, tmp_path: Path):
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "nested.mkv").write_bytes(b"v")
        (tmp_path / "zebra.mkv").write_bytes(b"v")
        (tmp_path / "apple.mkv").write_bytes(b"v")

        files = list(walk_media_files(tmp_path, VIDEO_EXTENSIONS))

        assert [f.filename for f in files] == ["apple.mkv", "zebra.mkv", "nested.mkv"]

    def test_skips_symlinks(self, tmp_path: Path):
        real_file = tmp_path / "real.mkv"
        real_file.write_bytes(b"v")
        (tmp_path / "link.mkv").symlink_to(real_file)

        filenames = [f.filename for f in walk_media_files(tmp_path, VIDEO_EXTENSIONS)]

        assert filenames == ["real.mkv"]

    def test_does_not_follow_directory_symlinks(self, tmp_path: Path):
        target = tmp_path / "target"
        target.mkdir()
        (target / "episode.mkv").write_bytes(b"v")
        (tmp_path / "loop").symlink_to(target, target_is_directory=True)

        files = list(walk_media_files(tmp_path, VIDEO_EXTENSIONS))

        assert [f.filepath for f in files] == [str(target / "episode.mkv")]

    def test_missing_root_yields_nothing(self, tmp_path: Path):
        assert list(walk_media_files(tmp_path / "missing", VIDEO_EXTENSIONS)) == []


class TestDiscoverFiles:
    """Tests for the async discover_files generator."""

    def test_yields_same_files_as_walk(self, tmp_path: Path):
        for i in range(25):
            (tmp_path / f"Show - S01E{i + 1:02d}.mkv").write_bytes(b"v")

        discovered = _collect(tmp_path)

        assert discovered == list(walk_media_files(tmp_path, VIDEO_EXTENSIONS))
        assert len(discovered) == 25

    def test_yields_to_event_loop_every_interval(self, tmp_path: Path, monkeypatch):
        for i in range(25):
            (tmp_path / f"Show - S01E{i + 1:02d}.mkv").write_bytes(b"v")

        calls = []

        async def fake_yield_point():
            calls.append(1)

        monkeypatch.setattr(filesystem, "yield_point", fake_yield_point)

        _collect(tmp_path, yield_interval=10)

        # One directory plus 25 files
        assert len(calls) == 2

    def test_yields_while_walking_directories_without_media(self, tmp_path: Path, monkeypatch):
        for i in range(30):
            folder = tmp_path / f"extras-{i:02d}"
            folder.mkdir()
            (folder / "info.nfo").write_text("metadata")
        (tmp_path / "extras-29" / "Show - S01E01.mkv").write_bytes(b"v")

        calls = []

        async def fake_yield_point():
            calls.append(1)

        monkeypatch.setattr(filesystem, "yield_point", fake_yield_point)

        discovered = _collect(tmp_path, yield_interval=10)

        assert [f.filename for f in discovered] == ["Show - S01E01.mkv"]
        assert len(calls) == 3

    def test_lists_directories_off_the_event_loop_thread(self, tmp_path: Path, monkeypatch):
        (tmp_path / "Season 01").mkdir()
        (tmp_path / "Season 01" / "Show - S01E01.mkv").write_bytes(b"v")

        threads = []
        original_scan = filesystem._scan_directory

        def recording_scan(directory, extensions):
            threads.append(threading.get_ident())
            return original_scan(directory, extensions)

        monkeypatch.setattr(filesystem, "_scan_directory", recording_scan)

        discovered = _collect(tmp_path)

        assert len(discovered) == 1
        assert len(threads) == 2
        assert threading.get_ident() not in threads

    def test_walk_order_matches_sync_walk(self, tmp_path: Path):
        for show in ("b-show", "a-show"):
            for season in ("Season 02", "Season 01"):
                folder = tmp_path / show / season
                folder.mkdir(parents=True)
                (folder / f"{show} - {season}.mkv").write_bytes(b"v")
        (tmp_path / "root.mkv").write_bytes(b"v")

        discovered = _collect(tmp_path)

        assert discovered == list(walk_media_files(tmp_path, VIDEO_EXTENSIONS))
        assert [f.filename for f in discovered][:2] == ["root.mkv", "a-show - Season 01.mkv"]

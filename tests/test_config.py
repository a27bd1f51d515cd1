"""Tests for configuration validation."""

from pathlib import Path

import pytest

from showtrack.config import Config, ScanValidationError, validate_config


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_accepts_readable_directory(self, tmp_path: Path):
        validate_config(Config(media_paths=[tmp_path]), skip_ffprobe=True)

    def test_requires_media_paths(self):
        with pytest.raises(ScanValidationError, match="No media paths"):
            validate_config(Config(), skip_ffprobe=True)

    def test_rejects_missing_path(self, tmp_path: Path):
        with pytest.raises(ScanValidationError, match="does not exist"):
            validate_config(Config(media_paths=[tmp_path / "missing"]), skip_ffprobe=True)

    def test_rejects_file(self, tmp_path: Path):
        video = tmp_path / "episode.mkv"
        video.write_bytes(b"v")

        with pytest.raises(ScanValidationError, match="not a directory"):
            validate_config(Config(media_paths=[video]), skip_ffprobe=True)

    def test_requires_ffprobe_unless_skipped(self, tmp_path: Path):
        config = Config(media_paths=[tmp_path], ffprobe_path="definitely-not-ffprobe")

        with pytest.raises(ScanValidationError, match="ffprobe"):
            validate_config(config)
        validate_config(config, skip_ffprobe=True)

"""Tests for filename parsing."""

from pathlib import Path

from showtrack.database.models import ParsedFilename
from showtrack.scanner.parser import (
    extract_episode_number,
    extract_episode_title,
    normalize_show_name,
    parse_filename,
    parse_season_folder,
    show_name_match_key,
)


class TestParseFilename:
    """Tests for parse_filename function."""

    def test_plex_style(self):
        result = parse_filename("/tv/Breaking Bad (2008)/Season 01/Breaking Bad - S01E05 - Gray Matter.mkv")
        assert result == ParsedFilename(
            show_name="Breaking Bad",
            folder_name="Breaking Bad (2008)",
            season_number=1,
            episode_number=5,
            episode_title="Gray Matter",
            year=2008,
        )

    def test_embedded_sxxexx(self):
        result = parse_filename("/downloads/Breaking.Bad.S01E05.Gray.Matter.1080p.mkv")
        assert result == ParsedFilename(
            show_name="Breaking Bad",
            season_number=1,
            episode_number=5,
            episode_title="Gray Matter",
        )

    def test_nxyy(self):
        result = parse_filename("/downloads/Breaking Bad 1x05.mkv")
        assert result == ParsedFilename(show_name="Breaking Bad", season_number=1, episode_number=5)

    def test_specials_folder_is_season_zero(self):
        result = parse_filename("/tv/Firefly (2002)/Specials/Firefly - S00E01 - Serenity Pilot.mkv")
        assert result is not None
        assert result.season_number == 0
        assert result.episode_number == 1
        assert result.episode_title == "Serenity Pilot"

    def test_season_folder_overrides_filename_season(self):
        result = parse_filename("/tv/Firefly/Season 2/Firefly - S01E03.mkv")
        assert result is not None
        assert result.season_number == 2
        assert result.episode_number == 3

    def test_season_folder_with_bare_episode_marker(self):
        result = parse_filename("/tv/Firefly/Season 01/Firefly - E03.mkv")
        assert result is not None
        assert result.show_name == "Firefly"
        assert result.episode_number == 3

    def test_plex_folder_without_year(self):
        result = parse_filename("/tv/Firefly/Season 01/Firefly - S01E01 - Serenity.mkv")
        assert result is not None
        assert result.show_name == "Firefly"
        assert result.folder_name == "Firefly"
        assert result.year is None

    def test_year_in_filename(self):
        result = parse_filename("/downloads/Doctor.Who.2005.S01E01.mkv")
        assert result is not None
        assert result.show_name == "Doctor Who"
        assert result.year == 2005

    def test_parenthesized_year_in_filename(self):
        result = parse_filename("/downloads/Doctor Who (2005) S01E01.mkv")
        assert result is not None
        assert result.show_name == "Doctor Who"
        assert result.year == 2005

    def test_show_from_parent_directory(self):
        result = parse_filename("/tv/Firefly/S01E02.mkv")
        assert result is not None
        assert result.show_name == "Firefly"
        assert result.folder_name == "Firefly"
        assert result.season_number == 1
        assert result.episode_number == 2

    def test_season_folder_at_filesystem_root(self):
        result = parse_filename("/Season 01/Firefly - S01E01.mkv")
        assert result == ParsedFilename(show_name="Firefly", season_number=1, episode_number=1)

    def test_season_folder_at_root_without_show_in_filename(self):
        assert parse_filename("/Season 01/S01E01.mkv") is None

    def test_three_digit_episode(self):
        result = parse_filename("/anime/One Piece - S01E100.mkv")
        assert result is not None
        assert result.episode_number == 100

    def test_accepts_path_objects(self):
        result = parse_filename(Path("/downloads/Firefly.S01E01.mkv"))
        assert result is not None
        assert result.show_name == "Firefly"

    def test_unparseable_returns_none(self):
        assert parse_filename("/movies/Serenity.mkv") is None

    def test_resolution_is_not_nxyy(self):
        assert parse_filename("/downloads/Some Show 1920x1080.mkv") is None

    def test_episode_zero_rejected(self):
        assert parse_filename("/downloads/Firefly.S01E00.mkv") is None

    def test_empty_show_name_rejected(self):
        assert parse_filename("1x05.mkv") is None


class TestParseSeasonFolder:
    """Tests for parse_season_folder function."""

    def test_season_number(self):
        assert parse_season_folder("Season 01") == 1
        assert parse_season_folder("season 10") == 10

    def test_specials(self):
        assert parse_season_folder("Specials") == 0
        assert parse_season_folder("specials") == 0

    def test_other_folder(self):
        assert parse_season_folder("Extras") is None
        assert parse_season_folder("Season One") is None


class TestShowNames:
    """Tests for show name normalization and matching."""

    def test_normalize_separators(self):
        assert normalize_show_name("The.Office_US.") == "The Office US"

    def test_normalize_strips_dashes(self):
        assert normalize_show_name(" - Firefly - ") == "Firefly"

    def test_match_key_ignores_case_and_punctuation(self):
        assert show_name_match_key("Marvel's Agents of S.H.I.E.L.D.") == show_name_match_key(
            "marvels agents of shield"
        )

    def test_match_key_ignores_separators(self):
        assert show_name_match_key("Breaking Bad") == show_name_match_key("breaking-bad!!")

    def test_match_key_distinguishes_titles(self):
        assert show_name_match_key("Firefly") != show_name_match_key("Fireflies")


class TestEpisodeHelpers:
    """Tests for episode number and title extraction."""

    def test_episode_number_priority(self):
        assert extract_episode_number("Show S02E07.mkv") == 7
        assert extract_episode_number("Show - 12 - Title.mkv") == 12
        assert extract_episode_number("Show 3x04.mkv") == 4
        assert extract_episode_number("Show.mkv") is None

    def test_title_rejects_quality_tokens(self):
        assert extract_episode_title("Show - S01E01 - 1080p.mkv") is None
        assert extract_episode_title("Show - S01E01 - WEB-DL.mkv") is None

    def test_title_before_bracket(self):
        assert extract_episode_title("Show - S01E01 - Pilot [1080p].mkv") == "Pilot"

"""Extract show, season and episode identifiers from media file paths.

Naming conventions are tried in priority order, first match wins:

1. Plex-style directories:
   ``TV Shows/Show Name (2020)/Season 01/Show Name - S01E05 - Episode Title.mkv``
   ``TV Shows/Show Name (2020)/Specials/Show Name - S00E01 - Special.mkv``
2. Embedded SxxExx: ``Show.Name.S01E05.Episode.Title.1080p.mkv``
3. NxYY: ``Show Name 1x05.mkv``
"""

import re
from pathlib import PurePath

from showtrack.database.models import ParsedFilename


SPECIALS_PATTERN = re.compile(r"^Specials$", re.IGNORECASE)
SEASON_FOLDER_PATTERN = re.compile(r"^Season\s+(\d+)$", re.IGNORECASE)
SHOW_FOLDER_PATTERN = re.compile(r"^(.+?)(?:\s*\((\d{4})\))?$")
TRAILING_YEAR_PATTERN = re.compile(r"^(.+?)\s*\(?(\d{4})\)?$")
FOLDER_YEAR_SUFFIX = re.compile(r"\s*\(\d{4}\)$")

SXXEXX_PATTERN = re.compile(r"[sS](\d{1,2})[eE](\d{1,3})(?!\d)")
NXYY_PATTERN = re.compile(r"(?<!\d)(\d{1,2})x(\d{1,3})(?!\d)", re.IGNORECASE)

# Episode number patterns for files inside a season folder, in priority order
EPISODE_NUMBER_PATTERNS = [
    re.compile(r"[sS]\d{1,2}[eE](\d{1,3})(?!\d)"),
    re.compile(r"[eE](\d{1,3})(?!\d)"),
    re.compile(r"\s-\s(\d{1,3})\s-\s"),
    re.compile(r"(?<!\d)\d{1,2}x(\d{1,3})(?!\d)", re.IGNORECASE),
]

DASH_TITLE_PATTERN = re.compile(r"[sS]\d{1,2}[eE]\d{1,3}\s*-\s*(.+?)(?:\s*-\s*|\s*\[|\s*$)")
DOT_TITLE_PATTERN = re.compile(
    r"[sS]\d{1,2}[eE]\d{1,3}\.([A-Za-z][A-Za-z0-9.]+?)\.(?:\d{3,4}p|HDTV|WEB|BluRay|x264|x265|HEVC)",
    re.IGNORECASE,
)
QUALITY_TITLE_PATTERN = re.compile(r"^\d{3,4}p$", re.IGNORECASE)
SOURCE_TITLE_PATTERN = re.compile(r"^(HDTV|WEB|BluRay)", re.IGNORECASE)

_EDGE_DASHES = re.compile(r"^[\s\-–—]+|[\s\-–—]+$")
_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9]")
_EXTENSION = re.compile(r"\.[^.]+$")


def normalize_show_name(name: str) -> str:
    """Turn separators into spaces and strip surrounding dashes."""
    name = name.replace(".", " ").replace("_", " ")
    name = _WHITESPACE.sub(" ", name)
    name = _EDGE_DASHES.sub("", name)
    return name.strip()


def show_name_match_key(name: str) -> str:
    """Key for comparing show titles regardless of case and punctuation."""
    return _NON_ALNUM.sub("", name.lower())


def parse_season_folder(folder_name: str) -> int | None:
    """Return the season number of a ``Season NN`` or ``Specials`` folder."""
    if SPECIALS_PATTERN.match(folder_name):
        return 0

    match = SEASON_FOLDER_PATTERN.match(folder_name)
    if match:
        return int(match.group(1))

    return None


def parse_filename(filepath: str | PurePath) -> ParsedFilename | None:
    """Parse a media file path, returning None when no convention matches."""
    path = PurePath(filepath)

    for strategy in (_parse_plex_style, _parse_sxxexx, _parse_nxyy):
        parsed = strategy(path)
        if parsed is not None:
            return parsed if _is_valid(parsed) else None

    return None


def _is_valid(parsed: ParsedFilename) -> bool:
    return bool(parsed.show_name) and parsed.season_number >= 0 and parsed.episode_number >= 1


def _find_season_index(path: PurePath) -> int | None:
    directories = path.parts[:-1]
    for index, part in enumerate(directories):
        if parse_season_folder(part) is not None:
            return index
    return None


def _show_from_folder(path: PurePath) -> tuple[str, int | None, str] | None:
    """Return (show name, year, raw folder) from the folder above the season folder."""
    season_index = _find_season_index(path)
    if season_index is None or season_index < 1:
        return None

    show_dir = path.parts[season_index - 1]
    match = SHOW_FOLDER_PATTERN.match(show_dir)
    if not match:
        return None

    show_name = normalize_show_name(match.group(1))
    # Filesystem roots and punctuation-only folders are not show names
    if not show_name_match_key(show_name):
        return None

    year = int(match.group(2)) if match.group(2) else None
    return show_name, year, show_dir


def _parse_plex_style(path: PurePath) -> ParsedFilename | None:
    season_index = _find_season_index(path)
    if season_index is None:
        return None

    folder_info = _show_from_folder(path)
    if folder_info is None:
        return None

    season_number = parse_season_folder(path.parts[season_index])
    if season_number is None:
        return None

    episode_number = extract_episode_number(path.name)
    if episode_number is None:
        return None

    show_name, year, folder_name = folder_info
    return ParsedFilename(
        show_name=show_name,
        folder_name=folder_name,
        season_number=season_number,
        episode_number=episode_number,
        episode_title=extract_episode_title(path.name),
        year=year,
    )


def _parse_sxxexx(path: PurePath) -> ParsedFilename | None:
    filename = path.name
    match = SXXEXX_PATTERN.search(filename)
    if not match:
        return None

    season_number = int(match.group(1))
    episode_number = int(match.group(2))
    episode_title = extract_episode_title(filename)

    folder_info = _show_from_folder(path)
    if folder_info is not None:
        show_name, year, folder_name = folder_info
        return ParsedFilename(
            show_name=show_name,
            folder_name=folder_name,
            season_number=season_number,
            episode_number=episode_number,
            episode_title=episode_title,
            year=year,
        )

    show_name = normalize_show_name(filename[: match.start()])

    if not show_name:
        parent_dir = path.parent.name
        if not parent_dir or parse_season_folder(parent_dir) is not None:
            return None
        folder_match = SHOW_FOLDER_PATTERN.match(parent_dir)
        year = int(folder_match.group(2)) if folder_match and folder_match.group(2) else None
        return ParsedFilename(
            show_name=normalize_show_name(FOLDER_YEAR_SUFFIX.sub("", parent_dir)),
            folder_name=parent_dir,
            season_number=season_number,
            episode_number=episode_number,
            episode_title=episode_title,
            year=year,
        )

    year_match = TRAILING_YEAR_PATTERN.match(show_name)
    if year_match:
        return ParsedFilename(
            show_name=year_match.group(1).strip(),
            season_number=season_number,
            episode_number=episode_number,
            episode_title=episode_title,
            year=int(year_match.group(2)),
        )

    return ParsedFilename(
        show_name=show_name,
        season_number=season_number,
        episode_number=episode_number,
        episode_title=episode_title,
    )


def _parse_nxyy(path: PurePath) -> ParsedFilename | None:
    filename = path.name
    match = NXYY_PATTERN.search(filename)
    if not match:
        return None

    show_name = normalize_show_name(filename[: match.start()])
    if not show_name:
        return None

    return ParsedFilename(
        show_name=show_name,
        season_number=int(match.group(1)),
        episode_number=int(match.group(2)),
    )


def extract_episode_number(filename: str) -> int | None:
    for pattern in EPISODE_NUMBER_PATTERNS:
        match = pattern.search(filename)
        if match:
            return int(match.group(1))
    return None


def extract_episode_title(filename: str) -> str | None:
    """Best-effort episode title following the SxxExx marker."""
    name = _EXTENSION.sub("", filename)

    dash_match = DASH_TITLE_PATTERN.search(name)
    if dash_match:
        title = dash_match.group(1).strip()
        if title and not QUALITY_TITLE_PATTERN.match(title) and not SOURCE_TITLE_PATTERN.match(title):
            return title

    dot_match = DOT_TITLE_PATTERN.search(name)
    if dot_match:
        return normalize_show_name(dot_match.group(1))

    return None

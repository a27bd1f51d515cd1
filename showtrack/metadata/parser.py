"""Turn ffprobe JSON output into stream details."""

from typing import Any

from showtrack.database.models import MediaMetadata


# Minimum frame height for each resolution label, highest first
RESOLUTION_LABELS = [
    (2000, "2160p"),
    (1000, "1080p"),
    (700, "720p"),
    (470, "480p"),
]

HDR_TRANSFERS = {
    "smpte2084": "HDR10",
    "arib-std-b67": "HLG",
}

DOLBY_VISION_SIDE_DATA = "DOVI configuration record"

# ffprobe reports several demuxer aliases for one container
CONTAINER_NAMES = {
    "matroska,webm": "mkv",
    "mov,mp4,m4a,3gp,3g2,mj2": "mp4",
    "mpegts": "ts",
    "avi": "avi",
    "asf": "wmv",
    "flv": "flv",
    "mpeg": "mpeg",
}


def get_first_value(data: dict, *keys: str) -> Any:
    """Get first non-empty value from a dict by keys."""
    for key in keys:
        value = data.get(key)
        if value not in (None, "", "N/A"):
            return value
    return None


def parse_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def resolution_label(height: int | None) -> str | None:
    if not height:
        return None
    for minimum, label in RESOLUTION_LABELS:
        if height >= minimum:
            return label
    return "SD"


def detect_hdr(video_stream: dict) -> str | None:
    for side_data in video_stream.get("side_data_list") or []:
        if side_data.get("side_data_type") == DOLBY_VISION_SIDE_DATA:
            return "Dolby Vision"
    transfer = video_stream.get("color_transfer")
    return HDR_TRANSFERS.get(transfer) if transfer else None


def container_name(format_name: str | None) -> str | None:
    if not format_name:
        return None
    return CONTAINER_NAMES.get(format_name, format_name.split(",")[0])


def stream_languages(streams: list[dict]) -> list[str]:
    """Distinct stream language tags, in stream order."""
    languages: list[str] = []
    for stream in streams:
        language = (stream.get("tags") or {}).get("language")
        if language and language != "und" and language not in languages:
            languages.append(language)
    return languages


def parse_ffprobe_output(data: dict) -> MediaMetadata:
    streams = data.get("streams") or []
    fmt = data.get("format") or {}

    video = [s for s in streams if s.get("codec_type") == "video" and not _is_cover_art(s)]
    audio = [s for s in streams if s.get("codec_type") == "audio"]
    subtitles = [s for s in streams if s.get("codec_type") == "subtitle"]

    video_stream = video[0] if video else {}
    audio_stream = audio[0] if audio else {}

    return MediaMetadata(
        codec=video_stream.get("codec_name"),
        resolution=resolution_label(parse_int(video_stream.get("height"))),
        bitrate=parse_int(get_first_value(fmt, "bit_rate") or get_first_value(video_stream, "bit_rate")),
        container=container_name(fmt.get("format_name")),
        audio_format=audio_stream.get("codec_name"),
        hdr_type=detect_hdr(video_stream) if video_stream else None,
        duration=parse_int(get_first_value(fmt, "duration") or get_first_value(video_stream, "duration")),
        audio_languages=stream_languages(audio),
        subtitle_languages=stream_languages(subtitles),
    )


def _is_cover_art(stream: dict) -> bool:
    return bool((stream.get("disposition") or {}).get("attached_pic"))

"""
Flattening helpers for catalog columns

Program video info and content ratings are stored as delimited strings.
These functions convert between the stored strings and their values.
"""
import logging
import re
from collections.abc import Sequence

from tvsync.errors import FormatError
from tvsync.services.sync_types import Rating, VideoSourceType


logger = logging.getLogger(__name__)

_RATING_SEPARATOR = re.compile(r"\s*,\s*")

VIDEO_FORMAT_480P = "VIDEO_FORMAT_480P"
VIDEO_FORMAT_576P = "VIDEO_FORMAT_576P"
VIDEO_FORMAT_720P = "VIDEO_FORMAT_720P"
VIDEO_FORMAT_1080P = "VIDEO_FORMAT_1080P"
VIDEO_FORMAT_2160P = "VIDEO_FORMAT_2160P"
VIDEO_FORMAT_4320P = "VIDEO_FORMAT_4320P"

_VIDEO_HEIGHT_TO_FORMAT = {
    480: VIDEO_FORMAT_480P,
    576: VIDEO_FORMAT_576P,
    720: VIDEO_FORMAT_720P,
    1080: VIDEO_FORMAT_1080P,
    2160: VIDEO_FORMAT_2160P,
    4320: VIDEO_FORMAT_4320P,
}


def encode_video_info(source_type: VideoSourceType, url: str) -> str:
    """
    Flatten a program's video source type and URL into one string.

    Args:
        source_type: Playback protocol of the video
        url: Source location of the video

    Returns:
        String of the form ``"<tag>,<url>"``
    """
    return f"{int(source_type)},{url}"


def decode_video_info(value: str) -> tuple[VideoSourceType, str]:
    """
    Parse a string produced by encode_video_info.

    Only the first comma separates the fields, so commas inside the URL survive.

    Raises:
        FormatError: If the delimiter is missing or the tag is unknown
    """
    parts = value.split(",", 1)
    if len(parts) != 2:
        raise FormatError(f"Malformed video info: {value!r}")

    tag, url = parts
    try:
        source_type = VideoSourceType(int(tag))
    except ValueError as exc:
        raise FormatError(f"Unknown video source type {tag!r} in {value!r}") from exc

    return source_type, url


def encode_ratings(ratings: Sequence[Rating] | None) -> str | None:
    """Comma-join flattened ratings, or None when there are none."""
    if not ratings:
        return None
    return ",".join(rating.flatten() for rating in ratings)


def decode_ratings(value: str | None) -> list[Rating] | None:
    """
    Parse a comma-separated rating string.

    Returns:
        Ratings in stored order, or None for an empty value

    Raises:
        UnknownKeyError: If a single rating descriptor is malformed
    """
    if not value:
        return None
    return [Rating.unflatten(piece) for piece in _RATING_SEPARATOR.split(value.strip())]


def video_format_for_height(height: int | None) -> str | None:
    """Map a standard vertical resolution to its video format name."""
    if height is None:
        return None
    video_format = _VIDEO_HEIGHT_TO_FORMAT.get(height)
    if video_format is None:
        logger.debug("No video format for height %s", height)
    return video_format

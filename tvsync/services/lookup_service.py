"""
Channel and Program Lookup Service

Read-only queries against the channel catalog. Store failures on these
paths are logged and degrade to empty results; decoding errors and unknown
display numbers propagate.
"""
from datetime import datetime, timezone
import logging
from collections.abc import Sequence
from typing import Any

from tvsync.errors import QueryFailure, UnknownKeyError
from tvsync.services.catalog_store import CatalogStore
from tvsync.services.codec import decode_ratings, decode_video_info
from tvsync.services.sync_types import Channel, Program

logger = logging.getLogger(__name__)

_CHANNEL_MAP_PROJECTION = ("id", "display_number")


async def list_channels(store: CatalogStore) -> list[Channel]:
    """
    Return every channel in the catalog.

    Returns:
        List of channels, empty when there are none or the query fails
    """
    try:
        rows = await store.query_channels()
    except QueryFailure as exc:
        logger.warning("Unable to get channels: %s", exc, exc_info=True)
        return []

    return [Channel.from_row(row) for row in rows]


async def list_programs(store: CatalogStore, channel_id: int) -> list[Program]:
    """
    Return the programs of a channel in chronological order.

    Ordering comes from the store query.

    Args:
        store: Catalog store
        channel_id: Catalog row ID of the channel

    Returns:
        List of programs, empty when there are none or the query fails

    Raises:
        FormatError: If stored video info is malformed
        UnknownKeyError: If a stored rating cannot be parsed
    """
    try:
        rows = await store.query_programs(channel_id)
    except QueryFailure as exc:
        logger.warning("Unable to get programs for channel %s: %s", channel_id, exc, exc_info=True)
        return []

    return [_program_from_row(row) for row in rows]


async def get_current_program(
    store: CatalogStore,
    channel_id: int,
    now: datetime | None = None,
) -> Program | None:
    """
    Return the program airing at `now` on a channel.

    The first program whose ``[start_time, end_time)`` interval contains
    `now` wins.

    Args:
        store: Catalog store
        channel_id: Catalog row ID of the channel
        now: Instant to look up, defaults to the current time

    Returns:
        Matching program or None
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    for program in await list_programs(store, channel_id):
        if program.is_airing(now):
            return program
    return None


async def build_channel_map(
    store: CatalogStore,
    input_id: str,
    channels: Sequence[Channel],
) -> dict[int, Channel] | None:
    """
    Map catalog row IDs of an input source to the desired channels.

    Rows are matched to `channels` by display number.

    Args:
        store: Catalog store
        input_id: Input source whose rows are mapped
        channels: Desired channels to resolve against

    Returns:
        Row ID -> channel mapping, or None if the query fails or the input has no rows

    Raises:
        UnknownKeyError: If a stored display number has no matching channel
    """
    try:
        rows = await store.query_channels(input_id, columns=_CHANNEL_MAP_PROJECTION)
    except QueryFailure as exc:
        logger.warning("Channel map query failed for input %s: %s", input_id, exc, exc_info=True)
        return None

    if not rows:
        return None

    return {
        row["id"]: _get_channel_by_number(row["display_number"], channels)
        for row in rows
    }


def _get_channel_by_number(display_number: str, channels: Sequence[Channel]) -> Channel:
    for channel in channels:
        if channel.display_number == display_number:
            return channel
    raise UnknownKeyError(f"Unknown channel: {display_number}")


def _program_from_row(row: dict[str, Any]) -> Program:
    video_source_type = None
    video_url = None
    if row.get("internal_provider_data"):
        video_source_type, video_url = decode_video_info(row["internal_provider_data"])

    return Program(
        id=row.get("id"),
        channel_id=row.get("channel_id"),
        title=row["title"],
        description=row.get("description"),
        start_time=row["start_time"],
        end_time=row["end_time"],
        poster_art_url=row.get("poster_art_url"),
        content_ratings=decode_ratings(row.get("content_rating")) or [],
        video_source_type=video_source_type,
        video_url=video_url,
    )

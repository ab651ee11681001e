"""
XMLTV lineup feed parser

Turns a channel lineup feed into the desired channel list and its programs.
Besides the usual XMLTV elements a channel may carry ``display-number``,
an ``original-network-id`` attribute and a ``video height`` hint; a
program may carry ``<video src=".." type="HLS"/>``.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone, timedelta
from typing import Optional
import logging
import zlib

from lxml import etree # type: ignore

from tvsync.errors import UnknownKeyError
from tvsync.services.codec import video_format_for_height
from tvsync.services.sync_types import (
    DEFAULT_RATING_DOMAIN,
    INT32_MAX,
    INT32_MIN,
    Channel,
    Program,
    Rating,
    VideoSourceType,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FeedLineup:
    """Parsed lineup feed."""
    channels: list[Channel] = field(default_factory=list)
    programs: list[Program] = field(default_factory=list)
    # feed channel id -> original network id
    network_ids: dict[str, int] = field(default_factory=dict)

    def programs_by_network_id(self) -> dict[int, list[Program]]:
        grouped: dict[int, list[Program]] = {}
        for program in self.programs:
            network_id = self.network_ids.get(program.feed_channel_id or "")
            if network_id is None:
                continue
            grouped.setdefault(network_id, []).append(program)
        return grouped


def parse_feed_file(file_path: str, time_from: Optional[datetime] = None, time_to: Optional[datetime] = None) -> FeedLineup:
    """
    Parse an XMLTV lineup file

    Args:
        file_path: Path to XMLTV file
        time_from: Optional start of time window (UTC)
        time_to: Optional end of time window (UTC)

    Returns:
        FeedLineup with channels in feed order and programs inside the window

    Raises:
        etree.XMLSyntaxError: If XML is malformed
        OSError: If file can't be read
    """
    logger.debug(f"Parsing lineup feed: {file_path}")

    try:
        tree = etree.parse(file_path)
    except etree.XMLSyntaxError as e:
        logger.error(f"  XML parsing error: {e}")
        raise

    return parse_feed_root(tree.getroot(), time_from, time_to)


def parse_feed_root(root: etree._Element, time_from: Optional[datetime] = None, time_to: Optional[datetime] = None) -> FeedLineup:
    """Parse an already loaded XMLTV root element"""
    lineup = FeedLineup()
    _parse_channels(root, lineup)

    for programme in root.findall('programme'):
        program = _parse_single_program(programme, time_from, time_to)
        if program is None:
            continue
        if program.feed_channel_id not in lineup.network_ids:
            logger.debug(f"Skipping program {program.title!r} for unknown channel {program.feed_channel_id}")
            continue
        lineup.programs.append(program)

    logger.info(f"Lineup parsing complete: {len(lineup.channels)} channels, {len(lineup.programs)} programs")
    return lineup


def feed_network_id(feed_channel_id: str) -> int:
    """Stable originating network ID for a channel that does not declare one"""
    return zlib.crc32(feed_channel_id.encode("utf-8")) & 0x7FFFFFFF


def _parse_channels(root: etree._Element, lineup: FeedLineup) -> None:
    """Extract channels from XMLTV root element"""
    used_network_ids: dict[int, str] = {}

    for position, channel in enumerate(root.findall('channel'), start=1):
        feed_id = channel.get('id')
        if not feed_id:
            logger.debug("Skipping channel with missing ID attribute")
            continue
        if feed_id in lineup.network_ids:
            logger.warning(f"Skipping duplicate channel {feed_id}")
            continue

        network_id = _parse_network_id(channel, feed_id)
        if network_id in used_network_ids:
            logger.warning(
                f"Skipping channel {feed_id}: network ID {network_id} already used by {used_network_ids[network_id]}"
            )
            continue

        display_name = _get_text(channel, 'display-name', default=feed_id) or feed_id
        display_number = _get_text(channel, 'display-number', default=str(position)) or str(position)

        icon_url = None
        icon_elem = channel.find('icon')
        if icon_elem is not None:
            icon_url = icon_elem.get('src') or None

        video_format = None
        video_elem = channel.find('video')
        if video_elem is not None and video_elem.get('height'):
            try:
                video_format = video_format_for_height(int(video_elem.get('height')))
            except ValueError:
                logger.debug(f"Ignoring invalid video height for channel {feed_id}")

        used_network_ids[network_id] = feed_id
        lineup.network_ids[feed_id] = network_id
        lineup.channels.append(Channel(
            display_number=display_number,
            display_name=display_name,
            original_network_id=network_id,
            description=_get_text(channel, 'desc'),
            logo_url=icon_url,
            video_format=video_format,
            internal_provider_data=feed_id,
        ))


def _parse_network_id(channel: etree._Element, feed_id: str) -> int:
    declared = channel.get('original-network-id')
    if declared:
        try:
            network_id = int(declared)
        except ValueError:
            logger.warning(f"Invalid original-network-id {declared!r} on channel {feed_id}; deriving one")
        else:
            if INT32_MIN <= network_id <= INT32_MAX:
                return network_id
            logger.warning(f"Out of range original-network-id {declared!r} on channel {feed_id}; deriving one")
    return feed_network_id(feed_id)


def _parse_single_program(programme: etree._Element, time_from: Optional[datetime], time_to: Optional[datetime]) -> Optional[Program]:
    """Parse single programme element"""
    channel_id = programme.get('channel')
    start_str = programme.get('start')
    stop_str = programme.get('stop')
    title = _get_text(programme, 'title')

    if not channel_id or not start_str or not stop_str or title is None:
        return None

    try:
        start_time = _parse_xmltv_time(start_str)
        end_time = _parse_xmltv_time(stop_str)
    except (ValueError, IndexError):
        return None

    if end_time <= start_time:
        logger.debug(f"Skipping program {title!r} with empty time range")
        return None

    if not _is_in_time_window(start_time, time_from, time_to):
        return None

    poster_art_url = None
    icon_elem = programme.find('icon')
    if icon_elem is not None:
        poster_art_url = icon_elem.get('src') or None

    video_source_type = None
    video_url = None
    video_elem = programme.find('video')
    if video_elem is not None and video_elem.get('src'):
        video_type = (video_elem.get('type') or 'HTTP_PROGRESSIVE').upper()
        try:
            video_source_type = VideoSourceType[video_type]
            video_url = video_elem.get('src')
        except KeyError:
            logger.debug(f"Ignoring video of unknown type {video_type} for program {title!r}")

    return Program(
        title=title,
        start_time=start_time,
        end_time=end_time,
        description=_get_text(programme, 'desc'),
        poster_art_url=poster_art_url,
        content_ratings=_parse_ratings(programme),
        video_source_type=video_source_type,
        video_url=video_url,
        feed_channel_id=channel_id,
    )


def _parse_ratings(programme: etree._Element) -> list[Rating]:
    ratings = []
    for rating_elem in programme.findall('rating'):
        system = rating_elem.get('system')
        value = _get_text(rating_elem, 'value')
        if not system or not value:
            continue
        # Values may already be flattened descriptors
        if '/' in value:
            try:
                ratings.append(Rating.unflatten(value))
            except UnknownKeyError:
                logger.debug(f"Ignoring malformed rating {value!r}")
            continue
        ratings.append(Rating(DEFAULT_RATING_DOMAIN, system, value))
    return ratings


def _parse_xmltv_time(time_str: str) -> datetime:
    """
    Convert XMLTV time format to UTC

    Args:
        time_str: XMLTV time like '20080715003000 -0600'

    Returns:
        Timezone-aware datetime in UTC
    """
    parts = time_str.strip().split()
    time_part = parts[0]  # YYYYMMDDHHMMSS
    tz_part = parts[1] if len(parts) > 1 else '+0000'

    dt = datetime.strptime(time_part, '%Y%m%d%H%M%S')

    tz_sign = 1 if tz_part[0] == '+' else -1
    tz_hours = int(tz_part[1:3])
    tz_mins = int(tz_part[3:5])
    tz_offset_minutes = tz_sign * (tz_hours * 60 + tz_mins)

    dt_utc = dt - timedelta(minutes=tz_offset_minutes)

    return dt_utc.replace(tzinfo=timezone.utc)


def _is_in_time_window(time_value: datetime, time_from: Optional[datetime], time_to: Optional[datetime]) -> bool:
    """Check if time is within the specified window"""
    if not time_from and not time_to:
        return True

    if time_from and time_value < time_from:
        return False

    if time_to and time_value > time_to:
        return False

    return True


def _get_text(element: etree._Element, tag: str, default: Optional[str] = None) -> Optional[str]:
    """Safely extract text from XML element"""
    child = element.find(tag)
    if child is None or not child.text:
        return default
    return child.text.strip()

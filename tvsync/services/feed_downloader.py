"""
Lineup Feed Downloader

Downloads a lineup feed and parses it off the event loop.
"""
import logging
import asyncio
from datetime import datetime
from pathlib import Path

import httpx

from tvsync.config import settings
from tvsync.services.feed_parser import FeedLineup, parse_feed_file
from tvsync.utils.file_operations import download_file, cleanup_temp_file


logger = logging.getLogger(__name__)


async def fetch_lineup(
    feed_url: str,
    input_id: str,
    time_from: datetime,
    time_to: datetime,
    *,
    parse_timeout_seconds: int | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FeedLineup:
    """
    Download and parse the lineup feed of one input source

    Args:
        feed_url: URL to download from
        input_id: Input source the feed belongs to (for file naming and logs)
        time_from: Start of program window
        time_to: End of program window

    Keyword Args:
        parse_timeout_seconds: Timeout in seconds for parsing (0/None disables timeout)
        transport: Optional httpx transport (tests)

    Returns:
        Parsed FeedLineup
    """
    temp_file = None
    safe_name = "".join(ch if ch.isalnum() else "_" for ch in input_id)
    try:
        logger.info(f"  [{input_id}] Downloading lineup feed...")
        temp_file = await download_file(
            feed_url,
            f"lineup_{safe_name}.xml",
            timeout=settings.feed_download_timeout_sec,
            max_retries=settings.feed_download_max_retries,
            transport=transport,
        )
        logger.debug(f"  [{input_id}] Feed saved to {temp_file}")

        lineup = await parse_lineup_async(
            temp_file,
            time_from,
            time_to,
            parse_timeout_seconds=parse_timeout_seconds,
        )
        logger.info(f"  [{input_id}] Feed parsed: {len(lineup.channels)} channels, {len(lineup.programs)} programs")
        return lineup

    finally:
        if temp_file:
            cleanup_temp_file(temp_file)


async def parse_lineup_async(
    file_path: Path | str,
    time_from: datetime,
    time_to: datetime,
    *,
    parse_timeout_seconds: int | None = None
) -> FeedLineup:
    """
    Parse a lineup file in the default thread pool with timeout protection.

    Raises:
        ValueError: If parsing times out or the feed lists no channels
    """
    effective_timeout = parse_timeout_seconds if parse_timeout_seconds and parse_timeout_seconds > 0 else None
    timeout_display = f"{effective_timeout}s" if effective_timeout else "disabled"

    loop = asyncio.get_running_loop()
    parse_task = loop.run_in_executor(None, parse_feed_file, str(file_path), time_from, time_to)
    try:
        if effective_timeout:
            lineup = await asyncio.wait_for(parse_task, timeout=effective_timeout)
        else:
            lineup = await parse_task
    except asyncio.TimeoutError:
        logger.error(f"Feed parsing timed out after {timeout_display} for {file_path}")
        raise ValueError("Feed parsing timed out - file may be too large or malformed")

    # An empty lineup would delete every channel of the input
    if not lineup.channels:
        logger.warning("No channels found in lineup feed")
        raise ValueError("No channels found in lineup feed")

    return lineup

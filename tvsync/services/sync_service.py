"""
Channel Sync Service

Coordinates download, reconciliation and guide persistence for one input
source, then hands channel logos to the background fetcher.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx

from tvsync.config import settings
from tvsync.database import session_scope
from tvsync.errors import QueryFailure
from tvsync.services.asset_fetcher import LogoFetcher, get_logo_fetcher
from tvsync.services.catalog_store import SqlCatalogStore
from tvsync.services.feed_downloader import fetch_lineup
from tvsync.services.feed_parser import FeedLineup
from tvsync.services.reconciler import update_channels
from tvsync.services.sync_coordinator import get_sync_coordinator
from tvsync.services.sync_types import Channel, ReconcileResult
from tvsync.utils.logging_helpers import (
    log_section_end,
    log_section_start,
    log_sync_end,
    log_sync_start,
)


logger = logging.getLogger(__name__)

GUIDE_PAST_WINDOW = timedelta(days=1)
GUIDE_FUTURE_WINDOW = timedelta(days=14)


@dataclass(slots=True)
class SyncContext:
    started_at: datetime
    window_start: datetime
    window_end: datetime


async def apply_channel_list(
    input_id: str,
    channels: Sequence[Channel],
    *,
    package_name: str | None = None,
    logo_fetcher: LogoFetcher | None = None,
) -> ReconcileResult:
    """
    Reconcile an input source with a supplied channel list in one transaction.

    Logos are dispatched after the transaction commits.

    Raises:
        QueryFailure: If the index cannot be built or a write fails (rolled back)
        ValueError: If the list repeats an originating network ID
    """
    async with session_scope() as session:
        store = SqlCatalogStore(session)
        result = await update_channels(
            store,
            input_id,
            channels,
            package_name=package_name or settings.package_name,
        )

    _dispatch_logos(result, logo_fetcher or get_logo_fetcher())
    return result


def _dispatch_logos(result: ReconcileResult, fetcher: LogoFetcher) -> None:
    """Drop logos of deleted or logo-less rows, then queue the remaining copies."""
    queued = {row_id for row_id, _ in result.logo_queue}
    for mutation in result.mutations:
        if mutation.kind == "delete" or (mutation.kind == "update" and mutation.row_id not in queued):
            fetcher.logo_store.remove(mutation.row_id)
    fetcher.dispatch(result.logo_queue)


class ChannelSyncPipeline:
    """Runs one feed-driven sync cycle for an input source."""

    def __init__(
        self,
        input_id: str,
        feed_url: str,
        *,
        package_name: str | None = None,
        logo_fetcher: LogoFetcher | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.input_id = input_id
        self.feed_url = feed_url
        self.package_name = package_name or settings.package_name
        self.logo_fetcher = logo_fetcher or get_logo_fetcher()
        self._transport = transport
        self._parse_timeout = settings.feed_parse_timeout_sec

    async def run(self) -> dict:
        context = self._build_context()
        logger.info(
            "Guide window: %s -> %s",
            context.window_start.isoformat(),
            context.window_end.isoformat(),
        )

        lineup = await fetch_lineup(
            self.feed_url,
            self.input_id,
            context.window_start,
            context.window_end,
            parse_timeout_seconds=self._parse_timeout,
            transport=self._transport,
        )

        log_section_start(logger, f"Catalog update for {self.input_id}")
        result, programs_stored = await self._persist(lineup)
        log_section_end(logger, f"Catalog update for {self.input_id}")
        _dispatch_logos(result, self.logo_fetcher)

        return self._build_result(context, lineup, result, programs_stored)

    def _build_context(self) -> SyncContext:
        started_at = datetime.now(timezone.utc)
        return SyncContext(
            started_at=started_at,
            window_start=started_at - GUIDE_PAST_WINDOW,
            window_end=started_at + GUIDE_FUTURE_WINDOW,
        )

    async def _persist(self, lineup: FeedLineup) -> tuple[ReconcileResult, int]:
        programs_by_network_id = lineup.programs_by_network_id()
        async with session_scope() as session:
            store = SqlCatalogStore(session)
            result = await update_channels(
                store,
                self.input_id,
                lineup.channels,
                package_name=self.package_name,
            )

            programs_stored = 0
            for network_id, row_id in result.row_ids.items():
                programs_stored += await store.replace_programs(
                    row_id,
                    programs_by_network_id.get(network_id, []),
                )

        logger.info(
            "[%s] Stored %s programs for %s channels",
            self.input_id,
            programs_stored,
            len(result.row_ids),
        )
        return result, programs_stored

    def _build_result(
        self,
        context: SyncContext,
        lineup: FeedLineup,
        result: ReconcileResult,
        programs_stored: int,
    ) -> dict:
        return {
            "status": "success",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "channels_parsed": len(lineup.channels),
            "programs_stored": programs_stored,
            **result.to_dict(),
            "started_at": context.started_at.isoformat(),
            "window_start": context.window_start.isoformat(),
            "window_end": context.window_end.isoformat(),
        }


async def sync_and_process(transport: httpx.AsyncBaseTransport | None = None) -> dict:
    """
    Main entry point for the configured feed sync with concurrency protection.

    Returns:
        Dictionary with sync statistics or error/skip message.
    """
    async def _run() -> dict:
        log_sync_start(logger, settings.input_id)

        if not settings.feed_url:
            logger.warning("FEED_URL not configured - sync aborted")
            return {"error": "FEED_URL not configured"}

        pipeline = ChannelSyncPipeline(settings.input_id, settings.feed_url, transport=transport)
        try:
            result = await pipeline.run()
        except QueryFailure as exc:
            logger.error("Channel sync aborted, catalog unchanged: %s", exc, exc_info=True)
            return {"error": str(exc)}
        except (httpx.HTTPError, ValueError, OSError, SyntaxError, RuntimeError) as exc:
            logger.error("Channel sync failed: %s", exc, exc_info=True)
            return {"error": str(exc)}

        log_sync_end(logger, settings.input_id)
        return result

    return await get_sync_coordinator().execute(_run)

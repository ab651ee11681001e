"""
Channel logo fetcher

Copies channel logos from their source URLs into the logo store. Work is
dispatched as background tasks and never awaited by the reconciliation
caller; a failed copy is logged and dropped.
"""
import asyncio
import logging
import os
from collections.abc import Iterable

import aiofiles
import httpx

from tvsync.config import settings
from tvsync.errors import AssetFetchFailure
from tvsync.services.catalog_store import LogoStore


logger = logging.getLogger(__name__)


class LogoFetcher:
    """
    Bounded pool of fire-and-forget logo downloads.

    At most `concurrency` downloads run at once. There is no retry and,
    unless `timeout` is given, no timeout.
    """

    def __init__(
        self,
        logo_store: LogoStore,
        *,
        concurrency: int = 4,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.logo_store = logo_store
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        self._timeout = timeout
        self._transport = transport
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, queue: Iterable[tuple[int, str]]) -> int:
        """
        Schedule a copy for every (row ID, logo URL) pair and return immediately.

        Must be called from a running event loop.

        Returns:
            Number of scheduled copies
        """
        scheduled = 0
        for row_id, url in queue:
            task = asyncio.create_task(self._run(row_id, url), name=f"logo-{row_id}")
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            scheduled += 1

        if scheduled:
            logger.info("Queued %s channel logo downloads", scheduled)
        return scheduled

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled copy to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _run(self, row_id: int, url: str) -> None:
        async with self._semaphore:
            try:
                size = await self.copy_logo(row_id, url)
            except AssetFetchFailure as exc:
                logger.error("%s", exc)
                return
        logger.debug("Stored %s byte logo for channel %s", size, row_id)

    async def copy_logo(self, row_id: int, url: str) -> int:
        """
        Stream `url` into the logo slot of a channel.

        The slot is replaced only after the whole body was received.

        Returns:
            Number of bytes written

        Raises:
            AssetFetchFailure: On any network, HTTP or file error
        """
        target = self.logo_store.path_for(row_id)
        partial = target.with_name(target.name + ".part")
        written = 0

        try:
            self.logo_store.ensure_directory()
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    async with aiofiles.open(partial, "wb") as f:
                        async for chunk in response.aiter_bytes():
                            await f.write(chunk)
                            written += len(chunk)
            os.replace(partial, target)
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            _discard(partial)
            raise AssetFetchFailure(row_id, url, f"{type(exc).__name__}: {exc}") from exc

        return written


def _discard(path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to delete partial logo %s: %s", path, exc)


_fetcher: LogoFetcher | None = None


def get_logo_fetcher() -> LogoFetcher:
    """Get or create the global logo fetcher configured from settings."""
    global _fetcher
    if _fetcher is None:
        _fetcher = LogoFetcher(
            LogoStore(settings.logo_directory),
            concurrency=settings.logo_fetch_concurrency,
            timeout=settings.logo_fetch_timeout_sec or None,
        )
    return _fetcher


def reset_logo_fetcher() -> None:
    """
    Reset the logo fetcher (mainly for testing).

    WARNING: Only use this in test environments!
    """
    global _fetcher
    _fetcher = None

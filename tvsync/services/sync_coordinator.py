"""
Sync Coordination

Prevents overlapping channel sync runs inside this process.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Any


logger = logging.getLogger(__name__)


class SyncCoordinator:
    """
    Runs at most one channel sync at a time.

    A sync requested while another one is running is skipped, not queued.
    The catalog store itself is not locked.
    """

    def __init__(self):
        self._sync_lock = asyncio.Lock()

    async def execute(self, sync_func: Callable[[], Awaitable[Any]]) -> Any:
        """
        Execute a sync operation unless one is already running.

        Args:
            sync_func: Async function to execute

        Returns:
            Result from sync_func, or a skip response if a sync is running
        """
        if self._sync_lock.locked():
            logger.warning("Channel sync already in progress, skipping this request")
            return {
                "status": "skipped",
                "message": "Channel sync already in progress"
            }

        async with self._sync_lock:
            return await sync_func()

    def is_syncing(self) -> bool:
        return self._sync_lock.locked()


_coordinator: SyncCoordinator | None = None


def get_sync_coordinator() -> SyncCoordinator:
    """Get or create the global sync coordinator."""
    global _coordinator
    if _coordinator is None:
        _coordinator = SyncCoordinator()
    return _coordinator


def reset_sync_coordinator() -> None:
    """
    Reset the sync coordinator (mainly for testing).

    WARNING: Only use this in test environments!
    """
    global _coordinator
    _coordinator = None

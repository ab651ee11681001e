import logging
from datetime import datetime
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from tvsync.config import settings
from tvsync.services.sync_service import sync_and_process


logger = logging.getLogger(__name__)

class SyncScheduler:
    """Scheduler for periodic channel sync"""

    def __init__(self):
        self.scheduler: AsyncIOScheduler | None = None

    async def _sync_job(self) -> None:
        """Background job that runs the channel sync"""
        logger.info("Scheduled channel sync triggered")
        result = await sync_and_process()
        if "error" in result:
            logger.error("Scheduled sync failed: %s", result["error"])

    def start(self) -> None:
        """Start the scheduler with the channel sync job"""
        if self.scheduler and self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        try:
            trigger = CronTrigger.from_crontab(settings.sync_cron)
        except (ValueError, KeyError) as exc:
            logger.error("Invalid cron expression '%s': %s", settings.sync_cron, exc)
            raise

        self.scheduler = AsyncIOScheduler(timezone='UTC')
        self.scheduler.add_job(
            self._sync_job,
            trigger=trigger,
            id='channel_sync',
            max_instances=1,
            coalesce=True,
            misfire_grace_time=settings.sync_misfire_grace_sec
        )

        self.scheduler.start()
        next_time = self.get_next_run_time()
        logger.info(
            "Scheduler started. Next sync: %s",
            next_time.isoformat() if next_time else "unknown"
        )

    def shutdown(self) -> None:
        """Shutdown the scheduler"""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler stopped")
            self.scheduler = None

    def get_next_run_time(self) -> datetime | None:
        """Get next scheduled sync time"""
        if not self.scheduler:
            return None
        job = self.scheduler.get_job('channel_sync')
        return job.next_run_time if job else None


sync_scheduler = SyncScheduler()

"""
Scheduled syncs.
Runs a full all-tenant sync at fixed times of day using APScheduler.
"""

import asyncio
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from tracksync.config import SyncConfig
from tracksync.sync_service import TrackingSyncService


class SyncScheduler:
    """
    Daily sync scheduler.

    One cron job per configured time (e.g. "08:00", "12:00"). Runs never
    overlap: a job that fires while the previous one is still running is
    skipped by APScheduler.
    """

    def __init__(self, config: SyncConfig, service: TrackingSyncService):
        self.config = config
        self.service = service
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._stop_event = asyncio.Event()

    def build_jobs(self) -> AsyncIOScheduler:
        scheduler = AsyncIOScheduler()

        for sync_time in self.config.sync_times:
            hour, minute = (int(part) for part in sync_time.split(":"))
            scheduler.add_job(
                self.run_once,
                CronTrigger(hour=hour, minute=minute),
                id=f"sync-{hour:02d}{minute:02d}",
                max_instances=1,
                coalesce=True,
            )
            logger.info(f"Scheduled daily sync at {sync_time}")

        return scheduler

    async def run_once(self):
        """Run one all-tenant sync."""
        logger.info("Scheduled sync starting")
        try:
            await self.service.sync_all_tenants(cancel_event=self._stop_event)
        except Exception as e:
            logger.exception(f"Scheduled sync failed: {e}")

    async def run_forever(self):
        """Start the scheduler and block until stop() is called."""
        if not self.config.sync_enabled:
            logger.warning("SYNC_ENABLED is false, scheduler not started")
            return

        self._scheduler = self.build_jobs()
        self._scheduler.start()
        logger.info("Scheduler started")

        try:
            await self._stop_event.wait()
        finally:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    def stop(self):
        """Stop after the current chunk; pending jobs are dropped."""
        self._stop_event.set()

"""Nightly price list sync"""
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from alko_catalog.core.logging import logger
from alko_catalog.services.impl.catalog_service import CatalogService


class NightlySyncScheduler:
    """Runs the item sync on settings.sync_cron_schedule"""

    def __init__(self, catalog: CatalogService, cron: str, timezone: str = "Europe/Helsinki"):
        self.catalog = catalog
        self.cron = cron
        self.timezone = timezone
        self._scheduler: Optional[AsyncIOScheduler] = None

    async def run_item_sync(self) -> None:
        logger.info("[Scheduler] Starting nightly item sync...")
        result = await self.catalog.sync_items()
        if result.success:
            logger.info(
                f"[Scheduler] Nightly sync done: processed={result.processed} "
                f"added={result.added} updated={result.updated} invalid={len(result.errors)}"
            )
        else:
            logger.error(f"[Scheduler] Nightly sync failed: {'; '.join(result.errors)}")

    def start(self) -> AsyncIOScheduler:
        scheduler = AsyncIOScheduler(timezone=self.timezone)
        scheduler.add_job(
            self.run_item_sync,
            trigger=CronTrigger.from_crontab(self.cron, timezone=self.timezone),
            id="nightly_item_sync",
            name="Nightly item sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info(f"[Scheduler] Nightly item sync scheduled ({self.cron}, {self.timezone})")
        return scheduler

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None

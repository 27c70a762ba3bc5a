"""
Campaign Auto-Close Scheduler

Periodically ends ACTIVE campaigns whose end date has passed.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .campaign_service import CampaignService

logger = logging.getLogger(__name__)

AUTO_CLOSE_JOB_ID = "campaign_auto_close_job"


class AutoCloseScheduler:
    """Runs CampaignService.auto_close_expired on a fixed interval"""

    def __init__(self, campaign_service: CampaignService, interval_seconds: int = 300):
        self.campaign_service = campaign_service
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def run_once(self) -> int:
        """One sweep; errors are logged so the next tick still fires"""
        try:
            closed = await self.campaign_service.auto_close_expired()
        except Exception as e:
            logger.error(f"Auto-close sweep failed: {e}", exc_info=True)
            return 0
        if closed:
            logger.info(f"Auto-close sweep ended {closed} campaign(s)")
        return closed

    def start(self) -> None:
        if self.running:
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_once,
            'interval',
            seconds=self.interval_seconds,
            id=AUTO_CLOSE_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(f"Campaign auto-close scheduler started (every {self.interval_seconds}s)")

    def shutdown(self) -> None:
        if self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Campaign auto-close scheduler stopped")


__all__ = ["AutoCloseScheduler", "AUTO_CLOSE_JOB_ID"]

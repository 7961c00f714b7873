from typing import Awaitable, Callable, Optional
import logging
from zoneinfo import ZoneInfo
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.jobstores.base import JobLookupError


logger = logging.getLogger(__name__)


class JobScheduler:
    """
    Scheduler for background jobs (market listing refresh)
    """

    def __init__(
        self,
        timezone: str = "UTC",
        enabled: bool = True,
    ):
        self.timezone = timezone
        self.enabled = enabled
        self.scheduler: Optional[AsyncIOScheduler] = None

        logger.info(f"JobScheduler initialized with timezone: {timezone}")

    async def start(self) -> None:
        if not self.enabled:
            logger.info("Scheduler disabled by configuration")
            return

        logger.info("Starting scheduler...")

        if self.scheduler and self.scheduler.running:
            logger.warning("The scheduler is already running")
            return

        self.scheduler = AsyncIOScheduler(
            timezone=ZoneInfo(self.timezone),
            job_defaults={"coalesce": True, "max_instances": 1},
        )

        self.scheduler.start()
        logger.info(f"Scheduler running in timezone: {self.timezone}")

    def add_cron_job(
        self,
        func: Callable[[], Awaitable[None]],
        cron_expression: str,
        job_id: str,
    ) -> bool:
        if not self.scheduler or not self.scheduler.running:
            logger.warning(f"Scheduler not running, job {job_id} not scheduled")
            return False

        self.scheduler.add_job(
            func,
            CronTrigger.from_crontab(cron_expression),
            id=job_id,
            replace_existing=True,
        )
        logger.info(f"⏰ Job {job_id} scheduled ({cron_expression})")
        return True

    async def shutdown(self) -> None:
        if self.scheduler and self.scheduler.running:
            logger.info("Shutting down scheduler...")
            try:
                self.scheduler.shutdown(wait=False)
                logger.info("Scheduler shut down correctly")
            except JobLookupError as e:
                logger.error(f"Error shutting down scheduler: {e}")

import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from database import session_scope
from recurrence import RecurringEngine


logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self) -> None:
        settings = get_settings()
        self.enabled = settings.scheduler_enabled
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def run_sweep(self, source: str = "manual") -> int:
        logger.info(f"recurring_sweep: source={source}")
        with session_scope() as session:
            count = RecurringEngine(session).generate_due(auto_only=True)
        logger.info(f"recurring_sweep: source={source} generated={count}")
        return count

    def _run_job(self, source: str) -> None:
        try:
            self.run_sweep(source)
        except Exception:
            logger.exception(f"recurring_sweep_failed: source={source}")

    def start(self) -> None:
        if not self.enabled:
            logger.info("Scheduler disabled by configuration")
            return

        self._run_job("startup")

        self.scheduler.add_job(
            self._run_job,
            CronTrigger(hour=0, minute=5),
            args=["daily_00:05"],
            id="recurring_daily",
            replace_existing=True,
            misfire_grace_time=3600,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self._run_job,
            IntervalTrigger(hours=1),
            args=["hourly_safety_net"],
            id="recurring_hourly_safety",
            replace_existing=True,
            misfire_grace_time=300,
            max_instances=1,
            coalesce=True,
        )

        self.scheduler.start()
        logger.info("Scheduler started with daily 00:05 sweep and hourly safety net")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

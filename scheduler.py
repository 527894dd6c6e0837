import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from config import get_settings
from database import session_scope
from mailer import get_mailer
from services import generate_monthly_summaries, send_reminder_emails


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self) -> None:
        settings = get_settings()
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_monthly_summary(self, source: str = "manual") -> None:
        logger.info(f"scheduler_run: job=monthly_summary source={source}")
        with session_scope() as session:
            result = generate_monthly_summaries(session)
            logger.info(
                f"scheduler_run: job=monthly_summary source={source} "
                f"created={result['created']}"
            )

    def _run_reminder_emails(self, source: str = "manual") -> None:
        logger.info(f"scheduler_run: job=reminder_emails source={source}")
        with session_scope() as session:
            result = send_reminder_emails(session, get_mailer())
            logger.info(
                f"scheduler_run: job=reminder_emails source={source} "
                f"sent={result['sent']}"
            )

    def start(self) -> None:
        trigger = CronTrigger(day=1, hour=6, minute=0)
        self.scheduler.add_job(
            self._run_monthly_summary,
            trigger,
            args=["monthly_06:00"],
            id="monthly_summary",
            replace_existing=True,
            misfire_grace_time=6 * 3600,
        )

        trigger = CronTrigger(hour=9, minute=0)
        self.scheduler.add_job(
            self._run_reminder_emails,
            trigger,
            args=["daily_09:00"],
            id="reminder_emails",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        self.scheduler.start()
        logger.info("Scheduler started with monthly summaries and daily reminder emails")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

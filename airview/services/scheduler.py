"""
Background job scheduling.

Jobs live in a SQLAlchemy job store on the application database so both the
periodic jobs and one-off continuations survive a restart.
"""
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger
import logging
from datetime import datetime, timedelta, timezone

from airview.database import settings

logger = logging.getLogger(__name__)
scheduler = BackgroundScheduler(
    jobstores={"default": SQLAlchemyJobStore(url=settings.database_url)},
    job_defaults={"coalesce": True, "max_instances": 1},
    timezone="UTC",
)

class TaskScheduler:
    """Runs a job function once, ``delay_ms`` from now"""

    def __init__(self, backend: BackgroundScheduler):
        self._backend = backend

    def run_after(self, delay_ms: int, func, **kwargs):
        run_date = datetime.now(timezone.utc) + timedelta(milliseconds=delay_ms)
        # Late continuations still have to run
        return self._backend.add_job(
            func,
            DateTrigger(run_date=run_date),
            kwargs=kwargs,
            misfire_grace_time=None,
            max_instances=10,
        )

task_scheduler = TaskScheduler(scheduler)

def get_task_scheduler() -> TaskScheduler:
    return task_scheduler

def start_scheduler():
    """Register the periodic jobs and start the scheduler"""
    from airview.services import jobs

    if not scheduler.running:
        scheduler.add_job(
            jobs.refresh_tokens_job,
            IntervalTrigger(minutes=settings.token_refresh_minutes),
            id="refresh_provider_tokens",
            replace_existing=True
        )
        scheduler.add_job(
            jobs.poll_readings_job,
            IntervalTrigger(minutes=settings.poll_interval_minutes),
            id="poll_provider_readings",
            replace_existing=True
        )
        scheduler.add_job(
            jobs.retention_cleanup_job,
            CronTrigger(hour=settings.retention_cleanup_hour, minute=0),
            id="retention_cleanup",
            replace_existing=True
        )
        scheduler.add_job(
            jobs.orphaned_readings_job,
            CronTrigger(day_of_week="sun", hour=settings.retention_cleanup_hour, minute=30),
            id="orphaned_readings_sweep",
            replace_existing=True
        )
        scheduler.start()
        logger.info(
            f"Scheduler started (token refresh: {settings.token_refresh_minutes} min, "
            f"poll: {settings.poll_interval_minutes} min, retention: daily at {settings.retention_cleanup_hour}:00 UTC)"
        )

def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")

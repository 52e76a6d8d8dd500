from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from privacyflow.config import settings
from privacyflow.jobs.retention import enforce_data_retention
from privacyflow.jobs.runner import process_pending_jobs
import logging

scheduler = AsyncIOScheduler()

logger = logging.getLogger(__name__)

PROCESS_JOBS_ID = "process_pending_jobs"
RETENTION_JOB_ID = "enforce_data_retention"


def schedule_jobs():
    """Register the periodic jobs enabled in settings."""
    if settings.jobs_enabled:
        scheduler.add_job(
            process_pending_jobs,
            trigger=IntervalTrigger(minutes=settings.jobs_interval_minutes),
            id=PROCESS_JOBS_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(f"[Scheduler] Pending jobs will run every {settings.jobs_interval_minutes} minute(s)")

    if settings.retention_enabled:
        scheduler.add_job(
            enforce_data_retention,
            trigger=CronTrigger(hour=3, minute=0),
            id=RETENTION_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info("[Scheduler] Data retention will run daily at 03:00")

    return scheduler.get_jobs()

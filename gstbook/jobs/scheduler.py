"""
APScheduler Configuration

Background job scheduler for periodic bookkeeping tasks. Jobs open their
own database session; a failing run is logged and retried on the next
interval.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from gstbook.config import settings

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 60,
}

# Create scheduler
scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone=settings.TIMEZONE
)


async def run_quotation_expiry():
    """Scheduler entry point for the quotation expiry job."""
    from gstbook.jobs.quotation_jobs import expire_overdue_quotations

    try:
        result = await expire_overdue_quotations()
        logger.info(f"Job 'expire_overdue_quotations' completed: {result['expired']} quotations expired")
    except Exception:
        logger.exception("Job 'expire_overdue_quotations' failed")


def start_scheduler():
    """Start the background job scheduler."""
    if not settings.SCHEDULER_ENABLED:
        logger.info("Background job scheduler disabled")
        return

    if not scheduler.running:
        scheduler.add_job(
            run_quotation_expiry,
            'interval',
            minutes=settings.QUOTATION_EXPIRY_INTERVAL_MINUTES,
            id='expire_overdue_quotations',
            name='Expire Overdue Quotations',
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        for job in scheduler.get_jobs():
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status():
    """Get status of all scheduled jobs."""
    jobs = scheduler.get_jobs()
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': str(job.next_run_time) if job.next_run_time else None,
            'trigger': str(job.trigger),
        }
        for job in jobs
    ]

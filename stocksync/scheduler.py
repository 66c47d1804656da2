"""
In-process job scheduling for the sync service.

Jobs:
- reconcile_inventory: the reconciliation sweep, every RECONCILE_INTERVAL_MINUTES
  (only when RECONCILE_SCHEDULE_ENABLED)
- cleanup_logs: daily at 02:00, drops processed webhook events and sync-log rows
  past their retention windows

The scheduler lives on the FastAPI event loop; main.py starts and stops it from
the lifespan handler.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR, JobExecutionEvent

from stocksync.core.config import get_settings
from stocksync.core.enums import SyncSource
from stocksync.database import async_session

logger = logging.getLogger(__name__)

RECONCILE_JOB_ID = "reconcile_inventory"
CLEANUP_JOB_ID = "cleanup_logs"

scheduler: Optional[AsyncIOScheduler] = None

# job id -> {"at": iso timestamp, "ok": bool, "error": str | None}
last_runs: Dict[str, Dict[str, Any]] = {}


async def reconcile_inventory_task():
    """Run one reconciliation sweep against the configured platform."""
    # Imported here so the scheduler module stays importable without a platform configured
    from stocksync.dependencies import get_inventory_platform
    from stocksync.services.reconciliation_service import ReconciliationSweep

    try:
        async with async_session() as db:
            sweep = ReconciliationSweep(db, get_inventory_platform(), get_settings())
            report = await sweep.run(source=SyncSource.SCHEDULED_RECONCILE, created_by="scheduler")
        logger.info(f"Scheduled reconciliation {report.sync_run_id}: {report.summary}")
    except Exception as e:
        logger.exception(f"Error in scheduled reconciliation task: {str(e)}")
        raise  # EVENT_JOB_ERROR feeds last_runs


async def cleanup_old_logs_task():
    """Apply the webhook-event and sync-log retention windows."""
    from stocksync.services.audit_log import AuditLogger
    from stocksync.services.event_deduplicator import EventDeduplicator

    settings = get_settings()
    try:
        async with async_session() as db:
            deleted_events = await EventDeduplicator(db).cleanup_old_events(settings.WEBHOOK_EVENT_RETENTION_DAYS)
            deleted_logs = await AuditLogger(db).cleanup_old_entries(settings.SYNC_LOG_RETENTION_DAYS)
        logger.info(
            f"Retention cleanup removed {deleted_events} webhook events "
            f"(>{settings.WEBHOOK_EVENT_RETENTION_DAYS}d) and {deleted_logs} sync log entries "
            f"(>{settings.SYNC_LOG_RETENTION_DAYS}d)"
        )
    except Exception as e:
        logger.exception(f"Error in cleanup task: {str(e)}")
        raise


def job_listener(event: JobExecutionEvent):
    """Record the outcome of every job run for the status endpoint."""
    last_runs[event.job_id] = {
        "at": datetime.now(timezone.utc).isoformat(),
        "ok": event.exception is None,
        "error": str(event.exception) if event.exception else None,
    }
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.debug(f"Job {event.job_id} finished")


def create_scheduler() -> AsyncIOScheduler:
    """Build the scheduler and register jobs from settings. Idempotent."""
    global scheduler

    if scheduler is not None:
        return scheduler

    settings = get_settings()
    scheduler = AsyncIOScheduler()
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    if settings.RECONCILE_SCHEDULE_ENABLED:
        scheduler.add_job(
            reconcile_inventory_task,
            IntervalTrigger(minutes=settings.RECONCILE_INTERVAL_MINUTES),
            id=RECONCILE_JOB_ID,
            name="Reconcile Inventory",
            replace_existing=True,
            max_instances=1,  # a slow sweep must not overlap the next one
            coalesce=True,
            misfire_grace_time=600,
        )
        logger.info(f"Reconciliation sweep scheduled every {settings.RECONCILE_INTERVAL_MINUTES} minutes")
    else:
        logger.info("Scheduled reconciliation disabled (RECONCILE_SCHEDULE_ENABLED=false)")

    scheduler.add_job(
        cleanup_old_logs_task,
        CronTrigger(hour=2, minute=0),
        id=CLEANUP_JOB_ID,
        name="Cleanup Old Logs",
        replace_existing=True,
        max_instances=1,
    )

    return scheduler


async def start_scheduler():
    sched = create_scheduler()
    if sched.running:
        return

    sched.start()
    logger.info(f"Scheduler started with jobs: {', '.join(job.id for job in sched.get_jobs()) or 'none'}")


async def stop_scheduler():
    global scheduler

    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    scheduler = None


async def get_scheduler_status() -> Dict[str, Any]:
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        # Jobs added before start() have no next_run_time attribute yet
        next_run = getattr(job, "next_run_time", None)
        jobs.append({
            "id": job.id,
            "name": job.name,
            "trigger": str(job.trigger),
            "next_run": next_run.isoformat() if next_run else None,
            "last_run": last_runs.get(job.id),
        })

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": jobs,
    }

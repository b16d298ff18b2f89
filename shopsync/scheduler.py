"""
Scheduler for automated tenant syncs

Uses APScheduler to run the full-sync sweep on a fixed interval.
"""
from typing import Callable, Dict, Optional
from uuid import UUID

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from shopsync.config import get_settings
from shopsync.services.ingestion_service import SyncState, get_ingestion_service
from shopsync.utils.logger import log

SWEEP_JOB_ID = "tenant_sync_sweep"

settings = get_settings()
scheduler = BackgroundScheduler()


def run_tenant_sweep(service_factory: Callable = get_ingestion_service) -> Dict[UUID, SyncState]:
    """
    Sync every tenant once.

    Never raises: a sweep that blows up before reaching the tenants is
    logged and the next tick tries again.
    """
    try:
        return service_factory().sync_all_tenants()
    except Exception as e:
        log.error(f"Tenant sync sweep failed: {type(e).__name__}: {e}")
        return {}


def setup_scheduler(
    target: Optional[BackgroundScheduler] = None,
    interval_seconds: Optional[int] = None,
    job: Callable = run_tenant_sweep,
) -> BackgroundScheduler:
    """
    Register the sweep job.

    Sweeps never overlap: max_instances=1 skips a tick while the previous
    sweep is still running, and coalesce folds missed ticks into one run.
    """
    target = target or scheduler
    interval = interval_seconds or settings.sync_interval_seconds

    target.add_job(
        job,
        trigger=IntervalTrigger(seconds=interval),
        id=SWEEP_JOB_ID,
        name="Tenant Full Sync Sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    log.info(f"Scheduled tenant sync sweep every {interval}s")
    return target


def start_scheduler():
    """Start the scheduler"""
    if not settings.scheduler_enabled:
        log.info("Scheduler disabled by configuration")
        return

    if scheduler.running:
        log.warning("Scheduler already running")
        return

    setup_scheduler()
    scheduler.start()
    log.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        log.info("Scheduler stopped")


def get_scheduled_jobs(target: Optional[BackgroundScheduler] = None) -> list:
    """
    Get list of all scheduled jobs

    Returns:
        List of job info dicts
    """
    jobs = []

    for job in (target or scheduler).get_jobs():
        next_run = getattr(job, "next_run_time", None)

        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': next_run.isoformat() if next_run else None,
            'trigger': str(job.trigger)
        })

    return jobs

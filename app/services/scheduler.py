# app/services/scheduler.py
"""
In-process scheduler for periodic sync passes.

Uses APScheduler to run the sync on the SYNC_SCHEDULE crontab, plus one
immediate pass at startup. Controlled by ENABLE_SCHEDULER (default off).

Alternative: POST /internal/run-sync can be triggered by an external cron
instead.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.config import get_settings
from app.services.sync_job import run_sync_job

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "meet-clockify-sync"

_scheduler: Optional[AsyncIOScheduler] = None


async def _run_scheduled_sync() -> None:
    """Run one pass; failures are logged and never reach APScheduler."""
    try:
        await run_sync_job(triggered_by="schedule")
    except Exception:
        logger.exception("Scheduled sync failed")


def start_scheduler() -> Optional[AsyncIOScheduler]:
    """
    Start the background scheduler if enabled. Must run inside the event loop.
    """
    global _scheduler
    settings = get_settings()

    if not settings.ENABLE_SCHEDULER:
        logger.info("Scheduler disabled (ENABLE_SCHEDULER=false)")
        return None
    if _scheduler is not None:
        return _scheduler

    _scheduler = AsyncIOScheduler(timezone=timezone.utc)
    _scheduler.add_job(
        _run_scheduled_sync,
        trigger=CronTrigger.from_crontab(settings.SYNC_SCHEDULE, timezone=timezone.utc),
        id=SYNC_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    # Initial pass right after startup.
    _scheduler.add_job(
        _run_scheduled_sync,
        trigger="date",
        run_date=datetime.now(tz=timezone.utc),
        id=f"{SYNC_JOB_ID}-initial",
        replace_existing=True,
    )
    _scheduler.start()
    logger.info("Scheduled sync job added with pattern: %s", settings.SYNC_SCHEDULE)
    return _scheduler


def stop_scheduler() -> None:
    """Stop the background scheduler if running."""
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Background scheduler stopped")

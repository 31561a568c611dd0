# app/services/sync_job.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from app.core.config import Settings, get_settings
from app.db.session import AsyncSessionLocal
from app.schemas.sync import SyncRunResult, SyncWindow
from app.services.clockify_client import ClockifyClient
from app.services.google_meet_client import GoogleMeetAttendanceSource, GoogleMeetClient
from app.services.google_oauth import GoogleOAuth, GoogleTokenProvider
from app.services.meet_sync import AttendanceSource, run_sync
from app.services.sync_pacer import SyncPacer

logger = logging.getLogger(__name__)

# At most one pass at a time per process, whatever triggered it.
_sync_lock = asyncio.Lock()


class SyncConfigurationError(RuntimeError):
    """
    Raised when required credentials for a sync pass are missing.
    """


def build_clockify_client(
    settings: Settings,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ClockifyClient:
    if not settings.CLOCKIFY_API_TOKEN:
        raise SyncConfigurationError("CLOCKIFY_API_TOKEN must be configured to run a sync.")
    return ClockifyClient(
        api_token=settings.CLOCKIFY_API_TOKEN,
        base_url=settings.CLOCKIFY_API_BASE,
        project_name=settings.MEET_PROJECT_NAME,
        api_delay_seconds=settings.CLOCKIFY_API_DELAY_MS / 1000.0,
        sleep=sleep,
    )


def build_google_oauth(settings: Settings) -> GoogleOAuth:
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        raise SyncConfigurationError(
            "GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET must be configured."
        )
    return GoogleOAuth(
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        redirect_uri=settings.GOOGLE_REDIRECT_URI,
    )


def build_attendance_source(
    settings: Settings,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> GoogleMeetAttendanceSource:
    provider = GoogleTokenProvider(build_google_oauth(settings), AsyncSessionLocal)
    client = GoogleMeetClient(
        access_token_provider=provider,
        base_url=settings.GOOGLE_MEET_BASE_URL,
        sleep=sleep,
    )
    return GoogleMeetAttendanceSource(client, user_resource=settings.GOOGLE_USER_RESOURCE)


async def run_sync_job(
    *,
    triggered_by: str,
    dry_run: Optional[bool] = None,
    days: Optional[int] = None,
    settings: Optional[Settings] = None,
    attendance_source: Optional[AttendanceSource] = None,
    clockify: Optional[ClockifyClient] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    now: Optional[datetime] = None,
) -> SyncRunResult:
    """
    Run one complete sync pass and return its summary.

    Builds the Google Meet and Clockify collaborators from settings unless
    they are passed in, initialises Clockify, then runs the reconciliation
    over the last `days` (default SYNC_DAYS). Concurrent callers are
    serialised: a second trigger waits for the running pass to finish.

    Fatal fetch errors propagate to the caller.
    """
    settings = settings or get_settings()
    dry_run = settings.DRY_RUN if dry_run is None else dry_run
    days = settings.SYNC_DAYS if days is None else days

    clockify = clockify or build_clockify_client(settings, sleep=sleep)
    attendance_source = attendance_source or build_attendance_source(settings, sleep=sleep)
    pacer = SyncPacer.from_milliseconds(
        settings.CLOCKIFY_API_DELAY_MS,
        settings.RATE_LIMIT_COOLDOWN_MS,
        sleep=sleep,
    )

    async with _sync_lock:
        window = SyncWindow.last_days(days, now=now)
        logger.info(
            "Starting sync (triggered by %s): %s to %s, dry_run=%s",
            triggered_by,
            window.start_date,
            window.end_date,
            dry_run,
        )

        await clockify.initialize()
        outcome = await run_sync(
            window,
            attendance_source=attendance_source,
            time_tracking_sink=clockify,
            dry_run=dry_run,
            pacer=pacer,
        )

    logger.info(
        "Sync complete: found=%d synced=%d skipped=%d failed=%d total_in_clockify=%d%s",
        outcome.meetings_found,
        outcome.synced,
        outcome.skipped,
        outcome.failed,
        outcome.total_in_target,
        " (dry run)" if dry_run else "",
    )

    return SyncRunResult(
        status="success",
        message="Sync completed" if outcome.meetings_found else "No meetings found",
        triggered_by=triggered_by,
        dry_run=dry_run,
        window_start=window.start,
        window_end=window.end,
        stats=outcome,
    )

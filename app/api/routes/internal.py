# app/api/routes/internal.py
import logging
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.internal_auth import verify_internal_api_key
from app.db.session import get_db
from app.schemas.sync import SyncRunResult
from app.services.clockify_client import ClockifyClientError
from app.services.google_meet_client import GoogleMeetClientError
from app.services.google_oauth import GoogleOAuthError
from app.services.sync_job import SyncConfigurationError, run_sync_job
from app.services.token_storage import load_tokens

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/internal",
    tags=["Internal"],
    dependencies=[Depends(verify_internal_api_key)],
)


@router.post(
    "/run-sync",
    response_model=SyncRunResult,
    status_code=HTTPStatus.OK,
    summary="Sync Google Meet attendance into Clockify",
    description=(
        "Runs one complete sync pass over the last `days` days (defaults to "
        "`SYNC_DAYS`) and returns the summary once the pass has finished.\n\n"
        "Every meeting not yet present in Clockify (detected through the "
        "`[Meet:<id>]` tag in entry descriptions) gets one non-billable time "
        "entry. Running the pass again over the same window creates nothing new.\n\n"
        "Intended for cron jobs or a manual trigger; protected via the "
        "`X-Internal-Api-Key` header when configured. Passes are serialised: a "
        "request arriving while another pass runs waits for it first."
    ),
    responses={
        200: {
            "description": "Pass completed. Per-meeting failures are reported in `stats.failed`.",
            "content": {
                "application/json": {
                    "example": {
                        "status": "success",
                        "message": "Sync completed",
                        "triggered_by": "manual",
                        "dry_run": False,
                        "window_start": "2025-11-07T09:00:00Z",
                        "window_end": "2025-11-14T09:00:00Z",
                        "stats": {
                            "meetings_found": 5,
                            "synced": 2,
                            "skipped": 3,
                            "failed": 0,
                            "total_in_target": 5,
                        },
                    }
                }
            },
        },
        401: {
            "description": "Missing/invalid internal API key, or Google not authenticated yet.",
        },
        502: {
            "description": "Google Meet or Clockify could not be read; nothing was synced.",
        },
    },
)
async def trigger_sync(
    dry_run: bool | None = Query(
        default=None,
        description="Count intended creations without writing. Defaults to DRY_RUN.",
    ),
    days: int | None = Query(
        default=None,
        ge=1,
        le=365,
        description="Window size in days back from now. Defaults to SYNC_DAYS.",
    ),
    db: AsyncSession = Depends(get_db),
) -> SyncRunResult:
    """
    Run one sync pass and return its summary.
    """
    if await load_tokens(db) is None:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Google access token not configured. Authenticate via /auth first.",
        )

    try:
        return await run_sync_job(triggered_by="manual", dry_run=dry_run, days=days)
    except SyncConfigurationError as exc:
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    except (GoogleMeetClientError, ClockifyClientError, GoogleOAuthError) as exc:
        logger.error("Sync pass failed: %s", exc)
        raise HTTPException(status_code=HTTPStatus.BAD_GATEWAY, detail=str(exc)) from exc

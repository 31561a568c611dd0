# app/api/routes/health.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.session import get_db
from app.services.token_storage import load_tokens


router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """
    Response schema for the health check endpoint.
    """

    status: str = Field(..., description="Overall health status of the service.", examples=["ok"])
    app_name: str = Field(
        ...,
        description="Human-friendly name of the running application.",
        examples=["Meet Clockify Sync"],
    )
    environment: str = Field(
        ...,
        description="Current deployment environment (local/dev/stage/prod).",
        examples=["local"],
    )
    timestamp_utc: datetime = Field(
        ...,
        description="Server-side timestamp (UTC) at which this health check was generated.",
    )


class ServiceStatus(BaseModel):
    """
    Configuration overview returned by the root endpoint.
    """

    name: str
    status: str = Field("healthy", examples=["healthy"])
    google_configured: bool = Field(
        ..., description="True once Google OAuth tokens have been stored via /auth."
    )
    clockify_configured: bool = Field(
        ..., description="True when CLOCKIFY_API_TOKEN is set."
    )
    environment: str
    sync_days: int
    dry_run: bool
    scheduler_enabled: bool
    endpoints: dict[str, str]


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description=(
        "Lightweight liveness endpoint. Does not contact Google, Clockify or "
        "the database so it stays reliable when those are degraded."
    ),
)
async def health_check() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(
        status="ok",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        timestamp_utc=datetime.now(tz=timezone.utc),
    )


@router.get(
    "/",
    response_model=ServiceStatus,
    summary="Service status and configuration overview",
)
async def service_status(db: AsyncSession = Depends(get_db)) -> ServiceStatus:
    """
    Reports whether both integrations are ready for a sync pass.
    """
    settings = get_settings()
    return ServiceStatus(
        name=settings.APP_NAME,
        google_configured=await load_tokens(db) is not None,
        clockify_configured=bool(settings.CLOCKIFY_API_TOKEN),
        environment=settings.APP_ENV,
        sync_days=settings.SYNC_DAYS,
        dry_run=settings.DRY_RUN,
        scheduler_enabled=settings.ENABLE_SCHEDULER,
        endpoints={
            "health": "/health",
            "sync": "/internal/run-sync",
            "auth": "/auth",
            "oauth-callback": "/callback",
        },
    )

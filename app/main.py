# app/main.py
from fastapi import FastAPI

from app.api.routes import auth, health, internal
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db.session import init_db
from app.services.scheduler import start_scheduler, stop_scheduler


def create_app() -> FastAPI:
    """
    Application factory for the Meet Clockify Sync service.
    """
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Backend service that reads Google Meet attendance history and records\n"
            "each attended meeting once as a non-billable Clockify time entry."
        ),
        version="0.1.0",
    )

    # Routers
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(internal.router)

    @app.on_event("startup")
    async def on_startup() -> None:  # pragma: no cover
        await init_db()
        start_scheduler()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:  # pragma: no cover
        stop_scheduler()

    return app


app = create_app()

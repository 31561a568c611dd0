# app/api/routes/auth.py
import logging
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.session import get_db
from app.services.google_oauth import GoogleOAuthError
from app.services.sync_job import SyncConfigurationError, build_google_oauth
from app.services.token_storage import save_tokens

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])


def _oauth():
    try:
        return build_google_oauth(get_settings())
    except SyncConfigurationError as exc:
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc


@router.get(
    "/auth",
    summary="Start Google OAuth consent flow",
    description=(
        "Redirects to Google's consent screen requesting read-only access to "
        "Meet conference records. Google redirects back to `/callback`."
    ),
    status_code=HTTPStatus.TEMPORARY_REDIRECT,
)
async def start_auth() -> RedirectResponse:
    return RedirectResponse(_oauth().build_auth_url())


@router.get(
    "/callback",
    response_class=HTMLResponse,
    summary="Google OAuth callback",
    description="Exchanges the authorization code and stores the Google tokens.",
)
async def auth_callback(
    code: str | None = Query(default=None, description="Authorization code from Google."),
    db: AsyncSession = Depends(get_db),
) -> HTMLResponse:
    if not code:
        return HTMLResponse(
            "<h1>Authentication Failed</h1><p>No authorization code received</p>",
            status_code=HTTPStatus.BAD_REQUEST,
        )

    try:
        tokens = await _oauth().exchange_code(code)
    except GoogleOAuthError as exc:
        logger.error("OAuth callback failed: %s", exc)
        return HTMLResponse(
            "<h1>Authentication Failed</h1><p>Failed to save credentials.</p>",
            status_code=HTTPStatus.BAD_GATEWAY,
        )

    await save_tokens(db, tokens)
    return HTMLResponse(
        "<h1>Authentication Successful</h1>"
        "<p>Google Meet access token has been saved successfully</p>"
    )

# app/services/google_oauth.py
from __future__ import annotations

import logging
import time
from typing import AsyncContextManager, Callable, Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.schemas.oauth import GoogleTokens
from app.services.token_storage import load_tokens, save_tokens

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
SCOPES = (
    "https://www.googleapis.com/auth/meetings.space.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
)

# Refresh slightly before the real expiry.
EXPIRY_MARGIN_MS = 60_000


class GoogleOAuthError(RuntimeError):
    """
    Raised when no usable Google credentials are available or a token
    endpoint call fails.
    """


class GoogleOAuth:
    """
    Authorization-code flow helpers for the Google Meet API.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not client_id or not client_secret:
            raise ValueError("client_id and client_secret are required")

        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._timeout_seconds = timeout_seconds

    def build_auth_url(self) -> str:
        """
        Consent URL requesting offline access, so a refresh token is issued.
        """
        params = {
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    async def _token_request(self, data: dict) -> dict:
        async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
            resp = await client.post(TOKEN_URL, data=data)

        if resp.status_code != 200:
            raise GoogleOAuthError(
                f"Google token endpoint failed (status={resp.status_code}): {resp.text}"
            )
        payload = resp.json()
        if not payload.get("access_token") or not isinstance(
            payload.get("expires_in"), (int, float)
        ):
            raise GoogleOAuthError(
                "Invalid token response from Google (missing access_token/expires_in)"
            )
        return payload

    @staticmethod
    def _to_tokens(payload: dict, refresh_token: Optional[str]) -> GoogleTokens:
        refresh = payload.get("refresh_token") or refresh_token
        if not refresh:
            raise GoogleOAuthError(
                "Google did not return a refresh token; re-run the consent flow."
            )
        now_ms = int(time.time() * 1000)
        return GoogleTokens(
            access_token=payload["access_token"],
            refresh_token=refresh,
            expires_at=now_ms + int(payload["expires_in"] * 1000),
            token_type=payload.get("token_type", "Bearer"),
            scope=payload.get("scope"),
        )

    async def exchange_code(self, code: str) -> GoogleTokens:
        payload = await self._token_request(
            {
                "code": code,
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "redirect_uri": self._redirect_uri,
                "grant_type": "authorization_code",
            }
        )
        return self._to_tokens(payload, refresh_token=None)

    async def refresh(self, tokens: GoogleTokens) -> GoogleTokens:
        payload = await self._token_request(
            {
                "refresh_token": tokens.refresh_token,
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "grant_type": "refresh_token",
            }
        )
        return self._to_tokens(payload, refresh_token=tokens.refresh_token)


class GoogleTokenProvider:
    """
    Supplies a valid Google access token for the Meet client.

    Tokens are read from the token store on first use, cached in memory, and
    refreshed (and persisted again) shortly before they expire.
    """

    def __init__(
        self,
        oauth: GoogleOAuth,
        session_factory: Callable[[], AsyncContextManager[AsyncSession]],
    ) -> None:
        self._oauth = oauth
        self._session_factory = session_factory
        self._tokens: Optional[GoogleTokens] = None

    @staticmethod
    def _is_fresh(tokens: GoogleTokens) -> bool:
        return tokens.expires_at - EXPIRY_MARGIN_MS > int(time.time() * 1000)

    async def __call__(self) -> str:
        return await self.get_access_token()

    async def get_access_token(self) -> str:
        if self._tokens is None:
            async with self._session_factory() as db:
                self._tokens = await load_tokens(db)
            if self._tokens is None:
                raise GoogleOAuthError(
                    "No saved Google credentials found. Visit /auth to authenticate first."
                )

        if not self._is_fresh(self._tokens):
            logger.info("Refreshing Google access token")
            self._tokens = await self._oauth.refresh(self._tokens)
            async with self._session_factory() as db:
                await save_tokens(db, self._tokens)

        return self._tokens.access_token

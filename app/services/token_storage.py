# app/services/token_storage.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.oauth_token import OAuthToken
from app.schemas.oauth import GoogleTokens

logger = logging.getLogger(__name__)

GOOGLE_PROVIDER = "google"


async def save_tokens(
    db: AsyncSession,
    tokens: GoogleTokens,
    provider: str = GOOGLE_PROVIDER,
) -> None:
    """
    Insert or update the stored credentials for `provider`.
    """
    result = await db.execute(select(OAuthToken).where(OAuthToken.provider == provider))
    row = result.scalar_one_or_none()

    if row is None:
        row = OAuthToken(provider=provider)
        db.add(row)

    row.access_token = tokens.access_token
    row.refresh_token = tokens.refresh_token
    row.expires_at = tokens.expires_at
    row.token_type = tokens.token_type
    row.scope = tokens.scope

    await db.commit()
    logger.info("Stored %s OAuth tokens", provider)


async def load_tokens(
    db: AsyncSession,
    provider: str = GOOGLE_PROVIDER,
) -> Optional[GoogleTokens]:
    result = await db.execute(select(OAuthToken).where(OAuthToken.provider == provider))
    row = result.scalar_one_or_none()
    if row is None:
        return None
    return GoogleTokens.model_validate(row)


async def delete_tokens(db: AsyncSession, provider: str = GOOGLE_PROVIDER) -> None:
    await db.execute(delete(OAuthToken).where(OAuthToken.provider == provider))
    await db.commit()
    logger.info("Deleted %s OAuth tokens", provider)

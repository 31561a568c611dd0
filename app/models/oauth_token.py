# app/models/oauth_token.py
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, Integer, String, Text

from app.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class OAuthToken(Base):
    """
    Stored OAuth credentials, one row per provider.
    """

    __tablename__ = "oauth_tokens"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String(32), nullable=False, unique=True, index=True)

    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    expires_at = Column(BigInteger, nullable=False)
    token_type = Column(String(32), nullable=False, default="Bearer")
    scope = Column(Text, nullable=True)

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    def __repr__(self) -> str:
        return f"<OAuthToken provider={self.provider} expires_at={self.expires_at}>"

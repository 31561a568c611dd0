# app/db/session.py
import os
import sys
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import get_settings
from app.db.base import Base

# Register ORM models on Base.metadata before create_all.
from app.models import oauth_token  # noqa: E402,F401

settings = get_settings()

# Detect if we're running under pytest
IS_TEST = "PYTEST_CURRENT_TEST" in os.environ or "pytest" in sys.modules

engine = create_async_engine(
    settings.DB_URL,
    echo=False,
    # Tests drive the engine from several event loops; avoid reusing
    # connections across them. SQLite gains nothing from pooling.
    poolclass=NullPool if IS_TEST or settings.DB_URL.startswith("sqlite") else None,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an async SQLAlchemy session.

    The session is automatically closed when the request is completed.
    """
    async with AsyncSessionLocal() as session:
        yield session


async def init_db() -> None:
    """
    Create missing tables (OAuth token storage) on application startup.

    Safe to call repeatedly; existing tables and rows are left untouched.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

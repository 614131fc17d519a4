# clinic/db/sql.py
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from clinic.core.config import settings
from clinic.db.base import Base

logger = logging.getLogger(__name__)


def build_engine(dsn: str) -> AsyncEngine:
    """
    Create the async engine. Pool sizing only applies to server databases;
    SQLite (dev/test) uses the driver's default pool.
    """
    kwargs: Dict[str, Any] = {"echo": settings.DB_ECHO}
    if make_url(dsn).get_backend_name() != "sqlite":
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_pre_ping=True,
        )
    return create_async_engine(dsn, **kwargs)


engine = build_engine(settings.SQL_DSN)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
    autoflush=False,
    class_=AsyncSession,
)


async def get_session() -> AsyncIterator[AsyncSession]:
    """
    Provide a DB session for each request.
    Commits when the handler succeeds, rolls back on any exception, so every
    multi-step operation inside one request is all-or-nothing.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping_db(session: AsyncSession) -> bool:
    await session.execute(text("SELECT 1"))
    return True


async def init_db(bind: AsyncEngine = engine) -> None:
    """
    Create tables if they don't exist.
    """
    # Import all models so they get registered on Base.metadata
    from clinic import models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")

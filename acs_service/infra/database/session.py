"""Database engine and session management."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from acs_service.core.settings import get_app_settings, get_db_settings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

db_settings = get_db_settings()
app_settings = get_app_settings()

engine = create_async_engine(
    db_settings.database_url,
    pool_pre_ping=db_settings.pool_pre_ping,
    echo=db_settings.echo or app_settings.debug,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get async database session.

    Example:
        async with get_async_session() as session:
            resources = await repo.list_all(session)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_database() -> None:
    """Verify connectivity and create missing tables when configured to.

    Raises:
        ConnectionError: If the database cannot be reached.
    """
    # Register models on Base.metadata
    from acs_service.core.database import Base
    from acs_service.features.resources import models  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if db_settings.create_tables:
                await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.exception(
            "Failed to initialize database",
            extra={"url": engine.url.render_as_string(hide_password=True)},
        )
        msg = f"Unable to connect to database: {e}"
        raise ConnectionError(msg) from e

    logger.info(
        "Database initialized",
        extra={
            "url": engine.url.render_as_string(hide_password=True),
            "create_tables": db_settings.create_tables,
        },
    )


async def close_database() -> None:
    """Dispose of the engine's connection pool."""
    await engine.dispose()
    logger.info("Database connections closed")


__all__ = [
    "AsyncSessionLocal",
    "close_database",
    "engine",
    "get_async_session",
    "init_database",
]

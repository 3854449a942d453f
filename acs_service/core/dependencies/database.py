"""Database dependencies for FastAPI route handlers.

Two session getters exist for different use cases:

1. `get_db_session()` (this module) - FastAPI dependency, lifecycle tied to
   the HTTP request. Use with `Depends(get_db_session)`.
2. `get_async_session()` (infra.database) - async context manager for CLI
   commands and scripts.

Both use the same session factory.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from acs_service.infra.database import get_async_session


async def get_db_session() -> AsyncGenerator[AsyncSession]:
    """FastAPI dependency for database session.

    Yields:
        Database session that is automatically closed after request.
    """
    async with get_async_session() as session:
        yield session

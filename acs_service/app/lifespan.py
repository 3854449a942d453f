"""Application lifespan management.

Startup Order:
1. Logging - always runs first
2. Database - connectivity check and table creation
3. Resource snapshot - first load so the first request does not pay for it

Shutdown Order: Reverse of startup
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from acs_service.core.settings import get_app_settings, get_logging_settings
from acs_service.infra.logging.config import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


async def _startup_database() -> None:
    from acs_service.infra.database import init_database

    await init_database()


async def _startup_snapshot() -> None:
    """Load the resource snapshot once at boot."""
    from acs_service.features.resources.hierarchy import get_hierarchy_store
    from acs_service.features.resources.patterns import clear_pattern_cache
    from acs_service.features.resources.repository import get_resource_repository
    from acs_service.infra.database import get_async_session

    clear_pattern_cache()
    async with get_async_session() as session:
        snapshot = await get_hierarchy_store().refresh(session, get_resource_repository())

    logger.info("Resource snapshot loaded", extra={"resource_count": len(snapshot)})


async def _shutdown_database() -> None:
    from acs_service.infra.database import close_database

    await close_database()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    _ = app

    app_settings = get_app_settings()
    setup_logging(log_settings=get_logging_settings(), force=True)
    logger.info(
        "Application starting",
        extra={
            "service": app_settings.service_name,
            "version": app_settings.version,
            "environment": app_settings.environment,
        },
    )

    await _startup_database()
    await _startup_snapshot()

    logger.info(
        "Application is LIVE and ready to serve requests on http://%s:%s",
        app_settings.host,
        app_settings.port,
        extra={"service": app_settings.service_name},
    )

    yield

    logger.info("Application shutting down", extra={"service": app_settings.service_name})
    await _shutdown_database()
    logger.info("Application shutdown complete")


__all__ = ["lifespan"]

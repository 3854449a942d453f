"""Router registry and setup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from acs_service.core.settings import get_app_settings
from acs_service.features.resources.router import router as resources_router

if TYPE_CHECKING:
    from fastapi import FastAPI

    from acs_service.core.settings.app import AppSettings

logger = logging.getLogger(__name__)


def setup_routers(app: FastAPI, app_settings: AppSettings | None = None) -> None:
    """Register all feature routers with the application.

    Args:
        app: FastAPI application instance.
        app_settings: Optional application settings override for the API prefix.
    """
    app_settings = app_settings or get_app_settings()
    api_prefix = app_settings.api_prefix

    app.include_router(resources_router, prefix=api_prefix)

    logger.info("Resources router registered at %s/resources", api_prefix)

"""Modular Pydantic Settings v2 configuration.

One frozen settings class per concern, each with its own environment prefix
(APP_, DB_, LOG_, PAGINATION_, RESOURCES_). Import through the cached loaders:

    from acs_service.core.settings import get_resource_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .app import AppSettings
from .database import DatabaseSettings
from .loader import (
    clear_all_caches,
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_pagination_settings,
    get_resource_settings,
)
from .logs import LoggingSettings
from .pagination import PaginationSettings
from .resources import ResourceSettings

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "PaginationSettings",
    "ResourceSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_db_settings",
    "get_logging_settings",
    "get_pagination_settings",
    "get_resource_settings",
]

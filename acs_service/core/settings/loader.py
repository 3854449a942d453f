"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Usage:
    from acs_service.core.settings import get_resource_settings

    settings = get_resource_settings()  # First call: loads and validates
    settings = get_resource_settings()  # Subsequent calls: cached instance

Testing:
    clear_all_caches()  # forces the next getter call to reload from env
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .database import DatabaseSettings
from .logs import LoggingSettings
from .pagination import PaginationSettings
from .resources import ResourceSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings."""
    return AppSettings()


@lru_cache(maxsize=1)
def get_db_settings() -> DatabaseSettings:
    """Get cached database settings."""
    return DatabaseSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings."""
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_pagination_settings() -> PaginationSettings:
    """Get cached pagination settings."""
    return PaginationSettings()


@lru_cache(maxsize=1)
def get_resource_settings() -> ResourceSettings:
    """Get cached resource matching settings."""
    return ResourceSettings()


def clear_all_caches() -> None:
    """Clear every settings cache.

    Useful in tests that change environment variables between cases.
    """
    get_app_settings.cache_clear()
    get_db_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_pagination_settings.cache_clear()
    get_resource_settings.cache_clear()

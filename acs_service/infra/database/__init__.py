"""Database infrastructure: engine, session factory and lifecycle helpers."""

from __future__ import annotations

from acs_service.infra.database.session import (
    AsyncSessionLocal,
    close_database,
    engine,
    get_async_session,
    init_database,
)

__all__ = [
    "AsyncSessionLocal",
    "close_database",
    "engine",
    "get_async_session",
    "init_database",
]

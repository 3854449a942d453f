"""FastAPI dependencies shared across features."""

from __future__ import annotations

from acs_service.core.dependencies.database import get_db_session

__all__ = ["get_db_session"]

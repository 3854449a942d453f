"""Database building blocks: declarative base, repository, filters, errors."""

from __future__ import annotations

from acs_service.core.database.base import (
    NAMING_CONVENTION,
    Base,
    IntegerPKMixin,
    TimestampedBase,
    TimestampMixin,
)
from acs_service.core.database.exceptions import NotFoundError, RepositoryError
from acs_service.core.database.filters import (
    FilterGroup,
    LimitOffset,
    OrderBy,
    SearchFilter,
    StatementFilter,
)
from acs_service.core.database.repository import BaseRepository, SearchResult

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "BaseRepository",
    "FilterGroup",
    "IntegerPKMixin",
    "LimitOffset",
    "NotFoundError",
    "OrderBy",
    "RepositoryError",
    "SearchFilter",
    "SearchResult",
    "StatementFilter",
    "TimestampMixin",
    "TimestampedBase",
]

"""Minimal generic repository for SQLAlchemy models.

Provides basic CRUD operations with explicit session passing.
For complex queries, use the session directly - this is a convenience, not a cage.

Example:
    class ResourceRepository(BaseRepository[Resource]):
        async def get_by_uri(self, session: AsyncSession, uri: str) -> Resource | None:
            stmt = select(Resource).where(func.lower(Resource.uri) == uri.lower())
            result = await session.execute(stmt)
            return result.scalars().first()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar, cast

from sqlalchemy import Select, func, select

from acs_service.core.database.exceptions import NotFoundError
from acs_service.infra.logging import get_lazy_logger

T = TypeVar("T")

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute


@dataclass(slots=True, frozen=True)
class SearchResult(Generic[T]):
    """Paginated search result container.

    Attributes:
        items: List of items for current page
        total: Total count across all pages
        limit: Page size
        offset: Current offset
    """

    items: Sequence[T]
    total: int
    limit: int
    offset: int

    @property
    def page(self) -> int:
        """Current page number (1-indexed)."""
        return (self.offset // self.limit) + 1 if self.limit else 1

    @property
    def pages(self) -> int:
        """Total number of pages."""
        if self.limit == 0:
            return 1
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_next(self) -> bool:
        """Whether there are more pages after current."""
        return self.offset + len(self.items) < self.total

    @property
    def has_prev(self) -> bool:
        """Whether there are pages before current."""
        return self.offset > 0


class BaseRepository(Generic[T]):
    """Minimal generic repository for CRUD operations.

    Provides:
        - get(session, id) -> T | None
        - get_or_raise(session, id) -> T (raises NotFoundError)
        - list(session, limit, offset) -> Sequence[T]
        - search(session, statement, limit, offset) -> SearchResult[T]
        - create(session, instance) -> T
        - delete(session, instance) -> None

    Session is always explicit - no hidden state.
    """

    __slots__ = ("model", "_logger", "_lazy")

    def __init__(self, model: type[T]) -> None:
        self.model = model
        # Standard logger for INFO/WARNING/ERROR
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        # Lazy logger for DEBUG (zero overhead when DEBUG disabled)
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def get(self, session: AsyncSession, id: Any) -> T | None:  # noqa: A002
        """Get entity by primary key.

        Returns:
            Entity if found, None otherwise
        """
        instance = await session.get(self.model, id)

        self._lazy.debug(
            lambda: f"db.get: {self.model.__name__}({id}) -> {'found' if instance else 'not found'}"
        )
        return instance

    async def get_or_raise(self, session: AsyncSession, id: Any) -> T:  # noqa: A002
        """Get entity by primary key or raise NotFoundError.

        Raises:
            NotFoundError: If entity doesn't exist
        """
        instance = await self.get(session, id)
        if instance is None:
            self._logger.info(
                "Entity not found",
                extra={
                    "entity": self.model.__name__,
                    "id": str(id),
                    "operation": "db.get_or_raise",
                },
            )
            raise NotFoundError(self.model.__name__, {"id": id})
        return instance

    async def list(
        self,
        session: AsyncSession,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> Sequence[T]:
        """List entities in primary key order.

        Args:
            session: Database session
            limit: Maximum results to return, or None for all
            offset: Number of results to skip
        """
        stmt = select(self.model).order_by(self._pk_attr().asc()).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(
            lambda: f"db.list: {self.model.__name__}(limit={limit}, offset={offset}) -> {len(items)} items"
        )
        return items

    async def search(
        self,
        session: AsyncSession,
        statement: Select[tuple[T]],
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> SearchResult[T]:
        """Execute paginated search with total count.

        Takes a pre-built statement (with filters applied) and adds pagination.

        Args:
            session: Database session
            statement: SQLAlchemy select statement (apply filters before calling)
            limit: Page size
            offset: Results to skip

        Returns:
            SearchResult with items, total count, and pagination info
        """
        count_stmt = select(func.count()).select_from(statement.order_by(None).subquery())
        total = (await session.execute(count_stmt)).scalar_one()

        paginated = statement.limit(limit).offset(offset)
        result = await session.execute(paginated)
        items = result.scalars().all()

        search_result = SearchResult(items=items, total=total, limit=limit, offset=offset)
        self._lazy.debug(
            lambda: f"db.search: {self.model.__name__}(limit={limit}, offset={offset}) -> {len(items)}/{total} items, page {search_result.page}/{search_result.pages}"
        )
        return search_result

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Persist a new entity.

        Adds to session, flushes to get generated values (like id),
        and refreshes to ensure instance is up-to-date.
        """
        session.add(instance)
        await session.flush()
        await session.refresh(instance)

        entity_id = getattr(instance, "id", None)
        self._lazy.debug(lambda: f"db.create: {self.model.__name__}(id={entity_id})")
        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        """Delete an entity."""
        entity_id = getattr(instance, "id", None)
        await session.delete(instance)
        await session.flush()

        self._logger.info(
            "Entity deleted",
            extra={"entity": self.model.__name__, "id": str(entity_id), "operation": "db.delete"},
        )

    def _pk_attr(self) -> InstrumentedAttribute[Any]:
        attr = getattr(self.model, "id", None)
        if attr is None:
            raise AttributeError(f"{self.model.__name__} has no 'id' attribute")
        return cast("InstrumentedAttribute[Any]", attr)


__all__ = [
    "BaseRepository",
    "SearchResult",
]

"""Repository for the resources feature."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select

from acs_service.core.database import FilterGroup, LimitOffset, OrderBy, SearchFilter
from acs_service.core.database.repository import BaseRepository, SearchResult
from acs_service.features.resources.models import Resource
from acs_service.features.resources.specifications import (
    Specification,
    SpecificationFilter,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession


class ResourceRepository(BaseRepository[Resource]):
    """Repository for Resource model.

    Inherits from BaseRepository:
        - get(session, id) -> Resource | None
        - get_or_raise(session, id) -> Resource
        - search(session, statement, limit, offset) -> SearchResult[Resource]
        - create(session, instance) -> Resource
        - delete(session, instance) -> None

    Feature-specific methods below.
    """

    def __init__(self) -> None:
        super().__init__(Resource)

    async def get_by_uri(
        self,
        session: AsyncSession,
        uri: str,
        *,
        exclude_id: int | None = None,
    ) -> Resource | None:
        """Get the first resource whose URI equals ``uri`` ignoring case.

        Args:
            session: Database session
            uri: Raw URI pattern to look up
            exclude_id: Skip this resource (used when checking an update)
        """
        stmt = select(Resource).where(func.lower(Resource.uri) == uri.strip().lower())
        if exclude_id is not None:
            stmt = stmt.where(Resource.id != exclude_id)
        stmt = stmt.order_by(Resource.id.asc())

        result = await session.execute(stmt)
        resource = result.scalars().first()

        self._lazy.debug(lambda: f"db.get_by_uri({uri!r}) -> {resource is not None}")
        return resource

    async def list_paged(
        self,
        session: AsyncSession,
        specification: Specification,
        *,
        page: int = 1,
        page_size: int = 20,
        search: str | None = None,
    ) -> SearchResult[Resource]:
        """List resources matching a specification, one page at a time.

        Args:
            session: Database session
            specification: Attribute predicate built by the specification builder
            page: 1-indexed page number
            page_size: Items per page
            search: Optional free-text search over name, URI and description
        """
        filters = FilterGroup(
            [
                SpecificationFilter(specification),
                SearchFilter([Resource.name, Resource.uri, Resource.description], search or ""),
                OrderBy(Resource.id, "asc"),
            ]
        )
        stmt = filters.apply(select(Resource))
        window = LimitOffset.from_page(page, page_size)
        return await self.search(session, stmt, limit=window.limit, offset=window.offset)

    async def get_children(
        self,
        session: AsyncSession,
        resource_id: int,
    ) -> Sequence[Resource]:
        """Direct children of a resource, in id order."""
        stmt = (
            select(Resource)
            .where(Resource.parent_resource_id == resource_id)
            .order_by(Resource.id.asc())
        )
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.get_children({resource_id}) -> {len(items)} items")
        return items

    async def list_all(self, session: AsyncSession) -> Sequence[Resource]:
        """Every resource in id order (snapshot source)."""
        return await self.list(session)

    async def find_duplicate_uris(self, session: AsyncSession) -> dict[str, list[Resource]]:
        """Group resources whose URIs collide ignoring case.

        Returns:
            Lower-cased URI -> resources sharing it (only groups of two or more)
        """
        dupes = (
            select(func.lower(Resource.uri).label("folded"))
            .group_by(func.lower(Resource.uri))
            .having(func.count() > 1)
        )
        stmt = (
            select(Resource)
            .where(func.lower(Resource.uri).in_(dupes.scalar_subquery()))
            .order_by(Resource.id.asc())
        )
        result = await session.execute(stmt)

        groups: dict[str, list[Resource]] = {}
        for resource in result.scalars().all():
            groups.setdefault(resource.uri.lower(), []).append(resource)

        self._lazy.debug(lambda: f"db.find_duplicate_uris() -> {len(groups)} groups")
        return groups


# Factory function for dependency injection
_resource_repository: ResourceRepository | None = None


def get_resource_repository() -> ResourceRepository:
    """Get ResourceRepository instance."""
    global _resource_repository
    if _resource_repository is None:
        _resource_repository = ResourceRepository()
    return _resource_repository

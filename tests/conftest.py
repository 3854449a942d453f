"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings that keep tests off real infrastructure
    - Database Fixtures: in-memory SQLite engine and session
    - Resource Fixtures: snapshot store, service and seeded data
    - Application Fixtures: FastAPI app with overridden dependencies and HTTP client
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Callable, Iterator
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from fastapi import FastAPI
    from sqlalchemy.ext.asyncio import AsyncEngine

    from acs_service.features.resources.hierarchy import HierarchyStore, ResourceRecord
    from acs_service.features.resources.service import ResourceService

# Ensure tests run without external infrastructure
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("DB_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Iterator[None]:
    """Reload settings and the pattern cache from the environment for every test."""
    from acs_service.core.settings import clear_all_caches
    from acs_service.features.resources.patterns import clear_pattern_cache

    clear_all_caches()
    clear_pattern_cache()
    yield
    clear_all_caches()
    clear_pattern_cache()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Create async SQLAlchemy engine with in-memory SQLite.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create async database session with automatic table creation and cleanup.

    Example:
        async def test_create_resource(db_session):
            resource = Resource(name="users", uri="/api/users")
            db_session.add(resource)
            await db_session.commit()
            assert resource.id is not None
    """
    from acs_service.core.database.base import Base
    from acs_service.features.resources import models  # noqa: F401

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ============================================================================
# Resource Fixtures
# ============================================================================


@pytest.fixture
def store() -> HierarchyStore:
    """A private snapshot store, never the process-wide one."""
    from acs_service.features.resources.hierarchy import HierarchyStore

    return HierarchyStore()


@pytest.fixture
def service(db_session: AsyncSession, store: HierarchyStore) -> ResourceService:
    from acs_service.features.resources.service import ResourceService

    return ResourceService(db_session, store=store)


@pytest.fixture
def make_record() -> Callable[..., ResourceRecord]:
    """Factory for snapshot records.

    Example:
        root = make_record(1, "/api")
        child = make_record(2, "/api/users", parent=1)
    """
    from acs_service.features.resources.hierarchy import ResourceRecord

    def _make(
        resource_id: int,
        uri: str,
        *,
        parent: int | None = None,
        name: str | None = None,
        **fields: Any,
    ) -> ResourceRecord:
        fields.setdefault("resource_type", "API")
        fields.setdefault("version", "1.0.0")
        return ResourceRecord.build(
            id=resource_id,
            name=name or f"resource-{resource_id}",
            uri=uri,
            parent_resource_id=parent,
            **fields,
        )

    return _make


@pytest.fixture
async def seed_resources(db_session: AsyncSession) -> Callable[..., Any]:
    """Insert resources directly, bypassing service validation.

    Example:
        api, users = await seed_resources(("/api", None), ("/api/users", 0))

    The second tuple item is the index of an earlier row to use as parent.
    """
    from acs_service.features.resources.models import Resource

    async def _seed(*rows: tuple[str, int | None] | dict[str, Any]) -> list[Resource]:
        created: list[Resource] = []
        for row in rows:
            if isinstance(row, dict):
                fields = dict(row)
            else:
                uri, parent_index = row
                fields = {
                    "uri": uri,
                    "parent_resource_id": (
                        created[parent_index].id if parent_index is not None else None
                    ),
                }
            fields.setdefault("name", fields["uri"].rstrip("/").rsplit("/", 1)[-1] or "root")
            resource = Resource(**fields)
            db_session.add(resource)
            await db_session.flush()
            created.append(resource)
        await db_session.commit()
        return created

    return _seed


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
async def app(db_session: AsyncSession, store: HierarchyStore) -> FastAPI:
    """FastAPI application wired to the test session and store."""
    from acs_service.app.main import create_app
    from acs_service.core.dependencies.database import get_db_session
    from acs_service.features.resources.hierarchy import get_hierarchy_store

    application = create_app()

    async def _session_override() -> AsyncGenerator[AsyncSession]:
        yield db_session

    application.dependency_overrides[get_db_session] = _session_override
    application.dependency_overrides[get_hierarchy_store] = lambda: store
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client over the ASGI app (lifespan is not run)."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

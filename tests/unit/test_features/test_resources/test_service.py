"""Tests for ResourceService against an in-memory database."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from sqlalchemy.exc import OperationalError

from acs_service.core.database import NotFoundError
from acs_service.core.exceptions import ConflictException, ValidationException
from acs_service.features.resources.hierarchy import HierarchyStore
from acs_service.features.resources.matching import MatchType
from acs_service.features.resources.patterns import PatternError, compile_pattern
from acs_service.features.resources.protection import ProtectionLevel
from acs_service.features.resources.schemas import ResourceCreate, ResourceUpdate
from acs_service.features.resources.service import ResourceService, derive_name
from acs_service.features.resources.specifications import ResourceFilters

Seed = Callable[..., Any]


@pytest.mark.parametrize(
    ("pattern", "expected"),
    [
        ("/api/users", "users"),
        ("/api/users/{id}", "id"),
        ("/api/admin/*", "admin"),
        ("/*", "/*"),
    ],
)
def test_derive_name(pattern: str, expected: str) -> None:
    assert derive_name(compile_pattern(pattern)) == expected


class TestCreate:
    async def test_defaults_are_filled_in(self, service: ResourceService) -> None:
        resource = await service.create_resource(ResourceCreate(uri="/api/users/{id}"))

        assert resource.id is not None
        assert resource.name == "id"
        assert resource.resource_type == "API"
        assert resource.version == "1.0.0"
        assert resource.is_active

    async def test_snapshot_is_refreshed(self, service: ResourceService) -> None:
        await service.create_resource(ResourceCreate(uri="/api/users"))

        result = await service.resolve("/api/users")

        assert result is not None
        assert result.resource.uri == "/api/users"

    async def test_duplicate_uri_ignoring_case(self, service: ResourceService) -> None:
        first = await service.create_resource(ResourceCreate(uri="/api/users"))

        with pytest.raises(ConflictException) as exc_info:
            await service.create_resource(ResourceCreate(uri="/API/Users"))

        assert exc_info.value.status_code == 409
        assert exc_info.value.type == "resource-uri-exists"
        assert exc_info.value.extra["conflicting_resource_id"] == first.id

    async def test_invalid_pattern(self, service: ResourceService) -> None:
        with pytest.raises(ValidationException) as exc_info:
            await service.create_resource(ResourceCreate(uri="/api/{}/x"))

        assert exc_info.value.type == "invalid-uri-pattern"
        assert any("empty parameter name" in e for e in exc_info.value.extra["errors"])

    async def test_unknown_parent(self, service: ResourceService) -> None:
        with pytest.raises(ValidationException) as exc_info:
            await service.create_resource(
                ResourceCreate(uri="/api/users", parent_resource_id=999)
            )

        assert exc_info.value.type == "parent-resource-not-found"

    async def test_with_parent(self, service: ResourceService) -> None:
        parent = await service.create_resource(ResourceCreate(uri="/api"))
        child = await service.create_resource(
            ResourceCreate(uri="/api/users", parent_resource_id=parent.id, name="Users")
        )

        assert child.parent_resource_id == parent.id
        assert child.name == "Users"
        assert [r.id for r in await service.children(parent.id)] == [child.id]


class TestUpdate:
    async def test_partial_update(self, service: ResourceService) -> None:
        resource = await service.create_resource(
            ResourceCreate(uri="/api/users", description="All users")
        )

        updated = await service.update_resource(resource.id, ResourceUpdate(version="2.0"))

        assert updated.version == "2.0"
        assert updated.description == "All users"
        assert updated.uri == "/api/users"

    async def test_uri_change_is_visible_to_resolution(self, service: ResourceService) -> None:
        resource = await service.create_resource(ResourceCreate(uri="/api/users"))

        await service.update_resource(resource.id, ResourceUpdate(uri="/api/people"))

        assert await service.resolve("/api/users") is None
        assert await service.resolve("/api/people") is not None

    async def test_own_uri_with_different_case_is_allowed(
        self, service: ResourceService
    ) -> None:
        resource = await service.create_resource(ResourceCreate(uri="/api/users"))

        updated = await service.update_resource(resource.id, ResourceUpdate(uri="/API/users"))

        assert updated.uri == "/API/users"

    async def test_uri_taken(self, service: ResourceService) -> None:
        await service.create_resource(ResourceCreate(uri="/api/users"))
        other = await service.create_resource(ResourceCreate(uri="/api/orders"))

        with pytest.raises(ConflictException):
            await service.update_resource(other.id, ResourceUpdate(uri="/api/USERS"))

    async def test_invalid_uri(self, service: ResourceService) -> None:
        resource = await service.create_resource(ResourceCreate(uri="/api/users"))

        with pytest.raises(ValidationException):
            await service.update_resource(resource.id, ResourceUpdate(uri="/api/{x"))

    async def test_cycle_is_rejected(self, service: ResourceService) -> None:
        a = await service.create_resource(ResourceCreate(uri="/a"))
        b = await service.create_resource(ResourceCreate(uri="/a/b", parent_resource_id=a.id))
        c = await service.create_resource(ResourceCreate(uri="/a/b/c", parent_resource_id=b.id))

        with pytest.raises(ConflictException) as exc_info:
            await service.update_resource(a.id, ResourceUpdate(parent_resource_id=c.id))

        assert exc_info.value.type == "resource-hierarchy-cycle"
        assert exc_info.value.extra["cycle"] == [a.id, c.id, b.id, a.id]

    async def test_self_parent_is_rejected(self, service: ResourceService) -> None:
        a = await service.create_resource(ResourceCreate(uri="/a"))

        with pytest.raises(ConflictException):
            await service.update_resource(a.id, ResourceUpdate(parent_resource_id=a.id))

    async def test_detach_from_parent(self, service: ResourceService) -> None:
        parent = await service.create_resource(ResourceCreate(uri="/api"))
        child = await service.create_resource(
            ResourceCreate(uri="/api/users", parent_resource_id=parent.id)
        )

        updated = await service.update_resource(
            child.id, ResourceUpdate(parent_resource_id=None)
        )

        assert updated.parent_resource_id is None
        assert await service.children(parent.id) == ()

    async def test_missing_resource(self, service: ResourceService) -> None:
        with pytest.raises(NotFoundError):
            await service.update_resource(404, ResourceUpdate(name="x"))


class TestDelete:
    async def test_delete_leaf(self, service: ResourceService) -> None:
        resource = await service.create_resource(ResourceCreate(uri="/api/users"))

        await service.delete_resource(resource.id)

        with pytest.raises(NotFoundError):
            await service.get_resource(resource.id)
        assert await service.resolve("/api/users") is None

    async def test_parent_with_children_is_refused(self, service: ResourceService) -> None:
        parent = await service.create_resource(ResourceCreate(uri="/api"))
        child = await service.create_resource(
            ResourceCreate(uri="/api/users", parent_resource_id=parent.id)
        )

        with pytest.raises(ConflictException) as exc_info:
            await service.delete_resource(parent.id)

        assert exc_info.value.type == "resource-has-children"
        assert exc_info.value.extra["child_ids"] == [child.id]
        assert (await service.get_resource(parent.id)).id == parent.id


class TestResolution:
    async def test_most_specific_wins(self, service: ResourceService, seed_resources: Seed) -> None:
        await seed_resources(
            ("/api/*", None),
            ("/api/users/{id}", None),
            ("/api/users/me", None),
        )

        result = await service.resolve("/api/users/me")

        assert result is not None
        assert result.resource.uri == "/api/users/me"
        assert result.match_type is MatchType.EXACT
        assert result.confidence == 1.0

    async def test_parameters_are_extracted(
        self, service: ResourceService, seed_resources: Seed
    ) -> None:
        await seed_resources(("/api/users/{id}", None))

        result = await service.resolve("/api/users/42?expand=true")

        assert result is not None
        assert result.extracted_parameters == {"id": "42"}

    async def test_inactive_resources_still_govern(
        self, service: ResourceService, seed_resources: Seed
    ) -> None:
        await seed_resources({"uri": "/api/legacy", "is_active": False})

        assert await service.resolve("/api/legacy") is not None

    async def test_no_match(self, service: ResourceService, seed_resources: Seed) -> None:
        await seed_resources(("/api/users", None))

        assert await service.resolve("/public") is None

    async def test_invalid_stored_pattern_is_skipped(
        self, service: ResourceService, seed_resources: Seed
    ) -> None:
        await seed_resources(("/api/{}", None), ("/api/*", None))

        result = await service.resolve("/api/x")

        assert result is not None
        assert result.resource.uri == "/api/*"

    async def test_protection_status(
        self, service: ResourceService, seed_resources: Seed
    ) -> None:
        await seed_resources(("/api/*", None), ("/api/users/{id}", None))

        status = await service.protection_status("/api/users/7")

        assert status.level is ProtectionLevel.PARAMETER_PROTECTED
        assert [m.resource.uri for m in status.matches] == ["/api/users/{id}", "/api/*"]

    async def test_resolution_is_repeatable(
        self, service: ResourceService, seed_resources: Seed
    ) -> None:
        await seed_resources(("/api/*", None), ("/api/users/{id}", None))
        snapshot = await service.snapshot()

        first = await service.resolve("/api/users/7")
        second = await service.resolve("/api/users/7")
        first_status = await service.protection_status("/api/users/7")
        second_status = await service.protection_status("/api/users/7")

        assert await service.snapshot() is snapshot
        assert first is not None
        assert second is not None
        assert first.resource.id == second.resource.id
        assert first.extracted_parameters == second.extracted_parameters == {"id": "7"}
        assert first.confidence == second.confidence
        assert first_status.level is second_status.level
        assert [(m.resource.id, m.confidence) for m in first_status.matches] == [
            (m.resource.id, m.confidence) for m in second_status.matches
        ]

    async def test_unprotected(self, service: ResourceService) -> None:
        status = await service.protection_status("/anything")

        assert status.level is ProtectionLevel.UNPROTECTED
        assert not status.is_protected


class TestPatternTools:
    def test_validate_never_raises(self, service: ResourceService) -> None:
        assert not service.validate_pattern("/api/{}").is_valid
        assert service.validate_pattern("/api/{id}").is_valid

    def test_test_pattern(self, service: ResourceService) -> None:
        report = service.test_pattern("/api/{id}", ["/api/1", "/other"])

        assert report.match_count == 1
        assert report.match_percentage == 50.0

    def test_test_pattern_rejects_invalid_pattern(self, service: ResourceService) -> None:
        with pytest.raises(PatternError):
            service.test_pattern("/api/{", ["/api/1"])

    async def test_find_conflicts(self, service: ResourceService, seed_resources: Seed) -> None:
        me, wildcard, _ = await seed_resources(
            ("/api/users/me", None),
            ("/api/*", None),
            ("/api/orders", None),
        )

        conflicts = await service.find_conflicts("/api/users/{id}")
        assert [r.id for r in conflicts] == [me.id, wildcard.id]

        conflicts = await service.find_conflicts("/api/users/{id}", exclude_id=me.id)
        assert [r.id for r in conflicts] == [wildcard.id]

    async def test_validate_all_patterns(
        self, service: ResourceService, seed_resources: Seed
    ) -> None:
        _, broken = await seed_resources(("/api/users", None), ("/api/{}", None))

        total, invalid = await service.validate_all_patterns()

        assert total == 2
        assert [r.id for r in invalid] == [broken.id]
        assert invalid[0].pattern_errors

    async def test_find_duplicates(self, service: ResourceService, seed_resources: Seed) -> None:
        first, second, _ = await seed_resources(
            ("/api/users", None),
            ("/API/Users", None),
            ("/api/orders", None),
        )

        groups = await service.find_duplicates()

        assert list(groups) == ["/api/users"]
        assert [r.id for r in groups["/api/users"]] == [first.id, second.id]


class TestDiscoveryAndHierarchy:
    @pytest.fixture
    async def tree(self, seed_resources: Seed) -> list[Any]:
        return await seed_resources(
            ("/api", None),
            ("/api/users", 0),
            ("/api/users/{id}", 1),
            {"uri": "/api/admin", "is_active": False},
            ("/pages", None),
        )

    async def test_discover(self, service: ResourceService, tree: list[Any]) -> None:
        result = await service.discover("/api")

        assert [r.id for r in result.resources] == [tree[0].id, tree[1].id, tree[2].id]
        assert result.max_depth == 10

    async def test_discover_include_inactive(
        self, service: ResourceService, tree: list[Any]
    ) -> None:
        result = await service.discover("/api", include_inactive=True)

        assert tree[3].id in {r.id for r in result.resources}

    async def test_discover_depth_is_clamped(
        self, service: ResourceService, tree: list[Any]
    ) -> None:
        result = await service.discover("/", max_depth=100_000)
        assert result.max_depth == 50

    async def test_hierarchy(self, service: ResourceService, tree: list[Any]) -> None:
        node = await service.hierarchy(tree[0].id, max_depth=1)

        assert [c.record.id for c in node.children] == [tree[1].id]
        assert node.children[0].has_children
        assert node.children[0].children == ()

    async def test_ancestors(self, service: ResourceService, tree: list[Any]) -> None:
        ancestors = await service.ancestors(tree[2].id)
        assert [r.id for r in ancestors] == [tree[1].id, tree[0].id]

    async def test_unknown_resource(self, service: ResourceService, tree: list[Any]) -> None:
        with pytest.raises(NotFoundError):
            await service.hierarchy(999)
        with pytest.raises(NotFoundError):
            await service.children(999)

    async def test_tree(self, service: ResourceService, tree: list[Any]) -> None:
        groups = await service.tree()

        assert sorted(groups) == ["api", "pages"]
        assert len(groups["api"]) == 4


class TestListing:
    @pytest.fixture
    async def rows(self, seed_resources: Seed) -> list[Any]:
        return await seed_resources(
            {"uri": "/api/a"},
            {"uri": "/api/b", "resource_type": "Page"},
            {"uri": "/api/c", "is_active": False},
            {"uri": "/api/d", "description": "orders endpoint"},
            {"uri": "/api/e"},
        )

    async def test_paging(self, service: ResourceService, rows: list[Any]) -> None:
        result = await service.list_resources(page=2, page_size=2)

        assert result.total == 5
        assert [r.id for r in result.items] == [rows[2].id, rows[3].id]
        assert result.page == 2
        assert result.pages == 3
        assert result.has_next
        assert result.has_prev

    async def test_filters(self, service: ResourceService, rows: list[Any]) -> None:
        result = await service.list_resources(ResourceFilters(resource_type="API", is_active=True))
        assert [r.id for r in result.items] == [rows[0].id, rows[3].id, rows[4].id]

    async def test_search(self, service: ResourceService, rows: list[Any]) -> None:
        result = await service.list_resources(search="ORDERS")
        assert [r.id for r in result.items] == [rows[3].id]

    async def test_page_size_is_clamped(self, service: ResourceService, rows: list[Any]) -> None:
        result = await service.list_resources(page_size=10_000)
        assert result.limit == 100


async def test_process_wide_store_is_not_used(
    service: ResourceService, store: HierarchyStore
) -> None:
    await service.create_resource(ResourceCreate(uri="/api/users"))

    assert store.is_loaded
    assert len(store.snapshot) == 1


class _FailingRefreshStore(HierarchyStore):
    fail = False

    async def refresh(self, session: Any, repository: Any) -> Any:
        if self.fail:
            msg = "SELECT resources"
            raise OperationalError(msg, {}, Exception("database is locked"))
        return await super().refresh(session, repository)


async def test_failed_reload_after_commit_invalidates_snapshot(db_session: Any) -> None:
    store = _FailingRefreshStore()
    service = ResourceService(db_session, store=store)
    await service.snapshot()
    assert store.is_loaded

    store.fail = True
    created = await service.create_resource(ResourceCreate(uri="/api/users"))

    assert created.id is not None
    assert not store.is_loaded

    store.fail = False
    result = await service.resolve("/api/users")
    assert result is not None
    assert result.resource.id == created.id

"""Service layer for the resources feature.

Writes go through the database and are followed by a snapshot refresh.
Reads that match, classify or traverse work on the current
``ResourceSnapshot`` taken once per call.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from acs_service.core.database import NotFoundError
from acs_service.core.exceptions import ConflictException, ValidationException
from acs_service.core.settings import get_pagination_settings, get_resource_settings
from acs_service.features.resources.hierarchy import (
    HierarchyStore,
    ResourceRecord,
    get_hierarchy_store,
)
from acs_service.features.resources.matching import (
    MatchEngine,
    MatchPolicy,
    evaluate_pattern,
    patterns_overlap,
)
from acs_service.features.resources.models import Resource
from acs_service.features.resources.patterns import (
    CompiledPattern,
    LiteralSegment,
    ParameterSegment,
    PatternError,
    analyze_pattern,
    compile_pattern,
)
from acs_service.features.resources.protection import evaluate_protection
from acs_service.features.resources.repository import (
    ResourceRepository,
    get_resource_repository,
)
from acs_service.features.resources.specifications import (
    ResourceFilters,
    build_resource_specification,
)
from acs_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from acs_service.core.database import SearchResult
    from acs_service.core.settings import ResourceSettings
    from acs_service.features.resources.hierarchy import (
        DiscoveryResult,
        HierarchyNode,
        ResourceSnapshot,
    )
    from acs_service.features.resources.matching import MatchResult, PatternTestReport
    from acs_service.features.resources.patterns import PatternAnalysis
    from acs_service.features.resources.protection import ProtectionStatus
    from acs_service.features.resources.schemas import ResourceCreate, ResourceUpdate


# Standard logger for INFO/WARNING/ERROR
logger = logging.getLogger(__name__)
# Lazy logger for DEBUG (zero overhead when DEBUG disabled)
lazy_logger = get_lazy_logger(__name__)


def derive_name(pattern: CompiledPattern) -> str:
    """Default display name for a resource: its last meaningful segment.

    ``/api/users`` -> ``users``, ``/api/users/{id}`` -> ``id``,
    ``/api/admin/*`` -> ``admin``.
    """
    last = pattern.segments[-1]
    if isinstance(last, LiteralSegment):
        return last.text
    if isinstance(last, ParameterSegment):
        return last.name
    literals = [s.text for s in pattern.segments if isinstance(s, LiteralSegment)]
    return literals[-1] if literals else pattern.canonical


def _compile_or_reject(uri: str) -> CompiledPattern:
    try:
        return compile_pattern(uri)
    except PatternError as exc:
        raise ValidationException(
            detail=f"Invalid URI pattern {uri!r}: {'; '.join(exc.errors)}",
            type="invalid-uri-pattern",
            extra={"errors": list(exc.errors), "suggestions": list(exc.suggestions)},
        ) from exc


class ResourceService:
    """Service for resource registration and URI resolution.

    Handles business logic for:
    - Resource CRUD with case-insensitive URI uniqueness
    - Parent validation and cycle prevention
    - URI resolution, protection status and discovery
    - Pattern validation, testing and maintenance reports
    """

    def __init__(
        self,
        session: AsyncSession,
        repo: ResourceRepository | None = None,
        store: HierarchyStore | None = None,
        engine: MatchEngine | None = None,
        settings: ResourceSettings | None = None,
    ) -> None:
        """Initialize the resource service.

        Args:
            session: Database session for operations
            repo: Resource repository (optional, uses default if not provided)
            store: Snapshot holder (optional, uses the process-wide store)
            engine: Match engine (optional, built from settings)
            settings: Resource settings (optional, loaded from environment)
        """
        self._session = session
        self._repo = repo or get_resource_repository()
        self._store = store or get_hierarchy_store()
        self._settings = settings or get_resource_settings()
        self._engine = engine or MatchEngine(MatchPolicy.from_settings(self._settings))

    @property
    def policy(self) -> MatchPolicy:
        return self._engine.policy

    async def snapshot(self) -> ResourceSnapshot:
        """The current snapshot, loading it on first use."""
        return await self._store.ensure_loaded(self._session, self._repo)

    # ──────────────────────────────────────────────────────────────
    # CRUD
    # ──────────────────────────────────────────────────────────────

    async def list_resources(
        self,
        filters: ResourceFilters | None = None,
        *,
        page: int = 1,
        page_size: int | None = None,
        search: str | None = None,
    ) -> SearchResult[Resource]:
        """List one page of resources matching ``filters``.

        Args:
            filters: Attribute filters; absent clauses are ignored
            page: 1-indexed page number
            page_size: Items per page, clamped to the configured maximum
            search: Free-text search over name, URI and description
        """
        page_size = get_pagination_settings().clamp(page_size)
        specification = build_resource_specification(filters)
        result = await self._repo.list_paged(
            self._session,
            specification,
            page=max(page, 1),
            page_size=page_size,
            search=search,
        )

        lazy_logger.debug(
            lambda: f"service.list_resources({filters}, page={page}) "
            f"-> {len(result.items)}/{result.total}",
        )
        return result

    async def get_resource(self, resource_id: int) -> Resource:
        """Get a resource by ID.

        Raises:
            NotFoundError: If resource not found
        """
        resource = await self._repo.get_or_raise(self._session, resource_id)

        lazy_logger.debug(lambda: f"service.get_resource({resource_id}) -> found")
        return resource

    async def get_by_uri(self, uri: str) -> Resource:
        """Get a resource by its exact URI pattern, ignoring case.

        Raises:
            NotFoundError: If no resource has this URI
        """
        resource = await self._repo.get_by_uri(self._session, uri)
        if resource is None:
            msg = "Resource"
            raise NotFoundError(msg, {"uri": uri})
        return resource

    async def create_resource(self, payload: ResourceCreate) -> Resource:
        """Register a new resource.

        Args:
            payload: Resource creation data

        Returns:
            Created resource

        Raises:
            ValidationException: If the URI pattern is malformed or the
                parent does not exist
            ConflictException: If the URI already exists (ignoring case)
        """
        compiled = _compile_or_reject(payload.uri)
        await self._ensure_uri_free(payload.uri)
        if payload.parent_resource_id is not None:
            await self._ensure_parent_exists(payload.parent_resource_id)

        resource = Resource(
            name=payload.name or derive_name(compiled),
            uri=payload.uri,
            description=payload.description,
            resource_type=payload.resource_type or self._settings.default_resource_type,
            version=payload.version or self._settings.default_version,
            parent_resource_id=payload.parent_resource_id,
            is_active=payload.is_active,
        )
        created = await self._repo.create(self._session, resource)
        await self._commit()

        logger.info(
            "Resource created",
            extra={"resource_id": created.id, "uri": created.uri},
        )
        return created

    async def update_resource(self, resource_id: int, payload: ResourceUpdate) -> Resource:
        """Apply a partial update.

        Only fields the caller supplied are changed. All checks run before
        any attribute is assigned.

        Raises:
            NotFoundError: If resource not found
            ValidationException: If the new URI is malformed or the new
                parent does not exist
            ConflictException: If the new URI is taken or the new parent
                would create a cycle
        """
        resource = await self.get_resource(resource_id)
        changes = payload.changes()

        if "uri" in changes and changes["uri"] != resource.uri:
            _compile_or_reject(changes["uri"])
            await self._ensure_uri_free(changes["uri"], exclude_id=resource_id)

        if "parent_resource_id" in changes:
            parent_id = changes["parent_resource_id"]
            if parent_id is not None and parent_id != resource.parent_resource_id:
                await self._ensure_parent_exists(parent_id)
                await self._ensure_no_cycle(resource_id, parent_id)

        for key, value in changes.items():
            setattr(resource, key, value)

        await self._session.flush()
        await self._commit()
        await self._session.refresh(resource)

        lazy_logger.debug(
            lambda: f"service.update_resource({resource_id}) -> {sorted(changes)}",
        )
        logger.info(
            "Resource updated",
            extra={"resource_id": resource_id, "fields": sorted(changes)},
        )
        return resource

    async def delete_resource(self, resource_id: int) -> None:
        """Delete a leaf resource.

        Raises:
            NotFoundError: If resource not found
            ConflictException: If the resource still has children
        """
        resource = await self.get_resource(resource_id)
        children = await self._repo.get_children(self._session, resource_id)
        if children:
            child_ids = [child.id for child in children]
            raise ConflictException(
                detail=(
                    f"Resource {resource_id} has {len(child_ids)} child resource(s); "
                    "delete or re-parent them first"
                ),
                type="resource-has-children",
                extra={"resource_id": resource_id, "child_ids": child_ids},
            )

        await self._repo.delete(self._session, resource)
        await self._commit()

        logger.info("Resource deleted", extra={"resource_id": resource_id})

    # ──────────────────────────────────────────────────────────────
    # Resolution
    # ──────────────────────────────────────────────────────────────

    async def resolve(self, uri: str) -> MatchResult[ResourceRecord] | None:
        """Find the most specific resource governing ``uri``.

        Returns:
            The best match, or None when no pattern matches
        """
        snapshot = await self.snapshot()
        result = self._engine.find_best_match(uri, snapshot.records)

        logger.info(
            "URI resolved",
            extra={
                "uri": uri,
                "resource_id": result.resource.id if result else None,
                "confidence": result.confidence if result else None,
                "snapshot_version": snapshot.version,
            },
        )
        return result

    async def protection_status(self, uri: str) -> ProtectionStatus[ResourceRecord]:
        """Classify how ``uri`` is protected by every matching resource."""
        snapshot = await self.snapshot()
        matches = self._engine.find_all_matches(uri, snapshot.records)
        status = evaluate_protection(uri, matches)

        lazy_logger.debug(
            lambda: f"service.protection_status({uri!r}) -> {status.level} "
            f"({len(matches)} matches)",
        )
        return status

    def validate_pattern(self, pattern: str) -> PatternAnalysis:
        """Check a pattern and describe it. Never raises."""
        return analyze_pattern(pattern)

    def test_pattern(self, pattern: str, uris: Iterable[str]) -> PatternTestReport:
        """Try ``pattern`` against each URI.

        Raises:
            PatternError: If the pattern does not compile
        """
        report = evaluate_pattern(pattern, uris, self.policy)
        lazy_logger.debug(
            lambda: f"service.test_pattern({pattern!r}) -> "
            f"{report.match_count}/{report.total_tests}",
        )
        return report

    async def discover(
        self,
        base_path: str = "/",
        *,
        include_inactive: bool = False,
        max_depth: int | None = None,
    ) -> DiscoveryResult:
        """Collect resources under ``base_path`` by following child links."""
        depth = self._settings.clamp_depth(max_depth)
        snapshot = await self.snapshot()
        result = snapshot.discover(base_path, depth, include_inactive=include_inactive)

        logger.info(
            "Resources discovered",
            extra={
                "base_path": base_path,
                "max_depth": depth,
                "discovered": len(result.resources),
                "issues": len(result.issues),
            },
        )
        return result

    # ──────────────────────────────────────────────────────────────
    # Hierarchy
    # ──────────────────────────────────────────────────────────────

    async def _record(self, resource_id: int) -> tuple[ResourceSnapshot, ResourceRecord]:
        snapshot = await self.snapshot()
        record = snapshot.get(resource_id)
        if record is None:
            msg = "Resource"
            raise NotFoundError(msg, {"id": resource_id})
        return snapshot, record

    async def hierarchy(self, resource_id: int, max_depth: int | None = None) -> HierarchyNode:
        """Subtree rooted at a resource.

        Raises:
            NotFoundError: If resource not found
        """
        snapshot, _ = await self._record(resource_id)
        node = snapshot.subtree(resource_id, self._settings.clamp_depth(max_depth))
        if node is None:
            msg = "Resource"
            raise NotFoundError(msg, {"id": resource_id})
        return node

    async def children(self, resource_id: int) -> tuple[ResourceRecord, ...]:
        snapshot, _ = await self._record(resource_id)
        return snapshot.children_of(resource_id)

    async def ancestors(self, resource_id: int) -> tuple[ResourceRecord, ...]:
        """Parent chain, nearest first."""
        snapshot, _ = await self._record(resource_id)
        return snapshot.ancestors_of(resource_id, self._settings.max_discovery_depth)

    async def tree(self) -> dict[str, tuple[ResourceRecord, ...]]:
        """All resources grouped by the first segment of their pattern."""
        snapshot = await self.snapshot()
        return snapshot.group_by_root_segment()

    # ──────────────────────────────────────────────────────────────
    # Maintenance
    # ──────────────────────────────────────────────────────────────

    async def find_duplicates(self) -> dict[str, list[Resource]]:
        """Resources whose URIs collide ignoring case."""
        groups = await self._repo.find_duplicate_uris(self._session)
        if groups:
            logger.warning(
                "Duplicate resource URIs found",
                extra={"groups": len(groups), "uris": sorted(groups)},
            )
        return groups

    async def validate_all_patterns(self) -> tuple[int, list[ResourceRecord]]:
        """Re-check every stored pattern.

        Returns:
            Tuple of (total resources, records whose pattern does not compile)
        """
        snapshot = await self.snapshot()
        invalid = [record for record in snapshot if not record.has_valid_pattern]

        lazy_logger.debug(
            lambda: f"service.validate_all_patterns() -> {len(invalid)}/{len(snapshot)} invalid",
        )
        return len(snapshot), invalid

    async def find_conflicts(
        self, pattern: str, *, exclude_id: int | None = None
    ) -> list[ResourceRecord]:
        """Resources whose pattern could match the same URIs as ``pattern``.

        Raises:
            PatternError: If ``pattern`` does not compile
        """
        compiled = compile_pattern(pattern)
        snapshot = await self.snapshot()
        return [
            record
            for record in snapshot
            if record.pattern is not None
            and record.id != exclude_id
            and patterns_overlap(compiled, record.pattern, self.policy)
        ]

    # ──────────────────────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────────────────────

    async def _commit(self) -> None:
        """Commit and publish a fresh snapshot.

        A failed commit is rolled back and the current snapshot stays. If
        the commit succeeds but the reload fails, the store is invalidated
        so the next read reloads from the database.
        """
        try:
            await self._session.commit()
        except SQLAlchemyError:
            await self._session.rollback()
            logger.exception("Resource change could not be committed")
            raise
        try:
            await self._store.refresh(self._session, self._repo)
        except SQLAlchemyError:
            self._store.invalidate()
            logger.exception("Resource snapshot reload failed after commit")

    async def _ensure_uri_free(self, uri: str, *, exclude_id: int | None = None) -> None:
        existing = await self._repo.get_by_uri(self._session, uri, exclude_id=exclude_id)
        if existing is not None:
            raise ConflictException(
                detail=f"Resource with URI '{uri}' already exists",
                type="resource-uri-exists",
                extra={"uri": uri, "conflicting_resource_id": existing.id},
            )

    async def _ensure_parent_exists(self, parent_id: int) -> None:
        if await self._repo.get(self._session, parent_id) is None:
            raise ValidationException(
                detail=f"Parent resource {parent_id} does not exist",
                type="parent-resource-not-found",
                extra={"parent_resource_id": parent_id},
            )

    async def _ensure_no_cycle(self, resource_id: int, parent_id: int) -> None:
        """Walk up from ``parent_id``; reaching ``resource_id`` means a cycle."""
        chain = [resource_id]
        seen: set[int] = set()
        current: int | None = parent_id
        while current is not None and current not in seen:
            chain.append(current)
            if current == resource_id:
                raise ConflictException(
                    detail=(
                        f"Making resource {parent_id} the parent of {resource_id} "
                        "would create a cycle"
                    ),
                    type="resource-hierarchy-cycle",
                    extra={"resource_id": resource_id, "cycle": chain},
                )
            seen.add(current)
            parent = await self._repo.get(self._session, current)
            current = parent.parent_resource_id if parent is not None else None


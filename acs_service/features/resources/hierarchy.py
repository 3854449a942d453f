"""Immutable resource hierarchy snapshots.

Matching, discovery and tree queries read a ``ResourceSnapshot``. A snapshot
is an id-ordered tuple of frozen records plus id and children indexes, and
it never changes after construction. Writers build a fresh snapshot from
committed rows and install it through ``HierarchyStore``, so a reader holding
a snapshot never sees a half-applied write.

Every traversal is bounded by an explicit depth and guarded by a visited set.
Cycles are rejected at write time, but a corrupt parent chain still cannot
make a read loop.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING

from acs_service.features.resources.patterns import (
    CompiledPattern,
    PatternError,
    compile_pattern,
    normalize_uri,
)
from acs_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from acs_service.features.resources.models import Resource
    from acs_service.features.resources.repository import ResourceRepository

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

__all__ = [
    "DiscoveryResult",
    "HierarchyNode",
    "HierarchyStore",
    "ResourceRecord",
    "ResourceSnapshot",
    "get_hierarchy_store",
]

INVALID_ROOT = "(invalid)"


@dataclass(frozen=True, slots=True)
class ResourceRecord:
    """Frozen copy of a persisted resource with its compiled pattern.

    ``pattern`` is None when the stored URI does not compile; the errors are
    kept in ``pattern_errors`` so readers can report and skip the record.
    """

    id: int
    name: str
    uri: str
    resource_type: str
    version: str
    is_active: bool = True
    parent_resource_id: int | None = None
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    pattern: CompiledPattern | None = None
    pattern_errors: tuple[str, ...] = ()

    @classmethod
    def build(cls, **fields: object) -> ResourceRecord:
        """Create a record, compiling ``uri`` on the way in."""
        uri = str(fields["uri"])
        try:
            pattern: CompiledPattern | None = compile_pattern(uri)
            errors: tuple[str, ...] = ()
        except PatternError as exc:
            pattern, errors = None, exc.errors
        return cls(**fields, pattern=pattern, pattern_errors=errors)  # type: ignore[arg-type]

    @classmethod
    def from_model(cls, resource: Resource) -> ResourceRecord:
        return cls.build(
            id=resource.id,
            name=resource.name,
            uri=resource.uri,
            resource_type=resource.resource_type,
            version=resource.version,
            is_active=resource.is_active,
            parent_resource_id=resource.parent_resource_id,
            description=resource.description,
            created_at=resource.created_at,
            updated_at=resource.updated_at,
        )

    @property
    def has_valid_pattern(self) -> bool:
        return self.pattern is not None


@dataclass(frozen=True, slots=True)
class HierarchyNode:
    """A record placed in a tree view with its bounded subtree."""

    record: ResourceRecord
    depth: int
    path: tuple[str, ...]
    has_children: bool
    children: tuple[HierarchyNode, ...] = ()

    @property
    def descendant_count(self) -> int:
        return sum(1 + child.descendant_count for child in self.children)


@dataclass(frozen=True, slots=True)
class DiscoveryResult:
    base_path: str
    max_depth: int
    resources: tuple[ResourceRecord, ...]
    paths_scanned: int
    max_depth_reached: int
    issues: tuple[str, ...] = ()

    @property
    def resources_by_type(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for record in self.resources:
            counts[record.resource_type] = counts.get(record.resource_type, 0) + 1
        return counts


def _literal_prefix(base_path: str) -> tuple[str, ...]:
    prefix: list[str] = []
    for part in normalize_uri(base_path):
        if "*" in part or "{" in part or "}" in part:
            break
        prefix.append(part.lower())
    return tuple(prefix)


class ResourceSnapshot:
    """Immutable view of every resource at one point in time."""

    __slots__ = ("_by_id", "_children", "_records", "version")

    def __init__(self, records: Iterable[ResourceRecord] = (), *, version: int = 0) -> None:
        ordered = tuple(sorted(records, key=lambda r: r.id))
        children: dict[int, list[int]] = {}
        for record in ordered:
            if record.parent_resource_id is not None:
                children.setdefault(record.parent_resource_id, []).append(record.id)

        self._records = ordered
        self._by_id = MappingProxyType({r.id: r for r in ordered})
        self._children = MappingProxyType({k: tuple(v) for k, v in children.items()})
        self.version = version

    @classmethod
    def from_models(cls, resources: Iterable[Resource], *, version: int = 0) -> ResourceSnapshot:
        return cls((ResourceRecord.from_model(r) for r in resources), version=version)

    @property
    def records(self) -> tuple[ResourceRecord, ...]:
        return self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ResourceRecord]:
        return iter(self._records)

    def __contains__(self, resource_id: object) -> bool:
        return resource_id in self._by_id

    def get(self, resource_id: int) -> ResourceRecord | None:
        return self._by_id.get(resource_id)

    def children_of(self, resource_id: int) -> tuple[ResourceRecord, ...]:
        """Direct children in id order; empty for unknown ids."""
        return tuple(self._by_id[child_id] for child_id in self._children.get(resource_id, ()))

    def has_children(self, resource_id: int) -> bool:
        return bool(self._children.get(resource_id))

    def ancestors_of(
        self, resource_id: int, max_depth: int | None = None
    ) -> tuple[ResourceRecord, ...]:
        """Parent chain, nearest first, at most ``max_depth`` long."""
        limit = len(self._records) if max_depth is None else max_depth
        ancestors: list[ResourceRecord] = []
        visited = {resource_id}
        current = self._by_id.get(resource_id)

        while current is not None and len(ancestors) < limit:
            parent_id = current.parent_resource_id
            if parent_id is None or parent_id in visited:
                break
            parent = self._by_id.get(parent_id)
            if parent is None:
                break
            visited.add(parent_id)
            ancestors.append(parent)
            current = parent
        return tuple(ancestors)

    def parent_loop(self, resource_id: int) -> tuple[int, ...]:
        """Ids along the parent chain of ``resource_id`` if it loops, else empty."""
        chain: list[int] = []
        current: int | None = resource_id
        while current is not None and current in self._by_id:
            if current in chain:
                return (*chain, current)
            chain.append(current)
            current = self._by_id[current].parent_resource_id
        return ()

    def subtree(self, resource_id: int, max_depth: int) -> HierarchyNode | None:
        """Tree view rooted at ``resource_id``, ``max_depth`` levels deep."""
        root = self._by_id.get(resource_id)
        if root is None:
            return None
        lineage = tuple(reversed([a.name for a in self.ancestors_of(resource_id)]))
        return self._build_node(root, 0, (*lineage, root.name), max_depth, {resource_id})

    def _build_node(
        self,
        record: ResourceRecord,
        depth: int,
        path: tuple[str, ...],
        max_depth: int,
        visited: set[int],
    ) -> HierarchyNode:
        children: list[HierarchyNode] = []
        if depth < max_depth:
            for child in self.children_of(record.id):
                if child.id in visited:
                    continue
                visited.add(child.id)
                children.append(
                    self._build_node(child, depth + 1, (*path, child.name), max_depth, visited)
                )
        return HierarchyNode(
            record=record,
            depth=depth,
            path=path,
            has_children=self.has_children(record.id),
            children=tuple(children),
        )

    def discover(
        self,
        base_path: str,
        max_depth: int,
        *,
        include_inactive: bool = False,
    ) -> DiscoveryResult:
        """Collect resources under ``base_path``, following child links.

        Seeds are resources whose pattern starts with the literal prefix of
        ``base_path``; only seeds are returned. Seeds with no seed ancestor
        are entry points at depth 0. Child links are followed breadth-first:
        a seed child sits one level below its nearest seed ancestor, while
        other resources are passed through without counting as a level.
        Seeds deeper than ``max_depth`` are left out. Seeds cut off from
        every entry point by a looping parent chain start their own walk.
        Each resource appears at most once. Malformed patterns are reported
        in ``issues`` and skipped.
        """
        if max_depth < 0:
            msg = "max_depth must be >= 0"
            raise ValueError(msg)

        prefix = _literal_prefix(base_path)
        issues: list[str] = []
        seeds: set[int] = set()

        for record in self._records:
            if record.pattern is None:
                issue = f"Resource {record.id} has an invalid URI pattern {record.uri!r}"
                issues.append(f"{issue}: {'; '.join(record.pattern_errors)}")
                logger.warning(
                    "Skipping resource with invalid URI pattern during discovery",
                    extra={"resource_id": record.id, "pattern": record.uri},
                )
                continue
            if record.pattern.literal_prefix[: len(prefix)] == prefix:
                seeds.add(record.id)

        entries = [
            r
            for r in self._records
            if r.id in seeds and not any(a.id in seeds for a in self.ancestors_of(r.id))
        ]

        visited: set[int] = set()
        found: list[ResourceRecord] = []
        deepest = 0

        def walk(starts: list[ResourceRecord]) -> None:
            nonlocal deepest
            visited.update(r.id for r in starts)
            queue: deque[tuple[ResourceRecord, int]] = deque((r, 0) for r in starts)
            while queue:
                record, depth = queue.popleft()
                deepest = max(deepest, depth)
                if record.id in seeds and (record.is_active or include_inactive):
                    found.append(record)
                for child in self.children_of(record.id):
                    child_depth = depth + 1 if child.id in seeds else depth
                    if child.id not in visited and child_depth <= max_depth:
                        visited.add(child.id)
                        queue.append((child, child_depth))

        walk(entries)

        for record in self._records:
            if record.id not in seeds or record.id in visited:
                continue
            loop = self.parent_loop(record.id)
            if not loop or any(a.id in visited for a in self.ancestors_of(record.id)):
                continue
            logger.warning(
                "Resource parent chain loops; discovering from inside the loop",
                extra={"resource_id": record.id, "parent_chain": list(loop)},
            )
            entries.append(record)
            walk([record])

        lazy_logger.debug(
            lambda: f"discover {base_path!r} depth={max_depth}: "
            f"{len(seeds)} seeds, {len(entries)} entries, {len(found)} found"
        )
        return DiscoveryResult(
            base_path=base_path,
            max_depth=max_depth,
            resources=tuple(found),
            paths_scanned=len(self._records),
            max_depth_reached=deepest,
            issues=tuple(issues),
        )

    def group_by_root_segment(self) -> dict[str, tuple[ResourceRecord, ...]]:
        """Resources keyed by the first segment of their pattern."""
        groups: dict[str, list[ResourceRecord]] = {}
        for record in self._records:
            if record.pattern is None:
                key = INVALID_ROOT
            else:
                key = str(record.pattern.segments[0]).lower()
            groups.setdefault(key, []).append(record)
        return {key: tuple(records) for key, records in sorted(groups.items())}


@dataclass
class _StoreState:
    snapshot: ResourceSnapshot = field(default_factory=ResourceSnapshot)
    requested: int = 0
    installed: int = 0
    loaded: bool = False


class HierarchyStore:
    """Holds the current snapshot and swaps it atomically.

    Readers take ``store.snapshot`` once per call. Writers call ``refresh``
    after committing; each refresh takes a generation number before it
    loads rows, and a finished refresh is only installed if no newer one
    has been installed first.
    """

    __slots__ = ("_lock", "_state")

    def __init__(self, snapshot: ResourceSnapshot | None = None) -> None:
        self._lock = threading.Lock()
        self._state = _StoreState()
        if snapshot is not None:
            self._state.snapshot = snapshot
            self._state.loaded = True

    @property
    def snapshot(self) -> ResourceSnapshot:
        return self._state.snapshot

    @property
    def is_loaded(self) -> bool:
        return self._state.loaded

    async def refresh(
        self, session: AsyncSession, repository: ResourceRepository
    ) -> ResourceSnapshot:
        """Reload every resource from the database and install a new snapshot."""
        generation = self._begin()
        rows = await repository.list_all(session)
        snapshot = ResourceSnapshot.from_models(rows, version=generation)
        installed = self._install(generation, snapshot)

        logger.info(
            "Resource snapshot refreshed",
            extra={
                "snapshot_version": generation,
                "resource_count": len(snapshot),
                "installed": installed,
            },
        )
        return self.snapshot

    async def ensure_loaded(
        self, session: AsyncSession, repository: ResourceRepository
    ) -> ResourceSnapshot:
        if self._state.loaded:
            return self._state.snapshot
        return await self.refresh(session, repository)

    def invalidate(self) -> None:
        """Force the next ``ensure_loaded`` to reload from the database."""
        with self._lock:
            self._state.loaded = False

    def _begin(self) -> int:
        with self._lock:
            self._state.requested += 1
            return self._state.requested

    def _install(self, generation: int, snapshot: ResourceSnapshot) -> bool:
        with self._lock:
            if generation <= self._state.installed:
                return False
            self._state.snapshot = snapshot
            self._state.installed = generation
            self._state.loaded = True
            return True


_hierarchy_store: HierarchyStore | None = None


def get_hierarchy_store() -> HierarchyStore:
    """Get the process-wide hierarchy store."""
    global _hierarchy_store
    if _hierarchy_store is None:
        _hierarchy_store = HierarchyStore()
    return _hierarchy_store

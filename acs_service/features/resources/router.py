"""API router for the resources feature.

Endpoints:
    Resolution:
        GET    /resources/resolve?uri=            - Most specific resource for a URI
        GET    /resources/protection-status?uri=  - How a URI is protected
        POST   /resources/discover                - Resources under a base path

    Pattern tooling:
        POST   /resources/patterns/validate       - Check a pattern (never fails)
        POST   /resources/patterns/test           - Try a pattern against URIs
        POST   /resources/patterns/conflicts      - Resources overlapping a pattern
        GET    /resources/patterns/audit          - Re-check every stored pattern

    Resource CRUD:
        GET    /resources                         - List with filters and paging
        POST   /resources                         - Register a resource
        GET    /resources/by-uri?uri=             - Look up by exact URI
        GET    /resources/{resource_id}           - Get a resource
        PUT    /resources/{resource_id}           - Partial update
        DELETE /resources/{resource_id}           - Delete a leaf resource

    Hierarchy:
        GET    /resources/tree                    - Grouped by first URI segment
        GET    /resources/duplicates              - URIs colliding ignoring case
        GET    /resources/{resource_id}/hierarchy - Bounded subtree
        GET    /resources/{resource_id}/children  - Direct children
        GET    /resources/{resource_id}/ancestors - Parent chain, nearest first

Example Usage:
    # Register a resource
    POST /resources
    {"uri": "/api/users/{id}", "resource_type": "API"}

    # Resolve a request
    GET /resources/resolve?uri=/api/users/42
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from acs_service.core.dependencies.database import get_db_session
from acs_service.features.resources.hierarchy import HierarchyStore, get_hierarchy_store
from acs_service.features.resources.schemas import (
    DiscoveryRequest,
    DiscoveryResponse,
    DuplicateGroup,
    DuplicatesResponse,
    InvalidPatternEntry,
    MatchResponse,
    PatternAuditResponse,
    PatternConflictRequest,
    PatternConflictResponse,
    PatternTestRequest,
    PatternTestResponse,
    PatternValidationRequest,
    PatternValidationResponse,
    ProtectionStatusResponse,
    ResolveResponse,
    ResourceCreate,
    ResourceHierarchyResponse,
    ResourceListResponse,
    ResourceResponse,
    ResourceTreeResponse,
    ResourceUpdate,
)
from acs_service.features.resources.service import ResourceService
from acs_service.features.resources.specifications import ResourceFilters

router = APIRouter(prefix="/resources", tags=["resources"])
logger = logging.getLogger(__name__)


def get_resource_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    store: Annotated[HierarchyStore, Depends(get_hierarchy_store)],
) -> ResourceService:
    """Build a request-scoped service over the shared snapshot store."""
    return ResourceService(session, store=store)


Service = Annotated[ResourceService, Depends(get_resource_service)]
UriQuery = Annotated[str, Query(min_length=1, max_length=2000, description="Request URI")]


# ──────────────────────────────────────────────────────────────
# Resolution Endpoints
# ──────────────────────────────────────────────────────────────


@router.get(
    "/resolve",
    response_model=ResolveResponse,
    summary="Resolve a URI",
    description="Return the most specific resource whose pattern matches the URI.",
)
async def resolve(uri: UriQuery, service: Service) -> ResolveResponse:
    result = await service.resolve(uri)
    if result is None:
        return ResolveResponse(uri=uri, matched=False)
    return ResolveResponse(uri=uri, matched=True, match=MatchResponse.from_result(result))


@router.get(
    "/protection-status",
    response_model=ProtectionStatusResponse,
    summary="Get protection status",
    description="Classify how a URI is protected by all matching resources.",
)
async def protection_status(uri: UriQuery, service: Service) -> ProtectionStatusResponse:
    return ProtectionStatusResponse.from_status(await service.protection_status(uri))


@router.post(
    "/discover",
    response_model=DiscoveryResponse,
    summary="Discover resources",
    description=(
        "Collect resources whose pattern starts with the literal prefix of the "
        "base path, following parent/child links up to max_depth."
    ),
)
async def discover(payload: DiscoveryRequest, service: Service) -> DiscoveryResponse:
    result = await service.discover(
        payload.base_path,
        include_inactive=payload.include_inactive,
        max_depth=payload.max_depth,
    )
    return DiscoveryResponse.from_result(result)


# ──────────────────────────────────────────────────────────────
# Pattern Tooling Endpoints
# ──────────────────────────────────────────────────────────────


@router.post(
    "/patterns/validate",
    response_model=PatternValidationResponse,
    summary="Validate a pattern",
    description="Report every problem with a URI pattern. Always returns 200.",
)
async def validate_pattern(
    payload: PatternValidationRequest, service: Service
) -> PatternValidationResponse:
    return PatternValidationResponse.from_analysis(service.validate_pattern(payload.pattern))


@router.post(
    "/patterns/test",
    response_model=PatternTestResponse,
    summary="Test a pattern",
    description="Try a pattern against sample URIs.",
    responses={422: {"description": "Pattern is invalid"}},
)
async def try_pattern(payload: PatternTestRequest, service: Service) -> PatternTestResponse:
    report = service.test_pattern(payload.pattern, payload.test_uris)
    return PatternTestResponse.from_report(report)


@router.post(
    "/patterns/conflicts",
    response_model=PatternConflictResponse,
    summary="Find overlapping patterns",
    description="List resources whose pattern could match the same URIs.",
    responses={422: {"description": "Pattern is invalid"}},
)
async def find_conflicts(
    payload: PatternConflictRequest, service: Service
) -> PatternConflictResponse:
    conflicts = await service.find_conflicts(payload.pattern, exclude_id=payload.exclude_id)
    return PatternConflictResponse(
        pattern=payload.pattern,
        has_conflicts=bool(conflicts),
        conflicts=[ResourceResponse.model_validate(r) for r in conflicts],
    )


@router.get(
    "/patterns/audit",
    response_model=PatternAuditResponse,
    summary="Audit stored patterns",
)
async def audit_patterns(service: Service) -> PatternAuditResponse:
    total, invalid = await service.validate_all_patterns()
    return PatternAuditResponse(
        total=total,
        valid_count=total - len(invalid),
        invalid_count=len(invalid),
        invalid=[
            InvalidPatternEntry(resource_id=r.id, uri=r.uri, errors=list(r.pattern_errors))
            for r in invalid
        ],
    )


# ──────────────────────────────────────────────────────────────
# Resource CRUD Endpoints
# ──────────────────────────────────────────────────────────────


@router.get(
    "",
    response_model=ResourceListResponse,
    summary="List resources",
    description="Page through resources. Inactive ones are hidden unless asked for.",
)
async def list_resources(
    service: Service,
    resource_type: str | None = None,
    is_active: bool | None = None,
    include_inactive: bool = False,
    uri_contains: str | None = None,
    version: str | None = None,
    search: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int | None, Query(ge=1)] = None,
) -> ResourceListResponse:
    """List resources.

    Args:
        service: Resource service
        resource_type: Exact resource type
        is_active: Exact active flag; overrides ``include_inactive``
        include_inactive: Also return inactive resources
        uri_contains: Case-insensitive URI substring
        version: Exact version
        search: Free-text search over name, URI and description
        page: 1-indexed page number
        page_size: Items per page (clamped to the configured maximum)
    """
    if is_active is None and not include_inactive:
        is_active = True
    filters = ResourceFilters(
        resource_type=resource_type,
        is_active=is_active,
        uri_contains=uri_contains,
        version=version,
    )
    result = await service.list_resources(filters, page=page, page_size=page_size, search=search)
    return ResourceListResponse.from_search(result)


@router.post(
    "",
    response_model=ResourceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a resource",
    description="Create a resource. URIs must be unique ignoring case.",
    responses={
        409: {"description": "URI already registered"},
        422: {"description": "Invalid pattern or unknown parent"},
    },
)
async def create_resource(payload: ResourceCreate, service: Service) -> ResourceResponse:
    resource = await service.create_resource(payload)
    return ResourceResponse.model_validate(resource)


@router.get(
    "/by-uri",
    response_model=ResourceResponse,
    summary="Get a resource by URI",
    responses={404: {"description": "Resource not found"}},
)
async def get_resource_by_uri(uri: UriQuery, service: Service) -> ResourceResponse:
    return ResourceResponse.model_validate(await service.get_by_uri(uri))


@router.get(
    "/tree",
    response_model=ResourceTreeResponse,
    summary="Resource tree",
    description="All resources grouped by the first segment of their pattern.",
)
async def resource_tree(service: Service) -> ResourceTreeResponse:
    groups = await service.tree()
    return ResourceTreeResponse(
        groups={
            key: [ResourceResponse.model_validate(r) for r in records]
            for key, records in groups.items()
        },
        total=sum(len(records) for records in groups.values()),
    )


@router.get(
    "/duplicates",
    response_model=DuplicatesResponse,
    summary="Find duplicate URIs",
)
async def find_duplicates(service: Service) -> DuplicatesResponse:
    groups = await service.find_duplicates()
    return DuplicatesResponse(
        groups=[
            DuplicateGroup(
                uri=uri,
                resources=[ResourceResponse.model_validate(r) for r in resources],
            )
            for uri, resources in groups.items()
        ],
        total_groups=len(groups),
    )


@router.get(
    "/{resource_id}",
    response_model=ResourceResponse,
    summary="Get a resource",
    responses={404: {"description": "Resource not found"}},
)
async def get_resource(resource_id: int, service: Service) -> ResourceResponse:
    return ResourceResponse.model_validate(await service.get_resource(resource_id))


@router.put(
    "/{resource_id}",
    response_model=ResourceResponse,
    summary="Update a resource",
    description="Only provided fields are updated. Send parent_resource_id=null to detach.",
    responses={
        404: {"description": "Resource not found"},
        409: {"description": "URI taken or hierarchy cycle"},
    },
)
async def update_resource(
    resource_id: int, payload: ResourceUpdate, service: Service
) -> ResourceResponse:
    resource = await service.update_resource(resource_id, payload)
    return ResourceResponse.model_validate(resource)


@router.delete(
    "/{resource_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a resource",
    description="Delete a leaf resource. Resources with children are refused.",
    responses={
        404: {"description": "Resource not found"},
        409: {"description": "Resource has children"},
    },
)
async def delete_resource(resource_id: int, service: Service) -> None:
    await service.delete_resource(resource_id)


# ──────────────────────────────────────────────────────────────
# Hierarchy Endpoints
# ──────────────────────────────────────────────────────────────


@router.get(
    "/{resource_id}/hierarchy",
    response_model=ResourceHierarchyResponse,
    summary="Resource subtree",
    responses={404: {"description": "Resource not found"}},
)
async def resource_hierarchy(
    resource_id: int,
    service: Service,
    max_depth: Annotated[int | None, Query(ge=0)] = None,
) -> ResourceHierarchyResponse:
    node = await service.hierarchy(resource_id, max_depth)
    return ResourceHierarchyResponse.from_node(node)


@router.get(
    "/{resource_id}/children",
    response_model=list[ResourceResponse],
    summary="Direct children",
    responses={404: {"description": "Resource not found"}},
)
async def resource_children(resource_id: int, service: Service) -> list[ResourceResponse]:
    return [ResourceResponse.model_validate(r) for r in await service.children(resource_id)]


@router.get(
    "/{resource_id}/ancestors",
    response_model=list[ResourceResponse],
    summary="Parent chain",
    description="Ancestors of a resource, nearest first.",
    responses={404: {"description": "Resource not found"}},
)
async def resource_ancestors(resource_id: int, service: Service) -> list[ResourceResponse]:
    return [ResourceResponse.model_validate(r) for r in await service.ancestors(resource_id)]

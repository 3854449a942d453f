"""Pydantic schemas for the resources feature."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from acs_service.features.resources.matching import MatchType
from acs_service.features.resources.protection import ProtectionLevel, RiskLevel

if TYPE_CHECKING:
    from acs_service.core.database import SearchResult
    from acs_service.features.resources.hierarchy import DiscoveryResult, HierarchyNode
    from acs_service.features.resources.matching import MatchResult, PatternTestReport
    from acs_service.features.resources.patterns import PatternAnalysis
    from acs_service.features.resources.protection import ProtectionStatus

VERSION_PATTERN = r"^(\d+\.)?(\d+\.)?(\*|\d+)$"


def _strip_uri(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    if not v:
        msg = "URI must not be blank"
        raise ValueError(msg)
    return v


# ──────────────────────────────────────────────────────────────
# Resource CRUD
# ──────────────────────────────────────────────────────────────


class ResourceCreate(BaseModel):
    """Payload used when registering a resource."""

    uri: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="URI pattern (e.g., '/api/users/{id}', '/api/admin/*')",
    )
    name: str | None = Field(
        default=None,
        min_length=1,
        max_length=200,
        description="Display name; derived from the URI's last segment when omitted",
    )
    description: str | None = Field(default=None, max_length=500)
    resource_type: str | None = Field(
        default=None,
        min_length=1,
        max_length=50,
        description="Classification such as 'API' or 'Page' (default from settings)",
    )
    version: str | None = Field(
        default=None,
        pattern=VERSION_PATTERN,
        description="Resource version (e.g., '1.0.0', '2.*')",
    )
    parent_resource_id: int | None = Field(
        default=None,
        ge=1,
        description="Parent resource in the hierarchy",
    )
    is_active: bool = True

    @field_validator("uri")
    @classmethod
    def normalize_uri(cls, v: str) -> str:
        """Strip surrounding whitespace; the pattern itself is checked by the service."""
        return _strip_uri(v)


class ResourceUpdate(BaseModel):
    """Payload for a partial update.

    Only fields present in the request body are applied. Send
    ``"parent_resource_id": null`` to detach a resource from its parent.
    """

    uri: str | None = Field(default=None, min_length=1, max_length=500)
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=500)
    resource_type: str | None = Field(default=None, min_length=1, max_length=50)
    version: str | None = Field(default=None, pattern=VERSION_PATTERN)
    parent_resource_id: int | None = Field(default=None, ge=1)
    is_active: bool | None = None

    @field_validator("uri")
    @classmethod
    def normalize_uri(cls, v: str | None) -> str | None:
        return _strip_uri(v)

    def changes(self) -> dict[str, Any]:
        """Fields explicitly supplied by the caller.

        ``None`` is only kept for nullable columns; for the rest an explicit
        null means "leave unchanged".
        """
        nullable = {"description", "parent_resource_id"}
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key in nullable
        }


class ResourceResponse(BaseModel):
    """Representation returned from the API.

    Built from ORM rows and from snapshot records alike.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    uri: str
    description: str | None = None
    resource_type: str
    version: str
    parent_resource_id: int | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ResourceListResponse(BaseModel):
    """One page of resources."""

    items: list[ResourceResponse]
    total: int
    page: int
    page_size: int
    pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def from_search(cls, result: SearchResult[Any]) -> ResourceListResponse:
        return cls(
            items=[ResourceResponse.model_validate(item) for item in result.items],
            total=result.total,
            page=result.page,
            page_size=result.limit,
            pages=result.pages,
            has_next=result.has_next,
            has_prev=result.has_prev,
        )


# ──────────────────────────────────────────────────────────────
# Resolution and protection
# ──────────────────────────────────────────────────────────────


class MatchResponse(BaseModel):
    """A resource matched against a request URI."""

    resource: ResourceResponse
    extracted_parameters: dict[str, str] = Field(default_factory=dict)
    confidence: float = Field(ge=0.0, le=1.0)
    score: int
    match_type: MatchType
    matched_segments: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: MatchResult[Any]) -> MatchResponse:
        return cls(
            resource=ResourceResponse.model_validate(result.resource),
            extracted_parameters=dict(result.extracted_parameters),
            confidence=result.confidence,
            score=result.score,
            match_type=result.match_type,
            matched_segments=list(result.matched_segments),
        )


class ResolveResponse(BaseModel):
    """Outcome of resolving a URI. ``match`` is null when nothing governs it."""

    uri: str
    matched: bool
    match: MatchResponse | None = None


class ProtectionStatusResponse(BaseModel):
    uri: str
    is_protected: bool
    protection_level: ProtectionLevel
    matching_resources: list[MatchResponse]
    best_match: MatchResponse | None = None
    security_recommendations: list[str]
    risk_assessment: RiskLevel

    @classmethod
    def from_status(cls, status: ProtectionStatus[Any]) -> ProtectionStatusResponse:
        matches = [MatchResponse.from_result(m) for m in status.matches]
        return cls(
            uri=status.uri,
            is_protected=status.is_protected,
            protection_level=status.level,
            matching_resources=matches,
            best_match=matches[0] if matches else None,
            security_recommendations=list(status.recommendations),
            risk_assessment=status.risk,
        )


# ──────────────────────────────────────────────────────────────
# Pattern tooling
# ──────────────────────────────────────────────────────────────


class PatternValidationRequest(BaseModel):
    pattern: str = Field(..., max_length=500, description="URI pattern to check")


class PatternValidationResponse(BaseModel):
    pattern: str
    is_valid: bool
    errors: list[str]
    suggested_corrections: list[str]
    match_examples: list[str]
    complexity_score: int
    parameters: list[str]
    normalized_pattern: str | None = None

    @classmethod
    def from_analysis(cls, analysis: PatternAnalysis) -> PatternValidationResponse:
        return cls(
            pattern=analysis.pattern,
            is_valid=analysis.is_valid,
            errors=list(analysis.errors),
            suggested_corrections=list(analysis.suggested_corrections),
            match_examples=list(analysis.match_examples),
            complexity_score=analysis.complexity_score,
            parameters=list(analysis.parameters),
            normalized_pattern=analysis.normalized_pattern,
        )


class PatternTestRequest(BaseModel):
    pattern: str = Field(..., min_length=1, max_length=500)
    test_uris: list[str] = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Concrete URIs to try against the pattern",
    )


class UriTestResult(BaseModel):
    uri: str
    is_match: bool
    extracted_parameters: dict[str, str] = Field(default_factory=dict)
    confidence: float = 0.0
    match_type: MatchType | None = None
    matched_segments: list[str] = Field(default_factory=list)


class PatternTestResponse(BaseModel):
    pattern: str
    results: list[UriTestResult]
    match_count: int
    total_tests: int
    match_percentage: float

    @classmethod
    def from_report(cls, report: PatternTestReport) -> PatternTestResponse:
        results = []
        for outcome in report.outcomes:
            match = outcome.match
            if match is None:
                results.append(UriTestResult(uri=outcome.uri, is_match=False))
                continue
            results.append(
                UriTestResult(
                    uri=outcome.uri,
                    is_match=True,
                    extracted_parameters=dict(match.parameters),
                    confidence=match.confidence,
                    match_type=match.match_type,
                    matched_segments=list(match.matched_segments),
                )
            )
        return cls(
            pattern=report.pattern.raw,
            results=results,
            match_count=report.match_count,
            total_tests=report.total_tests,
            match_percentage=report.match_percentage,
        )


class PatternConflictRequest(BaseModel):
    pattern: str = Field(..., min_length=1, max_length=500)
    exclude_id: int | None = Field(
        default=None,
        description="Ignore this resource (e.g., the one being edited)",
    )


class PatternConflictResponse(BaseModel):
    pattern: str
    has_conflicts: bool
    conflicts: list[ResourceResponse]


class InvalidPatternEntry(BaseModel):
    resource_id: int
    uri: str
    errors: list[str]


class PatternAuditResponse(BaseModel):
    """Every stored pattern re-checked against the current grammar."""

    total: int
    valid_count: int
    invalid_count: int
    invalid: list[InvalidPatternEntry]


class DuplicateGroup(BaseModel):
    uri: str = Field(description="Case-folded URI shared by the group")
    resources: list[ResourceResponse]


class DuplicatesResponse(BaseModel):
    groups: list[DuplicateGroup]
    total_groups: int


# ──────────────────────────────────────────────────────────────
# Discovery and hierarchy
# ──────────────────────────────────────────────────────────────


class DiscoveryRequest(BaseModel):
    base_path: str = Field(default="/", max_length=500)
    include_inactive: bool = False
    max_depth: int | None = Field(
        default=None,
        ge=0,
        description="Traversal depth below each entry point (default from settings)",
    )


class DiscoveryStatistics(BaseModel):
    paths_scanned: int
    resources_by_type: dict[str, int]
    max_depth_reached: int
    issues: list[str]


class DiscoveryResponse(BaseModel):
    base_path: str
    max_depth: int
    resources: list[ResourceResponse]
    discovery_count: int
    statistics: DiscoveryStatistics

    @classmethod
    def from_result(cls, result: DiscoveryResult) -> DiscoveryResponse:
        return cls(
            base_path=result.base_path,
            max_depth=result.max_depth,
            resources=[ResourceResponse.model_validate(r) for r in result.resources],
            discovery_count=len(result.resources),
            statistics=DiscoveryStatistics(
                paths_scanned=result.paths_scanned,
                resources_by_type=result.resources_by_type,
                max_depth_reached=result.max_depth_reached,
                issues=list(result.issues),
            ),
        )


class ResourceHierarchyResponse(BaseModel):
    """A resource with its bounded subtree."""

    resource: ResourceResponse
    depth: int
    path: list[str]
    has_children: bool
    descendant_count: int
    children: list[ResourceHierarchyResponse] = Field(default_factory=list)

    @classmethod
    def from_node(cls, node: HierarchyNode) -> ResourceHierarchyResponse:
        return cls(
            resource=ResourceResponse.model_validate(node.record),
            depth=node.depth,
            path=list(node.path),
            has_children=node.has_children,
            descendant_count=node.descendant_count,
            children=[cls.from_node(child) for child in node.children],
        )


class ResourceTreeResponse(BaseModel):
    """Resources grouped by the first segment of their URI pattern."""

    groups: dict[str, list[ResourceResponse]]
    total: int


__all__ = [
    "VERSION_PATTERN",
    "DiscoveryRequest",
    "DiscoveryResponse",
    "DiscoveryStatistics",
    "DuplicateGroup",
    "DuplicatesResponse",
    "InvalidPatternEntry",
    "MatchResponse",
    "PatternAuditResponse",
    "PatternConflictRequest",
    "PatternConflictResponse",
    "PatternTestRequest",
    "PatternTestResponse",
    "PatternValidationRequest",
    "PatternValidationResponse",
    "ProtectionStatusResponse",
    "ResolveResponse",
    "ResourceCreate",
    "ResourceHierarchyResponse",
    "ResourceListResponse",
    "ResourceResponse",
    "ResourceTreeResponse",
    "ResourceUpdate",
    "UriTestResult",
]

"""Tests for resource request and response schemas."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from pydantic import ValidationError

from acs_service.features.resources.hierarchy import ResourceRecord, ResourceSnapshot
from acs_service.features.resources.matching import MatchEngine, MatchPolicy, evaluate_pattern
from acs_service.features.resources.patterns import analyze_pattern
from acs_service.features.resources.protection import evaluate_protection
from acs_service.features.resources.schemas import (
    DiscoveryResponse,
    MatchResponse,
    PatternTestRequest,
    PatternTestResponse,
    PatternValidationResponse,
    ProtectionStatusResponse,
    ResourceCreate,
    ResourceHierarchyResponse,
    ResourceResponse,
    ResourceUpdate,
)


class TestResourceCreate:
    def test_uri_is_stripped(self) -> None:
        assert ResourceCreate(uri="  /api/users ").uri == "/api/users"

    def test_blank_uri_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ResourceCreate(uri="   ")

    @pytest.mark.parametrize("version", ["1", "1.0", "1.0.0", "2.*"])
    def test_valid_versions(self, version: str) -> None:
        assert ResourceCreate(uri="/a", version=version).version == version

    @pytest.mark.parametrize("version", ["v1", "1.0.0.0", "latest"])
    def test_invalid_versions(self, version: str) -> None:
        with pytest.raises(ValidationError):
            ResourceCreate(uri="/a", version=version)

    def test_parent_id_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ResourceCreate(uri="/a", parent_resource_id=0)


class TestResourceUpdate:
    def test_changes_only_include_supplied_fields(self) -> None:
        assert ResourceUpdate(name="users").changes() == {"name": "users"}

    def test_null_clears_nullable_fields(self) -> None:
        update = ResourceUpdate.model_validate(
            {"parent_resource_id": None, "description": None, "name": None}
        )
        assert update.changes() == {"parent_resource_id": None, "description": None}

    def test_empty_update(self) -> None:
        assert ResourceUpdate().changes() == {}


def test_pattern_test_request_limits() -> None:
    with pytest.raises(ValidationError):
        PatternTestRequest(pattern="/a", test_uris=[])
    with pytest.raises(ValidationError):
        PatternTestRequest(pattern="/a", test_uris=["/a"] * 101)


def test_resource_response_from_record(make_record: Callable[..., ResourceRecord]) -> None:
    response = ResourceResponse.model_validate(make_record(3, "/api/users", parent=1))

    assert response.id == 3
    assert response.parent_resource_id == 1
    assert response.created_at is None


def test_match_and_protection_responses(make_record: Callable[..., ResourceRecord]) -> None:
    records = [make_record(1, "/api/*"), make_record(2, "/api/users/{id}")]
    matches = MatchEngine(MatchPolicy()).find_all_matches("/api/users/5", records)

    best = MatchResponse.from_result(matches[0])
    status = ProtectionStatusResponse.from_status(evaluate_protection("/api/users/5", matches))

    assert best.resource.id == 2
    assert best.extracted_parameters == {"id": "5"}
    assert best.match_type == "parameter"
    assert status.is_protected
    assert status.protection_level == "ParameterProtected"
    assert status.risk_assessment == "Low"
    assert status.best_match == best
    assert len(status.matching_resources) == 2


def test_pattern_responses() -> None:
    validation = PatternValidationResponse.from_analysis(analyze_pattern("/api/{}"))
    assert not validation.is_valid
    assert validation.normalized_pattern is None

    report = PatternTestResponse.from_report(
        evaluate_pattern("/api/{id}", ["/api/1", "/x"], MatchPolicy())
    )
    assert report.match_count == 1
    assert report.results[0].extracted_parameters == {"id": "1"}
    assert not report.results[1].is_match
    assert report.results[1].match_type is None


def test_discovery_and_hierarchy_responses(make_record: Callable[..., ResourceRecord]) -> None:
    snapshot = ResourceSnapshot(
        [make_record(1, "/api", name="api"), make_record(2, "/api/users", parent=1, name="users")]
    )

    discovery = DiscoveryResponse.from_result(snapshot.discover("/api", 5))
    assert discovery.discovery_count == 2
    assert discovery.statistics.resources_by_type == {"API": 2}

    node = snapshot.subtree(1, 5)
    assert node is not None
    hierarchy = ResourceHierarchyResponse.from_node(node)
    assert hierarchy.descendant_count == 1
    assert hierarchy.children[0].path == ["api", "users"]

"""Tests for application exception handlers."""

from __future__ import annotations

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from acs_service.app.exception_handlers import (
    app_exception_handler,
    configure_exception_handlers,
    generic_exception_handler,
    not_found_handler,
    pattern_error_handler,
)
from acs_service.core.database.exceptions import NotFoundError
from acs_service.core.exceptions import ConflictException
from acs_service.features.resources.patterns import PatternError


def _build_request(path: str = "/test") -> Request:
    """Create a minimal ASGI request for handler tests."""
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": [],
        "query_string": b"",
        "client": ("test", 1234),
        "server": ("test", 80),
    }
    return Request(scope, lambda: None)


@pytest.mark.asyncio
async def test_app_exception_handler_renders_problem_details() -> None:
    request = _build_request("/api/resources")
    request.state.request_id = "req-1"
    error = ConflictException(
        detail="taken", type="resource-uri-exists", extra={"conflicting_resource_id": 3}
    )

    response = await app_exception_handler(request, error)

    assert response.status_code == 409
    body = json.loads(response.body)
    assert body == {
        "type": "resource-uri-exists",
        "title": "Conflict",
        "status": 409,
        "detail": "taken",
        "instance": "/api/resources",
        "conflicting_resource_id": 3,
        "request_id": "req-1",
    }


@pytest.mark.asyncio
async def test_not_found_handler() -> None:
    response = await not_found_handler(_build_request(), NotFoundError("Resource", {"id": 5}))

    assert response.status_code == 404
    body = json.loads(response.body)
    assert body["type"] == "not-found"
    assert body["detail"] == "Resource not found with id=5"
    assert body["model"] == "Resource"
    assert body["id"] == 5
    assert "request_id" not in body


@pytest.mark.asyncio
async def test_pattern_error_handler() -> None:
    error = PatternError("/api/{}", ["Segment '{}' has an empty parameter name"], ["Name it"])

    response = await pattern_error_handler(_build_request(), error)

    assert response.status_code == 422
    body = json.loads(response.body)
    assert body["type"] == "invalid-uri-pattern"
    assert body["pattern"] == "/api/{}"
    assert body["errors"] == ["Segment '{}' has an empty parameter name"]
    assert body["suggestions"] == ["Name it"]


@pytest.mark.asyncio
async def test_generic_handler_hides_details() -> None:
    response = await generic_exception_handler(_build_request(), RuntimeError("secret"))

    assert response.status_code == 500
    body = json.loads(response.body)
    assert body["type"] == "internal-error"
    assert "secret" not in response.body.decode()


def test_configured_app_returns_problem_details() -> None:
    app = FastAPI()
    configure_exception_handlers(app)

    @app.get("/boom")
    async def boom() -> None:
        raise NotFoundError("Resource", {"uri": "/x"})

    @app.get("/typed/{item_id}")
    async def typed(item_id: int) -> dict[str, int]:
        return {"item_id": item_id}

    client = TestClient(app)

    not_found = client.get("/boom")
    assert not_found.status_code == 404
    assert not_found.json()["uri"] == "/x"

    invalid = client.get("/typed/abc")
    assert invalid.status_code == 422
    body = invalid.json()
    assert body["type"] == "validation-error"
    assert body["errors"][0]["field"] == "path.item_id"

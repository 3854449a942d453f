"""Tests for the application factory and middleware."""

from __future__ import annotations

import pytest
from fastapi.routing import APIRoute
from httpx import AsyncClient

from acs_service.app.main import create_app


def test_routes_are_mounted_under_api_prefix() -> None:
    app = create_app()
    paths = {route.path for route in app.routes if isinstance(route, APIRoute)}

    assert "/api/resources/resolve" in paths
    assert "/api/resources/protection-status" in paths
    assert "/api/resources/{resource_id}" in paths


def test_docs_can_be_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_DOCS_ENABLED", "false")

    app = create_app()

    assert app.docs_url is None
    assert app.openapi_url is None


async def test_request_id_and_timing_headers(client: AsyncClient) -> None:
    response = await client.get(
        "/api/resources/resolve", params={"uri": "/x"}, headers={"X-Request-ID": "abc"}
    )

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "abc"
    assert float(response.headers["X-Process-Time"]) >= 0

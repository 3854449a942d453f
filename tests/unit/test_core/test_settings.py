"""Unit tests for modular Pydantic Settings v2."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from acs_service.core.settings import (
    AppSettings,
    DatabaseSettings,
    LoggingSettings,
    PaginationSettings,
    ResourceSettings,
    clear_all_caches,
    get_app_settings,
    get_resource_settings,
)


class TestAppSettings:
    def test_defaults(self) -> None:
        settings = AppSettings()

        assert settings.service_name == "acs-service"
        assert settings.environment == "test"  # From env var in conftest
        assert settings.api_prefix == "/api"
        assert not settings.is_production

    def test_frozen(self) -> None:
        settings = AppSettings()

        with pytest.raises(ValidationError):
            settings.debug = True

    def test_service_name_format(self) -> None:
        with pytest.raises(ValidationError):
            AppSettings(service_name="Not Valid")


class TestDatabaseSettings:
    def test_async_driver_required(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseSettings(database_url="sqlite:///./acs.db")

    def test_sqlite_detection(self) -> None:
        assert DatabaseSettings(database_url="sqlite+aiosqlite:///:memory:").is_sqlite


class TestLoggingSettings:
    def test_level_is_normalized(self) -> None:
        assert LoggingSettings(level="debug").level == "DEBUG"

    def test_json_alias(self) -> None:
        assert LoggingSettings(json=False).json_logs is False

    def test_logging_kwargs(self) -> None:
        kwargs = LoggingSettings(level="INFO").to_logging_kwargs()
        assert kwargs["log_level"] == "INFO"
        assert "json_logs" in kwargs


class TestPaginationSettings:
    @pytest.mark.parametrize(("requested", "expected"), [(None, 20), (0, 1), (50, 50), (500, 100)])
    def test_clamp(self, requested: int | None, expected: int) -> None:
        assert PaginationSettings().clamp(requested) == expected

    def test_default_cannot_exceed_max(self) -> None:
        with pytest.raises(ValidationError):
            PaginationSettings(default_page_size=200, max_page_size=100)


class TestResourceSettings:
    def test_defaults(self) -> None:
        settings = ResourceSettings()

        assert settings.wildcard_tail_match is True
        assert settings.case_insensitive is True
        assert settings.default_resource_type == "API"
        assert settings.default_version == "1.0.0"

    @pytest.mark.parametrize(("requested", "expected"), [(None, 10), (-3, 0), (7, 7), (999, 50)])
    def test_clamp_depth(self, requested: int | None, expected: int) -> None:
        assert ResourceSettings().clamp_depth(requested) == expected

    def test_default_depth_cannot_exceed_max(self) -> None:
        with pytest.raises(ValidationError):
            ResourceSettings(default_discovery_depth=20, max_discovery_depth=5)

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RESOURCES_WILDCARD_TAIL_MATCH", "false")
        clear_all_caches()

        assert get_resource_settings().wildcard_tail_match is False


def test_loaders_are_cached() -> None:
    assert get_app_settings() is get_app_settings()

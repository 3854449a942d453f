"""Application settings for FastAPI configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["development", "staging", "production", "test"]


class AppSettings(BaseSettings):
    """FastAPI application settings.

    Environment variables use APP_ prefix.
    Example: APP_DEBUG=true, APP_PORT=9000
    """

    service_name: str = Field(
        default="acs-service",
        min_length=1,
        max_length=100,
        pattern=r"^[a-z0-9]+(-[a-z0-9]+)*$",
        description="Service name for logging/tracing (lowercase, hyphens allowed)",
    )
    title: str = Field(
        default="Access Control Resource Service",
        min_length=1,
        max_length=200,
        description="API title displayed in documentation",
    )
    description: str = Field(
        default="Resource URI pattern matching and access-control resolution",
        description="API description (supports Markdown)",
    )
    version: str = Field(
        default="1.0.0",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9]+)?$",
        description="API version (semver format)",
    )
    environment: Environment = Field(
        default="development", description="Environment: development|staging|production|test",
    )
    api_prefix: str = Field(
        default="/api",
        min_length=1,
        max_length=255,
        pattern=r"^/.*$",
        description="Base URL prefix for API routes",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    docs_enabled: bool = Field(default=True, description="Serve OpenAPI docs at /docs")

    host: str = Field(default="0.0.0.0", description="Server bind host")  # noqa: S104
    port: int = Field(default=8000, ge=1, le=65535, description="Server bind port")

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

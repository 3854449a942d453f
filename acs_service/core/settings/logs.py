"""Logging configuration settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """Structured logging configuration.

    Environment variables use LOG_ prefix.
    Example: LOG_LEVEL=DEBUG, LOG_JSON=false, LOG_FILE_PATH=logs/acs.jsonl
    """

    # ──────────────────────────────────────────────────────────────
    # Basic configuration
    # ──────────────────────────────────────────────────────────────

    service_name: str = Field(
        default="acs-service",
        description="Service name to include in log records (static field in JSON)",
    )
    level: LogLevel = Field(
        default="INFO",
        description="Root logger level (DEBUG|INFO|WARNING|ERROR|CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        alias="json",
        description="Enable JSON Lines (JSONL) formatted structured logs",
    )

    # ──────────────────────────────────────────────────────────────
    # Handlers
    # ──────────────────────────────────────────────────────────────

    console_enabled: bool = Field(default=True, description="Enable console logging")
    file_path: Path | None = Field(
        default=None,
        description="Path to a rotating JSONL log file. None disables file logging.",
    )
    file_max_bytes: int = Field(
        default=10_485_760,  # 10 MiB
        ge=1024,
        le=1_073_741_824,
        description="Maximum log file size in bytes before rotation.",
    )
    file_backup_count: int = Field(default=5, ge=0, le=100)

    # ──────────────────────────────────────────────────────────────
    # Context
    # ──────────────────────────────────────────────────────────────

    include_context: bool = Field(
        default=True,
        description="Inject request context (request_id, path) into every record",
    )
    include_request_id: bool = Field(
        default=True,
        description="Assign X-Request-ID to every HTTP request",
    )
    include_uvicorn: bool = Field(
        default=True,
        description="Route uvicorn loggers through the application handlers",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    def to_logging_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``configure_logging``."""
        return {
            "log_level": self.level,
            "json_logs": self.json_logs,
            "console_enabled": self.console_enabled,
            "file_path": self.file_path,
            "file_max_bytes": self.file_max_bytes,
            "file_backup_count": self.file_backup_count,
            "include_context": self.include_context,
            "include_uvicorn": self.include_uvicorn,
            "service_name": self.service_name,
        }

"""Database connection settings.

Environment variables use DB_ prefix.
Example: DB_DATABASE_URL=sqlite+aiosqlite:///./acs.db, DB_ECHO=true
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Async SQLAlchemy engine configuration."""

    database_url: str = Field(
        default="sqlite+aiosqlite:///./acs_service.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements (debugging)")
    create_tables: bool = Field(
        default=True,
        description="Create missing tables on startup",
    )
    pool_pre_ping: bool = Field(default=True, description="Test connections before use")

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @field_validator("database_url")
    @classmethod
    def require_async_driver(cls, v: str) -> str:
        """Reject sync driver URLs; the engine is always async."""
        scheme = v.split("://", 1)[0]
        if "+" not in scheme:
            msg = f"database_url must name an async driver (e.g. sqlite+aiosqlite), got {scheme!r}"
            raise ValueError(msg)
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

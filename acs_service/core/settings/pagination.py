"""Pagination settings for list endpoints.

Environment variables use PAGINATION_ prefix.
Example: PAGINATION_DEFAULT_PAGE_SIZE=50, PAGINATION_MAX_PAGE_SIZE=200
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PaginationSettings(BaseSettings):
    """Pagination configuration settings.

    Attributes:
        default_page_size: Page size when the caller does not ask for one.
        max_page_size: Hard upper bound for a requested page size.
    """

    default_page_size: int = Field(
        default=20,
        ge=1,
        le=1000,
        description="Default page size when not specified",
    )
    max_page_size: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Maximum allowed page size (hard limit)",
    )

    model_config = SettingsConfigDict(
        env_prefix="PAGINATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def check_bounds(self) -> PaginationSettings:
        if self.default_page_size > self.max_page_size:
            msg = "default_page_size cannot exceed max_page_size"
            raise ValueError(msg)
        return self

    def clamp(self, page_size: int | None) -> int:
        """Return a page size within [1, max_page_size]."""
        if page_size is None:
            return self.default_page_size
        return max(1, min(page_size, self.max_page_size))

"""Resource matching and hierarchy settings.

Environment variables use RESOURCES_ prefix.
Example: RESOURCES_WILDCARD_TAIL_MATCH=false, RESOURCES_MAX_DISCOVERY_DEPTH=20
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ResourceSettings(BaseSettings):
    """Policy knobs for the URI matcher and hierarchy traversal."""

    # ──────────────────────────────────────────────────────────────
    # Matching policy
    # ──────────────────────────────────────────────────────────────

    wildcard_tail_match: bool = Field(
        default=True,
        description=(
            "A trailing '*' matches one or more remaining segments. "
            "When false it matches exactly one segment like any other '*'."
        ),
    )
    case_insensitive: bool = Field(
        default=True,
        description="Compare literal path segments case-insensitively",
    )
    pattern_cache_size: int = Field(
        default=2048,
        ge=16,
        le=1_000_000,
        description=(
            "Maximum number of compiled patterns kept in the LRU cache. "
            "Read when the cache is built, at first use and after each reset."
        ),
    )

    # ──────────────────────────────────────────────────────────────
    # Hierarchy traversal
    # ──────────────────────────────────────────────────────────────

    default_discovery_depth: int = Field(
        default=10,
        ge=0,
        description="Depth used by discovery when the caller does not pass one",
    )
    max_discovery_depth: int = Field(
        default=50,
        ge=0,
        le=1000,
        description="Upper bound for any traversal depth",
    )

    # ──────────────────────────────────────────────────────────────
    # Creation defaults
    # ──────────────────────────────────────────────────────────────

    default_resource_type: str = Field(default="API", min_length=1, max_length=50)
    default_version: str = Field(default="1.0.0", pattern=r"^(\d+\.)?(\d+\.)?(\*|\d+)$")

    model_config = SettingsConfigDict(
        env_prefix="RESOURCES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def check_depths(self) -> ResourceSettings:
        if self.default_discovery_depth > self.max_discovery_depth:
            msg = "default_discovery_depth cannot exceed max_discovery_depth"
            raise ValueError(msg)
        return self

    def clamp_depth(self, depth: int | None) -> int:
        """Resolve a requested traversal depth against the configured bounds."""
        if depth is None:
            return self.default_discovery_depth
        return max(0, min(depth, self.max_discovery_depth))

"""SQLAlchemy models for the resources feature."""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, String, true
from sqlalchemy.orm import Mapped, mapped_column

from acs_service.core.database import TimestampedBase


class Resource(TimestampedBase):
    """A protected endpoint family, identified by a URI pattern.

    Examples of ``uri``: ``/api/users``, ``/api/users/{id}``, ``/api/admin/*``.

    Resources form a tree through ``parent_resource_id``. URI uniqueness is
    checked case-insensitively by the service, not by a table constraint,
    and children are never cascaded on delete.
    """

    __tablename__ = "resources"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Display name (defaults to the URI's last segment)",
    )
    uri: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        index=True,
        comment="Raw URI pattern as configured (e.g., '/api/users/{id}')",
    )
    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        comment="Optional free-text description",
    )
    resource_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="API",
        index=True,
        comment="Free-form classification (e.g., 'API', 'Page')",
    )
    version: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="1.0.0",
        comment="Resource version (e.g., '1.0.0', '2.*')",
    )
    parent_resource_id: Mapped[int | None] = mapped_column(
        ForeignKey("resources.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
        comment="Parent resource in the hierarchy",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
        comment="Inactive resources are hidden from discovery and listing by default",
    )

    def __repr__(self) -> str:
        """Return resource summary for debugging."""
        return f"<Resource(id={self.id}, uri={self.uri!r})>"

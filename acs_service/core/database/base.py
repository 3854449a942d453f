"""Base database model classes with composable mixins.

Models pick their capabilities by inheriting from specific mixins:

    class Resource(TimestampedBase):
        __tablename__ = "resources"
        uri: Mapped[str] = mapped_column(String(500))

Integer primary keys are used throughout so that id order equals
insertion order, which the resource matcher relies on for tie-breaking.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

# Predictable constraint names for schema management
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base with consistent constraint naming.

    The table name defaults to the lowercased class name and can be
    overridden by setting ``__tablename__`` on the model.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return cls.__name__.lower()


class IntegerPKMixin:
    """Integer auto-increment primary key.

    Provides:
        id: Auto-incrementing integer primary key
    """

    __allow_unmapped__ = True

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
        comment="Auto-incrementing integer primary key",
    )


class TimestampMixin:
    """Timestamp tracking for create and update operations.

    Uses Python-side defaults (for test environments) and database
    server defaults (for direct SQL inserts). Both columns are
    timezone-aware UTC.

    Provides:
        created_at: Timestamp of record creation (immutable)
        updated_at: Timestamp of last modification (auto-updates)
    """

    __allow_unmapped__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
        nullable=False,
        comment="Timestamp of record creation",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
        comment="Timestamp of last update",
    )


class TimestampedBase(Base, IntegerPKMixin, TimestampMixin):
    """Convenience base with integer PK and timestamps."""

    __abstract__ = True


__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "IntegerPKMixin",
    "TimestampMixin",
    "TimestampedBase",
]

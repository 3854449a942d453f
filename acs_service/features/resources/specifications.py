"""Composable resource predicates for filtered, paged listing.

A specification can be evaluated in memory (``is_satisfied_by``) against ORM
rows or snapshot records. It can also be rendered as a SQLAlchemy boolean
clause (``to_expression``) so the same filter drives ``SELECT ... WHERE``.
Specifications are immutable and side-effect free, so one instance can be
evaluated any number of times and combined with ``&``, ``|`` and ``~``.

Example:
    spec = build_resource_specification(ResourceFilters(resource_type="API", is_active=True))
    stmt = SpecificationFilter(spec).apply(select(Resource))
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import Select, and_, func, not_, or_, true

from acs_service.core.database.filters import StatementFilter
from acs_service.features.resources.models import Resource

T = TypeVar("T")

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement

__all__ = [
    "ActiveSpecification",
    "AndSpecification",
    "NotSpecification",
    "OrSpecification",
    "ResourceFilters",
    "ResourceTypeSpecification",
    "Specification",
    "SpecificationFilter",
    "TrueSpecification",
    "UriContainsSpecification",
    "VersionSpecification",
    "build_resource_specification",
]


class Specification(ABC):
    """Base class for resource predicates."""

    @abstractmethod
    def is_satisfied_by(self, candidate: Any) -> bool: ...

    @abstractmethod
    def to_expression(self) -> ColumnElement[bool]: ...

    def __call__(self, candidate: Any) -> bool:
        return self.is_satisfied_by(candidate)

    def __and__(self, other: Specification) -> Specification:
        if isinstance(self, TrueSpecification):
            return other
        if isinstance(other, TrueSpecification):
            return self
        return AndSpecification((self, other))

    def __or__(self, other: Specification) -> Specification:
        return OrSpecification((self, other))

    def __invert__(self) -> Specification:
        return NotSpecification(self)

    def filter(self, candidates: Iterable[T]) -> list[T]:
        return [c for c in candidates if self.is_satisfied_by(c)]


@dataclass(frozen=True, slots=True)
class TrueSpecification(Specification):
    """Matches everything; identity element for ``&``."""

    def is_satisfied_by(self, candidate: Any) -> bool:
        return True

    def to_expression(self) -> ColumnElement[bool]:
        return true()


@dataclass(frozen=True, slots=True)
class AndSpecification(Specification):
    specs: tuple[Specification, ...]

    def is_satisfied_by(self, candidate: Any) -> bool:
        return all(spec.is_satisfied_by(candidate) for spec in self.specs)

    def to_expression(self) -> ColumnElement[bool]:
        return and_(*(spec.to_expression() for spec in self.specs))


@dataclass(frozen=True, slots=True)
class OrSpecification(Specification):
    specs: tuple[Specification, ...]

    def is_satisfied_by(self, candidate: Any) -> bool:
        return any(spec.is_satisfied_by(candidate) for spec in self.specs)

    def to_expression(self) -> ColumnElement[bool]:
        return or_(*(spec.to_expression() for spec in self.specs))


@dataclass(frozen=True, slots=True)
class NotSpecification(Specification):
    spec: Specification

    def is_satisfied_by(self, candidate: Any) -> bool:
        return not self.spec.is_satisfied_by(candidate)

    def to_expression(self) -> ColumnElement[bool]:
        return not_(self.spec.to_expression())


@dataclass(frozen=True, slots=True)
class ResourceTypeSpecification(Specification):
    resource_type: str

    def is_satisfied_by(self, candidate: Any) -> bool:
        return candidate.resource_type == self.resource_type

    def to_expression(self) -> ColumnElement[bool]:
        return Resource.resource_type == self.resource_type


@dataclass(frozen=True, slots=True)
class ActiveSpecification(Specification):
    is_active: bool = True

    def is_satisfied_by(self, candidate: Any) -> bool:
        return bool(candidate.is_active) is self.is_active

    def to_expression(self) -> ColumnElement[bool]:
        return Resource.is_active.is_(self.is_active)


@dataclass(frozen=True, slots=True)
class UriContainsSpecification(Specification):
    """Case-insensitive substring match on the raw URI pattern."""

    fragment: str

    def is_satisfied_by(self, candidate: Any) -> bool:
        return self.fragment.lower() in candidate.uri.lower()

    def to_expression(self) -> ColumnElement[bool]:
        return func.lower(Resource.uri).contains(self.fragment.lower(), autoescape=True)


@dataclass(frozen=True, slots=True)
class VersionSpecification(Specification):
    version: str

    def is_satisfied_by(self, candidate: Any) -> bool:
        return candidate.version == self.version

    def to_expression(self) -> ColumnElement[bool]:
        return Resource.version == self.version


@dataclass(frozen=True, slots=True)
class ResourceFilters:
    """Optional attribute filters for listing resources."""

    resource_type: str | None = None
    is_active: bool | None = None
    uri_contains: str | None = None
    version: str | None = None


def _present(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def build_resource_specification(filters: ResourceFilters | None = None) -> Specification:
    """AND together the supplied, non-empty filter clauses.

    Absent clauses are left out entirely. With no clauses at all the result
    is ``TrueSpecification``.
    """
    filters = filters or ResourceFilters()
    clauses: list[Specification] = []

    if resource_type := _present(filters.resource_type):
        clauses.append(ResourceTypeSpecification(resource_type))
    if filters.is_active is not None:
        clauses.append(ActiveSpecification(filters.is_active))
    if fragment := _present(filters.uri_contains):
        clauses.append(UriContainsSpecification(fragment))
    if version := _present(filters.version):
        clauses.append(VersionSpecification(version))

    if not clauses:
        return TrueSpecification()
    if len(clauses) == 1:
        return clauses[0]
    return AndSpecification(tuple(clauses))


class SpecificationFilter(StatementFilter):
    """Apply a specification as a WHERE clause.

    Example:
        stmt = SpecificationFilter(spec).apply(select(Resource))
    """

    def __init__(self, specification: Specification):
        self.specification = specification

    def apply(self, statement: Select[Any]) -> Select[Any]:
        if isinstance(self.specification, TrueSpecification):
            return statement
        return statement.where(self.specification.to_expression())

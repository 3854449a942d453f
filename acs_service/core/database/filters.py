"""Query filtering utilities for SQLAlchemy.

These filters work directly with SQLAlchemy statements without hiding the
query. They're utility helpers, not an abstraction layer.

Usage:
    from sqlalchemy import select
    from acs_service.core.database.filters import SearchFilter, OrderBy, LimitOffset

    stmt = select(Resource)
    stmt = SearchFilter(Resource.uri, "admin").apply(stmt)
    stmt = OrderBy(Resource.id, "asc").apply(stmt)
    stmt = LimitOffset(limit=50, offset=0).apply(stmt)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import Select, and_, func, or_

if TYPE_CHECKING:
    from sqlalchemy.orm import InstrumentedAttribute


class StatementFilter(ABC):
    """Base class for statement filters.

    All filters implement `apply()` which modifies a SQLAlchemy statement.
    """

    @abstractmethod
    def apply(self, statement: Select[Any]) -> Select[Any]:
        """Apply filter to statement.

        Args:
            statement: SQLAlchemy select statement

        Returns:
            Modified select statement
        """
        ...


class SearchFilter(StatementFilter):
    """Multi-field text search using LIKE.

    Example:
        stmt = SearchFilter([Resource.name, Resource.uri], "users").apply(stmt)
        # WHERE (LOWER(name) LIKE '%users%' OR LOWER(uri) LIKE '%users%')
    """

    def __init__(
        self,
        fields: InstrumentedAttribute[Any] | Sequence[InstrumentedAttribute[Any]],
        value: str,
        *,
        case_insensitive: bool = True,
        operator: Literal["and", "or"] = "or",
    ):
        self.fields = [fields] if not isinstance(fields, Sequence) else list(fields)
        self.value = value
        self.case_insensitive = case_insensitive
        self.operator = operator

    def apply(self, statement: Select[Any]) -> Select[Any]:
        """Apply search filter to statement."""
        if not self.value or not self.fields:
            return statement

        search_term = f"%{self.value}%"
        conditions = []

        for field in self.fields:
            if self.case_insensitive:
                condition = func.lower(field).like(search_term.lower())
            else:
                condition = field.like(search_term)
            conditions.append(condition)

        if self.operator == "or":
            return statement.where(or_(*conditions))
        return statement.where(and_(*conditions))


class OrderBy(StatementFilter):
    """Column ordering.

    Example:
        stmt = OrderBy(Resource.id, "asc").apply(stmt)
        stmt = OrderBy([Resource.resource_type, Resource.id], ["asc", "desc"]).apply(stmt)
    """

    def __init__(
        self,
        fields: InstrumentedAttribute[Any] | Sequence[InstrumentedAttribute[Any]],
        sort_order: Literal["asc", "desc"] | Sequence[Literal["asc", "desc"]] = "asc",
    ):
        self.fields = [fields] if not isinstance(fields, Sequence) else list(fields)

        if isinstance(sort_order, str):
            self.sort_orders = [sort_order] * len(self.fields)
        else:
            self.sort_orders = list(sort_order)
            if len(self.sort_orders) != len(self.fields):
                msg = "sort_order length must match fields length"
                raise ValueError(msg)

    def apply(self, statement: Select[Any]) -> Select[Any]:
        """Apply ordering to statement."""
        for field, order in zip(self.fields, self.sort_orders, strict=False):
            if order == "desc":
                statement = statement.order_by(field.desc())
            else:
                statement = statement.order_by(field.asc())
        return statement


class LimitOffset(StatementFilter):
    """Pagination using LIMIT and OFFSET.

    Example:
        # Page 2 of 50
        stmt = LimitOffset(limit=50, offset=50).apply(stmt)
    """

    def __init__(self, limit: int, offset: int = 0):
        self.limit = limit
        self.offset = offset

    @classmethod
    def from_page(cls, page: int, page_size: int) -> LimitOffset:
        """Build from a 1-indexed page number and page size."""
        return cls(limit=page_size, offset=(max(page, 1) - 1) * page_size)

    def apply(self, statement: Select[Any]) -> Select[Any]:
        """Apply pagination to statement."""
        return statement.limit(self.limit).offset(self.offset)


class FilterGroup(StatementFilter):
    """Apply several filters in sequence (AND semantics).

    Example:
        filters = FilterGroup([
            SearchFilter(Resource.uri, "admin"),
            OrderBy(Resource.id),
        ])
        stmt = filters.apply(stmt)
    """

    def __init__(self, filters: Sequence[StatementFilter]):
        self.filters = list(filters)

    def apply(self, statement: Select[Any]) -> Select[Any]:
        """Apply all filters to statement."""
        for filter_obj in self.filters:
            statement = filter_obj.apply(statement)
        return statement


__all__ = [
    "FilterGroup",
    "LimitOffset",
    "OrderBy",
    "SearchFilter",
    "StatementFilter",
]

"""
core/listing.py -- Generic list-query engine shared by every "list" endpoint.

Turns raw query-string parameters into a bounded, deterministic fetch plan
and runs it against any source exposing the two paging primitives of the
persistence layer:

    source.table                                  -- SQLAlchemy Table
    source.count(predicate) -> int
    source.find_page(predicate, order, limit, offset) -> list

The engine composes predicates and orderings only. It never executes SQL
itself, so both stores (auth/ and directory/) plug in unchanged.

Parameter policy:
  limit   -- absent, non-integer or <= 0 falls back to the default; values
             above the configured maximum are clamped to the maximum.
  page    -- 1-based. "offset" is accepted as an alias because the public
             API has always called it that; "page" wins when both are sent.
             Absent or non-integer means 1, and values below 1 clamp to 1 so
             the row offset is never negative.
  filters -- only keys declared in the ListSpec are honoured; everything
             else is ignored silently. An equality filter whose value cannot
             be coerced to the column's Python type is ignored too, and so
             is an integer outside the signed 64-bit range.
  sorts   -- "asc" sorts ascending, any other value sorts descending.
             Sort precedence follows the order keys appear in the request.
             id ASC is always appended as the final tie-breaker.

Layer rule: no imports from api/, auth/, or directory/.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Union

from sqlalchemy import Table, and_, true
from sqlalchemy.sql.elements import ColumnElement

LIKE = "like"
EQ = "eq"

# Range of a bound INTEGER parameter (SQLite and PostgreSQL BIGINT).
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

QueryParams = Union[Mapping[str, str], Iterable[tuple[str, str]]]


class PageSource(Protocol):
    table: Table

    def count(self, predicate: ColumnElement) -> int: ...

    def find_page(self, predicate: ColumnElement, order: list, limit: int, offset: int) -> list: ...


@dataclass(frozen=True)
class ListSpec:
    """Per-entity declaration of which query keys filter and sort which columns.

    filters: {"name": ("name", LIKE), "regionId": ("region_id", EQ)}
    sorts:   {"nameSort": "name", "createdAt": "created_at"}
    """

    filters: dict[str, tuple[str, str]] = field(default_factory=dict)
    sorts: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ListQuery:
    page: int
    limit: int
    filters: tuple[tuple[str, str, str], ...] = ()  # (column, mode, raw value)
    sort: tuple[tuple[str, bool], ...] = ()  # (column, ascending)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class PageResult:
    rows: list
    total_count: int
    total_pages: int
    current_page: int
    limit: int


def _to_int(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def parse_list_query(params: QueryParams, spec: ListSpec, *, default_limit: int, max_limit: int) -> ListQuery:
    """Build a ListQuery from request parameters according to spec."""
    items = list(params.items()) if isinstance(params, Mapping) else list(params)
    first: dict[str, str] = {}
    for key, value in items:
        first.setdefault(key, value)

    limit = _to_int(first.get("limit"))
    if limit is None or limit <= 0:
        limit = default_limit
    limit = min(limit, max_limit)

    page = _to_int(first.get("page"))
    if page is None:
        page = _to_int(first.get("offset"))
    if page is None or page < 1:
        page = 1

    filters: list[tuple[str, str, str]] = []
    sort: list[tuple[str, bool]] = []
    seen_filter: set[str] = set()
    seen_sort: set[str] = set()
    for key, value in items:
        if value is None or str(value).strip() == "":
            continue
        if key in spec.filters and key not in seen_filter:
            seen_filter.add(key)
            column, mode = spec.filters[key]
            filters.append((column, mode, str(value).strip()))
        if key in spec.sorts:
            column = spec.sorts[key]
            if column in seen_sort:
                continue
            seen_sort.add(column)
            sort.append((column, str(value).strip().lower() == "asc"))

    return ListQuery(page=page, limit=limit, filters=tuple(filters), sort=tuple(sort))


def _coerce(table: Table, column: str, raw: str) -> Any:
    try:
        python_type = table.c[column].type.python_type
    except NotImplementedError:
        return raw
    if python_type is str:
        return raw
    try:
        value = python_type(raw)
    except (TypeError, ValueError):
        return None
    if isinstance(value, int) and not INT64_MIN <= value <= INT64_MAX:
        return None
    return value


def build_predicate(table: Table, query: ListQuery, scope: Optional[Mapping[str, Any]] = None) -> ColumnElement:
    """AND together the query's filters and the fixed scope equalities."""
    clauses: list[ColumnElement] = []
    for column, value in (scope or {}).items():
        clauses.append(table.c[column] == value)
    for column, mode, raw in query.filters:
        if mode == LIKE:
            clauses.append(table.c[column].ilike(f"%{_escape_like(raw)}%", escape="\\"))
            continue
        value = _coerce(table, column, raw)
        if value is None:
            continue
        clauses.append(table.c[column] == value)
    return and_(true(), *clauses)


def build_order(table: Table, query: ListQuery) -> list:
    order = [table.c[column].asc() if ascending else table.c[column].desc() for column, ascending in query.sort]
    if "id" in table.c and all(column != "id" for column, _ in query.sort):
        order.append(table.c.id.asc())
    return order


def fetch_page(source: PageSource, query: ListQuery, scope: Optional[Mapping[str, Any]] = None) -> PageResult:
    """Run a ListQuery against source and return the pagination envelope.

    total_count == 0 yields total_pages == 0 and no rows; that is a normal
    result, never an error.
    """
    predicate = build_predicate(source.table, query, scope)
    total = source.count(predicate)
    rows: list = []
    if total and query.offset < total:
        rows = source.find_page(predicate, build_order(source.table, query), query.limit, query.offset)
    return PageResult(
        rows=rows[: query.limit],
        total_count=total,
        total_pages=math.ceil(total / query.limit),
        current_page=query.page,
        limit=query.limit,
    )

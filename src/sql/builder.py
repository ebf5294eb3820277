"""Deterministic SQL builder for listing search.

The builder converts validated `SearchFilters` into a parameterized page query plus a matching
count query. Identifiers (columns, operators, orderings) are strictly allowlisted; only values
become bound parameters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from src.search.schema import ListingMode, SearchFilters, SortOption
from src.sql.columns import (
    CASE_INSENSITIVE_FILTER_COLUMNS,
    EQUALITY_FILTER_COLUMNS,
    LISTINGS_TABLE,
    RANGE_FILTER_COLUMNS,
    SEARCHABLE_STATUS,
    SORT_ORDER,
    TEASER_COLUMNS,
)


class SQLBuilderError(ValueError):
    """Raised when filters cannot be converted into deterministic SQL."""


_ALLOWED_OPERATORS: dict[str, str] = {
    ">=": ">=",
    "<=": "<=",
}


@dataclass(frozen=True)
class BuiltQuery:
    """A parameterized SQL query ready for execution."""

    sql: str
    params: tuple[Any, ...]


@dataclass(frozen=True)
class SearchQuery:
    """Page query and count query sharing one WHERE clause."""

    page: BuiltQuery
    count: BuiltQuery
    limit: int
    offset: int


def _where_and(clauses: list[str]) -> str:
    if not clauses:
        return ""
    return "WHERE " + " AND ".join(clauses)


def _append_listing_type(
        clauses: list[str],
        params: list[Any],
        *,
        listing_type: ListingMode | None,
) -> None:
    if listing_type is None:
        return
    if listing_type == ListingMode.operational:
        # Legacy rows without a type are operational.
        clauses.append("(l.listing_type = %s OR l.listing_type IS NULL)")
    else:
        clauses.append("l.listing_type = %s")
    params.append(listing_type.value)


def _append_equality_filters(clauses: list[str], params: list[Any], values: dict[str, Any]) -> None:
    for field_name, column in EQUALITY_FILTER_COLUMNS.items():
        value = values.get(field_name)
        if value is None:
            continue
        clauses.append(f"l.{column} = %s")
        params.append(value)


def _append_text_filters(clauses: list[str], params: list[Any], values: dict[str, Any]) -> None:
    for field_name, column in CASE_INSENSITIVE_FILTER_COLUMNS.items():
        value = values.get(field_name)
        if value is None:
            continue
        clauses.append(f"LOWER(l.{column}) = LOWER(%s)")
        params.append(value)


def _append_range_filters(clauses: list[str], params: list[Any], values: dict[str, Any]) -> None:
    for field_name, (column, op) in RANGE_FILTER_COLUMNS.items():
        value = values.get(field_name)
        if value is None:
            continue
        operator = _ALLOWED_OPERATORS[op]
        clauses.append(f"l.{column} {operator} %s")
        params.append(value)


def _order_by(sort: SortOption | None) -> str:
    try:
        ordering = SORT_ORDER[sort or SortOption.relevance]
    except KeyError as exc:
        raise SQLBuilderError(f"Unsupported sort: {sort}") from exc
    # Stable pagination needs a unique tiebreak.
    return f"ORDER BY {ordering}, l.id ASC"


def build_where(filters: SearchFilters) -> tuple[list[str], list[Any]]:
    """Build the WHERE clauses and params shared by the page and count queries.

    `radius_km` is accepted by the schema but not applied (no geo index yet).
    """

    clauses: list[str] = ["l.status = %s"]
    params: list[Any] = [SEARCHABLE_STATUS]

    # Enums are bound by value; the driver must not see StrEnum subclasses.
    values = filters.model_dump(mode="json", exclude_none=True)

    _append_listing_type(clauses, params, listing_type=filters.listing_type)
    _append_equality_filters(clauses, params, values)
    _append_text_filters(clauses, params, values)
    _append_range_filters(clauses, params, values)

    return clauses, params


def build_search_query(filters: SearchFilters) -> SearchQuery:
    """Build the paginated listing query and its count query from validated filters."""

    clauses, params = build_where(filters)
    where_sql = _where_and(clauses)

    limit = filters.page_size
    offset = (filters.page - 1) * filters.page_size

    columns = ", ".join(f"l.{c}" for c in TEASER_COLUMNS)
    page_sql = (
        f"SELECT {columns} FROM {LISTINGS_TABLE} l {where_sql} "
        f"{_order_by(filters.sort)} LIMIT %s OFFSET %s"
    )
    count_sql = f"SELECT COUNT(*)::bigint FROM {LISTINGS_TABLE} l {where_sql}"

    return SearchQuery(
        page=BuiltQuery(sql=page_sql, params=(*params, limit, offset)),
        count=BuiltQuery(sql=count_sql, params=tuple(params)),
        limit=limit,
        offset=offset,
    )

"""Listing search execution.

Two entry points share one execution path:

- `run_search`: a client supplies a raw filters object (untrusted; sanitized here).
- `run_ai_search`: a buyer supplies free text; filters are extracted first (LLM or rules).
  Callers that manage their own connections use `extract_for_search` then `search_extracted`,
  so no pooled connection is held while the LLM is thinking.

Both return a `SearchResponse`. DB errors propagate; the caller owns the user-facing failure reply.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from psycopg import AsyncConnection

from src.db.query import fetch_dict_rows, fetch_scalar_int
from src.search.parser import (
    ExtractResult,
    ParseSource,
    clean_filters,
    extract_filters_with_source,
)
from src.search.schema import ListingMode, ListingTeaser, SearchFilters
from src.search.taxonomy import Taxonomy, default_taxonomy
from src.sql.builder import build_search_query

logger = logging.getLogger(__name__)

ResultReason = Literal["invalid_filters", "no_results"]

NO_FILTERS_ERROR = "Could not infer any valid filters from query"

TEASER_MAX_CHARS = 150
UNCATEGORIZED_LABEL = "Uncategorized"
GENERAL_LABEL = "General"


@dataclass(frozen=True)
class SearchPage:
    """One page of teasers plus the total number of matching listings."""

    items: list[ListingTeaser]
    total: int
    page: int
    page_size: int

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total


@dataclass(frozen=True)
class SearchResponse:
    """Outcome of a search request, shaped for API clients and the bot."""

    filters_applied: SearchFilters
    page: SearchPage | None = None
    extracted_filters: dict[str, Any] = field(default_factory=dict)
    suggested_mode: ListingMode | None = None
    source: ParseSource | None = None
    result_reason: ResultReason | None = None
    error: str | None = None

    @property
    def total(self) -> int:
        return self.page.total if self.page else 0

    @property
    def items(self) -> list[ListingTeaser]:
        return self.page.items if self.page else []


def _float_or_none(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


def teaser_from_row(row: dict[str, Any], *, taxonomy: Taxonomy) -> ListingTeaser:
    """Map a `listings` row (see `TEASER_COLUMNS`) to its public teaser.

    Codes are replaced by human labels; unknown codes fall back to generic labels rather than
    leaking internal identifiers.
    """

    category_code = row.get("category_code")
    subcategory_code = row.get("subcategory_code")

    category = taxonomy.label_for(category_code) if category_code else None
    subcategory = (
        taxonomy.subcategory_label_for(category_code, subcategory_code)
        if category_code and subcategory_code
        else None
    )

    title = row.get("title") or ""
    return ListingTeaser(
        id=str(row["id"]),
        listing_type=row.get("listing_type") or ListingMode.operational,
        category=category or UNCATEGORIZED_LABEL,
        subcategory=subcategory or GENERAL_LABEL,
        title=title,
        teaser=title[:TEASER_MAX_CHARS],
        asking_price=_float_or_none(row.get("asking_price")),
        location_city=row.get("city"),
        location_province=row.get("province"),
        verification_status=row.get("verification_status") or "unverified",
        featured_level=row.get("featured_level") or "none",
        rank_score=row.get("rank_score") or 0,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        annual_revenue=_float_or_none(row.get("revenue_annual")),
        annual_ebitda=_float_or_none(row.get("ebitda_annual")),
        owner_cashflow=_float_or_none(row.get("cash_flow")),
        hero_image_url=row.get("hero_image_url"),
    )


async def search_listings(
        conn: AsyncConnection,
        filters: SearchFilters,
        *,
        taxonomy: Taxonomy | None = None,
) -> SearchPage:
    """Run the page and count queries for validated filters."""

    if taxonomy is None:
        taxonomy = default_taxonomy()

    query = build_search_query(filters)
    total = await fetch_scalar_int(conn, query.count.sql, query.count.params)
    rows = await fetch_dict_rows(conn, query.page.sql, query.page.params) if total else []

    return SearchPage(
        items=[teaser_from_row(row, taxonomy=taxonomy) for row in rows],
        total=total,
        page=filters.page,
        page_size=filters.page_size,
    )


async def run_search(
        conn: AsyncConnection,
        raw: Any,
        *,
        taxonomy: Taxonomy | None = None,
) -> SearchResponse:
    """Search with a client-supplied filters object."""

    if taxonomy is None:
        taxonomy = default_taxonomy()

    filters = clean_filters(raw, taxonomy=taxonomy)
    page = await search_listings(conn, filters, taxonomy=taxonomy)
    return SearchResponse(filters_applied=filters, page=page)


def _dropped_taxonomy(extracted: dict[str, Any], filters: SearchFilters) -> bool:
    """Whether the taxonomy check rejected an extracted category or subcategory."""

    if extracted.get("category") and filters.category is None:
        return True
    return bool(extracted.get("subcategory")) and filters.subcategory is None


async def extract_for_search(
        text: str,
        *,
        mode: ListingMode | str,
        llm_enabled: bool = False,
        llm_api_key: str | None = None,
        taxonomy: Taxonomy | None = None,
) -> ExtractResult:
    """Extract filters from free text without blocking the event loop.

    The LLM call is a blocking HTTP request, so extraction runs in a worker thread. No DB
    connection is needed here; callers borrow one only when the result is searchable.
    """

    if taxonomy is None:
        taxonomy = default_taxonomy()

    return await asyncio.to_thread(
        extract_filters_with_source,
        text,
        mode=mode,
        llm_enabled=llm_enabled,
        llm_api_key=llm_api_key,
        taxonomy=taxonomy,
    )


def no_criteria_response(result: ExtractResult) -> SearchResponse:
    """Response for an extraction with nothing that narrows the search."""

    return SearchResponse(
        filters_applied=result.filters,
        extracted_filters=result.extracted,
        suggested_mode=result.suggested_mode,
        source=result.source,
        result_reason="invalid_filters",
        error=NO_FILTERS_ERROR,
    )


async def search_extracted(
        conn: AsyncConnection,
        result: ExtractResult,
        *,
        taxonomy: Taxonomy | None = None,
) -> SearchResponse:
    """Search with already extracted filters.

    When nothing narrows the search, no query is executed and `result_reason` is
    `invalid_filters`. An empty result is `invalid_filters` if the taxonomy rejected an extracted
    category or subcategory (the buyer asked for something unknown), otherwise `no_results`.
    """

    filters = result.filters
    if not filters.has_criteria():
        return no_criteria_response(result)

    page = await search_listings(conn, filters, taxonomy=taxonomy)

    reason: ResultReason | None = None
    if page.total == 0:
        reason = (
            "invalid_filters" if _dropped_taxonomy(result.extracted, filters) else "no_results"
        )

    return SearchResponse(
        filters_applied=filters,
        page=page,
        extracted_filters=result.extracted,
        suggested_mode=result.suggested_mode,
        source=result.source,
        result_reason=reason,
    )


async def run_ai_search(
        conn: AsyncConnection,
        text: str,
        *,
        mode: ListingMode | str,
        llm_enabled: bool = False,
        llm_api_key: str | None = None,
        taxonomy: Taxonomy | None = None,
) -> SearchResponse:
    """Extract filters from free text and search with them."""

    if taxonomy is None:
        taxonomy = default_taxonomy()

    result = await extract_for_search(
        text,
        mode=mode,
        llm_enabled=llm_enabled,
        llm_api_key=llm_api_key,
        taxonomy=taxonomy,
    )
    return await search_extracted(conn, result, taxonomy=taxonomy)

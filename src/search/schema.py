"""Search filter schema (Pydantic models).

`ParsedQuery` is what the rules parser extracts from free text. `SearchFilters` is the canonical
wire format consumed by the SQL builder. Only the sanitizer is allowed to build a `SearchFilters`
from untrusted input; everything else receives an already validated object.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 24
MAX_PAGE_SIZE = 60


class ListingMode(StrEnum):
    """Marketplace track a buyer is searching in."""

    operational = "operational"
    digital = "digital"


class SortOption(StrEnum):
    """Supported result orderings."""

    relevance = "relevance"
    newest = "newest"
    price_low = "price_low"
    price_high = "price_high"
    revenue_high = "revenue_high"
    cashflow_high = "cashflow_high"


class VerificationStatus(StrEnum):
    """Listing verification state."""

    unverified = "unverified"
    pending = "pending"
    verified = "verified"


class FeaturedLevel(StrEnum):
    """Paid placement level of a listing."""

    none = "none"
    boost = "boost"
    premium = "premium"


Amount = Annotated[float, Field(ge=0, allow_inf_nan=False)]


class ParsedQuery(BaseModel):
    """Structured fields extracted from a free-text query.

    Every field is optional; an unmatched pattern leaves its field unset. `query` carries the
    original text only when nothing structured could be extracted, so callers can fall back to a
    full-text search.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    query: str | None = None
    category_code: str | None = None
    subcategory_code: str | None = None
    location: str | None = None
    min_ebitda: Amount | None = None
    min_mrr: Amount | None = None
    min_revenue: Amount | None = None
    max_price: Amount | None = None
    min_price: Amount | None = None
    churn_rate: Amount | None = None
    suggested_mode: ListingMode | None = None

    def has_structured_fields(self) -> bool:
        """Whether anything besides the fallback text and mode hint was extracted."""

        dumped = self.model_dump(exclude_none=True)
        return any(key not in {"query", "suggested_mode"} for key in dumped)

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting absent fields."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


_NON_CRITERIA_FIELDS = frozenset({"listing_type", "sort", "page", "page_size"})


class SearchFilters(BaseModel):
    """Canonical listing search filters.

    All numeric amounts are absolute, non-negative and annual unless the name says otherwise.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    listing_type: ListingMode | None = None

    category: str | None = None
    subcategory: str | None = None

    min_price: Amount | None = None
    max_price: Amount | None = None
    min_revenue: Amount | None = None
    max_revenue: Amount | None = None
    min_ebitda: Amount | None = None
    max_ebitda: Amount | None = None
    min_cashflow: Amount | None = None
    max_cashflow: Amount | None = None

    country: Literal["Canada"] | None = None
    province: str | None = None
    city: str | None = None
    radius_km: Amount | None = None

    verification_status: VerificationStatus | None = None
    ai_verified: bool | None = None
    nda_required: bool | None = None

    property_included: bool | None = None
    rent_income_min: Amount | None = None

    fuel_volume_min_lpy: Amount | None = None
    fuel_margin_min_cents: Amount | None = None
    car_wash_present: bool | None = None
    ev_charging_present: bool | None = None

    min_mrr: Amount | None = None
    max_mrr: Amount | None = None
    min_arr: Amount | None = None
    max_arr: Amount | None = None
    max_churn_pct: Amount | None = None
    min_gross_margin_pct: Amount | None = None
    traffic_min_monthly: Amount | None = None

    sort: SortOption | None = None
    page: int = Field(default=DEFAULT_PAGE, ge=1)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)

    def has_criteria(self) -> bool:
        """Whether any filter narrows the result set (paging, sort and track excluded)."""

        dumped = self.model_dump(exclude_none=True)
        return any(key not in _NON_CRITERIA_FIELDS for key in dumped)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON wire format, omitting absent fields."""

        return self.model_dump(mode="json", exclude_none=True)


class ListingTeaser(BaseModel):
    """Publicly visible summary of a listing, as returned by search."""

    model_config = ConfigDict(extra="forbid")

    id: str
    listing_type: ListingMode
    category: str
    subcategory: str
    title: str
    teaser: str
    asking_price: float | None = None
    location_city: str | None = None
    location_province: str | None = None
    verification_status: VerificationStatus = VerificationStatus.unverified
    featured_level: FeaturedLevel = FeaturedLevel.none
    rank_score: float = 0
    created_at: datetime
    updated_at: datetime

    annual_revenue: float | None = None
    annual_ebitda: float | None = None
    owner_cashflow: float | None = None

    hero_image_url: str | None = None

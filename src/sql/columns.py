"""Allowlisted SQL identifiers.

All column names referenced in generated SQL must come from these mappings; no user-provided
identifier should ever be interpolated into SQL.
"""

from __future__ import annotations

from typing import Literal

from src.search.schema import SortOption

Comparator = Literal[">=", "<="]

LISTINGS_TABLE = "listings"

# Only listings in this state are visible to search.
SEARCHABLE_STATUS = "active"

TEASER_COLUMNS: tuple[str, ...] = (
    "id",
    "title",
    "listing_type",
    "category_code",
    "subcategory_code",
    "city",
    "province",
    "country",
    "asking_price",
    "revenue_annual",
    "ebitda_annual",
    "cash_flow",
    "verification_status",
    "featured_level",
    "rank_score",
    "hero_image_url",
    "created_at",
    "updated_at",
)

# Filter field -> (column, comparator) for numeric bounds.
RANGE_FILTER_COLUMNS: dict[str, tuple[str, Comparator]] = {
    "min_price": ("asking_price", ">="),
    "max_price": ("asking_price", "<="),
    "min_revenue": ("revenue_annual", ">="),
    "max_revenue": ("revenue_annual", "<="),
    "min_ebitda": ("ebitda_annual", ">="),
    "max_ebitda": ("ebitda_annual", "<="),
    "min_cashflow": ("cash_flow", ">="),
    "max_cashflow": ("cash_flow", "<="),
    "rent_income_min": ("rent_income_annual", ">="),
    "fuel_volume_min_lpy": ("fuel_volume_lpy", ">="),
    "fuel_margin_min_cents": ("fuel_margin_cents", ">="),
    "min_mrr": ("mrr", ">="),
    "max_mrr": ("mrr", "<="),
    "min_arr": ("arr", ">="),
    "max_arr": ("arr", "<="),
    "max_churn_pct": ("churn_pct", "<="),
    "min_gross_margin_pct": ("gross_margin_pct", ">="),
    "traffic_min_monthly": ("monthly_traffic", ">="),
}

# Filter field -> column for exact matches.
EQUALITY_FILTER_COLUMNS: dict[str, str] = {
    "category": "category_code",
    "subcategory": "subcategory_code",
    "country": "country",
    "verification_status": "verification_status",
    "ai_verified": "ai_verified",
    "nda_required": "nda_required",
    "property_included": "property_included",
    "car_wash_present": "car_wash_present",
    "ev_charging_present": "ev_charging_present",
}

# Filter field -> column for case-insensitive text matches.
CASE_INSENSITIVE_FILTER_COLUMNS: dict[str, str] = {
    "province": "province",
    "city": "city",
}

SORT_ORDER: dict[SortOption, str] = {
    SortOption.relevance: "l.rank_score DESC NULLS LAST, l.updated_at DESC",
    SortOption.newest: "l.created_at DESC",
    SortOption.price_low: "l.asking_price ASC NULLS LAST",
    SortOption.price_high: "l.asking_price DESC NULLS LAST",
    SortOption.revenue_high: "l.revenue_annual DESC NULLS LAST",
    SortOption.cashflow_high: "l.cash_flow DESC NULLS LAST",
}

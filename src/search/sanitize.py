"""Filter sanitization and taxonomy validation.

This is the trust boundary for every filter object, whether it came from the rules parser, an LLM
or a client request. Nothing here raises on bad input: an invalid value degrades to "filter
omitted", and callers decide whether the remaining filters are enough to search.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from enum import StrEnum
from typing import Any, TypeVar

from src.search.dictionaries import PROVINCE_BY_LOCATION
from src.search.schema import (
    DEFAULT_PAGE,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    ListingMode,
    ParsedQuery,
    SearchFilters,
    SortOption,
    VerificationStatus,
)
from src.search.taxonomy import Taxonomy, default_taxonomy

_E = TypeVar("_E", bound=StrEnum)

_CURRENCY_NOISE_RE = re.compile(r"[$,\s]")
# ASCII digits only; `float()` alone would also take "1_000", "1e3" and non-ASCII digits.
_PLAIN_NUMBER_RE = re.compile(r"[0-9]+(?:\.[0-9]+)?")

NUMBER_FIELDS: tuple[str, ...] = (
    "min_price",
    "max_price",
    "min_revenue",
    "max_revenue",
    "min_ebitda",
    "max_ebitda",
    "min_cashflow",
    "max_cashflow",
    "radius_km",
    "rent_income_min",
    "fuel_volume_min_lpy",
    "fuel_margin_min_cents",
    "min_mrr",
    "max_mrr",
    "min_arr",
    "max_arr",
    "max_churn_pct",
    "min_gross_margin_pct",
    "traffic_min_monthly",
)

BOOL_FIELDS: tuple[str, ...] = (
    "ai_verified",
    "nda_required",
    "property_included",
    "car_wash_present",
    "ev_charging_present",
)


def normalize_number(value: Any) -> float | None:
    """Coerce a number or numeric string into a finite, non-negative float.

    Currency symbols, thousands separators and whitespace are stripped from strings
    (`"$123,000"` -> `123000.0`). Returns `None` (never `0`) for anything else.
    """

    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        cleaned = _CURRENCY_NOISE_RE.sub("", value)
        if not _PLAIN_NUMBER_RE.fullmatch(cleaned):
            return None
        number = float(cleaned)
    else:
        return None

    if not math.isfinite(number) or number < 0:
        return None
    return number


def normalize_positive_int(value: Any, minimum: int, maximum: int | None = None) -> int | None:
    """Floor a number to an int; reject values below `minimum`, clamp to `maximum`."""

    number = normalize_number(value)
    if number is None:
        return None

    result = math.floor(number)
    if result < minimum:
        return None
    if maximum is not None and result > maximum:
        return maximum
    return result


def _enum_member(value: Any, enum_cls: type[_E]) -> _E | None:
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


def _clean_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _checked_taxonomy(
        category: Any,
        subcategory: Any,
        *,
        listing_type: ListingMode | None,
        taxonomy: Taxonomy,
) -> tuple[str | None, str | None]:
    """Return the (category, subcategory) pair that survives the allow-list.

    Matching is exact after trimming. A category from the other track is dropped, and a
    subcategory never survives without its valid parent.
    """

    category_code = _clean_str(category)
    if category_code is not None and not taxonomy.has_category(category_code):
        category_code = None
    if (
            category_code is not None
            and listing_type is not None
            and taxonomy.category_mode(category_code) != listing_type
    ):
        category_code = None

    subcategory_code = _clean_str(subcategory)
    if subcategory_code is not None and (
            category_code is None or not taxonomy.has_subcategory(category_code, subcategory_code)
    ):
        subcategory_code = None

    return category_code, subcategory_code


def sanitize_filters(raw: Any, *, taxonomy: Taxonomy | None = None) -> SearchFilters:
    """Build canonical `SearchFilters` from an untrusted object.

    Unknown keys are dropped. Every known key is type-checked and range-checked individually;
    invalid values are omitted rather than defaulted. `page` defaults to 1 and `page_size` to 24
    (clamped to 60).
    """

    if taxonomy is None:
        taxonomy = default_taxonomy()

    if isinstance(raw, SearchFilters):
        raw = raw.to_wire()
    if not isinstance(raw, Mapping):
        return SearchFilters()

    cleaned: dict[str, Any] = {}

    listing_type = _enum_member(raw.get("listing_type"), ListingMode)
    if listing_type is not None:
        cleaned["listing_type"] = listing_type

    category, subcategory = _checked_taxonomy(
        raw.get("category"),
        raw.get("subcategory"),
        listing_type=listing_type,
        taxonomy=taxonomy,
    )
    if category is not None:
        cleaned["category"] = category
    if subcategory is not None:
        cleaned["subcategory"] = subcategory

    for name in NUMBER_FIELDS:
        number = normalize_number(raw.get(name))
        if number is not None:
            cleaned[name] = number

    if raw.get("country") == "Canada":
        cleaned["country"] = "Canada"
    for name in ("province", "city"):
        text = _clean_str(raw.get(name))
        if text is not None:
            cleaned[name] = text

    verification_status = _enum_member(raw.get("verification_status"), VerificationStatus)
    if verification_status is not None:
        cleaned["verification_status"] = verification_status

    for name in BOOL_FIELDS:
        value = raw.get(name)
        if isinstance(value, bool):
            cleaned[name] = value

    sort = _enum_member(raw.get("sort"), SortOption)
    if sort is not None:
        cleaned["sort"] = sort

    cleaned["page"] = normalize_positive_int(raw.get("page"), 1) or DEFAULT_PAGE
    cleaned["page_size"] = (
            normalize_positive_int(raw.get("page_size"), 1, MAX_PAGE_SIZE) or DEFAULT_PAGE_SIZE
    )

    return SearchFilters.model_validate(cleaned)


def validate_taxonomy(filters: SearchFilters, *, taxonomy: Taxonomy | None = None) -> SearchFilters:
    """Re-check category/subcategory against the allow-list before a search runs.

    A safety net for filters that did not come straight out of `sanitize_filters`: an unknown
    category drops both taxonomy fields, and an orphaned subcategory is dropped on its own.
    """

    if taxonomy is None:
        taxonomy = default_taxonomy()

    category, subcategory = _checked_taxonomy(
        filters.category,
        filters.subcategory,
        listing_type=filters.listing_type,
        taxonomy=taxonomy,
    )
    if category == filters.category and subcategory == filters.subcategory:
        return filters
    return filters.model_copy(update={"category": category, "subcategory": subcategory})


def parsed_to_raw_filters(parsed: ParsedQuery, mode: ListingMode | str) -> dict[str, Any]:
    """Map rules-parser output onto raw wire filters (still to be sanitized)."""

    raw: dict[str, Any] = {"listing_type": ListingMode(mode).value}

    if parsed.category_code is not None:
        raw["category"] = parsed.category_code
    if parsed.subcategory_code is not None:
        raw["subcategory"] = parsed.subcategory_code

    if parsed.location is not None:
        province = PROVINCE_BY_LOCATION.get(parsed.location, parsed.location)
        raw["province"] = province
        if province != parsed.location:
            raw["city"] = parsed.location

    mapping = {
        "min_ebitda": parsed.min_ebitda,
        "min_mrr": parsed.min_mrr,
        "min_revenue": parsed.min_revenue,
        "min_price": parsed.min_price,
        "max_price": parsed.max_price,
        "max_churn_pct": parsed.churn_rate,
    }
    raw.update({k: v for k, v in mapping.items() if v is not None})
    return raw

"""English keyword dictionaries for categories, locations and track vocabulary.

These tables are used by the rules-based parser and should remain small and deterministic. Order
matters: the first matching entry wins, so more specific phrases are listed first.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

from src.search.schema import ListingMode


@dataclass(frozen=True)
class CategoryTerm:
    """Phrases that map a query to a category code (and optionally a subcategory code)."""

    phrases: tuple[str, ...]
    category_code: str
    subcategory_code: str | None = None


@dataclass(frozen=True)
class LocationTerm:
    """Phrases that map a query to a canonical location name."""

    phrases: tuple[str, ...]
    location: str
    province: str


CATEGORY_TERMS: dict[ListingMode, tuple[CategoryTerm, ...]] = {
    ListingMode.operational: (
        CategoryTerm(("gas station", "gas stations"), "fuel_auto", "gas_stations"),
        CategoryTerm(("fuel station", "fuel stations"), "fuel_auto"),
        CategoryTerm(("car wash", "car washes"), "fuel_auto", "car_washes"),
        CategoryTerm(("franchise", "franchises"), "retail_franchise"),
        CategoryTerm(
            ("convenience store", "convenience stores"), "retail_franchise", "convenience_stores"
        ),
        CategoryTerm(("retail",), "retail_franchise"),
        CategoryTerm(("restaurant", "restaurants"), "food_hospitality"),
        CategoryTerm(("logistics",), "industrial_logistics"),
        CategoryTerm(("industrial",), "industrial_logistics"),
    ),
    ListingMode.digital: (
        CategoryTerm(("saas",), "saas_software", "b2b_saas"),
        CategoryTerm(("software",), "saas_software", "b2b_saas"),
        CategoryTerm(("app", "apps"), "saas_software"),
        CategoryTerm(("application", "applications"), "saas_software"),
        CategoryTerm(("e-commerce", "ecommerce", "online store", "online stores"), "ecommerce"),
        CategoryTerm(("ai tool", "ai tools", "artificial intelligence"), "saas_software"),
        CategoryTerm(("content site", "content sites"), "content_media"),
        CategoryTerm(("blog", "blogs"), "content_media"),
        CategoryTerm(("website", "websites"), "content_media"),
    ),
}

LOCATION_TERMS: tuple[LocationTerm, ...] = (
    LocationTerm(("greater toronto", "gta"), "Ontario", "Ontario"),
    LocationTerm(("ontario",), "Ontario", "Ontario"),
    LocationTerm(("toronto",), "Toronto", "Ontario"),
    LocationTerm(("quebec",), "Quebec", "Quebec"),
    LocationTerm(("montreal",), "Montreal", "Quebec"),
    LocationTerm(("british columbia", "bc"), "British Columbia", "British Columbia"),
    LocationTerm(("vancouver",), "Vancouver", "British Columbia"),
    LocationTerm(("alberta",), "Alberta", "Alberta"),
    LocationTerm(("calgary",), "Calgary", "Alberta"),
    LocationTerm(("edmonton",), "Edmonton", "Alberta"),
    LocationTerm(("manitoba",), "Manitoba", "Manitoba"),
    LocationTerm(("winnipeg",), "Winnipeg", "Manitoba"),
    LocationTerm(("saskatchewan",), "Saskatchewan", "Saskatchewan"),
    LocationTerm(("regina",), "Regina", "Saskatchewan"),
    LocationTerm(("nova scotia",), "Nova Scotia", "Nova Scotia"),
    LocationTerm(("halifax",), "Halifax", "Nova Scotia"),
    LocationTerm(("new brunswick",), "New Brunswick", "New Brunswick"),
    LocationTerm(("newfoundland",), "Newfoundland", "Newfoundland"),
)

PROVINCE_BY_LOCATION: dict[str, str] = {t.location: t.province for t in LOCATION_TERMS}

# Vocabulary that signals the buyer is looking at the other track.
MODE_KEYWORDS: dict[ListingMode, tuple[str, ...]] = {
    ListingMode.digital: (
        "saas",
        "software",
        "app",
        "apps",
        "e-commerce",
        "ecommerce",
        "ai tool",
        "ai tools",
        "content site",
        "content sites",
        "blog",
        "website",
        "mrr",
        "churn",
        "arr",
    ),
    ListingMode.operational: (
        "gas station",
        "gas stations",
        "car wash",
        "car washes",
        "franchise",
        "franchises",
        "convenience store",
        "convenience stores",
        "retail",
        "restaurant",
        "restaurants",
        "logistics",
        "industrial",
        "ebitda",
        "cash flow",
    ),
}


@lru_cache(maxsize=512)
def _phrase_re(phrase: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(phrase)}(?!\w)")


def contains_phrase(text: str, phrase: str) -> bool:
    """Whether `phrase` occurs in normalized `text` as whole words."""

    return _phrase_re(phrase).search(text or "") is not None


def contains_any(text: str, phrases: tuple[str, ...]) -> bool:
    return any(contains_phrase(text, p) for p in phrases)


def detect_category(text: str, mode: ListingMode) -> CategoryTerm | None:
    """Return the first category term of the given track that matches the text."""

    for term in CATEGORY_TERMS[mode]:
        if contains_any(text, term.phrases):
            return term
    return None


def detect_location(text: str) -> LocationTerm | None:
    """Return the first location term that matches the text."""

    for term in LOCATION_TERMS:
        if contains_any(text, term.phrases):
            return term
    return None


def suggest_mode(text: str, mode: ListingMode) -> ListingMode | None:
    """Suggest the other track when the text only uses that track's vocabulary.

    Mixed vocabulary never produces a suggestion.
    """

    has_digital = contains_any(text, MODE_KEYWORDS[ListingMode.digital])
    has_operational = contains_any(text, MODE_KEYWORDS[ListingMode.operational])

    if mode == ListingMode.operational and has_digital and not has_operational:
        return ListingMode.digital
    if mode == ListingMode.digital and has_operational and not has_digital:
        return ListingMode.operational
    return None

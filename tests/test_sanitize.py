"""Tests for the filter sanitizer (the trust boundary before SQL)."""

from __future__ import annotations

import math

import pytest

from src.search.rules_parser import parse_query
from src.search.sanitize import (
    normalize_number,
    normalize_positive_int,
    parsed_to_raw_filters,
    sanitize_filters,
    validate_taxonomy,
)
from src.search.schema import ListingMode, SearchFilters, SortOption


def test_sanitize_drops_unknown_category_negative_price_and_clamps_page_size() -> None:
    filters = sanitize_filters(
        {"category": "Nonexistent Category", "min_price": -5, "page_size": 9999}
    )

    assert filters.to_wire() == {"page": 1, "page_size": 60}


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (123, 123.0),
        (0, 0.0),
        (12.5, 12.5),
        ("$123,000", 123000.0),
        (" 4 500 ", 4500.0),
        ("-1", None),
        (-0.01, None),
        ("abc", None),
        ("", None),
        (None, None),
        (True, None),
        (math.inf, None),
        (math.nan, None),
        ("1e400", None),
        ("1e3", None),
        ("1_000", None),
        ("\N{ARABIC-INDIC DIGIT THREE}", None),
        ("\N{FULLWIDTH DIGIT FIVE}00", None),
        (10**400, None),
        ([1], None),
    ],
)
def test_normalize_number(value: object, expected: float | None) -> None:
    assert normalize_number(value) == expected


def test_normalize_positive_int_floors_and_clamps() -> None:
    assert normalize_positive_int("3.9", 1) == 3
    assert normalize_positive_int(0, 1) is None
    assert normalize_positive_int(500, 1, 60) == 60
    assert normalize_positive_int("x", 1) is None


def test_sanitize_non_mapping_returns_defaults() -> None:
    assert sanitize_filters(None) == SearchFilters()
    assert sanitize_filters(["category", "fuel_auto"]) == SearchFilters()
    assert sanitize_filters("fuel_auto").to_wire() == {"page": 1, "page_size": 24}


def test_sanitize_drops_unknown_keys_and_bad_types() -> None:
    filters = sanitize_filters(
        {
            "listing_type": "physical",
            "country": "USA",
            "province": "   ",
            "city": 42,
            "ai_verified": "true",
            "nda_required": False,
            "verification_status": "trusted",
            "sort": "cheapest",
            "drop_table": "listings",
        }
    )

    assert filters.to_wire() == {"nda_required": False, "page": 1, "page_size": 24}


def test_sanitize_keeps_valid_fields() -> None:
    filters = sanitize_filters(
        {
            "listing_type": "operational",
            "category": "fuel_auto",
            "subcategory": "gas_stations",
            "min_ebitda": "500,000",
            "province": " Ontario ",
            "country": "Canada",
            "verification_status": "verified",
            "sort": "price_low",
            "page": "2",
            "page_size": 10,
        }
    )

    assert filters.to_wire() == {
        "listing_type": "operational",
        "category": "fuel_auto",
        "subcategory": "gas_stations",
        "min_ebitda": 500000.0,
        "province": "Ontario",
        "country": "Canada",
        "verification_status": "verified",
        "sort": "price_low",
        "page": 2,
        "page_size": 10,
    }
    assert filters.sort == SortOption.price_low


def test_sanitize_subcategory_requires_valid_parent() -> None:
    orphan = sanitize_filters({"subcategory": "gas_stations"})
    wrong_parent = sanitize_filters({"category": "ecommerce", "subcategory": "gas_stations"})

    assert orphan.subcategory is None
    assert wrong_parent.category == "ecommerce"
    assert wrong_parent.subcategory is None


def test_sanitize_category_match_is_exact() -> None:
    assert sanitize_filters({"category": "Fuel_Auto"}).category is None
    assert sanitize_filters({"category": " fuel_auto "}).category == "fuel_auto"


def test_sanitize_drops_category_from_other_track() -> None:
    filters = sanitize_filters({"listing_type": "digital", "category": "fuel_auto"})

    assert filters.listing_type == ListingMode.digital
    assert filters.category is None


@pytest.mark.parametrize(
    "raw",
    [
        {"category": "Nonexistent Category", "min_price": -5, "page_size": 9999},
        {"category": "saas_software", "subcategory": "b2b_saas", "min_mrr": "$20k"},
        {"listing_type": "operational", "min_price": "1,000", "max_price": 2e6, "page": 0},
        {"province": "Ontario", "city": "Toronto", "ev_charging_present": True},
    ],
)
def test_sanitize_is_idempotent(raw: dict[str, object]) -> None:
    once = sanitize_filters(raw)
    twice = sanitize_filters(once.to_wire())

    assert twice == once
    assert sanitize_filters(once) == once


def test_sanitize_accepts_its_own_output_model() -> None:
    once = sanitize_filters({"category": "fuel_auto", "min_price": 5, "page_size": 10})

    assert sanitize_filters(once) == once
    assert once.to_wire() == {"category": "fuel_auto", "min_price": 5.0, "page": 1, "page_size": 10}


def test_sanitized_numbers_are_finite_and_non_negative() -> None:
    filters = sanitize_filters(
        {"min_price": "nan", "max_price": "inf", "min_revenue": -1, "max_churn_pct": "7.5"}
    )
    dumped = filters.to_wire()

    assert "min_price" not in dumped
    assert "max_price" not in dumped
    assert "min_revenue" not in dumped
    assert dumped["max_churn_pct"] == 7.5


def test_validate_taxonomy_drops_unknown_category_and_orphan_subcategory() -> None:
    unchecked = SearchFilters.model_construct(
        category="made_up", subcategory="gas_stations", page=1, page_size=24
    )

    checked = validate_taxonomy(unchecked)

    assert checked.category is None
    assert checked.subcategory is None


def test_validate_taxonomy_returns_same_object_when_valid() -> None:
    filters = sanitize_filters({"category": "fuel_auto", "subcategory": "car_washes"})

    assert validate_taxonomy(filters) is filters


def test_parsed_to_raw_filters_maps_city_and_churn() -> None:
    parsed = parse_query("car wash in Toronto under $2m", ListingMode.operational)

    raw = parsed_to_raw_filters(parsed, ListingMode.operational)

    assert raw == {
        "listing_type": "operational",
        "category": "fuel_auto",
        "subcategory": "car_washes",
        "province": "Ontario",
        "city": "Toronto",
        "max_price": 2_000_000,
    }


def test_parsed_to_raw_filters_digital_example() -> None:
    parsed = parse_query("SaaS with $20k MRR and under 10% churn", ListingMode.digital)

    filters = sanitize_filters(parsed_to_raw_filters(parsed, "digital"))

    assert filters.to_wire() == {
        "listing_type": "digital",
        "category": "saas_software",
        "subcategory": "b2b_saas",
        "min_mrr": 20000.0,
        "max_churn_pct": 10.0,
        "page": 1,
        "page_size": 24,
    }

"""Tests for the deterministic rules-based English query parser."""

from __future__ import annotations

import pytest

from src.search.rules_parser import parse_query
from src.search.schema import ListingMode, ParsedQuery


def test_parse_gas_station_with_ebitda_floor() -> None:
    parsed = parse_query("gas station in Ontario over $500k EBITDA", ListingMode.operational)

    assert parsed.to_wire() == {
        "categoryCode": "fuel_auto",
        "subcategoryCode": "gas_stations",
        "location": "Ontario",
        "minEbitda": 500000,
    }
    assert parsed.query is None
    assert parsed.suggested_mode is None


def test_parse_saas_with_mrr_and_churn() -> None:
    parsed = parse_query("SaaS with $20k MRR and under 10% churn", "digital")

    assert parsed.to_wire() == {
        "categoryCode": "saas_software",
        "subcategoryCode": "b2b_saas",
        "minMrr": 20000,
        "churnRate": 10,
    }
    # "under 10%" is a churn bound, never a price.
    assert parsed.max_price is None


def test_parse_other_track_vocabulary_suggests_mode() -> None:
    parsed = parse_query("SaaS business for sale", ListingMode.operational)

    assert parsed.to_wire() == {
        "suggestedMode": "digital",
        "query": "SaaS business for sale",
    }
    assert parsed.category_code is None


def test_parse_mixed_vocabulary_has_no_suggestion() -> None:
    parsed = parse_query("gas station with a saas billing system", ListingMode.operational)

    assert parsed.category_code == "fuel_auto"
    assert parsed.suggested_mode is None


@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
def test_parse_empty_text_returns_empty_result(text: str) -> None:
    assert parse_query(text, ListingMode.operational) == ParsedQuery()


def test_parse_unrecognized_text_keeps_query() -> None:
    parsed = parse_query("  something profitable near the lake  ", ListingMode.operational)

    assert parsed.to_wire() == {"query": "something profitable near the lake"}


def test_parse_city_and_bare_money_bound() -> None:
    parsed = parse_query("car wash in Toronto under $2m", ListingMode.operational)

    assert parsed.category_code == "fuel_auto"
    assert parsed.subcategory_code == "car_washes"
    assert parsed.location == "Toronto"
    assert parsed.max_price == 2_000_000


def test_parse_bare_number_bound_is_not_a_price() -> None:
    parsed = parse_query("restaurant under 5 years old", ListingMode.operational)

    assert parsed.category_code == "food_hospitality"
    assert parsed.max_price is None


def test_parse_greater_toronto_alias_resolves_to_province() -> None:
    parsed = parse_query("franchise in the greater toronto area", ListingMode.operational)

    assert parsed.category_code == "retail_franchise"
    assert parsed.location == "Ontario"


def test_parse_revenue_with_unit_word() -> None:
    parsed = parse_query("restaurant with revenue over 1.5 million", ListingMode.operational)

    assert parsed.min_revenue == 1_500_000
    assert parsed.min_ebitda is None


def test_parse_monthly_revenue_is_mrr_not_annual_revenue() -> None:
    parsed = parse_query("monthly revenue over 10k", ListingMode.digital)

    assert parsed.min_mrr == 10_000
    assert parsed.min_revenue is None


def test_parse_ebitda_term_before_amount() -> None:
    parsed = parse_query("logistics company, ebitda over 750,000", ListingMode.operational)

    assert parsed.category_code == "industrial_logistics"
    assert parsed.min_ebitda == 750_000


def test_parse_price_range() -> None:
    parsed = parse_query("gas station priced between $1m and $3m", ListingMode.operational)

    assert parsed.min_price == 1_000_000
    assert parsed.max_price == 3_000_000


def test_parse_unicode_comparator() -> None:
    parsed = parse_query("retail EBITDA ≥ $250K", ListingMode.operational)

    assert parsed.category_code == "retail_franchise"
    assert parsed.min_ebitda == 250_000


def test_parse_category_only_uses_active_track_vocabulary() -> None:
    parsed = parse_query("gas station", ListingMode.digital)

    assert parsed.category_code is None
    assert parsed.suggested_mode == ListingMode.operational
    assert parsed.query == "gas station"


def test_parse_invalid_mode_raises() -> None:
    with pytest.raises(ValueError):
        parse_query("gas station", "physical")


@pytest.mark.parametrize(
    ("text", "mode"),
    [
        ("saas mrr between 10k and 20k", ListingMode.digital),
        ("revenue between $1m and $2m", ListingMode.operational),
        ("ebitda of between $200k and $400k", ListingMode.operational),
        ("mrr under $20k", ListingMode.digital),
    ],
)
def test_parse_metric_range_is_not_a_price(text: str, mode: ListingMode) -> None:
    parsed = parse_query(text, mode)

    assert parsed.min_price is None
    assert parsed.max_price is None


def test_parse_metric_range_keeps_category() -> None:
    parsed = parse_query("saas mrr between 10k and 20k", ListingMode.digital)

    assert parsed.category_code == "saas_software"
    assert parsed.min_price is None

"""Seed-document-to-row conversion helpers.

Both the JSON seed loader and integration tests need to convert a parsed `{"listings": [...]}`
payload into row tuples matching the `listings` table.

Keeping this conversion in one place prevents drift between loader behavior and test fixtures.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

LISTING_COLUMNS: tuple[str, ...] = (
    "id",
    "title",
    "status",
    "listing_type",
    "category_code",
    "subcategory_code",
    "country",
    "province",
    "city",
    "asking_price",
    "revenue_annual",
    "ebitda_annual",
    "cash_flow",
    "verification_status",
    "ai_verified",
    "nda_required",
    "property_included",
    "rent_income_annual",
    "fuel_volume_lpy",
    "fuel_margin_cents",
    "car_wash_present",
    "ev_charging_present",
    "mrr",
    "arr",
    "churn_pct",
    "gross_margin_pct",
    "monthly_traffic",
    "featured_level",
    "rank_score",
    "hero_image_url",
    "created_at",
    "updated_at",
)

_DEFAULTS: dict[str, Any] = {
    "status": "active",
    "verification_status": "unverified",
    "ai_verified": False,
    "nda_required": True,
    "featured_level": "none",
    "rank_score": 0,
}

_REQUIRED = ("id", "title", "created_at", "updated_at")


def iter_listing_rows(listings: Sequence[dict[str, Any]]) -> Iterable[tuple[Any, ...]]:
    """Yield row tuples (in `LISTING_COLUMNS` order) for inserting into `listings`.

    Raises:
        ValueError: If a listing misses a required key.
    """

    for listing in listings:
        missing = [key for key in _REQUIRED if listing.get(key) in (None, "")]
        if missing:
            raise ValueError(f"listing {listing.get('id')!r} is missing {', '.join(missing)}")

        row = {**_DEFAULTS, **listing}
        row["id"] = str(row["id"])
        yield tuple(row.get(column) for column in LISTING_COLUMNS)


def insert_listing_sql(*, upsert: bool) -> str:
    """INSERT statement for `LISTING_COLUMNS`, optionally upserting on `id`."""

    columns = ", ".join(LISTING_COLUMNS)
    placeholders = ", ".join(["%s"] * len(LISTING_COLUMNS))
    sql = f"INSERT INTO listings ({columns}) VALUES ({placeholders})"
    if not upsert:
        return sql

    updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in LISTING_COLUMNS if c != "id")
    return f"{sql} ON CONFLICT (id) DO UPDATE SET {updates}"

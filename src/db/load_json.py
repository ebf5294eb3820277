"""Seed marketplace listings from a JSON document into Postgres.

The document is expected to be a JSON object with a single top-level key `"listings"` containing a
list of listing objects whose keys match the `listings` table columns.
"""

from __future__ import annotations

import argparse
import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any, LiteralString, cast
from urllib.request import urlopen

from dotenv import load_dotenv

from src.config.logging import configure_logging
from src.db.connection import connect_utc, require_database_url
from src.db.dataset_rows import insert_listing_sql, iter_listing_rows

logger = logging.getLogger(__name__)


def _load_json_bytes(*, path: str | None, url: str | None) -> bytes:
    if bool(path) == bool(url):
        raise ValueError("Exactly one of --path or --url must be provided")

    if path:
        return Path(path).read_bytes()

    assert url is not None
    with urlopen(url) as resp:  # noqa: S310 (controlled URL from CLI)
        return resp.read()


def _chunks(iterable: Iterable[tuple], size: int) -> Iterable[list[tuple]]:
    chunk: list[tuple] = []
    for item in iterable:
        chunk.append(item)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def parse_listings_payload(payload: Any) -> list[dict[str, Any]]:
    """Validate the top-level document shape and return the listing objects."""

    if (
            not isinstance(payload, dict)
            or "listings" not in payload
            or not isinstance(payload["listings"], list)
    ):
        raise ValueError(
            "Unexpected seed format: expected object with key 'listings' containing a list"
        )
    return payload["listings"]


def load_listings(*, path: str | None, url: str | None, truncate: bool, batch_size: int) -> int:
    """Upsert the seed listings; return the number of rows written."""

    if batch_size <= 0:
        raise ValueError("--batch-size must be a positive integer")

    load_dotenv(".env")
    database_url = require_database_url()

    payload = json.loads(_load_json_bytes(path=path, url=url))
    listings = parse_listings_payload(payload)

    written = 0
    with connect_utc(database_url) as conn:
        with conn.transaction():
            with conn.cursor() as cur:
                if truncate:
                    cur.execute("TRUNCATE listings", prepare=False)

                sql = cast(LiteralString, insert_listing_sql(upsert=True))
                for batch in _chunks(iter_listing_rows(listings), batch_size):
                    cur.executemany(sql, batch)
                    written += len(batch)

    logger.info("seeded listings count=%d truncate=%s", written, truncate)
    return written


def main() -> None:
    """CLI entry point for seeding listings into Postgres."""

    parser = argparse.ArgumentParser(description="Seed marketplace listings into Postgres.")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--path", help="Path to the seed JSON file (e.g. listings.json).")
    src.add_argument("--url", help="URL to download the seed JSON.")
    parser.add_argument(
        "--truncate",
        action="store_true",
        help="TRUNCATE the listings table before loading (destructive).",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=500,
        help="Number of listing rows per insert batch.",
    )
    args = parser.parse_args()

    configure_logging()
    load_listings(
        path=args.path,
        url=args.url,
        truncate=args.truncate,
        batch_size=args.batch_size,
    )


if __name__ == "__main__":
    main()

"""Postgres connection settings shared by the CLI tools and the async pool.

Listing timestamps are TIMESTAMPTZ; every session runs in UTC so `created_at`/`updated_at` render
the same regardless of the server's default zone.
"""

from __future__ import annotations

import os

import psycopg

# libpq startup option, applied before the first statement of every session.
UTC_SESSION_OPTIONS = "-c TimeZone=UTC"


def require_database_url() -> str:
    """Return `DATABASE_URL` or raise a clear error when it is unset."""

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is required (set it in .env or environment)")
    return database_url


def connect_utc(database_url: str, *, autocommit: bool = False) -> psycopg.Connection:
    """Open a sync connection for migrations and seeding."""

    return psycopg.connect(database_url, autocommit=autocommit, options=UTC_SESSION_OPTIONS)

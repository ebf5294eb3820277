"""Apply the listings schema migrations.

Migrations are plain `.sql` files in `src/db/migrations/`, applied in filename order. Applied
filenames are recorded in `schema_migrations` so re-running is a no-op.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import LiteralString, cast

import psycopg
from dotenv import load_dotenv

from src.config.logging import configure_logging
from src.db.connection import connect_utc, require_database_url

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

_CREATE_SCHEMA_MIGRATIONS = """
CREATE TABLE IF NOT EXISTS schema_migrations
(
    filename   TEXT PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_DROP_ALL = """
DROP TABLE IF EXISTS listings;
DROP TABLE IF EXISTS schema_migrations;
"""


def list_migration_files(directory: Path = MIGRATIONS_DIR) -> list[Path]:
    """Return the `.sql` migrations in apply order."""

    if not directory.exists():
        raise RuntimeError(f"Migrations directory does not exist: {directory}")

    files = sorted(p for p in directory.iterdir() if p.is_file() and p.suffix == ".sql")
    if not files:
        raise RuntimeError(f"No .sql migration files found in {directory}")
    return files


def _applied(conn: psycopg.Connection) -> set[str]:
    rows = conn.execute("SELECT filename FROM schema_migrations", prepare=False).fetchall()
    return {r[0] for r in rows}


def _apply(conn: psycopg.Connection, path: Path) -> None:
    with conn.transaction():
        conn.execute(cast(LiteralString, path.read_text(encoding="utf-8")), prepare=False)
        conn.execute(
            "INSERT INTO schema_migrations(filename) VALUES (%s)",
            (path.name,),
            prepare=False,
        )
    logger.info("applied migration %s", path.name)


def migrate(*, recreate: bool) -> int:
    """Apply pending migrations to `DATABASE_URL`; return how many were applied."""

    load_dotenv(".env")
    database_url = require_database_url()
    files = list_migration_files()

    applied_now = 0
    with connect_utc(database_url) as conn:
        if recreate:
            logger.warning("dropping listings and schema_migrations")
            conn.execute(_DROP_ALL, prepare=False)

        conn.execute(_CREATE_SCHEMA_MIGRATIONS, prepare=False)
        done = _applied(conn)

        for path in files:
            if path.name in done:
                continue
            _apply(conn, path)
            applied_now += 1

    return applied_now


def main() -> None:
    """CLI entry point for applying migrations."""

    parser = argparse.ArgumentParser(description="Apply listings schema migrations to Postgres.")
    parser.add_argument(
        "--recreate",
        action="store_true",
        help="Drop the listings tables and re-apply all migrations (destructive).",
    )
    args = parser.parse_args()

    configure_logging()
    migrate(recreate=args.recreate)


if __name__ == "__main__":
    main()

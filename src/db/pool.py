"""Async Postgres connection pool used by the bot's search handlers."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from dotenv import load_dotenv
from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool

from src.db.connection import UTC_SESSION_OPTIONS, require_database_url

POOL_NAME = "listing-search"


def create_pool(
        database_url: str | None = None,
        *,
        min_size: int = 1,
        max_size: int | None = None,
        timeout: float = 30.0,
) -> AsyncConnectionPool:
    """Create an unopened async pool; call `await pool.open()` at startup.

    When `database_url` is omitted, `.env` is loaded and `DATABASE_URL` is used. Connections are
    health-checked on checkout because the bot idles for long stretches between messages.
    """

    if database_url is None:
        load_dotenv(".env")
        database_url = require_database_url()

    return AsyncConnectionPool(
        conninfo=database_url,
        kwargs={"options": UTC_SESSION_OPTIONS},
        min_size=min_size,
        max_size=max_size,
        timeout=timeout,
        name=POOL_NAME,
        open=False,
        check=AsyncConnectionPool.check_connection,
    )


@asynccontextmanager
async def get_conn(pool: AsyncConnectionPool) -> AsyncIterator[AsyncConnection]:
    """Borrow a pooled connection for one search (count query plus page query)."""

    async with pool.connection() as conn:
        yield conn

"""Safe DB query helpers.

These helpers are used by the search pipeline. They never interpolate user values into SQL; all
values are passed via bound parameters.
"""

from __future__ import annotations

from typing import Any, LiteralString, cast

from psycopg import AsyncConnection
from psycopg.rows import dict_row


async def fetch_scalar_int(conn: AsyncConnection, sql: str, params: tuple[Any, ...] = ()) -> int:
    """Execute a scalar query and return an `int`.

    Contract:
        - Returns `0` if the query yields no rows or the first column is NULL.
        - The query must be parameterized; all values are passed via `params`.
        - DB errors are not swallowed (caller decides how to handle them).
    """

    async with conn.cursor() as cur:
        await cur.execute(cast(LiteralString, sql), params)
        row = await cur.fetchone()

    if not row:
        return 0

    value = row[0]
    if value is None:
        return 0

    return int(value)


async def fetch_dict_rows(
        conn: AsyncConnection,
        sql: str,
        params: tuple[Any, ...] = (),
) -> list[dict[str, Any]]:
    """Execute a query and return all rows as column-name dictionaries.

    DB errors are not swallowed.
    """

    async with conn.cursor(row_factory=dict_row) as cur:
        await cur.execute(cast(LiteralString, sql), params)
        return await cur.fetchall()

"""Async Postgres connection pool (psycopg3).

Ledger reads and mutations borrow connections from a single `AsyncConnectionPool`. Every
connection handed out has its session timezone set to UTC.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool

from src.db.connection import SET_UTC_SQL


async def configure_session(conn: AsyncConnection) -> None:
    """Pin a fresh pooled connection to UTC.

    `SET` opens a transaction when autocommit is off; it is committed so the pool never receives a
    connection in INTRANS state.
    """

    async with conn.cursor() as cur:
        await cur.execute(SET_UTC_SQL, prepare=False)
    await conn.commit()


def create_pool(
        database_url: str,
        *,
        min_size: int = 1,
        max_size: int | None = None,
        timeout: float = 30.0,
) -> AsyncConnectionPool:
    """Create the (unopened) pool. Call `await pool.open()` at startup."""

    return AsyncConnectionPool(
        conninfo=database_url,
        min_size=min_size,
        max_size=max_size,
        timeout=timeout,
        open=False,
        configure=configure_session,
        check=AsyncConnectionPool.check_connection,
    )


@asynccontextmanager
async def get_conn(pool: AsyncConnectionPool) -> AsyncIterator[AsyncConnection]:
    """Borrow a connection; it is committed (or rolled back on error) when returned."""

    async with pool.connection() as conn:
        yield conn

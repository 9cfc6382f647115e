"""Synchronous Postgres connections for maintenance scripts (migrations).

The bot itself uses the async pool in `src.db.pool`; both pin the session timezone to UTC.
"""

from __future__ import annotations

import os

import psycopg

SET_UTC_SQL = "SET TIME ZONE 'UTC'"


def require_database_url() -> str:
    """Read `DATABASE_URL` from the environment or raise a clear error."""

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is required (set it in .env or environment)")
    return database_url


def connect_utc(database_url: str, *, autocommit: bool = False) -> psycopg.Connection:
    """Open a blocking connection with the session timezone locked to UTC."""

    conn = psycopg.connect(database_url, autocommit=autocommit)
    conn.execute(SET_UTC_SQL, prepare=False)
    if not autocommit:
        conn.commit()
    return conn

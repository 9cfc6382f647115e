"""Application composition root.

This module wires together configuration, the DB pool and the LLM client for the bot runtime.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from psycopg_pool import AsyncConnectionPool

from src.config.settings import Settings
from src.db.pool import create_pool
from src.intent.llm_parser import LLMConfig


@dataclass(frozen=True)
class App:
    """Shared application dependencies for handlers."""

    settings: Settings
    pool: AsyncConnectionPool
    llm_config: LLMConfig | None
    http_client: httpx.AsyncClient | None


def create_app(settings: Settings) -> App:
    """Create the application container.

    Note:
        The returned DB pool is not opened. Call `await app.pool.open()` at startup and
        `await close_app(app)` on shutdown.
    """

    pool = create_pool(settings.database_url, max_size=settings.db_pool_max_size)
    llm_config = settings.llm_config()
    http_client = httpx.AsyncClient() if llm_config is not None else None
    return App(settings=settings, pool=pool, llm_config=llm_config, http_client=http_client)


async def close_app(app: App) -> None:
    """Release the pool and the HTTP client."""

    if app.http_client is not None:
        await app.http_client.aclose()
    await app.pool.close()

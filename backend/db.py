"""
Database connection pool.

Only the page document storage talks to Postgres; it is handed the pool
created here. Without DATABASE_URL the pool is never created.
"""

from __future__ import annotations

import asyncpg

from backend.config import settings

pool: asyncpg.Pool | None = None


async def init_pool() -> asyncpg.Pool:
    """
    Initialize the connection pool.
    Called once at application startup.
    """
    global pool
    pool = await asyncpg.create_pool(
        dsn=settings.DATABASE_URL,
        min_size=1,
        max_size=10,
        command_timeout=60,
    )
    return pool


async def close_pool() -> None:
    """
    Close the connection pool.
    Called at application shutdown.
    """
    global pool
    if pool is not None:
        await pool.close()
        pool = None

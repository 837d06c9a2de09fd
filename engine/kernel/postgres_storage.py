"""
PostgresStorage adapter for the LiveCanvas document storage.

Implements the DocumentStorage protocol with asyncpg. One row per page
in page_documents, holding the saved (instrumentation-free) markup.
"""

from __future__ import annotations

import asyncpg

from engine.kernel.storage import DocumentStorage

SCHEMA = """
CREATE TABLE IF NOT EXISTS page_documents (
    page_id TEXT PRIMARY KEY,
    document TEXT NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
)
"""


class PostgresStorage(DocumentStorage):
    """Postgres-based storage for page documents."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def ensure_schema(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(SCHEMA)

    async def get(self, page_id: str) -> str | None:
        """Fetch the document for a page. Returns None if not found."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT document FROM page_documents WHERE page_id = $1",
                page_id,
            )
            return row["document"] if row else None

    async def put(self, page_id: str, document: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO page_documents (page_id, document, updated_at)
                VALUES ($1, $2, now())
                ON CONFLICT (page_id)
                DO UPDATE SET document = EXCLUDED.document, updated_at = now()
                """,
                page_id,
                document,
            )

    async def delete(self, page_id: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute("DELETE FROM page_documents WHERE page_id = $1", page_id)

    async def close(self) -> None:
        """Close the connection pool."""
        await self.pool.close()

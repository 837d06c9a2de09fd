"""
LiveCanvas FastAPI application.

Entry point for the editing server.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend import db
from backend.config import settings
from backend.routes import sessions as session_routes
from backend.routes import ws as ws_routes
from backend.services.component_store import HttpComponentStore, MemoryComponentStore
from backend.services.session_store import session_store
from engine.kernel.postgres_storage import PostgresStorage
from engine.kernel.storage import MemoryStorage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Initialize database pool and document storage (memory without DATABASE_URL)
    - Connect the component library
    - Close clients and the pool on shutdown
    """
    # Startup
    if settings.DATABASE_URL:
        storage = PostgresStorage(await db.init_pool())
        await storage.ensure_schema()
        logger.info("Database pool initialized")
    else:
        storage = MemoryStorage()
        logger.info("No DATABASE_URL, documents kept in memory")

    if settings.COMPONENT_SERVICE_URL:
        components = HttpComponentStore(settings.COMPONENT_SERVICE_URL, timeout=settings.SERVICE_TIMEOUT_SECONDS)
    else:
        components = MemoryComponentStore()

    session_store.configure(storage=storage, components=components, max_history=settings.MAX_HISTORY)

    yield

    # Shutdown
    await components.close()
    await ws_routes.content_resolver.close()
    await db.close_pool()
    logger.info("Shutdown complete")


app = FastAPI(
    title="LiveCanvas",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

# Register routes
app.include_router(session_routes.router)
app.include_router(ws_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok", "sessions": len(session_store)}

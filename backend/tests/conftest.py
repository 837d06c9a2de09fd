"""
Pytest configuration and fixtures for LiveCanvas backend tests.
"""

from __future__ import annotations

import os

# Set test environment variables before importing config
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("USE_MOCK_GENERATOR", "true")
os.environ.setdefault("ENTRIES_DEBOUNCE_MS", "0")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from backend.main import app  # noqa: E402
from backend.services.component_store import MemoryComponentStore  # noqa: E402
from backend.services.session_store import session_store  # noqa: E402
from engine.kernel.storage import MemoryStorage  # noqa: E402

PAGE = """<!DOCTYPE html>
<html lang="en">
<head><title>Acme</title></head>
<body>
<header class="site-header"><nav><a href="/">Home</a><a href="/about">About</a><a href="/contact">Contact</a></nav></header>
<section id="hero"><h1>Hello</h1><p>Intro text</p></section>
<section id="features"><h2>Features</h2></section>
<footer><p>© 2024 Acme. All rights reserved.</p></footer>
</body>
</html>
"""


@pytest.fixture
def page() -> str:
    return PAGE


@pytest.fixture(autouse=True)
def fresh_store():
    """Every test starts with empty in-memory storage and no open sessions."""
    storage = MemoryStorage()
    components = MemoryComponentStore()
    session_store.configure(storage=storage, components=components)
    session_store._sessions.clear()
    session_store._locks.clear()
    yield session_store
    session_store._sessions.clear()
    session_store._locks.clear()


@pytest_asyncio.fixture
async def async_client():
    """HTTP client bound to the app (the lifespan does not run)."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def client():
    """Return a synchronous TestClient for WS testing."""
    return TestClient(app)

"""Tests for the open session registry."""

from __future__ import annotations

import pytest

from backend.services.component_store import MemoryComponentStore
from backend.services.session_store import SessionNotFound, SessionStore
from engine.kernel.storage import DocumentNotFound, MemoryStorage
from engine.kernel.types import GlobalComponent, PageComponentSettings

HEADER = GlobalComponent(id="h1", html="<header>Global</header>", position="header", name="Header", is_default=True)


@pytest.fixture
def store() -> SessionStore:
    components = MemoryComponentStore()
    components.components["site1"] = [HEADER]
    return SessionStore(storage=MemoryStorage(), components=components, max_history=5)


class TestSessionStore:
    async def test_open_document(self, store, page):
        session = await store.open(document=page)
        assert session.session_id in store
        assert len(store) == 1
        assert store.get(session.session_id) is session
        assert session.pipeline.history.limit == 5

    async def test_open_stored_page(self, store, page):
        await store.storage.put("p1", page)
        session = await store.open(page_id="p1")
        assert session.page_id == "p1"
        assert 'id="hero"' in session.document

    async def test_open_missing_page(self, store):
        with pytest.raises(DocumentNotFound):
            await store.open(page_id="missing")

    async def test_open_requires_something(self, store):
        with pytest.raises(ValueError):
            await store.open()

    async def test_site_components_loaded(self, store, page):
        session = await store.open(document=page, site_id="site1")
        assert session.components == [HEADER]
        assert session.render_realm().count("<header") == 1

    async def test_page_settings(self, store, page):
        session = await store.open(document=page, site_id="site1", page_settings=PageComponentSettings(hide_header=True))
        assert "Global" not in session.render_realm(design_mode=False)

    async def test_save_strips_globals(self, store, page):
        session = await store.open(page_id="p1", document=page, site_id="site1")
        saved = await store.save(session.session_id)
        assert "site-header" not in saved
        assert await store.storage.get("p1") == saved

    async def test_save_without_page_id_does_not_store(self, store, page):
        session = await store.open(document=page)
        await store.save(session.session_id)
        assert store.storage.documents == {}

    async def test_close(self, store, page):
        session = await store.open(document=page)
        lock = store.lock(session.session_id)
        assert store.lock(session.session_id) is lock
        store.close(session.session_id)
        assert session.session_id not in store
        with pytest.raises(SessionNotFound):
            store.get(session.session_id)

    async def test_configure(self, store):
        storage = MemoryStorage()
        store.configure(storage=storage, max_history=9)
        assert store.storage is storage
        assert store.max_history == 9
        assert isinstance(store.components, MemoryComponentStore)

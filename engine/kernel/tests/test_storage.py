"""Tests for the in-memory document storage."""

from __future__ import annotations

import pytest

from engine.kernel.storage import DocumentNotFound, DocumentStorage, MemoryStorage


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


class TestMemoryStorage:
    async def test_put_get(self, storage):
        await storage.put("p1", "<body>x</body>")
        assert await storage.get("p1") == "<body>x</body>"
        assert await storage.get("p2") is None

    async def test_require(self, storage):
        await storage.put("p1", "<body>x</body>")
        assert await storage.require("p1") == "<body>x</body>"
        with pytest.raises(DocumentNotFound) as excinfo:
            await storage.require("missing")
        assert excinfo.value.page_id == "missing"

    async def test_delete(self, storage):
        await storage.put("p1", "<body>x</body>")
        await storage.delete("p1")
        await storage.delete("p1")
        assert storage.documents == {}

    async def test_close(self, storage):
        assert await storage.close() is None


class TestInterface:
    async def test_base_is_abstract(self):
        with pytest.raises(NotImplementedError):
            await DocumentStorage().get("p1")

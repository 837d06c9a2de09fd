"""
LiveCanvas Kernel — Document Storage

Where persisted page documents live between sessions. The kernel only
needs get/put/delete of one markup string per page; what a page is and
who may edit it is decided outside.
"""

from __future__ import annotations


class DocumentNotFound(Exception):
    """No document stored for this page."""

    def __init__(self, page_id: str) -> None:
        super().__init__(f"Document not found: {page_id}")
        self.page_id = page_id


class DocumentStorage:
    """
    Abstract storage interface.
    Implement with Postgres for production, or in-memory for tests.
    """

    async def get(self, page_id: str) -> str | None:
        """Fetch the document for a page. Returns None if not found."""
        raise NotImplementedError

    async def put(self, page_id: str, document: str) -> None:
        """Write the document for a page."""
        raise NotImplementedError

    async def delete(self, page_id: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None

    async def require(self, page_id: str) -> str:
        document = await self.get(page_id)
        if document is None:
            raise DocumentNotFound(page_id)
        return document


class MemoryStorage(DocumentStorage):
    """In-memory storage for testing."""

    def __init__(self) -> None:
        self.documents: dict[str, str] = {}

    async def get(self, page_id: str) -> str | None:
        return self.documents.get(page_id)

    async def put(self, page_id: str, document: str) -> None:
        self.documents[page_id] = document

    async def delete(self, page_id: str) -> None:
        self.documents.pop(page_id, None)

"""
Live editing sessions.

One EditorSession per open page, addressed by session id. Every mutation
of a session runs under that session's asyncio.Lock so a realm message,
a REST edit and a generation apply never interleave.
"""

from __future__ import annotations

import asyncio
import logging

from backend.services.component_store import ComponentStore, MemoryComponentStore
from engine.kernel import session as kernel_session
from engine.kernel.session import EditorSession
from engine.kernel.storage import DocumentStorage, MemoryStorage
from engine.kernel.types import MAX_HISTORY, GlobalComponent, PageComponentSettings

logger = logging.getLogger(__name__)


class SessionNotFound(Exception):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SessionStore:
    """Open sessions plus the storage and component library they load from."""

    def __init__(
        self,
        storage: DocumentStorage | None = None,
        components: ComponentStore | None = None,
        max_history: int = MAX_HISTORY,
    ) -> None:
        self.storage = storage or MemoryStorage()
        self.components = components or MemoryComponentStore()
        self.max_history = max_history
        self._sessions: dict[str, EditorSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def configure(
        self,
        storage: DocumentStorage | None = None,
        components: ComponentStore | None = None,
        max_history: int | None = None,
    ) -> None:
        """Swap backends at startup (lifespan)."""
        if storage is not None:
            self.storage = storage
        if components is not None:
            self.components = components
        if max_history is not None:
            self.max_history = max_history

    def lock(self, session_id: str) -> asyncio.Lock:
        """Per-session lock for single-instance serialization."""
        if session_id not in self._locks:
            self._locks[session_id] = asyncio.Lock()
        return self._locks[session_id]

    async def open(
        self,
        page_id: str | None = None,
        site_id: str | None = None,
        document: str | None = None,
        page_settings: PageComponentSettings | None = None,
    ) -> EditorSession:
        """
        Start a session on a page.

        Raises:
            DocumentNotFound: no document given and none stored for page_id
            ComponentServiceError: the site's components could not be loaded
        """
        if document is None:
            if page_id is None:
                raise ValueError("page_id or document is required")
            document = await self.storage.require(page_id)

        components: list[GlobalComponent] = []
        if site_id:
            components = await self.components.for_site(site_id)

        session = kernel_session.load(
            document,
            page_id=page_id,
            site_id=site_id,
            components=components,
            page_settings=page_settings,
            max_history=self.max_history,
        )
        self._sessions[session.session_id] = session
        logger.info(
            "session %s opened: page=%s site=%s components=%d",
            session.session_id,
            page_id,
            site_id,
            len(components),
        )
        return session

    def get(self, session_id: str) -> EditorSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    async def save(self, session_id: str) -> str:
        """Persist the session's document. Returns what was stored."""
        session = self.get(session_id)
        document = kernel_session.save(session)
        if session.page_id:
            await self.storage.put(session.page_id, document)
            logger.info("session %s saved page %s", session_id, session.page_id)
        return document

    def close(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._locks.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


# Singleton instance, configured by the app lifespan
session_store = SessionStore()

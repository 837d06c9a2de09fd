"""
Trailing-edge debounce for async work.

Content placeholders are re-resolved after edits, but a burst of edits
(typing, dragging) should trigger one resolution, after the burst.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """Runs the most recently scheduled callback once no new call arrived for delay_ms."""

    def __init__(self, delay_ms: int):
        self.delay = delay_ms / 1000
        self._task: asyncio.Task | None = None

    def schedule(self, callback: Callable[[], Awaitable[None]]) -> asyncio.Task:
        self.cancel()
        self._task = asyncio.create_task(self._run(callback))
        return self._task

    async def _run(self, callback: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(self.delay)
        try:
            await callback()
        except Exception:
            logger.exception("debounced callback failed")

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    async def flush(self) -> None:
        """Wait for the scheduled callback, if any."""
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

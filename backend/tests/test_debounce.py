"""Tests for the trailing-edge debouncer."""

from __future__ import annotations

import asyncio

from backend.services.debounce import Debouncer


class TestDebouncer:
    async def test_burst_runs_once(self):
        calls = []

        async def callback():
            calls.append(len(calls))

        debouncer = Debouncer(20)
        for _ in range(5):
            debouncer.schedule(callback)
            await asyncio.sleep(0)
        assert debouncer.pending

        await debouncer.flush()
        assert calls == [0]
        assert not debouncer.pending

    async def test_cancel(self):
        calls = []

        async def callback():
            calls.append(1)

        debouncer = Debouncer(20)
        debouncer.schedule(callback)
        debouncer.cancel()
        await asyncio.sleep(0.05)
        assert calls == []
        await debouncer.flush()

    async def test_failure_is_logged_not_raised(self, caplog):
        async def callback():
            raise RuntimeError("boom")

        debouncer = Debouncer(0)
        debouncer.schedule(callback)
        await debouncer.flush()
        assert "debounced callback failed" in caplog.text

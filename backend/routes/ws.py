"""
WebSocket endpoint for a live editing session.

Accepts connections at /ws/session/{session_id}. The editor chrome relays
the realm's postMessage traffic through here and drives generation.

Protocol:
  Client → Server:  {"type": "realm", "message": <realm message>}
                    {"type": "select", "address": "..."}
                    {"type": "context-action", "action": "...", "address": "..."}
                    {"type": "undo"} | {"type": "redo"}
                    {"type": "generate", "prompt": "...", "generation_id": "..."}
                    {"type": "generation.cancel"}
                    {"type": "generation.apply"}
  Server → Client:  {"type": "realm.message", "message": <controller message>}
                    notices: session.ready, document.updated, mutation.noop,
                    selection.changed, selection.cleared, hover.changed,
                    component.fields, history.changed,
                    context-menu.open, channel.error, generation.*, patch.applied
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from backend.config import settings
from backend.services.content_resolver import ContentResolver
from backend.services.debounce import Debouncer
from backend.services.generation import FailureTracker, PatchGeneration, default_source
from backend.services.session_store import SessionNotFound, session_store
from engine.kernel.channel import (
    CONTEXT_ACTIONS,
    ChannelOutcome,
    Deselect,
    RealmBridge,
    RenderDocument,
    SelectElement,
    mutation_notice,
)
from engine.kernel.entries import has_placeholders
from engine.kernel.session import EditorSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])

content_resolver = ContentResolver(settings.CONTENT_SERVICE_URL, timeout=settings.SERVICE_TIMEOUT_SECONDS)


async def _send(websocket: WebSocket, payload: dict[str, Any]) -> None:
    await websocket.send_text(json.dumps(payload))


async def _send_realm(websocket: WebSocket, payloads: list[dict[str, Any]]) -> None:
    for payload in payloads:
        await _send(websocket, {"type": "realm.message", "message": payload})


async def _send_outcome(websocket: WebSocket, outcome: ChannelOutcome) -> None:
    await _send_realm(websocket, outcome.realm_payloads())
    for notice in outcome.notices:
        await _send(websocket, notice)


async def _render(websocket: WebSocket, session: EditorSession) -> None:
    """Replace the realm document and restore the highlight."""
    payloads = [RenderDocument(html=session.render_realm()).model_dump()]
    if session.selection is not None:
        payloads.append(SelectElement(selector=session.selection.address).model_dump())
    await _send_realm(websocket, payloads)


async def _send_highlight(websocket: WebSocket, session: EditorSession) -> None:
    """Move the realm highlight to the current selection, then notify."""
    if session.selection is not None:
        await _send_realm(websocket, [SelectElement(selector=session.selection.address).model_dump()])
    else:
        await _send_realm(websocket, [Deselect().model_dump()])
    await _send(websocket, session.selection_notice())


@router.websocket("/ws/session/{session_id}")
async def session_websocket(websocket: WebSocket, session_id: str) -> None:
    await websocket.accept()
    try:
        session = session_store.get(session_id)
    except SessionNotFound:
        logger.warning("ws: unknown session %s", session_id)
        await _send(websocket, {"type": "session.error", "error": "Session not found"})
        await websocket.close(code=4404)
        return

    logger.info("WebSocket accepted: session_id=%s", session_id)
    lock = session_store.lock(session_id)
    bridge = RealmBridge(session)
    tracker = FailureTracker()
    source = default_source()
    debouncer = Debouncer(settings.ENTRIES_DEBOUNCE_MS)
    generation_task: asyncio.Task | None = None

    async def resolve_entries() -> None:
        if not has_placeholders(session.document):
            return
        resolved = await content_resolver.resolve(session.site_id, session.document)
        if resolved == session.resolved_entries:
            return
        session.resolved_entries = resolved
        await _render(websocket, session)

    async def run_generation(prompt: str, generation_id: str | None) -> None:
        generation = PatchGeneration(source, tracker)
        try:
            async for notice in generation.run(session, prompt, generation_id):
                await _send(websocket, notice)
        except (WebSocketDisconnect, RuntimeError):
            logger.info("ws: generation for session %s outlived its connection", session_id)

    await _send(websocket, {"type": "session.ready", "session": session.to_dict()})
    await _render(websocket, session)
    debouncer.schedule(resolve_entries)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("ws: malformed message from client: %r", raw[:200])
                continue
            if not isinstance(msg, dict):
                logger.warning("ws: non-object message from client: %r", raw[:200])
                continue

            msg_type = msg.get("type")

            # ── realm relay ──────────────────────────────────────────
            if msg_type == "realm":
                async with lock:
                    outcome = bridge.handle(msg.get("message") or {})
                await _send_outcome(websocket, outcome)
                if outcome.document_changed:
                    debouncer.schedule(resolve_entries)
                continue

            # ── selection ────────────────────────────────────────────
            if msg_type == "select":
                async with lock:
                    address = msg.get("address")
                    if address:
                        session.select(address)
                    else:
                        session.clear_selection()
                await _send_highlight(websocket, session)
                continue

            # ── context menu ─────────────────────────────────────────
            if msg_type == "context-action":
                action = msg.get("action")
                address = msg.get("address") or ""
                if action not in CONTEXT_ACTIONS:
                    await _send(websocket, {"type": "channel.error", "error": f"unknown context action {action!r}"})
                    continue
                if action == "save-component":
                    fields = session.extract_variables(address)
                    await _send(
                        websocket,
                        {"type": "component.fields", "address": address, "fields": [f.to_dict() for f in fields]},
                    )
                    continue
                if action == "select-parent":
                    async with lock:
                        if session.select(address) is not None:
                            session.select_parent()
                    await _send_highlight(websocket, session)
                    continue
                async with lock:
                    result = session.duplicate(address) if action == "duplicate" else session.delete(address)
                await _send(websocket, mutation_notice(result))
                if result.applied:
                    await _render(websocket, session)
                    debouncer.schedule(resolve_entries)
                continue

            # ── history ──────────────────────────────────────────────
            if msg_type in ("undo", "redo"):
                async with lock:
                    changed = session.undo() if msg_type == "undo" else session.redo()
                if changed:
                    await _render(websocket, session)
                    debouncer.schedule(resolve_entries)
                await _send(
                    websocket,
                    {
                        "type": "history.changed",
                        "changed": changed,
                        "can_undo": session.pipeline.can_undo,
                        "can_redo": session.pipeline.can_redo,
                    },
                )
                continue

            # ── generation ───────────────────────────────────────────
            if msg_type == "generate":
                prompt = msg.get("prompt", "")
                if not prompt:
                    await _send(websocket, {"type": "generation.failed", "error": "prompt is required", "retry": False})
                    continue
                if generation_task is not None and not generation_task.done():
                    generation_task.cancel()
                generation_task = asyncio.create_task(run_generation(prompt, msg.get("generation_id")))
                continue

            if msg_type == "generation.cancel":
                if generation_task is not None and not generation_task.done():
                    generation_task.cancel()
                    logger.info("ws: generation cancelled for session %s", session_id)
                session.pending_patch = None
                await _send(websocket, {"type": "generation.cancelled"})
                continue

            if msg_type == "generation.apply":
                async with lock:
                    outcome = session.apply_pending()
                if outcome is None:
                    await _send(websocket, {"type": "mutation.noop", "reason": "no_pending_patch", "address": None})
                    continue
                await _send(websocket, {**mutation_notice(outcome.result), **outcome.to_dict(), "type": "patch.applied"})
                if outcome.result.applied:
                    await _render(websocket, session)
                    debouncer.schedule(resolve_entries)
                continue

            logger.warning("ws: unknown message type %r", msg_type)
            await _send(websocket, {"type": "channel.error", "error": f"unknown message type {msg_type!r}"})

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected: session_id=%s", session_id)
    finally:
        debouncer.cancel()
        if generation_task is not None and not generation_task.done():
            generation_task.cancel()

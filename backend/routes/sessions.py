"""Editing session routes — open, inspect, edit, generate-apply, save."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import HTMLResponse

from backend.models.session import (
    EditRequest,
    InsertComponentRequest,
    LayerDropRequest,
    MoveRequest,
    MutationResponse,
    OpenSessionRequest,
    PatchRequest,
    PatchResponse,
    PromoteRequest,
    ReorderRequest,
    SaveResponse,
    SelectRequest,
    SessionResponse,
)
from backend.services.component_store import ComponentServiceError
from backend.services.session_store import SessionNotFound, session_store
from engine.kernel.classifier import generate_component_name
from engine.kernel.patch import PatchParseError, parse_patch
from engine.kernel.pipeline import MutationResult
from engine.kernel.session import EditorSession
from engine.kernel.storage import DocumentNotFound
from engine.kernel.types import GlobalComponent, PageComponentSettings, VariableField

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def _session(session_id: str) -> EditorSession:
    try:
        return session_store.get(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found.")


@router.post("", status_code=201)
async def open_session(req: OpenSessionRequest) -> SessionResponse:
    """Start editing a stored page, or a document sent along."""
    if req.page_id is None and req.document is None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="page_id or document is required.")
    settings = PageComponentSettings(
        header_id=req.header_id,
        footer_id=req.footer_id,
        hide_header=req.hide_header,
        hide_footer=req.hide_footer,
    )
    try:
        session = await session_store.open(
            page_id=req.page_id,
            site_id=req.site_id,
            document=req.document,
            page_settings=settings,
        )
    except DocumentNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found.")
    except ComponentServiceError:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Component library unavailable.")
    return SessionResponse.from_session(session)


@router.get("/{session_id}", status_code=200)
async def get_session(session_id: str) -> SessionResponse:
    return SessionResponse.from_session(_session(session_id))


@router.delete("/{session_id}", status_code=204)
async def close_session(session_id: str) -> None:
    _session(session_id)
    session_store.close(session_id)


@router.post("/{session_id}/save", status_code=200)
async def save_session(session_id: str) -> SaveResponse:
    session = _session(session_id)
    async with session_store.lock(session_id):
        document = await session_store.save(session_id)
    return SaveResponse(page_id=session.page_id, document=document)


# ── views ───────────────────────────────────────────────────────────────────


@router.get("/{session_id}/render", response_class=HTMLResponse)
async def render_session(session_id: str, design: bool = True) -> HTMLResponse:
    """The realm document: globals, resolved content and (design mode) instrumentation."""
    return HTMLResponse(_session(session_id).render_realm(design_mode=design))


@router.get("/{session_id}/layers", status_code=200)
async def get_layers(session_id: str) -> list[dict[str, Any]]:
    return [layer.to_dict() for layer in _session(session_id).layers()]


@router.get("/{session_id}/components", status_code=200)
async def get_components(session_id: str) -> dict[str, Any]:
    """Detected inline header/footer plus the globals this page renders."""
    session = _session(session_id)
    detected = session.detect_components()
    resolved = session.resolved_components()
    return {
        "detected": {position: c.to_dict() if c else None for position, c in detected.items()},
        "header": resolved.header.to_record() if resolved.header else None,
        "footer": resolved.footer.to_record() if resolved.footer else None,
        "offers": [offer.to_dict() for offer in session.offers],
    }


@router.get("/{session_id}/variables", status_code=200)
async def get_variables(session_id: str, address: str) -> list[dict[str, Any]]:
    return [field.to_dict() for field in _session(session_id).extract_variables(address)]


@router.get("/{session_id}/components/template", status_code=200)
async def get_component_template(session_id: str, address: str) -> dict[str, Any]:
    """The element at address as a mustache template, for saving to the library."""
    found = _session(session_id).component_template(address)
    if found is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Element not found.")
    template, fields = found
    return {"template": template, "fields": [f.to_dict() for f in fields]}


@router.post("/{session_id}/components/insert", status_code=200)
async def insert_component(session_id: str, req: InsertComponentRequest) -> MutationResponse:
    session = _session(session_id)
    fields = [VariableField(**f.model_dump()) for f in req.fields]
    async with session_store.lock(session_id):
        result = session.insert_component(req.address, req.template, fields, req.values, req.place)
    return MutationResponse.from_result(result, session)


@router.get("/{session_id}/placeholders", status_code=200)
async def get_placeholders(session_id: str) -> list[dict[str, Any]]:
    return [placeholder.to_dict() for placeholder in _session(session_id).placeholders()]


# ── selection ───────────────────────────────────────────────────────────────


@router.post("/{session_id}/select", status_code=200)
async def select(session_id: str, req: SelectRequest) -> dict[str, Any]:
    session = _session(session_id)
    async with session_store.lock(session_id):
        if req.address is None:
            session.clear_selection()
        else:
            session.select(req.address)
    return session.selection_notice()


# ── edits ───────────────────────────────────────────────────────────────────


def _apply_edit(session: EditorSession, req: EditRequest) -> MutationResult:
    address = req.address
    if req.action == "set_attribute":
        if not req.name:
            raise HTTPException(status_code=422, detail="name is required.")
        return session.set_attribute(address, req.name, req.value or "")
    if req.action == "remove_attribute":
        if not req.name:
            raise HTTPException(status_code=422, detail="name is required.")
        return session.remove_attribute(address, req.name)
    if req.action == "set_classes":
        return session.set_classes(address, req.value or "")
    if req.action == "toggle_class":
        if not req.value:
            raise HTTPException(status_code=422, detail="value is required.")
        return session.toggle_class(address, req.value)
    if req.action == "set_text":
        return session.set_text(address, req.value or "")
    if req.action == "set_inner_html":
        return session.commit_text(address, req.markup or "")
    if req.action == "swap_image":
        if not req.src:
            raise HTTPException(status_code=422, detail="src is required.")
        return session.swap_image(address, req.src, req.alt)
    if req.action == "insert":
        return session.insert(address, req.markup or "", req.place)
    if req.action == "replace":
        return session.replace_element(address, req.markup or "")
    if req.action == "delete":
        return session.delete(address)
    return session.duplicate(address)


@router.post("/{session_id}/edits", status_code=200)
async def edit(session_id: str, req: EditRequest) -> MutationResponse:
    session = _session(session_id)
    async with session_store.lock(session_id):
        result = _apply_edit(session, req)
    return MutationResponse.from_result(result, session)


@router.post("/{session_id}/move", status_code=200)
async def move(session_id: str, req: MoveRequest) -> MutationResponse:
    session = _session(session_id)
    async with session_store.lock(session_id):
        result = session.move(req.source, req.parent, req.index)
    return MutationResponse.from_result(result, session)


@router.post("/{session_id}/reorder", status_code=200)
async def reorder(session_id: str, req: ReorderRequest) -> MutationResponse:
    session = _session(session_id)
    async with session_store.lock(session_id):
        result = session.reorder_siblings(req.parent, req.from_index, req.to_index)
    return MutationResponse.from_result(result, session)


@router.post("/{session_id}/layers/drop", status_code=200)
async def drop_layer(session_id: str, req: LayerDropRequest) -> MutationResponse:
    session = _session(session_id)
    async with session_store.lock(session_id):
        result = session.drop_layer(req.active_id, req.over_id, req.expanded)
    return MutationResponse.from_result(result, session)


@router.post("/{session_id}/undo", status_code=200)
async def undo(session_id: str) -> SessionResponse:
    session = _session(session_id)
    async with session_store.lock(session_id):
        session.undo()
    return SessionResponse.from_session(session)


@router.post("/{session_id}/redo", status_code=200)
async def redo(session_id: str) -> SessionResponse:
    session = _session(session_id)
    async with session_store.lock(session_id):
        session.redo()
    return SessionResponse.from_session(session)


# ── generation & components ─────────────────────────────────────────────────


@router.post("/{session_id}/patches", status_code=200)
async def apply_patch(session_id: str, req: PatchRequest) -> PatchResponse:
    """Parse a completed generation buffer strictly and apply it."""
    session = _session(session_id)
    try:
        patch = parse_patch(req.text)
    except PatchParseError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    async with session_store.lock(session_id):
        outcome = session.apply_patch(patch)
    response = PatchResponse.from_result(outcome.result, session)
    response.region = outcome.region
    response.stripped = outcome.stripped
    response.offers = [offer.to_dict() for offer in outcome.offers]
    return response


@router.post("/{session_id}/components/promote", status_code=201)
async def promote_component(session_id: str, req: PromoteRequest) -> MutationResponse:
    """Save the inline header/footer as a global component and strip it from the page."""
    session = _session(session_id)
    async with session_store.lock(session_id):
        html = req.html
        if html is None:
            offer = next((o for o in session.offers if o.position == req.position), None)
            candidate = session.detect_components().get(req.position)
            html = offer.markup if offer else candidate.markup if candidate else None
        if not html:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No {req.position} on this page.")

        names = [c.name for c in session.components]
        component = GlobalComponent(
            id=uuid.uuid4().hex,
            html=html,
            position=req.position,
            name=req.name or generate_component_name(req.position, names),
            is_default=req.is_default,
        )
        if session.site_id:
            try:
                component = await session_store.components.create(session.site_id, component)
            except ComponentServiceError:
                raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Component library unavailable.")
        result = session.promote(component)
        logger.info("session %s promoted %s component %s", session_id, req.position, component.id)
    return MutationResponse.from_result(result, session)

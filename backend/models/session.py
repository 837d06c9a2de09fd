"""Editing session models for the REST API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from engine.kernel.pipeline import MutationResult
from engine.kernel.session import EditorSession


class OpenSessionRequest(BaseModel):
    """What the client sends to start editing a page."""

    model_config = {"extra": "forbid"}

    page_id: str | None = None
    site_id: str | None = None
    document: str | None = None  # edit this markup instead of the stored page
    header_id: str | None = None
    footer_id: str | None = None
    hide_header: bool = False
    hide_footer: bool = False


class SessionResponse(BaseModel):
    """Session state as the editor chrome needs it."""

    session_id: str
    page_id: str | None
    site_id: str | None
    document: str
    selection: dict[str, Any] | None
    hover_address: str | None
    can_undo: bool
    can_redo: bool
    offers: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_session(cls, session: EditorSession) -> SessionResponse:
        return cls(**session.to_dict())


class MutationResponse(BaseModel):
    """Outcome of one edit."""

    applied: bool
    reason: str | None
    address: str | None
    document: str
    can_undo: bool
    can_redo: bool
    selection: dict[str, Any] | None

    @classmethod
    def from_result(cls, result: MutationResult, session: EditorSession) -> MutationResponse:
        return cls(
            **result.to_dict(),
            document=session.document,
            can_undo=session.pipeline.can_undo,
            can_redo=session.pipeline.can_redo,
            selection=session.selection.to_dict() if session.selection else None,
        )


EditAction = Literal[
    "set_attribute",
    "remove_attribute",
    "set_classes",
    "toggle_class",
    "set_text",
    "set_inner_html",
    "swap_image",
    "insert",
    "replace",
    "delete",
    "duplicate",
]


class EditRequest(BaseModel):
    """A direct edit on one element."""

    model_config = {"extra": "forbid"}

    action: EditAction
    address: str = Field(min_length=1)
    name: str | None = None  # attribute name
    value: str | None = None  # attribute value / class / text
    markup: str | None = None
    place: Literal["before", "after", "prepend", "append"] = "after"
    src: str | None = None
    alt: str | None = None


class SelectRequest(BaseModel):
    model_config = {"extra": "forbid"}

    address: str | None = None


class MoveRequest(BaseModel):
    model_config = {"extra": "forbid"}

    source: str = Field(min_length=1)
    parent: str = Field(min_length=1)
    index: int


class ReorderRequest(BaseModel):
    model_config = {"extra": "forbid"}

    parent: str = Field(min_length=1)
    from_index: int
    to_index: int


class LayerDropRequest(BaseModel):
    model_config = {"extra": "forbid"}

    active_id: str
    over_id: str
    expanded: list[str] = Field(default_factory=list)


class PatchRequest(BaseModel):
    """A completed generation buffer to parse strictly and apply."""

    model_config = {"extra": "forbid"}

    text: str = Field(min_length=1)


class PatchResponse(MutationResponse):
    region: str = ""
    stripped: list[str] = Field(default_factory=list)
    offers: list[dict[str, Any]] = Field(default_factory=list)


class PromoteRequest(BaseModel):
    """Turn the page's inline header/footer into a site-wide component."""

    model_config = {"extra": "forbid"}

    position: Literal["header", "footer"]
    name: str | None = Field(default=None, max_length=100)
    html: str | None = None  # defaults to the detected inline element
    is_default: bool = True


class ComponentField(BaseModel):
    """One editable field of a saved component, as extract_variables reports it."""

    id: str
    name: str
    label: str
    type: str
    default_value: str
    selector: str
    attribute: str


class InsertComponentRequest(BaseModel):
    """Render a saved component template and insert it next to an element."""

    model_config = {"extra": "forbid"}

    address: str = Field(min_length=1)
    template: str = Field(min_length=1)
    fields: list[ComponentField] = Field(default_factory=list)
    values: dict[str, str] = Field(default_factory=dict)
    place: Literal["before", "after", "prepend", "append"] = "after"


class SaveResponse(BaseModel):
    page_id: str | None
    document: str

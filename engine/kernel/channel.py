"""
LiveCanvas Kernel — Sandboxed Rendering Channel

The realm (an isolated iframe running the instrumentation script from
realm.py) and the controller only ever exchange these tagged messages.

realm -> controller:
    element-selected   the user clicked an element (address + snapshot)
    element-hovered    hover moved (address or null); never mutates
    text-edited        an in-place text edit finished (address + innerHTML)
    delete-element     delete key / context menu delete on an element
    element-moved      drag inside the realm finished (whole document)
    section-reordered  section handle drag finished (whole document)
    context-menu       right click (position + element)

controller -> realm:
    select-element     highlight an element by address
    deselect           clear the highlight
    render             replace the realm document

Unknown or malformed messages are logged and answered with a
channel.error notice. They never raise into the session.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from engine.kernel.pipeline import MutationResult
from engine.kernel.types import ElementSnapshot, Rect

if TYPE_CHECKING:
    from engine.kernel.session import EditorSession

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class RectPayload(BaseModel):
    top: float = 0.0
    left: float = 0.0
    width: float = 0.0
    height: float = 0.0


class ElementPayload(BaseModel):
    """Element snapshot as the realm script sends it (camelCase keys)."""

    model_config = {"populate_by_name": True}

    tag_name: str = Field(alias="tagName")
    selector: str
    class_name: str = Field("", alias="className")
    text_content: str = Field("", alias="textContent")
    inner_html: str = Field("", alias="innerHTML")
    outer_html: str = Field("", alias="outerHTML")
    rect: RectPayload = Field(default_factory=RectPayload)
    path: list[str] = Field(default_factory=list)
    spacing: dict[str, float] | None = None

    def to_snapshot(self) -> ElementSnapshot:
        return ElementSnapshot(
            tag_name=self.tag_name,
            selector=self.selector,
            class_name=self.class_name,
            text_content=self.text_content,
            inner_html=self.inner_html,
            outer_html=self.outer_html,
            rect=Rect(**self.rect.model_dump()),
            path=list(self.path),
            spacing=self.spacing,
        )


# ---------------------------------------------------------------------------
# realm -> controller
# ---------------------------------------------------------------------------


class ElementSelected(BaseModel):
    type: Literal["element-selected"]
    element: ElementPayload


class ElementHovered(BaseModel):
    type: Literal["element-hovered"]
    selector: str | None = None


class TextEdited(BaseModel):
    model_config = {"populate_by_name": True}

    type: Literal["text-edited"]
    selector: str
    new_html: str = Field(alias="newHtml")


class DeleteElement(BaseModel):
    type: Literal["delete-element"]
    selector: str


class ElementMoved(BaseModel):
    type: Literal["element-moved"]
    html: str


class SectionReordered(BaseModel):
    type: Literal["section-reordered"]
    html: str


class ContextMenu(BaseModel):
    type: Literal["context-menu"]
    x: float = 0.0
    y: float = 0.0
    element: ElementPayload


RealmMessage = Annotated[
    Union[ElementSelected, ElementHovered, TextEdited, DeleteElement, ElementMoved, SectionReordered, ContextMenu],
    Field(discriminator="type"),
]

REALM_MESSAGE_TYPES: frozenset[str] = frozenset(
    {
        "element-selected",
        "element-hovered",
        "text-edited",
        "delete-element",
        "element-moved",
        "section-reordered",
        "context-menu",
    }
)

_realm_adapter: TypeAdapter[RealmMessage] = TypeAdapter(RealmMessage)


# ---------------------------------------------------------------------------
# controller -> realm
# ---------------------------------------------------------------------------


class SelectElement(BaseModel):
    type: Literal["select-element"] = "select-element"
    selector: str


class Deselect(BaseModel):
    type: Literal["deselect"] = "deselect"


class RenderDocument(BaseModel):
    type: Literal["render"] = "render"
    html: str


ControllerMessage = Annotated[Union[SelectElement, Deselect, RenderDocument], Field(discriminator="type")]

_controller_adapter: TypeAdapter[ControllerMessage] = TypeAdapter(ControllerMessage)


def parse_controller_message(raw: str | dict[str, Any]) -> ControllerMessage:
    """Validate a controller message (used by realm-side tooling and tests)."""
    if isinstance(raw, str):
        return _controller_adapter.validate_json(raw)
    return _controller_adapter.validate_python(raw)


CONTEXT_ACTIONS = ("duplicate", "delete", "select-parent", "save-component")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class ChannelError(Exception):
    """A message that is not a valid realm message."""


def parse_realm_message(raw: str | dict[str, Any]) -> RealmMessage:
    """
    Validate one realm message.

    Raises:
        ChannelError: undecodable JSON, unknown type or invalid fields
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ChannelError(f"undecodable message: {e.msg}") from e
    if not isinstance(raw, dict):
        raise ChannelError("message is not an object")

    message_type = raw.get("type")
    if message_type not in REALM_MESSAGE_TYPES:
        raise ChannelError(f"unknown message type {message_type!r}")
    try:
        return _realm_adapter.validate_python(raw)
    except ValidationError as e:
        raise ChannelError(f"invalid {message_type} message: {e.error_count()} error(s)") from e


# ---------------------------------------------------------------------------
# Bridge
# ---------------------------------------------------------------------------


@dataclass
class ChannelOutcome:
    """What one realm message led to."""

    to_realm: list[BaseModel] = field(default_factory=list)
    notices: list[dict[str, Any]] = field(default_factory=list)
    result: MutationResult | None = None

    @property
    def document_changed(self) -> bool:
        return self.result is not None and self.result.applied

    def realm_payloads(self) -> list[dict[str, Any]]:
        return [message.model_dump(by_alias=True) for message in self.to_realm]


def mutation_notice(result: MutationResult) -> dict[str, Any]:
    if result.applied:
        return {"type": "document.updated", "address": result.address}
    return {"type": "mutation.noop", "reason": result.reason, "address": result.address}


class RealmBridge:
    """Dispatches validated realm messages onto an EditorSession."""

    def __init__(self, session: EditorSession) -> None:
        self.session = session

    def handle(self, raw: str | dict[str, Any]) -> ChannelOutcome:
        try:
            message = parse_realm_message(raw)
        except ChannelError as e:
            logger.warning("RealmBridge: dropping message for session %s: %s", self.session.session_id, e)
            return ChannelOutcome(notices=[{"type": "channel.error", "error": str(e)}])
        return self.dispatch(message)

    def dispatch(self, message: RealmMessage) -> ChannelOutcome:
        if isinstance(message, ElementSelected):
            return self._select(message.element)
        if isinstance(message, ElementHovered):
            self.session.hover(message.selector)
            return ChannelOutcome(notices=[{"type": "hover.changed", "address": self.session.hover_address}])
        if isinstance(message, TextEdited):
            return self._mutated(self.session.commit_text(message.selector, message.new_html))
        if isinstance(message, DeleteElement):
            return self._mutated(self.session.delete(message.selector))
        if isinstance(message, (ElementMoved, SectionReordered)):
            return self._mutated(self.session.accept_realm_document(message.html))
        if isinstance(message, ContextMenu):
            outcome = self._select(message.element)
            if self.session.selection is not None:
                outcome.notices.append(
                    {
                        "type": "context-menu.open",
                        "x": message.x,
                        "y": message.y,
                        "address": self.session.selection.address,
                        "actions": list(CONTEXT_ACTIONS),
                    }
                )
            return outcome
        raise TypeError(f"Unhandled realm message: {type(message).__name__}")

    def _select(self, element: ElementPayload) -> ChannelOutcome:
        selection = self.session.select(element.selector, element.to_snapshot())
        if selection is None:
            return ChannelOutcome(
                to_realm=[Deselect()],
                notices=[{"type": "selection.cleared", "reason": "address_miss"}],
            )
        return ChannelOutcome(notices=[{"type": "selection.changed", "selection": selection.to_dict()}])

    def _mutated(self, result: MutationResult) -> ChannelOutcome:
        outcome = ChannelOutcome(result=result, notices=[mutation_notice(result)])
        if result.applied:
            outcome.to_realm.append(RenderDocument(html=self.session.render_realm()))
            if self.session.selection is not None:
                outcome.to_realm.append(SelectElement(selector=self.session.selection.address))
            outcome.notices.append(self.session.selection_notice())
        return outcome

"""
LiveCanvas Kernel — Shared Types

Data classes used across the selector resolver, mutation pipeline,
classifier, rendering channel and editor session.
These are the contracts that bind the kernel together.

The canonical document is always a plain markup string. Everything in
here either describes a place in that string (addresses, layers), a
change to it (patches), or markup that lives next to it (global
components, variable fields, content placeholders).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Tags, ids and classes with this prefix belong to the rendering realm.
# They are never addressed, never counted and never persisted.
INSTRUMENTATION_PREFIX = "lc-"

ROOT_ADDRESS = "body"
ADDRESS_SEPARATOR = " > "

DEFAULT_DOCTYPE = "html"
MAX_HISTORY = 50
TEXT_PREVIEW_LENGTH = 200
DETECTION_THRESHOLD = 50
LAYER_CLASS_LIMIT = 3

POSITIONS: tuple[str, ...] = ("header", "footer", "content")
GLOBAL_POSITIONS: tuple[str, ...] = ("header", "footer")

PATCH_OPERATIONS: set[str] = {"add", "modify", "replace_all", "delete"}
ADD_POSITIONS: set[str] = {"start", "end", "before", "after"}

LAYER_SKIP_TAGS: set[str] = {"script", "style", "meta", "link", "noscript"}

VARIABLE_TYPES: set[str] = {"text", "link", "image", "color", "number"}


# ---------------------------------------------------------------------------
# Noop reasons (MutationResult.reason)
# ---------------------------------------------------------------------------

ADDRESS_MISS = "address_miss"
ROOT_IMMUTABLE = "root_immutable"
INVALID_MOVE = "invalid_move"
UNCHANGED = "unchanged"
EMPTY_DOCUMENT = "empty_document"
NO_IMAGE = "no_image"


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


@dataclass
class Rect:
    top: float = 0.0
    left: float = 0.0
    width: float = 0.0
    height: float = 0.0


@dataclass
class ElementSnapshot:
    """What the editor knows about a selected element at selection time."""

    tag_name: str
    selector: str
    class_name: str = ""
    text_content: str = ""
    inner_html: str = ""
    outer_html: str = ""
    rect: Rect = field(default_factory=Rect)
    path: list[str] = field(default_factory=list)
    spacing: dict[str, float] | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SelectionState:
    address: str
    snapshot: ElementSnapshot

    def to_dict(self) -> dict[str, Any]:
        return {"address": self.address, "snapshot": self.snapshot.to_dict()}


# ---------------------------------------------------------------------------
# Layer tree
# ---------------------------------------------------------------------------


@dataclass
class LayerNode:
    id: str
    tag_name: str
    class_name: str
    selector: str
    depth: int
    index: int
    parent_selector: str | None = None
    children: list[LayerNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tag_name": self.tag_name,
            "class_name": self.class_name,
            "selector": self.selector,
            "depth": self.depth,
            "index": self.index,
            "parent_selector": self.parent_selector,
            "children": [child.to_dict() for child in self.children],
        }


# ---------------------------------------------------------------------------
# Patches
# ---------------------------------------------------------------------------


@dataclass
class Patch:
    """One generation result, already parsed from the framed stream."""

    operation: str
    markup: str = ""
    message: str = ""
    position: str = "end"
    target: str | None = None
    selector: str | None = None
    component_type: str | None = None
    component_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Global components
# ---------------------------------------------------------------------------


@dataclass
class GlobalComponent:
    id: str
    html: str
    position: str
    name: str = ""
    is_default: bool = False

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> GlobalComponent:
        """Build from a component library record ({id, html, position, isDefault})."""
        return cls(
            id=str(record["id"]),
            html=record.get("html", ""),
            position=record.get("position", "content"),
            name=record.get("name", ""),
            is_default=bool(record.get("isDefault", record.get("is_default", False))),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "html": self.html,
            "position": self.position,
            "isDefault": self.is_default,
        }


@dataclass
class PageComponentSettings:
    """Per-page override of the site's global header/footer."""

    header_id: str | None = None
    footer_id: str | None = None
    hide_header: bool = False
    hide_footer: bool = False


@dataclass
class ComponentCandidate:
    """An inline element the classifier believes is a header or footer."""

    position: str
    address: str
    markup: str
    confidence: int
    signals: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PromotionOffer:
    """Suggestion to turn a detected inline element into a global component."""

    position: str
    markup: str
    confidence: int
    suggested_name: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Variable fields & content placeholders
# ---------------------------------------------------------------------------


@dataclass
class VariableField:
    id: str
    name: str
    label: str
    type: str
    default_value: str
    selector: str
    attribute: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class EntriesPlaceholder:
    token: str
    content_type: str
    options: dict[str, Any] = field(default_factory=dict)
    template: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

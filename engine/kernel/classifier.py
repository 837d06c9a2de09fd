"""
LiveCanvas Kernel — Global Component Classifier

Decides whether an inline element of a page is acting as the site's
header or footer. Scoring is a sum of named, bounded signals so new
heuristics can be added (or re-weighted) without touching the scorer:

    tag                header/footer element or banner/contentinfo role   +40
    position           first/last top-level element                       +20
    keyword            class or id naming the role                        +15
    sub_elements       navigation links (header), copyright/links (footer) +15
    too_many_sections  holds more than two <section>s                     -20

The sum is clamped to 0..100; DETECTION_THRESHOLD (50) or more means
detected. Anything below is ambiguous and yields no candidate.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from bs4 import Tag

from engine.kernel.dom import content_root, element_children, fragment_root, parse
from engine.kernel.selector import address_of
from engine.kernel.types import DETECTION_THRESHOLD, GLOBAL_POSITIONS, LAYER_SKIP_TAGS, ComponentCandidate

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


@dataclass
class SignalContext:
    """Where the scored element sits among the content root's children."""

    index: int | None = None
    count: int = 0

    @property
    def is_first(self) -> bool:
        return self.index == 0

    @property
    def is_last(self) -> bool:
        return self.index is not None and self.count > 0 and self.index == self.count - 1


@dataclass(frozen=True)
class Signal:
    name: str
    weight: int
    test: Callable[[Tag, SignalContext], bool]


@dataclass
class Score:
    total: int
    contributions: dict[str, int] = field(default_factory=dict)

    @property
    def detected(self) -> bool:
        return self.total >= DETECTION_THRESHOLD


HEADER_KEYWORDS = (
    "header",
    "navbar",
    "nav-bar",
    "navigation",
    "main-nav",
    "top-nav",
    "top-bar",
    "topbar",
    "masthead",
)
FOOTER_KEYWORDS = (
    "footer",
    "site-info",
    "colophon",
    "bottom-bar",
)
_COPYRIGHT = re.compile(r"©|&copy;|\bcopyright\b|all rights reserved", re.IGNORECASE)


def _identity(node: Tag) -> str:
    return " ".join([*node.get("class", []), node.get("id", "") or ""]).lower()


def _is_header_tag(node: Tag, ctx: SignalContext) -> bool:
    return node.name == "header" or node.get("role") == "banner"


def _is_footer_tag(node: Tag, ctx: SignalContext) -> bool:
    return node.name == "footer" or node.get("role") == "contentinfo"


def _is_first(node: Tag, ctx: SignalContext) -> bool:
    return ctx.is_first


def _is_last(node: Tag, ctx: SignalContext) -> bool:
    return ctx.is_last


def _names_header(node: Tag, ctx: SignalContext) -> bool:
    identity = _identity(node)
    return any(keyword in identity for keyword in HEADER_KEYWORDS)


def _names_footer(node: Tag, ctx: SignalContext) -> bool:
    identity = _identity(node)
    return any(keyword in identity for keyword in FOOTER_KEYWORDS)


def _has_navigation(node: Tag, ctx: SignalContext) -> bool:
    nav = node if node.name == "nav" else node.find("nav")
    if nav is not None and len(nav.find_all("a")) >= 2:
        return True
    return len(node.find_all("a")) >= 3


def _has_footer_content(node: Tag, ctx: SignalContext) -> bool:
    if _COPYRIGHT.search(node.get_text(" ")):
        return True
    return any(len(ul.find_all("a")) >= 2 for ul in node.find_all("ul"))


def _too_many_sections(node: Tag, ctx: SignalContext) -> bool:
    return len(node.find_all("section")) > 2


HEADER_SIGNALS: tuple[Signal, ...] = (
    Signal("tag", 40, _is_header_tag),
    Signal("position", 20, _is_first),
    Signal("keyword", 15, _names_header),
    Signal("sub_elements", 15, _has_navigation),
    Signal("too_many_sections", -20, _too_many_sections),
)

FOOTER_SIGNALS: tuple[Signal, ...] = (
    Signal("tag", 40, _is_footer_tag),
    Signal("position", 20, _is_last),
    Signal("keyword", 15, _names_footer),
    Signal("sub_elements", 15, _has_footer_content),
    Signal("too_many_sections", -20, _too_many_sections),
)

SIGNALS: dict[str, tuple[Signal, ...]] = {"header": HEADER_SIGNALS, "footer": FOOTER_SIGNALS}


def score(node: Tag, signals: tuple[Signal, ...], context: SignalContext | None = None) -> Score:
    """Sum the signals that fire for node, clamped to 0..100."""
    context = context or SignalContext()
    contributions = {signal.name: signal.weight for signal in signals if signal.test(node, context)}
    total = max(0, min(100, sum(contributions.values())))
    return Score(total=total, contributions=contributions)


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


def _top_level(root: Tag) -> list[Tag]:
    return [child for child in element_children(root) if child.name not in LAYER_SKIP_TAGS]


def detect_components(document: str) -> dict[str, ComponentCandidate | None]:
    """
    Find the inline header and footer of a page, if any.

    Top-level elements are scored with their position; when none of them
    is detected the first nested <header>/<footer> is scored without it.
    An element never counts as both: the stronger position keeps it.
    """
    root = content_root(parse(document))
    children = _top_level(root)
    found: dict[str, ComponentCandidate | None] = {}

    for position in GLOBAL_POSITIONS:
        best: tuple[Tag, Score] | None = None
        for i, child in enumerate(children):
            result = score(child, SIGNALS[position], SignalContext(index=i, count=len(children)))
            if result.detected and (best is None or result.total > best[1].total):
                best = (child, result)

        if best is None:
            nested = root.find(position)
            if nested is not None and nested.parent is not root:
                result = score(nested, SIGNALS[position])
                if result.detected:
                    best = (nested, result)

        if best is None:
            found[position] = None
            continue
        node, result = best
        found[position] = ComponentCandidate(
            position=position,
            address=address_of(node, root),
            markup=str(node),
            confidence=result.total,
            signals=result.contributions,
        )

    header, footer = found["header"], found["footer"]
    if header is not None and footer is not None and header.address == footer.address:
        if footer.confidence > header.confidence:
            found["header"] = None
        else:
            found["footer"] = None

    for position, candidate in found.items():
        if candidate is not None:
            logger.debug("detect_components: %s at %r (%d)", position, candidate.address, candidate.confidence)
    return found


def detect_component_type(markup: str) -> str:
    """Classify a standalone fragment as "header", "footer" or "content"."""
    node = fragment_root(markup)
    if node is None:
        return "content"
    header = score(node, HEADER_SIGNALS)
    footer = score(node, FOOTER_SIGNALS)
    if header.detected and header.total > footer.total:
        return "header"
    if footer.detected and footer.total > header.total:
        return "footer"
    return "content"


def generate_component_name(position: str, existing_names: list[str]) -> str:
    """"Header", then "Header 1", "Header 2", ... until unused."""
    base = {"header": "Header", "footer": "Footer"}.get(position, "Section")
    name = base
    counter = 1
    while name in existing_names:
        name = f"{base} {counter}"
        counter += 1
    return name


HEADER_INTENT_KEYWORDS = ("header", "navigation", "navbar", "nav bar", "menu", "top bar")
FOOTER_INTENT_KEYWORDS = ("footer", "bottom of the page", "copyright", "imprint", "legal links")


def detect_prompt_intent(prompt: str) -> dict[str, bool]:
    """Does a generation prompt ask for a header and/or a footer?"""
    lowered = prompt.lower()
    return {
        "wants_header": any(keyword in lowered for keyword in HEADER_INTENT_KEYWORDS),
        "wants_footer": any(keyword in lowered for keyword in FOOTER_INTENT_KEYWORDS),
    }

"""
LiveCanvas Kernel — Global Components

Site-level header/footer markup lives outside the page document and is
injected only when a realm document is built. The canonical document of
a page never carries its own header/footer once the site has a global
one for that position; reconcile() enforces that after every generation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Tag

from engine.kernel.classifier import detect_components, generate_component_name
from engine.kernel.dom import content_root, is_instrumentation, parse, parse_fragment, prepend_child, serialize
from engine.kernel.selector import is_descendant, resolve_in
from engine.kernel.types import (
    GLOBAL_POSITIONS,
    ComponentCandidate,
    GlobalComponent,
    PageComponentSettings,
    PromotionOffer,
)

logger = logging.getLogger(__name__)

_ROLES = {"header": "banner", "footer": "contentinfo"}


@dataclass
class ResolvedComponents:
    """
    Globals to render on one page.

    header/footer are what the realm shows; taken lists the positions the
    site already covers with a global component (hidden or not), which is
    what decides stripping and promotion.
    """

    header: GlobalComponent | None = None
    footer: GlobalComponent | None = None
    taken: set[str] = field(default_factory=set)

    def for_position(self, position: str) -> GlobalComponent | None:
        return self.header if position == "header" else self.footer if position == "footer" else None


def resolve_page_components(
    components: Iterable[GlobalComponent],
    settings: PageComponentSettings | None = None,
) -> ResolvedComponents:
    """Apply the page's override/hide settings to the site's components."""
    settings = settings or PageComponentSettings()
    components = list(components)
    by_id = {component.id: component for component in components}
    resolved = ResolvedComponents()

    for position in GLOBAL_POSITIONS:
        override_id = settings.header_id if position == "header" else settings.footer_id
        hidden = settings.hide_header if position == "header" else settings.hide_footer

        chosen = by_id.get(override_id) if override_id else None
        if chosen is not None and chosen.position != position:
            logger.warning("resolve_page_components: %s override %r is a %s", position, override_id, chosen.position)
            chosen = None
        if chosen is None:
            chosen = next((c for c in components if c.position == position and c.is_default), None)

        if chosen is not None:
            resolved.taken.add(position)
            if not hidden:
                setattr(resolved, position, chosen)
    return resolved


# ---------------------------------------------------------------------------
# Strip / inject
# ---------------------------------------------------------------------------


# Sectioning elements that scope a nested <header>/<footer> to themselves.
_SCOPING = frozenset({"article", "aside", "main", "nav", "section"})


def _is_page_level(node: Tag, root: Tag, position: str) -> bool:
    """A header/footer that belongs to the page, not to an article or section inside it."""
    by_role = node.get("role") == _ROLES[position]
    if not by_role and node.name != position:
        return False
    for parent in node.parents:
        if parent is root:
            return True
        if is_instrumentation(parent) or (not by_role and parent.name in _SCOPING):
            return False
    return True


def _inline_elements(root: Tag, position: str, candidate: ComponentCandidate | None) -> list[Tag]:
    targets: list[Tag] = []
    for node in root.find_all(True):
        if not _is_page_level(node, root, position):
            continue
        if any(is_descendant(node, t) for t in targets):
            continue
        targets.append(node)
    if candidate is not None:
        node = resolve_in(root, candidate.address)
        if (
            node is not None
            and node is not root
            and not any(node is t or is_descendant(node, t) for t in targets)
        ):
            targets.append(node)
    return targets


def strip_inline(
    document: str,
    positions: Iterable[str],
    candidates: dict[str, ComponentCandidate | None] | None = None,
) -> str:
    """Remove the page's own header/footer elements for the given positions."""
    positions = [p for p in positions if p in GLOBAL_POSITIONS]
    if not positions:
        return document
    if candidates is None:
        candidates = detect_components(document)

    soup = parse(document)
    root = content_root(soup)
    doomed: list[Tag] = []
    for position in positions:
        doomed.extend(_inline_elements(root, position, candidates.get(position)))
    for node in doomed:
        if not node.decomposed:
            node.decompose()
    return serialize(soup)


def has_inline(document: str, position: str, candidate: ComponentCandidate | None = None) -> bool:
    root = content_root(parse(document))
    return bool(_inline_elements(root, position, candidate))


def _wrap(soup: BeautifulSoup, component: GlobalComponent) -> Tag:
    wrapper = soup.new_tag("lc-global")
    wrapper["data-position"] = component.position
    wrapper["data-component-id"] = component.id
    for piece in parse_fragment(component.html):
        wrapper.append(piece)
    return wrapper


def inject_globals(
    document: str,
    header: GlobalComponent | None = None,
    footer: GlobalComponent | None = None,
) -> str:
    """
    Render-time only: place global markup around the page content.

    Each global is wrapped in <lc-global data-position=...> so a realm
    round-trip can drop it again.
    """
    if header is None and footer is None:
        return document
    soup = parse(document)
    root = content_root(soup)
    if header is not None:
        prepend_child(root, _wrap(soup, header))
    if footer is not None:
        root.append(_wrap(soup, footer))
    return serialize(soup)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


@dataclass
class ReconcileResult:
    document: str
    stripped: list[str] = field(default_factory=list)
    offers: list[PromotionOffer] = field(default_factory=list)


def reconcile(
    document: str,
    resolved: ResolvedComponents,
    existing_names: list[str] | None = None,
) -> ReconcileResult:
    """
    Bring a freshly generated document in line with the site's globals.

    Positions the site already covers lose their inline element; other
    positions with a detected inline element produce a promotion offer.
    """
    candidates = detect_components(document)
    names = list(existing_names or [])
    stripped: list[str] = []
    offers: list[PromotionOffer] = []

    for position in GLOBAL_POSITIONS:
        candidate = candidates[position]
        if position in resolved.taken:
            if has_inline(document, position, candidate):
                stripped.append(position)
        elif candidate is not None:
            name = generate_component_name(position, names)
            names.append(name)
            offers.append(
                PromotionOffer(
                    position=position,
                    markup=candidate.markup,
                    confidence=candidate.confidence,
                    suggested_name=name,
                )
            )

    if stripped:
        logger.info("reconcile: stripped inline %s", ", ".join(stripped))
        document = strip_inline(document, stripped, candidates)
    return ReconcileResult(document=document, stripped=stripped, offers=offers)

"""
LiveCanvas Kernel — Structural Reorder/Move Engine

Moves elements within the canonical document. Two sources feed it:

- layer-tree drags: an explicit (source, destination parent, index) move
- in-document drags: the realm already rearranged its own DOM and sends
  the whole document back; that is accepted as an opaque replacement
  after the realm's instrumentation is stripped

An element can never be moved into itself or any of its descendants,
and the content root never moves.
"""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup, Tag

from engine.kernel.dom import (
    doctype_of,
    element_children,
    is_content_root,
    parse,
    serialize,
    set_doctype,
    strip_instrumentation,
)
from engine.kernel.pipeline import MutationResult, noop, transform
from engine.kernel.selector import is_descendant, resolve_in
from engine.kernel.types import (
    ADDRESS_MISS,
    DEFAULT_DOCTYPE,
    EMPTY_DOCUMENT,
    INVALID_MOVE,
    ROOT_IMMUTABLE,
    UNCHANGED,
)

logger = logging.getLogger(__name__)


def move(document: str, source: str, destination_parent: str, index: int) -> MutationResult:
    """
    Move the element at source to position index among the element
    children of destination_parent.

    index counts the destination's children after the source has been
    removed; an index past the end appends.
    """

    def _edit(soup: BeautifulSoup, root: Tag) -> str | None:
        node = resolve_in(root, source)
        parent = resolve_in(root, destination_parent)
        if node is None or parent is None:
            return ADDRESS_MISS
        if is_content_root(node):
            return ROOT_IMMUTABLE
        if parent is node or is_descendant(parent, node):
            logger.info("move: rejected %r into its own subtree %r", source, destination_parent)
            return INVALID_MOVE
        if index < 0:
            return INVALID_MOVE

        node.extract()
        children = element_children(parent)
        if index >= len(children):
            parent.append(node)
        else:
            children[index].insert_before(node)
        return None

    result = transform(document, _edit)
    result.address = source
    return result


def reorder_siblings(document: str, parent: str, from_index: int, to_index: int) -> MutationResult:
    """Move the from_index-th element child of parent to to_index."""

    def _edit(soup: BeautifulSoup, root: Tag) -> str | None:
        container = resolve_in(root, parent)
        if container is None:
            return ADDRESS_MISS
        children = element_children(container)
        if not (0 <= from_index < len(children)) or not (0 <= to_index < len(children)):
            return INVALID_MOVE
        if from_index == to_index:
            return UNCHANGED

        node = children[from_index]
        node.extract()
        remaining = element_children(container)
        if to_index >= len(remaining):
            container.append(node)
        else:
            remaining[to_index].insert_before(node)
        return None

    return transform(document, _edit)


def clean_realm_document(canonical: str, realm_html: str) -> str | None:
    """
    Turn a document serialized by the realm back into canonical markup.

    Returns None when the realm sent nothing usable.
    """
    if not realm_html or not realm_html.strip():
        return None
    soup = parse(realm_html)
    strip_instrumentation(soup, restore_doctype=False)
    if soup.find(True) is None:
        return None

    # outerHTML never carries the doctype, the canonical one wins
    doctype = doctype_of(parse(canonical))
    if doctype is None and soup.find("html") is not None:
        doctype = DEFAULT_DOCTYPE
    if doctype is not None:
        set_doctype(soup, doctype)
    return serialize(soup)


def accept_realm_document(canonical: str, realm_html: str) -> MutationResult:
    """Accept a rearranged document from the realm as a full replacement."""
    cleaned = clean_realm_document(canonical, realm_html)
    if cleaned is None:
        logger.warning("accept_realm_document: empty document from realm, ignored")
        return noop(canonical, EMPTY_DOCUMENT)
    if cleaned == canonical:
        return noop(canonical, UNCHANGED)
    return MutationResult(cleaned, applied=True)

"""
LiveCanvas Kernel — Element Edits

Mutators for DocumentPipeline.mutate(): each factory returns a function
that edits one resolved node in place. A mutator that cannot apply raises
EditRejected so the pipeline reports a noop instead of an error.
"""

from __future__ import annotations

import copy
import re

from bs4 import NavigableString, Tag

from engine.kernel.dom import is_content_root, parse_fragment, prepend_child
from engine.kernel.pipeline import EditRejected, MutationResult, Mutator, mutate
from engine.kernel.types import INSTRUMENTATION_PREFIX, NO_IMAGE, ROOT_IMMUTABLE

INSERT_PLACES = ("before", "after", "prepend", "append")

_BACKGROUND_URL = re.compile(r"url\((['\"]?)[^)]*\1\)")


# ---------------------------------------------------------------------------
# Attributes & classes
# ---------------------------------------------------------------------------


def set_attribute(name: str, value: str) -> Mutator:
    def _apply(node: Tag) -> None:
        node[name] = value

    return _apply


def remove_attribute(name: str) -> Mutator:
    def _apply(node: Tag) -> None:
        if name in node.attrs:
            del node[name]

    return _apply


def set_classes(class_name: str) -> Mutator:
    """Replace the class list. Realm classes never reach the canonical document."""
    tokens = [token for token in class_name.split() if not token.startswith(INSTRUMENTATION_PREFIX)]

    def _apply(node: Tag) -> None:
        if tokens:
            node["class"] = tokens
        elif "class" in node.attrs:
            del node["class"]

    return _apply


def toggle_class(class_name: str) -> Mutator:
    def _apply(node: Tag) -> None:
        classes = list(node.get("class", []))
        if class_name in classes:
            classes.remove(class_name)
        else:
            classes.append(class_name)
        if classes:
            node["class"] = classes
        else:
            del node["class"]

    return _apply


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


def set_inner_html(markup: str) -> Mutator:
    """Commit an in-place text edit (the realm sends the element's new innerHTML)."""

    def _apply(node: Tag) -> None:
        node.clear()
        for piece in parse_fragment(markup):
            node.append(piece)

    return _apply


def set_text(text: str) -> Mutator:
    def _apply(node: Tag) -> None:
        node.clear()
        node.append(NavigableString(text))

    return _apply


def swap_image(src: str, alt: str | None = None) -> Mutator:
    """
    Point an image at a new source.

    On an <img> the src (and optionally alt) changes; on any other element
    the first <img> inside it is used, else its inline background image.
    """

    def _apply(node: Tag) -> None:
        image = node if node.name == "img" else node.find("img")
        if image is not None:
            image["src"] = src
            if alt is not None:
                image["alt"] = alt
            return
        style = node.get("style", "")
        if _BACKGROUND_URL.search(style):
            node["style"] = _BACKGROUND_URL.sub(f"url('{src}')", style, count=1)
            return
        raise EditRejected(NO_IMAGE)

    return _apply


def insert_adjacent(markup: str, place: str = "after") -> Mutator:
    """Insert markup before/after the node or as its first/last child."""
    if place not in INSERT_PLACES:
        raise ValueError(f"Unknown insert place: {place!r}. Valid places: {list(INSERT_PLACES)}")

    def _apply(node: Tag) -> None:
        pieces = parse_fragment(markup)
        if place in ("before", "after") and is_content_root(node):
            raise EditRejected(ROOT_IMMUTABLE)
        if place == "before":
            for piece in pieces:
                node.insert_before(piece)
        elif place == "after":
            for piece in reversed(pieces):
                node.insert_after(piece)
        elif place == "prepend":
            for piece in reversed(pieces):
                prepend_child(node, piece)
        else:
            for piece in pieces:
                node.append(piece)

    return _apply


def replace_with(markup: str) -> Mutator:
    def _apply(node: Tag) -> None:
        if is_content_root(node):
            raise EditRejected(ROOT_IMMUTABLE)
        for piece in parse_fragment(markup):
            node.insert_before(piece)
        node.decompose()

    return _apply


# ---------------------------------------------------------------------------
# Structural edits
# ---------------------------------------------------------------------------


def _remove(node: Tag) -> None:
    # Drop the whitespace the element was indented with
    following = node.next_sibling
    if type(following) is NavigableString and not following.strip():
        following.extract()
    node.decompose()


def _delete(node: Tag) -> None:
    if is_content_root(node):
        raise EditRejected(ROOT_IMMUTABLE)
    _remove(node)


def _duplicate(node: Tag) -> None:
    if is_content_root(node):
        raise EditRejected(ROOT_IMMUTABLE)
    clone = copy.copy(node)
    # ids must stay unique, the copy gives its ids up
    for element in [clone, *clone.find_all(attrs={"id": True})]:
        if element.has_attr("id"):
            del element["id"]
    node.insert_after(clone)


def delete(document: str, address: str) -> MutationResult:
    """Remove the addressed element. The content root cannot be deleted."""
    return mutate(document, address, _delete)


def duplicate(document: str, address: str) -> MutationResult:
    """Insert a copy of the addressed element right after it."""
    return mutate(document, address, _duplicate)

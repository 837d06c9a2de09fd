"""
LiveCanvas Kernel — Document Tree

Thin layer over BeautifulSoup. Every kernel operation goes through
parse -> edit tree -> serialize; nothing holds a tree between calls,
the canonical document is always the string.

Realm instrumentation (tags, ids and classes prefixed with `lc-`) is
invisible here: element_children() skips it, and strip_instrumentation()
removes it before anything produced by the realm becomes canonical.
"""

from __future__ import annotations

from collections.abc import Callable

from bs4 import BeautifulSoup, Doctype, NavigableString, Tag
from bs4.element import Declaration, PageElement

from engine.kernel.types import (
    DEFAULT_DOCTYPE,
    INSTRUMENTATION_PREFIX,
    TEXT_PREVIEW_LENGTH,
    ElementSnapshot,
    Rect,
)

PARSER = "html.parser"

# Attributes the realm sets on content elements while editing.
_REALM_ATTRIBUTES = ("contenteditable",)
_REALM_DATA_PREFIX = "data-lc-"


# ---------------------------------------------------------------------------
# Parse / serialize
# ---------------------------------------------------------------------------


def parse(document: str) -> BeautifulSoup:
    """Parse a full document or a fragment into a tree."""
    soup = BeautifulSoup(document or "", PARSER)
    _absorb_doctype_newline(soup)
    return soup


def _absorb_doctype_newline(soup: BeautifulSoup) -> None:
    # Doctype serializes with its own trailing newline; drop the source's
    for node in soup.contents:
        if not isinstance(node, Doctype):
            continue
        following = node.next_sibling
        if type(following) is NavigableString and following.startswith("\n"):
            if len(following) > 1:
                following.replace_with(NavigableString(following[1:]))
            else:
                following.extract()
        return


def serialize(soup: BeautifulSoup) -> str:
    """Serialize back to a string, keeping doctype and root element attributes."""
    return soup.decode()


def normalize(document: str) -> str:
    """The serialized form of a document after one parse round-trip."""
    return serialize(parse(document))


def parse_fragment(markup: str, clean: bool = True) -> list[PageElement]:
    """
    Parse markup into detached nodes ready to be inserted into another tree.

    A fragment that carries its own <body> contributes the body's children.
    Doctypes are dropped. With clean=True realm instrumentation is removed
    first (text commits and drag results come straight from the realm).
    """
    soup = parse(markup)
    if clean:
        strip_instrumentation(soup, restore_doctype=False)
    container = soup.find("body") or soup
    nodes = [node for node in container.contents if not isinstance(node, Doctype)]
    for node in nodes:
        node.extract()
    return nodes


def fragment_root(markup: str) -> Tag | None:
    """First element of a fragment, or None when it holds no element."""
    soup = parse(markup)
    container = soup.find("body") or soup
    children = element_children(container)
    return children[0] if children else None


# ---------------------------------------------------------------------------
# Tree navigation
# ---------------------------------------------------------------------------


def content_root(soup: BeautifulSoup) -> Tag:
    """The element addresses are computed from: <body>, else the fragment root."""
    body = soup.find("body")
    return body if body is not None else soup


def is_content_root(node: Tag) -> bool:
    return node.parent is None or node.name == "body"


def is_instrumentation(node: PageElement) -> bool:
    return isinstance(node, Tag) and node.name.startswith(INSTRUMENTATION_PREFIX)


def element_children(node: Tag) -> list[Tag]:
    """Element children in document order, instrumentation excluded."""
    return [child for child in node.children if isinstance(child, Tag) and not is_instrumentation(child)]


def index_in(nodes: list[Tag], node: Tag) -> int:
    """Position of node by identity (bs4 Tag equality is structural)."""
    for i, candidate in enumerate(nodes):
        if candidate is node:
            return i
    raise ValueError(f"<{node.name}> is not in the list")


def prepend_child(parent: Tag, node: PageElement) -> None:
    """Insert node as the first child, after any leading doctype."""
    index = 0
    while index < len(parent.contents) and isinstance(parent.contents[index], (Doctype, Declaration)):
        index += 1
    parent.insert(index, node)


def visible_classes(node: Tag) -> list[str]:
    return [c for c in node.get("class", []) if not c.startswith(INSTRUMENTATION_PREFIX)]


def tag_path(node: Tag) -> list[str]:
    """Tag names from the content root (exclusive) down to node."""
    path: list[str] = []
    current: Tag | None = node
    while current is not None and not is_content_root(current):
        path.append(current.name)
        current = current.parent
    return list(reversed(path))


def snapshot_of(node: Tag, address: str, rect: Rect | None = None) -> ElementSnapshot:
    """Element snapshot computed from the canonical tree."""
    return ElementSnapshot(
        tag_name=node.name.upper(),
        selector=address,
        class_name=" ".join(visible_classes(node)),
        text_content=node.get_text()[:TEXT_PREVIEW_LENGTH],
        inner_html=node.decode_contents(),
        outer_html=node.decode(),
        rect=rect or Rect(),
        path=tag_path(node),
    )


# ---------------------------------------------------------------------------
# Instrumentation
# ---------------------------------------------------------------------------


def _first(soup: BeautifulSoup, predicate: Callable[[Tag], bool]) -> Tag | None:
    return soup.find(predicate)


def doctype_of(soup: BeautifulSoup) -> str | None:
    for node in soup.contents:
        if isinstance(node, Doctype):
            return str(node)
    return None


def set_doctype(soup: BeautifulSoup, doctype: str | None) -> None:
    """Replace the document's doctype (None removes it)."""
    for node in list(soup.contents):
        if isinstance(node, Doctype):
            node.extract()
    if doctype:
        soup.insert(0, Doctype(doctype))


def strip_instrumentation(soup: BeautifulSoup, restore_doctype: bool = True) -> BeautifulSoup:
    """
    Remove everything the rendering realm adds to a document, in place.

    - injected global components (<lc-global>) are dropped entirely
    - resolved content (<lc-entries data-token=...>) goes back to its token
    - any other lc-* element, and elements with an lc-* id, are dropped
    - lc-* classes, contenteditable and data-lc-* attributes are removed

    With restore_doctype=True a document that lost its doctype on the way
    through the realm (outerHTML never includes it) gets the default one.
    """
    node = _first(soup, _is_global_wrapper)
    while node is not None:
        node.decompose()
        node = _first(soup, _is_global_wrapper)

    wrapper = _first(soup, _is_entries_wrapper)
    while wrapper is not None:
        token = wrapper.get("data-token", "")
        for piece in parse_fragment(token, clean=False):
            wrapper.insert_before(piece)
        wrapper.decompose()
        wrapper = _first(soup, _is_entries_wrapper)

    node = _first(soup, _is_realm_element)
    while node is not None:
        node.decompose()
        node = _first(soup, _is_realm_element)

    for tag in soup.find_all(True):
        classes = tag.get("class")
        if classes:
            keep = [c for c in classes if not c.startswith(INSTRUMENTATION_PREFIX)]
            if len(keep) != len(classes):
                if keep:
                    tag["class"] = keep
                else:
                    del tag["class"]
        for attr in list(tag.attrs):
            if attr in _REALM_ATTRIBUTES or attr.startswith(_REALM_DATA_PREFIX):
                del tag[attr]

    if restore_doctype and soup.find("html") is not None and doctype_of(soup) is None:
        set_doctype(soup, DEFAULT_DOCTYPE)
    return soup


def _is_global_wrapper(tag: Tag) -> bool:
    return tag.name == "lc-global"


def _is_entries_wrapper(tag: Tag) -> bool:
    return tag.name == "lc-entries"


def _is_realm_element(tag: Tag) -> bool:
    if tag.name.startswith(INSTRUMENTATION_PREFIX):
        return True
    node_id = tag.get("id")
    return isinstance(node_id, str) and node_id.startswith(INSTRUMENTATION_PREFIX)

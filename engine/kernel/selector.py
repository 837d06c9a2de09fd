"""
LiveCanvas Kernel — Selector Resolver

Stable element addresses computed from the content root.

Address format (the realm script in realm.py carries the same walk):
  - walk from the element up to the content root
  - an element with an id contributes "#id" and stops the walk
  - otherwise the lowercase tag, plus ":nth-of-type(k)" (1-based) when
    the parent has more than one element child with that tag
  - segments joined with " > "; the content root itself is "body"

Addresses are only valid against the document they were computed from.
A miss is never an error: resolve() returns None.
"""

from __future__ import annotations

import re

from bs4 import Tag

from engine.kernel.dom import content_root, element_children, index_in, parse
from engine.kernel.types import ADDRESS_SEPARATOR, ROOT_ADDRESS

# Shared with the realm script, so no named groups.
TAG_SEGMENT_PATTERN = r"^([a-zA-Z][a-zA-Z0-9-]*)(?::nth-of-type\((\d+)\))?$"
_TAG_SEGMENT = re.compile(TAG_SEGMENT_PATTERN)


def address_of(node: Tag, root: Tag) -> str:
    """Compute the address of node relative to root."""
    if node is root:
        return ROOT_ADDRESS

    segments: list[str] = []
    current: Tag | None = node
    while current is not None and current is not root and current.parent is not None:
        node_id = current.get("id")
        if node_id:
            segments.append(f"#{node_id}")
            break

        segment = current.name
        same_tag = [sibling for sibling in element_children(current.parent) if sibling.name == current.name]
        if len(same_tag) > 1:
            segment += f":nth-of-type({index_in(same_tag, current) + 1})"
        segments.append(segment)
        current = current.parent

    return ADDRESS_SEPARATOR.join(reversed(segments))


def split_address(address: str) -> list[str]:
    return [segment.strip() for segment in address.split(ADDRESS_SEPARATOR.strip()) if segment.strip()]


def is_address(value: str) -> bool:
    """True when value has the shape of an address this module produces."""
    value = value.strip()
    if value == ROOT_ADDRESS:
        return True
    segments = split_address(value)
    if not segments:
        return False
    for i, segment in enumerate(segments):
        if segment.startswith("#"):
            if i != 0 or len(segment) == 1 or " " in segment:
                return False
        elif not _TAG_SEGMENT.match(segment):
            return False
    return True


def resolve_in(root: Tag, address: str | None) -> Tag | None:
    """Resolve an address against an already-parsed tree."""
    if not address or not address.strip():
        return None
    address = address.strip()
    if address == ROOT_ADDRESS:
        return root

    current: Tag | None = root
    for segment in split_address(address):
        if current is None:
            return None
        if segment.startswith("#"):
            node_id = segment[1:]
            if not node_id:
                return None
            current = current.find(attrs={"id": node_id})
            continue

        match = _TAG_SEGMENT.match(segment)
        if match is None:
            return None
        tag = match.group(1).lower()
        same_tag = [child for child in element_children(current) if child.name == tag]
        if not same_tag:
            return None
        nth = match.group(2)
        if nth is None:
            current = same_tag[0]
            continue
        k = int(nth)
        if k < 1 or k > len(same_tag):
            return None
        current = same_tag[k - 1]
    return current


def resolve(document: str, address: str | None) -> Tag | None:
    """Parse document and resolve address against its content root."""
    return resolve_in(content_root(parse(document)), address)


def is_descendant(node: Tag, ancestor: Tag) -> bool:
    """True when node sits strictly inside ancestor."""
    for parent in node.parents:
        if parent is ancestor:
            return True
    return False

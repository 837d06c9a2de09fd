"""
LiveCanvas Kernel — Layer Tree

A read-only mirror of the document's element tree for the layers panel,
plus planning of layer-tree drags into concrete moves.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from bs4 import Tag

from engine.kernel.dom import content_root, element_children, parse, visible_classes
from engine.kernel.pipeline import MutationResult
from engine.kernel.reorder import move, reorder_siblings
from engine.kernel.selector import address_of
from engine.kernel.types import LAYER_CLASS_LIMIT, LAYER_SKIP_TAGS, ROOT_ADDRESS, LayerNode


def build_layers(document: str) -> list[LayerNode]:
    """Build the layer tree. The content root is the single top node."""
    root = content_root(parse(document))
    counter = [0]

    def _build(node: Tag, depth: int, index: int, parent_selector: str | None) -> LayerNode:
        layer = LayerNode(
            id=f"layer-{counter[0]}",
            tag_name=node.name if node is not root else ROOT_ADDRESS,
            class_name=" ".join(visible_classes(node)[:LAYER_CLASS_LIMIT]),
            selector=address_of(node, root),
            depth=depth,
            index=index,
            parent_selector=parent_selector,
        )
        counter[0] += 1
        for child_index, child in enumerate(element_children(node)):
            if child.name in LAYER_SKIP_TAGS:
                continue
            layer.children.append(_build(child, depth + 1, child_index, layer.selector))
        return layer

    return [_build(root, 0, 0, None)]


def iter_layers(layers: Iterable[LayerNode]) -> Iterable[LayerNode]:
    """Pre-order walk."""
    for layer in layers:
        yield layer
        yield from iter_layers(layer.children)


def find_layer(layers: list[LayerNode], layer_id: str) -> tuple[LayerNode, LayerNode | None] | None:
    """Find a layer by id. Returns (layer, parent) or None."""

    def _search(nodes: list[LayerNode], parent: LayerNode | None) -> tuple[LayerNode, LayerNode | None] | None:
        for node in nodes:
            if node.id == layer_id:
                return node, parent
            found = _search(node.children, node)
            if found is not None:
                return found
        return None

    return _search(layers, None)


def ancestor_ids(layers: list[LayerNode], selector: str) -> list[str]:
    """Ids of the layers to expand so the layer for selector is visible."""

    def _path(nodes: list[LayerNode], trail: list[str]) -> list[str] | None:
        for node in nodes:
            if node.selector == selector:
                return trail
            found = _path(node.children, [*trail, node.id])
            if found is not None:
                return found
        return None

    return _path(layers, []) or []


# ---------------------------------------------------------------------------
# Drag planning
# ---------------------------------------------------------------------------


@dataclass
class LayerDrop:
    """A planned move. kind is "reorder" (same parent) or "move"."""

    kind: str
    source: str
    parent: str
    index: int
    from_index: int | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind,
            "source": self.source,
            "parent": self.parent,
            "index": self.index,
            "from_index": self.from_index,
        }


def plan_layer_drop(
    layers: list[LayerNode],
    active_id: str,
    over_id: str,
    expanded: Iterable[str] = (),
) -> LayerDrop | None:
    """
    Work out what dropping layer active_id onto layer over_id means.

    - same parent: reorder among siblings
    - over an expanded container: first child of it
    - over a layer with another parent: right after that layer
    - over the root: last child of the root
    """
    if active_id == over_id:
        return None
    active = find_layer(layers, active_id)
    over = find_layer(layers, over_id)
    if active is None or over is None:
        return None

    active_node, active_parent = active
    over_node, over_parent = over
    if active_parent is None:
        return None

    if over_parent is not None and over_parent.id == active_parent.id:
        if active_node.index == over_node.index:
            return None
        return LayerDrop(
            kind="reorder",
            source=active_node.selector,
            parent=active_parent.selector,
            index=over_node.index,
            from_index=active_node.index,
        )

    if over_node.children and over_node.id in set(expanded):
        return LayerDrop(kind="move", source=active_node.selector, parent=over_node.selector, index=0)

    if over_parent is not None:
        return LayerDrop(
            kind="move",
            source=active_node.selector,
            parent=over_parent.selector,
            index=over_node.index + 1,
        )

    last = over_node.children[-1].index + 1 if over_node.children else 0
    return LayerDrop(kind="move", source=active_node.selector, parent=over_node.selector, index=last)


def apply_layer_drop(document: str, drop: LayerDrop) -> MutationResult:
    if drop.kind == "reorder" and drop.from_index is not None:
        return reorder_siblings(document, drop.parent, drop.from_index, drop.index)
    return move(document, drop.source, drop.parent, drop.index)

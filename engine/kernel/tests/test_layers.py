"""Tests for the layer tree and layer drag planning."""

from __future__ import annotations

from engine.kernel.dom import content_root, element_children, parse
from engine.kernel.layers import (
    ancestor_ids,
    apply_layer_drop,
    build_layers,
    find_layer,
    iter_layers,
    plan_layer_drop,
)


class TestBuildLayers:
    def test_root_is_single_top_node(self, page):
        layers = build_layers(page)
        assert len(layers) == 1
        root = layers[0]
        assert root.tag_name == "body"
        assert root.selector == "body"
        assert root.parent_selector is None
        assert [c.tag_name for c in root.children] == ["header", "section", "section", "footer"]

    def test_child_fields(self, page):
        root = build_layers(page)[0]
        header, hero, features, _ = root.children
        assert header.class_name == "site-header"
        assert hero.selector == "#hero"
        assert features.selector == "section:nth-of-type(2)"
        assert features.depth == 1
        assert features.index == 2
        assert features.parent_selector == "body"

    def test_ids_are_unique(self, page):
        ids = [layer.id for layer in iter_layers(build_layers(page))]
        assert len(ids) == len(set(ids))

    def test_skips_scripts_and_styles(self):
        layers = build_layers("<body><style>p{}</style><p>x</p><script></script></body>")
        assert [c.tag_name for c in layers[0].children] == ["p"]

    def test_class_list_is_capped(self):
        layers = build_layers('<body><div class="a b c d lc-hover"></div></body>')
        assert layers[0].children[0].class_name == "a b c"

    def test_to_dict_nests(self, sections):
        data = build_layers(sections)[0].to_dict()
        assert data["children"][0]["children"][0]["tag_name"] == "h2"


class TestFindLayer:
    def test_find_and_ancestors(self, sections):
        layers = build_layers(sections)
        layer, parent = find_layer(layers, "layer-6")
        assert layer.selector == "#c > h2"
        assert parent.selector == "#c"
        assert ancestor_ids(layers, "#c > h2") == ["layer-0", "layer-5"]

    def test_missing(self, sections):
        layers = build_layers(sections)
        assert find_layer(layers, "layer-99") is None
        assert ancestor_ids(layers, "#nope") == []


# ---------------------------------------------------------------------------
# Drag planning
#
# sections fixture layers: layer-0 body, layer-1 #a, layer-2 #a > h2,
# layer-3 #b, layer-4 #b > h2, layer-5 #c, layer-6 #c > h2
# ---------------------------------------------------------------------------


class TestPlanLayerDrop:
    def test_same_parent_reorders(self, sections):
        drop = plan_layer_drop(build_layers(sections), "layer-5", "layer-1")
        assert drop.kind == "reorder"
        assert drop.parent == "body"
        assert (drop.from_index, drop.index) == (2, 0)

        document = apply_layer_drop(sections, drop).document
        ids = [c.get("id") for c in element_children(content_root(parse(document)))]
        assert ids == ["c", "a", "b"]

    def test_over_expanded_container_becomes_first_child(self, sections):
        drop = plan_layer_drop(build_layers(sections), "layer-6", "layer-1", expanded={"layer-1"})
        assert drop.kind == "move"
        assert (drop.parent, drop.index) == ("#a", 0)

        document = apply_layer_drop(sections, drop).document
        assert '<section id="a"><h2>C</h2><h2>A</h2></section>' in document

    def test_over_collapsed_layer_lands_after_it(self, sections):
        drop = plan_layer_drop(build_layers(sections), "layer-6", "layer-3")
        assert (drop.kind, drop.parent, drop.index) == ("move", "body", 2)

        document = apply_layer_drop(sections, drop).document
        names = [c.name for c in element_children(content_root(parse(document)))]
        assert names == ["section", "section", "h2", "section"]

    def test_no_drop(self, sections):
        layers = build_layers(sections)
        assert plan_layer_drop(layers, "layer-1", "layer-1") is None
        assert plan_layer_drop(layers, "layer-0", "layer-1") is None
        assert plan_layer_drop(layers, "layer-1", "layer-42") is None

"""Tests for the document tree layer — round trips, fragments and instrumentation stripping."""

from __future__ import annotations

from engine.kernel.dom import (
    content_root,
    element_children,
    fragment_root,
    normalize,
    parse,
    parse_fragment,
    serialize,
    snapshot_of,
    strip_instrumentation,
)
from engine.kernel.types import Rect


class TestRoundTrip:
    def test_normalize_is_stable(self, page):
        once = normalize(page)
        assert normalize(once) == once

    def test_doctype_and_root_attributes_survive(self, page):
        out = normalize(page)
        assert out.startswith("<!DOCTYPE html>")
        assert '<html lang="en">' in out
        assert '<body class="page">' in out

    def test_doctype_newline_not_duplicated(self):
        out = normalize("<!DOCTYPE html>\n<html><body></body></html>")
        assert out.startswith("<!DOCTYPE html>\n<html>")


class TestFragments:
    def test_parse_fragment_returns_detached_nodes(self):
        nodes = parse_fragment("<p>a</p><p>b</p>")
        assert [n.name for n in nodes] == ["p", "p"]
        assert all(n.parent is None for n in nodes)

    def test_parse_fragment_uses_body_children(self):
        nodes = parse_fragment("<html><body><section>x</section></body></html>")
        assert [n.name for n in nodes] == ["section"]

    def test_parse_fragment_strips_realm_classes(self):
        nodes = parse_fragment('<p class="lead lc-selected" contenteditable="true">Hi</p>')
        assert str(nodes[0]) == '<p class="lead">Hi</p>'

    def test_fragment_root(self):
        assert fragment_root("  <div id='x'><span></span></div>").get("id") == "x"
        assert fragment_root("just text") is None


class TestTree:
    def test_content_root_prefers_body(self, page):
        assert content_root(parse(page)).name == "body"

    def test_element_children_skip_instrumentation(self):
        root = content_root(parse("<body><lc-badge></lc-badge><div></div>text<p></p></body>"))
        assert [c.name for c in element_children(root)] == ["div", "p"]

    def test_snapshot_of(self, page):
        root = content_root(parse(page))
        h1 = root.find("h1")
        snap = snapshot_of(h1, "#hero > h1", rect=Rect(top=1, left=2, width=3, height=4))
        assert snap.tag_name == "H1"
        assert snap.text_content == "Hello"
        assert snap.outer_html == "<h1>Hello</h1>"
        assert snap.path == ["section", "h1"]
        assert snap.rect.width == 3


class TestStripInstrumentation:
    def test_removes_realm_elements_and_attributes(self):
        realm = (
            '<html><head><style id="lc-realm-style"></style></head>'
            '<body><lc-global data-position="header"><header>G</header></lc-global>'
            '<section class="hero lc-hover lc-selected" data-lc-id="1"><h1 contenteditable="true">Hi</h1></section>'
            "<lc-badge>SECTION</lc-badge>"
            '<script id="lc-realm-script"></script></body></html>'
        )
        soup = strip_instrumentation(parse(realm))
        out = serialize(soup)
        assert "lc-" not in out
        assert "contenteditable" not in out
        assert "<header>" not in out
        assert '<section class="hero"><h1>Hi</h1></section>' in out
        assert out.startswith("<!DOCTYPE html>")

    def test_restores_entries_tokens(self):
        token = '{{#entries:post limit=2}}<article>{{title}}</article>{{/entries}}'
        realm = (
            '<body><div class="list"><lc-entries data-token="{{#entries:post limit=2}}&lt;article&gt;{{title}}'
            '&lt;/article&gt;{{/entries}}"><article>First</article><article>Second</article></lc-entries></div></body>'
        )
        out = serialize(strip_instrumentation(parse(realm)))
        assert token in out
        assert "First" not in out

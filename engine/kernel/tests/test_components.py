"""Tests for global component resolution, stripping, injection and reconciliation."""

from __future__ import annotations

import pytest

from engine.kernel.components import (
    has_inline,
    inject_globals,
    reconcile,
    resolve_page_components,
    strip_inline,
)
from engine.kernel.dom import content_root, element_children, parse
from engine.kernel.types import GlobalComponent, PageComponentSettings

HEADER = GlobalComponent(id="h1", html="<header>Global</header>", position="header", name="Header", is_default=True)
ALT_HEADER = GlobalComponent(id="h2", html="<header>Alt</header>", position="header", name="Header 1")
FOOTER = GlobalComponent(
    id="f1", html="<footer>Global foot</footer>", position="footer", name="Footer", is_default=True
)


@pytest.fixture
def site_components() -> list[GlobalComponent]:
    return [HEADER, ALT_HEADER, FOOTER]


class TestResolvePageComponents:
    def test_defaults(self, site_components):
        resolved = resolve_page_components(site_components)
        assert resolved.header is HEADER
        assert resolved.footer is FOOTER
        assert resolved.taken == {"header", "footer"}

    def test_override(self, site_components):
        resolved = resolve_page_components(site_components, PageComponentSettings(header_id="h2"))
        assert resolved.header is ALT_HEADER
        assert resolved.for_position("header") is ALT_HEADER

    def test_override_with_wrong_position_falls_back(self, site_components):
        resolved = resolve_page_components(site_components, PageComponentSettings(header_id="f1"))
        assert resolved.header is HEADER

    def test_hidden_still_taken(self, site_components):
        resolved = resolve_page_components(site_components, PageComponentSettings(hide_footer=True))
        assert resolved.footer is None
        assert "footer" in resolved.taken

    def test_no_defaults(self):
        resolved = resolve_page_components([ALT_HEADER])
        assert resolved.header is None
        assert resolved.taken == set()


class TestStripAndInject:
    def test_strip_inline(self, page):
        out = strip_inline(page, ["header"])
        assert "<header" not in out
        assert "<footer>" in out

    def test_strip_nothing(self, page):
        assert strip_inline(page, []) == page
        assert strip_inline(page, ["content"]) == page

    def test_has_inline(self, page, sections):
        assert has_inline(page, "footer")
        assert not has_inline(sections, "header")

    def test_strip_wrapped_header(self):
        document = (
            '<body><div class="wrap"><header>Logo</header></div>'
            "<section><h2>Body</h2></section></body>"
        )
        out = strip_inline(document, ["header"], candidates={})
        assert "<header" not in out
        assert "Logo" not in out
        assert '<div class="wrap">' in out

    def test_strip_role_banner_anywhere(self):
        document = '<body><div><div role="banner">Top</div></div><p>Body</p></body>'
        assert "Top" not in strip_inline(document, ["header"], candidates={})

    def test_article_header_is_content(self):
        document = "<body><header>Site</header><article><header>Post title</header><p>x</p></article></body>"
        out = strip_inline(document, ["header"], candidates={})
        assert "Site" not in out
        assert "<header>Post title</header>" in out
        assert has_inline(document, "header")

    def test_inject_wraps_globals(self, sections):
        out = inject_globals(sections, HEADER, FOOTER)
        children = element_children(content_root(parse(out)))
        assert [c.get("id") for c in children] == ["a", "b", "c"]
        wrappers = parse(out).find_all("lc-global")
        assert [w["data-position"] for w in wrappers] == ["header", "footer"]
        assert wrappers[0]["data-component-id"] == "h1"
        assert wrappers[0].header.get_text() == "Global"

    def test_inject_nothing(self, sections):
        assert inject_globals(sections) == sections


class TestReconcile:
    def test_global_header_renders_exactly_once(self, page, site_components):
        resolved = resolve_page_components(site_components)
        result = reconcile(page, resolved)
        assert result.stripped == ["header", "footer"]
        assert result.offers == []

        rendered = inject_globals(result.document, resolved.header, resolved.footer)
        assert rendered.count("<header") == 1
        assert rendered.count("<footer") == 1
        assert "Global" in rendered
        assert "site-header" not in rendered

    def test_wrapped_header_renders_exactly_once(self):
        document = (
            '<!DOCTYPE html><html><body><div class="wrap"><header>Logo</header></div>'
            '<section id="hero"><h1>Hi</h1></section></body></html>'
        )
        resolved = resolve_page_components([HEADER])
        result = reconcile(document, resolved)
        assert result.stripped == ["header"]
        rendered = inject_globals(result.document, resolved.header)
        assert rendered.count("<header") == 1
        assert "Logo" not in rendered

    def test_offers_when_site_has_no_globals(self, page):
        result = reconcile(page, resolve_page_components([]))
        assert result.stripped == []
        assert result.document == page
        assert [(o.position, o.suggested_name) for o in result.offers] == [("header", "Header"), ("footer", "Footer")]
        assert result.offers[0].confidence == 90

    def test_offer_names_avoid_existing(self, page):
        result = reconcile(page, resolve_page_components([]), existing_names=["Header", "Footer"])
        assert [o.suggested_name for o in result.offers] == ["Header 1", "Footer 1"]

    def test_mixed(self, page):
        resolved = resolve_page_components([HEADER])
        result = reconcile(page, resolved)
        assert result.stripped == ["header"]
        assert [o.position for o in result.offers] == ["footer"]

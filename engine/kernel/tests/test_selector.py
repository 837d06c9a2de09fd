"""Tests for the selector resolver — address computation and resolution."""

from __future__ import annotations

import pytest

from engine.kernel.dom import content_root, parse
from engine.kernel.selector import address_of, is_address, is_descendant, resolve, resolve_in

# ---------------------------------------------------------------------------
# address_of
# ---------------------------------------------------------------------------


class TestAddressOf:
    def test_root_is_body(self, page):
        root = content_root(parse(page))
        assert address_of(root, root) == "body"

    def test_id_stops_the_walk(self, page):
        root = content_root(parse(page))
        h1 = root.find("h1")
        assert address_of(h1, root) == "#hero > h1"

    def test_nth_of_type_only_with_same_tag_siblings(self, page):
        root = content_root(parse(page))
        header = root.find("header")
        features = root.find("section", class_="features")
        assert address_of(header, root) == "header"
        assert address_of(features, root) == "section:nth-of-type(2)"

    def test_nested_nth_of_type(self, page):
        root = content_root(parse(page))
        li = root.find_all("li")[1]
        assert address_of(li, root) == "section:nth-of-type(2) > ul > li:nth-of-type(2)"

    def test_instrumentation_siblings_do_not_count(self):
        doc = "<body><lc-global><header>G</header></lc-global><section>One</section><p>x</p></body>"
        root = content_root(parse(doc))
        section = root.find("section")
        assert address_of(section, root) == "section"

    def test_fragment_without_body(self):
        root = parse("<div><span>a</span><span>b</span></div>")
        span = root.find_all("span")[1]
        assert address_of(span, root) == "div > span:nth-of-type(2)"


# ---------------------------------------------------------------------------
# resolve
# ---------------------------------------------------------------------------


class TestResolve:
    def test_round_trip_every_element(self, page):
        root = content_root(parse(page))
        for node in root.find_all(True):
            assert resolve_in(root, address_of(node, root)) is node

    def test_resolve_body(self, page):
        node = resolve(page, "body")
        assert node is not None
        assert node.name == "body"

    def test_resolve_id_segment(self, page):
        node = resolve(page, "#hero > p")
        assert node is not None
        assert node.get_text() == "Intro text"

    @pytest.mark.parametrize(
        "address",
        ["section:nth-of-type(5)", "#missing", "", "   ", "article", "section:nth-of-type(0)", "div[foo"],
    )
    def test_miss_returns_none(self, page, address):
        assert resolve(page, address) is None

    def test_none_address(self, page):
        assert resolve(page, None) is None

    def test_stale_address_misses_after_structure_change(self, page):
        root = content_root(parse(page))
        address = address_of(root.find_all("li")[1], root)
        shorter = page.replace("<li>Simple</li>", "")
        assert resolve(shorter, address) is None


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("body", True),
            ("#hero > h1", True),
            ("section:nth-of-type(2) > ul > li", True),
            ("#hero h1", False),
            ("div.card", False),
            ("section > #hero", False),
            ("", False),
        ],
    )
    def test_is_address(self, value, expected):
        assert is_address(value) is expected

    def test_is_descendant(self, page):
        root = content_root(parse(page))
        hero = root.find(id="hero")
        h1 = hero.find("h1")
        assert is_descendant(h1, hero)
        assert not is_descendant(hero, h1)
        assert not is_descendant(hero, hero)

"""Tests for the rendering channel — message validation and the realm bridge."""

from __future__ import annotations

import json

import pytest

from engine.kernel.channel import (
    ChannelError,
    Deselect,
    ElementSelected,
    RealmBridge,
    RenderDocument,
    SelectElement,
    TextEdited,
    parse_controller_message,
    parse_realm_message,
)
from engine.kernel.session import EditorSession


def _element(selector: str, tag: str = "H1") -> dict:
    return {
        "tagName": tag,
        "selector": selector,
        "className": "lc-selected",
        "textContent": "Hello",
        "innerHTML": "Hello",
        "outerHTML": "<h1>Hello</h1>",
        "rect": {"top": 10, "left": 20, "width": 300, "height": 40},
        "path": ["section", "h1"],
        "spacing": {"marginTop": 8},
    }


@pytest.fixture
def bridge(page) -> RealmBridge:
    return RealmBridge(EditorSession(page, session_id="s1"))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestParseRealmMessage:
    def test_element_selected(self):
        message = parse_realm_message({"type": "element-selected", "element": _element("#hero > h1")})
        assert isinstance(message, ElementSelected)
        assert message.element.tag_name == "H1"
        assert message.element.to_snapshot().rect.width == 300

    def test_json_string(self):
        message = parse_realm_message(json.dumps({"type": "text-edited", "selector": "p", "newHtml": "x"}))
        assert isinstance(message, TextEdited)
        assert message.new_html == "x"

    @pytest.mark.parametrize(
        "raw, error",
        [
            ("{not json", "undecodable"),
            ("[1, 2]", "not an object"),
            ({"type": "explode"}, "unknown message type"),
            ({"selector": "p"}, "unknown message type"),
            ({"type": "text-edited", "selector": "p"}, "invalid text-edited"),
            ({"type": "element-selected", "element": {"selector": "p"}}, "invalid element-selected"),
        ],
    )
    def test_invalid(self, raw, error):
        with pytest.raises(ChannelError, match=error):
            parse_realm_message(raw)

    def test_controller_messages(self):
        assert isinstance(parse_controller_message({"type": "select-element", "selector": "#a"}), SelectElement)
        assert isinstance(parse_controller_message('{"type": "deselect"}'), Deselect)
        assert RenderDocument(html="<p></p>").model_dump() == {"type": "render", "html": "<p></p>"}


# ---------------------------------------------------------------------------
# Bridge
# ---------------------------------------------------------------------------


class TestRealmBridge:
    def test_select(self, bridge):
        outcome = bridge.handle({"type": "element-selected", "element": _element("#hero > h1")})
        assert outcome.to_realm == []
        notice = outcome.notices[0]
        assert notice["type"] == "selection.changed"
        assert notice["selection"]["address"] == "#hero > h1"
        assert notice["selection"]["snapshot"]["class_name"] == ""
        assert notice["selection"]["snapshot"]["rect"]["height"] == 40
        assert not outcome.document_changed

    def test_select_miss_deselects(self, bridge):
        outcome = bridge.handle({"type": "element-selected", "element": _element("#gone")})
        assert outcome.realm_payloads() == [{"type": "deselect"}]
        assert outcome.notices == [{"type": "selection.cleared", "reason": "address_miss"}]
        assert bridge.session.selection is None

    def test_hover(self, bridge):
        outcome = bridge.handle({"type": "element-hovered", "selector": "#hero"})
        assert outcome.notices == [{"type": "hover.changed", "address": "#hero"}]
        bridge.handle({"type": "element-hovered", "selector": "#gone"})
        assert bridge.session.hover_address is None

    def test_hover_never_mutates(self, bridge):
        before = bridge.session.document
        bridge.handle({"type": "element-hovered", "selector": None})
        assert bridge.session.document == before
        assert not bridge.session.pipeline.can_undo

    def test_text_edit_renders(self, bridge):
        outcome = bridge.handle({"type": "text-edited", "selector": "#hero > h1", "newHtml": "Welcome"})
        assert outcome.document_changed
        assert outcome.notices[0] == {"type": "document.updated", "address": "#hero > h1"}
        payloads = outcome.realm_payloads()
        assert payloads[0]["type"] == "render"
        assert "<h1>Welcome</h1>" in payloads[0]["html"]
        assert "lc-realm-script" in payloads[0]["html"]
        assert "<h1>Welcome</h1>" in bridge.session.document

    def test_text_edit_miss_is_noop(self, bridge):
        outcome = bridge.handle({"type": "text-edited", "selector": "#gone", "newHtml": "x"})
        assert not outcome.document_changed
        assert outcome.to_realm == []
        assert outcome.notices == [{"type": "mutation.noop", "reason": "address_miss", "address": "#gone"}]

    def test_edit_keeps_selection(self, bridge):
        bridge.handle({"type": "element-selected", "element": _element("#hero > h1")})
        outcome = bridge.handle({"type": "text-edited", "selector": "#hero > h1", "newHtml": "Welcome"})
        payloads = outcome.realm_payloads()
        assert payloads[1] == {"type": "select-element", "selector": "#hero > h1"}
        assert outcome.notices[-1]["selection"]["snapshot"]["text_content"] == "Welcome"

    def test_delete_clears_selection(self, bridge):
        bridge.handle({"type": "element-selected", "element": _element("#hero")})
        outcome = bridge.handle({"type": "delete-element", "selector": "#hero"})
        assert outcome.document_changed
        assert [p["type"] for p in outcome.realm_payloads()] == ["render"]
        assert outcome.notices[-1] == {"type": "selection.cleared", "reason": "address_miss"}
        assert bridge.session.selection is None

    def test_section_reordered(self, sections):
        bridge = RealmBridge(EditorSession(sections))
        realm = (
            '<html><body><section id="c" class="lc-selected"><h2>C</h2></section>'
            '<section id="a"><h2>A</h2></section><section id="b"><h2>B</h2></section></body></html>'
        )
        outcome = bridge.handle({"type": "section-reordered", "html": realm})
        assert outcome.document_changed
        document = bridge.session.document
        assert document.index('id="c"') < document.index('id="a"') < document.index('id="b"')
        assert "lc-selected" not in document

    def test_context_menu(self, bridge):
        outcome = bridge.handle(
            {"type": "context-menu", "x": 5, "y": 6, "element": _element("#hero > h1")}
        )
        types = [n["type"] for n in outcome.notices]
        assert types == ["selection.changed", "context-menu.open"]
        menu = outcome.notices[1]
        assert (menu["x"], menu["y"], menu["address"]) == (5, 6, "#hero > h1")
        assert "duplicate" in menu["actions"]

    def test_malformed_message_is_reported(self, bridge):
        outcome = bridge.handle("{oops")
        assert outcome.notices[0]["type"] == "channel.error"
        assert outcome.result is None

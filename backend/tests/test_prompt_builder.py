"""
Tests for prompt builder.

Validates system block assembly and the conversation tail.
"""

from __future__ import annotations

from backend.services.prompt_builder import build_messages, build_prompt, build_system_blocks
from engine.kernel.session import EditorSession
from engine.kernel.types import GlobalComponent


def test_system_blocks_without_globals(page):
    """Instructions block is cached, page block is not."""
    blocks = build_system_blocks(EditorSession(page))

    assert len(blocks) == 2
    assert "Page Editor" in blocks[0]["text"]
    assert "Patch Format" in blocks[0]["text"]
    assert blocks[0]["cache_control"] == {"type": "ephemeral"}
    assert "cache_control" not in blocks[1]
    assert '<section id="hero">' in blocks[1]["text"]


def test_global_notice_when_site_covers_positions(page):
    """Sites with a default header tell the model not to write one."""
    header = GlobalComponent(id="h", html="<header>G</header>", position="header", is_default=True)
    blocks = build_system_blocks(EditorSession(page, components=[header]))

    assert len(blocks) == 3
    assert "Site Header and Footer" in blocks[1]["text"]
    assert blocks[1]["text"].endswith("Covered: header")


def test_selection_included(page):
    """The selected element's address and markup are part of the page context."""
    session = EditorSession(page)
    session.select("#hero > h1")
    prompt = build_prompt(session)

    assert "## Selected Element" in prompt
    assert "`#hero > h1`" in prompt
    assert "<h1>Hello</h1>" in prompt


def test_no_selection_section_by_default(page):
    assert "## Selected Element" not in build_prompt(EditorSession(page))


def test_messages_tail():
    """Only the last turns are kept and the current message is appended."""
    conversation = [{"role": "user", "content": f"turn {i}"} for i in range(8)]
    messages = build_messages(conversation, "now", tail_size=3)

    assert [m["content"] for m in messages] == ["turn 5", "turn 6", "turn 7", "now"]
    assert messages[-1]["role"] == "user"


def test_assistant_turns_use_message_line():
    """Assistant patches are summarized by their MESSAGE line."""
    conversation = [
        {"role": "user", "content": "add pricing"},
        {"role": "assistant", "content": "MESSAGE: Added pricing.\n---\n...", "message": "Added pricing."},
    ]
    messages = build_messages(conversation, "thanks")

    assert messages[1] == {"role": "assistant", "content": "Added pricing."}

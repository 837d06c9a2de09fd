"""
Prompt builder for patch generation.

Assembles system prompts from the shared instructions, the patch format
and the current page. Uses Anthropic cache_control for token efficiency.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from engine.kernel.session import EditorSession

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

# Cache loaded prompts in memory (they don't change at runtime)
_cache: dict[str, str] = {}


def _load(name: str) -> str:
    """Load and cache a prompt file."""
    if name not in _cache:
        path = PROMPTS_DIR / f"{name}.md"
        _cache[name] = path.read_text()
    return _cache[name]


def _page_context(session: EditorSession) -> str:
    lines = ["## Current Page", "```html", session.document, "```"]
    if session.selection is not None:
        lines += [
            "",
            "## Selected Element",
            f"Selector: `{session.selection.address}`",
            "```html",
            session.selection.snapshot.outer_html,
            "```",
        ]
    return "\n".join(lines)


def build_system_blocks(session: EditorSession) -> list[dict[str, Any]]:
    """
    Build system prompt as content blocks for Anthropic API.

    1. Instructions + patch format (cached, same for every turn)
    2. Global component notice (cached, only when the site has globals)
    3. Current page and selection (uncached, changes every mutation)
    """
    blocks: list[dict[str, Any]] = [
        {
            "type": "text",
            "text": _load("system") + "\n\n" + _load("patch_format"),
            "cache_control": {"type": "ephemeral"},
        }
    ]

    resolved = session.resolved_components()
    if resolved.taken:
        blocks.append(
            {
                "type": "text",
                "text": _load("global_components") + "\nCovered: " + ", ".join(sorted(resolved.taken)),
                "cache_control": {"type": "ephemeral"},
            }
        )

    blocks.append({"type": "text", "text": _page_context(session)})
    return blocks


def build_messages(
    conversation: list[dict[str, Any]],
    user_message: str,
    tail_size: int = 5,
) -> list[dict[str, Any]]:
    """
    Build messages array for API call.

    Includes recent conversation tail plus current message. Assistant
    turns are patches; only their MESSAGE line is useful as context.
    """
    messages = []
    for turn in conversation[-tail_size:]:
        role = turn.get("role", "user")
        content = turn.get("content", "")
        if role == "assistant" and turn.get("message"):
            content = turn["message"]
        messages.append({"role": role, "content": content})

    messages.append({"role": "user", "content": user_message})
    return messages


def build_prompt(session: EditorSession) -> str:
    """System prompt as a flat string (for tests and logging)."""
    return "\n\n".join(block["text"] for block in build_system_blocks(session))

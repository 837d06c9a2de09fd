"""
LiveCanvas Kernel — Patch Operation Language

Generation output is a framed text stream:

    MESSAGE: Added a pricing section below the hero.
    ---
    OPERATION: add
    POSITION: after
    TARGET: #hero
    ---
    <section id="pricing">...</section>

Two readers over the same buffer:

- extract_preview() is tolerant and runs on every chunk. It only has to
  produce something worth showing while the stream is still arriving.
- parse_patch() is strict and runs once, on the completed buffer. It
  either returns a Patch or raises PatchParseError.

apply_patch() splices a Patch into a document and reports the spliced
region so previews can show what changed rather than the whole page.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import soupsieve
from bs4 import Tag

from engine.kernel.dom import (
    content_root,
    fragment_root,
    is_content_root,
    normalize,
    parse,
    parse_fragment,
    prepend_child,
    serialize,
)
from engine.kernel.selector import is_address, resolve_in
from engine.kernel.types import (
    ADDRESS_MISS,
    EMPTY_DOCUMENT,
    PATCH_OPERATIONS,
    POSITIONS,
    ROOT_IMMUTABLE,
    Patch,
)

logger = logging.getLogger(__name__)


class PatchParseError(Exception):
    """The completed generation buffer does not follow the patch framing."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------

SECTION_SEPARATOR = "\n---\n"

_SEPARATOR = re.compile(r"\n---\n")
_HEADER_LINE = re.compile(
    r"^(MESSAGE|OPERATION|POSITION|TARGET|SELECTOR|COMPONENT_TYPE|COMPONENT_NAME):[^\n]*(?:\n|$)",
    re.IGNORECASE | re.MULTILINE,
)
_MESSAGE = re.compile(r"MESSAGE:\s*([\s\S]+?)(?=\n---|\n\n|$)")
_OPERATION = re.compile(r"OPERATION:\s*([A-Za-z_]+)", re.IGNORECASE)
_POSITION = re.compile(r"POSITION:\s*(start|end|before|after)\b", re.IGNORECASE)
_TARGET = re.compile(r"TARGET:\s*([^\n]+)", re.IGNORECASE)
_SELECTOR = re.compile(r"SELECTOR:\s*([^\n]+)", re.IGNORECASE)
_COMPONENT_TYPE = re.compile(r"COMPONENT_TYPE:\s*([A-Za-z]+)", re.IGNORECASE)
_COMPONENT_NAME = re.compile(r"COMPONENT_NAME:\s*([^\n]+)", re.IGNORECASE)

_FENCE_OPEN = re.compile(r"^\s*```[a-zA-Z]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")

# Streams that never got framed still show something while arriving
_LOOSE_MARKUP = re.compile(r"<(!DOCTYPE|html|section|div|header|nav|main|footer|article)[\s\S]*$", re.IGNORECASE)
_FULL_DOCUMENT = re.compile(r"^\s*<(!DOCTYPE|html)\b", re.IGNORECASE)


def _strip_fences(text: str) -> str:
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text))


def split_sections(buffer: str) -> tuple[str, str]:
    """
    Split a buffer into (header text, payload).

    With two separators the payload is everything after the second one.
    With fewer separators the payload is the last part minus any header
    lines that ended up in it.
    """
    parts = _SEPARATOR.split(buffer)
    if len(parts) >= 3:
        return SECTION_SEPARATOR.join(parts[:2]), SECTION_SEPARATOR.join(parts[2:])
    leading = parts[0] if len(parts) == 2 else ""
    rest = parts[-1]
    headers = "\n".join(m.group(0).rstrip("\n") for m in _HEADER_LINE.finditer(rest))
    return leading + "\n" + headers, _HEADER_LINE.sub("", rest)


def extract_preview(buffer: str) -> str | None:
    """Best-effort markup from a partial buffer. Never raises."""
    buffer = buffer.replace("\r\n", "\n")
    parts = _SEPARATOR.split(buffer)
    if len(parts) >= 3:
        markup = _strip_fences(SECTION_SEPARATOR.join(parts[2:]))
        return markup.strip() or None

    match = _LOOSE_MARKUP.search(buffer)
    if match:
        return match.group(0)
    return None


def parse_patch(buffer: str) -> Patch:
    """
    Strictly parse a completed buffer.

    Raises:
        PatchParseError: no OPERATION line, unknown operation or component
            type, or an empty payload for an operation that needs one
    """
    text = buffer.replace("\r\n", "\n")
    header, payload = split_sections(text)

    operation_match = _OPERATION.search(header)
    if operation_match is None:
        # A bare full document is accepted as a replacement
        bare = _strip_fences(text).strip()
        if _FULL_DOCUMENT.match(bare) and _HEADER_LINE.search(text) is None:
            logger.info("parse_patch: unframed full document, treating as replace_all")
            return Patch(operation="replace_all", markup=bare)
        raise PatchParseError("missing OPERATION line", raw=buffer)

    operation = operation_match.group(1).lower()
    if operation not in PATCH_OPERATIONS:
        raise PatchParseError(f"unknown operation {operation!r}", raw=buffer)

    message_match = _MESSAGE.search(header)
    position_match = _POSITION.search(header)
    target_match = _TARGET.search(header)
    selector_match = _SELECTOR.search(header)
    component_type_match = _COMPONENT_TYPE.search(header)
    component_name_match = _COMPONENT_NAME.search(header)

    component_type = component_type_match.group(1).lower() if component_type_match else None
    if component_type is not None and component_type not in POSITIONS:
        raise PatchParseError(f"unknown component type {component_type!r}", raw=buffer)

    markup = _HEADER_LINE.sub("", _strip_fences(payload.strip())).strip()
    patch = Patch(
        operation=operation,
        markup=markup,
        message=message_match.group(1).strip() if message_match else "",
        position=position_match.group(1).lower() if position_match else "end",
        target=target_match.group(1).strip() if target_match else None,
        selector=selector_match.group(1).strip() if selector_match else None,
        component_type=component_type,
        component_name=component_name_match.group(1).strip() if component_name_match else None,
    )

    if patch.operation == "delete":
        if not patch.selector:
            raise PatchParseError("delete without SELECTOR", raw=buffer)
    elif not patch.markup:
        raise PatchParseError(f"empty payload for {patch.operation}", raw=buffer)
    return patch


class PatchStream:
    """
    Accumulates a generation stream.

    feed() after every chunk returns the tolerant preview; finish() runs
    the strict parser once on the completed buffer.
    """

    def __init__(self) -> None:
        self.buffer = ""
        self.finished = False

    def feed(self, chunk: str) -> str | None:
        self.buffer += chunk
        return extract_preview(self.buffer)

    def finish(self) -> Patch:
        self.finished = True
        return parse_patch(self.buffer)

    def discard(self) -> None:
        """Drop a partial buffer (cancelled generation)."""
        self.buffer = ""
        self.finished = False


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@dataclass
class PatchApplication:
    document: str
    region: str
    applied: bool
    reason: str | None = None


def locate(root: Tag, selector: str | None) -> Tag | None:
    """
    Find the element a patch names.

    Addresses produced by the selector resolver are tried first, then the
    value is used as a CSS selector (generation output often carries
    selectors like "#hero h1").
    """
    if not selector or not selector.strip():
        return None
    selector = selector.strip()
    if is_address(selector):
        node = resolve_in(root, selector)
        if node is not None:
            return node
    try:
        return root.select_one(selector)
    except soupsieve.SelectorSyntaxError:
        logger.warning("locate: invalid selector %r", selector)
        return None


def _region(pieces: list) -> str:
    return "".join(str(piece) for piece in pieces).strip()


def apply_patch(document: str, patch: Patch) -> PatchApplication:
    """Splice a parsed patch into document. Misses come back as applied=False."""
    if patch.operation == "replace_all":
        if not patch.markup.strip():
            return PatchApplication(document, "", applied=False, reason=EMPTY_DOCUMENT)
        replaced = normalize(patch.markup)
        return PatchApplication(replaced, replaced, applied=True)

    soup = parse(document)
    root = content_root(soup)

    if patch.operation == "add":
        region, reason = _add(root, patch)
    elif patch.operation == "modify":
        region, reason = _modify(root, patch)
    else:
        region, reason = _delete(root, patch)

    if reason is not None:
        logger.info("apply_patch: %s noop (%s)", patch.operation, reason)
        return PatchApplication(document, "", applied=False, reason=reason)
    return PatchApplication(serialize(soup), region, applied=True)


def _add(root: Tag, patch: Patch) -> tuple[str, str | None]:
    pieces = parse_fragment(patch.markup)
    region = _region(pieces)

    if patch.position in ("before", "after") and patch.target:
        target = locate(root, patch.target)
        if target is not None and not is_content_root(target):
            if patch.position == "before":
                for piece in pieces:
                    target.insert_before(piece)
            else:
                for piece in reversed(pieces):
                    target.insert_after(piece)
            return region, None
        logger.info("apply_patch: add target %r not found, appending", patch.target)

    if patch.position == "start":
        for piece in reversed(pieces):
            prepend_child(root, piece)
    else:
        for piece in pieces:
            root.append(piece)
    return region, None


def _modify(root: Tag, patch: Patch) -> tuple[str, str | None]:
    target = locate(root, patch.selector)
    if target is None:
        replacement = fragment_root(patch.markup)
        node_id = replacement.get("id") if replacement is not None else None
        if node_id:
            target = root.find(attrs={"id": node_id})
    if target is None:
        return "", ADDRESS_MISS

    pieces = parse_fragment(patch.markup)
    region = _region(pieces)
    if is_content_root(target):
        target.clear()
        for piece in pieces:
            target.append(piece)
        return region, None

    for piece in pieces:
        target.insert_before(piece)
    target.decompose()
    return region, None


def _delete(root: Tag, patch: Patch) -> tuple[str, str | None]:
    target = locate(root, patch.selector)
    if target is None:
        return "", ADDRESS_MISS
    if is_content_root(target):
        return "", ROOT_IMMUTABLE
    region = str(target)
    target.decompose()
    return region, None


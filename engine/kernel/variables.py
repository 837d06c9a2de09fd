"""
LiveCanvas Kernel — Variable Fields

Turning a piece of a page into a reusable component: the editable values
inside it (headings, link texts and targets, image sources, ...) are
extracted as VariableFields, replaced with mustache placeholders, and the
saved template is re-rendered later with chevron.
"""

from __future__ import annotations

import logging
import re

import chevron
from bs4 import NavigableString, Tag

from engine.kernel.dom import fragment_root
from engine.kernel.selector import address_of, resolve_in
from engine.kernel.types import VariableField

logger = logging.getLogger(__name__)

SCOPE = ":scope"
LABEL_PREVIEW_LENGTH = 35

_LABELS = {
    "h1": "H1 Heading",
    "h2": "H2 Heading",
    "h3": "H3 Heading",
    "h4": "H4 Heading",
    "h5": "H5 Heading",
    "h6": "H6 Heading",
    "p": "Paragraph",
    "span": "Text",
    "a": "Link",
    "button": "Button",
    "img": "Image",
    "input": "Input",
    "textarea": "Text field",
    "label": "Label",
    "li": "List item",
    "td": "Table cell",
    "th": "Table cell",
    "div": "Block",
    "section": "Section",
}

_SKIP_TAGS = {"svg", "script", "style", "noscript"}
_HEADINGS = {"h1", "h2", "h3", "h4", "h5", "h6"}
_TEXT_ATTRIBUTES = {"textContent", "innerHTML"}
_REPEATABLE_ATTRIBUTES = {"href", "src", "alt"}
_BACKGROUND_URL = re.compile(r"url\(['\"]?([^'\")\s]+)['\"]?\)")


class _Extraction:
    """Collects fields in document order with the duplicate rules applied."""

    def __init__(self, root: Tag) -> None:
        self.root = root
        self.fields: list[VariableField] = []
        self.processed: list[Tag] = []
        self.texts: set[str] = set()
        self.index = 0

    def seen(self, node: Tag) -> bool:
        return any(node is p for p in self.processed)

    def add(self, node: Tag, type_: str, attribute: str, value: str, label: str | None = None) -> None:
        if not value:
            return
        if self.seen(node) and attribute not in _REPEATABLE_ATTRIBUTES:
            return
        if attribute in _TEXT_ATTRIBUTES:
            if value in self.texts:
                return
            self.texts.add(value)
        if not self.seen(node):
            self.processed.append(node)

        label = label or _LABELS.get(node.name, node.name.upper())
        preview = value if len(value) <= LABEL_PREVIEW_LENGTH else value[:LABEL_PREVIEW_LENGTH] + "..."
        field_id = f"var_{self.index}"
        self.index += 1
        self.fields.append(
            VariableField(
                id=field_id,
                name=f"{re.sub(r'[^a-z0-9]', '_', label.lower())}_{self.index}",
                label=f'{label} - "{preview}"',
                type=type_,
                default_value=value,
                selector=SCOPE if node is self.root else address_of(node, self.root),
                attribute=attribute,
            )
        )


def _text(node: Tag) -> str:
    return node.get_text().strip()


def extract_variables(markup: str) -> list[VariableField]:
    """Editable values of a fragment, in document order."""
    root = fragment_root(markup)
    if root is None:
        return []

    extraction = _Extraction(root)
    root_id = root.get("id")
    if root_id:
        extraction.fields.append(
            VariableField(
                id=f"var_{extraction.index}",
                name="section_id",
                label="Section ID",
                type="text",
                default_value=root_id,
                selector=SCOPE,
                attribute="id",
            )
        )
        extraction.index += 1

    for node in [root, *root.find_all(True)]:
        if node.name in _SKIP_TAGS or node.find_parent("svg") is not None:
            continue
        _visit(extraction, node)

    return extraction.fields


def _visit(extraction: _Extraction, node: Tag) -> None:
    tag = node.name
    add = extraction.add

    if tag in _HEADINGS or tag == "p":
        add(node, "text", "innerHTML", _text(node))
    elif tag == "span":
        if node.find("span") is None:
            add(node, "text", "textContent", _text(node))
    elif tag == "a":
        add(node, "text", "textContent", _text(node), "Link Text")
        href = node.get("href")
        if href and not href.startswith("javascript:") and not href.startswith("#"):
            add(node, "link", "href", href, "Link URL")
    elif tag in ("button", "label", "td", "th"):
        add(node, "text", "textContent", _text(node))
    elif tag == "img":
        src = node.get("src")
        if src:
            filename = src.split("/")[-1].split("?")[0] or "Image"
            add(node, "image", "src", src, f"Image ({filename[:15]})")
            add(node, "text", "alt", node.get("alt", ""), "Image alt text")
    elif tag in ("input", "textarea"):
        placeholder = node.get("placeholder")
        if placeholder:
            input_name = node.get("name") or node.get("id") or ""
            add(node, "text", "placeholder", placeholder, f"Placeholder ({input_name})" if input_name else "Placeholder")
    elif tag == "li":
        if node.find(["div", "p", "ul", "ol", "table"]) is None:
            add(node, "text", "innerHTML", _text(node))
    elif tag == "div":
        has_blocks = node.find(["div", "section", "article", "p", *_HEADINGS, "ul", "ol", "table"]) is not None
        has_inline = node.find(["span", "a", "button"]) is not None
        text = _text(node)
        if not has_blocks and not has_inline and len(text) < 200:
            add(node, "text", "innerHTML", text, "Text Block")

    match = _BACKGROUND_URL.search(node.get("style", ""))
    if match and not extraction.seen(node):
        add(node, "image", "style.backgroundImage", match.group(1), "Background image")

    aria_label = node.get("aria-label")
    if aria_label and not extraction.seen(node):
        add(node, "text", "aria-label", aria_label, "Aria label")


def parameterize(markup: str, fields: list[VariableField]) -> str:
    """Replace each field's value in markup with its mustache placeholder."""
    root = fragment_root(markup)
    if root is None:
        return markup

    # Resolve everything first, addresses are computed against the untouched fragment
    targets = [(field, root if field.selector == SCOPE else resolve_in(root, field.selector)) for field in fields]
    for field, node in targets:
        if node is None:
            logger.warning("parameterize: %s does not resolve (%r)", field.name, field.selector)
            continue
        placeholder = "{{" + field.name + "}}"
        if field.attribute == "textContent":
            node.clear()
            node.append(NavigableString(placeholder))
        elif field.attribute == "innerHTML":
            node.clear()
            node.append(NavigableString("{{{" + field.name + "}}}"))
        elif field.attribute == "style.backgroundImage":
            node["style"] = _BACKGROUND_URL.sub(f"url({placeholder})", node.get("style", ""))
        elif field.attribute in ("id", "href", "src", "alt", "placeholder") or field.attribute.startswith(
            ("data-", "aria-")
        ):
            node[field.attribute] = placeholder
    return str(root)


def render_component(template: str, fields: list[VariableField], values: dict[str, str] | None = None) -> str:
    """Render a parameterized component; fields without a value keep their default."""
    values = values or {}
    data = {field.name: values.get(field.name, field.default_value) for field in fields}
    return chevron.render(template, data)


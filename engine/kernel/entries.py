"""
LiveCanvas Kernel — Content Placeholders

Pages can embed lists of content entries:

    {{#entries:post limit=4 sort="published_at:desc"}}
      <article><h3>{{title}}</h3></article>
    {{/entries}}

    {{entries:post limit=3}}

The canonical document keeps the placeholder token. Resolution happens
outside the kernel (content service); the resolved markup is substituted
only into realm documents, wrapped in <lc-entries data-token=...> so a
realm round-trip can put the token back (dom.strip_instrumentation).
"""

from __future__ import annotations

import html
import logging
import re
from typing import Any

from engine.kernel.types import EntriesPlaceholder

logger = logging.getLogger(__name__)

ENTRIES_BLOCK_PATTERN = re.compile(
    r"\{\{#entries:([a-z0-9_-]+)(?:\s+([^}]*))?\}\}([\s\S]*?)\{\{/entries\}\}",
    re.IGNORECASE,
)
ENTRIES_SIMPLE_PATTERN = re.compile(r"\{\{entries:([a-z0-9_-]+)(?:\s+([^}]*))?\}\}", re.IGNORECASE)

_OPTION = re.compile(r"""(\w+)=(?:"([^"]*)"|'([^']*)'|(\S+))""")
_INT_OPTIONS = ("limit", "offset")


def parse_options(options: str | None) -> dict[str, Any]:
    """'limit=4 sort="date:desc"' -> {"limit": 4, "sort": "date:desc"}"""
    parsed: dict[str, Any] = {}
    if not options:
        return parsed
    for match in _OPTION.finditer(options):
        key = match.group(1)
        value = next(v for v in match.groups()[1:] if v is not None)
        if key in _INT_OPTIONS:
            try:
                parsed[key] = int(value)
            except ValueError:
                logger.warning("parse_options: %s=%r is not a number, ignored", key, value)
            continue
        parsed[key] = value
    return parsed


def has_placeholders(document: str) -> bool:
    return bool(ENTRIES_BLOCK_PATTERN.search(document) or ENTRIES_SIMPLE_PATTERN.search(document))


def find_placeholders(document: str) -> list[EntriesPlaceholder]:
    """Every placeholder in document order, block form first per position."""
    found: list[tuple[int, EntriesPlaceholder]] = []
    blocks: list[tuple[int, int]] = []

    for match in ENTRIES_BLOCK_PATTERN.finditer(document):
        blocks.append(match.span())
        found.append(
            (
                match.start(),
                EntriesPlaceholder(
                    token=match.group(0),
                    content_type=match.group(1).lower(),
                    options=parse_options(match.group(2)),
                    template=match.group(3),
                ),
            )
        )

    for match in ENTRIES_SIMPLE_PATTERN.finditer(document):
        if any(start <= match.start() < end for start, end in blocks):
            continue
        found.append(
            (
                match.start(),
                EntriesPlaceholder(
                    token=match.group(0),
                    content_type=match.group(1).lower(),
                    options=parse_options(match.group(2)),
                ),
            )
        )

    return [placeholder for _, placeholder in sorted(found, key=lambda item: item[0])]


def wrap_resolved(token: str, markup: str) -> str:
    return f'<lc-entries data-token="{html.escape(token, quote=True)}">{markup}</lc-entries>'


def substitute(document: str, resolved: dict[str, str]) -> str:
    """Replace each resolved token with its wrapped markup. Unresolved tokens stay."""
    for token, markup in resolved.items():
        if token in document:
            document = document.replace(token, wrap_resolved(token, markup))
    return document

"""Tests for content entries placeholders."""

from __future__ import annotations

from engine.kernel.dom import normalize, parse, serialize, strip_instrumentation
from engine.kernel.entries import find_placeholders, has_placeholders, parse_options, substitute, wrap_resolved

BLOCK = '{{#entries:post limit=4 sort="published_at:desc"}}<article><h3>{{title}}</h3></article>{{/entries}}'
SIMPLE = "{{entries:Product limit=3}}"
DOCUMENT = f'<body><div class="posts">{BLOCK}</div><div class="shop">{SIMPLE}</div></body>'


class TestOptions:
    def test_parse_options(self):
        assert parse_options('limit=4 sort="published_at:desc" tag=\'news\'') == {
            "limit": 4,
            "sort": "published_at:desc",
            "tag": "news",
        }

    def test_bad_number_is_dropped(self):
        assert parse_options("limit=many offset=2") == {"offset": 2}

    def test_empty(self):
        assert parse_options(None) == {}


class TestFindPlaceholders:
    def test_block_and_simple(self):
        found = find_placeholders(DOCUMENT)
        assert [p.content_type for p in found] == ["post", "product"]
        block, simple = found
        assert block.token == BLOCK
        assert block.template == "<article><h3>{{title}}</h3></article>"
        assert block.options == {"limit": 4, "sort": "published_at:desc"}
        assert simple.template is None
        assert simple.options == {"limit": 3}

    def test_has_placeholders(self):
        assert has_placeholders(DOCUMENT)
        assert not has_placeholders("<body><p>{{title}}</p></body>")


class TestSubstitute:
    def test_wrap_escapes_token(self):
        wrapped = wrap_resolved(BLOCK, "<article>A</article>")
        assert wrapped.startswith('<lc-entries data-token="{{#entries:post limit=4 sort=&quot;')
        assert wrapped.endswith("<article>A</article></lc-entries>")

    def test_unresolved_tokens_stay(self):
        out = substitute(DOCUMENT, {BLOCK: "<article>First</article>"})
        assert SIMPLE in out
        assert "<article>First</article>" in out

    def test_strip_restores_token(self):
        document = normalize(DOCUMENT)
        realm = substitute(document, {BLOCK: "<article>First</article>", SIMPLE: "<p>Shoes</p>"})
        assert serialize(strip_instrumentation(parse(realm))) == document

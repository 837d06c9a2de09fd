"""Tests for the mutation pipeline — pure operations, noop signalling and history."""

from __future__ import annotations

from engine.kernel.edits import set_attribute, set_text
from engine.kernel.pipeline import DocumentPipeline, EditRejected, History, mutate, transform
from engine.kernel.types import ADDRESS_MISS, EMPTY_DOCUMENT, UNCHANGED

# ---------------------------------------------------------------------------
# mutate / transform
# ---------------------------------------------------------------------------


class TestMutate:
    def test_applied(self, page):
        result = mutate(page, "#hero > h1", set_text("Welcome"))
        assert result.applied
        assert result.reason is None
        assert result.address == "#hero > h1"
        assert "<h1>Welcome</h1>" in result.document

    def test_miss_is_soft_noop(self, page):
        result = mutate(page, "#nope", set_text("x"))
        assert not result.applied
        assert result.reason == ADDRESS_MISS
        assert result.document == page

    def test_same_output_is_unchanged(self, page):
        result = mutate(page, "#hero > h1", set_text("Hello"))
        assert not result.applied
        assert result.reason == UNCHANGED

    def test_rejected_edit(self, page):
        def _reject(node):
            raise EditRejected("nope")

        result = mutate(page, "#hero", _reject)
        assert not result.applied
        assert result.reason == "nope"

    def test_to_dict(self, page):
        result = mutate(page, "#hero", set_attribute("data-x", "1"))
        assert result.to_dict() == {"applied": True, "reason": None, "address": "#hero"}

    def test_transform_reason(self, page):
        result = transform(page, lambda soup, root: "custom")
        assert not result.applied
        assert result.reason == "custom"


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class TestHistory:
    def test_limit_drops_oldest(self):
        history = History(limit=2)
        for doc in ("a", "b", "c"):
            history.record(doc)
        assert len(history) == 2
        assert history.undo("d") == "c"
        assert history.undo("c") == "b"
        assert history.undo("b") is None

    def test_record_clears_redo(self):
        history = History()
        history.record("a")
        history.undo("b")
        assert history.can_redo
        history.record("c")
        assert not history.can_redo


# ---------------------------------------------------------------------------
# DocumentPipeline
# ---------------------------------------------------------------------------


class TestDocumentPipeline:
    def test_document_is_normalized(self, page):
        pipeline = DocumentPipeline(page)
        assert pipeline.document == DocumentPipeline(pipeline.document).document

    def test_commit_and_undo_redo(self, page):
        pipeline = DocumentPipeline(page)
        original = pipeline.document
        result = pipeline.mutate("#hero > h1", set_text("Welcome"))
        assert result.applied
        assert pipeline.document == result.document
        assert pipeline.can_undo

        assert pipeline.undo()
        assert pipeline.document == original
        assert pipeline.can_redo

        assert pipeline.redo()
        assert "Welcome" in pipeline.document
        assert not pipeline.redo()

    def test_noop_does_not_touch_history(self, page):
        pipeline = DocumentPipeline(page)
        pipeline.mutate("#missing", set_text("x"))
        assert not pipeline.can_undo
        assert not pipeline.undo()

    def test_new_commit_clears_redo(self, page):
        pipeline = DocumentPipeline(page)
        pipeline.mutate("#hero > h1", set_text("One"))
        pipeline.undo()
        pipeline.mutate("#hero > p", set_text("Two"))
        assert not pipeline.can_redo

    def test_history_limit(self):
        pipeline = DocumentPipeline("<body><p>0</p></body>", max_history=2)
        for n in range(1, 4):
            pipeline.mutate("p", set_text(str(n)))
        assert pipeline.undo()
        assert pipeline.undo()
        assert not pipeline.undo()
        assert pipeline.document == "<body><p>1</p></body>"

    def test_operations_see_latest_document(self, sections):
        pipeline = DocumentPipeline(sections)
        pipeline.mutate("#b", set_attribute("data-step", "1"))
        result = pipeline.mutate("#b", set_attribute("data-step", "2"))
        assert result.applied
        assert 'data-step="2"' in pipeline.document

    def test_replace(self, page):
        pipeline = DocumentPipeline(page)
        assert pipeline.replace("   ").reason == EMPTY_DOCUMENT
        assert pipeline.replace(page).reason == UNCHANGED
        result = pipeline.replace("<!DOCTYPE html><html><body><p>New</p></body></html>")
        assert result.applied
        assert pipeline.undo()
        assert "Hello" in pipeline.document

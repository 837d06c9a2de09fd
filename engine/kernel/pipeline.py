"""
LiveCanvas Kernel — Document Mutation Pipeline

Every edit, whatever its origin, becomes:

    parse canonical string -> resolve address -> mutate node -> reserialize

mutate() and transform() are pure: they take a document string and return
a MutationResult. They never raise on bad input; a miss or a rejected edit
comes back as applied=False with a reason (the soft noop signal).

DocumentPipeline owns the canonical string and the undo/redo history and
is the only place a result gets committed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from bs4 import BeautifulSoup, Tag

from engine.kernel.dom import content_root, normalize, parse, serialize
from engine.kernel.selector import resolve_in
from engine.kernel.types import ADDRESS_MISS, EMPTY_DOCUMENT, MAX_HISTORY, UNCHANGED

logger = logging.getLogger(__name__)

Mutator = Callable[[Tag], None]
TreeEdit = Callable[[BeautifulSoup, Tag], "str | None"]
Operation = Callable[[str], "MutationResult"]


class EditRejected(Exception):
    """Raised by a mutator to turn its edit into a noop with a reason."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class MutationResult:
    """
    Result of one pipeline operation.
    Never throws — always returns one of these.
    """

    __slots__ = ("document", "applied", "reason", "address")

    def __init__(
        self,
        document: str,
        applied: bool,
        reason: str | None = None,
        address: str | None = None,
    ) -> None:
        self.document = document
        self.applied = applied
        self.reason = reason
        self.address = address

    def to_dict(self) -> dict[str, object]:
        return {"applied": self.applied, "reason": self.reason, "address": self.address}

    def __repr__(self) -> str:  # pragma: no cover
        if self.applied:
            return "MutationResult(applied=True)"
        return f"MutationResult(applied=False, reason={self.reason!r})"


def noop(document: str, reason: str, address: str | None = None) -> MutationResult:
    return MutationResult(document, applied=False, reason=reason, address=address)


# ---------------------------------------------------------------------------
# Pure operations
# ---------------------------------------------------------------------------


def transform(document: str, edit: TreeEdit) -> MutationResult:
    """
    Parse document, let edit change the tree, reserialize.

    edit returns None on success or a noop reason. A tree that serializes
    to the same string is reported as UNCHANGED.
    """
    soup = parse(document)
    root = content_root(soup)
    baseline = serialize(soup)
    try:
        reason = edit(soup, root)
    except EditRejected as e:
        reason = e.reason
    if reason:
        return noop(document, reason)

    updated = serialize(soup)
    if updated == baseline:
        return noop(document, UNCHANGED)
    return MutationResult(updated, applied=True)


def mutate(document: str, address: str, fn: Mutator) -> MutationResult:
    """Resolve address in document and apply fn to the node."""

    def _edit(soup: BeautifulSoup, root: Tag) -> str | None:
        node = resolve_in(root, address)
        if node is None:
            logger.debug("mutate: address %r does not resolve", address)
            return ADDRESS_MISS
        fn(node)
        return None

    result = transform(document, _edit)
    result.address = address
    return result


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class History:
    """Bounded undo/redo stacks of whole-document snapshots."""

    def __init__(self, limit: int = MAX_HISTORY) -> None:
        self.limit = limit
        self._undo: list[str] = []
        self._redo: list[str] = []

    def record(self, previous: str) -> None:
        """Remember the document a commit replaced. Any new commit clears redo."""
        self._undo.append(previous)
        if len(self._undo) > self.limit:
            del self._undo[: len(self._undo) - self.limit]
        self._redo.clear()

    def undo(self, current: str) -> str | None:
        if not self._undo:
            return None
        self._redo.append(current)
        return self._undo.pop()

    def redo(self, current: str) -> str | None:
        if not self._redo:
            return None
        self._undo.append(current)
        return self._redo.pop()

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def __len__(self) -> int:
        return len(self._undo)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class DocumentPipeline:
    """
    Owns the canonical document string.

    Operations always read the latest committed document, so a stale
    address in an operation resolves against current state (and misses
    cleanly) rather than overwriting a newer commit.
    """

    def __init__(self, document: str, max_history: int = MAX_HISTORY) -> None:
        self._document = normalize(document)
        self.history = History(max_history)

    @property
    def document(self) -> str:
        return self._document

    def run(self, operation: Operation) -> MutationResult:
        """Run a pure operation against the latest document and commit it if applied."""
        result = operation(self._document)
        if result.applied:
            self._commit(result.document)
        return result

    def mutate(self, address: str, fn: Mutator) -> MutationResult:
        return self.run(lambda document: mutate(document, address, fn))

    def replace(self, document: str) -> MutationResult:
        """Opaque full-document replacement (realm drags, replace_all)."""
        if not document or not document.strip():
            return noop(self._document, EMPTY_DOCUMENT)
        updated = normalize(document)
        if updated == self._document:
            return noop(self._document, UNCHANGED)
        self._commit(updated)
        return MutationResult(updated, applied=True)

    def undo(self) -> bool:
        previous = self.history.undo(self._document)
        if previous is None:
            return False
        self._document = previous
        return True

    def redo(self) -> bool:
        following = self.history.redo(self._document)
        if following is None:
            return False
        self._document = following
        return True

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def _commit(self, document: str) -> None:
        self.history.record(self._document)
        self._document = document

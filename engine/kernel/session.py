"""
LiveCanvas Kernel — Editor Session

One page being edited. The session owns the canonical document (through
DocumentPipeline), the selection, the site's global components and the
resolved content placeholders, and is the single entry point every edit
source goes through: realm messages, layer drags, generation patches.

After every committed change the selection is re-resolved against the
new document. A selection whose address no longer resolves is cleared,
never left pointing at a stale element.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from engine.kernel import edits, reorder
from engine.kernel.classifier import detect_components
from engine.kernel.components import ResolvedComponents, reconcile, resolve_page_components, strip_inline
from engine.kernel.dom import content_root, parse, snapshot_of
from engine.kernel.entries import find_placeholders
from engine.kernel.layers import LayerDrop, ancestor_ids, apply_layer_drop, build_layers, plan_layer_drop
from engine.kernel.patch import apply_patch
from engine.kernel.pipeline import DocumentPipeline, MutationResult, Mutator, mutate, noop
from engine.kernel.realm import build_realm_document
from engine.kernel.selector import address_of, resolve_in
from engine.kernel.types import (
    ADDRESS_MISS,
    GLOBAL_POSITIONS,
    INVALID_MOVE,
    MAX_HISTORY,
    ROOT_ADDRESS,
    UNCHANGED,
    ComponentCandidate,
    ElementSnapshot,
    EntriesPlaceholder,
    GlobalComponent,
    LayerNode,
    PageComponentSettings,
    Patch,
    PromotionOffer,
    SelectionState,
    VariableField,
)
from engine.kernel.variables import extract_variables, parameterize, render_component

logger = logging.getLogger(__name__)


@dataclass
class PatchOutcome:
    """A generation patch after application and reconciliation."""

    result: MutationResult
    region: str = ""
    stripped: list[str] = field(default_factory=list)
    offers: list[PromotionOffer] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.result.to_dict(),
            "region": self.region,
            "stripped": self.stripped,
            "offers": [offer.to_dict() for offer in self.offers],
        }


class EditorSession:
    """Mutable editing state for one page."""

    def __init__(
        self,
        document: str,
        *,
        session_id: str | None = None,
        page_id: str | None = None,
        site_id: str | None = None,
        components: Iterable[GlobalComponent] = (),
        page_settings: PageComponentSettings | None = None,
        max_history: int = MAX_HISTORY,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.page_id = page_id
        self.site_id = site_id
        self.pipeline = DocumentPipeline(document, max_history=max_history)
        self.components: list[GlobalComponent] = list(components)
        self.page_settings = page_settings or PageComponentSettings()
        self.selection: SelectionState | None = None
        self.hover_address: str | None = None
        self.resolved_entries: dict[str, str] = {}
        self.pending_patch: Patch | None = None
        self.offers: list[PromotionOffer] = []

    @property
    def document(self) -> str:
        return self.pipeline.document

    # -----------------------------------------------------------------------
    # Selection
    # -----------------------------------------------------------------------

    def select(self, address: str, snapshot: ElementSnapshot | None = None) -> SelectionState | None:
        """
        Select the element at address. A miss clears the selection.

        The realm's snapshot is kept for its geometry; everything else is
        recomputed from the canonical tree.
        """
        root = content_root(parse(self.document))
        node = resolve_in(root, address)
        if node is None:
            logger.info("select: %r does not resolve in session %s", address, self.session_id)
            self.selection = None
            return None
        canonical = address_of(node, root)
        fresh = snapshot_of(node, canonical, rect=snapshot.rect if snapshot else None)
        if snapshot is not None:
            fresh.spacing = snapshot.spacing
        self.selection = SelectionState(address=canonical, snapshot=fresh)
        return self.selection

    def clear_selection(self) -> None:
        self.selection = None

    def select_parent(self) -> SelectionState | None:
        if self.selection is None:
            return None
        root = content_root(parse(self.document))
        node = resolve_in(root, self.selection.address)
        if node is None or node is root or node.parent is None:
            return self.selection
        return self.select(address_of(node.parent, root), self.selection.snapshot)

    def hover(self, address: str | None) -> None:
        """Track the hovered element. Purely informational, never mutates."""
        if address is None:
            self.hover_address = None
            return
        self.hover_address = address if resolve_in(content_root(parse(self.document)), address) is not None else None

    def selection_notice(self) -> dict[str, Any]:
        if self.selection is None:
            return {"type": "selection.cleared", "reason": ADDRESS_MISS}
        return {
            "type": "selection.changed",
            "selection": self.selection.to_dict(),
            "expand": ancestor_ids(self.layers(), self.selection.address),
        }

    def _refresh_selection(self) -> None:
        if self.selection is None:
            return
        previous = self.selection
        if self.select(previous.address, previous.snapshot) is None:
            logger.info("selection %r cleared after mutation", previous.address)

    # -----------------------------------------------------------------------
    # Edits
    # -----------------------------------------------------------------------

    def run(self, operation) -> MutationResult:
        result = self.pipeline.run(operation)
        if result.applied:
            self._refresh_selection()
        return result

    def edit(self, address: str, mutator: Mutator) -> MutationResult:
        return self.run(lambda document: mutate(document, address, mutator))

    def set_attribute(self, address: str, name: str, value: str) -> MutationResult:
        return self.edit(address, edits.set_attribute(name, value))

    def remove_attribute(self, address: str, name: str) -> MutationResult:
        return self.edit(address, edits.remove_attribute(name))

    def set_classes(self, address: str, class_name: str) -> MutationResult:
        return self.edit(address, edits.set_classes(class_name))

    def toggle_class(self, address: str, class_name: str) -> MutationResult:
        return self.edit(address, edits.toggle_class(class_name))

    def commit_text(self, address: str, markup: str) -> MutationResult:
        return self.edit(address, edits.set_inner_html(markup))

    def set_text(self, address: str, text: str) -> MutationResult:
        return self.edit(address, edits.set_text(text))

    def swap_image(self, address: str, src: str, alt: str | None = None) -> MutationResult:
        return self.edit(address, edits.swap_image(src, alt))

    def insert(self, address: str, markup: str, place: str = "after") -> MutationResult:
        return self.edit(address, edits.insert_adjacent(markup, place))

    def replace_element(self, address: str, markup: str) -> MutationResult:
        return self.edit(address, edits.replace_with(markup))

    def delete(self, address: str) -> MutationResult:
        return self.run(lambda document: edits.delete(document, address))

    def duplicate(self, address: str) -> MutationResult:
        return self.run(lambda document: edits.duplicate(document, address))

    def move(self, source: str, destination_parent: str, index: int) -> MutationResult:
        return self.run(lambda document: reorder.move(document, source, destination_parent, index))

    def reorder_siblings(self, parent: str, from_index: int, to_index: int) -> MutationResult:
        return self.run(lambda document: reorder.reorder_siblings(document, parent, from_index, to_index))

    def drop_layer(self, active_id: str, over_id: str, expanded: Iterable[str] = ()) -> MutationResult:
        """Plan and apply a layer-tree drag."""
        drop = plan_layer_drop(self.layers(), active_id, over_id, expanded)
        if drop is None:
            return noop(self.document, INVALID_MOVE)
        return self.apply_layer_drop(drop)

    def apply_layer_drop(self, drop: LayerDrop) -> MutationResult:
        return self.run(lambda document: apply_layer_drop(document, drop))

    def accept_realm_document(self, realm_html: str) -> MutationResult:
        return self.run(lambda document: reorder.accept_realm_document(document, realm_html))

    def replace_document(self, document: str) -> MutationResult:
        result = self.pipeline.replace(document)
        if result.applied:
            self._refresh_selection()
        return result

    # -----------------------------------------------------------------------
    # Generation
    # -----------------------------------------------------------------------

    def resolved_components(self) -> ResolvedComponents:
        return resolve_page_components(self.components, self.page_settings)

    def apply_patch(self, patch: Patch) -> PatchOutcome:
        """
        Apply a generation patch, then reconcile it with the site's globals
        before it is committed, so the inline duplicate of a global header
        or footer never reaches history.
        """
        resolved = self.resolved_components()
        names = [component.name for component in self.components]
        outcome = PatchOutcome(result=noop(self.document, ADDRESS_MISS))

        def _operation(document: str) -> MutationResult:
            application = apply_patch(document, patch)
            if not application.applied:
                return noop(document, application.reason or ADDRESS_MISS)
            reconciled = reconcile(application.document, resolved, names)
            outcome.region = application.region
            outcome.stripped = reconciled.stripped
            outcome.offers = reconciled.offers
            if reconciled.document == document:
                return noop(document, UNCHANGED)
            return MutationResult(reconciled.document, applied=True, address=patch.selector or patch.target)

        outcome.result = self.run(_operation)
        self.offers = outcome.offers if outcome.result.applied else self.offers
        return outcome

    def apply_pending(self) -> PatchOutcome | None:
        """Apply the patch a finished generation left behind, if any."""
        if self.pending_patch is None:
            return None
        patch, self.pending_patch = self.pending_patch, None
        return self.apply_patch(patch)

    # -----------------------------------------------------------------------
    # Global components
    # -----------------------------------------------------------------------

    def detect_components(self) -> dict[str, ComponentCandidate | None]:
        return detect_components(self.document)

    def promote(self, component: GlobalComponent) -> MutationResult:
        """
        Register a new global component and remove the inline element it
        was created from.

        The promoted component is what this page renders for its position:
        a default replaces the site's previous default, anything else
        becomes this page's override.
        """
        position = component.position
        if position in GLOBAL_POSITIONS:
            if component.is_default:
                self.components = [
                    replace(existing, is_default=False) if existing.position == position else existing
                    for existing in self.components
                ]
                setattr(self.page_settings, f"{position}_id", None)
            else:
                setattr(self.page_settings, f"{position}_id", component.id)
            setattr(self.page_settings, f"hide_{position}", False)
        self.components.append(component)
        self.offers = [offer for offer in self.offers if offer.position != position]
        if position not in GLOBAL_POSITIONS:
            return noop(self.document, UNCHANGED)
        return self.run(lambda document: _stripped(document, position))

    def extract_variables(self, address: str) -> list[VariableField]:
        node = resolve_in(content_root(parse(self.document)), address)
        if node is None:
            return []
        return extract_variables(str(node))

    def component_template(self, address: str) -> tuple[str, list[VariableField]] | None:
        """The element at address as a reusable mustache template, with its fields."""
        node = resolve_in(content_root(parse(self.document)), address)
        if node is None:
            return None
        markup = str(node)
        fields = extract_variables(markup)
        return parameterize(markup, fields), fields

    def insert_component(
        self,
        address: str,
        template: str,
        fields: list[VariableField],
        values: dict[str, str] | None = None,
        place: str = "after",
    ) -> MutationResult:
        """Render a saved component with values and insert it next to address."""
        return self.insert(address, render_component(template, fields, values), place)

    # -----------------------------------------------------------------------
    # History & views
    # -----------------------------------------------------------------------

    def undo(self) -> bool:
        changed = self.pipeline.undo()
        if changed:
            self._refresh_selection()
        return changed

    def redo(self) -> bool:
        changed = self.pipeline.redo()
        if changed:
            self._refresh_selection()
        return changed

    def layers(self) -> list[LayerNode]:
        return build_layers(self.document)

    def placeholders(self) -> list[EntriesPlaceholder]:
        return find_placeholders(self.document)

    def render_realm(self, design_mode: bool = True) -> str:
        resolved = self.resolved_components()
        return build_realm_document(
            strip_inline(self.document, sorted(resolved.taken)),
            header=resolved.header,
            footer=resolved.footer,
            resolved_entries=self.resolved_entries,
            design_mode=design_mode,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "page_id": self.page_id,
            "site_id": self.site_id,
            "document": self.document,
            "selection": self.selection.to_dict() if self.selection else None,
            "hover_address": self.hover_address,
            "can_undo": self.pipeline.can_undo,
            "can_redo": self.pipeline.can_redo,
            "offers": [offer.to_dict() for offer in self.offers],
        }


def _stripped(document: str, position: str) -> MutationResult:
    updated = strip_inline(document, [position])
    if updated == document:
        return noop(document, UNCHANGED)
    return MutationResult(updated, applied=True, address=ROOT_ADDRESS)


# ---------------------------------------------------------------------------
# Persistence boundary
# ---------------------------------------------------------------------------


def load(document: str, **kwargs: Any) -> EditorSession:
    """Start a session on a persisted document."""
    return EditorSession(document, **kwargs)


def save(session: EditorSession) -> str:
    """
    The document to persist.

    The canonical document never carries instrumentation; positions the
    site covers with a global component are stripped once more so a stale
    inline copy cannot be saved.
    """
    resolved = session.resolved_components()
    return strip_inline(session.document, sorted(resolved.taken))

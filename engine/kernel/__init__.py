"""
LiveCanvas Kernel — the pure editing engine.

Core pieces:
  selector  — element address <-> node (same walk as the realm script)
  pipeline  — parse → mutate → serialize, MutationResult, undo/redo
  patch     — generation patch language (tolerant preview, strict parse, apply)
  reorder   — structural moves and in-realm drag acceptance
  classifier / components — global header/footer detection and reconciliation
  session   — EditorSession tying it together for one page
"""

from engine.kernel.patch import PatchParseError, PatchStream, apply_patch, parse_patch
from engine.kernel.pipeline import DocumentPipeline, MutationResult, mutate, transform
from engine.kernel.selector import address_of, resolve
from engine.kernel.session import EditorSession, load, save

__all__ = [
    "address_of",
    "resolve",
    "mutate",
    "transform",
    "MutationResult",
    "DocumentPipeline",
    "parse_patch",
    "apply_patch",
    "PatchStream",
    "PatchParseError",
    "EditorSession",
    "load",
    "save",
]

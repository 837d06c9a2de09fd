"""
Pydantic models for LiveCanvas.

Request/response shapes of the REST API. Realm channel messages live with
the kernel (engine.kernel.channel).
"""

from backend.models.session import (
    EditRequest,
    LayerDropRequest,
    MoveRequest,
    MutationResponse,
    OpenSessionRequest,
    PatchRequest,
    PatchResponse,
    PromoteRequest,
    ReorderRequest,
    SaveResponse,
    SelectRequest,
    SessionResponse,
)

__all__ = [
    # Session lifecycle
    "OpenSessionRequest",
    "SessionResponse",
    "SaveResponse",
    # Edits
    "EditRequest",
    "SelectRequest",
    "MoveRequest",
    "ReorderRequest",
    "LayerDropRequest",
    "MutationResponse",
    # Generation & components
    "PatchRequest",
    "PatchResponse",
    "PromoteRequest",
]

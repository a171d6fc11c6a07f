"""
API Module - Wire contract for renderers and tools.

Exposes the pydantic models used at the session boundary:
1. Player state payloads (theatre view, truth while lagging, pending events)
2. Animation events and captured mutations
3. Action and acknowledgment requests
4. Stored game documents

Transport is left to the embedding application.
"""

from .schemas import (
    # Requests
    PerformActionRequest,
    AcknowledgeRequest,
    # Responses
    PlayerStateResponse,
    ActionOutcomeResponse,
    SessionSummary,
    SessionStatus,
    # Wire shapes
    AnimationEventModel,
    AnimateCommandModel,
    CapturedMutationModel,
    CreateMutationModel,
    MoveMutationModel,
    SetAttributeMutationModel,
    SetPropertyMutationModel,
    ElementModel,
    StoredGameState,
)

__all__ = [
    # Requests
    "PerformActionRequest",
    "AcknowledgeRequest",
    # Responses
    "PlayerStateResponse",
    "ActionOutcomeResponse",
    "SessionSummary",
    "SessionStatus",
    # Wire shapes
    "AnimationEventModel",
    "AnimateCommandModel",
    "CapturedMutationModel",
    "CreateMutationModel",
    "MoveMutationModel",
    "SetAttributeMutationModel",
    "SetPropertyMutationModel",
    "ElementModel",
    "StoredGameState",
]

"""
Pydantic Schemas - Wire models for the session boundary.

These models define the exact contract between the engine and whatever
renders it (UI, test harness, replay tool). Field names are snake_case in
Python and camelCase on the wire.

Wire shapes:
- AnimationEvent: {id, type, data, timestamp, mutations?}
- ANIMATE command: {type: "ANIMATE", eventType, data}
- Captured mutations: tagged on `type` (CREATE, MOVE, SET_ATTRIBUTE, SET_PROPERTY)
- Stored game documents: the output of Game.to_json(include_history=True)
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for all wire models: camelCase aliases, snake_case attributes."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    def to_wire(self) -> dict[str, Any]:
        """Dump with wire aliases, leaving out fields that were never set."""
        return self.model_dump(by_alias=True, exclude_unset=True)


# =============================================================================
# Enums
# =============================================================================

class SessionStatus(str, Enum):
    """Session status values."""
    ACTIVE = "active"
    GAME_OVER = "game_over"
    ABANDONED = "abandoned"


# =============================================================================
# Captured mutations
# =============================================================================

class CreateMutationModel(WireModel):
    type: Literal["CREATE"] = "CREATE"
    parent_id: int
    element_id: int
    class_name: str
    name: str
    attributes: dict[str, Any] = Field(default_factory=dict)


class MoveMutationModel(WireModel):
    type: Literal["MOVE"] = "MOVE"
    element_id: int
    from_parent_id: int
    to_parent_id: int
    position: Literal["first", "last"] = "last"


class SetAttributeMutationModel(WireModel):
    type: Literal["SET_ATTRIBUTE"] = "SET_ATTRIBUTE"
    element_id: int
    attribute: str
    old_value: Any = None
    new_value: Any = None


class SetPropertyMutationModel(WireModel):
    type: Literal["SET_PROPERTY"] = "SET_PROPERTY"
    property: str
    old_value: Any = None
    new_value: Any = None


CapturedMutationModel = Annotated[
    Union[
        CreateMutationModel,
        MoveMutationModel,
        SetAttributeMutationModel,
        SetPropertyMutationModel,
    ],
    Field(discriminator="type"),
]


# =============================================================================
# Animation events & commands
# =============================================================================

class AnimationEventModel(WireModel):
    """
    One pending animation event.

    `mutations` is absent for narrative-only events and present (possibly
    empty) for events produced by an animate() callback.
    """
    id: int = Field(ge=1)
    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: int
    mutations: Optional[list[CapturedMutationModel]] = None


class AnimateCommandModel(WireModel):
    """The ANIMATE command as it appears in command history."""
    type: Literal["ANIMATE"] = "ANIMATE"
    event_type: str
    data: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Requests
# =============================================================================

class PerformActionRequest(WireModel):
    """Run a registered action for a seat."""
    name: str
    seat: int = Field(ge=1)
    args: dict[str, Any] = Field(default_factory=dict)


class AcknowledgeRequest(WireModel):
    """Acknowledge every pending animation event with id <= up_to_id."""
    seat: int = Field(ge=1)
    up_to_id: int = Field(ge=0)


# =============================================================================
# Responses
# =============================================================================

class PlayerStateResponse(WireModel):
    """
    Per-player payload.

    `view` is what the renderer should draw (the theatre view). While the
    theatre lags, `current_view` carries truth for UI that must act on it
    (legal moves, prompts), and the pending events are listed so the client
    can play and then acknowledge them.
    """
    seat: int
    phase: str
    current_player: Optional[int] = None
    is_current_player: bool = False
    view: dict[str, Any]
    current_view: Optional[dict[str, Any]] = None
    animation_events: Optional[list[AnimationEventModel]] = None
    last_animation_event_id: Optional[int] = None


class ActionOutcomeResponse(WireModel):
    """Result of perform_action at the wire boundary."""
    success: bool
    error: Optional[str] = None
    animation_events: list[AnimationEventModel] = Field(default_factory=list)


class SessionSummary(WireModel):
    """Session info for listings."""
    session_id: str
    status: SessionStatus
    game_class: str
    phase: str
    created_at: float
    last_activity: float
    pending_animation_events: int = 0
    is_theatre_lagging: bool = False


# =============================================================================
# Stored documents
# =============================================================================

class ElementModel(WireModel):
    """One node of an exported element tree."""

    model_config = {"extra": "allow"}

    class_name: str
    id: int
    name: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)
    children: list["ElementModel"] = Field(default_factory=list)


class StoredGameState(ElementModel):
    """
    A stored game document.

    Only the structure is checked here: optional fields may be missing
    (meaning nothing pending and in sync), and unknown top-level keys are
    kept. Command and inverse history entries are parsed by the engine on
    restore.
    """
    phase: str = "setup"
    settings: dict[str, Any] = Field(default_factory=dict)
    messages: list[dict[str, Any]] = Field(default_factory=list)
    current_player: Optional[int] = None
    player_names: list[str] = Field(default_factory=list)
    element_seq: Optional[int] = Field(default=None, ge=1)
    animation_event_seq: Optional[int] = Field(default=None, ge=0)
    animation_events: Optional[list[AnimationEventModel]] = None
    theatre_snapshot: Optional[ElementModel] = None
    command_history: Optional[list[dict[str, Any]]] = None
    inverse_history: Optional[list[Optional[dict[str, Any]]]] = None


ElementModel.model_rebuild()

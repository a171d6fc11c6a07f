"""
Mutation Capture - Observations of state changes during animate().

These are NOT commands. They record what happened inside an animate()
callback so the theatre view can later advance one event at a time.

Mutation Types:
- CreateMutation: An element was created
- MoveMutation: An element moved to a different parent
- SetAttributeMutation: An element attribute changed
- SetPropertyMutation: A custom game property changed

Mutations reference elements only by integer ID, so they stay valid
against a detached JSON snapshot.
"""

from __future__ import annotations
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Union, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from .game import Game

logger = logging.getLogger(__name__)


class MutationType(Enum):
    """Wire tags for captured mutations."""
    CREATE = "CREATE"
    MOVE = "MOVE"
    SET_ATTRIBUTE = "SET_ATTRIBUTE"
    SET_PROPERTY = "SET_PROPERTY"


class NestedCaptureError(RuntimeError):
    """Raised when a capture window is opened while another is active."""


@dataclass
class CreateMutation:
    """An element was created inside the callback."""
    parent_id: int
    element_id: int
    class_name: str
    name: str
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def mutation_type(self) -> MutationType:
        return MutationType.CREATE

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.mutation_type.value,
            "className": self.class_name,
            "name": self.name,
            "parentId": self.parent_id,
            "elementId": self.element_id,
            "attributes": deepcopy(self.attributes),
        }


@dataclass
class MoveMutation:
    """An element was moved to a different parent."""
    element_id: int
    from_parent_id: int
    to_parent_id: int
    position: str = "last"  # "first" or "last"

    @property
    def mutation_type(self) -> MutationType:
        return MutationType.MOVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.mutation_type.value,
            "elementId": self.element_id,
            "fromParentId": self.from_parent_id,
            "toParentId": self.to_parent_id,
            "position": self.position,
        }


@dataclass
class SetAttributeMutation:
    """An element attribute was changed."""
    element_id: int
    attribute: str
    old_value: Any = None
    new_value: Any = None

    @property
    def mutation_type(self) -> MutationType:
        return MutationType.SET_ATTRIBUTE

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.mutation_type.value,
            "elementId": self.element_id,
            "attribute": self.attribute,
            "oldValue": deepcopy(self.old_value),
            "newValue": deepcopy(self.new_value),
        }


@dataclass
class SetPropertyMutation:
    """A custom game property was changed."""
    property: str
    old_value: Any = None
    new_value: Any = None

    @property
    def mutation_type(self) -> MutationType:
        return MutationType.SET_PROPERTY

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.mutation_type.value,
            "property": self.property,
            "oldValue": deepcopy(self.old_value),
            "newValue": deepcopy(self.new_value),
        }


CapturedMutation = Union[CreateMutation, MoveMutation, SetAttributeMutation, SetPropertyMutation]


def parse_mutation(data: dict[str, Any]) -> CapturedMutation:
    """
    Parse a mutation from its dict form.

    Raises ValueError for a missing or unknown type tag.
    """
    mutation_type = data.get("type")
    if not mutation_type:
        raise ValueError("Mutation missing 'type' field")

    try:
        mtype = MutationType(mutation_type)
    except ValueError:
        raise ValueError(f"Unknown mutation type: {mutation_type}")

    if mtype == MutationType.CREATE:
        return CreateMutation(
            parent_id=data["parentId"],
            element_id=data["elementId"],
            class_name=data["className"],
            name=data.get("name", ""),
            attributes=deepcopy(data.get("attributes") or {}),
        )
    elif mtype == MutationType.MOVE:
        return MoveMutation(
            element_id=data["elementId"],
            from_parent_id=data["fromParentId"],
            to_parent_id=data["toParentId"],
            position=data.get("position") or "last",
        )
    elif mtype == MutationType.SET_ATTRIBUTE:
        return SetAttributeMutation(
            element_id=data["elementId"],
            attribute=data["attribute"],
            old_value=deepcopy(data.get("oldValue")),
            new_value=deepcopy(data.get("newValue")),
        )
    else:
        return SetPropertyMutation(
            property=data["property"],
            old_value=deepcopy(data.get("oldValue")),
            new_value=deepcopy(data.get("newValue")),
        )


@dataclass
class MutationCaptureContext:
    """
    Active capture window during an animate() callback.

    Element primitives append to `mutations` while the context is active.
    Custom game properties are compared against `property_baseline` when
    the window closes.
    """
    mutations: list[CapturedMutation] = field(default_factory=list)
    property_baseline: dict[str, Any] = field(default_factory=dict)

    def record(self, mutation: CapturedMutation) -> None:
        self.mutations.append(mutation)

    def diff_properties(self, current: dict[str, Any]) -> list[SetPropertyMutation]:
        """SET_PROPERTY mutations for every property whose value changed."""
        changes = []
        for key, new_value in current.items():
            old_value = self.property_baseline.get(key)
            if key in self.property_baseline and old_value == new_value:
                continue
            changes.append(SetPropertyMutation(
                property=key,
                old_value=deepcopy(old_value),
                new_value=deepcopy(new_value),
            ))
        return changes


def capture_mutations(game: Game, callback: Callable[[], Any]) -> list[CapturedMutation]:
    """
    Run `callback` under a fresh capture context and return what it changed.

    Only one context may be active per game. The context is always cleared,
    and exceptions from the callback propagate unchanged.
    """
    if game.capture_context is not None:
        raise NestedCaptureError(
            "Cannot call game.animate() inside another animate() callback"
        )

    context = MutationCaptureContext(property_baseline=deepcopy(game.custom_properties()))
    game.capture_context = context
    try:
        callback()
    finally:
        game.capture_context = None

    context.mutations.extend(context.diff_properties(game.custom_properties()))
    logger.debug("Captured %d mutation(s)", len(context.mutations))
    return context.mutations

"""
Theatre State - The lagged view of the game.

Truth changes immediately. The theatre view only moves forward when the
consumer acknowledges animation events, so a renderer never sees state
that has not been animated yet.

Two states:
- InSync: no snapshot, theatre reads as truth
- Lagging: a detached JSON snapshot of truth taken before the first
  animate() callback, advanced by replaying acknowledged mutations

The applicators below work on plain element JSON (no Game instances) and
mutate the snapshot in place. A missing target is a silent no-op: theatre
state is narrative, not a ledger.
"""

from __future__ import annotations
from copy import deepcopy
from typing import Any, Callable, Iterable
import logging

from .animation import AnimationEvent
from .mutation_capture import (
    CapturedMutation,
    CreateMutation,
    MoveMutation,
    SetAttributeMutation,
    SetPropertyMutation,
)

logger = logging.getLogger(__name__)

ElementJSON = dict[str, Any]


# =============================================================================
# Tree helpers
# =============================================================================

def find_element_by_id(node: ElementJSON, element_id: int) -> ElementJSON | None:
    """Depth-first search for a node by ID."""
    stack = [node]
    while stack:
        current = stack.pop()
        if current.get("id") == element_id:
            return current
        stack.extend(reversed(current.get("children") or []))
    return None


def remove_element_from_parent(root: ElementJSON, element_id: int) -> ElementJSON | None:
    """
    Find the element's current parent by search, detach it and return it.

    There are no parent back-references in a snapshot; the parent is always
    recomputed.
    """
    stack = [root]
    while stack:
        current = stack.pop()
        children = current.get("children") or []
        for index, child in enumerate(children):
            if child.get("id") == element_id:
                return children.pop(index)
        stack.extend(reversed(children))
    return None


# =============================================================================
# Mutation applicators
# =============================================================================

def apply_move_mutation(snapshot: ElementJSON, mutation: MoveMutation) -> None:
    """
    Move an element to its destination.

    A destination missing from the snapshot means the element left play
    (moved to the pile), so it is removed and not re-added.
    """
    element = remove_element_from_parent(snapshot, mutation.element_id)
    if element is None:
        logger.debug("Theatre move skipped: element %d not found", mutation.element_id)
        return

    destination = find_element_by_id(snapshot, mutation.to_parent_id)
    if destination is None:
        return

    children = destination.setdefault("children", [])
    if mutation.position == "first":
        children.insert(0, element)
    else:
        children.append(element)


def apply_create_mutation(snapshot: ElementJSON, mutation: CreateMutation) -> None:
    parent = find_element_by_id(snapshot, mutation.parent_id)
    if parent is None:
        logger.debug("Theatre create skipped: parent %d not found", mutation.parent_id)
        return

    parent.setdefault("children", []).append({
        "className": mutation.class_name,
        "id": mutation.element_id,
        "name": mutation.name,
        "attributes": deepcopy(mutation.attributes),
        "children": [],
    })


def apply_set_attribute_mutation(snapshot: ElementJSON, mutation: SetAttributeMutation) -> None:
    element = find_element_by_id(snapshot, mutation.element_id)
    if element is None:
        logger.debug("Theatre attribute skipped: element %d not found", mutation.element_id)
        return

    element.setdefault("attributes", {})[mutation.attribute] = deepcopy(mutation.new_value)


def apply_set_property_mutation(snapshot: ElementJSON, mutation: SetPropertyMutation) -> None:
    """Custom game properties live in the root's attributes."""
    snapshot.setdefault("attributes", {})[mutation.property] = deepcopy(mutation.new_value)


def apply_mutation(snapshot: ElementJSON, mutation: CapturedMutation) -> None:
    """Apply a single mutation, dispatching on its type."""
    if isinstance(mutation, MoveMutation):
        apply_move_mutation(snapshot, mutation)
    elif isinstance(mutation, CreateMutation):
        apply_create_mutation(snapshot, mutation)
    elif isinstance(mutation, SetAttributeMutation):
        apply_set_attribute_mutation(snapshot, mutation)
    elif isinstance(mutation, SetPropertyMutation):
        apply_set_property_mutation(snapshot, mutation)
    else:
        raise TypeError(f"Unknown mutation: {type(mutation).__name__}")


def apply_mutations(snapshot: ElementJSON, mutations: Iterable[CapturedMutation]) -> None:
    for mutation in mutations:
        apply_mutation(snapshot, mutation)


# =============================================================================
# Snapshot lifecycle
# =============================================================================

class TheatreState:
    """
    Owns the theatre snapshot for one game.

    The snapshot is taken once per unacknowledged sequence and is only ever
    moved forward by acknowledged events.
    """

    def __init__(self):
        self.snapshot: ElementJSON | None = None

    @property
    def is_lagging(self) -> bool:
        return self.snapshot is not None

    def ensure_baseline(self, export_truth: Callable[[], ElementJSON]) -> bool:
        """
        Take the baseline if none exists.

        `export_truth` must return a detached export; it is only called when
        a new snapshot is needed. Returns True if a snapshot was taken.
        """
        if self.snapshot is not None:
            return False
        self.snapshot = export_truth()
        logger.debug("Theatre snapshot taken")
        return True

    def advance(self, events: Iterable[AnimationEvent]) -> None:
        """Replay acknowledged events' mutations, in ascending event ID."""
        if self.snapshot is None:
            return
        for event in sorted(events, key=lambda e: e.id):
            if event.mutations:
                apply_mutations(self.snapshot, event.mutations)

    def discard(self) -> None:
        if self.snapshot is not None:
            logger.debug("Theatre snapshot discarded, back in sync")
        self.snapshot = None

    def restore(self, snapshot: ElementJSON | None) -> None:
        """Restore a stored snapshot verbatim."""
        self.snapshot = deepcopy(snapshot) if snapshot is not None else None

"""
Animation Events - Ordered, acknowledgeable narrative events.

An animation event is a UI hint: "this happened, show it". Events are
buffered until a consumer acknowledges them. Events created by animate()
with a callback also carry the mutations captured while the callback ran,
which is what advances the theatre view.

Invariants:
- IDs come from a monotonic counter owned by the buffer
- IDs are never reused, including across to_json()/from_json()
- The buffer is cleared at the start of every top-level action
"""

from __future__ import annotations
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Callable
import logging
import time

from .mutation_capture import CapturedMutation, parse_mutation

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class AnimationEvent:
    """
    A single narrative event.

    `mutations` is None for narrative-only events, and a (possibly empty)
    list for events produced by animate() with a callback.
    """
    id: int
    type: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: int = 0
    mutations: list[CapturedMutation] | None = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "id": self.id,
            "type": self.type,
            "data": deepcopy(self.data),
            "timestamp": self.timestamp,
        }
        if self.mutations is not None:
            result["mutations"] = [m.to_dict() for m in self.mutations]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnimationEvent:
        mutations = data.get("mutations")
        return cls(
            id=data["id"],
            type=data["type"],
            data=deepcopy(data.get("data") or {}),
            timestamp=data.get("timestamp", 0),
            mutations=[parse_mutation(m) for m in mutations] if mutations is not None else None,
        )


class AnimationEventBuffer:
    """
    Pending animation events for one game.

    Usage:
        buffer = AnimationEventBuffer()
        event = buffer.emit("combat", {"damage": 5})
        acknowledged = buffer.acknowledge(event.id)
    """

    def __init__(self, clock: Callable[[], int] | None = None):
        self._events: list[AnimationEvent] = []
        self._seq = 0
        self._clock = clock or _now_ms

    def __len__(self) -> int:
        return len(self._events)

    @property
    def pending(self) -> list[AnimationEvent]:
        """Pending events in emission order (copy)."""
        return list(self._events)

    @property
    def last_id(self) -> int:
        """Last issued ID (0 if none were issued yet)."""
        return self._seq

    @property
    def is_empty(self) -> bool:
        return not self._events

    def emit(
        self,
        event_type: str,
        data: dict[str, Any] | None = None,
        mutations: list[CapturedMutation] | None = None,
    ) -> AnimationEvent:
        """Allocate the next ID and append a new event."""
        self._seq += 1
        event = AnimationEvent(
            id=self._seq,
            type=event_type,
            data=dict(data or {}),
            timestamp=self._clock(),
            mutations=mutations,
        )
        self._events.append(event)
        logger.debug("Emitted animation event %d (%s)", event.id, event_type)
        return event

    def clear_for_new_action(self) -> None:
        """Drop every pending event. The ID counter is untouched."""
        if self._events:
            logger.debug("Clearing %d stale animation event(s)", len(self._events))
        self._events.clear()

    def acknowledge(self, up_to_id: int) -> list[AnimationEvent]:
        """
        Remove and return all events with id <= up_to_id, ascending.

        Safe to repeat: acknowledging nothing returns an empty list.
        """
        acknowledged = sorted(
            (e for e in self._events if e.id <= up_to_id),
            key=lambda e: e.id,
        )
        if acknowledged:
            self._events = [e for e in self._events if e.id > up_to_id]
        return acknowledged

    def to_json(self) -> list[dict[str, Any]]:
        return [e.to_dict() for e in self._events]

    def restore(self, events: list[dict[str, Any]], seq: int | None = None) -> None:
        """
        Replace the buffer with serialized events.

        The counter never moves backwards: it ends at the max of the stored
        sequence, the largest restored ID and its current value.
        """
        self._events = [AnimationEvent.from_dict(e) for e in events]
        highest = max((e.id for e in self._events), default=0)
        self._seq = max(self._seq, seq or 0, highest)

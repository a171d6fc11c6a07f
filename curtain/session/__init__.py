"""
Session Module - Manages live game sessions.

A session represents one play-through of a game:
- Created when a host starts a game
- Runs actions for seats and collects their animation events
- Tracks acknowledgments so the theatre view can catch up
- Builds per-player payloads

Sessions are in-memory. stored_state / restore() give the host a single
JSON document to checkpoint wherever it likes.
"""

from .manager import (
    ActionOutcome,
    Session,
    SessionEvent,
    SessionManager,
    SessionState,
)

__all__ = [
    "ActionOutcome",
    "Session",
    "SessionEvent",
    "SessionManager",
    "SessionState",
]

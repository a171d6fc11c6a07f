"""
Session Manager - Creates and manages live game sessions.

LIFECYCLE:
1. Host creates a session for a Game subclass (in-memory only)
2. During play:
   - A seat performs an action; truth updates immediately
   - Animations queue up and the theatre view lags behind truth
   - Each client plays the animations, then acknowledges them
   - The theatre view catches up; once nothing is pending it is truth again
3. Game ends → session closed and dropped from the manager

PERSISTENCE RULES:
- No database: the host decides where stored documents go
- stored_state is a single JSON-safe document (truth, history, pending
  events, theatre snapshot)
- restore() validates a stored document before replacing the live game
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable
import logging
import time
import uuid

from ..api.schemas import (
    ActionOutcomeResponse,
    AnimationEventModel,
    PlayerStateResponse,
    SessionStatus,
    SessionSummary,
    StoredGameState,
)
from ..engine_core.animation import AnimationEvent
from ..engine_core.element import GameElement
from ..engine_core.game import Game, GameOptions
from ..engine_core.visibility import filter_view_for_player

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """State of a game session."""
    ACTIVE = "active"  # Game in progress
    GAME_OVER = "game_over"  # Game reached its finished phase
    ABANDONED = "abandoned"  # Closed before the game finished


class SessionEvent(Enum):
    """What a session listener is being told about."""
    ACTION_PERFORMED = "action_performed"
    ANIMATIONS_ACKNOWLEDGED = "animations_acknowledged"
    RESTORED = "restored"
    ENDED = "ended"


SessionListener = Callable[["Session", SessionEvent], None]


@dataclass
class ActionOutcome:
    """Result of performing an action through a session."""
    success: bool
    error: str | None = None
    result: Any = None
    animation_events: list[AnimationEvent] = field(default_factory=list)

    @classmethod
    def failure(cls, error: str) -> ActionOutcome:
        return cls(success=False, error=error)

    def to_response(self) -> ActionOutcomeResponse:
        """The wire form. `result` is host-side only and is not sent."""
        return ActionOutcomeResponse(
            success=self.success,
            error=self.error,
            animation_events=[
                AnimationEventModel.model_validate(event.to_dict())
                for event in self.animation_events
            ],
        )


@dataclass
class Session:
    """
    One live game.

    Contains:
    - The Game (truth, history, animation buffer, theatre snapshot)
    - Per-seat acknowledgment bookkeeping
    - Listeners notified after actions and acknowledgments
    - Session metadata
    """
    session_id: str
    game: Game
    created_at: float

    state: SessionState = SessionState.ACTIVE
    last_activity: float = 0.0

    # Highest event id each seat has acknowledged
    acknowledged: dict[int, int] = field(default_factory=dict)

    metadata: dict[str, Any] = field(default_factory=dict)
    clock: Callable[[], float] = field(default=time.time, repr=False)
    _listeners: list[SessionListener] = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.last_activity:
            self.last_activity = self.created_at

    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    # =========================================================================
    # Listeners
    # =========================================================================

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            listener(self, event)

    # =========================================================================
    # Play
    # =========================================================================

    def perform_action(self, name: str, seat: int, args: dict[str, Any] | None = None) -> ActionOutcome:
        """
        Run a registered action for a seat.

        Expected failures (inactive session, bad seat, unknown action, a
        rejected element operation) come back as a failed outcome. Anything
        else raised by game code propagates.
        """
        if not self.is_active():
            return ActionOutcome.failure(f"Session is {self.state.value}")
        if not self._valid_seat(seat):
            return ActionOutcome.failure(f"Invalid seat: {seat}")

        try:
            result = self.game.perform_action(name, seat, args)
        except ValueError as e:
            logger.info("Action %r by seat %d failed in session %s: %s", name, seat, self.session_id, e)
            return ActionOutcome.failure(str(e))

        self.last_activity = self.clock()
        if self.game.phase == "finished":
            self.state = SessionState.GAME_OVER
            logger.info("Session %s reached game over", self.session_id)

        outcome = ActionOutcome(
            success=True,
            result=result,
            animation_events=self.game.pending_animation_events,
        )
        self._notify(SessionEvent.ACTION_PERFORMED)
        return outcome

    def acknowledge_animations(self, seat: int, up_to_id: int) -> None:
        """Acknowledge pending events with id <= up_to_id on behalf of a seat."""
        if not self._valid_seat(seat):
            raise ValueError(f"Invalid seat: {seat}")

        self.game.acknowledge_animation_events(up_to_id)
        self.acknowledged[seat] = max(self.acknowledged.get(seat, 0), up_to_id)
        self.last_activity = self.clock()
        self._notify(SessionEvent.ANIMATIONS_ACKNOWLEDGED)

    def build_player_state(self, seat: int) -> PlayerStateResponse:
        """
        Build the payload for one seat.

        `view` is always the theatre view. The truth export and the pending
        events are only included while the theatre lags behind truth. Both
        views are filtered to what the seat may see.
        """
        if not self._valid_seat(seat):
            raise ValueError(f"Invalid seat: {seat}")

        game = self.game
        fields: dict[str, Any] = {
            "seat": seat,
            "phase": game.phase,
            "current_player": game.current_player,
            "is_current_player": game.current_player == seat,
            "view": filter_view_for_player(game.theatre_state(), seat),
        }
        if game.is_theatre_lagging:
            fields["current_view"] = filter_view_for_player(game.to_tree_json(), seat)

        pending = game.pending_animation_events
        if pending:
            fields["animation_events"] = [
                AnimationEventModel.model_validate(event.to_dict()) for event in pending
            ]
            fields["last_animation_event_id"] = pending[-1].id

        return PlayerStateResponse(**fields)

    def summary(self) -> SessionSummary:
        return SessionSummary(
            session_id=self.session_id,
            status=SessionStatus(self.state.value),
            game_class=type(self.game).__name__,
            phase=self.game.phase,
            created_at=self.created_at,
            last_activity=self.last_activity,
            pending_animation_events=len(self.game.pending_animation_events),
            is_theatre_lagging=self.game.is_theatre_lagging,
        )

    # =========================================================================
    # Store / restore
    # =========================================================================

    @property
    def stored_state(self) -> dict[str, Any]:
        """The full game document, including command history."""
        return self.game.to_json(include_history=True)

    def restore(
        self,
        stored: dict[str, Any],
        game_class: type[Game] | None = None,
        classes: Iterable[type[GameElement]] = (),
    ) -> None:
        """
        Replace the live game with a stored document.

        Raises pydantic.ValidationError if the document is malformed; the
        live game is left untouched in that case.
        """
        StoredGameState.model_validate(stored)
        game_class = game_class or type(self.game)
        classes = list(classes) or list(self.game._classes.values())
        self.game = game_class.restore_game(stored, classes=classes, options=self.game.options)
        self.last_activity = self.clock()
        logger.info("Session %s restored from stored state", self.session_id)
        self._notify(SessionEvent.RESTORED)

    def _valid_seat(self, seat: int) -> bool:
        return 1 <= seat <= self.game.player_count


class SessionManager:
    """
    Manages game sessions.

    Responsibilities:
    - Create sessions for Game subclasses
    - Track active sessions
    - Clone sessions (for search or what-if play)
    - Clean up completed or idle sessions

    No persistence - sessions are in-memory only.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._sessions: dict[str, Session] = {}
        self._clock = clock

    def create_session(
        self,
        game_class: type[Game],
        options: GameOptions | None = None,
        classes: Iterable[type[GameElement]] = (),
        setup: Callable[[Game], Any] | None = None,
    ) -> Session:
        """
        Create a new game session.

        Args:
            game_class: Game subclass to instantiate
            options: Player count, names, seed and clock for the game
            classes: Element classes to register for restore
            setup: Optional callable that builds the initial tree

        Returns:
            New active Session
        """
        game = game_class(options)
        for element_cls in classes:
            game.register_element_class(element_cls)
        if setup is not None:
            setup(game)

        return self._register(game)

    def restore_session(
        self,
        stored: dict[str, Any],
        game_class: type[Game],
        classes: Iterable[type[GameElement]] = (),
        options: GameOptions | None = None,
    ) -> Session:
        """Create a session from a stored document (validated first)."""
        StoredGameState.model_validate(stored)
        game = game_class.restore_game(stored, classes=classes, options=options)
        return self._register(game)

    def clone_session(self, session_id: str) -> Session | None:
        """Register an independent copy of a session's game."""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        clone = self._register(session.game.clone())
        clone.metadata["cloned_from"] = session_id
        return clone

    def _register(self, game: Game) -> Session:
        now = self._clock()
        session = Session(
            session_id=str(uuid.uuid4()),
            game=game,
            created_at=now,
            clock=self._clock,
        )
        self._sessions[session.session_id] = session
        logger.info("Created session %s for %s", session.session_id, type(game).__name__)
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        return self._sessions.get(session_id)

    def end_session(self, session_id: str, reason: str = "completed") -> None:
        """
        End a session and drop it.

        The default reason "completed", or a game that already finished,
        ends the session as GAME_OVER. Any other reason ends it as ABANDONED.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return

        if reason == "completed" or session.state == SessionState.GAME_OVER:
            session.state = SessionState.GAME_OVER
        else:
            session.state = SessionState.ABANDONED
        logger.info("Ended session %s (%s)", session_id, reason)
        session._notify(SessionEvent.ENDED)

    def list_active_sessions(self) -> list[str]:
        """List IDs of active sessions."""
        return [
            sid for sid, session in self._sessions.items()
            if session.is_active()
        ]

    def cleanup_stale_sessions(self, max_age_seconds: int = 3600) -> list[str]:
        """
        End sessions that are over or idle for longer than max_age.

        Returns the IDs that were removed.
        """
        current_time = self._clock()
        to_remove = [
            session_id for session_id, session in self._sessions.items()
            if not session.is_active() or current_time - session.last_activity > max_age_seconds
        ]

        for session_id in to_remove:
            self.end_session(session_id, reason="stale")
        return to_remove

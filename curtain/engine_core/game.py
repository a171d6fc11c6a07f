"""
Game - Root of the element tree and owner of the synchronization state.

A Game instance exclusively owns:
- The command history (append-only, with a parallel inverse history)
- The animation event buffer
- The theatre snapshot

Design principles:
- Truth is mutated immediately by commands
- The theatre view lags behind truth until events are acknowledged
- Serializable: to_json() / restore_game() round-trip everything needed for
  checkpoints, hot-reload and search clones
- No module-level state: every game is independent
"""

from __future__ import annotations
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Callable, Iterable
import logging
import random

from .animation import AnimationEvent, AnimationEventBuffer
from .command import Animate, Command, CommandResult, parse_command, parse_commands
from .element import GameElement, PILE_ID
from .executor import execute_command
from .inverse import create_inverse_command
from .mutation_capture import (
    CapturedMutation,
    MutationCaptureContext,
    NestedCaptureError,
    SetPropertyMutation,
    capture_mutations,
)
from .theatre import TheatreState

logger = logging.getLogger(__name__)


class CommandReplayError(RuntimeError):
    """Raised when a command fails while replaying history."""


@dataclass
class GameOptions:
    """
    Configuration for a new game.

    `clock` returns integer milliseconds and stamps animation events;
    tests inject a fixed clock for deterministic output.
    """
    player_count: int = 2
    player_names: list[str] | None = None
    seed: int | str | None = None
    clock: Callable[[], int] | None = None

    def names(self) -> list[str]:
        if self.player_names:
            return list(self.player_names)
        return [f"Player {i + 1}" for i in range(self.player_count)]


# Signature of a registered action: (game, player seat, args) -> anything
ActionFn = Callable[["Game", int, dict[str, Any]], Any]


class Game(GameElement):
    """
    The root element.

    Subclasses declare custom game properties as plain class attributes:

        class ScoreGame(Game):
            score = 0
            round = 1

    Custom properties are copied onto each instance, exported in the root's
    attributes, and captured as SET_PROPERTY mutations inside animate().
    """

    # Instance fields that are engine state, never custom properties
    ENGINE_FIELDS = frozenset({
        "name", "id", "game", "class_name", "options", "phase", "settings",
        "messages", "current_player", "player_count", "player_names",
        "random", "pile", "command_history", "capture_context", "visibility",
    })

    def __init__(self, options: GameOptions | None = None):
        self.options = options or GameOptions()
        self._index: dict[int, GameElement] = {}
        super().__init__(name="game", element_id=0, game=self)
        self._index[self.id] = self

        self.pile = GameElement(name="pile", element_id=PILE_ID, game=self)
        self._index[PILE_ID] = self.pile
        self._next_id = 1

        self.phase = "setup"
        self.settings: dict[str, Any] = {}
        self.messages: list[dict[str, Any]] = []
        self.player_count = self.options.player_count
        self.player_names = self.options.names()
        self.current_player: int | None = 1 if self.player_count > 0 else None
        self.random = random.Random(self.options.seed)

        self.command_history: list[Command] = []
        self._inverse_history: list[Command | None] = []
        self.capture_context: MutationCaptureContext | None = None

        self._classes: dict[str, type[GameElement]] = {}
        self._actions: dict[str, ActionFn] = {}
        self._animation_events = AnimationEventBuffer(clock=self.options.clock)
        self._theatre = TheatreState()

        self._copy_class_defaults()

    def _copy_class_defaults(self) -> None:
        """Copy class-level custom property defaults onto the instance."""
        for cls in reversed(type(self).__mro__):
            if not issubclass(cls, Game) or cls is Game:
                continue
            for key, value in vars(cls).items():
                if self._is_custom_property(key, value) and not isinstance(
                    value, (property, classmethod, staticmethod)
                ):
                    setattr(self, key, deepcopy(value))

    def _is_custom_property(self, key: str, value: Any) -> bool:
        return (
            not key.startswith("_")
            and key not in self.ENGINE_FIELDS
            and not callable(value)
            and not _contains_element(value)
        )

    def custom_properties(self) -> dict[str, Any]:
        """Current custom game properties (live values, not copies)."""
        return {
            key: value for key, value in vars(self).items()
            if self._is_custom_property(key, value)
        }

    # The root's attributes ARE the custom properties
    @property
    def attributes(self) -> dict[str, Any]:
        return self.custom_properties()

    @attributes.setter
    def attributes(self, values: dict[str, Any]) -> None:
        for key, value in values.items():
            setattr(self, key, value)

    # =========================================================================
    # Element registry
    # =========================================================================

    def register_element_class(self, cls: type[GameElement]) -> None:
        self._classes[cls.__name__] = cls

    def get_element_class(self, class_name: str) -> type[GameElement]:
        """Registered class, or GameElement for unknown names."""
        return self._classes.get(class_name, GameElement)

    def get_element_by_id(self, element_id: int) -> GameElement | None:
        """Look up any element, including ones in the pile."""
        return self._index.get(element_id)

    def peek_next_id(self) -> int:
        return self._next_id

    def allocate_id(self) -> int:
        element_id = self._next_id
        self._next_id += 1
        return element_id

    def index_element(self, element: GameElement) -> None:
        """Make an element and its subtree reachable by ID."""
        self._index[element.id] = element
        for child in element._children:
            self.index_element(child)

    def _set_attribute_internal(self, attribute: str, value: Any) -> None:
        """Setting a root attribute sets a custom property."""
        if attribute.startswith("_") or attribute in self.ENGINE_FIELDS:
            raise ValueError(f"Cannot set engine field {attribute!r} as an attribute")

        old_value = getattr(self, attribute, None)
        setattr(self, attribute, value)
        if self.capture_context is not None:
            self.capture_context.property_baseline[attribute] = deepcopy(value)
        self.record_mutation(SetPropertyMutation(
            property=attribute,
            old_value=deepcopy(old_value),
            new_value=deepcopy(value),
        ))

    def _unset_attribute_internal(self, attribute: str) -> None:
        """Unsetting a root attribute deletes the custom property."""
        if attribute.startswith("_") or attribute in self.ENGINE_FIELDS:
            raise ValueError(f"Cannot unset engine field {attribute!r}")

        old_value = self.__dict__.pop(attribute, None)
        if self.capture_context is not None:
            self.capture_context.property_baseline.pop(attribute, None)
        self.record_mutation(SetPropertyMutation(
            property=attribute,
            old_value=deepcopy(old_value),
            new_value=None,
        ))

    def record_mutation(self, mutation: CapturedMutation) -> None:
        """Forward a mutation to the active capture context, if any."""
        if self.capture_context is not None:
            self.capture_context.record(mutation)

    # =========================================================================
    # Command execution
    # =========================================================================

    def execute(self, command: Command) -> CommandResult:
        """
        Execute a command and record it in history.

        The inverse is captured BEFORE executing.
        """
        inverse = create_inverse_command(self, command)
        result = execute_command(self, command)
        if result.success:
            self.command_history.append(command)
            self._inverse_history.append(inverse)
        else:
            logger.debug("Command %s failed: %s", command.command_type.value, result.error)
        return result

    def replay_commands(self, commands: Iterable[Command | dict[str, Any]]) -> None:
        """Replay commands to rebuild state. Inverses are not recomputed."""
        for command in commands:
            if isinstance(command, dict):
                command = parse_command(command)
            result = execute_command(self, command)
            if not result.success:
                raise CommandReplayError(f"Failed to replay command: {result.error}")
            self.command_history.append(command)
            self._inverse_history.append(None)

    def undo_last_command(self) -> bool:
        """
        Undo the last command in history.

        Returns False if history is empty or the last command is not
        invertible.
        """
        if not self.command_history:
            return False

        inverse = self._inverse_history[-1]
        if inverse is None:
            return False

        result = execute_command(self, inverse)
        if result.success:
            self.command_history.pop()
            self._inverse_history.pop()
        return result.success

    def undo_commands(self, count: int) -> bool:
        """Undo several commands, stopping at the first that can't be undone."""
        for _ in range(count):
            if not self.undo_last_command():
                return False
        return True

    # =========================================================================
    # Actions
    # =========================================================================

    def register_action(self, name: str, action: ActionFn) -> None:
        self._actions[name] = action

    def perform_action(self, name: str, player: int, args: dict[str, Any] | None = None) -> Any:
        """
        Run a registered action as a new top-level action.

        The animation buffer is cleared before the action body runs.
        """
        action = self._actions.get(name)
        if action is None:
            raise ValueError(f"Unknown action: {name}")

        self.clear_for_new_action()
        return action(self, player, args or {})

    # =========================================================================
    # Animation events & theatre state
    # =========================================================================

    def animate(
        self,
        event_type: str,
        data: dict[str, Any] | None = None,
        callback: Callable[[], Any] | None = None,
    ) -> AnimationEvent:
        """
        Emit an animation event, optionally running `callback` under capture.

        Without a callback this is a pure narrative event. With one, the
        theatre baseline is taken (if not already lagging), the callback runs
        as ordinary game code, and the event carries every captured mutation.
        The ANIMATE command is recorded before the callback runs, so it stays
        in history even if the callback raises.
        """
        if self.capture_context is not None:
            raise NestedCaptureError(
                "Cannot call game.animate() inside another animate() callback"
            )

        command = Animate(event_type=event_type, data=dict(data or {}))
        if callback is None:
            return self.execute(command).event

        self.command_history.append(command)
        self._inverse_history.append(None)

        took_baseline = self._theatre.ensure_baseline(self.to_tree_json)
        try:
            mutations = capture_mutations(self, callback)
        except Exception:
            if took_baseline and self._animation_events.is_empty:
                self._theatre.discard()
            raise

        return self._animation_events.emit(event_type, command.data, mutations)

    def emit_animation_event(self, event_type: str, data: dict[str, Any] | None = None) -> AnimationEvent:
        """Emit a narrative-only event (no mutations)."""
        if self.capture_context is not None:
            raise NestedCaptureError(
                "Cannot emit an animation event inside an animate() callback"
            )
        return self._animation_events.emit(event_type, data)

    @property
    def pending_animation_events(self) -> list[AnimationEvent]:
        return self._animation_events.pending

    @property
    def animation_event_seq(self) -> int:
        return self._animation_events.last_id

    @property
    def is_theatre_lagging(self) -> bool:
        return self._theatre.is_lagging

    def clear_for_new_action(self) -> None:
        """
        Reset narrative state at the start of a top-level action.

        The theatre snapshot goes too: nothing pending could advance it.
        """
        self._animation_events.clear_for_new_action()
        self._theatre.discard()

    def acknowledge_animation_events(self, up_to_id: int) -> None:
        """
        Acknowledge every pending event with id <= up_to_id.

        Their mutations advance the theatre snapshot in ascending ID order.
        Once nothing is pending the snapshot is discarded.
        """
        acknowledged = self._animation_events.acknowledge(up_to_id)
        if acknowledged:
            logger.debug("Acknowledged %d animation event(s) up to %d", len(acknowledged), up_to_id)
        self._theatre.advance(acknowledged)
        if self._animation_events.is_empty:
            self._theatre.discard()

    def theatre_state(self) -> dict[str, Any]:
        """The theatre view: the snapshot while lagging, otherwise truth."""
        if self._theatre.snapshot is not None:
            return deepcopy(self._theatre.snapshot)
        return self.to_tree_json()

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_tree_json(self) -> dict[str, Any]:
        """Truth export: the element tree plus game-level fields."""
        data = super().to_json()
        data.update({
            "phase": self.phase,
            "settings": deepcopy(self.settings),
            "messages": deepcopy(self.messages),
            "currentPlayer": self.current_player,
            "playerNames": list(self.player_names),
        })
        return data

    def to_json(self, include_history: bool = False) -> dict[str, Any]:
        """
        Serialize the complete game state.

        Optional fields are omitted when empty: `animationEvents` when the
        buffer is empty, `theatreSnapshot` when in sync, `commandHistory`
        unless requested.
        """
        data = self.to_tree_json()
        data["elementSeq"] = self._next_id
        data["animationEventSeq"] = self._animation_events.last_id
        if not self._animation_events.is_empty:
            data["animationEvents"] = self._animation_events.to_json()
        if self._theatre.snapshot is not None:
            data["theatreSnapshot"] = deepcopy(self._theatre.snapshot)
        if include_history:
            data["commandHistory"] = [c.to_dict() for c in self.command_history]
            data["inverseHistory"] = [
                inverse.to_dict() if inverse is not None else None
                for inverse in self._inverse_history
            ]
        return data

    @classmethod
    def restore_game(
        cls,
        data: dict[str, Any],
        classes: Iterable[type[GameElement]] = (),
        options: GameOptions | None = None,
    ) -> Game:
        """
        Create a game from serialized JSON.

        Truth is rebuilt from the tree export; the event buffer, counters and
        theatre snapshot are restored verbatim. Missing optional fields mean
        nothing pending and in sync.
        """
        if options is None:
            names = data.get("playerNames") or []
            options = GameOptions(player_count=len(names), player_names=names or None)

        game = cls(options)
        for element_cls in classes:
            game.register_element_class(element_cls)

        # Drop anything the constructor built; the JSON is authoritative
        game._children = []
        game._index = {game.id: game, PILE_ID: game.pile}
        game.pile._children = []
        for child_data in data.get("children") or []:
            child = GameElement.from_json(child_data, game, game._classes)
            child._parent = game
            game._children.append(child)
            game.index_element(child)

        game.name = data.get("name", game.name)
        game.visibility = deepcopy(data.get("visibility"))
        for key, value in (data.get("attributes") or {}).items():
            setattr(game, key, deepcopy(value))
        game.phase = data.get("phase", "setup")
        game.settings = deepcopy(data.get("settings") or {})
        game.messages = deepcopy(data.get("messages") or [])
        game.current_player = data.get("currentPlayer", game.current_player)

        highest = max((i for i in game._index if i > 0), default=0)
        game._next_id = max(data.get("elementSeq") or 0, highest + 1)

        game.command_history = parse_commands(data.get("commandHistory") or [])
        game._inverse_history = _restore_inverses(data.get("inverseHistory"), len(game.command_history))

        game._animation_events = AnimationEventBuffer(clock=game.options.clock)
        game._animation_events.restore(
            data.get("animationEvents") or [],
            seq=data.get("animationEventSeq"),
        )
        game._theatre = TheatreState()
        game._theatre.restore(data.get("theatreSnapshot"))
        return game

    def clone(self) -> Game:
        """Independent deep copy through the serialize/restore path."""
        clone = type(self).restore_game(
            self.to_json(include_history=True),
            classes=self._classes.values(),
            options=self.options,
        )
        clone.random.setstate(self.random.getstate())
        return clone


def _contains_element(value: Any) -> bool:
    """True if a value is, or holds, a GameElement (these never serialize)."""
    if isinstance(value, GameElement):
        return True
    if isinstance(value, dict):
        return any(_contains_element(k) or _contains_element(v) for k, v in value.items())
    if isinstance(value, (list, tuple, set, frozenset)):
        return any(_contains_element(item) for item in value)
    return False


def _restore_inverses(data: list[dict[str, Any] | None] | None, count: int) -> list[Command | None]:
    """
    Parse a stored inverse history, one entry per history command.

    Documents without one get no inverses, so their history can't be undone.
    """
    if data is None:
        return [None] * count
    if len(data) != count:
        raise ValueError(
            f"inverseHistory has {len(data)} entries but commandHistory has {count}"
        )
    return [parse_command(entry) if entry is not None else None for entry in data]

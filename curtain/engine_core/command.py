"""
Command System - Low-level state mutations for event sourcing.

Commands are imperative, low-level operations that directly modify the
element tree. They are generated when game code calls element methods
(create, put_into, remove, set_attribute) or game.animate().

Commands are:
- Serializable (to_dict / parse_command)
- Logged in the game's command history when they succeed
- Replayable: replaying history from the initial state rebuilds truth
- Invertible, except where noted (see inverse.py)

Command Types:
- CreateElement, CreateMany: Add elements under a parent
- MoveElement, RemoveElement, ReorderChild, Shuffle: Change tree layout
- SetAttribute: Change (or unset) an element attribute
- SetVisibility, AddVisibleTo: Change who may see an element
- SetCurrentPlayer, Message, StartGame, EndGame: Game-level bookkeeping
- Animate: Emit a narrative event, no effect on truth
"""

from __future__ import annotations
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from .animation import AnimationEvent


class CommandType(Enum):
    """Wire tags for commands."""
    CREATE = "CREATE"
    CREATE_MANY = "CREATE_MANY"
    MOVE = "MOVE"
    REMOVE = "REMOVE"
    SHUFFLE = "SHUFFLE"
    SET_ATTRIBUTE = "SET_ATTRIBUTE"
    SET_VISIBILITY = "SET_VISIBILITY"
    ADD_VISIBLE_TO = "ADD_VISIBLE_TO"
    REORDER_CHILD = "REORDER_CHILD"
    SET_CURRENT_PLAYER = "SET_CURRENT_PLAYER"
    MESSAGE = "MESSAGE"
    START_GAME = "START_GAME"
    END_GAME = "END_GAME"
    ANIMATE = "ANIMATE"


class UnknownCommandError(LookupError):
    """Raised when a command tag has no executor. Always a programming error."""


@dataclass
class CreateElement:
    """Create a new element under a parent."""
    class_name: str
    name: str
    parent_id: int
    attributes: dict[str, Any] | None = None

    @property
    def command_type(self) -> CommandType:
        return CommandType.CREATE

    def to_dict(self) -> dict[str, Any]:
        data = {
            "type": self.command_type.value,
            "className": self.class_name,
            "name": self.name,
            "parentId": self.parent_id,
        }
        if self.attributes is not None:
            data["attributes"] = deepcopy(self.attributes)
        return data


@dataclass
class CreateMany:
    """Create `count` elements at once, with per-index attributes."""
    class_name: str
    name: str
    parent_id: int
    count: int
    attributes_list: list[dict[str, Any]] | None = None

    @property
    def command_type(self) -> CommandType:
        return CommandType.CREATE_MANY

    def to_dict(self) -> dict[str, Any]:
        data = {
            "type": self.command_type.value,
            "className": self.class_name,
            "name": self.name,
            "parentId": self.parent_id,
            "count": self.count,
        }
        if self.attributes_list is not None:
            data["attributesList"] = deepcopy(self.attributes_list)
        return data


@dataclass
class MoveElement:
    """Move an element to a new parent."""
    element_id: int
    destination_id: int
    position: str = "last"  # "first" or "last"

    @property
    def command_type(self) -> CommandType:
        return CommandType.MOVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.command_type.value,
            "elementId": self.element_id,
            "destinationId": self.destination_id,
            "position": self.position,
        }


@dataclass
class RemoveElement:
    """Remove an element from play (move it to the pile)."""
    element_id: int

    @property
    def command_type(self) -> CommandType:
        return CommandType.REMOVE

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.command_type.value, "elementId": self.element_id}


@dataclass
class Shuffle:
    """Shuffle the children of an element with the game's seeded RNG."""
    space_id: int

    @property
    def command_type(self) -> CommandType:
        return CommandType.SHUFFLE

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.command_type.value, "spaceId": self.space_id}


@dataclass
class SetAttribute:
    """Set an attribute on an element. `unset` removes the key instead."""
    element_id: int
    attribute: str
    value: Any = None
    unset: bool = False

    @property
    def command_type(self) -> CommandType:
        return CommandType.SET_ATTRIBUTE

    def to_dict(self) -> dict[str, Any]:
        data = {
            "type": self.command_type.value,
            "elementId": self.element_id,
            "attribute": self.attribute,
            "value": deepcopy(self.value),
        }
        if self.unset:
            data["unset"] = True
        return data


@dataclass
class SetVisibility:
    """
    Set who may see an element.

    `visibility` is a mode name ("all", "owner", "hidden", "count-only",
    "unordered"), a config dict {mode, addPlayers?, exceptPlayers?}, or
    None to drop the explicit setting and inherit from the parent again.
    """
    element_id: int
    visibility: str | dict[str, Any] | None = None

    @property
    def command_type(self) -> CommandType:
        return CommandType.SET_VISIBILITY

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.command_type.value,
            "elementId": self.element_id,
            "visibility": deepcopy(self.visibility),
        }


@dataclass
class AddVisibleTo:
    """Let extra player seats see an element."""
    element_id: int
    players: list[int] = field(default_factory=list)

    @property
    def command_type(self) -> CommandType:
        return CommandType.ADD_VISIBLE_TO

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.command_type.value,
            "elementId": self.element_id,
            "players": list(self.players),
        }


@dataclass
class ReorderChild:
    """Move an element to a given index within its current parent."""
    element_id: int
    target_index: int

    @property
    def command_type(self) -> CommandType:
        return CommandType.REORDER_CHILD

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.command_type.value,
            "elementId": self.element_id,
            "targetIndex": self.target_index,
        }


@dataclass
class SetCurrentPlayer:
    """Set the current player seat."""
    player_position: int

    @property
    def command_type(self) -> CommandType:
        return CommandType.SET_CURRENT_PLAYER

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.command_type.value, "playerPosition": self.player_position}


@dataclass
class Message:
    """Add a message to the game log."""
    text: str
    data: dict[str, Any] | None = None

    @property
    def command_type(self) -> CommandType:
        return CommandType.MESSAGE

    def to_dict(self) -> dict[str, Any]:
        result = {"type": self.command_type.value, "text": self.text}
        if self.data is not None:
            result["data"] = deepcopy(self.data)
        return result


@dataclass
class StartGame:
    """Move the game out of setup."""

    @property
    def command_type(self) -> CommandType:
        return CommandType.START_GAME

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.command_type.value}


@dataclass
class EndGame:
    """Finish the game, optionally recording winners."""
    winners: list[int] | None = None

    @property
    def command_type(self) -> CommandType:
        return CommandType.END_GAME

    def to_dict(self) -> dict[str, Any]:
        data = {"type": self.command_type.value}
        if self.winners is not None:
            data["winners"] = list(self.winners)
        return data


@dataclass
class Animate:
    """
    Emit a narrative animation event.

    Has no effect on truth. The payload is opaque to the engine.
    """
    event_type: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def command_type(self) -> CommandType:
        return CommandType.ANIMATE

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.command_type.value,
            "eventType": self.event_type,
            "data": deepcopy(self.data),
        }


# Union type for all commands
Command = Union[
    CreateElement, CreateMany, MoveElement, RemoveElement, Shuffle, SetAttribute,
    SetVisibility, AddVisibleTo, ReorderChild, SetCurrentPlayer, Message, StartGame, EndGame, Animate,
]


def parse_command(data: dict[str, Any]) -> Command:
    """
    Parse a command from a dictionary.

    Raises:
        ValueError: If the type tag or a required field is missing
        UnknownCommandError: If the type tag is not a known command
    """
    command_type = data.get("type")
    if not command_type:
        raise ValueError("Command missing 'type' field")

    try:
        ctype = CommandType(command_type)
    except ValueError:
        raise UnknownCommandError(f"Unknown command type: {command_type}")

    try:
        if ctype == CommandType.CREATE:
            return CreateElement(
                class_name=data["className"],
                name=data["name"],
                parent_id=data["parentId"],
                attributes=deepcopy(data.get("attributes")),
            )
        elif ctype == CommandType.CREATE_MANY:
            return CreateMany(
                class_name=data["className"],
                name=data["name"],
                parent_id=data["parentId"],
                count=data["count"],
                attributes_list=deepcopy(data.get("attributesList")),
            )
        elif ctype == CommandType.MOVE:
            return MoveElement(
                element_id=data["elementId"],
                destination_id=data["destinationId"],
                position=data.get("position") or "last",
            )
        elif ctype == CommandType.REMOVE:
            return RemoveElement(element_id=data["elementId"])
        elif ctype == CommandType.SHUFFLE:
            return Shuffle(space_id=data["spaceId"])
        elif ctype == CommandType.SET_ATTRIBUTE:
            return SetAttribute(
                element_id=data["elementId"],
                attribute=data["attribute"],
                value=deepcopy(data.get("value")),
                unset=bool(data.get("unset", False)),
            )
        elif ctype == CommandType.SET_VISIBILITY:
            return SetVisibility(
                element_id=data["elementId"],
                visibility=deepcopy(data.get("visibility")),
            )
        elif ctype == CommandType.ADD_VISIBLE_TO:
            return AddVisibleTo(element_id=data["elementId"], players=list(data["players"]))
        elif ctype == CommandType.REORDER_CHILD:
            return ReorderChild(
                element_id=data["elementId"],
                target_index=data["targetIndex"],
            )
        elif ctype == CommandType.SET_CURRENT_PLAYER:
            return SetCurrentPlayer(player_position=data["playerPosition"])
        elif ctype == CommandType.MESSAGE:
            return Message(text=data["text"], data=deepcopy(data.get("data")))
        elif ctype == CommandType.START_GAME:
            return StartGame()
        elif ctype == CommandType.END_GAME:
            return EndGame(winners=data.get("winners"))
        else:
            return Animate(
                event_type=data["eventType"],
                data=deepcopy(data.get("data") or {}),
            )
    except KeyError as e:
        raise ValueError(f"{command_type} command missing field {e}")


def parse_commands(data: list[dict[str, Any]]) -> list[Command]:
    """Parse a list of commands from dictionaries."""
    return [parse_command(d) for d in data]


@dataclass
class CommandResult:
    """
    Result of executing a command.

    Failures are expected outcomes (missing element, bad index) and are
    reported here rather than raised.
    """
    success: bool
    error: str | None = None

    # Set when the command emitted an animation event
    event: AnimationEvent | None = None

    @classmethod
    def failure(cls, error: str) -> CommandResult:
        return cls(success=False, error=error)

    @classmethod
    def ok(cls, event: AnimationEvent | None = None) -> CommandResult:
        return cls(success=True, event=event)

"""
Executor - Applies commands to the live element tree.

The executor is the single point of truth mutation:
- Dispatches on the command's type to a handler
- Returns CommandResult with success/failure
- Never records history (Game.execute does that)

An unknown command type is a programming error and raises
UnknownCommandError. Expected failures (missing element, bad index)
are returned as CommandResult.failure.
"""

from __future__ import annotations
from typing import Callable, TYPE_CHECKING

from .command import (
    AddVisibleTo,
    Animate,
    Command,
    CommandResult,
    CommandType,
    CreateElement,
    CreateMany,
    EndGame,
    Message,
    MoveElement,
    ReorderChild,
    RemoveElement,
    SetAttribute,
    SetCurrentPlayer,
    SetVisibility,
    Shuffle,
    StartGame,
    UnknownCommandError,
)
from .visibility import normalize_visibility

if TYPE_CHECKING:
    from .game import Game


def execute_command(game: Game, command: Command) -> CommandResult:
    """Execute a command against the game's truth tree."""
    handler = _get_handler(command)
    return handler(game, command)


def _get_handler(command: Command) -> Callable[[Game, Command], CommandResult]:
    command_type = getattr(command, "command_type", None)
    handler = _HANDLERS.get(command_type)
    if handler is None:
        raise UnknownCommandError(f"No executor for command: {command!r}")
    return handler


def _execute_create(game: Game, command: CreateElement) -> CommandResult:
    parent = game.get_element_by_id(command.parent_id)
    if parent is None:
        return CommandResult.failure(f"Parent element not found: {command.parent_id}")

    element_cls = game.get_element_class(command.class_name)
    parent._create_internal(
        element_cls,
        command.name,
        command.attributes,
        class_name=command.class_name,
    )
    return CommandResult.ok()


def _execute_create_many(game: Game, command: CreateMany) -> CommandResult:
    parent = game.get_element_by_id(command.parent_id)
    if parent is None:
        return CommandResult.failure(f"Parent element not found: {command.parent_id}")

    element_cls = game.get_element_class(command.class_name)
    attributes_list = command.attributes_list or []
    for i in range(command.count):
        attributes = attributes_list[i] if i < len(attributes_list) else None
        parent._create_internal(element_cls, command.name, attributes, class_name=command.class_name)
    return CommandResult.ok()


def _execute_move(game: Game, command: MoveElement) -> CommandResult:
    element = game.get_element_by_id(command.element_id)
    if element is None or element is game or element is game.pile:
        return CommandResult.failure(f"Element not found: {command.element_id}")

    destination = game.get_element_by_id(command.destination_id)
    if destination is None:
        return CommandResult.failure(f"Destination not found: {command.destination_id}")

    if destination is element or destination in element.all():
        return CommandResult.failure(f"Cannot move {element!r} into its own subtree")

    element._move_internal(destination, command.position)
    return CommandResult.ok()


def _execute_remove(game: Game, command: RemoveElement) -> CommandResult:
    element = game.get_element_by_id(command.element_id)
    if element is None or element is game or element is game.pile:
        return CommandResult.failure(f"Element not found: {command.element_id}")

    element._move_internal(game.pile)
    return CommandResult.ok()


def _execute_shuffle(game: Game, command: Shuffle) -> CommandResult:
    space = game.get_element_by_id(command.space_id)
    if space is None:
        return CommandResult.failure(f"Space not found: {command.space_id}")

    game.random.shuffle(space._children)
    return CommandResult.ok()


def _execute_set_attribute(game: Game, command: SetAttribute) -> CommandResult:
    element = game.get_element_by_id(command.element_id)
    if element is None:
        return CommandResult.failure(f"Element not found: {command.element_id}")

    try:
        if command.unset:
            element._unset_attribute_internal(command.attribute)
        else:
            element._set_attribute_internal(command.attribute, command.value)
    except ValueError as e:
        return CommandResult.failure(str(e))
    return CommandResult.ok()


def _execute_set_visibility(game: Game, command: SetVisibility) -> CommandResult:
    element = game.get_element_by_id(command.element_id)
    if element is None or element is game.pile:
        return CommandResult.failure(f"Element not found: {command.element_id}")

    try:
        visibility = normalize_visibility(command.visibility)
    except ValueError as e:
        return CommandResult.failure(str(e))

    element._set_visibility_internal(visibility)
    return CommandResult.ok()


def _execute_add_visible_to(game: Game, command: AddVisibleTo) -> CommandResult:
    element = game.get_element_by_id(command.element_id)
    if element is None or element is game.pile:
        return CommandResult.failure(f"Element not found: {command.element_id}")

    visibility = dict(element.visibility or {"mode": "all"})
    visibility["addPlayers"] = list(visibility.get("addPlayers", [])) + list(command.players)
    try:
        visibility = normalize_visibility(visibility)
    except ValueError as e:
        return CommandResult.failure(str(e))

    element._set_visibility_internal(visibility)
    return CommandResult.ok()


def _execute_reorder_child(game: Game, command: ReorderChild) -> CommandResult:
    element = game.get_element_by_id(command.element_id)
    if element is None:
        return CommandResult.failure(f"Element not found: {command.element_id}")

    parent = element.parent
    if parent is None:
        return CommandResult.failure("Element has no parent")

    children = parent._children
    if command.target_index < 0 or command.target_index >= len(children):
        return CommandResult.failure(f"Invalid target index: {command.target_index}")

    children.remove(element)
    children.insert(command.target_index, element)
    return CommandResult.ok()


def _execute_set_current_player(game: Game, command: SetCurrentPlayer) -> CommandResult:
    if not 1 <= command.player_position <= game.player_count:
        return CommandResult.failure(f"Invalid player position: {command.player_position}")

    game.current_player = command.player_position
    return CommandResult.ok()


def _execute_message(game: Game, command: Message) -> CommandResult:
    entry = {"text": command.text}
    if command.data is not None:
        entry["data"] = dict(command.data)
    game.messages.append(entry)
    return CommandResult.ok()


def _execute_start_game(game: Game, command: StartGame) -> CommandResult:
    if game.phase != "setup":
        return CommandResult.failure("Game has already started")
    game.phase = "started"
    return CommandResult.ok()


def _execute_end_game(game: Game, command: EndGame) -> CommandResult:
    game.phase = "finished"
    if command.winners is not None:
        game.settings["winners"] = list(command.winners)
    return CommandResult.ok()


def _execute_animate(game: Game, command: Animate) -> CommandResult:
    event = game.emit_animation_event(command.event_type, command.data)
    return CommandResult.ok(event=event)


_HANDLERS: dict[CommandType, Callable[[Game, Command], CommandResult]] = {
    CommandType.CREATE: _execute_create,
    CommandType.CREATE_MANY: _execute_create_many,
    CommandType.MOVE: _execute_move,
    CommandType.REMOVE: _execute_remove,
    CommandType.SHUFFLE: _execute_shuffle,
    CommandType.SET_ATTRIBUTE: _execute_set_attribute,
    CommandType.SET_VISIBILITY: _execute_set_visibility,
    CommandType.ADD_VISIBLE_TO: _execute_add_visible_to,
    CommandType.REORDER_CHILD: _execute_reorder_child,
    CommandType.SET_CURRENT_PLAYER: _execute_set_current_player,
    CommandType.MESSAGE: _execute_message,
    CommandType.START_GAME: _execute_start_game,
    CommandType.END_GAME: _execute_end_game,
    CommandType.ANIMATE: _execute_animate,
}

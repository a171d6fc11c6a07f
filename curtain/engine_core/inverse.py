"""
Inverse Commands - Undo support for state rollback.

create_inverse_command() must be called BEFORE the command executes,
since it reads the current state to know how to put it back.

Not invertible (returns None):
- CREATE, CREATE_MANY: removal would still leave the element in the pile
- SHUFFLE: random
- MESSAGE, START_GAME, END_GAME: log/lifecycle bookkeeping
- ANIMATE: narrative events are UI hints, not state
"""

from __future__ import annotations
from copy import deepcopy
from typing import TYPE_CHECKING

from .command import (
    Command,
    CommandType,
    MoveElement,
    ReorderChild,
    SetAttribute,
    SetCurrentPlayer,
    SetVisibility,
    UnknownCommandError,
)

if TYPE_CHECKING:
    from .game import Game


_NOT_INVERTIBLE = {
    CommandType.CREATE,
    CommandType.CREATE_MANY,
    CommandType.SHUFFLE,
    CommandType.MESSAGE,
    CommandType.START_GAME,
    CommandType.END_GAME,
    CommandType.ANIMATE,
}


def create_inverse_command(game: Game, command: Command) -> Command | None:
    """
    Return a command that undoes `command`, or None if it can't be undone.

    Example:
        inverse = create_inverse_command(game, move)
        game.execute(move)
        # later
        if inverse:
            execute_command(game, inverse)
    """
    command_type = getattr(command, "command_type", None)
    if command_type in _NOT_INVERTIBLE:
        return None
    if command_type in (CommandType.MOVE, CommandType.REMOVE):
        return _move_back(game, command.element_id)
    if command_type == CommandType.SET_ATTRIBUTE:
        return _set_attribute_inverse(game, command)
    if command_type in (CommandType.SET_VISIBILITY, CommandType.ADD_VISIBLE_TO):
        return _visibility_inverse(game, command.element_id)
    if command_type == CommandType.REORDER_CHILD:
        return _reorder_child_inverse(game, command)
    if command_type == CommandType.SET_CURRENT_PLAYER:
        if game.current_player is None:
            return None
        return SetCurrentPlayer(player_position=game.current_player)
    raise UnknownCommandError(f"No inverse rule for command: {command!r}")


def _move_back(game: Game, element_id: int) -> MoveElement | None:
    """MOVE back to the current parent, at the same end it is at now."""
    element = game.get_element_by_id(element_id)
    if element is None or element.parent is None:
        return None

    siblings = element.parent._children
    return MoveElement(
        element_id=element_id,
        destination_id=element.parent.id,
        position="first" if siblings.index(element) == 0 else "last",
    )


def _set_attribute_inverse(game: Game, command: SetAttribute) -> SetAttribute | None:
    element = game.get_element_by_id(command.element_id)
    if element is None:
        return None

    if command.attribute not in element.attributes:
        return SetAttribute(element_id=command.element_id, attribute=command.attribute, unset=True)
    return SetAttribute(
        element_id=command.element_id,
        attribute=command.attribute,
        value=deepcopy(element.attributes.get(command.attribute)),
    )


def _visibility_inverse(game: Game, element_id: int) -> SetVisibility | None:
    """Restore the explicit setting, or None to go back to inheriting."""
    element = game.get_element_by_id(element_id)
    if element is None:
        return None
    return SetVisibility(element_id=element_id, visibility=deepcopy(element.visibility))


def _reorder_child_inverse(game: Game, command: ReorderChild) -> ReorderChild | None:
    element = game.get_element_by_id(command.element_id)
    if element is None or element.parent is None:
        return None

    return ReorderChild(
        element_id=command.element_id,
        target_index=element.parent._children.index(element),
    )

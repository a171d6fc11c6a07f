"""
Engine Core - Truth/theatre state synchronization.

The engine core:
1. Holds the truth element tree (Game + GameElement)
2. Applies commands and records them in history
3. Captures mutations made inside game.animate() callbacks
4. Buffers animation events until they are acknowledged
. Filters exported views down to what each player seat may see
"""

from .element import GameElement, PILE_ID
from .command import (
    Command,
    CommandType,
    CommandResult,
    CreateElement,
    CreateMany,
    MoveElement,
    RemoveElement,
    Shuffle,
    SetAttribute,
    SetVisibility,
    AddVisibleTo,
    ReorderChild,
    SetCurrentPlayer,
    Message,
    StartGame,
    EndGame,
    Animate,
    UnknownCommandError,
    parse_command,
    parse_commands,
)
from .executor import execute_command
from .inverse import create_inverse_command
from .mutation_capture import (
    CapturedMutation,
    CreateMutation,
    MoveMutation,
    SetAttributeMutation,
    SetPropertyMutation,
    MutationCaptureContext,
    NestedCaptureError,
    capture_mutations,
    parse_mutation,
)
from .animation import AnimationEvent, AnimationEventBuffer
from .theatre import TheatreState, apply_mutation, apply_mutations
from .visibility import VISIBILITY_MODES, can_player_see, filter_view_for_player, normalize_visibility
from .game import Game, GameOptions, CommandReplayError

__all__ = [
    "GameElement",
    "PILE_ID",
    "Command",
    "CommandType",
    "CommandResult",
    "CreateElement",
    "CreateMany",
    "MoveElement",
    "RemoveElement",
    "Shuffle",
    "SetAttribute",
    "SetVisibility",
    "AddVisibleTo",
    "ReorderChild",
    "SetCurrentPlayer",
    "Message",
    "StartGame",
    "EndGame",
    "Animate",
    "UnknownCommandError",
    "parse_command",
    "parse_commands",
    "execute_command",
    "create_inverse_command",
    "CapturedMutation",
    "CreateMutation",
    "MoveMutation",
    "SetAttributeMutation",
    "SetPropertyMutation",
    "MutationCaptureContext",
    "NestedCaptureError",
    "capture_mutations",
    "parse_mutation",
    "AnimationEvent",
    "AnimationEventBuffer",
    "TheatreState",
    "apply_mutation",
    "apply_mutations",
    "VISIBILITY_MODES",
    "can_player_see",
    "filter_view_for_player",
    "normalize_visibility",
    "Game",
    "GameOptions",
    "CommandReplayError",
]

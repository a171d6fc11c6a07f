"""
Pytest fixtures for Curtain tests.
"""

import pytest

from ..engine_core.element import GameElement
from ..engine_core.game import Game, GameOptions


class Space(GameElement):
    """A board area that holds pieces."""


class Piece(GameElement):
    """A token that moves between spaces."""


class ScoreGame(Game):
    """Game with two custom properties."""
    score = 0
    round = 1


def fixed_clock():
    return 1000


@pytest.fixture
def options() -> GameOptions:
    """Two players, fixed seed and a fixed clock."""
    return GameOptions(player_count=2, player_names=["Alice", "Bob"], seed=42, clock=fixed_clock)


@pytest.fixture
def game(options: GameOptions) -> ScoreGame:
    """An empty game with Space and Piece registered."""
    game = ScoreGame(options)
    game.register_element_class(Space)
    game.register_element_class(Piece)
    return game


@pytest.fixture
def board_game(game: ScoreGame) -> ScoreGame:
    """
    A small board:

        game (0)
        ├── board (1)
        │   ├── piece-a (3)   color=red
        │   └── piece-b (4)   color=blue
        └── discard (2)
    """
    board = game.create(Space, "board")
    game.create(Space, "discard")
    board.create(Piece, "piece-a", color="red")
    board.create(Piece, "piece-b", color="blue")
    return game


@pytest.fixture
def spawn_game(game: ScoreGame) -> ScoreGame:
    """
    A game whose 'spawn' action animates a piece into play:

        animate("spawn", {"color": "green"}, create + set score)
    """
    game.create(Space, "board")

    def spawn(game, player, args):
        board = game.first(Space, "board")

        def callback():
            board.create(Piece, "spawned", color=args.get("color", "green"))
            game.score += 1

        return game.animate("spawn", {"color": args.get("color", "green")}, callback)

    game.register_action("spawn", spawn)
    return game

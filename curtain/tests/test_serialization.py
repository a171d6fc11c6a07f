"""
Tests for to_json() / restore_game() / clone().
"""

import json

import pytest

from ..engine_core.command import UnknownCommandError
from ..engine_core.element import GameElement
from ..engine_core.game import Game
from .conftest import Piece, ScoreGame, Space


def restore(game, data=None):
    return ScoreGame.restore_game(
        data if data is not None else game.to_json(include_history=True),
        classes=[Space, Piece],
    )


class TestExport:
    """Tests for the exported document."""

    def test_in_sync_document(self, board_game):
        data = board_game.to_json()

        assert data["className"] == "ScoreGame"
        assert data["id"] == 0
        assert data["attributes"] == {"score": 0, "round": 1}
        assert data["playerNames"] == ["Alice", "Bob"]
        assert data["elementSeq"] == 5
        assert data["animationEventSeq"] == 0
        assert "animationEvents" not in data
        assert "theatreSnapshot" not in data
        assert "commandHistory" not in data

    def test_lagging_document(self, board_game):
        board_game.animate("x", callback=lambda: board_game.get_element_by_id(3).remove())

        data = board_game.to_json(include_history=True)

        assert [e["id"] for e in data["animationEvents"]] == [1]
        assert data["animationEventSeq"] == 1
        assert data["theatreSnapshot"]["id"] == 0
        assert data["commandHistory"][-2] == {"type": "ANIMATE", "eventType": "x", "data": {}}

    def test_document_is_json_safe(self, board_game):
        board_game.animate("x", {"k": [1, 2]}, lambda: board_game.get_element_by_id(3).set_attribute("hp", 3))

        data = board_game.to_json(include_history=True)

        assert json.loads(json.dumps(data)) == data

    def test_pile_never_serialized(self, board_game):
        board_game.get_element_by_id(3).remove()

        text = json.dumps(board_game.to_json())

        assert '"piece-a"' not in text


class TestRestore:
    """Tests for restoring a game from its document."""

    def test_truth_round_trip(self, board_game):
        board_game.score = 4

        restored = restore(board_game)

        assert restored.to_tree_json() == board_game.to_tree_json()
        assert isinstance(restored.get_element_by_id(3), Piece)
        assert restored.get_element_by_id(3).parent.name == "board"

    def test_restore_is_behaviorally_identical(self, board_game):
        board_game.animate("x", callback=lambda: board_game.get_element_by_id(3).remove())

        restored = restore(board_game)

        assert restored.to_json(include_history=True) == board_game.to_json(include_history=True)

    def test_round_trip_idempotence(self, board_game):
        """Acknowledging after a round trip equals acknowledging directly."""
        discard = board_game.get_element_by_id(2)
        board_game.animate("a", callback=lambda: board_game.get_element_by_id(3).put_into(discard))
        board_game.animate("b", callback=lambda: board_game.get_element_by_id(4).set_attribute("color", "x"))
        board_game.animate("c")

        restored = restore(board_game)
        last_id = board_game.pending_animation_events[-1].id
        board_game.acknowledge_animation_events(last_id)
        restored.acknowledge_animation_events(last_id)

        assert restored.theatre_state() == board_game.theatre_state()

    def test_event_ids_monotonic_across_restore(self, board_game):
        board_game.animate("a")
        board_game.animate("b")
        board_game.acknowledge_animation_events(2)

        restored = restore(board_game)

        assert restored.animate("c").id == 3

    def test_element_ids_never_reused(self, board_game):
        board_game.get_element_by_id(4).remove()

        restored = restore(board_game)
        created = restored.get_element_by_id(1).create(Piece, "late")

        assert created.id == 5

    def test_missing_optional_fields(self, board_game):
        data = board_game.to_tree_json()

        restored = restore(board_game, data)

        assert restored.pending_animation_events == []
        assert not restored.is_theatre_lagging
        assert restored.command_history == []
        assert restored.get_element_by_id(1).create(Piece, "x").id == 5

    def test_unknown_class_keeps_name(self, board_game):
        data = board_game.to_json()
        data["children"][0]["className"] = "Hex"

        restored = Game.restore_game(data)

        board = restored.get_element_by_id(1)
        assert type(board) is GameElement
        assert board.to_json()["className"] == "Hex"

    def test_unknown_history_command_raises(self, board_game):
        data = board_game.to_json()
        data["commandHistory"] = [{"type": "WARP"}]

        with pytest.raises(UnknownCommandError):
            restore(board_game, data)

    def test_restored_history_can_be_undone(self, board_game):
        board_game.get_element_by_id(3).put_into(board_game.get_element_by_id(2))

        restored = restore(board_game)

        assert restored.undo_last_command()
        assert restored.get_element_by_id(3).parent.name == "board"
        assert [c["id"] for c in restored.to_tree_json()["children"][0]["children"]] == [3, 4]

    def test_non_invertible_entries_stay_non_invertible(self, board_game):
        board_game.animate("flash")

        data = board_game.to_json(include_history=True)
        restored = restore(board_game, data)

        assert data["inverseHistory"][-1] is None
        assert not restored.undo_last_command()

    def test_history_without_inverses_is_not_undoable(self, board_game):
        board_game.get_element_by_id(3).set_attribute("color", "x")
        data = board_game.to_json(include_history=True)
        del data["inverseHistory"]

        restored = restore(board_game, data)

        assert not restored.undo_last_command()

    def test_inverse_history_length_mismatch(self, board_game):
        data = board_game.to_json(include_history=True)
        data["inverseHistory"] = data["inverseHistory"][:-1]

        with pytest.raises(ValueError, match="inverseHistory"):
            restore(board_game, data)


class TestClone:
    """Tests for Game.clone()."""

    def test_clone_is_independent(self, board_game):
        board_game.animate("x", callback=lambda: board_game.get_element_by_id(3).remove())

        clone = board_game.clone()
        clone.acknowledge_animation_events(1)
        clone.get_element_by_id(4).set_attribute("color", "gold")

        assert board_game.is_theatre_lagging
        assert board_game.get_element_by_id(4).get("color") == "blue"
        assert type(clone) is ScoreGame

    def test_clone_shares_random_state(self, board_game):
        clone = board_game.clone()

        assert clone.random.random() == board_game.random.random()

    def test_clone_does_not_share_event_payloads(self, board_game):
        board_game.animate("hit", {"payload": {"hp": 10}})

        clone = board_game.clone()
        clone.pending_animation_events[0].data["payload"]["hp"] = 0

        assert board_game.pending_animation_events[0].data == {"payload": {"hp": 10}}

    def test_export_does_not_share_event_payloads(self, board_game):
        board_game.animate("hit", {"payload": {"hp": 10}})

        exported = board_game.to_json()
        exported["animationEvents"][0]["data"]["payload"]["hp"] = 0

        assert board_game.pending_animation_events[0].data["payload"]["hp"] == 10


class TestElementHoldingProperties:
    """Game attributes that hold elements are live references, not state."""

    def test_list_of_elements_is_not_exported(self, board_game):
        board_game.hands = [board_game.get_element_by_id(1)]
        board_game.animate("noop", {}, lambda: None)

        data = board_game.to_json(include_history=True)

        assert json.loads(json.dumps(data)) == data
        assert "hands" not in data["attributes"]
        assert "hands" not in data["theatreSnapshot"]["attributes"]

    def test_dict_of_elements_is_not_captured(self, board_game):
        board = board_game.get_element_by_id(1)

        event = board_game.animate("seat", callback=lambda: setattr(board_game, "zones", {"main": board}))

        assert event.mutations == []
        assert board_game.zones["main"] is board

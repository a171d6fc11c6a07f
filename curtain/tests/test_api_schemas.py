"""
Tests for the pydantic wire schemas.

Tests:
- Event and mutation shapes match what the engine emits
- Requests validate their fields
- Stored documents are validated structurally
"""

import pytest
from pydantic import TypeAdapter, ValidationError

from ..api.schemas import (
    AcknowledgeRequest,
    AnimateCommandModel,
    AnimationEventModel,
    CapturedMutationModel,
    MoveMutationModel,
    PerformActionRequest,
    SetPropertyMutationModel,
    StoredGameState,
)
from ..engine_core.command import Animate
from .conftest import Piece


class TestAnimationEventModel:
    """Tests for AnimationEventModel."""

    def test_validates_engine_event(self, board_game):
        board = board_game.get_element_by_id(1)
        event = board_game.animate("spawn", {"n": 1}, lambda: board.create(Piece, "new"))

        model = AnimationEventModel.model_validate(event.to_dict())

        assert model.id == event.id
        assert model.mutations[0].type == "CREATE"
        assert model.mutations[0].parent_id == 1
        assert model.to_wire() == event.to_dict()

    def test_narrative_event_has_no_mutations_key(self, game):
        event = game.animate("caption", {"text": "hi"})

        wire = AnimationEventModel.model_validate(event.to_dict()).to_wire()

        assert "mutations" not in wire

    def test_rejects_non_positive_id(self):
        with pytest.raises(ValidationError):
            AnimationEventModel.model_validate({"id": 0, "type": "x", "timestamp": 1})


class TestMutationModels:
    """Tests for the captured mutation union."""

    def test_discriminated_on_type(self):
        adapter = TypeAdapter(CapturedMutationModel)

        move = adapter.validate_python({
            "type": "MOVE", "elementId": 3, "fromParentId": 1, "toParentId": -1, "position": "last",
        })
        prop = adapter.validate_python({"type": "SET_PROPERTY", "property": "score", "newValue": 2})

        assert isinstance(move, MoveMutationModel)
        assert isinstance(prop, SetPropertyMutationModel)
        assert prop.old_value is None

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            TypeAdapter(CapturedMutationModel).validate_python({"type": "EXPLODE"})

    def test_bad_position_rejected(self):
        with pytest.raises(ValidationError):
            MoveMutationModel(element_id=1, from_parent_id=0, to_parent_id=2, position="middle")


class TestRequests:
    """Tests for request models."""

    def test_animate_command_matches_engine(self):
        command = Animate(event_type="combat", data={"damage": 5})

        model = AnimateCommandModel.model_validate(command.to_dict())

        assert model.event_type == "combat"
        assert model.model_dump(by_alias=True) == command.to_dict()

    def test_acknowledge_request(self):
        request = AcknowledgeRequest.model_validate({"seat": 1, "upToId": 4})

        assert request.up_to_id == 4

    def test_acknowledge_request_negative_id(self):
        with pytest.raises(ValidationError):
            AcknowledgeRequest(seat=1, up_to_id=-1)

    def test_perform_action_request_defaults(self):
        request = PerformActionRequest(name="spawn", seat=2)

        assert request.args == {}


class TestStoredGameState:
    """Tests for StoredGameState."""

    def test_accepts_engine_document(self, board_game):
        board_game.animate("x", callback=lambda: board_game.get_element_by_id(3).remove())

        stored = StoredGameState.model_validate(board_game.to_json(include_history=True))

        assert stored.element_seq == 5
        assert stored.children[0].children[0].name == "piece-b"
        assert stored.theatre_snapshot.children[0].children[0].name == "piece-a"
        assert len(stored.command_history) == 6
        assert len(stored.inverse_history) == 6
        assert stored.inverse_history[-2] is None
        assert stored.inverse_history[-1]["type"] == "MOVE"

    def test_accepts_minimal_document(self):
        stored = StoredGameState.model_validate({"className": "Game", "id": 0})

        assert stored.animation_events is None
        assert stored.phase == "setup"

    def test_rejects_bad_children(self):
        with pytest.raises(ValidationError):
            StoredGameState.model_validate({"className": "Game", "id": 0, "children": [{"id": 1}]})

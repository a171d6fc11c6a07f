"""
Tests for session management.

Tests:
- Session lifecycle
- Actions and acknowledgments through a session
- Per-player payloads
- Store/restore and cloning
- Listener notification
"""

import pytest
from pydantic import ValidationError

from ..engine_core.command import EndGame
from ..engine_core.game import GameOptions
from ..session import SessionEvent, SessionManager, SessionState
from .conftest import Piece, ScoreGame, Space, fixed_clock


def build_board(game):
    game.create(Space, "board")
    game.create(Space, "discard")


def spawn(game, player, args):
    board = game.first(Space, "board")

    def callback():
        board.create(Piece, f"spawned-{player}")
        game.score += 1

    return game.animate("spawn", {"seat": player}, callback)


def finish(game, player, args):
    game.execute(EndGame(winners=[player]))


def fail(game, player, args):
    raise ValueError("not your turn")


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(clock):
    return SessionManager(clock=clock)


@pytest.fixture
def session(manager):
    session = manager.create_session(
        ScoreGame,
        GameOptions(player_count=2, player_names=["Alice", "Bob"], seed=1, clock=fixed_clock),
        classes=[Space, Piece],
        setup=build_board,
    )
    for name, action in {"spawn": spawn, "finish": finish, "fail": fail}.items():
        session.game.register_action(name, action)
    return session


class TestSessionManager:
    """Tests for SessionManager."""

    def test_create_and_get(self, manager, session):
        assert manager.get_session(session.session_id) is session
        assert session.state == SessionState.ACTIVE
        assert session.created_at == 100.0
        assert len(session.game.children) == 2

    def test_list_active(self, manager, session):
        assert manager.list_active_sessions() == [session.session_id]

    def test_end_session(self, manager, session):
        events = []
        session.add_listener(lambda s, e: events.append(e))

        manager.end_session(session.session_id, reason="quit")

        assert manager.get_session(session.session_id) is None
        assert session.state == SessionState.ABANDONED
        assert events == [SessionEvent.ENDED]

    def test_end_session_default_reason_is_game_over(self, manager, session):
        manager.end_session(session.session_id)

        assert session.state == SessionState.GAME_OVER

    def test_finished_game_stays_game_over(self, manager, session):
        session.perform_action("finish", 1)

        manager.end_session(session.session_id, reason="stale")

        assert session.state == SessionState.GAME_OVER

    def test_end_unknown_session_is_noop(self, manager):
        manager.end_session("missing")

    def test_cleanup_stale(self, manager, session, clock):
        fresh = manager.create_session(ScoreGame)
        clock.now = 5000.0
        fresh.acknowledge_animations(1, 0)

        removed = manager.cleanup_stale_sessions(max_age_seconds=3600)

        assert removed == [session.session_id]
        assert manager.list_active_sessions() == [fresh.session_id]

    def test_clone_session(self, manager, session):
        session.perform_action("spawn", 1)

        clone = manager.clone_session(session.session_id)
        clone.acknowledge_animations(1, 1)

        assert clone.session_id != session.session_id
        assert clone.metadata["cloned_from"] == session.session_id
        assert session.game.is_theatre_lagging
        assert not clone.game.is_theatre_lagging

    def test_clone_unknown_session(self, manager):
        assert manager.clone_session("missing") is None

    def test_restore_session(self, manager, session):
        session.perform_action("spawn", 2)

        restored = manager.restore_session(session.stored_state, ScoreGame, classes=[Space, Piece])

        assert restored.game.to_json(include_history=True) == session.stored_state


class TestSessionPlay:
    """Tests for actions and acknowledgments through a session."""

    def test_perform_action(self, session):
        outcome = session.perform_action("spawn", 1)

        assert outcome.success
        assert outcome.result.type == "spawn"
        assert [e.id for e in outcome.animation_events] == [1]
        assert session.game.score == 1

    def test_expected_failures(self, session):
        assert session.perform_action("spawn", 3).error == "Invalid seat: 3"
        assert "Unknown action" in session.perform_action("dance", 1).error
        assert session.perform_action("fail", 1).error == "not your turn"

    def test_game_over(self, manager, session):
        session.perform_action("finish", 2)

        assert session.state == SessionState.GAME_OVER
        assert not session.perform_action("spawn", 1).success
        assert manager.list_active_sessions() == []

    def test_acknowledge(self, session):
        session.perform_action("spawn", 1)

        session.acknowledge_animations(2, 1)

        assert session.acknowledged == {2: 1}
        assert not session.game.is_theatre_lagging

    def test_acknowledge_invalid_seat(self, session):
        with pytest.raises(ValueError):
            session.acknowledge_animations(0, 1)

    def test_listeners(self, session):
        events = []

        def listener(s, event):
            events.append((s.session_id, event))

        session.add_listener(listener)
        session.perform_action("spawn", 1)
        session.acknowledge_animations(1, 1)
        session.remove_listener(listener)
        session.perform_action("spawn", 1)

        assert events == [
            (session.session_id, SessionEvent.ACTION_PERFORMED),
            (session.session_id, SessionEvent.ANIMATIONS_ACKNOWLEDGED),
        ]

    def test_summary(self, session):
        session.perform_action("spawn", 1)

        summary = session.summary()

        assert summary.game_class == "ScoreGame"
        assert summary.pending_animation_events == 1
        assert summary.is_theatre_lagging
        assert summary.to_wire()["status"] == "active"


class TestOutcomeResponse:
    """Tests for ActionOutcome.to_response()."""

    def test_success(self, session):
        outcome = session.perform_action("spawn", 1)

        wire = outcome.to_response().to_wire()

        assert wire["success"] is True
        assert wire["animationEvents"][0]["type"] == "spawn"
        assert wire["animationEvents"][0]["mutations"][0]["type"] == "CREATE"
        assert "result" not in wire

    def test_failure(self, session):
        wire = session.perform_action("fail", 1).to_response().to_wire()

        assert wire == {"success": False, "error": "not your turn", "animationEvents": []}


class TestPlayerState:
    """Tests for build_player_state()."""

    def test_in_sync_payload(self, session):
        state = session.build_player_state(1)

        assert state.view == session.game.to_tree_json()
        assert state.current_view is None
        assert state.animation_events is None
        assert state.last_animation_event_id is None
        assert state.is_current_player

        wire = state.to_wire()
        assert "currentView" not in wire
        assert "animationEvents" not in wire

    def test_lagging_payload(self, session):
        session.perform_action("spawn", 2)

        state = session.build_player_state(2)
        wire = state.to_wire()

        assert state.view["attributes"]["score"] == 0
        assert state.current_view["attributes"]["score"] == 1
        assert wire["lastAnimationEventId"] == 1
        assert wire["animationEvents"][0]["type"] == "spawn"
        assert wire["animationEvents"][0]["mutations"][0]["type"] == "CREATE"
        assert not state.is_current_player

    def test_narrative_only_payload(self, session):
        """Pending events without a lagging theatre: events but no truth copy."""
        session.game.clear_for_new_action()
        session.game.animate("caption", {"text": "Round 2"})

        wire = session.build_player_state(1).to_wire()

        assert "currentView" not in wire
        assert "mutations" not in wire["animationEvents"][0]

    def test_invalid_seat(self, session):
        with pytest.raises(ValueError):
            session.build_player_state(5)

    def test_views_filtered_per_seat(self, session):
        game = session.game
        hand = game.create(Space, "hand", player=1)
        hand.set_visibility("owner")
        hand.create(Piece, "secret", color="red")

        mine = session.build_player_state(1).view
        theirs = session.build_player_state(2).view

        assert mine["children"][2]["children"][0]["name"] == "secret"
        assert theirs["children"][2] == {
            "className": "Space",
            "id": hand.id,
            "attributes": {"__hidden": True},
            "children": [],
        }
        assert theirs["children"][0] == mine["children"][0]

    def test_count_only_placeholder(self, session):
        game = session.game
        discard = game.first(Space, "discard")
        discard.set_attribute("$type", "pile")
        discard.create(Piece, "gone")
        discard.create(Piece, "gone")
        discard.set_visibility("count-only")

        view = session.build_player_state(1).view

        assert view["children"][1] == {
            "className": "Space",
            "id": discard.id,
            "name": "discard",
            "attributes": {"$type": "pile"},
            "children": [],
            "childCount": 2,
        }

    def test_add_visible_to_reveals_to_seat(self, session):
        game = session.game
        hand = game.create(Space, "hand", player=1)
        hand.set_visibility("owner")
        hand.add_visible_to(2)

        view = session.build_player_state(2).view

        assert view["children"][2]["name"] == "hand"

    def test_lagging_views_both_filtered(self, session):
        game = session.game
        hand = game.create(Space, "hand", player=1)
        hand.set_visibility("owner")
        game.animate("draw", callback=lambda: hand.create(Piece, "drawn"))

        mine = session.build_player_state(1)
        theirs = session.build_player_state(2)

        assert mine.view["children"][2]["children"] == []
        assert [c["name"] for c in mine.current_view["children"][2]["children"]] == ["drawn"]
        assert theirs.view["children"][2]["attributes"] == {"__hidden": True}
        assert theirs.current_view["children"][2]["attributes"] == {"__hidden": True}


class TestStoreRestore:
    """Tests for stored_state / restore()."""

    def test_restore_replaces_game(self, session):
        stored = session.stored_state
        session.perform_action("spawn", 1)
        events = []
        session.add_listener(lambda s, e: events.append(e))

        session.restore(stored)

        assert session.game.score == 0
        assert session.game.pending_animation_events == []
        assert isinstance(session.game, ScoreGame)
        assert events == [SessionEvent.RESTORED]

    def test_restore_lagging_state(self, session):
        session.perform_action("spawn", 1)
        stored = session.stored_state

        session.restore(stored)
        assert session.game.is_theatre_lagging
        assert session.build_player_state(1).view["attributes"]["score"] == 0

        session.acknowledge_animations(1, 1)

        assert session.build_player_state(1).view["attributes"]["score"] == 1
        assert session.game.theatre_state() == session.game.to_tree_json()

    def test_malformed_document_rejected(self, session):
        before = session.game

        with pytest.raises(ValidationError):
            session.restore({"className": "ScoreGame", "id": "root", "children": "none"})

        assert session.game is before

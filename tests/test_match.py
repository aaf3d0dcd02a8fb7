"""
Unit Tests for Game Sessions

Local, computer and online matches driven the way a front end would.
"""

import queue
import random
import threading
from unittest.mock import MagicMock

import pytest

from checkers_pro.config import Difficulty
from checkers_pro.game.board import Move
from checkers_pro.game.rules import GameRules
from checkers_pro.game.side import Side
from checkers_pro.match import Match
from checkers_pro.protocol import snapshot_to_payload


@pytest.fixture(autouse=True)
def no_time_budget(monkeypatch):
    monkeypatch.delenv("CHECKERS_AI_TIME_BUDGET", raising=False)


class FakeMirror:
    """Stands in for a RoomMirror: records writes, replays queued updates."""

    def __init__(self, room_id="ABCDEF", joined=True):
        self.room_id = room_id
        self.guest_joined = threading.Event()
        if joined:
            self.guest_joined.set()
        self.published = []
        self.updates = queue.Queue()
        self.closed = False

    def publish(self, snapshot):
        self.published.append(snapshot)

    def get_update(self, block=False, timeout=None):
        try:
            return self.updates.get(block, timeout)
        except queue.Empty:
            return None

    def close(self, timeout=None):
        self.closed = True


class TestLocalMatch:
    def test_click_selects_then_moves(self):
        match = Match(size=10)

        assert match.click((6, 3)).legal
        assert match.view().selected == (6, 3)

        result = match.click((5, 4))

        assert result.move == Move((6, 3), (5, 4))
        assert match.rules.turn.to_move is Side.DARK
        assert match.click((3, 4)).legal

    def test_clicking_another_own_piece_changes_selection(self):
        match = Match(size=10)
        match.click((6, 3))

        match.click((6, 5))

        assert match.view().selected == (6, 5)

    def test_describe(self):
        match = Match(size=8)

        assert match.describe() == "Turn: RED - Mode: 2 Player"

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            Match(mode="lan")

    def test_online_needs_a_mirror(self):
        with pytest.raises(ValueError):
            Match(mode="online", local_side=Side.LIGHT)


class TestComputerMatch:
    @pytest.fixture
    def match(self):
        match = Match(size=8, mode="ai", difficulty=Difficulty.EASY, rng=random.Random(3))
        yield match
        match.close()

    def test_human_cannot_move_for_the_computer(self, match):
        match.click((5, 2))
        match.click((4, 3))

        assert match.ai_turn_pending()
        assert match.click((2, 1)).error == "not_your_turn"

    def test_computer_plays_its_whole_turn(self, match):
        match.click((5, 2))
        match.click((4, 3))

        results = match.play_ai_turn()

        assert results and all(result.legal for result in results)
        assert not results[-1].must_continue
        assert match.rules.turn.to_move is Side.LIGHT
        assert not match.ai_turn_pending()

    def test_background_search(self, match):
        assert not match.start_ai_turn()

        match.click((5, 2))
        match.click((4, 3))

        assert match.start_ai_turn()
        result = match.poll_ai(block=True, timeout=30)

        assert result.legal
        assert result.move.origin[0] < result.move.target[0]

    def test_restart_discards_pending_search(self, match):
        match.click((5, 2))
        match.click((4, 3))
        match.start_ai_turn()

        match.restart()

        assert match.rules.turn.to_move is Side.LIGHT
        assert match.rules.board.remaining(Side.DARK) == 12
        assert match.poll_ai() is None

    def test_close_waits_for_the_search(self, match):
        match.click((5, 2))
        match.click((4, 3))
        match.start_ai_turn()

        match.close(timeout=10)

        assert not match.worker.busy()

    def test_describe_names_the_difficulty(self, match):
        assert "AI (easy)" in match.describe()


class TestOnlineMatch:
    def test_host_waits_for_a_guest(self):
        mirror = FakeMirror(joined=False)
        match = Match(mode="online", local_side=Side.LIGHT, mirror=mirror)

        assert match.waiting_for_player
        assert match.click((6, 3)).error == "not_your_turn"
        assert "Waiting for player" in match.describe()

        mirror.guest_joined.set()

        assert not match.waiting_for_player
        assert match.click((6, 3)).legal

    def test_local_moves_are_published(self):
        mirror = FakeMirror()
        match = Match(mode="online", local_side=Side.LIGHT, mirror=mirror)

        match.click((6, 3))
        assert mirror.published == []
        match.click((5, 4))

        assert len(mirror.published) == 1
        assert mirror.published[0] == match.rules.export_state()
        assert not match.is_my_turn()

    def test_sync_applies_remote_state(self):
        mirror = FakeMirror()
        match = Match(mode="online", local_side=Side.DARK, mirror=mirror)
        remote = GameRules(10)
        remote.apply_move(Move((6, 3), (5, 4)))
        mirror.updates.put({"type": "connection_closed"})
        mirror.updates.put({"type": "game", "game": snapshot_to_payload(remote.export_state())})

        assert match.sync() == 1
        assert match.rules.export_state() == remote.export_state()
        assert match.is_my_turn()

    def test_sync_ignores_malformed_state(self):
        mirror = FakeMirror()
        match = Match(mode="online", local_side=Side.DARK, mirror=mirror)
        before = match.rules.export_state()
        mirror.updates.put({"type": "game", "game": {"board": "garbage"}})

        assert match.sync() == 0
        assert match.rules.export_state() == before

    def test_host_online_creates_a_room(self):
        client = MagicMock()
        client.create_room.return_value = "ABCDEF"

        match = Match.host_online(client, size=10)
        try:
            assert match.room_id == "ABCDEF"
            assert match.local_side is Side.LIGHT
            assert match.waiting_for_player
            assert client.create_room.call_args.args[0] == match.rules.export_state()
        finally:
            match.close()

    def test_join_online_adopts_the_room_state(self):
        remote = GameRules(10)
        remote.apply_move(Move((6, 3), (5, 4)))
        client = MagicMock()
        client.join_room.return_value = {"game": snapshot_to_payload(remote.export_state())}

        match = Match.join_online(client, "abcdef", size=10)
        try:
            client.join_room.assert_called_once_with("ABCDEF")
            assert match.local_side is Side.DARK
            assert match.rules.turn.to_move is Side.DARK
            assert match.is_my_turn()
        finally:
            match.close()

    def test_close_stops_the_mirror_threads(self):
        client = MagicMock()
        client.create_room.return_value = "ABCDEF"
        match = Match.host_online(client, size=10)

        match.close(timeout=5)

        assert not match.mirror._publisher.is_alive()
        assert not match.mirror._listener.is_alive()

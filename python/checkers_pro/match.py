"""Game sessions: local two-player, against the computer, or online."""

from __future__ import annotations

import logging
import random
from typing import List, Optional

from .ai import MinimaxAgent, SearchWorker
from .config import Difficulty, settings_for
from .game.board import DEFAULT_SIZE, Move
from .game.rules import GameRules, MoveResult, TurnView
from .game.side import Side
from .geometry import Square
from .replication.firebase_rooms import FirebaseRoomClient, RoomMirror, normalize_room_id


LOG = logging.getLogger("checkers_pro.match")

MODES = ("2p", "ai", "online")


class Match:
    def __init__(
        self,
        size: int = DEFAULT_SIZE,
        mode: str = "2p",
        difficulty: Difficulty = Difficulty.HARD,
        ai_side: Side = Side.DARK,
        local_side: Optional[Side] = None,
        mirror: Optional[RoomMirror] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        if mode not in MODES:
            raise ValueError(f"Unknown mode: {mode}")
        if mode == "online" and (mirror is None or local_side is None):
            raise ValueError("Online matches need a mirror and a local side")

        self.mode = mode
        self.rules = GameRules(size)
        self.ai_side = ai_side
        self.local_side = local_side
        self.mirror = mirror
        self.difficulty = difficulty
        self.agent: Optional[MinimaxAgent] = None
        self.worker: Optional[SearchWorker] = None
        if mode == "ai":
            self.agent = MinimaxAgent.from_settings(ai_side, settings_for(difficulty), rng=rng)
            self.worker = SearchWorker(self.agent)

    @classmethod
    def host_online(cls, client: FirebaseRoomClient, size: int = DEFAULT_SIZE) -> "Match":
        rules = GameRules(size)
        snapshot = rules.export_state()
        room_id = client.create_room(snapshot)
        mirror = RoomMirror(client, room_id)
        mirror.remember(snapshot)
        match = cls(size=size, mode="online", local_side=Side.LIGHT, mirror=mirror.start())
        match.rules = rules
        return match

    @classmethod
    def join_online(cls, client: FirebaseRoomClient, room_id: str, size: int = DEFAULT_SIZE) -> "Match":
        code = normalize_room_id(room_id)
        room = client.join_room(code)
        mirror = RoomMirror(client, code)
        mirror.guest_joined.set()
        match = cls(size=size, mode="online", local_side=Side.DARK, mirror=mirror.start())
        result = match.rules.accept_remote(room.get("game"))
        if not result.legal:
            LOG.warning("Room %s holds no usable game yet: %s", mirror.room_id, result.reason)
        return match

    # Queries

    @property
    def room_id(self) -> Optional[str]:
        return self.mirror.room_id if self.mirror is not None else None

    @property
    def waiting_for_player(self) -> bool:
        if self.mode != "online" or self.mirror is None:
            return False
        return self.local_side is Side.LIGHT and not self.mirror.guest_joined.is_set()

    def is_my_turn(self) -> bool:
        to_move = self.rules.turn.to_move
        if self.mode == "online":
            return self.local_side is to_move and not self.waiting_for_player
        if self.mode == "ai":
            return to_move is not self.ai_side
        return True

    def view(self) -> TurnView:
        return self.rules.view()

    # Human input

    def click(self, square: Square) -> MoveResult:
        """Select an own piece or move the selected one, like a board click."""

        if not self.is_my_turn():
            return MoveResult.rejected("not_your_turn")

        rules = self.rules
        piece = rules.board.occupant(square)
        lock = rules.turn.chain_lock
        if piece is not None and piece.side is rules.turn.to_move and lock in (None, square):
            return rules.select_square(square)

        result = rules.move_to(square)
        if result.legal:
            self._published()
        return result

    # Computer opponent

    def ai_turn_pending(self) -> bool:
        return self.agent is not None and self.rules.winner is None and self.rules.turn.to_move is self.ai_side

    def play_ai_turn(self) -> List[MoveResult]:
        """Search and play every step of the computer's turn synchronously."""

        results: List[MoveResult] = []
        while self.ai_turn_pending():
            assert self.agent is not None
            found = self.agent.choose_move(self.rules.board, self.rules.turn.chain_lock)
            if found is None:
                break
            result = self._play_ai(found.move)
            results.append(result)
            if not result.legal or not result.must_continue:
                break
        return results

    def start_ai_turn(self) -> bool:
        if not self.ai_turn_pending() or self.worker is None or self.worker.busy():
            return False
        self.worker.submit(self.rules.board, self.rules.turn.chain_lock)
        return True

    def poll_ai(self, block: bool = False, timeout: Optional[float] = None) -> Optional[MoveResult]:
        """Apply the background search result once it is ready.

        A continuing chain immediately starts the search for the next step.
        """

        if self.worker is None:
            return None
        found = self.worker.get_result(block, timeout)
        if found is None:
            return None
        result = self._play_ai(found.move)
        if result.legal and result.must_continue:
            self.start_ai_turn()
        return result

    def _play_ai(self, move: Move) -> MoveResult:
        result = self.rules.apply_move(move, player=self.ai_side)
        if not result.legal:
            LOG.error("Computer attempted an illegal move %s: %s", move, result.error)
        return result

    # Online

    def sync(self) -> int:
        """Apply every remote update received so far; returns how many were applied."""

        if self.mirror is None:
            return 0
        applied = 0
        while True:
            message = self.mirror.get_update()
            if message is None:
                return applied
            if message.get("type") == "connection_closed":
                LOG.warning("Lost the connection to room %s", self.mirror.room_id)
                continue
            if self.rules.accept_remote(message.get("game")).legal:
                applied += 1

    def _published(self) -> None:
        if self.mirror is not None:
            self.mirror.publish(self.rules.export_state())

    def restart(self) -> None:
        if self.worker is not None:
            # Drop whatever the old search comes up with
            self.worker.cancel()
            self.worker.join()
            self.worker.get_result()
        self.rules.reset()
        self._published()

    def close(self, timeout: Optional[float] = 2.0) -> None:
        if self.worker is not None:
            self.worker.cancel()
            self.worker.join(timeout)
        if self.mirror is not None:
            self.mirror.close(timeout)

    def describe(self) -> str:
        to_move = self.rules.turn.to_move
        if self.mode == "ai" and self.agent is not None:
            mode = f"AI ({self.difficulty.value})"
        elif self.mode == "online":
            mode = "Online"
        else:
            mode = "2 Player"
        text = f"Turn: {to_move.value.upper()} - Mode: {mode}"
        if self.mode == "online" and self.local_side is not None:
            text += f" - You: {self.local_side.value.upper()}"
        if self.waiting_for_player:
            text += " - Waiting for player..."
        if self.rules.winner is not None:
            text += f" - {self.rules.winner.value.upper()} wins!"
        return text

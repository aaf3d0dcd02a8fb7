"""Higher-level rule helpers built on top of :mod:`checkers_pro.game.board`.

:class:`GameRules` owns the authoritative board and the turn-local state.
The module-level helpers are pure with respect to turn state so the search
can replay the very same rules on its own board copies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from ..geometry import Square, back_rank
from ..protocol import GameSnapshot, MalformedRemoteState, snapshot_from_payload
from .board import DEFAULT_SIZE, Board, Cell, Move
from .chains import continuation_moves, max_capture_moves
from .moves import has_capture, quiet_moves
from .side import Side, opponent


LOG = logging.getLogger("checkers_pro.rules")

_REASONS = {
    "game_over": "The game is already over.",
    "not_your_turn": "It is not your turn.",
    "empty_square": "There is no piece on that square.",
    "not_your_piece": "That piece belongs to your opponent.",
    "must_capture_with_other_piece": "A capture is mandatory; pick a piece that takes the most pieces.",
    "must_continue_capture": "The capturing piece must continue its chain.",
    "no_selection": "Select a piece first.",
    "illegal_destination": "That piece cannot move there.",
    "illegal_move": "That move is not legal in this position.",
    "malformed_remote_state": "Received an invalid game state; keeping the current one.",
}


@dataclass(frozen=True)
class StepOutcome:
    captured: Tuple[Square, ...]
    promoted: bool
    chain_lock: Optional[Square]


@dataclass
class MoveResult:
    legal: bool
    move: Optional[Move] = None
    captured: Tuple[Square, ...] = ()
    promoted: bool = False
    must_continue: bool = False
    winner: Optional[Side] = None
    offered: Tuple[Move, ...] = ()
    error: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def rejected(cls, error: str, detail: Optional[str] = None) -> "MoveResult":
        return cls(legal=False, error=error, reason=detail or _REASONS.get(error, error))


@dataclass
class TurnState:
    """Tracks per-turn metadata beyond the raw board."""

    to_move: Side = Side.LIGHT  # Red traditionally opens.
    chain_lock: Optional[Square] = None
    selected: Optional[Square] = None
    forced_origins: FrozenSet[Square] = frozenset()

    def swap_turn(self) -> None:
        self.chain_lock = None
        self.selected = None
        self.forced_origins = frozenset()
        self.to_move = opponent(self.to_move)


@dataclass(frozen=True)
class TurnView:
    """Read-only picture of the game for whoever draws it."""

    size: int
    cells: Tuple[Tuple[Cell, ...], ...]
    to_move: Side
    selected: Optional[Square]
    offered: Tuple[Move, ...]
    chain_lock: Optional[Square]
    forced_origins: FrozenSet[Square]
    winner: Optional[Side]
    counts: Dict[Side, int] = field(default_factory=dict)


def legal_moves_for(board: Board, side: Side, chain_lock: Optional[Square] = None) -> List[Move]:
    """Moves ``side`` may play: forced longest captures, else every quiet move."""

    if chain_lock is not None:
        piece = board.occupant(chain_lock)
        if piece is None or piece.side is not side:
            return []
        return continuation_moves(board, chain_lock)

    captures = max_capture_moves(board, side)
    if captures:
        return captures

    moves: List[Move] = []
    for square, _piece in board.pieces(side):
        moves.extend(quiet_moves(board, square))
    return moves


def play_step(board: Board, move: Move) -> StepOutcome:
    """Apply one step to ``board`` in place and settle promotion.

    A man reaching the back rank is crowned straight away after a quiet
    move. After a capture it is crowned only if the chain ends there.
    """

    piece = board.relocate(move)

    chain_lock: Optional[Square] = None
    if move.is_capture and has_capture(board, move.target):
        chain_lock = move.target

    promoted = False
    if chain_lock is None and not piece.is_king and move.target[0] == back_rank(piece.side, board.size):
        board.set_occupant(move.target, piece.crowned())
        promoted = True

    return StepOutcome(captured=move.captured, promoted=promoted, chain_lock=chain_lock)


def winner_for(board: Board, to_move: Side, chain_lock: Optional[Square] = None) -> Optional[Side]:
    # The side to move loses with no pieces or no moves
    if board.remaining(to_move) == 0:
        return opponent(to_move)
    if not legal_moves_for(board, to_move, chain_lock):
        return opponent(to_move)
    return None


class GameRules:
    """Encapsulates turn enforcement and capture chaining requirements."""

    def __init__(self, size: int = DEFAULT_SIZE, first_to_move: Side = Side.LIGHT) -> None:
        self.board = Board(size)
        self.turn = TurnState(to_move=first_to_move)
        self.winner: Optional[Side] = None
        self._first_to_move = first_to_move
        self._legal: List[Move] = []
        self._refresh()

    @classmethod
    def from_position(
        cls,
        board: Board,
        to_move: Side = Side.LIGHT,
        chain_lock: Optional[Square] = None,
    ) -> "GameRules":
        rules = cls(board.size, first_to_move=to_move)
        rules.restore(GameSnapshot.capture(board, to_move=to_move, chain_lock=chain_lock))
        return rules

    def reset(self, size: Optional[int] = None) -> None:
        self.board = Board(size or self.board.size)
        self.turn = TurnState(to_move=self._first_to_move)
        self.winner = None
        self._refresh()
        LOG.info("New %dx%d game, %s to move", self.board.size, self.board.size, self.turn.to_move.label)

    # Queries

    def legal_moves(self) -> List[Move]:
        return list(self._legal)

    def moves_from(self, origin: Square) -> List[Move]:
        return [move for move in self._legal if move.origin == origin]

    def forced_origins(self) -> FrozenSet[Square]:
        return self.turn.forced_origins

    def offered_moves(self) -> List[Move]:
        if self.turn.selected is None:
            return []
        return self.moves_from(self.turn.selected)

    def remaining(self, side: Side) -> int:
        return self.board.remaining(side)

    def piece_counts(self) -> Dict[Side, int]:
        return {side: self.board.remaining(side) for side in Side}

    def view(self) -> TurnView:
        return TurnView(
            size=self.board.size,
            cells=self.board.snapshot(),
            to_move=self.turn.to_move,
            selected=self.turn.selected,
            offered=tuple(self.offered_moves()),
            chain_lock=self.turn.chain_lock,
            forced_origins=self.turn.forced_origins,
            winner=self.winner,
            counts=self.piece_counts(),
        )

    # Intents

    def select_square(self, square: Square) -> MoveResult:
        if self.winner is not None:
            return self._reject("game_over")

        lock = self.turn.chain_lock
        if lock is not None and square != lock:
            return self._reject("must_continue_capture")

        piece = self.board.occupant(square)
        if piece is None:
            return self._reject("empty_square")
        if piece.side is not self.turn.to_move:
            return self._reject("not_your_piece")

        forced = self.turn.forced_origins
        if forced and square not in forced:
            return self._reject("must_capture_with_other_piece")

        self.turn.selected = square
        return MoveResult(legal=True, offered=tuple(self.moves_from(square)))

    def move_to(self, square: Square) -> MoveResult:
        if self.winner is not None:
            return self._reject("game_over")

        origin = self.turn.selected
        if origin is None:
            return self._reject("no_selection")

        move = next((m for m in self.moves_from(origin) if m.target == square), None)
        if move is None:
            return self._reject("illegal_destination")

        return self._apply(move)

    def apply_move(self, move: Move, player: Optional[Side] = None) -> MoveResult:
        if self.winner is not None:
            return self._reject("game_over")
        if player is not None and player is not self.turn.to_move:
            return self._reject("not_your_turn")
        if move not in self._legal:
            return self._reject("illegal_move")
        return self._apply(move)

    # Replication

    def export_state(self) -> GameSnapshot:
        return GameSnapshot.capture(
            self.board,
            to_move=self.turn.to_move,
            chain_lock=self.turn.chain_lock,
            winner=self.winner,
        )

    def restore(self, snapshot: GameSnapshot) -> None:
        """Replace the whole game state; legality is recomputed locally."""

        self.board = snapshot.to_board()
        self.turn = TurnState(to_move=snapshot.to_move)

        lock = snapshot.chain_lock
        if lock is not None and has_capture(self.board, lock):
            self.turn.chain_lock = lock
            self.turn.selected = lock
        elif lock is not None:
            LOG.warning("Ignoring chain lock on %s: the piece has nothing left to capture", lock)

        self.winner = None
        self._refresh()
        if snapshot.winner is not None and snapshot.winner is not self.winner:
            LOG.debug("Remote winner %s disagrees with local result %s", snapshot.winner, self.winner)

    def accept_remote(self, payload: Any) -> MoveResult:
        try:
            snapshot = snapshot_from_payload(payload, expected_size=self.board.size)
        except MalformedRemoteState as exc:
            LOG.warning("Rejected remote state: %s", exc)
            return self._reject("malformed_remote_state", f"{_REASONS['malformed_remote_state']} ({exc})")

        self.restore(snapshot)
        return MoveResult(legal=True, winner=self.winner, must_continue=self.turn.chain_lock is not None)

    # Internals

    def _apply(self, move: Move) -> MoveResult:
        mover = self.turn.to_move
        outcome = play_step(self.board, move)

        if outcome.chain_lock is not None:
            self.turn.chain_lock = outcome.chain_lock
            self.turn.selected = outcome.chain_lock
        else:
            self.turn.swap_turn()
        self._refresh()

        LOG.debug(
            "%s played %s -> %s, captured %d%s",
            mover.label,
            move.origin,
            move.target,
            len(outcome.captured),
            " (crowned)" if outcome.promoted else "",
        )
        if self.winner is not None:
            LOG.info("%s wins", self.winner.label)

        return MoveResult(
            legal=True,
            move=move,
            captured=outcome.captured,
            promoted=outcome.promoted,
            must_continue=outcome.chain_lock is not None,
            winner=self.winner,
            offered=tuple(self.offered_moves()),
        )

    def _refresh(self) -> None:
        # Recompute legality for the side to move
        self._legal = legal_moves_for(self.board, self.turn.to_move, self.turn.chain_lock)
        self.turn.forced_origins = frozenset(move.origin for move in self._legal if move.is_capture)

        if self.turn.chain_lock is None:
            if self.board.remaining(self.turn.to_move) == 0 or not self._legal:
                self.winner = opponent(self.turn.to_move)

    def _reject(self, error: str, detail: Optional[str] = None) -> MoveResult:
        LOG.debug("Rejected intent: %s", error)
        return MoveResult.rejected(error, detail)

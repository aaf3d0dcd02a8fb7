"""JSON wire format for replicated game state.

Snapshots travel in the shape the realtime database stores them::

    {"board": [[0, 2, ...], ...], "turn": "red",
     "mustContinueChain": {"r": 4, "c": 5} | None, "winner": "black" | None}

Cells use integer codes: 0 empty, 1 red man, 2 black man, 3 red king,
4 black king. Anything received from a peer is validated before it may
replace local state.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .game.board import SUPPORTED_SIZES, Board, Cell, Piece, PieceKind
from .game.side import Side
from .geometry import Square, in_bounds, is_playable


Message = Dict[str, Any]
ENCODING = "utf-8"

# fmt: off
_CODES: Dict[Tuple[Side, PieceKind], int] = {
    (Side.LIGHT, PieceKind.MAN):  1,
    (Side.DARK,  PieceKind.MAN):  2,
    (Side.LIGHT, PieceKind.KING): 3,
    (Side.DARK,  PieceKind.KING): 4,
}
# fmt: on
_PIECES: Dict[int, Piece] = {code: Piece(side, kind) for (side, kind), code in _CODES.items()}


class ProtocolError(RuntimeError):
    pass


class MalformedRemoteState(ProtocolError):
    """A replicated snapshot failed shape validation."""


def encode(message: Message) -> bytes:
    """Serialize a message to bytes with a trailing newline."""

    return (json.dumps(message, separators=(",", ":")) + "\n").encode(ENCODING)


def decode(payload: bytes) -> Message:
    """Parse bytes into a Python dictionary."""

    try:
        return json.loads(payload.decode(ENCODING))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProtocolError("Malformed payload") from exc


def cell_code(cell: Cell) -> int:
    if cell is None:
        return 0
    return _CODES[(cell.side, cell.kind)]


def piece_for_code(code: int) -> Cell:
    if code == 0:
        return None
    try:
        return _PIECES[code]
    except KeyError as exc:
        raise MalformedRemoteState(f"Unknown cell code: {code!r}") from exc


@dataclass(frozen=True)
class GameSnapshot:
    size: int
    cells: Tuple[Tuple[int, ...], ...]
    to_move: Side
    chain_lock: Optional[Square] = None
    winner: Optional[Side] = None

    @classmethod
    def capture(
        cls,
        board: Board,
        to_move: Side,
        chain_lock: Optional[Square] = None,
        winner: Optional[Side] = None,
    ) -> "GameSnapshot":
        cells = tuple(tuple(cell_code(cell) for cell in row) for row in board.snapshot())
        return cls(size=board.size, cells=cells, to_move=to_move, chain_lock=chain_lock, winner=winner)

    def to_board(self) -> Board:
        board = Board(self.size, empty=True)
        for row_index, row in enumerate(self.cells):
            for col_index, code in enumerate(row):
                if code:
                    board.set_occupant((row_index, col_index), piece_for_code(code))
        return board


def snapshot_to_payload(snapshot: GameSnapshot) -> Message:
    chain = None
    if snapshot.chain_lock is not None:
        chain = {"r": snapshot.chain_lock[0], "c": snapshot.chain_lock[1]}
    return {
        "board": [list(row) for row in snapshot.cells],
        "turn": snapshot.to_move.value,
        "mustContinueChain": chain,
        "winner": snapshot.winner.value if snapshot.winner is not None else None,
    }


def snapshot_from_payload(payload: Any, expected_size: Optional[int] = None) -> GameSnapshot:
    """Validate a remote payload and turn it into a :class:`GameSnapshot`.

    Raises :class:`MalformedRemoteState` on any shape violation.
    """

    if not isinstance(payload, Mapping):
        raise MalformedRemoteState("Game state must be an object")

    raw_board = payload.get("board")
    if raw_board is None:
        raise MalformedRemoteState("Game state has no board")

    size = expected_size
    if size is None:
        size = len(raw_board) if isinstance(raw_board, (list, Mapping)) else 0
        if size not in SUPPORTED_SIZES:
            raise MalformedRemoteState(f"Unsupported board size: {size}")

    cells = _normalize_board(raw_board, size)
    to_move = _parse_side(payload.get("turn"), default=Side.LIGHT, field="turn")
    winner = _parse_side(payload.get("winner"), default=None, field="winner")
    chain_lock = _parse_square(payload.get("mustContinueChain"), size)

    if chain_lock is not None:
        piece = piece_for_code(cells[chain_lock[0]][chain_lock[1]])
        if piece is None or piece.side is not to_move:
            raise MalformedRemoteState("Chain lock does not point at a piece of the side to move")

    return GameSnapshot(size=size, cells=cells, to_move=to_move, chain_lock=chain_lock, winner=winner)


def _indexed(container: Any, size: int, what: str) -> List[Any]:
    # Realtime databases may hand arrays back as string-keyed objects
    if isinstance(container, list):
        if len(container) != size:
            raise MalformedRemoteState(f"Expected {size} {what}, got {len(container)}")
        return list(container)

    if isinstance(container, Mapping):
        items: List[Any] = [None] * size
        for key, value in container.items():
            try:
                index = int(key)
            except (TypeError, ValueError) as exc:
                raise MalformedRemoteState(f"Bad {what} index: {key!r}") from exc
            if not 0 <= index < size:
                raise MalformedRemoteState(f"{what.capitalize()} index out of range: {index}")
            items[index] = value
        return items

    raise MalformedRemoteState(f"Expected a list of {what}")


def _normalize_board(raw_board: Any, size: int) -> Tuple[Tuple[int, ...], ...]:
    rows: List[Tuple[int, ...]] = []
    for row_index, raw_row in enumerate(_indexed(raw_board, size, "rows")):
        if raw_row is None:
            raw_row = [0] * size
        row: List[int] = []
        for col_index, code in enumerate(_indexed(raw_row, size, "columns")):
            if code is None:
                code = 0
            if isinstance(code, bool) or not isinstance(code, int):
                raise MalformedRemoteState(f"Cell ({row_index}, {col_index}) is not an integer")
            piece_for_code(code)
            if code and not is_playable((row_index, col_index)):
                raise MalformedRemoteState(f"Piece on light square ({row_index}, {col_index})")
            row.append(code)
        rows.append(tuple(row))
    return tuple(rows)


def _parse_side(value: Any, default: Optional[Side], field: str) -> Optional[Side]:
    if value is None:
        return default
    try:
        return Side(value)
    except ValueError as exc:
        raise MalformedRemoteState(f"Invalid {field}: {value!r}") from exc


def _parse_square(value: Any, size: int) -> Optional[Square]:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise MalformedRemoteState("Chain lock must be an object with r and c")
    row, col = value.get("r"), value.get("c")
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in (row, col)):
        raise MalformedRemoteState("Chain lock coordinates must be integers")
    square = (row, col)
    if not in_bounds(size, square) or not is_playable(square):
        raise MalformedRemoteState(f"Chain lock outside the playable squares: {square}")
    return square

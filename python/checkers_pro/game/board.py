from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from ..geometry import Square, in_bounds, is_playable
from .side import Side, opponent


SUPPORTED_SIZES = (8, 10)
DEFAULT_SIZE = 10


class PieceKind(Enum):
    MAN = "man"
    KING = "king"


@dataclass(frozen=True)
class Piece:
    side: Side
    kind: PieceKind = PieceKind.MAN

    @property
    def is_king(self) -> bool:
        return self.kind is PieceKind.KING

    def crowned(self) -> "Piece":
        return Piece(self.side, PieceKind.KING)

    def is_enemy_of(self, side: Side) -> bool:
        return self.side is opponent(side)


Cell = Optional[Piece]


def man(side: Side) -> Piece:
    return Piece(side, PieceKind.MAN)


def king(side: Side) -> Piece:
    return Piece(side, PieceKind.KING)


@dataclass(frozen=True)
class Move:
    origin: Square
    target: Square
    captured: Tuple[Square, ...] = ()

    @property
    def is_capture(self) -> bool:
        return len(self.captured) > 0


class Board:
    """Grid of square contents addressed by ``(row, col)``.

    Row 0 is Dark's back rank. Only dark squares may hold a piece.
    """

    def __init__(self, size: int = DEFAULT_SIZE, *, empty: bool = False) -> None:
        if size not in SUPPORTED_SIZES:
            raise ValueError(f"Unsupported board size: {size}")
        self.size = size
        self._cells: List[List[Cell]] = [[None] * size for _ in range(size)]
        if not empty:
            self.reset()

    def reset(self) -> None:
        # Rebuild the initial layout
        for row in self._cells:
            for col in range(self.size):
                row[col] = None

        rows_per_side = (self.size - 2) // 2
        for row in range(rows_per_side):
            for col in range(self.size):
                if is_playable((row, col)):
                    self._cells[row][col] = man(Side.DARK)

        for row in range(self.size - rows_per_side, self.size):
            for col in range(self.size):
                if is_playable((row, col)):
                    self._cells[row][col] = man(Side.LIGHT)

    @classmethod
    def from_pieces(cls, size: int, pieces: Dict[Square, Piece]) -> "Board":
        board = cls(size, empty=True)
        for square, piece in pieces.items():
            board.set_occupant(square, piece)
        return board

    def copy(self) -> "Board":
        clone = Board(self.size, empty=True)
        clone._cells = [list(row) for row in self._cells]
        return clone

    def snapshot(self) -> Tuple[Tuple[Cell, ...], ...]:
        return tuple(tuple(row) for row in self._cells)

    def occupant(self, square: Square) -> Cell:
        row, col = square
        return self._cells[row][col]

    def is_empty(self, square: Square) -> bool:
        return self.occupant(square) is None

    def set_occupant(self, square: Square, piece: Cell) -> None:
        if not in_bounds(self.size, square):
            raise ValueError(f"Square {square} is off the board")
        if piece is not None and not is_playable(square):
            raise ValueError(f"Square {square} is a light square")
        row, col = square
        self._cells[row][col] = piece

    def pieces(self, side: Optional[Side] = None) -> Iterator[Tuple[Square, Piece]]:
        """Iterate ``(square, piece)`` in row-major order, optionally for one side."""

        for row_index, row in enumerate(self._cells):
            for col_index, piece in enumerate(row):
                if piece is None:
                    continue
                if side is not None and piece.side is not side:
                    continue
                yield (row_index, col_index), piece

    def remaining(self, side: Side) -> int:
        return sum(1 for _ in self.pieces(side))

    def relocate(self, move: Move) -> Piece:
        """Move the piece at ``move.origin`` and clear the captured squares.

        No promotion happens here; crowning is a rules decision.
        """

        piece = self.occupant(move.origin)
        if piece is None:
            raise ValueError(f"No piece at {move.origin}")
        self.set_occupant(move.origin, None)
        self.set_occupant(move.target, piece)
        for square in move.captured:
            self.set_occupant(square, None)
        return piece

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Board):
            return NotImplemented
        return self.size == other.size and self._cells == other._cells

    def __repr__(self) -> str:
        return f"Board(size={self.size}, light={self.remaining(Side.LIGHT)}, dark={self.remaining(Side.DARK)})"

"""Diagonal geometry for square draughts boards.

Every rule in the engine is expressed in terms of the four diagonal
directions. Squares are ``(row, col)`` tuples with row 0 at Dark's back
rank; only the dark squares, where ``row + col`` is odd, are ever occupied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

from .game.side import Side


Square = Tuple[int, int]


@dataclass(frozen=True)
class Direction:
    """A unit diagonal step.

    Attributes
    ----------
    dr:
        Row delta, ``-1`` moves toward row 0.
    dc:
        Column delta.
    """

    dr: int
    dc: int

    def step(self, square: Square, distance: int = 1) -> Square:
        row, col = square
        return row + self.dr * distance, col + self.dc * distance


# fmt: off
DIAGONALS: Tuple[Direction, ...] = (
    Direction(1, 1),
    Direction(1, -1),
    Direction(-1, 1),
    Direction(-1, -1),
)

_FORWARD = {
    Side.LIGHT: (Direction(-1, -1), Direction(-1, 1)),
    Side.DARK:  (Direction(1, -1),  Direction(1, 1)),
}
# fmt: on


def forward_diagonals(side: Side) -> Tuple[Direction, ...]:
    """Return the two directions a man of ``side`` may use for quiet moves."""

    return _FORWARD[side]


def in_bounds(size: int, square: Square) -> bool:
    row, col = square
    return 0 <= row < size and 0 <= col < size


def is_playable(square: Square) -> bool:
    row, col = square
    return (row + col) % 2 == 1


def back_rank(side: Side, size: int) -> int:
    """Row on which a man of ``side`` is crowned."""

    return 0 if side is Side.LIGHT else size - 1


def ray(size: int, origin: Square, direction: Direction) -> Iterator[Square]:
    """Yield the squares after ``origin`` along ``direction`` up to the edge."""

    square = direction.step(origin)
    while in_bounds(size, square):
        yield square
        square = direction.step(square)


def center_distance(size: int, square: Square) -> float:
    """Manhattan distance from ``square`` to the geometric board center."""

    middle = (size - 1) / 2
    row, col = square
    return abs(row - middle) + abs(col - middle)

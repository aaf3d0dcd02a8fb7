"""Static position scoring used at the search horizon.

Scores are from Red's (Light's) point of view: positive favors Red,
negative favors Black. Material outweighs the centralisation bonus so the
search always prefers winning a piece over improving placement.
"""

from __future__ import annotations

from .game.board import Board
from .game.side import Side
from .geometry import center_distance


Score = float

MAN_VALUE = 10.0
KING_VALUE = 18.0
CENTER_WEIGHT = 0.25


class Evaluator:
    def __init__(
        self,
        man_value: float = MAN_VALUE,
        king_value: float = KING_VALUE,
        center_weight: float = CENTER_WEIGHT,
    ) -> None:
        self.man_value = man_value
        self.king_value = king_value
        self.center_weight = center_weight

    def score(self, board: Board) -> Score:
        total = 0.0
        for square, piece in board.pieces():
            value = self.king_value if piece.is_king else self.man_value
            value += (board.size - center_distance(board.size, square)) * self.center_weight
            total += value if piece.side is Side.LIGHT else -value
        return total

    @property
    def description(self) -> str:
        return f"Material(man={self.man_value:g}, king={self.king_value:g}, center={self.center_weight:g})"

"""Single-step move generation under international rules."""

from __future__ import annotations

from typing import List

from ..geometry import DIAGONALS, Square, forward_diagonals, in_bounds, ray
from .board import Board, Move


def quiet_moves(board: Board, origin: Square) -> List[Move]:
    # Non-capturing moves from a square
    moves: List[Move] = []
    piece = board.occupant(origin)
    if piece is None:
        return moves

    if piece.is_king:
        for direction in DIAGONALS:
            for square in ray(board.size, origin, direction):
                if not board.is_empty(square):
                    break
                moves.append(Move(origin=origin, target=square))
        return moves

    for direction in forward_diagonals(piece.side):
        square = direction.step(origin)
        if in_bounds(board.size, square) and board.is_empty(square):
            moves.append(Move(origin=origin, target=square))
    return moves


def capture_moves(board: Board, origin: Square) -> List[Move]:
    """Return every single-jump capture available to the piece on ``origin``.

    Men jump an adjacent enemy in any of the four directions. Kings scan
    along the ray past empty squares, jump the first piece if it is an enemy,
    and may land on any empty square directly beyond it.
    """

    moves: List[Move] = []
    piece = board.occupant(origin)
    if piece is None:
        return moves

    for direction in DIAGONALS:
        if piece.is_king:
            squares = ray(board.size, origin, direction)
            victim = next((sq for sq in squares if not board.is_empty(sq)), None)
            if victim is None:
                continue
            occupant = board.occupant(victim)
            if occupant is None or not occupant.is_enemy_of(piece.side):
                continue
            for landing in ray(board.size, victim, direction):
                if not board.is_empty(landing):
                    break
                moves.append(Move(origin=origin, target=landing, captured=(victim,)))
            continue

        victim = direction.step(origin)
        landing = direction.step(origin, 2)
        if not in_bounds(board.size, landing):
            continue
        occupant = board.occupant(victim)
        if occupant is None or not occupant.is_enemy_of(piece.side):
            continue
        if board.is_empty(landing):
            moves.append(Move(origin=origin, target=landing, captured=(victim,)))
    return moves


def has_capture(board: Board, origin: Square) -> bool:
    return len(capture_moves(board, origin)) > 0

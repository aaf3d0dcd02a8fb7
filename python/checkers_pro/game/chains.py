"""Capture-chain exploration and the maximal capture rule.

A chain is built by jumping, removing the captured piece from a scratch
copy of the board and jumping again from the landing square. Men are not
crowned while a chain is in progress, so a man crossing the back rank keeps
capturing like a man.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from ..geometry import Square
from .board import Board, Move
from .moves import capture_moves
from .side import Side


@dataclass(frozen=True)
class CaptureChain:
    steps: Tuple[Move, ...] = ()

    @property
    def total_captures(self) -> int:
        return sum(len(step.captured) for step in self.steps)

    @property
    def first_step(self) -> Move:
        return self.steps[0]


def chains_from(board: Board, origin: Square) -> List[CaptureChain]:
    """Enumerate every maximal capture sequence for the piece on ``origin``.

    A piece with no capture yields a single empty chain. ``board`` is never
    modified.
    """

    jumps = capture_moves(board, origin)
    if not jumps:
        return [CaptureChain()]

    chains: List[CaptureChain] = []
    for jump in jumps:
        scratch = board.copy()
        scratch.relocate(jump)
        for tail in chains_from(scratch, jump.target):
            chains.append(CaptureChain(steps=(jump,) + tail.steps))
    return chains


def longest_chains(board: Board, origin: Square) -> List[CaptureChain]:
    chains = chains_from(board, origin)
    best = max(chain.total_captures for chain in chains)
    if best == 0:
        return []
    return [chain for chain in chains if chain.total_captures == best]


def _first_steps(chains: List[CaptureChain]) -> List[Move]:
    moves: List[Move] = []
    for chain in chains:
        if chain.first_step not in moves:
            moves.append(chain.first_step)
    return moves


def continuation_moves(board: Board, origin: Square) -> List[Move]:
    """First steps of the longest chains still open to the piece on ``origin``."""

    return _first_steps(longest_chains(board, origin))


def max_capture_moves(board: Board, side: Side) -> List[Move]:
    # Only pieces reaching the global maximum may capture
    best = 0
    winners: List[CaptureChain] = []
    for square, _piece in board.pieces(side):
        for chain in chains_from(board, square):
            length = chain.total_captures
            if length == 0 or length < best:
                continue
            if length > best:
                best = length
                winners = []
            winners.append(chain)
    return _first_steps(winners)


def longest_chain_length(board: Board, side: Side) -> int:
    lengths = (
        chain.total_captures
        for square, _piece in board.pieces(side)
        for chain in chains_from(board, square)
    )
    return max(lengths, default=0)

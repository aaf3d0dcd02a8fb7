from __future__ import annotations

import logging
import math
import queue
import random
import threading
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from .config import DifficultySettings
from .evaluation import Evaluator, Score
from .game.board import Board, Move
from .game.rules import legal_moves_for, play_step
from .game.side import Side, opponent
from .geometry import Square


LOG = logging.getLogger("checkers_pro.ai")

WIN_SCORE = 99999.0


class SearchAborted(Exception):
    """Raised inside the recursion when a search limit is hit."""


@dataclass(frozen=True)
class SearchLimits:
    time_budget: Optional[float] = None
    max_nodes: Optional[int] = None


@dataclass(frozen=True)
class SearchResult:
    move: Move
    score: Score
    nodes: int
    depth: int
    complete: bool = True
    elapsed: float = 0.0


class _Budget:
    def __init__(self, limits: SearchLimits, cancel: Optional[threading.Event]) -> None:
        self.nodes = 0
        self.max_nodes = limits.max_nodes
        self.cancel = cancel
        self.deadline: Optional[float] = None
        if limits.time_budget is not None:
            self.deadline = time.monotonic() + limits.time_budget

    def tick(self) -> None:
        self.nodes += 1
        if self.cancel is not None and self.cancel.is_set():
            raise SearchAborted("cancelled")
        if self.max_nodes is not None and self.nodes > self.max_nodes:
            raise SearchAborted("node budget exhausted")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise SearchAborted("time budget exhausted")


# Play a move on a private copy
def _child(board: Board, side: Side, move: Move) -> Tuple[Board, Side, Optional[Square]]:
    child = board.copy()
    outcome = play_step(child, move)
    if outcome.chain_lock is not None:
        return child, side, outcome.chain_lock
    return child, opponent(side), None


def _loss_score(side: Side, ply: int) -> Score:
    # Quicker wins score higher than slower ones
    if side is Side.LIGHT:
        return -WIN_SCORE + ply
    return WIN_SCORE - ply


class MinimaxAgent:
    """Alpha-beta minimax where Red maximizes and Black minimizes.

    A capture that can be continued keeps the same side on move with the
    landing square locked, so a whole chain is searched as consecutive
    plies of one player.
    """

    def __init__(
        self,
        side: Side,
        depth: int = 4,
        evaluator: Optional[Evaluator] = None,
        noise: float = 0.0,
        limits: Optional[SearchLimits] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.side = side
        self.depth = max(1, depth)
        self.evaluator = evaluator or Evaluator()
        self.noise = max(0.0, noise)
        self.limits = limits or SearchLimits()
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(
        cls,
        side: Side,
        settings: DifficultySettings,
        evaluator: Optional[Evaluator] = None,
        rng: Optional[random.Random] = None,
    ) -> "MinimaxAgent":
        return cls(
            side,
            depth=settings.depth,
            evaluator=evaluator,
            noise=settings.noise,
            limits=SearchLimits(time_budget=settings.time_budget),
            rng=rng,
        )

    def choose_move(
        self,
        board: Board,
        chain_lock: Optional[Square] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Optional[SearchResult]:
        # Root of the search; ``board`` itself is never touched
        moves = legal_moves_for(board, self.side, chain_lock)
        if not moves:
            return None

        started = time.monotonic()
        budget = _Budget(self.limits, cancel)
        maximizing = self.side is Side.LIGHT

        best_move: Optional[Move] = None
        best_score = -math.inf if maximizing else math.inf
        best_raw: Score = 0.0
        alpha, beta = -math.inf, math.inf
        complete = True

        for move in moves:
            child, next_side, next_lock = _child(board, self.side, move)
            # Noisy comparisons need exact scores for every root move
            window = (-math.inf, math.inf) if self.noise else (alpha, beta)
            try:
                score = self._minimax(child, next_side, next_lock, self.depth - 1, *window, budget, 1)
            except SearchAborted as exc:
                LOG.info("Search stopped early (%s) after %d nodes", exc, budget.nodes)
                complete = False
                break

            noisy = score + self._rng.random() * self.noise if self.noise else score
            if best_move is None or (noisy > best_score if maximizing else noisy < best_score):
                best_move = move
                best_score = noisy
                best_raw = score

            if maximizing:
                alpha = max(alpha, score)
            else:
                beta = min(beta, score)

        if best_move is None:
            best_move = moves[0]
            best_raw = self.evaluator.score(board)

        elapsed = time.monotonic() - started
        LOG.debug(
            "%s picked %s -> %s (score %.2f, %d nodes, %.3fs)",
            self.side.label,
            best_move.origin,
            best_move.target,
            best_raw,
            budget.nodes,
            elapsed,
        )
        return SearchResult(
            move=best_move,
            score=best_raw,
            nodes=budget.nodes,
            depth=self.depth,
            complete=complete,
            elapsed=elapsed,
        )

    def _minimax(
        self,
        board: Board,
        side: Side,
        chain_lock: Optional[Square],
        depth: int,
        alpha: float,
        beta: float,
        budget: _Budget,
        ply: int,
    ) -> Score:
        # Depth-limited minimax core
        budget.tick()

        if board.remaining(side) == 0:
            return _loss_score(side, ply)
        moves = legal_moves_for(board, side, chain_lock)
        if not moves:
            return _loss_score(side, ply)

        if depth <= 0:
            return self.evaluator.score(board)

        if side is Side.LIGHT:
            value = -math.inf
            for move in moves:
                child, next_side, next_lock = _child(board, side, move)
                value = max(value, self._minimax(child, next_side, next_lock, depth - 1, alpha, beta, budget, ply + 1))
                alpha = max(alpha, value)
                if beta <= alpha:
                    break
            return value

        value = math.inf
        for move in moves:
            child, next_side, next_lock = _child(board, side, move)
            value = min(value, self._minimax(child, next_side, next_lock, depth - 1, alpha, beta, budget, ply + 1))
            beta = min(beta, value)
            if beta <= alpha:
                break
        return value

    @property
    def description(self) -> str:
        return f"Minimax(depth={self.depth})"


def choose_move(
    board: Board,
    side: Side,
    depth: int,
    chain_lock: Optional[Square] = None,
    evaluator: Optional[Evaluator] = None,
    limits: Optional[SearchLimits] = None,
) -> Optional[Move]:
    """Convenience wrapper returning just the chosen move."""

    agent = MinimaxAgent(side, depth=depth, evaluator=evaluator, limits=limits)
    result = agent.choose_move(board, chain_lock)
    return result.move if result is not None else None


class SearchWorker:
    """Runs one search at a time on a background thread."""

    def __init__(self, agent: MinimaxAgent) -> None:
        self.agent = agent
        self._results: "queue.Queue[Optional[SearchResult]]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._cancel = threading.Event()

    def submit(self, board: Board, chain_lock: Optional[Square] = None) -> None:
        if self.busy():
            raise RuntimeError("a search is already running")
        self._cancel = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(board.copy(), chain_lock, self._cancel),
            name=f"search-{self.agent.side.value}",
            daemon=True,
        )
        self._thread.start()

    def _run(self, board: Board, chain_lock: Optional[Square], cancel: threading.Event) -> None:
        result: Optional[SearchResult] = None
        try:
            result = self.agent.choose_move(board, chain_lock, cancel=cancel)
        except Exception:  # pragma: no cover - unexpected failure
            LOG.exception("Background search failed")
        self._results.put(result)

    def busy(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def get_result(self, block: bool = False, timeout: Optional[float] = None) -> Optional[SearchResult]:
        try:
            return self._results.get(block, timeout)
        except queue.Empty:
            return None

    def cancel(self) -> None:
        self._cancel.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)


__all__ = [
    "MinimaxAgent",
    "SearchAborted",
    "SearchLimits",
    "SearchResult",
    "SearchWorker",
    "WIN_SCORE",
    "choose_move",
]

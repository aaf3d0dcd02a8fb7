"""Difficulty tiers and online settings.

Search depth is a strength/latency tradeoff: every extra ply multiplies
the number of positions visited, it never changes which moves are legal.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional


class ConfigError(Exception):
    pass


class Difficulty(Enum):
    EASY = "easy"
    HARD = "hard"
    LEGENDARY = "legendary"


@dataclass(frozen=True)
class DifficultySettings:
    depth: int
    noise: float = 0.0
    time_budget: Optional[float] = None


# fmt: off
DIFFICULTIES: Dict[Difficulty, DifficultySettings] = {
    Difficulty.EASY:      DifficultySettings(depth=2),
    Difficulty.HARD:      DifficultySettings(depth=4),
    Difficulty.LEGENDARY: DifficultySettings(depth=6, noise=0.03),
}
# fmt: on


def parse_difficulty(text: str) -> Difficulty:
    try:
        return Difficulty(text.strip().lower())
    except ValueError as exc:
        choices = ", ".join(d.value for d in Difficulty)
        raise ConfigError(f"Unknown difficulty {text!r}; choose one of {choices}.") from exc


def settings_for(difficulty: Difficulty, time_budget: Optional[float] = None) -> DifficultySettings:
    """Settings for a tier, with an optional per-move time budget in seconds.

    ``CHECKERS_AI_TIME_BUDGET`` supplies the budget when none is passed.
    """

    settings = DIFFICULTIES[difficulty]
    if time_budget is None:
        raw = os.getenv("CHECKERS_AI_TIME_BUDGET", "").strip()
        if raw:
            try:
                time_budget = float(raw)
            except ValueError as exc:
                raise ConfigError(f"CHECKERS_AI_TIME_BUDGET must be a number, got {raw!r}.") from exc
    if time_budget is not None and time_budget <= 0:
        raise ConfigError("The AI time budget must be positive.")
    return replace(settings, time_budget=time_budget)


@dataclass(frozen=True)
class FirebaseSettings:
    database_url: str
    auth_token: Optional[str] = None
    timeout: float = 10.0

    @classmethod
    def from_env(cls, database_url: Optional[str] = None, timeout: float = 10.0) -> "FirebaseSettings":
        # Resolve credentials up front
        url = (database_url or os.getenv("CHECKERS_FIREBASE_DATABASE_URL", "")).strip()
        if not url:
            raise ConfigError(
                "Realtime Database URL missing. Set the CHECKERS_FIREBASE_DATABASE_URL environment variable."
            )
        token = os.getenv("CHECKERS_FIREBASE_AUTH", "").strip() or None
        return cls(database_url=url.rstrip("/"), auth_token=token, timeout=timeout)

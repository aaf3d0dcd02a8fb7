from __future__ import annotations

from enum import Enum


class Side(Enum):
    """The two players. Values double as the labels used on the wire."""

    LIGHT = "red"
    DARK = "black"

    @property
    def label(self) -> str:
        return self.value.capitalize()


# Flip between players
def opponent(side: Side) -> Side:
    return Side.DARK if side is Side.LIGHT else Side.LIGHT

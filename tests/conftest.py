import pytest

from checkers_pro.game.board import Board, king, man
from checkers_pro.game.side import Side


LIGHT = Side.LIGHT
DARK = Side.DARK


def make_board(size=10, light=(), dark=(), light_kings=(), dark_kings=()):
    """Build an otherwise empty board from lists of squares."""

    pieces = {}
    pieces.update({sq: man(LIGHT) for sq in light})
    pieces.update({sq: man(DARK) for sq in dark})
    pieces.update({sq: king(LIGHT) for sq in light_kings})
    pieces.update({sq: king(DARK) for sq in dark_kings})
    return Board.from_pieces(size, pieces)


@pytest.fixture
def start_board():
    return Board(10)


@pytest.fixture
def forced_chain_board():
    """Light to move: (8,1) can take one piece, (8,7) can take two."""

    return make_board(light=[(8, 1), (8, 7)], dark=[(7, 2), (7, 6), (5, 6)])

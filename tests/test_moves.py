"""
Unit Tests for Move Generation

Quiet moves and single-jump captures for men and flying kings.
"""

import pytest

from checkers_pro.game.board import Board, Move, man
from checkers_pro.game.moves import capture_moves, has_capture, quiet_moves
from checkers_pro.game.side import Side

from conftest import make_board


class TestManMoves:
    def test_light_man_moves_toward_row_zero(self):
        board = make_board(light=[(6, 3)])

        targets = {move.target for move in quiet_moves(board, (6, 3))}

        assert targets == {(5, 2), (5, 4)}

    def test_dark_man_moves_toward_last_row(self):
        board = make_board(dark=[(3, 4)])

        targets = {move.target for move in quiet_moves(board, (3, 4))}

        assert targets == {(4, 3), (4, 5)}

    def test_edge_man_has_one_quiet_move(self):
        board = make_board(light=[(6, 9)])

        assert quiet_moves(board, (6, 9)) == [Move((6, 9), (5, 8))]

    def test_blocked_square_is_not_a_target(self):
        board = make_board(light=[(6, 3), (5, 2)])

        assert quiet_moves(board, (6, 3)) == [Move((6, 3), (5, 4))]

    def test_empty_origin_has_no_moves(self):
        board = make_board()

        assert quiet_moves(board, (5, 4)) == []
        assert capture_moves(board, (5, 4)) == []

    def test_starting_capture_on_small_board(self):
        """Dark man on (2,3) takes the Light man on (3,4) and lands on (4,5)."""

        board = Board(8)
        board.set_occupant((3, 4), man(Side.LIGHT))

        assert capture_moves(board, (2, 3)) == [Move((2, 3), (4, 5), ((3, 4),))]

    def test_man_captures_backwards(self):
        board = make_board(light=[(4, 3)], dark=[(5, 4)])

        assert capture_moves(board, (4, 3)) == [Move((4, 3), (6, 5), ((5, 4),))]

    def test_man_cannot_capture_own_piece(self):
        board = make_board(light=[(4, 3), (3, 4)])

        assert capture_moves(board, (4, 3)) == []

    def test_man_capture_needs_empty_landing(self):
        board = make_board(light=[(4, 3)], dark=[(3, 4), (2, 5)])

        assert capture_moves(board, (4, 3)) == []

    def test_man_capture_landing_must_be_on_board(self):
        board = make_board(light=[(1, 2)], dark=[(0, 1)])

        assert capture_moves(board, (1, 2)) == []
        assert not has_capture(board, (1, 2))


class TestKingMoves:
    def test_king_slides_until_blocked(self):
        board = make_board(light_kings=[(5, 6)], light=[(2, 3)])

        targets = {move.target for move in quiet_moves(board, (5, 6))}

        assert {(4, 5), (3, 4)} <= targets
        assert (2, 3) not in targets
        assert (1, 2) not in targets
        assert {(6, 7), (7, 8), (8, 9)} <= targets
        assert {(6, 5), (7, 4), (8, 3), (9, 2)} <= targets
        assert {(4, 7), (3, 8), (2, 9)} <= targets
        assert len(targets) == 2 + 3 + 4 + 3

    def test_flying_king_capture_lands_on_every_empty_square(self):
        board = make_board(light_kings=[(5, 6)], dark=[(2, 3)])

        captures = capture_moves(board, (5, 6))

        assert set(captures) == {
            Move((5, 6), (1, 2), ((2, 3),)),
            Move((5, 6), (0, 1), ((2, 3),)),
        }
        for move in captures:
            assert move.captured == ((2, 3),)

    def test_king_cannot_jump_two_pieces_in_a_row(self):
        board = make_board(light_kings=[(5, 6)], dark=[(4, 5), (3, 4)])

        assert capture_moves(board, (5, 6)) == []

    def test_own_piece_blocks_the_ray(self):
        board = make_board(light_kings=[(5, 6)], light=[(4, 5)], dark=[(3, 4)])

        assert capture_moves(board, (5, 6)) == []

    def test_landing_scan_stops_at_next_piece(self):
        board = make_board(light_kings=[(7, 8)], dark=[(5, 6), (2, 3)])

        captures = capture_moves(board, (7, 8))

        assert {move.target for move in captures} == {(4, 5), (3, 4)}
        assert all(move.captured == ((5, 6),) for move in captures)

    def test_capture_stays_on_one_diagonal(self):
        board = make_board(light_kings=[(5, 6)], dark=[(3, 4), (3, 8)])

        for move in capture_moves(board, (5, 6)):
            (r0, c0), (r1, c1) = move.origin, move.target
            (rc, cc), = move.captured
            assert abs(r1 - r0) == abs(c1 - c0)
            assert (rc - r0) * (c1 - c0) == (cc - c0) * (r1 - r0)


@pytest.mark.parametrize("size", [8, 10])
def test_start_position_has_no_captures(size):
    board = Board(size)

    for square, _piece in board.pieces():
        assert capture_moves(board, square) == []

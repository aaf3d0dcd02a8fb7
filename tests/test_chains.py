"""
Unit Tests for Capture Chains

Chain enumeration and the maximal capture rule.
"""

from checkers_pro.game.board import Board, Move
from checkers_pro.game.chains import (
    CaptureChain,
    chains_from,
    continuation_moves,
    longest_chain_length,
    max_capture_moves,
)
from checkers_pro.game.moves import capture_moves
from checkers_pro.game.side import Side

from conftest import make_board


class TestChainsFrom:
    def test_piece_without_capture_yields_empty_chain(self):
        board = make_board(light=[(6, 3)])

        assert chains_from(board, (6, 3)) == [CaptureChain()]
        assert chains_from(board, (6, 3))[0].total_captures == 0

    def test_double_jump(self, forced_chain_board):
        chains = chains_from(forced_chain_board, (8, 7))

        assert len(chains) == 1
        assert chains[0].total_captures == 2
        assert [step.target for step in chains[0].steps] == [(6, 5), (4, 7)]

    def test_branching_chains_are_all_listed(self):
        # After the first jump the man can go left or right
        board = make_board(light=[(8, 5)], dark=[(7, 4), (5, 2), (5, 4), (3, 4)])

        chains = chains_from(board, (8, 5))
        lengths = sorted(chain.total_captures for chain in chains)

        assert lengths == [2, 3]

    def test_exploration_is_deterministic(self, forced_chain_board):
        first = chains_from(forced_chain_board, (8, 7))
        second = chains_from(forced_chain_board, (8, 7))

        assert first == second

    def test_board_is_left_untouched(self, forced_chain_board):
        before = forced_chain_board.copy()

        chains_from(forced_chain_board, (8, 7))

        assert forced_chain_board == before

    def test_man_is_not_crowned_mid_chain(self):
        # Lands on the back rank, then must jump back out as a man
        board = make_board(light=[(2, 3)], dark=[(1, 4), (1, 6)])

        (chain,) = chains_from(board, (2, 3))

        assert [step.target for step in chain.steps] == [(0, 5), (2, 7)]

    def test_king_chain_turns_between_jumps(self):
        board = make_board(light_kings=[(9, 0)], dark=[(7, 2), (3, 4)])

        best = max(chains_from(board, (9, 0)), key=lambda chain: chain.total_captures)

        assert best.total_captures == 2
        assert best.steps[1].captured == ((3, 4),)


class TestMaxCaptureMoves:
    def test_only_the_longest_chain_may_move(self, forced_chain_board):
        moves = max_capture_moves(forced_chain_board, Side.LIGHT)

        assert moves == [Move((8, 7), (6, 5), ((7, 6),))]

    def test_empty_when_no_capture_exists(self):
        board = Board(10)

        assert max_capture_moves(board, Side.LIGHT) == []
        assert longest_chain_length(board, Side.LIGHT) == 0

    def test_ties_are_all_legal(self):
        board = make_board(light=[(6, 1), (6, 7)], dark=[(5, 2), (5, 8)])

        moves = max_capture_moves(board, Side.LIGHT)

        assert set(moves) == {
            Move((6, 1), (4, 3), ((5, 2),)),
            Move((6, 7), (4, 9), ((5, 8),)),
        }

    def test_non_empty_iff_a_single_capture_exists(self, forced_chain_board, start_board):
        for board in (forced_chain_board, start_board, make_board(light=[(4, 3)], dark=[(5, 4)])):
            for side in Side:
                any_capture = any(capture_moves(board, sq) for sq, _ in board.pieces(side))
                assert bool(max_capture_moves(board, side)) == any_capture

    def test_every_returned_move_starts_a_longest_chain(self):
        board = make_board(light=[(8, 5), (6, 9)], dark=[(7, 4), (5, 2), (5, 4), (3, 4), (5, 8)])
        best = longest_chain_length(board, Side.LIGHT)

        moves = max_capture_moves(board, Side.LIGHT)

        assert best == 3
        for move in moves:
            lengths = [
                chain.total_captures
                for chain in chains_from(board, move.origin)
                if chain.steps and chain.first_step == move
            ]
            assert max(lengths) == best

    def test_continuation_prefers_the_longer_branch(self):
        board = make_board(light=[(6, 3)], dark=[(5, 2), (5, 4), (3, 4)])

        moves = continuation_moves(board, (6, 3))

        assert moves == [Move((6, 3), (4, 5), ((5, 4),))]

import random
import unittest

from checkers_netplay.board import BoardState, Move, PieceKind, Position, Team
from checkers_netplay.rules import (
    StandardLayout,
    all_legal_moves,
    has_any_move,
    is_terminal,
    legal_moves,
)


def _board(rows=6, cols=6, **cells):
    board = BoardState(rows, cols)
    for key, kind in cells.items():
        r, c = key[1:].split("_")
        board.set(Position(int(r), int(c)), kind)
    return board


class TestStandardLayout(unittest.TestCase):
    def test_six_by_six_two_rows(self):
        board = BoardState(6, 6)
        StandardLayout(2).setup(board)
        a = sorted((p.row, p.col) for p, k in board.pieces() if k is PieceKind.A_MAN)
        b = sorted((p.row, p.col) for p, k in board.pieces() if k is PieceKind.B_MAN)
        self.assertEqual(a, [(0, 1), (0, 3), (0, 5), (1, 0), (1, 2), (1, 4)])
        self.assertEqual(b, [(4, 1), (4, 3), (4, 5), (5, 0), (5, 2), (5, 4)])
        self.assertEqual(len(list(board.pieces())), 12)

    def test_rows_per_side_clamped_to_half_board(self):
        board = BoardState(4, 4)
        StandardLayout(5).setup(board)
        rows_a = {p.row for p, k in board.pieces() if k.team is Team.A}
        rows_b = {p.row for p, k in board.pieces() if k.team is Team.B}
        self.assertEqual(rows_a, {0, 1})
        self.assertEqual(rows_b, {2, 3})

    def test_setup_is_idempotent(self):
        first = BoardState(8, 8)
        second = BoardState(8, 8)
        layout = StandardLayout(3)
        layout.setup(first)
        layout.setup(second)
        layout.setup(second)
        self.assertEqual(first, second)


class TestLegalMoves(unittest.TestCase):
    def test_capture_scenario(self):
        board = _board(r2_2=PieceKind.A_MAN, r3_3=PieceKind.B_MAN)
        moves = legal_moves(board, Position(2, 2), Team.A)
        captures = [m for m in moves if m.is_capture]
        self.assertEqual(len(captures), 1)
        self.assertEqual(captures[0].to_pos, Position(4, 4))
        self.assertEqual(captures[0].captured, Position(3, 3))
        # The other diagonal is a plain step, returned alongside the capture
        self.assertIn(Move(Position(2, 2), Position(3, 1)), moves)

    def test_wrong_team_or_empty_origin_yields_nothing(self):
        board = _board(r2_2=PieceKind.A_MAN)
        self.assertEqual(legal_moves(board, Position(2, 2), Team.B), set())
        self.assertEqual(legal_moves(board, Position(0, 0), Team.A), set())
        self.assertEqual(legal_moves(board, Position(9, 9), Team.A), set())

    def test_men_only_move_forward(self):
        board = _board(r2_2=PieceKind.A_MAN, r3_3=PieceKind.B_MAN)
        a_targets = {m.to_pos.row for m in legal_moves(board, Position(2, 2), Team.A)}
        b_targets = {m.to_pos.row for m in legal_moves(board, Position(3, 3), Team.B)}
        self.assertTrue(all(r > 2 for r in a_targets))
        self.assertTrue(all(r < 3 for r in b_targets))

    def test_king_moves_both_directions(self):
        board = _board(r2_2=PieceKind.A_KING)
        targets = {m.to_pos for m in legal_moves(board, Position(2, 2), Team.A)}
        self.assertEqual(targets, {Position(1, 1), Position(1, 3), Position(3, 1), Position(3, 3)})

    def test_capture_blocked_by_occupied_or_offboard_landing(self):
        board = _board(r2_2=PieceKind.A_MAN, r3_3=PieceKind.B_MAN, r4_4=PieceKind.B_MAN)
        self.assertFalse(any(m.is_capture for m in legal_moves(board, Position(2, 2), Team.A)))
        edge = _board(r4_4=PieceKind.A_MAN, r5_5=PieceKind.B_MAN)
        self.assertFalse(any(m.is_capture for m in legal_moves(edge, Position(4, 4), Team.A)))

    def test_no_capture_of_own_piece(self):
        board = _board(r2_2=PieceKind.A_MAN, r3_3=PieceKind.A_MAN)
        self.assertFalse(any(m.is_capture for m in legal_moves(board, Position(2, 2), Team.A)))

    def test_random_boards_targets_on_board_and_empty(self):
        rng = random.Random(3)
        kinds = list(PieceKind)
        for _ in range(200):
            board = BoardState(6, 6)
            for pos in board.positions():
                board.set(pos, rng.choice(kinds))
            for team in (Team.A, Team.B):
                for mv in all_legal_moves(board, team):
                    self.assertTrue(board.is_inside(mv.to_pos))
                    self.assertIs(board.get(mv.to_pos), PieceKind.EMPTY)
                    if mv.is_capture:
                        mid = Position((mv.from_pos.row + mv.to_pos.row) // 2,
                                       (mv.from_pos.col + mv.to_pos.col) // 2)
                        self.assertEqual(mv.captured, mid)
                        self.assertIs(board.get(mid).team, team.opponent)


class TestIsTerminal(unittest.TestCase):
    def test_team_without_pieces_loses(self):
        board = _board(r1_0=PieceKind.A_MAN)
        self.assertEqual(is_terminal(board, Team.B), (True, Team.A))
        board = _board(r4_1=PieceKind.B_MAN)
        self.assertEqual(is_terminal(board, Team.A), (True, Team.B))

    def test_opening_position_continues(self):
        board = BoardState(6, 6)
        StandardLayout(2).setup(board)
        over, _ = is_terminal(board, Team.A)
        self.assertFalse(over)

    def test_stuck_team_loses(self):
        # B man on row 0 cannot move forward; A king is free
        board = _board(r0_1=PieceKind.B_MAN, r3_3=PieceKind.A_KING)
        self.assertFalse(has_any_move(board, Team.B))
        self.assertEqual(is_terminal(board, Team.B), (True, Team.A))

    def test_both_stuck_resolves_for_side_that_moved(self):
        # A man on the last row, B man on row 0: neither man can advance
        board = _board(r5_0=PieceKind.A_MAN, r0_1=PieceKind.B_MAN)
        self.assertEqual(is_terminal(board, Team.A), (True, Team.A))
        self.assertEqual(is_terminal(board, Team.B), (True, Team.B))


if __name__ == "__main__":
    unittest.main()

import unittest

from checkers_netplay.board import BoardSizeError, BoardState, PieceKind, Position, Team


class TestBoardConstruction(unittest.TestCase):
    def test_non_positive_dimensions_rejected(self):
        for rows, cols in ((0, 6), (6, 0), (-1, 3)):
            with self.assertRaises(BoardSizeError):
                BoardState(rows, cols)

    def test_board_size_error_is_value_error(self):
        with self.assertRaises(ValueError):
            BoardState(0, 0)

    def test_new_board_is_empty(self):
        board = BoardState(3, 4)
        self.assertEqual(board.flatten(), [0] * 12)
        self.assertEqual(list(board.pieces()), [])


class TestBoardAccess(unittest.TestCase):
    def setUp(self):
        self.board = BoardState(4, 5)

    def test_is_inside(self):
        self.assertTrue(self.board.is_inside(Position(0, 0)))
        self.assertTrue(self.board.is_inside(Position(3, 4)))
        self.assertFalse(self.board.is_inside(Position(4, 0)))
        self.assertFalse(self.board.is_inside(Position(0, -1)))

    def test_out_of_bounds_access_raises(self):
        with self.assertRaises(IndexError):
            self.board.get(Position(4, 0))
        with self.assertRaises(IndexError):
            self.board.set(Position(0, 5), PieceKind.A_MAN)

    def test_flatten_is_row_major(self):
        self.board.set(Position(1, 2), PieceKind.B_KING)
        flat = self.board.flatten()
        self.assertEqual(flat[1 * 5 + 2], int(PieceKind.B_KING))
        self.assertEqual(sum(1 for code in flat if code), 1)

    def test_from_flat_round_trip_and_copy_is_independent(self):
        self.board.set(Position(0, 1), PieceKind.A_MAN)
        clone = self.board.copy()
        self.assertEqual(clone, self.board)
        clone.set(Position(0, 1), PieceKind.EMPTY)
        self.assertNotEqual(clone, self.board)
        self.assertEqual(BoardState.from_flat(4, 5, self.board.flatten()), self.board)


class TestPieceKind(unittest.TestCase):
    def test_team_and_promotion(self):
        self.assertIs(PieceKind.A_MAN.team, Team.A)
        self.assertIs(PieceKind.B_KING.team, Team.B)
        self.assertIsNone(PieceKind.EMPTY.team)
        self.assertIs(PieceKind.A_MAN.promoted(), PieceKind.A_KING)
        self.assertIs(PieceKind.B_MAN.promoted(), PieceKind.B_KING)
        self.assertIs(PieceKind.B_KING.promoted(), PieceKind.B_KING)

    def test_teams_move_in_opposite_directions(self):
        self.assertEqual(Team.A.forward, -Team.B.forward)
        self.assertIs(Team.A.opponent, Team.B)


if __name__ == "__main__":
    unittest.main()

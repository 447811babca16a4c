import unittest

from tools import auto_exercise


class TestAutoExercise(unittest.TestCase):
    def test_opening_legality(self):
        counts = auto_exercise.exercise_piece_legality(auto_exercise.new_game())
        self.assertEqual(counts["pieces"], 12)
        self.assertGreater(counts["legal_moves"], 0)
        self.assertGreater(counts["illegal_checked"], 0)

    def test_random_playouts_hold_invariants(self):
        for seed in range(10):
            stats = auto_exercise.autoplay_random(auto_exercise.new_game(), plies=300, seed=seed)
            self.assertGreater(stats["plies"], 0)

    def test_promotions(self):
        self.assertEqual(auto_exercise.check_promotions(), 2)

    def test_main_runs(self):
        auto_exercise.main(games=3)


if __name__ == "__main__":
    unittest.main()

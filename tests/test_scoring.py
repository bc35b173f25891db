from __future__ import annotations

import unittest

from app.sync.scoring import (
    FOOTBALL_STANDARD,
    RUGBY_PROXIMITY,
    calculate_bet_points,
    scoring_system_for_sport,
)


class FootballScoringTests(unittest.TestCase):
    def test_exact_score(self) -> None:
        self.assertEqual(3, calculate_bet_points(2, 1, 2, 1, FOOTBALL_STANDARD))

    def test_correct_outcome(self) -> None:
        self.assertEqual(1, calculate_bet_points(1, 0, 3, 1, FOOTBALL_STANDARD))
        self.assertEqual(1, calculate_bet_points(0, 0, 2, 2, FOOTBALL_STANDARD))

    def test_wrong_outcome(self) -> None:
        self.assertEqual(0, calculate_bet_points(0, 2, 2, 1, FOOTBALL_STANDARD))


class RugbyScoringTests(unittest.TestCase):
    def test_close_prediction_scores_full_points(self) -> None:
        self.assertEqual(3, calculate_bet_points(24, 20, 27, 18, RUGBY_PROXIMITY))

    def test_far_prediction_with_right_winner(self) -> None:
        self.assertEqual(1, calculate_bet_points(30, 10, 21, 18, RUGBY_PROXIMITY))

    def test_close_total_with_wrong_winner_still_scores(self) -> None:
        self.assertEqual(3, calculate_bet_points(20, 21, 22, 20, RUGBY_PROXIMITY))

    def test_wrong_winner(self) -> None:
        self.assertEqual(0, calculate_bet_points(10, 30, 25, 12, RUGBY_PROXIMITY))


class ScoringSystemTests(unittest.TestCase):
    def test_system_per_sport(self) -> None:
        self.assertEqual(FOOTBALL_STANDARD, scoring_system_for_sport("football"))
        self.assertEqual(RUGBY_PROXIMITY, scoring_system_for_sport("RUGBY"))

    def test_unknown_system_raises(self) -> None:
        with self.assertRaises(ValueError):
            calculate_bet_points(1, 0, 1, 0, "DARTS")


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

from app.settings import get_sport_profile

FOOTBALL_STANDARD = "FOOTBALL_STANDARD"
RUGBY_PROXIMITY = "RUGBY_PROXIMITY"

EXACT_POINTS = 3
OUTCOME_POINTS = 1
RUGBY_PROXIMITY_MARGIN = 5


def _outcome(home: int, away: int) -> int:
    return (home > away) - (home < away)


def calculate_bet_points(
    predicted_home: int,
    predicted_away: int,
    actual_home: int,
    actual_away: int,
    system: str = FOOTBALL_STANDARD,
) -> int:
    """Points a prediction earns against a final score.

    FOOTBALL_STANDARD: 3 for the exact score, 1 for the right outcome.
    RUGBY_PROXIMITY: 3 when both sides are within 5 points in total, 1 for the
    right outcome.
    """
    if system == RUGBY_PROXIMITY:
        difference = abs(predicted_home - actual_home) + abs(predicted_away - actual_away)
        if difference <= RUGBY_PROXIMITY_MARGIN:
            return EXACT_POINTS
    elif system == FOOTBALL_STANDARD:
        if predicted_home == actual_home and predicted_away == actual_away:
            return EXACT_POINTS
    else:
        raise ValueError(f"Unknown scoring system: {system}")

    if _outcome(predicted_home, predicted_away) == _outcome(actual_home, actual_away):
        return OUTCOME_POINTS
    return 0


def scoring_system_for_sport(sport: str) -> str:
    return get_sport_profile(sport).scoring_system

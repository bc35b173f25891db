from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from app.ingestion.schema import ExternalMatch, ScorePair
from app.matching.team_resolver import TeamRef
from app.settings import build_sync_config
from app.sync.state import Gate, TrackedGame, UpdateSource
from app.sync.transitions import plan_update

NOW = datetime(2026, 10, 19, 21, 0, tzinfo=timezone.utc)
KICKOFF = NOW - timedelta(minutes=100)
CONFIG = build_sync_config("FOOTBALL")


def _game(**overrides) -> TrackedGame:
    values = dict(
        id=1,
        sport="FOOTBALL",
        competition_id=1,
        competition_name="Primeira Liga",
        home_team=TeamRef(id=1, name="Porto"),
        away_team=TeamRef(id=2, name="Sporting Clube de Portugal", short_name="Sporting CP"),
        date=KICKOFF,
        status="LIVE",
        external_id="555",
        external_status="2H",
        live_home_score=1,
        live_away_score=1,
        elapsed_minute=80,
    )
    values.update(overrides)
    return TrackedGame(**values)


def _external(code: str, status: str, score=(2, 1), **overrides) -> ExternalMatch:
    values = dict(
        id="555",
        sport="FOOTBALL",
        status=status,
        external_status=code,
        elapsed=90,
        home_name="FC Porto",
        away_name="Sporting CP",
        score=ScorePair(home=score[0], away=score[1]) if score else None,
        kickoff=KICKOFF,
        competition="Primeira Liga",
    )
    values.update(overrides)
    return ExternalMatch(**values)


def _plan(game, external, **kwargs):
    return plan_update(game, external, source=UpdateSource.ID, config=CONFIG, now=NOW, **kwargs)


class FinishTransitionTests(unittest.TestCase):
    def test_full_time_promotes_to_finished(self) -> None:
        update = _plan(_game(), _external("FT", "FINISHED"))

        self.assertTrue(update.finishes_game)
        self.assertEqual(2, update.changes["home_score"])
        self.assertEqual(1, update.changes["away_score"])
        self.assertEqual("FT", update.changes["decided_by"])
        self.assertEqual(NOW, update.changes["finished_at"])

    def test_extra_time_finish_is_tagged(self) -> None:
        external = _external(
            "AET",
            "FINISHED",
            score=(1, 1),
            extra_time_score=ScorePair(home=2, away=1),
        )

        update = _plan(_game(), external)

        self.assertEqual((2, 1), (update.changes["home_score"], update.changes["away_score"]))
        self.assertEqual("AET", update.changes["decided_by"])

    def test_finish_gate_keeps_status_but_refreshes_scores(self) -> None:
        external = _external("FT", "FINISHED", kickoff=KICKOFF + timedelta(hours=2))

        update = _plan(_game(), external)

        self.assertNotIn("status", update.changes)
        self.assertEqual(2, update.changes["live_home_score"])
        self.assertEqual([Gate.FINISH_GATE], [r.gate for r in update.rejections])

    def test_finish_gate_rejects_inconsistent_competition(self) -> None:
        update = _plan(_game(), _external("FT", "FINISHED", competition="Taça da Liga"))

        self.assertFalse(update.finishes_game)

    def test_finish_without_score_is_refused(self) -> None:
        update = _plan(_game(live_home_score=None, live_away_score=None), _external("FT", "FINISHED", score=None))

        self.assertFalse(update.finishes_game)

    def test_swapped_orientation_swaps_scores(self) -> None:
        external = _external("FT", "FINISHED", score=(1, 2), home_name="Sporting CP", away_name="FC Porto")

        update = _plan(_game(), external, swapped=True)

        self.assertEqual((2, 1), (update.changes["home_score"], update.changes["away_score"]))


class StatusGuardTests(unittest.TestCase):
    def test_in_progress_code_is_never_finished(self) -> None:
        for code in ("HT", "1H", "2H"):
            with self.subTest(code=code):
                update = _plan(_game(status="UPCOMING"), _external(code, "FINISHED"))
                self.assertEqual("LIVE", update.changes["status"])
                self.assertNotIn("home_score", update.changes)

    def test_half_time_clears_elapsed(self) -> None:
        update = _plan(_game(), _external("HT", "LIVE", elapsed=45))

        self.assertIsNone(update.changes["elapsed_minute"])

    def test_live_null_score_becomes_zero(self) -> None:
        update = _plan(
            _game(status="UPCOMING", live_home_score=None, live_away_score=None, external_status="NS"),
            _external("1H", "LIVE", score=None, elapsed=3),
        )

        self.assertEqual("LIVE", update.changes["status"])
        self.assertEqual(0, update.changes["live_home_score"])
        self.assertEqual(0, update.changes["live_away_score"])

    def test_live_game_is_not_cancelled(self) -> None:
        update = _plan(_game(), _external("SUSP", "CANCELLED"))

        self.assertNotIn("status", update.changes)
        self.assertEqual([Gate.STATUS_GUARD], [r.gate for r in update.rejections])

    def test_not_started_correction_resets_live_game(self) -> None:
        update = _plan(_game(), _external("NS", "UPCOMING", score=None, elapsed=None))

        self.assertEqual("UPCOMING", update.changes["status"])
        self.assertIsNone(update.changes["live_home_score"])
        self.assertIsNone(update.changes["elapsed_minute"])

    def test_postponed_correction_resets_live_game(self) -> None:
        update = _plan(_game(), _external("PST", "CANCELLED", score=None, elapsed=None))

        self.assertEqual("UPCOMING", update.changes["status"])

    def test_unchanged_record_has_no_changes(self) -> None:
        game = _game(live_home_score=2, live_away_score=1, elapsed_minute=90)

        update = _plan(game, _external("2H", "LIVE"))

        self.assertEqual({}, update.changes)


if __name__ == "__main__":
    unittest.main()

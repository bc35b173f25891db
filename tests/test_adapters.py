from __future__ import annotations

import unittest
from datetime import datetime, timezone

from app.ingestion.adapters import FootballAdapter, RugbyAdapter, adapter_for_sport
from app.ingestion.statuses import map_status


def _football_fixture(fixture_id=101, short="FT", goals=(2, 1), extra=None, date="2026-10-19T19:00:00+00:00"):
    return {
        "fixture": {"id": fixture_id, "date": date, "status": {"short": short, "elapsed": 90}},
        "league": {"id": 94, "name": "Primeira Liga"},
        "teams": {"home": {"id": 1, "name": "FC Porto"}, "away": {"id": 2, "name": "Sporting CP"}},
        "goals": {"home": goals[0], "away": goals[1], "extra": extra, "penalty": None},
    }


def _rugby_game(game_id=7, short="2H", scores=(17, 10)):
    return {
        "id": game_id,
        "date": "2026-10-19T15:00:00+00:00",
        "status": {"short": short, "elapsed": 55},
        "league": {"id": 16, "name": "Top 14"},
        "teams": {"home": {"id": 1, "name": "Stade Toulousain"}, "away": {"id": 2, "name": "Racing 92"}},
        "scores": {"home": scores[0], "away": scores[1]},
    }


class FootballAdapterTests(unittest.TestCase):
    def test_normalize_nested_fixture(self) -> None:
        matches = FootballAdapter().normalize({"response": [_football_fixture()]})

        self.assertEqual(1, len(matches))
        match = matches[0]
        self.assertEqual("101", match.id)
        self.assertEqual("FINISHED", match.status)
        self.assertEqual("FT", match.external_status)
        self.assertEqual("FC Porto", match.home_name)
        self.assertEqual("Primeira Liga", match.competition)
        self.assertEqual((2, 1), (match.score.home, match.score.away))
        self.assertEqual(datetime(2026, 10, 19, 19, 0, tzinfo=timezone.utc), match.kickoff)

    def test_extra_time_score_overrides_regular_score(self) -> None:
        record = _football_fixture(short="AET", goals=(1, 1), extra={"home": 2, "away": 1})

        match = FootballAdapter().normalize([record])[0]

        self.assertEqual("FINISHED", match.status)
        self.assertEqual((2, 1), (match.authoritative_score.home, match.authoritative_score.away))

    def test_penalty_shootout_score_is_ignored(self) -> None:
        record = _football_fixture(short="PEN", goals=(1, 1))
        record["goals"]["penalty"] = {"home": 5, "away": 4}

        match = FootballAdapter().normalize([record])[0]

        self.assertEqual((1, 1), (match.authoritative_score.home, match.authoritative_score.away))

    def test_missing_goals_are_not_zero(self) -> None:
        record = _football_fixture(short="NS", goals=(None, None))

        match = FootballAdapter().normalize([record])[0]

        self.assertEqual("UPCOMING", match.status)
        self.assertIsNone(match.score)

    def test_malformed_records_are_skipped(self) -> None:
        bad_date = _football_fixture(fixture_id=102, date="not-a-date")
        no_teams = _football_fixture(fixture_id=103)
        no_teams["teams"] = {"home": None, "away": {"name": "B"}}
        no_id = _football_fixture()
        no_id["fixture"]["id"] = None

        matches = FootballAdapter().normalize(
            {"response": [bad_date, no_teams, "garbage", no_id, _football_fixture(fixture_id=104)]}
        )

        self.assertEqual(["104"], [match.id for match in matches])

    def test_duplicate_ids_keep_first_record(self) -> None:
        first = _football_fixture(short="1H", goals=(0, 0))
        second = _football_fixture(short="FT", goals=(2, 1))

        matches = FootballAdapter().normalize([first, second])

        self.assertEqual(1, len(matches))
        self.assertEqual("LIVE", matches[0].status)


class RugbyAdapterTests(unittest.TestCase):
    def test_flat_games_shape(self) -> None:
        match = RugbyAdapter().normalize({"response": [_rugby_game()]})[0]

        self.assertEqual("7", match.id)
        self.assertEqual("LIVE", match.status)
        self.assertEqual(55, match.elapsed)
        self.assertEqual((17, 10), (match.score.home, match.score.away))
        self.assertEqual("Top 14", match.competition)

    def test_nested_fixtures_shape(self) -> None:
        record = {
            "fixture": {"id": 8, "date": "2026-10-19T15:00:00Z", "status": {"short": "FT"}},
            "league": {"name": "Top 14"},
            "teams": {"home": {"name": "Stade Toulousain"}, "away": {"name": "Racing 92"}},
            "goals": {"home": 24, "away": 19},
        }

        match = RugbyAdapter().normalize({"response": [record, _rugby_game(game_id=9)]})[0]

        self.assertEqual("8", match.id)
        self.assertEqual("FINISHED", match.status)
        self.assertEqual((24, 19), (match.score.home, match.score.away))

    def test_interrupted_and_abandoned_map_to_cancelled(self) -> None:
        adapter = RugbyAdapter()

        self.assertEqual("CANCELLED", adapter.map_status("INT"))
        self.assertEqual("CANCELLED", adapter.map_status("ABAN"))
        self.assertEqual("FINISHED", adapter.map_status("AWARDED"))


class StatusTableTests(unittest.TestCase):
    def test_half_time_is_live_for_both_adapters(self) -> None:
        for sport in ("FOOTBALL", "RUGBY"):
            with self.subTest(sport=sport):
                self.assertEqual("LIVE", adapter_for_sport(sport).map_status("HT"))

        football = FootballAdapter().normalize([_football_fixture(short="HT", goals=(1, 0))])[0]
        rugby = RugbyAdapter().normalize([_rugby_game(short="HT")])[0]
        self.assertEqual("LIVE", football.status)
        self.assertEqual("LIVE", rugby.status)

    def test_postponed_maps_to_cancelled(self) -> None:
        self.assertEqual("CANCELLED", map_status("PST"))

    def test_unknown_code_maps_to_upcoming(self) -> None:
        with self.assertLogs("app.ingestion.statuses", level="WARNING"):
            self.assertEqual("UPCOMING", map_status("WAT"))


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import unittest
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from app.ai.arbitration import arbitrate
from app.ai.matcher import (
    ArbitrationVerdict,
    VerdictCache,
    consult_arbitrator,
    select_candidates,
)
from app.ai.openai_client import OpenAIClientError
from app.ingestion.schema import ExternalMatch, ScorePair
from app.matching.team_resolver import TeamRef
from app.settings import build_sync_config
from app.sync.state import AttemptState, Gate, ReconciliationResult, TrackedGame, UnmatchedMatch

NOW = datetime(2026, 10, 19, 21, 0, tzinfo=timezone.utc)
KICKOFF = NOW - timedelta(minutes=30)
CONFIG = replace(build_sync_config("FOOTBALL"), ai_enabled=True)
SETTINGS = SimpleNamespace(openai_api_key_enc="token", openai_model="gpt-5-mini", openai_reasoning_effort="low")

PORTO = TeamRef(id=1, name="Porto", sport_type="FOOTBALL")
SPORTING = TeamRef(id=2, name="Sporting Clube de Portugal", short_name="Sporting CP", sport_type="FOOTBALL")
BENFICA = TeamRef(id=3, name="SL Benfica", short_name="Benfica", sport_type="FOOTBALL")
BRAGA = TeamRef(id=4, name="SC Braga", short_name="Braga", sport_type="FOOTBALL")


def _game(game_id=1, home=PORTO, away=SPORTING, **overrides) -> TrackedGame:
    values = dict(
        id=game_id,
        sport="FOOTBALL",
        competition_id=1,
        competition_name="Primeira Liga",
        home_team=home,
        away_team=away,
        date=KICKOFF,
        status="UPCOMING",
    )
    values.update(overrides)
    return TrackedGame(**values)


def _external(match_id="6000", home="FCP", away="SCP", score=(1, 0), **overrides) -> ExternalMatch:
    values = dict(
        id=match_id,
        sport="FOOTBALL",
        status="LIVE",
        external_status="1H",
        elapsed=30,
        home_name=home,
        away_name=away,
        score=ScorePair(home=score[0], away=score[1]),
        kickoff=KICKOFF,
        competition="Primeira Liga",
    )
    values.update(overrides)
    return ExternalMatch(**values)


def _result(games, external=None, candidate_ids=(1,), failed_gates=frozenset()) -> ReconciliationResult:
    item = UnmatchedMatch(
        external=external or _external(),
        reason=Gate.TEAM_RESOLUTION,
        failed_gates=failed_gates,
        candidate_ids=candidate_ids,
    )
    return ReconciliationResult(
        games={game.id: game for game in games},
        updated_ids=set(),
        unmatched=[item],
    )


def _verdict(game_id=1, confidence=0.96, external_id="6000") -> dict[str, ArbitrationVerdict]:
    return {external_id: ArbitrationVerdict(external_id=external_id, game_id=game_id, confidence=confidence)}


class ArbitrateTests(unittest.TestCase):
    def test_confident_verdict_updates_game(self) -> None:
        result = _result([_game()])

        accepted = arbitrate(result, _verdict(), CONFIG, NOW)

        self.assertEqual(1, len(accepted))
        changes = accepted[0].changes
        self.assertEqual("6000", changes["external_id"])
        self.assertEqual("LIVE", changes["status"])
        self.assertEqual((1, 0), (changes["live_home_score"], changes["live_away_score"]))
        self.assertEqual([], result.unmatched)
        self.assertIn(1, result.updated_ids)
        self.assertEqual(AttemptState.MATCHED, result.attempts[0].final_state)

    def test_attach_tier_only_links_the_vendor_id(self) -> None:
        result = _result([_game()])

        accepted = arbitrate(result, _verdict(confidence=0.87), CONFIG, NOW)

        self.assertEqual({"external_id": "6000", "external_status": "1H"}, accepted[0].changes)

    def test_reversed_orientation_swaps_scores(self) -> None:
        result = _result([_game()], external=_external(home="Sporting CP", away="FCP", score=(0, 1)))

        accepted = arbitrate(result, _verdict(), CONFIG, NOW)

        changes = accepted[0].changes
        self.assertEqual((1, 0), (changes["live_home_score"], changes["live_away_score"]))

    def test_low_confidence_is_rejected(self) -> None:
        result = _result([_game()])

        accepted = arbitrate(result, _verdict(confidence=0.6), CONFIG, NOW)

        self.assertEqual([], accepted)
        self.assertEqual(1, len(result.unmatched))
        self.assertEqual([Gate.AI_CONFIDENCE], [r.gate for r in result.rejections])

    def test_game_outside_candidates_is_rejected(self) -> None:
        result = _result([_game(), _game(2, home=BENFICA, away=BRAGA)])

        accepted = arbitrate(result, _verdict(game_id=2), CONFIG, NOW)

        self.assertEqual([], accepted)
        self.assertEqual([Gate.AI_NO_GAME], [r.gate for r in result.rejections])

    def test_missing_game_id_is_rejected(self) -> None:
        result = _result([_game()])

        arbitrate(result, _verdict(game_id=None), CONFIG, NOW)

        self.assertEqual([Gate.AI_NO_GAME], [r.gate for r in result.rejections])

    def test_failed_context_requires_promotion_confidence(self) -> None:
        result = _result([_game()], failed_gates=frozenset({Gate.DATE_WINDOW}))

        self.assertEqual([], arbitrate(result, _verdict(confidence=0.92), CONFIG, NOW))
        self.assertEqual([Gate.AI_CONFIDENCE], [r.gate for r in result.rejections])

    def test_recently_synced_link_is_protected(self) -> None:
        game = _game(status="LIVE", external_id="5000", last_sync_at=NOW - timedelta(minutes=4))
        result = _result([game])

        accepted = arbitrate(result, _verdict(confidence=0.99), CONFIG, NOW)

        self.assertEqual([], accepted)
        self.assertEqual([Gate.AI_RECENT_SYNC], [r.gate for r in result.rejections])

    def test_old_link_needs_promotion_confidence_to_replace(self) -> None:
        game = _game(status="LIVE", external_id="5000", last_sync_at=NOW - timedelta(hours=1))

        rejected = _result([game])
        arbitrate(rejected, _verdict(confidence=0.92), CONFIG, NOW)
        replaced = _result([game])
        accepted = arbitrate(replaced, _verdict(confidence=0.97), CONFIG, NOW)

        self.assertEqual([Gate.AI_CONFIDENCE], [r.gate for r in rejected.rejections])
        self.assertEqual("6000", accepted[0].changes["external_id"])

    def test_terminal_game_is_not_touched(self) -> None:
        game = _game(status="FINISHED", home_score=2, away_score=0, finished_at=NOW - timedelta(minutes=5))
        result = _result([game])

        self.assertEqual([], arbitrate(result, _verdict(), CONFIG, NOW))
        self.assertEqual([Gate.TERMINAL], [r.gate for r in result.rejections])


class ConsultArbitratorTests(unittest.TestCase):
    def _unmatched(self) -> list[UnmatchedMatch]:
        return [UnmatchedMatch(external=_external(), reason=Gate.TEAM_RESOLUTION)]

    def test_disabled_arbitrator_is_never_called(self) -> None:
        def _request(payload, settings):
            raise AssertionError("must not be called")

        config = replace(CONFIG, ai_enabled=False)
        verdicts = consult_arbitrator(self._unmatched(), {1: _game()}, set(), config, SETTINGS, request_fn=_request)

        self.assertEqual({}, verdicts)

    def test_verdicts_are_cached_between_runs(self) -> None:
        calls = []

        def _request(payload, settings):
            calls.append(payload)
            return {"matches": [{"external_id": "6000", "game_id": 1, "confidence": 0.96, "reasoning": "abbrev"}]}

        cache = VerdictCache()
        games = {1: _game()}
        first = consult_arbitrator(self._unmatched(), games, set(), CONFIG, SETTINGS, request_fn=_request, cache=cache)
        second = consult_arbitrator(self._unmatched(), games, set(), CONFIG, SETTINGS, request_fn=_request, cache=cache)

        self.assertEqual(1, len(calls))
        self.assertEqual(first, second)
        self.assertEqual(1, first["6000"].game_id)

    def test_cache_entries_expire(self) -> None:
        clock = [0.0]
        cache = VerdictCache(ttl=timedelta(hours=24), clock=lambda: clock[0])
        verdict = ArbitrationVerdict(external_id="6000", game_id=1, confidence=0.9)
        cache.put("key", verdict)

        clock[0] = 3600.0
        self.assertEqual(verdict, cache.get("key"))
        clock[0] = 25 * 3600.0
        self.assertIsNone(cache.get("key"))

    def test_cache_drops_oldest_entry_when_full(self) -> None:
        cache = VerdictCache(max_entries=2)
        for key in ("a", "b", "c"):
            cache.put(key, ArbitrationVerdict(external_id=key, game_id=None, confidence=0.0))

        self.assertEqual(2, len(cache))
        self.assertIsNone(cache.get("a"))

    def test_client_failure_yields_no_verdicts(self) -> None:
        def _request(payload, settings):
            raise OpenAIClientError("boom")

        verdicts = consult_arbitrator(
            self._unmatched(), {1: _game()}, set(), CONFIG, SETTINGS, request_fn=_request, cache=VerdictCache()
        )

        self.assertEqual({}, verdicts)

    def test_malformed_verdicts_are_ignored(self) -> None:
        def _request(payload, settings):
            return {"matches": [{"game_id": 1}, {"external_id": "6000", "game_id": "one"}]}

        verdicts = consult_arbitrator(
            self._unmatched(), {1: _game()}, set(), CONFIG, SETTINGS, request_fn=_request, cache=VerdictCache()
        )

        self.assertEqual({}, verdicts)

    def test_candidates_skip_updated_terminal_and_distant_games(self) -> None:
        games = [
            _game(1, date=KICKOFF + timedelta(days=2)),
            _game(2, home=BENFICA, away=BRAGA),
            _game(3, home=BENFICA, away=PORTO, date=KICKOFF + timedelta(days=9)),
            _game(4, home=BRAGA, away=SPORTING, status="FINISHED", home_score=1, away_score=1),
            _game(5, home=BRAGA, away=PORTO, date=KICKOFF - timedelta(hours=3)),
        ]
        item = self._unmatched()[0]

        candidates = select_candidates(item, games, {5}, CONFIG)

        self.assertEqual((2, 1), candidates)


if __name__ == "__main__":
    unittest.main()

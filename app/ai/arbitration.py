"""Gate AI verdicts before they touch a game.

Every verdict goes through the same checks a deterministic match does, plus
the stricter confidence tiers and the recent-sync protection on existing
vendor ids.
"""

from __future__ import annotations

import logging
from datetime import datetime

from app.ai.matcher import ArbitrationVerdict
from app.matching.team_resolver import find_best_match
from app.settings import SyncConfig
from app.sync.reconciler import check_context
from app.sync.state import (
    AttemptState,
    Gate,
    GameUpdate,
    ReconciliationResult,
    Rejection,
    UnmatchedMatch,
    UpdateSource,
)
from app.sync.transitions import date_delta_hours, plan_update

logger = logging.getLogger(__name__)

ATTACH_ONLY_FIELDS = ("external_id", "external_status")


def _reject(result: ReconciliationResult, item: UnmatchedMatch, verdict: ArbitrationVerdict, gate: Gate, detail: str) -> None:
    game = result.games.get(verdict.game_id) if verdict.game_id is not None else None
    rejection = Rejection(
        gate=gate,
        external_id=item.external.id,
        game_id=verdict.game_id,
        home_confidence=verdict.home_confidence,
        away_confidence=verdict.away_confidence,
        date_delta_hours=date_delta_hours(item.external.kickoff, game.date) if game else None,
        detail=f"ai confidence={verdict.confidence:.2f} {detail}".strip(),
    )
    result.rejections.append(rejection)
    logger.warning("AI verdict rejected: %s", rejection.describe())


def _evaluate(
    result: ReconciliationResult,
    item: UnmatchedMatch,
    verdict: ArbitrationVerdict,
    config: SyncConfig,
    now: datetime,
) -> GameUpdate | None:
    thresholds = config.thresholds
    external = item.external

    if verdict.game_id is None:
        _reject(result, item, verdict, Gate.AI_NO_GAME, "no game identified")
        return None
    if verdict.game_id not in item.candidate_ids:
        _reject(result, item, verdict, Gate.AI_NO_GAME, "game was not among the candidates")
        return None

    required = thresholds.promote_finished if item.needs_promotion_confidence else thresholds.attach_id
    if verdict.confidence < required:
        _reject(result, item, verdict, Gate.AI_CONFIDENCE, f"below {required:.2f}")
        return None

    game = result.games[verdict.game_id]
    if game.id in result.updated_ids:
        _reject(result, item, verdict, Gate.ALREADY_UPDATED, "game already updated this run")
        return None
    if game.is_terminal:
        result.updated_ids.add(game.id)
        _reject(result, item, verdict, Gate.TERMINAL, "game already finished")
        return None

    context = check_context(game, external, config)
    if not context.ok:
        _reject(result, item, verdict, context.gate, context.detail)
        return None

    if game.external_id and game.external_id != external.id:
        recently_synced = (
            game.last_sync_at is not None
            and now - game.last_sync_at <= config.recent_sync_window
        )
        if recently_synced:
            _reject(result, item, verdict, Gate.AI_RECENT_SYNC, f"game holds {game.external_id} and synced recently")
            return None
        if verdict.confidence < thresholds.promote_finished:
            _reject(result, item, verdict, Gate.AI_CONFIDENCE, f"overwriting {game.external_id} needs {thresholds.promote_finished:.2f}")
            return None

    home = find_best_match(external.home_name, [game.home_team, game.away_team], config.sport)
    swapped = home is not None and home.team.id == game.away_team.id

    update = plan_update(
        game,
        external,
        source=UpdateSource.AI,
        config=config,
        now=now,
        swapped=swapped,
        confidence=verdict.confidence,
        method="ai",
    )
    if verdict.confidence < thresholds.update_live:
        update.changes = {
            name: value for name, value in update.changes.items() if name in ATTACH_ONLY_FIELDS
        }
    return update


def arbitrate(
    result: ReconciliationResult,
    verdicts: dict[str, ArbitrationVerdict],
    config: SyncConfig,
    now: datetime,
) -> list[GameUpdate]:
    """Apply accepted verdicts to ``result`` and return the new updates."""
    accepted: list[GameUpdate] = []
    still_unmatched: list[UnmatchedMatch] = []
    for item in result.unmatched:
        verdict = verdicts.get(item.external.id)
        if verdict is None:
            still_unmatched.append(item)
            continue

        attempt = result.attempt_for(item.external.id)
        attempt.advance(AttemptState.AI_CANDIDATE)
        update = _evaluate(result, item, verdict, config, now)
        if update is None:
            attempt.advance(AttemptState.REJECTED)
            attempt.advance(AttemptState.UNMATCHED)
            still_unmatched.append(item)
            continue

        attempt.advance(AttemptState.VALIDATED)
        attempt.advance(AttemptState.MATCHED)
        attempt.game_id = update.game_id
        update.trail = tuple(attempt.trail)
        result.updated_ids.add(update.game_id)
        result.rejections.extend(update.rejections)
        logger.info(
            "AI matched external=%s game=%s conf=%.2f reason=%s",
            item.external.id,
            update.game_id,
            verdict.confidence,
            verdict.reasoning,
        )
        if update.has_changes:
            result.games[update.game_id] = result.games[update.game_id].with_changes(update.changes)
            result.updates.append(update)
            accepted.append(update)
        else:
            result.unchanged.append(update.game_id)
    result.unmatched = still_unmatched
    return accepted

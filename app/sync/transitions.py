"""Plan the field changes one validated vendor record makes to a game."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from app.ingestion import statuses
from app.ingestion.schema import ExternalMatch
from app.matching.normalizer import competition_similarity
from app.settings import SyncConfig
from app.sync.state import Gate, GameUpdate, Rejection, TrackedGame, UpdateSource

logger = logging.getLogger(__name__)

TRACKED_FIELDS = (
    "status",
    "external_id",
    "external_status",
    "live_home_score",
    "live_away_score",
    "elapsed_minute",
    "home_score",
    "away_score",
    "decided_by",
    "finished_at",
)


def date_delta_hours(left: datetime, right: datetime) -> float:
    return abs((left - right).total_seconds()) / 3600


def passes_finish_gate(game: TrackedGame, external: ExternalMatch, config: SyncConfig) -> tuple[bool, str]:
    similarity = competition_similarity(game.competition_name, external.competition)
    if similarity < config.competition_min_score:
        return False, (
            f"competition mismatch {external.competition!r} vs {game.competition_name!r} "
            f"(score={similarity:.2f})"
        )
    delta = abs(external.kickoff - game.date)
    if delta > config.finish_window:
        return False, f"kickoff differs by {delta.total_seconds() / 60:.0f} min"
    return True, ""


def _target_status(game: TrackedGame, external: ExternalMatch, rejections: list[Rejection]) -> str:
    code = external.external_status
    target = external.status
    if code in statuses.IN_PROGRESS_CODES:
        target = statuses.LIVE

    if game.status == statuses.FINISHED and target != statuses.FINISHED:
        rejections.append(
            Rejection(Gate.STATUS_GUARD, external.id, game.id, detail=f"FINISHED game cannot move to {target}")
        )
        return game.status

    if game.status == statuses.LIVE and target in (statuses.UPCOMING, statuses.CANCELLED):
        if code in statuses.RESCHEDULE_CODES:
            return statuses.UPCOMING
        rejections.append(
            Rejection(Gate.STATUS_GUARD, external.id, game.id, detail=f"LIVE game kept LIVE on {code or 'unknown'}")
        )
        return statuses.LIVE
    return target


def plan_update(
    game: TrackedGame,
    external: ExternalMatch,
    *,
    source: UpdateSource,
    config: SyncConfig,
    now: datetime,
    swapped: bool = False,
    confidence: float | None = None,
    method=None,
) -> GameUpdate:
    rejections: list[Rejection] = []
    code = external.external_status
    target = _target_status(game, external, rejections)

    score = external.authoritative_score
    if score is not None and swapped:
        score = score.swapped()

    live_home = score.home if score is not None and score.home is not None else game.live_home_score
    live_away = score.away if score is not None and score.away is not None else game.live_away_score

    if code in statuses.BREAK_CODES:
        elapsed = None
    elif external.elapsed is not None:
        elapsed = external.elapsed
    else:
        elapsed = game.elapsed_minute

    if target == statuses.FINISHED:
        ok, detail = passes_finish_gate(game, external, config)
        if ok and (live_home is None or live_away is None):
            ok, detail = False, "no final score reported"
        if not ok:
            rejections.append(Rejection(Gate.FINISH_GATE, external.id, game.id, detail=detail))
            target = game.status

    proposed: dict[str, Any] = {
        "status": target,
        "external_id": external.id,
        "external_status": code or None,
        "live_home_score": live_home,
        "live_away_score": live_away,
        "elapsed_minute": elapsed,
    }

    if target == statuses.LIVE:
        if proposed["live_home_score"] is None:
            proposed["live_home_score"] = 0
        if proposed["live_away_score"] is None:
            proposed["live_away_score"] = 0

    if target == statuses.UPCOMING and game.status == statuses.LIVE:
        # vendor correction of a false start
        proposed["live_home_score"] = None
        proposed["live_away_score"] = None
        proposed["elapsed_minute"] = None

    if target == statuses.FINISHED:
        proposed["home_score"] = proposed["live_home_score"]
        proposed["away_score"] = proposed["live_away_score"]
        proposed["decided_by"] = statuses.decided_by_for(code)
        proposed["finished_at"] = now

    changes = {
        name: value
        for name, value in proposed.items()
        if getattr(game, name) != value
    }
    for rejection in rejections:
        logger.warning("Field update rejected: %s", rejection.describe())

    return GameUpdate(
        game_id=game.id,
        source=source,
        external_id=external.id,
        changes=changes,
        confidence=confidence,
        method=method,
        rejections=rejections,
    )

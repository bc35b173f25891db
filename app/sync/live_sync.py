"""One reconciliation pass for a sport: fetch, match, arbitrate, write, sweep."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.orm import Session, joinedload

from app.ai.arbitration import arbitrate
from app.ai.matcher import consult_arbitrator
from app.ai.openai_client import request_game_matches
from app.db import Base, SessionLocal
from app.ingestion import statuses
from app.ingestion.api_sports_client import build_client
from app.ingestion.collect import collect_external_matches, needs_vendor_data
from app.matching.team_resolver import TeamRef
from app.models import Competition, Game, Team
from app.settings import (
    SettingsSnapshot,
    SyncConfig,
    build_sync_config,
    get_or_create_settings,
    get_sport_profile,
    snapshot_settings,
)
from app.sync.auto_finish import plan_auto_finish
from app.sync.persistence import apply_link_reset, apply_update
from app.sync.reconciler import reconcile
from app.sync.state import Gate, GameUpdate, LinkReset, Rejection, TrackedGame

logger = logging.getLogger(__name__)


@dataclass
class SyncRunResult:
    sport: str
    tracked: int = 0
    fetched: int = 0
    matched: int = 0
    updated: int = 0
    unchanged: int = 0
    rejected: int = 0
    unmatched: int = 0
    ai_matched: int = 0
    link_resets: int = 0
    auto_finished: int = 0
    bets_recalculated: int = 0
    errors: int = 0
    rejections: list[Rejection] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"sport={self.sport} tracked={self.tracked} fetched={self.fetched} "
            f"matched={self.matched} updated={self.updated} unchanged={self.unchanged} "
            f"rejected={self.rejected} unmatched={self.unmatched} ai_matched={self.ai_matched} "
            f"link_resets={self.link_resets} auto_finished={self.auto_finished} "
            f"bets_recalculated={self.bets_recalculated} errors={self.errors}"
        )


def _ensure_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def snapshot_game(game: Game, sport: str) -> TrackedGame:
    return TrackedGame(
        id=game.id,
        sport=sport,
        competition_id=game.competition_id,
        competition_name=game.competition.name if game.competition else "",
        home_team=TeamRef.from_model(game.home_team),
        away_team=TeamRef.from_model(game.away_team),
        date=_ensure_utc(game.date),
        status=game.status,
        external_id=game.external_id,
        external_status=game.external_status,
        live_home_score=game.live_home_score,
        live_away_score=game.live_away_score,
        home_score=game.home_score,
        away_score=game.away_score,
        elapsed_minute=game.elapsed_minute,
        decided_by=game.decided_by,
        finished_at=_ensure_utc(game.finished_at),
        last_sync_at=_ensure_utc(game.last_sync_at),
    )


def _is_tracked(game: TrackedGame, config: SyncConfig, now: datetime) -> bool:
    if game.status == statuses.LIVE:
        return True
    if game.status == statuses.UPCOMING:
        return now - config.auto_finish_after <= game.date <= now + config.upcoming_lookahead
    if game.status == statuses.FINISHED:
        return game.finished_at is not None and now - game.finished_at <= config.finished_lookback
    return False


def load_tracked_games(db: Session, config: SyncConfig, now: datetime) -> list[TrackedGame]:
    rows = (
        db.query(Game)
        .join(Competition, Competition.id == Game.competition_id)
        .options(
            joinedload(Game.competition),
            joinedload(Game.home_team),
            joinedload(Game.away_team),
        )
        .filter(
            Competition.sport_type == config.sport,
            Game.status.in_((statuses.LIVE, statuses.UPCOMING, statuses.FINISHED)),
        )
        .order_by(Game.date.asc(), Game.id.asc())
        .all()
    )
    snapshots = [snapshot_game(row, config.sport) for row in rows]
    return [game for game in snapshots if _is_tracked(game, config, now)]


def load_teams(db: Session, sport: str) -> list[TeamRef]:
    teams = db.query(Team).filter(Team.sport_type == sport).order_by(Team.id.asc()).all()
    return [TeamRef.from_model(team) for team in teams]


def _apply_resets(db: Session, resets: list[LinkReset], result: SyncRunResult) -> None:
    for reset in resets:
        try:
            apply_link_reset(db, reset)
            result.link_resets += 1
        except Exception:
            db.rollback()
            result.errors += 1
            logger.exception("Failed to clear stale link on game %s", reset.game_id)


def _apply_updates(
    db: Session,
    updates: list[GameUpdate],
    now: datetime,
    scoring_system: str,
    result: SyncRunResult,
) -> int:
    applied = 0
    for update in updates:
        try:
            result.bets_recalculated += apply_update(db, update, now, scoring_system)
            applied += 1
        except Exception:
            db.rollback()
            result.errors += 1
            logger.exception(
                "Failed to apply %s update to game %s",
                update.source.value,
                update.game_id,
            )
    return applied


def run_live_sync(
    sport: str,
    *,
    session_factory: Callable[[], Session] = SessionLocal,
    client=None,
    arbitrator: Callable[[dict, object], dict] = request_game_matches,
    now: datetime | None = None,
) -> SyncRunResult:
    profile = get_sport_profile(sport)
    now = _ensure_utc(now) or datetime.now(timezone.utc)
    result = SyncRunResult(sport=profile.sport)

    with session_factory() as db:
        Base.metadata.create_all(bind=db.get_bind())
        settings: SettingsSnapshot = snapshot_settings(get_or_create_settings(db))
        config = build_sync_config(profile.sport, settings)
        games = load_tracked_games(db, config, now)
        teams = load_teams(db, profile.sport)
        result.tracked = len(games)

        external_matches = []
        if needs_vendor_data(games):
            client = client or build_client(profile.sport)
            external_matches = collect_external_matches(client, games, now.date())
        else:
            logger.info("No LIVE or UPCOMING %s games tracked, skipping vendor calls", profile.sport)
        result.fetched = len(external_matches)

        reconciliation = reconcile(games, teams, external_matches, config, now)
        verdicts = consult_arbitrator(
            reconciliation.unmatched,
            reconciliation.games,
            reconciliation.updated_ids,
            config,
            settings,
            request_fn=arbitrator,
        )
        ai_updates = arbitrate(reconciliation, verdicts, config, now)

        batch_ids = {match.id for match in external_matches}
        # a game whose link was cleared this run was still referenced by the batch
        referenced_ids = {game.id for game in games if game.external_id in batch_ids}
        finish_blocked_ids = {
            rejection.game_id
            for rejection in reconciliation.rejections
            if rejection.gate == Gate.FINISH_GATE and rejection.game_id is not None
        }
        sweep = plan_auto_finish(
            reconciliation.games.values(),
            reconciliation.updated_ids | referenced_ids,
            batch_ids,
            config,
            now,
            finish_blocked_ids,
        )

        _apply_resets(db, reconciliation.link_resets, result)
        result.updated = _apply_updates(db, reconciliation.updates, now, config.scoring_system, result)
        result.auto_finished = _apply_updates(db, sweep, now, config.scoring_system, result)

    result.ai_matched = len(ai_updates)
    result.matched = len(reconciliation.updates) + len(reconciliation.unchanged)
    result.unchanged = len(reconciliation.unchanged)
    result.unmatched = len(reconciliation.unmatched)
    result.rejections = list(reconciliation.rejections)
    result.rejected = len(result.rejections)
    logger.info("Live sync done: %s", result.summary())
    return result

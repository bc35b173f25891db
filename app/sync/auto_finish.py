"""Finish LIVE games the vendor has stopped reporting."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from app.ingestion import statuses
from app.settings import SyncConfig
from app.sync.state import GameUpdate, TrackedGame, UpdateSource

logger = logging.getLogger(__name__)


def plan_auto_finish(
    games: Iterable[TrackedGame],
    updated_ids: set[int],
    batch_ids: set[str],
    config: SyncConfig,
    now: datetime,
    finish_blocked_ids: frozenset[int] | set[int] = frozenset(),
) -> list[GameUpdate]:
    """Sweep LIVE games past the sport's timeout that nothing advanced this run.

    A game whose only reference was a FINISHED record held back by the finish
    gate still counts as unreferenced.
    """
    updates: list[GameUpdate] = []
    cutoff = now - config.auto_finish_after
    for game in games:
        if game.status != statuses.LIVE:
            continue
        if game.id not in finish_blocked_ids:
            if game.id in updated_ids:
                continue
            if game.external_id and game.external_id in batch_ids:
                continue
        if game.date > cutoff:
            continue
        home = game.live_home_score if game.live_home_score is not None else 0
        away = game.live_away_score if game.live_away_score is not None else 0
        logger.info(
            "Auto-finishing game %s: kickoff %s is older than %s, final %s-%s",
            game.id,
            game.date.isoformat(),
            config.auto_finish_after,
            home,
            away,
        )
        changes = {
            "status": statuses.FINISHED,
            "live_home_score": home,
            "live_away_score": away,
            "home_score": home,
            "away_score": away,
            "elapsed_minute": None,
            "decided_by": "FT",
            "finished_at": now,
        }
        updates.append(
            GameUpdate(
                game_id=game.id,
                source=UpdateSource.AUTO_FINISH,
                external_id=game.external_id,
                changes={name: value for name, value in changes.items() if getattr(game, name) != value},
            )
        )
    return updates

"""Write planned changes back to the database, one game per transaction."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.ingestion import statuses
from app.models import Bet, CompetitionUser, Game
from app.sync.scoring import calculate_bet_points
from app.sync.state import GameUpdate, LinkReset
from app.sync.transitions import TRACKED_FIELDS

logger = logging.getLogger(__name__)


class TerminalGameError(RuntimeError):
    pass


def _load_game(db: Session, game_id: int) -> Game:
    game = db.query(Game).filter(Game.id == game_id).one_or_none()
    if game is None:
        raise LookupError(f"Game {game_id} no longer exists")
    return game


def _is_terminal(game: Game) -> bool:
    return (
        game.status == statuses.FINISHED
        and game.home_score is not None
        and game.away_score is not None
    )


def _assign(game: Game, changes: dict) -> None:
    for name, value in changes.items():
        if name not in TRACKED_FIELDS:
            raise ValueError(f"Refusing to write untracked field {name!r}")
        setattr(game, name, value)


def recalculate_bets(db: Session, game: Game, scoring_system: str) -> int:
    bets = db.query(Bet).filter(Bet.game_id == game.id).all()
    for bet in bets:
        bet.points = calculate_bet_points(
            bet.score1,
            bet.score2,
            game.home_score,
            game.away_score,
            scoring_system,
        )
    return len(bets)


def clear_bet_points(db: Session, game_id: int) -> int:
    bets = db.query(Bet).filter(Bet.game_id == game_id).all()
    for bet in bets:
        bet.points = None
    return len(bets)


def refresh_competition_aggregates(db: Session, competition_id: int) -> int:
    """Recompute points and shooters for every user of a competition.

    ``shooters`` counts finished-or-live games the user did not bet on.
    """
    db.flush()
    played_ids = [
        row.id
        for row in db.query(Game.id).filter(
            Game.competition_id == competition_id,
            Game.status.in_((statuses.FINISHED, statuses.LIVE)),
        )
    ]
    totals = {
        user_id: (points or 0, count)
        for user_id, points, count in (
            db.query(Bet.user_id, func.sum(Bet.points), func.count(Bet.id))
            .join(Game, Game.id == Bet.game_id)
            .filter(Game.competition_id == competition_id)
            .group_by(Bet.user_id)
        )
    }
    played_bets = dict(
        db.query(Bet.user_id, func.count(Bet.id))
        .filter(Bet.game_id.in_(played_ids))
        .group_by(Bet.user_id)
        .all()
    ) if played_ids else {}

    members = {
        member.user_id: member
        for member in db.query(CompetitionUser).filter(CompetitionUser.competition_id == competition_id)
    }
    for user_id in set(members) | set(totals):
        member = members.get(user_id)
        if member is None:
            member = CompetitionUser(competition_id=competition_id, user_id=user_id)
            db.add(member)
        member.points = int(totals.get(user_id, (0, 0))[0])
        member.shooters = max(len(played_ids) - played_bets.get(user_id, 0), 0)
    return len(set(members) | set(totals))


def apply_update(db: Session, update: GameUpdate, now: datetime, scoring_system: str) -> int:
    """Apply one game update and return how many bets were rescored.

    Commits on success. The caller owns rollback on failure.
    """
    game = _load_game(db, update.game_id)
    if _is_terminal(game):
        raise TerminalGameError(f"Game {game.id} is already finished")

    _assign(game, update.changes)
    game.last_sync_at = now

    recalculated = 0
    if update.finishes_game:
        recalculated = recalculate_bets(db, game, scoring_system)
        logger.info(
            "Game %s finished %s-%s (%s), rescored %s bets",
            game.id,
            game.home_score,
            game.away_score,
            game.decided_by,
            recalculated,
        )
    if "status" in update.changes:
        refresh_competition_aggregates(db, game.competition_id)
    db.commit()
    return recalculated


def apply_link_reset(db: Session, reset: LinkReset) -> int:
    game = _load_game(db, reset.game_id)
    _assign(game, reset.changes)

    cleared = 0
    if reset.rolls_back_finish:
        cleared = clear_bet_points(db, game.id)
        refresh_competition_aggregates(db, game.competition_id)
    db.commit()
    return cleared

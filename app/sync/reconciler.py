"""Match vendor records to tracked games.

Pure: takes snapshots and returns the intended writes. Records are processed
in batch order against one shared "already updated this run" set so a later
record (for instance a stale finished fixture fetched by a side query) can
never overwrite a game an earlier record already handled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Sequence

from app.ingestion import statuses
from app.ingestion.schema import ExternalMatch
from app.matching.normalizer import is_foreign_competition
from app.matching.team_resolver import MatchCandidate, TeamRef, find_best_match
from app.settings import SyncConfig
from app.sync.state import (
    AttemptState,
    Gate,
    LinkReset,
    MatchAttempt,
    ReconciliationResult,
    Rejection,
    TrackedGame,
    UnmatchedMatch,
    UpdateSource,
)
from app.sync.transitions import date_delta_hours, plan_update

logger = logging.getLogger(__name__)

ROLLBACK_CHANGES = {
    "status": statuses.UPCOMING,
    "live_home_score": None,
    "live_away_score": None,
    "home_score": None,
    "away_score": None,
    "elapsed_minute": None,
    "decided_by": None,
    "finished_at": None,
}
# validation failures that show the record is a different fixture
CONTRADICTING_GATES = frozenset({Gate.TEAM_MISMATCH, Gate.COMPETITION, Gate.DATE_WINDOW})


@dataclass(frozen=True)
class ResolvedTeams:
    home: MatchCandidate | None
    away: MatchCandidate | None

    @property
    def home_confidence(self) -> float | None:
        return self.home.confidence if self.home else None

    @property
    def away_confidence(self) -> float | None:
        return self.away.confidence if self.away else None


@dataclass(frozen=True)
class Validation:
    ok: bool
    gate: Gate | None = None
    detail: str = ""
    swapped: bool = False


def resolve_teams(external: ExternalMatch, teams: Sequence[TeamRef], sport: str) -> ResolvedTeams:
    return ResolvedTeams(
        home=find_best_match(external.home_name, teams, sport),
        away=find_best_match(external.away_name, teams, sport),
    )


def check_team_confidence(resolved: ResolvedTeams, config: SyncConfig) -> Gate | None:
    bar = config.thresholds.update_live
    if resolved.home is None or resolved.away is None:
        return Gate.TEAM_RESOLUTION
    if resolved.home.confidence < bar or resolved.away.confidence < bar:
        return Gate.TEAM_RESOLUTION
    if resolved.home.team.id == resolved.away.team.id:
        return Gate.SAME_TEAM
    return None


def check_context(game: TrackedGame, external: ExternalMatch, config: SyncConfig) -> Validation:
    """Competition keyword and date window checks shared by every match source."""
    if is_foreign_competition(
        external.competition,
        config.foreign_competition_keywords,
        config.own_competition_keywords,
    ):
        return Validation(False, Gate.COMPETITION, f"competition {external.competition!r} belongs to another sport")
    if abs(external.kickoff - game.date) > config.date_window:
        return Validation(
            False,
            Gate.DATE_WINDOW,
            f"kickoff {external.kickoff.isoformat()} vs scheduled {game.date.isoformat()}",
        )
    return Validation(True)


def validate_against_game(
    game: TrackedGame,
    external: ExternalMatch,
    resolved: ResolvedTeams,
    config: SyncConfig,
) -> Validation:
    gate = check_team_confidence(resolved, config)
    if gate is not None:
        return Validation(False, gate, "team names did not resolve with enough confidence")
    resolved_ids = frozenset((resolved.home.team.id, resolved.away.team.id))
    if resolved_ids != game.team_ids:
        return Validation(
            False,
            Gate.TEAM_MISMATCH,
            f"resolved to {resolved.home.team.name!r}/{resolved.away.team.name!r}",
        )
    context = check_context(game, external, config)
    if not context.ok:
        return context
    return Validation(True, swapped=resolved.home.team.id == game.away_team.id)


def _rejection(gate: Gate, external: ExternalMatch, game: TrackedGame | None, resolved: ResolvedTeams | None, detail: str) -> Rejection:
    return Rejection(
        gate=gate,
        external_id=external.id,
        game_id=game.id if game else None,
        home_confidence=resolved.home_confidence if resolved else None,
        away_confidence=resolved.away_confidence if resolved else None,
        date_delta_hours=date_delta_hours(external.kickoff, game.date) if game else None,
        detail=detail,
    )


def build_link_reset(game: TrackedGame, reason: Rejection) -> LinkReset:
    changes = {"external_id": None, "external_status": None}
    if game.status == statuses.FINISHED:
        changes.update(ROLLBACK_CHANGES)
    changes = {name: value for name, value in changes.items() if getattr(game, name) != value}
    return LinkReset(game_id=game.id, external_id=game.external_id or "", changes=changes, reason=reason)


class _Run:
    def __init__(
        self,
        games: Iterable[TrackedGame],
        teams: Sequence[TeamRef],
        config: SyncConfig,
        now: datetime,
        already_updated: Iterable[int],
    ) -> None:
        self.teams = teams
        self.config = config
        self.now = now
        self.result = ReconciliationResult(
            games={game.id: game for game in games},
            updated_ids=set(already_updated),
        )

    def reject(self, rejection: Rejection) -> None:
        self.result.rejections.append(rejection)
        logger.warning("Match rejected: %s", rejection.describe())

    def accept(
        self,
        game: TrackedGame,
        external: ExternalMatch,
        attempt: MatchAttempt,
        source: UpdateSource,
        resolved: ResolvedTeams,
        swapped: bool,
    ) -> None:
        self.result.updated_ids.add(game.id)
        attempt.game_id = game.id
        if game.is_terminal:
            attempt.advance(AttemptState.MATCHED)
            self.reject(_rejection(Gate.TERMINAL, external, game, resolved, "game already finished"))
            return
        confidence = min(resolved.home.confidence, resolved.away.confidence)
        update = plan_update(
            game,
            external,
            source=source,
            config=self.config,
            now=self.now,
            swapped=swapped,
            confidence=confidence,
            method=f"{resolved.home.method.value}/{resolved.away.method.value}",
        )
        attempt.advance(AttemptState.MATCHED)
        update.trail = tuple(attempt.trail)
        self.result.rejections.extend(update.rejections)
        if update.has_changes:
            self.result.games[game.id] = game.with_changes(update.changes)
            self.result.updates.append(update)
            logger.info(
                "Matched external=%s game=%s via %s conf=%.3f trail=%s changes=%s",
                external.id,
                game.id,
                source.value,
                confidence,
                "->".join(state.value for state in attempt.trail),
                sorted(update.changes),
            )
        else:
            self.result.unchanged.append(game.id)

    def by_id(self, external: ExternalMatch, attempt: MatchAttempt, resolved: ResolvedTeams) -> tuple[bool, set[Gate]]:
        game = next(
            (
                candidate
                for candidate in self.result.games.values()
                if candidate.external_id == external.id and candidate.id not in self.result.updated_ids
            ),
            None,
        )
        if game is None:
            return False, set()
        attempt.advance(AttemptState.ID_CANDIDATE)
        validation = validate_against_game(game, external, resolved, self.config)
        if validation.ok:
            attempt.advance(AttemptState.VALIDATED)
            self.accept(game, external, attempt, UpdateSource.ID, resolved, validation.swapped)
            return True, set()

        if validation.gate not in CONTRADICTING_GATES:
            # names too weak to confirm, but nothing says the link is wrong
            context = check_context(game, external, self.config)
            if context.ok:
                return self.keep_unconfirmed_link(game, external, attempt, resolved, validation)
            validation = context

        attempt.advance(AttemptState.REJECTED)
        rejection = _rejection(validation.gate, external, game, resolved, f"stale link: {validation.detail}")
        self.reject(rejection)
        reset = build_link_reset(game, rejection)
        if reset.changes:
            self.result.link_resets.append(reset)
            self.result.games[game.id] = game.with_changes(reset.changes)
            logger.warning(
                "Clearing stale external id %s on game %s (rollback=%s)",
                external.id,
                game.id,
                reset.rolls_back_finish,
            )
        return False, {validation.gate}

    def keep_unconfirmed_link(
        self,
        game: TrackedGame,
        external: ExternalMatch,
        attempt: MatchAttempt,
        resolved: ResolvedTeams,
        validation: Validation,
    ) -> tuple[bool, set[Gate]]:
        if not game.is_terminal:
            attempt.advance(AttemptState.REJECTED)
            self.reject(
                _rejection(validation.gate, external, game, resolved, f"link kept, unconfirmed: {validation.detail}")
            )
            return False, set()
        self.result.updated_ids.add(game.id)
        attempt.game_id = game.id
        attempt.advance(AttemptState.MATCHED)
        self.reject(_rejection(Gate.TERMINAL, external, game, resolved, "game already finished"))
        return True, set()

    def by_name(self, external: ExternalMatch, attempt: MatchAttempt, resolved: ResolvedTeams) -> tuple[bool, Gate | None, set[Gate]]:
        gate = check_team_confidence(resolved, self.config)
        if gate is not None:
            return False, gate, set()
        attempt.advance(AttemptState.NAME_CANDIDATE)
        wanted = frozenset((resolved.home.team.id, resolved.away.team.id))
        same_teams = [
            game
            for game in self.result.games.values()
            if game.team_ids == wanted and game.id not in self.result.updated_ids
        ]
        if not same_teams:
            attempt.advance(AttemptState.REJECTED)
            self.reject(_rejection(Gate.NO_GAME, external, None, resolved, "no tracked game with both teams"))
            return False, Gate.NO_GAME, set()

        failed: set[Gate] = set()
        in_window: list[TrackedGame] = []
        for game in same_teams:
            context = check_context(game, external, self.config)
            if context.ok:
                in_window.append(game)
            else:
                failed.add(context.gate)
                self.reject(_rejection(context.gate, external, game, resolved, context.detail))

        if len(in_window) != 1:
            attempt.advance(AttemptState.REJECTED)
            if not in_window:
                return False, min(failed, key=lambda g: g.value) if failed else Gate.NO_GAME, failed
            self.reject(
                _rejection(
                    Gate.AMBIGUOUS,
                    external,
                    None,
                    resolved,
                    f"{len(in_window)} games match: {sorted(game.id for game in in_window)}",
                )
            )
            return False, Gate.AMBIGUOUS, failed

        game = in_window[0]
        attempt.advance(AttemptState.VALIDATED)
        self.accept(game, external, attempt, UpdateSource.NAME, resolved, resolved.home.team.id == game.away_team.id)
        return True, None, failed

    def process(self, external: ExternalMatch) -> None:
        attempt = MatchAttempt(external_id=external.id)
        self.result.attempts.append(attempt)
        resolved = resolve_teams(external, self.teams, self.config.sport)

        matched, failed = self.by_id(external, attempt, resolved)
        if matched:
            return
        matched, reason, name_failed = self.by_name(external, attempt, resolved)
        if matched:
            return

        failed |= name_failed
        if reason is None:
            reason = Gate.NO_GAME
        if reason == Gate.TEAM_RESOLUTION:
            self.reject(_rejection(reason, external, None, resolved, f"{external.home_name!r} vs {external.away_name!r}"))
        attempt.advance(AttemptState.UNMATCHED)
        self.result.unmatched.append(
            UnmatchedMatch(
                external=external,
                reason=reason,
                home=resolved.home,
                away=resolved.away,
                failed_gates=frozenset(failed),
            )
        )


def reconcile(
    games: Iterable[TrackedGame],
    teams: Sequence[TeamRef],
    external_matches: Iterable[ExternalMatch],
    config: SyncConfig,
    now: datetime,
    already_updated: Iterable[int] = (),
) -> ReconciliationResult:
    run = _Run(games, teams, config, now, already_updated)
    for external in external_matches:
        run.process(external)
    return run.result

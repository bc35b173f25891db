"""Value types passed between the reconciler, arbitration and persistence.

The reconciler never sees ORM rows. Games are loaded once per run into
``TrackedGame`` snapshots and every intended write comes back as a
``GameUpdate`` or ``LinkReset``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from app.ingestion.schema import ExternalMatch
from app.ingestion.statuses import FINISHED
from app.matching.team_resolver import MatchCandidate, MatchMethod, TeamRef


class AttemptState(str, enum.Enum):
    UNRESOLVED = "UNRESOLVED"
    ID_CANDIDATE = "ID_CANDIDATE"
    NAME_CANDIDATE = "NAME_CANDIDATE"
    AI_CANDIDATE = "AI_CANDIDATE"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"
    MATCHED = "MATCHED"
    UNMATCHED = "UNMATCHED"


class Gate(str, enum.Enum):
    TEAM_RESOLUTION = "TEAM_RESOLUTION"
    TEAM_MISMATCH = "TEAM_MISMATCH"
    SAME_TEAM = "SAME_TEAM"
    COMPETITION = "COMPETITION"
    DATE_WINDOW = "DATE_WINDOW"
    NO_GAME = "NO_GAME"
    AMBIGUOUS = "AMBIGUOUS"
    TERMINAL = "TERMINAL"
    STATUS_GUARD = "STATUS_GUARD"
    FINISH_GATE = "FINISH_GATE"
    AI_CONFIDENCE = "AI_CONFIDENCE"
    AI_NO_GAME = "AI_NO_GAME"
    AI_RECENT_SYNC = "AI_RECENT_SYNC"
    ALREADY_UPDATED = "ALREADY_UPDATED"


class UpdateSource(str, enum.Enum):
    ID = "ID"
    NAME = "NAME"
    AI = "AI"
    AUTO_FINISH = "AUTO_FINISH"


@dataclass(frozen=True)
class TrackedGame:
    id: int
    sport: str
    competition_id: int
    competition_name: str
    home_team: TeamRef
    away_team: TeamRef
    date: datetime
    status: str
    external_id: str | None = None
    external_status: str | None = None
    live_home_score: int | None = None
    live_away_score: int | None = None
    home_score: int | None = None
    away_score: int | None = None
    elapsed_minute: int | None = None
    decided_by: str | None = None
    finished_at: datetime | None = None
    last_sync_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return (
            self.status == FINISHED
            and self.home_score is not None
            and self.away_score is not None
        )

    @property
    def team_ids(self) -> frozenset[int]:
        return frozenset((self.home_team.id, self.away_team.id))

    def with_changes(self, changes: dict[str, Any]) -> "TrackedGame":
        return replace(self, **changes)


@dataclass(frozen=True)
class Rejection:
    gate: Gate
    external_id: str | None
    game_id: int | None = None
    home_confidence: float | None = None
    away_confidence: float | None = None
    date_delta_hours: float | None = None
    detail: str = ""

    def describe(self) -> str:
        parts = [f"gate={self.gate.value}", f"external_id={self.external_id}"]
        if self.game_id is not None:
            parts.append(f"game_id={self.game_id}")
        if self.home_confidence is not None:
            parts.append(f"home_conf={self.home_confidence:.3f}")
        if self.away_confidence is not None:
            parts.append(f"away_conf={self.away_confidence:.3f}")
        if self.date_delta_hours is not None:
            parts.append(f"date_delta_h={self.date_delta_hours:.2f}")
        if self.detail:
            parts.append(self.detail)
        return " ".join(parts)


@dataclass
class GameUpdate:
    game_id: int
    source: UpdateSource
    external_id: str | None
    changes: dict[str, Any]
    confidence: float | None = None
    method: MatchMethod | str | None = None
    rejections: list[Rejection] = field(default_factory=list)
    trail: tuple[AttemptState, ...] = ()

    @property
    def finishes_game(self) -> bool:
        return self.changes.get("status") == FINISHED

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)


@dataclass
class LinkReset:
    game_id: int
    external_id: str
    changes: dict[str, Any]
    reason: Rejection

    @property
    def rolls_back_finish(self) -> bool:
        return "finished_at" in self.changes


@dataclass
class UnmatchedMatch:
    external: ExternalMatch
    reason: Gate
    home: MatchCandidate | None = None
    away: MatchCandidate | None = None
    failed_gates: frozenset[Gate] = frozenset()
    candidate_ids: tuple[int, ...] = ()

    @property
    def needs_promotion_confidence(self) -> bool:
        return bool(self.failed_gates & {Gate.DATE_WINDOW, Gate.COMPETITION})


@dataclass
class MatchAttempt:
    external_id: str
    trail: list[AttemptState] = field(default_factory=lambda: [AttemptState.UNRESOLVED])
    game_id: int | None = None

    def advance(self, state: AttemptState) -> None:
        self.trail.append(state)

    @property
    def final_state(self) -> AttemptState:
        return self.trail[-1]


@dataclass
class ReconciliationResult:
    games: dict[int, TrackedGame]
    updated_ids: set[int]
    updates: list[GameUpdate] = field(default_factory=list)
    unchanged: list[int] = field(default_factory=list)
    link_resets: list[LinkReset] = field(default_factory=list)
    rejections: list[Rejection] = field(default_factory=list)
    unmatched: list[UnmatchedMatch] = field(default_factory=list)
    attempts: list[MatchAttempt] = field(default_factory=list)

    def attempt_for(self, external_id: str) -> MatchAttempt:
        for attempt in reversed(self.attempts):
            if attempt.external_id == external_id:
                return attempt
        attempt = MatchAttempt(external_id=external_id)
        self.attempts.append(attempt)
        return attempt

"""Data contracts for vendor match records.

Raw models mirror the api-sports.io payloads with every field optional, so a
partial record parses and the adapter decides what is missing. ``ExternalMatch``
is the normalized shape handed to the reconciler.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

MatchStatus = Literal["UPCOMING", "LIVE", "FINISHED", "CANCELLED"]


class ScorePair(BaseModel):
    model_config = ConfigDict(frozen=True)

    home: Optional[int] = None
    away: Optional[int] = None

    @property
    def is_complete(self) -> bool:
        return self.home is not None and self.away is not None

    def swapped(self) -> "ScorePair":
        return ScorePair(home=self.away, away=self.home)


class ExternalMatch(BaseModel):
    """A single vendor match record after normalization."""

    model_config = ConfigDict(frozen=True)

    id: str
    sport: str
    status: MatchStatus
    external_status: str
    elapsed: Optional[int] = None
    home_name: str
    away_name: str
    score: Optional[ScorePair] = None
    extra_time_score: Optional[ScorePair] = None
    kickoff: datetime
    competition: str = ""

    @field_validator("id", "home_name", "away_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("kickoff")
    @classmethod
    def _aware_kickoff(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("kickoff must be timezone-aware")
        return value

    @property
    def authoritative_score(self) -> Optional[ScorePair]:
        # Shootout scores are never used; extra time wins when complete.
        if self.extra_time_score is not None and self.extra_time_score.is_complete:
            return self.extra_time_score
        return self.score


# --- raw vendor shapes -------------------------------------------------------


class RawTeam(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = None


class RawTeams(BaseModel):
    home: Optional[RawTeam] = None
    away: Optional[RawTeam] = None


class RawStatus(BaseModel):
    short: Optional[str] = None
    long: Optional[str] = None
    elapsed: Optional[int] = None


class RawLeague(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = None


class RawFixture(BaseModel):
    id: Optional[int | str] = None
    date: Optional[str] = None
    status: Optional[RawStatus] = None


class RawExtraGoals(BaseModel):
    home: Optional[int] = None
    away: Optional[int] = None


class RawGoals(BaseModel):
    home: Optional[int] = None
    away: Optional[int] = None
    extra: Optional[RawExtraGoals] = None
    penalty: Optional[RawExtraGoals] = None


class RawScoreBreakdown(BaseModel):
    halftime: Optional[RawExtraGoals] = None
    fulltime: Optional[RawExtraGoals] = None
    extratime: Optional[RawExtraGoals] = None
    penalty: Optional[RawExtraGoals] = None


class RawNestedRecord(BaseModel):
    """``/fixtures`` shape: football v3 and the rugby fixtures endpoint."""

    fixture: Optional[RawFixture] = None
    league: Optional[RawLeague] = None
    teams: Optional[RawTeams] = None
    goals: Optional[RawGoals] = None
    score: Optional[RawScoreBreakdown] = None


class RawFlatRecord(BaseModel):
    """``/games`` shape of the rugby API."""

    id: Optional[int | str] = None
    date: Optional[str] = None
    status: Optional[RawStatus] = None
    league: Optional[RawLeague] = None
    teams: Optional[RawTeams] = None
    scores: Optional[RawExtraGoals] = None

"""Normalize api-sports.io payloads into ExternalMatch records."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Iterable

from pydantic import ValidationError

from app.ingestion import statuses
from app.ingestion.schema import (
    ExternalMatch,
    RawExtraGoals,
    RawFlatRecord,
    RawNestedRecord,
    ScorePair,
)
from app.settings import FOOTBALL, RUGBY

logger = logging.getLogger(__name__)


class MalformedRecordError(ValueError):
    pass


def _parse_kickoff(value: str | None) -> datetime:
    if not value:
        raise MalformedRecordError("missing kickoff")
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise MalformedRecordError(f"invalid kickoff {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _pair(raw: RawExtraGoals | None) -> ScorePair | None:
    if raw is None or (raw.home is None and raw.away is None):
        return None
    return ScorePair(home=raw.home, away=raw.away)


def _records(payload: Any) -> list[Any]:
    if isinstance(payload, dict):
        payload = payload.get("response") or []
    if not isinstance(payload, list):
        return []
    return payload


def _is_nested(record: dict[str, Any]) -> bool:
    return isinstance(record.get("fixture"), dict)


class VendorAdapter(ABC):
    sport: str = ""

    def map_status(self, code: str | None) -> str:
        return statuses.map_status(code)

    @abstractmethod
    def normalize_record(self, record: dict[str, Any]) -> ExternalMatch:
        """Normalize one raw record or raise MalformedRecordError/ValidationError."""

    def normalize(self, payload: Any) -> list[ExternalMatch]:
        matches: list[ExternalMatch] = []
        seen: set[str] = set()
        for record in _records(payload):
            if not isinstance(record, dict):
                logger.warning("Skipping non-object %s record: %r", self.sport, record)
                continue
            try:
                match = self.normalize_record(record)
            except (MalformedRecordError, ValidationError) as exc:
                logger.warning("Skipping malformed %s record: %s", self.sport, exc)
                continue
            if match.id in seen:
                continue
            seen.add(match.id)
            matches.append(match)
        return matches

    def _from_nested(self, raw: RawNestedRecord) -> ExternalMatch:
        fixture = raw.fixture
        if fixture is None or fixture.id is None:
            raise MalformedRecordError("missing fixture id")
        code = statuses.normalize_code(fixture.status.short if fixture.status else None)
        extra = None
        if code in statuses.EXTRA_TIME_CODES:
            extra = _pair(raw.goals.extra if raw.goals else None)
            if extra is None and raw.score is not None:
                extra = _pair(raw.score.extratime)
        score = None
        if raw.goals is not None:
            score = _pair(RawExtraGoals(home=raw.goals.home, away=raw.goals.away))
        return self._build(
            match_id=fixture.id,
            code=code,
            elapsed=fixture.status.elapsed if fixture.status else None,
            teams=raw.teams,
            score=score,
            extra=extra,
            kickoff=fixture.date,
            competition=raw.league.name if raw.league else None,
        )

    def _build(self, *, match_id, code, elapsed, teams, score, extra, kickoff, competition) -> ExternalMatch:
        home = teams.home.name if teams and teams.home else None
        away = teams.away.name if teams and teams.away else None
        if not home or not away:
            raise MalformedRecordError(f"record {match_id} is missing team names")
        return ExternalMatch(
            id=str(match_id),
            sport=self.sport,
            status=self.map_status(code),
            external_status=code,
            elapsed=elapsed,
            home_name=home,
            away_name=away,
            score=score,
            extra_time_score=extra,
            kickoff=_parse_kickoff(kickoff),
            competition=(competition or "").strip(),
        )


class FootballAdapter(VendorAdapter):
    sport = FOOTBALL

    def normalize_record(self, record: dict[str, Any]) -> ExternalMatch:
        return self._from_nested(RawNestedRecord.model_validate(record))


class RugbyAdapter(VendorAdapter):
    """Handles both the flat ``/games`` and the nested ``/fixtures`` shapes."""

    sport = RUGBY

    def normalize_record(self, record: dict[str, Any]) -> ExternalMatch:
        if _is_nested(record):
            return self._from_nested(RawNestedRecord.model_validate(record))
        raw = RawFlatRecord.model_validate(record)
        if raw.id is None:
            raise MalformedRecordError("missing game id")
        code = statuses.normalize_code(raw.status.short if raw.status else None)
        return self._build(
            match_id=raw.id,
            code=code,
            elapsed=raw.status.elapsed if raw.status else None,
            teams=raw.teams,
            score=_pair(raw.scores),
            extra=None,
            kickoff=raw.date,
            competition=raw.league.name if raw.league else None,
        )


def adapter_for_sport(sport: str) -> VendorAdapter:
    normalized = (sport or "").strip().upper()
    if normalized == FOOTBALL:
        return FootballAdapter()
    if normalized == RUGBY:
        return RugbyAdapter()
    raise ValueError(f"No vendor adapter for sport {sport!r}")


def dedupe_matches(batches: Iterable[Iterable[ExternalMatch]]) -> list[ExternalMatch]:
    merged: list[ExternalMatch] = []
    seen: set[str] = set()
    for batch in batches:
        for match in batch:
            if match.id in seen:
                continue
            seen.add(match.id)
            merged.append(match)
    return merged

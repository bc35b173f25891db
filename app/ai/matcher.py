"""Ask the language model to place records deterministic matching could not."""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Iterable, Optional

from pydantic import BaseModel, ValidationError

from app.ai.openai_client import OpenAIClientError, request_game_matches
from app.matching.normalizer import normalize_text
from app.settings import SyncConfig
from app.sync.state import TrackedGame, UnmatchedMatch

logger = logging.getLogger(__name__)

CACHE_TTL = timedelta(hours=24)
CACHE_MAX_ENTRIES = 1000
MAX_CANDIDATES_PER_RECORD = 15


class VerdictPayload(BaseModel):
    external_id: str
    game_id: Optional[int] = None
    confidence: float = 0.0
    home_confidence: Optional[float] = None
    away_confidence: Optional[float] = None
    reasoning: str = ""


@dataclass(frozen=True)
class ArbitrationVerdict:
    external_id: str
    game_id: int | None
    confidence: float
    home_confidence: float | None = None
    away_confidence: float | None = None
    reasoning: str = ""


class VerdictCache:
    """Bounded in-process cache; oldest entries are dropped first."""

    def __init__(self, ttl: timedelta = CACHE_TTL, max_entries: int = CACHE_MAX_ENTRIES, clock=time.monotonic) -> None:
        self.ttl_seconds = ttl.total_seconds()
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, ArbitrationVerdict]] = OrderedDict()

    def get(self, key: str) -> ArbitrationVerdict | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, verdict = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return verdict

    def put(self, key: str, verdict: ArbitrationVerdict) -> None:
        self._entries[key] = (self._clock(), verdict)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


_CACHE = VerdictCache()


def clear_verdict_cache() -> None:
    _CACHE.clear()


def cache_key(item: UnmatchedMatch) -> str:
    external = item.external
    ids = ",".join(str(game_id) for game_id in sorted(item.candidate_ids))
    return "|".join(
        (
            normalize_text(external.home_name),
            normalize_text(external.away_name),
            external.kickoff.date().isoformat(),
            ids,
        )
    )


def select_candidates(
    item: UnmatchedMatch,
    games: Iterable[TrackedGame],
    updated_ids: set[int],
    config: SyncConfig,
) -> tuple[int, ...]:
    kickoff = item.external.kickoff
    nearby = [
        game
        for game in games
        if game.id not in updated_ids
        and not game.is_terminal
        and abs(game.date - kickoff) <= config.date_window
    ]
    nearby.sort(key=lambda game: (abs(game.date - kickoff), game.id))
    return tuple(game.id for game in nearby[:MAX_CANDIDATES_PER_RECORD])


def build_payload(items: list[UnmatchedMatch], games: dict[int, TrackedGame], sport: str) -> dict:
    records = []
    for item in items:
        external = item.external
        records.append(
            {
                "external_id": external.id,
                "home": external.home_name,
                "away": external.away_name,
                "kickoff": external.kickoff.isoformat(),
                "competition": external.competition,
                "candidates": [
                    {
                        "game_id": game.id,
                        "home": game.home_team.name,
                        "away": game.away_team.name,
                        "competition": game.competition_name,
                        "kickoff": game.date.isoformat(),
                    }
                    for game in (games[game_id] for game_id in item.candidate_ids)
                ],
            }
        )
    return {"sport": sport, "records": records}


def _parse_verdicts(raw: dict) -> list[ArbitrationVerdict]:
    verdicts: list[ArbitrationVerdict] = []
    for entry in raw.get("matches") or []:
        try:
            payload = VerdictPayload.model_validate(entry)
        except ValidationError as exc:
            logger.warning("Ignoring malformed AI verdict %r: %s", entry, exc)
            continue
        verdicts.append(ArbitrationVerdict(**payload.model_dump()))
    return verdicts


def consult_arbitrator(
    unmatched: list[UnmatchedMatch],
    games: dict[int, TrackedGame],
    updated_ids: set[int],
    config: SyncConfig,
    settings,
    request_fn: Callable[[dict, object], dict] = request_game_matches,
    cache: VerdictCache | None = None,
) -> dict[str, ArbitrationVerdict]:
    """One batched model call per run; returns verdicts keyed by vendor id.

    Records with no plausible candidate game are not sent. Client failures
    yield no verdicts rather than an error.
    """
    if not config.ai_enabled or not unmatched:
        return {}
    cache = cache if cache is not None else _CACHE

    verdicts: dict[str, ArbitrationVerdict] = {}
    pending: list[UnmatchedMatch] = []
    for item in unmatched:
        item.candidate_ids = select_candidates(item, games.values(), updated_ids, config)
        if not item.candidate_ids:
            continue
        cached = cache.get(cache_key(item))
        if cached is not None:
            verdicts[item.external.id] = cached
        else:
            pending.append(item)

    if not pending:
        return verdicts

    logger.info("Consulting AI arbitrator for %s unmatched records", len(pending))
    try:
        raw = request_fn(build_payload(pending, games, config.sport), settings)
    except OpenAIClientError as exc:
        logger.error("AI arbitration failed, leaving %s records unmatched: %s", len(pending), exc)
        return verdicts

    by_id = {item.external.id: item for item in pending}
    for verdict in _parse_verdicts(raw):
        item = by_id.get(verdict.external_id)
        if item is None:
            logger.warning("AI returned a verdict for unknown external id %s", verdict.external_id)
            continue
        verdicts[verdict.external_id] = verdict
        cache.put(cache_key(item), verdict)
    return verdicts

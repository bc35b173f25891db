"""Assemble one run's batch of vendor records."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable

from app.ingestion import statuses
from app.ingestion.adapters import dedupe_matches
from app.ingestion.schema import ExternalMatch

logger = logging.getLogger(__name__)


def needs_vendor_data(games: Iterable) -> bool:
    return any(game.status in (statuses.LIVE, statuses.UPCOMING) for game in games)


def collect_external_matches(client, games: Iterable, today: date) -> list[ExternalMatch]:
    """Live feed first, then today's finished fixtures, then tracked ids.

    Earlier sources win when the same vendor id shows up twice.
    """
    games = list(games)
    live = client.get_live_matches()
    finished = [
        match
        for match in client.get_matches_by_date_range(today, today + timedelta(days=1))
        if match.status == statuses.FINISHED
    ]
    seen = {match.id for match in live} | {match.id for match in finished}

    by_id: list[ExternalMatch] = []
    for game in games:
        if not game.external_id or game.external_id in seen or game.is_terminal:
            continue
        match = client.get_match_by_id(game.external_id)
        seen.add(game.external_id)
        if match is not None:
            by_id.append(match)

    batch = dedupe_matches([live, finished, by_id])
    logger.info(
        "Collected %s vendor records (live=%s finished=%s by_id=%s)",
        len(batch),
        len(live),
        len(finished),
        len(by_id),
    )
    return batch

"""Vendor status codes and the fixed table mapping them to internal states."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

UPCOMING = "UPCOMING"
LIVE = "LIVE"
FINISHED = "FINISHED"
CANCELLED = "CANCELLED"

IN_PROGRESS_CODES = frozenset({"1H", "2H", "HT", "ET", "BT", "P", "LIVE"})
BREAK_CODES = frozenset({"HT", "BT"})
FINISHED_CODES = frozenset({"FT", "AET", "PEN", "AWARDED", "AWD", "WO"})
EXTRA_TIME_CODES = frozenset({"AET", "PEN"})
NOT_STARTED_CODES = frozenset({"NS", "TBD"})
CANCELLED_CODES = frozenset({"PST", "POST", "CANC", "SUSP", "INT", "ABD", "ABAN"})
# Codes that legitimately move a LIVE game back to UPCOMING (vendor correction).
RESCHEDULE_CODES = frozenset({"NS", "TBD", "PST", "POST"})

STATUS_TABLE: dict[str, str] = {}
for _code in IN_PROGRESS_CODES:
    STATUS_TABLE[_code] = LIVE
for _code in FINISHED_CODES:
    STATUS_TABLE[_code] = FINISHED
for _code in NOT_STARTED_CODES:
    STATUS_TABLE[_code] = UPCOMING
for _code in CANCELLED_CODES:
    STATUS_TABLE[_code] = CANCELLED


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def map_status(code: str | None) -> str:
    normalized = normalize_code(code)
    status = STATUS_TABLE.get(normalized)
    if status is None:
        logger.warning("Unknown vendor status code %r, treating as UPCOMING", code)
        return UPCOMING
    return status


def decided_by_for(code: str | None) -> str:
    return "AET" if normalize_code(code) in EXTRA_TIME_CODES else "FT"

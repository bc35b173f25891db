"""Resolve a vendor team name to one of our teams.

Each method returns a raw similarity in [0, 1]. A method only counts when its
raw score clears the method's threshold; the weighted score (raw x weight) is
what competes across methods and teams.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Iterable

from rapidfuzz.distance import Levenshtein

from app.matching.normalizer import distinguishing_suffix, normalize_team_name

ALIAS_CONTAINMENT = 0.95
# containment against the canonical name alone stays under the update bar
NAME_CONTAINMENT = 0.90


class MatchMethod(str, enum.Enum):
    EXACT = "exact_normalized"
    ALIAS = "alias_containment"
    FUZZY = "edit_distance"
    PARTIAL = "partial_substring"
    TOKEN_OVERLAP = "token_overlap"
    KEYWORD = "keyword_containment"


@dataclass(frozen=True)
class TeamRef:
    id: int
    name: str
    short_name: str | None = None
    sport_type: str | None = None

    @classmethod
    def from_model(cls, team) -> "TeamRef":
        return cls(
            id=team.id,
            name=team.name,
            short_name=team.short_name,
            sport_type=team.sport_type,
        )


@dataclass(frozen=True)
class MatchCandidate:
    team: TeamRef
    confidence: float
    method: MatchMethod


def _exact(external: str, name: str) -> float:
    return 1.0 if external == name else 0.0


def _alias(external: str, name: str, is_alias: bool = True) -> float:
    shorter, longer = sorted((external, name), key=len)
    if len(shorter) < 3 or f" {shorter} " not in f" {longer} ":
        return 0.0
    return ALIAS_CONTAINMENT if is_alias else NAME_CONTAINMENT


def _fuzzy(external: str, name: str) -> float:
    return Levenshtein.normalized_similarity(external, name)


def _partial(external: str, name: str) -> float:
    shorter, longer = sorted((external, name), key=len)
    if not shorter or shorter not in longer:
        return 0.0
    return len(shorter) / len(longer)


def _token_overlap(external: str, name: str) -> float:
    words_a = [word for word in external.split() if len(word) > 2]
    words_b = [word for word in name.split() if len(word) > 2]
    if not words_a or not words_b:
        return 0.0
    matched = sum(
        1
        for word in words_a
        if any(Levenshtein.normalized_similarity(word, other) > 0.8 for other in words_b)
    )
    return matched / max(len(words_a), len(words_b))


def _keyword(external: str, name: str) -> float:
    words_a = [word for word in external.split() if len(word) > 2]
    words_b = [word for word in name.split() if len(word) > 2]
    if not words_a or not words_b:
        return 0.0
    matched = [
        word
        for word in words_a
        if any(word in other or other in word for other in words_b)
    ]
    if not matched:
        return 0.0
    score = len(matched) / max(len(words_a), len(words_b))
    if any(len(word) >= 4 for word in matched):
        score *= 1.2
    return min(score, 1.0)


# (method, scorer, threshold, weight) in cascade order
CASCADE: tuple[tuple[MatchMethod, Callable[[str, str], float], float, float], ...] = (
    (MatchMethod.EXACT, _exact, 0.95, 1.0),
    (MatchMethod.ALIAS, _alias, 0.90, 0.95),
    (MatchMethod.FUZZY, _fuzzy, 0.70, 0.90),
    (MatchMethod.PARTIAL, _partial, 0.60, 0.80),
    (MatchMethod.TOKEN_OVERLAP, _token_overlap, 0.50, 0.70),
    (MatchMethod.KEYWORD, _keyword, 0.40, 0.60),
)


def _team_names(team: TeamRef) -> list[tuple[str, str, bool]]:
    """``(normalized, raw, is_alias)`` for the canonical name and the short name."""
    names = [(normalize_team_name(team.name), team.name, False)]
    if team.short_name:
        alias = normalize_team_name(team.short_name)
        if alias and alias != names[0][0]:
            names.append((alias, team.short_name, True))
    return [entry for entry in names if entry[0]]


def _suffixes_conflict(external_suffix: str | None, raw_name: str) -> bool:
    suffix = distinguishing_suffix(raw_name)
    return bool(external_suffix and suffix and external_suffix != suffix)


def find_best_match(
    external_name: str,
    candidate_teams: Iterable[TeamRef],
    sport: str | None = None,
) -> MatchCandidate | None:
    external = normalize_team_name(external_name)
    if not external:
        return None
    external_suffix = distinguishing_suffix(external_name)

    best: MatchCandidate | None = None
    for team in candidate_teams:
        if sport and team.sport_type and team.sport_type.upper() != sport.upper():
            continue
        for name, raw_name, is_alias in _team_names(team):
            if _suffixes_conflict(external_suffix, raw_name):
                continue
            for method, scorer, threshold, weight in CASCADE:
                if method is MatchMethod.ALIAS:
                    raw = _alias(external, name, is_alias)
                else:
                    raw = scorer(external, name)
                if raw < threshold:
                    continue
                weighted = raw * weight
                if best is None or weighted > best.confidence:
                    best = MatchCandidate(team=team, confidence=weighted, method=method)
    return best

from __future__ import annotations

import re

from unidecode import unidecode

LEADING_AFFIXES = frozenset(
    {
        "fc", "cf", "ac", "as", "afc", "sc", "ssc", "ss", "sv", "vfb", "vfl",
        "club", "real", "olympique", "stade", "rc", "cd", "ud", "us", "1",
    }
)
# "united" and "city" are stripped for matching but still tell two clubs of
# the same town apart, see distinguishing_suffix()
DISTINGUISHING_SUFFIXES = frozenset({"united", "city"})
TRAILING_AFFIXES = frozenset({"fc", "cf", "ac", "afc", "sc", "real"}) | DISTINGUISHING_SUFFIXES

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_text(value: str | None) -> str:
    """Lowercase ASCII form with punctuation collapsed to single spaces."""
    if not value:
        return ""
    ascii_value = unidecode(value).lower()
    return _NON_ALNUM.sub(" ", ascii_value).strip()


def _split_affixes(value: str | None) -> tuple[list[str], str | None]:
    tokens = normalize_text(value).split()
    if len(tokens) > 1 and tokens[0] in LEADING_AFFIXES:
        tokens = tokens[1:]
    suffix = None
    if len(tokens) > 1 and tokens[-1] in TRAILING_AFFIXES:
        suffix = tokens[-1]
        tokens = tokens[:-1]
    return tokens, suffix


def normalize_team_name(value: str | None) -> str:
    return " ".join(_split_affixes(value)[0])


def distinguishing_suffix(value: str | None) -> str | None:
    """The stripped "united"/"city" ending of a team name, if any."""
    suffix = _split_affixes(value)[1]
    return suffix if suffix in DISTINGUISHING_SUFFIXES else None


def contains_keyword(text: str | None, keywords) -> bool:
    """Whole-word phrase containment, so "euro" does not hit "european"."""
    padded = f" {normalize_text(text)} "
    return any(f" {normalize_text(keyword)} " in padded for keyword in keywords)


def is_foreign_competition(name: str | None, foreign_keywords, own_keywords=()) -> bool:
    if not name:
        return False
    if own_keywords and contains_keyword(name, own_keywords):
        return False
    return contains_keyword(name, foreign_keywords)


def competition_similarity(left: str | None, right: str | None) -> float:
    a = normalize_text(left)
    b = normalize_text(right)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if a in b or b in a:
        return 0.8
    words_a = {word for word in a.split() if len(word) > 3}
    words_b = {word for word in b.split() if len(word) > 3}
    common = words_a & words_b
    if len(common) < 2:
        return 0.0
    return len(common) / max(len(words_a), len(words_b))

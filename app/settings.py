from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from cryptography.fernet import Fernet, InvalidToken

from app.models import AppSettings

logger = logging.getLogger(__name__)
_FERNET: Fernet | None = None

FOOTBALL = "FOOTBALL"
RUGBY = "RUGBY"
SUPPORTED_SPORTS = (FOOTBALL, RUGBY)

RUGBY_COMPETITION_KEYWORDS = (
    "top 14",
    "pro d2",
    "six nations",
    "champions cup",
    "challenge cup",
    "premiership rugby",
    "super rugby",
    "rugby",
)
FOOTBALL_COMPETITION_KEYWORDS = (
    "premier league",
    "ligue 1",
    "serie a",
    "bundesliga",
    "la liga",
    "champions league",
    "europa league",
    "conference league",
    "league two",
    "league one",
    "championship",
    "world cup",
    "euro",
)


@dataclass(frozen=True)
class SettingsSnapshot:
    id: int
    openai_api_key_enc: str | None
    openai_model: str
    openai_reasoning_effort: str
    ai_fallback_enabled: bool
    auto_sync_enabled: bool
    auto_sync_interval_seconds: int


@dataclass(frozen=True)
class MatchThresholds:
    """Confidence tiers, ordered by how much damage a wrong match would do."""

    attach_id: float = 0.85
    update_live: float = 0.90
    promote_finished: float = 0.95


@dataclass(frozen=True)
class SportProfile:
    sport: str
    scoring_system: str
    auto_finish_after: timedelta
    base_url: str
    api_key_env: str
    foreign_competition_keywords: tuple[str, ...]
    own_competition_keywords: tuple[str, ...]


SPORT_PROFILES: dict[str, SportProfile] = {
    FOOTBALL: SportProfile(
        sport=FOOTBALL,
        scoring_system="FOOTBALL_STANDARD",
        auto_finish_after=timedelta(hours=3),
        base_url="https://v3.football.api-sports.io",
        api_key_env="API_FOOTBALL_KEY",
        foreign_competition_keywords=RUGBY_COMPETITION_KEYWORDS,
        own_competition_keywords=FOOTBALL_COMPETITION_KEYWORDS,
    ),
    RUGBY: SportProfile(
        sport=RUGBY,
        scoring_system="RUGBY_PROXIMITY",
        auto_finish_after=timedelta(hours=4),
        base_url="https://v1.rugby.api-sports.io",
        api_key_env="API_RUGBY_KEY",
        foreign_competition_keywords=FOOTBALL_COMPETITION_KEYWORDS,
        own_competition_keywords=RUGBY_COMPETITION_KEYWORDS,
    ),
}


@dataclass(frozen=True)
class SyncConfig:
    sport: str
    thresholds: MatchThresholds = field(default_factory=MatchThresholds)
    date_window: timedelta = timedelta(days=7)
    finish_window: timedelta = timedelta(minutes=30)
    competition_min_score: float = 0.7
    auto_finish_after: timedelta = timedelta(hours=3)
    recent_sync_window: timedelta = timedelta(minutes=10)
    upcoming_lookahead: timedelta = timedelta(hours=1)
    finished_lookback: timedelta = timedelta(hours=24)
    foreign_competition_keywords: tuple[str, ...] = ()
    own_competition_keywords: tuple[str, ...] = ()
    scoring_system: str = "FOOTBALL_STANDARD"
    ai_enabled: bool = False


def _default_settings() -> AppSettings:
    return AppSettings(
        id=1,
        openai_api_key_enc=None,
        openai_model="gpt-5-mini",
        openai_reasoning_effort="low",
        ai_fallback_enabled=True,
        auto_sync_enabled=True,
        auto_sync_interval_seconds=60,
        updated_at_utc=datetime.now(timezone.utc),
    )


def get_or_create_settings(db) -> AppSettings:
    settings = db.query(AppSettings).filter(AppSettings.id == 1).one_or_none()
    if settings:
        return settings
    settings = _default_settings()
    db.add(settings)
    db.commit()
    db.refresh(settings)
    return settings


def snapshot_settings(settings: AppSettings) -> SettingsSnapshot:
    return SettingsSnapshot(
        id=settings.id,
        openai_api_key_enc=settings.openai_api_key_enc,
        openai_model=settings.openai_model,
        openai_reasoning_effort=settings.openai_reasoning_effort,
        ai_fallback_enabled=settings.ai_fallback_enabled,
        auto_sync_enabled=settings.auto_sync_enabled,
        auto_sync_interval_seconds=settings.auto_sync_interval_seconds,
    )


def get_sport_profile(sport: str) -> SportProfile:
    normalized = (sport or "").strip().upper()
    profile = SPORT_PROFILES.get(normalized)
    if profile is None:
        raise ValueError(
            f"Unsupported sport: {sport}. Supported: {', '.join(SUPPORTED_SPORTS)}"
        )
    return profile


def build_sync_config(sport: str, snapshot: SettingsSnapshot | None = None) -> SyncConfig:
    profile = get_sport_profile(sport)
    ai_enabled = bool(
        snapshot
        and snapshot.ai_fallback_enabled
        and snapshot.openai_api_key_enc
    )
    return SyncConfig(
        sport=profile.sport,
        auto_finish_after=profile.auto_finish_after,
        foreign_competition_keywords=profile.foreign_competition_keywords,
        own_competition_keywords=profile.own_competition_keywords,
        scoring_system=profile.scoring_system,
        ai_enabled=ai_enabled,
    )


def vendor_credentials(sport: str) -> tuple[str | None, str]:
    """Return ``(api_key, base_url)`` for the sport's vendor from the environment."""
    profile = get_sport_profile(sport)
    api_key = (os.getenv(profile.api_key_env) or "").strip() or None
    base_url = os.getenv(f"{profile.api_key_env.rsplit('_', 1)[0]}_BASE_URL", profile.base_url)
    return api_key, base_url.rstrip("/")


def get_fernet() -> Fernet:
    global _FERNET
    if _FERNET is not None:
        return _FERNET
    secret = (os.getenv("APP_SECRET_KEY") or "").strip()
    if not secret:
        secret = Fernet.generate_key().decode("utf-8")
        logger.warning(
            "APP_SECRET_KEY missing. Generated a temporary key: %s. "
            "Set APP_SECRET_KEY to this value to persist decryption.",
            secret,
        )
    _FERNET = Fernet(secret.encode("utf-8"))
    return _FERNET


def encrypt_api_key(api_key: str | None) -> str | None:
    if not api_key:
        return None
    fernet = get_fernet()
    return fernet.encrypt(api_key.encode("utf-8")).decode("utf-8")


def decrypt_api_key(encrypted: str | None) -> str | None:
    if not encrypted:
        return None
    fernet = get_fernet()
    try:
        return fernet.decrypt(encrypted.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        logger.error("Failed to decrypt OpenAI API key. Check APP_SECRET_KEY.")
        return None

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class GameOut(BaseModel):
    id: int
    competition_id: int
    home_team_id: int
    away_team_id: int
    date: datetime
    status: str
    external_id: Optional[str]
    external_status: Optional[str]
    live_home_score: Optional[int]
    live_away_score: Optional[int]
    elapsed_minute: Optional[int]
    home_score: Optional[int]
    away_score: Optional[int]
    decided_by: Optional[str]
    finished_at: Optional[datetime]
    last_sync_at: Optional[datetime]

    class Config:
        from_attributes = True


class RejectionOut(BaseModel):
    gate: str
    external_id: Optional[str]
    game_id: Optional[int]
    home_confidence: Optional[float]
    away_confidence: Optional[float]
    date_delta_hours: Optional[float]
    detail: str


class SyncRunOut(BaseModel):
    sport: str
    tracked: int
    fetched: int
    matched: int
    updated: int
    unchanged: int
    rejected: int
    unmatched: int
    ai_matched: int
    link_resets: int
    auto_finished: int
    bets_recalculated: int
    errors: int
    rejections: list[RejectionOut]


class SettingsOut(BaseModel):
    has_openai_key: bool
    openai_model: str
    openai_reasoning_effort: str
    ai_fallback_enabled: bool
    auto_sync_enabled: bool
    auto_sync_interval_seconds: int


class SettingsIn(BaseModel):
    openai_api_key: Optional[str] = None
    openai_model: Optional[str] = None
    openai_reasoning_effort: Optional[str] = None
    ai_fallback_enabled: Optional[bool] = None
    auto_sync_enabled: Optional[bool] = None
    auto_sync_interval_seconds: Optional[int] = Field(default=None, ge=15)

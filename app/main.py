from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, HTTPException
from sqlalchemy.orm import Session

from app.db import SessionLocal, get_db
from app.ingestion import statuses
from app.log_buffer import get_buffer_handler, install_buffer_handler
from app.models import Competition, Game
from app.schemas import GameOut, SettingsIn, SettingsOut, SyncRunOut
from app.settings import (
    SUPPORTED_SPORTS,
    encrypt_api_key,
    get_or_create_settings,
    snapshot_settings,
)
from app.sync.live_sync import SyncRunResult, run_live_sync

app = FastAPI(title="Live Match Sync")
logger = logging.getLogger(__name__)
_auto_sync_task: asyncio.Task | None = None
_auto_sync_stop: asyncio.Event | None = None
_sync_lock = asyncio.Lock()


def _sync_run_out(result: SyncRunResult) -> SyncRunOut:
    payload = asdict(result)
    payload["rejections"] = [
        {**rejection, "gate": rejection["gate"].value} for rejection in payload["rejections"]
    ]
    return SyncRunOut(**payload)


def _load_auto_sync_settings() -> tuple[bool, int]:
    with SessionLocal() as db:
        snapshot = snapshot_settings(get_or_create_settings(db))
    return snapshot.auto_sync_enabled, snapshot.auto_sync_interval_seconds


async def _run_sync_once(sport: str) -> SyncRunResult:
    async with _sync_lock:
        return await asyncio.to_thread(run_live_sync, sport)


async def _auto_sync_loop() -> None:
    logger.info("Auto-sync loop started for %s", ",".join(SUPPORTED_SPORTS))
    while _auto_sync_stop and not _auto_sync_stop.is_set():
        interval_seconds = 60
        try:
            enabled, interval_seconds = await asyncio.to_thread(_load_auto_sync_settings)
            if enabled:
                for sport in SUPPORTED_SPORTS:
                    result = await _run_sync_once(sport)
                    logger.info("Auto-sync done: %s", result.summary())
        except Exception:
            logger.exception("Auto-sync failed.")
        try:
            await asyncio.wait_for(_auto_sync_stop.wait(), timeout=max(interval_seconds, 15))
        except asyncio.TimeoutError:
            continue


@app.on_event("startup")
async def start_auto_sync() -> None:
    global _auto_sync_task, _auto_sync_stop
    install_buffer_handler()
    logger.info("App starting up, scheduling live sync")
    _auto_sync_stop = asyncio.Event()
    _auto_sync_task = asyncio.create_task(_auto_sync_loop())


@app.on_event("shutdown")
async def stop_auto_sync() -> None:
    global _auto_sync_task, _auto_sync_stop
    if _auto_sync_stop:
        _auto_sync_stop.set()
    if _auto_sync_task:
        await _auto_sync_task
    _auto_sync_task = None
    _auto_sync_stop = None


@app.post("/api/live-sync/{sport}", response_model=SyncRunOut)
async def api_live_sync(sport: str):
    normalized = sport.strip().upper()
    if normalized not in SUPPORTED_SPORTS:
        raise HTTPException(status_code=404, detail=f"Unsupported sport: {sport}")
    result = await _run_sync_once(normalized)
    return _sync_run_out(result)


@app.get("/api/games/live", response_model=list[GameOut])
def api_live_games(sport: str | None = None, db: Session = Depends(get_db)):
    query = db.query(Game).filter(Game.status == statuses.LIVE)
    if sport:
        query = query.join(Competition, Competition.id == Game.competition_id).filter(
            Competition.sport_type == sport.strip().upper()
        )
    games = query.order_by(Game.date.asc()).all()
    return [GameOut.model_validate(game) for game in games]


@app.get("/api/logs")
def api_logs(limit: int = 100, level: str | None = None):
    return {"entries": get_buffer_handler().entries(limit=min(max(limit, 1), 500), level=level)}


def _settings_out(settings) -> SettingsOut:
    return SettingsOut(
        has_openai_key=bool(settings.openai_api_key_enc),
        openai_model=settings.openai_model,
        openai_reasoning_effort=settings.openai_reasoning_effort,
        ai_fallback_enabled=settings.ai_fallback_enabled,
        auto_sync_enabled=settings.auto_sync_enabled,
        auto_sync_interval_seconds=settings.auto_sync_interval_seconds,
    )


@app.get("/api/settings", response_model=SettingsOut)
def api_get_settings(db: Session = Depends(get_db)):
    return _settings_out(get_or_create_settings(db))


@app.put("/api/settings", response_model=SettingsOut)
def api_put_settings(payload: SettingsIn, db: Session = Depends(get_db)):
    settings = get_or_create_settings(db)
    if payload.openai_api_key is not None:
        api_key = payload.openai_api_key.strip()
        settings.openai_api_key_enc = encrypt_api_key(api_key) if api_key else None
    if payload.openai_model:
        settings.openai_model = payload.openai_model.strip()
    if payload.openai_reasoning_effort:
        settings.openai_reasoning_effort = payload.openai_reasoning_effort.strip()
    if payload.ai_fallback_enabled is not None:
        settings.ai_fallback_enabled = payload.ai_fallback_enabled
    if payload.auto_sync_enabled is not None:
        settings.auto_sync_enabled = payload.auto_sync_enabled
    if payload.auto_sync_interval_seconds is not None:
        settings.auto_sync_interval_seconds = payload.auto_sync_interval_seconds
    settings.updated_at_utc = datetime.now(timezone.utc)
    db.commit()
    return _settings_out(settings)

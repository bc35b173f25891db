from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .db import Base


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    short_name = Column(String, nullable=True)   # alias used by vendors ("Sporting CP")
    sport_type = Column(String, nullable=False, default="FOOTBALL")
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Competition(Base):
    __tablename__ = "competitions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    sport_type = Column(String, nullable=False, default="FOOTBALL")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    games = relationship("Game", back_populates="competition")


class Game(Base):
    __tablename__ = "games"

    id = Column(Integer, primary_key=True, index=True)
    competition_id = Column(Integer, ForeignKey("competitions.id"), nullable=False)
    home_team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    away_team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    status = Column(String, nullable=False, default="UPCOMING")

    # Vendor link
    external_id = Column(String, nullable=True, index=True)
    external_status = Column(String, nullable=True)

    # Live feed
    live_home_score = Column(Integer, nullable=True)
    live_away_score = Column(Integer, nullable=True)
    elapsed_minute = Column(Integer, nullable=True)

    # Final result
    home_score = Column(Integer, nullable=True)
    away_score = Column(Integer, nullable=True)
    decided_by = Column(String, nullable=True)   # FT | AET
    finished_at = Column(DateTime(timezone=True), nullable=True)

    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    competition = relationship("Competition", back_populates="games")
    home_team = relationship("Team", foreign_keys=[home_team_id])
    away_team = relationship("Team", foreign_keys=[away_team_id])
    bets = relationship("Bet", back_populates="game")


class Bet(Base):
    __tablename__ = "bets"
    __table_args__ = (
        UniqueConstraint("game_id", "user_id", name="uq_bets_game_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False)
    user_id = Column(Integer, nullable=False, index=True)
    score1 = Column(Integer, nullable=False)     # predicted home score
    score2 = Column(Integer, nullable=False)     # predicted away score
    points = Column(Integer, nullable=True)      # None until the game is finished
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    game = relationship("Game", back_populates="bets")


class CompetitionUser(Base):
    __tablename__ = "competition_users"
    __table_args__ = (
        UniqueConstraint("competition_id", "user_id", name="uq_competition_users"),
    )

    id = Column(Integer, primary_key=True, index=True)
    competition_id = Column(Integer, ForeignKey("competitions.id"), nullable=False)
    user_id = Column(Integer, nullable=False)
    points = Column(Integer, nullable=False, default=0)
    shooters = Column(Integer, nullable=False, default=0)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class AppSettings(Base):
    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True)
    openai_api_key_enc = Column(Text, nullable=True)
    openai_model = Column(String, nullable=False, default="gpt-5-mini")
    openai_reasoning_effort = Column(String, nullable=False, default="low")
    ai_fallback_enabled = Column(Boolean, nullable=False, default=True)
    auto_sync_enabled = Column(Boolean, nullable=False, default=True)
    auto_sync_interval_seconds = Column(Integer, nullable=False, default=60)
    updated_at_utc = Column(DateTime(timezone=True), nullable=True)

"""Database models for the live RTP monitor"""

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime,
    ForeignKey, Text, Enum as SQLEnum, Index
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

from models.rtp_models import Confidence, RankType, Trend, Volatility, Window


Base = declarative_base()


class Game(Base):
    """Per-game metadata and cached artwork"""
    __tablename__ = "games"

    id = Column(String(32), primary_key=True)  # upstream game id, decimal string
    title = Column(String(200), nullable=False)
    provider = Column(String(100), default="Unknown")

    # Artwork
    image_path = Column(String(300))
    image_base64 = Column(Text)  # data URI

    # Derivation inputs
    rtp_teorico = Column(Float, default=0.96)
    volatility = Column(SQLEnum(Volatility), default=Volatility.MEDIUM)
    has_feature_buy = Column(Boolean, default=False)
    has_progressive = Column(Boolean, default=False)
    rtp_feature_buy = Column(Float)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    snapshots = relationship("GameRTPSnapshot", back_populates="game", cascade="all, delete-orphan")
    windows = relationship("GameRTPWindow", back_populates="game", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Game {self.id} {self.title} ({self.provider})>"


class GameRTPSnapshot(Base):
    """Raw per-cycle values for one game, the time series behind history and variations"""
    __tablename__ = "game_rtp_snapshots"

    id = Column(Integer, primary_key=True)
    game_id = Column(String(32), ForeignKey("games.id"), nullable=False, index=True)
    game_name = Column(String(200), nullable=False)
    provider = Column(String(100))
    image_path = Column(String(300))

    # As decoded: magnitude in basis points plus sign
    magnitude_bps_daily = Column(Integer)
    sign_daily = Column(Integer)
    magnitude_bps_weekly = Column(Integer)
    sign_weekly = Column(Integer)

    # Direct display strategy output, signed percent
    rtp_calculated_daily = Column(Float)
    rtp_calculated_weekly = Column(Float)

    strategy = Column(String(20), nullable=False)
    snapshot_time = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    game = relationship("Game", back_populates="snapshots")

    __table_args__ = (
        Index("idx_snapshot_game_time", "game_id", "snapshot_time"),
    )

    def __repr__(self):
        return f"<GameRTPSnapshot {self.game_id} @ {self.snapshot_time}>"


class GameRTPWindow(Base):
    """Bayesian metrics for one game in one window"""
    __tablename__ = "game_rtp_windows"

    id = Column(Integer, primary_key=True)
    game_id = Column(String(32), ForeignKey("games.id"), nullable=False, index=True)
    window = Column(SQLEnum(Window), nullable=False)

    rtp_delta_api_pp = Column(Float)  # signed deviation as received
    n_spins = Column(Integer, default=0)
    rtp_observado = Column(Float)
    rtp_post = Column(Float)
    delta_post_pp = Column(Float)
    score = Column(Float)
    confidence = Column(SQLEnum(Confidence))
    trend = Column(SQLEnum(Trend), default=Trend.STABLE)

    computed_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    game = relationship("Game", back_populates="windows")

    __table_args__ = (
        Index("idx_window_game_window_time", "game_id", "window", "computed_at"),
    )

    def __repr__(self):
        return f"<GameRTPWindow {self.game_id} {self.window} score={self.score}>"


class GameRanking(Base):
    """Current leaderboard rows, replaced per window every cycle"""
    __tablename__ = "game_rankings"

    id = Column(Integer, primary_key=True)
    window = Column(SQLEnum(Window), nullable=False)
    game_id = Column(String(32), ForeignKey("games.id"), nullable=False)
    rank_type = Column(SQLEnum(RankType), nullable=False)
    position = Column(Integer, nullable=False)
    score = Column(Float)
    delta_post_pp = Column(Float)
    confidence = Column(SQLEnum(Confidence))
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_ranking_window_type", "window", "rank_type", "position"),
    )

    def __repr__(self):
        return f"<GameRanking {self.window} {self.rank_type} #{self.position} {self.game_id}>"

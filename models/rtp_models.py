"""
Live RTP domain models

Game records decoded from one window's frame, merged games combining the
daily and weekly windows, and the derived per-window metrics and rankings.
"""

import enum
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


class Window(str, enum.Enum):
    """Polled time windows"""
    DAILY = "24h"
    WEEKLY = "7d"

    @property
    def selector(self) -> int:
        """Value of field 1 in the upstream request body"""
        return 1 if self is Window.DAILY else 2


class Volatility(str, enum.Enum):
    """Volatility tiers, ordered from lowest to highest"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"

    @property
    def order(self) -> int:
        return list(Volatility).index(self)


class Confidence(str, enum.Enum):
    """Sample-size confidence labels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Trend(str, enum.Enum):
    """Short vs long window direction"""
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


class RankType(str, enum.Enum):
    BEST = "best"
    WORST = "worst"


@dataclass
class GameRecord:
    """One game entry decoded from a single window's frame"""
    game_id: Optional[str] = None
    game_name: Optional[str] = None
    provider: Optional[str] = None
    image_path: Optional[str] = None
    magnitude_bps: Optional[int] = None
    sign: Optional[int] = None  # -1, 0 or 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MergedGame:
    """A game with both windows attached, keyed by game_id"""
    game_id: str
    game_name: str
    provider: Optional[str] = None
    image_path: Optional[str] = None
    image_url: Optional[str] = None

    magnitude_bps_daily: Optional[int] = None
    sign_daily: Optional[int] = None
    magnitude_bps_weekly: Optional[int] = None
    sign_weekly: Optional[int] = None

    # Metadata, filled from the games table when known
    rtp_teorico: float = 0.96
    volatility: Volatility = Volatility.MEDIUM
    has_progressive: bool = False
    n_spins_daily: int = 0
    n_spins_weekly: int = 0

    def window_signal(self, window: Window):
        """(magnitude_bps, sign, n_spins) for one window"""
        if window is Window.DAILY:
            return self.magnitude_bps_daily, self.sign_daily, self.n_spins_daily
        return self.magnitude_bps_weekly, self.sign_weekly, self.n_spins_weekly


@dataclass
class WindowMetrics:
    """Bayesian-derived metrics for one game in one window"""
    window: Window
    magnitude_bps: int
    sign: int
    n_spins: int
    rtp_observado: float
    rtp_post: float
    delta_post_pp: float
    score: float
    confidence: Confidence

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window": self.window.value,
            "magnitude_bps": self.magnitude_bps,
            "sign": self.sign,
            "n_spins": self.n_spins,
            "rtp_observado": self.rtp_observado,
            "rtp_post": self.rtp_post,
            "delta_post_pp": self.delta_post_pp,
            "score": self.score,
            "confidence": self.confidence.value,
        }


@dataclass
class ProcessedGame:
    """A merged game after derivation by one strategy"""
    game_id: str
    game_name: str
    provider: Optional[str]
    image_url: Optional[str]
    strategy: str
    image_path: Optional[str] = None
    rtp_teorico: float = 0.96
    volatility: Volatility = Volatility.MEDIUM
    has_progressive: bool = False
    magnitude_bps_daily: Optional[int] = None
    sign_daily: Optional[int] = None
    magnitude_bps_weekly: Optional[int] = None
    sign_weekly: Optional[int] = None

    # Bayesian strategy
    daily: Optional[WindowMetrics] = None
    weekly: Optional[WindowMetrics] = None
    trend: Trend = Trend.STABLE

    # Direct display strategy (signed percent)
    rtp_calculated_daily: Optional[float] = None
    rtp_calculated_weekly: Optional[float] = None

    def metrics_for(self, window: Window) -> Optional[WindowMetrics]:
        return self.daily if window is Window.DAILY else self.weekly

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "game_name": self.game_name,
            "provider": self.provider,
            "image_path": self.image_path,
            "image_url": self.image_url,
            "strategy": self.strategy,
            "rtp_teorico": self.rtp_teorico,
            "volatility": self.volatility.value,
            "has_progressive": self.has_progressive,
            "magnitude_bps_daily": self.magnitude_bps_daily,
            "sign_daily": self.sign_daily,
            "magnitude_bps_weekly": self.magnitude_bps_weekly,
            "sign_weekly": self.sign_weekly,
            "daily": self.daily.to_dict() if self.daily else None,
            "weekly": self.weekly.to_dict() if self.weekly else None,
            "trend": self.trend.value,
            "rtp_calculated_daily": self.rtp_calculated_daily,
            "rtp_calculated_weekly": self.rtp_calculated_weekly,
        }


@dataclass
class RankingEntry:
    """One leaderboard row"""
    window: Window
    game_id: str
    game_name: str
    provider: Optional[str]
    rank_type: RankType
    position: int
    score: float
    delta_post_pp: float
    confidence: Confidence
    n_spins: int
    volatility: Volatility

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window": self.window.value,
            "game_id": self.game_id,
            "game_name": self.game_name,
            "provider": self.provider,
            "rank_type": self.rank_type.value,
            "position": self.position,
            "score": self.score,
            "delta_post_pp": self.delta_post_pp,
            "confidence": self.confidence.value,
            "n_spins": self.n_spins,
            "volatility": self.volatility.value,
        }


@dataclass
class Rankings:
    """Best and worst leaderboards for one window"""
    window: Window
    best: List[RankingEntry] = field(default_factory=list)
    worst: List[RankingEntry] = field(default_factory=list)

    def entries(self) -> List[RankingEntry]:
        return self.best + self.worst

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window": self.window.value,
            "best": [e.to_dict() for e in self.best],
            "worst": [e.to_dict() for e in self.worst],
        }

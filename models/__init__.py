"""Models module initialization"""

from .rtp_models import (
    Window,
    Volatility,
    Confidence,
    Trend,
    RankType,
    GameRecord,
    MergedGame,
    WindowMetrics,
    ProcessedGame,
    RankingEntry,
    Rankings,
)

__all__ = [
    "Window",
    "Volatility",
    "Confidence",
    "Trend",
    "RankType",
    "GameRecord",
    "MergedGame",
    "WindowMetrics",
    "ProcessedGame",
    "RankingEntry",
    "Rankings",
]

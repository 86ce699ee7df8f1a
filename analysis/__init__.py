"""
Analysis Package
================
RTP derivation and ranking layer.

Modules:
    - sign: Two's-complement sign and basis-point scale conversions
    - merge: Combine daily and weekly game records
    - rtp_calculator: Bayesian shrinkage, scoring, confidence and trend
    - display_calculator: Direct signed-percentage variant
    - strategy: Strategy interface and selection by name
    - rankings: Best / worst leaderboards per window
"""

from analysis.sign import (
    to_signed_int64,
    to_sign,
    basis_points_to_percent,
    basis_points_to_fraction,
)
from analysis.merge import merge_windows
from analysis.strategy import MetricsStrategy, get_strategy
from analysis.rtp_calculator import RTPCalculator
from analysis.display_calculator import DisplayCalculator
from analysis.rankings import generate_rankings

__all__ = [
    "to_signed_int64",
    "to_sign",
    "basis_points_to_percent",
    "basis_points_to_fraction",
    "merge_windows",
    "MetricsStrategy",
    "get_strategy",
    "RTPCalculator",
    "DisplayCalculator",
    "generate_rankings",
]

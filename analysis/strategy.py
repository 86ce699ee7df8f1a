"""
Derivation strategies

Two pipelines turn a merged game into something displayable:

- "bayesian": observed RTP as a fraction of the theoretical RTP, shrunk by
  sample size, scored and ranked (analysis.rtp_calculator)
- "display": the raw signed percentage for direct display, no theoretical
  RTP or sample size involved (analysis.display_calculator)

Their numeric scales differ, so they are separate implementations of one
interface and the caller picks one.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from models.rtp_models import MergedGame, ProcessedGame, Window


class MetricsStrategy(ABC):
    """Common interface for both derivation pipelines"""

    name: str = ""

    @abstractmethod
    def derive(self, game: MergedGame, window: Window):
        """Metrics for one window, or None when the window has no signal"""

    @abstractmethod
    def process_game(self, game: MergedGame) -> ProcessedGame:
        """Derive every available window of one game"""

    def process_games(self, games: List[MergedGame]) -> List[ProcessedGame]:
        return [self.process_game(game) for game in games]


def get_strategy(name: Optional[str] = None) -> MetricsStrategy:
    """
    Build the strategy for a configured name

    Raises:
        ValueError: unknown strategy name
    """
    from analysis.display_calculator import DisplayCalculator
    from analysis.rtp_calculator import RTPCalculator

    strategies = {
        RTPCalculator.name: RTPCalculator,
        DisplayCalculator.name: DisplayCalculator,
    }
    key = (name or RTPCalculator.name).lower()
    if key not in strategies:
        raise ValueError(f"Unknown derivation strategy '{name}', expected one of {sorted(strategies)}")
    return strategies[key]()

"""
Direct-display RTP calculator

Used when there is no theoretical RTP or sample-size context. The only
transform is basis points -> signed percent (bps / 100). Clients color the
result against a 96% baseline using the sign label from classify().
"""

from typing import Optional

from analysis.sign import basis_points_to_percent
from analysis.strategy import MetricsStrategy
from models.rtp_models import MergedGame, ProcessedGame, Window


class DisplayCalculator(MetricsStrategy):
    """Signed percentage per window, no shrinkage"""

    name = "display"

    def derive(self, game: MergedGame, window: Window) -> Optional[float]:
        magnitude_bps, sign, _ = game.window_signal(window)
        return basis_points_to_percent(magnitude_bps, sign)

    @staticmethod
    def classify(rtp_value: Optional[float], sign: Optional[int]) -> str:
        """positive / negative / neutral label for coloring"""
        if rtp_value is None or sign is None:
            return "neutral"
        if sign < 0:
            return "negative"
        if sign > 0:
            return "positive"
        return "neutral"

    def process_game(self, game: MergedGame) -> ProcessedGame:
        return ProcessedGame(
            game_id=game.game_id,
            game_name=game.game_name,
            provider=game.provider,
            image_path=game.image_path,
            image_url=game.image_url,
            strategy=self.name,
            rtp_teorico=game.rtp_teorico,
            volatility=game.volatility,
            has_progressive=game.has_progressive,
            magnitude_bps_daily=game.magnitude_bps_daily,
            sign_daily=game.sign_daily,
            magnitude_bps_weekly=game.magnitude_bps_weekly,
            sign_weekly=game.sign_weekly,
            rtp_calculated_daily=self.derive(game, Window.DAILY),
            rtp_calculated_weekly=self.derive(game, Window.WEEKLY),
        )

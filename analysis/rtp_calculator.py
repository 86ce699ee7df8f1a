"""
Bayesian RTP Calculator
=======================
Turns the endpoint's (magnitude, sign) deviation into a comparable RTP signal.

Pipeline per game and window:
  1. Observed RTP    = theoretical RTP +/- bps / 10000 / 100
  2. Posterior RTP   = shrink the observation toward the theoretical RTP,
                       weight w = n / (n + k), k set by volatility tier
  3. Score           = delta_post_pp * min(1, sqrt(n / k))
  4. Confidence      = sample-size label (low / medium / high)
  5. Trend           = 24h delta vs 7d delta

Without a sample size (n_spins == 0) no shrinkage is possible: the posterior
equals the observation and the score is zero.

Usage:
    from analysis.rtp_calculator import RTPCalculator
    calculator = RTPCalculator()
    processed = calculator.process_game(merged_game)
"""

import math
from typing import Dict, Optional, Tuple, Union

from analysis.sign import basis_points_to_fraction
from analysis.strategy import MetricsStrategy
from models.rtp_models import (
    Confidence,
    MergedGame,
    ProcessedGame,
    Trend,
    Volatility,
    Window,
    WindowMetrics,
)


class RTPCalculator(MetricsStrategy):
    """Bayesian shrinkage, scoring and trend classification"""

    # Prior strength (pseudo-spins) per volatility tier
    K_VALUES: Dict[Volatility, int] = {
        Volatility.LOW: 50_000,
        Volatility.MEDIUM: 100_000,
        Volatility.HIGH: 150_000,
        Volatility.VERY_HIGH: 200_000,
    }

    HIGH_CONFIDENCE_SPINS = 50_000
    MEDIUM_CONFIDENCE_SPINS = 10_000

    TREND_THRESHOLD_PP = 0.5
    PROGRESSIVE_CLAMP_PP = 2.0

    name = "bayesian"

    def prior_strength(self, volatility: Union[Volatility, str, None]) -> int:
        """k for a volatility tier; unknown tiers fall back to medium."""
        try:
            tier = Volatility(volatility)
        except ValueError:
            tier = Volatility.MEDIUM
        return self.K_VALUES[tier]

    def calculate_observed_rtp(
        self,
        rtp_teorico: float,
        magnitude_bps: Optional[int],
        sign: Optional[int],
    ) -> float:
        """
        Observed RTP as a fraction

        Args:
            rtp_teorico: Theoretical RTP (e.g. 0.96)
            magnitude_bps: Deviation magnitude in basis points (20335 -> 2.0335 pp)
            sign: -1, 0 or 1

        Returns:
            rtp_teorico shifted by the deviation; rtp_teorico unchanged when
            either input is missing
        """
        if magnitude_bps is None or sign is None:
            return rtp_teorico

        delta = basis_points_to_fraction(magnitude_bps, 1)
        if sign < 0:
            return rtp_teorico - delta
        if sign > 0:
            return rtp_teorico + delta
        return rtp_teorico

    def calculate_bayesian_adjustment(
        self,
        rtp_teorico: float,
        rtp_observado: float,
        n_spins: int = 0,
        volatility: Union[Volatility, str] = Volatility.MEDIUM,
        has_progressive: bool = False,
    ) -> Tuple[float, float]:
        """
        Shrink the observed RTP toward the theoretical RTP

        Returns:
            (rtp_post, delta_post_pp)
        """
        n_eff = max(0, n_spins or 0)

        if n_eff == 0:
            rtp_post = rtp_observado
        else:
            k = self.prior_strength(volatility)
            w = n_eff / (n_eff + k)
            rtp_post = rtp_teorico + w * (rtp_observado - rtp_teorico)

        delta_post_pp = (rtp_post - rtp_teorico) * 100

        # Jackpot hits distort the short run
        if has_progressive:
            delta_post_pp = self.clamp(delta_post_pp, -self.PROGRESSIVE_CLAMP_PP, self.PROGRESSIVE_CLAMP_PP)

        return rtp_post, delta_post_pp

    def calculate_score(
        self,
        delta_post_pp: float,
        n_spins: int,
        volatility: Union[Volatility, str] = Volatility.MEDIUM,
    ) -> float:
        """Deviation discounted by sample size; saturates once n_spins >= k."""
        k = self.prior_strength(volatility)
        n_eff = max(0, n_spins or 0)
        return delta_post_pp * min(1.0, math.sqrt(n_eff / k))

    def calculate_confidence(self, n_spins: int) -> Confidence:
        if n_spins >= self.HIGH_CONFIDENCE_SPINS:
            return Confidence.HIGH
        if n_spins >= self.MEDIUM_CONFIDENCE_SPINS:
            return Confidence.MEDIUM
        return Confidence.LOW

    def calculate_trend(self, delta_post_24h: Optional[float], delta_post_7d: Optional[float]) -> Trend:
        if delta_post_24h is None or delta_post_7d is None:
            return Trend.STABLE

        diff = delta_post_24h - delta_post_7d
        if diff > self.TREND_THRESHOLD_PP:
            return Trend.RISING
        if diff < -self.TREND_THRESHOLD_PP:
            return Trend.FALLING
        return Trend.STABLE

    def derive(self, game: MergedGame, window: Window) -> Optional[WindowMetrics]:
        """Window metrics, or None when the window carries no complete signal"""
        magnitude_bps, sign, n_spins = game.window_signal(window)
        if magnitude_bps is None or sign is None:
            return None

        n_spins = max(0, n_spins or 0)
        rtp_observado = self.calculate_observed_rtp(game.rtp_teorico, magnitude_bps, sign)
        rtp_post, delta_post_pp = self.calculate_bayesian_adjustment(
            rtp_teorico=game.rtp_teorico,
            rtp_observado=rtp_observado,
            n_spins=n_spins,
            volatility=game.volatility,
            has_progressive=game.has_progressive,
        )

        return WindowMetrics(
            window=window,
            magnitude_bps=magnitude_bps,
            sign=sign,
            n_spins=n_spins,
            rtp_observado=rtp_observado,
            rtp_post=rtp_post,
            delta_post_pp=delta_post_pp,
            score=self.calculate_score(delta_post_pp, n_spins, game.volatility),
            confidence=self.calculate_confidence(n_spins),
        )

    def process_game(self, game: MergedGame) -> ProcessedGame:
        daily = self.derive(game, Window.DAILY)
        weekly = self.derive(game, Window.WEEKLY)

        if daily and weekly:
            trend = self.calculate_trend(daily.delta_post_pp, weekly.delta_post_pp)
        else:
            trend = Trend.STABLE

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
            daily=daily,
            weekly=weekly,
            trend=trend,
        )

    @staticmethod
    def clamp(value: float, lo: float, hi: float) -> float:
        return min(max(value, lo), hi)

"""
Best / worst leaderboards per window

Only games with metrics for the window and at least medium confidence are
ranked. Order is total: score, then sample size, then volatility tier, then
game id, so identical inputs always rank identically.
"""

from typing import Iterable, List, Tuple

from loguru import logger

from models.rtp_models import (
    Confidence,
    ProcessedGame,
    RankingEntry,
    Rankings,
    RankType,
    Window,
)

DEFAULT_LIMIT = 10


def _rankable(processed_games: Iterable[ProcessedGame], window: Window) -> List[ProcessedGame]:
    eligible = []
    for game in processed_games:
        metrics = game.metrics_for(window)
        if metrics is None or metrics.confidence is Confidence.LOW:
            continue
        eligible.append(game)
    return eligible


def _best_key(game: ProcessedGame, window: Window) -> Tuple:
    metrics = game.metrics_for(window)
    return (-metrics.score, -metrics.n_spins, game.volatility.order, game.game_id)


def _worst_key(game: ProcessedGame, window: Window) -> Tuple:
    metrics = game.metrics_for(window)
    return (metrics.score, -metrics.n_spins, game.volatility.order, game.game_id)


def _to_entries(games: List[ProcessedGame], window: Window, rank_type: RankType) -> List[RankingEntry]:
    entries = []
    for position, game in enumerate(games, start=1):
        metrics = game.metrics_for(window)
        entries.append(RankingEntry(
            window=window,
            game_id=game.game_id,
            game_name=game.game_name,
            provider=game.provider,
            rank_type=rank_type,
            position=position,
            score=metrics.score,
            delta_post_pp=metrics.delta_post_pp,
            confidence=metrics.confidence,
            n_spins=metrics.n_spins,
            volatility=game.volatility,
        ))
    return entries


def generate_rankings(
    processed_games: Iterable[ProcessedGame],
    window: Window,
    limit: int = DEFAULT_LIMIT,
) -> Rankings:
    """
    Build the best and worst leaderboards for one window

    Args:
        processed_games: Output of the Bayesian strategy
        window: Window to rank
        limit: Maximum entries per leaderboard

    Returns:
        Rankings with 1-based positions
    """
    window = Window(window)
    eligible = _rankable(processed_games, window)

    best = sorted(eligible, key=lambda g: _best_key(g, window))[:limit]
    worst = sorted(eligible, key=lambda g: _worst_key(g, window))[:limit]

    logger.debug(f"Rankings {window.value}: {len(eligible)} eligible, best={len(best)} worst={len(worst)}")

    return Rankings(
        window=window,
        best=_to_entries(best, window, RankType.BEST),
        worst=_to_entries(worst, window, RankType.WORST),
    )

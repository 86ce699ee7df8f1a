"""
Daily + weekly merge

Games are keyed by game_id. Daily games keep their frame order, games only
present in the weekly frame follow in theirs. Either window may be missing
entirely when its fetch failed.
"""

from typing import Dict, Iterable, List, Optional

from models.rtp_models import GameRecord, MergedGame, Volatility, Window

UNKNOWN_PROVIDER = "Unknown"


def build_image_url(site_base_url: str, image_path: Optional[str]) -> Optional[str]:
    if not image_path:
        return None
    return f"{site_base_url.rstrip('/')}{image_path}"


def merge_windows(
    daily: Optional[Iterable[GameRecord]],
    weekly: Optional[Iterable[GameRecord]],
    site_base_url: str = "",
    rtp_teorico: float = 0.96,
    volatility: Volatility = Volatility.MEDIUM,
) -> List[MergedGame]:
    """
    Combine both windows into one entry per game

    Args:
        daily: Records from the 24h frame, or None when it was not fetched
        weekly: Records from the 7d frame, or None when it was not fetched
        site_base_url: Prefix for image paths
        rtp_teorico: Default theoretical RTP until metadata is attached
        volatility: Default volatility tier until metadata is attached

    Returns:
        Merged games in first-seen order
    """
    merged: Dict[str, MergedGame] = {}

    for window, records in ((Window.DAILY, daily), (Window.WEEKLY, weekly)):
        for record in records or []:
            if record.game_id is None or record.game_name is None:
                continue

            game = merged.get(record.game_id)
            if game is None:
                game = MergedGame(
                    game_id=record.game_id,
                    game_name=record.game_name,
                    provider=record.provider or UNKNOWN_PROVIDER,
                    image_path=record.image_path,
                    image_url=build_image_url(site_base_url, record.image_path),
                    rtp_teorico=rtp_teorico,
                    volatility=volatility,
                )
                merged[record.game_id] = game
            elif game.image_path is None and record.image_path:
                game.image_path = record.image_path
                game.image_url = build_image_url(site_base_url, record.image_path)

            if window is Window.DAILY:
                game.magnitude_bps_daily = record.magnitude_bps
                game.sign_daily = record.sign
            else:
                game.magnitude_bps_weekly = record.magnitude_bps
                game.sign_weekly = record.sign

    return list(merged.values())

"""
Test Suite for the daily + weekly merge
"""

from analysis.merge import merge_windows
from models.rtp_models import GameRecord, Volatility


def record(game_id, name="Game", magnitude_bps=100, sign=1, provider="Prov", image_path=None):
    return GameRecord(
        game_id=game_id,
        game_name=name,
        provider=provider,
        image_path=image_path,
        magnitude_bps=magnitude_bps,
        sign=sign,
    )


def test_game_in_both_windows_appears_once():
    merged = merge_windows([record("1", magnitude_bps=200, sign=-1)], [record("1", magnitude_bps=50, sign=1)])

    assert len(merged) == 1
    game = merged[0]
    assert (game.magnitude_bps_daily, game.sign_daily) == (200, -1)
    assert (game.magnitude_bps_weekly, game.sign_weekly) == (50, 1)


def test_order_daily_then_weekly_only():
    merged = merge_windows([record("2"), record("1")], [record("3"), record("1")])
    assert [g.game_id for g in merged] == ["2", "1", "3"]


def test_weekly_only_game_has_no_daily_signal():
    merged = merge_windows([], [record("3")])
    assert merged[0].magnitude_bps_daily is None
    assert merged[0].sign_daily is None
    assert merged[0].magnitude_bps_weekly == 100


def test_failed_window_is_none():
    merged = merge_windows(None, [record("3")])
    assert [g.game_id for g in merged] == ["3"]
    assert merge_windows(None, None) == []


def test_image_url_and_defaults():
    merged = merge_windows(
        [record("1", provider=None, image_path="/static/a.webp")],
        None,
        site_base_url="https://example.test/",
        rtp_teorico=0.95,
        volatility=Volatility.HIGH,
    )
    game = merged[0]
    assert game.image_url == "https://example.test/static/a.webp"
    assert game.provider == "Unknown"
    assert game.rtp_teorico == 0.95
    assert game.volatility is Volatility.HIGH
    assert game.n_spins_daily == 0


def test_weekly_fills_missing_image():
    merged = merge_windows([record("1")], [record("1", image_path="/static/b.webp")], site_base_url="https://x")
    assert merged[0].image_url == "https://x/static/b.webp"

"""
Test Suite for the RTP repository
"""

from datetime import datetime, timedelta

import pytest
from database import repository
from database.models import GameRTPSnapshot, GameRTPWindow
from models.rtp_models import (
    Confidence,
    MergedGame,
    ProcessedGame,
    RankingEntry,
    Rankings,
    RankType,
    Volatility,
    Window,
    WindowMetrics,
)

NOW = datetime(2026, 3, 1, 12, 0, 0)


def processed(game_id, magnitude_bps=100, sign=1, with_metrics=True):
    game = ProcessedGame(
        game_id=game_id,
        game_name=f"Game {game_id}",
        provider="Prov",
        image_url=None,
        image_path=f"/static/{game_id}.webp",
        strategy="bayesian",
        magnitude_bps_daily=magnitude_bps,
        sign_daily=sign,
    )
    if with_metrics:
        game.daily = WindowMetrics(
            window=Window.DAILY, magnitude_bps=magnitude_bps, sign=sign, n_spins=0,
            rtp_observado=0.961, rtp_post=0.961, delta_post_pp=0.1, score=0.0,
            confidence=Confidence.LOW,
        )
    return game


def seed_games(db, *ids):
    repository.upsert_games(db, [MergedGame(game_id=i, game_name=f"Game {i}") for i in ids])


class TestGames:

    def test_upsert_inserts_then_updates(self, db_session):
        assert repository.upsert_games(db_session, [MergedGame(game_id="1", game_name="Old")]) == 1
        assert repository.upsert_games(db_session, [MergedGame(game_id="1", game_name="New",
                                                                image_path="/static/n.webp")]) == 0
        game = repository.load_game_metadata(db_session, ["1"])["1"]
        assert game.title == "New"
        assert game.image_path == "/static/n.webp"
        assert game.rtp_teorico == 0.96
        assert game.volatility is Volatility.MEDIUM

    def test_update_metadata(self, db_session):
        seed_games(db_session, "1")
        game = repository.update_game_metadata(db_session, "1", rtp_teorico=0.94, volatility="high",
                                               has_progressive=True)
        assert game.rtp_teorico == 0.94
        assert game.volatility is Volatility.HIGH
        assert repository.update_game_metadata(db_session, "missing", rtp_teorico=0.9) is None

    def test_unknown_provider_keeps_stored_one(self, db_session):
        repository.upsert_games(db_session, [MergedGame(game_id="1", game_name="G", provider="Pragmatic Play")])
        repository.upsert_games(db_session, [MergedGame(game_id="1", game_name="G", provider="Unknown")])
        assert repository.load_game_metadata(db_session, ["1"])["1"].provider == "Pragmatic Play"

        repository.upsert_games(db_session, [MergedGame(game_id="1", game_name="G", provider="Play'n GO")])
        assert repository.load_game_metadata(db_session, ["1"])["1"].provider == "Play'n GO"


class TestSnapshots:

    def test_latest_and_history(self, db_session):
        seed_games(db_session, "1", "2")
        repository.save_snapshots(db_session, [processed("1"), processed("2")], NOW - timedelta(minutes=1))
        repository.save_snapshots(db_session, [processed("1", 300, -1)], NOW)
        db_session.commit()

        latest = repository.get_latest_snapshots(db_session)
        assert [r.game_id for r in latest] == ["1"]
        data = repository.snapshot_to_dict(latest[0], "https://site")
        assert data["rtp_daily_pp"] == pytest.approx(-0.03)
        assert data["image_url"] == "https://site/static/1.webp"

        history = repository.get_game_history(db_session, "1")
        assert [r.snapshot_time for r in history] == [NOW, NOW - timedelta(minutes=1)]
        assert len(repository.get_game_history(db_session, "1", limit=1)) == 1

    def test_top_variations(self, db_session):
        seed_games(db_session, "1", "2")
        repository.save_snapshots(db_session, [processed("1", 100, 1), processed("2", 100, 1)], NOW - timedelta(hours=2))
        repository.save_snapshots(db_session, [processed("1", 500, -1), processed("2", 200, 1)], NOW - timedelta(hours=1))
        db_session.commit()

        variations = repository.get_top_variations(db_session, now=NOW)
        assert [v["game_id"] for v in variations] == ["1", "2"]
        assert variations[0]["variation"] == pytest.approx(0.06)
        assert variations[1]["variation"] == pytest.approx(0.01)

    def test_top_variations_keeps_largest_move_per_game(self, db_session):
        seed_games(db_session, "1", "2", "3")
        for minutes, bps in [(50, 100), (40, 150), (30, 900), (20, 800)]:
            repository.save_snapshots(db_session, [processed("1", bps, 1)], NOW - timedelta(minutes=minutes))
        repository.save_snapshots(db_session, [processed("2", 100, 1), processed("3", 100, 1)], NOW - timedelta(minutes=50))
        repository.save_snapshots(db_session, [processed("2", 400, 1), processed("3", 300, 1)], NOW - timedelta(minutes=40))
        # Rows without a daily signal are skipped, not treated as zero
        repository.save_snapshots(db_session, [processed("3", None, None)], NOW - timedelta(minutes=30))
        db_session.commit()

        variations = repository.get_top_variations(db_session, limit=2, now=NOW)
        assert [v["game_id"] for v in variations] == ["1", "2"]
        top = variations[0]
        assert top["variation"] == pytest.approx(0.075)
        assert top["rtp_daily_pp"] == pytest.approx(0.09)
        assert top["prev_rtp_daily_pp"] == pytest.approx(0.015)
        assert top["game_name"] == "Game 1"

        assert [v["game_id"] for v in repository.get_top_variations(db_session, now=NOW)] == ["1", "2", "3"]

    def test_top_variations_ignores_old_rows(self, db_session):
        seed_games(db_session, "1")
        repository.save_snapshots(db_session, [processed("1", 100, 1)], NOW - timedelta(hours=30))
        repository.save_snapshots(db_session, [processed("1", 900, 1)], NOW - timedelta(hours=1))
        db_session.commit()
        assert repository.get_top_variations(db_session, now=NOW) == []

    def test_stats(self, db_session):
        seed_games(db_session, "1", "2")
        repository.save_snapshots(db_session, [processed("1", 100, 1), processed("2", 300, -1)], NOW)
        db_session.commit()

        stats = repository.get_stats(db_session)
        assert stats["total_games"] == 2
        assert stats["total_records"] == 2
        assert stats["avg_rtp_daily_pp"] == pytest.approx(-0.01)
        assert stats["avg_rtp_weekly_pp"] is None

    def test_stats_empty(self, db_session):
        assert repository.get_stats(db_session)["total_records"] == 0

    def test_cleanup(self, db_session):
        seed_games(db_session, "1")
        repository.save_snapshots(db_session, [processed("1")], NOW - timedelta(days=10))
        repository.save_snapshots(db_session, [processed("1")], NOW)
        db_session.commit()

        assert repository.cleanup_old_data(db_session, days=7, now=NOW) == 1
        assert db_session.query(GameRTPSnapshot).count() == 1


class TestWindowsAndRankings:

    def test_window_rows_pruned_after_an_hour(self, db_session):
        seed_games(db_session, "1")
        repository.save_window_metrics(db_session, [processed("1")], NOW - timedelta(hours=2))
        repository.save_window_metrics(db_session, [processed("1")], NOW - timedelta(minutes=30))
        repository.save_window_metrics(db_session, [processed("1")], NOW)
        db_session.commit()

        rows = db_session.query(GameRTPWindow).all()
        assert len(rows) == 2
        assert rows[0].rtp_delta_api_pp == pytest.approx(0.01)

    def test_games_without_metrics_skipped(self, db_session):
        seed_games(db_session, "1")
        assert repository.save_window_metrics(db_session, [processed("1", with_metrics=False)], NOW) == 0

    def test_replace_rankings(self, db_session):
        seed_games(db_session, "1", "2")

        def entry(game_id, rank_type, position):
            return RankingEntry(
                window=Window.DAILY, game_id=game_id, game_name=game_id, provider=None,
                rank_type=rank_type, position=position, score=1.0, delta_post_pp=1.0,
                confidence=Confidence.MEDIUM, n_spins=20_000, volatility=Volatility.MEDIUM,
            )

        repository.replace_rankings(db_session, Rankings(
            window=Window.DAILY, best=[entry("1", RankType.BEST, 1)], worst=[entry("1", RankType.WORST, 1)]
        ))
        repository.replace_rankings(db_session, Rankings(
            window=Window.DAILY, best=[entry("2", RankType.BEST, 1)], worst=[]
        ))
        db_session.commit()

        stored = repository.get_rankings(db_session, Window.DAILY)
        assert [r["game_id"] for r in stored["best"]] == ["2"]
        assert stored["worst"] == []
        assert repository.get_rankings(db_session, Window.WEEKLY) == {"best": [], "worst": []}


class TestImages:

    def test_missing_and_saved(self, db_session):
        seed_games(db_session, "1", "2")
        assert repository.get_games_without_image(db_session, ["1", "2"]) == {"1", "2"}

        assert repository.save_game_image(db_session, "1", "data:image/webp;base64,AAAA", "/static/1.webp")
        assert repository.get_games_without_image(db_session, ["1", "2"]) == {"2"}
        assert repository.get_cached_image(db_session, "1") == "data:image/webp;base64,AAAA"
        assert repository.get_cached_image(db_session, "2") is None
        assert not repository.save_game_image(db_session, "missing", "data:,")

    def test_full_data(self, db_session):
        seed_games(db_session, "1")
        repository.save_window_metrics(db_session, [processed("1")], NOW)
        db_session.commit()

        data = repository.get_game_full_data(db_session, "1")
        assert data["windows"]["24h"]["confidence"] == "low"
        assert data["windows"]["7d"] is None
        assert repository.get_game_full_data(db_session, "nope") is None

"""
Read/write helpers over the RTP tables

All functions take an open Session; committing is left to the caller
(get_db_context commits on exit).
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set

from loguru import logger
from sqlalchemy import Float, cast, func
from sqlalchemy.orm import Session

from analysis.merge import UNKNOWN_PROVIDER, build_image_url
from analysis.sign import basis_points_to_percentage_points
from database.models import Game, GameRanking, GameRTPSnapshot, GameRTPWindow
from models.rtp_models import MergedGame, ProcessedGame, Rankings, Volatility, Window

WINDOW_ROW_TTL = timedelta(hours=1)
VARIATION_LOOKBACK = timedelta(hours=24)


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------

def upsert_games(db: Session, games: Iterable[MergedGame]) -> int:
    """
    Insert unseen games with default metadata, refresh identity fields of
    known ones. Returns the number of new rows.
    """
    games = list(games)
    if not games:
        return 0

    existing = {
        g.id: g for g in db.query(Game).filter(Game.id.in_([m.game_id for m in games])).all()
    }
    created = 0
    for merged in games:
        row = existing.get(merged.game_id)
        if row is None:
            db.add(Game(
                id=merged.game_id,
                title=merged.game_name,
                provider=merged.provider,
                image_path=merged.image_path,
                rtp_teorico=merged.rtp_teorico,
                volatility=merged.volatility,
                has_progressive=merged.has_progressive,
            ))
            created += 1
            continue

        row.title = merged.game_name
        if merged.provider and merged.provider != UNKNOWN_PROVIDER:
            row.provider = merged.provider
        if merged.image_path:
            row.image_path = merged.image_path

    db.flush()
    if created:
        logger.info(f"Registered {created} new games")
    return created


def load_game_metadata(db: Session, game_ids: Iterable[str]) -> Dict[str, Game]:
    """Game rows keyed by id for the given ids"""
    ids = list(game_ids)
    if not ids:
        return {}
    return {g.id: g for g in db.query(Game).filter(Game.id.in_(ids)).all()}


def update_game_metadata(
    db: Session,
    game_id: str,
    rtp_teorico: Optional[float] = None,
    volatility: Optional[Volatility] = None,
    has_progressive: Optional[bool] = None,
    has_feature_buy: Optional[bool] = None,
    rtp_feature_buy: Optional[float] = None,
) -> Optional[Game]:
    game = db.query(Game).filter(Game.id == game_id).first()
    if game is None:
        return None

    if rtp_teorico is not None:
        game.rtp_teorico = rtp_teorico
    if volatility is not None:
        game.volatility = Volatility(volatility)
    if has_progressive is not None:
        game.has_progressive = has_progressive
    if has_feature_buy is not None:
        game.has_feature_buy = has_feature_buy
    if rtp_feature_buy is not None:
        game.rtp_feature_buy = rtp_feature_buy
    return game


# ---------------------------------------------------------------------------
# Per-cycle writes
# ---------------------------------------------------------------------------

def save_snapshots(db: Session, processed: Iterable[ProcessedGame], snapshot_time: datetime) -> int:
    """One history row per game, all sharing the cycle timestamp"""
    count = 0
    for game in processed:
        db.add(GameRTPSnapshot(
            game_id=game.game_id,
            game_name=game.game_name,
            provider=game.provider,
            image_path=game.image_path,
            magnitude_bps_daily=game.magnitude_bps_daily,
            sign_daily=game.sign_daily,
            magnitude_bps_weekly=game.magnitude_bps_weekly,
            sign_weekly=game.sign_weekly,
            rtp_calculated_daily=game.rtp_calculated_daily,
            rtp_calculated_weekly=game.rtp_calculated_weekly,
            strategy=game.strategy,
            snapshot_time=snapshot_time,
        ))
        count += 1
    return count


def save_window_metrics(db: Session, processed: Iterable[ProcessedGame], computed_at: datetime) -> int:
    """
    Store Bayesian metrics per game and window, dropping rows for the same
    game/window older than an hour.
    """
    db.flush()
    cutoff = computed_at - WINDOW_ROW_TTL
    count = 0

    for game in processed:
        for window in Window:
            metrics = game.metrics_for(window)
            if metrics is None:
                continue

            db.query(GameRTPWindow).filter(
                GameRTPWindow.game_id == game.game_id,
                GameRTPWindow.window == window,
                GameRTPWindow.computed_at < cutoff,
            ).delete(synchronize_session=False)

            db.add(GameRTPWindow(
                game_id=game.game_id,
                window=window,
                rtp_delta_api_pp=basis_points_to_percentage_points(metrics.magnitude_bps, metrics.sign),
                n_spins=metrics.n_spins,
                rtp_observado=metrics.rtp_observado,
                rtp_post=metrics.rtp_post,
                delta_post_pp=metrics.delta_post_pp,
                score=metrics.score,
                confidence=metrics.confidence,
                trend=game.trend,
                computed_at=computed_at,
            ))
            count += 1
    return count


def replace_rankings(db: Session, rankings: Rankings) -> int:
    """Swap the stored leaderboard of one window for a fresh one"""
    db.flush()
    db.query(GameRanking).filter(GameRanking.window == rankings.window).delete(synchronize_session=False)

    entries = rankings.entries()
    for entry in entries:
        db.add(GameRanking(
            window=entry.window,
            game_id=entry.game_id,
            rank_type=entry.rank_type,
            position=entry.position,
            score=entry.score,
            delta_post_pp=entry.delta_post_pp,
            confidence=entry.confidence,
        ))
    return len(entries)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def snapshot_to_dict(row: GameRTPSnapshot, site_base_url: str = "") -> Dict[str, Any]:
    return {
        "game_id": row.game_id,
        "game_name": row.game_name,
        "provider": row.provider,
        "image_path": row.image_path,
        "image_url": build_image_url(site_base_url, row.image_path),
        "magnitude_bps_daily": row.magnitude_bps_daily,
        "sign_daily": row.sign_daily,
        "magnitude_bps_weekly": row.magnitude_bps_weekly,
        "sign_weekly": row.sign_weekly,
        "rtp_daily_pp": basis_points_to_percentage_points(row.magnitude_bps_daily, row.sign_daily),
        "rtp_weekly_pp": basis_points_to_percentage_points(row.magnitude_bps_weekly, row.sign_weekly),
        "rtp_calculated_daily": row.rtp_calculated_daily,
        "rtp_calculated_weekly": row.rtp_calculated_weekly,
        "strategy": row.strategy,
        "snapshot_time": row.snapshot_time.isoformat() if row.snapshot_time else None,
    }


def window_to_dict(row: GameRTPWindow) -> Dict[str, Any]:
    return {
        "game_id": row.game_id,
        "window": row.window.value,
        "rtp_delta_api_pp": row.rtp_delta_api_pp,
        "n_spins": row.n_spins,
        "rtp_observado": row.rtp_observado,
        "rtp_post": row.rtp_post,
        "delta_post_pp": row.delta_post_pp,
        "score": row.score,
        "confidence": row.confidence.value if row.confidence else None,
        "trend": row.trend.value if row.trend else None,
        "computed_at": row.computed_at.isoformat() if row.computed_at else None,
    }


def get_latest_snapshots(db: Session) -> List[GameRTPSnapshot]:
    """Rows of the most recent cycle, ordered by game name"""
    latest = db.query(func.max(GameRTPSnapshot.snapshot_time)).scalar()
    if latest is None:
        return []
    return db.query(GameRTPSnapshot).filter(
        GameRTPSnapshot.snapshot_time == latest
    ).order_by(GameRTPSnapshot.game_name.asc()).all()


def get_game_history(db: Session, game_id: str, limit: int = 100) -> List[GameRTPSnapshot]:
    return db.query(GameRTPSnapshot).filter(
        GameRTPSnapshot.game_id == game_id
    ).order_by(GameRTPSnapshot.snapshot_time.desc()).limit(limit).all()


def get_game_full_data(db: Session, game_id: str, site_base_url: str = "") -> Optional[Dict[str, Any]]:
    """Metadata, latest window metrics and current leaderboard positions for one game"""
    game = db.query(Game).filter(Game.id == game_id).first()
    if game is None:
        return None

    windows = {}
    for window in Window:
        row = db.query(GameRTPWindow).filter(
            GameRTPWindow.game_id == game_id,
            GameRTPWindow.window == window,
        ).order_by(GameRTPWindow.computed_at.desc()).first()
        windows[window.value] = window_to_dict(row) if row else None

    positions = db.query(GameRanking).filter(GameRanking.game_id == game_id).all()

    return {
        "game_id": game.id,
        "title": game.title,
        "provider": game.provider,
        "image_url": build_image_url(site_base_url, game.image_path),
        "image_base64": game.image_base64,
        "rtp_teorico": game.rtp_teorico,
        "volatility": game.volatility.value if game.volatility else None,
        "has_feature_buy": game.has_feature_buy,
        "has_progressive": game.has_progressive,
        "rtp_feature_buy": game.rtp_feature_buy,
        "windows": windows,
        "rankings": [
            {
                "window": r.window.value,
                "rank_type": r.rank_type.value,
                "position": r.position,
                "score": r.score,
            }
            for r in positions
        ],
    }


def get_rankings(db: Session, window: Window) -> Dict[str, List[Dict[str, Any]]]:
    """Stored leaderboards of one window"""
    rows = db.query(GameRanking, Game.title, Game.provider).join(
        Game, Game.id == GameRanking.game_id
    ).filter(
        GameRanking.window == window
    ).order_by(GameRanking.rank_type, GameRanking.position).all()

    result: Dict[str, List[Dict[str, Any]]] = {"best": [], "worst": []}
    for ranking, title, provider in rows:
        result[ranking.rank_type.value].append({
            "position": ranking.position,
            "game_id": ranking.game_id,
            "game_name": title,
            "provider": provider,
            "score": ranking.score,
            "delta_post_pp": ranking.delta_post_pp,
            "confidence": ranking.confidence.value if ranking.confidence else None,
        })
    return result


def get_top_variations(db: Session, limit: int = 10, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """
    Games whose daily deviation moved the most between consecutive
    snapshots during the last 24 hours. One entry per game, its largest move.

    The consecutive differences and the per-game maximum are computed in SQL;
    only `limit` rows are loaded.
    """
    now = now or datetime.utcnow()
    snap = GameRTPSnapshot

    # Signed daily deviation in percentage points
    current = cast(snap.magnitude_bps_daily * snap.sign_daily, Float) / 10000
    moves = db.query(
        snap.game_id.label("game_id"),
        snap.game_name.label("game_name"),
        snap.image_path.label("image_path"),
        snap.snapshot_time.label("snapshot_time"),
        current.label("current"),
        func.lag(current).over(
            partition_by=snap.game_id, order_by=snap.snapshot_time
        ).label("previous"),
    ).filter(
        snap.snapshot_time > now - VARIATION_LOOKBACK,
        snap.magnitude_bps_daily.isnot(None),
        snap.sign_daily.isnot(None),
    ).subquery()

    variation = func.abs(moves.c.current - moves.c.previous)
    ranked = db.query(
        moves.c.game_id,
        moves.c.game_name,
        moves.c.image_path,
        moves.c.current,
        moves.c.previous,
        variation.label("variation"),
        func.row_number().over(
            partition_by=moves.c.game_id,
            order_by=[variation.desc(), moves.c.snapshot_time],
        ).label("move_rank"),
    ).filter(moves.c.previous.isnot(None)).subquery()

    rows = db.query(ranked).filter(
        ranked.c.move_rank == 1
    ).order_by(ranked.c.variation.desc(), ranked.c.game_id).limit(limit).all()

    return [
        {
            "game_id": row.game_id,
            "game_name": row.game_name,
            "image_path": row.image_path,
            "rtp_daily_pp": float(row.current),
            "prev_rtp_daily_pp": float(row.previous),
            "variation": float(row.variation),
        }
        for row in rows
    ]


def get_stats(db: Session) -> Dict[str, Any]:
    total_games, total_records, oldest, newest, avg_daily, avg_weekly = db.query(
        func.count(func.distinct(GameRTPSnapshot.game_id)),
        func.count(GameRTPSnapshot.id),
        func.min(GameRTPSnapshot.snapshot_time),
        func.max(GameRTPSnapshot.snapshot_time),
        func.avg(GameRTPSnapshot.magnitude_bps_daily * GameRTPSnapshot.sign_daily),
        func.avg(GameRTPSnapshot.magnitude_bps_weekly * GameRTPSnapshot.sign_weekly),
    ).one()

    return {
        "total_games": total_games or 0,
        "total_records": total_records or 0,
        "oldest_record": oldest.isoformat() if oldest else None,
        "newest_record": newest.isoformat() if newest else None,
        "avg_rtp_daily_pp": float(avg_daily) / 10000 if avg_daily is not None else None,
        "avg_rtp_weekly_pp": float(avg_weekly) / 10000 if avg_weekly is not None else None,
    }


def cleanup_old_data(db: Session, days: int = 7, now: Optional[datetime] = None) -> int:
    """Delete history rows older than `days`; returns rows removed"""
    now = now or datetime.utcnow()
    cutoff = now - timedelta(days=days)

    removed = db.query(GameRTPSnapshot).filter(
        GameRTPSnapshot.snapshot_time < cutoff
    ).delete(synchronize_session=False)
    removed += db.query(GameRTPWindow).filter(
        GameRTPWindow.computed_at < cutoff
    ).delete(synchronize_session=False)

    logger.info(f"Cleanup removed {removed} rows older than {days} days")
    return removed


# ---------------------------------------------------------------------------
# Image cache
# ---------------------------------------------------------------------------

def get_games_without_image(db: Session, game_ids: Iterable[str]) -> Set[str]:
    ids = list(game_ids)
    if not ids:
        return set()
    rows = db.query(Game.id).filter(
        Game.id.in_(ids),
        (Game.image_base64.is_(None)) | (Game.image_base64 == ""),
    ).all()
    return {row[0] for row in rows}


def get_cached_image(db: Session, game_id: str) -> Optional[str]:
    row = db.query(Game.image_base64).filter(
        Game.id == game_id, Game.image_base64.isnot(None)
    ).first()
    return row[0] if row else None


def save_game_image(db: Session, game_id: str, data_uri: str, image_path: Optional[str] = None) -> bool:
    game = db.query(Game).filter(Game.id == game_id).first()
    if game is None:
        return False
    game.image_base64 = data_uri
    if image_path:
        game.image_path = image_path
    db.flush()
    return True

"""
LIVE RTP MONITOR - One Poll Cycle
=================================
fetch both windows -> extract (with drift report) -> merge -> attach game
metadata -> derive with the configured strategy -> rank -> persist -> publish

Frames are decoded into fresh structures every cycle. The last complete
result is only replaced once a cycle has produced one, so clients never see
a half-built state.

Usage:
    monitor = RTPMonitor(publisher=bus.publish_sync)
    result = asyncio.run(monitor.run_cycle())
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from analysis.display_calculator import DisplayCalculator
from analysis.merge import merge_windows
from analysis.rankings import generate_rankings
from analysis.strategy import MetricsStrategy, get_strategy
from config import get_settings
from database import get_db_context
from database import repository
from events.bus import ERROR, SCHEMA_DRIFT, UPDATE, make_event
from models.rtp_models import MergedGame, ProcessedGame, Rankings, Volatility, Window
from parsers.game_record_parser import FrameExtraction, scan_frame
from scrapers.image_cache import ImageCache
from scrapers.live_rtp_scraper import LiveRTPScraper


@dataclass
class CycleResult:
    """Everything one cycle produced"""
    started_at: datetime
    strategy: str
    completed_at: Optional[datetime] = None
    games: List[ProcessedGame] = field(default_factory=list)
    rankings: Dict[Window, Rankings] = field(default_factory=dict)
    reports: List[FrameExtraction] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    rtp_baseline: Optional[float] = None

    @property
    def complete(self) -> bool:
        """At least one window arrived and was processed"""
        return self.completed_at is not None

    def to_dict(self) -> Dict[str, Any]:
        games = [g.to_dict() for g in self.games]
        if self.strategy == DisplayCalculator.name:
            for game in games:
                game["rtp_class_daily"] = DisplayCalculator.classify(game["rtp_calculated_daily"], game["sign_daily"])
                game["rtp_class_weekly"] = DisplayCalculator.classify(game["rtp_calculated_weekly"], game["sign_weekly"])

        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "strategy": self.strategy,
            "rtp_baseline": self.rtp_baseline,
            "total_games": len(self.games),
            "games": games,
            "rankings": {w.value: r.to_dict() for w, r in self.rankings.items()},
            "reports": [r.to_dict() for r in self.reports],
            "errors": self.errors,
        }


class RTPMonitor:
    """Runs poll cycles and keeps the last complete result"""

    def __init__(
        self,
        scraper: Optional[LiveRTPScraper] = None,
        strategy: Optional[MetricsStrategy] = None,
        publisher: Optional[Callable[[Dict[str, Any]], Any]] = None,
        persist: bool = True,
        image_cache: Optional[ImageCache] = None,
    ):
        self.settings = get_settings()
        self.scraper = scraper or LiveRTPScraper()
        self.strategy = strategy or get_strategy(self.settings.DERIVATION_STRATEGY)
        self.publisher = publisher
        self.persist = persist
        if image_cache is None and persist and self.settings.IMAGE_CACHE_ENABLED:
            image_cache = ImageCache()
        self.image_cache = image_cache
        self._last_result: Optional[CycleResult] = None

    @property
    def last_result(self) -> Optional[CycleResult]:
        return self._last_result

    # ── Stages ───────────────────────────────────────────────────────

    def extract(self, frames: Dict[Window, Any], result: CycleResult) -> Dict[Window, Optional[list]]:
        """Decode each fetched frame; failed windows map to None"""
        records: Dict[Window, Optional[list]] = {}

        for window in Window:
            frame = frames.get(window)
            if frame is None or isinstance(frame, Exception):
                records[window] = None
                if frame is not None:
                    result.errors[window.value] = str(frame)
                continue

            report = scan_frame(frame, window)
            report.check_drift(self.settings.MAX_RECORDS_PER_FRAME, self.settings.MIN_PARSE_RATIO)
            result.reports.append(report)

            if report.drift_suspected:
                logger.warning(f"Possible schema drift in {window.value} frame: {report.drift_reason}")
                self.publish(make_event(SCHEMA_DRIFT, report.to_dict()))

            logger.info(
                f"{window.value}: {len(report.games)} games from {report.frame_size} bytes "
                f"({report.dropped} dropped, truncated={report.truncated})"
            )
            records[window] = report.games

        return records

    def attach_metadata(self, games: List[MergedGame]) -> None:
        """Fill theoretical RTP, volatility and jackpot flag from the games table"""
        if not self.persist or not games:
            return

        try:
            with get_db_context() as db:
                metadata = repository.load_game_metadata(db, [g.game_id for g in games])
                for game in games:
                    row = metadata.get(game.game_id)
                    if row is None:
                        continue
                    if row.rtp_teorico is not None:
                        game.rtp_teorico = row.rtp_teorico
                    if row.volatility is not None:
                        game.volatility = row.volatility
                    game.has_progressive = bool(row.has_progressive)
        except Exception as e:
            logger.error(f"Loading game metadata failed, using defaults: {e}")

    def rank(self, processed: List[ProcessedGame]) -> Dict[Window, Rankings]:
        return {
            window: generate_rankings(processed, window, self.settings.RANKING_LIMIT)
            for window in Window
        }

    def save(self, merged: List[MergedGame], result: CycleResult) -> None:
        try:
            with get_db_context() as db:
                repository.upsert_games(db, merged)
                repository.save_snapshots(db, result.games, result.completed_at)
                repository.save_window_metrics(db, result.games, result.completed_at)
                for rankings in result.rankings.values():
                    repository.replace_rankings(db, rankings)
            logger.info(f"Saved {len(result.games)} games")
        except Exception as e:
            logger.error(f"Persisting cycle failed: {e}")
            result.errors["persistence"] = str(e)

    def publish(self, event: Dict[str, Any]) -> None:
        if self.publisher is None:
            return
        try:
            self.publisher(event)
        except Exception as e:
            logger.error(f"Publishing {event.get('type')} event failed: {e}")

    # ── Cycle ────────────────────────────────────────────────────────

    async def run_cycle(self) -> CycleResult:
        """
        One full poll cycle

        Returns:
            CycleResult; `complete` is False when no window could be fetched
        """
        result = CycleResult(
            started_at=datetime.utcnow(),
            strategy=self.strategy.name,
            rtp_baseline=self.settings.DISPLAY_RTP_BASELINE,
        )

        async with self.scraper:
            frames = await self.scraper.fetch_all()

        records = self.extract(frames, result)

        if result.errors:
            self.publish(make_event(ERROR, {"message": "Live RTP fetch failed", "errors": dict(result.errors)}))

        if all(r is None for r in records.values()):
            logger.error("No window could be fetched, keeping previous result")
            return result

        merged = merge_windows(
            records[Window.DAILY],
            records[Window.WEEKLY],
            site_base_url=self.settings.SITE_BASE_URL,
            rtp_teorico=self.settings.DEFAULT_RTP_TEORICO,
            volatility=Volatility(self.settings.DEFAULT_VOLATILITY),
        )
        self.attach_metadata(merged)

        result.games = self.strategy.process_games(merged)
        result.rankings = self.rank(result.games)
        result.completed_at = datetime.utcnow()

        if self.persist:
            self.save(merged, result)

        self._last_result = result
        self.publish(make_event(UPDATE, result.to_dict()))
        logger.info(f"Cycle complete: {len(result.games)} games, strategy={result.strategy}")

        if self.image_cache is not None:
            try:
                await self.image_cache.cache_games(merged)
            except Exception as e:
                logger.error(f"Image caching failed: {e}")

        return result

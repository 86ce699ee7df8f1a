"""
Game artwork cache

Artwork is stored in the games table as a base64 data URI so clients never
hit the operator CDN directly. Only games without a cached copy are fetched.
"""

import asyncio
import base64
from typing import Iterable, List, Optional

import httpx
from loguru import logger

from database import get_db_context
from database import repository
from models.rtp_models import MergedGame
from scrapers.base_scraper import BaseScraper

FALLBACK_IMAGE_PATH = "/static/v1/casino/game/0/{game_id}/big.webp"
DEFAULT_CONTENT_TYPE = "image/webp"


def to_data_uri(content: bytes, content_type: Optional[str]) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{content_type or DEFAULT_CONTENT_TYPE};base64,{encoded}"


class ImageCache(BaseScraper):
    """Downloads missing artwork with bounded concurrency"""

    def __init__(self, concurrency: Optional[int] = None):
        super().__init__()
        self.base_url = self.settings.SITE_BASE_URL.rstrip("/")
        self.concurrency = concurrency or self.settings.IMAGE_CACHE_CONCURRENCY

    def fallback_url(self, game_id: str) -> str:
        return self.base_url + FALLBACK_IMAGE_PATH.format(game_id=game_id)

    async def download(self, url: str, game_id: Optional[str] = None) -> Optional[str]:
        """
        Data URI for an image, or None when it cannot be fetched

        A 404 is retried once against the generic artwork path of the game.
        """
        try:
            response = await self.fetch(url)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404 and game_id is not None:
                logger.info(f"404 on {url}, trying fallback artwork")
                return await self.download(self.fallback_url(game_id))
            logger.warning(f"Image download failed for {url}: HTTP {e.response.status_code}")
            return None
        except httpx.HTTPError as e:
            logger.warning(f"Image download failed for {url}: {e}")
            return None

        return to_data_uri(response.content, response.headers.get("content-type"))

    async def cache_game(self, game_id: str, image_path: str, semaphore: asyncio.Semaphore) -> bool:
        async with semaphore:
            data_uri = await self.download(self.base_url + image_path, game_id)

        if data_uri is None:
            return False

        with get_db_context() as db:
            return repository.save_game_image(db, game_id, data_uri, image_path)

    async def cache_games(self, games: Iterable[MergedGame]) -> int:
        """
        Cache artwork of games that have an image path and no stored copy

        Returns:
            Number of images stored
        """
        with_path: List[MergedGame] = [g for g in games if g.image_path]
        if not with_path:
            return 0

        with get_db_context() as db:
            missing = repository.get_games_without_image(db, [g.game_id for g in with_path])

        pending = [g for g in with_path if g.game_id in missing]
        if not pending:
            return 0

        logger.info(f"Image cache: {len(pending)} new images to fetch")
        semaphore = asyncio.Semaphore(self.concurrency)

        async with self:
            results = await asyncio.gather(
                *(self.cache_game(g.game_id, g.image_path, semaphore) for g in pending),
                return_exceptions=True
            )

        stored = 0
        for game, result in zip(pending, results):
            if isinstance(result, Exception):
                logger.error(f"Caching image for game {game.game_id} failed: {result}")
            elif result:
                stored += 1

        logger.info(f"Image cache: stored {stored}/{len(pending)}")
        return stored

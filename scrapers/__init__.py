"""Scrapers module initialization"""

from .base_scraper import BaseScraper, UpstreamFetchError
from .live_rtp_scraper import LiveRTPScraper, build_window_request
from .image_cache import ImageCache

__all__ = [
    "BaseScraper",
    "UpstreamFetchError",
    "LiveRTPScraper",
    "build_window_request",
    "ImageCache",
]

"""
Live RTP endpoint client

The operator widget answers a small protobuf request body
`{1: window selector, 2: limit}` with the binary frame decoded by
parsers.game_record_parser. Requests are anonymous; cookies handed out by
the edge are echoed back on the next request.
"""

import asyncio
from typing import Dict, Iterable, Optional, Union

import httpx
from loguru import logger

from models.rtp_models import Window
from parsers.varint import encode_varint_field
from scrapers.base_scraper import BaseScraper, UpstreamFetchError

PROTOBUF_MEDIA_TYPE = "application/x-protobuf"


def build_window_request(window: Window, limit: int = 2) -> bytes:
    """Request body for one window, b"\\x08\\x01\\x10\\x02" for the daily window"""
    return encode_varint_field(1, Window(window).selector) + encode_varint_field(2, limit)


class LiveRTPScraper(BaseScraper):
    """Fetches raw daily and weekly frames"""

    def __init__(self):
        super().__init__()
        self.url = self.settings.LIVE_RTP_URL
        self.cookies: Optional[str] = None

    def default_headers(self):
        base = self.settings.SITE_BASE_URL.rstrip("/")
        return {
            "accept": PROTOBUF_MEDIA_TYPE,
            "accept-language": self.settings.ACCEPT_LANGUAGE,
            "content-type": PROTOBUF_MEDIA_TYPE,
            "origin": base,
            "referer": f"{base}/{self.settings.ACCEPT_LANGUAGE}/casinos/casino/lobby",
            "sec-fetch-dest": "empty",
            "sec-fetch-mode": "cors",
            "sec-fetch-site": "same-origin",
            "user-agent": self.settings.USER_AGENT,
            "x-language-iso": self.settings.ACCEPT_LANGUAGE,
        }

    def request_headers(self) -> Dict[str, str]:
        return {"cookie": self.cookies} if self.cookies else {}

    def remember_cookies(self, response: httpx.Response) -> None:
        set_cookie = response.headers.get("set-cookie")
        if set_cookie:
            self.cookies = set_cookie

    async def fetch_window(self, window: Window) -> bytes:
        """
        Raw frame for one window

        Raises:
            UpstreamFetchError: non-2xx status, timeout or network error
        """
        window = Window(window)
        body = build_window_request(window, self.settings.RANKING_REQUEST_LIMIT)

        try:
            response = await self.post(self.url, content=body, headers=self.request_headers())
        except httpx.HTTPStatusError as e:
            raise UpstreamFetchError(
                f"{window.value} frame: HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"{window.value} frame: {e.__class__.__name__}: {e}") from e

        self.remember_cookies(response)
        frame = response.content

        if self.settings.DEBUG_PROTOBUF:
            logger.debug(f"Frame {window.value}: {len(frame)} bytes, head {frame[:100].hex()}")

        return frame

    async def fetch_all(
        self, windows: Iterable[Window] = tuple(Window)
    ) -> Dict[Window, Union[bytes, Exception]]:
        """
        Fetch every window concurrently

        Returns:
            {window: frame bytes or the exception that made it absent}
        """
        windows = [Window(w) for w in windows]
        results = await asyncio.gather(
            *(self.fetch_window(window) for window in windows),
            return_exceptions=True
        )

        frames = dict(zip(windows, results))
        for window, result in frames.items():
            if isinstance(result, Exception):
                logger.error(f"Live RTP fetch failed for {window.value}: {result}")
        return frames

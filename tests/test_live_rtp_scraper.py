"""
Test Suite for the live RTP endpoint client and image cache downloads
"""

import base64
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from models.rtp_models import Window
from scrapers.base_scraper import UpstreamFetchError, is_retryable
from scrapers.image_cache import ImageCache, to_data_uri
from scrapers.live_rtp_scraper import LiveRTPScraper, build_window_request

URL = "https://cgg.bet.br/casinogo/widgets/v2/live-rtp"


def response(status_code, content=b"", headers=None, url=URL):
    return httpx.Response(status_code, content=content, headers=headers, request=httpx.Request("POST", url))


def status_error(status_code, url=URL):
    resp = response(status_code, url=url)
    return httpx.HTTPStatusError(f"HTTP {status_code}", request=resp.request, response=resp)


def test_request_bodies():
    assert build_window_request(Window.DAILY) == bytes([0x08, 0x01, 0x10, 0x02])
    assert build_window_request(Window.WEEKLY) == bytes([0x08, 0x02, 0x10, 0x02])


def test_retry_policy():
    assert is_retryable(status_error(503))
    assert not is_retryable(status_error(404))
    assert is_retryable(httpx.ConnectTimeout("slow"))
    assert not is_retryable(ValueError("boom"))


def test_protobuf_headers():
    headers = LiveRTPScraper().default_headers()
    assert headers["accept"] == "application/x-protobuf"
    assert headers["content-type"] == "application/x-protobuf"
    assert headers["origin"] == "https://cgg.bet.br"


@pytest.mark.asyncio
async def test_fetch_window_returns_bytes_and_keeps_cookie():
    scraper = LiveRTPScraper()
    post = AsyncMock(return_value=response(200, b"\x0a\x02\x08\x01", {"set-cookie": "cf=abc"}))

    with patch.object(scraper, "post", post):
        frame = await scraper.fetch_window(Window.DAILY)
        assert frame == b"\x0a\x02\x08\x01"
        assert scraper.cookies == "cf=abc"

        await scraper.fetch_window(Window.WEEKLY)

    _, kwargs = post.call_args
    assert kwargs["content"] == bytes([0x08, 0x02, 0x10, 0x02])
    assert kwargs["headers"] == {"cookie": "cf=abc"}


@pytest.mark.asyncio
async def test_fetch_window_wraps_http_errors():
    scraper = LiveRTPScraper()

    with patch.object(scraper, "post", AsyncMock(side_effect=status_error(503))):
        with pytest.raises(UpstreamFetchError) as exc_info:
            await scraper.fetch_window(Window.DAILY)
    assert exc_info.value.status_code == 503

    with patch.object(scraper, "post", AsyncMock(side_effect=httpx.ReadTimeout("slow"))):
        with pytest.raises(UpstreamFetchError):
            await scraper.fetch_window(Window.DAILY)


@pytest.mark.asyncio
async def test_fetch_all_isolates_failures():
    scraper = LiveRTPScraper()

    async def fake_post(url, content=None, headers=None):
        if content[1] == 0x02:
            raise status_error(500)
        return response(200, b"daily")

    with patch.object(scraper, "post", AsyncMock(side_effect=fake_post)):
        frames = await scraper.fetch_all()

    assert frames[Window.DAILY] == b"daily"
    assert isinstance(frames[Window.WEEKLY], UpstreamFetchError)


def test_data_uri():
    uri = to_data_uri(b"\x00\x01", "image/png")
    assert uri == "data:image/png;base64," + base64.b64encode(b"\x00\x01").decode()
    assert to_data_uri(b"", None).startswith("data:image/webp;base64,")


@pytest.mark.asyncio
async def test_image_download_falls_back_on_404():
    cache = ImageCache()
    fallback = cache.fallback_url("42")
    calls = []

    async def fake_fetch(url, **kwargs):
        calls.append(url)
        if url != fallback:
            raise status_error(404, url)
        return response(200, b"img", {"content-type": "image/webp"}, url)

    with patch.object(cache, "fetch", AsyncMock(side_effect=fake_fetch)):
        uri = await cache.download("https://cgg.bet.br/static/missing.webp", "42")

    assert calls == ["https://cgg.bet.br/static/missing.webp", fallback]
    assert uri.startswith("data:image/webp;base64,")


@pytest.mark.asyncio
async def test_image_download_gives_up_after_fallback():
    cache = ImageCache()

    with patch.object(cache, "fetch", AsyncMock(side_effect=status_error(404))):
        assert await cache.download("https://cgg.bet.br/static/missing.webp", "42") is None

"""Base scraper class with common functionality"""

from typing import Optional
import httpx
from loguru import logger
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential
from config import get_settings


class UpstreamFetchError(Exception):
    """Upstream request failed after retries (status, timeout or network)"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def is_retryable(exc: BaseException) -> bool:
    """Transport errors and 5xx are retried; 4xx answers are final"""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


class BaseScraper:
    """Shared httpx client lifecycle and retrying GET/POST"""

    def __init__(self):
        self.settings = get_settings()
        self.client: Optional[httpx.AsyncClient] = None

    def default_headers(self):
        return {"User-Agent": self.settings.USER_AGENT}

    async def __aenter__(self):
        """Async context manager entry"""
        self.client = httpx.AsyncClient(
            timeout=self.settings.REQUEST_TIMEOUT,
            headers=self.default_headers(),
            follow_redirects=True
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        if self.client:
            await self.client.aclose()
            self.client = None

    @retry(
        retry=retry_if_exception(is_retryable),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True
    )
    async def fetch(self, url: str, **kwargs) -> httpx.Response:
        """
        GET with retry logic

        Args:
            url: URL to fetch
            **kwargs: Additional httpx request parameters

        Returns:
            httpx.Response object
        """
        if not self.client:
            raise RuntimeError("Scraper must be used as async context manager")

        try:
            response = await self.client.get(url, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            logger.warning(f"HTTP {e.response.status_code} fetching {url}")
            raise
        except httpx.HTTPError as e:
            logger.error(f"Error fetching {url}: {e}")
            raise

    @retry(
        retry=retry_if_exception(is_retryable),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True
    )
    async def post(self, url: str, **kwargs) -> httpx.Response:
        """
        POST with retry logic

        Args:
            url: URL to post to
            **kwargs: Additional httpx request parameters

        Returns:
            httpx.Response object
        """
        if not self.client:
            raise RuntimeError("Scraper must be used as async context manager")

        try:
            response = await self.client.post(url, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            logger.warning(f"HTTP {e.response.status_code} posting to {url}")
            raise
        except httpx.HTTPError as e:
            logger.error(f"Error posting to {url}: {e}")
            raise

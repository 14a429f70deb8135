"""
Base classes for market data sources.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from ..models import Market, Trade

logger = logging.getLogger(__name__)


class RateLimiter:
    """Simple rate limiter for API requests."""

    def __init__(self, requests_per_second: int):
        self.requests_per_second = requests_per_second
        self.min_interval = 1.0 / requests_per_second
        self.last_request_time = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until we can make another request."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            time_since_last = loop.time() - self.last_request_time
            if time_since_last < self.min_interval:
                await asyncio.sleep(self.min_interval - time_since_last)
            self.last_request_time = loop.time()


class MarketSource(ABC):
    """Read-only source of market snapshots and recent trades.

    Implementations fail soft: errors and empty responses both come back
    as an empty list.
    """

    @abstractmethod
    async def get_active_markets(self, limit: int = 20) -> list[Market]:
        """Fetch currently active markets."""
        pass

    @abstractmethod
    async def get_trades(self, asset_id: str, limit: int = 10) -> list[Trade]:
        """Fetch recent trades for one tradable asset."""
        pass


class BaseClient(MarketSource):
    """Base class for HTTP-backed market sources."""

    def __init__(
        self,
        base_url: str,
        requests_per_second: int = 5,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.rate_limiter = RateLimiter(requests_per_second)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "BaseClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _make_client(self, base_url: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=base_url,
            timeout=self.timeout,
            headers={"User-Agent": "InsiderWatch/0.1.0", "Accept": "application/json"},
            transport=self._transport,
        )

    async def connect(self) -> None:
        """Initialize the HTTP client."""
        self._client = self._make_client(self.base_url)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        client: Optional[httpx.AsyncClient],
        method: str,
        path: str,
        params: Optional[dict] = None,
    ):
        """Make a rate-limited HTTP request and decode the JSON body."""
        if not client:
            raise RuntimeError("Client not connected. Use 'async with' or call connect()")

        await self.rate_limiter.acquire()

        try:
            response = await client.request(method=method, url=path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error {e.response.status_code}: {e.response.text[:200]}")
            raise
        except Exception as e:
            logger.error(f"Request to {path} failed: {e}")
            raise

    async def get(self, path: str, params: Optional[dict] = None):
        """Make a GET request against the base URL."""
        return await self._request(self._client, "GET", path, params=params)

"""
Bybit Public Market Data Client
Last-trade price polling for the pair watchers and the position monitor
"""

import asyncio
import logging
import time
from typing import Dict, Optional

import aiohttp

from momentum_scalper import config
from momentum_scalper.interfaces import PriceFeed

logger = logging.getLogger(__name__)


class PriceFeedError(Exception):
    """Raised when a ticker cannot be fetched or parsed"""


class BybitClient(PriceFeed):
    """Async Bybit v5 ticker client"""

    def __init__(self, params: Optional[Dict] = None):
        self.params = {**config.FEED_CONFIG, **(params or {})}
        self.base_url = self.params['base_url'].rstrip('/')
        self.category = self.params['category']
        self.session = None
        self.last_request_time = 0
        self.requests_made = 0
        self.errors = 0

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    async def connect(self):
        if not self.session:
            timeout = aiohttp.ClientTimeout(total=self.params['request_timeout_seconds'])
            self.session = aiohttp.ClientSession(timeout=timeout)
            logger.info(f"Bybit client connected ({self.base_url}, category={self.category})")

    async def disconnect(self):
        if self.session:
            await self.session.close()
            self.session = None
            logger.info("Bybit client disconnected")

    async def close(self):
        await self.disconnect()

    async def _make_request(self, endpoint: str, params: Dict) -> Dict:
        """Rate-limited GET with retry on 429 / 5xx. Raises PriceFeedError when exhausted."""
        if not self.session:
            await self.connect()

        min_delay = self.params['min_request_delay']
        time_since_last = time.time() - self.last_request_time
        if time_since_last < min_delay:
            await asyncio.sleep(min_delay - time_since_last)

        retries = self.params['retries']
        url = f"{self.base_url}{endpoint}"
        last_error = 'no attempts made'

        for attempt in range(retries + 1):
            try:
                self.last_request_time = time.time()
                self.requests_made += 1

                async with self.session.get(url, params=params) as response:
                    if response.status == 200:
                        return await response.json()
                    if response.status == 429:
                        wait_time = min(2 ** attempt, 10)
                        logger.warning(f"Rate limited, waiting {wait_time} seconds... (attempt {attempt + 1})")
                        last_error = 'rate limited'
                        await asyncio.sleep(wait_time)
                        continue
                    if response.status in (500, 502, 503, 504) and attempt < retries:
                        wait_time = min(2 ** attempt, 5)
                        logger.warning(f"Server error {response.status}, retrying in {wait_time}s... (attempt {attempt + 1})")
                        last_error = f"HTTP {response.status}"
                        await asyncio.sleep(wait_time)
                        continue
                    error_text = await response.text()
                    last_error = f"HTTP {response.status}: {error_text[:200]}"
                    break

            except asyncio.TimeoutError:
                last_error = 'request timeout'
                if attempt < retries:
                    logger.debug(f"Request timeout, retrying... (attempt {attempt + 1})")
                    continue
            except aiohttp.ClientError as e:
                last_error = str(e)
                if attempt < retries:
                    logger.warning(f"Request failed, retrying... (attempt {attempt + 1}): {e}")
                    await asyncio.sleep(1)
                    continue

        self.errors += 1
        raise PriceFeedError(f"{endpoint} failed: {last_error}")

    async def get_ticker(self, symbol: str) -> Dict:
        data = await self._make_request('/v5/market/tickers', {'category': self.category, 'symbol': symbol})

        if data.get('retCode', 0) != 0:
            raise PriceFeedError(f"Bybit error for {symbol}: {data.get('retMsg', 'unknown')}")

        tickers = (data.get('result') or {}).get('list') or []
        if not tickers:
            raise PriceFeedError(f"No ticker returned for {symbol}")
        return tickers[0]

    async def get_price(self, symbol: str) -> float:
        ticker = await self.get_ticker(symbol)
        try:
            return float(ticker['lastPrice'])
        except (KeyError, TypeError, ValueError) as e:
            raise PriceFeedError(f"Malformed ticker for {symbol}: {e}")

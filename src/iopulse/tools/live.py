"""
Live market data from the CoinGecko public API.

Implements the same tools as SimulatedToolExecutor. HTTP failures become
DataFetchError internally and ToolExecutionError at the executor boundary,
so the tool loop can hand them back to the model.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from iopulse.config import Settings
from iopulse.exceptions import DataFetchError, ToolExecutionError
from iopulse.logging import get_logger
from iopulse.tools.base import DispatchingExecutor, require_symbol, require_symbols

logger = get_logger(__name__)

# CoinGecko free tier allows roughly 30 calls per minute
RATE_LIMIT_REQUESTS = 25
RATE_LIMIT_PERIOD = 60.0  # seconds

SYMBOL_TO_ID: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "BNB": "binancecoin",
    "SOL": "solana",
    "ADA": "cardano",
    "DOT": "polkadot",
    "MATIC": "matic-network",
    "AVAX": "avalanche-2",
    "UNI": "uniswap",
    "LINK": "chainlink",
    "ATOM": "cosmos",
    "ICP": "internet-computer",
    "SHIB": "shiba-inu",
    "DOGE": "dogecoin",
    "PEPE": "pepe",
    "FLOKI": "floki",
    "USDC": "usd-coin",
    "USDT": "tether",
    "DAI": "dai",
}

_TAG_RE = re.compile(r"<[^>]*>")


class RateLimiter:
    """Sliding-window rate limiter."""

    def __init__(self, max_requests: int, period: float) -> None:
        self.max_requests = max_requests
        self.period = period
        self._timestamps: list[float] = []
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            loop = asyncio.get_running_loop()
            now = loop.time()
            self._timestamps = [ts for ts in self._timestamps if now - ts < self.period]

            if len(self._timestamps) >= self.max_requests:
                sleep_time = self.period - (now - self._timestamps[0])
                if sleep_time > 0:
                    await asyncio.sleep(sleep_time)
                self._timestamps = self._timestamps[1:]

            self._timestamps.append(loop.time())


class LiveToolExecutor(DispatchingExecutor):
    """Tool executor backed by CoinGecko."""

    executor_name = "live"

    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            base_url: CoinGecko API base URL.
            timeout_s: Per-request timeout.
            transport: Optional httpx transport (for tests).
        """
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._rate_limiter = RateLimiter(RATE_LIMIT_REQUESTS, RATE_LIMIT_PERIOD)
        self._id_cache: dict[str, str] = dict(SYMBOL_TO_ID)
        self._symbol_cache: dict[str, str] = {v: k for k, v in SYMBOL_TO_ID.items()}

    @classmethod
    def from_settings(cls, settings: Settings) -> LiveToolExecutor:
        return cls(
            base_url=settings.MARKET_DATA_BASE_URL,
            timeout_s=settings.MARKET_DATA_TIMEOUT_S,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={"Accept": "application/json"},
                timeout=self._timeout_s,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        try:
            return await super().execute(tool_name, arguments)
        except DataFetchError as e:
            raise ToolExecutionError(str(e), tool_name=tool_name, context=e.context) from e

    @retry(
        retry=retry_if_exception_type(httpx.TimeoutException),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    async def _get_with_retry(self, path: str, params: dict[str, Any] | None) -> httpx.Response:
        await self._rate_limiter.acquire()
        return await self._get_client().get(path, params=params)

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a CoinGecko endpoint and decode JSON.

        Raises:
            DataFetchError: On transport failure, non-2xx status or a non-JSON body.
        """
        try:
            response = await self._get_with_retry(path, params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429:
                logger.warning("Rate limited by CoinGecko", path=path)
            raise DataFetchError(
                f"Market data request failed with status {status}",
                context={"source": "coingecko", "url": path, "status_code": status},
            ) from e
        except httpx.HTTPError as e:
            raise DataFetchError(
                f"Market data request failed: {e}",
                context={"source": "coingecko", "url": path},
            ) from e
        try:
            return response.json()
        except ValueError as e:
            raise DataFetchError(
                "Market data response was not valid JSON",
                context={"source": "coingecko", "url": path},
            ) from e

    async def _coin_id(self, symbol: str) -> str:
        """Resolve a ticker symbol to a CoinGecko coin id."""
        if symbol in self._id_cache:
            return self._id_cache[symbol]

        coins = await self._get("/coins/list")
        lowered = symbol.lower()
        for coin in coins:
            if str(coin.get("symbol", "")).lower() == lowered:
                self._id_cache[symbol] = coin["id"]
                self._symbol_cache.setdefault(coin["id"], symbol)
                return coin["id"]
        raise DataFetchError(
            f"Unable to find coin ID for symbol: {symbol}",
            context={"source": "coingecko", "symbol": symbol},
        )

    async def tool_listing_coins(self, arguments: dict[str, Any]) -> dict[str, Any]:
        data = await self._get(
            "/coins/markets",
            {
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": 100,
                "page": 1,
                "sparkline": "false",
                "price_change_percentage": "24h,7d",
            },
        )
        coins = [
            {
                "symbol": str(coin["symbol"]).upper(),
                "name": coin.get("name"),
                "market_cap_rank": coin.get("market_cap_rank"),
                "current_price": coin.get("current_price"),
                "market_cap": coin.get("market_cap"),
                "price_change_24h": coin.get("price_change_percentage_24h") or 0,
                "price_change_7d": coin.get("price_change_percentage_7d_in_currency") or 0,
                "volume_24h": coin.get("total_volume") or 0,
            }
            for coin in data
        ]
        return {"total_coins": len(coins), "coins": coins}

    async def tool_get_coin_quotes(self, arguments: dict[str, Any]) -> dict[str, Any]:
        symbols = require_symbols(arguments, "get_coin_quotes")
        ids: list[str] = []
        for symbol in symbols:
            try:
                ids.append(await self._coin_id(symbol))
            except DataFetchError:
                logger.warning("Skipping unknown symbol", symbol=symbol)
        if not ids:
            raise DataFetchError(
                "No valid coin IDs found for the provided symbols",
                context={"source": "coingecko", "symbols": symbols},
            )

        data = await self._get(
            "/simple/price",
            {
                "ids": ",".join(ids),
                "vs_currencies": "usd",
                "include_24hr_change": "true",
                "include_24hr_vol": "true",
                "include_market_cap": "true",
            },
        )
        quotes: dict[str, Any] = {}
        for coin_id, values in data.items():
            symbol = self._symbol_cache.get(coin_id, coin_id.upper())
            quotes[symbol] = {
                "symbol": symbol,
                "price": values.get("usd"),
                "change_24h": values.get("usd_24h_change") or 0,
                "volume_24h": values.get("usd_24h_vol") or 0,
                "market_cap": values.get("usd_market_cap") or 0,
            }
        return quotes

    async def tool_get_coin_quotes_historical(self, arguments: dict[str, Any]) -> dict[str, Any]:
        symbol = require_symbol(arguments, "get_coin_quotes_historical")
        try:
            days = int(arguments.get("days", 30))
        except (TypeError, ValueError):
            raise ToolExecutionError(
                f"Invalid days argument: {arguments.get('days')!r}",
                tool_name="get_coin_quotes_historical",
            ) from None

        coin_id = await self._coin_id(symbol)
        data = await self._get(
            f"/coins/{coin_id}/market_chart",
            {"vs_currency": "usd", "days": days, "interval": "daily"},
        )
        prices = [point[1] for point in data.get("prices") or []]
        if not prices:
            raise DataFetchError(
                f"No price data available for {symbol}",
                context={"source": "coingecko", "symbol": symbol},
            )
        start, current = prices[0], prices[-1]
        return {
            "symbol": symbol,
            "timeframe": f"{days}d",
            "current_price": current,
            "start_price": start,
            "price_change_percentage": round((current - start) / start * 100, 2) if start else 0.0,
            "high": max(prices),
            "low": min(prices),
            "data_points": len(prices),
        }

    async def tool_get_coin_info(self, arguments: dict[str, Any]) -> dict[str, Any]:
        symbol = require_symbol(arguments, "get_coin_info")
        coin_id = await self._coin_id(symbol)
        coin = await self._get(
            f"/coins/{coin_id}",
            {
                "localization": "false",
                "tickers": "false",
                "market_data": "true",
                "community_data": "false",
                "developer_data": "false",
            },
        )
        market = coin.get("market_data") or {}
        links = coin.get("links") or {}
        description = _TAG_RE.sub("", (coin.get("description") or {}).get("en") or "")
        return {
            "symbol": str(coin.get("symbol", symbol)).upper(),
            "name": coin.get("name"),
            "categories": coin.get("categories") or [],
            "description": description[:500] or "No description available",
            "website": (links.get("homepage") or [None])[0],
            "github": ((links.get("repos_url") or {}).get("github") or [None])[0],
            "current_price": (market.get("current_price") or {}).get("usd", 0),
            "market_cap": (market.get("market_cap") or {}).get("usd", 0),
            "market_cap_rank": coin.get("market_cap_rank"),
            "price_change_24h": market.get("price_change_percentage_24h") or 0,
            "price_change_30d": market.get("price_change_percentage_30d") or 0,
        }

    async def tool_search_the_web(self, arguments: dict[str, Any]) -> dict[str, Any]:
        query = str(arguments.get("query") or "").strip()
        return {
            "query": query,
            "timeframe": arguments.get("timeframe") or "past_year",
            "results": [],
            "total_results": 0,
            "note": "Web search is not configured; rely on project metadata and known history.",
            "simulated": True,
        }

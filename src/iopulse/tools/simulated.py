"""
Deterministic simulated market data.

Every number is derived from a hash of the coin symbol, never from the
clock or global randomness: the same symbol always yields the same price
path, so runs are reproducible and tests need no network.

Coins are grouped into volatility tiers (large cap, established alt,
small cap / meme). Stablecoins get a flat path.
"""

from __future__ import annotations

import hashlib
import math
import random
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from iopulse.exceptions import ToolExecutionError
from iopulse.tools.base import DispatchingExecutor, require_symbol, require_symbols

HISTORY_DAYS = 365

LARGE_CAP = {"BTC", "ETH", "BNB", "USDC", "USDT"}
ESTABLISHED_ALTS = {"SOL", "ADA", "DOT", "MATIC", "AVAX", "UNI", "LINK"}
STABLECOINS = {"USDC", "USDT", "DAI"}


@dataclass(frozen=True)
class CoinProfile:
    symbol: str
    name: str
    category: str
    price: float
    market_cap: float
    launch_year: int
    description: str


# Static universe served by listing_coins and get_coin_info
COIN_UNIVERSE: dict[str, CoinProfile] = {
    c.symbol: c
    for c in [
        CoinProfile("BTC", "Bitcoin", "layer-1", 95000.0, 1.8e12, 2009,
                    "The first decentralized digital currency, secured by proof of work."),
        CoinProfile("ETH", "Ethereum", "smart-contract platform", 3200.0, 3.8e11, 2015,
                    "Programmable blockchain hosting most DeFi and NFT activity."),
        CoinProfile("USDT", "Tether", "stablecoin", 1.0, 1.2e11, 2014,
                    "USD-pegged stablecoin backed by reserves held by Tether Ltd."),
        CoinProfile("BNB", "BNB", "exchange token", 600.0, 8.5e10, 2017,
                    "Native token of BNB Chain and the Binance ecosystem."),
        CoinProfile("SOL", "Solana", "smart-contract platform", 180.0, 8.0e10, 2020,
                    "High-throughput layer-1 using proof of history."),
        CoinProfile("XRP", "XRP", "payments", 0.6, 3.3e10, 2012,
                    "Settlement asset of the XRP Ledger for cross-border payments."),
        CoinProfile("USDC", "USD Coin", "stablecoin", 1.0, 3.4e10, 2018,
                    "Regulated USD-pegged stablecoin issued by Circle."),
        CoinProfile("ADA", "Cardano", "smart-contract platform", 0.85, 3.0e10, 2017,
                    "Proof-of-stake blockchain built on peer-reviewed research."),
        CoinProfile("AVAX", "Avalanche", "smart-contract platform", 35.0, 1.4e10, 2020,
                    "Layer-1 platform with subnet architecture and fast finality."),
        CoinProfile("LINK", "Chainlink", "oracle", 22.0, 1.3e10, 2017,
                    "Decentralized oracle network feeding off-chain data to smart contracts."),
        CoinProfile("DOGE", "Dogecoin", "meme", 0.08, 1.15e10, 2013,
                    "Community-driven meme currency based on the Shiba Inu dog meme."),
        CoinProfile("DOT", "Polkadot", "interoperability", 7.5, 9.0e9, 2020,
                    "Heterogeneous multichain network connecting parachains."),
        CoinProfile("MATIC", "Polygon", "scaling", 0.95, 8.5e9, 2019,
                    "Ethereum scaling framework of sidechains and zk rollups."),
        CoinProfile("LTC", "Litecoin", "payments", 85.0, 6.3e9, 2011,
                    "Early Bitcoin fork with faster block times."),
        CoinProfile("UNI", "Uniswap", "defi", 12.0, 7.2e9, 2020,
                    "Governance token of the largest decentralized exchange protocol."),
        CoinProfile("DAI", "Dai", "stablecoin", 1.0, 5.3e9, 2017,
                    "Decentralized USD-pegged stablecoin issued by MakerDAO."),
        CoinProfile("ICP", "Internet Computer", "smart-contract platform", 12.0, 5.5e9, 2021,
                    "Blockchain aiming to host full web applications on-chain."),
        CoinProfile("ATOM", "Cosmos", "interoperability", 9.0, 3.5e9, 2019,
                    "Hub of an ecosystem of interoperable application chains."),
        CoinProfile("SHIB", "Shiba Inu", "meme", 0.000025, 1.4e10, 2020,
                    "Meme token with an ecosystem of DeFi experiments."),
        CoinProfile("FET", "Fetch.ai", "ai", 1.5, 3.8e9, 2019,
                    "Autonomous economic agents and AI infrastructure."),
        CoinProfile("RENDER", "Render", "ai", 7.0, 2.7e9, 2020,
                    "Decentralized GPU rendering network."),
        CoinProfile("HBAR", "Hedera", "enterprise", 0.1, 3.6e9, 2019,
                    "Hashgraph-based public ledger governed by an enterprise council."),
        CoinProfile("XLM", "Stellar", "payments", 0.12, 3.5e9, 2014,
                    "Open network for cross-border payments and asset issuance."),
        CoinProfile("ALGO", "Algorand", "smart-contract platform", 0.18, 1.5e9, 2019,
                    "Pure proof-of-stake blockchain with instant finality."),
        CoinProfile("THETA", "Theta Network", "media", 1.6, 1.6e9, 2018,
                    "Decentralized video delivery network."),
        CoinProfile("EGLD", "MultiversX", "smart-contract platform", 35.0, 9.5e8, 2020,
                    "Sharded blockchain formerly known as Elrond."),
        CoinProfile("FLOW", "Flow", "smart-contract platform", 0.7, 1.1e9, 2020,
                    "Developer-friendly blockchain built for consumer apps and NFTs."),
        CoinProfile("PEPE", "Pepe", "meme", 0.00001, 4.2e9, 2023,
                    "Meme token with no stated utility."),
        CoinProfile("FLOKI", "Floki", "meme", 0.00015, 1.4e9, 2021,
                    "Meme token with a community-run ecosystem."),
    ]
}

# Notable incidents returned by search_the_web
RISK_NOTES: dict[str, list[str]] = {
    "USDT": ["Regulators have repeatedly questioned the composition of Tether's reserves."],
    "BNB": ["Binance settled with US authorities over compliance failures in 2023."],
    "SOL": ["Solana suffered several network outages in 2021-2022."],
    "XRP": ["Ripple was engaged in a multi-year lawsuit with the SEC over XRP sales."],
    "MATIC": ["Polygon is migrating MATIC to the POL token."],
    "SHIB": ["Meme token with highly concentrated holder distribution."],
    "PEPE": ["Meme token with no utility; price driven by speculation."],
    "FLOKI": ["Meme token; marketing-driven price action."],
    "DOGE": ["Price strongly influenced by social-media endorsements."],
    "FTT": ["FTX exchange collapsed in 2022 amid fraud charges."],
    "LUNA": ["Terra ecosystem collapsed in 2022 after the UST depeg."],
}


def _rng(*parts: Any) -> random.Random:
    """Random generator seeded from a stable hash of `parts`."""
    digest = hashlib.sha256(":".join(str(p) for p in parts).encode()).hexdigest()
    return random.Random(int(digest[:16], 16))


def volatility_tier(symbol: str) -> str:
    if symbol in STABLECOINS:
        return "stable"
    if symbol in LARGE_CAP:
        return "large"
    if symbol in ESTABLISHED_ALTS:
        return "established"
    return "small"


# (daily volatility, drift range per day)
_TIER_DYNAMICS: dict[str, tuple[float, tuple[float, float]]] = {
    "stable": (0.0005, (0.0, 0.0)),
    "large": (0.025, (-0.0015, 0.003)),
    "established": (0.045, (-0.003, 0.004)),
    "small": (0.08, (-0.005, 0.006)),
}


@lru_cache(maxsize=512)
def price_path(symbol: str) -> tuple[float, ...]:
    """Daily closing prices, oldest first, ending today (HISTORY_DAYS + 1 points)."""
    coin = COIN_UNIVERSE.get(symbol)
    rng = _rng("path", symbol)
    current = coin.price if coin else round(rng.uniform(0.05, 50.0), 4)
    volatility, (drift_lo, drift_hi) = _TIER_DYNAMICS[volatility_tier(symbol)]
    drift = rng.uniform(drift_lo, drift_hi)

    # Walk backwards from today's price so the latest close equals `current`
    prices = [current]
    for _ in range(HISTORY_DAYS):
        daily_return = drift + rng.gauss(0.0, volatility)
        prices.append(prices[-1] / math.exp(daily_return))
    prices.reverse()
    return tuple(prices)


def percent_change(symbol: str, days: int) -> float:
    prices = price_path(symbol)
    start = prices[-1 - days]
    return round((prices[-1] - start) / start * 100, 2)


class SimulatedToolExecutor(DispatchingExecutor):
    """Tool executor backed by deterministic simulated data."""

    executor_name = "simulated"

    def _market_cap(self, symbol: str) -> float:
        coin = COIN_UNIVERSE.get(symbol)
        if coin:
            return coin.market_cap
        return round(_rng("mcap", symbol).uniform(5e7, 5e8), 0)

    async def tool_listing_coins(self, arguments: dict[str, Any]) -> dict[str, Any]:
        ranked = sorted(COIN_UNIVERSE.values(), key=lambda c: c.market_cap, reverse=True)
        coins = [
            {
                "symbol": coin.symbol,
                "name": coin.name,
                "market_cap_rank": rank,
                "current_price": coin.price,
                "market_cap": coin.market_cap,
                "price_change_24h": percent_change(coin.symbol, 1),
                "price_change_7d": percent_change(coin.symbol, 7),
                "volume_24h": round(coin.market_cap * _rng("vol", coin.symbol).uniform(0.01, 0.12), 0),
            }
            for rank, coin in enumerate(ranked, start=1)
        ]
        return {"total_coins": len(coins), "coins": coins, "simulated": True}

    async def tool_get_coin_quotes(self, arguments: dict[str, Any]) -> dict[str, Any]:
        symbols = require_symbols(arguments, "get_coin_quotes")
        quotes: dict[str, Any] = {}
        for symbol in symbols:
            market_cap = self._market_cap(symbol)
            quotes[symbol] = {
                "symbol": symbol,
                "price": round(price_path(symbol)[-1], 8),
                "change_24h": percent_change(symbol, 1),
                "volume_24h": round(market_cap * _rng("vol", symbol).uniform(0.01, 0.12), 0),
                "market_cap": market_cap,
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
        if not 1 <= days <= HISTORY_DAYS:
            raise ToolExecutionError(
                f"days must be between 1 and {HISTORY_DAYS}",
                tool_name="get_coin_quotes_historical",
            )

        window = price_path(symbol)[-1 - days:]
        return {
            "symbol": symbol,
            "timeframe": f"{days}d",
            "current_price": round(window[-1], 8),
            "start_price": round(window[0], 8),
            "price_change_percentage": percent_change(symbol, days),
            "high": round(max(window), 8),
            "low": round(min(window), 8),
            "data_points": len(window),
            "simulated": True,
        }

    async def tool_get_coin_info(self, arguments: dict[str, Any]) -> dict[str, Any]:
        symbol = require_symbol(arguments, "get_coin_info")
        coin = COIN_UNIVERSE.get(symbol)
        if coin is None:
            raise ToolExecutionError(
                f"Unable to find coin information for symbol: {symbol}",
                tool_name="get_coin_info",
            )
        return {
            "symbol": coin.symbol,
            "name": coin.name,
            "category": coin.category,
            "description": coin.description,
            "launch_year": coin.launch_year,
            "current_price": coin.price,
            "market_cap": coin.market_cap,
            "price_change_24h": percent_change(symbol, 1),
            "price_change_30d": percent_change(symbol, 30),
            "simulated": True,
        }

    async def tool_search_the_web(self, arguments: dict[str, Any]) -> dict[str, Any]:
        query = str(arguments.get("query") or "").strip()
        if not query:
            raise ToolExecutionError("Missing required argument: query", tool_name="search_the_web")
        timeframe = str(arguments.get("timeframe") or "past_year")

        words = {w.strip(".,:;()").upper() for w in query.split()}
        names = {coin.name.upper(): sym for sym, coin in COIN_UNIVERSE.items()}
        matched = sorted(
            {w for w in words if w in RISK_NOTES} | {names[w] for w in words if w in names}
        )

        results = [
            {"title": f"{symbol}: reported concern", "snippet": note}
            for symbol in matched
            for note in RISK_NOTES.get(symbol, [])
        ]
        if not results:
            results = [
                {
                    "title": f"Recent news about {query}",
                    "snippet": f"No hacks, exploits or regulatory actions found for {query}.",
                }
            ]
        return {
            "query": query,
            "timeframe": timeframe,
            "results": results,
            "total_results": len(results),
            "simulated": True,
        }

"""
Tool specifications in OpenAI function-calling format.
"""

from __future__ import annotations

from typing import Any


def _function(name: str, description: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


LISTING_COINS = _function(
    "listing_coins",
    "List actively traded cryptocurrencies with symbol, name, market cap and 24h volume.",
    {},
    [],
)

GET_COIN_QUOTES = _function(
    "get_coin_quotes",
    "Get current price, market cap and 24h percentage change for one or more coins.",
    {
        "symbols": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Ticker symbols, e.g. [\"BTC\", \"ETH\"]",
        }
    },
    ["symbols"],
)

GET_COIN_INFO = _function(
    "get_coin_info",
    "Get project metadata for a coin: name, category, description, launch year and links.",
    {"symbol": {"type": "string", "description": "Ticker symbol"}},
    ["symbol"],
)

SEARCH_THE_WEB = _function(
    "search_the_web",
    "Search recent news about a project: hacks, exploits, regulatory actions, scandals.",
    {
        "query": {"type": "string", "description": "Search query"},
        "timeframe": {
            "type": "string",
            "description": "How far back to search, e.g. \"past_year\"",
        },
    },
    ["query"],
)

SCREENER_TOOLS: list[dict[str, Any]] = [LISTING_COINS, GET_COIN_QUOTES]
QUALITATIVE_TOOLS: list[dict[str, Any]] = [GET_COIN_INFO, SEARCH_THE_WEB]
"""
Screener Agent - Stage 2 of the advisory pipeline.

Uses the listing and quote tools to pick up to 15 candidate coins that
fit an InvestorProfile. If the model's final answer holds no usable
symbol array, a fixed candidate pool keyed by market cap and risk
tolerance is used instead and the result is flagged fallback_mode.
"""

from __future__ import annotations

import re
from typing import Any

from iopulse.agents.base import Agent, StageResult
from iopulse.exceptions import ExtractionError
from iopulse.llm.extraction import extract_json
from iopulse.tools.specs import SCREENER_TOOLS
from iopulse.types import InvestorProfile, MarketCap, RiskTolerance, Stage

MAX_CANDIDATES = 15

_SYMBOL_RE = re.compile(r"^[A-Z0-9]{2,10}$")

SYSTEM_PROMPT = """You are a crypto market screener. Given an investor profile, select up to 15 candidate coins that match it.

Use the tools:
- listing_coins: list actively traded coins with market cap and volume.
- get_coin_quotes: current price, market cap and 24h change for chosen symbols.

Match the desired market cap tier and keep liquidity and sector diversity appropriate to the risk tolerance. Avoid stablecoins unless risk tolerance is low.

Your final answer MUST be a single JSON array of ticker symbols, for example ["BTC", "ETH", "SOL"], and nothing else."""

# Fixed fallback pools, ordered by selection rank
FALLBACK_POOLS: dict[str, list[str]] = {
    "high_low_risk": [
        "BTC", "ETH", "BNB", "USDC", "XRP", "ADA", "SOL", "DOGE",
        "AVAX", "DOT", "MATIC", "LTC", "UNI", "LINK", "ATOM",
    ],
    "high": [
        "BTC", "ETH", "BNB", "XRP", "SOL", "ADA", "AVAX", "DOT",
        "MATIC", "LTC", "UNI", "LINK", "FET", "RENDER", "THETA",
    ],
    "mid": [
        "FET", "RENDER", "THETA", "HBAR", "ICP", "ATOM", "ALGO", "XLM",
        "EGLD", "FLOW", "UNI", "LINK", "DOT", "MATIC", "AVAX",
    ],
    "low": [
        "FET", "RENDER", "THETA", "HBAR", "ICP", "ALGO", "XLM", "EGLD",
        "FLOW", "ATOM", "DOT", "MATIC", "AVAX", "UNI", "LINK",
    ],
}


def fallback_candidates(profile: InvestorProfile) -> list[str]:
    """Deterministic candidate pool for a profile."""
    if profile.desired_market_cap == MarketCap.HIGH:
        if profile.risk_tolerance == RiskTolerance.LOW:
            return list(FALLBACK_POOLS["high_low_risk"])
        return list(FALLBACK_POOLS["high"])
    if profile.desired_market_cap == MarketCap.MID:
        return list(FALLBACK_POOLS["mid"])
    return list(FALLBACK_POOLS["low"])


def normalize_candidates(items: list[Any]) -> list[str]:
    """Uppercase, validate and dedupe symbols; cap at MAX_CANDIDATES.

    Entries may be symbol strings or objects with a "symbol" key.
    """
    symbols: list[str] = []
    for item in items:
        if isinstance(item, dict):
            item = item.get("symbol")
        if not isinstance(item, str):
            continue
        symbol = item.strip().upper()
        if _SYMBOL_RE.match(symbol) and symbol not in symbols:
            symbols.append(symbol)
        if len(symbols) == MAX_CANDIDATES:
            break
    return symbols


class ScreenerAgent(Agent[list[str]]):
    """Stage 2: InvestorProfile to candidate symbol list."""

    stage = Stage.SCREENER

    @property
    def role(self) -> str:
        return "Screen the market for candidate coins matching the investor profile"

    async def execute(self, payload: InvestorProfile) -> StageResult[list[str]]:
        user_prompt = (
            "Investor profile:\n"
            f"- Current holding: {payload.current_holding_symbol}\n"
            f"- Risk tolerance: {payload.risk_tolerance.value}\n"
            f"- Desired market cap: {payload.desired_market_cap.value}\n"
            f"- Investment horizon: {payload.investment_horizon.value}\n\n"
            "Return the JSON array of up to 15 candidate symbols."
        )
        loop = await self.ask_with_tools(SYSTEM_PROMPT, user_prompt, SCREENER_TOOLS)

        try:
            candidates = normalize_candidates(extract_json(loop.text, "array"))
        except ExtractionError as e:
            self.log_warning("Screener output unparseable", snippet=e.snippet[:80])
            candidates = []

        if not candidates:
            candidates = fallback_candidates(payload)
            self.log_warning(
                "Using fallback candidate pool",
                desired_market_cap=payload.desired_market_cap.value,
                risk_tolerance=payload.risk_tolerance.value,
                candidates=len(candidates),
            )
            return StageResult.ok(candidates, tool_calls=loop.tool_calls, fallback_mode=True)

        self.log_info("Candidates selected", candidates=",".join(candidates))
        return StageResult.ok(candidates, tool_calls=loop.tool_calls)

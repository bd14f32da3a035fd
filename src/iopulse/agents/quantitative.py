"""
Quantitative Agent - Stage 3 of the advisory pipeline.

Scores each candidate plus the current holding on price momentum. Price
changes come from the tool executor directly; scoring is deterministic:

    f(x, scale) = 5 * tanh(x / scale)
    quant_score = clamp(0, 10, 5 + 0.5*f(90d, 100) + 0.3*f(30d, 50) + 0.2*f(24h, 10))

Each f term is bounded by +/-5, so the weighted sum stays within [0, 10]
before clamping. Scores are rounded to 2 decimals.

Every candidate and the holding must be scored; any symbol without market
data fails the stage.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Any

from iopulse.agents.base import Agent, StageResult
from iopulse.exceptions import DataFetchError, ToolExecutionError
from iopulse.types import CoinScore, Stage

# (weight, normalization scale in percent)
WEIGHTS = {
    "90d": (0.5, 100.0),
    "30d": (0.3, 50.0),
    "24h": (0.2, 10.0),
}


def normalize_change(change_pct: float, scale: float) -> float:
    """Squash a percentage change into [-5, 5]."""
    return 5.0 * math.tanh(change_pct / scale)


def quant_score(change_90d: float, change_30d: float, change_24h: float) -> float:
    """Momentum score in [0, 10]."""
    raw = 5.0
    for change, (weight, scale) in zip(
        (change_90d, change_30d, change_24h),
        (WEIGHTS["90d"], WEIGHTS["30d"], WEIGHTS["24h"]),
    ):
        raw += weight * normalize_change(change, scale)
    return round(min(10.0, max(0.0, raw)), 2)


@dataclass(frozen=True)
class QuantInput:
    candidates: list[str]
    current_holding: str

    @property
    def symbols(self) -> list[str]:
        """Candidates plus the holding, deduplicated, holding last if absent."""
        symbols: list[str] = []
        for symbol in [*self.candidates, self.current_holding]:
            symbol = symbol.upper()
            if symbol not in symbols:
                symbols.append(symbol)
        return symbols


class QuantitativeAgent(Agent[list[CoinScore]]):
    """Stage 3: candidate symbols to momentum-scored coins."""

    stage = Stage.QUANTITATIVE

    @property
    def role(self) -> str:
        return "Score candidate coins on 90d/30d/24h price momentum"

    async def _call(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        try:
            return await asyncio.wait_for(
                self.tools.execute(tool_name, arguments),
                timeout=self.settings.TIMEOUT_TOOL_STAGE_S,
            )
        except asyncio.TimeoutError:
            raise ToolExecutionError(f"{tool_name} timed out", tool_name=tool_name) from None

    async def _historical_change(self, symbol: str, days: int) -> float:
        result = await self._call("get_coin_quotes_historical", {"symbol": symbol, "days": days})
        return float(result["price_change_percentage"])

    async def _score(self, symbol: str, change_24h: float | None, holding: str) -> CoinScore:
        change_90d, change_30d = await asyncio.gather(
            self._historical_change(symbol, 90),
            self._historical_change(symbol, 30),
        )
        if change_24h is None:
            change_24h = await self._historical_change(symbol, 1)
        return CoinScore(
            symbol=symbol,
            change_90d=round(change_90d, 2),
            change_30d=round(change_30d, 2),
            change_24h=round(change_24h, 2),
            quant_score=quant_score(change_90d, change_30d, change_24h),
            is_current_holding=symbol == holding,
        )

    async def execute(self, payload: QuantInput) -> StageResult[list[CoinScore]]:
        symbols = payload.symbols
        holding = payload.current_holding.upper()

        quotes = await self._call("get_coin_quotes", {"symbols": symbols})
        tool_calls = 1

        scored: list[CoinScore] = []
        for symbol in symbols:
            quote = quotes.get(symbol) if isinstance(quotes, dict) else None
            change_24h = float(quote["change_24h"]) if quote else None
            try:
                scored.append(await self._score(symbol, change_24h, holding))
            except (ToolExecutionError, DataFetchError, KeyError, TypeError, ValueError) as e:
                label = "current holding" if symbol == holding else "candidate"
                raise ToolExecutionError(
                    f"No market data for {label} {symbol}: {e}",
                    tool_name="get_coin_quotes_historical",
                    context={"symbol": symbol},
                ) from e
            tool_calls += 2 if change_24h is not None else 3

        self.log_info(
            "Quantitative scoring complete",
            coins=len(scored),
            top=max(scored, key=lambda c: c.quant_score).symbol if scored else None,
        )
        return StageResult.ok(scored, tool_calls=tool_calls)

"""
Qualitative Agent - Stage 4 of the advisory pipeline.

Assesses reputational and security risk for the top coins by quant score
(plus the current holding) and assigns each a qualitative_score in [0, 10].
Coins outside the selection pass through unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

import orjson

from iopulse.agents.base import Agent, StageResult
from iopulse.exceptions import ValidationError
from iopulse.llm.extraction import extract_json
from iopulse.tools.specs import QUALITATIVE_TOOLS
from iopulse.types import CoinScore, Stage

TOP_N = 5

SYSTEM_PROMPT = """You are a crypto due-diligence analyst. For each coin you are given, assess reputational and security risk: hacks and exploits, regulatory actions, team or governance scandals, centralization and depeg risk.

Use the tools:
- get_coin_info: project metadata.
- search_the_web: recent news about the project.

Score each coin with a "qualitative_score" from 0 (severe red flags) to 10 (clean record).

Your final answer MUST be a single JSON array with one object per coin:
[{"symbol": "BTC", "qualitative_score": 9, "justification": "..."}]
and nothing else."""


@dataclass(frozen=True)
class QualitativeInput:
    coins: list[CoinScore]
    current_holding: str


def select_for_review(coins: list[CoinScore], holding: str) -> list[str]:
    """Top TOP_N symbols by quant score, plus the holding if not among them."""
    ranked = sorted(coins, key=lambda c: c.quant_score, reverse=True)
    selected = [c.symbol for c in ranked[:TOP_N]]
    if holding not in selected and any(c.symbol == holding for c in coins):
        selected.append(holding)
    return selected


def parse_scores(items: list, selected: list[str]) -> dict[str, float]:
    """Map each selected symbol to its validated qualitative score.

    Raises:
        ValidationError: If a selected coin has no score or it is out of range.
    """
    scores: dict[str, float] = {}
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("symbol"), str):
            continue
        scores[item["symbol"].strip().upper()] = item.get("qualitative_score")

    result: dict[str, float] = {}
    for symbol in selected:
        if symbol not in scores:
            raise ValidationError(
                f"No qualitative score for {symbol}",
                context={"field": "qualitative_score", "value": None, "expected": selected},
            )
        value = scores[symbol]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 10:
            raise ValidationError(
                f"Qualitative score for {symbol} out of range",
                context={"field": "qualitative_score", "value": value, "expected": "[0, 10]"},
            )
        result[symbol] = float(value)
    return result


class QualitativeAgent(Agent[list[CoinScore]]):
    """Stage 4: quant-scored coins to partially qualitative-scored coins."""

    stage = Stage.QUALITATIVE

    @property
    def role(self) -> str:
        return "Assess reputational and security risk of the leading candidates"

    async def execute(self, payload: QualitativeInput) -> StageResult[list[CoinScore]]:
        holding = payload.current_holding.upper()
        selected = select_for_review(payload.coins, holding)
        by_symbol = {c.symbol: c for c in payload.coins}

        user_prompt = (
            f"Coins to review: {', '.join(selected)}\n"
            f"The user currently holds {holding}.\n\n"
            "Quantitative data:\n"
            + orjson.dumps([by_symbol[s].to_dict() for s in selected]).decode()
        )
        loop = await self.ask_with_tools(SYSTEM_PROMPT, user_prompt, QUALITATIVE_TOOLS)
        scores = parse_scores(extract_json(loop.text, "array"), selected)

        result = [
            replace(coin, qualitative_score=scores[coin.symbol]) if coin.symbol in scores else coin
            for coin in payload.coins
        ]
        self.log_info("Qualitative review complete", reviewed=len(scores))
        return StageResult.ok(result, tool_calls=loop.tool_calls)

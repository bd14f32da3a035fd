"""
Profile Agent - Stage 1 of the advisory pipeline.

Classifies a strategy's free-text investment preference into an
InvestorProfile. Single model call, no tools.
"""

from __future__ import annotations

from iopulse.agents.base import Agent, StageResult
from iopulse.llm.extraction import extract_json
from iopulse.types import InvestorProfile, Stage, StrategyInput

SYSTEM_PROMPT = """You are a senior investment analyst. You receive a user's current token holding and their investment strategy in natural language. Convert it into a single JSON object.

The JSON object MUST contain exactly these keys:
- "current_holding_symbol": the ticker symbol of the user's current token.
- "risk_tolerance": one of "low", "medium", "high".
- "desired_market_cap": one of "low", "mid", "high".
- "investment_horizon": one of "short-term", "long-term".

Output ONLY the raw JSON object and nothing else."""


class ProfileAgent(Agent[InvestorProfile]):
    """Stage 1: strategy text to InvestorProfile."""

    stage = Stage.PROFILE

    @property
    def role(self) -> str:
        return "Classify the investment strategy into a structured investor profile"

    async def execute(self, payload: StrategyInput) -> StageResult[InvestorProfile]:
        text = await self.ask(SYSTEM_PROMPT, payload.to_prompt_string())
        data = extract_json(text, "object", discriminator="risk_tolerance")
        profile = InvestorProfile.from_dict(data)

        if profile.current_holding_symbol != payload.coin:
            self.log_warning(
                "Profile holding differs from strategy coin",
                profile_symbol=profile.current_holding_symbol,
                strategy_coin=payload.coin,
            )

        self.log_info(
            "Profile classified",
            risk_tolerance=profile.risk_tolerance.value,
            desired_market_cap=profile.desired_market_cap.value,
            investment_horizon=profile.investment_horizon.value,
        )
        return StageResult.ok(profile)

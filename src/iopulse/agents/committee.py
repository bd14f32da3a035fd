"""
Committee Agent - Stage 5 of the advisory pipeline.

Synthesizes quant and qualitative scores into the final hold/swap
recommendation. The recommendation string has a fixed format and must
name the current holding (and, for a swap, a scored alternative);
anything else fails the stage.
"""

from __future__ import annotations

from dataclasses import dataclass

from iopulse.agents.base import Agent, StageResult
from iopulse.exceptions import ValidationError
from iopulse.llm.extraction import extract_json
from iopulse.types import (
    QUAL_WEIGHT,
    QUANT_WEIGHT,
    CoinScore,
    PreviousRecommendation,
    Recommendation,
    Stage,
    utc_now,
)

# Minimum combined-score advantage an alternative needs before a swap
SWAP_THRESHOLD = 1.0
# Higher bar when a HOLD was issued less than RECENT_HOLD_HOURS ago
RECENT_HOLD_THRESHOLD = 1.5
RECENT_HOLD_HOURS = 24.0

SYSTEM_PROMPT = f"""You are the chair of an investment committee. You receive coins scored on momentum (quant_score) and due diligence (qualitative_score), plus the user's current holding and any previous recommendation.

Decision rules:
- combined_score = {QUANT_WEIGHT} * quant_score + {QUAL_WEIGHT} * qualitative_score. Only coins with both scores are eligible.
- Explicitly compare the current holding's combined score with the best alternative.
- Recommend a swap only if the best alternative beats the holding by at least {SWAP_THRESHOLD}.
- If the previous recommendation was to hold and was issued less than {RECENT_HOLD_HOURS:.0f} hours ago, require at least {RECENT_HOLD_THRESHOLD} instead.

Your output MUST be a single JSON object with two keys:
- "recommendation": EXACTLY one of these forms:
    "Swap <CURRENT> for <TARGET> and hold for <DURATION>"
    "Don't swap anything and hold <CURRENT> for more <DURATION>"
  e.g. "Swap ETH for SOL and hold for 3-5 weeks" or "Don't swap anything and hold BTC for more 2-3 weeks".
- "explanation": the reasoning, citing the combined scores compared.

Output ONLY the JSON object."""


@dataclass(frozen=True)
class CommitteeInput:
    coins: list[CoinScore]
    current_holding: str
    previous: PreviousRecommendation | None = None


def _normalize(text: str) -> str:
    return " ".join(text.replace("’", "'").split())


def build_user_prompt(payload: CommitteeInput) -> str:
    holding = payload.current_holding.upper()
    lines = [f"User's current token: {holding}", ""]

    if payload.previous:
        prev = payload.previous
        hours = prev.hours_elapsed(utc_now())
        lines += [
            f"Previous recommendation: {prev.recommendation}",
            f"Issued {hours:.1f} hours ago; intended duration {prev.original_duration}.",
            f"Justification: {prev.justification or 'n/a'}",
            "",
        ]
    else:
        lines += ["No previous recommendation.", ""]

    lines.append("Coin analysis (symbol | quant | qualitative | combined):")
    ranked = sorted(
        payload.coins,
        key=lambda c: (c.combined_score is not None, c.combined_score or 0.0, c.quant_score),
        reverse=True,
    )
    for coin in ranked:
        qual = f"{coin.qualitative_score:.2f}" if coin.qualitative_score is not None else "-"
        combined = f"{coin.combined_score:.2f}" if coin.combined_score is not None else "-"
        marker = "  <- current holding" if coin.symbol == holding else ""
        lines.append(f"{coin.symbol} | {coin.quant_score:.2f} | {qual} | {combined}{marker}")

    comparison = compare_to_holding(payload)
    lines += [
        "",
        f"Current holding combined score: {_fmt(comparison['holding_score'])}",
        f"Best alternative: {comparison['best_symbol'] or 'none'} "
        f"({_fmt(comparison['best_score'])})",
        f"Required advantage to swap: {comparison['threshold']}",
    ]
    return "\n".join(lines)


def _fmt(value: float | None) -> str:
    return f"{value:.2f}" if value is not None else "n/a"


def compare_to_holding(payload: CommitteeInput) -> dict:
    """Holding vs best alternative by combined score, with the swap threshold."""
    holding = payload.current_holding.upper()
    holding_score = next(
        (c.combined_score for c in payload.coins if c.symbol == holding), None
    )
    alternatives = [
        c for c in payload.coins if c.symbol != holding and c.combined_score is not None
    ]
    best = max(alternatives, key=lambda c: c.combined_score, default=None)

    threshold = SWAP_THRESHOLD
    prev = payload.previous
    if (
        prev is not None
        and _normalize(prev.recommendation).lower().startswith("don't swap")
        and prev.hours_elapsed(utc_now()) < RECENT_HOLD_HOURS
    ):
        threshold = RECENT_HOLD_THRESHOLD

    return {
        "holding_score": holding_score,
        "best_symbol": best.symbol if best else None,
        "best_score": best.combined_score if best else None,
        "threshold": threshold,
    }


def check_assets(recommendation: Recommendation, payload: CommitteeInput) -> None:
    """Check that the recommendation names the holding and a scored alternative.

    Raises:
        ValidationError: If the current asset is not the holding, or a swap
            targets a coin without a combined score.
    """
    holding = payload.current_holding.upper()
    current = (recommendation.current or "").upper()
    if current != holding:
        raise ValidationError(
            f"Recommendation names {current or 'nothing'} as the current holding, "
            f"expected {holding}",
            context={"field": "recommendation", "value": recommendation.recommendation[:200]},
        )
    if not recommendation.is_swap:
        return

    target = (recommendation.target or "").upper()
    eligible = {c.symbol for c in payload.coins if c.combined_score is not None} - {holding}
    if target not in eligible:
        raise ValidationError(
            f"Swap target {target} is not a scored alternative",
            context={
                "field": "recommendation",
                "value": recommendation.recommendation[:200],
                "eligible": sorted(eligible),
            },
        )


class CommitteeAgent(Agent[Recommendation]):
    """Stage 5: scored coins to final Recommendation."""

    stage = Stage.COMMITTEE

    @property
    def role(self) -> str:
        return "Decide whether to hold the current position or swap"

    async def execute(self, payload: CommitteeInput) -> StageResult[Recommendation]:
        if not any(c.combined_score is not None for c in payload.coins):
            raise ValidationError(
                "No coins with both quant and qualitative scores",
                context={"field": "qualitative_score"},
            )

        text = await self.ask(SYSTEM_PROMPT, build_user_prompt(payload))
        data = extract_json(text, "object", discriminator="recommendation")

        recommendation = Recommendation(
            recommendation=_normalize(str(data.get("recommendation") or "")),
            explanation=str(data.get("explanation") or "").strip(),
        )
        recommendation.validate()
        check_assets(recommendation, payload)

        self.log_info(
            "Recommendation issued",
            action=recommendation.action,
            target=recommendation.target,
        )
        return StageResult.ok(recommendation)

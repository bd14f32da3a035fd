"""
Core types for the advisory pipeline.

This module defines the records passed between pipeline stages:
- Enums for stages, profile classifications and progress events
- Frozen dataclasses for stage inputs/outputs (StrategyInput, InvestorProfile,
  CoinScore, Recommendation, PreviousRecommendation)
- Mutable WorkflowResult, filled stage by stage by the orchestrator
- Helper functions for ID generation and timestamps
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from uuid6 import uuid7

from iopulse.exceptions import ValidationError


def generate_id(prefix: str = "") -> str:
    """Generate a time-ordered unique ID using UUID7."""
    uid = str(uuid7())
    return f"{prefix}_{uid}" if prefix else uid


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class Stage(str, Enum):
    """Pipeline stages, in execution order."""

    PROFILE = "profile"
    SCREENER = "screener"
    QUANTITATIVE = "quantitative"
    QUALITATIVE = "qualitative"
    COMMITTEE = "committee"

    @property
    def display_name(self) -> str:
        return _STAGE_DISPLAY_NAMES[self]

    @property
    def step(self) -> int:
        """1-based position in the pipeline."""
        return list(Stage).index(self) + 1


_STAGE_DISPLAY_NAMES = {
    Stage.PROFILE: "Investor Profile Agent",
    Stage.SCREENER: "Market Screener Agent",
    Stage.QUANTITATIVE: "Quantitative Analysis Agent",
    Stage.QUALITATIVE: "Qualitative Due Diligence Agent",
    Stage.COMMITTEE: "Investment Committee Agent",
}


class RiskTolerance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MarketCap(str, Enum):
    LOW = "low"
    MID = "mid"
    HIGH = "high"


class InvestmentHorizon(str, Enum):
    SHORT_TERM = "short-term"
    LONG_TERM = "long-term"


class ProgressEventType(str, Enum):
    """Kinds of progress updates emitted by the streaming workflow."""

    AGENT_START = "agent_start"
    AGENT_COMPLETE = "agent_complete"
    AGENT_ERROR = "agent_error"


@dataclass(frozen=True)
class StrategyInput:
    """A user's strategy as handed to the pipeline."""

    name: str
    description: str
    coin: str
    amount: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StrategyInput:
        return cls(
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            coin=str(data.get("coin", "")).upper().strip(),
            amount=str(data.get("amount", "0")),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "description": self.description,
            "coin": self.coin,
            "amount": self.amount,
        }

    def to_prompt_string(self) -> str:
        """Render the strategy as the profile stage's user message."""
        return (
            f"Strategy Name: {self.name}\n"
            f"Description: {self.description}\n"
            f"Current Holdings: {self.amount} {self.coin}\n"
            "Looking for investment recommendations with the described strategy."
        )


PROFILE_KEYS = (
    "current_holding_symbol",
    "risk_tolerance",
    "desired_market_cap",
    "investment_horizon",
)


@dataclass(frozen=True)
class InvestorProfile:
    """Structured classification of a strategy's investment preference."""

    current_holding_symbol: str
    risk_tolerance: RiskTolerance
    desired_market_cap: MarketCap
    investment_horizon: InvestmentHorizon

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InvestorProfile:
        """Validate and build a profile from parsed model output.

        Raises:
            ValidationError: If a key is missing or a value is outside its enum.
        """
        missing = [key for key in PROFILE_KEYS if not data.get(key)]
        if missing:
            raise ValidationError(
                "Investor profile is missing required keys",
                context={"field": missing, "expected": list(PROFILE_KEYS)},
            )

        def coerce(enum_cls: type[Enum], key: str) -> Any:
            value = str(data[key]).strip().lower()
            try:
                return enum_cls(value)
            except ValueError:
                raise ValidationError(
                    f"Invalid value for {key}",
                    context={
                        "field": key,
                        "value": data[key],
                        "expected": [member.value for member in enum_cls],
                    },
                ) from None

        return cls(
            current_holding_symbol=str(data["current_holding_symbol"]).upper().strip(),
            risk_tolerance=coerce(RiskTolerance, "risk_tolerance"),
            desired_market_cap=coerce(MarketCap, "desired_market_cap"),
            investment_horizon=coerce(InvestmentHorizon, "investment_horizon"),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "current_holding_symbol": self.current_holding_symbol,
            "risk_tolerance": self.risk_tolerance.value,
            "desired_market_cap": self.desired_market_cap.value,
            "investment_horizon": self.investment_horizon.value,
        }


# Weights for the committee's combined score
QUANT_WEIGHT = 0.6
QUAL_WEIGHT = 0.4


@dataclass(frozen=True)
class CoinScore:
    """A coin's quantitative (and optionally qualitative) scoring.

    qualitative_score is None until the qualitative stage scores the coin;
    coins it does not select keep it None.
    """

    symbol: str
    change_90d: float
    change_30d: float
    change_24h: float
    quant_score: float
    is_current_holding: bool = False
    qualitative_score: float | None = None

    @property
    def combined_score(self) -> float | None:
        if self.qualitative_score is None:
            return None
        return round(
            self.quant_score * QUANT_WEIGHT + self.qualitative_score * QUAL_WEIGHT, 2
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "symbol": self.symbol,
            "90d_change": self.change_90d,
            "30d_change": self.change_30d,
            "24h_change": self.change_24h,
            "quant_score": self.quant_score,
        }
        if self.is_current_holding:
            data["is_current_holding"] = True
        if self.qualitative_score is not None:
            data["qualitative_score"] = self.qualitative_score
        return data


SWAP_PATTERN = re.compile(r"^Swap (?P<current>.+?) for (?P<target>.+?) and hold for (?P<duration>.+)$")
HOLD_PATTERN = re.compile(r"^Don't swap anything and hold (?P<target>.+?) for more (?P<duration>.+)$")


@dataclass(frozen=True)
class Recommendation:
    """The committee's final hold/swap decision."""

    recommendation: str
    explanation: str

    @property
    def is_swap(self) -> bool:
        return SWAP_PATTERN.match(self.recommendation) is not None

    @property
    def action(self) -> str:
        """Persisted action label: "SWAP" or "HOLD"."""
        return "SWAP" if self.is_swap else "HOLD"

    @property
    def target(self) -> str | None:
        """The asset to hold after following the recommendation."""
        match = SWAP_PATTERN.match(self.recommendation) or HOLD_PATTERN.match(
            self.recommendation
        )
        return match.group("target") if match else None

    @property
    def current(self) -> str | None:
        """The asset held before following the recommendation."""
        match = SWAP_PATTERN.match(self.recommendation)
        if match:
            return match.group("current")
        match = HOLD_PATTERN.match(self.recommendation)
        return match.group("target") if match else None

    @property
    def duration(self) -> str | None:
        match = SWAP_PATTERN.match(self.recommendation) or HOLD_PATTERN.match(
            self.recommendation
        )
        return match.group("duration") if match else None

    def validate(self) -> None:
        """Check the recommendation string against the action format.

        Raises:
            ValidationError: If the string is not a well-formed swap or hold.
        """
        if not (
            SWAP_PATTERN.match(self.recommendation) or HOLD_PATTERN.match(self.recommendation)
        ):
            raise ValidationError(
                "Recommendation does not match the required action format",
                context={
                    "field": "recommendation",
                    "value": self.recommendation[:200],
                    "expected": "Swap <X> for <Y> and hold for <T> | "
                    "Don't swap anything and hold <X> for more <T>",
                },
            )
        if not self.explanation.strip():
            raise ValidationError(
                "Recommendation has no explanation",
                context={"field": "explanation"},
            )

    def to_dict(self) -> dict[str, str]:
        return {"recommendation": self.recommendation, "explanation": self.explanation}


@dataclass(frozen=True)
class PreviousRecommendation:
    """A recommendation the user acted on earlier, used as committee context."""

    recommendation: str
    timestamp: datetime
    original_duration: str = "1 day"
    justification: str = ""

    def hours_elapsed(self, now: datetime | None = None) -> float:
        now = now or utc_now()
        return max(0.0, (now - self.timestamp).total_seconds() / 3600)

    def to_dict(self) -> dict[str, Any]:
        return {
            "recommendation": self.recommendation,
            "timestamp": self.timestamp.isoformat(),
            "original_duration": self.original_duration,
            "justification": self.justification,
        }


@dataclass
class StageMetadata:
    """Timing and outcome of one executed stage."""

    stage: Stage
    success: bool
    duration_ms: int
    tool_calls: int = 0
    fallback_mode: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.stage.step,
            "agent": self.stage.display_name,
            "stage": self.stage.value,
            "success": self.success,
            "time": self.duration_ms,
            "tool_calls": self.tool_calls,
            "fallback_mode": self.fallback_mode,
            "error": self.error,
        }


@dataclass
class WorkflowResult:
    """Aggregated output of one workflow invocation.

    Created empty at workflow start and filled stage by stage. On failure
    the outputs of completed stages are retained for diagnostics.
    """

    workflow_id: str
    strategy: StrategyInput
    previous_recommendation: PreviousRecommendation | None = None
    profile: InvestorProfile | None = None
    candidates: list[str] | None = None
    quant_analysis: list[CoinScore] | None = None
    qual_analysis: list[CoinScore] | None = None
    recommendation: Recommendation | None = None
    success: bool = False
    error: str | None = None
    error_type: str | None = None
    failed_stage: Stage | None = None
    total_time_ms: int = 0
    stages: list[StageMetadata] = field(default_factory=list)
    started_at: datetime = field(default_factory=utc_now)
    completed_at: datetime | None = None

    @property
    def stage_timings(self) -> dict[str, int]:
        return {meta.stage.value: meta.duration_ms for meta in self.stages}

    def analysis_metadata(self) -> dict[str, Any]:
        """Analysis payload persisted alongside a recommendation."""
        return {
            "profile": self.profile.to_dict() if self.profile else None,
            "candidates": self.candidates,
            "quantitativeAnalysis": [c.to_dict() for c in self.quant_analysis or []],
            "qualitativeAnalysis": [c.to_dict() for c in self.qual_analysis or []],
            "totalTime": self.total_time_ms,
            "agentsExecuted": [meta.to_dict() for meta in self.stages],
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "strategy": self.strategy.to_dict(),
            "previous_recommendation": (
                self.previous_recommendation.to_dict() if self.previous_recommendation else None
            ),
            "success": self.success,
            "error": self.error,
            "error_type": self.error_type,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "recommendation": self.recommendation.to_dict() if self.recommendation else None,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            **self.analysis_metadata(),
        }


@dataclass(frozen=True)
class ProgressEvent:
    """A progress update emitted around each stage."""

    type: ProgressEventType
    stage: Stage
    message: str
    payload: Any = None
    duration_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type.value,
            "stage": self.stage.value,
            "agent": self.stage.display_name,
            "step": self.stage.step,
            "message": self.message,
        }
        if self.payload is not None:
            data["output"] = self.payload
        if self.duration_ms is not None:
            data["time"] = self.duration_ms
        return data

"""
Tests for core types.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from iopulse.exceptions import ValidationError
from iopulse.types import (
    CoinScore,
    InvestmentHorizon,
    InvestorProfile,
    MarketCap,
    PreviousRecommendation,
    ProgressEvent,
    ProgressEventType,
    Recommendation,
    RiskTolerance,
    Stage,
    StageMetadata,
    StrategyInput,
    WorkflowResult,
    generate_id,
    utc_now,
)


class TestIds:
    """Tests for ID helpers."""

    def test_generate_id_prefix(self) -> None:
        assert generate_id("wf").startswith("wf_")

    def test_generate_id_unique(self) -> None:
        assert len({generate_id() for _ in range(100)}) == 100


class TestStage:
    """Tests for the Stage enum."""

    def test_order_and_steps(self) -> None:
        assert [s.value for s in Stage] == [
            "profile",
            "screener",
            "quantitative",
            "qualitative",
            "committee",
        ]
        assert Stage.PROFILE.step == 1
        assert Stage.COMMITTEE.step == 5

    def test_display_names(self) -> None:
        assert Stage.SCREENER.display_name == "Market Screener Agent"
        assert Stage.COMMITTEE.display_name == "Investment Committee Agent"


class TestStrategyInput:
    """Tests for StrategyInput."""

    def test_from_dict_normalizes_coin(self) -> None:
        strategy = StrategyInput.from_dict(
            {"name": "n", "description": "d", "coin": " eth ", "amount": 3}
        )
        assert strategy.coin == "ETH"
        assert strategy.amount == "3"

    def test_prompt_string(self) -> None:
        strategy = StrategyInput("Yield", "stable yield", "USDC", "10000")
        prompt = strategy.to_prompt_string()

        assert "Strategy Name: Yield" in prompt
        assert "Current Holdings: 10000 USDC" in prompt


class TestInvestorProfile:
    """Tests for InvestorProfile validation."""

    def test_from_dict(self) -> None:
        profile = InvestorProfile.from_dict(
            {
                "current_holding_symbol": "usdc",
                "risk_tolerance": "LOW",
                "desired_market_cap": "high",
                "investment_horizon": "long-term",
            }
        )
        assert profile.current_holding_symbol == "USDC"
        assert profile.risk_tolerance == RiskTolerance.LOW
        assert profile.desired_market_cap == MarketCap.HIGH
        assert profile.investment_horizon == InvestmentHorizon.LONG_TERM

    def test_missing_key_fails(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            InvestorProfile.from_dict(
                {
                    "current_holding_symbol": "BTC",
                    "risk_tolerance": "low",
                    "desired_market_cap": "high",
                }
            )
        assert exc_info.value.context["field"] == ["investment_horizon"]

    def test_out_of_enum_value_fails(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            InvestorProfile.from_dict(
                {
                    "current_holding_symbol": "BTC",
                    "risk_tolerance": "extreme",
                    "desired_market_cap": "high",
                    "investment_horizon": "long-term",
                }
            )
        assert exc_info.value.context["field"] == "risk_tolerance"

    def test_to_dict_has_exactly_four_keys(self) -> None:
        profile = InvestorProfile(
            "BTC", RiskTolerance.MEDIUM, MarketCap.MID, InvestmentHorizon.SHORT_TERM
        )
        assert profile.to_dict() == {
            "current_holding_symbol": "BTC",
            "risk_tolerance": "medium",
            "desired_market_cap": "mid",
            "investment_horizon": "short-term",
        }


class TestCoinScore:
    """Tests for CoinScore."""

    def test_combined_score(self) -> None:
        coin = CoinScore("SOL", 10.0, 5.0, 1.0, quant_score=7.0, qualitative_score=8.0)
        assert coin.combined_score == 7.4

    def test_combined_score_requires_qualitative(self) -> None:
        coin = CoinScore("SOL", 10.0, 5.0, 1.0, quant_score=7.0)
        assert coin.combined_score is None

    def test_to_dict_optional_fields(self) -> None:
        plain = CoinScore("SOL", 10.0, 5.0, 1.0, quant_score=7.0).to_dict()
        held = CoinScore(
            "ETH", 1.0, 2.0, 3.0, quant_score=5.0, is_current_holding=True, qualitative_score=9.0
        ).to_dict()

        assert "is_current_holding" not in plain
        assert "qualitative_score" not in plain
        assert plain["90d_change"] == 10.0
        assert held["is_current_holding"] is True
        assert held["qualitative_score"] == 9.0


class TestRecommendation:
    """Tests for Recommendation parsing and validation."""

    def test_swap(self) -> None:
        rec = Recommendation("Swap ETH for SOL and hold for 3-5 weeks", "SOL leads")
        rec.validate()

        assert rec.is_swap
        assert rec.action == "SWAP"
        assert rec.current == "ETH"
        assert rec.target == "SOL"
        assert rec.duration == "3-5 weeks"

    def test_hold(self) -> None:
        rec = Recommendation("Don't swap anything and hold BTC for more 2 weeks", "BTC holds up")
        rec.validate()

        assert not rec.is_swap
        assert rec.action == "HOLD"
        assert rec.current == "BTC"
        assert rec.target == "BTC"
        assert rec.duration == "2 weeks"

    @pytest.mark.parametrize(
        "text",
        [
            "Buy SOL now",
            "Swap ETH for SOL",
            "Hold BTC for 2 weeks",
            "don't swap anything and hold BTC for more 2 weeks",
            "",
        ],
    )
    def test_bad_format_fails(self, text: str) -> None:
        with pytest.raises(ValidationError):
            Recommendation(text, "reason").validate()

    def test_missing_explanation_fails(self) -> None:
        with pytest.raises(ValidationError):
            Recommendation("Swap ETH for SOL and hold for 1 week", "  ").validate()


class TestPreviousRecommendation:
    """Tests for PreviousRecommendation."""

    def test_hours_elapsed(self) -> None:
        now = utc_now()
        prev = PreviousRecommendation("x", timestamp=now - timedelta(hours=6))
        assert prev.hours_elapsed(now) == pytest.approx(6.0)

    def test_hours_elapsed_never_negative(self) -> None:
        now = utc_now()
        prev = PreviousRecommendation("x", timestamp=now + timedelta(hours=1))
        assert prev.hours_elapsed(now) == 0.0

    def test_default_duration(self) -> None:
        assert PreviousRecommendation("x", timestamp=utc_now()).original_duration == "1 day"


class TestWorkflowResult:
    """Tests for WorkflowResult serialization."""

    def test_to_dict_partial(self) -> None:
        result = WorkflowResult(
            workflow_id="wf_1",
            strategy=StrategyInput("n", "d", "BTC", "1"),
            candidates=["ETH", "SOL"],
            failed_stage=Stage.QUANTITATIVE,
            error="quantitative failed",
            error_type="analysis_error",
        )
        result.stages.append(StageMetadata(Stage.PROFILE, True, 120))

        data = result.to_dict()
        assert data["success"] is False
        assert data["failed_stage"] == "quantitative"
        assert data["profile"] is None
        assert data["candidates"] == ["ETH", "SOL"]
        assert data["agentsExecuted"][0]["agent"] == "Investor Profile Agent"
        assert data["agentsExecuted"][0]["time"] == 120
        assert result.stage_timings == {"profile": 120}


class TestProgressEvent:
    """Tests for ProgressEvent serialization."""

    def test_to_dict(self) -> None:
        event = ProgressEvent(
            type=ProgressEventType.AGENT_COMPLETE,
            stage=Stage.SCREENER,
            message="done",
            payload=["BTC"],
            duration_ms=50,
        )
        assert event.to_dict() == {
            "type": "agent_complete",
            "stage": "screener",
            "agent": "Market Screener Agent",
            "step": 2,
            "message": "done",
            "output": ["BTC"],
            "time": 50,
        }

    def test_to_dict_minimal(self) -> None:
        event = ProgressEvent(ProgressEventType.AGENT_START, Stage.PROFILE, "started")
        assert "output" not in event.to_dict()
        assert "time" not in event.to_dict()

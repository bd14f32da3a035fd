"""
Recommendation request use case.

Looks up a strategy, runs the advisory workflow for it, and on success
persists the recommendation together with a notification and a history
entry. Returns the `{success, ...}` payload shown to callers.
"""

from __future__ import annotations

from typing import Any

from iopulse.coordinator.store import AdvisoryStore, StrategyRecord
from iopulse.coordinator.workflow import ProgressSink, WorkflowOrchestrator
from iopulse.exceptions import (
    ERROR_MESSAGES,
    StrategyNotFoundError,
    ToolExecutionError,
    error_payload,
)
from iopulse.logging import get_logger
from iopulse.types import PreviousRecommendation, Recommendation

logger = get_logger(__name__)

DEFAULT_ORIGINAL_DURATION = "1 day"


async def build_previous_recommendation(
    store: AdvisoryStore,
    strategy: StrategyRecord,
) -> PreviousRecommendation | None:
    """PreviousRecommendation from the strategy's last obeyed recommendation."""
    if not strategy.last_obeyed_recommendation_id:
        return None

    record = await store.get_recommendation(strategy.last_obeyed_recommendation_id)
    if record is None:
        logger.warning(
            "Last obeyed recommendation is missing",
            strategy_id=strategy.id,
            recommendation_id=strategy.last_obeyed_recommendation_id,
        )
        return None

    parsed = Recommendation(record.recommendation, record.explanation)
    return PreviousRecommendation(
        recommendation=record.recommendation,
        timestamp=strategy.last_obeyed_at or record.created_at,
        original_duration=parsed.duration or DEFAULT_ORIGINAL_DURATION,
        justification=record.explanation,
    )


async def _current_price(orchestrator: WorkflowOrchestrator, symbol: str) -> float:
    try:
        quotes = await orchestrator.context.tools.execute("get_coin_quotes", {"symbols": [symbol]})
    except ToolExecutionError as e:
        logger.warning("Could not price current holding", symbol=symbol, error=e.message)
        return 0.0
    quote = quotes.get(symbol) or {}
    return float(quote.get("price") or 0.0)


async def request_recommendation(
    store: AdvisoryStore,
    orchestrator: WorkflowOrchestrator,
    strategy_id: str,
    user_id: str,
    emit: ProgressSink | None = None,
    production: bool = True,
) -> dict[str, Any]:
    """Generate, persist and return a recommendation for a strategy.

    Args:
        store: Persistence collaborator.
        orchestrator: Workflow orchestrator.
        strategy_id: Strategy to advise on.
        user_id: Requesting user; must own the strategy.
        emit: Optional progress sink; selects the streaming workflow.
        production: Hide internal error details.

    Returns:
        `{"success": True, "data": {...}}` or
        `{"success": False, "error", "errorType", "workflow"?}`.
    """
    try:
        strategy = await store.get_strategy(strategy_id, user_id)
    except StrategyNotFoundError as e:
        return error_payload(e, production=production)

    previous = await build_previous_recommendation(store, strategy)
    strategy_input = strategy.to_input()

    if emit is not None:
        result = await orchestrator.run_with_updates(strategy_input, previous, emit)
    else:
        result = await orchestrator.run(strategy_input, previous)

    if not result.success or result.recommendation is None:
        error_type = result.error_type or "analysis_error"
        await store.log_history(
            user_id,
            "AI_RECOMMENDATION_FAILED",
            {
                "workflow_id": result.workflow_id,
                "failed_stage": result.failed_stage.value if result.failed_stage else None,
                "errorType": error_type,
            },
            strategy_id=strategy_id,
        )
        return {
            "success": False,
            "error": ERROR_MESSAGES[error_type] if production else result.error,
            "errorType": error_type,
            "workflow": {
                "workflow_id": result.workflow_id,
                "failed_stage": result.failed_stage.value if result.failed_stage else None,
                "totalTime": result.total_time_ms,
                "agentsExecuted": [meta.to_dict() for meta in result.stages],
            },
        }

    recommendation = result.recommendation
    record = await store.save_recommendation(
        strategy_id,
        user_id,
        recommendation,
        metadata=result.analysis_metadata(),
    )
    price = await _current_price(orchestrator, strategy_input.coin)
    await store.add_notification(
        strategy_id,
        message=recommendation.recommendation,
        action=recommendation.action,
        confidence=record.confidence,
        price_at_recommendation=price,
    )
    await store.log_history(
        user_id,
        "AI_RECOMMENDATION_GENERATED",
        {
            "recommendation_id": record.id,
            "action": record.action,
            "workflow_id": result.workflow_id,
            "totalTime": result.total_time_ms,
        },
        strategy_id=strategy_id,
    )

    logger.info(
        "Recommendation request complete",
        strategy_id=strategy_id,
        recommendation_id=record.id,
        action=record.action,
    )
    return {
        "success": True,
        "data": {
            "recommendation": record.to_dict(),
            "analysis": result.to_dict(),
        },
    }

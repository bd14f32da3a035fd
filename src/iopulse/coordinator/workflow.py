"""
5-Stage Advisory Workflow.

Orchestrates the advisory pipeline:
1. Profile - Classify the strategy into an InvestorProfile
2. Screener - Select up to 15 candidate coins (tool calls)
3. Quantitative - Momentum-score candidates plus the current holding
4. Qualitative - Due-diligence score the top coins (tool calls)
5. Committee - Issue the final hold/swap recommendation

Stages run strictly in order. The first failing stage stops the run and
the partial WorkflowResult is returned with success=False.
"""

from __future__ import annotations

import inspect
import time
from typing import Any, Callable

from iopulse.agents import (
    AgentContext,
    CommitteeAgent,
    CommitteeInput,
    ProfileAgent,
    QualitativeAgent,
    QualitativeInput,
    QuantInput,
    QuantitativeAgent,
    ScreenerAgent,
)
from iopulse.agents.base import Agent
from iopulse.config import Settings
from iopulse.exceptions import StageError, classify_error
from iopulse.llm.base import LLMGateway
from iopulse.llm.gateway import OpenAICompatibleGateway
from iopulse.llm.retry import RetryingGateway
from iopulse.logging import get_logger, log_context
from iopulse.tools import create_tool_executor
from iopulse.tools.base import ToolExecutor
from iopulse.types import (
    PreviousRecommendation,
    ProgressEvent,
    ProgressEventType,
    Stage,
    StageMetadata,
    StrategyInput,
    WorkflowResult,
    generate_id,
    utc_now,
)

logger = get_logger(__name__)

ProgressSink = Callable[[ProgressEvent], Any]


def _summarize(data: Any) -> Any:
    """JSON-friendly view of a stage output for progress events."""
    if isinstance(data, list):
        return [_summarize(item) for item in data]
    if hasattr(data, "to_dict"):
        return data.to_dict()
    return data


class WorkflowOrchestrator:
    """5-stage advisory workflow coordinator."""

    def __init__(
        self,
        settings: Settings,
        gateway: LLMGateway,
        tools: ToolExecutor,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            settings: Application settings.
            gateway: Model gateway shared by all stages.
            tools: Tool executor shared by the tool-calling stages.
        """
        self.settings = settings
        self.context = AgentContext(settings=settings, gateway=gateway, tools=tools)

        self.profile_agent = ProfileAgent(self.context)
        self.screener_agent = ScreenerAgent(self.context)
        self.quant_agent = QuantitativeAgent(self.context)
        self.qualitative_agent = QualitativeAgent(self.context)
        self.committee_agent = CommitteeAgent(self.context)

    @classmethod
    def from_settings(cls, settings: Settings) -> WorkflowOrchestrator:
        """Build an orchestrator with the configured gateway and executor."""
        gateway: LLMGateway = OpenAICompatibleGateway.from_settings(settings)
        if settings.LLM_MAX_ATTEMPTS > 1:
            gateway = RetryingGateway(gateway, max_attempts=settings.LLM_MAX_ATTEMPTS)
        return cls(settings, gateway, create_tool_executor(settings))

    async def run(
        self,
        strategy: StrategyInput,
        previous: PreviousRecommendation | None = None,
    ) -> WorkflowResult:
        """Run the workflow and return the aggregated result."""
        return await self._execute(strategy, previous, emit=None)

    async def run_with_updates(
        self,
        strategy: StrategyInput,
        previous: PreviousRecommendation | None,
        emit: ProgressSink,
    ) -> WorkflowResult:
        """Run the workflow, emitting a ProgressEvent around each stage.

        Args:
            strategy: The strategy to advise on.
            previous: Optional previous recommendation for the committee.
            emit: Progress sink. Sync or async; its errors are logged and
                never affect the run.
        """
        return await self._execute(strategy, previous, emit=emit)

    async def _execute(
        self,
        strategy: StrategyInput,
        previous: PreviousRecommendation | None,
        emit: ProgressSink | None,
    ) -> WorkflowResult:
        result = WorkflowResult(
            workflow_id=generate_id("wf"),
            strategy=strategy,
            previous_recommendation=previous,
        )
        start_time = time.monotonic()

        with log_context(workflow_id=result.workflow_id):
            logger.info(
                "Starting advisory workflow",
                strategy=strategy.name,
                coin=strategy.coin,
                streaming=emit is not None,
            )
            try:
                # ============== STAGE 1: Profile ==============
                profile = await self._run_stage(
                    self.profile_agent, strategy, result, emit
                )
                result.profile = profile
                holding = strategy.coin or profile.current_holding_symbol

                # ============== STAGE 2: Screener ==============
                candidates = await self._run_stage(
                    self.screener_agent, profile, result, emit
                )
                result.candidates = candidates

                # ============== STAGE 3: Quantitative ==============
                quant = await self._run_stage(
                    self.quant_agent, QuantInput(candidates, holding), result, emit
                )
                result.quant_analysis = quant

                # ============== STAGE 4: Qualitative ==============
                qual = await self._run_stage(
                    self.qualitative_agent, QualitativeInput(quant, holding), result, emit
                )
                result.qual_analysis = qual

                # ============== STAGE 5: Committee ==============
                recommendation = await self._run_stage(
                    self.committee_agent,
                    CommitteeInput(qual, holding, previous),
                    result,
                    emit,
                )
                result.recommendation = recommendation
                result.success = True

            except StageError as e:
                result.success = False
                result.error = str(e)
                result.error_type = classify_error(e)
                result.failed_stage = Stage(e.stage)
                logger.error(
                    "Workflow failed",
                    stage=e.stage,
                    error_type=result.error_type,
                    error=str(e.cause),
                )

            finally:
                result.total_time_ms = int((time.monotonic() - start_time) * 1000)
                result.completed_at = utc_now()

            if result.success:
                logger.info(
                    "Workflow completed",
                    total_time_ms=result.total_time_ms,
                    action=result.recommendation.action if result.recommendation else None,
                )

        return result

    async def _run_stage(
        self,
        agent: Agent[Any],
        payload: Any,
        result: WorkflowResult,
        emit: ProgressSink | None,
    ) -> Any:
        """Run one stage, record its metadata and emit its events.

        Raises:
            StageError: If the stage failed.
        """
        stage = agent.stage
        await self._emit(
            emit,
            ProgressEvent(
                type=ProgressEventType.AGENT_START,
                stage=stage,
                message=f"{stage.display_name} started",
            ),
        )

        start_time = time.monotonic()
        with log_context(stage=stage.value):
            logger.info(f"Stage {stage.step}: {stage.display_name}")
            stage_result = await agent.run(payload)
        duration_ms = int((time.monotonic() - start_time) * 1000)

        result.stages.append(
            StageMetadata(
                stage=stage,
                success=stage_result.success,
                duration_ms=duration_ms,
                tool_calls=stage_result.tool_calls,
                fallback_mode=stage_result.fallback_mode,
                error=str(stage_result.error) if stage_result.error else None,
            )
        )

        if not stage_result.success:
            error = stage_result.error
            await self._emit(
                emit,
                ProgressEvent(
                    type=ProgressEventType.AGENT_ERROR,
                    stage=stage,
                    message=f"{stage.display_name} failed",
                    payload={"errorType": classify_error(error)},
                    duration_ms=duration_ms,
                ),
            )
            raise StageError(stage.value, error)

        message = f"{stage.display_name} completed"
        if stage_result.fallback_mode:
            message += " (fallback candidate pool)"
        await self._emit(
            emit,
            ProgressEvent(
                type=ProgressEventType.AGENT_COMPLETE,
                stage=stage,
                message=message,
                payload=_summarize(stage_result.data),
                duration_ms=duration_ms,
            ),
        )
        return stage_result.data

    async def _emit(self, emit: ProgressSink | None, event: ProgressEvent) -> None:
        if emit is None:
            return
        try:
            outcome = emit(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(
                "Progress sink raised; continuing",
                event=event.type.value,
                stage=event.stage.value,
                error=str(e),
            )

    async def close(self) -> None:
        """Close the gateway and tool executor."""
        await self.context.gateway.close()
        await self.context.tools.close()

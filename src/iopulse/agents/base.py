"""
Base classes for pipeline agents.

This module implements:
- AgentContext: Runtime context with the injected gateway and tool executor
- StageResult: Success/failure envelope returned by every stage
- Agent: Abstract base class for the five pipeline stages

Stages implemented in separate modules:
- profile.py: ProfileAgent (Stage 1)
- screener.py: ScreenerAgent (Stage 2)
- quantitative.py: QuantitativeAgent (Stage 3)
- qualitative.py: QualitativeAgent (Stage 4)
- committee.py: CommitteeAgent (Stage 5)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from iopulse.config import StageConfig
from iopulse.exceptions import IoPulseError
from iopulse.llm.base import LLMGateway, LLMRequest
from iopulse.llm.tool_loop import ToolLoopResult, run_with_tools
from iopulse.logging import get_logger
from iopulse.tools.base import ToolExecutor
from iopulse.types import Stage

if TYPE_CHECKING:
    from iopulse.config import Settings

T = TypeVar("T")


@dataclass
class AgentContext:
    """Runtime context for agents.

    Holds the dependencies every stage needs. Built per orchestrator and
    passed in explicitly; there are no module-level clients.
    """

    settings: Settings
    gateway: LLMGateway
    tools: ToolExecutor


@dataclass
class StageResult(Generic[T]):
    """Outcome of one stage run."""

    success: bool
    data: T | None = None
    error: IoPulseError | None = None
    tool_calls: int = 0
    fallback_mode: bool = False

    @classmethod
    def ok(cls, data: T, tool_calls: int = 0, fallback_mode: bool = False) -> StageResult[T]:
        return cls(success=True, data=data, tool_calls=tool_calls, fallback_mode=fallback_mode)

    @classmethod
    def fail(cls, error: IoPulseError) -> StageResult[T]:
        return cls(success=False, error=error)


class Agent(ABC, Generic[T]):
    """Abstract base class for pipeline agents.

    Subclasses implement `execute`; `run` turns the expected failure
    types into a failed StageResult. Agents hold no per-run state.
    """

    stage: Stage

    def __init__(self, context: AgentContext) -> None:
        """Initialize agent with context.

        Args:
            context: Runtime context with shared resources.
        """
        self.context = context
        self._logger = get_logger(f"agent.{self.name}")

    @property
    def name(self) -> str:
        """Unique name of this agent."""
        return self.stage.value

    @property
    @abstractmethod
    def role(self) -> str:
        """Role description for this agent."""
        ...

    @abstractmethod
    async def execute(self, payload: Any) -> StageResult[T]:
        """Run the stage on its input.

        Raises:
            IoPulseError: Any stage failure.
        """
        ...

    async def run(self, payload: Any) -> StageResult[T]:
        """Execute the stage, capturing failures as a failed StageResult."""
        try:
            return await self.execute(payload)
        except IoPulseError as e:
            self.log_warning("Stage failed", error_type=type(e).__name__, error=e.message)
            return StageResult.fail(e)
        except Exception as e:
            self._logger.exception("Stage raised unexpected error", error_type=type(e).__name__)
            return StageResult.fail(
                IoPulseError(f"Unexpected error: {e}", {"error_type": type(e).__name__})
            )

    @property
    def gateway(self) -> LLMGateway:
        return self.context.gateway

    @property
    def tools(self) -> ToolExecutor:
        return self.context.tools

    @property
    def settings(self) -> Settings:
        return self.context.settings

    @property
    def stage_config(self) -> StageConfig:
        return self.settings.stage_config(self.stage.value)

    def messages(self, system_prompt: str, user_prompt: str) -> list[dict[str, Any]]:
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

    async def ask(self, system_prompt: str, user_prompt: str) -> str:
        """Single model call without tools; returns the response text."""
        config = self.stage_config
        response = await self.gateway.complete(
            LLMRequest(
                messages=self.messages(system_prompt, user_prompt),
                model=config.model,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                timeout_s=config.timeout_s,
            )
        )
        self.log_info(
            "Model responded",
            model=config.model,
            output_tokens=response.output_tokens,
            latency_ms=response.latency_ms,
        )
        return response.text

    async def ask_with_tools(
        self,
        system_prompt: str,
        user_prompt: str,
        tools: list[dict[str, Any]],
    ) -> ToolLoopResult:
        """Tool-calling conversation using this stage's round budget."""
        result = await run_with_tools(
            self.gateway,
            self.messages(system_prompt, user_prompt),
            tools,
            self.tools,
            self.stage_config,
        )
        self.log_info(
            "Tool conversation finished",
            rounds=result.rounds,
            tool_calls=result.tool_calls,
            failed_tool_calls=result.failed_tool_calls,
        )
        return result

    def log_info(self, message: str, **kwargs: Any) -> None:
        """Log info message with agent context."""
        self._logger.info(message, agent=self.name, **kwargs)

    def log_warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message with agent context."""
        self._logger.warning(message, agent=self.name, **kwargs)

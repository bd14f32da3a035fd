"""
Tool-call loop.

Drives a conversation in which the model may request tool invocations:

    AWAITING_MODEL -> (tool calls) -> EXECUTING_TOOLS -> AWAITING_MODEL
    AWAITING_MODEL -> (no tool calls) -> DONE
    more than max_rounds tool rounds -> FAILED (ToolLoopExhausted)

A failing tool never ends the loop: its error is serialized into the
tool-result message so the model can react.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import orjson

from iopulse.config import StageConfig
from iopulse.exceptions import ToolExecutionError, ToolLoopExhausted
from iopulse.llm.base import LLMGateway, LLMRequest, ToolCall
from iopulse.logging import get_logger
from iopulse.tools.base import ToolExecutor

logger = get_logger(__name__)


class LoopState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ToolLoopResult:
    """Outcome of a completed tool loop."""

    text: str
    rounds: int
    tool_calls: int
    failed_tool_calls: int = 0
    messages: list[dict[str, Any]] = field(default_factory=list)


def _serialize(value: Any) -> str:
    return orjson.dumps(value, default=str).decode()


async def _execute_call(
    executor: ToolExecutor,
    call: ToolCall,
    timeout_s: float,
) -> tuple[str, bool]:
    """Run one tool call, returning (tool message content, succeeded)."""
    try:
        result = await asyncio.wait_for(
            executor.execute(call.name, call.arguments), timeout=timeout_s
        )
    except ToolExecutionError as e:
        logger.warning("Tool call failed", tool=call.name, error=e.message)
        return _serialize({"error": e.message, "tool": call.name}), False
    except asyncio.TimeoutError:
        logger.warning("Tool call timed out", tool=call.name, timeout_s=timeout_s)
        return (
            _serialize({"error": f"Tool timed out after {timeout_s}s", "tool": call.name}),
            False,
        )
    except Exception as e:
        logger.warning(
            "Tool call raised unexpected error",
            tool=call.name,
            error_type=type(e).__name__,
            error=str(e),
        )
        return _serialize({"error": f"{type(e).__name__}: {e}", "tool": call.name}), False
    return _serialize(result), True


async def run_with_tools(
    gateway: LLMGateway,
    messages: list[dict[str, Any]],
    tools: list[dict[str, Any]],
    executor: ToolExecutor,
    config: StageConfig,
    max_rounds: int | None = None,
) -> ToolLoopResult:
    """Run a tool-calling conversation until the model answers.

    Args:
        gateway: Model gateway.
        messages: Initial message history (not mutated).
        tools: Tool specs in OpenAI function-calling format.
        executor: Executor answering tool calls.
        config: Model parameters for every round.
        max_rounds: Tool-round budget. Defaults to config.max_tool_rounds.

    Returns:
        ToolLoopResult with the final text.

    Raises:
        GatewayError: If a model call fails.
        ToolLoopExhausted: If the model keeps calling tools past the budget.
    """
    budget = max_rounds if max_rounds is not None else config.max_tool_rounds
    history = list(messages)
    rounds = 0
    tool_calls = 0
    failed = 0
    state = LoopState.AWAITING_MODEL

    while True:
        response = await gateway.complete(
            LLMRequest(
                messages=history,
                model=config.model,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                tools=tools,
                tool_choice="auto",
                timeout_s=config.timeout_s,
            )
        )

        if not response.tool_calls:
            state = LoopState.DONE
            logger.debug("Tool loop finished", state=state.value, rounds=rounds)
            return ToolLoopResult(
                text=response.text,
                rounds=rounds,
                tool_calls=tool_calls,
                failed_tool_calls=failed,
                messages=history,
            )

        rounds += 1
        if rounds > budget:
            state = LoopState.FAILED
            logger.warning("Tool loop exhausted", state=state.value, rounds=budget)
            raise ToolLoopExhausted(budget, context={"tool_calls": tool_calls})

        state = LoopState.EXECUTING_TOOLS
        history.append(
            {
                "role": "assistant",
                "content": response.content or None,
                "tool_calls": [call.to_message() for call in response.tool_calls],
            }
        )
        for call in response.tool_calls:
            tool_calls += 1
            content, ok = await _execute_call(executor, call, config.timeout_s)
            if not ok:
                failed += 1
            history.append({"role": "tool", "tool_call_id": call.id, "content": content})

        logger.debug(
            "Tool round complete",
            state=state.value,
            round=rounds,
            calls=len(response.tool_calls),
        )
        state = LoopState.AWAITING_MODEL

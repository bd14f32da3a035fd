"""
Tool executor interface.

A ToolExecutor answers the model's tool calls. Two implementations exist:
SimulatedToolExecutor (deterministic, no network) and LiveToolExecutor
(CoinGecko). Both return the same result shapes.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

from iopulse.exceptions import ToolExecutionError

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any]]


@runtime_checkable
class ToolExecutor(Protocol):
    """Protocol for tool executors."""

    @property
    def name(self) -> str:
        """Executor name ("simulated" or "live")."""
        ...

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        """Run one tool call.

        Returns:
            A JSON-serializable result.

        Raises:
            ToolExecutionError: If the tool is unknown or fails.
        """
        ...

    async def close(self) -> None:
        ...


class DispatchingExecutor:
    """Base class that routes tool names to `tool_<name>` coroutine methods."""

    executor_name = "base"

    @property
    def name(self) -> str:
        return self.executor_name

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        handler: ToolHandler | None = getattr(self, f"tool_{tool_name}", None)
        if handler is None:
            raise ToolExecutionError(f"Unknown tool: {tool_name}", tool_name=tool_name)
        return await handler(arguments or {})

    async def close(self) -> None:
        return None


def require_symbol(arguments: dict[str, Any], tool_name: str) -> str:
    """Read and normalize the `symbol` argument."""
    symbol = str(arguments.get("symbol") or "").strip().upper()
    if not symbol:
        raise ToolExecutionError("Missing required argument: symbol", tool_name=tool_name)
    return symbol


def require_symbols(arguments: dict[str, Any], tool_name: str) -> list[str]:
    """Read and normalize the `symbols` argument (list or comma string)."""
    raw = arguments.get("symbols")
    if isinstance(raw, str):
        raw = raw.split(",")
    if not raw or not isinstance(raw, list):
        raise ToolExecutionError("Missing required argument: symbols", tool_name=tool_name)
    symbols: list[str] = []
    for item in raw:
        symbol = str(item).strip().upper()
        if symbol and symbol not in symbols:
            symbols.append(symbol)
    return symbols

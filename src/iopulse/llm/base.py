"""
Base classes and interfaces for the model gateway.

This module defines:
- LLMRequest: Standardized request format
- LLMResponse: Standardized response format
- ToolCall: Tool call representation
- LLMGateway: Protocol implemented by every gateway
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import orjson


@dataclass
class ToolCall:
    """Represents a tool call requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any]

    def to_message(self) -> dict[str, Any]:
        """Render as an entry of an assistant message's `tool_calls` list."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": orjson.dumps(self.arguments).decode(),
            },
        }


@dataclass
class LLMRequest:
    """Standardized chat-completion request.

    Sampling parameters come from the calling stage's StageConfig.
    """

    messages: list[dict[str, Any]]  # [{"role": "system"|"user"|"assistant"|"tool", ...}]
    model: str
    temperature: float = 0.1
    max_tokens: int | None = None
    tools: list[dict[str, Any]] | None = None
    tool_choice: str | None = None  # "auto", "none"
    timeout_s: float | None = None


@dataclass
class LLMResponse:
    """Standardized chat-completion response.

    Some reasoning models return their answer in `reasoning_content` with
    an empty `content`; use `text` to read whichever is populated.
    """

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_content: str | None = None
    tool_calls: list[ToolCall] | None = None
    finish_reason: str = "stop"
    latency_ms: int = 0

    @property
    def text(self) -> str:
        """Primary content, falling back to reasoning content."""
        return self.content or self.reasoning_content or ""

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@runtime_checkable
class LLMGateway(Protocol):
    """Protocol for chat-completion gateways."""

    async def complete(self, request: LLMRequest) -> LLMResponse:
        """Send one chat-completion request.

        If `request.tools` is set the response may carry tool_calls
        instead of content.

        Raises:
            GatewayError: If the call fails or returns no usable content.
        """
        ...

    async def close(self) -> None:
        """Close any open connections."""
        ...

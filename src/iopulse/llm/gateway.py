"""
OpenAI-compatible chat-completion gateway.

Talks to any endpoint that speaks the OpenAI chat-completions protocol
(io.net by default) using the AsyncOpenAI client. One call per request:
the gateway never retries. Wrap it in RetryingGateway for a retry policy.
"""

from __future__ import annotations

import time
from typing import Any

import orjson
from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from iopulse.config import Settings
from iopulse.exceptions import GatewayError
from iopulse.llm.base import LLMRequest, LLMResponse, ToolCall
from iopulse.logging import get_logger

logger = get_logger(__name__)


class OpenAICompatibleGateway:
    """Chat-completion gateway for OpenAI-compatible endpoints."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        default_timeout_s: float = 60.0,
    ) -> None:
        """Initialize the gateway.

        Args:
            api_key: API key for the endpoint.
            base_url: Base URL of the endpoint.
            default_timeout_s: Timeout used when a request does not set one.
        """
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=default_timeout_s,
            max_retries=0,
        )
        self._base_url = base_url

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenAICompatibleGateway:
        return cls(
            api_key=settings.LLM_API_KEY,
            base_url=settings.LLM_BASE_URL,
            default_timeout_s=settings.TIMEOUT_DEFAULT_S,
        )

    async def complete(self, request: LLMRequest) -> LLMResponse:
        """Send a chat-completion request.

        Args:
            request: The request. If it carries tools the response may hold
                tool_calls instead of content.

        Returns:
            Normalized response.

        Raises:
            GatewayError: On transport errors, timeouts, non-2xx responses,
                or a response with neither content nor tool calls.
        """
        start_time = time.monotonic()

        params: dict[str, Any] = {
            "model": request.model,
            "messages": request.messages,
            "temperature": request.temperature,
        }
        if request.max_tokens:
            params["max_tokens"] = request.max_tokens
        if request.tools:
            params["tools"] = request.tools
            params["tool_choice"] = request.tool_choice or "auto"
        if request.timeout_s:
            params["timeout"] = request.timeout_s

        try:
            response = await self._client.chat.completions.create(**params)
        except APITimeoutError as e:
            raise GatewayError(
                f"Request to model endpoint timed out after {request.timeout_s}s",
                context={"model": request.model},
            ) from e
        except APIConnectionError as e:
            raise GatewayError(
                f"Network connection to model endpoint failed: {e}",
                context={"model": request.model},
            ) from e
        except APIStatusError as e:
            logger.warning(
                "Model endpoint returned an error status",
                model=request.model,
                status_code=e.status_code,
            )
            raise GatewayError(
                f"Model endpoint error {e.status_code}: {e.message}",
                status_code=e.status_code,
                context={"model": request.model},
            ) from e

        latency_ms = int((time.monotonic() - start_time) * 1000)

        if not response.choices:
            raise GatewayError(
                "No content received from model endpoint",
                context={"model": request.model},
            )

        choice = response.choices[0]
        message = choice.message
        content = message.content or ""
        reasoning_content = getattr(message, "reasoning_content", None) or None
        tool_calls = self._parse_tool_calls(message.tool_calls)

        if not content and not reasoning_content and not tool_calls:
            raise GatewayError(
                "No content received from model endpoint",
                context={"model": request.model, "finish_reason": choice.finish_reason},
            )

        usage = response.usage
        logger.debug(
            "Chat completion finished",
            model=request.model,
            latency_ms=latency_ms,
            tool_calls=len(tool_calls or []),
        )

        return LLMResponse(
            content=content,
            model=response.model or request.model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            reasoning_content=reasoning_content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "stop",
            latency_ms=latency_ms,
        )

    @staticmethod
    def _parse_tool_calls(raw_calls: Any) -> list[ToolCall] | None:
        if not raw_calls:
            return None

        tool_calls: list[ToolCall] = []
        for tc in raw_calls:
            try:
                arguments = orjson.loads(tc.function.arguments or "{}")
            except orjson.JSONDecodeError:
                # Unparseable arguments reach the tool as an empty dict
                arguments = {}
            if not isinstance(arguments, dict):
                arguments = {}
            tool_calls.append(
                ToolCall(id=tc.id, name=tc.function.name, arguments=arguments)
            )
        return tool_calls

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()

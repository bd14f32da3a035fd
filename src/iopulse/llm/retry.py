"""
Caller-side retry policy for gateways.

The gateway makes exactly one attempt per call. Wrapping it in
RetryingGateway opts into retries of transient failures (network errors,
timeouts, 429 and 5xx responses) with exponential backoff.
"""

from __future__ import annotations

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from iopulse.exceptions import GatewayError
from iopulse.llm.base import LLMGateway, LLMRequest, LLMResponse
from iopulse.logging import get_logger

logger = get_logger(__name__)


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, GatewayError) and error.retryable


class RetryingGateway:
    """Gateway wrapper that retries transient failures."""

    def __init__(
        self,
        gateway: LLMGateway,
        max_attempts: int = 3,
        wait_min_s: float = 1.0,
        wait_max_s: float = 30.0,
    ) -> None:
        self._gateway = gateway
        self._max_attempts = max_attempts
        self._wait_min_s = wait_min_s
        self._wait_max_s = wait_max_s

    async def complete(self, request: LLMRequest) -> LLMResponse:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            wait=wait_exponential(multiplier=1, min=self._wait_min_s, max=self._wait_max_s),
            stop=stop_after_attempt(self._max_attempts),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying model call",
                        model=request.model,
                        attempt=attempt.retry_state.attempt_number,
                    )
                return await self._gateway.complete(request)

        raise AssertionError("unreachable")  # pragma: no cover

    async def close(self) -> None:
        await self._gateway.close()

"""
Tests for the opt-in retry wrapper.
"""

from __future__ import annotations

import pytest

from conftest import FakeGateway
from iopulse.exceptions import GatewayError
from iopulse.llm.base import LLMRequest
from iopulse.llm.retry import RetryingGateway


def _request() -> LLMRequest:
    return LLMRequest(messages=[{"role": "user", "content": "hi"}], model="fast-model")


class TestRetryingGateway:
    """Tests for RetryingGateway."""

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self) -> None:
        inner = FakeGateway([GatewayError("busy", status_code=503), "ok"])
        gateway = RetryingGateway(inner, max_attempts=3, wait_min_s=0, wait_max_s=0)

        response = await gateway.complete(_request())

        assert response.content == "ok"
        assert len(inner.requests) == 2

    @pytest.mark.asyncio
    async def test_does_not_retry_client_errors(self) -> None:
        inner = FakeGateway([GatewayError("bad key", status_code=401), "ok"])
        gateway = RetryingGateway(inner, max_attempts=3, wait_min_s=0, wait_max_s=0)

        with pytest.raises(GatewayError) as exc_info:
            await gateway.complete(_request())

        assert exc_info.value.status_code == 401
        assert len(inner.requests) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self) -> None:
        inner = FakeGateway([GatewayError("timeout") for _ in range(3)])
        gateway = RetryingGateway(inner, max_attempts=2, wait_min_s=0, wait_max_s=0)

        with pytest.raises(GatewayError, match="timeout"):
            await gateway.complete(_request())

        assert len(inner.requests) == 2

    @pytest.mark.asyncio
    async def test_close_delegates(self) -> None:
        inner = FakeGateway()
        await RetryingGateway(inner).close()
        assert inner.closed

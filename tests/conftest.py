"""
Pytest configuration and fixtures for iopulse tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, AsyncGenerator, Generator
from unittest.mock import patch

import orjson
import pytest

from iopulse.config import Settings, clear_settings_cache
from iopulse.coordinator.store import AdvisoryStore
from iopulse.llm.base import LLMRequest, LLMResponse, ToolCall
from iopulse.tools.simulated import SimulatedToolExecutor
from iopulse.types import StrategyInput


class FakeGateway:
    """Scripted gateway returning queued responses in order.

    Queue items may be an LLMResponse, a plain string (returned as
    content), or an exception instance (raised).
    """

    def __init__(self, responses: list[Any] | None = None) -> None:
        self.responses = list(responses or [])
        self.requests: list[LLMRequest] = []
        self.closed = False

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    async def complete(self, request: LLMRequest) -> LLMResponse:
        # Snapshot messages: the tool loop keeps appending to the same list
        self.requests.append(
            LLMRequest(
                messages=[dict(m) for m in request.messages],
                model=request.model,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                tools=request.tools,
                tool_choice=request.tool_choice,
                timeout_s=request.timeout_s,
            )
        )
        if not self.responses:
            raise AssertionError("FakeGateway ran out of scripted responses")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, str):
            return LLMResponse(content=item, model=request.model)
        return item

    async def close(self) -> None:
        self.closed = True


def tool_response(*calls: tuple[str, dict[str, Any]]) -> LLMResponse:
    """LLMResponse requesting the given (name, arguments) tool calls."""
    return LLMResponse(
        content="",
        model="fake",
        tool_calls=[
            ToolCall(id=f"call_{i}", name=name, arguments=args)
            for i, (name, args) in enumerate(calls, start=1)
        ],
        finish_reason="tool_calls",
    )


def as_json(value: Any) -> str:
    return orjson.dumps(value).decode()


ETH_PROFILE = {
    "current_holding_symbol": "ETH",
    "risk_tolerance": "medium",
    "desired_market_cap": "high",
    "investment_horizon": "long-term",
}


def happy_path_responses(holding: str = "ETH", profile: dict | None = None) -> list:
    """Scripted model responses for a complete run with candidates BTC and SOL."""
    scored = ["BTC", "SOL", holding] if holding not in ("BTC", "SOL") else ["BTC", "SOL"]
    return [
        as_json(profile or ETH_PROFILE),
        tool_response(("listing_coins", {})),
        '["BTC", "SOL"]',
        tool_response(("search_the_web", {"query": "Solana outages"})),
        as_json([{"symbol": s, "qualitative_score": 7, "justification": "ok"} for s in scored]),
        as_json(
            {
                "recommendation": f"Don't swap anything and hold {holding} for more 2 weeks",
                "explanation": "No alternative beats the holding by the required margin.",
            }
        ),
    ]


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing.

    Sets up a fake API key and deterministic configuration.
    """
    env_vars = {
        "LLM_API_KEY": "io-test-fake-key-1234567890",
        "LLM_BASE_URL": "http://llm.test/api/v1/",
        "MODEL_FAST": "fast-model",
        "MODEL_REASONING": "reasoning-model",
        "MODEL_PROFILE": "",
        "MODEL_SCREENER": "",
        "MODEL_QUALITATIVE": "",
        "MODEL_COMMITTEE": "",
        "LLM_MAX_ATTEMPTS": "1",
        "MAX_TOOL_ROUNDS": "4",
        "TOOL_EXECUTOR": "simulated",
        "DATABASE_PATH": str(temp_dir / "iopulse.db"),
        "LOG_LEVEL": "DEBUG",
        "PRODUCTION_MODE": "true",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        # Clear any cached settings
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Generator[Settings, None, None]:
    """Provide a Settings instance with mock configuration."""
    settings = Settings(_env_file=None)
    yield settings
    clear_settings_cache()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def simulated_tools() -> SimulatedToolExecutor:
    return SimulatedToolExecutor()


@pytest.fixture
def strategy() -> StrategyInput:
    return StrategyInput(
        name="Blue Chip Momentum",
        description="Medium risk, large caps, hold for months",
        coin="ETH",
        amount="2.5",
    )


@pytest.fixture
async def store(temp_dir: Path) -> AsyncGenerator[AdvisoryStore, None]:
    """Provide an initialized AdvisoryStore on a temp database."""
    advisory_store = AdvisoryStore(temp_dir / "test.db")
    await advisory_store.init()
    yield advisory_store
    await advisory_store.close()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()

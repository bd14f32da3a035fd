"""
Tests for tool executors and tool specs.
"""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from iopulse.config import Settings
from iopulse.exceptions import ToolExecutionError
from iopulse.tools import LiveToolExecutor, SimulatedToolExecutor, create_tool_executor
from iopulse.tools.base import require_symbols
from iopulse.tools.simulated import (
    COIN_UNIVERSE,
    HISTORY_DAYS,
    percent_change,
    price_path,
    volatility_tier,
)
from iopulse.tools.specs import QUALITATIVE_TOOLS, SCREENER_TOOLS


def _tool_names(specs: list[dict[str, Any]]) -> list[str]:
    return [spec["function"]["name"] for spec in specs]


class TestToolSpecs:
    """Tests for the tool catalogue."""

    def test_catalogue(self) -> None:
        assert _tool_names(SCREENER_TOOLS) == ["listing_coins", "get_coin_quotes"]
        assert _tool_names(QUALITATIVE_TOOLS) == ["get_coin_info", "search_the_web"]

    def test_function_format(self) -> None:
        for spec in [*SCREENER_TOOLS, *QUALITATIVE_TOOLS]:
            assert spec["type"] == "function"
            assert spec["function"]["parameters"]["type"] == "object"


class TestRequireSymbols:
    """Tests for argument normalization."""

    def test_list_and_string(self) -> None:
        assert require_symbols({"symbols": ["btc", "ETH", "btc"]}, "t") == ["BTC", "ETH"]
        assert require_symbols({"symbols": "sol, avax"}, "t") == ["SOL", "AVAX"]

    def test_missing(self) -> None:
        with pytest.raises(ToolExecutionError):
            require_symbols({}, "get_coin_quotes")


class TestSimulatedData:
    """Tests for deterministic price paths."""

    def test_price_path_is_deterministic(self) -> None:
        assert price_path("SOL") == price_path("SOL")
        assert price_path("SOL") != price_path("AVAX")

    def test_price_path_ends_at_profile_price(self) -> None:
        path = price_path("BTC")
        assert len(path) == HISTORY_DAYS + 1
        assert path[-1] == COIN_UNIVERSE["BTC"].price

    def test_stablecoins_barely_move(self) -> None:
        assert volatility_tier("USDC") == "stable"
        assert abs(percent_change("USDC", 30)) < 5

    def test_tiers(self) -> None:
        assert volatility_tier("BTC") == "large"
        assert volatility_tier("SOL") == "established"
        assert volatility_tier("PEPE") == "small"


class TestSimulatedToolExecutor:
    """Tests for SimulatedToolExecutor."""

    @pytest.mark.asyncio
    async def test_listing_coins(self, simulated_tools: SimulatedToolExecutor) -> None:
        result = await simulated_tools.execute("listing_coins", {})

        assert result["total_coins"] == len(COIN_UNIVERSE)
        assert result["coins"][0]["symbol"] == "BTC"
        assert result["coins"][0]["market_cap_rank"] == 1

    @pytest.mark.asyncio
    async def test_quotes(self, simulated_tools: SimulatedToolExecutor) -> None:
        result = await simulated_tools.execute("get_coin_quotes", {"symbols": ["eth", "ZZZ"]})

        assert set(result) == {"ETH", "ZZZ"}
        assert result["ETH"]["price"] == COIN_UNIVERSE["ETH"].price
        assert isinstance(result["ZZZ"]["change_24h"], float)

    @pytest.mark.asyncio
    async def test_historical(self, simulated_tools: SimulatedToolExecutor) -> None:
        result = await simulated_tools.execute(
            "get_coin_quotes_historical", {"symbol": "SOL", "days": 90}
        )

        assert result["timeframe"] == "90d"
        assert result["data_points"] == 91
        assert result["price_change_percentage"] == percent_change("SOL", 90)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("days", [0, 366, "soon"])
    async def test_historical_bad_days(
        self, simulated_tools: SimulatedToolExecutor, days: Any
    ) -> None:
        with pytest.raises(ToolExecutionError):
            await simulated_tools.execute(
                "get_coin_quotes_historical", {"symbol": "SOL", "days": days}
            )

    @pytest.mark.asyncio
    async def test_coin_info(self, simulated_tools: SimulatedToolExecutor) -> None:
        result = await simulated_tools.execute("get_coin_info", {"symbol": "link"})
        assert result["name"] == "Chainlink"

    @pytest.mark.asyncio
    async def test_coin_info_unknown(self, simulated_tools: SimulatedToolExecutor) -> None:
        with pytest.raises(ToolExecutionError, match="Unable to find coin information"):
            await simulated_tools.execute("get_coin_info", {"symbol": "NOPE"})

    @pytest.mark.asyncio
    async def test_search_reports_risk_notes(
        self, simulated_tools: SimulatedToolExecutor
    ) -> None:
        result = await simulated_tools.execute("search_the_web", {"query": "Solana outages"})

        assert result["total_results"] == 1
        assert "outages" in result["results"][0]["snippet"]

    @pytest.mark.asyncio
    async def test_search_clean_record(self, simulated_tools: SimulatedToolExecutor) -> None:
        result = await simulated_tools.execute("search_the_web", {"query": "Chainlink hacks"})

        assert result["total_results"] == 1
        assert "No hacks" in result["results"][0]["snippet"]

    @pytest.mark.asyncio
    async def test_unknown_tool(self, simulated_tools: SimulatedToolExecutor) -> None:
        with pytest.raises(ToolExecutionError, match="Unknown tool: trade"):
            await simulated_tools.execute("trade", {})


def _coingecko_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/simple/price"):
        ids = request.url.params["ids"].split(",")
        return httpx.Response(
            200,
            json={
                coin_id: {
                    "usd": 100.0,
                    "usd_24h_change": 2.5,
                    "usd_24h_vol": 1e6,
                    "usd_market_cap": 1e9,
                }
                for coin_id in ids
            },
        )
    if path.endswith("/coins/list"):
        return httpx.Response(200, json=[{"id": "render-token", "symbol": "render"}])
    if path.endswith("/coins/solana/market_chart"):
        return httpx.Response(200, json={"prices": [[0, 100.0], [1, 110.0], [2, 125.0]]})
    if path.endswith("/coins/markets"):
        return httpx.Response(
            200,
            json=[
                {
                    "symbol": "btc",
                    "name": "Bitcoin",
                    "market_cap_rank": 1,
                    "current_price": 95000,
                    "market_cap": 1.8e12,
                    "price_change_percentage_24h": 1.2,
                    "total_volume": 3e10,
                }
            ],
        )
    if path.endswith("/coins/chainlink"):
        return httpx.Response(
            200,
            json={
                "symbol": "link",
                "name": "Chainlink",
                "categories": ["Oracle"],
                "description": {"en": "<p>Decentralized <b>oracle</b> network.</p>"},
                "links": {"homepage": ["https://chain.link"], "repos_url": {"github": []}},
                "market_data": {"current_price": {"usd": 18.0}, "market_cap": {"usd": 1.1e10}},
                "market_cap_rank": 15,
            },
        )
    return httpx.Response(500, json={"error": "boom"})


@pytest.fixture
async def live_tools():
    executor = LiveToolExecutor(
        base_url="https://api.coingecko.test/api/v3",
        transport=httpx.MockTransport(_coingecko_handler),
    )
    yield executor
    await executor.close()


class TestLiveToolExecutor:
    """Tests for LiveToolExecutor against a mocked CoinGecko."""

    @pytest.mark.asyncio
    async def test_quotes_map_ids_back_to_symbols(self, live_tools: LiveToolExecutor) -> None:
        result = await live_tools.execute("get_coin_quotes", {"symbols": ["BTC", "ETH"]})

        assert set(result) == {"BTC", "ETH"}
        assert result["BTC"]["price"] == 100.0
        assert result["ETH"]["change_24h"] == 2.5

    @pytest.mark.asyncio
    async def test_unknown_symbol_resolved_via_coin_list(
        self, live_tools: LiveToolExecutor
    ) -> None:
        result = await live_tools.execute("get_coin_quotes", {"symbols": ["RENDER"]})
        assert "RENDER" in result

    @pytest.mark.asyncio
    async def test_historical_change(self, live_tools: LiveToolExecutor) -> None:
        result = await live_tools.execute(
            "get_coin_quotes_historical", {"symbol": "SOL", "days": 90}
        )

        assert result["price_change_percentage"] == 25.0
        assert result["data_points"] == 3

    @pytest.mark.asyncio
    async def test_listing(self, live_tools: LiveToolExecutor) -> None:
        result = await live_tools.execute("listing_coins", {})
        assert result["coins"][0]["symbol"] == "BTC"

    @pytest.mark.asyncio
    async def test_coin_info_strips_html(self, live_tools: LiveToolExecutor) -> None:
        result = await live_tools.execute("get_coin_info", {"symbol": "LINK"})

        assert result["description"] == "Decentralized oracle network."
        assert result["website"] == "https://chain.link"
        assert result["github"] is None

    @pytest.mark.asyncio
    async def test_http_error_becomes_tool_error(self, live_tools: LiveToolExecutor) -> None:
        with pytest.raises(ToolExecutionError, match="status 500"):
            await live_tools.execute("get_coin_info", {"symbol": "BTC"})

    @pytest.mark.asyncio
    async def test_non_json_body_becomes_tool_error(self) -> None:
        executor = LiveToolExecutor(
            base_url="https://api.coingecko.test/api/v3",
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, text="<html>busy</html>")
            ),
        )

        try:
            with pytest.raises(ToolExecutionError, match="not valid JSON"):
                await executor.execute("listing_coins", {})
        finally:
            await executor.close()

    @pytest.mark.asyncio
    async def test_search_not_configured(self, live_tools: LiveToolExecutor) -> None:
        result = await live_tools.execute("search_the_web", {"query": "BTC"})

        assert result["results"] == []
        assert result["simulated"] is True


class TestCreateToolExecutor:
    """Tests for explicit executor selection."""

    def test_simulated_by_default(self, mock_settings: Settings) -> None:
        assert isinstance(create_tool_executor(mock_settings), SimulatedToolExecutor)

    def test_live_when_configured(self, mock_settings: Settings) -> None:
        settings = mock_settings.model_copy(update={"TOOL_EXECUTOR": "live"})
        executor = create_tool_executor(settings)

        assert isinstance(executor, LiveToolExecutor)
        assert executor.name == "live"

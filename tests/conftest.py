"""Pytest configuration and shared fixtures for testing."""

import asyncio
import os
from typing import Any, AsyncGenerator, Optional

import httpx
import pytest

from trade_mcp.client_manager import ZeroXClientManager
from trade_mcp.config import TradeConfig
from trade_mcp.trade_store import InMemoryTradeStore
from trade_mcp.trading_service import TradingService


# Configure pytest-asyncio
pytest_plugins = ("pytest_asyncio",)

USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
TAKER = "0x5ce9454909639D2D17A3F753ce7d93fa0b9aB12E"
EXCHANGE_PROXY = "0xDef1C0ded9bec7F1a1670819833240f027b25EfF"
ALLOWANCE_TARGET = "0x0000000000001fF3684f28c67538d4D072C22734"
FIXED_NOW = 1_700_000_000.0

# Read before clean_env strips ZEROX_* from the environment.
LIVE_API_KEY = os.getenv("ZEROX_API_KEY")

_ENV_PREFIXES = (
    "ZEROX_",
    "PLATFORM_FEE_",
    "FEE_RECIPIENT",
    "DEFAULT_SLIPPAGE_",
    "DEFAULT_CHAIN_",
    "API_RATE_",
    "QUOTE_TIMEOUT_",
    "AUX_TIMEOUT_",
    "ONCHAIN_ALLOWANCE",
    "TRADE_RECORD_",
    "LOG_LEVEL",
    "HTTP_HOST",
    "HTTP_PORT",
    "RPC_URL_",
)


def quote_payload(**overrides: Any) -> dict[str, Any]:
    """A 1 USDC -> WETH quote as the aggregator returns it."""
    payload: dict[str, Any] = {
        "chainId": 1,
        "price": "0.0004",
        "guaranteedPrice": "0.000396",
        "sellAmount": "1000000",
        "buyAmount": "400000000000000",
        "sources": [
            {"name": "Uniswap_V3", "proportion": "0.6"},
            {"name": "Curve", "proportion": "0.4"},
            {"name": "Balancer", "proportion": "0"},
        ],
        "allowanceTarget": ALLOWANCE_TARGET,
        "to": EXCHANGE_PROXY,
        "data": "0xd9627aa40000",
        "value": "0",
        "estimatedGas": "180000",
        "gasPrice": "20000000000",
        "orders": [{"source": "Uniswap_V3", "makerAmount": "240000000000000"}],
    }
    payload.update(overrides)
    return payload


class FakeAggregator:
    """httpx mock handler standing in for the 0x API."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.payload: Any = quote_payload()
        self.raw_body: Optional[bytes] = None
        self.delay = 0.0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raw_body is not None:
            return httpx.Response(self.status_code, content=self.raw_body)
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def last_params(self) -> dict[str, str]:
        return dict(self.requests[-1].url.params)


class FixedClock:
    def __init__(self, now: float = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def test_config() -> TradeConfig:
    """Provide a test configuration."""
    return TradeConfig(api_key="test-api-key")


@pytest.fixture
def fake_aggregator() -> FakeAggregator:
    return FakeAggregator()


@pytest.fixture
async def http_client(fake_aggregator: FakeAggregator) -> AsyncGenerator[httpx.AsyncClient, None]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_aggregator))
    yield client
    await client.aclose()


@pytest.fixture
def client_manager(test_config: TradeConfig, http_client: httpx.AsyncClient) -> ZeroXClientManager:
    return ZeroXClientManager(test_config, http_client=http_client)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def trade_store(clock: FixedClock) -> InMemoryTradeStore:
    return InMemoryTradeStore(timer=clock)


@pytest.fixture
def service(
    test_config: TradeConfig,
    client_manager: ZeroXClientManager,
    trade_store: InMemoryTradeStore,
    clock: FixedClock,
) -> TradingService:
    """Service wired to the fake aggregator and the zero-allowance reader."""
    return TradingService(
        config=test_config,
        client_manager=client_manager,
        store=trade_store,
        clock=clock,
    )


@pytest.fixture(autouse=True)
def clean_env():
    """Clean environment variables before each test."""
    # Store original environment
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith(_ENV_PREFIXES):
            del os.environ[key]

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


# Integration test fixtures (for real API testing)


@pytest.fixture
def integration_config() -> TradeConfig:
    """
    Load configuration for integration tests from environment.

    These tests are skipped unless a real ZEROX_API_KEY is available.
    """
    if not LIVE_API_KEY:
        pytest.skip("Integration test credentials not configured")
    return TradeConfig(api_key=LIVE_API_KEY)


@pytest.fixture
async def integration_service(
    integration_config: TradeConfig,
) -> AsyncGenerator[TradingService, None]:
    """Service talking to the live 0x API."""
    service = TradingService(
        config=integration_config,
        client_manager=ZeroXClientManager(integration_config),
    )
    yield service
    await service.aclose()


# Pytest configuration


def pytest_collection_modifyitems(config, items):
    """Automatically mark integration tests."""
    for item in items:
        if "test_integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)

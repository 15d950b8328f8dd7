"""Tests for the HTTP routes."""

from dataclasses import replace

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import ALLOWANCE_TARGET, TAKER, USDC, WETH, FixedClock
from trade_mcp.client_manager import ZeroXClientManager
from trade_mcp.http_api import create_app
from trade_mcp.trade_store import InMemoryTradeStore
from trade_mcp.trading_service import TradingService

QUOTE_QUERY = {"sellToken": USDC, "buyToken": WETH, "sellAmount": "1000000", "chainId": "1"}


@pytest.fixture
def api_service(test_config, fake_aggregator) -> TradingService:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_aggregator))
    clock = FixedClock()
    return TradingService(
        config=test_config,
        client_manager=ZeroXClientManager(test_config, http_client=http_client),
        store=InMemoryTradeStore(timer=clock),
        clock=clock,
    )


@pytest.fixture
def client(api_service) -> TestClient:
    return TestClient(create_app(api_service))


class TestQuoteRoutes:
    """Tests for /trade/quote."""

    def test_get_quote(self, client, fake_aggregator):
        response = client.get("/trade/quote", params=QUOTE_QUERY)

        assert response.status_code == 200
        body = response.json()
        assert body["chainName"] == "Ethereum"
        assert body["metadata"]["expiresAt"] - body["metadata"]["quotedAt"] == 30_000
        assert fake_aggregator.last_params["sellAmount"] == "1000000"

    def test_post_quote(self, client):
        body = {"sellToken": USDC, "buyToken": WETH, "buyAmount": "5", "chainId": 1, "slippageBps": 30}
        response = client.post("/trade/quote", json=body)

        assert response.status_code == 200
        assert response.json()["trading"]["slippageBps"] == 30

    def test_missing_amount(self, client, fake_aggregator):
        query = {key: value for key, value in QUOTE_QUERY.items() if key != "sellAmount"}
        response = client.get("/trade/quote", params=query)

        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidRequest"
        assert fake_aggregator.requests == []

    def test_unsupported_chain(self, client):
        response = client.get("/trade/quote", params={**QUOTE_QUERY, "chainId": "999999"})

        assert response.status_code == 400
        assert response.json()["error_type"] == "UnsupportedChain"

    def test_upstream_status_passthrough(self, client, fake_aggregator):
        fake_aggregator.status_code = 503
        fake_aggregator.payload = {"reason": "maintenance"}

        response = client.get("/trade/quote", params=QUOTE_QUERY)

        assert response.status_code == 503
        body = response.json()
        assert body["error"] == "Failed to get quote from 0x API"
        assert "maintenance" in body["details"]["details"]

    def test_timeout(self, api_service, fake_aggregator):
        api_service.config = replace(api_service.config, quote_timeout=0.05)
        fake_aggregator.delay = 5.0

        response = TestClient(create_app(api_service)).get("/trade/quote", params=QUOTE_QUERY)

        assert response.status_code == 408
        assert response.json()["error"] == "Request timeout - please try again"

    def test_malformed_json(self, client):
        response = client.post(
            "/trade/quote", content=b"{", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400

    def test_non_object_json(self, client):
        response = client.post("/trade/quote", json=["not", "an", "object"])
        assert response.status_code == 400


class TestSwapRoutes:
    """Tests for /trade/swap."""

    def test_swap_lifecycle(self, client):
        body = {**QUOTE_QUERY, "chainId": 1, "takerAddress": TAKER}
        created = client.post("/trade/swap", json=body)
        assert created.status_code == 200
        trade = created.json()["trade"]
        assert trade["allowanceTarget"] == ALLOWANCE_TARGET

        tx_hash = "0x" + "ef" * 32
        updated = client.patch(
            "/trade/swap",
            params={"tradeId": trade["id"]},
            json={"status": "completed", "transactionHash": tx_hash},
        )
        assert updated.status_code == 200
        assert updated.json()["status"] == "completed"

        fetched = client.get("/trade/swap", params={"tradeId": trade["id"]})
        assert fetched.status_code == 200
        assert fetched.json()["transactionHash"] == tx_hash

    def test_swap_requires_taker(self, client):
        response = client.post("/trade/swap", json={**QUOTE_QUERY, "chainId": 1})
        assert response.status_code == 400

    def test_unknown_trade(self, client):
        response = client.get("/trade/swap", params={"tradeId": "trade_0_missing"})
        assert response.status_code == 404
        assert response.json()["error"] == "Trade not found"

    def test_missing_trade_id(self, client):
        response = client.get("/trade/swap")
        assert response.status_code == 400


class TestAllowanceRoutes:
    def test_get_allowance(self, client):
        response = client.get(
            "/trade/allowance",
            params={"tokenAddress": USDC, "ownerAddress": TAKER, "chainId": "1"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["isApprovalNeeded"] is True
        assert body["approvalTransaction"]["data"].startswith("0x095ea7b3")

    def test_allowance_rejects_base58_token_on_evm_chain(self, client):
        response = client.get(
            "/trade/allowance",
            params={
                "tokenAddress": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
                "ownerAddress": TAKER,
                "chainId": "1",
            },
        )
        assert response.status_code == 400
        assert response.json()["details"]["field"] == "tokenAddress"

    def test_post_allowance_solana(self, client):
        response = client.post(
            "/trade/allowance",
            json={
                "tokenAddress": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
                "ownerAddress": "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM",
                "chainId": 101,
            },
        )
        assert response.status_code == 400


class TestFeeRoutes:
    """Tests for /trade/fees and /trade/chains."""

    def test_post_fees(self, client):
        response = client.post(
            "/trade/fees", json={"buyAmount": "1000000", "sellAmount": "500000", "customFeeBps": 50}
        )
        assert response.status_code == 200
        assert response.json()["breakdown"]["userReceives"] == "995000"

    def test_get_fees(self, client):
        response = client.get("/trade/fees", params={"buyAmount": "1000000", "sellAmount": "1"})
        assert response.status_code == 200
        assert response.json()["platformFee"]["amount"] == "5000"

    def test_get_fees_out_of_range(self, client):
        response = client.post(
            "/trade/fees", json={"buyAmount": "1", "sellAmount": "1", "customFeeBps": 20_000}
        )
        assert response.status_code == 400

    def test_fee_history(self, client):
        response = client.get("/trade/fees", params={"action": "history"})
        assert response.status_code == 200
        assert response.json()["totalTrades"] == 0

    def test_fee_config(self, client):
        response = client.get("/trade/fees", params={"action": "config"})
        assert response.status_code == 200
        assert response.json()["platformFeeBps"] == 50

    def test_unknown_action(self, client):
        response = client.get("/trade/fees", params={"action": "refund"})
        assert response.status_code == 400

    def test_chains(self, client):
        response = client.get("/trade/chains", params={"feature": "gasless"})
        assert response.status_code == 200
        body = response.json()
        assert body["count"] == len(body["chains"])
        assert body["defaultChainId"] == 1


class TestEstimateAndAmountRoutes:
    """Tests for /trade/estimate and /trade/amount/*."""

    def test_get_estimate(self, client):
        response = client.get("/trade/estimate", params=QUOTE_QUERY)

        assert response.status_code == 200
        summary = response.json()["summary"]
        assert summary["youPay"] == "1000000"
        assert summary["gasEstimate"] == "180000"

    def test_post_estimate_validation(self, client, fake_aggregator):
        response = client.post(
            "/trade/estimate", json={"sellToken": USDC, "buyToken": WETH, "chainId": 1}
        )
        assert response.status_code == 400
        assert fake_aggregator.requests == []

    def test_parse_amount(self, client):
        response = client.get("/trade/amount/parse", params={"amount": "1.5", "decimals": "18"})
        assert response.status_code == 200
        assert response.json()["baseUnits"] == "1500000000000000000"

    def test_format_amount(self, client):
        response = client.get("/trade/amount/format", params={"amount": "1500000", "decimals": "6"})
        assert response.status_code == 200
        assert response.json()["formatted"] == "1.5"

    def test_parse_amount_overflow(self, client):
        response = client.get(
            "/trade/amount/parse", params={"amount": "1" + "0" * 78, "decimals": "0"}
        )
        assert response.status_code == 400
        assert response.json()["details"]["field"] == "amount"

"""Tests for approval calldata and allowance readers."""

import json

import httpx
import pytest

from trade_mcp.allowance import (
    ALLOWANCE_SELECTOR,
    APPROVE_SELECTOR,
    RpcAllowanceReader,
    ZeroAllowanceReader,
    build_allowance_calldata,
    build_approval_transaction,
    build_approve_calldata,
)
from trade_mcp.chains import get_chain_config
from trade_mcp.errors import InvalidRequestError, UpstreamError, UpstreamTimeoutError
from trade_mcp.fees import MAX_UINT256

TOKEN = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
OWNER = "0x5ce9454909639D2D17A3F753ce7d93fa0b9aB12E"
SPENDER = "0x0000000000001fF3684f28c67538d4D072C22734"


class TestCalldata:
    """Tests for ABI-encoded calldata."""

    def test_selectors(self):
        assert APPROVE_SELECTOR == "0x095ea7b3"
        assert ALLOWANCE_SELECTOR == "0xdd62ed3e"

    def test_approve_max(self):
        data = build_approve_calldata(SPENDER)

        assert data.startswith("0x095ea7b3")
        assert len(data) == 2 + 8 + 64 * 2
        assert data[10:74] == SPENDER[2:].lower().rjust(64, "0")
        assert data[74:] == "f" * 64

    def test_approve_amount(self):
        data = build_approve_calldata(SPENDER, 1)
        assert data[74:] == "0" * 63 + "1"

    def test_allowance_calldata(self):
        data = build_allowance_calldata(OWNER, SPENDER)

        assert data.startswith("0xdd62ed3e")
        assert data[10:74] == OWNER[2:].lower().rjust(64, "0")
        assert data[74:] == SPENDER[2:].lower().rjust(64, "0")

    def test_unencodable_address(self):
        with pytest.raises(InvalidRequestError):
            build_approve_calldata("EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v")

    def test_approval_transaction(self):
        tx = build_approval_transaction(TOKEN, SPENDER)
        assert tx.to_dict() == {
            "to": TOKEN,
            "data": build_approve_calldata(SPENDER),
            "value": "0",
            "estimatedGas": "50000",
        }


async def test_zero_reader():
    reader = ZeroAllowanceReader()
    assert await reader.read_allowance(get_chain_config(1), TOKEN, OWNER, SPENDER) == 0


def _rpc_result(value: int) -> dict:
    return {"jsonrpc": "2.0", "id": 1, "result": "0x" + value.to_bytes(32, "big").hex()}


class TestRpcAllowanceReader:
    """Tests for the eth_call allowance reader."""

    async def test_reads_allowance(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_rpc_result(12345))

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            reader = RpcAllowanceReader(http_client=client)
            allowance = await reader.read_allowance(get_chain_config(1), TOKEN, OWNER, SPENDER)

        assert allowance == 12345
        body = json.loads(seen[0].content)
        assert body["method"] == "eth_call"
        assert body["params"][0] == {
            "to": TOKEN,
            "data": build_allowance_calldata(OWNER, SPENDER),
        }
        assert seen[0].url.host == "eth.llamarpc.com"

    async def test_max_allowance(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=_rpc_result(MAX_UINT256))

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            reader = RpcAllowanceReader(http_client=client)
            assert await reader.read_allowance(get_chain_config(1), TOKEN, OWNER, SPENDER) == MAX_UINT256

    async def test_rpc_url_override(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.host)
            return httpx.Response(200, json=_rpc_result(0))

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            reader = RpcAllowanceReader(
                http_client=client, rpc_urls={137: "https://polygon.example.org/"}
            )
            await reader.read_allowance(get_chain_config(137), TOKEN, OWNER, SPENDER)

        assert seen == ["polygon.example.org"]

    async def test_rpc_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "execution reverted"}}
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            reader = RpcAllowanceReader(http_client=client)
            with pytest.raises(UpstreamError):
                await reader.read_allowance(get_chain_config(1), TOKEN, OWNER, SPENDER)

    async def test_short_result(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            reader = RpcAllowanceReader(http_client=client)
            with pytest.raises(UpstreamError, match="short result"):
                await reader.read_allowance(get_chain_config(1), TOKEN, OWNER, SPENDER)

    async def test_http_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            reader = RpcAllowanceReader(http_client=client)
            with pytest.raises(UpstreamError) as exc_info:
                await reader.read_allowance(get_chain_config(1), TOKEN, OWNER, SPENDER)

        assert exc_info.value.http_status == 503

    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow node", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            reader = RpcAllowanceReader(http_client=client)
            with pytest.raises(UpstreamTimeoutError):
                await reader.read_allowance(get_chain_config(1), TOKEN, OWNER, SPENDER)

    async def test_non_evm_owner_is_invalid_request(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_rpc_result(0))

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            reader = RpcAllowanceReader(http_client=client)
            with pytest.raises(InvalidRequestError):
                await reader.read_allowance(
                    get_chain_config(1), TOKEN, "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM", SPENDER
                )

        assert seen == []

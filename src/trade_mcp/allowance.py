"""ERC-20 allowance reads and approval calldata."""

from typing import Optional, Protocol

import httpx
from eth_abi import decode, encode
from eth_abi.exceptions import EncodingError
from eth_utils import function_signature_to_4byte_selector

from .chains import ChainConfig
from .errors import InvalidRequestError, UpstreamError, UpstreamTimeoutError
from .fees import MAX_UINT256
from .logger import get_logger
from .models import ApprovalTransaction

log = get_logger(__name__)

APPROVE_SELECTOR = "0x" + function_signature_to_4byte_selector("approve(address,uint256)").hex()
ALLOWANCE_SELECTOR = "0x" + function_signature_to_4byte_selector("allowance(address,address)").hex()

# Anything below an unlimited approval asks the user to approve again.
FULL_APPROVAL_THRESHOLD = MAX_UINT256
APPROVAL_GAS_ESTIMATE = "50000"


def _encode(types: list[str], values: list) -> str:
    try:
        return encode(types, values).hex()
    except EncodingError as exc:
        raise InvalidRequestError(
            f"Cannot ABI-encode {values!r} as {types!r}",
            constraint="0x-prefixed 20-byte addresses and uint256 amounts",
        ) from exc


def build_approve_calldata(spender: str, amount: int = MAX_UINT256) -> str:
    """approve(spender, amount) calldata: selector + two 32-byte words."""
    # eth_abi validates checksums on mixed-case input; lower-case is always accepted.
    return APPROVE_SELECTOR + _encode(["address", "uint256"], [spender.lower(), amount])


def build_allowance_calldata(owner: str, spender: str) -> str:
    return ALLOWANCE_SELECTOR + _encode(["address", "address"], [owner.lower(), spender.lower()])


def build_approval_transaction(token_address: str, spender: str) -> ApprovalTransaction:
    return ApprovalTransaction(
        to=token_address,
        data=build_approve_calldata(spender),
        value="0",
        estimated_gas=APPROVAL_GAS_ESTIMATE,
    )


class AllowanceReader(Protocol):
    async def read_allowance(
        self, chain: ChainConfig, token_address: str, owner: str, spender: str
    ) -> int: ...


class ZeroAllowanceReader:
    """Reports zero allowance for every owner.

    Placeholder used when no chain client is configured: every check asks
    the user to approve, which is always safe to sign.
    """

    async def read_allowance(
        self, chain: ChainConfig, token_address: str, owner: str, spender: str
    ) -> int:
        log.debug(
            "[ALLOWANCE][READ][STUB] chain=%s token=%s owner=%s -> 0",
            chain.id,
            token_address,
            owner,
        )
        return 0


class RpcAllowanceReader:
    """Reads ``allowance(owner, spender)`` with a JSON-RPC ``eth_call``."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 3.0,
        rpc_urls: Optional[dict[int, str]] = None,
    ) -> None:
        self._http_client = http_client
        self.timeout = timeout
        self.rpc_urls = rpc_urls or {}

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._http_client

    async def read_allowance(
        self, chain: ChainConfig, token_address: str, owner: str, spender: str
    ) -> int:
        rpc_url = self.rpc_urls.get(chain.id, chain.rpc_url)
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_call",
            "params": [
                {"to": token_address, "data": build_allowance_calldata(owner, spender)},
                "latest",
            ],
        }
        try:
            response = await self.http.post(rpc_url, json=payload, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError(timeout=self.timeout, endpoint="eth_call") from exc
        except httpx.RequestError as exc:
            raise UpstreamError(
                message=f"Failed to reach RPC endpoint for chain {chain.id}"
            ) from exc

        if not response.is_success:
            raise UpstreamError(
                message=f"RPC endpoint for chain {chain.id} rejected eth_call",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamError(message="RPC endpoint returned a non-JSON body") from exc

        if not isinstance(body, dict) or "error" in body or "result" not in body:
            raise UpstreamError(
                message="RPC eth_call failed",
                body=response.text,
            )

        raw = bytes.fromhex(str(body["result"]).removeprefix("0x"))
        if len(raw) < 32:
            raise UpstreamError(
                message="RPC eth_call returned a short result; is the token an ERC-20?",
                body=response.text,
            )
        (allowance,) = decode(["uint256"], raw[:32])
        log.debug(
            "[ALLOWANCE][READ][RPC] chain=%s token=%s owner=%s allowance=%s",
            chain.id,
            token_address,
            owner,
            allowance,
        )
        return int(allowance)

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

"""Input validation helpers."""

import re
from typing import Any, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .chains import SOLANA_CHAIN_ID
from .errors import InvalidRequestError

_EVM_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")
_SOLANA_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")
_TX_HASH = re.compile(r"^0x[0-9a-fA-F]{64}$")

ParamsT = TypeVar("ParamsT", bound=BaseModel)


def _normalize_address(value: str) -> str:
    address = value.strip()
    if not address:
        raise ValueError("Address cannot be empty")
    if address.startswith("0x"):
        if not _EVM_ADDRESS.match(address):
            raise ValueError("EVM address must be 0x followed by 40 hex characters")
        return address
    if not _SOLANA_ADDRESS.match(address):
        raise ValueError("Address must be a 0x-prefixed EVM address or a base58 Solana address")
    return address


def _normalize_evm_address(value: str) -> str:
    address = _normalize_address(value)
    if not _EVM_ADDRESS.match(address):
        raise ValueError("Address must be 0x followed by 40 hex characters")
    return address


def _check_address_for_chain(address: str, chain_id: int, field: str) -> None:
    if chain_id == SOLANA_CHAIN_ID:
        if not _SOLANA_ADDRESS.match(address):
            raise ValueError(f"{field} must be a base58 address on Solana")
    elif not _EVM_ADDRESS.match(address):
        raise ValueError(f"{field} must be a 0x-prefixed EVM address on chain {chain_id}")


def _normalize_amount(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("Amount must be an integer string in base units")
    if isinstance(value, int):
        value = str(value)
    if not isinstance(value, str):
        raise ValueError("Amount must be an integer string in base units")
    cleaned = value.strip()
    if not cleaned:
        return None
    if not (cleaned.isascii() and cleaned.isdigit()):
        raise ValueError("Amount must be a non-negative integer string in base units")
    return cleaned


class _CamelModel(BaseModel):
    """Accepts both snake_case (MCP tools) and camelCase (HTTP bodies)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuoteParams(_CamelModel):
    sell_token: str = Field(min_length=1)
    buy_token: str = Field(min_length=1)
    sell_amount: Optional[str] = None
    buy_amount: Optional[str] = None
    chain_id: int
    taker_address: Optional[str] = None
    slippage_bps: Optional[int] = Field(default=None, ge=0, le=10_000)
    include_platform_fee: bool = True

    @field_validator("sell_token", "buy_token")
    @classmethod
    def validate_token(cls, value: str) -> str:
        return _normalize_address(value)

    @field_validator("taker_address")
    @classmethod
    def validate_taker(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return _normalize_address(value)

    @field_validator("sell_amount", "buy_amount", mode="before")
    @classmethod
    def validate_amount(cls, value: Any) -> Optional[str]:
        return _normalize_amount(value)

    @model_validator(mode="after")
    def validate_trade_shape(self):
        if self.sell_amount is None and self.buy_amount is None:
            raise ValueError("Either sellAmount or buyAmount must be provided")
        if self.sell_amount is not None and self.buy_amount is not None:
            raise ValueError("Provide only one of sellAmount or buyAmount")
        if self.sell_token.lower() == self.buy_token.lower():
            raise ValueError("Cannot trade token with itself")
        for name in ("sell_token", "buy_token", "taker_address"):
            address = getattr(self, name)
            if address is not None:
                _check_address_for_chain(address, self.chain_id, to_camel(name))
        return self


class SwapParams(QuoteParams):
    taker_address: str = Field(min_length=1)
    gas_price: Optional[str] = None
    enable_slippage_protection: bool = True

    @field_validator("taker_address")
    @classmethod
    def validate_taker(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            raise ValueError("takerAddress is required")
        return _normalize_address(value)

    @field_validator("gas_price", mode="before")
    @classmethod
    def validate_gas_price(cls, value: Any) -> Optional[str]:
        return _normalize_amount(value)


class AllowanceParams(_CamelModel):
    """ERC-20 allowances only exist on EVM chains, so both addresses are 0x hex."""

    token_address: str = Field(min_length=1)
    owner_address: str = Field(min_length=1)
    chain_id: int

    @field_validator("token_address", "owner_address")
    @classmethod
    def validate_address(cls, value: str) -> str:
        return _normalize_evm_address(value)


class FeeParams(_CamelModel):
    buy_amount: str
    sell_amount: str
    custom_fee_bps: Optional[int] = Field(default=None, ge=0, le=10_000)

    @field_validator("buy_amount", "sell_amount", mode="before")
    @classmethod
    def validate_amount(cls, value: Any) -> str:
        normalized = _normalize_amount(value)
        if normalized is None:
            raise ValueError("buyAmount and sellAmount are required")
        return normalized


class TradeLookupParams(_CamelModel):
    trade_id: str = Field(min_length=1, max_length=128)

    @field_validator("trade_id")
    @classmethod
    def validate_trade_id(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("tradeId is required")
        return cleaned


class TradeStatusUpdateParams(TradeLookupParams):
    status: Optional[Literal["pending", "completed", "failed"]] = None
    transaction_hash: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    @field_validator("transaction_hash")
    @classmethod
    def validate_transaction_hash(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        cleaned = value.strip()
        if not _TX_HASH.match(cleaned):
            raise ValueError("transactionHash must be 0x followed by 64 hex characters")
        return cleaned


class ChainListParams(_CamelModel):
    feature: Optional[Literal["swap", "gasless"]] = None


class TokenAmountParams(_CamelModel):
    amount: str = Field(min_length=1)
    decimals: int = Field(ge=0, le=255)

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("amount must be a number or numeric string")
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value


def parse_params(model: Type[ParamsT], data: dict[str, Any]) -> ParamsT:
    """Validate ``data`` into ``model``, raising InvalidRequestError on failure."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False)
        first = errors[0] if errors else {}
        field = ".".join(str(loc) for loc in first.get("loc", ())) or None
        message = first.get("msg", str(exc)).removeprefix("Value error, ")
        raise InvalidRequestError(
            message=message,
            field=field,
            constraint=first.get("type"),
        ) from exc

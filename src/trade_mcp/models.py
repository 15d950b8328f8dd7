"""Data models for the trade quoting service."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from .errors import InternalError

TradeStatus = Literal["pending", "completed", "failed"]
TRADE_STATUSES: tuple[str, ...] = ("pending", "completed", "failed")


def _as_int(payload: dict[str, Any], key: str) -> int:
    raw = payload.get(key)
    if raw is None or raw == "":
        raise InternalError(f"Aggregator response is missing '{key}'")
    try:
        return int(str(raw))
    except ValueError as exc:
        raise InternalError(
            f"Aggregator response field '{key}' is not an integer: {raw!r}"
        ) from exc


def to_iso(timestamp: float) -> str:
    """Render a UNIX timestamp as an ISO-8601 UTC string with milliseconds."""
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _as_str(payload: dict[str, Any], key: str, default: str = "") -> str:
    raw = payload.get(key)
    return default if raw is None else str(raw)


@dataclass(frozen=True)
class LiquiditySource:
    """A venue the aggregator routes part of the trade through."""

    name: str
    proportion: str


@dataclass(frozen=True)
class AggregatorQuote:
    """Parsed aggregator quote. Immutable once fetched."""

    price: str
    guaranteed_price: str
    sell_amount: int
    buy_amount: int
    sources: tuple[LiquiditySource, ...]
    allowance_target: str
    to: str
    data: str
    value: str
    estimated_gas: str
    gas_price: str
    orders: tuple[dict[str, Any], ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_response(cls, payload: Any) -> "AggregatorQuote":
        if not isinstance(payload, dict):
            raise InternalError("Aggregator response is not a JSON object")

        sources = []
        for source in payload.get("sources") or []:
            if not isinstance(source, dict):
                continue
            sources.append(
                LiquiditySource(
                    name=str(source.get("name", "")),
                    proportion=str(source.get("proportion", "0")),
                )
            )

        orders = tuple(
            order for order in (payload.get("orders") or []) if isinstance(order, dict)
        )

        return cls(
            price=_as_str(payload, "price", "0"),
            guaranteed_price=_as_str(payload, "guaranteedPrice", "0"),
            sell_amount=_as_int(payload, "sellAmount"),
            buy_amount=_as_int(payload, "buyAmount"),
            sources=tuple(sources),
            allowance_target=_as_str(payload, "allowanceTarget"),
            to=_as_str(payload, "to"),
            data=_as_str(payload, "data"),
            value=_as_str(payload, "value", "0"),
            estimated_gas=_as_str(payload, "estimatedGas") or _as_str(payload, "gas"),
            gas_price=_as_str(payload, "gasPrice"),
            orders=orders,
            raw=dict(payload),
        )


@dataclass(frozen=True)
class PlatformFee:
    """Platform fee taken from the buy token."""

    enabled: bool
    bps: int
    amount: int
    recipient: str
    percentage: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "bps": self.bps,
            "amount": str(self.amount),
            "recipient": self.recipient,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class RouteLeg:
    exchange: str
    percentage: float

    def to_dict(self) -> dict[str, Any]:
        return {"exchange": self.exchange, "percentage": self.percentage}


@dataclass(frozen=True)
class FeeBreakdown:
    """Result of a pure fee calculation."""

    platform_fee: PlatformFee
    user_receives: int
    total_cost: str
    estimated_gas: int
    gas_price: int
    optimal_slippage_bps: int
    min_received: int
    price_impact_warning: bool

    @property
    def total_gas_cost(self) -> int:
        return self.estimated_gas * self.gas_price

    def to_dict(self) -> dict[str, Any]:
        return {
            "platformFee": self.platform_fee.to_dict(),
            "gas": {
                "estimatedGas": str(self.estimated_gas),
                "gasPrice": str(self.gas_price),
                "totalGasCost": str(self.total_gas_cost),
            },
            "breakdown": {
                "userReceives": str(self.user_receives),
                "platformFeeAmount": str(self.platform_fee.amount),
                "totalCost": self.total_cost,
            },
            "recommendations": {
                "optimalSlippage": self.optimal_slippage_bps,
                "minReceived": str(self.min_received),
                "priceImpactWarning": self.price_impact_warning,
            },
        }


@dataclass(frozen=True)
class ApprovalTransaction:
    to: str
    data: str
    value: str = "0"
    estimated_gas: str = "50000"

    def to_dict(self) -> dict[str, Any]:
        return {
            "to": self.to,
            "data": self.data,
            "value": self.value,
            "estimatedGas": self.estimated_gas,
        }


@dataclass(frozen=True)
class AllowanceState:
    """Allowance an owner granted to the aggregator. Recomputed per check."""

    allowance: int
    is_approval_needed: bool
    allowance_target: str
    approval_transaction: Optional[ApprovalTransaction] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "allowance": str(self.allowance),
            "isApprovalNeeded": self.is_approval_needed,
            "allowanceTarget": self.allowance_target,
        }
        if self.approval_transaction is not None:
            result["approvalTransaction"] = self.approval_transaction.to_dict()
        return result


@dataclass(frozen=True)
class TradeRecord:
    """Bookkeeping entry for a swap handed to a wallet for signing."""

    id: str
    chain_id: int
    sell_token: str
    buy_token: str
    sell_amount: int
    buy_amount: int
    taker_address: str
    platform_fee_amount: int
    status: TradeStatus
    created_at: float
    updated_at: float
    transaction_hash: Optional[str] = None

    def with_update(
        self,
        *,
        updated_at: float,
        status: Optional[TradeStatus] = None,
        transaction_hash: Optional[str] = None,
    ) -> "TradeRecord":
        return replace(
            self,
            status=status or self.status,
            transaction_hash=transaction_hash or self.transaction_hash,
            updated_at=updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "chainId": self.chain_id,
            "sellToken": self.sell_token,
            "buyToken": self.buy_token,
            "sellAmount": str(self.sell_amount),
            "buyAmount": str(self.buy_amount),
            "takerAddress": self.taker_address,
            "platformFeeAmount": str(self.platform_fee_amount),
            "status": self.status,
            "timestamp": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }
        if self.transaction_hash:
            result["transactionHash"] = self.transaction_hash
        return result

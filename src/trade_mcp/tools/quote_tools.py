"""Quote, swap and allowance MCP tools."""

from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from ..errors import TradeMCPError, format_error_response
from ..trading_service import TradingService
from ..validation import (
    AllowanceParams,
    QuoteParams,
    SwapParams,
    TradeLookupParams,
    TradeStatusUpdateParams,
)


def _provided(**kwargs: Any) -> dict[str, Any]:
    """Drop arguments the caller left out so model defaults apply."""
    return {key: value for key, value in kwargs.items() if value is not None}


async def get_quote(
    service: TradingService,
    sell_token: Optional[str] = None,
    buy_token: Optional[str] = None,
    chain_id: Optional[int] = None,
    sell_amount: Optional[str] = None,
    buy_amount: Optional[str] = None,
    taker_address: Optional[str] = None,
    slippage_bps: Optional[int] = None,
    include_platform_fee: Optional[bool] = None,
) -> dict[str, Any]:
    try:
        params = QuoteParams(
            **_provided(
                sell_token=sell_token,
                buy_token=buy_token,
                chain_id=chain_id,
                sell_amount=sell_amount,
                buy_amount=buy_amount,
                taker_address=taker_address,
                slippage_bps=slippage_bps,
                include_platform_fee=include_platform_fee,
            )
        )
    except PydanticValidationError as exc:
        return format_error_response(exc)

    try:
        return {"success": True, "data": await service.get_quote(params)}
    except TradeMCPError as exc:
        return format_error_response(exc)


async def prepare_swap(
    service: TradingService,
    sell_token: Optional[str] = None,
    buy_token: Optional[str] = None,
    chain_id: Optional[int] = None,
    taker_address: Optional[str] = None,
    sell_amount: Optional[str] = None,
    buy_amount: Optional[str] = None,
    slippage_bps: Optional[int] = None,
    include_platform_fee: Optional[bool] = None,
    gas_price: Optional[str] = None,
    enable_slippage_protection: Optional[bool] = None,
) -> dict[str, Any]:
    try:
        params = SwapParams(
            **_provided(
                sell_token=sell_token,
                buy_token=buy_token,
                chain_id=chain_id,
                taker_address=taker_address,
                sell_amount=sell_amount,
                buy_amount=buy_amount,
                slippage_bps=slippage_bps,
                include_platform_fee=include_platform_fee,
                gas_price=gas_price,
                enable_slippage_protection=enable_slippage_protection,
            )
        )
    except PydanticValidationError as exc:
        return format_error_response(exc)

    try:
        return {"success": True, "data": await service.prepare_swap(params)}
    except TradeMCPError as exc:
        return format_error_response(exc)


async def update_trade_status(
    service: TradingService,
    trade_id: Optional[str] = None,
    status: Optional[str] = None,
    transaction_hash: Optional[str] = None,
) -> dict[str, Any]:
    try:
        params = TradeStatusUpdateParams(
            **_provided(
                trade_id=trade_id,
                status=status,
                transaction_hash=transaction_hash,
            )
        )
    except PydanticValidationError as exc:
        return format_error_response(exc)

    try:
        return {"success": True, "data": await service.update_trade_status(params)}
    except TradeMCPError as exc:
        return format_error_response(exc)


async def get_trade(
    service: TradingService,
    trade_id: Optional[str] = None,
) -> dict[str, Any]:
    try:
        params = TradeLookupParams(**_provided(trade_id=trade_id))
    except PydanticValidationError as exc:
        return format_error_response(exc)

    try:
        return {"success": True, "data": await service.get_trade(params)}
    except TradeMCPError as exc:
        return format_error_response(exc)


async def check_allowance(
    service: TradingService,
    token_address: Optional[str] = None,
    owner_address: Optional[str] = None,
    chain_id: Optional[int] = None,
) -> dict[str, Any]:
    try:
        params = AllowanceParams(
            **_provided(
                token_address=token_address,
                owner_address=owner_address,
                chain_id=chain_id,
            )
        )
    except PydanticValidationError as exc:
        return format_error_response(exc)

    try:
        return {"success": True, "data": await service.check_allowance(params)}
    except TradeMCPError as exc:
        return format_error_response(exc)


async def estimate_trade_outcome(
    service: TradingService,
    sell_token: Optional[str] = None,
    buy_token: Optional[str] = None,
    chain_id: Optional[int] = None,
    sell_amount: Optional[str] = None,
    buy_amount: Optional[str] = None,
    taker_address: Optional[str] = None,
    slippage_bps: Optional[int] = None,
    include_platform_fee: Optional[bool] = None,
) -> dict[str, Any]:
    try:
        params = QuoteParams(
            **_provided(
                sell_token=sell_token,
                buy_token=buy_token,
                chain_id=chain_id,
                sell_amount=sell_amount,
                buy_amount=buy_amount,
                taker_address=taker_address,
                slippage_bps=slippage_bps,
                include_platform_fee=include_platform_fee,
            )
        )
    except PydanticValidationError as exc:
        return format_error_response(exc)

    try:
        return {"success": True, "data": await service.estimate_trade_outcome(params)}
    except TradeMCPError as exc:
        return format_error_response(exc)

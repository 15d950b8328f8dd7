"""Fee and chain-registry MCP tools."""

from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from ..errors import TradeMCPError, format_error_response
from ..trading_service import TradingService
from ..validation import ChainListParams, FeeParams


async def calculate_fees(
    service: TradingService,
    buy_amount: Optional[str] = None,
    sell_amount: Optional[str] = None,
    custom_fee_bps: Optional[int] = None,
) -> dict[str, Any]:
    try:
        params = FeeParams(
            buy_amount=buy_amount,
            sell_amount=sell_amount,
            custom_fee_bps=custom_fee_bps,
        )
    except PydanticValidationError as exc:
        return format_error_response(exc)

    try:
        return {"success": True, "data": await service.calculate_fees(params)}
    except TradeMCPError as exc:
        return format_error_response(exc)


async def get_fee_history(service: TradingService) -> dict[str, Any]:
    return {"success": True, "data": await service.get_fee_history()}


async def get_fee_config(service: TradingService) -> dict[str, Any]:
    return {"success": True, "data": await service.get_fee_config()}


async def get_supported_chains(
    service: TradingService,
    feature: Optional[str] = None,
) -> dict[str, Any]:
    try:
        params = ChainListParams(feature=feature)
    except PydanticValidationError as exc:
        return format_error_response(exc)

    return {"success": True, "data": await service.get_supported_chains(params.feature)}

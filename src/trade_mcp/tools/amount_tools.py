"""Token amount conversion MCP tools."""

from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..errors import TradeMCPError, format_error_response
from ..trading_service import TradingService
from ..validation import TokenAmountParams


async def parse_token_amount(
    service: TradingService,
    amount: Optional[Union[str, int, float]] = None,
    decimals: Optional[int] = None,
) -> dict[str, Any]:
    try:
        params = TokenAmountParams(amount=amount, decimals=decimals)
    except PydanticValidationError as exc:
        return format_error_response(exc)

    try:
        return {"success": True, "data": await service.parse_token_amount(params)}
    except TradeMCPError as exc:
        return format_error_response(exc)


async def format_token_amount(
    service: TradingService,
    amount: Optional[Union[str, int]] = None,
    decimals: Optional[int] = None,
) -> dict[str, Any]:
    try:
        params = TokenAmountParams(amount=amount, decimals=decimals)
    except PydanticValidationError as exc:
        return format_error_response(exc)

    try:
        return {"success": True, "data": await service.format_token_amount(params)}
    except TradeMCPError as exc:
        return format_error_response(exc)

"""MCP tools for 0x trade quoting."""

from .quote_tools import (
    check_allowance,
    estimate_trade_outcome,
    get_quote,
    get_trade,
    prepare_swap,
    update_trade_status,
)
from .fee_tools import (
    calculate_fees,
    get_fee_config,
    get_fee_history,
    get_supported_chains,
)
from .amount_tools import format_token_amount, parse_token_amount

__all__ = [
    "check_allowance",
    "estimate_trade_outcome",
    "get_quote",
    "get_trade",
    "prepare_swap",
    "update_trade_status",
    "calculate_fees",
    "get_fee_config",
    "get_fee_history",
    "get_supported_chains",
    "format_token_amount",
    "parse_token_amount",
]

"""Main MCP server implementation."""

import json
from functools import partial
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .config import TradeConfig
from .errors import format_error_response
from .logger import get_logger
from .tools import (
    calculate_fees,
    check_allowance,
    estimate_trade_outcome,
    format_token_amount,
    get_fee_config,
    get_fee_history,
    get_quote,
    get_supported_chains,
    get_trade,
    parse_token_amount,
    prepare_swap,
    update_trade_status,
)
from .trading_service import TradingService, create_service

log = get_logger(__name__)

_TOKEN_DESCRIPTION = (
    "Token contract address: 0x-prefixed 40 hex characters on EVM chains, "
    "base58 mint address on Solana."
)
_AMOUNT_DESCRIPTION = (
    "Amount in the token's base units as an integer string (e.g. '1000000' "
    "for 1 USDC). No decimals or exponent."
)

_QUOTE_PROPERTIES: dict[str, Any] = {
    "sell_token": {"type": "string", "description": f"Token to sell. {_TOKEN_DESCRIPTION}"},
    "buy_token": {"type": "string", "description": f"Token to buy. {_TOKEN_DESCRIPTION}"},
    "chain_id": {
        "type": "integer",
        "description": "Chain to trade on (e.g. 1 Ethereum, 137 Polygon, 8453 Base).",
    },
    "sell_amount": {
        "type": "string",
        "description": f"Exact amount to sell. Provide this or buy_amount, not both. {_AMOUNT_DESCRIPTION}",
    },
    "buy_amount": {
        "type": "string",
        "description": f"Exact amount to buy. Provide this or sell_amount, not both. {_AMOUNT_DESCRIPTION}",
    },
    "slippage_bps": {
        "type": "integer",
        "minimum": 0,
        "maximum": 10000,
        "description": "Slippage tolerance in basis points (100 = 1%). Defaults to the configured value.",
    },
    "include_platform_fee": {
        "type": "boolean",
        "description": "Whether the platform fee is taken from the buy token. Defaults to true.",
    },
}


class TradeMCPServer:
    """Main MCP server class for 0x trade quoting."""

    def __init__(self, config: TradeConfig, service: Optional[TradingService] = None):
        """
        Initialize the trade MCP server.

        Args:
            config: Validated configuration for the server
            service: Pre-built service, mainly for tests
        """
        self.config = config
        self.service = service or create_service(config)

        self.mcp = Server("trade-mcp-server")
        self._init_tool_handlers()
        self._register_tools()

    def _init_tool_handlers(self) -> None:
        self._tool_handlers = {
            "get_quote": partial(get_quote, self.service),
            "prepare_swap": partial(prepare_swap, self.service),
            "update_trade_status": partial(update_trade_status, self.service),
            "get_trade": partial(get_trade, self.service),
            "check_allowance": partial(check_allowance, self.service),
            "calculate_fees": partial(calculate_fees, self.service),
            "get_fee_history": partial(get_fee_history, self.service),
            "get_fee_config": partial(get_fee_config, self.service),
            "get_supported_chains": partial(get_supported_chains, self.service),
            "estimate_trade_outcome": partial(estimate_trade_outcome, self.service),
            "parse_token_amount": partial(parse_token_amount, self.service),
            "format_token_amount": partial(format_token_amount, self.service),
        }
        quote_arguments = list(_QUOTE_PROPERTIES) + ["taker_address"]
        self._tool_arguments = {
            "get_quote": quote_arguments,
            "prepare_swap": quote_arguments + ["gas_price", "enable_slippage_protection"],
            "update_trade_status": ["trade_id", "status", "transaction_hash"],
            "get_trade": ["trade_id"],
            "check_allowance": ["token_address", "owner_address", "chain_id"],
            "calculate_fees": ["buy_amount", "sell_amount", "custom_fee_bps"],
            "get_fee_history": [],
            "get_fee_config": [],
            "get_supported_chains": ["feature"],
            "estimate_trade_outcome": quote_arguments,
            "parse_token_amount": ["amount", "decimals"],
            "format_token_amount": ["amount", "decimals"],
        }

    def list_tool_definitions(self) -> list[Tool]:
        return [
            Tool(
                name="get_quote",
                description=(
                    "Get an indicative swap quote from the 0x aggregator. Returns the "
                    "aggregator's price and amounts enriched with the platform fee, "
                    "price impact, minimum received after fee and slippage, the "
                    "liquidity route, and an expiry 30 seconds after quoting."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        **_QUOTE_PROPERTIES,
                        "taker_address": {
                            "type": "string",
                            "description": "Optional wallet that will execute the trade.",
                        },
                    },
                    "required": ["sell_token", "buy_token", "chain_id"],
                },
            ),
            Tool(
                name="prepare_swap",
                description=(
                    "Get an executable swap transaction for a wallet to sign and record "
                    "it as a pending trade. The returned trade id can be used with "
                    "update_trade_status once the transaction is submitted or mined."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        **_QUOTE_PROPERTIES,
                        "taker_address": {
                            "type": "string",
                            "description": "Wallet that will sign and send the transaction.",
                        },
                        "gas_price": {
                            "type": "string",
                            "description": "Optional gas price in wei as an integer string.",
                        },
                        "enable_slippage_protection": {
                            "type": "boolean",
                            "description": "Ask the aggregator to protect against slippage. Defaults to true.",
                        },
                    },
                    "required": ["sell_token", "buy_token", "chain_id", "taker_address"],
                },
            ),
            Tool(
                name="update_trade_status",
                description=(
                    "Update a recorded trade's status and/or attach the transaction hash "
                    "after the wallet submits it."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "trade_id": {"type": "string", "description": "Id returned by prepare_swap."},
                        "status": {
                            "type": "string",
                            "enum": ["pending", "completed", "failed"],
                            "description": "New trade status.",
                        },
                        "transaction_hash": {
                            "type": "string",
                            "description": "0x-prefixed 32-byte transaction hash.",
                        },
                    },
                    "required": ["trade_id"],
                },
            ),
            Tool(
                name="get_trade",
                description="Look up a trade recorded by prepare_swap.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "trade_id": {"type": "string", "description": "Id returned by prepare_swap."},
                    },
                    "required": ["trade_id"],
                },
            ),
            Tool(
                name="check_allowance",
                description=(
                    "Check whether a wallet must approve the aggregator to spend a token. "
                    "When approval is needed an unsigned approve transaction for the "
                    "maximum amount is returned."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "token_address": {"type": "string", "description": "ERC-20 token contract."},
                        "owner_address": {"type": "string", "description": "Wallet holding the token."},
                        "chain_id": {"type": "integer", "description": "Chain the token lives on."},
                    },
                    "required": ["token_address", "owner_address", "chain_id"],
                },
            ),
            Tool(
                name="calculate_fees",
                description=(
                    "Calculate the platform fee, what the user receives, a reference gas "
                    "estimate and slippage recommendations for known amounts. Does not "
                    "contact the aggregator."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "buy_amount": {"type": "string", "description": _AMOUNT_DESCRIPTION},
                        "sell_amount": {"type": "string", "description": _AMOUNT_DESCRIPTION},
                        "custom_fee_bps": {
                            "type": "integer",
                            "minimum": 0,
                            "maximum": 10000,
                            "description": "Fee override in basis points. Defaults to the configured fee.",
                        },
                    },
                    "required": ["buy_amount", "sell_amount"],
                },
            ),
            Tool(
                name="get_fee_history",
                description=(
                    "Summarize platform fees from recorded trades: totals, last 24 hours, "
                    "last 7 days and the most traded pairs. Failed trades are excluded."
                ),
                inputSchema={"type": "object", "properties": {}},
            ),
            Tool(
                name="get_fee_config",
                description="Show the platform fee, fee recipient and default slippage in use.",
                inputSchema={"type": "object", "properties": {}},
            ),
            Tool(
                name="get_supported_chains",
                description="List the chains the aggregator supports, optionally filtered by feature.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "feature": {
                            "type": "string",
                            "enum": ["swap", "gasless"],
                            "description": "Only list chains supporting this feature.",
                        },
                    },
                },
            ),
            Tool(
                name="estimate_trade_outcome",
                description=(
                    "Quote a trade and summarize the outcome: what the user pays, what "
                    "they receive after the platform fee, the fee itself, price impact, "
                    "gas estimate and route. Includes the full quote and fee breakdown."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        **_QUOTE_PROPERTIES,
                        "taker_address": {
                            "type": "string",
                            "description": "Optional wallet that will execute the trade.",
                        },
                    },
                    "required": ["sell_token", "buy_token", "chain_id"],
                },
            ),
            Tool(
                name="parse_token_amount",
                description=(
                    "Convert a human-readable token amount (e.g. '1.5') into base units "
                    "for a token with the given decimals. Extra precision is truncated."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "amount": {"type": "string", "description": "Decimal amount, e.g. '1.5'."},
                        "decimals": {
                            "type": "integer",
                            "minimum": 0,
                            "maximum": 255,
                            "description": "Token decimals (6 for USDC, 18 for WETH).",
                        },
                    },
                    "required": ["amount", "decimals"],
                },
            ),
            Tool(
                name="format_token_amount",
                description=(
                    "Render a base-unit amount as a decimal string for display, rounded "
                    "to 6 places with trailing zeros removed."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "amount": {"type": "string", "description": _AMOUNT_DESCRIPTION},
                        "decimals": {
                            "type": "integer",
                            "minimum": 0,
                            "maximum": 255,
                            "description": "Token decimals (6 for USDC, 18 for WETH).",
                        },
                    },
                    "required": ["amount", "decimals"],
                },
            ),
        ]

    async def dispatch(self, name: str, arguments: Optional[dict[str, Any]]) -> dict[str, Any]:
        """Run a tool by name and return its result envelope."""
        handler = self._tool_handlers.get(name)
        if handler is None:
            return {"success": False, "error": f"Unknown tool: {name}"}

        arguments = arguments or {}
        tool_args = {
            key: arguments[key]
            for key in self._tool_arguments.get(name, [])
            if key in arguments
        }

        try:
            return await handler(**tool_args)
        except Exception as exc:
            log.exception("[MCP][TOOL][ERROR] tool=%s", name)
            return format_error_response(exc)

    def _register_tools(self):
        """Register all MCP tools."""

        @self.mcp.list_tools()
        async def list_tools() -> list[Tool]:
            """List all available tools."""
            return self.list_tool_definitions()

        @self.mcp.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            result = await self.dispatch(name, arguments)
            return [TextContent(type="text", text=json.dumps(result, indent=2))]

    async def run(self):
        """Start the MCP server."""
        log.info("[MCP][SERVER][START] tools=%d", len(self._tool_handlers))
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.mcp.run(
                    read_stream,
                    write_stream,
                    self.mcp.create_initialization_options(),
                )
        finally:
            await self.service.aclose()

"""Quote, swap, allowance and fee operations shared by both surfaces."""

import secrets
import string
import time
from typing import Any, Callable, Optional

from .allowance import (
    FULL_APPROVAL_THRESHOLD,
    AllowanceReader,
    RpcAllowanceReader,
    ZeroAllowanceReader,
    build_approval_transaction,
)
from .chains import (
    SUPPORTED_CHAINS,
    ChainConfig,
    ChainFeature,
    get_chain_config,
    get_chains_by_feature,
    reference_pair_for,
)
from .client_manager import ZeroXClientManager
from .config import TradeConfig
from .errors import InvalidRequestError, TradeNotFoundError, UnsupportedChainError, UpstreamError
from .fees import (
    bps_to_fraction,
    build_platform_fee,
    calculate_fees,
    format_token_amount,
    min_received,
    parse_token_amount,
    price_impact_percent,
    route_from_sources,
)
from .logger import get_logger
from .models import AggregatorQuote, AllowanceState, TradeRecord, to_iso
from .trade_store import InMemoryTradeStore, TradeStore, summarize_fee_history
from .validation import (
    AllowanceParams,
    FeeParams,
    QuoteParams,
    SwapParams,
    TokenAmountParams,
    TradeLookupParams,
    TradeStatusUpdateParams,
)

log = get_logger(__name__)

QUOTE_TTL_MS = 30_000
SWAP_TTL_MS = 60_000
SERVICE_VERSION = "1.0.0"

_TRADE_ID_ALPHABET = string.ascii_lowercase + string.digits


def _flag(value: bool) -> str:
    return "true" if value else "false"


def new_trade_id(now_ms: int) -> str:
    suffix = "".join(secrets.choice(_TRADE_ID_ALPHABET) for _ in range(9))
    return f"trade_{now_ms}_{suffix}"


class TradingService:
    """Shapes aggregator requests and enriches the answers with fee data.

    The service holds no per-request state: quotes are never cached and
    allowances are re-read on every check. The trade store is the only
    shared state and is advisory.
    """

    def __init__(
        self,
        config: TradeConfig,
        client_manager: ZeroXClientManager,
        store: Optional[TradeStore] = None,
        allowance_reader: Optional[AllowanceReader] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.client_manager = client_manager
        self.store = store if store is not None else InMemoryTradeStore(
            ttl=config.trade_record_ttl
        )
        self.allowance_reader = allowance_reader or ZeroAllowanceReader()
        self.clock = clock

    def _require_chain(
        self, chain_id: int, feature: Optional[ChainFeature] = None
    ) -> ChainConfig:
        chain = get_chain_config(chain_id)
        if chain is None:
            raise UnsupportedChainError(chain_id)
        if feature is not None and not chain.supports(feature):
            raise UnsupportedChainError(chain_id, feature=feature)
        return chain

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def quote_query(self, params: QuoteParams, slippage_bps: int) -> dict[str, Any]:
        """Aggregator query parameters for a quote request."""
        query: dict[str, Any] = {
            "chainId": params.chain_id,
            "sellToken": params.sell_token,
            "buyToken": params.buy_token,
            "sellAmount": params.sell_amount,
            "buyAmount": params.buy_amount,
            "slippagePercentage": bps_to_fraction(slippage_bps),
            "takerAddress": params.taker_address,
        }
        if params.include_platform_fee and self.config.platform_fee_bps > 0:
            query["feeRecipient"] = self.config.fee_recipient
            query["buyTokenPercentageFee"] = bps_to_fraction(self.config.platform_fee_bps)
        return query

    def _slippage(self, params: QuoteParams) -> int:
        if params.slippage_bps is None:
            return self.config.default_slippage_bps
        return params.slippage_bps

    async def get_quote(self, params: QuoteParams) -> dict[str, Any]:
        """Fetch an indicative quote and attach fee, impact and route data.

        Raises:
            UnsupportedChainError: chain is not registered.
            UpstreamTimeoutError: the aggregator missed the quote deadline.
            UpstreamError: the aggregator rejected the request.
            InternalError: the aggregator answered with an unusable body.
        """
        chain = self._require_chain(params.chain_id)
        slippage_bps = self._slippage(params)

        payload = await self.client_manager.get_quote(
            self.quote_query(params, slippage_bps),
            deadline=self.config.quote_timeout,
        )
        quote = AggregatorQuote.from_response(payload)
        fee = build_platform_fee(
            self.config, quote.buy_amount, enabled=params.include_platform_fee
        )

        now = self.clock()
        quoted_at = int(now * 1000)
        log.info(
            "[QUOTE][GET][OK] chain=%s buy_amount=%s fee=%s",
            chain.id,
            quote.buy_amount,
            fee.amount,
        )
        return {
            **quote.raw,
            "chainId": chain.id,
            "chainName": chain.name,
            "platformFee": fee.to_dict(),
            "trading": {
                "slippageBps": slippage_bps,
                "priceImpact": price_impact_percent(quote.price, quote.guaranteed_price),
                "minReceived": str(
                    min_received(quote.buy_amount, fee.amount, slippage_bps)
                ),
                "route": [leg.to_dict() for leg in route_from_sources(quote.sources)],
            },
            "metadata": {
                "timestamp": to_iso(now),
                "quotedAt": quoted_at,
                "expiresAt": quoted_at + QUOTE_TTL_MS,
            },
        }

    async def estimate_trade_outcome(self, params: QuoteParams) -> dict[str, Any]:
        """Quote plus fee breakdown, summarized as what the user pays and gets."""
        quote = await self.get_quote(params)
        fee = quote["platformFee"]
        breakdown = calculate_fees(
            self.config,
            quote["buyAmount"],
            quote["sellAmount"],
            custom_fee_bps=fee["bps"] if fee["enabled"] else 0,
        )
        return {
            "quote": quote,
            "fees": breakdown.to_dict(),
            "summary": {
                "youPay": str(quote["sellAmount"]),
                "youReceive": str(breakdown.user_receives),
                "platformFee": str(breakdown.platform_fee.amount),
                "minReceived": quote["trading"]["minReceived"],
                "priceImpact": quote["trading"]["priceImpact"],
                "gasEstimate": quote.get("estimatedGas") or quote.get("gas"),
                "route": quote["trading"]["route"],
            },
        }

    async def parse_token_amount(self, params: TokenAmountParams) -> dict[str, Any]:
        base_units = parse_token_amount(params.amount, params.decimals)
        return {
            "amount": params.amount,
            "decimals": params.decimals,
            "baseUnits": str(base_units),
            "formatted": format_token_amount(base_units, params.decimals),
        }

    async def format_token_amount(self, params: TokenAmountParams) -> dict[str, Any]:
        return {
            "baseUnits": params.amount,
            "decimals": params.decimals,
            "formatted": format_token_amount(params.amount, params.decimals),
        }

    async def prepare_swap(self, params: SwapParams) -> dict[str, Any]:
        """Fetch an executable quote and record a pending trade for it."""
        chain = self._require_chain(params.chain_id, feature="swap")
        slippage_bps = self._slippage(params)

        query = self.quote_query(params, slippage_bps)
        query.update(
            {
                "takerAddress": params.taker_address,
                "skipValidation": _flag(False),
                "enableSlippageProtection": _flag(params.enable_slippage_protection),
                "gasPrice": params.gas_price,
            }
        )
        payload = await self.client_manager.get_quote(
            query, deadline=self.config.quote_timeout
        )
        quote = AggregatorQuote.from_response(payload)
        fee = build_platform_fee(
            self.config, quote.buy_amount, enabled=params.include_platform_fee
        )

        now = self.clock()
        now_ms = int(now * 1000)
        record = TradeRecord(
            id=new_trade_id(now_ms),
            chain_id=chain.id,
            sell_token=params.sell_token,
            buy_token=params.buy_token,
            sell_amount=quote.sell_amount,
            buy_amount=quote.buy_amount,
            taker_address=params.taker_address,
            platform_fee_amount=fee.amount,
            status="pending",
            created_at=now,
            updated_at=now,
        )
        self.store.save(record)
        log.info(
            "[SWAP][PREPARE][OK] trade=%s chain=%s taker=%s fee=%s",
            record.id,
            chain.id,
            record.taker_address,
            fee.amount,
        )

        return {
            "transaction": {
                "to": quote.to,
                "data": quote.data,
                "value": quote.value,
                "gasPrice": quote.gas_price,
                "estimatedGas": quote.estimated_gas,
            },
            "trade": {
                "id": record.id,
                "sellToken": record.sell_token,
                "buyToken": record.buy_token,
                "sellAmount": str(quote.sell_amount),
                "buyAmount": str(quote.buy_amount),
                "price": quote.price,
                "guaranteedPrice": quote.guaranteed_price,
                "allowanceTarget": quote.allowance_target,
            },
            "platformFee": fee.to_dict(),
            "parameters": {
                "chainId": chain.id,
                "chainName": chain.name,
                "slippageBps": slippage_bps,
                "enableSlippageProtection": params.enable_slippage_protection,
                "priceImpact": price_impact_percent(quote.price, quote.guaranteed_price),
                "minReceived": str(
                    min_received(quote.buy_amount, fee.amount, slippage_bps)
                ),
            },
            "route": [leg.to_dict() for leg in route_from_sources(quote.sources)],
            "orders": list(quote.orders),
            "metadata": {
                "timestamp": to_iso(now),
                "expiresAt": now_ms + SWAP_TTL_MS,
                "apiVersion": self.config.api_version,
            },
        }

    def _require_trade(self, trade_id: str) -> TradeRecord:
        record = self.store.get(trade_id)
        if record is None:
            raise TradeNotFoundError(trade_id)
        return record

    async def update_trade_status(self, params: TradeStatusUpdateParams) -> dict[str, Any]:
        record = self._require_trade(params.trade_id)
        updated = record.with_update(
            updated_at=self.clock(),
            status=params.status,
            transaction_hash=params.transaction_hash,
        )
        self.store.save(updated)
        log.info(
            "[SWAP][STATUS][UPDATE] trade=%s status=%s tx=%s",
            updated.id,
            updated.status,
            updated.transaction_hash,
        )
        return updated.to_dict()

    async def get_trade(self, params: TradeLookupParams) -> dict[str, Any]:
        return self._require_trade(params.trade_id).to_dict()

    async def check_allowance(self, params: AllowanceParams) -> dict[str, Any]:
        """Report whether ``owner`` must approve the aggregator to spend ``token``.

        The spender is whatever allowance target the aggregator reports for a
        liquid reference pair on the same chain. If no target can be learned
        the check fails; it never reports an allowance as sufficient by default.
        """
        chain = self._require_chain(params.chain_id)
        if not chain.uses_erc20_allowances:
            raise InvalidRequestError(
                f"Token allowances do not apply on {chain.name}",
                field="chainId",
                value=chain.id,
                constraint="chain must use ERC-20 allowances",
            )

        pair = reference_pair_for(chain.id)
        payload = await self.client_manager.get_quote(
            {
                "chainId": chain.id,
                "sellToken": pair.sell_token,
                "buyToken": pair.buy_token,
                "sellAmount": pair.sell_amount,
            },
            deadline=self.config.aux_timeout,
        )
        spender = str(payload.get("allowanceTarget") or "")
        if not spender:
            raise UpstreamError(message="Aggregator did not report an allowance target")

        allowance = await self.allowance_reader.read_allowance(
            chain, params.token_address, params.owner_address, spender
        )
        needs_approval = allowance < FULL_APPROVAL_THRESHOLD
        state = AllowanceState(
            allowance=allowance,
            is_approval_needed=needs_approval,
            allowance_target=spender,
            approval_transaction=(
                build_approval_transaction(params.token_address, spender)
                if needs_approval
                else None
            ),
        )
        log.info(
            "[ALLOWANCE][CHECK][OK] chain=%s token=%s owner=%s approval_needed=%s",
            chain.id,
            params.token_address,
            params.owner_address,
            needs_approval,
        )
        return state.to_dict()

    async def calculate_fees(self, params: FeeParams) -> dict[str, Any]:
        breakdown = calculate_fees(
            self.config,
            params.buy_amount,
            params.sell_amount,
            custom_fee_bps=params.custom_fee_bps,
        )
        return breakdown.to_dict()

    async def get_fee_history(self) -> dict[str, Any]:
        return summarize_fee_history(self.store.records(), self.clock())

    async def get_fee_config(self) -> dict[str, Any]:
        return {
            "platformFeeBps": self.config.platform_fee_bps,
            "platformFeePercentage": self.config.fee_percentage,
            "feeRecipient": self.config.fee_recipient,
            "defaultSlippageBps": self.config.default_slippage_bps,
            "rateLimit": self.config.rate_limit,
            "supportedChains": len(SUPPORTED_CHAINS),
            "version": SERVICE_VERSION,
        }

    async def get_supported_chains(
        self, feature: Optional[ChainFeature] = None
    ) -> dict[str, Any]:
        chains = (
            get_chains_by_feature(feature) if feature else list(SUPPORTED_CHAINS.values())
        )
        return {
            "chains": [chain.to_dict() for chain in chains],
            "count": len(chains),
            "defaultChainId": self.config.default_chain_id,
        }

    async def aclose(self) -> None:
        await self.client_manager.aclose()
        closer = getattr(self.allowance_reader, "aclose", None)
        if closer is not None:
            await closer()


def create_service(config: TradeConfig) -> TradingService:
    """Wire a service from configuration."""
    reader: AllowanceReader
    if config.onchain_allowance:
        reader = RpcAllowanceReader(timeout=config.aux_timeout, rpc_urls=config.rpc_urls)
    else:
        reader = ZeroAllowanceReader()
    return TradingService(
        config=config,
        client_manager=ZeroXClientManager(config),
        store=InMemoryTradeStore(ttl=config.trade_record_ttl),
        allowance_reader=reader,
    )

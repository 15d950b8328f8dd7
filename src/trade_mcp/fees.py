"""Fee, slippage and price-impact arithmetic.

All on-chain amounts are Python ints (base units), so tokens with 18
decimals never pass through a float. Prices are ratios reported by the
aggregator as decimal strings and are handled with ``Decimal``.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Iterable, Optional, Union

from .config import MAX_BPS, TradeConfig, bps_to_percentage
from .errors import InternalError, InvalidRequestError
from .models import FeeBreakdown, LiquiditySource, PlatformFee, RouteLeg

BPS_DENOMINATOR = 10_000

# Gas figures quoted by the calculator when no live quote is involved.
REFERENCE_SWAP_GAS = 150_000
REFERENCE_GAS_PRICE_WEI = 20_000_000_000
OPTIMAL_SLIPPAGE_BPS = 100
HIGH_FEE_WARNING_BPS = 100

MAX_UINT256 = 2**256 - 1
_UINT256_DIGITS = len(str(MAX_UINT256))

# ERC-20 ``decimals()`` is a uint8.
MAX_TOKEN_DECIMALS = 255
DISPLAY_PRECISION = 6

# Enough digits for any uint256 amount at any decimals without rounding.
_AMOUNT_CONTEXT = Context(prec=400, rounding=ROUND_DOWN)

AmountLike = Union[int, str]


def parse_amount(value: AmountLike, field: str) -> int:
    """Parse a base-unit integer amount, rejecting floats and signs."""
    if isinstance(value, bool):
        raise InvalidRequestError(
            f"{field} must be an integer string", field=field, value=value
        )
    if isinstance(value, int):
        amount = value
    else:
        text = str(value).strip()
        if not (text.isascii() and text.isdigit()):
            raise InvalidRequestError(
                f"{field} must be a non-negative integer string in base units",
                field=field,
                value=value,
                constraint="digits only, no decimals or exponent",
            )
        amount = int(text)
    if amount < 0:
        raise InvalidRequestError(
            f"{field} cannot be negative", field=field, value=str(value)
        )
    if amount > MAX_UINT256:
        raise InvalidRequestError(
            f"{field} exceeds the uint256 range",
            field=field,
            value=str(value),
            constraint="amount <= 2**256 - 1",
        )
    return amount


def validate_bps(bps: int, field: str) -> int:
    if isinstance(bps, bool) or not isinstance(bps, int):
        raise InvalidRequestError(f"{field} must be an integer", field=field, value=bps)
    if not 0 <= bps <= MAX_BPS:
        raise InvalidRequestError(
            f"{field} must be between 0 and {MAX_BPS}",
            field=field,
            value=bps,
            constraint=f"0 <= {field} <= {MAX_BPS}",
        )
    return bps


def bps_to_fraction(bps: int) -> str:
    """Express basis points as the decimal fraction the aggregator expects."""
    fraction = Decimal(bps) / Decimal(BPS_DENOMINATOR)
    return format(fraction.normalize(), "f") if fraction else "0"


def platform_fee_amount(buy_amount: int, fee_bps: int) -> int:
    """floor(buy_amount * fee_bps / 10000)."""
    return (buy_amount * fee_bps) // BPS_DENOMINATOR


def min_received(buy_amount: int, fee_amount: int, slippage_bps: int) -> int:
    """Apply the platform fee first, then slippage tolerance to what is left."""
    net = buy_amount - fee_amount
    return net - (net * slippage_bps) // BPS_DENOMINATOR


def _to_decimal(value: Optional[str]) -> Decimal:
    if value is None or str(value).strip() == "":
        return Decimal(0)
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise InternalError(f"Aggregator returned a non-numeric value: {value!r}") from exc
    return parsed if parsed.is_finite() else Decimal(0)


def price_impact_percent(price: Optional[str], guaranteed_price: Optional[str]) -> float:
    """|price - guaranteedPrice| / price * 100, or 0 when either price is zero."""
    quoted = _to_decimal(price)
    guaranteed = _to_decimal(guaranteed_price)
    if quoted == 0 or guaranteed == 0:
        return 0.0
    return float(abs((quoted - guaranteed) / quoted) * 100)


def route_from_sources(sources: Iterable[LiquiditySource]) -> list[RouteLeg]:
    legs = []
    for source in sources:
        percentage = float(_to_decimal(source.proportion) * 100)
        legs.append(RouteLeg(exchange=source.name, percentage=percentage))
    return legs


def build_platform_fee(
    config: TradeConfig, buy_amount: int, *, enabled: bool = True, bps: Optional[int] = None
) -> PlatformFee:
    fee_bps = config.platform_fee_bps if bps is None else bps
    active = enabled and fee_bps > 0
    return PlatformFee(
        enabled=enabled,
        bps=fee_bps,
        amount=platform_fee_amount(buy_amount, fee_bps) if active else 0,
        recipient=config.fee_recipient,
        percentage=bps_to_percentage(fee_bps),
    )


def calculate_fees(
    config: TradeConfig,
    buy_amount: AmountLike,
    sell_amount: AmountLike,
    custom_fee_bps: Optional[int] = None,
) -> FeeBreakdown:
    """Pure fee breakdown for an amount the caller already knows."""
    buy = parse_amount(buy_amount, "buyAmount")
    sell = parse_amount(sell_amount, "sellAmount")
    fee_bps = validate_bps(
        config.platform_fee_bps if custom_fee_bps is None else custom_fee_bps,
        "customFeeBps",
    )

    fee = build_platform_fee(config, buy, enabled=fee_bps > 0, bps=fee_bps)
    return FeeBreakdown(
        platform_fee=fee,
        user_receives=buy - fee.amount,
        total_cost=str(sell),
        estimated_gas=REFERENCE_SWAP_GAS,
        gas_price=REFERENCE_GAS_PRICE_WEI,
        optimal_slippage_bps=OPTIMAL_SLIPPAGE_BPS,
        min_received=min_received(buy, fee.amount, OPTIMAL_SLIPPAGE_BPS),
        price_impact_warning=fee_bps > HIGH_FEE_WARNING_BPS,
    )


def validate_decimals(decimals: int) -> int:
    if isinstance(decimals, bool) or not isinstance(decimals, int):
        raise InvalidRequestError(
            "decimals must be an integer", field="decimals", value=decimals
        )
    if not 0 <= decimals <= MAX_TOKEN_DECIMALS:
        raise InvalidRequestError(
            f"decimals must be between 0 and {MAX_TOKEN_DECIMALS}",
            field="decimals",
            value=decimals,
            constraint=f"0 <= decimals <= {MAX_TOKEN_DECIMALS}",
        )
    return decimals


def parse_token_amount(amount: Union[str, int, Decimal], decimals: int) -> int:
    """Convert a human amount such as ``"1.5"`` into base units.

    Digits beyond ``decimals`` are truncated, never rounded up, so the
    result never exceeds what the user typed.
    """
    decimals = validate_decimals(decimals)
    if isinstance(amount, bool):
        raise InvalidRequestError("amount must be a decimal number", field="amount", value=amount)
    text = str(amount).strip()
    try:
        value = Decimal(text)
    except InvalidOperation as exc:
        raise InvalidRequestError(
            "amount must be a decimal number", field="amount", value=text
        ) from exc
    if not value.is_finite():
        raise InvalidRequestError("amount must be finite", field="amount", value=text)
    if value < 0:
        raise InvalidRequestError("amount cannot be negative", field="amount", value=text)

    # 2**256 - 1 has 78 digits; skip scaling values that can never fit.
    if value and value.adjusted() + decimals >= _UINT256_DIGITS:
        base_units = MAX_UINT256 + 1
    else:
        scaled = value.scaleb(decimals, _AMOUNT_CONTEXT)
        base_units = int(scaled.to_integral_value(rounding=ROUND_DOWN, context=_AMOUNT_CONTEXT))
    if base_units > MAX_UINT256:
        raise InvalidRequestError(
            "amount exceeds the uint256 range",
            field="amount",
            value=text,
            constraint="amount * 10**decimals <= 2**256 - 1",
        )
    return base_units


def format_token_amount(
    amount: AmountLike, decimals: int, precision: int = DISPLAY_PRECISION
) -> str:
    """Render base units as a plain decimal string for display.

    Rounds half-up to ``precision`` places and drops trailing zeros:
    ``format_token_amount(1_500_000, 6) == "1.5"``.
    """
    base_units = parse_amount(amount, "amount")
    decimals = validate_decimals(decimals)
    value = Decimal(base_units).scaleb(-decimals, _AMOUNT_CONTEXT)
    rounded = value.quantize(
        Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP, context=_AMOUNT_CONTEXT
    )
    if rounded == 0:
        return "0"
    return format(rounded.normalize(_AMOUNT_CONTEXT), "f")

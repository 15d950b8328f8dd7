"""Configuration helpers for the trade quoting service."""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv
from eth_utils import is_hex_address

from .chains import is_chain_supported

DEFAULT_FEE_RECIPIENT = "0x742d35Cc6634C0532925a3b8D53419a6A68A05a9"
MAX_BPS = 10_000
RPC_URL_PREFIX = "RPC_URL_"


def _require_env(key: str, message: str) -> str:
    value = os.getenv(key)
    if not value:
        raise ValueError(message)
    return value


def _bool_from_env(value: str | None, *, default: bool = True) -> bool:
    comparison = (value or ("true" if default else "false")).strip().lower()
    return comparison in {"1", "true", "yes"}


def _int_from_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc


def _float_from_env(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{key} must be a number, got {raw!r}") from exc


def _rpc_urls_from_env() -> dict[int, str]:
    """Collect RPC_URL_<chainId> overrides, e.g. RPC_URL_1=https://..."""
    urls: dict[int, str] = {}
    for key, value in os.environ.items():
        suffix = key.removeprefix(RPC_URL_PREFIX)
        if suffix == key or not suffix.isdigit() or not value.strip():
            continue
        urls[int(suffix)] = value.strip()
    return urls


@dataclass(slots=True)
class TradeConfig:
    api_key: str
    base_url: str = "https://api.0x.org"
    api_version: str = "v2"
    platform_fee_bps: int = 50
    fee_recipient: str = DEFAULT_FEE_RECIPIENT
    default_slippage_bps: int = 100
    default_chain_id: int = 1
    rate_limit: int = 100
    quote_timeout: float = 5.0
    aux_timeout: float = 3.0
    onchain_allowance: bool = False
    trade_record_ttl: float = 7 * 24 * 3600
    log_level: str = "INFO"
    http_host: str = "127.0.0.1"
    http_port: int = 8000
    rpc_urls: dict[int, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "TradeConfig":
        api_key = _require_env(
            "ZEROX_API_KEY",
            "ZEROX_API_KEY environment variable is required. Please set it to your 0x API key.",
        ).strip()
        return cls(
            api_key=api_key,
            base_url=os.getenv("ZEROX_BASE_URL", "https://api.0x.org").rstrip("/"),
            api_version=os.getenv("ZEROX_API_VERSION", "v2"),
            platform_fee_bps=_int_from_env("PLATFORM_FEE_BPS", 50),
            fee_recipient=os.getenv("FEE_RECIPIENT", DEFAULT_FEE_RECIPIENT).strip(),
            default_slippage_bps=_int_from_env("DEFAULT_SLIPPAGE_BPS", 100),
            default_chain_id=_int_from_env("DEFAULT_CHAIN_ID", 1),
            rate_limit=_int_from_env("API_RATE_LIMIT", 100),
            quote_timeout=_float_from_env("QUOTE_TIMEOUT_SECONDS", 5.0),
            aux_timeout=_float_from_env("AUX_TIMEOUT_SECONDS", 3.0),
            onchain_allowance=_bool_from_env(
                os.getenv("ONCHAIN_ALLOWANCE"), default=False
            ),
            trade_record_ttl=_float_from_env(
                "TRADE_RECORD_TTL_SECONDS", 7 * 24 * 3600
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            http_host=os.getenv("HTTP_HOST", "127.0.0.1"),
            http_port=_int_from_env("HTTP_PORT", 8000),
            rpc_urls=_rpc_urls_from_env(),
        )

    def validate(self) -> None:
        if not self.api_key:
            raise ValueError("API key cannot be empty")
        if not self.base_url.startswith(("https://", "http://")):
            raise ValueError(
                f"Invalid base URL: {self.base_url}. URL must start with http:// or https://"
            )
        for name, bps in (
            ("platform_fee_bps", self.platform_fee_bps),
            ("default_slippage_bps", self.default_slippage_bps),
        ):
            if not 0 <= bps <= MAX_BPS:
                raise ValueError(
                    f"Invalid {name}: {bps}. Basis points must be between 0 and {MAX_BPS}"
                )
        if self.platform_fee_bps > 0 and not is_hex_address(self.fee_recipient):
            raise ValueError(
                f"Invalid fee recipient address: {self.fee_recipient}. "
                "Address must be a 0x-prefixed 20-byte hex string"
            )
        if self.quote_timeout <= 0 or self.aux_timeout <= 0:
            raise ValueError("Timeouts must be positive")
        if self.trade_record_ttl <= 0:
            raise ValueError("Trade record TTL must be positive")
        if not is_chain_supported(self.default_chain_id):
            raise ValueError(f"Default chain {self.default_chain_id} is not supported")

    @property
    def fee_percentage(self) -> str:
        return bps_to_percentage(self.platform_fee_bps)


def bps_to_percentage(bps: int) -> str:
    """Render basis points as a percentage string, e.g. 50 -> '0.5%'."""
    whole, remainder = divmod(bps, 100)
    if remainder == 0:
        return f"{whole}%"
    return f"{whole}.{remainder:02d}".rstrip("0") + "%"


def load_config() -> TradeConfig:
    load_dotenv()
    config = TradeConfig.from_env()
    config.validate()
    return config

"""Static chain registry for the chains the 0x aggregator serves."""

from dataclasses import asdict, dataclass
from typing import Any, Literal, Optional

ChainFeature = Literal["swap", "gasless"]

PERMIT2_ADDRESS = "0x000000000022D473030F116dDEE9F6B43aC78BA3"
ALLOWANCE_HOLDER_CANCUN = "0x0000000000001fF3684f28c67538d4D072C22734"
ALLOWANCE_HOLDER_SHANGHAI = "0x000000000000175a8b9bC6d539B3708EEd92EA6c"

SOLANA_CHAIN_ID = 101


@dataclass(frozen=True)
class ChainConfig:
    """Static description of a chain and what the aggregator supports on it."""

    id: int
    name: str
    symbol: str
    rpc_url: str
    block_explorer: str
    supported_features: tuple[ChainFeature, ...]
    permit2_address: str = PERMIT2_ADDRESS
    allowance_holder_address: str = ALLOWANCE_HOLDER_CANCUN

    def supports(self, feature: ChainFeature) -> bool:
        return feature in self.supported_features

    @property
    def uses_erc20_allowances(self) -> bool:
        return bool(self.allowance_holder_address)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {
            "id": data["id"],
            "name": data["name"],
            "symbol": data["symbol"],
            "rpcUrl": data["rpc_url"],
            "blockExplorer": data["block_explorer"],
            "supportedFeatures": list(data["supported_features"]),
            "permit2Address": data["permit2_address"],
            "allowanceHolderAddress": data["allowance_holder_address"],
            "hexId": format_chain_id(self.id),
        }


@dataclass(frozen=True)
class ReferencePair:
    """A liquid pair used to ask the aggregator for its allowance target."""

    sell_token: str
    buy_token: str
    sell_amount: str


_BOTH: tuple[ChainFeature, ...] = ("swap", "gasless")
_SWAP_ONLY: tuple[ChainFeature, ...] = ("swap",)

SUPPORTED_CHAINS: dict[int, ChainConfig] = {
    chain.id: chain
    for chain in (
        ChainConfig(1, "Ethereum", "ETH", "https://eth.llamarpc.com", "https://etherscan.io", _BOTH),
        ChainConfig(10, "Optimism", "ETH", "https://mainnet.optimism.io", "https://optimistic.etherscan.io", _BOTH),
        ChainConfig(
            56, "BNB Chain", "BNB", "https://bsc-dataseed1.binance.org", "https://bscscan.com", _BOTH,
            allowance_holder_address=ALLOWANCE_HOLDER_SHANGHAI,
        ),
        ChainConfig(
            137, "Polygon", "MATIC", "https://polygon-rpc.com", "https://polygonscan.com", _BOTH,
            allowance_holder_address=ALLOWANCE_HOLDER_SHANGHAI,
        ),
        ChainConfig(8453, "Base", "ETH", "https://mainnet.base.org", "https://basescan.org", _BOTH),
        ChainConfig(42161, "Arbitrum One", "ETH", "https://arb1.arbitrum.io/rpc", "https://arbiscan.io", _BOTH),
        ChainConfig(
            43114, "Avalanche", "AVAX", "https://api.avax.network/ext/bc/C/rpc", "https://snowtrace.io", _BOTH,
            allowance_holder_address=ALLOWANCE_HOLDER_SHANGHAI,
        ),
        ChainConfig(59144, "Linea", "ETH", "https://rpc.linea.build", "https://lineascan.build", _SWAP_ONLY),
        ChainConfig(534352, "Scroll", "ETH", "https://rpc.scroll.io", "https://scrollscan.com", _BOTH),
        ChainConfig(
            5000, "Mantle", "MNT", "https://rpc.mantle.xyz", "https://explorer.mantle.xyz", _BOTH,
            allowance_holder_address=ALLOWANCE_HOLDER_SHANGHAI,
        ),
        ChainConfig(34443, "Mode", "ETH", "https://mainnet.mode.network", "https://explorer.mode.network", _BOTH),
        ChainConfig(81457, "Blast", "ETH", "https://rpc.blast.io", "https://blastscan.io", _BOTH),
        ChainConfig(80084, "Berachain", "BERA", "https://rpc.berachain.com", "https://explorer.berachain.com", _SWAP_ONLY),
        ChainConfig(
            57073, "Ink", "ETH", "https://rpc-gel-sepolia.inkonchain.com", "https://explorer-sepolia.inkonchain.com",
            _SWAP_ONLY,
        ),
        ChainConfig(130, "Unichain", "ETH", "https://rpc.unichain.org", "https://explorer.unichain.org", _SWAP_ONLY),
        ChainConfig(
            480, "World Chain", "ETH", "https://worldchain-mainnet.g.alchemy.com/public", "https://worldscan.org",
            _SWAP_ONLY,
        ),
        ChainConfig(10143, "Monad", "MON", "https://rpc.monad.xyz", "https://explorer.monad.xyz", _SWAP_ONLY),
        # Solana has no Permit2 or allowance holder.
        ChainConfig(
            SOLANA_CHAIN_ID, "Solana", "SOL", "https://api.mainnet-beta.solana.com", "https://solscan.io", _SWAP_ONLY,
            permit2_address="", allowance_holder_address="",
        ),
    )
}

# USDC -> wrapped native token, 1 USDC.
_REFERENCE_PAIRS: dict[int, ReferencePair] = {
    1: ReferencePair(
        sell_token="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        buy_token="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        sell_amount="1000000",
    ),
    137: ReferencePair(
        sell_token="0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
        buy_token="0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270",
        sell_amount="1000000",
    ),
    8453: ReferencePair(
        sell_token="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        buy_token="0x4200000000000000000000000000000000000006",
        sell_amount="1000000",
    ),
    42161: ReferencePair(
        sell_token="0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        buy_token="0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
        sell_amount="1000000",
    ),
    10: ReferencePair(
        sell_token="0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
        buy_token="0x4200000000000000000000000000000000000006",
        sell_amount="1000000",
    ),
}


def get_chain_config(chain_id: int) -> Optional[ChainConfig]:
    return SUPPORTED_CHAINS.get(chain_id)


def is_chain_supported(chain_id: int) -> bool:
    return chain_id in SUPPORTED_CHAINS


def get_chains_by_feature(feature: ChainFeature) -> list[ChainConfig]:
    return [chain for chain in SUPPORTED_CHAINS.values() if chain.supports(feature)]


def format_chain_id(chain_id: int) -> str:
    """Return the hex form wallets expect, e.g. 137 -> '0x89'."""
    return hex(chain_id)


def reference_pair_for(chain_id: int) -> ReferencePair:
    """Return the pair used to discover the allowance target on ``chain_id``.

    Chains without a curated pair fall back to the Ethereum mainnet pair, the
    same request the aggregator has always been asked for.
    """
    return _REFERENCE_PAIRS.get(chain_id, _REFERENCE_PAIRS[1])

"""Trade record storage and fee statistics."""

import threading
import time
from collections import defaultdict
from typing import Any, Callable, Iterable, Optional, Protocol

from cachetools import TTLCache

from .models import TradeRecord

DAY_SECONDS = 24 * 3600
TOP_PAIRS = 5


class TradeStore(Protocol):
    """Key-value store for trade records, keyed by trade id."""

    def get(self, trade_id: str) -> Optional[TradeRecord]: ...

    def save(self, record: TradeRecord) -> None: ...

    def records(self) -> list[TradeRecord]: ...


class InMemoryTradeStore:
    """Process-local store. Records are lost on restart and expire after ``ttl``.

    The blockchain stays the source of truth for whether a trade executed;
    this is bookkeeping only.
    """

    def __init__(
        self,
        maxsize: int = 10_000,
        ttl: float = 7 * DAY_SECONDS,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache: TTLCache[str, TradeRecord] = TTLCache(
            maxsize=maxsize, ttl=ttl, timer=timer
        )
        self._lock = threading.Lock()

    def get(self, trade_id: str) -> Optional[TradeRecord]:
        with self._lock:
            return self._cache.get(trade_id)

    def save(self, record: TradeRecord) -> None:
        with self._lock:
            self._cache[record.id] = record

    def records(self) -> list[TradeRecord]:
        with self._lock:
            self._cache.expire()
            return list(self._cache.values())

    def __len__(self) -> int:
        with self._lock:
            self._cache.expire()
            return len(self._cache)


def _short(address: str) -> str:
    return address if len(address) <= 12 else f"{address[:6]}...{address[-4:]}"


def summarize_fee_history(records: Iterable[TradeRecord], now: float) -> dict[str, Any]:
    """Aggregate fee statistics over non-failed trades.

    Fee amounts are summed in base units of each trade's buy token.
    """
    counted = [record for record in records if record.status != "failed"]
    total_fees = sum(record.platform_fee_amount for record in counted)

    def window(seconds: float) -> dict[str, Any]:
        recent = [record for record in counted if now - record.created_at <= seconds]
        return {
            "feesCollected": str(sum(record.platform_fee_amount for record in recent)),
            "tradeCount": len(recent),
        }

    pairs: dict[str, dict[str, int]] = defaultdict(
        lambda: {"volume": 0, "fees": 0, "count": 0}
    )
    for record in counted:
        key = f"{_short(record.sell_token)}/{_short(record.buy_token)}"
        pairs[key]["volume"] += record.buy_amount
        pairs[key]["fees"] += record.platform_fee_amount
        pairs[key]["count"] += 1

    ranked = sorted(pairs.items(), key=lambda item: (-item[1]["count"], item[0]))
    return {
        "totalFeesCollected": str(total_fees),
        "totalTrades": len(counted),
        "averageFeePerTrade": str(total_fees // len(counted)) if counted else "0",
        "last24Hours": window(DAY_SECONDS),
        "last7Days": window(7 * DAY_SECONDS),
        "topTradingPairs": [
            {
                "pair": pair,
                "volume": str(stats["volume"]),
                "fees": str(stats["fees"]),
                "count": stats["count"],
            }
            for pair, stats in ranked[:TOP_PAIRS]
        ],
    }

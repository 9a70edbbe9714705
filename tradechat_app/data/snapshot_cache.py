"""
Market snapshot cache and symbol detection.

The cache is an explicit object owned by the conversation session. The caller
checks freshness before asking the market data collaborator for new
snapshots; nothing here is module-level state.
"""

import re
import time
from dataclasses import dataclass, field
from typing import Callable, Generic, Optional, TypeVar

from ..logging.config import get_logger

logger = get_logger(__name__)

V = TypeVar("V")

# (symbol, aliases) in detection order
SYMBOL_ALIASES: list[tuple[str, tuple[str, ...]]] = [
    ("BTC", ("BTC", "BITCOIN")),
    ("ETH", ("ETH", "ETHEREUM", "ETHER")),
    ("SOL", ("SOL", "SOLANA")),
    ("XRP", ("XRP", "RIPPLE")),
    ("DOGE", ("DOGE", "DOGECOIN")),
    ("ADA", ("ADA", "CARDANO")),
    ("AVAX", ("AVAX", "AVALANCHE")),
    ("LINK", ("LINK", "CHAINLINK")),
    ("DOT", ("DOT", "POLKADOT")),
    ("MATIC", ("MATIC", "POLYGON")),
    ("ARB", ("ARB", "ARBITRUM")),
    ("BNB", ("BNB", "BINANCE")),
    ("PEPE", ("PEPE",)),
    ("WIF", ("WIF",)),
    ("SUI", ("SUI",)),
]

MARKET_WORDS = (
    "market", "analysis", "signal", "cascade", "risk", "portfolio", "position",
    "setup", "conviction", "trade", "buy", "sell", "long", "short", "invest",
    "compare", "better", "best", "which", "versus", "vs",
)

_OP_WORD = re.compile(r"\bOP\b")


def detect_symbols(query: str) -> list[str]:
    """
    Detect traded symbols mentioned in a free-text query.

    Matching is substring based on the upper-cased query. OP is only picked up
    as a standalone word or via "OPTIMISM". A query with no symbol but a
    market-related word defaults to BTC.
    """
    upper = query.upper()
    symbols = []
    for symbol, aliases in SYMBOL_ALIASES:
        if any(alias in upper for alias in aliases):
            symbols.append(symbol)
        # OP sits between ARB and BNB in display order
        if symbol == "ARB" and ("OPTIMISM" in upper or _OP_WORD.search(upper)):
            symbols.append("OP")

    if not symbols:
        lowered = query.lower()
        if any(word in lowered for word in MARKET_WORDS):
            symbols.append("BTC")

    return symbols


def cache_key(symbols: list[str]) -> str:
    return ",".join(symbols)


@dataclass
class CacheEntry(Generic[V]):
    """A cached value with the key it was fetched for and when."""
    key: str
    value: V
    timestamp: float


@dataclass
class SnapshotCache(Generic[V]):
    """Single-entry TTL cache keyed by the detected symbol set."""
    ttl_seconds: float = 30.0
    clock: Callable[[], float] = field(default=time.monotonic)
    entry: Optional[CacheEntry[V]] = None

    def get(self, key: str) -> Optional[V]:
        """Return the cached value if it matches key and has not expired."""
        if self.entry is None or self.entry.key != key:
            return None
        age = self.clock() - self.entry.timestamp
        if age >= self.ttl_seconds:
            logger.debug("Snapshot cache expired", key=key, age_seconds=round(age, 2))
            return None
        return self.entry.value

    def put(self, key: str, value: V) -> None:
        self.entry = CacheEntry(key=key, value=value, timestamp=self.clock())

    @property
    def last_symbols(self) -> list[str]:
        """Symbols of the most recent entry, fresh or not."""
        if self.entry is None or not self.entry.key:
            return []
        return self.entry.key.split(",")

    def clear(self) -> None:
        self.entry = None

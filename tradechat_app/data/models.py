"""
Canonical data models for the conversational response pipeline.

This module defines the structures that flow through a turn: decoded stream
frames, the conversation turn being streamed into, the market snapshot that
is fetched alongside the query, and the records derived once the stream ends.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import numpy as np

from ..text.jargon import clean_jargon


class FrameKind(Enum):
    """Wire framing of a stream line."""
    NDJSON = "ndjson"
    SSE = "sse"


class Role(Enum):
    """Conversation participant."""
    USER = "user"
    ASSISTANT = "assistant"


class Bias(Enum):
    """Qualitative market direction of a snapshot."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"

    @classmethod
    def infer(cls, text: Optional[str]) -> "Bias":
        """Infer bias by substring match, e.g. 'Strongly Bullish' -> BULLISH."""
        lowered = (text or "").lower()
        if "bull" in lowered:
            return cls.BULLISH
        if "bear" in lowered:
            return cls.BEARISH
        return cls.NEUTRAL


@dataclass(frozen=True)
class StreamFrame:
    """One decoded protocol unit: an NDJSON object or an SSE data payload."""
    raw: str                                  # Line as received, prefix stripped
    kind: FrameKind
    payload: Optional[dict[str, Any]] = None  # None when the line was malformed
    delta: str = ""                           # Extracted content, possibly empty

    @property
    def has_delta(self) -> bool:
        return bool(self.delta)


@dataclass
class ConversationTurn:
    """
    A single message in the conversation.

    Assistant turns are created empty and grown by the stream ingestor. Content
    is append-only while streaming; once closed the turn is immutable except for
    the error replacement applied when the stream fails.
    """
    role: Role
    content: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    projections: list["MarketSnapshot"] = field(default_factory=list)
    streaming: bool = False
    error: Optional[str] = None

    def append(self, delta: str) -> None:
        """Append a content delta to a streaming turn."""
        if not self.streaming:
            raise ValueError(f"Turn {self.id} is not streaming")
        self.content += delta

    def close(self) -> None:
        """Mark the turn finished; no further deltas are accepted."""
        self.streaming = False

    def replace_with_error(self, message: str) -> None:
        """Replace the in-progress content with an error message and close."""
        self.error = message
        self.content = message
        self.streaming = False

    @property
    def display_text(self) -> str:
        """Content with trading jargon replaced; recomputed on every read."""
        return clean_jargon(self.content)

    def as_message(self) -> dict[str, str]:
        """Chat API representation of the turn."""
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class SignalScores:
    """Six named 0-100 signal axes of a market snapshot."""
    whale_flow: int = 50
    smart_money: int = 50
    derivatives: int = 50
    volatility: int = 50
    order_flow: int = 50
    momentum: int = 50

    def axes(self) -> list[tuple[str, int]]:
        """Axis labels with values, in display order."""
        return [
            ("Whale Flow", self.whale_flow),
            ("Smart Money", self.smart_money),
            ("Derivatives", self.derivatives),
            ("Volatility", self.volatility),
            ("Order Flow", self.order_flow),
            ("Momentum", self.momentum),
        ]

    def average(self) -> int:
        values = [value for _, value in self.axes()]
        return round(sum(values) / len(values))

    def overall_bias(self) -> str:
        """BULLISH above 60, BEARISH below 40, NEUTRAL otherwise."""
        avg = self.average()
        if avg > 60:
            return "BULLISH"
        if avg < 40:
            return "BEARISH"
        return "NEUTRAL"


@dataclass(frozen=True)
class MarketSnapshot:
    """Pre-fetched, normalized market data for one symbol. Read-only to the pipeline."""
    symbol: str
    price: float
    support: float
    resistance: float
    bias: str = "neutral"
    confidence: float = 50.0                  # 0-100
    volatility7d: Optional[float] = None      # Weekly realized volatility, percent
    volatility30d: Optional[float] = None
    signals: SignalScores = field(default_factory=SignalScores)
    buy_volume: float = 0.0
    sell_volume: float = 0.0
    net_flow: float = 0.0
    flow_sentiment: str = "neutral"
    large_trades: int = 0

    @property
    def bias_kind(self) -> Bias:
        return Bias.infer(self.bias)

    @property
    def buy_pct(self) -> int:
        """Share of large-trade volume on the buy side, percent."""
        total = self.buy_volume + self.sell_volume or 1
        return round(self.buy_volume / total * 100)

    @property
    def sell_pct(self) -> int:
        return 100 - self.buy_pct

    @property
    def is_net_bullish(self) -> bool:
        return self.net_flow > 0


@dataclass(frozen=True)
class PriceLevel:
    """A labelled price on the trade card."""
    label: str               # TARGET, ENTRY or STOP
    value: str               # As written, e.g. "$97,000"
    price: float
    pct: Optional[str] = None


@dataclass(frozen=True)
class TradeCall:
    """Structured trade recommendation extracted from a finished response."""
    direction: str                      # Always BUY or SELL
    entry: str
    side: Optional[str] = None          # Literal matched word: BUY, SELL, LONG or SHORT
    coin: Optional[str] = None
    conviction: Optional[str] = None    # "0.72/1.00"
    target: Optional[str] = None
    target_pct: Optional[str] = None
    stop: Optional[str] = None
    stop_pct: Optional[str] = None
    rr: Optional[str] = None
    size: Optional[str] = None
    thesis: Optional[str] = None

    @property
    def is_sell(self) -> bool:
        return self.direction == "SELL"

    @property
    def label(self) -> str:
        """Card label: SHORT for sells, LONG for buys."""
        return "SHORT" if self.is_sell else "LONG"

    @property
    def conviction_value(self) -> float:
        """Numerator of the conviction fraction, 0.0 when absent or unparseable."""
        if not self.conviction:
            return 0.0
        try:
            return float(self.conviction.split("/")[0])
        except ValueError:
            return 0.0

    @property
    def conviction_pct(self) -> int:
        return round(self.conviction_value * 100)

    def levels(self) -> list[PriceLevel]:
        """Target, entry and stop with positive prices, highest first."""
        candidates = [
            ("TARGET", self.target, self.target_pct),
            ("ENTRY", self.entry, None),
            ("STOP", self.stop, self.stop_pct),
        ]
        levels = []
        for label, value, pct in candidates:
            price = parse_price(value)
            if value and price > 0:
                levels.append(PriceLevel(label=label, value=value, price=price, pct=pct))
        return sorted(levels, key=lambda level: level.price, reverse=True)

    def as_dict(self) -> dict[str, str]:
        """Populated fields under the consumer-facing key names."""
        keys = {
            "direction": self.direction,
            "coin": self.coin,
            "conviction": self.conviction,
            "entry": self.entry,
            "target": self.target,
            "targetPct": self.target_pct,
            "stop": self.stop,
            "stopPct": self.stop_pct,
            "rr": self.rr,
            "size": self.size,
            "thesis": self.thesis,
        }
        return {key: value for key, value in keys.items() if value is not None}


@dataclass(frozen=True)
class SimulationResult:
    """Monte Carlo projection derived from a market snapshot."""
    symbol: str
    start_price: float
    support: float
    resistance: float
    volatility7d: float
    drift: float
    step_volatility: float
    paths: np.ndarray                  # Shape (n_paths, steps + 1), column 0 is start_price
    bands: dict[int, np.ndarray]       # Percentile -> price per step
    bullish_ratio: float               # Fraction of paths ending above start_price
    median_end_price: float
    median_return_pct: float
    best_entry: float

    @property
    def n_paths(self) -> int:
        return int(self.paths.shape[0])

    @property
    def steps(self) -> int:
        return int(self.paths.shape[1]) - 1

    @property
    def bullish_pct(self) -> int:
        return round(self.bullish_ratio * 100)


def parse_price(value: Optional[str]) -> float:
    """Parse a dollar string such as "$97,000.50" to a float, 0.0 if unparseable."""
    if not value:
        return 0.0
    try:
        return float(value.replace("$", "").replace(",", ""))
    except ValueError:
        return 0.0


def format_usd(value: float) -> str:
    """Compact dollar formatting: $1.2B, $3.4M, $56K, $7."""
    magnitude = abs(value)
    if magnitude >= 1e9:
        return f"${value / 1e9:.1f}B"
    if magnitude >= 1e6:
        return f"${value / 1e6:.1f}M"
    if magnitude >= 1e3:
        return f"${value / 1e3:.0f}K"
    return f"${value:.0f}"

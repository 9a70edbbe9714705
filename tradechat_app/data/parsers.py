"""
Parsers for streamed model frames and normalized market snapshots.

Stream lines arrive in one of two framings: raw NDJSON objects (Ollama native
chat) or Server-Sent-Events `data:` payloads (OpenAI compatible). Both JSON
shapes are resolved here into a single content delta.
"""

import logging
from typing import Any, Optional

import orjson

from ..errors import FrameDecodeError, MalformedSnapshotError
from .models import FrameKind, MarketSnapshot, SignalScores, StreamFrame

logger = logging.getLogger(__name__)

SSE_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class FrameMetrics:
    """Counters for frame decoding within one stream."""

    def __init__(self):
        self.lines_seen = 0
        self.frames_parsed = 0
        self.frames_discarded = 0
        self.deltas_emitted = 0
        self.sentinels_seen = 0

    def get_stats(self) -> dict[str, Any]:
        """Get current counters."""
        return {
            "lines_seen": self.lines_seen,
            "frames_parsed": self.frames_parsed,
            "frames_discarded": self.frames_discarded,
            "deltas_emitted": self.deltas_emitted,
            "sentinels_seen": self.sentinels_seen,
        }


def parse_json_payload(raw_data: str) -> dict[str, Any]:
    """
    Parse a frame body into a dictionary.

    Args:
        raw_data: JSON text of a single frame

    Returns:
        Parsed dictionary

    Raises:
        FrameDecodeError: If the text is not a JSON object
    """
    try:
        parsed = orjson.loads(raw_data)
    except orjson.JSONDecodeError as e:
        raise FrameDecodeError(f"Invalid JSON: {e}", raw_line=raw_data[:100])

    if not isinstance(parsed, dict):
        raise FrameDecodeError(
            f"Frame must be a JSON object, got {type(parsed).__name__}",
            raw_line=raw_data[:100]
        )
    return parsed


def resolve_delta(payload: dict[str, Any]) -> str:
    """
    Resolve the content delta from either supported frame schema.

    Prefers the NDJSON `message.content` shape, then the OpenAI style
    `choices[0].delta.content`, then `choices[0].delta.reasoning`. Anything
    else yields an empty delta.
    """
    message = payload.get("message")
    if isinstance(message, dict):
        content = message.get("content")
        if isinstance(content, str) and content:
            return content

    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        delta = choices[0].get("delta")
        if isinstance(delta, dict):
            for key in ("content", "reasoning"):
                value = delta.get(key)
                if isinstance(value, str) and value:
                    return value

    return ""


def parse_frame_line(line: str, *,
                     sse_prefix: str = SSE_PREFIX,
                     done_sentinel: str = DONE_SENTINEL) -> Optional[StreamFrame]:
    """
    Decode one complete stream line.

    Args:
        line: A single line without its trailing newline
        sse_prefix: Prefix marking an SSE data line
        done_sentinel: SSE payload that terminates the stream

    Returns:
        StreamFrame, or None for blank lines and the terminator sentinel

    Raises:
        FrameDecodeError: If the (prefix-stripped) line is not a JSON object
    """
    trimmed = line.strip()
    if not trimmed:
        return None

    kind = FrameKind.NDJSON
    body = trimmed
    if trimmed.startswith(sse_prefix):
        kind = FrameKind.SSE
        body = trimmed[len(sse_prefix):]
        if body == done_sentinel:
            return None

    payload = parse_json_payload(body)
    return StreamFrame(raw=body, kind=kind, payload=payload, delta=resolve_delta(payload))


def parse_market_snapshot(payload: dict[str, Any]) -> MarketSnapshot:
    """
    Build a MarketSnapshot from the normalized market data shape.

    Expected format (camelCase, as produced by the market data collaborator):
    {
        "symbol": "BTC", "price": 97000.0, "support": 94000.0, "resistance": 102000.0,
        "bias": "bullish", "confidence": 72, "volatility7d": 3.1,
        "signals": {"whaleFlow": 64, "smartMoney": 58, "derivatives": 50,
                    "volatility": 55, "orderFlow": 61, "momentum": 70},
        "buyVolume": 1.2e7, "sellVolume": 8.0e6, "netFlow": 4.0e6,
        "flowSentiment": "bullish", "largeTrades": 42
    }

    Missing support/resistance default to 5% below/above price.

    Raises:
        MalformedSnapshotError: If symbol or price is missing or not numeric
    """
    if not isinstance(payload, dict):
        raise MalformedSnapshotError("Snapshot payload must be a dictionary")

    symbol = payload.get("symbol")
    missing = [name for name in ("symbol", "price") if payload.get(name) in (None, "")]
    if missing:
        raise MalformedSnapshotError(
            f"Snapshot missing required fields: {missing}",
            symbol=symbol,
            missing_fields=missing
        )

    try:
        price = float(payload["price"])
        support = float(payload.get("support") or price * 0.95)
        resistance = float(payload.get("resistance") or price * 1.05)
        confidence = float(payload.get("confidence") or 50)
        vol7d = payload.get("volatility7d")
        vol30d = payload.get("volatility30d")
        raw_signals = payload.get("signals") or {}
        signals = SignalScores(
            whale_flow=int(raw_signals.get("whaleFlow", 50)),
            smart_money=int(raw_signals.get("smartMoney", 50)),
            derivatives=int(raw_signals.get("derivatives", 50)),
            volatility=int(raw_signals.get("volatility", 50)),
            order_flow=int(raw_signals.get("orderFlow", 50)),
            momentum=int(raw_signals.get("momentum", 50)),
        )
        snapshot = MarketSnapshot(
            symbol=str(symbol).upper().replace("USDT", ""),
            price=price,
            support=support,
            resistance=resistance,
            bias=str(payload.get("bias") or "neutral"),
            confidence=confidence,
            volatility7d=float(vol7d) if vol7d is not None else None,
            volatility30d=float(vol30d) if vol30d is not None else None,
            signals=signals,
            buy_volume=float(payload.get("buyVolume") or 0),
            sell_volume=float(payload.get("sellVolume") or 0),
            net_flow=float(payload.get("netFlow") or 0),
            flow_sentiment=str(payload.get("flowSentiment") or "neutral"),
            large_trades=int(payload.get("largeTrades") or 0),
        )
    except (TypeError, ValueError, AttributeError) as e:
        raise MalformedSnapshotError(f"Invalid snapshot data for {symbol}: {e}", symbol=symbol)

    if snapshot.price <= 0:
        raise MalformedSnapshotError(f"Price must be positive, got {snapshot.price}", symbol=symbol)

    logger.debug(f"Parsed market snapshot for {snapshot.symbol}: price={snapshot.price}")
    return snapshot

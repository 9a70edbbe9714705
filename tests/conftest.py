"""Pytest configuration and shared fixtures."""

import pytest
from typing import Any, Dict

import orjson

from tradechat_app.data.models import MarketSnapshot, SignalScores


TEMPLATE_RESPONSE = """### SIGNAL MATRIX
| Signal | Reading | Weight |
|--------|---------|--------|
| Whale Flow | Accumulating | High |
| Order Flow | Net Buying | Med |

### TRADE CALL
**Direction:** BUY BTC
**Conviction:** 0.72/1.00
**Entry:** $97,000 (limit at support)
**Target:** $102,000 (+5.2%)
**Stop:** $94,000 (-3.1%)
**R:R:** 2.1:1
**Size:** 3% of account ($150 on $5K)

### THESIS
Whales are accumulating near support.
Sellers are running out of steam.

*Not financial advice. Manage your risk.*"""


def ndjson_body(deltas: list[str]) -> bytes:
    """Encode deltas as an Ollama style NDJSON body."""
    lines = [orjson.dumps({"message": {"role": "assistant", "content": d}}) for d in deltas]
    lines.append(orjson.dumps({"done": True}))
    return b"\n".join(lines) + b"\n"


def sse_body(deltas: list[str]) -> bytes:
    """Encode deltas as an OpenAI compatible SSE body."""
    lines = [b"data: " + orjson.dumps({"choices": [{"delta": {"content": d}}]}) for d in deltas]
    lines.append(b"data: [DONE]")
    return b"\n\n".join(lines) + b"\n\n"


def split_every(data: bytes, size: int) -> list[bytes]:
    """Split bytes into fixed-size chunks, ignoring character boundaries."""
    return [data[i:i + size] for i in range(0, len(data), size)]


@pytest.fixture
def template_response() -> str:
    """A complete response in the fixed trade-call template."""
    return TEMPLATE_RESPONSE


@pytest.fixture
def response_deltas() -> list[str]:
    """The template response as a realistic sequence of small deltas."""
    return [TEMPLATE_RESPONSE[i:i + 7] for i in range(0, len(TEMPLATE_RESPONSE), 7)]


@pytest.fixture
def sample_snapshot() -> MarketSnapshot:
    """Bullish BTC snapshot."""
    return MarketSnapshot(
        symbol="BTC",
        price=97000.0,
        support=94000.0,
        resistance=102000.0,
        bias="bullish",
        confidence=72,
        volatility7d=3.1,
        signals=SignalScores(whale_flow=64, smart_money=58, derivatives=50,
                             volatility=55, order_flow=61, momentum=70),
        buy_volume=12_000_000.0,
        sell_volume=8_000_000.0,
        net_flow=4_000_000.0,
        flow_sentiment="bullish",
        large_trades=42,
    )


@pytest.fixture
def sample_snapshot_payload() -> Dict[str, Any]:
    """Normalized market data as delivered by the market data collaborator."""
    return {
        "symbol": "BTCUSDT",
        "price": 97000.0,
        "support": 94000.0,
        "resistance": 102000.0,
        "bias": "Strongly Bullish",
        "confidence": 72,
        "volatility7d": 3.1,
        "signals": {"whaleFlow": 64, "smartMoney": 58, "derivatives": 50,
                    "volatility": 55, "orderFlow": 61, "momentum": 70},
        "buyVolume": 12_000_000,
        "sellVolume": 8_000_000,
        "netFlow": 4_000_000,
        "flowSentiment": "bullish",
        "largeTrades": 42,
    }


@pytest.fixture
def make_ndjson():
    """Factory for NDJSON stream bodies."""
    return ndjson_body


@pytest.fixture
def make_sse():
    """Factory for SSE stream bodies."""
    return sse_body


@pytest.fixture
def chunked():
    """Factory splitting a body into fixed-size chunks."""
    return split_every

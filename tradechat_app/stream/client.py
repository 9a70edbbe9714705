"""
Streaming chat client for the inference endpoint.

Posts the conversation with `stream: true` and yields content deltas through
the StreamIngestor. An overall deadline and an explicit cancel() share the
same abort path: the in-flight read is interrupted and the response closed.
"""

import asyncio
import time
from typing import AsyncIterator, Optional

import httpx
import orjson

from ..config.defaults import StreamParams
from ..errors import StreamCancelledError, StreamTimeoutError, StreamTransportError
from ..logging.config import get_stream_logger
from .ingestor import ReadCancelled, StreamIngestor, iter_deltas, race_read

logger = get_stream_logger(__name__)

SYSTEM_PROMPT = """You are MONTRA, a quantitative crypto trading assistant for the Base blockchain.

RESPONSE FORMAT (every response, no exceptions):

### SIGNAL MATRIX
| Signal | Reading | Weight |
|--------|---------|--------|
| Whale Flow | Accumulating/Distributing/Neutral | High/Med/Low |
| Smart Money | Bullish/Bearish/Neutral | High/Med/Low |
| Derivatives | Overleveraged Longs/Shorts/Balanced | High/Med/Low |
| Volatility | Calm/Normal/Elevated | Med |
| Order Flow | Net Buying/Selling/Mixed | Med |

### TRADE CALL
**Direction:** BUY/SELL [COIN]
**Conviction:** 0.XX/1.00
**Entry:** $XX,XXX (limit at support/resistance)
**Target:** $XX,XXX (+X.X%)
**Stop:** $XX,XXX (-X.X%)
**R:R:** X.X:1
**Size:** X% of account ($XXX on $5K)

### THESIS
2-3 sentences explaining WHY this trade makes sense in plain English: what the big money is doing, what makes the entry attractive, and what would invalidate the trade.

*Not financial advice. Manage your risk.*

STRICT RULES:
1. ALWAYS use the EXACT format above. For purely educational questions give a brief answer, then suggest a trade setup.
2. ALWAYS give a directional trade, BUY or SELL. Mixed signals mean lower conviction (0.45-0.55) and smaller size (1-2%).
3. The Trade Call must never contradict your own Signal Matrix.
4. R:R minimum 2:1. Use a limit order near support (buys) or resistance (sells).
5. BANNED: funding rate, OI, open interest, ATR, CVD, L/S ratio, leverage ratio, implied volatility. Use plain English.
6. Conviction: 0.45-0.58 mixed, 0.60-0.72 moderate, 0.75-0.88 strong.
7. Under 200 words total.
8. Trade the SPECIFIC coin the user asked about.
9. Entry, Target and Stop MUST be real dollar prices, never "N/A"."""


def build_chat_request(
    messages: list[dict[str, str]],
    params: StreamParams,
    market_context: str = "",
    system_prompt: str = SYSTEM_PROMPT,
) -> dict:
    """
    Build the streaming chat completion body.

    Market context is prepended to the final message when that message is
    from the user. The input list is not modified.
    """
    chat_messages = [dict(m) for m in messages]
    if market_context and chat_messages and chat_messages[-1]["role"] == "user":
        last = chat_messages[-1]
        last["content"] = f"{market_context}\n\n{last['content']}"

    return {
        "model": params.model,
        "messages": [{"role": "system", "content": system_prompt}, *chat_messages],
        "max_tokens": params.max_tokens,
        "temperature": params.temperature,
        "stream": True,
    }


class ChatStreamClient:
    """Streams chat completions from an NDJSON or SSE endpoint."""

    def __init__(self, params: Optional[StreamParams] = None,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.params = params or StreamParams()
        self._http_client = http_client
        self._cancel_event: Optional[asyncio.Event] = None
        self.last_ingestor: Optional[StreamIngestor] = None

    def cancel(self) -> None:
        """Abort the in-flight stream; the reader raises StreamCancelledError.

        Ignored when no stream is in flight.
        """
        if self._cancel_event is not None:
            self._cancel_event.set()

    async def stream_chat(
        self,
        messages: list[dict[str, str]],
        market_context: str = "",
    ) -> AsyncIterator[str]:
        """
        Post the conversation and yield content deltas in arrival order.

        The deadline covers the whole exchange, from connecting through the
        last body chunk.

        Raises:
            StreamTransportError: On connection failure or non-2xx status
            StreamTimeoutError: If the overall deadline expires
            StreamCancelledError: If cancel() was called mid-stream
            EmptyResponseError: If the stream finished without content
        """
        timeout_seconds = self.params.timeout_seconds
        deadline = time.monotonic() + timeout_seconds
        # Created per stream; asyncio events bind to the loop that first awaits them
        cancel_event = asyncio.Event()
        self._cancel_event = cancel_event

        body = orjson.dumps(build_chat_request(messages, self.params, market_context))
        ingestor = StreamIngestor(self.params)
        self.last_ingestor = ingestor

        owns_client = self._http_client is None
        client = self._http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
        request = client.build_request(
            "POST",
            self.params.url,
            content=body,
            headers={"Content-Type": "application/json"},
        )
        response = None
        try:
            try:
                response = await race_read(
                    client.send(request, stream=True),
                    deadline - time.monotonic(),
                    cancel_event,
                )
            except asyncio.TimeoutError:
                raise StreamTimeoutError(
                    f"No response within {timeout_seconds}s deadline",
                    timeout_seconds=timeout_seconds,
                    context={"received_chars": 0}
                ) from None
            except ReadCancelled:
                raise StreamCancelledError(received_chars=0) from None

            if response.status_code >= 400:
                raise StreamTransportError(
                    f"Model error: {response.status_code}",
                    status_code=response.status_code,
                )

            async for delta in iter_deltas(
                response.aiter_bytes(),
                ingestor=ingestor,
                timeout_seconds=timeout_seconds,
                cancel_event=cancel_event,
                deadline=deadline,
            ):
                yield delta
        except httpx.TimeoutException as e:
            raise StreamTimeoutError(
                f"Transport timeout: {e}",
                timeout_seconds=timeout_seconds
            ) from e
        except httpx.HTTPError as e:
            logger.warning("Stream transport failure", url=self.params.url, error=str(e))
            raise StreamTransportError(f"Network error: {e}") from e
        finally:
            self._cancel_event = None
            if response is not None:
                await response.aclose()
            if owns_client:
                await client.aclose()

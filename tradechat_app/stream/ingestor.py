"""
Incremental decoder for chunked model-inference streams.

The ingestor keeps one rolling text buffer. Bytes are decoded with an
incremental UTF-8 decoder so multi-byte characters split across chunks
survive, complete lines are decoded as frames, and the trailing fragment is
held until the next chunk. The emitted delta sequence is independent of where
the transport happened to split the body.
"""

import asyncio
import codecs
import time
from contextlib import suppress
from typing import AsyncIterable, AsyncIterator, Awaitable, Optional, TypeVar

from ..config.defaults import StreamParams
from ..data.parsers import FrameMetrics, parse_frame_line
from ..errors import (
    EmptyResponseError,
    FrameDecodeError,
    StreamCancelledError,
    StreamTimeoutError,
)
from ..logging.config import get_stream_logger

logger = get_stream_logger(__name__)

T = TypeVar("T")


class StreamIngestor:
    """
    Turns a chunked NDJSON/SSE body into ordered content deltas.

    One ingestor serves one response. Feed it chunks in arrival order and call
    finish() once the source is exhausted.
    """

    def __init__(self, params: Optional[StreamParams] = None):
        self.params = params or StreamParams()
        self._decoder = codecs.getincrementaldecoder(self.params.encoding)(errors="replace")
        self._buffer = ""
        self._content: list[str] = []
        self._finished = False
        self.metrics = FrameMetrics()

    @property
    def content(self) -> str:
        """All deltas emitted so far, concatenated."""
        return "".join(self._content)

    def feed(self, chunk: bytes) -> list[str]:
        """
        Decode a chunk and return the deltas of every line it completes.

        Args:
            chunk: Raw bytes from the response body

        Returns:
            Deltas in frame order, possibly empty
        """
        if self._finished:
            raise RuntimeError("Cannot feed a finished ingestor")

        self._buffer += self._decoder.decode(chunk)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._process_lines(lines)

    def finish(self) -> list[str]:
        """
        Flush the decoder and any final unterminated line.

        Returns:
            Deltas from the flushed remainder

        Raises:
            EmptyResponseError: If the whole stream produced no visible content
        """
        if self._finished:
            return []
        self._finished = True

        self._buffer += self._decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        deltas = self._process_lines([remainder]) if remainder else []

        if not self.content.strip():
            raise EmptyResponseError(
                "Stream completed without content",
                frames_seen=self.metrics.frames_parsed,
                context=self.metrics.get_stats()
            )
        return deltas

    def _process_lines(self, lines: list[str]) -> list[str]:
        deltas = []
        for line in lines:
            if not line.strip():
                continue
            self.metrics.lines_seen += 1
            try:
                frame = parse_frame_line(
                    line,
                    sse_prefix=self.params.sse_prefix,
                    done_sentinel=self.params.done_sentinel,
                )
            except FrameDecodeError as e:
                # Partial or garbage lines are expected at stream edges
                self.metrics.frames_discarded += 1
                logger.debug("Discarded malformed frame", error=str(e), raw_line=e.raw_line)
                continue

            if frame is None:
                self.metrics.sentinels_seen += 1
                continue

            self.metrics.frames_parsed += 1
            if frame.has_delta:
                self.metrics.deltas_emitted += 1
                self._content.append(frame.delta)
                deltas.append(frame.delta)
        return deltas


class ReadCancelled(Exception):
    """The cancel event fired before the awaited read completed."""


async def race_read(aw: Awaitable[T], timeout: Optional[float],
                    cancel_event: Optional[asyncio.Event] = None) -> T:
    """
    Await a read, racing the deadline and the cancel event.

    The pending read is cancelled when it loses the race.

    Raises:
        asyncio.TimeoutError: If the timeout elapses first
        ReadCancelled: If cancel_event is set first
    """
    read = asyncio.ensure_future(aw)
    cancelled = None
    if cancel_event is not None:
        cancelled = asyncio.ensure_future(cancel_event.wait())

    done = set()
    try:
        if not _expired(timeout, cancel_event):
            waiters = {read} if cancelled is None else {read, cancelled}
            done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if cancelled is not None and not cancelled.done():
            cancelled.cancel()

    if read in done:
        return read.result()

    read.cancel()
    with suppress(asyncio.CancelledError, StopAsyncIteration):
        await read
    if cancel_event is not None and cancel_event.is_set():
        raise ReadCancelled()
    raise asyncio.TimeoutError()


def _expired(timeout: Optional[float], cancel_event: Optional[asyncio.Event]) -> bool:
    if cancel_event is not None and cancel_event.is_set():
        return True
    return timeout is not None and timeout <= 0


async def iter_deltas(
    source: AsyncIterable[bytes],
    ingestor: Optional[StreamIngestor] = None,
    timeout_seconds: Optional[float] = None,
    cancel_event: Optional[asyncio.Event] = None,
    deadline: Optional[float] = None,
) -> AsyncIterator[str]:
    """
    Sequential read loop yielding deltas as they become decodable.

    Args:
        source: Async iterator over response body chunks
        ingestor: Decoder to use, a fresh one by default
        timeout_seconds: Overall wall-clock deadline for the whole stream
        cancel_event: Setting this event aborts the pending read
        deadline: Absolute time.monotonic() deadline, for callers whose budget
            started before the body was available; overrides timeout_seconds

    Raises:
        StreamTimeoutError: If the deadline expires before the source ends
        StreamCancelledError: If cancel_event is set before the source ends
        EmptyResponseError: If the stream finished without content
    """
    ingestor = ingestor or StreamIngestor()
    if deadline is None and timeout_seconds is not None:
        deadline = time.monotonic() + timeout_seconds
    chunks = source.__aiter__()

    while True:
        remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
        try:
            chunk = await race_read(chunks.__anext__(), remaining, cancel_event)
        except StopAsyncIteration:
            break
        except asyncio.TimeoutError:
            await _close_source(chunks)
            raise StreamTimeoutError(
                f"Stream exceeded {timeout_seconds}s deadline",
                timeout_seconds=timeout_seconds,
                context={"received_chars": len(ingestor.content)}
            )
        except ReadCancelled:
            await _close_source(chunks)
            raise StreamCancelledError(received_chars=len(ingestor.content))

        for delta in ingestor.feed(chunk):
            yield delta

    for delta in ingestor.finish():
        yield delta


async def _close_source(chunks: AsyncIterator[bytes]) -> None:
    aclose = getattr(chunks, "aclose", None)
    if aclose is not None:
        await aclose()

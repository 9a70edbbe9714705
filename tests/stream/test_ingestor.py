"""Tests for incremental stream ingestion."""

import asyncio

import pytest

from tradechat_app.config.defaults import StreamParams
from tradechat_app.errors import (
    EmptyResponseError,
    StreamCancelledError,
    StreamTimeoutError,
)
from tradechat_app.stream.ingestor import StreamIngestor, iter_deltas


def ingest(chunks: list[bytes]) -> tuple[list[str], StreamIngestor]:
    ingestor = StreamIngestor()
    deltas = []
    for chunk in chunks:
        deltas.extend(ingestor.feed(chunk))
    deltas.extend(ingestor.finish())
    return deltas, ingestor


async def byte_source(chunks: list[bytes], delay: float = 0.0):
    for chunk in chunks:
        if delay:
            await asyncio.sleep(delay)
        yield chunk


async def collect(source, **kwargs) -> list[str]:
    return [delta async for delta in iter_deltas(source, **kwargs)]


class TestFrameDecoding:
    """Test line framing and schema resolution."""

    def test_ndjson_deltas_in_order(self, make_ndjson):
        """Test NDJSON message.content frames yield deltas in order."""
        deltas, ingestor = ingest([make_ndjson(["Hello", " ", "world"])])

        assert deltas == ["Hello", " ", "world"]
        assert ingestor.content == "Hello world"

    def test_sse_frames_and_done_sentinel(self, make_sse):
        """Test SSE data lines are decoded and [DONE] is discarded."""
        deltas, ingestor = ingest([make_sse(["Buy", " the dip"])])

        assert deltas == ["Buy", " the dip"]
        assert ingestor.metrics.sentinels_seen == 1
        assert ingestor.metrics.frames_discarded == 0

    def test_reasoning_used_when_content_missing(self):
        """Test the reasoning field is the last-resort delta source."""
        body = (b'data: {"choices":[{"delta":{"reasoning":"thinking"}}]}\n'
                b'data: {"choices":[{"delta":{"content":"answer","reasoning":"ignored"}}]}\n')
        deltas, _ = ingest([body])

        assert deltas == ["thinking", "answer"]

    def test_frames_without_content_emit_nothing(self):
        """Test frames with no content produce no delta but still count as parsed."""
        body = b'{"message":{"content":"x"}}\n{"done":true}\n{"choices":[]}\n'
        deltas, ingestor = ingest([body])

        assert deltas == ["x"]
        assert ingestor.metrics.frames_parsed == 3
        assert ingestor.metrics.deltas_emitted == 1

    def test_final_line_without_newline_is_flushed(self):
        """Test an unterminated last line is decoded by finish()."""
        ingestor = StreamIngestor()
        assert ingestor.feed(b'{"message":{"content":"tail"}}') == []
        assert ingestor.finish() == ["tail"]

    def test_feed_after_finish_rejected(self, make_ndjson):
        """Test a finished ingestor refuses more input."""
        _, ingestor = ingest([make_ndjson(["done"])])

        with pytest.raises(RuntimeError):
            ingestor.feed(b"more")


class TestChunkBoundaryInvariance:
    """Test that output does not depend on how the body is split."""

    @pytest.mark.parametrize("size", [1, 2, 3, 5, 17, 64, 4096])
    def test_ndjson_any_split(self, make_ndjson, chunked, response_deltas, size):
        """Test every fixed chunk size yields the same concatenated content."""
        body = make_ndjson(response_deltas)
        expected, _ = ingest([body])

        deltas, _ = ingest(chunked(body, size))

        assert "".join(deltas) == "".join(expected)
        assert deltas == expected

    @pytest.mark.parametrize("size", [1, 4, 9, 33])
    def test_sse_any_split(self, make_sse, chunked, response_deltas, size):
        """Test SSE bodies are split-invariant as well."""
        body = make_sse(response_deltas)

        deltas, _ = ingest(chunked(body, size))

        assert "".join(deltas) == "".join(response_deltas)

    def test_multibyte_character_split_mid_sequence(self, make_ndjson):
        """Test UTF-8 characters split across chunks decode intact."""
        body = make_ndjson(["Price → $97,000 📈", " naïve"])
        # Every split point, including inside the 3- and 4-byte sequences
        for cut in range(1, len(body)):
            deltas, _ = ingest([body[:cut], body[cut:]])
            assert "".join(deltas) == "Price → $97,000 📈 naïve"


class TestMalformedInput:
    """Test resilience to garbage lines."""

    def test_malformed_lines_dropped(self):
        """Test malformed lines are discarded without affecting valid ones."""
        body = (b'{"message":{"content":"A"}}\n'
                b'{"message":{"content":\n'
                b'not json at all\n'
                b'data: {broken\n'
                b'[1, 2, 3]\n'
                b'{"message":{"content":"B"}}\n')
        deltas, ingestor = ingest([body])

        assert deltas == ["A", "B"]
        assert ingestor.metrics.frames_discarded == 4

    def test_blank_lines_ignored(self):
        """Test blank and whitespace-only lines are skipped silently."""
        deltas, ingestor = ingest([b'\n\n   \n{"message":{"content":"ok"}}\n\n'])

        assert deltas == ["ok"]
        assert ingestor.metrics.lines_seen == 1


class TestEmptyResponse:
    """Test detection of streams that finish without content."""

    def test_no_frames(self):
        """Test an empty body raises EmptyResponseError."""
        with pytest.raises(EmptyResponseError):
            ingest([b""])

    def test_whitespace_only_content(self, make_ndjson):
        """Test whitespace-only content counts as empty."""
        with pytest.raises(EmptyResponseError) as exc_info:
            ingest([make_ndjson(["  ", "\n"])])

        assert exc_info.value.frames_seen == 3

    def test_only_garbage(self):
        """Test a body of only malformed frames is an empty response."""
        with pytest.raises(EmptyResponseError) as exc_info:
            ingest([b"garbage\nmore garbage\n"])

        assert exc_info.value.context["frames_discarded"] == 2


class TestAsyncReadLoop:
    """Test the async delta iterator."""

    def test_yields_all_deltas(self, make_ndjson, chunked):
        """Test the loop yields the same deltas as synchronous feeding."""
        body = make_ndjson(["one ", "two ", "three"])

        deltas = asyncio.run(collect(byte_source(chunked(body, 5))))

        assert "".join(deltas) == "one two three"

    def test_uses_supplied_ingestor(self, make_sse):
        """Test metrics accumulate on the ingestor passed in."""
        ingestor = StreamIngestor(StreamParams())

        asyncio.run(collect(byte_source([make_sse(["x", "y"])]), ingestor=ingestor))

        assert ingestor.content == "xy"
        assert ingestor.metrics.deltas_emitted == 2

    def test_deadline_aborts_read(self, make_ndjson):
        """Test a slow source surfaces StreamTimeoutError."""
        chunks = [make_ndjson(["partial"])] * 10

        with pytest.raises(StreamTimeoutError) as exc_info:
            asyncio.run(collect(byte_source(chunks, delay=0.05), timeout_seconds=0.12))

        assert exc_info.value.timeout_seconds == 0.12
        assert exc_info.value.recoverable is True

    def test_cancel_event_aborts_pending_read(self, make_ndjson):
        """Test setting the cancel event interrupts a read that is still waiting."""
        async def scenario():
            cancel = asyncio.Event()
            received = []

            async def slow_source():
                yield make_ndjson(["first"])
                await asyncio.sleep(10)
                yield make_ndjson(["never"])

            async def consume():
                async for delta in iter_deltas(slow_source(), cancel_event=cancel):
                    received.append(delta)

            task = asyncio.create_task(consume())
            await asyncio.sleep(0.05)
            cancel.set()
            with pytest.raises(StreamCancelledError) as exc_info:
                await asyncio.wait_for(task, timeout=1.0)
            return received, exc_info.value

        received, error = asyncio.run(scenario())

        assert received == ["first"]
        assert error.received_chars == len("first")

    def test_cancel_before_start(self, make_ndjson):
        """Test an already-set cancel event stops the loop before any read."""
        async def scenario():
            cancel = asyncio.Event()
            cancel.set()
            return await collect(byte_source([make_ndjson(["x"])]), cancel_event=cancel)

        with pytest.raises(StreamCancelledError):
            asyncio.run(scenario())

"""
Conversation session coordinator.

Runs one question through the response pipeline:
Symbols → Market Snapshot (cached) → Stream → Jargon Filter → Markdown
→ Trade Call Extraction → Monte Carlo Projection
"""

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from .config.defaults import DefaultConfig
from .config.loader import ConfigLoader
from .data.models import ConversationTurn, MarketSnapshot, Role, SimulationResult, TradeCall
from .data.snapshot_cache import SnapshotCache, cache_key, detect_symbols
from .errors import (
    DataQualityError,
    StreamCancelledError,
    StreamFailureError,
    StreamInProgressError,
)
from .extraction.trade_call import TradeCallExtractor
from .logging.config import (
    get_logger,
    get_render_logger,
    get_stream_logger,
    log_stream_completion,
    log_trade_call_extraction,
)
from .simulation.monte_carlo import MonteCarloSimulator
from .stream.client import ChatStreamClient
from .text.markdown import MarkdownRenderer

logger = get_logger(__name__)
stream_logger = get_stream_logger(__name__)
render_logger = get_render_logger(__name__)

MarketContext = tuple[str, list[MarketSnapshot]]
SnapshotProvider = Callable[[str, list[str]], Awaitable[MarketContext]]

ERROR_TEMPLATE = "**Connection Error:** {message}. The model may be restarting, try again in a moment."


@dataclass(frozen=True)
class RenderedTurn:
    """A render pass over an assistant turn."""
    turn_id: str
    display_text: str
    html: str
    streaming: bool
    trade_call: Optional[TradeCall] = None


@dataclass
class TurnResult:
    """Everything produced for one question."""
    turn: ConversationTurn
    rendered: RenderedTurn
    trade_call: Optional[TradeCall] = None
    simulation: Optional[SimulationResult] = None
    metrics: dict[str, Any] = field(default_factory=dict)
    error: Optional[StreamFailureError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def format_error_message(error: StreamFailureError) -> str:
    """Turn-level error text shown in place of the failed response."""
    return ERROR_TEMPLATE.format(message=error.user_message)


class ConversationSession:
    """
    Owns the turns of one conversation and runs questions through the pipeline.

    Only one stream is active at a time; ask() refuses a new question while a
    previous one is still streaming.
    """

    def __init__(
        self,
        snapshot_provider: Optional[SnapshotProvider] = None,
        config: Optional[DefaultConfig] = None,
        config_dir: Optional[Path] = None,
        client: Optional[ChatStreamClient] = None,
        cache: Optional[SnapshotCache[MarketContext]] = None,
        simulator: Optional[MonteCarloSimulator] = None,
    ) -> None:
        """Initialize the session and its pipeline components."""
        self.config = config or ConfigLoader.create(config_dir).load()
        self.snapshot_provider = snapshot_provider

        self.client = client or ChatStreamClient(self.config.stream)
        self.cache: SnapshotCache[MarketContext] = cache or SnapshotCache(
            ttl_seconds=self.config.cache.ttl_seconds
        )
        self.renderer = MarkdownRenderer(self.config.render)
        self.extractor = TradeCallExtractor(min_thesis_chars=self.config.render.min_thesis_chars)
        self.simulator = simulator or MonteCarloSimulator(self.config.simulation)

        self.turns: list[ConversationTurn] = []
        self.active_turn: Optional[ConversationTurn] = None
        self._cancel_requested = False

    @property
    def is_streaming(self) -> bool:
        return self.active_turn is not None

    async def ask(
        self,
        query: str,
        on_update: Optional[Callable[[RenderedTurn], None]] = None,
    ) -> TurnResult:
        """
        Stream the answer to a question into a new assistant turn.

        Args:
            query: User question
            on_update: Called with a fresh render after every content delta

        Returns:
            TurnResult; stream failures are reported in it, not raised

        Raises:
            StreamInProgressError: If another answer is still streaming
            ValueError: If the query is blank
        """
        if self.active_turn is not None:
            raise StreamInProgressError(
                "A response is already streaming for this conversation",
                turn_id=self.active_turn.id,
            )
        query = query.strip()
        if not query:
            raise ValueError("Query must not be empty")

        self.turns.append(ConversationTurn(role=Role.USER, content=query))
        history = [turn.as_message() for turn in self.turns]
        turn = ConversationTurn(role=Role.ASSISTANT, streaming=True)
        self.turns.append(turn)
        self.active_turn = turn

        try:
            context_text, snapshots = await self._market_context(query)
            turn.projections = list(snapshots)
            return await self._stream_turn(turn, history, context_text, on_update)
        finally:
            if turn.streaming:
                turn.close()
            self.active_turn = None
            self._cancel_requested = False

    def cancel(self) -> None:
        """Abort the active stream, if any.

        A cancel that arrives while market data is still loading stops the turn
        before the model is called.
        """
        if self.active_turn is not None:
            self._cancel_requested = True
            self.client.cancel()

    def clear(self) -> None:
        """Drop all turns and the cached market snapshot."""
        if self.active_turn is not None:
            raise StreamInProgressError("Cannot clear while streaming", turn_id=self.active_turn.id)
        self.turns.clear()
        self.cache.clear()
        logger.info("Conversation cleared")

    def render_turn(self, turn: ConversationTurn,
                    trade_call: Optional[TradeCall] = None) -> RenderedTurn:
        """
        Render a turn's current content.

        With a trade call the template prose it was extracted from is removed,
        since the caller shows the structured card instead.
        """
        text = turn.display_text
        if trade_call is not None:
            text = self.extractor.strip_trade_call(text)
        return RenderedTurn(
            turn_id=turn.id,
            display_text=text,
            html=self.renderer.render(text),
            streaming=turn.streaming,
            trade_call=trade_call,
        )

    async def _stream_turn(
        self,
        turn: ConversationTurn,
        history: list[dict[str, str]],
        context_text: str,
        on_update: Optional[Callable[[RenderedTurn], None]],
    ) -> TurnResult:
        started = time.monotonic()
        try:
            if self._cancel_requested:
                raise StreamCancelledError(received_chars=0)
            async for delta in self.client.stream_chat(history, market_context=context_text):
                turn.append(delta)
                if on_update is not None:
                    on_update(self.render_turn(turn))
        except StreamFailureError as e:
            turn.replace_with_error(format_error_message(e))
            stream_logger.warning(
                "Stream failed",
                turn_id=turn.id,
                error_type=type(e).__name__,
                error=str(e),
                received_chars=len(turn.content),
                recoverable=e.recoverable,
            )
            rendered = self.render_turn(turn)
            if on_update is not None:
                on_update(rendered)
            return TurnResult(turn=turn, rendered=rendered, metrics=self._stream_metrics(), error=e)

        turn.close()
        metrics = self._stream_metrics()
        log_stream_completion(
            stream_logger,
            turn_id=turn.id,
            frames_parsed=metrics.get("frames_parsed", 0),
            frames_discarded=metrics.get("frames_discarded", 0),
            content_chars=len(turn.content),
            elapsed_ms=(time.monotonic() - started) * 1000,
        )

        trade_call = self.extractor.extract(turn.display_text)
        log_trade_call_extraction(
            render_logger,
            turn_id=turn.id,
            found=trade_call is not None,
            fields=list(trade_call.as_dict()) if trade_call else None,
        )

        simulation = None
        snapshot = match_projection(trade_call, turn.projections) if trade_call else None
        if snapshot is not None:
            simulation = await asyncio.to_thread(self.simulator.simulate_snapshot, snapshot)

        rendered = self.render_turn(turn, trade_call)
        if on_update is not None:
            on_update(rendered)
        return TurnResult(
            turn=turn,
            rendered=rendered,
            trade_call=trade_call,
            simulation=simulation,
            metrics=metrics,
        )

    async def _market_context(self, query: str) -> MarketContext:
        """
        Fetch market context for the query, consulting the cache first.

        A query without recognizable symbols reuses the previous symbols. A
        failed or slow fetch degrades to no context rather than failing the turn.
        """
        symbols = detect_symbols(query) or self.cache.last_symbols
        key = cache_key(symbols)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Using cached market context", symbols=key)
            return cached

        if self.snapshot_provider is None:
            return "", []

        try:
            context = await asyncio.wait_for(
                self.snapshot_provider(query, symbols),
                timeout=self.config.cache.snapshot_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Market data timeout",
                symbols=key,
                timeout_seconds=self.config.cache.snapshot_timeout_seconds,
            )
            return "", []
        except DataQualityError as e:
            logger.warning("Market data unusable", symbols=key, error=str(e), context=e.context)
            return "", []
        except Exception as e:
            logger.warning(
                "Market data unavailable",
                symbols=key,
                error_type=type(e).__name__,
                error=str(e),
            )
            return "", []

        self.cache.put(key, context)
        return context

    def _stream_metrics(self) -> dict[str, Any]:
        ingestor = self.client.last_ingestor
        return ingestor.metrics.get_stats() if ingestor is not None else {}


def match_projection(trade_call: Optional[TradeCall],
                     projections: list[MarketSnapshot]) -> Optional[MarketSnapshot]:
    """Snapshot for the traded coin, falling back to the first snapshot."""
    if not projections:
        return None
    coin = (trade_call.coin or "").upper() if trade_call else ""
    for snapshot in projections:
        if coin and snapshot.symbol.upper() == coin:
            return snapshot
    return projections[0]

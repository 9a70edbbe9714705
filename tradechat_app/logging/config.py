"""
Centralized logging configuration for the TradeChat pipeline.

This module provides standardized logging configuration using structlog
for all components. Streaming, rendering and extraction code should log
through these helpers so events share the same structure.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import FilteringBoundLogger


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None
) -> None:
    """
    Configure structlog for the entire application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: If True, output JSON format; otherwise human-readable
        include_timestamp: Include timestamp in log output
        include_caller: Include caller information (filename, line number)
        extra_processors: Additional structlog processors to include
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(message)s"  # structlog will handle formatting
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                       structlog.processors.CallsiteParameter.LINENO]
        ))

    if extra_processors:
        processors.extend(extra_processors)

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def get_stream_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound for stream ingestion events.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger for streaming
    """
    return get_logger(name).bind(subsystem="stream")


def get_render_logger(name: str) -> FilteringBoundLogger:
    """Get a logger bound for rendering and extraction events."""
    return get_logger(name).bind(subsystem="render")


def log_stream_completion(
    logger: FilteringBoundLogger,
    turn_id: str,
    frames_parsed: int,
    frames_discarded: int,
    content_chars: int,
    elapsed_ms: float,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log the end of a streaming turn with standardized format.

    Args:
        logger: Structlog logger instance
        turn_id: ID of the assistant turn that was streamed
        frames_parsed: Frames that decoded as JSON
        frames_discarded: Lines dropped as malformed
        content_chars: Length of the accumulated content
        elapsed_ms: Wall-clock duration of the read loop
        context: Additional context data
    """
    bound_logger = logger.bind(
        turn_id=turn_id,
        frames_parsed=frames_parsed,
        frames_discarded=frames_discarded,
        content_chars=content_chars,
        elapsed_ms=round(elapsed_ms, 1),
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    if frames_discarded:
        bound_logger.warning("Stream completed with discarded frames")
    else:
        bound_logger.info("Stream completed")


def log_trade_call_extraction(
    logger: FilteringBoundLogger,
    turn_id: str,
    found: bool,
    fields: Optional[list[str]] = None
) -> None:
    """
    Log the outcome of trade call extraction for a finished turn.

    Args:
        logger: Structlog logger instance
        turn_id: ID of the assistant turn
        found: Whether a trade call record was produced
        fields: Names of the populated fields
    """
    bound_logger = logger.bind(
        turn_id=turn_id,
        trade_call="FOUND" if found else "ABSENT",
        fields=fields or [],
    )

    if found:
        bound_logger.info("Trade call extracted")
    else:
        bound_logger.info("No trade call in response")

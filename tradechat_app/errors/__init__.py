"""
Error classification for the conversational response pipeline.

This module provides the exception hierarchy used while decoding streamed
model output, talking to the inference endpoint and enforcing the
one-stream-per-conversation discipline.
"""

from .frame_errors import (
    DataQualityError,
    FrameDecodeError,
    MalformedSnapshotError,
)
from .stream_failures import (
    StreamFailureError,
    EmptyResponseError,
    StreamInProgressError,
    StreamCancelledError,
)
from .recovery import (
    RetryableStreamError,
    StreamTimeoutError,
    StreamTransportError,
)

__all__ = [
    # Frame / data quality errors
    "DataQualityError",
    "FrameDecodeError",
    "MalformedSnapshotError",
    # Stream failures
    "StreamFailureError",
    "EmptyResponseError",
    "StreamInProgressError",
    "StreamCancelledError",
    # Retryable categories
    "RetryableStreamError",
    "StreamTimeoutError",
    "StreamTransportError",
]
